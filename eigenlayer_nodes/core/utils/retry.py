from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

from loguru import logger

from eigenlayer_nodes.core.constants.base import (
    DEFAULT_RPC_BACKOFF_MULTIPLIER,
    DEFAULT_RPC_MAX_RETRIES,
    DEFAULT_RPC_RETRY_DELAY_S,
)
from eigenlayer_nodes.core.errors import TransientRpcError

_TRANSIENT_MESSAGE_MARKERS = (
    "rate limit",
    "too many requests",
    "429",
    "timeout",
    "timed out",
)


def exponential_backoff_s(
    attempt: int, *, base_delay_s: float = 0.25, max_delay_s: float | None = None
) -> float:
    delay_s = base_delay_s * (2**attempt)
    if max_delay_s is not None:
        delay_s = min(delay_s, max_delay_s)
    return delay_s


async def retry_async[T](
    fn: Callable[[], Awaitable[T]],
    *,
    max_retries: int = 3,
    base_delay_s: float = 0.25,
    max_delay_s: float | None = None,
    should_retry: Callable[[Exception], bool] | None = None,
    get_delay_s: Callable[[int, Exception], float] | None = None,
    on_retry: Callable[[int, Exception, float], None] | None = None,
) -> T:
    """Call ``fn`` up to ``max_retries`` times in total."""
    if max_retries < 1:
        raise ValueError("max_retries must be >= 1")

    for attempt in range(max_retries):
        try:
            return await fn()
        except Exception as exc:  # noqa: BLE001
            if attempt >= max_retries - 1:
                raise
            if should_retry is not None and not should_retry(exc):
                raise

            delay_s = (
                get_delay_s(attempt, exc)
                if get_delay_s is not None
                else exponential_backoff_s(
                    attempt, base_delay_s=base_delay_s, max_delay_s=max_delay_s
                )
            )
            if on_retry is not None:
                on_retry(attempt, exc, delay_s)
            await asyncio.sleep(delay_s)

    raise RuntimeError("retry_async exhausted retries")


def is_transient_rpc_error(exc: BaseException) -> bool:
    if isinstance(exc, (TransientRpcError, TimeoutError)):
        return True
    text = str(exc).lower()
    return any(marker in text for marker in _TRANSIENT_MESSAGE_MARKERS)


async def with_retry[T](
    fn: Callable[[], Awaitable[T]],
    *,
    max_retries: int = DEFAULT_RPC_MAX_RETRIES,
    delay_s: float = DEFAULT_RPC_RETRY_DELAY_S,
    backoff_multiplier: float = DEFAULT_RPC_BACKOFF_MULTIPLIER,
    label: str = "rpc call",
) -> T:
    """Retry ``fn`` on rate-limit / timeout errors only.

    ``max_retries`` counts retries, so ``fn`` runs at most ``max_retries + 1``
    times. Anything not classified by :func:`is_transient_rpc_error` is raised
    on the first failure.
    """
    if max_retries < 0:
        raise ValueError("max_retries must be >= 0")

    def _log_retry(attempt: int, exc: Exception, wait_s: float) -> None:
        logger.warning(
            f"Transient error on {label} (attempt {attempt + 1}/{max_retries + 1}); "
            f"retrying in {wait_s:.2f}s: {exc}"
        )

    return await retry_async(
        fn,
        max_retries=max_retries + 1,
        should_retry=is_transient_rpc_error,
        get_delay_s=lambda attempt, _exc: delay_s * (backoff_multiplier**attempt),
        on_retry=_log_retry,
    )
