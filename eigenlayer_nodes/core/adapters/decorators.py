from __future__ import annotations

from collections.abc import Callable, Coroutine
from functools import wraps
from typing import Any

from eigenlayer_nodes.core.errors import EigenLayerError


def status_tuple[T](
    fn: Callable[..., Coroutine[Any, Any, T]],
) -> Callable[..., Coroutine[Any, Any, tuple[bool, T | str]]]:
    """Turn an async adapter helper into one returning ``(ok, result_or_error)``.

    Package errors (bad input, config, reverts) are expected outcomes and log at
    WARNING; anything else logs at ERROR with the traceback. ``execute`` and
    ``execute_items`` are not wrapped and raise normally.
    """

    @wraps(fn)
    async def wrapper(self: Any, *args: Any, **kwargs: Any) -> tuple[bool, T | str]:
        try:
            return True, await fn(self, *args, **kwargs)
        except EigenLayerError as exc:
            self.logger.warning(f"{fn.__name__} failed: {exc}")
            return False, str(exc)
        except Exception as exc:
            self.logger.opt(exception=exc).error(f"Error in {fn.__name__}: {exc}")
            return False, str(exc)

    return wrapper  # type: ignore[return-value]
