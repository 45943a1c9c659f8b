from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

from loguru import logger
from web3 import AsyncWeb3

Web3CallFactory = Callable[[], Awaitable[Any]]


async def batch_web3_calls(
    web3: AsyncWeb3,
    *call_factories: Web3CallFactory,
    fallback_to_gather: bool = True,
) -> tuple[Any, ...]:
    """
    Run several independent contract reads as one JSON-RPC batch.

    Usage:
        pod, has_pod = await batch_web3_calls(
            web3,
            lambda: manager.functions.ownerToPod(owner).call(),
            lambda: manager.functions.hasPod(owner).call(),
        )

    Endpoints that reject batches fall back to ``asyncio.gather``; results keep
    the order of ``call_factories`` either way.
    """

    if not call_factories:
        return ()

    batch = None
    try:
        batch = web3.batch_requests()
        for factory in call_factories:
            batch.add(factory())
        results = await batch.async_execute()
        return tuple(results)
    except Exception as batch_exc:
        if batch is not None:
            try:
                batch.cancel()
            except Exception as cancel_exc:  # noqa: BLE001
                logger.debug(f"Ignoring batch cancel failure: {cancel_exc}")

        if not fallback_to_gather:
            raise

        logger.debug(
            f"JSON-RPC batch of {len(call_factories)} calls failed ({batch_exc}); "
            "falling back to concurrent requests"
        )
        try:
            results = await asyncio.gather(*(factory() for factory in call_factories))
            return tuple(results)
        except Exception as gather_exc:
            raise gather_exc from batch_exc
