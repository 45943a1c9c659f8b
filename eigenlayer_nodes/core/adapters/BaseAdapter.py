from __future__ import annotations

import functools
from abc import ABC
from collections.abc import Callable
from typing import Any

from loguru import logger
from web3 import AsyncWeb3

from eigenlayer_nodes.core.errors import ConfigurationError


def require_signer(fn: Callable) -> Callable:
    """Raise ``ConfigurationError`` before any I/O if no signing credential is set."""

    @functools.wraps(fn)
    async def wrapper(self: BaseAdapter, *args: Any, **kwargs: Any) -> Any:
        if getattr(self, "signing", None) is None:
            raise ConfigurationError(
                f"{fn.__name__} requires a signing credential (private key or mnemonic)"
            )
        return await fn(self, *args, **kwargs)

    return wrapper


class BaseAdapter(ABC):
    adapter_type: str | None = None

    def __init__(
        self,
        name: str,
        config: dict[str, Any] | None = None,
        *,
        web3: AsyncWeb3 | None = None,
        owns_web3: bool = False,
    ):
        self.name = name
        self.config = config or {}
        self.web3 = web3
        # Injected providers belong to the caller; only disconnect our own.
        self._owns_web3 = owns_web3 and web3 is not None
        self.logger = logger.bind(adapter=self.__class__.__name__)

    async def close(self) -> None:
        if self._owns_web3:
            self.logger.debug(f"Disconnecting provider for {self.name}")
            await self.web3.provider.disconnect()
