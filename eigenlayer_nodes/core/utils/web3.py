from __future__ import annotations

from collections import OrderedDict
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any
from urllib.parse import urlsplit, urlunsplit

from loguru import logger
from web3 import AsyncHTTPProvider, AsyncWeb3

from eigenlayer_nodes.core.adapters.models import ConnectionCredential
from eigenlayer_nodes.core.constants.base import (
    DEFAULT_HTTP_TIMEOUT,
    DEFAULT_RPC_MAX_RETRIES,
    PROVIDER_CACHE_SIZE,
)
from eigenlayer_nodes.core.errors import ConfigurationError, TransientRpcError
from eigenlayer_nodes.core.utils.networks import normalize_network, resolve_chain_id
from eigenlayer_nodes.core.utils.retry import with_retry

_ALCHEMY_HOSTS = {"mainnet": "eth-mainnet", "holesky": "eth-holesky"}
_INFURA_HOSTS = {"mainnet": "mainnet", "holesky": "holesky"}

_RATE_LIMIT_HTTP_STATUS = 429
_RATE_LIMIT_RPC_ERROR_CODES = {429, -32005, -33200, -33300, -33400}
_RATE_LIMIT_MESSAGE_MARKERS = (
    "too many requests",
    "rate limit",
    "request rate exceeded",
    "limit exceeded",
    "compute units per second",
    "concurrent requests",
)
# A resend after a lost response could double-submit; these go out exactly once.
_NON_IDEMPOTENT_METHODS = frozenset({"eth_sendRawTransaction", "eth_sendTransaction"})


def build_rpc_url(credential: ConnectionCredential) -> str:
    missing = credential.missing_fields()
    if missing:
        raise ConfigurationError(
            f"{credential.provider} RPC credential is missing: {', '.join(missing)}"
        )
    network = normalize_network(credential.network)
    api_key = (credential.api_key or "").strip()

    match credential.provider:
        case "alchemy":
            return f"https://{_ALCHEMY_HOSTS[network]}.g.alchemy.com/v2/{api_key}"
        case "infura":
            return f"https://{_INFURA_HOSTS[network]}.infura.io/v3/{api_key}"
        case "quicknode":
            # QuickNode issues a full per-project endpoint rather than a bare key.
            if not api_key.startswith("http"):
                raise ConfigurationError(
                    "QuickNode requires the full endpoint URL as the API key"
                )
            return api_key
        case "custom":
            return str(credential.custom_rpc_url).strip()
    raise ConfigurationError(f"Unknown RPC provider: {credential.provider}")


def redact_rpc_url(url: str) -> str:
    """Mask the trailing path segment, which is where vendors put the key."""
    parts = urlsplit(url)
    path = parts.path.rstrip("/")
    if "/" in path and path.rsplit("/", 1)[1]:
        path = path.rsplit("/", 1)[0] + "/***"
    return urlunsplit((parts.scheme, parts.netloc, path, "", ""))


def _extract_http_status(exc: Exception) -> int | None:
    status = getattr(exc, "status", None)
    if isinstance(status, int):
        return status
    status_code = getattr(exc, "status_code", None)
    if isinstance(status_code, int):
        return status_code
    response = getattr(exc, "response", None)
    if response is not None:
        code = getattr(response, "status_code", None)
        if isinstance(code, int):
            return code
    return None


def _is_rate_limited_rpc_error(error: dict[str, Any]) -> bool:
    code = error.get("code")
    if isinstance(code, int) and code in _RATE_LIMIT_RPC_ERROR_CODES:
        return True
    text = f"{error.get('message') or ''} {error.get('details') or ''}".lower()
    return any(marker in text for marker in _RATE_LIMIT_MESSAGE_MARKERS)


class EigenLayerRpcProvider(AsyncHTTPProvider):
    """HTTP provider pinned to one chain ID, with transient-failure retries.

    ``eth_chainId`` is answered locally so a misconfigured endpoint can never
    re-route signing to another network. Transaction broadcasts are sent once;
    everything else goes through :func:`with_retry`.
    """

    def __init__(
        self,
        endpoint_uri: str,
        chain_id: int,
        *,
        max_retries: int = DEFAULT_RPC_MAX_RETRIES,
        request_kwargs: dict[str, Any] | None = None,
    ):
        kwargs = {"timeout": DEFAULT_HTTP_TIMEOUT, **(request_kwargs or {})}
        super().__init__(endpoint_uri, request_kwargs=kwargs)
        self.chain_id = int(chain_id)
        self.max_retries = max_retries

    def __repr__(self) -> str:
        return f"<EigenLayerRpcProvider {redact_rpc_url(str(self.endpoint_uri))} chain={self.chain_id}>"

    async def _request_once(
        self, method: str, request_data: bytes, request_id: Any
    ) -> dict[str, Any]:
        try:
            raw_response = await self._make_request(method, request_data)
        except Exception as exc:
            if _extract_http_status(exc) == _RATE_LIMIT_HTTP_STATUS:
                raise TransientRpcError(f"HTTP 429 from RPC on {method}") from exc
            raise
        response = self.decode_rpc_response(raw_response)
        if isinstance(response, dict) and "id" not in response:
            response["id"] = request_id
        error = response.get("error") if isinstance(response, dict) else None
        if isinstance(error, dict) and _is_rate_limited_rpc_error(error):
            raise TransientRpcError(f"RPC rate limit on {method}: {error}")
        return response

    async def fetch_remote_chain_id(self) -> int:
        req = self.form_request("eth_chainId", [])
        response = await self._request_once(
            "eth_chainId", self.encode_rpc_dict(req), req.get("id")
        )
        if "error" in response:
            raise ConfigurationError(f"eth_chainId failed: {response['error']}")
        return int(response["result"], 16)

    async def make_request(self, method, params):  # type: ignore[override]
        req = self.form_request(method, params)
        request_id = req.get("id")
        if method == "eth_chainId":
            return {"jsonrpc": "2.0", "id": request_id, "result": hex(self.chain_id)}

        request_data = self.encode_rpc_dict(req)
        if method in _NON_IDEMPOTENT_METHODS:
            return await self._request_once(method, request_data, request_id)
        return await with_retry(
            lambda: self._request_once(method, request_data, request_id),
            max_retries=self.max_retries,
            label=method,
        )


def create_web3(credential: ConnectionCredential) -> AsyncWeb3:
    url = build_rpc_url(credential)
    chain_id = resolve_chain_id(credential.network)
    provider = EigenLayerRpcProvider(url, chain_id)
    logger.debug(f"Created RPC provider {redact_rpc_url(url)} chain={chain_id}")
    return AsyncWeb3(provider)


class ProviderCache:
    """Bounded LRU of ``AsyncWeb3`` instances keyed by resolved RPC URL.

    The owner calls :meth:`close` at shutdown; evicted entries are disconnected
    as they fall out.
    """

    def __init__(self, max_size: int = PROVIDER_CACHE_SIZE):
        if max_size < 1:
            raise ValueError("max_size must be >= 1")
        self.max_size = max_size
        self._entries: OrderedDict[tuple[str, int], AsyncWeb3] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, credential: ConnectionCredential) -> bool:
        return self._key(credential) in self._entries

    @staticmethod
    def _key(credential: ConnectionCredential) -> tuple[str, int]:
        return build_rpc_url(credential), resolve_chain_id(credential.network)

    async def get(self, credential: ConnectionCredential) -> AsyncWeb3:
        key = self._key(credential)
        web3 = self._entries.get(key)
        if web3 is not None:
            self._entries.move_to_end(key)
            return web3

        web3 = create_web3(credential)
        self._entries[key] = web3
        while len(self._entries) > self.max_size:
            _evicted_key, evicted = self._entries.popitem(last=False)
            await evicted.provider.disconnect()
        return web3

    async def close(self) -> None:
        entries = list(self._entries.values())
        self._entries.clear()
        for web3 in entries:
            await web3.provider.disconnect()


@asynccontextmanager
async def provider_cache(max_size: int = PROVIDER_CACHE_SIZE) -> AsyncIterator[ProviderCache]:
    cache = ProviderCache(max_size)
    try:
        yield cache
    finally:
        await cache.close()


@asynccontextmanager
async def web3_from_credential(
    credential: ConnectionCredential,
) -> AsyncIterator[AsyncWeb3]:
    web3 = create_web3(credential)
    try:
        yield web3
    finally:
        await web3.provider.disconnect()


async def validate_connection(web3: AsyncWeb3) -> dict[str, Any]:
    """Liveness check. Never raises; failures come back as ``valid: False``."""
    try:
        fetch_remote = getattr(web3.provider, "fetch_remote_chain_id", None)
        if fetch_remote is not None:
            chain_id = await fetch_remote()
            pinned = getattr(web3.provider, "chain_id", chain_id)
            if chain_id != pinned:
                return {
                    "valid": False,
                    "error": f"Chain ID mismatch: expected {pinned}, endpoint reports {chain_id}",
                }
        else:
            chain_id = await web3.eth.chain_id
        block_number = await web3.eth.block_number
        return {"valid": True, "chainId": int(chain_id), "blockNumber": int(block_number)}
    except Exception as exc:
        logger.warning(f"RPC connection check failed: {exc}")
        return {"valid": False, "error": str(exc)}
