import time
from typing import Any

import httpx
from loguru import logger

from eigenlayer_nodes.core.adapters.models import ApiCredential
from eigenlayer_nodes.core.constants.base import DEFAULT_HTTP_TIMEOUT
from eigenlayer_nodes.core.errors import ConfigurationError


class EigenLayerApiClient:
    """Authenticated access to the EigenLayer REST backend.

    Responses are returned as decoded JSON without interpretation.
    """

    def __init__(
        self,
        credential: ApiCredential,
        *,
        client: httpx.AsyncClient | None = None,
    ):
        api_key = (credential.api_key or "").strip()
        if not api_key:
            raise ConfigurationError("EigenLayer API credential is missing: api_key")
        self.base_url = str(credential.base_url).rstrip("/")
        self.client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(DEFAULT_HTTP_TIMEOUT)
        )
        self.headers = {
            "Content-Type": "application/json",
            "X-API-KEY": api_key,
        }

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        url = f"{self.base_url}/{path.lstrip('/')}"
        logger.debug(f"Making {method} request to {url}")
        start_time = time.time()

        resp = await self.client.request(
            method, url, headers=self.headers, params=params, json=json
        )

        elapsed = time.time() - start_time
        if resp.status_code >= 400:
            logger.warning(
                f"HTTP {resp.status_code} response for {method} {url} after {elapsed:.2f}s"
            )
        else:
            logger.debug(
                f"HTTP {resp.status_code} response for {method} {url} after {elapsed:.2f}s"
            )

        resp.raise_for_status()
        if not resp.content:
            return None
        return resp.json()

    async def get(self, path: str, **params: Any) -> Any:
        return await self.request("GET", path, params=params or None)

    async def close(self) -> None:
        await self.client.aclose()
