from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from eigenlayer_nodes.core.adapters.models import ConnectionCredential
from eigenlayer_nodes.core.errors import ConfigurationError, TransientRpcError
from eigenlayer_nodes.core.utils import web3 as web3_module
from eigenlayer_nodes.core.utils.web3 import (
    EigenLayerRpcProvider,
    ProviderCache,
    build_rpc_url,
    provider_cache,
    redact_rpc_url,
    validate_connection,
)


class _RateLimitedError(Exception):
    def __init__(self):
        super().__init__("Too Many Requests")
        self.status = 429


async def _value(v):
    return v


async def _raise(exc):
    raise exc


@pytest.fixture
def no_sleep():
    with patch(
        "eigenlayer_nodes.core.utils.retry.asyncio.sleep", new=AsyncMock()
    ) as sleep:
        yield sleep


class TestBuildRpcUrl:
    def test_alchemy_mainnet(self):
        cred = ConnectionCredential(provider="alchemy", api_key="abc", network="mainnet")
        assert build_rpc_url(cred) == "https://eth-mainnet.g.alchemy.com/v2/abc"

    def test_alchemy_holesky_alias(self):
        cred = ConnectionCredential(provider="alchemy", api_key="abc", network="testnet")
        assert build_rpc_url(cred) == "https://eth-holesky.g.alchemy.com/v2/abc"

    def test_infura(self):
        cred = ConnectionCredential(provider="infura", api_key="k1", network="holesky")
        assert build_rpc_url(cred) == "https://holesky.infura.io/v3/k1"

    def test_quicknode_requires_full_url(self):
        cred = ConnectionCredential(provider="quicknode", api_key="not-a-url")
        with pytest.raises(ConfigurationError, match="QuickNode"):
            build_rpc_url(cred)

    def test_quicknode_url_passthrough(self):
        url = "https://example.quiknode.pro/token/"
        cred = ConnectionCredential(provider="quicknode", api_key=url)
        assert build_rpc_url(cred) == url

    def test_custom(self):
        cred = ConnectionCredential(
            provider="custom", custom_rpc_url="http://localhost:8545"
        )
        assert build_rpc_url(cred) == "http://localhost:8545"

    def test_missing_key_raises(self):
        cred = ConnectionCredential(provider="alchemy")
        with pytest.raises(ConfigurationError, match="api_key"):
            build_rpc_url(cred)

    def test_missing_custom_url_raises(self):
        cred = ConnectionCredential(provider="custom")
        with pytest.raises(ConfigurationError, match="custom_rpc_url"):
            build_rpc_url(cred)

    def test_camel_case_aliases_accepted(self):
        cred = ConnectionCredential.model_validate(
            {"provider": "custom", "customRpcUrl": "http://node:8545"}
        )
        assert build_rpc_url(cred) == "http://node:8545"


def test_redact_rpc_url_masks_key():
    assert (
        redact_rpc_url("https://eth-mainnet.g.alchemy.com/v2/secret")
        == "https://eth-mainnet.g.alchemy.com/v2/***"
    )


@pytest.mark.asyncio
async def test_provider_answers_chain_id_locally():
    provider = EigenLayerRpcProvider("https://rpc.invalid", chain_id=17000)
    provider._make_request = AsyncMock()

    resp = await provider.make_request("eth_chainId", [])

    assert resp["result"] == hex(17000)
    provider._make_request.assert_not_awaited()


@pytest.mark.asyncio
async def test_provider_retries_http_429(no_sleep):
    provider = EigenLayerRpcProvider("https://rpc.invalid", chain_id=1)
    provider._make_request = AsyncMock(
        side_effect=[
            _RateLimitedError(),
            b'{"jsonrpc":"2.0","id":1,"result":"0x10"}',
        ]
    )

    resp = await provider.make_request("eth_blockNumber", [])

    assert resp["result"] == "0x10"
    assert provider._make_request.await_count == 2
    assert no_sleep.await_count == 1


@pytest.mark.asyncio
async def test_provider_retries_rpc_rate_limit_error(no_sleep):
    provider = EigenLayerRpcProvider("https://rpc.invalid", chain_id=1)
    provider._make_request = AsyncMock(
        side_effect=[
            b'{"jsonrpc":"2.0","id":1,"error":{"code":-32005,"message":"Limit exceeded"}}',
            b'{"jsonrpc":"2.0","id":1,"result":"0x2"}',
        ]
    )

    resp = await provider.make_request("eth_blockNumber", [])

    assert resp["result"] == "0x2"


@pytest.mark.asyncio
async def test_provider_does_not_retry_revert(no_sleep):
    provider = EigenLayerRpcProvider("https://rpc.invalid", chain_id=1)
    provider._make_request = AsyncMock(
        return_value=b'{"jsonrpc":"2.0","id":1,"error":{"code":3,"message":"execution reverted"}}'
    )

    resp = await provider.make_request("eth_call", [])

    assert resp["error"]["code"] == 3
    assert provider._make_request.await_count == 1
    no_sleep.assert_not_awaited()


@pytest.mark.asyncio
async def test_provider_sends_raw_transaction_once(no_sleep):
    provider = EigenLayerRpcProvider("https://rpc.invalid", chain_id=1)
    provider._make_request = AsyncMock(
        side_effect=[
            TimeoutError("read timed out"),
            b'{"jsonrpc":"2.0","id":1,"error":{"code":-32000,"message":"already known"}}',
        ]
    )

    with pytest.raises(TimeoutError):
        await provider.make_request("eth_sendRawTransaction", ["0x02f8"])

    assert provider._make_request.await_count == 1
    no_sleep.assert_not_awaited()


@pytest.mark.asyncio
async def test_provider_gives_up_after_max_retries(no_sleep):
    provider = EigenLayerRpcProvider("https://rpc.invalid", chain_id=1, max_retries=2)
    provider._make_request = AsyncMock(side_effect=_RateLimitedError())

    with pytest.raises(TransientRpcError):
        await provider.make_request("eth_blockNumber", [])

    assert provider._make_request.await_count == 3


@pytest.mark.asyncio
class TestValidateConnection:
    async def test_valid(self):
        web3 = MagicMock()
        web3.provider = MagicMock(spec=[])
        web3.eth.chain_id = _value(17000)
        web3.eth.block_number = _value(123)

        result = await validate_connection(web3)

        assert result == {"valid": True, "chainId": 17000, "blockNumber": 123}

    async def test_failure_is_returned_not_raised(self):
        web3 = MagicMock()
        web3.provider = MagicMock(spec=[])
        web3.eth.chain_id = _value(1)
        web3.eth.block_number = _raise(ConnectionError("connection refused"))

        result = await validate_connection(web3)

        assert result["valid"] is False
        assert "connection refused" in result["error"]

    async def test_chain_id_mismatch(self):
        provider = EigenLayerRpcProvider("https://rpc.invalid", chain_id=17000)
        provider.fetch_remote_chain_id = AsyncMock(return_value=1)
        web3 = MagicMock()
        web3.provider = provider

        result = await validate_connection(web3)

        assert result["valid"] is False
        assert "mismatch" in result["error"]


def _fake_web3():
    web3 = MagicMock()
    web3.provider.disconnect = AsyncMock()
    return web3


@pytest.mark.asyncio
class TestProviderCache:
    async def test_reuses_instance_per_url(self):
        cred = ConnectionCredential(provider="alchemy", api_key="a")
        with patch.object(
            web3_module, "create_web3", side_effect=lambda c: _fake_web3()
        ) as factory:
            cache = ProviderCache(max_size=2)
            first = await cache.get(cred)
            second = await cache.get(cred)

        assert first is second
        assert factory.call_count == 1

    async def test_evicts_least_recently_used(self):
        creds = [
            ConnectionCredential(provider="alchemy", api_key=f"key{i}")
            for i in range(3)
        ]
        with patch.object(
            web3_module, "create_web3", side_effect=lambda c: _fake_web3()
        ):
            cache = ProviderCache(max_size=2)
            first = await cache.get(creds[0])
            await cache.get(creds[1])
            await cache.get(creds[2])

        assert len(cache) == 2
        assert creds[0] not in cache
        first.provider.disconnect.assert_awaited_once()

    async def test_context_manager_closes_entries(self):
        cred = ConnectionCredential(provider="infura", api_key="a")
        with patch.object(
            web3_module, "create_web3", side_effect=lambda c: _fake_web3()
        ):
            async with provider_cache() as cache:
                web3 = await cache.get(cred)

        web3.provider.disconnect.assert_awaited_once()
        assert len(cache) == 0

    async def test_rejects_zero_size(self):
        with pytest.raises(ValueError):
            ProviderCache(max_size=0)
