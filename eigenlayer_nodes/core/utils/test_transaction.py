import asyncio
from unittest.mock import AsyncMock, MagicMock, PropertyMock

import pytest
from eth_utils import keccak
from hexbytes import HexBytes
from web3.exceptions import ContractLogicError

from eigenlayer_nodes.core.errors import (
    GasEstimationError,
    TransactionError,
    TransactionRevertedError,
    TransactionTimeoutError,
)
from eigenlayer_nodes.core.utils.transaction import (
    build_transaction_options,
    estimate_gas,
    format_gas_cost,
    get_fee_data,
    get_gas_prices,
    parse_transaction_error,
    send_contract_transaction,
    supports_eip1559,
    wait_for_transaction,
)

RANDOM_USER_0 = "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"
STRATEGY_MANAGER = "0x858646372CC42E1A627fcE94aa7A7033e7CF075A"
TX_HASH = "0x" + "ab" * 32


async def _value(v):
    return v


def _mock_web3(*, base_fee=10, gas_price=7, rewards=([2], [4]), chain_id=1):
    web3 = MagicMock()
    web3.eth.get_block = AsyncMock(
        return_value={} if base_fee is None else {"baseFeePerGas": base_fee}
    )
    type(web3.eth).gas_price = PropertyMock(side_effect=lambda: _value(gas_price))
    type(web3.eth).chain_id = PropertyMock(side_effect=lambda: _value(chain_id))
    web3.eth.fee_history = AsyncMock(return_value={"reward": [list(r) for r in rewards]})
    web3.eth.get_transaction_count = AsyncMock(return_value=3)
    return web3


def _mock_contract(method: str, *, estimate=100_000, estimate_error=None):
    fn = MagicMock()
    fn.estimate_gas = AsyncMock(return_value=estimate, side_effect=estimate_error)
    fn.build_transaction = AsyncMock(
        side_effect=lambda params: {**params, "to": STRATEGY_MANAGER, "data": "0x"}
    )
    contract = MagicMock()
    contract.address = STRATEGY_MANAGER
    setattr(contract.functions, method, MagicMock(return_value=fn))
    return contract, fn


@pytest.mark.asyncio
class TestEstimateGas:
    async def test_applies_integer_buffer(self):
        contract, fn = _mock_contract("undelegate", estimate=100_001)
        gas = await estimate_gas(
            contract, "undelegate", [RANDOM_USER_0], from_address=RANDOM_USER_0
        )
        assert gas == 100_001 + 100_001 * 20 // 100
        fn.estimate_gas.assert_awaited_once_with({"from": RANDOM_USER_0})

    async def test_custom_buffer_and_value(self):
        contract, fn = _mock_contract("stake", estimate=50_000)
        gas = await estimate_gas(contract, "stake", [], buffer_percent=50, value=5)
        assert gas == 75_000
        fn.estimate_gas.assert_awaited_once_with({"value": 5})

    async def test_failure_wraps_revert_reason(self):
        contract, _ = _mock_contract(
            "delegateTo",
            estimate_error=ContractLogicError("execution reverted: already delegated"),
        )
        with pytest.raises(
            GasEstimationError,
            match="Gas estimation failed for delegateTo: already delegated",
        ):
            await estimate_gas(contract, "delegateTo", [])


@pytest.mark.asyncio
class TestFeeData:
    async def test_eip1559_fee_data(self):
        fee_data = await get_fee_data(_mock_web3())
        # priority = avg(2, 4) * 1.5 -> 4; max fee = 2 * base + priority
        assert fee_data == {"gasPrice": 7, "maxFeePerGas": 24, "maxPriorityFeePerGas": 4}

    async def test_legacy_chain(self):
        web3 = _mock_web3(base_fee=None)
        fee_data = await get_fee_data(web3)
        assert fee_data == {"gasPrice": 7, "maxFeePerGas": None, "maxPriorityFeePerGas": None}
        assert await supports_eip1559(web3) is False

    async def test_gas_prices_default_to_zero(self):
        prices = await get_gas_prices(_mock_web3(base_fee=None))
        assert prices == {"gasPrice": 7, "maxFeePerGas": 0, "maxPriorityFeePerGas": 0}

    async def test_supports_eip1559(self):
        assert await supports_eip1559(_mock_web3()) is True


@pytest.mark.asyncio
class TestBuildTransactionOptions:
    async def test_uses_eip1559_when_supported(self):
        options = await build_transaction_options(_mock_web3(), 120_000)
        assert options == {"gas": 120_000, "maxFeePerGas": 24, "maxPriorityFeePerGas": 4}

    async def test_uses_legacy_gas_price(self):
        options = await build_transaction_options(_mock_web3(base_fee=None), 21_000)
        assert options == {"gas": 21_000, "gasPrice": 7}

    async def test_caller_fees_win_without_fee_lookup(self):
        web3 = _mock_web3()
        options = await build_transaction_options(
            web3, 21_000, {"maxFeePerGas": 99, "maxPriorityFeePerGas": 1}
        )
        assert options == {"gas": 21_000, "maxFeePerGas": 99, "maxPriorityFeePerGas": 1}
        web3.eth.get_block.assert_not_awaited()

    async def test_max_fee_only_clamps_priority(self):
        options = await build_transaction_options(
            _mock_web3(), 21_000, {"maxFeePerGas": 3}
        )
        assert options == {"gas": 21_000, "maxFeePerGas": 3, "maxPriorityFeePerGas": 3}

    async def test_max_fee_only_keeps_lower_fetched_priority(self):
        options = await build_transaction_options(
            _mock_web3(), 21_000, {"maxFeePerGas": 50}
        )
        assert options == {"gas": 21_000, "maxFeePerGas": 50, "maxPriorityFeePerGas": 4}

    async def test_priority_only_raises_max_fee_to_cover_it(self):
        options = await build_transaction_options(
            _mock_web3(), 21_000, {"maxPriorityFeePerGas": 40}
        )
        assert options == {"gas": 21_000, "maxFeePerGas": 40, "maxPriorityFeePerGas": 40}

    async def test_gas_limit_override_alias(self):
        options = await build_transaction_options(
            _mock_web3(), 21_000, {"gasPrice": 5, "gasLimit": 500_000}
        )
        assert options == {"gas": 500_000, "gasPrice": 5}


@pytest.mark.asyncio
class TestWaitForTransaction:
    async def test_returns_receipt_verbatim(self):
        web3 = MagicMock()
        receipt = {"status": 1, "blockNumber": 10, "gasUsed": 50_000}
        web3.eth.wait_for_transaction_receipt = AsyncMock(return_value=receipt)

        assert await wait_for_transaction(web3, TX_HASH) is receipt

    async def test_reverted_receipt_raises_with_gas_diagnostics(self):
        web3 = MagicMock()
        web3.eth.wait_for_transaction_receipt = AsyncMock(
            return_value={"status": 0, "blockNumber": 10, "gasUsed": 60_000}
        )

        with pytest.raises(TransactionRevertedError) as exc_info:
            await wait_for_transaction(web3, TX_HASH, transaction={"gas": 60_000})
        assert "likely out of gas" in str(exc_info.value)
        assert exc_info.value.txn_hash == TX_HASH
        assert exc_info.value.receipt["gasUsed"] == 60_000

    async def test_missing_receipt_raises(self):
        web3 = MagicMock()
        web3.eth.wait_for_transaction_receipt = AsyncMock(return_value=None)

        with pytest.raises(TransactionError, match="no receipt returned"):
            await wait_for_transaction(web3, TX_HASH)

    async def test_timeout(self):
        async def _never(*_args, **_kwargs):
            await asyncio.sleep(10)

        web3 = MagicMock()
        web3.eth.wait_for_transaction_receipt = AsyncMock(side_effect=_never)

        with pytest.raises(TransactionTimeoutError, match="not confirmed"):
            await wait_for_transaction(web3, TX_HASH, timeout_s=0.01)

    async def test_waits_for_extra_confirmations(self):
        web3 = MagicMock()
        web3.eth.wait_for_transaction_receipt = AsyncMock(
            return_value={"status": 1, "blockNumber": 10}
        )
        heights = iter([10, 11, 12])
        type(web3.eth).block_number = PropertyMock(
            side_effect=lambda: _value(next(heights))
        )

        receipt = await wait_for_transaction(
            web3, TX_HASH, confirmations=3, poll_interval=0
        )
        assert receipt["blockNumber"] == 10


@pytest.mark.asyncio
class TestSendContractTransaction:
    @pytest.fixture
    def signer(self):
        web3 = _mock_web3(chain_id=17000)
        web3.eth.send_raw_transaction = AsyncMock(return_value=HexBytes(TX_HASH))
        web3.eth.wait_for_transaction_receipt = AsyncMock(
            return_value={"status": 1, "blockNumber": 42, "gasUsed": 21_000}
        )
        signer = MagicMock()
        signer.address = RANDOM_USER_0
        signer.web3 = web3
        signer.sign_transaction = MagicMock(return_value=b"signed")
        return signer

    async def test_happy_path(self, signer):
        contract, fn = _mock_contract("undelegate", estimate=100_000)

        receipt = await send_contract_transaction(
            signer, contract, "undelegate", [RANDOM_USER_0]
        )

        assert receipt["blockNumber"] == 42
        built = fn.build_transaction.await_args.args[0]
        assert built["nonce"] == 3
        assert built["chainId"] == 17000
        assert built["gas"] == 120_000
        assert built["maxFeePerGas"] == 24
        assert built["from"] == RANDOM_USER_0
        signer.web3.eth.send_raw_transaction.assert_awaited_once_with(b"signed")

    async def test_nonce_override(self, signer):
        contract, fn = _mock_contract("createPod")
        await send_contract_transaction(
            signer, contract, "createPod", [], overrides={"nonce": 9}
        )
        assert fn.build_transaction.await_args.args[0]["nonce"] == 9
        signer.web3.eth.get_transaction_count.assert_not_awaited()

    async def test_broadcast_rejection_is_parsed(self, signer):
        signer.web3.eth.send_raw_transaction = AsyncMock(
            side_effect=ValueError("insufficient funds for gas * price + value")
        )
        contract, _ = _mock_contract("stake")

        with pytest.raises(TransactionError, match="Insufficient funds for gas \\+ value"):
            await send_contract_transaction(signer, contract, "stake", [], value=1)


    @pytest.mark.parametrize(
        "broadcast_error",
        [ValueError("already known"), TimeoutError("read timed out")],
    )
    async def test_ambiguous_broadcast_waits_on_local_hash(self, signer, broadcast_error):
        signer.web3.eth.send_raw_transaction = AsyncMock(side_effect=broadcast_error)
        contract, _ = _mock_contract("depositIntoStrategy")

        receipt = await send_contract_transaction(
            signer, contract, "depositIntoStrategy", []
        )

        assert receipt["blockNumber"] == 42
        waited_hash = signer.web3.eth.wait_for_transaction_receipt.await_args.args[0]
        assert waited_hash == "0x" + keccak(b"signed").hex()

    async def test_unconfirmed_ambiguous_broadcast_keeps_hash(self, signer):
        async def _never(*_args, **_kwargs):
            await asyncio.sleep(10)

        signer.web3.eth.send_raw_transaction = AsyncMock(
            side_effect=ValueError("already known")
        )
        signer.web3.eth.wait_for_transaction_receipt = AsyncMock(side_effect=_never)
        contract, _ = _mock_contract("depositIntoStrategy")

        with pytest.raises(TransactionTimeoutError) as exc_info:
            await send_contract_transaction(
                signer, contract, "depositIntoStrategy", [], timeout_s=0.01
            )
        assert exc_info.value.txn_hash == "0x" + keccak(b"signed").hex()

    async def test_nonce_too_low_is_still_a_failure(self, signer):
        signer.web3.eth.send_raw_transaction = AsyncMock(
            side_effect=ValueError("nonce too low")
        )
        contract, _ = _mock_contract("undelegate")

        with pytest.raises(TransactionError, match="nonce has already been used") as exc_info:
            await send_contract_transaction(signer, contract, "undelegate", [])
        assert exc_info.value.txn_hash is None
        signer.web3.eth.wait_for_transaction_receipt.assert_not_awaited()


class _CodedError(Exception):
    def __init__(self, code, message=""):
        super().__init__(message)
        self.code = code


class TestParseTransactionError:
    @pytest.mark.parametrize(
        "exc, expected",
        [
            (_CodedError("INSUFFICIENT_FUNDS"), "Insufficient funds for gas + value"),
            (ValueError("nonce too low"), "Transaction nonce has already been used"),
            (
                _CodedError("REPLACEMENT_UNDERPRICED"),
                "Replacement transaction underpriced",
            ),
            (_CodedError("ACTION_REJECTED"), "Transaction was rejected"),
            (
                _CodedError("UNPREDICTABLE_GAS_LIMIT"),
                "Transaction would revert - check your parameters",
            ),
        ],
    )
    def test_known_codes(self, exc, expected):
        assert parse_transaction_error(exc) == expected

    def test_gas_estimation_reason(self):
        exc = GasEstimationError("delegateTo", "staker already delegated")
        assert parse_transaction_error(exc) == "staker already delegated"

    def test_revert_reason(self):
        exc = ContractLogicError("execution reverted: Pausable: paused")
        assert parse_transaction_error(exc) == "Transaction would revert: Pausable: paused"

    def test_falls_back_to_message(self):
        assert parse_transaction_error(RuntimeError("boom")) == "boom"

    def test_unknown(self):
        assert parse_transaction_error(RuntimeError()) == "Unknown transaction error"


def test_format_gas_cost():
    assert format_gas_cost(21_000, 10**9) == "0.000021"
