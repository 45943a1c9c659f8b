import asyncio
from typing import Any

from eth_utils import keccak
from loguru import logger
from web3 import AsyncWeb3
from web3.exceptions import ContractLogicError, TimeExhausted

from eigenlayer_nodes.core.constants.base import (
    DEFAULT_RECEIPT_POLL_INTERVAL,
    DEFAULT_TRANSACTION_TIMEOUT,
    GAS_BUFFER_PERCENT,
    MAX_BASE_FEE_GROWTH_MULTIPLIER,
    SUGGESTED_PRIORITY_FEE_MULTIPLIER,
)
from eigenlayer_nodes.core.errors import (
    GasEstimationError,
    TransactionError,
    TransactionRevertedError,
    TransactionTimeoutError,
)
from eigenlayer_nodes.core.utils.units import format_ether
from eigenlayer_nodes.core.utils.wallets import Signer, get_signer_nonce

_REVERT_PREFIX = "execution reverted"


def _hex_hash(tx_hash: Any) -> str:
    value = tx_hash.hex() if isinstance(tx_hash, (bytes, bytearray)) else str(tx_hash)
    return value if value.startswith("0x") else f"0x{value}"


def _revert_reason(exc: BaseException) -> str | None:
    if isinstance(exc, GasEstimationError):
        return exc.reason
    is_logic_error = isinstance(exc, ContractLogicError)
    raw = getattr(exc, "message", None) if is_logic_error else None
    text = str(raw or exc).strip()
    if text.lower().startswith(_REVERT_PREFIX):
        return text[len(_REVERT_PREFIX) :].lstrip(": ").strip() or None
    return (text or None) if is_logic_error else None


def _may_have_been_submitted(exc: BaseException) -> bool:
    """The node may hold this exact signed payload even though the send failed."""
    if isinstance(exc, TimeoutError):
        return True
    lowered = str(exc).lower()
    return "already known" in lowered or "timed out" in lowered


def _raise_revert_error(
    txn_hash: str,
    receipt: dict[str, Any],
    transaction: dict[str, Any] | None,
) -> None:
    gas_used = int(receipt.get("gasUsed") or 0)
    gas_limit = int((transaction or {}).get("gas") or 0)

    oogs = bool(gas_used and gas_limit and gas_used >= gas_limit)
    suffix = (
        f" gasUsed={gas_used} gasLimit={gas_limit}"
        + (" (likely out of gas)" if oogs else "")
        if gas_used or gas_limit
        else ""
    )
    raise TransactionRevertedError(
        txn_hash,
        dict(receipt),
        message=f"Transaction reverted (status=0): {txn_hash}{suffix}",
    )


async def estimate_gas(
    contract: Any,
    method: str,
    args: list[Any] | tuple[Any, ...],
    *,
    from_address: str | None = None,
    buffer_percent: int = GAS_BUFFER_PERCENT,
    value: int | None = None,
) -> int:
    """Estimate gas for ``contract.method(*args)`` plus ``buffer_percent``.

    Integer arithmetic: ``est + est * buffer_percent // 100``.
    """
    tx_params: dict[str, Any] = {}
    if from_address:
        tx_params["from"] = AsyncWeb3.to_checksum_address(from_address)
    if value:
        tx_params["value"] = int(value)

    try:
        estimate = await getattr(contract.functions, method)(*args).estimate_gas(
            tx_params
        )
    except Exception as exc:
        raise GasEstimationError(method, _revert_reason(exc) or str(exc)) from exc

    estimate = int(estimate)
    return estimate + estimate * int(buffer_percent) // 100


async def _get_priority_fee(web3: AsyncWeb3) -> int:
    lookback_blocks = 10
    percentile = 80
    fee_history = await web3.eth.fee_history(lookback_blocks, "latest", [percentile])
    rewards = [r[0] for r in (fee_history.get("reward") or []) if r]
    if rewards:
        return sum(rewards) // len(rewards)
    return int(await web3.eth.max_priority_fee)


async def get_fee_data(web3: AsyncWeb3) -> dict[str, int | None]:
    latest_block, gas_price = await asyncio.gather(
        web3.eth.get_block("latest"), web3.eth.gas_price
    )
    base_fee = latest_block.get("baseFeePerGas")
    if base_fee is None:
        return {
            "gasPrice": int(gas_price),
            "maxFeePerGas": None,
            "maxPriorityFeePerGas": None,
        }

    priority_fee = int(await _get_priority_fee(web3) * SUGGESTED_PRIORITY_FEE_MULTIPLIER)
    return {
        "gasPrice": int(gas_price),
        "maxFeePerGas": int(base_fee * MAX_BASE_FEE_GROWTH_MULTIPLIER + priority_fee),
        "maxPriorityFeePerGas": priority_fee,
    }


async def get_gas_prices(web3: AsyncWeb3) -> dict[str, int]:
    fee_data = await get_fee_data(web3)
    return {key: int(value or 0) for key, value in fee_data.items()}


async def supports_eip1559(web3: AsyncWeb3) -> bool:
    return (await get_fee_data(web3))["maxFeePerGas"] is not None


async def build_transaction_options(
    web3: AsyncWeb3,
    gas_limit: int,
    overrides: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Gas limit plus fee fields; anything in ``overrides`` wins.

    Fee data is only fetched when the caller supplied neither a complete
    EIP-1559 pair nor a legacy ``gasPrice``. When only one EIP-1559 field is
    given, the other is filled so that priority never exceeds the max fee.
    """
    overrides = dict(overrides or {})
    if "gasLimit" in overrides:
        overrides["gas"] = overrides.pop("gasLimit")

    options: dict[str, Any] = {"gas": int(gas_limit)}
    max_fee = overrides.get("maxFeePerGas")
    priority_fee = overrides.get("maxPriorityFeePerGas")
    if overrides.get("gasPrice") or (max_fee is not None and priority_fee is not None):
        options.update(overrides)
        return options

    fee_data = await get_fee_data(web3)
    if max_fee is None and priority_fee is None:
        if fee_data["maxFeePerGas"] is not None:
            options["maxFeePerGas"] = fee_data["maxFeePerGas"]
            options["maxPriorityFeePerGas"] = fee_data["maxPriorityFeePerGas"]
        else:
            options["gasPrice"] = fee_data["gasPrice"]
    elif priority_fee is None:
        fetched_priority = int(fee_data["maxPriorityFeePerGas"] or 0)
        options["maxPriorityFeePerGas"] = min(fetched_priority, int(max_fee))
    else:
        fetched_max = int(fee_data["maxFeePerGas"] or fee_data["gasPrice"] or 0)
        options["maxFeePerGas"] = max(fetched_max, int(priority_fee))

    options.update(overrides)
    return options


async def wait_for_transaction(
    web3: AsyncWeb3,
    txn_hash: str,
    *,
    confirmations: int = 1,
    timeout_s: float = DEFAULT_TRANSACTION_TIMEOUT,
    poll_interval: float = DEFAULT_RECEIPT_POLL_INTERVAL,
    transaction: dict[str, Any] | None = None,
) -> dict[str, Any]:
    txn_hash = _hex_hash(txn_hash)

    async def _wait_for_receipt() -> Any:
        receipt = await web3.eth.wait_for_transaction_receipt(
            txn_hash, timeout=timeout_s, poll_latency=poll_interval
        )
        if receipt and confirmations > 1:
            target_block = receipt["blockNumber"] + confirmations - 1
            while await web3.eth.block_number < target_block:
                await asyncio.sleep(poll_interval)
        return receipt

    receipt_task = asyncio.create_task(_wait_for_receipt())
    timer_task = asyncio.create_task(asyncio.sleep(timeout_s))
    done, pending = await asyncio.wait(
        {receipt_task, timer_task}, return_when=asyncio.FIRST_COMPLETED
    )
    for task in pending:
        task.cancel()

    if receipt_task not in done:
        raise TransactionTimeoutError(txn_hash, timeout_s)
    try:
        receipt = receipt_task.result()
    except TimeExhausted as exc:
        raise TransactionTimeoutError(txn_hash, timeout_s) from exc

    if not receipt:
        raise TransactionError(
            txn_hash, None, f"Transaction {txn_hash}: no receipt returned"
        )
    if receipt.get("status") == 0:
        _raise_revert_error(txn_hash, receipt, transaction)
    return receipt


async def send_contract_transaction(
    signer: Signer,
    contract: Any,
    method: str,
    args: list[Any] | tuple[Any, ...],
    *,
    value: int = 0,
    overrides: dict[str, Any] | None = None,
    gas_buffer_percent: int = GAS_BUFFER_PERCENT,
    confirmations: int = 1,
    timeout_s: float = DEFAULT_TRANSACTION_TIMEOUT,
) -> dict[str, Any]:
    """Estimate, sign, broadcast and confirm one contract call.

    Returns the mined receipt. Reverts, timeouts and broadcast rejections are
    raised as ``TransactionError`` subclasses. A broadcast that times out or
    is answered with "already known" is not a rejection: the hash is derived
    from the signed payload and confirmation proceeds as usual, so a
    ``TransactionTimeoutError`` still carries it.
    """
    web3 = signer.web3
    gas_limit = await estimate_gas(
        contract,
        method,
        args,
        from_address=signer.address,
        buffer_percent=gas_buffer_percent,
        value=value or None,
    )
    options = await build_transaction_options(web3, gas_limit, overrides)
    nonce = options.pop("nonce", None)
    if nonce is None:
        nonce = await get_signer_nonce(signer)
    chain_id = await web3.eth.chain_id

    tx_params = {
        "from": signer.address,
        "nonce": int(nonce),
        "chainId": int(chain_id),
        "value": int(value),
        **options,
    }
    transaction = await getattr(contract.functions, method)(*args).build_transaction(
        tx_params
    )

    raw_transaction = signer.sign_transaction(transaction)
    logger.info(f"Broadcasting {method} to {contract.address} from {signer.address}...")
    try:
        txn_hash = _hex_hash(await web3.eth.send_raw_transaction(raw_transaction))
    except Exception as exc:
        if not _may_have_been_submitted(exc):
            raise TransactionError(None, None, parse_transaction_error(exc)) from exc
        txn_hash = _hex_hash(keccak(raw_transaction))
        logger.warning(
            f"Broadcast of {method} ended with '{exc}'; "
            f"waiting on locally computed hash {txn_hash}"
        )
    else:
        logger.info(f"Transaction broadcasted: {txn_hash}")

    receipt = await wait_for_transaction(
        web3,
        txn_hash,
        confirmations=confirmations,
        timeout_s=timeout_s,
        transaction=transaction,
    )
    logger.info(
        f"{method} confirmed in block {receipt.get('blockNumber')} "
        f"(gasUsed={receipt.get('gasUsed')})"
    )
    return receipt


def parse_transaction_error(exc: BaseException) -> str:
    """Map node / library errors to a short user-facing message."""
    code = str(getattr(exc, "code", "") or "").upper()
    text = str(exc)
    lowered = text.lower()

    if code == "INSUFFICIENT_FUNDS" or "insufficient funds" in lowered:
        return "Insufficient funds for gas + value"
    if code == "NONCE_EXPIRED" or "nonce too low" in lowered or "already known" in lowered:
        return "Transaction nonce has already been used"
    if code == "REPLACEMENT_UNDERPRICED" or "replacement transaction underpriced" in lowered:
        return "Replacement transaction underpriced"
    if code == "UNPREDICTABLE_GAS_LIMIT" or isinstance(exc, GasEstimationError):
        return _revert_reason(exc) or "Transaction would revert - check your parameters"
    if code == "ACTION_REJECTED" or "user rejected" in lowered:
        return "Transaction was rejected"

    reason = _revert_reason(exc)
    if reason:
        return f"Transaction would revert: {reason}"
    return text or "Unknown transaction error"


def format_gas_cost(gas_used: int, gas_price: int) -> str:
    return format_ether(int(gas_used) * int(gas_price))
