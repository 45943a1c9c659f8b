from __future__ import annotations

import asyncio
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any

from hexbytes import HexBytes

from eigenlayer_nodes.core.adapters.BaseAdapter import BaseAdapter
from eigenlayer_nodes.core.constants.base import (
    MULTICALL_CHUNK_SIZE,
    MULTICALL_MAX_CONCURRENT_CHUNKS,
)
from eigenlayer_nodes.core.constants.contracts import MULTICALL3_ADDRESS
from eigenlayer_nodes.core.constants.eigenlayer_abi import (
    ERC20_ABI,
    ISTRATEGY_MANAGER_ABI,
)
from eigenlayer_nodes.core.errors import DecodeError
from eigenlayer_nodes.core.utils.abi import decode_function_result, encode_function_call

MULTICALL3_ABI = [
    {
        "inputs": [
            {
                "components": [
                    {"internalType": "address", "name": "target", "type": "address"},
                    {"internalType": "bytes", "name": "callData", "type": "bytes"},
                ],
                "internalType": "struct Multicall3.Call[]",
                "name": "calls",
                "type": "tuple[]",
            }
        ],
        "name": "aggregate",
        "outputs": [
            {"internalType": "uint256", "name": "blockNumber", "type": "uint256"},
            {"internalType": "bytes[]", "name": "returnData", "type": "bytes[]"},
        ],
        "stateMutability": "payable",
        "type": "function",
    },
    {
        "inputs": [
            {
                "components": [
                    {"internalType": "address", "name": "target", "type": "address"},
                    {"internalType": "bool", "name": "allowFailure", "type": "bool"},
                    {"internalType": "bytes", "name": "callData", "type": "bytes"},
                ],
                "internalType": "struct Multicall3.Call3[]",
                "name": "calls",
                "type": "tuple[]",
            }
        ],
        "name": "aggregate3",
        "outputs": [
            {
                "components": [
                    {"internalType": "bool", "name": "success", "type": "bool"},
                    {"internalType": "bytes", "name": "returnData", "type": "bytes"},
                ],
                "internalType": "struct Multicall3.Result[]",
                "name": "returnData",
                "type": "tuple[]",
            }
        ],
        "stateMutability": "payable",
        "type": "function",
    },
    {
        "inputs": [{"internalType": "address", "name": "addr", "type": "address"}],
        "name": "getEthBalance",
        "outputs": [
            {"internalType": "uint256", "name": "balance", "type": "uint256"},
        ],
        "stateMutability": "view",
        "type": "function",
    },
]


@dataclass(frozen=True)
class MulticallCall:
    target: str
    call_data: bytes | str

    def as_tuple(self) -> tuple[str, bytes | str]:
        return self.target, self.call_data


@dataclass
class MulticallResult:
    block_number: int
    return_data: Sequence[bytes]


@dataclass(frozen=True)
class CallWithAbi:
    target: str
    abi: list[dict[str, Any]]
    function_name: str
    args: tuple[Any, ...] = ()
    allow_failure: bool = True


@dataclass
class CallResult:
    success: bool
    return_data: bytes
    decoded: Any = None
    error: str | None = None


def create_balance_of_calls(tokens: Iterable[str], account: str) -> list[CallWithAbi]:
    return [
        CallWithAbi(target=token, abi=ERC20_ABI, function_name="balanceOf", args=(account,))
        for token in tokens
    ]


def create_shares_calls(
    strategy_manager: str, staker: str, strategies: Iterable[str]
) -> list[CallWithAbi]:
    return [
        CallWithAbi(
            target=strategy_manager,
            abi=ISTRATEGY_MANAGER_ABI,
            function_name="stakerDepositShares",
            args=(staker, strategy),
        )
        for strategy in strategies
    ]


class MulticallAdapter(BaseAdapter):
    """Batch contract reads through Multicall3.

    ``multicall`` / ``batched_multicall`` use ``aggregate3`` so one reverting
    sub-call never poisons the rest of the batch; ``aggregate`` is the strict
    variant that reverts as a whole.
    """

    adapter_type = "MULTICALL"

    def __init__(
        self,
        config: dict[str, Any] | None = None,
        *,
        web3: Any | None = None,
        address: str | None = None,
        abi: list[dict[str, Any]] | None = None,
    ) -> None:
        if web3 is None:
            raise ValueError("MulticallAdapter requires web3 instance")
        super().__init__("multicall_adapter", config, web3=web3)

        checksum_address = self.web3.to_checksum_address(address or MULTICALL3_ADDRESS)
        self.contract = self.web3.eth.contract(
            address=checksum_address, abi=abi or MULTICALL3_ABI
        )

    async def aggregate(
        self,
        calls: Iterable[MulticallCall | tuple[str, bytes | str]],
        *,
        value: int = 0,
        block_identifier: str | int | None = None,
    ) -> MulticallResult:
        calls_list = list(calls)
        if not calls_list:
            return MulticallResult(block_number=0, return_data=[])

        encoded_calls = [self._coerce_call(call) for call in calls_list]

        call_fn = self.contract.functions.aggregate(encoded_calls).call
        if block_identifier is None:
            block_number, return_data = await call_fn({"value": int(value)})
        else:
            block_number, return_data = await call_fn(
                {"value": int(value)}, block_identifier=block_identifier
            )
        payload = tuple(self._ensure_bytes(r) for r in return_data)
        return MulticallResult(block_number=int(block_number), return_data=payload)

    async def aggregate3(
        self,
        calls: Iterable[MulticallCall | tuple[str, bytes | str]],
        *,
        allow_failure: bool = True,
        block_identifier: str | int | None = None,
    ) -> list[tuple[bool, bytes]]:
        """Pre-encoded calls in, ``(success, returnData)`` pairs out, undecoded."""
        encoded = [
            (target, allow_failure, call_data)
            for target, call_data in (self._coerce_call(call) for call in calls)
        ]
        if not encoded:
            return []

        call_fn = self.contract.functions.aggregate3(encoded).call
        if block_identifier is None:
            raw_results = await call_fn()
        else:
            raw_results = await call_fn(block_identifier=block_identifier)
        return [
            (bool(success), self._ensure_bytes(data)) for success, data in raw_results
        ]

    async def multicall(
        self,
        calls: Sequence[CallWithAbi],
        *,
        block_identifier: str | int | None = None,
    ) -> list[CallResult]:
        """One ``aggregate3`` round trip; results line up with ``calls``.

        Reverted sub-calls come back as ``success=False, error="Call reverted"``.
        Successful sub-calls whose return data does not decode keep
        ``success=True`` and carry ``error="Failed to decode: ..."``.
        """
        if not calls:
            return []

        encoded = [
            (
                self.web3.to_checksum_address(call.target),
                bool(call.allow_failure),
                encode_function_call(call.abi, call.function_name, call.args),
            )
            for call in calls
        ]
        call_fn = self.contract.functions.aggregate3(encoded).call
        if block_identifier is None:
            raw_results = await call_fn()
        else:
            raw_results = await call_fn(block_identifier=block_identifier)

        return [
            self._decode_result(call, success, data)
            for call, (success, data) in zip(calls, raw_results, strict=True)
        ]

    async def batched_multicall(
        self,
        calls: Sequence[CallWithAbi],
        *,
        chunk_size: int = MULTICALL_CHUNK_SIZE,
        max_concurrency: int = MULTICALL_MAX_CONCURRENT_CHUNKS,
        block_identifier: str | int | None = None,
    ) -> list[CallResult]:
        if chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")

        chunks = [calls[i : i + chunk_size] for i in range(0, len(calls), chunk_size)]
        semaphore = asyncio.Semaphore(max_concurrency)

        async def _run(chunk: Sequence[CallWithAbi]) -> list[CallResult]:
            async with semaphore:
                return await self.multicall(chunk, block_identifier=block_identifier)

        chunk_results = await asyncio.gather(*(_run(chunk) for chunk in chunks))
        if len(chunks) > 1:
            self.logger.debug(f"Ran {len(calls)} calls in {len(chunks)} multicall chunks")
        return [result for chunk in chunk_results for result in chunk]

    async def single_call(
        self,
        target: str,
        abi: list[dict[str, Any]],
        function_name: str,
        args: Sequence[Any] = (),
        *,
        block_identifier: str | int | None = None,
    ) -> Any:
        contract = self.web3.eth.contract(
            address=self.web3.to_checksum_address(target), abi=abi
        )
        fn = getattr(contract.functions, function_name)(*args)
        if block_identifier is None:
            return await fn.call()
        return await fn.call(block_identifier=block_identifier)

    def build_call(self, target: str, call_data: bytes | str) -> MulticallCall:
        checksum = self.web3.to_checksum_address(target)
        normalized = self._normalize_call_data(call_data)
        return MulticallCall(target=checksum, call_data=normalized)

    def encode_eth_balance(self, account: str) -> MulticallCall:
        calldata = self.contract.encode_abi("getEthBalance", args=[account])
        return self.build_call(self.contract.address, calldata)

    def encode_erc20_balance(self, token: str, account: str) -> MulticallCall:
        calldata = encode_function_call(ERC20_ABI, "balanceOf", [account])
        return self.build_call(token, calldata)

    @staticmethod
    def decode_uint256(data: bytes | str) -> int:
        raw = MulticallAdapter._normalize_call_data(data)
        if len(raw) < 32:
            raw = raw.rjust(32, b"\x00")
        return int.from_bytes(raw[-32:], byteorder="big")

    def _decode_result(self, call: CallWithAbi, success: bool, data: Any) -> CallResult:
        raw = self._ensure_bytes(data)
        if not success:
            return CallResult(success=False, return_data=raw, error="Call reverted")
        if not raw:
            return CallResult(success=True, return_data=raw)
        try:
            decoded = decode_function_result(call.abi, call.function_name, raw)
        except DecodeError as exc:
            return CallResult(
                success=True, return_data=raw, error=f"Failed to decode: {exc}"
            )
        return CallResult(
            success=True,
            return_data=raw,
            decoded=decoded[0] if len(decoded) == 1 else decoded,
        )

    def _coerce_call(
        self, call: MulticallCall | tuple[str, bytes | str]
    ) -> tuple[str, bytes]:
        target, call_data = call.as_tuple() if isinstance(call, MulticallCall) else call
        return self.web3.to_checksum_address(target), self._normalize_call_data(
            call_data
        )

    @staticmethod
    def _normalize_call_data(data: bytes | str) -> bytes:
        if isinstance(data, (bytes, bytearray, HexBytes)):
            return bytes(data)
        if isinstance(data, str):
            if data.startswith("0x"):
                return bytes.fromhex(data[2:])
            return data.encode()
        raise TypeError("Unsupported calldata type")

    @staticmethod
    def _ensure_bytes(data: bytes | str | HexBytes) -> bytes:
        if isinstance(data, (bytes, bytearray, HexBytes)):
            return bytes(data)
        if isinstance(data, str):
            if data.startswith("0x"):
                return bytes.fromhex(data[2:])
            return data.encode()
        raise TypeError("Unexpected return data type from multicall")
