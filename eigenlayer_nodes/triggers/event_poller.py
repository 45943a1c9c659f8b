"""Cursor-driven polling of EigenLayer contract events.

Each tick reads the head block, fetches logs for one event type over
``(cursor, head]`` and advances the cursor to ``head`` whether or not anything
matched. The first tick for a key looks back ``EVENT_BACKFILL_BLOCKS`` blocks
instead of scanning from genesis.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

from eth_abi.exceptions import DecodingError
from hexbytes import HexBytes
from loguru import logger
from web3 import AsyncWeb3
from web3._utils.events import event_abi_to_log_topic, get_event_data
from web3.exceptions import LogTopicError, MismatchedABI

from eigenlayer_nodes.adapters.eigenlayer_adapter.operations import withdrawal_record
from eigenlayer_nodes.core.adapters.models import ConnectionCredential
from eigenlayer_nodes.core.constants.base import EVENT_BACKFILL_BLOCKS
from eigenlayer_nodes.core.constants.contracts import (
    NETWORK_PROFILES,
    ROLE_AVS_DIRECTORY,
    ROLE_DELEGATION_MANAGER,
    ROLE_EIGEN_POD_MANAGER,
    ROLE_REWARDS_COORDINATOR,
    ROLE_STRATEGY_MANAGER,
    get_strategy_info,
)
from eigenlayer_nodes.core.constants.eigenlayer_abi import ABI_BY_ROLE
from eigenlayer_nodes.core.errors import ConfigurationError
from eigenlayer_nodes.core.utils.addresses import validate_address
from eigenlayer_nodes.core.utils.networks import normalize_network
from eigenlayer_nodes.core.utils.units import format_ether, serialize_result
from eigenlayer_nodes.core.utils.web3 import create_web3

EventFormatter = Callable[[Mapping[str, Any]], dict[str, Any]]


def _fmt_deposit(args: Mapping[str, Any]) -> dict[str, Any]:
    info = get_strategy_info(args["strategy"])
    return {
        "staker": args["staker"],
        "token": info.underlying_token if info is not None else None,
        "strategy": args["strategy"],
        "shares": args["shares"],
        "sharesFormatted": format_ether(args["shares"]),
    }


def _fmt_withdrawal_queued(args: Mapping[str, Any]) -> dict[str, Any]:
    withdrawal = args["withdrawal"]
    if isinstance(withdrawal, Mapping):
        withdrawal = dict(withdrawal)
    else:
        withdrawal = withdrawal_record(withdrawal)
    return {
        "withdrawalRoot": args["withdrawalRoot"],
        "withdrawal": withdrawal,
        "sharesToWithdraw": list(args["sharesToWithdraw"]),
    }


def _pick(*names: str) -> EventFormatter:
    def fmt(args: Mapping[str, Any]) -> dict[str, Any]:
        return {name: args[name] for name in names}

    return fmt


@dataclass(frozen=True)
class EventSource:
    role: str
    event_name: str
    format_args: EventFormatter


EVENT_SOURCES: Mapping[str, EventSource] = {
    "Deposit": EventSource(ROLE_STRATEGY_MANAGER, "Deposit", _fmt_deposit),
    "OperatorRegistered": EventSource(
        ROLE_DELEGATION_MANAGER,
        "OperatorRegistered",
        _pick("operator", "delegationApprover"),
    ),
    "StakerDelegated": EventSource(
        ROLE_DELEGATION_MANAGER, "StakerDelegated", _pick("staker", "operator")
    ),
    "StakerUndelegated": EventSource(
        ROLE_DELEGATION_MANAGER, "StakerUndelegated", _pick("staker", "operator")
    ),
    "WithdrawalQueued": EventSource(
        ROLE_DELEGATION_MANAGER, "SlashingWithdrawalQueued", _fmt_withdrawal_queued
    ),
    "WithdrawalCompleted": EventSource(
        ROLE_DELEGATION_MANAGER, "SlashingWithdrawalCompleted", _pick("withdrawalRoot")
    ),
    "PodDeployed": EventSource(
        ROLE_EIGEN_POD_MANAGER, "PodDeployed", _pick("eigenPod", "podOwner")
    ),
    "OperatorAVSRegistrationStatusUpdated": EventSource(
        ROLE_AVS_DIRECTORY,
        "OperatorAVSRegistrationStatusUpdated",
        _pick("operator", "avs", "status"),
    ),
    "RewardsClaimed": EventSource(
        ROLE_REWARDS_COORDINATOR,
        "RewardsClaimed",
        _pick("root", "earner", "claimer", "recipient", "token", "claimedAmount"),
    ),
}


class CursorStore(Protocol):
    def get(self, key: str) -> int | None: ...

    def set(self, key: str, block: int) -> None: ...


class MemoryCursorStore:
    def __init__(self) -> None:
        self._cursors: dict[str, int] = {}

    def get(self, key: str) -> int | None:
        return self._cursors.get(key)

    def set(self, key: str, block: int) -> None:
        current = self._cursors.get(key)
        if current is None or block > current:
            self._cursors[key] = int(block)


class JsonCursorStore:
    """Cursors persisted as ``{key: block}`` in one JSON file.

    The file is created on the first ``set``. Older blocks never overwrite
    newer ones.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path).expanduser()

    def _read(self) -> dict[str, int]:
        if not self.path.exists():
            return {}
        try:
            raw = json.loads(self.path.read_text())
        except json.JSONDecodeError as exc:
            raise ConfigurationError(
                f"Cursor file {self.path} is not valid JSON"
            ) from exc
        if not isinstance(raw, dict):
            return {}
        return {str(k): int(v) for k, v in raw.items()}

    def get(self, key: str) -> int | None:
        return self._read().get(key)

    def set(self, key: str, block: int) -> None:
        cursors = self._read()
        current = cursors.get(key)
        if current is not None and block <= current:
            return
        cursors[key] = int(block)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(cursors, indent=2, sort_keys=True) + "\n")


class EventPoller:
    def __init__(
        self,
        connection: ConnectionCredential,
        event_type: str,
        *,
        filter_address: str | None = None,
        cursor_store: CursorStore | None = None,
        web3: AsyncWeb3 | None = None,
    ) -> None:
        source = EVENT_SOURCES.get(event_type)
        if source is None:
            raise ConfigurationError(f"Unknown event type: {event_type}")
        self.event_type = event_type
        self.source = source
        self.network = normalize_network(connection.network)
        self.filter_address = (
            validate_address(filter_address, "filterAddress").lower()
            if filter_address and filter_address.strip()
            else None
        )
        self.cursor_store: CursorStore = cursor_store or MemoryCursorStore()

        self.address = NETWORK_PROFILES[self.network].address_of(source.role)
        self.event_abi = next(
            entry
            for entry in ABI_BY_ROLE[source.role]
            if entry.get("type") == "event" and entry.get("name") == source.event_name
        )
        self.topic0 = HexBytes(event_abi_to_log_topic(self.event_abi))

        self._owns_web3 = web3 is None
        self.web3 = web3 if web3 is not None else create_web3(connection)
        self.logger = logger.bind(trigger=event_type)

    @property
    def key(self) -> str:
        return f"{self.network}:{self.event_type}"

    async def close(self) -> None:
        if self._owns_web3:
            await self.web3.provider.disconnect()

    async def poll(self) -> list[dict[str, Any]] | None:
        """One tick. ``None`` when there is nothing new to emit."""
        current = int(await self.web3.eth.block_number)
        cursor = self.cursor_store.get(self.key)
        if cursor is not None and current <= cursor:
            self.logger.debug(f"No new blocks (head={current}, cursor={cursor})")
            return None

        if cursor is None:
            from_block = max(0, current - EVENT_BACKFILL_BLOCKS)
        else:
            from_block = cursor + 1

        logs = await self.web3.eth.get_logs(
            {
                "fromBlock": from_block,
                "toBlock": current,
                "address": self.address,
                "topics": [self.topic0],
            }
        )
        self.cursor_store.set(self.key, current)

        records = []
        for log in logs:
            event = self._decode(log)
            if event is None or not self._matches(event["args"]):
                continue
            records.append(self._record(event))

        self.logger.info(
            f"{self.event_type}: {len(logs)} logs in [{from_block}, {current}], "
            f"{len(records)} emitted"
        )
        if not records:
            return None
        return [serialize_result(r) for r in records]

    def _decode(self, log: Any) -> Any:
        try:
            return get_event_data(self.web3.codec, self.event_abi, log)
        except (MismatchedABI, LogTopicError, DecodingError) as exc:
            self.logger.warning(
                f"Skipping undecodable {self.event_type} log in block "
                f"{log.get('blockNumber')}: {exc}"
            )
            return None

    def _matches(self, args: Mapping[str, Any]) -> bool:
        if self.filter_address is None:
            return True
        return any(
            isinstance(value, str) and value.lower() == self.filter_address
            for value in args.values()
        )

    def _record(self, event: Any) -> dict[str, Any]:
        return {
            "event": self.event_type,
            "network": self.network,
            "blockNumber": event["blockNumber"],
            "transactionHash": HexBytes(event["transactionHash"]),
            "logIndex": event["logIndex"],
            **self.source.format_args(event["args"]),
        }
