from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from eth_abi import encode
from web3 import Web3
from web3._utils.events import event_abi_to_log_topic

from eigenlayer_nodes.core.adapters.models import ConnectionCredential
from eigenlayer_nodes.core.constants.contracts import NETWORK_PROFILES, STRATEGY_INFO
from eigenlayer_nodes.core.constants.eigenlayer_abi import (
    IDELEGATION_MANAGER_ABI,
    ISTRATEGY_MANAGER_ABI,
)
from eigenlayer_nodes.core.errors import ConfigurationError, ValidationError
from eigenlayer_nodes.triggers.event_poller import (
    EVENT_SOURCES,
    EventPoller,
    JsonCursorStore,
    MemoryCursorStore,
)

STAKER = "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed"
OPERATOR = "0x1234567890123456789012345678901234567890"
OTHER = "0x2222222222222222222222222222222222222222"
STETH = STRATEGY_INFO["stETH"]
HOLESKY = NETWORK_PROFILES["holesky"]

CONNECTION = ConnectionCredential(
    provider="custom", custom_rpc_url="http://localhost:8545", network="holesky"
)


def _event_abi(abi, name):
    return next(e for e in abi if e.get("type") == "event" and e.get("name") == name)


def _topic_address(address: str) -> bytes:
    return b"\x00" * 12 + bytes.fromhex(address[2:])


def _log(address, topics, data=b"", block=10, index=0):
    return {
        "address": address,
        "topics": topics,
        "data": data,
        "logIndex": index,
        "transactionIndex": 0,
        "transactionHash": bytes([block]) * 32,
        "blockHash": b"\x00" * 32,
        "blockNumber": block,
    }


def _delegated_log(staker, operator, block=10, index=0):
    topic0 = event_abi_to_log_topic(_event_abi(IDELEGATION_MANAGER_ABI, "StakerDelegated"))
    return _log(
        HOLESKY.address_of("DelegationManager"),
        [topic0, _topic_address(staker), _topic_address(operator)],
        block=block,
        index=index,
    )


class _FakeEth:
    def __init__(self, head: int):
        self.head = head
        self.get_logs = AsyncMock(return_value=[])

    @property
    def block_number(self):
        async def _head():
            return self.head

        return _head()


def _make_web3(head: int) -> MagicMock:
    web3 = MagicMock()
    web3.eth = _FakeEth(head)
    web3.codec = Web3().codec
    return web3


def test_event_sources_cover_every_trigger():
    assert set(EVENT_SOURCES) == {
        "Deposit",
        "OperatorRegistered",
        "StakerDelegated",
        "StakerUndelegated",
        "WithdrawalQueued",
        "WithdrawalCompleted",
        "PodDeployed",
        "OperatorAVSRegistrationStatusUpdated",
        "RewardsClaimed",
    }
    assert EVENT_SOURCES["Deposit"].role == "StrategyManager"
    assert EVENT_SOURCES["PodDeployed"].role == "EigenPodManager"
    assert EVENT_SOURCES["RewardsClaimed"].role == "RewardsCoordinator"


def test_unknown_event_fails_before_io():
    web3 = _make_web3(100)
    with pytest.raises(ConfigurationError, match="Unknown event type"):
        EventPoller(CONNECTION, "Nope", web3=web3)
    web3.eth.get_logs.assert_not_awaited()


def test_bad_filter_address_rejected():
    with pytest.raises(ValidationError, match="filterAddress"):
        EventPoller(CONNECTION, "Deposit", filter_address="0x12", web3=_make_web3(1))


@pytest.mark.asyncio
class TestPoll:
    async def test_first_run_backfills_1000_blocks(self):
        web3 = _make_web3(5000)
        store = MemoryCursorStore()
        poller = EventPoller(CONNECTION, "StakerDelegated", cursor_store=store, web3=web3)

        assert await poller.poll() is None

        query = web3.eth.get_logs.await_args.args[0]
        assert query["fromBlock"] == 4000
        assert query["toBlock"] == 5000
        assert query["address"] == HOLESKY.address_of("DelegationManager")
        assert store.get(poller.key) == 5000

    async def test_backfill_clamped_at_genesis(self):
        web3 = _make_web3(10)
        poller = EventPoller(CONNECTION, "StakerDelegated", web3=web3)
        await poller.poll()
        assert web3.eth.get_logs.await_args.args[0]["fromBlock"] == 0

    async def test_no_new_blocks_is_a_noop(self):
        web3 = _make_web3(200)
        store = MemoryCursorStore()
        store.set("holesky:StakerDelegated", 200)
        poller = EventPoller(CONNECTION, "StakerDelegated", cursor_store=store, web3=web3)

        assert await poller.poll() is None

        web3.eth.get_logs.assert_not_awaited()
        assert store.get(poller.key) == 200

    async def test_resumes_after_cursor(self):
        web3 = _make_web3(210)
        store = MemoryCursorStore()
        store.set("holesky:StakerDelegated", 200)
        poller = EventPoller(CONNECTION, "StakerDelegated", cursor_store=store, web3=web3)

        await poller.poll()

        query = web3.eth.get_logs.await_args.args[0]
        assert (query["fromBlock"], query["toBlock"]) == (201, 210)
        assert store.get(poller.key) == 210

    async def test_decodes_indexed_event(self):
        web3 = _make_web3(20)
        web3.eth.get_logs.return_value = [_delegated_log(STAKER, OPERATOR, block=15, index=3)]
        poller = EventPoller(CONNECTION, "StakerDelegated", web3=web3)

        [record] = await poller.poll()

        assert record == {
            "event": "StakerDelegated",
            "network": "holesky",
            "blockNumber": "15",
            "transactionHash": "0x" + "0f" * 32,
            "logIndex": "3",
            "staker": STAKER,
            "operator": OPERATOR,
        }

    async def test_filter_is_case_insensitive_and_cursor_still_advances(self):
        web3 = _make_web3(20)
        web3.eth.get_logs.return_value = [
            _delegated_log(STAKER, OPERATOR, index=0),
            _delegated_log(OTHER, OPERATOR, index=1),
        ]
        store = MemoryCursorStore()
        poller = EventPoller(
            CONNECTION,
            "StakerDelegated",
            filter_address=STAKER.upper().replace("0X", "0x"),
            cursor_store=store,
            web3=web3,
        )

        records = await poller.poll()
        assert [r["staker"] for r in records] == [STAKER]

        web3.eth.head = 30
        web3.eth.get_logs.return_value = [_delegated_log(OTHER, OTHER)]
        assert await poller.poll() is None
        assert store.get(poller.key) == 30

    async def test_deposit_record_formats_shares(self):
        abi = _event_abi(ISTRATEGY_MANAGER_ABI, "Deposit")
        data = encode(
            ["address", "address", "uint256"], [STAKER, STETH.address, 15 * 10**17]
        )
        web3 = _make_web3(20)
        web3.eth.get_logs.return_value = [
            _log(
                HOLESKY.address_of("StrategyManager"),
                [event_abi_to_log_topic(abi)],
                data,
            )
        ]
        poller = EventPoller(CONNECTION, "Deposit", web3=web3)

        [record] = await poller.poll()

        assert record["staker"] == STAKER
        assert record["strategy"] == STETH.address
        assert record["token"] == STETH.underlying_token
        assert record["shares"] == "1500000000000000000"
        assert record["sharesFormatted"] == "1.5"

    async def test_undecodable_log_is_skipped(self):
        web3 = _make_web3(20)
        bad = _delegated_log(STAKER, OPERATOR)
        bad["topics"] = bad["topics"][:1]
        web3.eth.get_logs.return_value = [bad, _delegated_log(OTHER, OPERATOR, index=1)]
        poller = EventPoller(CONNECTION, "StakerDelegated", web3=web3)

        records = await poller.poll()

        assert [r["staker"] for r in records] == [OTHER]

    async def test_cursor_tracks_highest_head_across_ticks(self):
        web3 = _make_web3(0)
        store = MemoryCursorStore()
        poller = EventPoller(CONNECTION, "StakerDelegated", cursor_store=store, web3=web3)
        heads = [50, 60, 60, 55, 70, 70, 40, 90]

        cursors = []
        for head in heads:
            web3.eth.head = head
            assert await poller.poll() is None
            cursors.append(store.get(poller.key))

        assert cursors == [50, 60, 60, 60, 70, 70, 70, 90]
        ranges = [
            (c.args[0]["fromBlock"], c.args[0]["toBlock"])
            for c in web3.eth.get_logs.await_args_list
        ]
        assert ranges == [(0, 50), (51, 60), (61, 70), (71, 90)]


class TestJsonCursorStore:
    def test_file_created_on_first_save(self, tmp_path):
        path = tmp_path / "state" / "cursors.json"
        store = JsonCursorStore(path)

        assert store.get("holesky:Deposit") is None
        assert not path.exists()

        store.set("holesky:Deposit", 42)

        assert json.loads(path.read_text()) == {"holesky:Deposit": 42}
        assert JsonCursorStore(path).get("holesky:Deposit") == 42

    def test_keys_are_independent_and_never_roll_back(self, tmp_path):
        store = JsonCursorStore(tmp_path / "cursors.json")
        store.set("a", 10)
        store.set("b", 5)
        store.set("a", 7)

        assert store.get("a") == 10
        assert store.get("b") == 5

    def test_invalid_json_raises(self, tmp_path):
        path = tmp_path / "cursors.json"
        path.write_text("{not json")
        with pytest.raises(ConfigurationError, match="not valid JSON"):
            JsonCursorStore(path).get("a")


def test_memory_store_never_rolls_back():
    store = MemoryCursorStore()
    store.set("k", 10)
    store.set("k", 3)
    assert store.get("k") == 10
