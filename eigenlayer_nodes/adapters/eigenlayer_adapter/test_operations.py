from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from eigenlayer_nodes.adapters.eigenlayer_adapter.adapter import EigenLayerAdapter
from eigenlayer_nodes.adapters.eigenlayer_adapter.operations import (
    OPERATIONS,
    RESOURCES,
    OperationContext,
    Param,
    get_operation,
    list_operations,
)
from eigenlayer_nodes.core.adapters.models import ConnectionCredential
from eigenlayer_nodes.core.constants.contracts import NETWORK_PROFILES
from eigenlayer_nodes.core.constants.eigenlayer_abi import ABI_BY_ROLE
from eigenlayer_nodes.core.errors import UnknownOperationError, ValidationError

CTX = OperationContext(network="mainnet", chain_id=1, signer_address=None)


def test_resources_cover_every_contract_group():
    assert set(RESOURCES) == {
        "strategyManager",
        "delegationManager",
        "eigenPodManager",
        "eigenPod",
        "avsDirectory",
        "rewardsCoordinator",
        "allocationManager",
        "strategy",
        "multicall",
    }


def test_unknown_resource_and_operation():
    with pytest.raises(UnknownOperationError, match="Unknown resource: nope"):
        get_operation("nope", "getStakerDeposits")
    with pytest.raises(
        UnknownOperationError, match="Unknown operation: strategyManager.nope"
    ):
        get_operation("strategyManager", "nope")


def test_list_operations_filters_by_resource():
    ops = list_operations("eigenPod")
    assert {d.operation for d in ops} == {
        "getPodOwner",
        "getValidatorStatus",
        "activateRestaking",
    }
    assert len(list_operations()) == len(OPERATIONS)


@pytest.mark.parametrize("network", sorted(NETWORK_PROFILES))
def test_every_contract_role_resolves(network):
    profile = NETWORK_PROFILES[network]
    for descriptor in OPERATIONS.values():
        if descriptor.contract_role is not None:
            assert profile.address_of(descriptor.contract_role).startswith("0x")


def test_every_flow_is_dispatched():
    connection = ConnectionCredential(
        provider="custom", custom_rpc_url="http://localhost:8545", network="mainnet"
    )
    adapter = EigenLayerAdapter(connection, web3=MagicMock())
    flows = {d.flow for d in OPERATIONS.values() if d.flow is not None}
    assert flows == set(adapter._flows)


def test_direct_operations_name_a_method_in_their_abi():
    for descriptor in OPERATIONS.values():
        if descriptor.flow is not None:
            continue
        names = {e.get("name") for e in descriptor.abi if e.get("type") == "function"}
        assert descriptor.method in names, descriptor.key


def test_abi_roles_registered():
    for descriptor in OPERATIONS.values():
        role = descriptor.abi_role or descriptor.contract_role
        if role is not None:
            assert role in ABI_BY_ROLE


class TestParamParsing:
    def test_required_blank(self):
        with pytest.raises(ValidationError, match="amount is required"):
            Param("amount").parse({"amount": "  "})

    def test_optional_default(self):
        assert Param("x", "uint", required=False, default=7).parse({}) == 7

    def test_choices(self):
        param = Param("unit", choices=("wei", "token"))
        assert param.parse({"unit": "token"}) == "token"
        with pytest.raises(ValidationError, match="expected one of wei, token"):
            param.parse({"unit": "gwei"})

    def test_addresses_from_comma_string(self):
        param = Param("strategies", "addresses")
        parsed = param.parse(
            {
                "strategies": "0x1111111111111111111111111111111111111111, "
                "0x5aaeb6053f3e94c9b9a09f33669435e7ef1beaed"
            }
        )
        assert parsed == [
            "0x1111111111111111111111111111111111111111",
            "0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed",
        ]

    def test_addresses_reports_index(self):
        with pytest.raises(ValidationError, match=r"strategies\[1\]"):
            Param("strategies", "addresses").parse(
                {"strategies": ["0x1111111111111111111111111111111111111111", "0x12"]}
            )

    def test_uint_rejects_negative(self):
        with pytest.raises(ValidationError, match="non-negative"):
            Param("shares", "uint").parse({"shares": "-1"})

    def test_uints_from_list(self):
        assert Param("shares", "uints").parse({"shares": ["1", 2, "0x10"]}) == [1, 2, 16]

    def test_bool_strings(self):
        param = Param("flag", "bool")
        assert param.parse({"flag": "false"}) is False
        assert param.parse({"flag": "Yes"}) is True
        with pytest.raises(ValidationError):
            param.parse({"flag": "maybe"})

    def test_bytes32_left_pads(self):
        parsed = Param("root", "bytes32").parse({"root": "0x01"})
        assert parsed == b"\x00" * 31 + b"\x01"

    def test_bytes32_too_long(self):
        with pytest.raises(ValidationError, match="too long"):
            Param("root", "bytes32").parse({"root": "0x" + "00" * 33})

    def test_bytes_rejects_non_hex(self):
        with pytest.raises(ValidationError, match="hex bytes"):
            Param("sig", "bytes").parse({"sig": "0xzz"})

    def test_json_string(self):
        assert Param("calls", "json").parse({"calls": '[{"a": 1}]'}) == [{"a": 1}]
        with pytest.raises(ValidationError, match="not valid JSON"):
            Param("calls", "json").parse({"calls": "[{"})


def test_queue_withdrawals_args_require_matching_lengths():
    descriptor = get_operation("delegationManager", "queueWithdrawals")
    params = descriptor.parse_params(
        {
            "strategies": ["0x1111111111111111111111111111111111111111"],
            "shares": ["1", "2"],
        }
    )
    with pytest.raises(ValidationError, match="same length"):
        descriptor.args_for(params, CTX)


def test_operator_avs_status_argument_order():
    descriptor = get_operation("avsDirectory", "getOperatorAvsStatus")
    params = descriptor.parse_params(
        {
            "operatorAddress": "0x1111111111111111111111111111111111111111",
            "avsAddress": "0x2222222222222222222222222222222222222222",
        }
    )
    assert descriptor.args_for(params, CTX) == [
        "0x2222222222222222222222222222222222222222",
        "0x1111111111111111111111111111111111111111",
    ]


def test_withdrawable_shares_record():
    descriptor = get_operation("delegationManager", "getWithdrawableShares")
    strategy = "0x1111111111111111111111111111111111111111"
    params = descriptor.parse_params(
        {"stakerAddress": strategy, "strategies": [strategy]}
    )
    record = descriptor.record_for(([10**18], [2 * 10**18]), params, CTX)
    assert record["shares"] == [
        {
            "strategy": strategy,
            "withdrawableShares": 10**18,
            "withdrawableFormatted": "1.0",
            "depositShares": 2 * 10**18,
            "depositFormatted": "2.0",
        }
    ]
