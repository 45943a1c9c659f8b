"""Declarative table of every EigenLayer contract operation.

Each ``OperationDescriptor`` names the contract it talks to (a registry role,
or a parameter holding the address for per-pod / per-strategy targets), the
method, how validated params become call arguments and how the raw result
becomes an output record. Operations that need more than one contract call
carry a ``flow`` name that ``EigenLayerAdapter`` dispatches on.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, Literal

from hexbytes import HexBytes

from eigenlayer_nodes.core.constants.base import (
    MANTISSA,
    MAX_UINT256,
    VALIDATOR_DEPOSIT_WEI,
    ZERO_ADDRESS,
)
from eigenlayer_nodes.core.constants.contracts import (
    ROLE_ALLOCATION_MANAGER,
    ROLE_AVS_DIRECTORY,
    ROLE_DELEGATION_MANAGER,
    ROLE_EIGEN_POD_MANAGER,
    ROLE_REWARDS_COORDINATOR,
    ROLE_STRATEGY_MANAGER,
    WITHDRAWAL_DELAY_BLOCKS,
    get_strategy_info,
)
from eigenlayer_nodes.core.constants.eigenlayer_abi import (
    ABI_BY_ROLE,
    IREWARDS_COORDINATOR_ABI,
)
from eigenlayer_nodes.core.errors import UnknownOperationError, ValidationError
from eigenlayer_nodes.core.utils.abi import cast_args, get_function_abi
from eigenlayer_nodes.core.utils.addresses import is_zero_address, validate_address
from eigenlayer_nodes.core.utils.units import format_ether, to_big_int

OperationKind = Literal["read", "write"]
ParamKind = Literal[
    "address",
    "addresses",
    "uint",
    "uints",
    "bool",
    "string",
    "bytes",
    "bytes32",
    "json",
]

ROLE_EIGEN_POD = "EigenPod"
ROLE_STRATEGY = "Strategy"

_TRUE_STRINGS = ("true", "1", "yes")
_FALSE_STRINGS = ("false", "0", "no")


@dataclass(frozen=True)
class OperationContext:
    network: str
    chain_id: int
    signer_address: str | None = None


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple)):
        return not value
    return False


def _split_list(value: Any, name: str) -> list[Any]:
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    if isinstance(value, (list, tuple)):
        return list(value)
    raise ValidationError(f"{name} must be a list or comma-separated string")


def _parse_uint(value: Any, name: str) -> int:
    parsed = to_big_int(value)
    if parsed < 0:
        raise ValidationError(f"{name} must be non-negative")
    return parsed


def _parse_bool(value: Any, name: str) -> bool:
    if isinstance(value, bool):
        return value
    lowered = str(value).strip().lower()
    if lowered in _TRUE_STRINGS:
        return True
    if lowered in _FALSE_STRINGS:
        return False
    raise ValidationError(f"Invalid {name}: {value!r}")


def _parse_bytes(value: Any, name: str) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    s = str(value).strip()
    try:
        return bytes(HexBytes(s if s.startswith("0x") else "0x" + s))
    except ValueError as exc:
        raise ValidationError(f"Invalid {name}: expected hex bytes") from exc


def _parse_bytes32(value: Any, name: str) -> bytes:
    raw = _parse_bytes(value, name)
    if len(raw) > 32:
        raise ValidationError(f"{name} too long: {len(raw)} bytes")
    return raw.rjust(32, b"\x00")


def _parse_json(value: Any, name: str) -> Any:
    if not isinstance(value, str):
        return value
    try:
        return json.loads(value)
    except json.JSONDecodeError as exc:
        raise ValidationError(f"{name} is not valid JSON") from exc


_PARSERS: dict[str, Callable[[Any, str], Any]] = {
    "address": validate_address,
    "addresses": lambda v, n: [
        validate_address(a, f"{n}[{i}]") for i, a in enumerate(_split_list(v, n))
    ],
    "uint": _parse_uint,
    "uints": lambda v, n: [
        _parse_uint(x, f"{n}[{i}]") for i, x in enumerate(_split_list(v, n))
    ],
    "bool": _parse_bool,
    "string": lambda v, _n: str(v),
    "bytes": _parse_bytes,
    "bytes32": _parse_bytes32,
    "json": _parse_json,
}


@dataclass(frozen=True)
class Param:
    name: str
    kind: ParamKind = "string"
    required: bool = True
    default: Any = None
    choices: tuple[str, ...] | None = None

    def parse(self, raw: Mapping[str, Any]) -> Any:
        value = raw.get(self.name)
        if _is_blank(value):
            if self.required:
                raise ValidationError(f"{self.name} is required")
            return self.default
        parsed = _PARSERS[self.kind](value, self.name)
        if self.choices is not None and parsed not in self.choices:
            raise ValidationError(
                f"Invalid {self.name}: {value!r} (expected one of {', '.join(self.choices)})"
            )
        return parsed


ArgsBuilder = Callable[[dict[str, Any], OperationContext], list[Any]]
ResultFormatter = Callable[[Any, dict[str, Any], OperationContext], dict[str, Any]]


@dataclass(frozen=True)
class OperationDescriptor:
    resource: str
    operation: str
    kind: OperationKind
    params: tuple[Param, ...] = ()
    contract_role: str | None = None
    target_param: str | None = None
    abi_role: str | None = None
    method: str | None = None
    build_args: ArgsBuilder | None = None
    format_result: ResultFormatter | None = None
    value: int = 0
    flow: str | None = None

    @property
    def key(self) -> tuple[str, str]:
        return self.resource, self.operation

    @property
    def abi(self) -> list[dict[str, Any]]:
        return ABI_BY_ROLE[self.abi_role or self.contract_role]

    def parse_params(self, raw: Mapping[str, Any] | None) -> dict[str, Any]:
        values = raw or {}
        return {p.name: p.parse(values) for p in self.params}

    def args_for(self, params: dict[str, Any], ctx: OperationContext) -> list[Any]:
        if self.build_args is None:
            return []
        return self.build_args(params, ctx)

    def record_for(
        self, result: Any, params: dict[str, Any], ctx: OperationContext
    ) -> dict[str, Any]:
        if self.format_result is None:
            return {"result": result}
        return self.format_result(result, params, ctx)


def _args(*names: str) -> ArgsBuilder:
    def build(params: dict[str, Any], _ctx: OperationContext) -> list[Any]:
        return [params[name] for name in names]

    return build


def _echo(**fields: str) -> ResultFormatter:
    """Record built from input params only, as for most write operations."""

    def fmt(_result: Any, params: dict[str, Any], _ctx: OperationContext) -> dict[str, Any]:
        return {out: params[name] for out, name in fields.items()}

    return fmt


def _strategy_label(strategy: str, unknown_name: str) -> tuple[str, str]:
    info = get_strategy_info(strategy)
    if info is None:
        return unknown_name, "UNKNOWN"
    return info.name, info.symbol


def format_deposits(
    strategies: list[str], shares: list[int], *, unknown_name: str
) -> list[dict[str, Any]]:
    deposits = []
    for strategy, amount in zip(strategies, shares, strict=True):
        name, symbol = _strategy_label(strategy, unknown_name)
        deposits.append(
            {
                "strategy": strategy,
                "name": name,
                "symbol": symbol,
                "shares": amount,
                "sharesFormatted": format_ether(amount),
            }
        )
    return deposits


# -- strategyManager ---------------------------------------------------------


def _fmt_staker_deposits(result, params, _ctx):
    strategies, shares = result
    deposits = format_deposits(
        list(strategies), list(shares), unknown_name="Unknown Strategy"
    )
    return {
        "staker": params["stakerAddress"],
        "totalStrategies": len(deposits),
        "deposits": deposits,
    }


def _fmt_staker_strategy_shares(shares, params, _ctx):
    name, _symbol = _strategy_label(params["strategyAddress"], "Unknown")
    return {
        "staker": params["stakerAddress"],
        "strategy": params["strategyAddress"],
        "strategyName": name,
        "shares": shares,
        "sharesFormatted": format_ether(shares),
    }


# -- delegationManager -------------------------------------------------------


def _fmt_delegated_operator(delegated_to, params, _ctx):
    return {
        "staker": params["stakerAddress"],
        "delegatedTo": delegated_to,
        "isDelegated": not is_zero_address(delegated_to),
    }


def _fmt_operator_shares(shares, params, _ctx):
    return {
        "operator": params["operatorAddress"],
        "strategy": params["strategyAddress"],
        "shares": shares,
        "sharesFormatted": format_ether(shares),
    }


def _fmt_withdrawable_shares(result, params, _ctx):
    withdrawable, deposit = result
    return {
        "staker": params["stakerAddress"],
        "shares": [
            {
                "strategy": strategy,
                "withdrawableShares": w,
                "withdrawableFormatted": format_ether(w),
                "depositShares": d,
                "depositFormatted": format_ether(d),
            }
            for strategy, w, d in zip(
                params["strategies"], withdrawable, deposit, strict=True
            )
        ],
    }


def withdrawal_record(withdrawal: Any) -> dict[str, Any]:
    staker, delegated_to, withdrawer, nonce, start_block, strategies, scaled = withdrawal
    return {
        "staker": staker,
        "delegatedTo": delegated_to,
        "withdrawer": withdrawer,
        "nonce": nonce,
        "startBlock": start_block,
        "strategies": list(strategies),
        "scaledShares": list(scaled),
    }


def _fmt_queued_withdrawal(result, params, _ctx):
    withdrawal, shares = result
    return {
        "withdrawalRoot": params["withdrawalRoot"],
        "withdrawal": withdrawal_record(withdrawal),
        "shares": list(shares),
    }


def _register_operator_args(params, _ctx):
    return [
        params["delegationApprover"],
        params["allocationDelay"],
        params["metadataURI"],
    ]


def _fmt_register_operator(_receipt, params, ctx):
    return {
        "operator": ctx.signer_address,
        "delegationApprover": params["delegationApprover"],
        "allocationDelay": params["allocationDelay"],
        "metadataURI": params["metadataURI"],
    }


def _delegate_to_args(params, _ctx):
    return [
        params["operatorAddress"],
        (params["approverSignature"], params["approverExpiry"]),
        params["approverSalt"],
    ]


def _fmt_delegate_to(_receipt, params, ctx):
    return {"staker": ctx.signer_address, "operator": params["operatorAddress"]}


def _queue_withdrawals_args(params, ctx):
    strategies, shares = params["strategies"], params["shares"]
    if len(strategies) != len(shares):
        raise ValidationError("Strategies and shares arrays must have the same length")
    withdrawer = params["withdrawer"] or ctx.signer_address
    return [[(strategies, shares, withdrawer)]]


def _fmt_queue_withdrawals(_receipt, params, ctx):
    return {
        "withdrawer": params["withdrawer"] or ctx.signer_address,
        "strategies": params["strategies"],
        "shares": params["shares"],
        "estimatedCompletionBlocks": WITHDRAWAL_DELAY_BLOCKS,
    }


# -- eigenPodManager / eigenPod ----------------------------------------------


def _fmt_pod_owner_shares(shares, params, _ctx):
    signed = int(shares)
    return {
        "podOwner": params["podOwnerAddress"],
        "shares": signed,
        "sharesFormatted": format_ether(abs(signed)),
        "isNegative": signed < 0,
    }


def _fmt_stake(_receipt, params, ctx):
    return {
        "podOwner": ctx.signer_address,
        "depositAmount": str(VALIDATOR_DEPOSIT_WEI // MANTISSA),
        "pubkey": params["pubkey"],
    }


# -- avsDirectory --------------------------------------------------------------


def _register_to_avs_args(params, ctx):
    signature = (
        params["operatorSignature"],
        params["salt"],
        params["expiry"],
    )
    return [ctx.signer_address, signature]


def _fmt_operator_avs(_receipt, params, ctx):
    return {"operator": ctx.signer_address, "avs": params["avsAddress"]}


# -- rewardsCoordinator --------------------------------------------------------


def _process_claim_args(params, _ctx):
    inputs = get_function_abi(IREWARDS_COORDINATOR_ABI, "processClaim")["inputs"]
    try:
        return cast_args([params["claim"], params["recipient"]], inputs)
    except (TypeError, ValueError, KeyError) as exc:
        raise ValidationError(f"Invalid claim: {exc}") from exc


# -- allocationManager ---------------------------------------------------------


def _get_allocation_args(params, _ctx):
    return [
        params["operatorAddress"],
        (params["avsAddress"], params["operatorSetId"]),
        params["strategyAddress"],
    ]


def _fmt_allocation(result, params, _ctx):
    current, pending, effect_block = result
    return {
        "operator": params["operatorAddress"],
        "strategy": params["strategyAddress"],
        "avs": params["avsAddress"],
        "operatorSetId": params["operatorSetId"],
        "allocation": {
            "currentMagnitude": current,
            "pendingDiff": pending,
            "effectBlock": effect_block,
        },
    }


def _modify_allocations_args(params, ctx):
    avs = params["avsAddress"] or ctx.signer_address
    allocation = (
        (avs, params["operatorSetId"]),
        [params["strategyAddress"]],
        [params["newMagnitude"]],
    )
    return [params["operatorAddress"], [allocation]]


def _fmt_modify_allocations(_receipt, params, ctx):
    return {
        "operator": params["operatorAddress"],
        "strategy": params["strategyAddress"],
        "avs": params["avsAddress"] or ctx.signer_address,
        "operatorSetId": params["operatorSetId"],
        "newMagnitude": params["newMagnitude"],
    }


# -- table ---------------------------------------------------------------------

_STAKER = Param("stakerAddress", "address")
_OPERATOR = Param("operatorAddress", "address")
_STRATEGY = Param("strategyAddress", "address")
_POD_OWNER = Param("podOwnerAddress", "address")
_POD = Param("podAddress", "address")
_AVS = Param("avsAddress", "address")
_EARNER = Param("earnerAddress", "address")


def _read(resource, operation, role, method, params, build_args, format_result, **kw):
    return OperationDescriptor(
        resource=resource,
        operation=operation,
        kind="read",
        params=params,
        contract_role=role,
        method=method,
        build_args=build_args,
        format_result=format_result,
        **kw,
    )


def _write(resource, operation, role, method, params, build_args, format_result, **kw):
    return OperationDescriptor(
        resource=resource,
        operation=operation,
        kind="write",
        params=params,
        contract_role=role,
        method=method,
        build_args=build_args,
        format_result=format_result,
        **kw,
    )


_DESCRIPTORS: tuple[OperationDescriptor, ...] = (
    # strategyManager
    _read(
        "strategyManager",
        "getStakerDeposits",
        ROLE_STRATEGY_MANAGER,
        "getDeposits",
        (_STAKER,),
        _args("stakerAddress"),
        _fmt_staker_deposits,
    ),
    _read(
        "strategyManager",
        "getStakerStrategyShares",
        ROLE_STRATEGY_MANAGER,
        "stakerDepositShares",
        (_STAKER, _STRATEGY),
        _args("stakerAddress", "strategyAddress"),
        _fmt_staker_strategy_shares,
    ),
    _write(
        "strategyManager",
        "depositIntoStrategy",
        ROLE_STRATEGY_MANAGER,
        "depositIntoStrategy",
        (
            _STRATEGY,
            Param("tokenAddress", "address"),
            Param("amount"),
            Param("amountUnit", required=False, default="wei", choices=("wei", "token")),
            Param("approveFirst", "bool", required=False, default=True),
        ),
        None,
        None,
        flow="deposit",
    ),
    # delegationManager
    _read(
        "delegationManager",
        "getDelegatedOperator",
        ROLE_DELEGATION_MANAGER,
        "delegatedTo",
        (_STAKER,),
        _args("stakerAddress"),
        _fmt_delegated_operator,
    ),
    _read(
        "delegationManager",
        "isDelegated",
        ROLE_DELEGATION_MANAGER,
        "isDelegated",
        (_STAKER,),
        _args("stakerAddress"),
        lambda r, p, _c: {"staker": p["stakerAddress"], "isDelegated": r},
    ),
    _read(
        "delegationManager",
        "isOperator",
        ROLE_DELEGATION_MANAGER,
        "isOperator",
        (_OPERATOR,),
        _args("operatorAddress"),
        lambda r, p, _c: {"address": p["operatorAddress"], "isOperator": r},
    ),
    _read(
        "delegationManager",
        "getOperatorDetails",
        ROLE_DELEGATION_MANAGER,
        None,
        (_OPERATOR,),
        None,
        None,
        flow="operatorDetails",
    ),
    _read(
        "delegationManager",
        "getOperatorShares",
        ROLE_DELEGATION_MANAGER,
        "operatorShares",
        (_OPERATOR, _STRATEGY),
        _args("operatorAddress", "strategyAddress"),
        _fmt_operator_shares,
    ),
    _read(
        "delegationManager",
        "getWithdrawableShares",
        ROLE_DELEGATION_MANAGER,
        "getWithdrawableShares",
        (_STAKER, Param("strategies", "addresses")),
        _args("stakerAddress", "strategies"),
        _fmt_withdrawable_shares,
    ),
    _read(
        "delegationManager",
        "getQueuedWithdrawal",
        ROLE_DELEGATION_MANAGER,
        "getQueuedWithdrawal",
        (Param("withdrawalRoot", "bytes32"),),
        _args("withdrawalRoot"),
        _fmt_queued_withdrawal,
    ),
    _write(
        "delegationManager",
        "registerAsOperator",
        ROLE_DELEGATION_MANAGER,
        "registerAsOperator",
        (
            Param("delegationApprover", "address", required=False, default=ZERO_ADDRESS),
            Param("allocationDelay", "uint", required=False, default=0),
            Param("metadataURI", required=False, default=""),
        ),
        _register_operator_args,
        _fmt_register_operator,
    ),
    _write(
        "delegationManager",
        "delegateTo",
        ROLE_DELEGATION_MANAGER,
        "delegateTo",
        (
            _OPERATOR,
            Param("approverSignature", "bytes", required=False, default=b""),
            Param("approverExpiry", "uint", required=False, default=0),
            Param("approverSalt", "bytes32", required=False, default=b"\x00" * 32),
        ),
        _delegate_to_args,
        _fmt_delegate_to,
    ),
    _write(
        "delegationManager",
        "undelegate",
        ROLE_DELEGATION_MANAGER,
        "undelegate",
        (_STAKER,),
        _args("stakerAddress"),
        _echo(staker="stakerAddress"),
    ),
    _write(
        "delegationManager",
        "queueWithdrawals",
        ROLE_DELEGATION_MANAGER,
        "queueWithdrawals",
        (
            Param("strategies", "addresses"),
            Param("shares", "uints"),
            Param("withdrawer", "address", required=False),
        ),
        _queue_withdrawals_args,
        _fmt_queue_withdrawals,
        flow="queueWithdrawals",
    ),
    _write(
        "delegationManager",
        "completeQueuedWithdrawal",
        ROLE_DELEGATION_MANAGER,
        "completeQueuedWithdrawal",
        (
            Param("withdrawalRoot", "bytes32"),
            Param("receiveAsTokens", "bool", required=False, default=True),
        ),
        None,
        None,
        flow="completeWithdrawal",
    ),
    # eigenPodManager
    _read(
        "eigenPodManager",
        "getEigenPod",
        ROLE_EIGEN_POD_MANAGER,
        None,
        (_POD_OWNER,),
        None,
        None,
        flow="eigenPod",
    ),
    _read(
        "eigenPodManager",
        "hasPod",
        ROLE_EIGEN_POD_MANAGER,
        "hasPod",
        (_POD_OWNER,),
        _args("podOwnerAddress"),
        lambda r, p, _c: {"podOwner": p["podOwnerAddress"], "hasPod": r},
    ),
    _read(
        "eigenPodManager",
        "getPodOwnerShares",
        ROLE_EIGEN_POD_MANAGER,
        "podOwnerDepositShares",
        (_POD_OWNER,),
        _args("podOwnerAddress"),
        _fmt_pod_owner_shares,
    ),
    _write(
        "eigenPodManager",
        "createPod",
        ROLE_EIGEN_POD_MANAGER,
        "createPod",
        (),
        None,
        None,
        flow="createPod",
    ),
    _write(
        "eigenPodManager",
        "stake",
        ROLE_EIGEN_POD_MANAGER,
        "stake",
        (
            Param("pubkey", "bytes"),
            Param("signature", "bytes"),
            Param("depositDataRoot", "bytes32"),
        ),
        _args("pubkey", "signature", "depositDataRoot"),
        _fmt_stake,
        value=VALIDATOR_DEPOSIT_WEI,
    ),
    # eigenPod
    _read(
        "eigenPod",
        "getPodOwner",
        None,
        "podOwner",
        (_POD,),
        None,
        lambda r, p, _c: {"pod": p["podAddress"], "owner": r},
        target_param="podAddress",
        abi_role=ROLE_EIGEN_POD,
    ),
    _read(
        "eigenPod",
        "getValidatorStatus",
        None,
        "validatorStatus",
        (_POD, Param("validatorPubkey", "bytes32")),
        _args("validatorPubkey"),
        lambda r, p, _c: {
            "pod": p["podAddress"],
            "validatorPubkey": p["validatorPubkey"],
            "status": r,
        },
        target_param="podAddress",
        abi_role=ROLE_EIGEN_POD,
    ),
    _write(
        "eigenPod",
        "activateRestaking",
        None,
        "activateRestaking",
        (_POD,),
        None,
        _echo(pod="podAddress"),
        target_param="podAddress",
        abi_role=ROLE_EIGEN_POD,
    ),
    # avsDirectory
    _read(
        "avsDirectory",
        "getOperatorAvsStatus",
        ROLE_AVS_DIRECTORY,
        "avsOperatorStatus",
        (_OPERATOR, _AVS),
        _args("avsAddress", "operatorAddress"),
        lambda r, p, _c: {
            "operator": p["operatorAddress"],
            "avs": p["avsAddress"],
            "status": r,
        },
    ),
    _write(
        "avsDirectory",
        "registerOperatorToAvs",
        ROLE_AVS_DIRECTORY,
        "registerOperatorToAVS",
        (
            _AVS,
            Param("operatorSignature", "bytes", required=False, default=b""),
            Param("salt", "bytes32", required=False, default=b"\x00" * 32),
            Param("expiry", "uint", required=False, default=MAX_UINT256),
        ),
        _register_to_avs_args,
        _fmt_operator_avs,
    ),
    _write(
        "avsDirectory",
        "deregisterOperatorFromAvs",
        ROLE_AVS_DIRECTORY,
        "deregisterOperatorFromAVS",
        (_AVS,),
        lambda _p, ctx: [ctx.signer_address],
        _fmt_operator_avs,
    ),
    # rewardsCoordinator
    _read(
        "rewardsCoordinator",
        "getCumulativeClaimed",
        ROLE_REWARDS_COORDINATOR,
        "cumulativeClaimed",
        (_EARNER, Param("tokenAddress", "address")),
        _args("earnerAddress", "tokenAddress"),
        lambda r, p, _c: {
            "earner": p["earnerAddress"],
            "token": p["tokenAddress"],
            "claimed": r,
        },
    ),
    _read(
        "rewardsCoordinator",
        "getClaimerFor",
        ROLE_REWARDS_COORDINATOR,
        "claimerFor",
        (_EARNER,),
        _args("earnerAddress"),
        lambda r, p, _c: {"earner": p["earnerAddress"], "claimer": r},
    ),
    _write(
        "rewardsCoordinator",
        "processClaim",
        ROLE_REWARDS_COORDINATOR,
        "processClaim",
        (Param("claim", "json"), Param("recipient", "address")),
        _process_claim_args,
        lambda _r, p, ctx: {"claimer": ctx.signer_address, "recipient": p["recipient"]},
    ),
    _write(
        "rewardsCoordinator",
        "setClaimerFor",
        ROLE_REWARDS_COORDINATOR,
        "setClaimerFor",
        (Param("claimerAddress", "address"),),
        _args("claimerAddress"),
        lambda _r, p, ctx: {"earner": ctx.signer_address, "claimer": p["claimerAddress"]},
    ),
    # allocationManager
    _read(
        "allocationManager",
        "getEncumberedMagnitude",
        ROLE_ALLOCATION_MANAGER,
        "getEncumberedMagnitude",
        (_OPERATOR, _STRATEGY),
        _args("operatorAddress", "strategyAddress"),
        lambda r, p, _c: {
            "operator": p["operatorAddress"],
            "strategy": p["strategyAddress"],
            "encumberedMagnitude": r,
        },
    ),
    _read(
        "allocationManager",
        "getAllocation",
        ROLE_ALLOCATION_MANAGER,
        "getAllocation",
        (_OPERATOR, _STRATEGY, _AVS, Param("operatorSetId", "uint")),
        _get_allocation_args,
        _fmt_allocation,
    ),
    _write(
        "allocationManager",
        "modifyAllocations",
        ROLE_ALLOCATION_MANAGER,
        "modifyAllocations",
        (
            _OPERATOR,
            _STRATEGY,
            Param("operatorSetId", "uint"),
            Param("newMagnitude", "uint"),
            Param("avsAddress", "address", required=False),
        ),
        _modify_allocations_args,
        _fmt_modify_allocations,
    ),
    # strategy
    _read(
        "strategy",
        "getTotalShares",
        None,
        "totalShares",
        (_STRATEGY,),
        None,
        lambda r, p, _c: {"strategy": p["strategyAddress"], "totalShares": r},
        target_param="strategyAddress",
        abi_role=ROLE_STRATEGY,
    ),
    _read(
        "strategy",
        "getUnderlyingToken",
        None,
        "underlyingToken",
        (_STRATEGY,),
        None,
        lambda r, p, _c: {"strategy": p["strategyAddress"], "underlyingToken": r},
        target_param="strategyAddress",
        abi_role=ROLE_STRATEGY,
    ),
    _read(
        "strategy",
        "sharesToUnderlying",
        None,
        "sharesToUnderlyingView",
        (_STRATEGY, Param("shares", "uint")),
        _args("shares"),
        lambda r, p, _c: {
            "strategy": p["strategyAddress"],
            "shares": p["shares"],
            "underlying": r,
        },
        target_param="strategyAddress",
        abi_role=ROLE_STRATEGY,
    ),
    _read(
        "strategy",
        "underlyingToShares",
        None,
        "underlyingToSharesView",
        (_STRATEGY, Param("amount", "uint")),
        _args("amount"),
        lambda r, p, _c: {
            "strategy": p["strategyAddress"],
            "amount": p["amount"],
            "shares": r,
        },
        target_param="strategyAddress",
        abi_role=ROLE_STRATEGY,
    ),
    # multicall
    _read(
        "multicall",
        "batchRead",
        None,
        None,
        (Param("calls", "json"),),
        None,
        None,
        flow="batchRead",
    ),
    _read(
        "multicall",
        "getStakerPortfolio",
        None,
        None,
        (_STAKER,),
        None,
        None,
        flow="stakerPortfolio",
    ),
    _read(
        "multicall",
        "getOperatorSummary",
        None,
        None,
        (_OPERATOR,),
        None,
        None,
        flow="operatorSummary",
    ),
)

OPERATIONS: dict[tuple[str, str], OperationDescriptor] = {
    d.key: d for d in _DESCRIPTORS
}

RESOURCES: tuple[str, ...] = tuple(dict.fromkeys(d.resource for d in _DESCRIPTORS))


def get_operation(resource: str, operation: str) -> OperationDescriptor:
    descriptor = OPERATIONS.get((resource, operation))
    if descriptor is None:
        if resource not in RESOURCES:
            raise UnknownOperationError(resource)
        raise UnknownOperationError(resource, operation)
    return descriptor


def list_operations(resource: str | None = None) -> list[OperationDescriptor]:
    return [d for d in _DESCRIPTORS if resource is None or d.resource == resource]
