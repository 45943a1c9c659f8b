from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping, Sequence
from typing import Any

from eth_utils import to_checksum_address
from hexbytes import HexBytes
from web3 import AsyncWeb3
from web3._utils.events import event_abi_to_log_topic, get_event_data

from eigenlayer_nodes.adapters.eigenlayer_adapter.operations import (
    OperationContext,
    OperationDescriptor,
    format_deposits,
    get_operation,
)
from eigenlayer_nodes.adapters.multicall_adapter.adapter import (
    CallWithAbi,
    MulticallAdapter,
)
from eigenlayer_nodes.core.adapters.BaseAdapter import BaseAdapter, require_signer
from eigenlayer_nodes.core.adapters.decorators import status_tuple
from eigenlayer_nodes.core.adapters.models import ConnectionCredential, SigningCredential
from eigenlayer_nodes.core.constants.base import MAX_UINT256, ZERO_ADDRESS
from eigenlayer_nodes.core.constants.chains import NETWORK_MAINNET
from eigenlayer_nodes.core.constants.contracts import (
    BEACON_CHAIN_ETH_STRATEGY,
    NETWORK_PROFILES,
    ROLE_AVS_DIRECTORY,
    ROLE_DELEGATION_MANAGER,
    ROLE_EIGEN_POD_MANAGER,
    ROLE_STRATEGY_MANAGER,
    STRATEGY_INFO,
    get_strategy_info,
)
from eigenlayer_nodes.core.constants.eigenlayer_abi import (
    ABI_BY_ROLE,
    IDELEGATION_MANAGER_ABI,
    ISTRATEGY_MANAGER_ABI,
)
from eigenlayer_nodes.core.errors import (
    ConfigurationError,
    EigenLayerError,
    ValidationError,
)
from eigenlayer_nodes.core.utils.addresses import (
    addresses_equal,
    is_zero_address,
    validate_address,
)
from eigenlayer_nodes.core.utils.networks import normalize_network
from eigenlayer_nodes.core.utils.signatures import (
    calculate_expiry,
    generate_salt,
    sign_avs_registration,
    sign_delegation_approval,
)
from eigenlayer_nodes.core.utils.transaction import send_contract_transaction
from eigenlayer_nodes.core.utils.units import (
    format_ether,
    parse_units,
    serialize_result,
)
from eigenlayer_nodes.core.utils.wallets import Signer, create_signer
from eigenlayer_nodes.core.utils.web3 import create_web3
from eigenlayer_nodes.core.utils.web3_batch import batch_web3_calls

_WITHDRAWAL_QUEUED_EVENT_ABI = next(
    i
    for i in IDELEGATION_MANAGER_ABI
    if i.get("type") == "event" and i.get("name") == "SlashingWithdrawalQueued"
)
_WITHDRAWAL_QUEUED_TOPIC0 = HexBytes(event_abi_to_log_topic(_WITHDRAWAL_QUEUED_EVENT_ABI))

Flow = Callable[[OperationDescriptor, dict[str, Any]], Awaitable[dict[str, Any]]]


def _write_record(receipt: Mapping[str, Any], fields: dict[str, Any]) -> dict[str, Any]:
    return {
        "success": receipt.get("status") == 1,
        "transactionHash": receipt.get("transactionHash"),
        "blockNumber": receipt.get("blockNumber"),
        **fields,
    }


class EigenLayerAdapter(BaseAdapter):
    """Runs table-driven EigenLayer operations against one network.

    Reads need only a ``ConnectionCredential``; writes additionally need a
    ``SigningCredential`` and fail with ``ConfigurationError`` before any RPC
    traffic when it is missing. Every record returned by :meth:`execute` is
    passed through ``serialize_result`` so integers come back as strings.
    """

    adapter_type = "EIGENLAYER"

    def __init__(
        self,
        connection: ConnectionCredential,
        signing: SigningCredential | None = None,
        *,
        web3: AsyncWeb3 | None = None,
        config: dict[str, Any] | None = None,
    ) -> None:
        network = normalize_network(connection.network)
        super().__init__(
            "eigenlayer_adapter",
            config,
            web3=web3 if web3 is not None else create_web3(connection),
            owns_web3=web3 is None,
        )
        self.connection = connection
        self.signing = signing

        self.network = network
        self.profile = NETWORK_PROFILES[self.network]
        self.chain_id = self.profile.chain_id

        self.multicall = MulticallAdapter(web3=self.web3)
        self._signer: Signer | None = None

        self._flows: dict[str, Flow] = {
            "deposit": self._deposit,
            "queueWithdrawals": self._queue_withdrawals,
            "completeWithdrawal": self._complete_withdrawal,
            "operatorDetails": self._operator_details,
            "eigenPod": self._eigen_pod,
            "createPod": self._create_pod,
            "batchRead": self._batch_read,
            "stakerPortfolio": self._staker_portfolio,
            "operatorSummary": self._operator_summary,
        }

    @property
    def signer(self) -> Signer:
        if self._signer is None:
            if self.signing is None:
                raise ConfigurationError("No signing credential configured")
            self._signer = create_signer(self.signing, self.web3)
        return self._signer

    # ------------------------------------------------------------------
    # Node surface
    # ------------------------------------------------------------------

    async def execute(
        self,
        resource: str,
        operation: str,
        params: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        descriptor = get_operation(resource, operation)
        raw = dict(params or {})
        self._check_network(raw.pop("network", None))
        parsed = descriptor.parse_params(raw)

        self.logger.debug(f"Executing {resource}.{operation} on {self.network}")
        if descriptor.kind == "write":
            record = await self._run_write(descriptor, parsed)
        else:
            record = await self._run_read(descriptor, parsed)
        record.setdefault("network", self.network)
        return serialize_result(record)

    async def execute_items(
        self,
        items: Sequence[Mapping[str, Any]],
        *,
        continue_on_fail: bool = False,
    ) -> list[dict[str, Any]]:
        """Run each item independently, in order.

        With ``continue_on_fail`` a failing item yields
        ``{"error": message, "item": index}`` and later items still run;
        otherwise the first failure propagates.
        """
        results: list[dict[str, Any]] = []
        for index, item in enumerate(items):
            resource = str(item.get("resource") or "")
            operation = str(item.get("operation") or "")
            try:
                results.append(
                    await self.execute(resource, operation, item.get("params"))
                )
            except Exception as exc:
                if not continue_on_fail:
                    raise
                self.logger.error(f"Item {index} ({resource}.{operation}) failed: {exc}")
                results.append({"error": str(exc), "item": index})
        return results

    # ------------------------------------------------------------------
    # Script helpers
    # ------------------------------------------------------------------

    @status_tuple
    async def get_strategy_shares_formatted(
        self, staker: str, strategy: str
    ) -> dict[str, Any]:
        return await self.execute(
            "strategyManager",
            "getStakerStrategyShares",
            {"stakerAddress": staker, "strategyAddress": strategy},
        )

    @status_tuple
    async def get_delegation_state(self, staker: str) -> dict[str, Any]:
        return await self.execute(
            "delegationManager", "getDelegatedOperator", {"stakerAddress": staker}
        )

    @status_tuple
    async def deposit(
        self, strategy: str, token: str, amount: int | str
    ) -> dict[str, Any]:
        return await self.execute(
            "strategyManager",
            "depositIntoStrategy",
            {"strategyAddress": strategy, "tokenAddress": token, "amount": str(amount)},
        )

    def sign_delegation_approval(
        self,
        staker: str,
        operator: str,
        *,
        salt: str | bytes | None = None,
        expiry: int | None = None,
    ) -> dict[str, Any]:
        """Approver signature for ``delegationManager.delegateTo``.

        The configured signer acts as the operator's delegation approver. The
        returned keys match the ``delegateTo`` parameters.
        """
        salt = generate_salt() if salt is None else salt
        expiry = calculate_expiry() if expiry is None else int(expiry)
        staker_address = validate_address(staker, "stakerAddress")
        operator_address = validate_address(operator, "operatorAddress")
        signature = sign_delegation_approval(
            self.signer,
            chain_id=self.chain_id,
            delegation_manager=self.profile.address_of(ROLE_DELEGATION_MANAGER),
            delegation_approver=self.signer.address,
            staker=staker_address,
            operator=operator_address,
            salt=salt,
            expiry=expiry,
        )
        self.logger.info(f"Signed delegation approval for {staker_address} -> {operator_address}")
        return serialize_result(
            {
                "operatorAddress": operator_address,
                "approverSignature": signature,
                "approverExpiry": expiry,
                "approverSalt": salt,
                "approver": self.signer.address,
                "network": self.network,
            }
        )

    def sign_avs_registration(
        self,
        avs: str,
        *,
        salt: str | bytes | None = None,
        expiry: int | None = None,
    ) -> dict[str, Any]:
        """Operator signature for ``avsDirectory.registerOperatorToAvs``."""
        salt = generate_salt() if salt is None else salt
        expiry = calculate_expiry() if expiry is None else int(expiry)
        avs_address = validate_address(avs, "avsAddress")
        signature = sign_avs_registration(
            self.signer,
            chain_id=self.chain_id,
            avs_directory=self.profile.address_of(ROLE_AVS_DIRECTORY),
            operator=self.signer.address,
            avs=avs_address,
            salt=salt,
            expiry=expiry,
        )
        self.logger.info(f"Signed AVS registration for {self.signer.address} -> {avs_address}")
        return serialize_result(
            {
                "avsAddress": avs_address,
                "operatorSignature": signature,
                "salt": salt,
                "expiry": expiry,
                "operator": self.signer.address,
                "network": self.network,
            }
        )

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def _check_network(self, requested: Any) -> None:
        if requested is None or not str(requested).strip():
            return
        if normalize_network(str(requested)) != self.network:
            raise ConfigurationError(
                f"Operation network {requested} does not match connection network {self.network}"
            )

    def _context(self) -> OperationContext:
        return OperationContext(
            network=self.network,
            chain_id=self.chain_id,
            signer_address=self.signer.address if self.signing is not None else None,
        )

    def _contract(self, address: str, abi_role: str) -> Any:
        return self.web3.eth.contract(address=address, abi=ABI_BY_ROLE[abi_role])

    def _role_contract(self, role: str) -> Any:
        return self._contract(self.profile.address_of(role), role)

    def _target(self, descriptor: OperationDescriptor, params: dict[str, Any]) -> Any:
        if descriptor.target_param is not None:
            address = params[descriptor.target_param]
        else:
            address = self.profile.address_of(descriptor.contract_role)
        return self.web3.eth.contract(address=address, abi=descriptor.abi)

    async def _run_read(
        self, descriptor: OperationDescriptor, params: dict[str, Any]
    ) -> dict[str, Any]:
        if descriptor.flow is not None:
            return await self._flows[descriptor.flow](descriptor, params)

        ctx = self._context()
        contract = self._target(descriptor, params)
        fn = getattr(contract.functions, descriptor.method)
        result = await fn(*descriptor.args_for(params, ctx)).call()
        return descriptor.record_for(result, params, ctx)

    @require_signer
    async def _run_write(
        self, descriptor: OperationDescriptor, params: dict[str, Any]
    ) -> dict[str, Any]:
        if descriptor.flow is not None:
            return await self._flows[descriptor.flow](descriptor, params)

        ctx = self._context()
        receipt = await self._send(descriptor, params, ctx)
        return _write_record(receipt, descriptor.record_for(receipt, params, ctx))

    async def _send(
        self,
        descriptor: OperationDescriptor,
        params: dict[str, Any],
        ctx: OperationContext,
    ) -> dict[str, Any]:
        args = descriptor.args_for(params, ctx)
        return await send_contract_transaction(
            self.signer,
            self._target(descriptor, params),
            descriptor.method,
            args,
            value=descriptor.value,
        )

    # ------------------------------------------------------------------
    # Multi-call flows
    # ------------------------------------------------------------------

    async def _deposit(
        self, _descriptor: OperationDescriptor, params: dict[str, Any]
    ) -> dict[str, Any]:
        strategy = params["strategyAddress"]
        token = params["tokenAddress"]
        owner = self.signer.address
        erc20 = self._contract(token, "ERC20")

        if params["amountUnit"] == "token":
            decimals = await erc20.functions.decimals().call()
            amount_wei = parse_units(params["amount"], int(decimals))
        else:
            amount_wei = parse_units(params["amount"], 0)
        if amount_wei <= 0:
            raise ValidationError("amount must be positive")

        strategy_manager = self._role_contract(ROLE_STRATEGY_MANAGER)
        approval_hash = None
        if params["approveFirst"]:
            allowance = await erc20.functions.allowance(
                owner, strategy_manager.address
            ).call()
            if int(allowance) < amount_wei:
                self.logger.info(
                    f"Allowance {allowance} < {amount_wei}; approving StrategyManager for {token}"
                )
                approval = await send_contract_transaction(
                    self.signer,
                    erc20,
                    "approve",
                    [strategy_manager.address, MAX_UINT256],
                )
                approval_hash = approval.get("transactionHash")

        receipt = await send_contract_transaction(
            self.signer,
            strategy_manager,
            "depositIntoStrategy",
            [strategy, token, amount_wei],
        )
        return _write_record(
            receipt,
            {
                "strategy": strategy,
                "token": token,
                "amount": params["amount"],
                "amountWei": amount_wei,
                "approvalTransactionHash": approval_hash,
            },
        )

    async def _queue_withdrawals(
        self, descriptor: OperationDescriptor, params: dict[str, Any]
    ) -> dict[str, Any]:
        ctx = self._context()
        receipt = await self._send(descriptor, params, ctx)
        record = _write_record(receipt, descriptor.record_for(receipt, params, ctx))
        record["withdrawalRoots"] = self._withdrawal_roots_from_receipt(receipt)
        return record

    def _withdrawal_roots_from_receipt(self, receipt: Mapping[str, Any]) -> list[str]:
        delegation_manager = self.profile.address_of(ROLE_DELEGATION_MANAGER)
        roots: list[str] = []
        for log in receipt.get("logs") or []:
            if not addresses_equal(log.get("address"), delegation_manager):
                continue
            topics = log.get("topics") or []
            if not topics or HexBytes(topics[0]) != _WITHDRAWAL_QUEUED_TOPIC0:
                continue
            event = get_event_data(self.web3.codec, _WITHDRAWAL_QUEUED_EVENT_ABI, log)
            roots.append("0x" + bytes(event["args"]["withdrawalRoot"]).hex())
        return list(dict.fromkeys(roots))

    async def _complete_withdrawal(
        self, _descriptor: OperationDescriptor, params: dict[str, Any]
    ) -> dict[str, Any]:
        root = params["withdrawalRoot"]
        delegation_manager = self._role_contract(ROLE_DELEGATION_MANAGER)
        withdrawal, _shares = await delegation_manager.functions.getQueuedWithdrawal(
            root
        ).call()

        strategies = [to_checksum_address(s) for s in (withdrawal[5] or [])]
        if not strategies:
            raise ValidationError(f"No queued withdrawal found for root 0x{root.hex()}")
        tokens = await self._withdrawal_tokens(strategies)

        withdrawal_tuple = (
            to_checksum_address(withdrawal[0]),
            to_checksum_address(withdrawal[1]),
            to_checksum_address(withdrawal[2]),
            withdrawal[3],
            withdrawal[4],
            strategies,
            list(withdrawal[6] or []),
        )
        receipt = await send_contract_transaction(
            self.signer,
            delegation_manager,
            "completeQueuedWithdrawal",
            [withdrawal_tuple, tokens, params["receiveAsTokens"]],
        )
        return _write_record(
            receipt,
            {
                "withdrawalRoot": root,
                "receiveAsTokens": params["receiveAsTokens"],
                "strategies": strategies,
                "tokens": tokens,
            },
        )

    async def _withdrawal_tokens(self, strategies: list[str]) -> list[str]:
        tokens: list[str] = []
        for strategy in strategies:
            if addresses_equal(strategy, BEACON_CHAIN_ETH_STRATEGY):
                tokens.append(ZERO_ADDRESS)
                continue
            info = get_strategy_info(strategy)
            if info is not None and self.network == NETWORK_MAINNET:
                tokens.append(info.underlying_token)
                continue
            underlying = await self._contract(
                strategy, "Strategy"
            ).functions.underlyingToken().call()
            tokens.append(to_checksum_address(str(underlying)))
        return tokens

    async def _operator_details(
        self, _descriptor: OperationDescriptor, params: dict[str, Any]
    ) -> dict[str, Any]:
        operator = params["operatorAddress"]
        dm = self._role_contract(ROLE_DELEGATION_MANAGER)
        is_operator, approver = await batch_web3_calls(
            self.web3,
            lambda: dm.functions.isOperator(operator).call(),
            lambda: dm.functions.delegationApprover(operator).call(),
        )
        return {
            "operator": operator,
            "isOperator": is_operator,
            "delegationApprover": approver,
        }

    async def _eigen_pod(
        self, _descriptor: OperationDescriptor, params: dict[str, Any]
    ) -> dict[str, Any]:
        owner = params["podOwnerAddress"]
        epm = self._role_contract(ROLE_EIGEN_POD_MANAGER)
        pod, has_pod = await batch_web3_calls(
            self.web3,
            lambda: epm.functions.ownerToPod(owner).call(),
            lambda: epm.functions.hasPod(owner).call(),
        )
        return {
            "podOwner": owner,
            "eigenPod": pod,
            "hasPod": has_pod,
            "isPodDeployed": not is_zero_address(pod),
        }

    async def _create_pod(
        self, descriptor: OperationDescriptor, params: dict[str, Any]
    ) -> dict[str, Any]:
        ctx = self._context()
        receipt = await self._send(descriptor, params, ctx)
        epm = self._role_contract(ROLE_EIGEN_POD_MANAGER)
        pod = await epm.functions.ownerToPod(ctx.signer_address).call()
        return _write_record(
            receipt, {"podOwner": ctx.signer_address, "eigenPod": pod}
        )

    async def _batch_read(
        self, _descriptor: OperationDescriptor, params: dict[str, Any]
    ) -> dict[str, Any]:
        calls = params["calls"]
        if not isinstance(calls, list) or not calls:
            raise ValidationError("calls must be a non-empty array")

        prepared = []
        for i, call in enumerate(calls):
            if not isinstance(call, Mapping):
                raise ValidationError(f"calls[{i}] must be an object")
            target = validate_address(call.get("target"), f"calls[{i}].target")
            call_data = call.get("callData")
            if not isinstance(call_data, str) or not call_data.startswith("0x"):
                raise ValidationError(f"calls[{i}].callData must be 0x-prefixed hex")
            prepared.append((target, call_data))

        results = await self.multicall.aggregate3(prepared)
        return {
            "callCount": len(prepared),
            "results": [
                {"index": i, "success": success, "returnData": data}
                for i, (success, data) in enumerate(results)
            ],
        }

    async def _staker_portfolio(
        self, _descriptor: OperationDescriptor, params: dict[str, Any]
    ) -> dict[str, Any]:
        staker = params["stakerAddress"]
        deposits_call, delegation_call = await self.multicall.multicall(
            [
                CallWithAbi(
                    target=self.profile.address_of(ROLE_STRATEGY_MANAGER),
                    abi=ISTRATEGY_MANAGER_ABI,
                    function_name="getDeposits",
                    args=(staker,),
                ),
                CallWithAbi(
                    target=self.profile.address_of(ROLE_DELEGATION_MANAGER),
                    abi=IDELEGATION_MANAGER_ABI,
                    function_name="delegatedTo",
                    args=(staker,),
                ),
            ]
        )
        for name, call in (("getDeposits", deposits_call), ("delegatedTo", delegation_call)):
            if not call.success or call.decoded is None:
                raise EigenLayerError(
                    f"{name} failed for {staker}: {call.error or 'empty return data'}"
                )

        strategies, shares = deposits_call.decoded
        delegated_to = delegation_call.decoded
        is_delegated = not is_zero_address(delegated_to)
        deposits = format_deposits(list(strategies), list(shares), unknown_name="Unknown")
        return {
            "staker": staker,
            "isDelegated": is_delegated,
            "delegatedTo": delegated_to if is_delegated else None,
            "totalStrategies": len(deposits),
            "deposits": deposits,
        }

    async def _operator_summary(
        self, _descriptor: OperationDescriptor, params: dict[str, Any]
    ) -> dict[str, Any]:
        operator = params["operatorAddress"]
        dm_address = self.profile.address_of(ROLE_DELEGATION_MANAGER)
        dm = self._contract(dm_address, ROLE_DELEGATION_MANAGER)

        if not await dm.functions.isOperator(operator).call():
            return {
                "operator": operator,
                "isOperator": False,
                "error": "Address is not a registered operator",
            }

        strategies = list(STRATEGY_INFO.values())
        calls = [
            CallWithAbi(
                target=dm_address,
                abi=IDELEGATION_MANAGER_ABI,
                function_name="delegationApprover",
                args=(operator,),
            ),
            *(
                CallWithAbi(
                    target=dm_address,
                    abi=IDELEGATION_MANAGER_ABI,
                    function_name="operatorShares",
                    args=(operator, info.address),
                )
                for info in strategies
            ),
        ]
        approver_call, *share_calls = await self.multicall.batched_multicall(calls)

        strategy_shares = []
        for info, result in zip(strategies, share_calls, strict=True):
            if not result.success or result.error or not result.decoded:
                continue
            strategy_shares.append(
                {
                    "strategy": info.address,
                    "name": info.name,
                    "symbol": info.symbol,
                    "shares": result.decoded,
                    "sharesFormatted": format_ether(result.decoded),
                }
            )
        return {
            "operator": operator,
            "isOperator": True,
            "details": {
                "delegationApprover": approver_call.decoded
                if approver_call.success
                else None
            },
            "totalStrategies": len(strategy_shares),
            "strategyShares": strategy_shares,
        }
