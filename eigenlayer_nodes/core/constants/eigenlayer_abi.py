"""Minimal ABIs for the EigenLayer core contracts.

Subsets of the slashing-release interfaces covering what the operation table
and the event poller touch:
- StrategyManager deposits and share reads
- DelegationManager operator / delegation / withdrawal-queue flows
- EigenPodManager and EigenPod native restaking
- AVSDirectory operator registration
- RewardsCoordinator merkle claims
- AllocationManager magnitudes
- IStrategy share accounting
"""

_SIGNATURE_WITH_EXPIRY = {
    "type": "tuple",
    "components": [
        {"name": "signature", "type": "bytes"},
        {"name": "expiry", "type": "uint256"},
    ],
}

_SIGNATURE_WITH_SALT_AND_EXPIRY = {
    "type": "tuple",
    "components": [
        {"name": "signature", "type": "bytes"},
        {"name": "salt", "type": "bytes32"},
        {"name": "expiry", "type": "uint256"},
    ],
}

_WITHDRAWAL_COMPONENTS = [
    {"name": "staker", "type": "address"},
    {"name": "delegatedTo", "type": "address"},
    {"name": "withdrawer", "type": "address"},
    {"name": "nonce", "type": "uint256"},
    {"name": "startBlock", "type": "uint32"},
    {"name": "strategies", "type": "address[]"},
    {"name": "scaledShares", "type": "uint256[]"},
]

_OPERATOR_SET = {
    "type": "tuple",
    "components": [
        {"name": "avs", "type": "address"},
        {"name": "id", "type": "uint32"},
    ],
}

_REWARDS_MERKLE_CLAIM = {
    "type": "tuple",
    "components": [
        {"name": "rootIndex", "type": "uint32"},
        {"name": "earnerIndex", "type": "uint32"},
        {"name": "earnerTreeProof", "type": "bytes"},
        {
            "name": "earnerLeaf",
            "type": "tuple",
            "components": [
                {"name": "earner", "type": "address"},
                {"name": "earnerTokenRoot", "type": "bytes32"},
            ],
        },
        {"name": "tokenIndices", "type": "uint32[]"},
        {"name": "tokenTreeProofs", "type": "bytes[]"},
        {
            "name": "tokenLeaves",
            "type": "tuple[]",
            "components": [
                {"name": "token", "type": "address"},
                {"name": "cumulativeEarnings", "type": "uint256"},
            ],
        },
    ],
}


def _view(name: str, inputs: list[dict], outputs: list[dict]) -> dict:
    return {
        "type": "function",
        "name": name,
        "stateMutability": "view",
        "inputs": inputs,
        "outputs": outputs,
    }


def _write(
    name: str,
    inputs: list[dict],
    outputs: list[dict] | None = None,
    *,
    payable: bool = False,
) -> dict:
    return {
        "type": "function",
        "name": name,
        "stateMutability": "payable" if payable else "nonpayable",
        "inputs": inputs,
        "outputs": outputs or [],
    }


def _named(name: str, spec: dict) -> dict:
    return {"name": name, **spec}


ISTRATEGY_MANAGER_ABI = [
    _write(
        "depositIntoStrategy",
        [
            {"name": "strategy", "type": "address"},
            {"name": "token", "type": "address"},
            {"name": "amount", "type": "uint256"},
        ],
        [{"name": "depositShares", "type": "uint256"}],
    ),
    _view(
        "strategyIsWhitelistedForDeposit",
        [{"name": "strategy", "type": "address"}],
        [{"name": "", "type": "bool"}],
    ),
    _view(
        "getDeposits",
        [{"name": "staker", "type": "address"}],
        [
            {"name": "strategies", "type": "address[]"},
            {"name": "shares", "type": "uint256[]"},
        ],
    ),
    _view(
        "stakerDepositShares",
        [
            {"name": "user", "type": "address"},
            {"name": "strategy", "type": "address"},
        ],
        [{"name": "shares", "type": "uint256"}],
    ),
    _view(
        "nonces",
        [{"name": "staker", "type": "address"}],
        [{"name": "", "type": "uint256"}],
    ),
    {
        "type": "event",
        "name": "Deposit",
        "anonymous": False,
        "inputs": [
            {"name": "staker", "type": "address", "indexed": False},
            {"name": "strategy", "type": "address", "indexed": False},
            {"name": "shares", "type": "uint256", "indexed": False},
        ],
    },
]

IDELEGATION_MANAGER_ABI = [
    _write(
        "registerAsOperator",
        [
            {"name": "initDelegationApprover", "type": "address"},
            {"name": "allocationDelay", "type": "uint32"},
            {"name": "metadataURI", "type": "string"},
        ],
    ),
    _write(
        "delegateTo",
        [
            {"name": "operator", "type": "address"},
            _named("approverSignatureAndExpiry", _SIGNATURE_WITH_EXPIRY),
            {"name": "approverSalt", "type": "bytes32"},
        ],
    ),
    _write(
        "undelegate",
        [{"name": "staker", "type": "address"}],
        [{"name": "withdrawalRoots", "type": "bytes32[]"}],
    ),
    _write(
        "queueWithdrawals",
        [
            {
                "name": "params",
                "type": "tuple[]",
                "components": [
                    {"name": "strategies", "type": "address[]"},
                    {"name": "depositShares", "type": "uint256[]"},
                    {"name": "__deprecated_withdrawer", "type": "address"},
                ],
            }
        ],
        [{"name": "", "type": "bytes32[]"}],
    ),
    _write(
        "completeQueuedWithdrawal",
        [
            {
                "name": "withdrawal",
                "type": "tuple",
                "components": _WITHDRAWAL_COMPONENTS,
            },
            {"name": "tokens", "type": "address[]"},
            {"name": "receiveAsTokens", "type": "bool"},
        ],
    ),
    _view(
        "delegatedTo",
        [{"name": "staker", "type": "address"}],
        [{"name": "", "type": "address"}],
    ),
    _view(
        "isDelegated",
        [{"name": "staker", "type": "address"}],
        [{"name": "", "type": "bool"}],
    ),
    _view(
        "isOperator",
        [{"name": "operator", "type": "address"}],
        [{"name": "", "type": "bool"}],
    ),
    _view(
        "delegationApprover",
        [{"name": "operator", "type": "address"}],
        [{"name": "", "type": "address"}],
    ),
    _view(
        "operatorShares",
        [
            {"name": "operator", "type": "address"},
            {"name": "strategy", "type": "address"},
        ],
        [{"name": "", "type": "uint256"}],
    ),
    _view(
        "getWithdrawableShares",
        [
            {"name": "staker", "type": "address"},
            {"name": "strategies", "type": "address[]"},
        ],
        [
            {"name": "withdrawableShares", "type": "uint256[]"},
            {"name": "depositShares", "type": "uint256[]"},
        ],
    ),
    _view(
        "getQueuedWithdrawal",
        [{"name": "withdrawalRoot", "type": "bytes32"}],
        [
            {
                "name": "withdrawal",
                "type": "tuple",
                "components": _WITHDRAWAL_COMPONENTS,
            },
            {"name": "shares", "type": "uint256[]"},
        ],
    ),
    _view("minWithdrawalDelayBlocks", [], [{"name": "", "type": "uint32"}]),
    {
        "type": "event",
        "name": "OperatorRegistered",
        "anonymous": False,
        "inputs": [
            {"name": "operator", "type": "address", "indexed": True},
            {"name": "delegationApprover", "type": "address", "indexed": False},
        ],
    },
    {
        "type": "event",
        "name": "StakerDelegated",
        "anonymous": False,
        "inputs": [
            {"name": "staker", "type": "address", "indexed": True},
            {"name": "operator", "type": "address", "indexed": True},
        ],
    },
    {
        "type": "event",
        "name": "StakerUndelegated",
        "anonymous": False,
        "inputs": [
            {"name": "staker", "type": "address", "indexed": True},
            {"name": "operator", "type": "address", "indexed": True},
        ],
    },
    {
        "type": "event",
        "name": "SlashingWithdrawalQueued",
        "anonymous": False,
        "inputs": [
            {"name": "withdrawalRoot", "type": "bytes32", "indexed": False},
            {
                "name": "withdrawal",
                "type": "tuple",
                "indexed": False,
                "components": _WITHDRAWAL_COMPONENTS,
            },
            {"name": "sharesToWithdraw", "type": "uint256[]", "indexed": False},
        ],
    },
    {
        "type": "event",
        "name": "SlashingWithdrawalCompleted",
        "anonymous": False,
        "inputs": [
            {"name": "withdrawalRoot", "type": "bytes32", "indexed": False},
        ],
    },
]

IEIGEN_POD_MANAGER_ABI = [
    _view(
        "ownerToPod",
        [{"name": "podOwner", "type": "address"}],
        [{"name": "", "type": "address"}],
    ),
    _view(
        "hasPod",
        [{"name": "podOwner", "type": "address"}],
        [{"name": "", "type": "bool"}],
    ),
    _view(
        "podOwnerDepositShares",
        [{"name": "podOwner", "type": "address"}],
        [{"name": "", "type": "int256"}],
    ),
    _write("createPod", [], [{"name": "", "type": "address"}]),
    _write(
        "stake",
        [
            {"name": "pubkey", "type": "bytes"},
            {"name": "signature", "type": "bytes"},
            {"name": "depositDataRoot", "type": "bytes32"},
        ],
        payable=True,
    ),
    {
        "type": "event",
        "name": "PodDeployed",
        "anonymous": False,
        "inputs": [
            {"name": "eigenPod", "type": "address", "indexed": True},
            {"name": "podOwner", "type": "address", "indexed": True},
        ],
    },
]

IEIGEN_POD_ABI = [
    _view("podOwner", [], [{"name": "", "type": "address"}]),
    _view(
        "validatorStatus",
        [{"name": "pubkeyHash", "type": "bytes32"}],
        [{"name": "", "type": "uint8"}],
    ),
    _write("activateRestaking", []),
]

IAVS_DIRECTORY_ABI = [
    _view(
        "avsOperatorStatus",
        [
            {"name": "avs", "type": "address"},
            {"name": "operator", "type": "address"},
        ],
        [{"name": "", "type": "uint8"}],
    ),
    _view(
        "calculateOperatorAVSRegistrationDigestHash",
        [
            {"name": "operator", "type": "address"},
            {"name": "avs", "type": "address"},
            {"name": "salt", "type": "bytes32"},
            {"name": "expiry", "type": "uint256"},
        ],
        [{"name": "", "type": "bytes32"}],
    ),
    _write(
        "registerOperatorToAVS",
        [
            {"name": "operator", "type": "address"},
            _named("operatorSignature", _SIGNATURE_WITH_SALT_AND_EXPIRY),
        ],
    ),
    _write(
        "deregisterOperatorFromAVS",
        [{"name": "operator", "type": "address"}],
    ),
    {
        "type": "event",
        "name": "OperatorAVSRegistrationStatusUpdated",
        "anonymous": False,
        "inputs": [
            {"name": "operator", "type": "address", "indexed": True},
            {"name": "avs", "type": "address", "indexed": True},
            {"name": "status", "type": "uint8", "indexed": False},
        ],
    },
]

IREWARDS_COORDINATOR_ABI = [
    _write("setClaimerFor", [{"name": "claimer", "type": "address"}]),
    _view(
        "claimerFor",
        [{"name": "earner", "type": "address"}],
        [{"name": "", "type": "address"}],
    ),
    _view(
        "checkClaim",
        [_named("claim", _REWARDS_MERKLE_CLAIM)],
        [{"name": "", "type": "bool"}],
    ),
    _write(
        "processClaim",
        [
            _named("claim", _REWARDS_MERKLE_CLAIM),
            {"name": "recipient", "type": "address"},
        ],
    ),
    _view(
        "cumulativeClaimed",
        [
            {"name": "claimer", "type": "address"},
            {"name": "token", "type": "address"},
        ],
        [{"name": "", "type": "uint256"}],
    ),
    {
        "type": "event",
        "name": "RewardsClaimed",
        "anonymous": False,
        "inputs": [
            {"name": "root", "type": "bytes32", "indexed": False},
            {"name": "earner", "type": "address", "indexed": True},
            {"name": "claimer", "type": "address", "indexed": True},
            {"name": "recipient", "type": "address", "indexed": True},
            {"name": "token", "type": "address", "indexed": False},
            {"name": "claimedAmount", "type": "uint256", "indexed": False},
        ],
    },
]

IALLOCATION_MANAGER_ABI = [
    _view(
        "getEncumberedMagnitude",
        [
            {"name": "operator", "type": "address"},
            {"name": "strategy", "type": "address"},
        ],
        [{"name": "", "type": "uint64"}],
    ),
    _view(
        "getAllocation",
        [
            {"name": "operator", "type": "address"},
            _named("operatorSet", _OPERATOR_SET),
            {"name": "strategy", "type": "address"},
        ],
        [
            {
                "name": "",
                "type": "tuple",
                "components": [
                    {"name": "currentMagnitude", "type": "uint64"},
                    {"name": "pendingDiff", "type": "int128"},
                    {"name": "effectBlock", "type": "uint32"},
                ],
            }
        ],
    ),
    _write(
        "modifyAllocations",
        [
            {"name": "operator", "type": "address"},
            {
                "name": "params",
                "type": "tuple[]",
                "components": [
                    _named("operatorSet", _OPERATOR_SET),
                    {"name": "strategies", "type": "address[]"},
                    {"name": "newMagnitudes", "type": "uint64[]"},
                ],
            },
        ],
    ),
]

ISTRATEGY_ABI = [
    _view("underlyingToken", [], [{"name": "", "type": "address"}]),
    _view(
        "sharesToUnderlyingView",
        [{"name": "amountShares", "type": "uint256"}],
        [{"name": "", "type": "uint256"}],
    ),
    _view(
        "underlyingToSharesView",
        [{"name": "amountUnderlying", "type": "uint256"}],
        [{"name": "", "type": "uint256"}],
    ),
    _view("totalShares", [], [{"name": "", "type": "uint256"}]),
]

ERC20_ABI = [
    _view("name", [], [{"name": "", "type": "string"}]),
    _view("symbol", [], [{"name": "", "type": "string"}]),
    _view("decimals", [], [{"name": "", "type": "uint8"}]),
    _view(
        "balanceOf",
        [{"name": "account", "type": "address"}],
        [{"name": "", "type": "uint256"}],
    ),
    _view(
        "allowance",
        [
            {"name": "owner", "type": "address"},
            {"name": "spender", "type": "address"},
        ],
        [{"name": "", "type": "uint256"}],
    ),
    _write(
        "approve",
        [
            {"name": "spender", "type": "address"},
            {"name": "amount", "type": "uint256"},
        ],
        [{"name": "", "type": "bool"}],
    ),
]

ABI_BY_ROLE = {
    "StrategyManager": ISTRATEGY_MANAGER_ABI,
    "DelegationManager": IDELEGATION_MANAGER_ABI,
    "EigenPodManager": IEIGEN_POD_MANAGER_ABI,
    "AVSDirectory": IAVS_DIRECTORY_ABI,
    "RewardsCoordinator": IREWARDS_COORDINATOR_ABI,
    "AllocationManager": IALLOCATION_MANAGER_ABI,
    "EigenPod": IEIGEN_POD_ABI,
    "Strategy": ISTRATEGY_ABI,
    "ERC20": ERC20_ABI,
}
