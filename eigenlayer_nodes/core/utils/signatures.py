"""EIP-712 helpers for EigenLayer's signed authorizations.

All four schemas share the ``{"EigenLayer", "1", chainId, verifyingContract}``
domain; the verifying contract is whichever core contract checks the
signature (DelegationManager, StrategyManager or AVSDirectory).
"""

from __future__ import annotations

import os
import time
from typing import Any, NamedTuple

from eth_account import Account
from eth_account.messages import encode_typed_data

from eigenlayer_nodes.core.errors import ValidationError
from eigenlayer_nodes.core.utils.wallets import Signer

EIGENLAYER_DOMAIN_NAME = "EigenLayer"
EIGENLAYER_DOMAIN_VERSION = "1"

DELEGATION_APPROVAL_TYPES = {
    "DelegationApproval": [
        {"name": "delegationApprover", "type": "address"},
        {"name": "staker", "type": "address"},
        {"name": "operator", "type": "address"},
        {"name": "salt", "type": "bytes32"},
        {"name": "expiry", "type": "uint256"},
    ],
}

STAKER_DELEGATION_TYPES = {
    "StakerDelegation": [
        {"name": "staker", "type": "address"},
        {"name": "operator", "type": "address"},
        {"name": "nonce", "type": "uint256"},
        {"name": "expiry", "type": "uint256"},
    ],
}

DEPOSIT_TYPES = {
    "Deposit": [
        {"name": "staker", "type": "address"},
        {"name": "strategy", "type": "address"},
        {"name": "token", "type": "address"},
        {"name": "amount", "type": "uint256"},
        {"name": "nonce", "type": "uint256"},
        {"name": "expiry", "type": "uint256"},
    ],
}

AVS_REGISTRATION_TYPES = {
    "OperatorAVSRegistration": [
        {"name": "operator", "type": "address"},
        {"name": "avs", "type": "address"},
        {"name": "salt", "type": "bytes32"},
        {"name": "expiry", "type": "uint256"},
    ],
}


class SignatureWithExpiry(NamedTuple):
    signature: bytes
    expiry: int


def get_eigenlayer_domain(
    name: str, chain_id: int, verifying_contract: str
) -> dict[str, Any]:
    return {
        "name": name,
        "version": EIGENLAYER_DOMAIN_VERSION,
        "chainId": int(chain_id),
        "verifyingContract": verifying_contract,
    }


def _salt_bytes(salt: str | bytes) -> bytes:
    if isinstance(salt, (bytes, bytearray)):
        raw = bytes(salt)
    else:
        s = str(salt)
        try:
            raw = bytes.fromhex(s[2:] if s.startswith("0x") else s)
        except ValueError as exc:
            raise ValidationError(f"Invalid salt: {salt}") from exc
    if len(raw) != 32:
        raise ValidationError(f"Salt must be 32 bytes, got {len(raw)}")
    return raw


def _strip_domain_type(types: dict[str, Any]) -> dict[str, Any]:
    # eth_account derives the domain type itself and rejects an explicit one.
    return {k: v for k, v in types.items() if k != "EIP712Domain"}


def sign_typed_data(
    signer: Signer,
    domain: dict[str, Any],
    types: dict[str, Any],
    value: dict[str, Any],
) -> str:
    return signer.sign_typed_data(domain, _strip_domain_type(types), value)


def recover_typed_data_signer(
    domain: dict[str, Any],
    types: dict[str, Any],
    value: dict[str, Any],
    signature: str | bytes,
) -> str:
    message = encode_typed_data(
        domain_data=domain,
        message_types=_strip_domain_type(types),
        message_data=value,
    )
    return Account.recover_message(message, signature=signature)


def sign_delegation_approval(
    signer: Signer,
    *,
    chain_id: int,
    delegation_manager: str,
    delegation_approver: str,
    staker: str,
    operator: str,
    salt: str | bytes,
    expiry: int,
) -> str:
    domain = get_eigenlayer_domain(EIGENLAYER_DOMAIN_NAME, chain_id, delegation_manager)
    value = {
        "delegationApprover": delegation_approver,
        "staker": staker,
        "operator": operator,
        "salt": _salt_bytes(salt),
        "expiry": int(expiry),
    }
    return sign_typed_data(signer, domain, DELEGATION_APPROVAL_TYPES, value)


def sign_staker_delegation(
    signer: Signer,
    *,
    chain_id: int,
    delegation_manager: str,
    staker: str,
    operator: str,
    nonce: int,
    expiry: int,
) -> str:
    domain = get_eigenlayer_domain(EIGENLAYER_DOMAIN_NAME, chain_id, delegation_manager)
    value = {
        "staker": staker,
        "operator": operator,
        "nonce": int(nonce),
        "expiry": int(expiry),
    }
    return sign_typed_data(signer, domain, STAKER_DELEGATION_TYPES, value)


def sign_deposit(
    signer: Signer,
    *,
    chain_id: int,
    strategy_manager: str,
    staker: str,
    strategy: str,
    token: str,
    amount: int,
    nonce: int,
    expiry: int,
) -> str:
    domain = get_eigenlayer_domain(EIGENLAYER_DOMAIN_NAME, chain_id, strategy_manager)
    value = {
        "staker": staker,
        "strategy": strategy,
        "token": token,
        "amount": int(amount),
        "nonce": int(nonce),
        "expiry": int(expiry),
    }
    return sign_typed_data(signer, domain, DEPOSIT_TYPES, value)


def sign_avs_registration(
    signer: Signer,
    *,
    chain_id: int,
    avs_directory: str,
    operator: str,
    avs: str,
    salt: str | bytes,
    expiry: int,
) -> str:
    domain = get_eigenlayer_domain(EIGENLAYER_DOMAIN_NAME, chain_id, avs_directory)
    value = {
        "operator": operator,
        "avs": avs,
        "salt": _salt_bytes(salt),
        "expiry": int(expiry),
    }
    return sign_typed_data(signer, domain, AVS_REGISTRATION_TYPES, value)


def generate_salt() -> str:
    return "0x" + os.urandom(32).hex()


def calculate_expiry(hours_from_now: float = 24) -> int:
    return int(time.time()) + int(hours_from_now * 3600)


def empty_signature() -> SignatureWithExpiry:
    """Placeholder for flows where no third-party approver signs."""
    return SignatureWithExpiry(b"", 0)
