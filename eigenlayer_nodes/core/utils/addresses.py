from __future__ import annotations

from collections.abc import Sequence

from eth_utils import is_address
from eth_utils import to_checksum_address as _eth_to_checksum_address

from eigenlayer_nodes.core.constants.base import ZERO_ADDRESS
from eigenlayer_nodes.core.errors import ValidationError

__all__ = [
    "ZERO_ADDRESS",
    "addresses_equal",
    "is_valid_address",
    "is_zero_address",
    "to_checksum_address",
    "validate_address",
    "validate_addresses",
]


def is_valid_address(address: object) -> bool:
    if not isinstance(address, str):
        return False
    s = address.strip()
    if len(s) != 42 or not s.startswith("0x"):
        return False
    return bool(is_address(s))


def to_checksum_address(address: str) -> str:
    if not is_valid_address(address):
        raise ValidationError(f"Invalid address: {address}")
    return _eth_to_checksum_address(address.strip())


def validate_address(address: str | None, field_name: str = "address") -> str:
    if address is None or not str(address).strip():
        raise ValidationError(f"{field_name} is required")
    if not is_valid_address(address):
        raise ValidationError(f"Invalid {field_name}: {address}")
    return _eth_to_checksum_address(str(address).strip())


def validate_addresses(
    addresses: Sequence[str] | None, field_name: str = "addresses"
) -> list[str]:
    if not addresses:
        raise ValidationError(f"{field_name} array is required and cannot be empty")
    return [
        validate_address(addr, f"{field_name}[{i}]") for i, addr in enumerate(addresses)
    ]


def addresses_equal(a: str | None, b: str | None) -> bool:
    if not a or not b:
        return False
    return str(a).strip().lower() == str(b).strip().lower()


def is_zero_address(address: str | None) -> bool:
    return addresses_equal(address, ZERO_ADDRESS)
