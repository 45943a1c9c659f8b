"""ABI helpers for building raw call data outside a ``web3`` contract object.

The multicall engine packs many sub-calls into one ``aggregate3`` request, so
each sub-call is encoded here (selector + ``eth_abi`` arguments) and each
sub-result decoded independently. ``cast_args`` coerces host-supplied strings
(``"1000"``, ``"0xabc"``, ``"true"``) to the Python types ``eth_abi`` expects,
recursing through arrays and tuple/struct components.
"""

from __future__ import annotations

from typing import Any

from eth_abi import decode, encode
from eth_utils import function_signature_to_4byte_selector
from web3 import Web3

from eigenlayer_nodes.core.errors import DecodeError, ValidationError


def cast_single(arg: Any, abi_type: str) -> Any:
    """Cast a single Python value to its Solidity ABI type."""
    t = abi_type.strip()

    if t == "bool":
        if isinstance(arg, bool):
            return arg
        if isinstance(arg, str):
            return arg.strip().lower() in ("true", "1", "yes")
        return bool(arg)

    if t.startswith("uint") or t.startswith("int"):
        if isinstance(arg, str) and arg.strip().lower().startswith("0x"):
            return int(arg.strip(), 16)
        return int(arg)

    if t == "address":
        return Web3.to_checksum_address(str(arg).strip())

    if t == "string":
        return str(arg)

    if t.startswith("bytes"):
        if isinstance(arg, (bytes, bytearray)):
            return bytes(arg)
        s = str(arg)
        if s.startswith("0x"):
            return bytes.fromhex(s[2:])
        return s.encode("utf-8")

    return arg


def cast_args(args: list[Any], abi_inputs: list[dict[str, Any]]) -> list[Any]:
    """Recursively cast a list of arguments to match ABI input definitions."""
    if not args and not abi_inputs:
        return []

    if len(args) != len(abi_inputs):
        raise ValidationError(
            f"Argument count mismatch: got {len(args)}, expected {len(abi_inputs)}"
        )

    return [_cast_value(arg, inp) for arg, inp in zip(args, abi_inputs, strict=True)]


def _cast_value(arg: Any, inp: dict[str, Any]) -> Any:
    t = inp.get("type", "").strip()
    components = inp.get("components")

    # Array types: e.g. "uint256[]", "address[3]", "tuple[]"
    if t.endswith("]"):
        element_type = t[: t.rindex("[")]
        if not isinstance(arg, (list, tuple)):
            raise TypeError(f"Expected list for {t}, got {type(arg).__name__}")
        element_inp = {"type": element_type}
        if components:
            element_inp["components"] = components
        return [_cast_value(item, element_inp) for item in arg]

    if t == "tuple" and components:
        if isinstance(arg, dict):
            ordered = [
                arg.get(c["name"], arg.get(str(i))) for i, c in enumerate(components)
            ]
            return tuple(cast_args(ordered, components))
        if isinstance(arg, (list, tuple)):
            return tuple(cast_args(list(arg), components))
        raise TypeError(
            f"Expected dict/list/tuple for tuple type, got {type(arg).__name__}"
        )

    return cast_single(arg, t)


def canonical_type(inp: dict[str, Any]) -> str:
    t = inp["type"]
    if not t.startswith("tuple"):
        return t
    inner = ",".join(canonical_type(c) for c in inp.get("components", []))
    return f"({inner}){t[len('tuple'):]}"


def get_function_abi(
    abi: list[dict[str, Any]], function_name: str, *, arg_count: int | None = None
) -> dict[str, Any]:
    matches = [
        entry
        for entry in abi
        if entry.get("type") == "function" and entry.get("name") == function_name
    ]
    if not matches:
        raise ValidationError(f"Function {function_name} not found in ABI")
    if arg_count is not None:
        for entry in matches:
            if len(entry.get("inputs", [])) == arg_count:
                return entry
    return matches[0]


def function_selector(fn_abi: dict[str, Any]) -> bytes:
    types = ",".join(canonical_type(i) for i in fn_abi.get("inputs", []))
    return function_signature_to_4byte_selector(f"{fn_abi['name']}({types})")


def encode_function_call(
    abi: list[dict[str, Any]], function_name: str, args: list[Any] | tuple[Any, ...]
) -> bytes:
    fn_abi = get_function_abi(abi, function_name, arg_count=len(args))
    inputs = fn_abi.get("inputs", [])
    types = [canonical_type(i) for i in inputs]
    return function_selector(fn_abi) + encode(types, cast_args(list(args), inputs))


def decode_function_result(
    abi: list[dict[str, Any]], function_name: str, data: bytes
) -> tuple[Any, ...]:
    fn_abi = get_function_abi(abi, function_name)
    types = [canonical_type(o) for o in fn_abi.get("outputs", [])]
    try:
        return tuple(decode(types, bytes(data)))
    except Exception as exc:
        raise DecodeError(f"{function_name}: {exc}") from exc
