from __future__ import annotations

from collections.abc import Mapping
from decimal import Decimal, InvalidOperation, localcontext
from typing import Any

from hexbytes import HexBytes

from eigenlayer_nodes.core.constants.base import ONE_GWEI
from eigenlayer_nodes.core.errors import ValidationError

# Enough digits for any uint256 at any sane decimals.
_DECIMAL_PRECISION = 120
# Bounds ``10**shift`` for exponent-notation input such as "1e999999999".
_MAX_PARSED_DIGITS = 1024


def _to_decimal(value: str | int | Decimal) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValidationError(f"Invalid numeric value: {value!r}")
    if isinstance(value, int):
        return Decimal(value)
    return Decimal(str(value).strip())


def _check_decimals(decimals: int) -> int:
    d = int(decimals)
    if d < 0:
        raise ValidationError("decimals must be non-negative")
    return d


def format_units(value: int | str, decimals: int = 18) -> str:
    """Render an integer amount as a decimal string.

    Always carries at least one fractional digit (``"0.0"``, ``"1.5"``) and
    strips trailing zeros otherwise.
    """
    d = _check_decimals(decimals)
    try:
        raw = int(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"Invalid integer amount: {value!r}") from exc

    sign = "-" if raw < 0 else ""
    whole, frac = divmod(abs(raw), 10**d)
    frac_str = str(frac).rjust(d, "0").rstrip("0") if d else ""
    return f"{sign}{whole}.{frac_str or '0'}"


def parse_units(value: str | int | Decimal, decimals: int = 18) -> int:
    """Exact decimal-to-integer scaling; never rounds, whatever the magnitude."""
    d = _check_decimals(decimals)
    try:
        amt = _to_decimal(value)
    except InvalidOperation as exc:
        raise ValidationError(f"Invalid decimal amount: {value!r}") from exc
    if not amt.is_finite():
        raise ValidationError(f"Invalid decimal amount: {value!r}")

    # Decimal construction is exact; scale the coefficient with integer math
    # instead of context arithmetic, which rounds past its precision.
    sign, digits, exponent = amt.as_tuple()
    coefficient = int("".join(map(str, digits)) or "0")
    shift = exponent + d
    if len(digits) + shift > _MAX_PARSED_DIGITS:
        raise ValidationError(f"Amount too large: {value!r}")
    if shift >= 0:
        raw = coefficient * 10**shift
    else:
        raw, remainder = divmod(coefficient, 10**-shift)
        if remainder:
            raise ValidationError(
                f"Too many decimal places in {value!r} for {d} decimals"
            )
    return -raw if sign else raw


def format_ether(value: int | str) -> str:
    return format_units(value, 18)


def parse_ether(value: str | int | Decimal) -> int:
    return parse_units(value, 18)


def gwei_to_wei(gwei: int) -> int:
    return int(gwei) * ONE_GWEI


def wei_to_gwei(wei: int) -> int:
    return int(wei) // ONE_GWEI


def format_big_int(
    value: int,
    *,
    decimals: int = 18,
    precision: int = 6,
    symbol: str | None = None,
) -> str:
    """Human display string, rounded to ``precision`` digits.

    Non-zero values too small for ``precision`` fall back to scientific notation.
    """
    with localcontext() as ctx:
        ctx.prec = _DECIMAL_PRECISION
        num = Decimal(int(value)).scaleb(-_check_decimals(decimals))
        threshold = Decimal(1).scaleb(-int(precision))
        if num != 0 and abs(num) < threshold:
            result = f"{num:.{int(precision)}e}"
        else:
            result = f"{num:.{int(precision)}f}"
            if "." in result:
                result = result.rstrip("0").rstrip(".")
    return f"{result} {symbol}" if symbol else result


def to_big_int(value: str | int | float) -> int:
    """Coerce to an integer, truncating any fractional part."""
    if isinstance(value, bool):
        raise ValidationError(f"Invalid integer value: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        try:
            return int(value)
        except (ValueError, OverflowError) as exc:
            raise ValidationError(f"Invalid integer value: {value!r}") from exc
    s = str(value).strip()
    if not s:
        raise ValidationError("Empty integer value")
    try:
        if s.lower().startswith(("0x", "-0x")):
            return int(s, 16)
        if "." in s:
            whole, _frac = s.split(".", 1)
            return int(whole or "0")
        return int(s)
    except ValueError as exc:
        raise ValidationError(f"Invalid integer value: {value!r}") from exc


def shares_to_amount(shares: int, total_shares: int, total_underlying: int) -> int:
    if total_shares == 0:
        return 0
    return shares * total_underlying // total_shares


def amount_to_shares(amount: int, total_shares: int, total_underlying: int) -> int:
    if total_underlying == 0:
        return amount
    return amount * total_shares // total_underlying


def serialize_result(obj: Any) -> Any:
    """Make a chain result transport-safe.

    Integers become decimal strings, byte strings become ``0x`` hex, tuples and
    other sequences become lists. Bools, None and strings pass through.
    """
    if obj is None or isinstance(obj, (bool, str)):
        return obj
    if isinstance(obj, int):
        return str(obj)
    if isinstance(obj, (bytes, bytearray, HexBytes)):
        return "0x" + bytes(obj).hex()
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, Mapping):
        return {str(k): serialize_result(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple, set, frozenset)):
        return [serialize_result(v) for v in obj]
    return obj
