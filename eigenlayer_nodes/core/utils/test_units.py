from decimal import Decimal

import pytest
from hexbytes import HexBytes

from eigenlayer_nodes.core.errors import ValidationError
from eigenlayer_nodes.core.utils.units import (
    amount_to_shares,
    format_big_int,
    format_ether,
    format_units,
    gwei_to_wei,
    parse_ether,
    parse_units,
    serialize_result,
    shares_to_amount,
    to_big_int,
    wei_to_gwei,
)


class TestFormatUnits:
    def test_zero_keeps_fraction(self):
        assert format_ether(0) == "0.0"

    def test_strips_trailing_zeros(self):
        assert format_units(1_500_000, 6) == "1.5"
        assert format_ether(10**18) == "1.0"

    def test_negative(self):
        assert format_ether(-25 * 10**16) == "-0.25"

    def test_zero_decimals(self):
        assert format_units(42, 0) == "42.0"

    def test_rejects_non_integer(self):
        with pytest.raises(ValidationError):
            format_units("abc")


class TestParseUnits:
    def test_fractional(self):
        assert parse_units("1.5", 6) == 1_500_000
        assert parse_ether("0.000000000000000001") == 1

    def test_too_many_decimals(self):
        with pytest.raises(ValidationError, match="Too many decimal places"):
            parse_units("1.2345", 2)

    def test_invalid(self):
        with pytest.raises(ValidationError):
            parse_units("one")
        with pytest.raises(ValidationError):
            parse_units("inf")

    def test_large_values_exact(self):
        assert parse_ether("123456789012345678901234567890") == (
            123456789012345678901234567890 * 10**18
        )

    def test_accepts_decimal(self):
        assert parse_units(Decimal("2.5"), 1) == 25


@pytest.mark.parametrize("decimals", [0, 1, 6, 8, 18, 27])
@pytest.mark.parametrize(
    "value",
    [0, 1, 9, 10, 999_999, 10**18, 10**18 + 1, 2**256 - 1, 10**130 + 1],
)
def test_parse_inverts_format(value, decimals):
    assert parse_units(format_units(value, decimals), decimals) == value


def test_parse_units_is_exact_beyond_decimal_precision():
    digits = "1" + "0" * 150 + "7"
    assert parse_units(digits + ".25", 2) == int(digits + "25")
    with pytest.raises(ValidationError, match="Too many decimal places"):
        parse_units(digits + ".251", 2)


def test_parse_units_exponent_notation():
    assert parse_units("1.5e3", 0) == 1500
    assert parse_units("-2.5", 1) == -25
    with pytest.raises(ValidationError, match="Amount too large"):
        parse_units("1e999999999", 18)


def test_gwei_round_trip_helpers():
    assert gwei_to_wei(3) == 3_000_000_000
    assert wei_to_gwei(3_999_999_999) == 3


class TestFormatBigInt:
    def test_rounds_to_precision(self):
        assert format_big_int(1_234_567_890_000_000_000, precision=2) == "1.23"

    def test_small_values_use_scientific(self):
        assert format_big_int(1, precision=6) == "1.000000e-18"

    def test_symbol_suffix(self):
        assert format_big_int(2 * 10**18, symbol="ETH") == "2 ETH"


class TestToBigInt:
    def test_truncates_fraction(self):
        assert to_big_int("12.99") == 12
        assert to_big_int(3.7) == 3

    def test_negative_floats_truncate_like_strings(self):
        assert to_big_int(-1.5) == to_big_int("-1.5") == -1
        assert to_big_int(-0.9) == 0

    def test_rejects_non_finite_float(self):
        with pytest.raises(ValidationError):
            to_big_int(float("nan"))
        with pytest.raises(ValidationError):
            to_big_int(float("inf"))

    def test_hex(self):
        assert to_big_int("0x10") == 16

    def test_rejects_bool_and_blank(self):
        with pytest.raises(ValidationError):
            to_big_int(True)
        with pytest.raises(ValidationError):
            to_big_int("  ")


def test_share_conversions():
    assert shares_to_amount(50, 100, 300) == 150
    assert shares_to_amount(50, 0, 300) == 0
    assert amount_to_shares(150, 100, 300) == 50
    assert amount_to_shares(150, 100, 0) == 150


def test_serialize_result_nested():
    out = serialize_result(
        {
            "n": 2**200,
            "ok": True,
            "none": None,
            "raw": HexBytes("0xdead"),
            "items": (1, b"\x01", ["x"]),
        }
    )
    assert out == {
        "n": str(2**200),
        "ok": True,
        "none": None,
        "raw": "0xdead",
        "items": ["1", "0x01", ["x"]],
    }
