"""
Tests for reply formatting helpers.
"""
from decimal import Decimal

from textchain.utils.formatting import format_amount, format_usd, short_address, to_decimal


class TestFormatting:

    def test_format_amount(self):
        assert format_amount(Decimal("10")) == "10"
        assert format_amount(Decimal("10.50")) == "10.5"
        assert format_amount("100.0") == "100"
        assert format_amount("0.0001") == "0.0001"
        assert format_amount(None) == "0"
        assert format_amount("garbage") == "0"

    def test_format_amount_beyond_context_precision(self):
        """Test amounts wider than 28 digits render in full."""
        assert format_amount(Decimal("1e30")) == "1" + "0" * 30
        assert format_amount("100000000000000000000000000000") == "1" + "0" * 29
        assert format_amount(Decimal("1E+2")) == "100"
        assert format_amount("1234567890123456789012345678.125") == "1234567890123456789012345678.125"

    def test_format_usd(self):
        assert format_usd(Decimal("10")) == "10.00"
        assert format_usd("2.5") == "2.50"
        assert format_usd(None) == "0.00"
        assert format_usd(Decimal("1e30")) == "1" + "0" * 30 + ".00"

    def test_to_decimal(self):
        assert to_decimal("1.5") == Decimal("1.5")
        assert to_decimal(2) == Decimal("2")
        assert to_decimal(True) is None
        assert to_decimal("nan") is None

    def test_short_address(self):
        assert short_address("0x1234567890abcdef1234567890abcdef12345678") == "0x1234...5678"
        assert short_address("0x1234") == "0x1234"
