"""
Unit tests for the monetary value objects.

Verifies:
- Currency normalization (Bs aliases, unknown codes)
- Money arithmetic, currency mixing, half-up rounding and display format
- CurrencyPair arithmetic and totals
- Percentage range validation and absent-vs-zero construction
"""

from decimal import Decimal

import pytest

from cuadre_kernel.domain.values import (
    BS,
    USD,
    ZERO_PERCENT,
    Currency,
    CurrencyPair,
    Money,
    Percentage,
    quantize_money,
    to_decimal,
)
from cuadre_kernel.exceptions import (
    CurrencyMismatchError,
    InvalidAmountError,
    InvalidCurrencyError,
    PercentageOutOfRangeError,
)


class TestCurrency:
    """Currency codes and aliases."""

    @pytest.mark.parametrize("alias", ["Bs", "BS", "bs.", "VES", "VEF"])
    def test_bolivar_aliases_normalize(self, alias):
        """Every bolivar label maps to VES."""
        assert Currency(alias) == BS

    def test_dollar_sign_is_usd(self):
        """The dollar sign is accepted as USD."""
        assert Currency("$") == USD

    def test_unknown_code_rejected(self):
        """Anything but Bs/USD raises."""
        with pytest.raises(InvalidCurrencyError):
            Currency("EUR")

    def test_local_flag(self):
        """Only the bolivar is local."""
        assert BS.is_local
        assert not USD.is_local


class TestMoney:
    """Money arithmetic and formatting."""

    def test_add_same_currency(self):
        """Amounts in one currency add exactly."""
        total = Money.of("0.1", "Bs") + Money.of("0.2", "Bs")
        assert total.amount == Decimal("0.3")

    def test_mixing_currencies_raises(self):
        """Bs and USD never add implicitly."""
        with pytest.raises(CurrencyMismatchError):
            Money.of("1", "Bs") + Money.of("1", "USD")

    def test_round_is_half_up(self):
        """0.005 rounds up, not to even."""
        assert Money.of("2.345", "USD").round().amount == Decimal("2.35")
        assert Money.of("2.355", "USD").round().amount == Decimal("2.36")

    def test_format_bolivar_venezuelan_grouping(self):
        """Bs amounts use dot thousands and comma decimals."""
        assert Money.of("1234.565", "Bs").format() == "Bs 1.234,57"

    def test_format_dollar_us_grouping(self):
        """USD amounts use comma thousands and dot decimals."""
        assert Money.of("1234.5", "USD").format() == "$1,234.50"

    def test_format_negative(self):
        """The sign precedes the symbol."""
        assert Money.of("-50", "USD").format() == "-$50.00"

    def test_float_goes_through_str(self):
        """Floats keep their printed value."""
        assert to_decimal(0.1) == Decimal("0.1")

    def test_boolean_is_not_an_amount(self):
        """True is rejected rather than read as 1."""
        with pytest.raises(InvalidAmountError):
            to_decimal(True)

    def test_quantize_money(self):
        """Report-boundary rounding is half-up."""
        assert quantize_money(Decimal("10.125")) == Decimal("10.13")


class TestCurrencyPair:
    """Bs/USD pairs."""

    def test_arithmetic(self):
        """Each side is combined independently."""
        a = CurrencyPair.of("100", "10")
        b = CurrencyPair.of("40", "3")
        assert a - b == CurrencyPair.of("60", "7")
        assert a + b == CurrencyPair.of("140", "13")
        assert -a == CurrencyPair.of("-100", "-10")

    def test_total(self):
        """total() sums an iterable, empty is zero."""
        assert CurrencyPair.total([]) == CurrencyPair.zero()
        assert CurrencyPair.total(
            [CurrencyPair.of(1, 2), CurrencyPair.of(3, 4)]
        ) == CurrencyPair.of(4, 6)

    def test_is_zero(self):
        """Only both sides zero is zero."""
        assert CurrencyPair.zero().is_zero
        assert not CurrencyPair.of(0, "0.01").is_zero


class TestPercentage:
    """Percentages in [0, 100]."""

    def test_apply(self):
        """10% of 1000 is 100."""
        assert Percentage(10).apply(Decimal("1000")) == Decimal("100")

    @pytest.mark.parametrize("value", ["-0.01", "100.01", "250"])
    def test_out_of_range(self, value):
        """Values outside [0, 100] raise."""
        with pytest.raises(PercentageOutOfRangeError):
            Percentage.of(value, "commission_bs")

    def test_bounds_inclusive(self):
        """0 and 100 are both valid."""
        assert Percentage.of("0").is_zero
        assert Percentage.of("100").value == Decimal("100")

    def test_optional_none_is_absent(self):
        """None stays None, distinct from zero."""
        assert Percentage.optional(None) is None
        assert Percentage.optional(0) == ZERO_PERCENT

    def test_error_names_field(self):
        """The error carries the field name."""
        with pytest.raises(PercentageOutOfRangeError, match="participation_usd"):
            Percentage.of(101, "participation_usd")
