"""Currency -- the two operating currencies and their display conventions."""

from dataclasses import dataclass
from decimal import Decimal
from typing import ClassVar


@dataclass(frozen=True)
class CurrencyInfo:
    """Precision and display conventions for one operating currency."""

    code: str
    decimal_places: int
    name: str
    symbol: str
    thousands_separator: str
    decimal_separator: str

    @property
    def quantize_exponent(self) -> Decimal:
        """Exponent for Decimal.quantize() at this currency's precision."""
        if self.decimal_places == 0:
            return Decimal("1")
        return Decimal("0." + "0" * self.decimal_places)


class CurrencyRegistry:
    """Registry of the currencies a cuadre is reconciled in.

    Agencies operate in Venezuelan bolivars (shown as "Bs") and US dollars.
    Bolivar amounts are displayed the Venezuelan way (``1.234,56``), dollar
    amounts the US way (``1,234.56``).
    """

    LOCAL = "VES"
    USD = "USD"

    _CURRENCIES: ClassVar[dict[str, CurrencyInfo]] = {
        "VES": CurrencyInfo("VES", 2, "Bolivar", "Bs", ".", ","),
        "USD": CurrencyInfo("USD", 2, "US Dollar", "$", ",", "."),
    }

    # Labels used on cashier screens and stored in older records
    _ALIASES: ClassVar[dict[str, str]] = {
        "BS": "VES",
        "BS.": "VES",
        "VEF": "VES",
        "$": "USD",
    }

    @classmethod
    def normalize(cls, code: str) -> str | None:
        """Map a code or alias to its canonical code, or None if unknown."""
        if not code:
            return None
        candidate = code.strip().upper()
        candidate = cls._ALIASES.get(candidate, candidate)
        return candidate if candidate in cls._CURRENCIES else None

    @classmethod
    def is_valid(cls, code: str) -> bool:
        return cls.normalize(code) is not None

    @classmethod
    def get_info(cls, code: str) -> CurrencyInfo | None:
        canonical = cls.normalize(code)
        return cls._CURRENCIES.get(canonical) if canonical else None

    @classmethod
    def get_decimal_places(cls, code: str) -> int:
        info = cls.get_info(code)
        return info.decimal_places if info else 2

    @classmethod
    def all_codes(cls) -> frozenset[str]:
        return frozenset(cls._CURRENCIES)
