"""
Values -- Immutable, self-validating monetary value objects.

Responsibility:
    Provides the value types every cuadre computation is written in:
    Currency, Money, CurrencyPair (a Bs/USD amount pair) and Percentage,
    plus the parsing and formatting helpers used at the edges.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Imported by engines and services. No outward dependencies except
    cuadre_kernel.domain.currency and cuadre_kernel.exceptions.

Invariants enforced:
    - Amounts are Decimal, never float. Floats are converted through str()
      so 0.1 stays 0.1.
    - Arithmetic never mixes Bs and USD implicitly.
    - Nothing is rounded during a computation; round() / format() are only
      called when an amount leaves the engine (display, report).
    - Rounding is ROUND_HALF_UP, never banker's rounding.
    - Percentages live in [0, 100].

Failure modes:
    - InvalidCurrencyError for anything other than Bs/VES or USD.
    - CurrencyMismatchError when arithmetic mixes currencies.
    - InvalidAmountError when text cannot be parsed as an amount.
    - PercentageOutOfRangeError outside [0, 100].
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from cuadre_kernel.domain.currency import CurrencyRegistry
from cuadre_kernel.exceptions import (
    CurrencyMismatchError,
    InvalidAmountError,
    InvalidCurrencyError,
    PercentageOutOfRangeError,
)

ZERO = Decimal("0")
HUNDRED = Decimal("100")


def to_decimal(value: Any) -> Decimal:
    """Convert int/str/float/Decimal/None to Decimal (None -> 0)."""
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise InvalidAmountError(value, "booleans are not amounts")
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise InvalidAmountError(value) from e


def parse_amount(text: str | int | float | Decimal | None) -> Decimal:
    """Parse an amount typed by a cashier.

    Accepts Venezuelan (``1.000,50``) and US (``1,000.50``) grouping, plain
    numbers, and blank input (zero). A lone comma followed by at most two
    digits is a decimal comma (``12,5``); otherwise commas group thousands.
    Several dots with no comma are thousands separators (``1.000.000``).
    """
    if text is None:
        return ZERO
    if not isinstance(text, str):
        return to_decimal(text)

    clean = text.strip().replace(" ", "")
    for label in ("Bs.", "Bs", "$"):
        clean = clean.replace(label, "")
    if not clean:
        return ZERO

    has_comma = "," in clean
    has_dot = "." in clean
    if has_comma and has_dot:
        if clean.rfind(",") > clean.rfind("."):
            clean = clean.replace(".", "").replace(",", ".")
        else:
            clean = clean.replace(",", "")
    elif has_comma:
        parts = clean.split(",")
        if len(parts) == 2 and len(parts[1]) <= 2:
            clean = clean.replace(",", ".")
        else:
            clean = clean.replace(",", "")
    elif clean.count(".") > 1:
        clean = clean.replace(".", "")

    try:
        parsed = Decimal(clean)
    except InvalidOperation as e:
        raise InvalidAmountError(text) from e
    if not parsed.is_finite():
        raise InvalidAmountError(text, "amount must be finite")
    return parsed


def quantize_money(value: Decimal, places: int = 2) -> Decimal:
    """Round half-up to ``places`` decimals. Display/report boundary only."""
    exponent = Decimal(1).scaleb(-places)
    return to_decimal(value).quantize(exponent, rounding=ROUND_HALF_UP)


@dataclass(frozen=True, slots=True)
class Currency:
    """Operating currency code (VES shown as "Bs", or USD)."""

    code: str

    def __post_init__(self) -> None:
        canonical = CurrencyRegistry.normalize(self.code)
        if canonical is None:
            raise InvalidCurrencyError(self.code)
        object.__setattr__(self, "code", canonical)

    @property
    def decimal_places(self) -> int:
        return CurrencyRegistry.get_decimal_places(self.code)

    @property
    def symbol(self) -> str:
        info = CurrencyRegistry.get_info(self.code)
        return info.symbol if info else self.code

    @property
    def is_local(self) -> bool:
        return self.code == CurrencyRegistry.LOCAL

    def __str__(self) -> str:
        return self.code

    def __repr__(self) -> str:
        return f"Currency({self.code!r})"


BS = Currency(CurrencyRegistry.LOCAL)
USD = Currency(CurrencyRegistry.USD)


@dataclass(frozen=True, slots=True)
class Money:
    """
    Monetary amount paired with its currency.

    Guarantees:
        - amount is always a Decimal
        - Arithmetic and comparison require the same currency
        - Never auto-rounds; call round() or format() at the boundary
    """

    amount: Decimal
    currency: Currency

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", to_decimal(self.amount))
        if isinstance(self.currency, str):
            object.__setattr__(self, "currency", Currency(self.currency))
        elif not isinstance(self.currency, Currency):
            raise TypeError(f"currency must be Currency or str, got {type(self.currency)}")

    @classmethod
    def of(cls, amount: Decimal | str | int, currency: str | Currency) -> Money:
        return cls(amount=to_decimal(amount), currency=currency)

    @classmethod
    def zero(cls, currency: str | Currency) -> Money:
        return cls(amount=ZERO, currency=currency)

    @property
    def is_zero(self) -> bool:
        return self.amount == ZERO

    def round(self, rounding: str = ROUND_HALF_UP) -> Money:
        """Round to the currency's decimal places (half-up by default)."""
        exponent = Decimal(1).scaleb(-self.currency.decimal_places)
        return Money(self.amount.quantize(exponent, rounding=rounding), self.currency)

    def format(self) -> str:
        """Render for display, e.g. ``Bs 1.234,56`` or ``$1,234.56``."""
        info = CurrencyRegistry.get_info(self.currency.code)
        rounded = self.round().amount
        sign = "-" if rounded < 0 else ""
        body = f"{abs(rounded):,.{self.currency.decimal_places}f}"
        if info is not None and info.thousands_separator == ".":
            body = body.replace(",", "\x00").replace(".", ",").replace("\x00", ".")
        if self.currency.is_local:
            return f"{sign}{self.currency.symbol} {body}"
        return f"{sign}{self.currency.symbol}{body}"

    def _check(self, other: Money, operation: str) -> None:
        if self.currency != other.currency:
            raise CurrencyMismatchError(
                self.currency.code, other.currency.code, operation
            )

    def __add__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        self._check(other, "add")
        return Money(self.amount + other.amount, self.currency)

    def __sub__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        self._check(other, "subtract")
        return Money(self.amount - other.amount, self.currency)

    def __neg__(self) -> Money:
        return Money(-self.amount, self.currency)

    def __abs__(self) -> Money:
        return Money(abs(self.amount), self.currency)

    def __mul__(self, factor: Decimal | int | str) -> Money:
        if isinstance(factor, float):
            return NotImplemented
        if isinstance(factor, (int, str)):
            factor = Decimal(str(factor))
        if not isinstance(factor, Decimal):
            return NotImplemented
        return Money(self.amount * factor, self.currency)

    def __rmul__(self, factor: Decimal | int | str) -> Money:
        return self.__mul__(factor)

    def __lt__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._check(other, "compare")
        return self.amount < other.amount

    def __le__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._check(other, "compare")
        return self.amount <= other.amount

    def __gt__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._check(other, "compare")
        return self.amount > other.amount

    def __ge__(self, other: Money) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._check(other, "compare")
        return self.amount >= other.amount

    def __str__(self) -> str:
        return f"{self.amount} {self.currency.code}"

    def __repr__(self) -> str:
        return f"Money({self.amount!r}, {self.currency!r})"


@dataclass(frozen=True, slots=True)
class CurrencyPair:
    """One amount in Bs and one in USD, kept side by side.

    Every cuadre line (sales, prizes, expenses, ...) is tracked in both
    currencies independently. The two sides are never added together
    without an explicit exchange rate.
    """

    bs: Decimal = ZERO
    usd: Decimal = ZERO

    def __post_init__(self) -> None:
        object.__setattr__(self, "bs", to_decimal(self.bs))
        object.__setattr__(self, "usd", to_decimal(self.usd))

    @classmethod
    def of(cls, bs: Any = ZERO, usd: Any = ZERO) -> CurrencyPair:
        return cls(bs=to_decimal(bs), usd=to_decimal(usd))

    @classmethod
    def zero(cls) -> CurrencyPair:
        return cls(ZERO, ZERO)

    @classmethod
    def total(cls, pairs: Iterable[CurrencyPair]) -> CurrencyPair:
        bs = ZERO
        usd = ZERO
        for pair in pairs:
            bs += pair.bs
            usd += pair.usd
        return cls(bs, usd)

    @property
    def is_zero(self) -> bool:
        return self.bs == ZERO and self.usd == ZERO

    @property
    def money_bs(self) -> Money:
        return Money(self.bs, BS)

    @property
    def money_usd(self) -> Money:
        return Money(self.usd, USD)

    def __add__(self, other: CurrencyPair) -> CurrencyPair:
        if not isinstance(other, CurrencyPair):
            return NotImplemented
        return CurrencyPair(self.bs + other.bs, self.usd + other.usd)

    def __sub__(self, other: CurrencyPair) -> CurrencyPair:
        if not isinstance(other, CurrencyPair):
            return NotImplemented
        return CurrencyPair(self.bs - other.bs, self.usd - other.usd)

    def __neg__(self) -> CurrencyPair:
        return CurrencyPair(-self.bs, -self.usd)

    def __repr__(self) -> str:
        return f"CurrencyPair(bs={self.bs!r}, usd={self.usd!r})"


@dataclass(frozen=True, slots=True)
class Percentage:
    """A percentage in [0, 100]. ``Percentage(10)`` means 10%."""

    value: Decimal

    def __post_init__(self) -> None:
        value = to_decimal(self.value)
        if value < ZERO or value > HUNDRED:
            raise PercentageOutOfRangeError("percentage", value)
        object.__setattr__(self, "value", value)

    @classmethod
    def of(cls, value: Any, field: str = "percentage") -> Percentage:
        """Build from loose input, naming ``field`` in the error if invalid."""
        decimal_value = to_decimal(value)
        if decimal_value < ZERO or decimal_value > HUNDRED:
            raise PercentageOutOfRangeError(field, decimal_value)
        return cls(decimal_value)

    @classmethod
    def optional(cls, value: Any, field: str = "percentage") -> Percentage | None:
        """None stays None (absent); anything else, including 0, is present."""
        if value is None:
            return None
        return cls.of(value, field)

    @property
    def is_zero(self) -> bool:
        return self.value == ZERO

    def apply(self, amount: Decimal) -> Decimal:
        """``amount * value / 100``, unrounded."""
        return to_decimal(amount) * self.value / HUNDRED

    def __str__(self) -> str:
        return f"{self.value}%"


ZERO_PERCENT = Percentage(ZERO)
