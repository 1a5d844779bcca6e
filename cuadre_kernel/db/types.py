"""
Module: cuadre_kernel.db.types
Responsibility: Column types and the conversions between stored columns
    and domain values (amount pairs, optional percentages).
Architecture position: Kernel > DB.  Imported by models/.
"""

from decimal import Decimal

from sqlalchemy import Numeric

from cuadre_kernel.domain.values import ZERO, CurrencyPair, Percentage

# Monetary amount, 9 decimal places so nothing is rounded on the way in
AMOUNT = Numeric(38, 9)

# Bs per USD
RATE = Numeric(20, 6)

# 0..100 with four decimals; NULL means "not configured"
PERCENT = Numeric(9, 4)


def pair(bs: Decimal | None, usd: Decimal | None) -> CurrencyPair:
    """Build a CurrencyPair from two nullable columns."""
    return CurrencyPair.of(bs if bs is not None else ZERO, usd if usd is not None else ZERO)


def percentage_or_none(value: Decimal | None) -> Percentage | None:
    """NULL stays absent; a stored 0 is an explicit zero."""
    if value is None:
        return None
    return Percentage(value)


def percentage_column(value: Percentage | None) -> Decimal | None:
    return None if value is None else value.value
