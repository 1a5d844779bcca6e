"""
Pure domain layer.

Immutable records and value objects with NO dependencies on the ORM, the
database or I/O. The clock is the one injectable exception.
"""

from cuadre_kernel.domain.clock import (
    BUSINESS_TIMEZONE,
    Clock,
    DeterministicClock,
    SystemClock,
    as_utc,
    week_bounds,
    week_start,
)
from cuadre_kernel.domain.commission import (
    BanqueoEntry,
    BanqueoTransaction,
    ClientBanqueoCommission,
    ClientSystemParticipation,
    CommissionConfig,
    CommissionRate,
)
from cuadre_kernel.domain.cuadre import AdjustmentBlock, CashierSession, CuadreSummary
from cuadre_kernel.domain.currency import CurrencyInfo, CurrencyRegistry
from cuadre_kernel.domain.review import (
    REVIEW_TRANSITIONS,
    ReviewEvent,
    ReviewEventType,
    ReviewStatus,
    SideEffect,
    TransitionOutcome,
    is_cuadre_locked,
    is_session_locked,
)
from cuadre_kernel.domain.transactions import (
    ExpenseCategory,
    LotterySystem,
    SupervisorDetail,
    Transaction,
    TransactionKind,
)
from cuadre_kernel.domain.values import (
    BS,
    USD,
    ZERO,
    ZERO_PERCENT,
    Currency,
    CurrencyPair,
    Money,
    Percentage,
    parse_amount,
    quantize_money,
    to_decimal,
)
from cuadre_kernel.domain.weekly import WeeklyCuadreConfig, WeeklySystemTotal

__all__ = [
    "AdjustmentBlock",
    "BS",
    "BUSINESS_TIMEZONE",
    "BanqueoEntry",
    "BanqueoTransaction",
    "CashierSession",
    "ClientBanqueoCommission",
    "ClientSystemParticipation",
    "Clock",
    "CommissionConfig",
    "CommissionRate",
    "CuadreSummary",
    "Currency",
    "CurrencyInfo",
    "CurrencyPair",
    "CurrencyRegistry",
    "DeterministicClock",
    "ExpenseCategory",
    "LotterySystem",
    "Money",
    "Percentage",
    "REVIEW_TRANSITIONS",
    "ReviewEvent",
    "ReviewEventType",
    "ReviewStatus",
    "SideEffect",
    "SupervisorDetail",
    "SystemClock",
    "Transaction",
    "TransactionKind",
    "TransitionOutcome",
    "USD",
    "WeeklyCuadreConfig",
    "WeeklySystemTotal",
    "ZERO",
    "ZERO_PERCENT",
    "as_utc",
    "is_cuadre_locked",
    "is_session_locked",
    "parse_amount",
    "quantize_money",
    "to_decimal",
    "week_bounds",
    "week_start",
]
