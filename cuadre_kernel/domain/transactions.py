"""
Transaction records -- the raw facts a cuadre is built from.

Cashiers record sales, prizes, expenses, mobile-payment transfers,
point-of-sale receipts and pending prizes per agency per day. Each one is
an immutable fact; the only later changes are ``is_paid`` toggling on
debts/pending prizes and supervisor corrections, both of which produce a
new record value rather than mutating this one.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from enum import Enum
from uuid import UUID

from cuadre_kernel.domain.values import ZERO, CurrencyPair


class TransactionKind(str, Enum):
    SALE = "sale"
    PRIZE = "prize"
    EXPENSE = "expense"
    MOBILE_PAYMENT = "mobile_payment"
    POINT_OF_SALE = "point_of_sale"
    PENDING_PRIZE = "pending_prize"


class ExpenseCategory(str, Enum):
    """Expense categories, stored with the values the agencies use."""

    OPERATING = "gasto_operativo"
    DEBT = "deuda"
    OTHER = "otros"


# Kinds whose totals only count unpaid rows
PAYABLE_KINDS: frozenset[TransactionKind] = frozenset({
    TransactionKind.EXPENSE,
    TransactionKind.PENDING_PRIZE,
})

# Kinds that must name a lottery system
SYSTEM_KINDS: frozenset[TransactionKind] = frozenset({
    TransactionKind.SALE,
    TransactionKind.PRIZE,
})


@dataclass(frozen=True)
class LotterySystem:
    """A lottery product sold at the agencies, possibly with subcategories."""

    id: UUID
    name: str
    code: str
    parent_system_id: UUID | None = None
    has_subcategories: bool = False
    is_active: bool = True

    @property
    def is_postable(self) -> bool:
        """Only leaves (subcategories or standalone systems) take postings."""
        return not self.has_subcategories

    @property
    def is_subcategory(self) -> bool:
        return self.parent_system_id is not None


@dataclass(frozen=True)
class Transaction:
    """One recorded amount pair for an agency and date."""

    id: UUID
    kind: TransactionKind
    agency_id: UUID
    transaction_date: date
    amount: CurrencyPair
    lottery_system_id: UUID | None = None
    session_id: UUID | None = None
    category: ExpenseCategory | None = None
    is_paid: bool = False
    description: str = ""
    created_at: datetime | None = None

    @property
    def is_debt(self) -> bool:
        return self.kind == TransactionKind.EXPENSE and self.category == ExpenseCategory.DEBT

    @property
    def counts_toward_totals(self) -> bool:
        """Paid debts, expenses and pending prizes stay visible but are not summed."""
        if self.kind in PAYABLE_KINDS:
            return not self.is_paid
        return True

    @property
    def is_mobile_received(self) -> bool:
        return self.kind == TransactionKind.MOBILE_PAYMENT and self.amount.bs > ZERO

    def with_paid(self, is_paid: bool) -> Transaction:
        return replace(self, is_paid=is_paid)


@dataclass(frozen=True)
class SupervisorDetail:
    """Per-system sales/prizes typed by a supervisor for an agency and day.

    When present for (agency, date, supervisor) these rows replace the
    cashier-derived per-system figures as the base of the cuadre.
    """

    agency_id: UUID
    session_date: date
    supervisor_id: UUID
    lottery_system_id: UUID
    sales: CurrencyPair = field(default_factory=CurrencyPair.zero)
    prizes: CurrencyPair = field(default_factory=CurrencyPair.zero)
    id: UUID | None = None

    @property
    def is_zero(self) -> bool:
        return self.sales.is_zero and self.prizes.is_zero
