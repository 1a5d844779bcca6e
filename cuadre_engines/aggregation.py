"""
Transaction Aggregator -- folds raw transactions into cuadre totals.

Responsibility:
    Turn the raw transactions of an agency/date (or week) into per-currency
    totals plus the detail lists a supervisor drills into.  Also folds the
    day's cashier closures (cash counted, exchange rate, adjustments) into
    one set of figures.

Architecture position:
    Engines -- pure functions, zero I/O.  Consumed by the cuadre and weekly
    services; feeds the source reconciler and the totals calculator.

Invariants enforced:
    - Idempotent: transactions are deduplicated by id, so feeding the same
      rows twice (as the overlapping agency/session queries do) never
      double counts.
    - Unpaid-only: expenses, debts and pending prizes count toward totals
      only while ``is_paid`` is false; paid rows stay in the detail lists.
    - Parent isolation: sales/prizes posted against a lottery system that
      has subcategories are reported as display-only parent amounts and are
      never added to any total or subcategory line.

Failure modes:
    - None raised; unknown lottery system ids are treated as standalone
      systems so nothing recorded is silently dropped.

Usage:
    from cuadre_engines.aggregation import aggregate_transactions

    result = aggregate_transactions(transactions=rows, systems=catalog)
    result.sales.bs, result.debts.usd, result.system_lines
"""

from __future__ import annotations

import time
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import UUID

from cuadre_engines.tracer import traced_engine
from cuadre_kernel.domain.cuadre import AdjustmentBlock, CashierSession
from cuadre_kernel.domain.transactions import (
    ExpenseCategory,
    LotterySystem,
    SupervisorDetail,
    Transaction,
    TransactionKind,
)
from cuadre_kernel.domain.values import ZERO, CurrencyPair
from cuadre_kernel.logging_config import get_logger

logger = get_logger("engines.aggregation")

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True)
class AggregationScope:
    """Which transactions belong to the cuadre being built.

    A transaction is in scope when it matches the agency and date range, or
    when it is attached to one of ``session_ids``.
    """

    agency_id: UUID | None = None
    start: date | None = None
    end: date | None = None
    session_ids: frozenset[UUID] = frozenset()

    def includes(self, txn: Transaction) -> bool:
        if txn.session_id is not None and txn.session_id in self.session_ids:
            return True
        if self.agency_id is not None and txn.agency_id != self.agency_id:
            return False
        if self.start is not None and txn.transaction_date < self.start:
            return False
        end = self.end or self.start
        if end is not None and txn.transaction_date > end:
            return False
        return True


@dataclass(frozen=True)
class SystemLine:
    """Editable sales/prizes of one postable lottery system.

    ``parent_sales``/``parent_prizes`` are what was posted directly against
    the parent of a subcategory: provenance for display, never summed.
    """

    system_id: UUID | None
    name: str = ""
    parent_system_id: UUID | None = None
    sales: CurrencyPair = field(default_factory=CurrencyPair.zero)
    prizes: CurrencyPair = field(default_factory=CurrencyPair.zero)
    parent_sales: CurrencyPair = field(default_factory=CurrencyPair.zero)
    parent_prizes: CurrencyPair = field(default_factory=CurrencyPair.zero)

    @property
    def cuadre(self) -> CurrencyPair:
        return self.sales - self.prizes


@dataclass(frozen=True)
class ParentTotals:
    """Display-only totals posted directly against a parent system."""

    system_id: UUID
    sales: CurrencyPair = field(default_factory=CurrencyPair.zero)
    prizes: CurrencyPair = field(default_factory=CurrencyPair.zero)


@dataclass(frozen=True)
class AggregationResult:
    sales: CurrencyPair = field(default_factory=CurrencyPair.zero)
    prizes: CurrencyPair = field(default_factory=CurrencyPair.zero)
    operating_expenses: CurrencyPair = field(default_factory=CurrencyPair.zero)
    debts: CurrencyPair = field(default_factory=CurrencyPair.zero)
    other_expenses: CurrencyPair = field(default_factory=CurrencyPair.zero)
    pending_prizes: CurrencyPair = field(default_factory=CurrencyPair.zero)
    mobile_received: Decimal = ZERO
    mobile_paid: Decimal = ZERO
    point_of_sale: Decimal = ZERO

    system_lines: tuple[SystemLine, ...] = ()
    parent_informational: tuple[ParentTotals, ...] = ()

    operating_expense_details: tuple[Transaction, ...] = ()
    debt_details: tuple[Transaction, ...] = ()
    other_expense_details: tuple[Transaction, ...] = ()
    pending_prizes_unpaid: tuple[Transaction, ...] = ()
    pending_prizes_paid: tuple[Transaction, ...] = ()
    mobile_payment_details: tuple[Transaction, ...] = ()
    point_of_sale_details: tuple[Transaction, ...] = ()

    transaction_count: int = 0
    from_supervisor_details: bool = False

    @property
    def cuadre(self) -> CurrencyPair:
        return self.sales - self.prizes

    @property
    def expenses(self) -> CurrencyPair:
        """Unpaid operating plus other expenses (debts are kept apart)."""
        return self.operating_expenses + self.other_expenses

    @property
    def bank_total(self) -> Decimal:
        return self.mobile_received - self.mobile_paid + self.point_of_sale

    def line_for(self, system_id: UUID) -> SystemLine | None:
        for line in self.system_lines:
            if line.system_id == system_id:
                return line
        return None


@dataclass(frozen=True)
class SessionAggregate:
    """The day's cashier closures folded together."""

    cash: CurrencyPair = field(default_factory=CurrencyPair.zero)
    exchange_rate: Decimal | None = None
    adjustment: AdjustmentBlock = field(default_factory=AdjustmentBlock)
    closure_notes: str = ""
    session_ids: frozenset[UUID] = frozenset()
    all_confirmed: bool = False
    session_count: int = 0


def dedupe_transactions(transactions: Iterable[Transaction]) -> list[Transaction]:
    """First occurrence of each transaction id, in input order."""
    seen: set[UUID] = set()
    unique: list[Transaction] = []
    for txn in transactions:
        if txn.id in seen:
            continue
        seen.add(txn.id)
        unique.append(txn)
    return unique


class _Accumulator:
    """Mutable running sums for one aggregation pass."""

    def __init__(self) -> None:
        self.totals: dict[str, CurrencyPair] = {}
        self.lists: dict[str, list[Transaction]] = {}
        self.mobile_received = ZERO
        self.mobile_paid = ZERO
        self.point_of_sale = ZERO

    def add(self, key: str, amount: CurrencyPair) -> None:
        self.totals[key] = self.totals.get(key, CurrencyPair.zero()) + amount

    def keep(self, key: str, txn: Transaction) -> None:
        self.lists.setdefault(key, []).append(txn)

    def total(self, key: str) -> CurrencyPair:
        return self.totals.get(key, CurrencyPair.zero())

    def listed(self, key: str) -> tuple[Transaction, ...]:
        return tuple(self.lists.get(key, ()))


def _build_lines(
    systems: Sequence[LotterySystem],
    own: dict[UUID | None, tuple[CurrencyPair, CurrencyPair]],
    parents: dict[UUID, tuple[CurrencyPair, CurrencyPair]],
) -> tuple[SystemLine, ...]:
    zero = CurrencyPair.zero()
    lines: list[SystemLine] = []
    known: set[UUID] = set()
    for system in systems:
        known.add(system.id)
        if not system.is_postable:
            continue
        sales, prizes = own.get(system.id, (zero, zero))
        parent_sales, parent_prizes = (zero, zero)
        if system.parent_system_id is not None:
            parent_sales, parent_prizes = parents.get(system.parent_system_id, (zero, zero))
        lines.append(SystemLine(
            system_id=system.id,
            name=system.name,
            parent_system_id=system.parent_system_id,
            sales=sales,
            prizes=prizes,
            parent_sales=parent_sales,
            parent_prizes=parent_prizes,
        ))
    for system_id, (sales, prizes) in own.items():
        if system_id not in known:
            lines.append(SystemLine(system_id=system_id, sales=sales, prizes=prizes))
    return tuple(lines)


@traced_engine("transaction_aggregation", "1.0", fingerprint_fields=("scope",))
def aggregate_transactions(
    *,
    transactions: Iterable[Transaction],
    systems: Sequence[LotterySystem] = (),
    scope: AggregationScope | None = None,
) -> AggregationResult:
    """Fold raw transactions into totals and detail lists.

    Args:
        transactions: Raw rows, possibly containing duplicates.
        systems: Lottery system catalog; decides which systems are parents.
        scope: Optional filter applied before folding.

    Returns:
        AggregationResult with unpaid-only totals and per-system lines.
    """
    t0 = time.monotonic()
    rows = dedupe_transactions(transactions)
    if scope is not None:
        rows = [t for t in rows if scope.includes(t)]

    parent_ids = {s.id for s in systems if s.has_subcategories}
    acc = _Accumulator()
    own: dict[UUID | None, tuple[CurrencyPair, CurrencyPair]] = {}
    parents: dict[UUID, tuple[CurrencyPair, CurrencyPair]] = {}
    zero = CurrencyPair.zero()

    for txn in rows:
        if txn.kind in (TransactionKind.SALE, TransactionKind.PRIZE):
            is_sale = txn.kind == TransactionKind.SALE
            if txn.lottery_system_id in parent_ids:
                sales, prizes = parents.get(txn.lottery_system_id, (zero, zero))
                parents[txn.lottery_system_id] = (
                    (sales + txn.amount, prizes) if is_sale else (sales, prizes + txn.amount)
                )
                continue
            sales, prizes = own.get(txn.lottery_system_id, (zero, zero))
            own[txn.lottery_system_id] = (
                (sales + txn.amount, prizes) if is_sale else (sales, prizes + txn.amount)
            )
            acc.add("sales" if is_sale else "prizes", txn.amount)

        elif txn.kind == TransactionKind.EXPENSE:
            key = {
                ExpenseCategory.DEBT: "debts",
                ExpenseCategory.OTHER: "other_expenses",
            }.get(txn.category, "operating_expenses")
            acc.keep(key, txn)
            if txn.counts_toward_totals:
                acc.add(key, txn.amount)

        elif txn.kind == TransactionKind.PENDING_PRIZE:
            if txn.is_paid:
                acc.keep("pending_paid", txn)
            else:
                acc.keep("pending_unpaid", txn)
                acc.add("pending_prizes", txn.amount)

        elif txn.kind == TransactionKind.MOBILE_PAYMENT:
            acc.keep("mobile", txn)
            if txn.amount.bs > ZERO:
                acc.mobile_received += txn.amount.bs
            else:
                acc.mobile_paid += abs(txn.amount.bs)

        elif txn.kind == TransactionKind.POINT_OF_SALE:
            acc.keep("pos", txn)
            acc.point_of_sale += txn.amount.bs

    result = AggregationResult(
        sales=acc.total("sales"),
        prizes=acc.total("prizes"),
        operating_expenses=acc.total("operating_expenses"),
        debts=acc.total("debts"),
        other_expenses=acc.total("other_expenses"),
        pending_prizes=acc.total("pending_prizes"),
        mobile_received=acc.mobile_received,
        mobile_paid=acc.mobile_paid,
        point_of_sale=acc.point_of_sale,
        system_lines=_build_lines(systems, own, parents),
        parent_informational=tuple(
            ParentTotals(system_id=pid, sales=s, prizes=p)
            for pid, (s, p) in parents.items()
        ),
        operating_expense_details=acc.listed("operating_expenses"),
        debt_details=acc.listed("debts"),
        other_expense_details=acc.listed("other_expenses"),
        pending_prizes_unpaid=acc.listed("pending_unpaid"),
        pending_prizes_paid=acc.listed("pending_paid"),
        mobile_payment_details=acc.listed("mobile"),
        point_of_sale_details=acc.listed("pos"),
        transaction_count=len(rows),
    )

    logger.debug(
        "transaction_aggregation_completed",
        extra={
            "transaction_count": len(rows),
            "system_line_count": len(result.system_lines),
            "parent_system_count": len(parents),
            "duration_ms": round((time.monotonic() - t0) * 1000, 2),
        },
    )
    return result


def merge_supervisor_details(
    result: AggregationResult,
    details: Sequence[SupervisorDetail],
) -> AggregationResult:
    """Let supervisor-typed per-system figures replace the cashier ones.

    With no detail rows the cashier aggregate stands unchanged.  With any,
    every system line takes its sales/prizes from the details (zero when a
    system has no row) and the totals are recomputed from the lines.
    Parent provenance amounts are kept as they were.
    """
    if not details:
        return result

    by_system: dict[UUID, tuple[CurrencyPair, CurrencyPair]] = {}
    for detail in details:
        sales, prizes = by_system.get(
            detail.lottery_system_id, (CurrencyPair.zero(), CurrencyPair.zero())
        )
        by_system[detail.lottery_system_id] = (sales + detail.sales, prizes + detail.prizes)

    lines: list[SystemLine] = []
    for line in result.system_lines:
        sales, prizes = by_system.pop(line.system_id, (CurrencyPair.zero(), CurrencyPair.zero()))
        lines.append(replace(line, sales=sales, prizes=prizes))
    for system_id, (sales, prizes) in by_system.items():
        lines.append(SystemLine(system_id=system_id, sales=sales, prizes=prizes))

    logger.debug(
        "supervisor_details_merged",
        extra={"detail_count": len(details), "system_line_count": len(lines)},
    )
    return replace(
        result,
        sales=CurrencyPair.total(line.sales for line in lines),
        prizes=CurrencyPair.total(line.prizes for line in lines),
        system_lines=tuple(lines),
        from_supervisor_details=True,
    )


def aggregate_cashier_sessions(
    sessions: Sequence[CashierSession],
    placeholder_rate: Decimal | None = None,
) -> SessionAggregate:
    """Fold the day's cashier closures.

    Cash and adjustment amounts are summed.  The exchange rate is the one
    from the most recently updated session that reported a positive rate;
    a session still carrying ``placeholder_rate`` only counts when no
    session reported a real one.
    """
    if not sessions:
        return SessionAggregate()

    ordered = sorted(sessions, key=lambda s: s.updated_at or _EPOCH)
    rate: Decimal | None = None
    fallback: Decimal | None = None
    for session in ordered:
        if session.exchange_rate <= ZERO:
            continue
        if placeholder_rate is not None and session.exchange_rate == placeholder_rate:
            fallback = session.exchange_rate
        else:
            rate = session.exchange_rate
    if rate is None:
        rate = fallback

    adjustment = ordered[0].adjustment
    for session in ordered[1:]:
        adjustment = adjustment + session.adjustment

    return SessionAggregate(
        cash=CurrencyPair.total(s.cash for s in ordered),
        exchange_rate=rate,
        adjustment=adjustment,
        closure_notes="\n".join(s.closure_notes for s in ordered if s.closure_notes),
        session_ids=frozenset(s.id for s in ordered),
        all_confirmed=all(s.closure_confirmed for s in ordered),
        session_count=len(ordered),
    )
