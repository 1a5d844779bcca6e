"""
Weekly cuadre -- an agency's Monday..Sunday position.

Responsibility:
    Fold a week of supervisor detail rows, manual per-system overrides,
    consolidated daily summaries and payable transactions into one
    weekly summary with its own cuadre report.

Architecture position:
    Engines -- pure function, zero I/O.  Fed by WeeklyCuadreService.

Rules:
    - Per-system sales/prizes are summed from supervisor detail rows.
    - A manual WeeklySystemTotal replaces that system's figures and marks
      the line adjusted.
    - With neither detail rows nor overrides, sales/prizes fall back to the
      consolidated daily summaries.
    - Only the latest consolidated summary per date counts (by updated_at)
      for bank total and cash.
    - The Sunday exchange rate is the rate of the summary dated on the
      week's end, else the weekly config rate, else the placeholder.
    - Expenses, debts and pending prizes count only while unpaid.
    - The report uses the same excess-USD rule as the daily calculator.
      The toggle is the one on the week's latest consolidated summary,
      else ``apply_excess_usd`` (the configured default).
"""

from __future__ import annotations

import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import UUID

from cuadre_engines.aggregation import aggregate_transactions
from cuadre_engines.cuadre_totals import (
    CuadreInputs,
    CuadreReport,
    Tolerances,
    calculate_cuadre,
)
from cuadre_engines.tracer import traced_engine
from cuadre_kernel.domain.clock import week_bounds
from cuadre_kernel.domain.cuadre import CuadreSummary
from cuadre_kernel.domain.transactions import LotterySystem, SupervisorDetail, Transaction
from cuadre_kernel.domain.values import ZERO, CurrencyPair
from cuadre_kernel.domain.weekly import WeeklyCuadreConfig, WeeklySystemTotal
from cuadre_kernel.logging_config import get_logger

logger = get_logger("engines.weekly")

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

SOURCE_DETAILS = "supervisor_details"
SOURCE_DAILY_SUMMARIES = "daily_summaries"


@dataclass(frozen=True)
class WeeklySystemLine:
    system_id: UUID
    name: str = ""
    sales: CurrencyPair = field(default_factory=CurrencyPair.zero)
    prizes: CurrencyPair = field(default_factory=CurrencyPair.zero)
    is_adjusted: bool = False
    adjusted_by: UUID | None = None
    adjusted_at: datetime | None = None
    notes: str = ""

    @property
    def cuadre(self) -> CurrencyPair:
        return self.sales - self.prizes


@dataclass(frozen=True)
class WeeklyAgencySummary:
    agency_id: UUID
    week_start: date
    week_end: date
    per_system: tuple[WeeklySystemLine, ...]
    sales: CurrencyPair
    prizes: CurrencyPair
    expenses: CurrencyPair
    debts: CurrencyPair
    pending_prizes: CurrencyPair
    bank_total: Decimal
    cash: CurrencyPair
    deposit_bs: Decimal
    sunday_exchange_rate: Decimal
    report: CuadreReport
    apply_excess_usd: bool = True
    sales_source: str = SOURCE_DETAILS
    expense_details: tuple[Transaction, ...] = ()
    debt_details: tuple[Transaction, ...] = ()
    pending_prize_details: tuple[Transaction, ...] = ()

    @property
    def cuadre(self) -> CurrencyPair:
        return self.sales - self.prizes

    def line_for(self, system_id: UUID) -> WeeklySystemLine | None:
        for line in self.per_system:
            if line.system_id == system_id:
                return line
        return None


def latest_summary_per_date(summaries: Sequence[CuadreSummary]) -> dict[date, CuadreSummary]:
    """Most recently updated consolidated summary for each date."""
    latest: dict[date, CuadreSummary] = {}
    for summary in summaries:
        if not summary.is_consolidated:
            continue
        current = latest.get(summary.session_date)
        if current is None or (summary.updated_at or _EPOCH) > (current.updated_at or _EPOCH):
            latest[summary.session_date] = summary
    return latest


@traced_engine("weekly_cuadre", "1.0", fingerprint_fields=("agency_id", "week_start"))
def aggregate_week(
    *,
    agency_id: UUID,
    week_start: date,
    systems: Sequence[LotterySystem] = (),
    details: Sequence[SupervisorDetail] = (),
    overrides: Sequence[WeeklySystemTotal] = (),
    daily_summaries: Sequence[CuadreSummary] = (),
    transactions: Sequence[Transaction] = (),
    config: WeeklyCuadreConfig | None = None,
    placeholder_rate: Decimal = Decimal("36.00"),
    tolerances: Tolerances | None = None,
    apply_excess_usd: bool = True,
) -> WeeklyAgencySummary:
    """Build the weekly summary for one agency."""
    t0 = time.monotonic()
    monday, sunday = week_bounds(week_start)

    zero = CurrencyPair.zero()
    sums: dict[UUID, tuple[CurrencyPair, CurrencyPair]] = {}
    for detail in details:
        if detail.agency_id != agency_id or not monday <= detail.session_date <= sunday:
            continue
        sales, prizes = sums.get(detail.lottery_system_id, (zero, zero))
        sums[detail.lottery_system_id] = (sales + detail.sales, prizes + detail.prizes)

    by_override = {
        o.lottery_system_id: o
        for o in overrides
        if o.agency_id == agency_id and o.week_start_date == monday
    }

    lines: list[WeeklySystemLine] = []
    seen: set[UUID] = set()
    for system in systems:
        if not system.is_postable:
            continue
        seen.add(system.id)
        lines.append(_line(system.id, system.name, sums, by_override))
    for system_id in list(sums) + list(by_override):
        if system_id not in seen:
            seen.add(system_id)
            lines.append(_line(system_id, "", sums, by_override))

    latest = latest_summary_per_date(
        [s for s in daily_summaries if s.agency_id == agency_id and monday <= s.session_date <= sunday]
    )

    if sums or by_override:
        sales = CurrencyPair.total(line.sales for line in lines)
        prizes = CurrencyPair.total(line.prizes for line in lines)
        sales_source = SOURCE_DETAILS
    else:
        sales = CurrencyPair.total(s.sales for s in latest.values())
        prizes = CurrencyPair.total(s.prizes for s in latest.values())
        sales_source = SOURCE_DAILY_SUMMARIES

    payables = aggregate_transactions(transactions=transactions)
    bank_total = sum((s.bank_total for s in latest.values()), ZERO)
    cash = CurrencyPair.total(s.cash for s in latest.values())
    adjustment = CurrencyPair.total(s.adjustment.additional_amount for s in latest.values())

    sunday_summary = latest.get(sunday)
    if sunday_summary is not None and sunday_summary.exchange_rate > ZERO:
        rate = sunday_summary.exchange_rate
    elif config is not None and config.exchange_rate:
        rate = config.exchange_rate
    else:
        rate = placeholder_rate

    if latest:
        apply_excess_usd = latest[max(latest)].adjustment.apply_excess_usd

    report = calculate_cuadre(
        inputs=CuadreInputs(
            sales=sales,
            prizes=prizes,
            expenses=payables.expenses,
            debts=payables.debts,
            # daily bank totals are already net
            mobile_received=bank_total,
            cash=cash,
            pending_prizes=payables.pending_prizes,
            adjustment=adjustment,
            exchange_rate=rate,
            apply_excess_usd=apply_excess_usd,
        ),
        tolerances=tolerances,
    )

    summary = WeeklyAgencySummary(
        agency_id=agency_id,
        week_start=monday,
        week_end=sunday,
        per_system=tuple(lines),
        sales=sales,
        prizes=prizes,
        expenses=payables.expenses,
        debts=payables.debts,
        pending_prizes=payables.pending_prizes,
        bank_total=bank_total,
        cash=cash,
        deposit_bs=config.deposit_bs if config is not None else ZERO,
        sunday_exchange_rate=rate,
        report=report,
        apply_excess_usd=apply_excess_usd,
        sales_source=sales_source,
        expense_details=payables.operating_expense_details + payables.other_expense_details,
        debt_details=payables.debt_details,
        pending_prize_details=payables.pending_prizes_unpaid + payables.pending_prizes_paid,
    )
    logger.info(
        "weekly_cuadre_computed",
        extra={
            "agency_id": agency_id,
            "week_start": monday,
            "sales_source": sales_source,
            "adjusted_systems": len(by_override),
            "day_count": len(latest),
            "duration_ms": round((time.monotonic() - t0) * 1000, 2),
        },
    )
    return summary


def _line(
    system_id: UUID,
    name: str,
    sums: dict[UUID, tuple[CurrencyPair, CurrencyPair]],
    overrides: dict[UUID, WeeklySystemTotal],
) -> WeeklySystemLine:
    manual = overrides.get(system_id)
    if manual is not None:
        return WeeklySystemLine(
            system_id=system_id,
            name=name,
            sales=manual.sales,
            prizes=manual.prizes,
            is_adjusted=True,
            adjusted_by=manual.adjusted_by,
            adjusted_at=manual.adjusted_at,
            notes=manual.notes,
        )
    sales, prizes = sums.get(system_id, (CurrencyPair.zero(), CurrencyPair.zero()))
    return WeeklySystemLine(system_id=system_id, name=name, sales=sales, prizes=prizes)
