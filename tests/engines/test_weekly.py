"""
Tests for the weekly cuadre aggregation.

Covers:
- Supervisor details summed over Monday..Sunday
- Manual per-system totals replace the sum and mark the line adjusted
- Fallback to consolidated daily summaries
- Latest summary per date wins
- Sunday exchange rate selection
- Unpaid-only payables
- Excess-USD toggle taken from the latest daily summary or the default
"""

from dataclasses import replace
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

from cuadre_engines.weekly import (
    SOURCE_DAILY_SUMMARIES,
    SOURCE_DETAILS,
    aggregate_week,
    latest_summary_per_date,
)
from cuadre_kernel.domain.cuadre import AdjustmentBlock, CuadreSummary
from cuadre_kernel.domain.transactions import (
    ExpenseCategory,
    LotterySystem,
    SupervisorDetail,
    Transaction,
    TransactionKind,
)
from cuadre_kernel.domain.values import CurrencyPair
from cuadre_kernel.domain.weekly import WeeklyCuadreConfig, WeeklySystemTotal

AGENCY = uuid4()
SUPERVISOR = uuid4()
MONDAY = date(2024, 1, 1)
SUNDAY = date(2024, 1, 7)
T0 = datetime(2024, 1, 1, 20, tzinfo=timezone.utc)

LOTTO = LotterySystem(id=uuid4(), name="Lotto Activo", code="LOTTO")
TRIPLE = LotterySystem(id=uuid4(), name="Triple Zulia", code="TZ")
PARENT = LotterySystem(id=uuid4(), name="Animalitos", code="ANIM", has_subcategories=True)
SYSTEMS = (LOTTO, TRIPLE, PARENT)


def detail(system, day, sales_bs, prizes_bs="0", agency=AGENCY):
    return SupervisorDetail(
        agency_id=agency,
        session_date=day,
        supervisor_id=SUPERVISOR,
        lottery_system_id=system.id,
        sales=CurrencyPair.of(sales_bs, 0),
        prizes=CurrencyPair.of(prizes_bs, 0),
    )


def summary(day, *, sales_bs="0", cash_bs="0", bank="0", rate="0", updated_at=T0):
    return CuadreSummary(
        id=uuid4(),
        agency_id=AGENCY,
        session_date=day,
        user_id=SUPERVISOR,
        sales=CurrencyPair.of(sales_bs, 0),
        cash=CurrencyPair.of(cash_bs, 0),
        bank_total=Decimal(bank),
        exchange_rate=Decimal(rate),
        updated_at=updated_at,
    )


class TestPerSystemLines:
    def test_details_summed_across_week(self):
        week = aggregate_week(
            agency_id=AGENCY,
            week_start=MONDAY,
            systems=SYSTEMS,
            details=[
                detail(LOTTO, MONDAY, "1000", "400"),
                detail(LOTTO, SUNDAY, "500", "100"),
                detail(TRIPLE, date(2024, 1, 3), "300"),
            ],
        )

        assert week.sales_source == SOURCE_DETAILS
        assert week.line_for(LOTTO.id).sales.bs == Decimal("1500")
        assert week.line_for(LOTTO.id).cuadre.bs == Decimal("1000")
        assert week.sales.bs == Decimal("1800")
        assert week.line_for(PARENT.id) is None

    def test_out_of_week_and_other_agency_ignored(self):
        week = aggregate_week(
            agency_id=AGENCY,
            week_start=MONDAY,
            systems=SYSTEMS,
            details=[
                detail(LOTTO, MONDAY - timedelta(days=1), "999"),
                detail(LOTTO, MONDAY, "999", agency=uuid4()),
                detail(LOTTO, date(2024, 1, 2), "100"),
            ],
        )
        assert week.sales.bs == Decimal("100")

    def test_override_replaces_and_marks_adjusted(self):
        admin = uuid4()
        week = aggregate_week(
            agency_id=AGENCY,
            week_start=date(2024, 1, 4),
            systems=SYSTEMS,
            details=[detail(LOTTO, MONDAY, "1000"), detail(TRIPLE, MONDAY, "300")],
            overrides=[
                WeeklySystemTotal(
                    agency_id=AGENCY,
                    week_start_date=MONDAY,
                    lottery_system_id=LOTTO.id,
                    sales=CurrencyPair.of(1200, 0),
                    adjusted_by=admin,
                    notes="corrige taquilla 2",
                ),
            ],
        )

        lotto = week.line_for(LOTTO.id)
        assert lotto.is_adjusted
        assert lotto.adjusted_by == admin
        assert lotto.sales.bs == Decimal("1200")
        assert not week.line_for(TRIPLE.id).is_adjusted
        assert week.sales.bs == Decimal("1500")
        assert week.week_start == MONDAY


class TestDailySummaryFallback:
    def test_fallback_when_no_details(self):
        week = aggregate_week(
            agency_id=AGENCY,
            week_start=MONDAY,
            systems=SYSTEMS,
            daily_summaries=[
                summary(MONDAY, sales_bs="800", cash_bs="500", bank="100"),
                summary(date(2024, 1, 2), sales_bs="200", cash_bs="150"),
            ],
        )

        assert week.sales_source == SOURCE_DAILY_SUMMARIES
        assert week.sales.bs == Decimal("1000")
        assert week.cash.bs == Decimal("650")
        assert week.bank_total == Decimal("100")

    def test_latest_summary_per_date_wins(self):
        old = summary(MONDAY, sales_bs="100", updated_at=T0)
        new = summary(MONDAY, sales_bs="300", updated_at=T0 + timedelta(hours=1))

        latest = latest_summary_per_date([new, old])

        assert latest[MONDAY] is new

    def test_session_summaries_not_counted(self):
        cashier_row = CuadreSummary(
            id=uuid4(),
            agency_id=AGENCY,
            session_date=MONDAY,
            user_id=uuid4(),
            session_id=uuid4(),
            sales=CurrencyPair.of(5000, 0),
        )
        assert latest_summary_per_date([cashier_row]) == {}


class TestExchangeRate:
    def test_sunday_summary_rate(self):
        week = aggregate_week(
            agency_id=AGENCY,
            week_start=MONDAY,
            daily_summaries=[summary(SUNDAY, rate="38.5"), summary(MONDAY, rate="36.9")],
            config=WeeklyCuadreConfig(AGENCY, MONDAY, exchange_rate=Decimal("37")),
        )
        assert week.sunday_exchange_rate == Decimal("38.5")

    def test_config_rate_without_sunday(self):
        week = aggregate_week(
            agency_id=AGENCY,
            week_start=MONDAY,
            config=WeeklyCuadreConfig(
                AGENCY, MONDAY, deposit_bs=Decimal("5000"), exchange_rate=Decimal("37"),
            ),
        )

        assert week.sunday_exchange_rate == Decimal("37")
        assert week.deposit_bs == Decimal("5000")

    def test_placeholder_last(self):
        week = aggregate_week(
            agency_id=AGENCY, week_start=MONDAY, placeholder_rate=Decimal("36.00"),
        )
        assert week.sunday_exchange_rate == Decimal("36.00")


class TestPayables:
    def test_only_unpaid_counted(self):
        def expense(bs, is_paid):
            return Transaction(
                id=uuid4(),
                kind=TransactionKind.EXPENSE,
                agency_id=AGENCY,
                transaction_date=MONDAY,
                amount=CurrencyPair.of(bs, 0),
                category=ExpenseCategory.OPERATING,
                is_paid=is_paid,
            )

        week = aggregate_week(
            agency_id=AGENCY,
            week_start=MONDAY,
            transactions=[expense("50", False), expense("70", True)],
        )

        assert week.expenses.bs == Decimal("50")
        assert len(week.expense_details) == 2
        assert week.report.inputs.expenses.bs == Decimal("50")


class TestExcessToggle:
    def with_toggle(self, day, apply_excess_usd, cash_usd="0"):
        return replace(
            summary(day, rate="36"),
            cash=CurrencyPair.of(0, cash_usd),
            adjustment=AdjustmentBlock(apply_excess_usd=apply_excess_usd),
        )

    def test_default_used_without_summaries(self):
        week = aggregate_week(agency_id=AGENCY, week_start=MONDAY, apply_excess_usd=False)

        assert week.apply_excess_usd is False
        assert week.report.inputs.apply_excess_usd is False

    def test_latest_day_toggle_wins(self):
        week = aggregate_week(
            agency_id=AGENCY,
            week_start=MONDAY,
            daily_summaries=[
                self.with_toggle(MONDAY, True),
                self.with_toggle(date(2024, 1, 2), False, cash_usd="30"),
            ],
            apply_excess_usd=True,
        )

        assert week.apply_excess_usd is False
        assert week.report.excess_usd == Decimal("30")
        assert week.report.excess_usd_applied_local == Decimal("0")

    def test_excess_converted_when_on(self):
        week = aggregate_week(
            agency_id=AGENCY,
            week_start=MONDAY,
            daily_summaries=[self.with_toggle(SUNDAY, True, cash_usd="30")],
            apply_excess_usd=False,
        )

        assert week.report.excess_usd_applied_local == Decimal("1080")
