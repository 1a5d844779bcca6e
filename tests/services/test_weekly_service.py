"""
Tests for WeeklyCuadreService against the record store.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from cuadre_config.settings import CuadreSettings
from cuadre_engines.weekly import SOURCE_DAILY_SUMMARIES, SOURCE_DETAILS
from cuadre_kernel.domain.values import CurrencyPair
from cuadre_kernel.exceptions import (
    AgencyNotFoundError,
    InvalidAmountError,
    InvalidExchangeRateError,
    SystemNotPostableError,
)
from cuadre_services.weekly_service import WeeklyCuadreService

MONDAY = date(2024, 1, 1)
TUESDAY = date(2024, 1, 2)
SUNDAY = date(2024, 1, 7)


class TestWeeklySummary:
    def test_falls_back_to_daily_summaries(
        self, weekly_service, cuadre_service, catalog, test_actor_id,
    ):
        for day, sales in ((MONDAY, "800"), (TUESDAY, "200")):
            cuadre_service.save(
                agency_id=catalog.agency_id, session_date=day, actor_id=test_actor_id,
                values={"sales_local": sales, "cash_local": "100"},
            )

        week = weekly_service.weekly_summary(catalog.agency_id, date(2024, 1, 3))

        assert week.sales_source == SOURCE_DAILY_SUMMARIES
        assert week.sales.bs == Decimal("1000")
        assert week.cash.bs == Decimal("200")
        assert week.week_start == MONDAY

    def test_details_and_override(
        self, weekly_service, cuadre_service, catalog, test_actor_id,
    ):
        for day in (MONDAY, SUNDAY):
            cuadre_service.replace_detail_rows(
                agency_id=catalog.agency_id, session_date=day, actor_id=test_actor_id,
                lines=[
                    (catalog.lotto_id, CurrencyPair.of(500, 0), CurrencyPair.of(100, 0)),
                    (catalog.child_a_id, CurrencyPair.of(300, 0), CurrencyPair.zero()),
                ],
            )
        weekly_service.set_system_total(
            agency_id=catalog.agency_id, week_start=MONDAY,
            lottery_system_id=catalog.child_a_id,
            sales=CurrencyPair.of(650, 0), prizes=CurrencyPair.zero(),
            actor_id=test_actor_id, notes="ticket anulado",
        )

        week = weekly_service.weekly_summary(catalog.agency_id, MONDAY)

        assert week.sales_source == SOURCE_DETAILS
        lotto = week.line_for(catalog.lotto_id)
        child = week.line_for(catalog.child_a_id)
        assert lotto.sales.bs == Decimal("1000")
        assert not lotto.is_adjusted
        assert child.is_adjusted
        assert child.adjusted_by == test_actor_id
        assert child.notes == "ticket anulado"
        assert week.sales.bs == Decimal("1650")

    def test_deposit_and_rate(self, weekly_service, catalog, test_actor_id):
        config = weekly_service.set_deposit(
            agency_id=catalog.agency_id, week_start=TUESDAY,
            deposit_bs=Decimal("12500"), exchange_rate=Decimal("37.20"),
            actor_id=test_actor_id,
        )
        assert config.week_start_date == MONDAY

        week = weekly_service.weekly_summary(catalog.agency_id, MONDAY)

        assert week.deposit_bs == Decimal("12500")
        assert week.sunday_exchange_rate == Decimal("37.20")

    def test_excess_toggle_follows_settings(self, session, deterministic_clock, catalog):
        service = WeeklyCuadreService(
            session, clock=deterministic_clock,
            settings=CuadreSettings(default_apply_excess_usd=False),
        )

        week = service.weekly_summary(catalog.agency_id, MONDAY)

        assert week.report.inputs.apply_excess_usd is False

    def test_excess_toggle_from_saved_day(
        self, weekly_service, cuadre_service, catalog, test_actor_id,
    ):
        cuadre_service.save(
            agency_id=catalog.agency_id, session_date=TUESDAY, actor_id=test_actor_id,
            values={"cash_usd": "30", "exchange_rate": "36.50", "apply_excess_usd": False},
        )

        week = weekly_service.weekly_summary(catalog.agency_id, MONDAY)

        assert week.apply_excess_usd is False
        assert week.report.excess_usd_applied_local == Decimal("0")


class TestValidation:
    def test_unknown_agency(self, weekly_service, catalog):
        with pytest.raises(AgencyNotFoundError):
            weekly_service.weekly_summary(uuid4(), MONDAY)

    def test_negative_override(self, weekly_service, catalog, test_actor_id):
        with pytest.raises(InvalidAmountError):
            weekly_service.set_system_total(
                agency_id=catalog.agency_id, week_start=MONDAY,
                lottery_system_id=catalog.lotto_id,
                sales=CurrencyPair.of(-1, 0), prizes=CurrencyPair.zero(),
                actor_id=test_actor_id,
            )

    def test_parent_override(self, weekly_service, catalog, test_actor_id):
        with pytest.raises(SystemNotPostableError):
            weekly_service.set_system_total(
                agency_id=catalog.agency_id, week_start=MONDAY,
                lottery_system_id=catalog.parent_id,
                sales=CurrencyPair.of(1, 0), prizes=CurrencyPair.zero(),
                actor_id=test_actor_id,
            )

    def test_negative_rate(self, weekly_service, catalog, test_actor_id):
        with pytest.raises(InvalidExchangeRateError):
            weekly_service.set_deposit(
                agency_id=catalog.agency_id, week_start=MONDAY,
                deposit_bs=Decimal("1"), exchange_rate=Decimal("-2"),
                actor_id=test_actor_id,
            )
