"""
WeeklyCuadreService -- the agency's Monday-to-Sunday cuadre.

Reads every input of the week (supervisor detail rows, manual system
totals, consolidated daily summaries, payable transactions, the week's
deposit config) and hands them to ``aggregate_week``.  Writes are limited
to the manual per-system totals and the weekly deposit.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select

from cuadre_engines.weekly import WeeklyAgencySummary, aggregate_week
from cuadre_kernel.domain.clock import week_bounds
from cuadre_kernel.domain.values import ZERO, CurrencyPair
from cuadre_kernel.domain.weekly import WeeklyCuadreConfig, WeeklySystemTotal
from cuadre_kernel.exceptions import (
    AgencyNotFoundError,
    InvalidAmountError,
    InvalidExchangeRateError,
    LotterySystemNotFoundError,
    SystemNotPostableError,
)
from cuadre_kernel.logging_config import LogContext, get_logger
from cuadre_kernel.models.weekly import WeeklyCuadreConfigModel, WeeklySystemTotalModel
from cuadre_kernel.selectors.catalog_selector import CatalogSelector
from cuadre_kernel.selectors.summary_selector import SummarySelector
from cuadre_kernel.selectors.transaction_selector import TransactionSelector
from cuadre_kernel.selectors.weekly_selector import WeeklySelector
from cuadre_services.base import BaseService

logger = get_logger("services.weekly")


class WeeklyCuadreService(BaseService):

    @property
    def _catalog(self) -> CatalogSelector:
        return CatalogSelector(self._session)

    @property
    def _weekly(self) -> WeeklySelector:
        return WeeklySelector(self._session)

    def _require_agency(self, agency_id: UUID) -> None:
        if not self._catalog.agency_exists(agency_id):
            raise AgencyNotFoundError(agency_id)

    def weekly_summary(self, agency_id: UUID, week_start: date) -> WeeklyAgencySummary:
        """Compute the week containing ``week_start`` for one agency."""
        self._require_agency(agency_id)
        monday, sunday = week_bounds(week_start)
        excess_default = self._settings.default_apply_excess_usd
        transactions = TransactionSelector(self._session, excess_default)
        summaries = SummarySelector(self._session, excess_default)

        with LogContext.bind(agency_id=agency_id, week_start=monday):
            return aggregate_week(
                agency_id=agency_id,
                week_start=monday,
                systems=self._catalog.systems(),
                details=transactions.supervisor_details(agency_id, monday, sunday),
                overrides=self._weekly.system_totals(agency_id, monday),
                daily_summaries=summaries.summaries_in_range(agency_id, monday, sunday),
                transactions=transactions.transactions(agency_id, monday, sunday),
                config=self._weekly.config(agency_id, monday),
                placeholder_rate=self._settings.placeholder_exchange_rate,
                tolerances=self.tolerances,
                apply_excess_usd=excess_default,
            )

    def set_system_total(
        self,
        *,
        agency_id: UUID,
        week_start: date,
        lottery_system_id: UUID,
        sales: CurrencyPair,
        prizes: CurrencyPair,
        actor_id: UUID,
        notes: str = "",
    ) -> WeeklySystemTotal:
        """Upsert a manual override of one system's weekly sales and prizes."""
        self._require_agency(agency_id)
        system = self._catalog.system(lottery_system_id)
        if system is None:
            raise LotterySystemNotFoundError(lottery_system_id)
        if not system.is_postable:
            raise SystemNotPostableError(str(system.id), system.name)
        for amount in (sales, prizes):
            if amount.bs < ZERO or amount.usd < ZERO:
                raise InvalidAmountError(amount, "must not be negative")

        monday, _ = week_bounds(week_start)
        now = self._clock.now_utc()
        with LogContext.bind(actor_id=actor_id, agency_id=agency_id, week_start=monday):
            with self._transaction("set weekly system total"):
                row = self._session.scalars(
                    select(WeeklySystemTotalModel)
                    .where(WeeklySystemTotalModel.agency_id == agency_id)
                    .where(WeeklySystemTotalModel.week_start_date == monday)
                    .where(WeeklySystemTotalModel.lottery_system_id == lottery_system_id)
                ).one_or_none()
                if row is None:
                    row = WeeklySystemTotalModel(
                        agency_id=agency_id,
                        week_start_date=monday,
                        lottery_system_id=lottery_system_id,
                        created_by_id=actor_id,
                    )
                    self._session.add(row)
                row.sales_bs = sales.bs
                row.sales_usd = sales.usd
                row.prizes_bs = prizes.bs
                row.prizes_usd = prizes.usd
                row.notes = notes
                row.adjusted_by = actor_id
                row.adjusted_at = now
                row.updated_at = now
                row.updated_by_id = actor_id
            logger.info(
                "weekly_system_total_saved",
                extra={"lottery_system_id": lottery_system_id},
            )

        return next(
            t for t in self._weekly.system_totals(agency_id, monday)
            if t.lottery_system_id == lottery_system_id
        )

    def set_deposit(
        self,
        *,
        agency_id: UUID,
        week_start: date,
        deposit_bs: Decimal,
        actor_id: UUID,
        exchange_rate: Decimal | None = None,
    ) -> WeeklyCuadreConfig:
        """Record the week's bank deposit and, optionally, its exchange rate."""
        self._require_agency(agency_id)
        if exchange_rate is not None and exchange_rate < ZERO:
            raise InvalidExchangeRateError(exchange_rate)

        monday, _ = week_bounds(week_start)
        with LogContext.bind(actor_id=actor_id, agency_id=agency_id, week_start=monday):
            with self._transaction("set weekly deposit"):
                row = self._session.scalars(
                    select(WeeklyCuadreConfigModel)
                    .where(WeeklyCuadreConfigModel.agency_id == agency_id)
                    .where(WeeklyCuadreConfigModel.week_start_date == monday)
                ).one_or_none()
                if row is None:
                    row = WeeklyCuadreConfigModel(
                        agency_id=agency_id,
                        week_start_date=monday,
                        created_by_id=actor_id,
                    )
                    self._session.add(row)
                row.deposit_bs = deposit_bs
                row.exchange_rate = exchange_rate
                row.updated_at = self._clock.now_utc()
                row.updated_by_id = actor_id
            logger.info(
                "weekly_deposit_saved",
                extra={"deposit_bs": str(deposit_bs)},
            )
        return self._weekly.config(agency_id, monday)
