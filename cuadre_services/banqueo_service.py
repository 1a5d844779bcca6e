"""
BanqueoService -- weekly banking settlement per client.

Responsibility:
    Save a client's week of per-system sales and prizes, freezing the
    commission, participation and lanave percentages resolved at save time,
    settle saved weeks from those snapshots, and flag payments.

Invariants enforced:
    - All-zero systems are dropped; a week with nothing left raises
      NoAmountsSubmittedError and writes nothing.
    - Re-saving a week replaces its rows in one transaction (delete then
      insert) and keeps the paid flags already recorded.
    - A saved week settles with its snapshot percentages, never with the
      current configuration.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import date
from typing import Any
from uuid import UUID

from sqlalchemy import delete, update
from sqlalchemy.orm import Session

from cuadre_config.settings import CuadreSettings
from cuadre_engines.commission_cascade import (
    BanqueoSettlement,
    rates_from_snapshot,
    resolve_rates,
    settle_banqueo,
)
from cuadre_engines.reconciler import banqueo_draft_key
from cuadre_kernel.domain.clock import Clock, week_bounds
from cuadre_kernel.domain.commission import BanqueoEntry
from cuadre_kernel.exceptions import (
    ClientNotFoundError,
    DuplicateSystemLineError,
    LotterySystemNotFoundError,
    NoAmountsSubmittedError,
    SystemNotPostableError,
)
from cuadre_kernel.logging_config import LogContext, get_logger
from cuadre_kernel.models.commission import BanqueoTransactionModel
from cuadre_kernel.selectors.catalog_selector import CatalogSelector
from cuadre_kernel.selectors.commission_selector import CommissionSelector
from cuadre_services.base import BaseService
from cuadre_services.drafts import Draft, DraftStore, InMemoryDraftStore

logger = get_logger("services.banqueo")


class BanqueoService(BaseService):
    """Save, settle and pay a client's banqueo week."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        settings: CuadreSettings | None = None,
        drafts: DraftStore | None = None,
    ):
        super().__init__(session, clock, settings)
        self._drafts = drafts if drafts is not None else InMemoryDraftStore()

    @property
    def _selector(self) -> CommissionSelector:
        return CommissionSelector(self._session)

    def _require_client(self, client_id: UUID) -> None:
        if not CatalogSelector(self._session).client_exists(client_id):
            raise ClientNotFoundError(client_id)

    def _require_postable(self, entries: Sequence[BanqueoEntry]) -> None:
        catalog = CatalogSelector(self._session)
        seen: set[UUID] = set()
        for entry in entries:
            if entry.lottery_system_id in seen:
                raise DuplicateSystemLineError(entry.lottery_system_id, "banqueo")
            seen.add(entry.lottery_system_id)
            system = catalog.system(entry.lottery_system_id)
            if system is None:
                raise LotterySystemNotFoundError(entry.lottery_system_id)
            if not system.is_postable:
                raise SystemNotPostableError(str(system.id), system.name)

    def save_week(
        self,
        *,
        client_id: UUID,
        week_start: date,
        entries: Sequence[BanqueoEntry],
        actor_id: UUID,
    ) -> BanqueoSettlement:
        """Replace the client's rows for the week containing ``week_start``.

        Raises:
            ClientNotFoundError: Unknown client.
            NoAmountsSubmittedError: Every entry is all-zero.
            DuplicateSystemLineError: Two entries name the same system.
            SystemNotPostableError: An entry names a parent system.
        """
        self._require_client(client_id)
        monday, sunday = week_bounds(week_start)
        kept = [e for e in entries if not e.is_zero]
        if not kept:
            raise NoAmountsSubmittedError("banqueo")
        self._require_postable(kept)

        config = self._selector.config(client_id)
        existing = self._selector.banqueo_rows(client_id, monday)
        paid = {r.lottery_system_id: (r.paid_bs, r.paid_usd) for r in existing}
        week_paid = (
            any(r.paid_bs for r in existing),
            any(r.paid_usd for r in existing),
        )

        with LogContext.bind(actor_id=actor_id, client_id=client_id, week_start=monday):
            with self._transaction("save banqueo week"):
                self._session.execute(
                    delete(BanqueoTransactionModel)
                    .where(BanqueoTransactionModel.client_id == client_id)
                    .where(BanqueoTransactionModel.week_start_date == monday)
                    .execution_options(synchronize_session="fetch")
                )
                for entry in kept:
                    rates = resolve_rates(entry.lottery_system_id, client_id, config)
                    paid_bs, paid_usd = paid.get(entry.lottery_system_id, week_paid)
                    self._session.add(BanqueoTransactionModel(
                        client_id=client_id,
                        week_start_date=monday,
                        week_end_date=sunday,
                        lottery_system_id=entry.lottery_system_id,
                        sales_bs=entry.sales.bs,
                        sales_usd=entry.sales.usd,
                        prizes_bs=entry.prizes.bs,
                        prizes_usd=entry.prizes.usd,
                        commission_bs=rates.commission_bs.value.value,
                        commission_usd=rates.commission_usd.value.value,
                        participation_bs=rates.participation_bs.value.value,
                        participation_usd=rates.participation_usd.value.value,
                        lanave_bs=rates.lanave_bs.value.value,
                        lanave_usd=rates.lanave_usd.value.value,
                        paid_bs=paid_bs,
                        paid_usd=paid_usd,
                        created_by_id=actor_id,
                        updated_by_id=actor_id,
                        updated_at=self._clock.now_utc(),
                    ))
            logger.info(
                "banqueo_week_saved",
                extra={
                    "replaced": len(existing),
                    "saved": len(kept),
                    "dropped": len(entries) - len(kept),
                },
            )

        self._drafts.clear(banqueo_draft_key(actor_id, client_id, monday))
        return self.settlement(client_id, monday)

    def settlement(self, client_id: UUID, week_start: date) -> BanqueoSettlement:
        """Settle a saved week with the percentages frozen on its rows."""
        monday, _ = week_bounds(week_start)
        rows = self._selector.banqueo_rows(client_id, monday)
        return settle_banqueo(
            entries=[r.entry for r in rows],
            client_id=client_id,
            rates={r.lottery_system_id: rates_from_snapshot(r) for r in rows},
        )

    def preview(self, client_id: UUID, entries: Sequence[BanqueoEntry]) -> BanqueoSettlement:
        """Settle unsaved entries against the current configuration."""
        return settle_banqueo(
            entries=[e for e in entries if not e.is_zero],
            client_id=client_id,
            config=self._selector.config(client_id),
        )

    def set_payment_status(
        self,
        *,
        client_id: UUID,
        week_start: date,
        actor_id: UUID,
        paid_bs: bool | None = None,
        paid_usd: bool | None = None,
        lottery_system_id: UUID | None = None,
    ) -> int:
        """Flag the week (or one system of it) as paid; returns rows touched."""
        monday, _ = week_bounds(week_start)
        values: dict[str, Any] = {}
        if paid_bs is not None:
            values["paid_bs"] = paid_bs
        if paid_usd is not None:
            values["paid_usd"] = paid_usd
        if not values:
            return 0

        stmt = (
            update(BanqueoTransactionModel)
            .where(BanqueoTransactionModel.client_id == client_id)
            .where(BanqueoTransactionModel.week_start_date == monday)
        )
        if lottery_system_id is not None:
            stmt = stmt.where(BanqueoTransactionModel.lottery_system_id == lottery_system_id)

        with self._transaction("set banqueo payment status"):
            count = self._session.execute(
                stmt.values(
                    updated_at=self._clock.now_utc(),
                    updated_by_id=actor_id,
                    **values,
                ).execution_options(synchronize_session="fetch")
            ).rowcount
        logger.info(
            "banqueo_payment_status_set",
            extra={"client_id": client_id, "week_start": monday, "row_count": count, **values},
        )
        return count

    def save_draft(
        self,
        *,
        client_id: UUID,
        week_start: date,
        actor_id: UUID,
        values: Mapping[str, Any],
    ) -> Draft:
        monday, _ = week_bounds(week_start)
        draft = Draft(values=dict(values), saved_at=self._clock.now_utc())
        self._drafts.set(banqueo_draft_key(actor_id, client_id, monday), draft)
        return draft

    def draft(self, *, client_id: UUID, week_start: date, actor_id: UUID) -> Draft | None:
        monday, _ = week_bounds(week_start)
        return self._drafts.get(banqueo_draft_key(actor_id, client_id, monday))
