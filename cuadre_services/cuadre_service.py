"""
cuadre_services.cuadre_service
==============================

Responsibility:
    The supervisor's daily cuadre: load the working state of an
    agency/date from every source, keep drafts, save the consolidated
    summary, and run the review lifecycle (approve, reject, resubmit).
    Also replaces the supervisor's per-system detail rows.

Architecture:
    Services layer.  Reads through the kernel selectors, computes with
    the pure engines (aggregation -> reconciler -> totals -> review) and
    owns the transaction boundary of every write.

Invariants enforced:
    - At most one consolidated summary per (agency, date): writes go
      through find-by-key then update, falling back to insert only when
      the row found has vanished.
    - An approved day is read-only; every write raises CuadreLockedError.
    - Approval updates the consolidated summary and every cashier-session
      summary of the day in one transaction.  A failure rolls everything
      back and raises ApprovalFailedError; a post-commit disagreement is
      reverted with a compensating write.
    - The actor's draft is cleared as soon as a save commits.

Concurrency:
    Last write wins on the full consolidated row.  ``version`` is bumped
    on every update so callers can detect that someone else saved, but no
    write is refused because of it.

Usage::

    service = CuadreService(session, clock=clock, drafts=drafts, notifier=notifier)
    state = service.load_working_state(
        agency_id=agency_id, session_date=day, actor_id=supervisor_id,
    )
    summary = service.save(
        agency_id=agency_id, session_date=day, actor_id=supervisor_id,
        values={"cash_local": "1.250,00"}, approve=True,
    )
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any
from uuid import UUID

from sqlalchemy import delete, update
from sqlalchemy.orm import Session

from cuadre_config.settings import CuadreSettings
from cuadre_engines.aggregation import (
    AggregationResult,
    AggregationScope,
    SessionAggregate,
    aggregate_cashier_sessions,
    aggregate_transactions,
    merge_supervisor_details,
)
from cuadre_engines.commission_cascade import ResolvedRates, resolve_rates
from cuadre_engines.cuadre_totals import CuadreInputs, CuadreReport, calculate_cuadre
from cuadre_engines.reconciler import (
    ReconciledState,
    base_field_values,
    editable_values,
    normalize_field,
    reconcile,
    summary_field_values,
    supervisor_draft_key,
    validate_draft_values,
)
from cuadre_engines.review import NotificationDeduper, transition
from cuadre_kernel.domain.clock import Clock, week_start
from cuadre_kernel.domain.cuadre import AdjustmentBlock, CuadreSummary
from cuadre_kernel.domain.review import (
    ReviewEvent,
    ReviewEventType,
    ReviewStatus,
    SideEffect,
    TransitionOutcome,
    is_cuadre_locked,
)
from cuadre_kernel.domain.transactions import SupervisorDetail
from cuadre_kernel.domain.values import CurrencyPair
from cuadre_kernel.exceptions import (
    AgencyNotFoundError,
    ApprovalFailedError,
    CuadreLockedError,
    DuplicateSystemLineError,
    LotterySystemNotFoundError,
    SummaryRowVanishedError,
    SystemNotPostableError,
    TransientIOError,
)
from cuadre_kernel.logging_config import LogContext, get_logger
from cuadre_kernel.models.summary import CuadreSummaryModel
from cuadre_kernel.models.transactions import SupervisorDetailModel
from cuadre_kernel.selectors.catalog_selector import CatalogSelector
from cuadre_kernel.selectors.commission_selector import CommissionSelector
from cuadre_kernel.selectors.summary_selector import SummarySelector
from cuadre_kernel.selectors.transaction_selector import TransactionSelector
from cuadre_services.base import BaseService
from cuadre_services.drafts import Draft, DraftStore, InMemoryDraftStore
from cuadre_services.notifications import (
    ChangeNotifier,
    CuadreSaved,
    ReviewNotification,
    SummaryUpdated,
)

logger = get_logger("services.cuadre")


@dataclass(frozen=True)
class WorkingState:
    """Everything a supervisor sees for one agency and date."""

    agency_id: UUID
    session_date: date
    actor_id: UUID
    aggregation: AggregationResult
    sessions: SessionAggregate
    fields: ReconciledState
    report: CuadreReport
    summary: CuadreSummary | None
    review_status: ReviewStatus
    draft_key: str
    supervisor_details: tuple[SupervisorDetail, ...] = ()
    cashier_user_ids: tuple[UUID, ...] = ()

    @property
    def is_locked(self) -> bool:
        return self.fields.is_locked

    def values(self) -> dict[str, Any]:
        return self.fields.values()


class CuadreService(BaseService):
    """
    Orchestrates the supervisor's daily cuadre.

    Contract:
        Every write either commits and returns the stored summary, or rolls
        back and raises.  Notifications are published only after commit.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        settings: CuadreSettings | None = None,
        drafts: DraftStore | None = None,
        notifier: ChangeNotifier | None = None,
        deduper: NotificationDeduper | None = None,
    ):
        super().__init__(session, clock, settings)
        self._drafts = drafts if drafts is not None else InMemoryDraftStore()
        self._notifier = notifier or ChangeNotifier()
        self._deduper = deduper or NotificationDeduper()

    # ------------------------------------------------------------------
    # Selectors
    # ------------------------------------------------------------------

    @property
    def _summaries(self) -> SummarySelector:
        return SummarySelector(self._session, self._settings.default_apply_excess_usd)

    @property
    def _transactions(self) -> TransactionSelector:
        return TransactionSelector(self._session, self._settings.default_apply_excess_usd)

    @property
    def _catalog(self) -> CatalogSelector:
        return CatalogSelector(self._session)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def load_working_state(
        self,
        *,
        agency_id: UUID,
        session_date: date,
        actor_id: UUID,
        draft_key: str | None = None,
    ) -> WorkingState:
        """Reconcile confirmed, draft and aggregated values for the day."""
        cashier_sessions = self._transactions.cashier_sessions(
            session_date, agency_id=agency_id,
        )
        session_ids = frozenset(s.id for s in cashier_sessions)
        raw = self._transactions.transactions(
            agency_id, session_date, session_ids=session_ids,
        )
        systems = self._catalog.systems()
        aggregation = aggregate_transactions(
            transactions=raw,
            systems=systems,
            scope=AggregationScope(agency_id, session_date, session_date, session_ids),
        )
        details = self._transactions.supervisor_details(
            agency_id, session_date, supervisor_id=actor_id,
        )
        aggregation = merge_supervisor_details(aggregation, details)
        sessions = aggregate_cashier_sessions(
            cashier_sessions, self._settings.placeholder_exchange_rate,
        )

        summary = self._summaries.consolidated(agency_id, session_date)
        status = summary.review_status if summary else ReviewStatus.PENDIENTE
        key = draft_key or supervisor_draft_key(actor_id, agency_id, session_date)
        draft = self._drafts.get(key)

        fields = reconcile(
            confirmed=summary_field_values(summary) if summary else None,
            draft=dict(draft.values) if draft else None,
            base=base_field_values(aggregation, sessions),
            is_locked=is_cuadre_locked(status),
            placeholder_rate=self._settings.placeholder_exchange_rate,
            confirmed_updated_at=summary.updated_at if summary else None,
            draft_saved_at=draft.saved_at if draft else None,
            default_apply_excess_usd=self._settings.default_apply_excess_usd,
        )
        if fields.draft_discarded:
            self._drafts.clear(key)

        report = calculate_cuadre(
            inputs=CuadreInputs.from_working_state(
                aggregation, fields.values(), self._system_rates(aggregation),
            ),
            tolerances=self.tolerances,
        )
        return WorkingState(
            agency_id=agency_id,
            session_date=session_date,
            actor_id=actor_id,
            aggregation=aggregation,
            sessions=sessions,
            fields=fields,
            report=report,
            summary=summary,
            review_status=status,
            draft_key=key,
            supervisor_details=tuple(details),
            cashier_user_ids=tuple(dict.fromkeys(s.user_id for s in cashier_sessions)),
        )

    def _system_rates(self, aggregation: AggregationResult) -> dict[UUID, ResolvedRates]:
        config = CommissionSelector(self._session).config()
        return {
            line.system_id: resolve_rates(line.system_id, None, config)
            for line in aggregation.system_lines
            if line.system_id is not None
        }

    # ------------------------------------------------------------------
    # Drafts
    # ------------------------------------------------------------------

    def save_draft(
        self,
        *,
        agency_id: UUID,
        session_date: date,
        actor_id: UUID,
        values: Mapping[str, Any],
        draft_key: str | None = None,
    ) -> Draft:
        """Keep unsaved edits.  Refused once the day is approved.

        Values are parse-checked before anything is stored.

        Raises:
            CuadreLockedError: The day is already approved.
            InvalidAmountError: A numeric value does not parse.
            InvalidExchangeRateError: The exchange rate is negative.
        """
        summary = self._summaries.consolidated(agency_id, session_date)
        if summary is not None and is_cuadre_locked(summary.review_status):
            raise CuadreLockedError(agency_id, session_date)
        key = draft_key or supervisor_draft_key(actor_id, agency_id, session_date)
        draft = Draft(values=validate_draft_values(values), saved_at=self._clock.now_utc())
        self._drafts.set(key, draft)
        return draft

    def clear_draft(
        self,
        *,
        agency_id: UUID,
        session_date: date,
        actor_id: UUID,
        draft_key: str | None = None,
    ) -> None:
        self._drafts.clear(draft_key or supervisor_draft_key(actor_id, agency_id, session_date))

    # ------------------------------------------------------------------
    # Review lifecycle
    # ------------------------------------------------------------------

    def save(
        self,
        *,
        agency_id: UUID,
        session_date: date,
        actor_id: UUID,
        values: Mapping[str, Any] | None = None,
        approve: bool = False,
        draft_key: str | None = None,
    ) -> CuadreSummary:
        """Upsert the consolidated summary; with ``approve`` also approve the day.

        Raises:
            CuadreLockedError: The day is already approved.
            ApprovalFailedError: The approval did not complete.
            TransientIOError: The store failed during a plain save.
        """
        event = ReviewEvent.approve(str(actor_id)) if approve else ReviewEvent.save(str(actor_id))
        return self._apply_event(agency_id, session_date, actor_id, event, values, draft_key)

    def approve(
        self,
        *,
        agency_id: UUID,
        session_date: date,
        actor_id: UUID,
        values: Mapping[str, Any] | None = None,
    ) -> CuadreSummary:
        return self.save(
            agency_id=agency_id,
            session_date=session_date,
            actor_id=actor_id,
            values=values,
            approve=True,
        )

    def reject(
        self,
        *,
        agency_id: UUID,
        session_date: date,
        actor_id: UUID,
        observation: str | None,
        values: Mapping[str, Any] | None = None,
    ) -> CuadreSummary:
        """Send the day back to the cashiers with an observation."""
        event = ReviewEvent.reject(str(actor_id), observation)
        return self._apply_event(agency_id, session_date, actor_id, event, values, None)

    def resubmit(
        self,
        *,
        agency_id: UUID,
        session_date: date,
        actor_id: UUID,
        values: Mapping[str, Any] | None = None,
    ) -> CuadreSummary:
        """Move a rejected day back to pendiente."""
        event = ReviewEvent.resubmit(str(actor_id))
        return self._apply_event(agency_id, session_date, actor_id, event, values, None)

    def _apply_event(
        self,
        agency_id: UUID,
        session_date: date,
        actor_id: UUID,
        event: ReviewEvent,
        overrides: Mapping[str, Any] | None,
        draft_key: str | None,
    ) -> CuadreSummary:
        with LogContext.bind(actor_id=actor_id, agency_id=agency_id, session_date=session_date):
            if not self._catalog.agency_exists(agency_id):
                raise AgencyNotFoundError(agency_id)

            state = self.load_working_state(
                agency_id=agency_id,
                session_date=session_date,
                actor_id=actor_id,
                draft_key=draft_key,
            )
            previous = state.review_status
            outcome = transition(
                previous, event, agency_id=agency_id, session_date=session_date,
            )

            values = state.values()
            for name, raw in editable_values(overrides or {}).items():
                values[name] = normalize_field(name, raw)
            report = calculate_cuadre(
                inputs=CuadreInputs.from_working_state(state.aggregation, values),
                tolerances=self.tolerances,
            )

            logger.info(
                "cuadre_save_started",
                extra={"event": event.type.value, "from_status": previous.value},
            )
            now = self._clock.now_utc()
            is_approval = event.type == ReviewEventType.APPROVE
            try:
                with self._transaction(f"{event.type.value} cuadre"):
                    summary_id = self._upsert_consolidated(
                        state, values, report, outcome, actor_id, now,
                    )
                    self._apply_session_side_effects(
                        outcome, agency_id, session_date, actor_id, now,
                    )
            except TransientIOError as exc:
                if is_approval:
                    raise ApprovalFailedError(
                        agency_id, session_date, exc.original_message,
                    ) from exc
                raise

            if is_approval:
                self._verify_approval(summary_id, agency_id, session_date, previous, actor_id)

            self._drafts.clear(state.draft_key)
            summary = self._summaries.consolidated(agency_id, session_date)
            logger.info(
                "cuadre_saved",
                extra={
                    "summary_id": summary.id,
                    "review_status": summary.review_status.value,
                    "version": summary.version,
                    "balanced": report.balanced,
                },
            )
            self._publish(summary, previous, state.cashier_user_ids)
            return summary

    def _summary_columns(
        self,
        state: WorkingState,
        values: Mapping[str, Any],
        report: CuadreReport,
        outcome: TransitionOutcome,
        actor_id: UUID,
        now: datetime,
    ) -> dict[str, Any]:
        adjustment = AdjustmentBlock(
            additional_amount=CurrencyPair.of(
                values["additional_amount_local"], values["additional_amount_usd"],
            ),
            additional_notes=values["additional_notes"],
            apply_excess_usd=values["apply_excess_usd"],
        )
        aggregation = state.aggregation
        columns: dict[str, Any] = {
            "sales_bs": values["sales_local"],
            "sales_usd": values["sales_usd"],
            "prizes_bs": values["prizes_local"],
            "prizes_usd": values["prizes_usd"],
            "expenses_bs": aggregation.expenses.bs,
            "expenses_usd": aggregation.expenses.usd,
            "debts_bs": aggregation.debts.bs,
            "debts_usd": aggregation.debts.usd,
            "mobile_received_bs": aggregation.mobile_received,
            "mobile_paid_bs": aggregation.mobile_paid,
            "point_of_sale_bs": aggregation.point_of_sale,
            "bank_total_bs": report.bank_total,
            "cash_bs": values["cash_local"],
            "cash_usd": values["cash_usd"],
            "pending_prizes_bs": values["pending_prizes_local"],
            "pending_prizes_usd": values["pending_prizes_usd"],
            "final_difference_bs": report.final_difference.bs,
            "final_difference_usd": report.final_difference.usd,
            "exchange_rate": values["exchange_rate"],
            "closure_notes": values["closure_notes"],
            "notes": adjustment.to_json(),
            "closure_confirmed": True,
            "review_status": outcome.status.value,
            "updated_at": now,
            "updated_by_id": actor_id,
        }
        columns.update(_review_columns(outcome, actor_id, now))
        return columns

    def _upsert_consolidated(
        self,
        state: WorkingState,
        values: Mapping[str, Any],
        report: CuadreReport,
        outcome: TransitionOutcome,
        actor_id: UUID,
        now: datetime,
    ) -> UUID:
        """Find by key, update in place, insert only when nothing is there."""
        columns = self._summary_columns(state, values, report, outcome, actor_id, now)
        existing = self._summaries.consolidated(state.agency_id, state.session_date)
        if existing is not None:
            try:
                self._update_summary(existing.id, state, columns)
                logger.info(
                    "summary_upserted",
                    extra={"summary_id": existing.id, "operation": "update"},
                )
                return existing.id
            except SummaryRowVanishedError as exc:
                logger.warning(
                    "summary_update_fell_back_to_insert",
                    extra={"summary_id": exc.summary_id},
                )

        model = CuadreSummaryModel(
            agency_id=state.agency_id,
            session_date=state.session_date,
            session_id=None,
            user_id=actor_id,
            created_by_id=actor_id,
            version=1,
            **columns,
        )
        self._session.add(model)
        self._session.flush()
        logger.info(
            "summary_upserted",
            extra={"summary_id": model.id, "operation": "insert"},
        )
        return model.id

    def _update_summary(
        self,
        summary_id: UUID,
        state: WorkingState,
        columns: Mapping[str, Any],
    ) -> None:
        result = self._session.execute(
            update(CuadreSummaryModel)
            .where(CuadreSummaryModel.id == summary_id)
            .values(version=CuadreSummaryModel.version + 1, **columns)
            .execution_options(synchronize_session="fetch")
        )
        if result.rowcount == 0:
            raise SummaryRowVanishedError(summary_id, state.agency_id, state.session_date)

    def _apply_session_side_effects(
        self,
        outcome: TransitionOutcome,
        agency_id: UUID,
        session_date: date,
        actor_id: UUID,
        now: datetime,
    ) -> None:
        """Carry the consolidated review status onto the cashier-session summaries."""
        effects = set(outcome.side_effects)
        if SideEffect.APPROVE_CASHIER_SESSIONS in effects:
            target = ReviewStatus.APROBADO
        elif SideEffect.REJECT_CASHIER_SESSIONS in effects:
            target = ReviewStatus.RECHAZADO
        elif SideEffect.REOPEN_CASHIER_SESSIONS in effects:
            target = ReviewStatus.PENDIENTE
        else:
            return
        self._mark_session_summaries(
            agency_id, session_date, target, _review_columns(outcome, actor_id, now), now,
        )

    def _mark_session_summaries(
        self,
        agency_id: UUID,
        session_date: date,
        status: ReviewStatus,
        review_columns: Mapping[str, Any],
        now: datetime,
    ) -> int:
        result = self._session.execute(
            update(CuadreSummaryModel)
            .where(CuadreSummaryModel.agency_id == agency_id)
            .where(CuadreSummaryModel.session_date == session_date)
            .where(CuadreSummaryModel.session_id.is_not(None))
            .values(review_status=status.value, updated_at=now, **review_columns)
            .execution_options(synchronize_session="fetch")
        )
        logger.info(
            "cashier_session_summaries_marked",
            extra={"review_status": status.value, "row_count": result.rowcount},
        )
        return result.rowcount

    def _verify_approval(
        self,
        summary_id: UUID,
        agency_id: UUID,
        session_date: date,
        previous: ReviewStatus,
        actor_id: UUID,
    ) -> None:
        """Revert the consolidated status if any cashier session missed the approval."""
        consolidated = self._summaries.consolidated(agency_id, session_date)
        sessions = self._summaries.session_summaries(agency_id, session_date)
        lagging = [s.id for s in sessions if s.review_status != ReviewStatus.APROBADO]
        if consolidated is not None and consolidated.review_status == ReviewStatus.APROBADO and not lagging:
            return

        logger.error(
            "approval_inconsistent",
            extra={"summary_id": summary_id, "lagging_sessions": len(lagging)},
        )
        now = self._clock.now_utc()
        with self._transaction("revert approval"):
            self._mark_session_summaries(
                agency_id, session_date, previous,
                {"reviewed_by": None, "reviewed_at": None}, now,
            )
            self._session.execute(
                update(CuadreSummaryModel)
                .where(CuadreSummaryModel.id == summary_id)
                .values(
                    review_status=previous.value,
                    reviewed_by=None,
                    reviewed_at=None,
                    updated_at=now,
                    updated_by_id=actor_id,
                )
                .execution_options(synchronize_session="fetch")
            )
        raise ApprovalFailedError(
            agency_id,
            session_date,
            f"{len(lagging)} cashier session summaries were not approved",
            compensated=True,
        )

    def _publish(
        self,
        summary: CuadreSummary,
        previous: ReviewStatus,
        cashier_user_ids: Sequence[UUID],
    ) -> None:
        self._notifier.publish(SummaryUpdated(
            summary_id=summary.id,
            agency_id=summary.agency_id,
            session_date=summary.session_date,
            user_id=summary.user_id,
            review_status=summary.review_status,
            previous_status=previous,
        ))
        self._notifier.publish(CuadreSaved(
            agency_id=summary.agency_id,
            session_date=summary.session_date,
            week_start_date=week_start(summary.session_date),
        ))
        if self._deduper.should_emit(summary.id, previous, summary.review_status):
            self._notifier.publish(ReviewNotification(
                summary_id=summary.id,
                agency_id=summary.agency_id,
                session_date=summary.session_date,
                review_status=summary.review_status,
                observation=summary.review_observations,
                user_ids=tuple(cashier_user_ids),
            ))

    # ------------------------------------------------------------------
    # Supervisor detail rows
    # ------------------------------------------------------------------

    def replace_detail_rows(
        self,
        *,
        agency_id: UUID,
        session_date: date,
        actor_id: UUID,
        lines: Sequence[tuple[UUID, CurrencyPair, CurrencyPair]],
    ) -> list[SupervisorDetail]:
        """Replace the supervisor's per-system rows for the day.

        The delete of the previous set and the insert of the new one share
        one transaction.  All-zero lines are dropped.
        A system named on two non-zero lines raises
        DuplicateSystemLineError before anything is deleted.
        """
        if not self._catalog.agency_exists(agency_id):
            raise AgencyNotFoundError(agency_id)
        summary = self._summaries.consolidated(agency_id, session_date)
        if summary is not None and is_cuadre_locked(summary.review_status):
            raise CuadreLockedError(agency_id, session_date)

        details: list[SupervisorDetail] = []
        for system_id, sales, prizes in lines:
            system = self._catalog.system(system_id)
            if system is None:
                raise LotterySystemNotFoundError(system_id)
            if not system.is_postable:
                raise SystemNotPostableError(str(system.id), system.name)
            detail = SupervisorDetail(
                agency_id=agency_id,
                session_date=session_date,
                supervisor_id=actor_id,
                lottery_system_id=system_id,
                sales=sales,
                prizes=prizes,
            )
            if detail.is_zero:
                continue
            if any(d.lottery_system_id == system_id for d in details):
                raise DuplicateSystemLineError(system_id, "supervisor details")
            details.append(detail)

        with LogContext.bind(actor_id=actor_id, agency_id=agency_id, session_date=session_date):
            with self._transaction("replace detail rows"):
                deleted = self._session.execute(
                    delete(SupervisorDetailModel)
                    .where(SupervisorDetailModel.agency_id == agency_id)
                    .where(SupervisorDetailModel.session_date == session_date)
                    .where(SupervisorDetailModel.supervisor_id == actor_id)
                    .execution_options(synchronize_session="fetch")
                ).rowcount
                self._session.add_all(
                    SupervisorDetailModel.from_dto(d, created_by_id=actor_id) for d in details
                )
                self._session.flush()
            logger.info(
                "detail_rows_replaced",
                extra={"deleted": deleted, "inserted": len(details)},
            )
        return self._transactions.supervisor_details(
            agency_id, session_date, supervisor_id=actor_id,
        )


def _review_columns(outcome: TransitionOutcome, actor_id: UUID, now: datetime) -> dict[str, Any]:
    """Reviewer/observation columns requested by a transition's side effects."""
    columns: dict[str, Any] = {}
    effects = set(outcome.side_effects)
    if SideEffect.STAMP_REVIEWER in effects:
        columns["reviewed_by"] = actor_id
        columns["reviewed_at"] = now
    if SideEffect.CLEAR_OBSERVATIONS in effects:
        columns["review_observations"] = None
    if SideEffect.RECORD_OBSERVATION in effects:
        columns["review_observations"] = outcome.observation
    return columns
