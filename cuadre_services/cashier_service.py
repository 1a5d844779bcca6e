"""
CashierService -- the cashier's side of the day.

Responsibility:
    Record transactions (append-only), toggle the paid flag on payable
    rows, and submit the cashier's closure with its per-session summary.

Architecture:
    Services layer.  Validates against the catalog before writing, uses the
    aggregation and totals engines to compute the per-session summary.

Invariants enforced:
    - No transaction is written with an all-zero amount pair.
    - Sales and prizes must name a postable lottery system; parents with
      subcategories are informational only.
    - Nothing is written for a day whose consolidated cuadre is approved.
    - A confirmed closure is read-only until the supervisor rejects it;
      resubmitting a rejected closure puts it back in ``pendiente``.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from cuadre_config.settings import CuadreSettings
from cuadre_engines.aggregation import aggregate_cashier_sessions, aggregate_transactions
from cuadre_engines.cuadre_totals import CuadreInputs, calculate_cuadre
from cuadre_engines.reconciler import base_field_values, cashier_draft_key, field_defaults
from cuadre_engines.review import transition
from cuadre_kernel.domain.clock import Clock
from cuadre_kernel.domain.cuadre import AdjustmentBlock, CashierSession, CuadreSummary
from cuadre_kernel.domain.review import (
    ReviewEvent,
    ReviewStatus,
    is_cuadre_locked,
    is_session_locked,
)
from cuadre_kernel.domain.transactions import (
    PAYABLE_KINDS,
    SYSTEM_KINDS,
    ExpenseCategory,
    Transaction,
    TransactionKind,
)
from cuadre_kernel.domain.values import ZERO, CurrencyPair
from cuadre_kernel.exceptions import (
    AgencyNotFoundError,
    CashierSessionNotFoundError,
    CuadreLockedError,
    InvalidAmountError,
    InvalidExchangeRateError,
    LotterySystemNotFoundError,
    NoAmountsSubmittedError,
    SystemNotPostableError,
    TransactionNotFoundError,
    ValidationError,
)
from cuadre_kernel.logging_config import LogContext, get_logger
from cuadre_kernel.models.summary import CuadreSummaryModel
from cuadre_kernel.models.transactions import CashierSessionModel, TransactionModel
from cuadre_kernel.selectors.catalog_selector import CatalogSelector
from cuadre_kernel.selectors.summary_selector import SummarySelector
from cuadre_kernel.selectors.transaction_selector import TransactionSelector
from cuadre_services.base import BaseService
from cuadre_services.drafts import DraftStore, InMemoryDraftStore
from cuadre_services.notifications import ChangeNotifier, SummaryUpdated

logger = get_logger("services.cashier")


class CashierService(BaseService):
    """Transaction entry and closure submission for cashiers."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        settings: CuadreSettings | None = None,
        drafts: DraftStore | None = None,
        notifier: ChangeNotifier | None = None,
    ):
        super().__init__(session, clock, settings)
        self._drafts = drafts if drafts is not None else InMemoryDraftStore()
        self._notifier = notifier or ChangeNotifier()

    @property
    def _catalog(self) -> CatalogSelector:
        return CatalogSelector(self._session)

    @property
    def _summaries(self) -> SummarySelector:
        return SummarySelector(self._session, self._settings.default_apply_excess_usd)

    @property
    def _transactions(self) -> TransactionSelector:
        return TransactionSelector(self._session, self._settings.default_apply_excess_usd)

    def _require_unlocked_day(self, agency_id: UUID, day: date) -> None:
        consolidated = self._summaries.consolidated(agency_id, day)
        if consolidated is not None and is_cuadre_locked(consolidated.review_status):
            raise CuadreLockedError(agency_id, day)

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    def record_transaction(
        self,
        *,
        kind: TransactionKind,
        agency_id: UUID,
        transaction_date: date,
        amount: CurrencyPair,
        actor_id: UUID,
        lottery_system_id: UUID | None = None,
        session_id: UUID | None = None,
        category: ExpenseCategory | None = None,
        description: str = "",
        is_paid: bool = False,
    ) -> Transaction:
        """Append one transaction.

        Mobile payments are signed: positive was received, negative was
        paid out.  Every other kind must be non-negative.

        Raises:
            NoAmountsSubmittedError: Both amounts are zero.
            InvalidAmountError: A negative amount on a non-mobile kind.
            AgencyNotFoundError / LotterySystemNotFoundError /
            CashierSessionNotFoundError: Unknown reference.
            SystemNotPostableError: The system has subcategories.
            CuadreLockedError: The day is approved.
        """
        kind = TransactionKind(kind)
        if amount.is_zero:
            raise NoAmountsSubmittedError(f"{kind.value} transaction")
        if kind != TransactionKind.MOBILE_PAYMENT and (amount.bs < ZERO or amount.usd < ZERO):
            raise InvalidAmountError(amount, "must not be negative")
        if not self._catalog.agency_exists(agency_id):
            raise AgencyNotFoundError(agency_id)

        if kind in SYSTEM_KINDS and lottery_system_id is None:
            raise ValidationError(f"A {kind.value} transaction must name a lottery system")
        if lottery_system_id is not None:
            system = self._catalog.system(lottery_system_id)
            if system is None:
                raise LotterySystemNotFoundError(lottery_system_id)
            if not system.is_postable:
                raise SystemNotPostableError(str(system.id), system.name)

        if session_id is not None:
            cashier_session = self._transactions.cashier_session(session_id)
            if cashier_session is None or cashier_session.agency_id != agency_id:
                raise CashierSessionNotFoundError(session_id)

        self._require_unlocked_day(agency_id, transaction_date)

        if kind == TransactionKind.EXPENSE:
            category = ExpenseCategory(category) if category else ExpenseCategory.OPERATING
        else:
            category = None

        txn = Transaction(
            id=uuid4(),
            kind=kind,
            agency_id=agency_id,
            transaction_date=transaction_date,
            amount=amount,
            lottery_system_id=lottery_system_id,
            session_id=session_id,
            category=category,
            is_paid=is_paid and kind in PAYABLE_KINDS,
            description=description,
        )
        with LogContext.bind(actor_id=actor_id, agency_id=agency_id, session_date=transaction_date):
            with self._transaction("record transaction"):
                self._session.add(TransactionModel.from_dto(txn, created_by_id=actor_id))
            logger.info(
                "transaction_recorded",
                extra={
                    "transaction_id": txn.id,
                    "kind": kind.value,
                    "amount_bs": str(amount.bs),
                    "amount_usd": str(amount.usd),
                },
            )
        return txn

    def set_paid(self, transaction_id: UUID, is_paid: bool, actor_id: UUID) -> Transaction:
        """Mark a debt, expense or pending prize as paid or unpaid."""
        model = self._session.get(TransactionModel, transaction_id)
        if model is None:
            raise TransactionNotFoundError(transaction_id)
        if TransactionKind(model.kind) not in PAYABLE_KINDS:
            raise ValidationError(
                f"Transactions of kind {model.kind!r} cannot be marked paid"
            )
        self._require_unlocked_day(model.agency_id, model.transaction_date)

        with self._transaction("set paid"):
            model.is_paid = is_paid
            model.updated_at = self._clock.now_utc()
            model.updated_by_id = actor_id
        logger.info(
            "transaction_paid_flag_set",
            extra={"transaction_id": transaction_id, "is_paid": is_paid},
        )
        return self._transactions.transaction(transaction_id)

    # ------------------------------------------------------------------
    # Closure
    # ------------------------------------------------------------------

    def submit_closure(
        self,
        *,
        user_id: UUID,
        agency_id: UUID,
        session_date: date,
        cash: CurrencyPair,
        exchange_rate: Decimal,
        closure_notes: str = "",
        adjustment: AdjustmentBlock | None = None,
        confirm: bool = True,
    ) -> CuadreSummary:
        """Upsert the cashier's closure and its per-session summary.

        A closure whose summary was rejected is resubmitted: the summary
        goes back to ``pendiente`` and the observation is cleared.
        """
        if exchange_rate < ZERO:
            raise InvalidExchangeRateError(exchange_rate)
        if not self._catalog.agency_exists(agency_id):
            raise AgencyNotFoundError(agency_id)
        self._require_unlocked_day(agency_id, session_date)

        adjustment = adjustment or AdjustmentBlock(
            apply_excess_usd=self._settings.default_apply_excess_usd,
        )
        now = self._clock.now_utc()

        with LogContext.bind(actor_id=user_id, agency_id=agency_id, session_date=session_date):
            session_model = self._session.scalars(
                select(CashierSessionModel)
                .where(CashierSessionModel.user_id == user_id)
                .where(CashierSessionModel.agency_id == agency_id)
                .where(CashierSessionModel.session_date == session_date)
            ).one_or_none()

            previous_summary = None
            if session_model is not None:
                previous_summary = self._summaries.for_session(session_model.id)
                previous_status = previous_summary.review_status if previous_summary else None
                if is_session_locked(session_model.closure_confirmed, previous_status):
                    raise CuadreLockedError(agency_id, session_date)

            status = ReviewStatus.PENDIENTE
            clear_observation = False
            if previous_summary is not None:
                outcome = transition(
                    previous_summary.review_status,
                    ReviewEvent.resubmit(str(user_id))
                    if previous_summary.review_status == ReviewStatus.RECHAZADO
                    else ReviewEvent.save(str(user_id)),
                    agency_id=agency_id,
                    session_date=session_date,
                )
                status = outcome.status
                clear_observation = outcome.changed

            with self._transaction("submit closure"):
                if session_model is None:
                    session_model = CashierSessionModel(
                        user_id=user_id,
                        agency_id=agency_id,
                        session_date=session_date,
                        created_by_id=user_id,
                    )
                    self._session.add(session_model)
                session_model.cash_bs = cash.bs
                session_model.cash_usd = cash.usd
                session_model.exchange_rate = exchange_rate
                session_model.closure_notes = closure_notes
                session_model.notes = adjustment.to_json()
                session_model.closure_confirmed = confirm
                session_model.updated_at = now
                session_model.updated_by_id = user_id
                self._session.flush()

                summary_model = self._upsert_session_summary(
                    session_model.to_dto(self._settings.default_apply_excess_usd),
                    status,
                    clear_observation,
                    user_id,
                )

            logger.info(
                "closure_submitted",
                extra={
                    "session_id": session_model.id,
                    "summary_id": summary_model.id,
                    "review_status": status.value,
                    "confirmed": confirm,
                },
            )

        self._drafts.clear(cashier_draft_key(user_id, session_date))
        summary = self._summaries.for_session(session_model.id)
        self._notifier.publish(SummaryUpdated(
            summary_id=summary.id,
            agency_id=agency_id,
            session_date=session_date,
            session_id=summary.session_id,
            user_id=user_id,
            review_status=summary.review_status,
            previous_status=previous_summary.review_status if previous_summary else None,
        ))
        return summary

    def _upsert_session_summary(
        self,
        cashier_session: CashierSession,
        status: ReviewStatus,
        clear_observation: bool,
        user_id: UUID,
    ) -> CuadreSummaryModel:
        txns = [
            t for t in self._transactions.transactions(
                cashier_session.agency_id,
                cashier_session.session_date,
                session_ids=[cashier_session.id],
            )
            if t.session_id == cashier_session.id
        ]
        aggregation = aggregate_transactions(
            transactions=txns, systems=self._catalog.systems(),
        )
        sessions = aggregate_cashier_sessions(
            [cashier_session], self._settings.placeholder_exchange_rate,
        )
        values = field_defaults(self._settings.default_apply_excess_usd)
        values.update(base_field_values(aggregation, sessions))
        values["exchange_rate"] = cashier_session.exchange_rate
        report = calculate_cuadre(
            inputs=CuadreInputs.from_working_state(aggregation, values),
            tolerances=self.tolerances,
        )

        model = self._session.scalars(
            select(CuadreSummaryModel).where(
                CuadreSummaryModel.session_id == cashier_session.id
            )
        ).one_or_none()
        if model is None:
            model = CuadreSummaryModel(
                agency_id=cashier_session.agency_id,
                session_date=cashier_session.session_date,
                session_id=cashier_session.id,
                user_id=user_id,
                created_by_id=user_id,
                version=1,
            )
            self._session.add(model)
        else:
            model.version = model.version + 1

        model.sales_bs = report.inputs.sales.bs
        model.sales_usd = report.inputs.sales.usd
        model.prizes_bs = report.inputs.prizes.bs
        model.prizes_usd = report.inputs.prizes.usd
        model.expenses_bs = aggregation.expenses.bs
        model.expenses_usd = aggregation.expenses.usd
        model.debts_bs = aggregation.debts.bs
        model.debts_usd = aggregation.debts.usd
        model.mobile_received_bs = aggregation.mobile_received
        model.mobile_paid_bs = aggregation.mobile_paid
        model.point_of_sale_bs = aggregation.point_of_sale
        model.bank_total_bs = report.bank_total
        model.cash_bs = cashier_session.cash.bs
        model.cash_usd = cashier_session.cash.usd
        model.pending_prizes_bs = aggregation.pending_prizes.bs
        model.pending_prizes_usd = aggregation.pending_prizes.usd
        model.final_difference_bs = report.final_difference.bs
        model.final_difference_usd = report.final_difference.usd
        model.exchange_rate = cashier_session.exchange_rate
        model.closure_notes = cashier_session.closure_notes
        model.notes = cashier_session.adjustment.to_json()
        model.closure_confirmed = cashier_session.closure_confirmed
        model.review_status = status.value
        if clear_observation:
            model.review_observations = None
        model.updated_at = self._clock.now_utc()
        model.updated_by_id = user_id
        self._session.flush()
        return model
