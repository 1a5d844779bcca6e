"""
Tests for CuadreService -- the supervisor's daily cuadre against a real store.

Covers:
- load_working_state(): aggregation, cashier closures, draft precedence,
  stale drafts cleared
- save(): find-or-create of the consolidated row, version bump, draft cleared
- approve() / reject() / resubmit(): status, reviewer stamp, cashier-session
  propagation, lock after approval, notifications
- Approval failure: store error and partial propagation both leave the
  previous status in place
- replace_detail_rows(): delete-then-insert without orphans, duplicate systems refused
- save_draft(): unparseable values refused before anything is stored
"""

from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from cuadre_engines.reconciler import FieldSource, supervisor_draft_key
from cuadre_kernel.domain.review import ReviewStatus
from cuadre_kernel.domain.transactions import TransactionKind
from cuadre_kernel.domain.values import CurrencyPair
from cuadre_kernel.exceptions import (
    AgencyNotFoundError,
    ApprovalFailedError,
    CuadreLockedError,
    DuplicateSystemLineError,
    InvalidAmountError,
    InvalidExchangeRateError,
    MissingObservationError,
    SystemNotPostableError,
)
from cuadre_kernel.models.summary import CuadreSummaryModel
from cuadre_kernel.models.transactions import SupervisorDetailModel
from cuadre_kernel.selectors.summary_selector import SummarySelector
from cuadre_services.drafts import Draft
from cuadre_services.notifications import ChangeScope, ReviewNotification


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


@pytest.fixture
def cashier_id():
    return uuid4()


@pytest.fixture
def trading_day(cashier_service, catalog, day, cashier_id, test_actor_id):
    """sales 1000, prizes 300, POS 100, expense 50, cash 600 Bs."""
    def record(kind, bs, **kwargs):
        return cashier_service.record_transaction(
            kind=kind,
            agency_id=catalog.agency_id,
            transaction_date=day,
            amount=CurrencyPair.of(bs, 0),
            actor_id=test_actor_id,
            **kwargs,
        )

    record(TransactionKind.SALE, "1000", lottery_system_id=catalog.lotto_id)
    record(TransactionKind.PRIZE, "300", lottery_system_id=catalog.lotto_id)
    record(TransactionKind.POINT_OF_SALE, "100")
    record(TransactionKind.EXPENSE, "50")
    cashier_service.submit_closure(
        user_id=cashier_id,
        agency_id=catalog.agency_id,
        session_date=day,
        cash=CurrencyPair.of(600, 0),
        exchange_rate=Decimal("36.50"),
    )
    return catalog


def _key(catalog, day, test_actor_id):
    return dict(agency_id=catalog.agency_id, session_date=day, actor_id=test_actor_id)


def _consolidated_count(session, catalog, day):
    return session.scalar(
        select(func.count())
        .select_from(CuadreSummaryModel)
        .where(CuadreSummaryModel.agency_id == catalog.agency_id)
        .where(CuadreSummaryModel.session_date == day)
        .where(CuadreSummaryModel.session_id.is_(None))
    )


# ---------------------------------------------------------------------------
# load_working_state
# ---------------------------------------------------------------------------


class TestLoadWorkingState:
    def test_aggregates_day(self, cuadre_service, trading_day, day, test_actor_id):
        state = cuadre_service.load_working_state(**_key(trading_day, day, test_actor_id))

        assert state.summary is None
        assert state.review_status == ReviewStatus.PENDIENTE
        assert state.fields.value("sales_local") == Decimal("1000")
        assert state.fields.value("cash_local") == Decimal("600")
        assert state.fields.value("exchange_rate") == Decimal("36.50")
        assert state.report.final_difference.bs == Decimal("-50")
        assert state.report.balanced
        assert len(state.cashier_user_ids) == 1

    def test_draft_wins_until_saved(
        self, cuadre_service, trading_day, day, test_actor_id, draft_store,
    ):
        key = _key(trading_day, day, test_actor_id)
        cuadre_service.save_draft(**key, values={"cash_local": "1.000,00"})

        state = cuadre_service.load_working_state(**key)
        assert state.fields.value("cash_local") == Decimal("1000.00")
        assert state.fields.source("cash_local") == FieldSource.DRAFT

        cuadre_service.save(**key)

        assert state.draft_key not in draft_store
        assert cuadre_service.load_working_state(**key).fields.value("cash_local") == Decimal(
            "1000.00"
        )

    def test_stale_draft_cleared(
        self, cuadre_service, trading_day, day, test_actor_id, draft_store, deterministic_clock,
    ):
        key = _key(trading_day, day, test_actor_id)
        cuadre_service.save(**key, values={"cash_local": "650"})
        draft_key = supervisor_draft_key(test_actor_id, trading_day.agency_id, day)
        draft_store.set(draft_key, Draft(
            values={"cash_local": "9999"},
            saved_at=deterministic_clock.now_utc() - timedelta(hours=1),
        ))

        state = cuadre_service.load_working_state(**key)

        assert state.fields.draft_discarded
        assert state.fields.value("cash_local") == Decimal("650")
        assert draft_key not in draft_store

    @pytest.mark.parametrize(
        "values, error",
        [
            ({"cash_local": "abc"}, InvalidAmountError),
            ({"exchange_rate": "-36"}, InvalidExchangeRateError),
        ],
    )
    def test_bad_draft_refused(
        self, cuadre_service, trading_day, day, test_actor_id, draft_store, values, error,
    ):
        key = _key(trading_day, day, test_actor_id)

        with pytest.raises(error):
            cuadre_service.save_draft(**key, values=values)

        assert len(draft_store) == 0
        state = cuadre_service.load_working_state(**key)
        assert state.fields.source("cash_local") != FieldSource.DRAFT

    def test_draft_keeps_typed_text(self, cuadre_service, trading_day, day, test_actor_id):
        draft = cuadre_service.save_draft(
            **_key(trading_day, day, test_actor_id),
            values={"cash_local": "1.250,50", "apply_excess_usd": False, "unknown": "x"},
        )

        assert draft.values == {"cash_local": "1.250,50", "apply_excess_usd": False}


# ---------------------------------------------------------------------------
# save
# ---------------------------------------------------------------------------


class TestSave:
    def test_find_or_create_single_row(
        self, cuadre_service, trading_day, day, test_actor_id, session,
    ):
        key = _key(trading_day, day, test_actor_id)

        first = cuadre_service.save(**key)
        second = cuadre_service.save(**key, values={"closure_notes": "segunda"})

        assert _consolidated_count(session, trading_day, day) == 1
        assert first.id == second.id
        assert second.version == first.version + 1
        assert second.closure_notes == "segunda"
        assert second.review_status == ReviewStatus.PENDIENTE

    def test_stores_computed_difference(self, cuadre_service, trading_day, day, test_actor_id):
        summary = cuadre_service.save(
            **_key(trading_day, day, test_actor_id),
            values={"pending_prizes_local": "200"},
        )

        assert summary.final_difference.bs == Decimal("-250")
        assert summary.bank_total == Decimal("100")
        assert summary.closure_confirmed

    def test_unknown_agency(self, cuadre_service, catalog, day, test_actor_id):
        with pytest.raises(AgencyNotFoundError):
            cuadre_service.save(agency_id=uuid4(), session_date=day, actor_id=test_actor_id)

    def test_logs_save(self, cuadre_service, trading_day, day, test_actor_id, captured_logs):
        cuadre_service.save(**_key(trading_day, day, test_actor_id))

        saved = [r for r in captured_logs() if r["message"] == "cuadre_saved"]
        assert saved
        assert saved[0]["agency_id"] == str(trading_day.agency_id)


# ---------------------------------------------------------------------------
# Review lifecycle
# ---------------------------------------------------------------------------


class TestApprove:
    def test_approve_propagates_and_locks(
        self, cuadre_service, cashier_service, trading_day, day, test_actor_id, session,
    ):
        key = _key(trading_day, day, test_actor_id)

        summary = cuadre_service.approve(**key)

        assert summary.review_status == ReviewStatus.APROBADO
        assert summary.reviewed_by == test_actor_id
        sessions = SummarySelector(session).session_summaries(trading_day.agency_id, day)
        assert sessions
        assert all(s.review_status == ReviewStatus.APROBADO for s in sessions)

        with pytest.raises(CuadreLockedError):
            cuadre_service.save(**key)
        with pytest.raises(CuadreLockedError):
            cuadre_service.save_draft(**key, values={"cash_local": "1"})
        with pytest.raises(CuadreLockedError):
            cashier_service.record_transaction(
                kind=TransactionKind.EXPENSE,
                agency_id=trading_day.agency_id,
                transaction_date=day,
                amount=CurrencyPair.of(5, 0),
                actor_id=test_actor_id,
            )

    def test_locked_state_ignores_new_transactions(
        self, cuadre_service, trading_day, day, test_actor_id,
    ):
        key = _key(trading_day, day, test_actor_id)
        cuadre_service.save(**key, values={"cash_local": "650"})
        cuadre_service.approve(**key)

        state = cuadre_service.load_working_state(**key)

        assert state.is_locked
        assert state.fields.value("cash_local") == Decimal("650")
        assert state.fields.source("cash_local") == FieldSource.CONFIRMED_LOCKED

    def test_store_failure_leaves_status(
        self, cuadre_service, trading_day, day, test_actor_id, monkeypatch,
    ):
        key = _key(trading_day, day, test_actor_id)
        cuadre_service.save(**key)

        def broken(*args, **kwargs):
            raise OperationalError("UPDATE cuadre_summaries", {}, Exception("disk I/O error"))

        monkeypatch.setattr(cuadre_service, "_mark_session_summaries", broken)

        with pytest.raises(ApprovalFailedError) as exc_info:
            cuadre_service.approve(**key)

        assert "disk I/O error" in exc_info.value.original_message
        state = cuadre_service.load_working_state(**key)
        assert state.review_status == ReviewStatus.PENDIENTE

    def test_partial_approval_compensated(
        self, cuadre_service, trading_day, day, test_actor_id, monkeypatch, session,
    ):
        key = _key(trading_day, day, test_actor_id)
        monkeypatch.setattr(
            cuadre_service, "_apply_session_side_effects", lambda *args, **kwargs: None,
        )

        with pytest.raises(ApprovalFailedError) as exc_info:
            cuadre_service.approve(**key)

        assert exc_info.value.compensated
        consolidated = SummarySelector(session).consolidated(trading_day.agency_id, day)
        assert consolidated.review_status == ReviewStatus.PENDIENTE
        assert consolidated.reviewed_by is None


class TestRejectAndResubmit:
    def test_reject_requires_observation(
        self, cuadre_service, trading_day, day, test_actor_id, session,
    ):
        with pytest.raises(MissingObservationError):
            cuadre_service.reject(**_key(trading_day, day, test_actor_id), observation="  ")

        assert _consolidated_count(session, trading_day, day) == 0

    def test_reject_then_cashier_fix_then_resubmit(
        self, cuadre_service, cashier_service, trading_day, day, test_actor_id, cashier_id,
        session,
    ):
        key = _key(trading_day, day, test_actor_id)

        rejected = cuadre_service.reject(**key, observation="falta el punto de venta")

        assert rejected.review_status == ReviewStatus.RECHAZADO
        assert rejected.review_observations == "falta el punto de venta"
        selector = SummarySelector(session)
        assert all(
            s.review_status == ReviewStatus.RECHAZADO
            for s in selector.session_summaries(trading_day.agency_id, day)
        )

        fixed = cashier_service.submit_closure(
            user_id=cashier_id,
            agency_id=trading_day.agency_id,
            session_date=day,
            cash=CurrencyPair.of(650, 0),
            exchange_rate=Decimal("36.50"),
        )
        assert fixed.review_status == ReviewStatus.PENDIENTE
        assert fixed.review_observations is None

        resubmitted = cuadre_service.resubmit(**key)

        assert resubmitted.review_status == ReviewStatus.PENDIENTE
        assert resubmitted.review_observations is None

    def test_review_notification_sent_once(
        self, cuadre_service, trading_day, day, test_actor_id, cashier_id, notifier,
    ):
        received = []
        notifier.on_external_change(ChangeScope(user_id=cashier_id), received.append)

        cuadre_service.reject(**_key(trading_day, day, test_actor_id), observation="revisar")
        cuadre_service.save(**_key(trading_day, day, test_actor_id))

        reviews = [e for e in received if isinstance(e, ReviewNotification)]
        assert len(reviews) == 1
        assert reviews[0].review_status == ReviewStatus.RECHAZADO
        assert reviews[0].observation == "revisar"


# ---------------------------------------------------------------------------
# Supervisor detail rows
# ---------------------------------------------------------------------------


class TestDetailRows:
    def test_replace_leaves_no_orphans(
        self, cuadre_service, catalog, day, test_actor_id, session,
    ):
        key = _key(catalog, day, test_actor_id)
        cuadre_service.replace_detail_rows(**key, lines=[
            (catalog.lotto_id, CurrencyPair.of(1000, 0), CurrencyPair.of(300, 0)),
            (catalog.child_a_id, CurrencyPair.zero(), CurrencyPair.zero()),
        ])

        details = cuadre_service.replace_detail_rows(**key, lines=[
            (catalog.child_a_id, CurrencyPair.of(500, 10), CurrencyPair.of(100, 0)),
        ])

        assert [d.lottery_system_id for d in details] == [catalog.child_a_id]
        assert session.scalar(select(func.count()).select_from(SupervisorDetailModel)) == 1

        state = cuadre_service.load_working_state(**key)
        assert state.aggregation.from_supervisor_details
        assert state.aggregation.sales == CurrencyPair.of(500, 10)

    def test_parent_system_rejected(self, cuadre_service, catalog, day, test_actor_id, session):
        with pytest.raises(SystemNotPostableError):
            cuadre_service.replace_detail_rows(**_key(catalog, day, test_actor_id), lines=[
                (catalog.parent_id, CurrencyPair.of(100, 0), CurrencyPair.zero()),
            ])

        assert session.scalar(select(func.count()).select_from(SupervisorDetailModel)) == 0

    def test_duplicate_system_rejected(
        self, cuadre_service, catalog, day, test_actor_id, session,
    ):
        key = _key(catalog, day, test_actor_id)
        cuadre_service.replace_detail_rows(**key, lines=[
            (catalog.lotto_id, CurrencyPair.of(1000, 0), CurrencyPair.zero()),
        ])

        with pytest.raises(DuplicateSystemLineError) as exc_info:
            cuadre_service.replace_detail_rows(**key, lines=[
                (catalog.lotto_id, CurrencyPair.of(400, 0), CurrencyPair.zero()),
                (catalog.lotto_id, CurrencyPair.of(600, 0), CurrencyPair.zero()),
            ])

        assert exc_info.value.code == "DUPLICATE_SYSTEM_LINE"
        stored = session.scalars(select(SupervisorDetailModel)).all()
        assert [d.sales_bs for d in stored] == [Decimal("1000")]

    def test_locked_day_rejected(self, cuadre_service, trading_day, day, test_actor_id):
        key = _key(trading_day, day, test_actor_id)
        cuadre_service.approve(**key)

        with pytest.raises(CuadreLockedError):
            cuadre_service.replace_detail_rows(**key, lines=[])
