"""
Tests for CashierService -- transactions and cashier closures.

Covers:
- record_transaction(): zero, negative, unknown references, parent systems,
  signed mobile payments, expense category default
- set_paid(): payable kinds only, unpaid-only totals afterwards
- submit_closure(): per-session summary, confirmed closures lock, rejected
  closures resubmit, exchange rate validation
"""

from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from cuadre_kernel.domain.review import ReviewStatus
from cuadre_kernel.domain.transactions import ExpenseCategory, TransactionKind
from cuadre_kernel.domain.values import CurrencyPair
from cuadre_kernel.exceptions import (
    AgencyNotFoundError,
    CashierSessionNotFoundError,
    CuadreLockedError,
    InvalidAmountError,
    InvalidExchangeRateError,
    LotterySystemNotFoundError,
    NoAmountsSubmittedError,
    SystemNotPostableError,
    ValidationError,
)
from cuadre_kernel.models.transactions import TransactionModel
from cuadre_services.notifications import ChangeScope, SummaryUpdated


@pytest.fixture
def record(cashier_service, catalog, day, test_actor_id):
    def _record(kind, bs="0", usd="0", **kwargs):
        kwargs.setdefault("agency_id", catalog.agency_id)
        return cashier_service.record_transaction(
            kind=kind,
            transaction_date=day,
            amount=CurrencyPair.of(bs, usd),
            actor_id=test_actor_id,
            **kwargs,
        )
    return _record


def _count(session):
    return session.scalar(select(func.count()).select_from(TransactionModel))


class TestRecordTransaction:
    def test_zero_amount_rejected(self, record, catalog, session):
        with pytest.raises(NoAmountsSubmittedError):
            record(TransactionKind.SALE, "0", "0", lottery_system_id=catalog.lotto_id)
        assert _count(session) == 0

    def test_negative_amount_rejected(self, record):
        with pytest.raises(InvalidAmountError):
            record(TransactionKind.EXPENSE, "-10")

    def test_mobile_payment_signed(self, record, cuadre_service, catalog, day, test_actor_id):
        record(TransactionKind.MOBILE_PAYMENT, "500")
        record(TransactionKind.MOBILE_PAYMENT, "-200")

        state = cuadre_service.load_working_state(
            agency_id=catalog.agency_id, session_date=day, actor_id=test_actor_id,
        )

        assert state.aggregation.mobile_received == Decimal("500")
        assert state.aggregation.mobile_paid == Decimal("200")
        assert state.report.bank_total == Decimal("300")

    def test_sale_needs_system(self, record):
        with pytest.raises(ValidationError):
            record(TransactionKind.SALE, "100")

    def test_parent_system_not_postable(self, record, catalog):
        with pytest.raises(SystemNotPostableError):
            record(TransactionKind.SALE, "100", lottery_system_id=catalog.parent_id)

    def test_unknown_references(self, record, catalog):
        with pytest.raises(AgencyNotFoundError):
            record(TransactionKind.EXPENSE, "10", agency_id=uuid4())
        with pytest.raises(LotterySystemNotFoundError):
            record(TransactionKind.SALE, "10", lottery_system_id=uuid4())
        with pytest.raises(CashierSessionNotFoundError):
            record(TransactionKind.EXPENSE, "10", session_id=uuid4())

    def test_session_on_other_agency(self, record, cashier_service, catalog, day):
        summary = cashier_service.submit_closure(
            user_id=uuid4(),
            agency_id=catalog.other_agency_id,
            session_date=day,
            cash=CurrencyPair.zero(),
            exchange_rate=Decimal("36"),
        )
        with pytest.raises(CashierSessionNotFoundError):
            record(TransactionKind.EXPENSE, "10", session_id=summary.session_id)

    def test_expense_defaults_to_operating(self, record):
        txn = record(TransactionKind.EXPENSE, "10")
        assert txn.category == ExpenseCategory.OPERATING

    def test_category_dropped_for_other_kinds(self, record, catalog):
        txn = record(
            TransactionKind.SALE, "10",
            lottery_system_id=catalog.child_a_id, category=ExpenseCategory.DEBT,
        )
        assert txn.category is None


class TestSetPaid:
    def test_paid_expense_leaves_total(
        self, record, cashier_service, cuadre_service, catalog, day, test_actor_id,
    ):
        debt = record(TransactionKind.EXPENSE, "80", category=ExpenseCategory.DEBT)
        record(TransactionKind.EXPENSE, "20", category=ExpenseCategory.DEBT)

        updated = cashier_service.set_paid(debt.id, True, test_actor_id)

        assert updated.is_paid
        state = cuadre_service.load_working_state(
            agency_id=catalog.agency_id, session_date=day, actor_id=test_actor_id,
        )
        assert state.aggregation.debts.bs == Decimal("20")

    def test_sale_cannot_be_paid(self, record, cashier_service, catalog, test_actor_id):
        sale = record(TransactionKind.SALE, "10", lottery_system_id=catalog.lotto_id)
        with pytest.raises(ValidationError):
            cashier_service.set_paid(sale.id, True, test_actor_id)


class TestSubmitClosure:
    def _submit(self, cashier_service, catalog, day, user_id, cash="600", **kwargs):
        return cashier_service.submit_closure(
            user_id=user_id,
            agency_id=catalog.agency_id,
            session_date=day,
            cash=CurrencyPair.of(cash, 0),
            exchange_rate=kwargs.pop("exchange_rate", Decimal("36")),
            **kwargs,
        )

    def test_creates_session_summary(self, cashier_service, catalog, day, notifier):
        user_id = uuid4()
        events = []
        notifier.on_external_change(ChangeScope(user_id=user_id), events.append)

        summary = self._submit(cashier_service, catalog, day, user_id)

        assert summary.session_id is not None
        assert summary.cash.bs == Decimal("600")
        assert summary.review_status == ReviewStatus.PENDIENTE
        assert [type(e) for e in events] == [SummaryUpdated]

    def test_summary_counts_own_session_only(self, cashier_service, record, catalog, day):
        user_id = uuid4()
        draft = self._submit(cashier_service, catalog, day, user_id, confirm=False)
        record(TransactionKind.SALE, "400", lottery_system_id=catalog.lotto_id,
               session_id=draft.session_id)
        record(TransactionKind.SALE, "999", lottery_system_id=catalog.lotto_id)

        summary = self._submit(cashier_service, catalog, day, user_id)

        assert summary.sales.bs == Decimal("400")
        assert summary.version == draft.version + 1

    def test_confirmed_closure_locked(self, cashier_service, catalog, day):
        user_id = uuid4()
        self._submit(cashier_service, catalog, day, user_id)

        with pytest.raises(CuadreLockedError):
            self._submit(cashier_service, catalog, day, user_id, cash="700")

    def test_negative_rate_rejected(self, cashier_service, catalog, day):
        with pytest.raises(InvalidExchangeRateError):
            self._submit(cashier_service, catalog, day, uuid4(), exchange_rate=Decimal("-1"))

    def test_rejected_closure_resubmits(
        self, cashier_service, cuadre_service, catalog, day, test_actor_id,
    ):
        user_id = uuid4()
        self._submit(cashier_service, catalog, day, user_id)
        cuadre_service.reject(
            agency_id=catalog.agency_id, session_date=day, actor_id=test_actor_id,
            observation="contar de nuevo",
        )

        summary = self._submit(cashier_service, catalog, day, user_id, cash="650")

        assert summary.review_status == ReviewStatus.PENDIENTE
        assert summary.cash.bs == Decimal("650")
        assert summary.review_observations is None
