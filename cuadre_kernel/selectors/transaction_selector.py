"""
Module: cuadre_kernel.selectors.transaction_selector
Responsibility: Raw transaction, cashier session and supervisor detail
    queries.

The transaction query is the union of two lookups: everything recorded
for the agency in the date range, and everything attached to the given
cashier sessions.  The two overlap, so the result may hold the same
transaction twice; the aggregator dedupes by id.
"""

from collections.abc import Iterable
from datetime import date
from uuid import UUID

from sqlalchemy import select

from cuadre_kernel.domain.cuadre import CashierSession
from cuadre_kernel.domain.transactions import SupervisorDetail, Transaction
from cuadre_kernel.models.transactions import (
    CashierSessionModel,
    SupervisorDetailModel,
    TransactionModel,
)
from cuadre_kernel.selectors.base import BaseSelector


class TransactionSelector(BaseSelector[TransactionModel]):

    def transactions(
        self,
        agency_id: UUID,
        start: date,
        end: date | None = None,
        session_ids: Iterable[UUID] | None = None,
    ) -> list[Transaction]:
        """Transactions by (agency_id, date range, optional session ids)."""
        end = end or start
        by_agency = (
            select(TransactionModel)
            .where(TransactionModel.agency_id == agency_id)
            .where(TransactionModel.transaction_date >= start)
            .where(TransactionModel.transaction_date <= end)
            .order_by(TransactionModel.transaction_date, TransactionModel.created_at)
        )
        rows = [m.to_dto() for m in self.session.scalars(by_agency)]

        ids = list(session_ids or ())
        if ids:
            by_session = (
                select(TransactionModel)
                .where(TransactionModel.session_id.in_(ids))
                .order_by(TransactionModel.transaction_date, TransactionModel.created_at)
            )
            rows.extend(m.to_dto() for m in self.session.scalars(by_session))
        return rows

    def transaction(self, transaction_id: UUID) -> Transaction | None:
        model = self.session.get(TransactionModel, transaction_id)
        return model.to_dto() if model else None

    def cashier_sessions(
        self,
        start: date,
        end: date | None = None,
        agency_id: UUID | None = None,
        user_id: UUID | None = None,
    ) -> list[CashierSession]:
        """Cashier sessions by (agency_id | user_id, date range)."""
        end = end or start
        stmt = (
            select(CashierSessionModel)
            .where(CashierSessionModel.session_date >= start)
            .where(CashierSessionModel.session_date <= end)
            .order_by(CashierSessionModel.session_date, CashierSessionModel.updated_at)
        )
        if agency_id is not None:
            stmt = stmt.where(CashierSessionModel.agency_id == agency_id)
        if user_id is not None:
            stmt = stmt.where(CashierSessionModel.user_id == user_id)
        return [
            m.to_dto(self.default_apply_excess_usd) for m in self.session.scalars(stmt)
        ]

    def cashier_session(self, session_id: UUID) -> CashierSession | None:
        model = self.session.get(CashierSessionModel, session_id)
        return model.to_dto(self.default_apply_excess_usd) if model else None

    def supervisor_details(
        self,
        agency_id: UUID,
        start: date,
        end: date | None = None,
        supervisor_id: UUID | None = None,
    ) -> list[SupervisorDetail]:
        end = end or start
        stmt = (
            select(SupervisorDetailModel)
            .where(SupervisorDetailModel.agency_id == agency_id)
            .where(SupervisorDetailModel.session_date >= start)
            .where(SupervisorDetailModel.session_date <= end)
            .order_by(SupervisorDetailModel.session_date)
        )
        if supervisor_id is not None:
            stmt = stmt.where(SupervisorDetailModel.supervisor_id == supervisor_id)
        return [m.to_dto() for m in self.session.scalars(stmt)]
