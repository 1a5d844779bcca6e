"""
Module: cuadre_kernel.selectors.summary_selector
Responsibility: Cuadre summary queries.  ``consolidated()`` is the
    at-most-one-row lookup by (agency_id, date, session_id=NULL).
"""

from datetime import date
from uuid import UUID

from sqlalchemy import select

from cuadre_kernel.domain.cuadre import CuadreSummary
from cuadre_kernel.models.summary import CuadreSummaryModel
from cuadre_kernel.selectors.base import BaseSelector


class SummarySelector(BaseSelector[CuadreSummaryModel]):

    def consolidated(self, agency_id: UUID, session_date: date) -> CuadreSummary | None:
        stmt = (
            select(CuadreSummaryModel)
            .where(CuadreSummaryModel.agency_id == agency_id)
            .where(CuadreSummaryModel.session_date == session_date)
            .where(CuadreSummaryModel.session_id.is_(None))
        )
        model = self.session.scalars(stmt).first()
        return model.to_dto(self.default_apply_excess_usd) if model else None

    def session_summaries(self, agency_id: UUID, session_date: date) -> list[CuadreSummary]:
        stmt = (
            select(CuadreSummaryModel)
            .where(CuadreSummaryModel.agency_id == agency_id)
            .where(CuadreSummaryModel.session_date == session_date)
            .where(CuadreSummaryModel.session_id.is_not(None))
            .order_by(CuadreSummaryModel.created_at)
        )
        return [
            m.to_dto(self.default_apply_excess_usd) for m in self.session.scalars(stmt)
        ]

    def for_session(self, session_id: UUID) -> CuadreSummary | None:
        stmt = select(CuadreSummaryModel).where(CuadreSummaryModel.session_id == session_id)
        model = self.session.scalars(stmt).first()
        return model.to_dto(self.default_apply_excess_usd) if model else None

    def summaries_in_range(
        self,
        agency_id: UUID,
        start: date,
        end: date,
        consolidated_only: bool = True,
    ) -> list[CuadreSummary]:
        stmt = (
            select(CuadreSummaryModel)
            .where(CuadreSummaryModel.agency_id == agency_id)
            .where(CuadreSummaryModel.session_date >= start)
            .where(CuadreSummaryModel.session_date <= end)
            .order_by(CuadreSummaryModel.session_date, CuadreSummaryModel.updated_at)
        )
        if consolidated_only:
            stmt = stmt.where(CuadreSummaryModel.session_id.is_(None))
        return [
            m.to_dto(self.default_apply_excess_usd) for m in self.session.scalars(stmt)
        ]
