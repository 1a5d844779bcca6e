"""Weekly cuadre queries: manual system totals and the week's config."""

from datetime import date
from uuid import UUID

from sqlalchemy import select

from cuadre_kernel.domain.weekly import WeeklyCuadreConfig, WeeklySystemTotal
from cuadre_kernel.models.weekly import WeeklyCuadreConfigModel, WeeklySystemTotalModel
from cuadre_kernel.selectors.base import BaseSelector


class WeeklySelector(BaseSelector[WeeklySystemTotalModel]):

    def system_totals(self, agency_id: UUID, week_start_date: date) -> list[WeeklySystemTotal]:
        stmt = (
            select(WeeklySystemTotalModel)
            .where(WeeklySystemTotalModel.agency_id == agency_id)
            .where(WeeklySystemTotalModel.week_start_date == week_start_date)
        )
        return [m.to_dto() for m in self.session.scalars(stmt)]

    def config(self, agency_id: UUID, week_start_date: date) -> WeeklyCuadreConfig | None:
        stmt = (
            select(WeeklyCuadreConfigModel)
            .where(WeeklyCuadreConfigModel.agency_id == agency_id)
            .where(WeeklyCuadreConfigModel.week_start_date == week_start_date)
        )
        model = self.session.scalars(stmt).first()
        return model.to_dto() if model else None
