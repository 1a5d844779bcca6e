"""Catalog lookups: agencies, lottery systems, banqueo clients."""

from uuid import UUID

from sqlalchemy import select

from cuadre_kernel.domain.transactions import LotterySystem
from cuadre_kernel.models.catalog import AgencyModel, ClientModel, LotterySystemModel
from cuadre_kernel.selectors.base import BaseSelector


class CatalogSelector(BaseSelector[LotterySystemModel]):

    def systems(self, active_only: bool = False) -> list[LotterySystem]:
        stmt = select(LotterySystemModel).order_by(LotterySystemModel.name)
        if active_only:
            stmt = stmt.where(LotterySystemModel.is_active.is_(True))
        return [m.to_dto() for m in self.session.scalars(stmt)]

    def system(self, system_id: UUID) -> LotterySystem | None:
        model = self.session.get(LotterySystemModel, system_id)
        return model.to_dto() if model else None

    def agency_exists(self, agency_id: UUID) -> bool:
        return self.session.get(AgencyModel, agency_id) is not None

    def client_exists(self, client_id: UUID) -> bool:
        return self.session.get(ClientModel, client_id) is not None
