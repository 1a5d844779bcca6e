"""
Module: cuadre_kernel.selectors.commission_selector
Responsibility: Commission/participation configuration and banqueo rows.
    Configuration queries return None when no row exists, which the
    cascade treats differently from a row holding zero.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import select

from cuadre_kernel.domain.commission import (
    BanqueoTransaction,
    ClientBanqueoCommission,
    ClientSystemParticipation,
    CommissionConfig,
    CommissionRate,
)
from cuadre_kernel.models.commission import (
    BanqueoTransactionModel,
    ClientBanqueoCommissionModel,
    ClientSystemParticipationModel,
    CommissionRateModel,
)
from cuadre_kernel.selectors.base import BaseSelector


class CommissionSelector(BaseSelector[CommissionRateModel]):

    def rate(self, system_id: UUID) -> CommissionRate | None:
        stmt = select(CommissionRateModel).where(
            CommissionRateModel.lottery_system_id == system_id
        )
        model = self.session.scalars(stmt).first()
        return model.to_dto() if model else None

    def participation(
        self, client_id: UUID, system_id: UUID
    ) -> ClientSystemParticipation | None:
        stmt = (
            select(ClientSystemParticipationModel)
            .where(ClientSystemParticipationModel.client_id == client_id)
            .where(ClientSystemParticipationModel.lottery_system_id == system_id)
        )
        model = self.session.scalars(stmt).first()
        return model.to_dto() if model else None

    def client_commission(self, client_id: UUID) -> ClientBanqueoCommission | None:
        stmt = select(ClientBanqueoCommissionModel).where(
            ClientBanqueoCommissionModel.client_id == client_id
        )
        model = self.session.scalars(stmt).first()
        return model.to_dto() if model else None

    def config(self, client_id: UUID | None = None) -> CommissionConfig:
        """Every row the cascade may need for one client (or none)."""
        rates = [m.to_dto() for m in self.session.scalars(select(CommissionRateModel))]
        participations: list[ClientSystemParticipation] = []
        client_commissions: list[ClientBanqueoCommission] = []
        if client_id is not None:
            participations = [
                m.to_dto()
                for m in self.session.scalars(
                    select(ClientSystemParticipationModel).where(
                        ClientSystemParticipationModel.client_id == client_id
                    )
                )
            ]
            commission = self.client_commission(client_id)
            if commission is not None:
                client_commissions.append(commission)
        return CommissionConfig.from_rows(rates, participations, client_commissions)

    def banqueo_rows(self, client_id: UUID, week_start_date: date) -> list[BanqueoTransaction]:
        stmt = (
            select(BanqueoTransactionModel)
            .where(BanqueoTransactionModel.client_id == client_id)
            .where(BanqueoTransactionModel.week_start_date == week_start_date)
            .order_by(BanqueoTransactionModel.created_at)
        )
        return [m.to_dto() for m in self.session.scalars(stmt)]
