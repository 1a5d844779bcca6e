"""
Commission configuration and banqueo ORM models.

Percentage columns are nullable: NULL is "not configured" and lets the
cascade fall through, a stored 0 is an explicit zero.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from cuadre_kernel.db.base import TrackedBase
from cuadre_kernel.db.types import AMOUNT, PERCENT, pair, percentage_or_none


class CommissionRateModel(TrackedBase):
    """Table: ``commission_rates``"""

    __tablename__ = "commission_rates"

    lottery_system_id: Mapped[UUID] = mapped_column(ForeignKey("lottery_systems.id"))
    commission_bs: Mapped[Decimal | None] = mapped_column(PERCENT, nullable=True)
    commission_usd: Mapped[Decimal | None] = mapped_column(PERCENT, nullable=True)
    utility_bs: Mapped[Decimal | None] = mapped_column(PERCENT, nullable=True)
    utility_usd: Mapped[Decimal | None] = mapped_column(PERCENT, nullable=True)

    __table_args__ = (
        UniqueConstraint("lottery_system_id", name="uq_commission_rates_system"),
    )

    def to_dto(self):
        from cuadre_kernel.domain.commission import CommissionRate
        return CommissionRate(
            lottery_system_id=self.lottery_system_id,
            commission_bs=percentage_or_none(self.commission_bs),
            commission_usd=percentage_or_none(self.commission_usd),
            utility_bs=percentage_or_none(self.utility_bs),
            utility_usd=percentage_or_none(self.utility_usd),
        )

    def __repr__(self) -> str:
        return f"<CommissionRateModel(system={self.lottery_system_id!r})>"


class ClientSystemParticipationModel(TrackedBase):
    """Table: ``client_system_participations``"""

    __tablename__ = "client_system_participations"

    client_id: Mapped[UUID] = mapped_column(ForeignKey("banqueo_clients.id"))
    lottery_system_id: Mapped[UUID] = mapped_column(ForeignKey("lottery_systems.id"))
    client_commission_bs: Mapped[Decimal | None] = mapped_column(PERCENT, nullable=True)
    client_commission_usd: Mapped[Decimal | None] = mapped_column(PERCENT, nullable=True)
    participation_bs: Mapped[Decimal | None] = mapped_column(PERCENT, nullable=True)
    participation_usd: Mapped[Decimal | None] = mapped_column(PERCENT, nullable=True)
    lanave_bs: Mapped[Decimal | None] = mapped_column(PERCENT, nullable=True)
    lanave_usd: Mapped[Decimal | None] = mapped_column(PERCENT, nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "client_id", "lottery_system_id",
            name="uq_client_system_participations_client_system",
        ),
    )

    def to_dto(self):
        from cuadre_kernel.domain.commission import ClientSystemParticipation
        return ClientSystemParticipation(
            client_id=self.client_id,
            lottery_system_id=self.lottery_system_id,
            client_commission_bs=percentage_or_none(self.client_commission_bs),
            client_commission_usd=percentage_or_none(self.client_commission_usd),
            participation_bs=percentage_or_none(self.participation_bs),
            participation_usd=percentage_or_none(self.participation_usd),
            lanave_bs=percentage_or_none(self.lanave_bs),
            lanave_usd=percentage_or_none(self.lanave_usd),
        )

    def __repr__(self) -> str:
        return (
            f"<ClientSystemParticipationModel(client={self.client_id!r}, "
            f"system={self.lottery_system_id!r})>"
        )


class ClientBanqueoCommissionModel(TrackedBase):
    """Table: ``client_banqueo_commissions``"""

    __tablename__ = "client_banqueo_commissions"

    client_id: Mapped[UUID] = mapped_column(ForeignKey("banqueo_clients.id"))
    commission_bs: Mapped[Decimal | None] = mapped_column(PERCENT, nullable=True)
    commission_usd: Mapped[Decimal | None] = mapped_column(PERCENT, nullable=True)
    lanave_bs: Mapped[Decimal | None] = mapped_column(PERCENT, nullable=True)
    lanave_usd: Mapped[Decimal | None] = mapped_column(PERCENT, nullable=True)

    __table_args__ = (
        UniqueConstraint("client_id", name="uq_client_banqueo_commissions_client"),
    )

    def to_dto(self):
        from cuadre_kernel.domain.commission import ClientBanqueoCommission
        return ClientBanqueoCommission(
            client_id=self.client_id,
            lanave_bs=percentage_or_none(self.lanave_bs),
            lanave_usd=percentage_or_none(self.lanave_usd),
            commission_bs=percentage_or_none(self.commission_bs),
            commission_usd=percentage_or_none(self.commission_usd),
        )

    def __repr__(self) -> str:
        return f"<ClientBanqueoCommissionModel(client={self.client_id!r})>"


class BanqueoTransactionModel(TrackedBase):
    """Table: ``banqueo_transactions``"""

    __tablename__ = "banqueo_transactions"

    client_id: Mapped[UUID] = mapped_column(ForeignKey("banqueo_clients.id"))
    week_start_date: Mapped[date]
    week_end_date: Mapped[date]
    lottery_system_id: Mapped[UUID] = mapped_column(ForeignKey("lottery_systems.id"))
    sales_bs: Mapped[Decimal] = mapped_column(AMOUNT, default=Decimal("0"))
    sales_usd: Mapped[Decimal] = mapped_column(AMOUNT, default=Decimal("0"))
    prizes_bs: Mapped[Decimal] = mapped_column(AMOUNT, default=Decimal("0"))
    prizes_usd: Mapped[Decimal] = mapped_column(AMOUNT, default=Decimal("0"))
    commission_bs: Mapped[Decimal] = mapped_column(PERCENT, default=Decimal("0"))
    commission_usd: Mapped[Decimal] = mapped_column(PERCENT, default=Decimal("0"))
    participation_bs: Mapped[Decimal] = mapped_column(PERCENT, default=Decimal("0"))
    participation_usd: Mapped[Decimal] = mapped_column(PERCENT, default=Decimal("0"))
    lanave_bs: Mapped[Decimal] = mapped_column(PERCENT, default=Decimal("0"))
    lanave_usd: Mapped[Decimal] = mapped_column(PERCENT, default=Decimal("0"))
    paid_bs: Mapped[bool] = mapped_column(default=False)
    paid_usd: Mapped[bool] = mapped_column(default=False)

    __table_args__ = (
        UniqueConstraint(
            "client_id", "week_start_date", "lottery_system_id",
            name="uq_banqueo_transactions_client_week_system",
        ),
        Index("idx_banqueo_transactions_client_week", "client_id", "week_start_date"),
    )

    def to_dto(self):
        from cuadre_kernel.domain.commission import BanqueoTransaction
        from cuadre_kernel.domain.values import Percentage
        return BanqueoTransaction(
            id=self.id,
            client_id=self.client_id,
            week_start_date=self.week_start_date,
            week_end_date=self.week_end_date,
            lottery_system_id=self.lottery_system_id,
            sales=pair(self.sales_bs, self.sales_usd),
            prizes=pair(self.prizes_bs, self.prizes_usd),
            commission_bs=Percentage(self.commission_bs),
            commission_usd=Percentage(self.commission_usd),
            participation_bs=Percentage(self.participation_bs),
            participation_usd=Percentage(self.participation_usd),
            lanave_bs=Percentage(self.lanave_bs),
            lanave_usd=Percentage(self.lanave_usd),
            paid_bs=self.paid_bs,
            paid_usd=self.paid_usd,
        )

    def __repr__(self) -> str:
        return (
            f"<BanqueoTransactionModel(client={self.client_id!r}, "
            f"week={self.week_start_date!r}, system={self.lottery_system_id!r})>"
        )
