"""Weekly cuadre ORM models: manual system totals and weekly config."""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from cuadre_kernel.db.base import TrackedBase
from cuadre_kernel.db.types import AMOUNT, RATE, pair


class WeeklySystemTotalModel(TrackedBase):
    """Table: ``weekly_system_totals``"""

    __tablename__ = "weekly_system_totals"

    agency_id: Mapped[UUID] = mapped_column(ForeignKey("agencies.id"))
    week_start_date: Mapped[date]
    lottery_system_id: Mapped[UUID] = mapped_column(ForeignKey("lottery_systems.id"))
    sales_bs: Mapped[Decimal] = mapped_column(AMOUNT, default=Decimal("0"))
    sales_usd: Mapped[Decimal] = mapped_column(AMOUNT, default=Decimal("0"))
    prizes_bs: Mapped[Decimal] = mapped_column(AMOUNT, default=Decimal("0"))
    prizes_usd: Mapped[Decimal] = mapped_column(AMOUNT, default=Decimal("0"))
    adjusted_by: Mapped[UUID | None]
    adjusted_at: Mapped[datetime | None]
    notes: Mapped[str] = mapped_column(Text, default="")

    __table_args__ = (
        UniqueConstraint(
            "agency_id", "week_start_date", "lottery_system_id",
            name="uq_weekly_system_totals_agency_week_system",
        ),
    )

    def to_dto(self):
        from cuadre_kernel.domain.clock import as_utc
        from cuadre_kernel.domain.weekly import WeeklySystemTotal
        return WeeklySystemTotal(
            agency_id=self.agency_id,
            week_start_date=self.week_start_date,
            lottery_system_id=self.lottery_system_id,
            sales=pair(self.sales_bs, self.sales_usd),
            prizes=pair(self.prizes_bs, self.prizes_usd),
            adjusted_by=self.adjusted_by,
            adjusted_at=as_utc(self.adjusted_at),
            notes=self.notes or "",
        )

    def __repr__(self) -> str:
        return (
            f"<WeeklySystemTotalModel(agency_id={self.agency_id!r}, "
            f"week={self.week_start_date!r}, system={self.lottery_system_id!r})>"
        )


class WeeklyCuadreConfigModel(TrackedBase):
    """Table: ``weekly_cuadre_configs``"""

    __tablename__ = "weekly_cuadre_configs"

    agency_id: Mapped[UUID] = mapped_column(ForeignKey("agencies.id"))
    week_start_date: Mapped[date]
    deposit_bs: Mapped[Decimal] = mapped_column(AMOUNT, default=Decimal("0"))
    exchange_rate: Mapped[Decimal | None] = mapped_column(RATE, nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "agency_id", "week_start_date",
            name="uq_weekly_cuadre_configs_agency_week",
        ),
    )

    def to_dto(self):
        from cuadre_kernel.domain.weekly import WeeklyCuadreConfig
        return WeeklyCuadreConfig(
            agency_id=self.agency_id,
            week_start_date=self.week_start_date,
            deposit_bs=self.deposit_bs or Decimal("0"),
            exchange_rate=self.exchange_rate,
        )

    def __repr__(self) -> str:
        return (
            f"<WeeklyCuadreConfigModel(agency_id={self.agency_id!r}, "
            f"week={self.week_start_date!r})>"
        )
