"""
Cuadre summary ORM model.

One row per cashier session (``session_id`` set) and one consolidated row
per agency and date (``session_id`` NULL).  The partial unique index keeps
the consolidated row unique; the engine additionally only ever writes it
through find-by-key upsert.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, Text, UniqueConstraint, text
from sqlalchemy.orm import Mapped, mapped_column

from cuadre_kernel.db.base import TrackedBase
from cuadre_kernel.db.types import AMOUNT, RATE, pair


class CuadreSummaryModel(TrackedBase):
    """Table: ``cuadre_summaries``"""

    __tablename__ = "cuadre_summaries"

    agency_id: Mapped[UUID] = mapped_column(ForeignKey("agencies.id"))
    session_date: Mapped[date]
    session_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("cashier_sessions.id"), nullable=True,
    )
    user_id: Mapped[UUID]

    sales_bs: Mapped[Decimal] = mapped_column(AMOUNT, default=Decimal("0"))
    sales_usd: Mapped[Decimal] = mapped_column(AMOUNT, default=Decimal("0"))
    prizes_bs: Mapped[Decimal] = mapped_column(AMOUNT, default=Decimal("0"))
    prizes_usd: Mapped[Decimal] = mapped_column(AMOUNT, default=Decimal("0"))
    expenses_bs: Mapped[Decimal] = mapped_column(AMOUNT, default=Decimal("0"))
    expenses_usd: Mapped[Decimal] = mapped_column(AMOUNT, default=Decimal("0"))
    debts_bs: Mapped[Decimal] = mapped_column(AMOUNT, default=Decimal("0"))
    debts_usd: Mapped[Decimal] = mapped_column(AMOUNT, default=Decimal("0"))
    mobile_received_bs: Mapped[Decimal] = mapped_column(AMOUNT, default=Decimal("0"))
    mobile_paid_bs: Mapped[Decimal] = mapped_column(AMOUNT, default=Decimal("0"))
    point_of_sale_bs: Mapped[Decimal] = mapped_column(AMOUNT, default=Decimal("0"))
    bank_total_bs: Mapped[Decimal] = mapped_column(AMOUNT, default=Decimal("0"))
    cash_bs: Mapped[Decimal] = mapped_column(AMOUNT, default=Decimal("0"))
    cash_usd: Mapped[Decimal] = mapped_column(AMOUNT, default=Decimal("0"))
    pending_prizes_bs: Mapped[Decimal] = mapped_column(AMOUNT, default=Decimal("0"))
    pending_prizes_usd: Mapped[Decimal] = mapped_column(AMOUNT, default=Decimal("0"))
    final_difference_bs: Mapped[Decimal] = mapped_column(AMOUNT, default=Decimal("0"))
    final_difference_usd: Mapped[Decimal] = mapped_column(AMOUNT, default=Decimal("0"))
    exchange_rate: Mapped[Decimal] = mapped_column(RATE, default=Decimal("0"))

    closure_notes: Mapped[str] = mapped_column(Text, default="")
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    closure_confirmed: Mapped[bool] = mapped_column(default=False)

    review_status: Mapped[str] = mapped_column(String(20), default="pendiente")
    reviewed_by: Mapped[UUID | None]
    reviewed_at: Mapped[datetime | None]
    review_observations: Mapped[str | None] = mapped_column(Text, nullable=True)

    version: Mapped[int] = mapped_column(default=1)

    __table_args__ = (
        Index(
            "uq_cuadre_summaries_consolidated",
            "agency_id", "session_date",
            unique=True,
            sqlite_where=text("session_id IS NULL"),
            postgresql_where=text("session_id IS NULL"),
        ),
        UniqueConstraint("session_id", name="uq_cuadre_summaries_session"),
        Index("idx_cuadre_summaries_agency_date", "agency_id", "session_date"),
        Index("idx_cuadre_summaries_user", "user_id"),
    )

    def to_dto(self, default_apply_excess_usd: bool = True):
        from cuadre_kernel.domain.clock import as_utc
        from cuadre_kernel.domain.cuadre import AdjustmentBlock, CuadreSummary
        from cuadre_kernel.domain.review import ReviewStatus
        return CuadreSummary(
            id=self.id,
            agency_id=self.agency_id,
            session_date=self.session_date,
            user_id=self.user_id,
            session_id=self.session_id,
            sales=pair(self.sales_bs, self.sales_usd),
            prizes=pair(self.prizes_bs, self.prizes_usd),
            expenses=pair(self.expenses_bs, self.expenses_usd),
            debts=pair(self.debts_bs, self.debts_usd),
            mobile_received=self.mobile_received_bs or Decimal("0"),
            mobile_paid=self.mobile_paid_bs or Decimal("0"),
            point_of_sale=self.point_of_sale_bs or Decimal("0"),
            bank_total=self.bank_total_bs or Decimal("0"),
            cash=pair(self.cash_bs, self.cash_usd),
            pending_prizes=pair(self.pending_prizes_bs, self.pending_prizes_usd),
            exchange_rate=self.exchange_rate or Decimal("0"),
            final_difference=pair(self.final_difference_bs, self.final_difference_usd),
            closure_notes=self.closure_notes or "",
            adjustment=AdjustmentBlock.from_json(self.notes, default_apply_excess_usd),
            closure_confirmed=self.closure_confirmed,
            review_status=ReviewStatus(self.review_status),
            reviewed_by=self.reviewed_by,
            reviewed_at=as_utc(self.reviewed_at),
            review_observations=self.review_observations,
            updated_at=as_utc(self.updated_at),
            version=self.version,
        )

    def __repr__(self) -> str:
        return (
            f"<CuadreSummaryModel(id={self.id!r}, agency_id={self.agency_id!r}, "
            f"session_date={self.session_date!r}, session_id={self.session_id!r}, "
            f"status={self.review_status!r})>"
        )
