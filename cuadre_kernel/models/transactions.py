"""
Transaction-side ORM models: raw transactions, cashier sessions
(daily closures) and supervisor detail rows.

Raw transactions live in one table discriminated by ``kind``; the
category/is_paid columns only carry meaning for expenses and pending
prizes.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from cuadre_kernel.db.base import TrackedBase
from cuadre_kernel.db.types import AMOUNT, RATE, pair


class CashierSessionModel(TrackedBase):
    """A cashier's daily closure.  Table: ``cashier_sessions``"""

    __tablename__ = "cashier_sessions"

    user_id: Mapped[UUID]
    agency_id: Mapped[UUID] = mapped_column(ForeignKey("agencies.id"))
    session_date: Mapped[date]
    cash_bs: Mapped[Decimal] = mapped_column(AMOUNT, default=Decimal("0"))
    cash_usd: Mapped[Decimal] = mapped_column(AMOUNT, default=Decimal("0"))
    exchange_rate: Mapped[Decimal] = mapped_column(RATE, default=Decimal("0"))
    closure_notes: Mapped[str] = mapped_column(Text, default="")
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    closure_confirmed: Mapped[bool] = mapped_column(default=False)

    __table_args__ = (
        UniqueConstraint(
            "user_id", "agency_id", "session_date",
            name="uq_cashier_sessions_user_agency_date",
        ),
        Index("idx_cashier_sessions_agency_date", "agency_id", "session_date"),
    )

    def to_dto(self, default_apply_excess_usd: bool = True):
        from cuadre_kernel.domain.clock import as_utc
        from cuadre_kernel.domain.cuadre import AdjustmentBlock, CashierSession
        return CashierSession(
            id=self.id,
            user_id=self.user_id,
            agency_id=self.agency_id,
            session_date=self.session_date,
            cash=pair(self.cash_bs, self.cash_usd),
            exchange_rate=self.exchange_rate or Decimal("0"),
            closure_notes=self.closure_notes or "",
            adjustment=AdjustmentBlock.from_json(self.notes, default_apply_excess_usd),
            closure_confirmed=self.closure_confirmed,
            updated_at=as_utc(self.updated_at),
        )

    def __repr__(self) -> str:
        return (
            f"<CashierSessionModel(id={self.id!r}, agency_id={self.agency_id!r}, "
            f"session_date={self.session_date!r})>"
        )


class TransactionModel(TrackedBase):
    """Table: ``cuadre_transactions``"""

    __tablename__ = "cuadre_transactions"

    kind: Mapped[str] = mapped_column(String(30))
    agency_id: Mapped[UUID] = mapped_column(ForeignKey("agencies.id"))
    transaction_date: Mapped[date]
    session_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("cashier_sessions.id"), nullable=True,
    )
    lottery_system_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("lottery_systems.id"), nullable=True,
    )
    amount_bs: Mapped[Decimal] = mapped_column(AMOUNT, default=Decimal("0"))
    amount_usd: Mapped[Decimal] = mapped_column(AMOUNT, default=Decimal("0"))
    category: Mapped[str | None] = mapped_column(String(30), nullable=True)
    is_paid: Mapped[bool] = mapped_column(default=False)
    description: Mapped[str] = mapped_column(String(500), default="")

    __table_args__ = (
        Index("idx_cuadre_transactions_agency_date", "agency_id", "transaction_date"),
        Index("idx_cuadre_transactions_session", "session_id"),
        Index("idx_cuadre_transactions_kind", "kind"),
    )

    def to_dto(self):
        from cuadre_kernel.domain.clock import as_utc
        from cuadre_kernel.domain.transactions import (
            ExpenseCategory,
            Transaction,
            TransactionKind,
        )
        return Transaction(
            id=self.id,
            kind=TransactionKind(self.kind),
            agency_id=self.agency_id,
            transaction_date=self.transaction_date,
            amount=pair(self.amount_bs, self.amount_usd),
            lottery_system_id=self.lottery_system_id,
            session_id=self.session_id,
            category=ExpenseCategory(self.category) if self.category else None,
            is_paid=self.is_paid,
            description=self.description or "",
            created_at=as_utc(self.created_at),
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID) -> "TransactionModel":
        return cls(
            id=dto.id,
            kind=dto.kind.value,
            agency_id=dto.agency_id,
            transaction_date=dto.transaction_date,
            session_id=dto.session_id,
            lottery_system_id=dto.lottery_system_id,
            amount_bs=dto.amount.bs,
            amount_usd=dto.amount.usd,
            category=dto.category.value if dto.category else None,
            is_paid=dto.is_paid,
            description=dto.description,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return (
            f"<TransactionModel(id={self.id!r}, kind={self.kind!r}, "
            f"agency_id={self.agency_id!r}, date={self.transaction_date!r})>"
        )


class SupervisorDetailModel(TrackedBase):
    """Per-system figures typed by a supervisor.  Table: ``supervisor_details``"""

    __tablename__ = "supervisor_details"

    agency_id: Mapped[UUID] = mapped_column(ForeignKey("agencies.id"))
    session_date: Mapped[date]
    supervisor_id: Mapped[UUID]
    lottery_system_id: Mapped[UUID] = mapped_column(ForeignKey("lottery_systems.id"))
    sales_bs: Mapped[Decimal] = mapped_column(AMOUNT, default=Decimal("0"))
    sales_usd: Mapped[Decimal] = mapped_column(AMOUNT, default=Decimal("0"))
    prizes_bs: Mapped[Decimal] = mapped_column(AMOUNT, default=Decimal("0"))
    prizes_usd: Mapped[Decimal] = mapped_column(AMOUNT, default=Decimal("0"))

    __table_args__ = (
        UniqueConstraint(
            "agency_id", "session_date", "supervisor_id", "lottery_system_id",
            name="uq_supervisor_details_scope_system",
        ),
        Index(
            "idx_supervisor_details_scope",
            "agency_id", "session_date", "supervisor_id",
        ),
    )

    def to_dto(self):
        from cuadre_kernel.domain.transactions import SupervisorDetail
        return SupervisorDetail(
            id=self.id,
            agency_id=self.agency_id,
            session_date=self.session_date,
            supervisor_id=self.supervisor_id,
            lottery_system_id=self.lottery_system_id,
            sales=pair(self.sales_bs, self.sales_usd),
            prizes=pair(self.prizes_bs, self.prizes_usd),
        )

    @classmethod
    def from_dto(cls, dto, created_by_id: UUID) -> "SupervisorDetailModel":
        return cls(
            agency_id=dto.agency_id,
            session_date=dto.session_date,
            supervisor_id=dto.supervisor_id,
            lottery_system_id=dto.lottery_system_id,
            sales_bs=dto.sales.bs,
            sales_usd=dto.sales.usd,
            prizes_bs=dto.prizes.bs,
            prizes_usd=dto.prizes.usd,
            created_by_id=created_by_id,
        )

    def __repr__(self) -> str:
        return (
            f"<SupervisorDetailModel(agency_id={self.agency_id!r}, "
            f"session_date={self.session_date!r}, "
            f"system={self.lottery_system_id!r})>"
        )
