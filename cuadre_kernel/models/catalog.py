"""
Catalog ORM models: agencies, lottery systems, banqueo clients.

These tables are maintained by administration screens outside the engine;
the engine reads them to validate references and to know which lottery
systems are parents with subcategories.
"""

from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from cuadre_kernel.db.base import TrackedBase


class AgencyModel(TrackedBase):
    """Table: ``agencies``"""

    __tablename__ = "agencies"

    name: Mapped[str] = mapped_column(String(200))
    code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    is_active: Mapped[bool] = mapped_column(default=True)

    __table_args__ = (
        UniqueConstraint("name", name="uq_agencies_name"),
    )

    def __repr__(self) -> str:
        return f"<AgencyModel(id={self.id!r}, name={self.name!r})>"


class LotterySystemModel(TrackedBase):
    """Table: ``lottery_systems``"""

    __tablename__ = "lottery_systems"

    name: Mapped[str] = mapped_column(String(200))
    code: Mapped[str] = mapped_column(String(50))
    parent_system_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("lottery_systems.id"), nullable=True,
    )
    has_subcategories: Mapped[bool] = mapped_column(default=False)
    is_active: Mapped[bool] = mapped_column(default=True)

    __table_args__ = (
        UniqueConstraint("code", name="uq_lottery_systems_code"),
        Index("idx_lottery_systems_parent", "parent_system_id"),
    )

    def to_dto(self):
        from cuadre_kernel.domain.transactions import LotterySystem
        return LotterySystem(
            id=self.id,
            name=self.name,
            code=self.code,
            parent_system_id=self.parent_system_id,
            has_subcategories=self.has_subcategories,
            is_active=self.is_active,
        )

    def __repr__(self) -> str:
        return (
            f"<LotterySystemModel(id={self.id!r}, code={self.code!r}, "
            f"parent={self.parent_system_id!r})>"
        )


class ClientModel(TrackedBase):
    """Wholesale (banqueo) client.  Table: ``banqueo_clients``"""

    __tablename__ = "banqueo_clients"

    name: Mapped[str] = mapped_column(String(200))
    is_active: Mapped[bool] = mapped_column(default=True)

    def __repr__(self) -> str:
        return f"<ClientModel(id={self.id!r}, name={self.name!r})>"
