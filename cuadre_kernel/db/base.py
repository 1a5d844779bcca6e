"""
Module: cuadre_kernel.db.base
Responsibility: Declarative base classes for the record-store ORM models.
    Provides the UUID primary key convention, the type annotation map that
    keeps every amount column at the same Decimal precision, and the
    TrackedBase mixin for who/when metadata.
Architecture position: Kernel > DB.  Lowest-level import target inside the
    kernel; all model files import from here.  MUST NOT import from
    models/, selectors/, domain/, or outer layers.

Invariants enforced:
    - UUID primary keys on every table.
    - Decimal columns are Numeric(38, 9).  Bs amounts for a busy agency
      run into the millions, so precision is never the limiting factor.
    - TrackedBase records created/updated timestamps and actors.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import Date, DateTime, Integer, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """UUID stored as String(36) so SQLite and PostgreSQL share one schema."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None:
            return str(value)
        return None

    def process_result_value(self, value, dialect):
        if value is not None:
            return PyUUID(value)
        return None


class Base(DeclarativeBase):
    """
    Declarative base for all record-store models.

    Guarantees:
        - id is a uuid4 stored as String(36).
        - Decimal maps to Numeric(38, 9); date to Date; datetime to
          DateTime(timezone=True).
    """

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(38, 9),
        datetime: DateTime(timezone=True),
        date: Date,
        PyUUID: UUIDString(),
        int: Integer,
    }

    id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        primary_key=True,
        default=uuid4,
    )


class TrackedBase(Base):
    """
    Abstract base with timestamp and actor tracking.

    Services set ``updated_at`` from their injected clock on every write;
    the server defaults only cover rows written outside a service.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    created_by_id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    updated_by_id: Mapped[PyUUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )


UUID = PyUUID
