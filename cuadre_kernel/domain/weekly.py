"""Weekly cuadre records: manual per-system totals and the week's deposit."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from cuadre_kernel.domain.values import ZERO, CurrencyPair


@dataclass(frozen=True)
class WeeklySystemTotal:
    """An administrator's manual figure for one system over one week.

    Replaces whatever the daily details add up to for that system.
    """

    agency_id: UUID
    week_start_date: date
    lottery_system_id: UUID
    sales: CurrencyPair = field(default_factory=CurrencyPair.zero)
    prizes: CurrencyPair = field(default_factory=CurrencyPair.zero)
    adjusted_by: UUID | None = None
    adjusted_at: datetime | None = None
    notes: str = ""


@dataclass(frozen=True)
class WeeklyCuadreConfig:
    agency_id: UUID
    week_start_date: date
    deposit_bs: Decimal = ZERO
    exchange_rate: Decimal | None = None
