"""
Cuadre records -- cashier closures and reconciliation summaries.

A cashier closes a session (``CashierSession``) by counting cash in both
currencies and noting the day's exchange rate. A ``CuadreSummary`` exists
once per cashier session and once more, consolidated, per agency and date;
the consolidated one (``session_id is None``) is the supervisor's record
and the one the review lifecycle runs on.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from cuadre_kernel.domain.review import ReviewStatus
from cuadre_kernel.domain.values import ZERO, CurrencyPair, to_decimal


@dataclass(frozen=True)
class AdjustmentBlock:
    """Manual adjustment stored JSON-encoded in a summary's notes column.

    ``apply_excess_usd`` decides whether USD cash left over after covering
    the USD cuadre is converted into the Bs reconciliation.
    """

    additional_amount: CurrencyPair = field(default_factory=CurrencyPair.zero)
    additional_notes: str = ""
    apply_excess_usd: bool = True

    def to_json(self) -> str:
        return json.dumps(
            {
                "additionalAmountBs": str(self.additional_amount.bs),
                "additionalAmountUsd": str(self.additional_amount.usd),
                "additionalNotes": self.additional_notes,
                "applyExcessUsd": self.apply_excess_usd,
            },
            sort_keys=True,
        )

    @classmethod
    def from_json(
        cls, raw: str | None, default_apply_excess_usd: bool = True
    ) -> AdjustmentBlock:
        """Decode the notes column.

        Rows written before the block existed hold free text there; that
        text is kept as the adjustment note with zero amounts.
        """
        if not raw:
            return cls(apply_excess_usd=default_apply_excess_usd)
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            return cls(additional_notes=raw, apply_excess_usd=default_apply_excess_usd)
        if not isinstance(data, dict):
            return cls(additional_notes=raw, apply_excess_usd=default_apply_excess_usd)
        return cls.from_dict(data, default_apply_excess_usd)

    @classmethod
    def from_dict(
        cls, data: dict[str, Any], default_apply_excess_usd: bool = True
    ) -> AdjustmentBlock:
        apply_excess = data.get("applyExcessUsd")
        return cls(
            additional_amount=CurrencyPair.of(
                data.get("additionalAmountBs") or ZERO,
                data.get("additionalAmountUsd") or ZERO,
            ),
            additional_notes=data.get("additionalNotes") or "",
            apply_excess_usd=(
                default_apply_excess_usd if apply_excess is None else bool(apply_excess)
            ),
        )

    def __add__(self, other: AdjustmentBlock) -> AdjustmentBlock:
        if not isinstance(other, AdjustmentBlock):
            return NotImplemented
        notes = "\n".join(n for n in (self.additional_notes, other.additional_notes) if n)
        return AdjustmentBlock(
            additional_amount=self.additional_amount + other.additional_amount,
            additional_notes=notes,
            apply_excess_usd=self.apply_excess_usd and other.apply_excess_usd,
        )


@dataclass(frozen=True)
class CashierSession:
    """A cashier's daily closure (one per user, agency and date)."""

    id: UUID
    user_id: UUID
    agency_id: UUID
    session_date: date
    cash: CurrencyPair = field(default_factory=CurrencyPair.zero)
    exchange_rate: Decimal = ZERO
    closure_notes: str = ""
    adjustment: AdjustmentBlock = field(default_factory=AdjustmentBlock)
    closure_confirmed: bool = False
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "exchange_rate", to_decimal(self.exchange_rate))


@dataclass(frozen=True)
class CuadreSummary:
    """Persisted reconciliation summary for an agency/date.

    ``session_id is None`` marks the consolidated, supervisor-level row;
    at most one exists per (agency_id, session_date).
    """

    id: UUID
    agency_id: UUID
    session_date: date
    user_id: UUID
    session_id: UUID | None = None
    sales: CurrencyPair = field(default_factory=CurrencyPair.zero)
    prizes: CurrencyPair = field(default_factory=CurrencyPair.zero)
    expenses: CurrencyPair = field(default_factory=CurrencyPair.zero)
    debts: CurrencyPair = field(default_factory=CurrencyPair.zero)
    mobile_received: Decimal = ZERO
    mobile_paid: Decimal = ZERO
    point_of_sale: Decimal = ZERO
    bank_total: Decimal = ZERO
    cash: CurrencyPair = field(default_factory=CurrencyPair.zero)
    pending_prizes: CurrencyPair = field(default_factory=CurrencyPair.zero)
    exchange_rate: Decimal = ZERO
    final_difference: CurrencyPair = field(default_factory=CurrencyPair.zero)
    closure_notes: str = ""
    adjustment: AdjustmentBlock = field(default_factory=AdjustmentBlock)
    closure_confirmed: bool = False
    review_status: ReviewStatus = ReviewStatus.PENDIENTE
    reviewed_by: UUID | None = None
    reviewed_at: datetime | None = None
    review_observations: str | None = None
    updated_at: datetime | None = None
    version: int = 1

    @property
    def is_consolidated(self) -> bool:
        return self.session_id is None
