"""
Commission configuration and banqueo records.

Every percentage field is ``Percentage | None``: ``None`` means the row
does not set that value and the cascade falls through to the next level;
``Percentage(0)`` is an explicit zero that stops the cascade.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date
from uuid import UUID

from cuadre_kernel.domain.values import CurrencyPair, Percentage


@dataclass(frozen=True)
class CommissionRate:
    """System-wide default commission and utility for a lottery system."""

    lottery_system_id: UUID
    commission_bs: Percentage | None = None
    commission_usd: Percentage | None = None
    utility_bs: Percentage | None = None
    utility_usd: Percentage | None = None


@dataclass(frozen=True)
class ClientSystemParticipation:
    """Per client x system override, the most specific level."""

    client_id: UUID
    lottery_system_id: UUID
    client_commission_bs: Percentage | None = None
    client_commission_usd: Percentage | None = None
    participation_bs: Percentage | None = None
    participation_usd: Percentage | None = None
    lanave_bs: Percentage | None = None
    lanave_usd: Percentage | None = None


@dataclass(frozen=True)
class ClientBanqueoCommission:
    """Client-wide banqueo terms applying to all of the client's systems."""

    client_id: UUID
    lanave_bs: Percentage | None = None
    lanave_usd: Percentage | None = None
    commission_bs: Percentage | None = None
    commission_usd: Percentage | None = None


@dataclass(frozen=True)
class CommissionConfig:
    """Snapshot of every configuration row the cascade may consult."""

    rates: Mapping[UUID, CommissionRate] = field(default_factory=dict)
    participations: Mapping[tuple[UUID, UUID], ClientSystemParticipation] = field(
        default_factory=dict
    )
    client_commissions: Mapping[UUID, ClientBanqueoCommission] = field(
        default_factory=dict
    )

    @classmethod
    def from_rows(
        cls,
        rates: Iterable[CommissionRate] = (),
        participations: Iterable[ClientSystemParticipation] = (),
        client_commissions: Iterable[ClientBanqueoCommission] = (),
    ) -> CommissionConfig:
        return cls(
            rates={r.lottery_system_id: r for r in rates},
            participations={
                (p.client_id, p.lottery_system_id): p for p in participations
            },
            client_commissions={c.client_id: c for c in client_commissions},
        )

    def rate_for(self, system_id: UUID) -> CommissionRate | None:
        return self.rates.get(system_id)

    def participation_for(
        self, client_id: UUID | None, system_id: UUID
    ) -> ClientSystemParticipation | None:
        if client_id is None:
            return None
        return self.participations.get((client_id, system_id))

    def client_commission_for(
        self, client_id: UUID | None
    ) -> ClientBanqueoCommission | None:
        if client_id is None:
            return None
        return self.client_commissions.get(client_id)


@dataclass(frozen=True)
class BanqueoEntry:
    """Weekly sales/prizes a wholesale client reports for one system."""

    lottery_system_id: UUID
    sales: CurrencyPair = field(default_factory=CurrencyPair.zero)
    prizes: CurrencyPair = field(default_factory=CurrencyPair.zero)

    @property
    def is_zero(self) -> bool:
        return self.sales.is_zero and self.prizes.is_zero


@dataclass(frozen=True)
class BanqueoTransaction:
    """Persisted banqueo row for (client, week, system).

    Percentages are the resolved values at save time, so later changes to
    the configuration do not rewrite a settled week.
    """

    id: UUID
    client_id: UUID
    week_start_date: date
    week_end_date: date
    lottery_system_id: UUID
    sales: CurrencyPair
    prizes: CurrencyPair
    commission_bs: Percentage
    commission_usd: Percentage
    participation_bs: Percentage
    participation_usd: Percentage
    lanave_bs: Percentage
    lanave_usd: Percentage
    paid_bs: bool = False
    paid_usd: bool = False

    @property
    def entry(self) -> BanqueoEntry:
        return BanqueoEntry(self.lottery_system_id, self.sales, self.prizes)
