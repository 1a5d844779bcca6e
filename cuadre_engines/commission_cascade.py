"""
Commission Cascade Resolver -- effective percentages and banqueo settlement.

Responsibility:
    For a lottery system, and optionally a wholesale client, walk the
    override hierarchy to find the effective commission, participation and
    Lanave percentages in each currency; then settle a client's week
    across systems.

Architecture position:
    Engines -- pure functions, zero I/O.  Configuration rows arrive as a
    CommissionConfig snapshot loaded by the commission selector.

Cascade, evaluated independently per value and currency:
    commission:    client x system -> client-wide -> system default -> 0
    participation: client x system -> system default (utility) -> 0
    lanave:        client x system -> client-wide -> 0

Invariants enforced:
    - ``None`` is absent and falls through; ``Percentage(0)`` is present
      and stops the cascade.
    - Settlement amounts are never rounded here.

Usage:
    rates = resolve_rates(system_id, client_id, config)
    settlement = settle_banqueo(entries=entries, client_id=client_id, config=config)
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from uuid import UUID

from cuadre_engines.tracer import traced_engine
from cuadre_kernel.domain.commission import (
    BanqueoEntry,
    BanqueoTransaction,
    CommissionConfig,
)
from cuadre_kernel.domain.values import ZERO_PERCENT, CurrencyPair, Percentage
from cuadre_kernel.logging_config import get_logger

logger = get_logger("engines.commission_cascade")


class RateSource(str, Enum):
    CLIENT_SYSTEM = "client_system_participation"
    CLIENT_WIDE = "client_banqueo_commission"
    SYSTEM_DEFAULT = "commission_rate"
    SNAPSHOT = "snapshot"
    ZERO = "zero"


@dataclass(frozen=True)
class ResolvedPercentage:
    value: Percentage
    source: RateSource

    @property
    def is_zero(self) -> bool:
        return self.value.is_zero


_ZERO_RESOLVED = ResolvedPercentage(ZERO_PERCENT, RateSource.ZERO)


@dataclass(frozen=True)
class ResolvedRates:
    """The six effective percentages for one (system, client) pair."""

    lottery_system_id: UUID
    client_id: UUID | None = None
    commission_bs: ResolvedPercentage = _ZERO_RESOLVED
    commission_usd: ResolvedPercentage = _ZERO_RESOLVED
    participation_bs: ResolvedPercentage = _ZERO_RESOLVED
    participation_usd: ResolvedPercentage = _ZERO_RESOLVED
    lanave_bs: ResolvedPercentage = _ZERO_RESOLVED
    lanave_usd: ResolvedPercentage = _ZERO_RESOLVED


def _first(*candidates: tuple[Percentage | None, RateSource]) -> ResolvedPercentage:
    for value, source in candidates:
        if value is not None:
            return ResolvedPercentage(value, source)
    return _ZERO_RESOLVED


def resolve_rates(
    system_id: UUID,
    client_id: UUID | None,
    config: CommissionConfig,
) -> ResolvedRates:
    """Walk the override hierarchy for every value independently."""
    csp = config.participation_for(client_id, system_id)
    cbc = config.client_commission_for(client_id)
    rate = config.rate_for(system_id)

    def pick(obj, attr):
        return getattr(obj, attr) if obj is not None else None

    return ResolvedRates(
        lottery_system_id=system_id,
        client_id=client_id,
        commission_bs=_first(
            (pick(csp, "client_commission_bs"), RateSource.CLIENT_SYSTEM),
            (pick(cbc, "commission_bs"), RateSource.CLIENT_WIDE),
            (pick(rate, "commission_bs"), RateSource.SYSTEM_DEFAULT),
        ),
        commission_usd=_first(
            (pick(csp, "client_commission_usd"), RateSource.CLIENT_SYSTEM),
            (pick(cbc, "commission_usd"), RateSource.CLIENT_WIDE),
            (pick(rate, "commission_usd"), RateSource.SYSTEM_DEFAULT),
        ),
        participation_bs=_first(
            (pick(csp, "participation_bs"), RateSource.CLIENT_SYSTEM),
            (pick(rate, "utility_bs"), RateSource.SYSTEM_DEFAULT),
        ),
        participation_usd=_first(
            (pick(csp, "participation_usd"), RateSource.CLIENT_SYSTEM),
            (pick(rate, "utility_usd"), RateSource.SYSTEM_DEFAULT),
        ),
        lanave_bs=_first(
            (pick(csp, "lanave_bs"), RateSource.CLIENT_SYSTEM),
            (pick(cbc, "lanave_bs"), RateSource.CLIENT_WIDE),
        ),
        lanave_usd=_first(
            (pick(csp, "lanave_usd"), RateSource.CLIENT_SYSTEM),
            (pick(cbc, "lanave_usd"), RateSource.CLIENT_WIDE),
        ),
    )


def rates_from_snapshot(row: BanqueoTransaction) -> ResolvedRates:
    """Rates frozen on a saved banqueo row."""

    def snap(value: Percentage) -> ResolvedPercentage:
        return ResolvedPercentage(value, RateSource.SNAPSHOT)

    return ResolvedRates(
        lottery_system_id=row.lottery_system_id,
        client_id=row.client_id,
        commission_bs=snap(row.commission_bs),
        commission_usd=snap(row.commission_usd),
        participation_bs=snap(row.participation_bs),
        participation_usd=snap(row.participation_usd),
        lanave_bs=snap(row.lanave_bs),
        lanave_usd=snap(row.lanave_usd),
    )


@dataclass(frozen=True)
class SystemSettlement:
    lottery_system_id: UUID
    rates: ResolvedRates
    sales: CurrencyPair = field(default_factory=CurrencyPair.zero)
    prizes: CurrencyPair = field(default_factory=CurrencyPair.zero)
    net: CurrencyPair = field(default_factory=CurrencyPair.zero)
    commission: CurrencyPair = field(default_factory=CurrencyPair.zero)
    subtotal: CurrencyPair = field(default_factory=CurrencyPair.zero)
    participation: CurrencyPair = field(default_factory=CurrencyPair.zero)
    lanave: CurrencyPair = field(default_factory=CurrencyPair.zero)
    final: CurrencyPair = field(default_factory=CurrencyPair.zero)


@dataclass(frozen=True)
class BanqueoSettlement:
    """A client's week across systems, with per-system lines and totals."""

    client_id: UUID | None
    lines: tuple[SystemSettlement, ...] = ()
    sales: CurrencyPair = field(default_factory=CurrencyPair.zero)
    prizes: CurrencyPair = field(default_factory=CurrencyPair.zero)
    net: CurrencyPair = field(default_factory=CurrencyPair.zero)
    commission: CurrencyPair = field(default_factory=CurrencyPair.zero)
    subtotal: CurrencyPair = field(default_factory=CurrencyPair.zero)
    participation: CurrencyPair = field(default_factory=CurrencyPair.zero)
    lanave: CurrencyPair = field(default_factory=CurrencyPair.zero)
    final: CurrencyPair = field(default_factory=CurrencyPair.zero)

    def line_for(self, system_id: UUID) -> SystemSettlement | None:
        for line in self.lines:
            if line.lottery_system_id == system_id:
                return line
        return None


def settle_system(entry: BanqueoEntry, rates: ResolvedRates) -> SystemSettlement:
    """net = sales - prizes; commission on sales; shares on the subtotal."""
    net = entry.sales - entry.prizes
    commission = CurrencyPair(
        rates.commission_bs.value.apply(entry.sales.bs),
        rates.commission_usd.value.apply(entry.sales.usd),
    )
    subtotal = net - commission
    participation = CurrencyPair(
        rates.participation_bs.value.apply(subtotal.bs),
        rates.participation_usd.value.apply(subtotal.usd),
    )
    lanave = CurrencyPair(
        rates.lanave_bs.value.apply(subtotal.bs),
        rates.lanave_usd.value.apply(subtotal.usd),
    )
    return SystemSettlement(
        lottery_system_id=entry.lottery_system_id,
        rates=rates,
        sales=entry.sales,
        prizes=entry.prizes,
        net=net,
        commission=commission,
        subtotal=subtotal,
        participation=participation,
        lanave=lanave,
        final=subtotal - participation,
    )


@traced_engine("banqueo_settlement", "1.0", fingerprint_fields=("entries", "client_id"))
def settle_banqueo(
    *,
    entries: Sequence[BanqueoEntry],
    client_id: UUID | None,
    config: CommissionConfig | None = None,
    rates: Mapping[UUID, ResolvedRates] | None = None,
) -> BanqueoSettlement:
    """Settle a client's week.

    ``rates`` (typically snapshots from saved rows) wins per system; other
    systems resolve through ``config``.
    """
    config = config or CommissionConfig()
    rates = rates or {}
    lines = tuple(
        settle_system(
            entry,
            rates.get(entry.lottery_system_id)
            or resolve_rates(entry.lottery_system_id, client_id, config),
        )
        for entry in entries
    )

    def total(attr: str) -> CurrencyPair:
        return CurrencyPair.total(getattr(line, attr) for line in lines)

    settlement = BanqueoSettlement(
        client_id=client_id,
        lines=lines,
        sales=total("sales"),
        prizes=total("prizes"),
        net=total("net"),
        commission=total("commission"),
        subtotal=total("subtotal"),
        participation=total("participation"),
        lanave=total("lanave"),
        final=total("final"),
    )
    logger.info(
        "banqueo_settlement_computed",
        extra={
            "client_id": client_id,
            "system_count": len(lines),
            "final_bs": settlement.final.bs,
            "final_usd": settlement.final.usd,
        },
    )
    return settlement
