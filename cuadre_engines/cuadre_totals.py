"""
Cuadre Totals Calculator -- the reconciliation report for a day or week.

Responsibility:
    From aggregated totals, counted cash, pending prizes, a manual
    adjustment, an exchange rate and the "apply USD excess" toggle,
    compute bank total, cuadre, sumatoria and final difference per
    currency, and decide whether the result is within tolerance.

Architecture position:
    Engines -- pure function, zero I/O.

Formulas (c in {Bs, USD}):
    cuadre[c]        = sales[c] - prizes[c]
    bank_total       = mobile_received - mobile_paid + point_of_sale  (Bs)
    sumatoria_usd    = cash_usd - expenses_usd - debts_usd - adjustment_usd
    final_usd        = sumatoria_usd - cuadre_usd - pending_usd
    excess_usd       = max(0, final_usd)
    sumatoria_bs     = cash_bs + bank_total - expenses_bs - debts_bs
                       + (excess_usd * rate if toggle) - adjustment_bs
    final_bs         = sumatoria_bs - cuadre_bs - pending_bs
    residual_usd     = final_usd - (excess_usd if toggle else 0)

    Pending USD prizes therefore reduce the excess before it is converted,
    and the USD adjustment is subtracted exactly once.

Invariants enforced:
    - No rounding anywhere in the computation; format_report() rounds.
    - Balanced means |final_bs| <= local tolerance and
      |residual_usd| <= USD tolerance, both boundaries inclusive.

Failure modes:
    - InvalidExchangeRateError for a negative exchange rate.
"""

from __future__ import annotations

import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any
from uuid import UUID

from cuadre_engines.aggregation import AggregationResult, SystemLine
from cuadre_engines.commission_cascade import (
    ResolvedRates,
    SystemSettlement,
    settle_system,
)
from cuadre_engines.tracer import traced_engine
from cuadre_kernel.domain.commission import BanqueoEntry
from cuadre_kernel.domain.values import BS, USD, ZERO, CurrencyPair, Money, to_decimal
from cuadre_kernel.exceptions import InvalidExchangeRateError
from cuadre_kernel.logging_config import get_logger

logger = get_logger("engines.cuadre_totals")


@dataclass(frozen=True)
class Tolerances:
    local: Decimal = Decimal("100")
    usd: Decimal = Decimal("5")


@dataclass(frozen=True)
class CuadreInputs:
    sales: CurrencyPair = field(default_factory=CurrencyPair.zero)
    prizes: CurrencyPair = field(default_factory=CurrencyPair.zero)
    expenses: CurrencyPair = field(default_factory=CurrencyPair.zero)
    debts: CurrencyPair = field(default_factory=CurrencyPair.zero)
    mobile_received: Decimal = ZERO
    mobile_paid: Decimal = ZERO
    point_of_sale: Decimal = ZERO
    cash: CurrencyPair = field(default_factory=CurrencyPair.zero)
    pending_prizes: CurrencyPair = field(default_factory=CurrencyPair.zero)
    adjustment: CurrencyPair = field(default_factory=CurrencyPair.zero)
    exchange_rate: Decimal = ZERO
    apply_excess_usd: bool = True
    system_lines: tuple[SystemLine, ...] = ()
    commission_rates: Mapping[UUID, ResolvedRates] = field(default_factory=dict)

    @classmethod
    def from_working_state(
        cls,
        aggregation: AggregationResult,
        values: Mapping[str, Any],
        commission_rates: Mapping[UUID, ResolvedRates] | None = None,
    ) -> CuadreInputs:
        """Combine the aggregate with reconciled field values.

        Sales and prizes come from the reconciled values, which already
        reflect supervisor edits; bank and expense figures come from the
        aggregate.
        """
        return cls(
            sales=CurrencyPair.of(values.get("sales_local"), values.get("sales_usd")),
            prizes=CurrencyPair.of(values.get("prizes_local"), values.get("prizes_usd")),
            expenses=aggregation.expenses,
            debts=aggregation.debts,
            mobile_received=aggregation.mobile_received,
            mobile_paid=aggregation.mobile_paid,
            point_of_sale=aggregation.point_of_sale,
            cash=CurrencyPair.of(values.get("cash_local"), values.get("cash_usd")),
            pending_prizes=CurrencyPair.of(
                values.get("pending_prizes_local"), values.get("pending_prizes_usd")
            ),
            adjustment=CurrencyPair.of(
                values.get("additional_amount_local"), values.get("additional_amount_usd")
            ),
            exchange_rate=to_decimal(values.get("exchange_rate")),
            apply_excess_usd=bool(values.get("apply_excess_usd", True)),
            system_lines=aggregation.system_lines,
            commission_rates=commission_rates or {},
        )


@dataclass(frozen=True)
class CuadreReport:
    inputs: CuadreInputs
    cuadre: CurrencyPair
    bank_total: Decimal
    sumatoria: CurrencyPair
    final_difference: CurrencyPair
    excess_usd: Decimal
    excess_usd_applied_local: Decimal
    residual_difference_usd: Decimal
    is_local_balanced: bool
    is_usd_balanced: bool
    tolerances: Tolerances
    commission_lines: tuple[SystemSettlement, ...] = ()

    @property
    def balanced(self) -> bool:
        return self.is_local_balanced and self.is_usd_balanced

    @property
    def commission_total(self) -> CurrencyPair:
        return CurrencyPair.total(line.commission for line in self.commission_lines)


def _commission_lines(
    lines: Sequence[SystemLine],
    rates: Mapping[UUID, ResolvedRates],
) -> tuple[SystemSettlement, ...]:
    return tuple(
        settle_system(
            BanqueoEntry(line.system_id, line.sales, line.prizes),
            rates[line.system_id],
        )
        for line in lines
        if line.system_id in rates
    )


@traced_engine("cuadre_totals", "1.0", fingerprint_fields=("inputs", "tolerances"))
def calculate_cuadre(
    *,
    inputs: CuadreInputs,
    tolerances: Tolerances | None = None,
) -> CuadreReport:
    """Compute the full reconciliation report.

    Args:
        inputs: Aggregated and reconciled figures for the period.
        tolerances: Balance bands; defaults to 100 Bs / 5 USD.

    Returns:
        CuadreReport with unrounded amounts.

    Raises:
        InvalidExchangeRateError: If the exchange rate is negative.
    """
    t0 = time.monotonic()
    tolerances = tolerances or Tolerances()
    if inputs.exchange_rate < ZERO:
        raise InvalidExchangeRateError(inputs.exchange_rate)

    cuadre = inputs.sales - inputs.prizes
    bank_total = inputs.mobile_received - inputs.mobile_paid + inputs.point_of_sale

    sumatoria_usd = (
        inputs.cash.usd - inputs.expenses.usd - inputs.debts.usd - inputs.adjustment.usd
    )
    final_usd = sumatoria_usd - cuadre.usd - inputs.pending_prizes.usd
    excess_usd = max(ZERO, final_usd)

    applied_usd = excess_usd if inputs.apply_excess_usd else ZERO
    applied_local = applied_usd * inputs.exchange_rate

    sumatoria_bs = (
        inputs.cash.bs
        + bank_total
        - inputs.expenses.bs
        - inputs.debts.bs
        + applied_local
        - inputs.adjustment.bs
    )
    final_bs = sumatoria_bs - cuadre.bs - inputs.pending_prizes.bs
    residual_usd = final_usd - applied_usd

    report = CuadreReport(
        inputs=inputs,
        cuadre=cuadre,
        bank_total=bank_total,
        sumatoria=CurrencyPair(sumatoria_bs, sumatoria_usd),
        final_difference=CurrencyPair(final_bs, final_usd),
        excess_usd=excess_usd,
        excess_usd_applied_local=applied_local,
        residual_difference_usd=residual_usd,
        is_local_balanced=abs(final_bs) <= tolerances.local,
        is_usd_balanced=abs(residual_usd) <= tolerances.usd,
        tolerances=tolerances,
        commission_lines=_commission_lines(inputs.system_lines, inputs.commission_rates),
    )

    logger.info(
        "cuadre_totals_computed",
        extra={
            "final_difference_bs": final_bs,
            "final_difference_usd": final_usd,
            "excess_usd": excess_usd,
            "apply_excess_usd": inputs.apply_excess_usd,
            "balanced": report.balanced,
            "duration_ms": round((time.monotonic() - t0) * 1000, 2),
        },
    )
    return report


def format_report(report: CuadreReport) -> dict[str, str]:
    """Display strings for every report amount, rounded half-up."""

    def bs(amount: Decimal) -> str:
        return Money(amount, BS).format()

    def usd(amount: Decimal) -> str:
        return Money(amount, USD).format()

    return {
        "cuadre_bs": bs(report.cuadre.bs),
        "cuadre_usd": usd(report.cuadre.usd),
        "bank_total_bs": bs(report.bank_total),
        "sumatoria_bs": bs(report.sumatoria.bs),
        "sumatoria_usd": usd(report.sumatoria.usd),
        "excess_usd": usd(report.excess_usd),
        "excess_usd_applied_bs": bs(report.excess_usd_applied_local),
        "final_difference_bs": bs(report.final_difference.bs),
        "final_difference_usd": usd(report.final_difference.usd),
        "residual_difference_usd": usd(report.residual_difference_usd),
        "status": "cuadrado" if report.balanced else "descuadrado",
    }
