"""
Module: cuadre_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    calculation engines.  This is the import surface for cuadre_services.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import cuadre_kernel.domain, cuadre_kernel.exceptions and
    cuadre_kernel.logging_config.  MUST NOT import cuadre_services.

Invariants enforced:
    - Purity: engines never read the clock; timestamps are parameters.
    - Decimal-only arithmetic, no rounding until format time.
    - Determinism: identical inputs always produce identical outputs.

Usage:
    from cuadre_engines import aggregate_transactions, reconcile, calculate_cuadre
"""

from cuadre_kernel.logging_config import get_logger

logger = get_logger("engines")

from cuadre_engines.aggregation import (
    AggregationResult,
    AggregationScope,
    ParentTotals,
    SessionAggregate,
    SystemLine,
    aggregate_cashier_sessions,
    aggregate_transactions,
    dedupe_transactions,
    merge_supervisor_details,
)
from cuadre_engines.commission_cascade import (
    BanqueoSettlement,
    RateSource,
    ResolvedPercentage,
    ResolvedRates,
    SystemSettlement,
    rates_from_snapshot,
    resolve_rates,
    settle_banqueo,
    settle_system,
)
from cuadre_engines.cuadre_totals import (
    CuadreInputs,
    CuadreReport,
    Tolerances,
    calculate_cuadre,
    format_report,
)
from cuadre_engines.reconciler import (
    EDITABLE_FIELDS,
    FieldSource,
    ReconciledState,
    ResolvedField,
    banqueo_draft_key,
    base_field_values,
    cashier_draft_key,
    editable_values,
    normalize_field,
    reconcile,
    summary_field_values,
    supervisor_draft_key,
    validate_draft_values,
)
from cuadre_engines.review import NotificationDeduper, should_notify, transition
from cuadre_engines.tracer import traced_engine
from cuadre_engines.weekly import (
    WeeklyAgencySummary,
    WeeklySystemLine,
    aggregate_week,
)

__all__ = [
    # Aggregation
    "AggregationResult",
    "AggregationScope",
    "ParentTotals",
    "SessionAggregate",
    "SystemLine",
    "aggregate_cashier_sessions",
    "aggregate_transactions",
    "dedupe_transactions",
    "merge_supervisor_details",
    # Commission cascade
    "BanqueoSettlement",
    "RateSource",
    "ResolvedPercentage",
    "ResolvedRates",
    "SystemSettlement",
    "rates_from_snapshot",
    "resolve_rates",
    "settle_banqueo",
    "settle_system",
    # Totals
    "CuadreInputs",
    "CuadreReport",
    "Tolerances",
    "calculate_cuadre",
    "format_report",
    # Reconciler
    "EDITABLE_FIELDS",
    "FieldSource",
    "ReconciledState",
    "ResolvedField",
    "banqueo_draft_key",
    "base_field_values",
    "cashier_draft_key",
    "editable_values",
    "normalize_field",
    "reconcile",
    "summary_field_values",
    "supervisor_draft_key",
    "validate_draft_values",
    # Review
    "NotificationDeduper",
    "should_notify",
    "transition",
    # Tracing
    "traced_engine",
    # Weekly
    "WeeklyAgencySummary",
    "WeeklySystemLine",
    "aggregate_week",
]
