"""
Source Reconciler -- one authoritative value per editable cuadre field.

Responsibility:
    Given the confirmed (persisted) summary, an unsent local draft and the
    aggregated base, decide the working value of every editable field and
    remember which source it came from.

Architecture position:
    Engines -- pure functions, zero I/O.  The cuadre service loads the
    sources and feeds them in; the result is what a supervisor or cashier
    edits next.

Precedence, evaluated independently per field:
    1. Locked (approved) day: the confirmed value, everything else ignored.
    2. A draft value that is non-default.
    3. A confirmed value that is non-default.
    4. The aggregated base (or the field default).

Invariants enforced:
    - A draft saved before the confirmed summary was last updated is
      discarded whole, never merged field by field.
    - The placeholder exchange rate is never an explicit value: any
      positive aggregated rate wins over it.
    - Boolean fields are "set" whenever the source carries the key, since
      False is a meaningful choice.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from cuadre_engines.aggregation import AggregationResult, SessionAggregate
from cuadre_engines.tracer import traced_engine
from cuadre_kernel.domain.cuadre import CuadreSummary
from cuadre_kernel.domain.values import ZERO, parse_amount
from cuadre_kernel.exceptions import InvalidExchangeRateError
from cuadre_kernel.logging_config import get_logger

logger = get_logger("engines.reconciler")


class FieldSource(str, Enum):
    CONFIRMED_LOCKED = "confirmed_locked"
    DRAFT = "draft"
    CONFIRMED = "confirmed"
    AGGREGATED = "aggregated"
    DEFAULT = "default"


EXCHANGE_RATE = "exchange_rate"

DECIMAL_FIELDS: tuple[str, ...] = (
    EXCHANGE_RATE,
    "cash_local",
    "cash_usd",
    "pending_prizes_local",
    "pending_prizes_usd",
    "additional_amount_local",
    "additional_amount_usd",
    "sales_local",
    "sales_usd",
    "prizes_local",
    "prizes_usd",
)
TEXT_FIELDS: tuple[str, ...] = ("additional_notes", "closure_notes")
BOOLEAN_FIELDS: tuple[str, ...] = ("apply_excess_usd",)

EDITABLE_FIELDS: tuple[str, ...] = DECIMAL_FIELDS + TEXT_FIELDS + BOOLEAN_FIELDS


def supervisor_draft_key(actor_id: Any, agency_id: Any, day: date) -> str:
    return f"enc:cuadre-general:{actor_id}:{agency_id}:{day.isoformat()}"


def cashier_draft_key(actor_id: Any, day: date) -> str:
    return f"taq:cuadre-general:{actor_id}:{day.isoformat()}"


def banqueo_draft_key(actor_id: Any, client_id: Any, week_start: date) -> str:
    return f"banqueo:{actor_id}:{client_id}:{week_start.isoformat()}"


@dataclass(frozen=True)
class ResolvedField:
    value: Any
    source: FieldSource


@dataclass(frozen=True)
class ReconciledState:
    """Working values plus provenance for every editable field."""

    fields: Mapping[str, ResolvedField] = field(default_factory=dict)
    is_locked: bool = False
    draft_discarded: bool = False

    def __getitem__(self, name: str) -> ResolvedField:
        return self.fields[name]

    def value(self, name: str) -> Any:
        return self.fields[name].value

    def source(self, name: str) -> FieldSource:
        return self.fields[name].source

    def values(self) -> dict[str, Any]:
        return {name: resolved.value for name, resolved in self.fields.items()}


def field_defaults(default_apply_excess_usd: bool = True) -> dict[str, Any]:
    defaults: dict[str, Any] = {name: ZERO for name in DECIMAL_FIELDS}
    defaults.update({name: "" for name in TEXT_FIELDS})
    defaults["apply_excess_usd"] = default_apply_excess_usd
    return defaults


def summary_field_values(summary: CuadreSummary) -> dict[str, Any]:
    """Editable field view of a persisted summary."""
    return {
        EXCHANGE_RATE: summary.exchange_rate,
        "cash_local": summary.cash.bs,
        "cash_usd": summary.cash.usd,
        "pending_prizes_local": summary.pending_prizes.bs,
        "pending_prizes_usd": summary.pending_prizes.usd,
        "additional_amount_local": summary.adjustment.additional_amount.bs,
        "additional_amount_usd": summary.adjustment.additional_amount.usd,
        "additional_notes": summary.adjustment.additional_notes,
        "apply_excess_usd": summary.adjustment.apply_excess_usd,
        "closure_notes": summary.closure_notes,
        "sales_local": summary.sales.bs,
        "sales_usd": summary.sales.usd,
        "prizes_local": summary.prizes.bs,
        "prizes_usd": summary.prizes.usd,
    }


def base_field_values(
    aggregation: AggregationResult,
    sessions: SessionAggregate,
) -> dict[str, Any]:
    """Editable field view of the aggregated transactions and closures.

    The boolean toggle has no aggregated value: it is left out so the
    field default applies unless a cashier closure set it.
    """
    values: dict[str, Any] = {
        "cash_local": sessions.cash.bs,
        "cash_usd": sessions.cash.usd,
        "pending_prizes_local": aggregation.pending_prizes.bs,
        "pending_prizes_usd": aggregation.pending_prizes.usd,
        "additional_amount_local": sessions.adjustment.additional_amount.bs,
        "additional_amount_usd": sessions.adjustment.additional_amount.usd,
        "additional_notes": sessions.adjustment.additional_notes,
        "closure_notes": sessions.closure_notes,
        "sales_local": aggregation.sales.bs,
        "sales_usd": aggregation.sales.usd,
        "prizes_local": aggregation.prizes.bs,
        "prizes_usd": aggregation.prizes.usd,
    }
    if sessions.exchange_rate is not None:
        values[EXCHANGE_RATE] = sessions.exchange_rate
    if sessions.session_count:
        values["apply_excess_usd"] = sessions.adjustment.apply_excess_usd
    return values


def _is_set(name: str, source: Mapping[str, Any]) -> bool:
    """Whether ``source`` carries a non-default value for ``name``."""
    if name not in source:
        return False
    raw = source[name]
    if name in BOOLEAN_FIELDS:
        return raw is not None
    if name in TEXT_FIELDS:
        return bool(raw and str(raw).strip())
    if raw is None or raw == "":
        return False
    return parse_amount(raw) != ZERO


def normalize_field(name: str, raw: Any) -> Any:
    """Coerce a raw field value (possibly typed text) to its field type."""
    if name in BOOLEAN_FIELDS:
        if isinstance(raw, str):
            return raw.strip().lower() in ("1", "true", "yes", "on")
        return bool(raw)
    if name in TEXT_FIELDS:
        return "" if raw is None else str(raw)
    return parse_amount(raw)


def _resolve_exchange_rate(
    confirmed: Mapping[str, Any],
    draft: Mapping[str, Any],
    base: Mapping[str, Any],
    placeholder_rate: Decimal,
) -> ResolvedField:
    def explicit(source: Mapping[str, Any]) -> bool:
        return _is_set(EXCHANGE_RATE, source) and parse_amount(source[EXCHANGE_RATE]) != placeholder_rate

    if explicit(draft):
        return ResolvedField(parse_amount(draft[EXCHANGE_RATE]), FieldSource.DRAFT)
    if explicit(confirmed):
        return ResolvedField(parse_amount(confirmed[EXCHANGE_RATE]), FieldSource.CONFIRMED)
    aggregated = parse_amount(base.get(EXCHANGE_RATE))
    if aggregated > ZERO:
        return ResolvedField(aggregated, FieldSource.AGGREGATED)
    if _is_set(EXCHANGE_RATE, draft):
        return ResolvedField(placeholder_rate, FieldSource.DRAFT)
    if _is_set(EXCHANGE_RATE, confirmed):
        return ResolvedField(placeholder_rate, FieldSource.CONFIRMED)
    return ResolvedField(placeholder_rate, FieldSource.DEFAULT)


def is_draft_stale(
    draft_saved_at: datetime | None,
    confirmed_updated_at: datetime | None,
) -> bool:
    """A draft is superseded by a confirmed write that postdates it."""
    if draft_saved_at is None or confirmed_updated_at is None:
        return False
    return draft_saved_at < confirmed_updated_at


@traced_engine("source_reconciler", "1.0", fingerprint_fields=("confirmed", "draft", "base", "is_locked"))
def reconcile(
    *,
    confirmed: Mapping[str, Any] | None,
    draft: Mapping[str, Any] | None,
    base: Mapping[str, Any],
    is_locked: bool,
    placeholder_rate: Decimal,
    confirmed_updated_at: datetime | None = None,
    draft_saved_at: datetime | None = None,
    default_apply_excess_usd: bool = True,
) -> ReconciledState:
    """Resolve every editable field against its candidate sources.

    Args:
        confirmed: Field values of the persisted summary, if any.
        draft: Field values the actor edited but has not saved.
        base: Field values computed from transactions and closures.
        is_locked: True once the day is approved.
        placeholder_rate: Exchange rate that never counts as explicit.
        confirmed_updated_at: Last write time of the persisted summary.
        draft_saved_at: When the draft was stored.

    Returns:
        ReconciledState with a ResolvedField per name in EDITABLE_FIELDS.
    """
    confirmed = confirmed or {}
    draft = draft or {}
    defaults = field_defaults(default_apply_excess_usd)

    draft_discarded = False
    if draft and is_draft_stale(draft_saved_at, confirmed_updated_at):
        logger.info(
            "stale_draft_discarded",
            extra={
                "draft_saved_at": draft_saved_at,
                "confirmed_updated_at": confirmed_updated_at,
            },
        )
        draft = {}
        draft_discarded = True

    if is_locked and confirmed:
        resolved = {
            name: ResolvedField(
                normalize_field(name, confirmed.get(name, defaults[name])),
                FieldSource.CONFIRMED_LOCKED,
            )
            for name in EDITABLE_FIELDS
        }
        return ReconciledState(resolved, is_locked=True, draft_discarded=draft_discarded)

    resolved: dict[str, ResolvedField] = {}
    for name in EDITABLE_FIELDS:
        if name == EXCHANGE_RATE:
            resolved[name] = _resolve_exchange_rate(confirmed, draft, base, placeholder_rate)
        elif _is_set(name, draft):
            resolved[name] = ResolvedField(normalize_field(name, draft[name]), FieldSource.DRAFT)
        elif _is_set(name, confirmed):
            resolved[name] = ResolvedField(normalize_field(name, confirmed[name]), FieldSource.CONFIRMED)
        elif name in base and base[name] is not None:
            resolved[name] = ResolvedField(normalize_field(name, base[name]), FieldSource.AGGREGATED)
        else:
            resolved[name] = ResolvedField(defaults[name], FieldSource.DEFAULT)

    logger.debug(
        "fields_reconciled",
        extra={
            "is_locked": is_locked,
            "draft_field_count": sum(
                1 for r in resolved.values() if r.source == FieldSource.DRAFT
            ),
            "confirmed_field_count": sum(
                1 for r in resolved.values() if r.source == FieldSource.CONFIRMED
            ),
        },
    )
    return ReconciledState(resolved, is_locked=is_locked, draft_discarded=draft_discarded)


def editable_values(values: Mapping[str, Any]) -> dict[str, Any]:
    """Keep only editable keys from a raw draft payload."""
    return {name: values[name] for name in EDITABLE_FIELDS if name in values}


def validate_draft_values(values: Mapping[str, Any]) -> dict[str, Any]:
    """Editable keys of ``values``, each checked against its field type.

    The raw text is kept as typed; only its parse is checked.

    Raises:
        InvalidAmountError: A numeric field does not parse.
        InvalidExchangeRateError: The exchange rate is negative.
    """
    kept = editable_values(values)
    for name, raw in kept.items():
        value = normalize_field(name, raw)
        if name == EXCHANGE_RATE and value < ZERO:
            raise InvalidExchangeRateError(value)
    return kept
