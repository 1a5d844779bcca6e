"""
cuadre_config.settings
======================

Responsibility:
    Configuration schema for the cuadre engine: tolerance bands, the
    placeholder exchange rate, the default of the "apply USD excess"
    toggle, the business timezone and the record-store URL.

Invariants enforced:
    - Tolerances are non-negative Decimals, never floats.
    - ``placeholder_exchange_rate`` is positive.
    - ``timezone`` is a name pytz knows.

Failure modes:
    - Invalid values -> ``ValueError`` from ``__post_init__``.
"""

from dataclasses import asdict, dataclass, fields
from decimal import Decimal, InvalidOperation
from typing import Any, Self

import pytz

from cuadre_kernel.logging_config import get_logger

logger = get_logger("config.settings")

_DECIMAL_FIELDS = ("local_tolerance", "usd_tolerance", "placeholder_exchange_rate")


@dataclass
class CuadreSettings:
    """
    Settings consumed by the engines and services.

    Example::

        settings = CuadreSettings(local_tolerance=Decimal("50"))
    """

    # A day is balanced when |final difference| is within these bands
    local_tolerance: Decimal = Decimal("100")
    usd_tolerance: Decimal = Decimal("5")

    # Rate prefilled on new cuadres; never treated as explicitly set
    placeholder_exchange_rate: Decimal = Decimal("36.00")

    default_apply_excess_usd: bool = True

    timezone: str = "America/Caracas"

    database_url: str = "sqlite:///:memory:"
    database_echo: bool = False

    def __post_init__(self):
        for name in _DECIMAL_FIELDS:
            raw = getattr(self, name)
            if isinstance(raw, float):
                raw = str(raw)
            try:
                value = Decimal(raw) if not isinstance(raw, Decimal) else raw
            except (InvalidOperation, TypeError) as e:
                raise ValueError(f"{name} must be a decimal number, got {raw!r}") from e
            setattr(self, name, value)

        if self.local_tolerance < 0:
            raise ValueError("local_tolerance cannot be negative")
        if self.usd_tolerance < 0:
            raise ValueError("usd_tolerance cannot be negative")
        if self.placeholder_exchange_rate <= 0:
            raise ValueError("placeholder_exchange_rate must be positive")
        if self.timezone not in pytz.all_timezones_set:
            raise ValueError(f"Unknown timezone: {self.timezone}")

        logger.info(
            "cuadre_settings_initialized",
            extra={
                "local_tolerance": str(self.local_tolerance),
                "usd_tolerance": str(self.usd_tolerance),
                "placeholder_exchange_rate": str(self.placeholder_exchange_rate),
                "default_apply_excess_usd": self.default_apply_excess_usd,
                "timezone": self.timezone,
            },
        )

    @classmethod
    def with_defaults(cls) -> Self:
        logger.info("cuadre_settings_created_with_defaults")
        return cls()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        """Create settings from a dict (YAML, environment). Unknown keys are an error."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown cuadre settings: {', '.join(unknown)}")
        logger.info(
            "cuadre_settings_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        return cls(**data)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
