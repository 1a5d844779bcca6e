"""
Settings loader (``cuadre_config.loader``).

Responsibility
--------------
Reads a YAML settings file, layers environment overrides on top, and
builds a ``CuadreSettings``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Non-mapping YAML, unknown keys or bad values  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml

from cuadre_config.settings import CuadreSettings
from cuadre_kernel.logging_config import get_logger

logger = get_logger("config.loader")

DEFAULTS_PATH = Path(__file__).with_name("defaults.yaml")

# Environment variable -> settings key
ENV_OVERRIDES: dict[str, str] = {
    "CUADRE_DATABASE_URL": "database_url",
    "CUADRE_LOCAL_TOLERANCE": "local_tolerance",
    "CUADRE_USD_TOLERANCE": "usd_tolerance",
    "CUADRE_PLACEHOLDER_EXCHANGE_RATE": "placeholder_exchange_rate",
    "CUADRE_TIMEZONE": "timezone",
}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML file; an empty file yields an empty dict."""
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at top level, got {type(data).__name__}")
    return data


def parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("1", "true", "yes", "on"):
        return True
    if isinstance(value, str) and value.strip().lower() in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"Not a boolean: {value!r}")


def env_overrides(environ: Mapping[str, str] | None = None) -> dict[str, Any]:
    environ = os.environ if environ is None else environ
    return {key: environ[var] for var, key in ENV_OVERRIDES.items() if var in environ}


def load_settings(
    path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> CuadreSettings:
    """Defaults file, then ``path`` (if given), then environment overrides."""
    data = load_yaml_file(DEFAULTS_PATH)
    if path is not None:
        data.update(load_yaml_file(Path(path)))
    overrides = env_overrides(environ)
    data.update(overrides)

    for key in ("default_apply_excess_usd", "database_echo"):
        if key in data:
            data[key] = parse_bool(data[key])

    logger.info(
        "cuadre_settings_loaded",
        extra={
            "source": str(path) if path is not None else "defaults",
            "env_overrides": sorted(overrides),
        },
    )
    return CuadreSettings.from_dict(data)


def compute_checksum(settings: CuadreSettings) -> str:
    """Deterministic SHA-256 of the effective settings."""
    payload = json.dumps(settings.to_dict(), sort_keys=True, default=str)
    return hashlib.sha256(payload.encode()).hexdigest()
