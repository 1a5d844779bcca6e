"""Cuadre engine configuration: settings schema and YAML loader."""

from cuadre_config.loader import compute_checksum, load_settings, load_yaml_file
from cuadre_config.settings import CuadreSettings

__all__ = [
    "CuadreSettings",
    "compute_checksum",
    "load_settings",
    "load_yaml_file",
]
