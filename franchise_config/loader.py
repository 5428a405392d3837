"""
Configuration Loader (``franchise_config.loader``).

Responsibility
--------------
Reads YAML settings files, overlays them, applies environment overrides and
parses the result into a frozen ``TrackerSettings``.  The single public
entry point for runtime settings is ``franchise_config.get_active_settings()``.

Invariants enforced
-------------------
* Unknown keys are rejected; a typo never silently falls back to a default.
* Every value is type-checked and range-checked; errors name the key.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the
  effective settings.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Invalid or unknown key  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
from collections.abc import Mapping
from dataclasses import fields
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

from franchise_config.schema import TrackerSettings

# Environment variable -> settings key, in priority order per key
ENV_OVERRIDES: tuple[tuple[str, str], ...] = (
    ("DATABASE_URL", "database_url"),
    ("FRANCHISE_DATABASE_URL", "database_url"),
    ("FRANCHISE_REPORTING_TIMEZONE", "reporting_timezone"),
    ("FRANCHISE_LOG_LEVEL", "log_level"),
)

_FIELD_TYPES = {f.name: f.type for f in fields(TrackerSettings)}
_POSITIVE_INTS = ("recalc_max_workers", "read_retry_attempts", "pool_size")
_NON_NEGATIVE_FLOATS = (
    "cache_ttl_seconds",
    "scope_ttl_seconds",
    "notifier_retry_seconds",
    "read_retry_backoff_seconds",
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its top-level mapping.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: expected a mapping at top level")
    return data


def merge_layers(*layers: Mapping[str, Any]) -> dict[str, Any]:
    """Shallow merge, later layers win."""
    merged: dict[str, Any] = {}
    for layer in layers:
        merged.update(layer)
    return merged


def env_layer(environ: Mapping[str, str] | None = None) -> dict[str, Any]:
    """Settings taken from the environment.  Later entries win per key."""
    environ = os.environ if environ is None else environ
    layer: dict[str, Any] = {}
    for variable, key in ENV_OVERRIDES:
        value = environ.get(variable)
        if value:
            layer[key] = value
    return layer


def parse_settings(data: Mapping[str, Any]) -> TrackerSettings:
    """
    Validate a merged mapping and build TrackerSettings.

    Raises:
        ValueError: unknown key, wrong type, or out-of-range value.
    """
    unknown = sorted(set(data) - set(_FIELD_TYPES))
    if unknown:
        raise ValueError(f"Unknown settings keys: {unknown}")

    values: dict[str, Any] = {}
    for key, raw in data.items():
        values[key] = _coerce(key, raw)

    for key in _POSITIVE_INTS:
        if key in values and values[key] < 1:
            raise ValueError(f"{key} must be >= 1, got {values[key]}")
    for key in _NON_NEGATIVE_FLOATS:
        if key in values and values[key] < 0:
            raise ValueError(f"{key} must be >= 0, got {values[key]}")
    if values.get("max_overflow", 0) < 0:
        raise ValueError(f"max_overflow must be >= 0, got {values['max_overflow']}")

    if "reporting_timezone" in values:
        try:
            ZoneInfo(values["reporting_timezone"])
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(
                f"reporting_timezone is not a known IANA zone: "
                f"{values['reporting_timezone']!r}"
            ) from None

    if "log_level" in values:
        level = values["log_level"].upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"log_level is not a logging level: {values['log_level']!r}")
        values["log_level"] = level

    return TrackerSettings(**values)


def _coerce(key: str, raw: Any) -> Any:
    expected = _FIELD_TYPES[key]
    try:
        if expected == "int":
            if isinstance(raw, bool):
                raise TypeError
            return int(raw)
        if expected == "float":
            if isinstance(raw, bool):
                raise TypeError
            return float(raw)
    except (TypeError, ValueError):
        raise ValueError(f"{key} must be a number, got {raw!r}") from None
    if not isinstance(raw, str) or not raw:
        raise ValueError(f"{key} must be a non-empty string, got {raw!r}")
    return raw


def compute_checksum(settings: TrackerSettings) -> str:
    """
    SHA-256 of the canonical JSON serialization of the settings.

    Identical settings always produce identical checksums.
    """
    canonical = json.dumps(settings.to_dict(), sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
