"""
franchise_config -- single public entrypoint for tracker settings.

Responsibility:
    Provides the ONLY way to obtain settings at runtime through
    ``get_active_settings()``.  Layers, lowest priority first:
    ``defaults.yaml`` shipped with the package, an optional site YAML file,
    then environment variables (``DATABASE_URL`` / ``FRANCHISE_DATABASE_URL``,
    ``FRANCHISE_REPORTING_TIMEZONE``, ``FRANCHISE_LOG_LEVEL``).

Architecture position:
    Configuration.  Sits beside ``franchise_kernel``; the kernel never
    imports from here.  ``franchise_services`` and scripts pass the values
    into kernel constructors.

Failure modes:
    - ``FileNotFoundError`` -- the site file does not exist.
    - ``ValueError`` -- unknown key or invalid value (the message names it).

Audit relevance:
    Every successful call emits a ``franchise_config_trace`` log entry with
    the settings checksum, so a log stream can be tied to the exact
    configuration a process ran with.
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path

from franchise_config.loader import (
    compute_checksum,
    env_layer,
    load_yaml_file,
    merge_layers,
    parse_settings,
)
from franchise_config.schema import TrackerSettings
from franchise_kernel.logging_config import get_logger

_logger = get_logger("config")

DEFAULTS_FILE = Path(__file__).parent / "defaults.yaml"

__all__ = ["TrackerSettings", "compute_checksum", "get_active_settings"]


def get_active_settings(
    config_file: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> TrackerSettings:
    """The ONLY public settings entrypoint.

    Args:
        config_file: Optional site YAML overlaid on the packaged defaults.
        environ: Environment mapping; defaults to ``os.environ``.

    Raises:
        FileNotFoundError: If ``config_file`` does not exist.
        ValueError: If validation fails.
    """
    layers = [load_yaml_file(DEFAULTS_FILE)]
    if config_file is not None:
        layers.append(load_yaml_file(Path(config_file)))
    layers.append(env_layer(environ))

    settings = parse_settings(merge_layers(*layers))
    checksum = compute_checksum(settings)

    _logger.info(
        "franchise_config_trace",
        extra={
            "checksum": checksum,
            "config_file": str(config_file) if config_file else None,
            "reporting_timezone": settings.reporting_timezone,
            "cache_ttl_seconds": settings.cache_ttl_seconds,
            "scope_ttl_seconds": settings.scope_ttl_seconds,
            "recalc_max_workers": settings.recalc_max_workers,
        },
    )
    return settings
