"""
TrackerSettings schema.

The runtime settings of the tracker, parsed from YAML by the loader and
overlaid with environment variables.  Frozen: callers hold one instance for
the life of a FranchiseTracker.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any


@dataclass(frozen=True)
class TrackerSettings:
    """Effective tracker configuration."""

    database_url: str = "sqlite:///franchise_tracker.db"

    # IANA zone month buckets are computed in
    reporting_timezone: str = "Asia/Jakarta"

    # Bounded staleness of the franchise and override caches
    cache_ttl_seconds: float = 5.0

    # How long a resolved scope is reused before re-resolution
    scope_ttl_seconds: float = 30.0

    # Flat delay between notifier reconnect attempts
    notifier_retry_seconds: float = 3.0

    recalc_max_workers: int = 4

    # Read-path retry; delay is backoff * attempt number
    read_retry_attempts: int = 3
    read_retry_backoff_seconds: float = 0.2

    pool_size: int = 20
    max_overflow: int = 10
    log_level: str = "INFO"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
