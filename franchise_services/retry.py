"""
franchise_services.retry -- bounded retry for read-path aggregation.

Only reads go through here.  Mutating operations are never retried
automatically: a transient failure is surfaced to the caller, who decides.

The delay before attempt ``n + 1`` is ``backoff_seconds * n`` (linear).
Authorization and validation errors are not UnavailableError and propagate
on the first attempt.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import TypeVar

from franchise_kernel.exceptions import UnavailableError
from franchise_kernel.logging_config import get_logger

logger = get_logger("services.retry")

T = TypeVar("T")


class ReadRetryPolicy:
    def __init__(
        self,
        attempts: int = 3,
        backoff_seconds: float = 0.2,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if attempts < 1:
            raise ValueError("attempts must be >= 1")
        self.attempts = attempts
        self.backoff_seconds = backoff_seconds
        self._sleep = sleep

    def run(self, operation: str, fn: Callable[[], T]) -> T:
        """Call ``fn`` until it succeeds or attempts run out."""
        for attempt in range(1, self.attempts + 1):
            try:
                return fn()
            except UnavailableError as exc:
                if attempt == self.attempts:
                    logger.error(
                        "read_retry_exhausted",
                        extra={
                            "operation": operation,
                            "attempts": attempt,
                            "error_code": exc.code,
                        },
                    )
                    raise
                delay = self.backoff_seconds * attempt
                logger.warning(
                    "read_retry",
                    extra={
                        "operation": operation,
                        "attempt": attempt,
                        "max_attempts": self.attempts,
                        "delay_seconds": delay,
                        "error_code": exc.code,
                    },
                )
                self._sleep(delay)
        raise AssertionError("unreachable")
