"""
Retry Policy - exponential backoff for link reconnection.

Used by the host receiver to reopen a transport after a session-ending
disconnect. Capture-side faults are never retried through this policy;
the device simply waits for the next frame.
"""

from __future__ import annotations

import asyncio
import random
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, List, Optional

from sensor_link.core.logging_utils import get_module_logger

logger = get_module_logger("RetryPolicy")


class RetryOutcome(Enum):
    """Outcome of a retry operation."""
    SUCCESS = "success"
    EXHAUSTED = "exhausted"  # All retries failed
    ABORTED = "aborted"      # Retry was cancelled


@dataclass
class RetryAttempt:
    """Record of a single retry attempt."""
    attempt_number: int
    duration_ms: float
    success: bool
    error: Optional[str] = None


@dataclass
class RetryResult:
    """Result of a retry operation."""
    outcome: RetryOutcome
    attempts: List[RetryAttempt] = field(default_factory=list)
    total_duration_ms: float = 0.0
    final_error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.outcome is RetryOutcome.SUCCESS

    @property
    def attempt_count(self) -> int:
        return len(self.attempts)


class RetryPolicy:
    """
    Configurable retry policy with exponential backoff.

    Usage:
        policy = RetryPolicy(max_attempts=5, base_delay=0.5)
        result = await policy.execute(transport.connect)
        if not result.success:
            logger.error("Link lost: %s", result.final_error)
    """

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 30.0,
        backoff_factor: float = 2.0,
        jitter: float = 0.1,
    ):
        """
        Args:
            max_attempts: Maximum number of attempts (including first try)
            base_delay: Initial delay between retries (seconds)
            max_delay: Maximum delay between retries (seconds)
            backoff_factor: Multiplier for exponential backoff
            jitter: Random jitter factor (0.1 = +/-10%)
        """
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.backoff_factor = backoff_factor
        self.jitter = jitter
        self._aborted = False

    def abort(self) -> None:
        """Signal that retry should be aborted."""
        self._aborted = True

    def get_delay(self, attempt: int) -> float:
        """Delay before the given 1-based attempt, jitter applied."""
        if attempt <= 1:
            return 0.0

        delay = self.base_delay * (self.backoff_factor ** (attempt - 2))
        delay = min(delay, self.max_delay)

        if self.jitter > 0:
            jitter_range = delay * self.jitter
            delay += random.uniform(-jitter_range, jitter_range)

        return max(0.0, delay)

    async def execute(
        self,
        operation: Callable[[], Awaitable[bool]],
        on_retry: Optional[Callable[[int, Optional[str]], None]] = None,
    ) -> RetryResult:
        """Run ``operation`` until it returns True or attempts run out."""
        self._aborted = False
        attempts: List[RetryAttempt] = []
        start_time = time.monotonic()
        last_error: Optional[str] = None

        for attempt in range(1, self.max_attempts + 1):
            if self._aborted:
                return RetryResult(
                    outcome=RetryOutcome.ABORTED,
                    attempts=attempts,
                    total_duration_ms=(time.monotonic() - start_time) * 1000,
                    final_error="Retry aborted",
                )

            if attempt > 1:
                delay = self.get_delay(attempt)
                if on_retry:
                    on_retry(attempt, last_error)
                logger.debug("Retry attempt %d/%d after %.2fs delay", attempt, self.max_attempts, delay)
                await asyncio.sleep(delay)

            attempt_start = time.monotonic()
            try:
                success = await operation()
                error = None if success else "operation returned False"
            except asyncio.CancelledError:
                raise
            except Exception as e:
                success = False
                error = str(e)

            attempts.append(RetryAttempt(
                attempt_number=attempt,
                duration_ms=(time.monotonic() - attempt_start) * 1000,
                success=success,
                error=error,
            ))
            if success:
                return RetryResult(
                    outcome=RetryOutcome.SUCCESS,
                    attempts=attempts,
                    total_duration_ms=(time.monotonic() - start_time) * 1000,
                )
            last_error = error
            logger.warning("Attempt %d/%d failed: %s", attempt, self.max_attempts, error)

        return RetryResult(
            outcome=RetryOutcome.EXHAUSTED,
            attempts=attempts,
            total_duration_ms=(time.monotonic() - start_time) * 1000,
            final_error=last_error,
        )


__all__ = ["RetryOutcome", "RetryAttempt", "RetryResult", "RetryPolicy"]
