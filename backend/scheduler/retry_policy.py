"""
Retry Policy
Attempt counting, per-attempt deadline and backoff for vendor fetches.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

Backoff = Callable[[int], float]


def exponential_backoff(base: float = 1.0, factor: float = 2.0, max_delay: float = 30.0) -> Backoff:
    """Delay before retry N (1-based): base * factor**(N-1), capped at max_delay."""
    def delay(retry_number: int) -> float:
        return min(base * factor ** (retry_number - 1), max_delay)
    return delay


def fixed_backoff(seconds: float) -> Backoff:
    return lambda retry_number: seconds


def no_backoff(retry_number: int) -> float:
    return 0.0


@dataclass
class AttemptOutcome:
    """Result of running an operation through a RetryPolicy."""
    value: Any = None
    attempts: int = 0
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class RetryPolicy:
    """How many times to try an operation and how long each try may take.

    Every attempt runs under its own deadline; hitting it cancels that attempt
    only and counts as a failure.
    """
    max_attempts: int = 1
    attempt_timeout: Optional[float] = None
    backoff: Backoff = no_backoff

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    @classmethod
    def from_config(cls, config, backoff: Backoff = no_backoff) -> "RetryPolicy":
        """Build a policy from a ScheduleConfig."""
        return cls(
            max_attempts=config.retry_attempts + 1,
            attempt_timeout=config.timeout,
            backoff=backoff,
        )

    async def run(self, operation: Callable[[], Awaitable[Any]]) -> AttemptOutcome:
        """Run `operation` until it succeeds or attempts are exhausted.

        Errors are returned in the outcome rather than raised. Cancellation of
        the caller still propagates.
        """
        outcome = AttemptOutcome()

        for attempt in range(1, self.max_attempts + 1):
            outcome.attempts = attempt
            try:
                if self.attempt_timeout is None:
                    outcome.value = await operation()
                else:
                    outcome.value = await asyncio.wait_for(operation(), timeout=self.attempt_timeout)
                outcome.error = None
                return outcome
            except asyncio.TimeoutError:
                outcome.error = f"Timed out after {self.attempt_timeout:g}s"
            except Exception as e:
                outcome.error = str(e) or type(e).__name__

            if attempt < self.max_attempts:
                delay = self.backoff(attempt)
                if delay > 0:
                    await asyncio.sleep(delay)

        return outcome
