"""Circuit Breakers — one per STT provider registration.

Protects the fallback chain against a vendor that keeps failing:
the breaker stops attempts for a cooldown window, then lets a trial through.

States: CLOSED (normal) → OPEN (blocking) → HALF_OPEN (trial allowed)

HALF_OPEN is never stored. It is observed when the raw state is OPEN and
reset_timeout_ms has elapsed since the last failure, so there is no timer
and every read is a pure function of the stored fields.
"""
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable

logger = logging.getLogger(__name__)

DEFAULT_FAILURE_THRESHOLD = 3
DEFAULT_RESET_TIMEOUT_MS = 30_000


class BreakerState(str, Enum):
    CLOSED = "closed"         # Normal operation
    OPEN = "open"             # Blocking all attempts
    HALF_OPEN = "half-open"   # Cooldown elapsed, trial permitted


@dataclass(frozen=True)
class CircuitBreakerOptions:
    failure_threshold: int = DEFAULT_FAILURE_THRESHOLD
    reset_timeout_ms: int = DEFAULT_RESET_TIMEOUT_MS


class CircuitBreaker:
    """In-memory circuit breaker for a single provider."""

    def __init__(
        self,
        name: str,
        failure_threshold: int = DEFAULT_FAILURE_THRESHOLD,
        reset_timeout_ms: int = DEFAULT_RESET_TIMEOUT_MS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self.failure_threshold = failure_threshold
        self.reset_timeout_ms = reset_timeout_ms
        self._clock = clock

        self._state = BreakerState.CLOSED
        self.failures = 0
        self.last_failure_at = 0.0

    @classmethod
    def from_options(
        cls,
        name: str,
        options: CircuitBreakerOptions | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> "CircuitBreaker":
        opts = options or CircuitBreakerOptions()
        return cls(
            name,
            failure_threshold=opts.failure_threshold,
            reset_timeout_ms=opts.reset_timeout_ms,
            clock=clock,
        )

    @property
    def current_state(self) -> BreakerState:
        """Observed state, re-evaluated on every read."""
        if self._state == BreakerState.OPEN:
            elapsed_ms = (self._clock() - self.last_failure_at) * 1000
            if elapsed_ms >= self.reset_timeout_ms:
                return BreakerState.HALF_OPEN
        return self._state

    def can_attempt(self) -> bool:
        return self.current_state in (BreakerState.CLOSED, BreakerState.HALF_OPEN)

    def record_success(self) -> None:
        """Record a successful call. Always closes the breaker."""
        if self._state == BreakerState.OPEN:
            logger.info("[CircuitBreaker] %s: CLOSED (recovered)", self.name)
        self.failures = 0
        self._state = BreakerState.CLOSED

    def record_failure(self) -> None:
        """Record a failed call.

        A failure while already open (including a failed half-open trial)
        refreshes last_failure_at, so the cooldown restarts in full.
        """
        self.failures += 1
        self.last_failure_at = self._clock()

        if self.failures >= self.failure_threshold:
            if self._state != BreakerState.OPEN:
                logger.warning(
                    "[CircuitBreaker] %s: OPEN (threshold=%d reached)",
                    self.name, self.failure_threshold,
                )
            self._state = BreakerState.OPEN

    def reset(self) -> None:
        """Force CLOSED and zero all counters, whatever the current state."""
        self._state = BreakerState.CLOSED
        self.failures = 0
        self.last_failure_at = 0.0

    def get_status(self) -> dict:
        return {
            "name": self.name,
            "state": self.current_state.value,
            "failures": self.failures,
            "failure_threshold": self.failure_threshold,
            "reset_timeout_ms": self.reset_timeout_ms,
        }
