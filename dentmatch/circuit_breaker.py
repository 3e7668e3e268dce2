"""Circuit breaker for the slot store and booking API.

Fails fast while the booking backend is down instead of stacking up
retries behind every patient search.

States:
- CLOSED: Normal operation, requests pass through
- OPEN: Backend failing, requests fail immediately
- HALF_OPEN: Cool-down elapsed, one trial request allowed
"""
import logging
import threading
import time
from enum import Enum
from typing import Any, Callable, Optional

from dentmatch.errors import DentMatchError

logger = logging.getLogger(__name__)


class CircuitState(Enum):
    """Circuit breaker states."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreakerOpen(DentMatchError):
    """Raised when the circuit is open (fail fast)."""

    def __init__(self, name: str, retry_after: float):
        super().__init__(
            f"Circuit '{name}' is OPEN. Retry after {retry_after:.1f}s"
        )
        self.name = name
        self.retry_after = retry_after


class CircuitBreaker:
    """Circuit breaker guarding calls to one external backend."""

    def __init__(
        self,
        name: str = "booking-api",
        failure_threshold: int = 5,
        timeout: float = 60,
        clock: Optional[Callable[[], float]] = None,
    ):
        """
        Initialize circuit breaker.

        Args:
            name: Backend name, used in logs and errors
            failure_threshold: Consecutive failures before opening
            timeout: Seconds to stay open before a half-open trial
            clock: Monotonic time source (tests pass a fake)
        """
        self.name = name
        self.failure_threshold = failure_threshold
        self.timeout = timeout
        self.failure_count = 0
        self.opened_at: Optional[float] = None
        self._clock = clock or time.monotonic
        self._state = CircuitState.CLOSED
        self._lock = threading.Lock()

    @property
    def state(self) -> str:
        """Get current state as string."""
        return self._state.value

    def call(self, func: Callable, *args, **kwargs) -> Any:
        """
        Execute function with circuit breaker protection.

        Raises:
            CircuitBreakerOpen: If circuit is open
            Exception: Whatever func raises (counted as a failure)
        """
        with self._lock:
            if self._state == CircuitState.OPEN:
                remaining = self._time_until_retry()
                if remaining > 0:
                    raise CircuitBreakerOpen(self.name, remaining)
                self._state = CircuitState.HALF_OPEN
                logger.info("Circuit %s transitioning to HALF_OPEN", self.name)

        try:
            result = func(*args, **kwargs)
        except Exception:
            self._on_failure()
            raise
        self._on_success()
        return result

    def reset(self):
        """Force the circuit closed."""
        with self._lock:
            self._state = CircuitState.CLOSED
            self.failure_count = 0
            self.opened_at = None

    def _time_until_retry(self) -> float:
        if self.opened_at is None:
            return 0
        return max(0.0, self.timeout - (self._clock() - self.opened_at))

    def _on_success(self):
        with self._lock:
            self.failure_count = 0
            if self._state == CircuitState.HALF_OPEN:
                self._state = CircuitState.CLOSED
                self.opened_at = None
                logger.info("Circuit %s closed after successful trial call", self.name)

    def _on_failure(self):
        with self._lock:
            self.failure_count += 1
            if self._state == CircuitState.HALF_OPEN:
                self._state = CircuitState.OPEN
                self.opened_at = self._clock()
                logger.warning("Circuit %s re-opened after failed trial call", self.name)
            elif self.failure_count >= self.failure_threshold:
                self._state = CircuitState.OPEN
                self.opened_at = self._clock()
                logger.error(
                    "Circuit %s opened after %d failures (timeout %ss)",
                    self.name, self.failure_count, self.timeout,
                )
