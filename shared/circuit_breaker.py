"""
Circuit breakers guarding calls to upstream services.

A breaker opens after ``failure_threshold`` consecutive failures and rejects
calls until ``recovery_timeout`` seconds have passed. It then lets exactly one
probe call through; concurrent callers keep failing fast until the probe
settles.
"""

import time
from enum import Enum
from typing import Any, Awaitable, Callable, Dict

from shared.logging import get_logger


class CircuitBreakerState(Enum):
    """Circuit breaker states."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreakerOpenException(Exception):
    """Raised instead of calling an upstream whose breaker is open."""

    def __init__(self, name: str, retry_after: float):
        super().__init__(f"Circuit breaker '{name}' is OPEN - blocking call")
        self.name = name
        self.retry_after = retry_after


class CircuitBreaker:
    """Consecutive-failure circuit breaker for async callables."""

    def __init__(self,
                 failure_threshold: int = 5,
                 recovery_timeout: float = 60.0,
                 name: str = "default",
                 clock: Callable[[], float] = time.monotonic):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.name = name
        self.logger = get_logger(f"circuit_breaker.{name}")
        self._clock = clock

        self._state = CircuitBreakerState.CLOSED
        self._consecutive_failures = 0
        self._opened_at = 0.0
        self._probe_in_flight = False

    @property
    def state(self) -> CircuitBreakerState:
        return self._state

    def retry_after(self) -> float:
        """Seconds until an open breaker admits a probe; 0 when not open."""
        if self._state != CircuitBreakerState.OPEN:
            return 0.0
        return max(0.0, self.recovery_timeout - (self._clock() - self._opened_at))

    def _admit(self) -> bool:
        if self._state == CircuitBreakerState.CLOSED:
            return True
        if self._state == CircuitBreakerState.OPEN and self.retry_after() == 0.0:
            self._state = CircuitBreakerState.HALF_OPEN
            self.logger.info("Circuit breaker half-open, sending probe")
        if self._state == CircuitBreakerState.HALF_OPEN and not self._probe_in_flight:
            self._probe_in_flight = True
            return True
        return False

    async def call(self, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        """Run ``func`` unless the breaker is open. Any exception counts as a failure."""
        if not self._admit():
            raise CircuitBreakerOpenException(self.name, self.retry_after())

        probing = self._state == CircuitBreakerState.HALF_OPEN
        try:
            result = await func(*args, **kwargs)
        except Exception:
            self._on_failure(probing)
            raise
        finally:
            if probing:
                self._probe_in_flight = False

        self._on_success(probing)
        return result

    def _on_success(self, probing: bool) -> None:
        if probing:
            self.logger.info("Circuit breaker closed after successful probe")
        self._state = CircuitBreakerState.CLOSED
        self._consecutive_failures = 0

    def _on_failure(self, probing: bool) -> None:
        self._consecutive_failures += 1
        if probing or self._consecutive_failures >= self.failure_threshold:
            self._state = CircuitBreakerState.OPEN
            self._opened_at = self._clock()
            self.logger.warning(
                "Circuit breaker opened",
                failure_count=self._consecutive_failures,
                threshold=self.failure_threshold,
                probe_failed=probing
            )

    def get_state(self) -> Dict[str, Any]:
        """Snapshot for health reporting."""
        return {
            "name": self.name,
            "state": self._state.value,
            "failure_count": self._consecutive_failures,
            "failure_threshold": self.failure_threshold,
            "recovery_timeout": self.recovery_timeout,
            "retry_after": round(self.retry_after(), 3),
        }

    def is_open(self) -> bool:
        return self._state == CircuitBreakerState.OPEN


class CircuitBreakerManager:
    """Process-wide registry of named breakers."""

    def __init__(self):
        self.circuit_breakers: Dict[str, CircuitBreaker] = {}
        self.logger = get_logger("circuit_breaker_manager")

    def get_circuit_breaker(self,
                            name: str,
                            failure_threshold: int = 5,
                            recovery_timeout: float = 60.0) -> CircuitBreaker:
        """
        Return the breaker registered as ``name``, creating it on first use.

        Settings only apply on creation; later callers asking for different
        ones get the existing breaker and a warning.
        """
        breaker = self.circuit_breakers.get(name)
        if breaker is None:
            breaker = CircuitBreaker(
                failure_threshold=failure_threshold,
                recovery_timeout=recovery_timeout,
                name=name
            )
            self.circuit_breakers[name] = breaker
            self.logger.info(
                "Created circuit breaker",
                name=name,
                failure_threshold=failure_threshold,
                recovery_timeout=recovery_timeout
            )
        elif (breaker.failure_threshold, breaker.recovery_timeout) != (failure_threshold, recovery_timeout):
            self.logger.warning(
                "Circuit breaker already registered with different settings; keeping existing",
                name=name,
                failure_threshold=breaker.failure_threshold,
                recovery_timeout=breaker.recovery_timeout,
                requested_failure_threshold=failure_threshold,
                requested_recovery_timeout=recovery_timeout
            )
        return breaker

    def get_all_states(self) -> Dict[str, Dict[str, Any]]:
        return {name: breaker.get_state() for name, breaker in self.circuit_breakers.items()}


circuit_breaker_manager = CircuitBreakerManager()


def get_circuit_breaker(name: str, **kwargs) -> CircuitBreaker:
    """Get a circuit breaker from the global manager."""
    return circuit_breaker_manager.get_circuit_breaker(name, **kwargs)
