# backend/portfolio_core/services/circuit_breaker.py
"""
Per-provider circuit breaker.

Every upstream provider owns one breaker. After `failure_threshold`
consecutive failures the provider is skipped (CircuitBreakerOpen) until
`recovery_timeout` has elapsed, at which point a single probe call is let
through. A successful probe closes the circuit, a failed one re-opens it.

States:
    CLOSED    - calls pass through
    OPEN      - calls rejected immediately
    HALF_OPEN - one probe call allowed

Errors that say nothing about the provider's health (e.g. "no data for this
symbol") can be listed in `excluded_exceptions` and do not count as failures.

Usage:
    breaker = CircuitBreaker(name="tiingo", failure_threshold=5, recovery_timeout=60)

    with breaker:
        payload = client.get(url)
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

logger = logging.getLogger(__name__)


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreakerOpen(Exception):
    """
    Raised instead of calling a provider whose circuit is open.

    Attributes:
        breaker_name: Name of the circuit breaker (the provider name)
        time_remaining: Seconds until a probe call is allowed
    """

    def __init__(self, breaker_name: str, time_remaining: float) -> None:
        self.breaker_name = breaker_name
        self.time_remaining = time_remaining
        super().__init__(
            f"Circuit breaker '{breaker_name}' is open. "
            f"Retry in {time_remaining:.1f} seconds."
        )


@dataclass
class CircuitBreaker:
    """
    Thread-safe consecutive-failure circuit breaker.

    Attributes:
        name: Provider name, used in logs and errors
        failure_threshold: Consecutive failures before opening
        recovery_timeout: Seconds the circuit stays open before a probe
        excluded_exceptions: Exception types that are neither success nor failure
        clock: Monotonic time source, replaceable in tests
    """

    name: str
    failure_threshold: int = 5
    recovery_timeout: float = 60.0
    excluded_exceptions: tuple[type[Exception], ...] = field(default_factory=tuple)
    clock: Callable[[], float] = time.monotonic

    _state: CircuitState = field(default=CircuitState.CLOSED, init=False)
    _failure_count: int = field(default=0, init=False)
    _opened_at: float = field(default=0.0, init=False)
    _probe_in_flight: bool = field(default=False, init=False)
    _lock: threading.RLock = field(default_factory=threading.RLock, init=False)

    def __post_init__(self) -> None:
        if self.failure_threshold < 1:
            raise ValueError("failure_threshold must be at least 1")
        if self.recovery_timeout < 0:
            raise ValueError("recovery_timeout cannot be negative")

    @property
    def state(self) -> CircuitState:
        with self._lock:
            self._refresh_state()
            return self._state

    @property
    def failure_count(self) -> int:
        with self._lock:
            return self._failure_count

    def _refresh_state(self) -> None:
        # Caller holds the lock
        if self._state == CircuitState.OPEN and self._remaining() <= 0:
            self._transition_to(CircuitState.HALF_OPEN)

    def _remaining(self) -> float:
        return max(0.0, self.recovery_timeout - (self.clock() - self._opened_at))

    def _transition_to(self, new_state: CircuitState) -> None:
        old_state = self._state
        self._state = new_state
        if new_state == CircuitState.OPEN:
            self._opened_at = self.clock()
        elif new_state == CircuitState.CLOSED:
            self._failure_count = 0
        self._probe_in_flight = False

        log = logger.warning if new_state == CircuitState.OPEN else logger.info
        log(f"CircuitBreaker '{self.name}' state change: {old_state.value} -> {new_state.value}")

    def __enter__(self) -> "CircuitBreaker":
        with self._lock:
            self._refresh_state()

            if self._state == CircuitState.OPEN:
                raise CircuitBreakerOpen(self.name, self._remaining())

            if self._state == CircuitState.HALF_OPEN:
                if self._probe_in_flight:
                    raise CircuitBreakerOpen(self.name, 0.0)
                self._probe_in_flight = True

        return self

    def __exit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: Any) -> bool:
        with self._lock:
            if exc_val is not None and self.excluded_exceptions and isinstance(exc_val, self.excluded_exceptions):
                self._probe_in_flight = False
                return False

            if exc_val is None:
                if self._state == CircuitState.HALF_OPEN:
                    self._transition_to(CircuitState.CLOSED)
                else:
                    self._failure_count = 0
                return False

            self._failure_count += 1
            if self._state == CircuitState.HALF_OPEN:
                self._transition_to(CircuitState.OPEN)
            elif self._failure_count >= self.failure_threshold:
                self._transition_to(CircuitState.OPEN)

        return False

    def reset(self) -> None:
        """Close the circuit and clear the failure count."""
        with self._lock:
            self._transition_to(CircuitState.CLOSED)
