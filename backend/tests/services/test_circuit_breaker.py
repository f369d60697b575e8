# tests/services/test_circuit_breaker.py
"""
Tests for the circuit breaker implementation.
"""

import pytest

from portfolio_core.services.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerOpen,
    CircuitState,
)
from portfolio_core.services.exceptions import ProviderNoDataError


class ManualClock:
    """Monotonic clock advanced by hand."""

    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def fail(breaker: CircuitBreaker, exc: Exception | None = None) -> None:
    with pytest.raises(type(exc) if exc else RuntimeError):
        with breaker:
            raise exc or RuntimeError("boom")


def succeed(breaker: CircuitBreaker) -> None:
    with breaker:
        pass


@pytest.fixture
def manual_clock():
    return ManualClock()


@pytest.fixture
def breaker(manual_clock):
    return CircuitBreaker(
        name="tiingo",
        failure_threshold=3,
        recovery_timeout=30.0,
        excluded_exceptions=(ProviderNoDataError,),
        clock=manual_clock,
    )


class TestCircuitBreakerInit:
    """Tests for circuit breaker initialization."""

    def test_default_values(self):
        """Should initialize with default values."""
        breaker = CircuitBreaker(name="test")

        assert breaker.name == "test"
        assert breaker.failure_threshold == 5
        assert breaker.recovery_timeout == 60.0
        assert breaker.state == CircuitState.CLOSED
        assert breaker.failure_count == 0

    def test_invalid_failure_threshold(self):
        """Should reject invalid failure threshold."""
        with pytest.raises(ValueError, match="failure_threshold must be at least 1"):
            CircuitBreaker(name="test", failure_threshold=0)

    def test_invalid_recovery_timeout(self):
        """Should reject negative recovery timeout."""
        with pytest.raises(ValueError, match="recovery_timeout cannot be negative"):
            CircuitBreaker(name="test", recovery_timeout=-1)


class TestOpening:
    """Tests for the CLOSED -> OPEN transition."""

    def test_opens_after_consecutive_failures(self, breaker):
        for _ in range(3):
            fail(breaker)

        assert breaker.state == CircuitState.OPEN

    def test_stays_closed_below_threshold(self, breaker):
        fail(breaker)
        fail(breaker)

        assert breaker.state == CircuitState.CLOSED
        assert breaker.failure_count == 2

    def test_success_resets_failure_count(self, breaker):
        fail(breaker)
        fail(breaker)
        succeed(breaker)
        fail(breaker)

        assert breaker.state == CircuitState.CLOSED
        assert breaker.failure_count == 1

    def test_excluded_exceptions_do_not_count(self, breaker):
        for _ in range(5):
            fail(breaker, ProviderNoDataError("tiingo", "unknown symbol"))

        assert breaker.state == CircuitState.CLOSED
        assert breaker.failure_count == 0

    def test_open_circuit_rejects_without_calling(self, breaker):
        for _ in range(3):
            fail(breaker)

        called = []
        with pytest.raises(CircuitBreakerOpen) as exc_info:
            with breaker:
                called.append(True)

        assert called == []
        assert exc_info.value.breaker_name == "tiingo"
        assert exc_info.value.time_remaining == pytest.approx(30.0)

    def test_exceptions_propagate_unchanged(self, breaker):
        with pytest.raises(KeyError):
            with breaker:
                raise KeyError("x")


class TestRecovery:
    """Tests for the OPEN -> HALF_OPEN -> CLOSED/OPEN cycle."""

    def _open(self, breaker):
        for _ in range(3):
            fail(breaker)

    def test_half_open_after_timeout(self, breaker, manual_clock):
        self._open(breaker)

        manual_clock.now += 30.0

        assert breaker.state == CircuitState.HALF_OPEN

    def test_remaining_time_shrinks(self, breaker, manual_clock):
        self._open(breaker)
        manual_clock.now += 10.0

        with pytest.raises(CircuitBreakerOpen) as exc_info:
            succeed(breaker)

        assert exc_info.value.time_remaining == pytest.approx(20.0)

    def test_successful_probe_closes(self, breaker, manual_clock):
        self._open(breaker)
        manual_clock.now += 31.0

        succeed(breaker)

        assert breaker.state == CircuitState.CLOSED
        assert breaker.failure_count == 0

    def test_failed_probe_reopens(self, breaker, manual_clock):
        self._open(breaker)
        manual_clock.now += 31.0

        fail(breaker)

        assert breaker.state == CircuitState.OPEN

    def test_only_one_probe_at_a_time(self, breaker, manual_clock):
        self._open(breaker)
        manual_clock.now += 31.0

        with breaker:
            with pytest.raises(CircuitBreakerOpen):
                with breaker:
                    pass

        assert breaker.state == CircuitState.CLOSED

    def test_excluded_probe_error_frees_probe_slot(self, breaker, manual_clock):
        self._open(breaker)
        manual_clock.now += 31.0

        fail(breaker, ProviderNoDataError("tiingo", "unknown symbol"))
        succeed(breaker)

        assert breaker.state == CircuitState.CLOSED

    def test_reset(self, breaker):
        self._open(breaker)

        breaker.reset()

        assert breaker.state == CircuitState.CLOSED
        assert breaker.failure_count == 0
