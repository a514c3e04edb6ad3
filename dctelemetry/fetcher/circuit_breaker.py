"""Circuit breaker with explicit per-endpoint state management."""

import threading
import time
from dataclasses import dataclass
from typing import Dict, Optional, Protocol

from dctelemetry.models.data_models import CircuitSnapshot, CircuitState
from dctelemetry.monitoring.logger import StructuredLogger


class Clock(Protocol):
    """Clock interface for testable time management."""

    def now(self) -> float:
        """Return current time in seconds."""
        ...


class MonotonicClock:
    """Default clock for cooldowns; unaffected by wall clock adjustments."""

    def now(self) -> float:
        return time.monotonic()


class WallClock:
    """Epoch time, used only to timestamp snapshots."""

    def now(self) -> float:
        return time.time()


@dataclass
class CircuitBreakerState:
    """Internal state for a single endpoint's circuit."""
    state: CircuitState = CircuitState.CLOSED
    failure_count: int = 0
    last_failure_time: Optional[float] = None
    next_retry_time: Optional[float] = None


class CircuitBreaker:
    """
    Circuit breaker with CLOSED/OPEN/HALF_OPEN states, keyed by endpoint URL.

    - Opens after 3 failures without an intervening success
    - Stays open for 30 seconds
    - The first status check after the reset timeout moves the circuit to
      half-open and lets requests through as probes
    - A success closes the circuit; a failure while half-open reopens it

    Circuits are created lazily and live for the lifetime of the instance.
    Each endpoint has its own lock so concurrent callers on several threads
    cannot corrupt its counters.
    """

    def __init__(
        self,
        failure_threshold: int = 3,
        reset_timeout: float = 30.0,
        clock: Optional[Clock] = None,
        wall_clock: Optional[Clock] = None,
        logger: Optional[StructuredLogger] = None
    ):
        """
        Initialize circuit breaker.

        Args:
            failure_threshold: Number of failures before opening circuit
            reset_timeout: Seconds to wait before allowing a half-open probe
            clock: Clock timing cooldowns (defaults to MonotonicClock)
            wall_clock: Clock used to timestamp snapshots; defaults to clock
                when one is given, WallClock otherwise
            logger: Structured logger for state transitions
        """
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout
        self.clock = clock or MonotonicClock()
        self.wall_clock = wall_clock or clock or WallClock()
        self.logger = logger or StructuredLogger()
        self._circuits: Dict[str, CircuitBreakerState] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, endpoint: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(endpoint)
            if lock is None:
                lock = self._locks[endpoint] = threading.Lock()
            return lock

    def _get_circuit(self, endpoint: str) -> CircuitBreakerState:
        """Get or create circuit state for endpoint (caller holds its lock)."""
        circuit = self._circuits.get(endpoint)
        if circuit is None:
            circuit = self._circuits[endpoint] = CircuitBreakerState()
        return circuit

    def is_open(self, endpoint: str) -> bool:
        """
        Check whether requests to endpoint must be rejected.

        An open circuit whose reset timeout has elapsed transitions to
        half-open here and the call is allowed through.

        Args:
            endpoint: Endpoint identifier

        Returns:
            True only while the circuit is open and cooling down
        """
        with self._lock_for(endpoint):
            circuit = self._circuits.get(endpoint)
            if circuit is None or circuit.state != CircuitState.OPEN:
                return False

            if self.clock.now() >= circuit.next_retry_time:
                circuit.state = CircuitState.HALF_OPEN
                self.logger.circuit_breaker_state(
                    source=endpoint,
                    state=CircuitState.HALF_OPEN.value,
                    previous_failures=circuit.failure_count,
                )
                return False

            return True

    def record_success(self, endpoint: str) -> None:
        """Record successful request, closing the circuit unconditionally."""
        with self._lock_for(endpoint):
            circuit = self._get_circuit(endpoint)
            was_closed = circuit.state == CircuitState.CLOSED
            circuit.state = CircuitState.CLOSED
            circuit.failure_count = 0
            circuit.last_failure_time = None
            circuit.next_retry_time = None

        if not was_closed:
            self.logger.circuit_breaker_state(source=endpoint, state=CircuitState.CLOSED.value)

    def record_failure(self, endpoint: str) -> None:
        """
        Record failed request for endpoint.

        Opens the circuit once the failure count reaches the threshold. A
        half-open circuit is already at or above the threshold, so any
        failed probe reopens it with a fresh retry time.
        """
        with self._lock_for(endpoint):
            circuit = self._get_circuit(endpoint)
            current_time = self.clock.now()

            circuit.failure_count += 1
            circuit.last_failure_time = current_time

            if circuit.failure_count < self.failure_threshold:
                return

            circuit.state = CircuitState.OPEN
            circuit.next_retry_time = current_time + self.reset_timeout
            failures = circuit.failure_count

        self.logger.circuit_breaker_state(
            source=endpoint,
            state=CircuitState.OPEN.value,
            failures=failures,
            next_retry_in_seconds=self.reset_timeout,
        )

    def state(self, endpoint: str) -> CircuitState:
        """Current state for endpoint without triggering any transition."""
        with self._lock_for(endpoint):
            circuit = self._circuits.get(endpoint)
            return circuit.state if circuit else CircuitState.CLOSED

    def snapshot(self) -> Dict[str, CircuitSnapshot]:
        """
        Read-only copy of every known circuit.

        Failure and retry times are reported on the wall clock.
        """
        with self._registry_lock:
            endpoints = list(self._circuits)

        offset = self.wall_clock.now() - self.clock.now()

        def to_wall(moment: Optional[float]) -> Optional[float]:
            return None if moment is None else moment + offset

        snapshots = {}
        for endpoint in endpoints:
            with self._lock_for(endpoint):
                circuit = self._circuits[endpoint]
                snapshots[endpoint] = CircuitSnapshot(
                    status=circuit.state,
                    failure_count=circuit.failure_count,
                    last_failure_time=to_wall(circuit.last_failure_time),
                    next_retry_time=to_wall(circuit.next_retry_time),
                )
        return snapshots

    get_states = snapshot

    def reset(self, endpoint: str) -> None:
        """Reset circuit breaker for endpoint (useful for testing)."""
        with self._lock_for(endpoint):
            if endpoint in self._circuits:
                self._circuits[endpoint] = CircuitBreakerState()
