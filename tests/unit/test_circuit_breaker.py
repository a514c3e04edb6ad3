"""Unit tests for circuit breaker."""

import threading

from dctelemetry.fetcher.circuit_breaker import CircuitBreaker, MonotonicClock, WallClock
from dctelemetry.models.data_models import CircuitState
from tests.conftest import FakeClock


ENDPOINT = "http://racks.test/odata/racks?$orderby=NAME"


def open_circuit(cb: CircuitBreaker, endpoint: str = ENDPOINT) -> None:
    for _ in range(cb.failure_threshold):
        cb.record_failure(endpoint)


class TestCircuitBreakerBasics:

    def test_initial_state_is_closed(self):
        cb = CircuitBreaker()
        assert cb.state(ENDPOINT) == CircuitState.CLOSED

    def test_unknown_endpoint_is_not_open(self):
        cb = CircuitBreaker()
        assert cb.is_open(ENDPOINT) is False

    def test_uses_monotonic_clock_by_default(self):
        cb = CircuitBreaker()
        assert isinstance(cb.clock, MonotonicClock)
        assert isinstance(cb.wall_clock, WallClock)

    def test_accepts_custom_clock(self):
        fake_clock = FakeClock()
        cb = CircuitBreaker(clock=fake_clock)
        assert cb.clock is fake_clock

    def test_defaults(self):
        cb = CircuitBreaker()
        assert cb.failure_threshold == 3
        assert cb.reset_timeout == 30.0


class TestCircuitBreakerStateTransitions:

    def test_stays_closed_below_threshold(self):
        cb = CircuitBreaker(clock=FakeClock())

        cb.record_failure(ENDPOINT)
        cb.record_failure(ENDPOINT)

        assert cb.state(ENDPOINT) == CircuitState.CLOSED
        assert cb.is_open(ENDPOINT) is False
        assert cb.snapshot()[ENDPOINT].failure_count == 2

    def test_opens_after_threshold_failures(self):
        fake_clock = FakeClock(100.0)
        cb = CircuitBreaker(failure_threshold=3, reset_timeout=30.0, clock=fake_clock)

        open_circuit(cb)

        snapshot = cb.snapshot()[ENDPOINT]
        assert snapshot.status == CircuitState.OPEN
        assert snapshot.failure_count == 3
        assert snapshot.last_failure_time == 100.0
        assert snapshot.next_retry_time == 130.0
        assert cb.is_open(ENDPOINT) is True

    def test_open_circuit_rejects_until_reset_timeout(self):
        fake_clock = FakeClock()
        cb = CircuitBreaker(reset_timeout=30.0, clock=fake_clock)
        open_circuit(cb)

        fake_clock.advance(29.9)

        assert cb.is_open(ENDPOINT) is True
        assert cb.state(ENDPOINT) == CircuitState.OPEN

    def test_transitions_to_half_open_after_reset_timeout(self):
        fake_clock = FakeClock()
        cb = CircuitBreaker(reset_timeout=30.0, clock=fake_clock)
        open_circuit(cb)

        fake_clock.advance(30.0)

        assert cb.is_open(ENDPOINT) is False
        assert cb.state(ENDPOINT) == CircuitState.HALF_OPEN

    def test_half_open_allows_every_caller(self):
        fake_clock = FakeClock()
        cb = CircuitBreaker(clock=fake_clock)
        open_circuit(cb)
        fake_clock.advance(31.0)

        assert cb.is_open(ENDPOINT) is False
        assert cb.is_open(ENDPOINT) is False

    def test_half_open_success_closes_circuit(self):
        fake_clock = FakeClock()
        cb = CircuitBreaker(clock=fake_clock)
        open_circuit(cb)
        fake_clock.advance(30.0)
        cb.is_open(ENDPOINT)

        cb.record_success(ENDPOINT)

        snapshot = cb.snapshot()[ENDPOINT]
        assert snapshot.status == CircuitState.CLOSED
        assert snapshot.failure_count == 0
        assert snapshot.next_retry_time is None

    def test_half_open_failure_reopens_with_fresh_retry_time(self):
        fake_clock = FakeClock()
        cb = CircuitBreaker(reset_timeout=30.0, clock=fake_clock)
        open_circuit(cb)
        fake_clock.advance(30.0)
        cb.is_open(ENDPOINT)

        cb.record_failure(ENDPOINT)

        snapshot = cb.snapshot()[ENDPOINT]
        assert snapshot.status == CircuitState.OPEN
        assert snapshot.next_retry_time == 60.0
        assert cb.is_open(ENDPOINT) is True

    def test_success_resets_failure_count(self):
        cb = CircuitBreaker(clock=FakeClock())

        cb.record_failure(ENDPOINT)
        cb.record_failure(ENDPOINT)
        cb.record_success(ENDPOINT)
        cb.record_failure(ENDPOINT)
        cb.record_failure(ENDPOINT)

        assert cb.state(ENDPOINT) == CircuitState.CLOSED

    def test_state_does_not_trigger_transition(self):
        fake_clock = FakeClock()
        cb = CircuitBreaker(clock=fake_clock)
        open_circuit(cb)
        fake_clock.advance(60.0)

        assert cb.state(ENDPOINT) == CircuitState.OPEN


class TestCircuitBreakerIsolation:

    def test_endpoints_are_independent(self):
        cb = CircuitBreaker(clock=FakeClock())
        other = "http://sensors.test/sensors"

        open_circuit(cb)

        assert cb.is_open(ENDPOINT) is True
        assert cb.is_open(other) is False

    def test_query_string_is_part_of_identity(self):
        cb = CircuitBreaker(clock=FakeClock())

        open_circuit(cb, "http://racks.test/odata/racks?$top=50")

        assert cb.is_open("http://racks.test/odata/racks?$top=10") is False

    def test_snapshot_is_a_copy(self):
        cb = CircuitBreaker(clock=FakeClock())
        cb.record_failure(ENDPOINT)

        snapshot = cb.snapshot()
        snapshot[ENDPOINT].failure_count = 99

        assert cb.snapshot()[ENDPOINT].failure_count == 1

    def test_get_states_matches_snapshot(self):
        cb = CircuitBreaker(clock=FakeClock())
        cb.record_failure(ENDPOINT)

        assert cb.get_states() == cb.snapshot()

    def test_snapshot_to_dict(self):
        cb = CircuitBreaker(clock=FakeClock(5.0))
        open_circuit(cb)

        data = cb.snapshot()[ENDPOINT].to_dict()

        assert data == {
            "status": "open",
            "failure_count": 3,
            "last_failure_time": 5.0,
            "next_retry_time": 35.0,
        }

    def test_reset(self):
        cb = CircuitBreaker(clock=FakeClock())
        open_circuit(cb)

        cb.reset(ENDPOINT)

        assert cb.state(ENDPOINT) == CircuitState.CLOSED
        assert cb.snapshot()[ENDPOINT].failure_count == 0


class TestCircuitBreakerThreadSafety:

    def test_concurrent_failures_are_all_counted(self):
        cb = CircuitBreaker(failure_threshold=10_000, clock=FakeClock())

        def fail_many():
            for _ in range(500):
                cb.record_failure(ENDPOINT)

        threads = [threading.Thread(target=fail_many) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert cb.snapshot()[ENDPOINT].failure_count == 4000


class TestCircuitBreakerClocks:

    def test_cooldown_ignores_wall_clock_jumps(self):
        monotonic = FakeClock(100.0)
        wall = FakeClock(1_700_000_000.0)
        cb = CircuitBreaker(clock=monotonic, wall_clock=wall)
        open_circuit(cb)

        wall.advance(-3600.0)
        monotonic.advance(30.0)

        assert cb.is_open(ENDPOINT) is False
        assert cb.state(ENDPOINT) == CircuitState.HALF_OPEN

    def test_snapshot_reports_wall_clock_times(self):
        monotonic = FakeClock(100.0)
        wall = FakeClock(1_700_000_000.0)
        cb = CircuitBreaker(clock=monotonic, wall_clock=wall)
        open_circuit(cb)
        monotonic.advance(5.0)
        wall.advance(5.0)

        snapshot = cb.snapshot()[ENDPOINT]

        assert snapshot.last_failure_time == 1_700_000_000.0
        assert snapshot.next_retry_time == 1_700_000_030.0
