"""Pytest configuration and shared fixtures."""

import random
from typing import List

import pytest


class FakeClock:
    """Fake clock for testing."""

    def __init__(self, initial_time: float = 0.0):
        self._current_time = initial_time

    def now(self) -> float:
        return self._current_time

    def advance(self, seconds: float) -> None:
        self._current_time += seconds


class RecordingSleeper:
    """Async sleep replacement that records requested delays without waiting."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture(scope="session")
def deterministic_seed():
    """Set a fixed random seed for deterministic test results."""
    random.seed(42)
    return 42


@pytest.fixture
def fake_clock():
    return FakeClock(initial_time=1000.0)


@pytest.fixture
def sleeper():
    return RecordingSleeper()


@pytest.fixture
def sample_config():
    """Provide a sample configuration for testing."""
    from dctelemetry.models.config import AcquisitionConfig, EndpointConfig

    return AcquisitionConfig(
        retries=2,
        retry_delay=0.1,
        page_size=50,
        fetch_timeout=2.0,
        probe_timeout=1.0,
        endpoints=[
            EndpointConfig(name="racks", url="http://racks.test/odata/racks?$orderby=NAME"),
            EndpointConfig(name="sensors", url="http://sensors.test/sensors"),
        ],
    )
