"""Exception hierarchy for the acquisition layer."""

from typing import Any, Optional


class AcquisitionError(Exception):
    """Base class for acquisition-layer faults."""


class FetchPolicyError(AcquisitionError):
    """Request rejected before any network attempt (missing or malformed URL).

    Never retried and never counted against the circuit breaker.
    """


class CircuitOpenError(AcquisitionError):
    """Synthetic fault raised while an endpoint's circuit is open."""

    def __init__(self, source: str, endpoint: str):
        super().__init__(
            f"Service unavailable: {source} API is currently unavailable (circuit open)"
        )
        self.source = source
        self.endpoint = endpoint


class InvalidResponseError(AcquisitionError):
    """A response arrived but no record array could be extracted from it."""

    def __init__(self, message: str, body: Optional[Any] = None):
        super().__init__(message)
        self.body = body
