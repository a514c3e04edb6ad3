"""Resilient remote fetching: circuit breaker, retries and pagination."""

from .async_fetcher import AsyncFetcher
from .circuit_breaker import CircuitBreaker
from .errors import AcquisitionError, CircuitOpenError, FetchPolicyError, InvalidResponseError
from .paginator import PaginatedFetcher
from .retry_handler import RetryHandler

__all__ = [
    "AcquisitionError",
    "AsyncFetcher",
    "CircuitBreaker",
    "CircuitOpenError",
    "FetchPolicyError",
    "InvalidResponseError",
    "PaginatedFetcher",
    "RetryHandler",
]
