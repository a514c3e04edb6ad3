"""Retry handler with exponential backoff, jitter and circuit breaker gating."""

import asyncio
import random
from typing import Any, Awaitable, Callable, Optional

import httpx

from dctelemetry.fetcher.circuit_breaker import CircuitBreaker
from dctelemetry.fetcher.errors import CircuitOpenError, InvalidResponseError
from dctelemetry.models.data_models import FetchPolicy
from dctelemetry.monitoring.logger import StructuredLogger


# Faults that consume an attempt and count against the breaker
RETRYABLE_ERRORS = (httpx.HTTPError, InvalidResponseError)


def calculate_backoff_delay(
    attempt: int,
    retry_delay: float = 1.0,
    jitter_max: float = 0.3
) -> float:
    """
    Calculate exponential backoff delay with positive jitter.

    Formula: retry_delay * 2 ** (attempt - 1) * (1 + uniform(0, jitter_max))

    Args:
        attempt: Attempt index (0 is the first attempt and never waits)
        retry_delay: Base delay in seconds
        jitter_max: Maximum jitter as a fraction of the exponential delay

    Returns:
        Delay in seconds
    """
    if attempt <= 0:
        return 0.0
    exponential_delay = retry_delay * (2 ** (attempt - 1))
    return exponential_delay * (1 + random.uniform(0, jitter_max))


class RetryHandler:
    """
    Runs one logical request with bounded retries.

    Makes ``policy.retries + 1`` attempts at most. The circuit breaker is
    consulted once before the first attempt; an open circuit aborts the call
    without consuming an attempt. Each failed attempt is recorded on the
    breaker and each success closes it.
    """

    def __init__(
        self,
        circuit_breaker: Optional[CircuitBreaker] = None,
        jitter_max: float = 0.3,
        sleeper: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        logger: Optional[StructuredLogger] = None
    ):
        """
        Initialize retry handler.

        Args:
            circuit_breaker: Shared breaker; breaker checks are skipped when None
            jitter_max: Maximum jitter fraction added to each backoff delay
            sleeper: Async sleep function (default: asyncio.sleep)
            logger: Structured logger
        """
        self.circuit_breaker = circuit_breaker
        self.jitter_max = jitter_max
        self._sleep = sleeper
        self.logger = logger or StructuredLogger()

    def _uses_breaker(self, policy: FetchPolicy) -> bool:
        return policy.use_circuit_breaker and self.circuit_breaker is not None

    async def execute(
        self,
        endpoint: str,
        attempt_func: Callable[[int], Awaitable[Any]],
        policy: FetchPolicy,
        fallback: Optional[Callable[[], Any]] = None,
        source: str = "",
        request_id: str = ""
    ) -> Any:
        """
        Execute attempt_func with retry logic.

        Args:
            endpoint: Circuit breaker key (the request URL)
            attempt_func: Coroutine function taking the attempt index
            policy: Retry and breaker policy
            fallback: Default value factory used when use_mock_on_fail is set
            source: Data source label for logging
            request_id: Correlation id for logging

        Returns:
            Result of the first successful attempt, or the fallback value

        Raises:
            CircuitOpenError: If the circuit is open and no fallback applies
            Exception: The last attempt's fault once retries are exhausted
        """
        if self._uses_breaker(policy) and self.circuit_breaker.is_open(endpoint):
            self.logger.log(
                "circuit_open_skip",
                level="warning",
                request_id=request_id,
                source=source,
                url=endpoint,
            )
            if policy.use_mock_on_fail and fallback is not None:
                self.logger.log("mock_fallback", request_id=request_id, source=source, reason="circuit_open")
                return fallback()
            raise CircuitOpenError(source, endpoint)

        last_error: Optional[Exception] = None

        for attempt in range(policy.retries + 1):
            if attempt > 0:
                delay = calculate_backoff_delay(attempt, policy.retry_delay, self.jitter_max)
                self.logger.retry_scheduled(request_id, source, attempt, delay)
                await self._sleep(delay)

            try:
                result = await attempt_func(attempt)
            except RETRYABLE_ERRORS as e:
                last_error = e
                status = e.response.status_code if isinstance(e, httpx.HTTPStatusError) else None
                self.logger.fetch_error(request_id, source, attempt + 1, str(e) or type(e).__name__, status)
                if self._uses_breaker(policy):
                    self.circuit_breaker.record_failure(endpoint)
                continue

            if self._uses_breaker(policy):
                self.circuit_breaker.record_success(endpoint)
            return result

        self.logger.log(
            "retries_exhausted",
            level="error",
            request_id=request_id,
            source=source,
            attempts=policy.retries + 1,
            error=str(last_error),
        )

        if policy.use_mock_on_fail and fallback is not None:
            self.logger.log("mock_fallback", level="warning", request_id=request_id, source=source, reason="retries_exhausted")
            return fallback()

        raise last_error
