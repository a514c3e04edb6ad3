"""Async fetcher combining circuit breaker, retries, pagination and normalization."""

import asyncio
import functools
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from dctelemetry.fetcher.circuit_breaker import CircuitBreaker
from dctelemetry.fetcher.defaults import default_response
from dctelemetry.fetcher.errors import FetchPolicyError, InvalidResponseError
from dctelemetry.fetcher.http_client import AsyncHTTPClient, read_json
from dctelemetry.fetcher.paginator import MAX_PAGES, PAGE_DELAY_SECONDS, PaginatedFetcher, is_pageable_url
from dctelemetry.fetcher.retry_handler import RetryHandler
from dctelemetry.models.data_models import FetchRequest
from dctelemetry.monitoring.logger import StructuredLogger, new_request_id
from dctelemetry.processor.normalizer import normalize_response


def validate_url(url: Optional[str], source: str) -> None:
    """
    Reject missing or malformed URLs before any network attempt.

    Raises:
        FetchPolicyError: If url is empty or not an absolute http(s) URL
    """
    if not url:
        raise FetchPolicyError(f"No URL provided for {source} API")
    try:
        parsed = httpx.URL(url)
    except (httpx.InvalidURL, TypeError, ValueError) as e:
        raise FetchPolicyError(f"Invalid URL format for {source} API: {url}") from e
    if parsed.scheme not in ("http", "https") or not parsed.host:
        raise FetchPolicyError(f"Invalid URL format for {source} API: {url}")


class AsyncFetcher:
    """
    Fetches one logical data set from a remote API.

    Responsibilities:
    - Fail fast on missing or malformed URLs
    - Gate calls on the shared circuit breaker
    - Retry transport and structural faults with exponential backoff
    - Paginate page-able URLs when the policy allows it
    - Normalize every accepted response to ``{"status": "Success", "data": [...]}``
    """

    def __init__(
        self,
        http_client: AsyncHTTPClient,
        circuit_breaker: Optional[CircuitBreaker] = None,
        jitter_max: float = 0.3,
        max_pages: int = MAX_PAGES,
        page_delay: float = PAGE_DELAY_SECONDS,
        sleeper: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        logger: Optional[StructuredLogger] = None
    ):
        """
        Initialize fetcher with resilience components.

        Args:
            http_client: Makes HTTP requests with timeouts and auth headers
            circuit_breaker: Shared breaker owned by the host process
            jitter_max: Maximum backoff jitter fraction
            max_pages: Safety cap on pages per paginated fetch
            page_delay: Pause between page requests in seconds
            sleeper: Async sleep used for backoff and page delays
            logger: Structured logger for tracing
        """
        self.http_client = http_client
        self.circuit_breaker = circuit_breaker
        self.logger = logger or StructuredLogger()
        self.retry_handler = RetryHandler(
            circuit_breaker=circuit_breaker,
            jitter_max=jitter_max,
            sleeper=sleeper,
            logger=self.logger,
        )
        self.paginator = PaginatedFetcher(
            http_client,
            max_pages=max_pages,
            page_delay=page_delay,
            sleeper=sleeper,
            logger=self.logger,
        )

    async def fetch(self, request: FetchRequest, request_id: Optional[str] = None) -> Dict[str, Any]:
        """
        Fetch request.url according to request.policy.

        Args:
            request: Fetch descriptor (URL, source label, transport options, policy)
            request_id: Correlation id; generated when omitted

        Returns:
            ``{"status": "Success", "data": records}``, or the default dataset
            when the policy enables mock fallback and the fetch failed

        Raises:
            FetchPolicyError: Missing or malformed URL
            CircuitOpenError: Circuit open and mock fallback disabled
            httpx.HTTPError: Last transport or HTTP status fault after retries
            InvalidResponseError: Last structural fault after retries
        """
        request_id = request_id or new_request_id("api_req")
        validate_url(request.url, request.source)

        policy = request.policy
        paginate = policy.use_pagination and is_pageable_url(request.url)
        headers = self.http_client.build_headers(request_id, extra=request.headers)

        self.logger.fetch_start(request_id, request.source, request.url, paginate)

        async def attempt(attempt_index: int) -> Dict[str, Any]:
            if paginate:
                records = await self.paginator.fetch_all_pages(
                    request.url,
                    page_size=policy.page_size,
                    headers=headers,
                    timeout=request.timeout,
                    request_id=request_id,
                )
            else:
                records = await self._fetch_single(request, headers)

            self.logger.fetch_success(request_id, request.source, attempt_index + 1, len(records))
            return {"status": "Success", "data": records}

        return await self.retry_handler.execute(
            request.url,
            attempt,
            policy,
            fallback=functools.partial(default_response, request.source),
            source=request.source,
            request_id=request_id,
        )

    async def _fetch_single(self, request: FetchRequest, headers: Dict[str, str]):
        """
        Issue one non-paginated request and extract its records.

        Raises:
            httpx.HTTPError: On transport failure or a non-2xx status
            InvalidResponseError: If no record array can be extracted
        """
        response = await self.http_client.request(
            request.method, request.url, headers=headers, timeout=request.timeout
        )
        response.raise_for_status()

        normalized = normalize_response(read_json(response))
        if not normalized.is_valid:
            raise InvalidResponseError(
                f"Invalid response from {request.source} API", body=normalized.raw
            )
        return normalized.records
