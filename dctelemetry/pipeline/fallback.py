"""Fallback coordinator: primary store, then remote API, then default data."""

import dataclasses
import inspect
import time
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from dctelemetry.fetcher.async_fetcher import AsyncFetcher
from dctelemetry.fetcher.defaults import default_records
from dctelemetry.fetcher.paginator import SAFE_PAGE_SIZE, is_pageable_url
from dctelemetry.models.data_models import FetchPolicy, FetchRequest, RecordSource, ServedBy
from dctelemetry.monitoring.logger import StructuredLogger, new_request_id


PrimaryAccessor = Callable[[], Union[List[Any], Awaitable[List[Any]]]]


def unwrap_records(response: Any) -> Optional[List[Any]]:
    """
    Record list of a fetch result.

    Accepts the status-wrapped envelope ``{"status": "Success", "data": [...]}``
    and bare lists; anything else yields None.
    """
    if isinstance(response, list):
        return response
    if (
        isinstance(response, dict)
        and response.get("status") == "Success"
        and isinstance(response.get("data"), list)
    ):
        return response["data"]
    return None


class FallbackCoordinator:
    """
    Produces a record list for a data source, never raising to its caller.

    Precedence:
    1. The primary store, when it returns at least one record
    2. The remote API (paginated when its URL is page-able)
    3. The default dataset when the policy enables mock fallback, else []
    """

    def __init__(
        self,
        fetcher: AsyncFetcher,
        page_size: int = SAFE_PAGE_SIZE,
        timeout: Optional[float] = None,
        logger: Optional[StructuredLogger] = None
    ):
        """
        Initialize coordinator.

        Args:
            fetcher: Remote fetch pipeline
            page_size: Page size used for page-able APIs
            timeout: Per-attempt timeout for remote fetches
            logger: Structured logger
        """
        self.fetcher = fetcher
        self.page_size = page_size
        self.timeout = timeout
        self.logger = logger or StructuredLogger()
        self.served_by: Dict[str, ServedBy] = {}

    def _record(
        self,
        source: str,
        served_by: RecordSource,
        request_id: str,
        records: List[Any],
        error: Optional[str] = None
    ) -> List[Any]:
        self.served_by[source] = ServedBy(
            source=source,
            served_by=served_by,
            request_id=request_id,
            record_count=len(records),
            timestamp=datetime.now(timezone.utc).isoformat(),
            error=error,
        )
        return records

    async def _read_primary(self, primary: PrimaryAccessor) -> Any:
        result = primary()
        if inspect.isawaitable(result):
            return await result
        return result

    async def get_data_with_fallback(
        self,
        primary: PrimaryAccessor,
        api_url: Optional[str],
        source: str,
        policy: Optional[FetchPolicy] = None
    ) -> List[Any]:
        """
        Get records for source from the best available origin.

        Args:
            primary: Zero-argument accessor of the primary store (sync or async)
            api_url: Remote API used when the primary store has nothing
            source: Data source label (racks, sensors)
            policy: Remote fetch policy; pagination is decided from api_url

        Returns:
            Record list, possibly empty; never raises
        """
        policy = policy or FetchPolicy()
        request_id = new_request_id("req")
        self.logger.fallback_stage(request_id, source, "start", api_url=api_url)

        start = time.monotonic()
        try:
            data = await self._read_primary(primary)
        except Exception as e:
            self.logger.fallback_stage(
                request_id, source, "database_failed", level="warning", error=str(e)
            )
        else:
            elapsed_ms = round((time.monotonic() - start) * 1000, 1)
            if isinstance(data, list) and data:
                self.logger.fallback_stage(
                    request_id, source, "database_hit", records=len(data), elapsed_ms=elapsed_ms
                )
                return self._record(source, RecordSource.DATABASE, request_id, data)
            self.logger.fallback_stage(
                request_id, source, "database_empty", level="warning", elapsed_ms=elapsed_ms
            )

        # Default data is applied below so the trace tells mock and API apart
        needs_pagination = is_pageable_url(api_url)
        remote_policy = dataclasses.replace(
            policy,
            use_pagination=needs_pagination,
            page_size=self.page_size,
            use_mock_on_fail=False,
        )
        self.logger.fallback_stage(
            request_id, source, "api_fallback", api_url=api_url, paginated=needs_pagination
        )

        error: Optional[str] = None
        start = time.monotonic()
        try:
            response = await self.fetcher.fetch(
                FetchRequest(url=api_url, source=source, timeout=self.timeout, policy=remote_policy),
                request_id=request_id,
            )
        except Exception as e:
            error = str(e) or type(e).__name__
            self.logger.fallback_stage(
                request_id, source, "api_failed", level="error", error=error
            )
        else:
            records = unwrap_records(response)
            if records is not None:
                self.logger.fallback_stage(
                    request_id,
                    source,
                    "api_hit",
                    records=len(records),
                    format="array" if isinstance(response, list) else "status-wrapper",
                    elapsed_ms=round((time.monotonic() - start) * 1000, 1),
                )
                return self._record(source, RecordSource.API, request_id, records)
            error = "invalid or empty API response"
            self.logger.fallback_stage(request_id, source, "api_invalid", level="warning")

        if policy.use_mock_on_fail:
            records = default_records(source)
            self.logger.fallback_stage(
                request_id, source, "mock_data", level="warning", records=len(records)
            )
            return self._record(source, RecordSource.MOCK, request_id, records, error)

        self.logger.fallback_stage(request_id, source, "empty_result", level="warning")
        return self._record(source, RecordSource.EMPTY, request_id, [], error)
