"""Paginated retrieval for page-able (OData-style) APIs."""

import asyncio
import re
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx

from dctelemetry.fetcher.errors import InvalidResponseError
from dctelemetry.fetcher.http_client import AsyncHTTPClient, read_json
from dctelemetry.monitoring.logger import StructuredLogger
from dctelemetry.processor.normalizer import normalize_response


PAGEABLE_MARKERS = (
    "$filter", "$select", "$expand", "$orderby", "$top", "$skip", "/odata/", "/OData/",
)
MAX_PAGES = 20
PAGE_DELAY_SECONDS = 0.3
SAFE_PAGE_SIZE = 50

_TOP_PARAM = re.compile(r"\$top=[^&#]*")
_SKIP_PARAM = re.compile(r"\$skip=[^&#]*")
_TOP_VALUE = re.compile(r"\$top=(\d+)")


def is_pageable_url(url: Optional[str]) -> bool:
    """Whether url looks like an OData endpoint accepting $skip/$top."""
    if not url:
        return False
    return any(marker in url for marker in PAGEABLE_MARKERS)


def add_pagination_params(url: str, skip: int = 0, top: int = SAFE_PAGE_SIZE) -> str:
    """
    Set $skip and $top on url.

    Existing values are replaced in place rather than duplicated, and the
    rest of the query string is left untouched.

    Examples:
        >>> add_pagination_params("http://h/odata/racks", skip=50, top=50)
        'http://h/odata/racks?$top=50&$skip=50'
        >>> add_pagination_params("http://h/api?$top=1000&$filter=x", skip=0, top=50)
        'http://h/api?$top=50&$filter=x&$skip=0'
    """
    new_url = url

    if _TOP_PARAM.search(new_url):
        new_url = _TOP_PARAM.sub(f"$top={top}", new_url, count=1)
    else:
        separator = "&" if "?" in new_url else "?"
        new_url += f"{separator}$top={top}"

    if _SKIP_PARAM.search(new_url):
        new_url = _SKIP_PARAM.sub(f"$skip={skip}", new_url, count=1)
    else:
        new_url += f"&$skip={skip}"

    return new_url


def requested_page_size(url: str) -> Optional[int]:
    """The $top value already present in url, if any."""
    match = _TOP_VALUE.search(url)
    return int(match.group(1)) if match else None


class PaginatedFetcher:
    """
    Fetches every page of a page-able endpoint and concatenates the records.

    Pagination terminates when:
    - A page returns fewer records than the page size
    - The upstream-reported total count has been reached
    - The safety cap of 20 pages has been requested

    Pages are requested strictly one after another with a short pause in
    between. A failing page ends pagination with the records gathered so far;
    only a failure before any record was gathered is raised.
    """

    def __init__(
        self,
        http_client: AsyncHTTPClient,
        max_pages: int = MAX_PAGES,
        page_delay: float = PAGE_DELAY_SECONDS,
        sleeper: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        logger: Optional[StructuredLogger] = None
    ):
        self.http_client = http_client
        self.max_pages = max_pages
        self.page_delay = page_delay
        self._sleep = sleeper
        self.logger = logger or StructuredLogger()

    async def _fetch_page(
        self,
        url: str,
        headers: Optional[Dict[str, str]],
        timeout: Optional[float],
        page: int
    ):
        response = await self.http_client.get(url, headers=headers, timeout=timeout)
        response.raise_for_status()

        normalized = normalize_response(read_json(response))
        if not normalized.is_valid:
            raise InvalidResponseError(
                f"Unrecognized response format on page {page}", body=normalized.raw
            )
        return normalized

    async def fetch_all_pages(
        self,
        base_url: str,
        page_size: int = SAFE_PAGE_SIZE,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
        request_id: str = ""
    ) -> List[Any]:
        """
        Retrieve all pages of base_url.

        Args:
            base_url: Page-able URL; $skip/$top are set per page
            page_size: Records requested per page
            headers: Request headers
            timeout: Per-page timeout in seconds
            request_id: Correlation id for logging

        Returns:
            Records of all fetched pages in upstream order

        Raises:
            httpx.HTTPError: If the first page fails at transport or HTTP level
            InvalidResponseError: If the first page has no extractable records
        """
        records: List[Any] = []
        total_records: Optional[int] = None
        page = 0

        self.logger.log(
            "pagination_start", request_id=request_id, url=base_url, page_size=page_size
        )

        while True:
            skip = page * page_size
            page_url = add_pagination_params(base_url, skip, page_size)
            loop = asyncio.get_running_loop()
            start = loop.time()

            try:
                normalized = await self._fetch_page(page_url, headers, timeout, page + 1)
            except (httpx.HTTPError, InvalidResponseError) as e:
                self.logger.log(
                    "page_error",
                    level="error",
                    request_id=request_id,
                    page=page + 1,
                    url=page_url,
                    error=str(e) or type(e).__name__,
                )
                if not records:
                    raise
                self.logger.log(
                    "pagination_partial",
                    level="warning",
                    request_id=request_id,
                    records=len(records),
                )
                break

            if normalized.total_count:
                total_records = normalized.total_count
            if normalized.next_link:
                self.logger.log("next_link_ignored", level="debug", request_id=request_id, next_link=normalized.next_link)

            page_records = normalized.records
            records.extend(page_records)
            page += 1
            self.logger.page_fetched(
                request_id, page, len(page_records), len(records), (loop.time() - start) * 1000
            )

            if len(page_records) < page_size:
                break
            if total_records is not None and len(records) >= total_records:
                break
            if page >= self.max_pages:
                self.logger.log(
                    "pagination_safety_limit",
                    level="warning",
                    request_id=request_id,
                    pages=page,
                    records=len(records),
                )
                break

            await self._sleep(self.page_delay)

        self.logger.log(
            "pagination_complete", request_id=request_id, pages=page, records=len(records)
        )
        return records
