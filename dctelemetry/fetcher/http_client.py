"""Async HTTP client wrapper with timeout and authentication configuration."""

from typing import Any, Dict, Optional

import httpx

from dctelemetry.fetcher.errors import InvalidResponseError


def read_json(response: httpx.Response) -> Any:
    """Decode a JSON body, treating undecodable bodies as structural faults."""
    try:
        return response.json()
    except ValueError as e:
        raise InvalidResponseError(f"Response body is not valid JSON: {e}") from e


class AsyncHTTPClient:
    """
    Async HTTP client wrapper around httpx.AsyncClient.

    Provides:
    - Configurable default timeout, overridable per request
    - JSON and correlation headers, plus a Bearer token when an API key is set
    - Context manager for proper lifecycle management
    """

    def __init__(
        self,
        timeout: float = 10.0,
        api_key: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize HTTP client.

        Args:
            timeout: Default per-request timeout in seconds
            api_key: Token sent as ``Authorization: Bearer <api_key>``
            transport: Custom httpx transport (mock or ASGI transports in tests)
        """
        self.timeout = timeout
        self.api_key = api_key
        self.transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        """Enter async context manager."""
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout),
            transport=self.transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Exit async context manager."""
        if self._client:
            await self._client.aclose()
            self._client = None

    def build_headers(
        self,
        request_id: Optional[str] = None,
        json_body: bool = True,
        extra: Optional[Dict[str, str]] = None
    ) -> Dict[str, str]:
        """
        Headers for an upstream request.

        Args:
            request_id: Correlation id sent as X-Request-ID
            json_body: Whether to announce a JSON Content-Type
            extra: Caller-supplied headers, applied last

        Returns:
            Header mapping
        """
        headers = {"Accept": "application/json"}
        if json_body:
            headers["Content-Type"] = "application/json"
        if request_id:
            headers["X-Request-ID"] = request_id
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        if extra:
            headers.update(extra)
        return headers

    async def request(
        self,
        method: str,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None
    ) -> httpx.Response:
        """
        Perform a request.

        Args:
            method: HTTP method
            url: URL to request
            headers: Request headers
            timeout: Per-request timeout, defaults to the client timeout

        Returns:
            HTTP response (status is not checked here)
        """
        if not self._client:
            raise RuntimeError("Client not initialized. Use 'async with' context manager.")

        return await self._client.request(
            method,
            url,
            headers=headers,
            timeout=timeout if timeout is not None else self.timeout,
        )

    async def get(self, url: str, headers: Optional[Dict[str, str]] = None, timeout: Optional[float] = None) -> httpx.Response:
        """Perform GET request."""
        return await self.request("GET", url, headers=headers, timeout=timeout)

    async def head(self, url: str, headers: Optional[Dict[str, str]] = None, timeout: Optional[float] = None) -> httpx.Response:
        """Perform HEAD request."""
        return await self.request("HEAD", url, headers=headers, timeout=timeout)
