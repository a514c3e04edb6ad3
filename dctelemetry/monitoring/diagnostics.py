"""Reachability checks and endpoint diagnosis for operational visibility."""

import asyncio
from datetime import datetime, timezone
from typing import Optional

import httpx

from dctelemetry.fetcher.async_fetcher import validate_url
from dctelemetry.fetcher.errors import FetchPolicyError
from dctelemetry.fetcher.http_client import AsyncHTTPClient
from dctelemetry.fetcher.paginator import SAFE_PAGE_SIZE, is_pageable_url, requested_page_size
from dctelemetry.models.data_models import DiagnosisReport, ResponseStructure
from dctelemetry.monitoring.logger import StructuredLogger, new_request_id
from dctelemetry.processor.normalizer import classify_structure


DNS_FAILURE_HINTS = (
    "name or service not known",
    "nodename nor servname",
    "getaddrinfo",
    "name resolution",
)


def _classify_transport_error(error: httpx.TransportError) -> tuple:
    """Map a transport fault to an error code and a recommendation."""
    if isinstance(error, httpx.TimeoutException):
        return "TIMEOUT", "Timeout - the server took too long to respond"
    message = str(error).lower()
    if any(hint in message for hint in DNS_FAILURE_HINTS):
        return "DNS_FAILURE", "DNS lookup failed - check the hostname in the URL"
    if isinstance(error, httpx.ConnectError):
        return "CONNECTION_REFUSED", "Connection refused - the server might be down or the URL is incorrect"
    return type(error).__name__, None


class ApiProbe:
    """
    Lightweight liveness checks and deeper diagnosis of API endpoints.

    Any HTTP response, including error statuses, counts as reachable: the
    probe separates network reachability from application-level success.
    """

    def __init__(
        self,
        http_client: AsyncHTTPClient,
        probe_timeout: float = 5.0,
        diagnose_timeout: float = 10.0,
        slow_response_threshold: float = 5.0,
        logger: Optional[StructuredLogger] = None
    ):
        self.http_client = http_client
        self.probe_timeout = probe_timeout
        self.diagnose_timeout = diagnose_timeout
        self.slow_response_threshold = slow_response_threshold
        self.logger = logger or StructuredLogger()

    async def is_reachable(self, url: Optional[str]) -> bool:
        """
        Check whether url answers at all.

        Tries HEAD first and falls back to GET when HEAD fails at transport
        level, since some servers reject HEAD.

        Args:
            url: Endpoint to probe

        Returns:
            True if any HTTP response was received
        """
        request_id = new_request_id("ping")
        if not url:
            self.logger.log("reachability_skipped", level="debug", request_id=request_id, reason="no url")
            return False

        headers = self.http_client.build_headers(request_id, json_body=False)
        loop = asyncio.get_running_loop()
        start = loop.time()

        for method in ("HEAD", "GET"):
            try:
                response = await self.http_client.request(
                    method, url, headers=headers, timeout=self.probe_timeout
                )
            except httpx.TransportError as e:
                self.logger.log(
                    "reachability_attempt_failed",
                    level="debug",
                    request_id=request_id,
                    url=url,
                    method=method,
                    error=str(e) or type(e).__name__,
                )
                continue
            except httpx.InvalidURL as e:
                self.logger.log(
                    "reachability_skipped", level="warning", request_id=request_id, url=url, reason=str(e)
                )
                return False

            self.logger.log(
                "reachable",
                request_id=request_id,
                url=url,
                method=method,
                status=response.status_code,
                elapsed_ms=round((loop.time() - start) * 1000, 1),
            )
            return True

        self.logger.log(
            "unreachable",
            level="warning",
            request_id=request_id,
            url=url,
            elapsed_ms=round((loop.time() - start) * 1000, 1),
        )
        return False

    async def diagnose(self, url: Optional[str], include_response_data: bool = False) -> DiagnosisReport:
        """
        Probe url once and assemble a diagnosis report.

        The request accepts every status code. The report carries status,
        latency, content type, JSON envelope classification, and
        recommendations driven by simple rules.

        Args:
            url: Endpoint to diagnose
            include_response_data: Whether to attach the decoded body

        Returns:
            DiagnosisReport (never raises for network or HTTP faults)
        """
        diagnosis_id = new_request_id("diag")
        report = DiagnosisReport(url=url, timestamp=datetime.now(timezone.utc).isoformat())
        self.logger.log("diagnosis_start", request_id=diagnosis_id, url=url)

        if not url:
            report.error_details = "No URL provided"
            report.recommendations.append("Provide a valid URL for diagnosis")
            return report

        try:
            validate_url(url, "diagnosed")
        except FetchPolicyError:
            report.error_details = "Invalid URL format"
            report.recommendations.append(
                "Check URL format (should be like http://example.com/api/path)"
            )
            return report

        headers = self.http_client.build_headers(diagnosis_id, json_body=False)
        loop = asyncio.get_running_loop()
        start = loop.time()

        try:
            response = await self.http_client.get(url, headers=headers, timeout=self.diagnose_timeout)
        except httpx.TransportError as e:
            report.response_time_ms = round((loop.time() - start) * 1000, 1)
            report.error_code, recommendation = _classify_transport_error(e)
            report.error_details = str(e) or type(e).__name__
            if recommendation:
                report.recommendations.append(recommendation)
            self.logger.log(
                "diagnosis_request_failed",
                level="error",
                request_id=diagnosis_id,
                url=url,
                error=report.error_details,
                error_code=report.error_code,
            )
        else:
            report.response_time_ms = round((loop.time() - start) * 1000, 1)
            report.is_reachable = True
            report.status_code = response.status_code
            report.content_type = response.headers.get("content-type")
            self._inspect_body(report, response, include_response_data)
            self._add_status_recommendations(report)
            self._add_pagination_recommendations(report, url)

        if not report.recommendations:
            if not report.is_reachable:
                report.recommendations.append(
                    "API endpoint is not reachable - check network connectivity and URL"
                )
            elif report.status_code is not None and report.status_code >= 400:
                report.recommendations.append("API returned an error status code")

        self.logger.log(
            "diagnosis_complete",
            request_id=diagnosis_id,
            url=url,
            reachable=report.is_reachable,
            status=report.status_code,
            elapsed_ms=report.response_time_ms,
            pageable=report.is_pageable,
        )
        return report

    def _inspect_body(self, report: DiagnosisReport, response: httpx.Response, include_response_data: bool) -> None:
        if not report.content_type or "application/json" not in report.content_type:
            report.response_type = "Not JSON"
            report.recommendations.append("The API response is not in JSON format")
            return

        report.response_type = "JSON"
        try:
            body = response.json()
        except ValueError:
            report.response_structure = ResponseStructure.NON_STANDARD
            report.recommendations.append("The API response declares JSON but could not be decoded")
            return

        if include_response_data:
            report.response_data = body

        report.response_structure = classify_structure(body)
        if report.response_structure == ResponseStructure.ARRAY:
            if body and isinstance(body[0], dict):
                report.sample_keys = list(body[0].keys())
        elif report.response_structure == ResponseStructure.NON_STANDARD:
            report.recommendations.append(
                "The API response structure does not match expected formats"
            )

    def _add_status_recommendations(self, report: DiagnosisReport) -> None:
        status = report.status_code
        if status in (401, 403):
            report.recommendations.append("Authentication issue - check API key")
        elif status == 404:
            report.recommendations.append("Resource not found - check URL path")
        elif status is not None and status >= 500:
            report.recommendations.append(
                "Server error - the API server might be experiencing problems"
            )

        if report.response_time_ms is not None and report.response_time_ms > self.slow_response_threshold * 1000:
            report.recommendations.append(
                "Slow response time - consider increasing timeout configuration"
            )

    def _add_pagination_recommendations(self, report: DiagnosisReport, url: str) -> None:
        if not is_pageable_url(url):
            return

        report.is_pageable = True
        top = requested_page_size(url)
        if "$top=" not in url:
            report.recommendations.append(
                f"OData API detected - consider using $top={SAFE_PAGE_SIZE} parameter to limit results per page"
            )
        elif top is not None and top > SAFE_PAGE_SIZE:
            report.recommendations.append(
                f"$top value too high - consider reducing to {SAFE_PAGE_SIZE} to avoid server limit issues"
            )

        if "$skip=" not in url:
            report.recommendations.append(
                "OData API detected - consider using $skip parameter for pagination"
            )
