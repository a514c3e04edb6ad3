"""Telemetry orchestrator coordinating racks and sensors acquisition."""

import asyncio
import time
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx

from dctelemetry.fetcher.async_fetcher import AsyncFetcher
from dctelemetry.fetcher.circuit_breaker import CircuitBreaker
from dctelemetry.fetcher.http_client import AsyncHTTPClient
from dctelemetry.models.config import AcquisitionConfig
from dctelemetry.models.data_models import (
    DiagnosisReport,
    EndpointStatus,
    ServedBy,
    StatusReport,
    TelemetrySnapshot,
)
from dctelemetry.monitoring.diagnostics import ApiProbe
from dctelemetry.monitoring.logger import StructuredLogger
from dctelemetry.pipeline.fallback import FallbackCoordinator, PrimaryAccessor
from dctelemetry.processor.records import transform_power_records, transform_sensor_records


def _no_primary_store() -> List[Any]:
    """Stand-in accessor for data sets without a configured primary store."""
    return []


class TelemetryOrchestrator:
    """
    Host object of the acquisition layer.

    Owns the circuit breaker for its whole lifetime and passes it to every
    fetch, so breaker state survives across refreshes without a module-level
    singleton.
    """

    def __init__(
        self,
        config: AcquisitionConfig,
        primary_stores: Optional[Dict[str, PrimaryAccessor]] = None,
        circuit_breaker: Optional[CircuitBreaker] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleeper: Callable[[float], Awaitable[Any]] = asyncio.sleep
    ):
        """
        Initialize orchestrator.

        Args:
            config: Acquisition configuration
            primary_stores: Accessors of the relational store keyed by data set
                name (racks, sensors)
            circuit_breaker: Breaker to share; a new one is created when None
            transport: Custom httpx transport (tests, mock upstreams)
            sleeper: Async sleep for backoff and page delays
        """
        self.config = config
        self.logger = StructuredLogger(level=config.log_level)
        self.circuit_breaker = circuit_breaker or CircuitBreaker(
            failure_threshold=config.circuit_breaker_failure_threshold,
            reset_timeout=config.circuit_breaker_reset_timeout,
            logger=self.logger
        )
        self.primary_stores = primary_stores or {}
        self.transport = transport
        self._sleep = sleeper
        self.served_by: Dict[str, ServedBy] = {}

    def _http_client(self) -> AsyncHTTPClient:
        return AsyncHTTPClient(
            timeout=self.config.fetch_timeout,
            api_key=self.config.api_key,
            transport=self.transport
        )

    def _probe(self, http_client: AsyncHTTPClient) -> ApiProbe:
        return ApiProbe(
            http_client,
            probe_timeout=self.config.probe_timeout,
            diagnose_timeout=self.config.diagnose_timeout,
            slow_response_threshold=self.config.slow_response_threshold,
            logger=self.logger
        )

    async def run(self) -> TelemetrySnapshot:
        """
        Refresh racks and sensors concurrently.

        Returns:
            TelemetrySnapshot with records in internal layout and the source
            that served each data set
        """
        started_at = datetime.now(timezone.utc).isoformat()
        start = time.monotonic()
        policy = self.config.fetch_policy()

        self.logger.log("refresh_start", endpoints=len(self.config.endpoints))

        async with self._http_client() as http_client:
            fetcher = AsyncFetcher(
                http_client,
                circuit_breaker=self.circuit_breaker,
                jitter_max=self.config.retry_jitter_max,
                max_pages=self.config.max_pages,
                page_delay=self.config.page_delay,
                sleeper=self._sleep,
                logger=self.logger
            )
            coordinator = FallbackCoordinator(
                fetcher,
                page_size=self.config.page_size,
                timeout=self.config.fetch_timeout,
                logger=self.logger
            )

            racks, sensors = await asyncio.gather(
                coordinator.get_data_with_fallback(
                    self.primary_stores.get("racks", _no_primary_store),
                    self.config.endpoint_url("racks"),
                    "racks",
                    policy
                ),
                coordinator.get_data_with_fallback(
                    self.primary_stores.get("sensors", _no_primary_store),
                    self.config.endpoint_url("sensors"),
                    "sensors",
                    policy
                ),
            )

        self.served_by.update(coordinator.served_by)
        snapshot = TelemetrySnapshot(
            racks=transform_power_records(racks),
            sensors=transform_sensor_records(sensors),
            fetched_at=started_at,
            duration_seconds=time.monotonic() - start,
            sources=dict(coordinator.served_by),
            circuit_breakers=self.circuit_breaker.snapshot()
        )

        self.logger.log(
            "refresh_complete",
            racks=len(snapshot.racks),
            sensors=len(snapshot.sensors),
            elapsed_ms=round(snapshot.duration_seconds * 1000, 1)
        )
        return snapshot

    async def status(self) -> StatusReport:
        """Reachability of every configured endpoint plus breaker states."""
        async with self._http_client() as http_client:
            probe = self._probe(http_client)
            reachable = await asyncio.gather(
                *(probe.is_reachable(endpoint.url) for endpoint in self.config.endpoints)
            )

        return StatusReport(
            timestamp=datetime.now(timezone.utc).isoformat(),
            endpoints=[
                EndpointStatus(name=endpoint.name, url=endpoint.url, reachable=is_up)
                for endpoint, is_up in zip(self.config.endpoints, reachable)
            ],
            circuit_breakers=self.circuit_breaker.snapshot(),
            sources=dict(self.served_by)
        )

    async def diagnose(self, url: Optional[str], include_response_data: bool = False) -> DiagnosisReport:
        """Diagnose a single endpoint."""
        async with self._http_client() as http_client:
            return await self._probe(http_client).diagnose(url, include_response_data)

    async def ping(self, url: Optional[str]) -> bool:
        """Reachability of a single endpoint."""
        async with self._http_client() as http_client:
            return await self._probe(http_client).is_reachable(url)
