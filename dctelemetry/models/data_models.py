"""Core data models for the telemetry acquisition layer."""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class CircuitState(Enum):
    """Circuit breaker states."""
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half-open"


class ResponseShape(Enum):
    """Recognized upstream response shapes."""
    ARRAY = "array"
    ODATA = "odata"
    DATA_WRAPPER = "data"
    EMBEDDED_ARRAY = "embedded"
    UNRECOGNIZED = "unrecognized"


class ResponseStructure(Enum):
    """Structure classification reported by the diagnostics probe."""
    ARRAY = "Direct array response"
    STATUS_WRAPPED = "Standard { status, data[] }"
    SUCCESS_WRAPPED = "Standard { success: true, data }"
    ODATA = "OData { value[] } collection"
    NON_STANDARD = "Non-standard JSON structure"


class RecordSource(Enum):
    """Where a record collection was ultimately served from."""
    DATABASE = "database"
    API = "api"
    MOCK = "mock"
    EMPTY = "empty"


@dataclass
class CircuitSnapshot:
    """Point-in-time copy of one endpoint's circuit."""
    status: CircuitState = CircuitState.CLOSED
    failure_count: int = 0
    last_failure_time: Optional[float] = None
    next_retry_time: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "failure_count": self.failure_count,
            "last_failure_time": self.last_failure_time,
            "next_retry_time": self.next_retry_time,
        }


@dataclass(frozen=True)
class FetchPolicy:
    """Retry, breaker and pagination policy for one logical fetch.

    Delays are in seconds.
    """
    retries: int = 3
    retry_delay: float = 1.0
    use_mock_on_fail: bool = False
    use_circuit_breaker: bool = True
    use_pagination: bool = True
    page_size: int = 50


@dataclass(frozen=True)
class FetchRequest:
    """Descriptor of one logical fetch against a remote API."""
    url: Optional[str]
    source: str
    headers: Dict[str, str] = field(default_factory=dict)
    timeout: Optional[float] = None
    method: str = "GET"
    policy: FetchPolicy = field(default_factory=FetchPolicy)


@dataclass
class NormalizedResponse:
    """Tagged result of classifying an upstream response body.

    ``records`` is None only for the UNRECOGNIZED shape, in which case ``raw``
    still carries the original body.
    """
    shape: ResponseShape
    records: Optional[List[Any]]
    raw: Any = None
    total_count: Optional[int] = None
    source_key: Optional[str] = None
    next_link: Optional[str] = None

    @property
    def is_valid(self) -> bool:
        return self.records is not None


@dataclass
class ServedBy:
    """Trace of which source answered the latest request for a data set."""
    source: str
    served_by: RecordSource
    request_id: str
    record_count: int
    timestamp: str  # ISO-8601 UTC
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["served_by"] = self.served_by.value
        return data


@dataclass
class DiagnosisReport:
    """Result of probing one API endpoint."""
    url: Optional[str]
    timestamp: str  # ISO-8601 UTC
    is_reachable: bool = False
    response_time_ms: Optional[float] = None
    status_code: Optional[int] = None
    error_code: Optional[str] = None
    error_details: Optional[str] = None
    content_type: Optional[str] = None
    response_type: Optional[str] = None
    response_structure: Optional[ResponseStructure] = None
    sample_keys: Optional[List[str]] = None
    is_pageable: bool = False
    response_data: Any = None
    recommendations: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["response_structure"] = (
            self.response_structure.value if self.response_structure else None
        )
        return data


@dataclass
class TelemetrySnapshot:
    """Racks and sensors gathered in one refresh."""
    racks: List[Dict[str, Any]]
    sensors: List[Dict[str, Any]]
    fetched_at: str  # ISO-8601 UTC
    duration_seconds: float
    sources: Dict[str, ServedBy] = field(default_factory=dict)
    circuit_breakers: Dict[str, CircuitSnapshot] = field(default_factory=dict)


@dataclass
class EndpointStatus:
    """Reachability of one configured endpoint."""
    name: str
    url: Optional[str]
    reachable: bool


@dataclass
class StatusReport:
    """Operational status surface: reachability, breakers, last sources."""
    timestamp: str  # ISO-8601 UTC
    endpoints: List[EndpointStatus]
    circuit_breakers: Dict[str, CircuitSnapshot]
    sources: Dict[str, ServedBy] = field(default_factory=dict)
