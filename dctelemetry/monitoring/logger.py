"""Structured logging for acquisition tracing."""

import json
import logging
import time
import uuid
from typing import Any, Optional


def new_request_id(prefix: str = "req") -> str:
    """Build a correlation id like ``req_1712345678901_a1b2c``."""
    return f"{prefix}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:5]}"


class StructuredLogger:
    """Structured logger with uniform schema."""

    def __init__(self, name: str = "dctelemetry", level: Optional[str] = None):
        self.logger = logging.getLogger(name)
        if level is not None:
            self.logger.setLevel(getattr(logging, level.upper()))

        if not self.logger.handlers:
            handler = logging.StreamHandler()
            handler.setFormatter(logging.Formatter('%(message)s'))
            self.logger.addHandler(handler)

    def log(self, event: str, level: str = "info", **kwargs: Any) -> None:
        """
        Log structured event.

        Standard keys: event, request_id, source, url, page, attempt, status,
                      elapsed_ms, cb_state, records
        """
        log_data = {"event": event, **kwargs}
        getattr(self.logger, level)(json.dumps(log_data, default=str))

    def fetch_start(self, request_id: str, source: str, url: str, paginated: bool) -> None:
        self.log("fetch_start", request_id=request_id, source=source, url=url, paginated=paginated)

    def fetch_success(self, request_id: str, source: str, attempt: int, records: int) -> None:
        self.log("fetch_success", request_id=request_id, source=source, attempt=attempt, records=records)

    def fetch_error(
        self,
        request_id: str,
        source: str,
        attempt: int,
        error: str,
        status: Optional[int] = None,
    ) -> None:
        self.log(
            "fetch_error",
            level="error",
            request_id=request_id,
            source=source,
            attempt=attempt,
            status=status,
            error=error,
        )

    def retry_scheduled(self, request_id: str, source: str, attempt: int, delay: float) -> None:
        self.log(
            "retry_scheduled",
            request_id=request_id,
            source=source,
            attempt=attempt,
            delay_ms=round(delay * 1000),
        )

    def page_fetched(self, request_id: str, page: int, records: int, accumulated: int, elapsed_ms: float) -> None:
        self.log(
            "page_fetched",
            request_id=request_id,
            page=page,
            records=records,
            accumulated=accumulated,
            elapsed_ms=round(elapsed_ms, 1),
        )

    def circuit_breaker_state(self, source: str, state: str, **kwargs: Any) -> None:
        level = "warning" if state == "open" else "info"
        self.log("circuit_breaker", level=level, source=source, cb_state=state, **kwargs)

    def fallback_stage(self, request_id: str, source: str, stage: str, level: str = "info", **kwargs: Any) -> None:
        self.log("fallback", level=level, request_id=request_id, source=source, stage=stage, **kwargs)
