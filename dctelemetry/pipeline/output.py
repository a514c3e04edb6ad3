"""JSON output formatter for telemetry snapshots and operational reports.

Snapshots are written for downstream consumers (dashboards, exports); status
and diagnosis reports feed the operational debug surface.
"""

import json
from pathlib import Path
from typing import Any, Dict, Union

from dctelemetry.models.data_models import DiagnosisReport, StatusReport, TelemetrySnapshot


class JSONOutputFormatter:
    """
    Formats acquisition results as JSON-serializable dictionaries.

    Snapshot structure:
    {
        "summary": {
            "fetched_at": "2026-10-18T09:00:00+00:00",
            "duration_seconds": 1.23,
            "racks": 62,
            "sensors": 40
        },
        "sources": {
            "racks": {"served_by": "api", "record_count": 62, ...},
            "sensors": {"served_by": "database", "record_count": 40, ...}
        },
        "circuit_breakers": {
            "http://.../odata/racks?$orderby=NAME": {"status": "closed", ...}
        },
        "racks": [...],
        "sensors": [...]
    }
    """

    def format(self, snapshot: TelemetrySnapshot) -> Dict[str, Any]:
        """
        Format a telemetry snapshot.

        Args:
            snapshot: Result of one refresh

        Returns:
            Dictionary with summary, sources, circuit_breakers, racks and
            sensors sections
        """
        return {
            "summary": {
                "fetched_at": snapshot.fetched_at,
                "duration_seconds": round(snapshot.duration_seconds, 2),
                "racks": len(snapshot.racks),
                "sensors": len(snapshot.sensors)
            },
            "sources": {
                name: served.to_dict() for name, served in snapshot.sources.items()
            },
            "circuit_breakers": {
                endpoint: state.to_dict()
                for endpoint, state in snapshot.circuit_breakers.items()
            },
            "racks": snapshot.racks,
            "sensors": snapshot.sensors
        }

    def format_status(self, report: StatusReport) -> Dict[str, Any]:
        """Format the status surface: reachability, breakers, last sources."""
        return {
            "timestamp": report.timestamp,
            "endpoints": [
                {"name": ep.name, "url": ep.url, "reachable": ep.reachable}
                for ep in report.endpoints
            ],
            "circuit_breakers": {
                endpoint: state.to_dict()
                for endpoint, state in report.circuit_breakers.items()
            },
            "sources": {
                name: served.to_dict() for name, served in report.sources.items()
            }
        }

    def format_diagnosis(self, report: DiagnosisReport) -> Dict[str, Any]:
        """Format a diagnosis report."""
        return report.to_dict()

    def save(
        self,
        result: Union[TelemetrySnapshot, StatusReport, DiagnosisReport],
        path: str = "out/telemetry.json"
    ) -> None:
        """
        Save formatted result to JSON file.

        Creates parent directories if they don't exist. Uses 2-space
        indentation for readability.
        """
        output_path = Path(path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        if isinstance(result, StatusReport):
            formatted_data = self.format_status(result)
        elif isinstance(result, DiagnosisReport):
            formatted_data = self.format_diagnosis(result)
        else:
            formatted_data = self.format(result)

        with open(output_path, 'w', encoding='utf-8') as f:
            json.dump(formatted_data, f, indent=2, ensure_ascii=False, default=str)
