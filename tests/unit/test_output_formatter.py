"""Unit tests for JSON output formatter."""

import json

import pytest

from dctelemetry.models.data_models import (
    CircuitSnapshot,
    CircuitState,
    DiagnosisReport,
    EndpointStatus,
    RecordSource,
    ResponseStructure,
    ServedBy,
    StatusReport,
    TelemetrySnapshot,
)
from dctelemetry.pipeline.output import JSONOutputFormatter


@pytest.fixture
def served_by():
    return ServedBy(
        source="racks",
        served_by=RecordSource.API,
        request_id="req_1_abcde",
        record_count=2,
        timestamp="2026-10-18T09:00:00+00:00",
    )


@pytest.fixture
def snapshot(served_by):
    return TelemetrySnapshot(
        racks=[{"NAME": "BA00173"}, {"NAME": "MA02292"}],
        sensors=[{"RACK_NAME": "BA00173", "TEMPERATURE": "23.5"}],
        fetched_at="2026-10-18T09:00:00+00:00",
        duration_seconds=1.23456,
        sources={"racks": served_by},
    )


class TestJSONOutputFormatter:

    def test_format_snapshot(self, snapshot):
        result = JSONOutputFormatter().format(snapshot)

        assert result["summary"] == {
            "fetched_at": "2026-10-18T09:00:00+00:00",
            "duration_seconds": 1.23,
            "racks": 2,
            "sensors": 1,
        }
        assert result["sources"]["racks"]["served_by"] == "api"
        assert result["racks"][1]["NAME"] == "MA02292"
        assert result["circuit_breakers"] == {}

    def test_format_snapshot_includes_breaker_states(self, snapshot, tmp_path):
        snapshot.circuit_breakers = {
            "http://sensors.test/sensors": CircuitSnapshot(status=CircuitState.OPEN, failure_count=3)
        }
        output_file = tmp_path / "telemetry.json"

        JSONOutputFormatter().save(snapshot, str(output_file))

        saved = json.loads(output_file.read_text(encoding="utf-8"))
        assert saved["circuit_breakers"]["http://sensors.test/sensors"]["status"] == "open"
        assert saved["circuit_breakers"]["http://sensors.test/sensors"]["failure_count"] == 3

    def test_format_status(self, served_by):
        report = StatusReport(
            timestamp="2026-10-18T09:00:00+00:00",
            endpoints=[EndpointStatus(name="racks", url="http://racks.test/odata/racks", reachable=False)],
            circuit_breakers={
                "http://racks.test/odata/racks": CircuitSnapshot(
                    status=CircuitState.OPEN, failure_count=3, last_failure_time=10.0, next_retry_time=40.0
                )
            },
            sources={"racks": served_by},
        )

        result = JSONOutputFormatter().format_status(report)

        assert result["endpoints"] == [
            {"name": "racks", "url": "http://racks.test/odata/racks", "reachable": False}
        ]
        assert result["circuit_breakers"]["http://racks.test/odata/racks"]["status"] == "open"
        assert result["sources"]["racks"]["request_id"] == "req_1_abcde"

    def test_format_diagnosis(self):
        report = DiagnosisReport(
            url="http://racks.test/odata/racks",
            timestamp="2026-10-18T09:00:00+00:00",
            is_reachable=True,
            status_code=200,
            response_structure=ResponseStructure.ODATA,
        )

        result = JSONOutputFormatter().format_diagnosis(report)

        assert result["response_structure"] == "OData { value[] } collection"
        assert result["status_code"] == 200

    def test_save_creates_directories(self, snapshot, tmp_path):
        output_file = tmp_path / "nested" / "out" / "telemetry.json"

        JSONOutputFormatter().save(snapshot, str(output_file))

        data = json.loads(output_file.read_text(encoding="utf-8"))
        assert data["summary"]["racks"] == 2

    def test_save_dispatches_on_report_type(self, tmp_path):
        output_file = tmp_path / "diagnosis.json"
        report = DiagnosisReport(url=None, timestamp="2026-10-18T09:00:00+00:00", error_details="No URL provided")

        JSONOutputFormatter().save(report, str(output_file))

        assert json.loads(output_file.read_text())["error_details"] == "No URL provided"

    def test_save_keeps_unicode(self, snapshot, tmp_path):
        snapshot.racks[0]["SITE"] = "Málaga"
        output_file = tmp_path / "telemetry.json"

        JSONOutputFormatter().save(snapshot, str(output_file))

        assert "Málaga" in output_file.read_text(encoding="utf-8")
