"""Unit tests for rack power and sensor record transforms."""

from dctelemetry.fetcher.defaults import DEFAULT_RACKS, default_records, default_response
from dctelemetry.processor.records import (
    transform_power_record,
    transform_power_records,
    transform_sensor_records,
)


POWER_ITEM = {
    "id": 7,
    "rackId": 1007,
    "rackName": "BA00007",
    "site": "Barcelona",
    "dc": "IT1",
    "maintenance": 0,
    "capacityKw": 7,
    "totalVolts": 230.0,
    "totalAmps": 20.0,
    "totalKw": 4.6,
    "totalKwh": 1234.5,
    "phase": "Single Phase",
}

SENSOR_ITEM = {
    "id": 1,
    "nodeId": 201,
    "sensorIndex": 1,
    "sensorType": "temperature_humidity",
    "rackId": 1001,
    "rackName": "MA00001",
    "site": "Madrid",
    "dc": "IT2",
    "temperature": 24.5,
    "humidity": 41.0,
    "lastUpdate": "2026-10-18T09:00:00+00:00",
    "status": "valid",
}


class TestPowerTransform:

    def test_maps_api_item_to_internal_layout(self):
        record = transform_power_record(POWER_ITEM)

        assert record["id"] == "7"
        assert record["NAME"] == "BA00007"
        assert record["SITE"] == "Barcelona"
        assert record["DC"] == "IT1"
        assert record["MAINTENANCE"] == "0"
        assert record["MAXPOWER"] == "7"
        assert record["TOTAL_KW"] == "4.6"
        assert record["TOTAL_WATTS"] is None
        assert record["L1_VOLTS"] is None
        assert record["L3_VA"] is None

    def test_defaults_for_missing_fields(self):
        record = transform_power_record({"name": "VA00001"})

        assert record["NAME"] == "VA00001"
        assert record["MAXPOWER"] == "7"
        assert record["MAXU"] == "42"
        assert record["FREEU"] == "10"
        assert record["MAINTENANCE"] == "0"
        assert record["phase"] == "Single Phase"

    def test_internal_records_pass_through(self):
        rows = [{"NAME": "BA00173", "TOTAL_KW": "4.3"}]

        assert transform_power_records(rows) == rows

    def test_non_dict_items_are_dropped(self):
        assert len(transform_power_records([POWER_ITEM, "junk", None])) == 1


class TestSensorTransform:

    def test_new_format(self):
        records = transform_sensor_records([SENSOR_ITEM])

        assert records[0]["RACK_NAME"] == "MA00001"
        assert records[0]["TEMPERATURE"] == "24.5"
        assert records[0]["HUMIDITY"] == "41.0"
        assert records[0]["status"] == "valid"

    def test_internal_format_passes_through(self):
        rows = [{"RACK_NAME": "BA00173", "TEMPERATURE": "23.1", "HUMIDITY": "40"}]

        assert transform_sensor_records(rows) == rows

    def test_generic_items(self):
        records = transform_sensor_records([{"name": "R1", "temperature": "22", "datacenter": "IT9"}])

        assert records == [{
            "RACK_NAME": "R1",
            "TEMPERATURE": "22",
            "HUMIDITY": None,
            "SITE": "Unknown",
            "DC": "IT9",
        }]

    def test_nested_lists(self):
        for key in ("sensors", "readings", "results", "data"):
            assert len(transform_sensor_records({key: [SENSOR_ITEM, SENSOR_ITEM]})) == 2

    def test_odata_wrapper(self):
        assert len(transform_sensor_records({"value": [SENSOR_ITEM]})) == 1
        assert len(transform_sensor_records({"count": 1, "items": [SENSOR_ITEM]})) == 1

    def test_unknown_input(self):
        assert transform_sensor_records({"foo": "bar"}) == []
        assert transform_sensor_records(None) == []
        assert transform_sensor_records([]) == []


class TestDefaultDataset:

    def test_racks_have_default_dataset(self):
        records = default_records("racks")

        assert len(records) == 5
        assert records[0]["NAME"] == "BA00173"

    def test_default_records_are_copies(self):
        records = default_records("racks")
        records[0]["NAME"] = "changed"

        assert DEFAULT_RACKS[0]["NAME"] == "BA00173"

    def test_other_sources_default_to_empty(self):
        assert default_records("sensors") == []

    def test_default_response_envelope(self):
        assert default_response("sensors") == {"status": "Success", "data": []}
