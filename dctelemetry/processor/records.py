"""Record transforms from upstream API layouts to the internal telemetry layout.

The relational store returns racks and sensors with upper-case column names
(``NAME``, ``TOTAL_KW``, ``RACK_NAME`` ...). The newer REST APIs return
camelCase items instead. These helpers map API items onto the store layout so
consumers see one record format whichever source served the data.
"""

from typing import Any, Dict, List, Optional

from dctelemetry.processor.normalizer import extract_records


PHASE_FIELDS = ("L1", "L2", "L3")
PHASE_METRICS = ("VOLTS", "WATTS", "KW", "KWH", "PF", "VA")
TOTAL_METRICS = {
    "TOTAL_VOLTS": "totalVolts",
    "TOTAL_AMPS": "totalAmps",
    "TOTAL_WATTS": "totalWatts",
    "TOTAL_KW": "totalKw",
    "TOTAL_KWH": "totalKwh",
    "TOTAL_VA": "totalVa",
    "TOTAL_PF": "totalPf",
}
NESTED_SENSOR_KEYS = ("sensors", "readings", "results", "data")


def _as_text(value: Any, default: Optional[str] = "") -> Optional[str]:
    """String form of value, or default when it is missing."""
    if value is None:
        return default
    if isinstance(value, bool):
        return str(int(value))
    return str(value)


def _first_present(raw: Dict, fields: tuple, default: Any = None) -> Any:
    """First non-empty value among fields."""
    for field in fields:
        value = raw.get(field)
        if value is not None and value != "":
            return value
    return default


def transform_power_record(raw: Dict) -> Dict[str, Any]:
    """
    Map one rack-power API item to the internal rack layout.

    Per-phase readings are not provided by the power API and are set to None.
    Rack geometry (MAXU, FREEU) is not reported either and gets fixed defaults.
    """
    record = {
        "id": _as_text(raw.get("id")),
        "rackId": _as_text(raw.get("rackId")),
        "NAME": _first_present(raw, ("rackName", "name"), ""),
        "SITE": raw.get("site") or "",
        "DC": raw.get("dc") or "",
        "MAINTENANCE": _as_text(raw.get("maintenance"), "0"),
        "MAXPOWER": _as_text(raw.get("capacityKw"), "7"),
        "MAXU": "42",
        "FREEU": "10",
    }
    for column, field in TOTAL_METRICS.items():
        record[column] = _as_text(raw.get(field), None)
    for phase in PHASE_FIELDS:
        for metric in PHASE_METRICS:
            record[f"{phase}_{metric}"] = None
    record["phase"] = raw.get("phase") or "Single Phase"
    return record


def transform_power_records(records: List[Dict]) -> List[Dict[str, Any]]:
    """
    Map rack-power items to the internal layout.

    Records that already carry the store's ``NAME`` column (database rows,
    default dataset) are passed through untouched.
    """
    return [
        record if "NAME" in record else transform_power_record(record)
        for record in records
        if isinstance(record, dict)
    ]


def _is_new_sensor_format(records: List[Any]) -> bool:
    first = records[0]
    return (
        isinstance(first, dict)
        and isinstance(first.get("temperature"), (int, float))
        and "humidity" in first
    )


def transform_sensor_record(raw: Dict) -> Dict[str, Any]:
    """Map one item of the sensor API to the internal sensor layout."""
    return {
        "id": _as_text(raw.get("id")),
        "nodeId": _as_text(raw.get("nodeId")),
        "sensorIndex": _as_text(raw.get("sensorIndex")),
        "sensorType": raw.get("sensorType") or "",
        "rackId": _as_text(raw.get("rackId")),
        "RACK_NAME": _first_present(raw, ("rackName", "name"), ""),
        "SITE": raw.get("site") or "",
        "DC": raw.get("dc") or "",
        "TEMPERATURE": _as_text(raw.get("temperature")),
        "HUMIDITY": _as_text(raw.get("humidity")),
        "lastUpdate": raw.get("lastUpdate") or "",
        "status": raw.get("status") or "",
    }


def _transform_generic_sensor(raw: Dict) -> Dict[str, Any]:
    temperature = raw.get("TEMPERATURE")
    if temperature is None:
        temperature = _as_text(raw.get("temperature"), None)
    humidity = raw.get("HUMIDITY")
    if humidity is None:
        humidity = _as_text(raw.get("humidity"), None)
    return {
        "RACK_NAME": _first_present(raw, ("NAME", "name", "rack_name", "rackName"), "Unknown"),
        "TEMPERATURE": temperature,
        "HUMIDITY": humidity,
        "SITE": _first_present(raw, ("SITE", "site"), "Unknown"),
        "DC": _first_present(raw, ("DC", "dc", "datacenter"), "Unknown"),
    }


def transform_sensor_records(data: Any) -> List[Dict[str, Any]]:
    """
    Map sensor readings of any known layout to the internal layout.

    Handles:
    - New API items with numeric ``temperature``/``humidity``
    - Items already in internal layout (``RACK_NAME`` present)
    - Other flat items, mapped field by field
    - Objects nesting the list under sensors/readings/results/data

    Args:
        data: Record list or wrapper object

    Returns:
        Sensor records in internal layout; empty list for unknown input
    """
    if isinstance(data, list):
        items = [item for item in data if isinstance(item, dict)]
        if not items:
            return []
        if _is_new_sensor_format(items):
            return [transform_sensor_record(item) for item in items]
        if items[0].get("RACK_NAME"):
            return items
        return [_transform_generic_sensor(item) for item in items]

    if isinstance(data, dict):
        for key in NESTED_SENSOR_KEYS:
            if isinstance(data.get(key), list):
                return transform_sensor_records(data[key])
        records = extract_records(data)
        if records is not None:
            return transform_sensor_records(records)

    return []
