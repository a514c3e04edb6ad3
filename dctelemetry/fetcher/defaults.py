"""Default datasets served when every source fails and mock fallback is enabled."""

import copy
from typing import Any, Dict, List, Optional


def _rack(
    rack_id: str,
    name: str,
    site: str,
    dc: str,
    max_power: str,
    total_amps: Optional[str],
    total_kw: Optional[str],
    phase: str = "Single Phase",
) -> Dict[str, Any]:
    record = {
        "id": rack_id,
        "rackId": rack_id,
        "NAME": name,
        "SITE": site,
        "DC": dc,
        "MAINTENANCE": "0",
        "MAXPOWER": max_power,
        "MAXU": "47",
        "FREEU": "47",
        "TOTAL_VOLTS": "230" if total_kw else None,
        "TOTAL_AMPS": total_amps,
        "TOTAL_WATTS": None,
        "TOTAL_KW": total_kw,
        "TOTAL_KWH": None,
        "TOTAL_VA": None,
        "TOTAL_PF": None,
    }
    for line in ("L1", "L2", "L3"):
        for metric in ("VOLTS", "WATTS", "KW", "KWH", "PF", "VA"):
            record[f"{line}_{metric}"] = None
    record["phase"] = phase
    return record


DEFAULT_RACKS: List[Dict[str, Any]] = [
    _rack("1", "BA00173", "Barcelona", "IT1", "7", None, None),
    _rack("2", "BA02276", "Barcelona", "IT1", "7", "20.01", "4.362000"),
    _rack("3", "MA02292", "Madrid", "IT1", "7", "22.62", "5.010000"),
    _rack("4", "MA00184", "Madrid", "IT2", "7", "18.25", "4.050000"),
    _rack("5", "VA00432", "Valencia", "IT3", "10", "32.17", "7.250000", phase="3-Phase"),
]


def default_records(source: str) -> List[Dict[str, Any]]:
    """Default record list for a data source label; only racks have one."""
    if "rack" in source.lower():
        return copy.deepcopy(DEFAULT_RACKS)
    return []


def default_response(source: str) -> Dict[str, Any]:
    """Default dataset in the status-wrapped envelope returned by fetches."""
    return {"status": "Success", "data": default_records(source)}
