"""Response normalization and record transforms."""

from .normalizer import classify_structure, normalize_response
from .records import transform_power_records, transform_sensor_records

__all__ = [
    "classify_structure",
    "normalize_response",
    "transform_power_records",
    "transform_sensor_records",
]
