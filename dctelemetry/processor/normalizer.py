"""Response normalizer for heterogeneous upstream JSON bodies.

Upstream APIs answer with a bare array, an OData ``{"value": [...]}``
collection, a ``{"data": [...]}`` wrapper, or some other object that still
embeds the record array somewhere. Everything is reduced to a flat record list
so callers never special-case the upstream format.
"""

from typing import Any, List, Optional

from dctelemetry.models.data_models import NormalizedResponse, ResponseShape, ResponseStructure


TOTAL_COUNT_FIELDS = ("@odata.count", "odata.count")
NEXT_LINK_FIELDS = ("@odata.nextLink", "odata.nextLink")


def _extract_total_count(body: dict) -> Optional[int]:
    """
    Read an upstream-reported total record count.

    Only positive counts are reported; OData services send the count as a
    number, some gateways as a numeric string.
    """
    for field in TOTAL_COUNT_FIELDS:
        value = body.get(field)
        if isinstance(value, bool) or value is None:
            continue
        try:
            count = int(value)
        except (TypeError, ValueError):
            continue
        if count > 0:
            return count
    return None


def _extract_next_link(body: dict) -> Optional[str]:
    for field in NEXT_LINK_FIELDS:
        value = body.get(field)
        if isinstance(value, str) and value:
            return value
    return None


def normalize_response(body: Any) -> NormalizedResponse:
    """
    Classify a response body and extract its record array.

    Classification order:
    1. Body is a list: used directly
    2. ``value`` holds a list: OData collection (total count read if present)
    3. ``data`` holds a list: custom wrapper
    4. First own property holding a list: best-effort recovery
    5. Otherwise UNRECOGNIZED, records is None

    Args:
        body: Decoded JSON body of any shape

    Returns:
        NormalizedResponse tagged with the detected shape

    Examples:
        >>> normalize_response([1, 2, 3]).records
        [1, 2, 3]
        >>> normalize_response({"value": [1, 2, 3], "@odata.count": 3}).total_count
        3
        >>> normalize_response({"foo": "bar"}).is_valid
        False
    """
    if isinstance(body, list):
        return NormalizedResponse(shape=ResponseShape.ARRAY, records=body, raw=body)

    if not isinstance(body, dict):
        return NormalizedResponse(shape=ResponseShape.UNRECOGNIZED, records=None, raw=body)

    if isinstance(body.get("value"), list):
        return NormalizedResponse(
            shape=ResponseShape.ODATA,
            records=body["value"],
            raw=body,
            total_count=_extract_total_count(body),
            source_key="value",
            next_link=_extract_next_link(body),
        )

    if isinstance(body.get("data"), list):
        return NormalizedResponse(
            shape=ResponseShape.DATA_WRAPPER,
            records=body["data"],
            raw=body,
            source_key="data",
        )

    for key, value in body.items():
        if isinstance(value, list):
            return NormalizedResponse(
                shape=ResponseShape.EMBEDDED_ARRAY,
                records=value,
                raw=body,
                source_key=key,
            )

    return NormalizedResponse(shape=ResponseShape.UNRECOGNIZED, records=None, raw=body)


def extract_records(body: Any) -> Optional[List[Any]]:
    """Record array of body, or None when no array can be found."""
    return normalize_response(body).records


def classify_structure(body: Any) -> ResponseStructure:
    """
    Describe a body's envelope for operational diagnostics.

    Unlike normalize_response this does not try to recover arrays from
    unknown objects; it reports which documented envelope the API follows.
    """
    if isinstance(body, list):
        return ResponseStructure.ARRAY
    if isinstance(body, dict):
        if body.get("status") == "Success" and isinstance(body.get("data"), list):
            return ResponseStructure.STATUS_WRAPPED
        if body.get("success") is True and body.get("data"):
            return ResponseStructure.SUCCESS_WRAPPED
        if isinstance(body.get("value"), list):
            return ResponseStructure.ODATA
    return ResponseStructure.NON_STANDARD
