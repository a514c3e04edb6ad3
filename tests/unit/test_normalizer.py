"""Unit tests for response normalization and structure classification."""

import pytest

from dctelemetry.models.data_models import ResponseShape, ResponseStructure
from dctelemetry.processor.normalizer import (
    classify_structure,
    extract_records,
    normalize_response,
)


class TestNormalizeResponse:

    def test_equivalent_shapes_yield_same_records(self):
        bodies = [
            [1, 2, 3],
            {"value": [1, 2, 3], "@odata.count": 3},
            {"data": [1, 2, 3]},
        ]

        assert [normalize_response(body).records for body in bodies] == [[1, 2, 3]] * 3

    def test_bare_array(self):
        result = normalize_response([{"id": 1}])

        assert result.shape == ResponseShape.ARRAY
        assert result.records == [{"id": 1}]

    def test_odata_collection_with_count(self):
        result = normalize_response({"value": [1, 2], "@odata.count": 62})

        assert result.shape == ResponseShape.ODATA
        assert result.total_count == 62
        assert result.source_key == "value"

    def test_odata_count_as_string(self):
        assert normalize_response({"value": [], "@odata.count": "12"}).total_count == 12

    def test_non_positive_count_is_ignored(self):
        assert normalize_response({"value": [], "@odata.count": 0}).total_count is None

    def test_next_link_is_captured(self):
        result = normalize_response({"value": [1], "@odata.nextLink": "http://h/next"})

        assert result.next_link == "http://h/next"

    def test_data_wrapper(self):
        result = normalize_response({"status": "Success", "data": [1]})

        assert result.shape == ResponseShape.DATA_WRAPPER
        assert result.records == [1]

    def test_value_takes_precedence_over_data(self):
        result = normalize_response({"data": [2], "value": [1]})

        assert result.records == [1]

    def test_first_embedded_array(self):
        result = normalize_response({"meta": {"count": 2}, "readings": [1, 2], "other": [3]})

        assert result.shape == ResponseShape.EMBEDDED_ARRAY
        assert result.records == [1, 2]
        assert result.source_key == "readings"

    def test_unrecognized_object(self):
        result = normalize_response({"foo": "bar"})

        assert result.shape == ResponseShape.UNRECOGNIZED
        assert result.records is None
        assert result.is_valid is False
        assert result.raw == {"foo": "bar"}

    @pytest.mark.parametrize("body", [None, "text", 42, True])
    def test_scalars_are_unrecognized(self, body):
        assert normalize_response(body).is_valid is False

    def test_empty_array_is_valid(self):
        assert normalize_response([]).is_valid is True

    def test_helpers(self):
        assert extract_records({"data": [1]}) == [1]
        assert extract_records({"foo": "bar"}) is None


class TestClassifyStructure:

    @pytest.mark.parametrize("body, expected", [
        ([1, 2], ResponseStructure.ARRAY),
        ({"status": "Success", "data": [1]}, ResponseStructure.STATUS_WRAPPED),
        ({"success": True, "data": {"racks": []}}, ResponseStructure.SUCCESS_WRAPPED),
        ({"value": [1], "@odata.count": 1}, ResponseStructure.ODATA),
        ({"readings": [1]}, ResponseStructure.NON_STANDARD),
        ({"status": "Error", "data": [1]}, ResponseStructure.NON_STANDARD),
        ("plain", ResponseStructure.NON_STANDARD),
    ])
    def test_classification(self, body, expected):
        assert classify_structure(body) == expected
