"""Tests for decoding service responses into rows."""

import datetime
from typing import Any

import pytest

from dataapi.config import FormatOptions
from dataapi.core.result import (
    QueryResult,
    format_record_value,
    format_records,
    format_results,
    format_update_results,
    unwrap_array_value,
)
from dataapi.exceptions import SerializationError

UTC = datetime.timezone.utc
DEFAULTS = FormatOptions()

COLUMNS = [
    {"label": "id", "name": "id", "typeName": "INT"},
    {"label": "name", "name": "name", "typeName": "VARCHAR"},
    {"label": "created", "name": "created", "typeName": "TIMESTAMP"},
]
RECORDS = [
    [{"longValue": 1}, {"stringValue": "ada"}, {"stringValue": "2024-01-02 03:04:05"}],
    [{"longValue": 2}, {"isNull": True}, {"stringValue": "2024-02-03 04:05:06"}],
]


def test_hydrated_rows_are_keyed_by_label() -> None:
    rows = format_records(RECORDS, COLUMNS, True, DEFAULTS)

    assert rows == [
        {"id": 1, "name": "ada", "created": datetime.datetime(2024, 1, 2, 3, 4, 5, tzinfo=UTC)},
        {"id": 2, "name": None, "created": datetime.datetime(2024, 2, 3, 4, 5, 6, tzinfo=UTC)},
    ]


def test_rows_are_positional_without_hydration() -> None:
    rows = format_records(RECORDS, COLUMNS, False, DEFAULTS)

    assert rows[1] == [2, None, datetime.datetime(2024, 2, 3, 4, 5, 6, tzinfo=UTC)]


def test_hydration_without_metadata_falls_back_to_lists() -> None:
    assert format_records([[{"longValue": 1}]], None, True, DEFAULTS) == [[1]]


def test_missing_label_falls_back_to_name_then_index() -> None:
    columns = [{"name": "only_name"}, {}]

    rows = format_records([[{"longValue": 1}, {"longValue": 2}]], columns, True, DEFAULTS)

    assert rows == [{"only_name": 1, "1": 2}]


def test_field_key_is_discovered_past_leading_nulls() -> None:
    records = [[{"isNull": True}], [{"stringValue": "x"}], [{"isNull": True}]]

    assert format_records(records, None, False, DEFAULTS) == [[None], ["x"], [None]]


def test_explicit_false_values_are_kept() -> None:
    records = [[{"booleanValue": False}, {"longValue": 0}, {"stringValue": ""}]]

    assert format_records(records, None, False, DEFAULTS) == [[False, 0, ""]]


def test_empty_records() -> None:
    assert format_records([], COLUMNS, True, DEFAULTS) == []


def test_array_values_are_unwrapped() -> None:
    records = [
        [{"arrayValue": {"longValues": [1, 2, 3]}}],
        [{"arrayValue": {"arrayValues": [{"stringValues": ["a"]}]}}],
    ]

    assert format_records(records, None, False, DEFAULTS) == [[[1, 2, 3]], [[["a"]]]]


def test_unwrap_array_value_skips_unset_keys() -> None:
    assert unwrap_array_value({"booleanValues": None, "doubleValues": [1.5]}) == [1.5]
    assert unwrap_array_value({}) == []


def test_date_columns_stay_strings_when_deserialization_is_disabled() -> None:
    rows = format_records(RECORDS, COLUMNS, True, FormatOptions(deserialize_date=False))

    assert rows[0]["created"] == "2024-01-02 03:04:05"  # type: ignore[call-overload]


def test_local_date_mode_yields_naive_datetimes() -> None:
    rows = format_records(RECORDS, COLUMNS, True, FormatOptions(treat_as_local_date=True))

    assert rows[0]["created"] == datetime.datetime(2024, 1, 2, 3, 4, 5)  # type: ignore[call-overload]


@pytest.mark.parametrize("type_name", ["DATE", "datetime", "TIMESTAMP", "timestamptz"])
def test_date_type_names(type_name: str) -> None:
    value = format_record_value("2024-01-02", type_name, DEFAULTS)

    assert value == datetime.datetime(2024, 1, 2, tzinfo=UTC)


def test_zoned_timestamp_columns_are_read_as_local() -> None:
    value = format_record_value("2024-01-02 03:04:05", "timestamp with time zone", DEFAULTS)

    assert value == datetime.datetime(2024, 1, 2, 3, 4, 5)
    assert value.tzinfo is None


@pytest.mark.parametrize("type_name", ["JSON", "jsonb"])
def test_json_columns_are_parsed(type_name: str) -> None:
    assert format_record_value('{"a": [1, 2]}', type_name, DEFAULTS) == {"a": [1, 2]}


def test_invalid_json_column() -> None:
    with pytest.raises(SerializationError):
        format_record_value("{oops", "JSON", DEFAULTS)


@pytest.mark.parametrize(("value", "type_name"), [(5, "DATE"), ("text", None), ("text", "VARCHAR")])
def test_other_values_pass_through(value: Any, type_name: Any) -> None:
    assert format_record_value(value, type_name, DEFAULTS) == value


def test_format_update_results() -> None:
    update_results = [{"generatedFields": [{"longValue": 10}]}, {"generatedFields": []}, {}]

    assert format_update_results(update_results) == [{"insert_id": 10}, {}, {}]


def test_update_results_without_long_key_omit_insert_id() -> None:
    update_results = [
        {"generatedFields": [{"stringValue": "0b7c5a52-5e2c-4a57-9a8e-1f0c7ad3d9e1"}]},
        {"generatedFields": [{"longValue": 0}]},
    ]

    assert format_update_results(update_results) == [{}, {"insert_id": 0}]


def test_format_results_for_select() -> None:
    response = {"records": RECORDS, "columnMetadata": COLUMNS, "numberOfRecordsUpdated": 0}

    result = format_results(response, True, False, DEFAULTS)

    assert len(result) == 2
    assert result.number_of_records_updated is None
    assert result.column_metadata is None
    assert list(result)[0]["id"] == 1  # type: ignore[call-overload]
    assert set(result.to_dict()) == {"records"}


def test_format_results_includes_metadata_on_request() -> None:
    response = {"records": [], "columnMetadata": COLUMNS}

    result = format_results(response, True, True, DEFAULTS)

    assert result.column_metadata == COLUMNS
    assert result.records == []


def test_format_results_for_write() -> None:
    response = {"numberOfRecordsUpdated": 1, "generatedFields": [{"longValue": 42}]}

    result = format_results(response, True, False, DEFAULTS)

    assert result == QueryResult(number_of_records_updated=1, insert_id=42)
    assert result.to_dict() == {"insert_id": 42, "number_of_records_updated": 1}
    assert len(result) == 0


def test_format_results_for_batch() -> None:
    response = {"updateResults": [{"generatedFields": [{"longValue": 1}]}, {"generatedFields": [{"longValue": 2}]}]}

    result = format_results(response, True, False, DEFAULTS)

    assert result.update_results == [{"insert_id": 1}, {"insert_id": 2}]
    assert result.records is None


def test_query_result_repr_and_equality() -> None:
    result = QueryResult(records=[[1]])

    assert repr(result) == "QueryResult(records=[[1]])"
    assert result == QueryResult(records=[[1]])
    assert result != {"records": [[1]]}
