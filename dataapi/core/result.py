"""Result decoding.

Converts the service's typed response into plain Python rows. Each field of
a record is a one-key mapping such as ``{"longValue": 1}`` or
``{"isNull": True}``; the populated key of a column is discovered once and
reused for every following row.
"""

from collections.abc import Iterator, Mapping, Sequence
from typing import Any, Final, Optional, Union

from mypy_extensions import mypyc_attr

from dataapi.config import FormatOptions
from dataapi.core.type_converter import format_from_timestamp
from dataapi.typing import ColumnMetadata, Field, UpdateResult
from dataapi.utils.serializers import from_json

__all__ = (
    "DATE_TYPE_NAMES",
    "JSON_TYPE_NAMES",
    "QueryResult",
    "format_record_value",
    "format_records",
    "format_results",
    "format_update_results",
    "unwrap_array_value",
)

DATE_TYPE_NAMES: Final = frozenset({"DATE", "DATETIME", "TIMESTAMP", "TIMESTAMPTZ", "TIMESTAMP WITH TIME ZONE"})
JSON_TYPE_NAMES: Final = frozenset({"JSON", "JSONB"})
_ZONED_TYPE_NAME: Final = "TIMESTAMP WITH TIME ZONE"

Row = Union["dict[str, Any]", "list[Any]"]


@mypyc_attr(allow_interpreted_subclasses=False)
class QueryResult:
    """Decoded response of one statement execution.

    Attributes that the response did not carry are ``None``.
    """

    __slots__ = ("column_metadata", "insert_id", "number_of_records_updated", "records", "update_results")

    def __init__(
        self,
        records: "Optional[list[Row]]" = None,
        column_metadata: "Optional[list[ColumnMetadata]]" = None,
        number_of_records_updated: Optional[int] = None,
        insert_id: Optional[int] = None,
        update_results: "Optional[list[UpdateResult]]" = None,
    ) -> None:
        self.records = records
        self.column_metadata = column_metadata
        self.number_of_records_updated = number_of_records_updated
        self.insert_id = insert_id
        self.update_results = update_results

    def to_dict(self) -> "dict[str, Any]":
        """Return only the keys the response carried."""
        return {name: getattr(self, name) for name in self.__slots__ if getattr(self, name) is not None}

    def __iter__(self) -> "Iterator[Row]":
        return iter(self.records or [])

    def __len__(self) -> int:
        return len(self.records or [])

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, QueryResult):
            return False
        return self.to_dict() == other.to_dict()

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        fields = ", ".join(f"{key}={value!r}" for key, value in self.to_dict().items())
        return f"{type(self).__name__}({fields})"


def unwrap_array_value(value: "Mapping[str, Any]") -> "list[Any]":
    """Flatten an ``arrayValue`` payload into a Python list.

    ``{"longValues": [1, 2]}`` becomes ``[1, 2]``; ``arrayValues`` nest.
    """
    for key, items in value.items():
        if items is None:
            continue
        if key == "arrayValues":
            return [unwrap_array_value(item) for item in items]
        return list(items)
    return []


def format_record_value(value: Any, type_name: Optional[str], format_options: FormatOptions) -> Any:
    """Coerce one decoded value by its column type.

    Date-family columns become :class:`datetime.datetime` when date
    deserialization is enabled. ``JSON``/``JSONB`` columns are parsed.

    Raises:
        SerializationError: If a JSON column holds invalid JSON.
    """
    if type_name is None or not isinstance(value, str):
        return value
    normalized = type_name.upper()
    if format_options.deserialize_date and normalized in DATE_TYPE_NAMES:
        return format_from_timestamp(value, format_options.treat_as_local_date or normalized == _ZONED_TYPE_NAME)
    if normalized in JSON_TYPE_NAMES:
        return from_json(value)
    return value


def _discover_field_key(field: Field) -> Optional[str]:
    discovered = None
    for key, value in field.items():
        if key != "isNull" and value is not None:
            discovered = key
    return discovered


def _field_value(field: Field, key: Optional[str]) -> Any:
    if key is None:
        return None
    value = field.get(key)
    if key == "arrayValue" and isinstance(value, Mapping):
        return unwrap_array_value(value)
    return value


def _label(labels: "list[Optional[str]]", index: int) -> str:
    label = labels[index] if index < len(labels) else None
    return label if label is not None else str(index)


def format_records(
    records: "Sequence[Sequence[Field]]",
    columns: "Optional[Sequence[ColumnMetadata]]",
    hydrate: bool,
    format_options: FormatOptions,
) -> "list[Row]":
    """Decode typed records into positional lists or label-keyed dicts.

    Args:
        records: Response records.
        columns: Column metadata, one entry per column, when requested.
        hydrate: Key rows by column label. Falls back to lists without metadata.
        format_options: Date handling options.

    Returns:
        One decoded row per record.
    """
    if not records:
        return []

    width = len(records[0])
    labels: list[Optional[str]] = [None] * width
    type_names: list[Optional[str]] = [None] * width
    if columns:
        for index, column in enumerate(columns[:width]):
            labels[index] = column.get("label") or column.get("name")
            type_names[index] = column.get("typeName")
    hydrate = hydrate and bool(columns)
    field_keys: dict[int, Optional[str]] = {}

    rows: list[Row] = []
    for record in records:
        values: list[Any] = []
        for index, field in enumerate(record):
            if field.get("isNull") is True:
                values.append(None)
                continue
            key = field_keys.get(index)
            if key is None:
                key = field_keys[index] = _discover_field_key(field)
            type_name = type_names[index] if index < width else None
            values.append(format_record_value(_field_value(field, key), type_name, format_options))

        if hydrate:
            rows.append({_label(labels, index): value for index, value in enumerate(values)})
        else:
            rows.append(values)
    return rows


def format_update_results(update_results: "Sequence[Mapping[str, Any]]") -> "list[UpdateResult]":
    """Map batch update results row-wise; rows that generated a key carry ``insert_id``."""
    formatted: list[UpdateResult] = []
    for update in update_results:
        generated = update.get("generatedFields") or []
        insert_id = generated[0].get("longValue") if generated else None
        formatted.append({"insert_id": insert_id} if insert_id is not None else {})
    return formatted


def format_results(
    response: "Mapping[str, Any]", hydrate: bool, include_meta: bool, format_options: FormatOptions
) -> QueryResult:
    """Build a :class:`QueryResult` from a raw execute or batch-execute response.

    Args:
        response: The service response.
        hydrate: Key rows by column label.
        include_meta: Surface the column metadata on the result.
        format_options: Date handling options.

    Returns:
        The decoded result.
    """
    records = response.get("records")
    column_metadata = response.get("columnMetadata")
    number_of_records_updated = response.get("numberOfRecordsUpdated")
    generated_fields = response.get("generatedFields")
    update_results = response.get("updateResults")

    result = QueryResult()
    if include_meta:
        result.column_metadata = list(column_metadata) if column_metadata is not None else None
    if number_of_records_updated is not None and records is None:
        result.number_of_records_updated = number_of_records_updated
    if records is not None:
        result.records = format_records(records, column_metadata, hydrate, format_options)
    if update_results is not None:
        result.update_results = format_update_results(update_results)
    if generated_fields:
        result.insert_id = generated_fields[0].get("longValue")
    return result
