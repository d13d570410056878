import datetime
from collections.abc import Awaitable, Mapping, Sequence
from decimal import Decimal
from typing import Any, Callable, Final, Literal, TypedDict, Union
from uuid import UUID

from typing_extensions import NotRequired, TypeAlias

__all__ = (
    "SUPPORTED_TYPES",
    "ColumnMetadata",
    "EncodedParameter",
    "Field",
    "ParameterValue",
    "Parameters",
    "RemoteCall",
    "SupportedType",
    "UpdateResult",
)

SupportedType: TypeAlias = Literal[
    "arrayValue", "blobValue", "booleanValue", "doubleValue", "isNull", "longValue", "stringValue", "structValue"
]
"""Value kinds accepted by the statement-execution service."""

SUPPORTED_TYPES: Final[frozenset[str]] = frozenset(
    {"arrayValue", "blobValue", "booleanValue", "doubleValue", "isNull", "longValue", "stringValue", "structValue"}
)

ParameterValue: TypeAlias = Union[
    str,
    int,
    float,
    bool,
    None,
    Decimal,
    datetime.datetime,
    datetime.date,
    datetime.time,
    UUID,
    bytes,
    bytearray,
    memoryview,
    "Mapping[str, Any]",
]
"""Values a caller may bind to a placeholder.

A single-key mapping whose key is a :data:`SupportedType` is sent verbatim.
"""

Parameters: TypeAlias = Union["Mapping[str, Any]", "Sequence[Any]"]
"""Caller parameter argument: a mapping, a list of named parameters or rows, or positional values."""


class EncodedParameter(TypedDict):
    """Wire form of one bound parameter."""

    name: str
    value: "dict[str, Any]"
    typeHint: NotRequired[str]


class ColumnMetadata(TypedDict, total=False):
    """Subset of the service's column metadata used for decoding."""

    label: str
    name: str
    typeName: str


Field: TypeAlias = "dict[str, Any]"
"""One typed field of a result record, e.g. ``{"longValue": 1}`` or ``{"isNull": True}``."""


class UpdateResult(TypedDict, total=False):
    """One row of a batch write result."""

    insert_id: int


RemoteCall: TypeAlias = Callable[[str, "dict[str, Any]"], Awaitable["Mapping[str, Any]"]]
"""Sends one request: ``(operation_name, camelCase_payload) -> response``."""
