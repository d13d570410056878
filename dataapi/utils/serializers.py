"""JSON serialization utilities for dataapi.

Re-exports the JSON encoding and decoding functions from the core
serialization module for convenient access.
"""

from typing import Any, Literal, overload

from dataapi._serialization import decode_json, encode_json
from dataapi.exceptions import SerializationError


@overload
def to_json(data: Any, *, as_bytes: Literal[False] = ...) -> str: ...


@overload
def to_json(data: Any, *, as_bytes: Literal[True]) -> bytes: ...


def to_json(data: Any, *, as_bytes: bool = False) -> "str | bytes":
    """Encode data to JSON string or bytes.

    Args:
        data: Data to encode.
        as_bytes: Whether to return bytes instead of string.

    Returns:
        JSON string or bytes representation based on as_bytes parameter.
    """
    return encode_json(data, as_bytes=as_bytes)


def from_json(data: "str | bytes") -> Any:
    """Decode JSON string or bytes to Python object.

    Args:
        data: JSON string or bytes to decode.

    Raises:
        SerializationError: If the payload is not valid JSON.

    Returns:
        Decoded Python object.
    """
    try:
        return decode_json(data)
    except ValueError as exc:
        msg = f"Could not decode JSON value: {data!r}"
        raise SerializationError(msg) from exc


def is_json_document(value: str) -> bool:
    """Check whether ``value`` is JSON object or array text."""
    stripped = value.strip()
    if not stripped or stripped[0] not in "{[":
        return False
    try:
        decoded = decode_json(stripped)
    except ValueError:
        return False
    return isinstance(decoded, (dict, list))


__all__ = ("from_json", "is_json_document", "to_json")
