"""Type encoding for bound parameters.

Every Python value bound to a placeholder is mapped to exactly one protocol
type tag (``stringValue``, ``longValue`` ...) and, optionally, a type hint
that tells the service how to read an ambiguous string. Dispatch is by exact
type first and then by MRO, through :class:`~dataapi.utils.dispatch.TypeDispatcher`.
The effective priority is:

string, boolean, integer number, float number, null, date/time, binary,
pre-encoded passthrough; anything else is rejected.
"""

import datetime
import math
import re
from collections.abc import Mapping
from decimal import Decimal
from typing import Any, Callable, Final, Optional, Union
from uuid import UUID

from dataapi.config import Engine, FormatOptions
from dataapi.exceptions import ParameterTypeError
from dataapi.typing import SUPPORTED_TYPES, EncodedParameter
from dataapi.utils.dispatch import TypeDispatcher
from dataapi.utils.serializers import is_json_document

__all__ = (
    "PASSTHROUGH",
    "ParameterEncoder",
    "TypeHintDetector",
    "format_from_timestamp",
    "format_param",
    "format_time",
    "format_to_timestamp",
    "get_type",
    "get_type_hint",
)

PASSTHROUGH: Final = None
"""Type tag of a value that is already in wire form and is copied verbatim."""

_UUID_REGEX: Final = re.compile(r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$")
_DATE_REGEX: Final = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_TIME_REGEX: Final = re.compile(r"^\d{2}:\d{2}:\d{2}(\.\d+)?$")
_DECIMAL_REGEX: Final = re.compile(r"^-?\d+\.\d+$")

# YYYY-MM-DD[ HH:MM:SS[.F...]][offset]
_TIMESTAMP_REGEX: Final = re.compile(
    r"^(?P<year>\d{4})-(?P<month>\d{2})-(?P<day>\d{2})"
    r"(?:(?P<sep>[ T])(?P<hour>\d{2}):(?P<minute>\d{2}):(?P<second>\d{2})(?:\.(?P<fraction>\d+))?)?"
    r"\s*(?P<offset>Z|[+-]\d{2}(?::?\d{2})?)?$"
)

_Encoded = tuple[Optional[str], Any, Optional[str]]
_EncoderFn = Callable[[Any, Engine, FormatOptions], _Encoded]


class TypeHintDetector:
    """Detects the type hint of string values by pattern.

    Patterns are tried in order: UUID, date, time, JSON document, decimal.
    String hints are only produced for PostgreSQL; MySQL has no use for them.
    """

    __slots__ = ()

    def detect_type(self, value: str) -> Optional[str]:
        if _UUID_REGEX.match(value):
            return "UUID"
        if _DATE_REGEX.match(value):
            return "DATE"
        if _TIME_REGEX.match(value):
            return "TIME"
        if is_json_document(value):
            return "JSON"
        if _DECIMAL_REGEX.match(value):
            return "DECIMAL"
        return None

    def string_hint(self, value: str, engine: Engine) -> Optional[str]:
        if engine is not Engine.PG:
            return None
        return self.detect_type(value)


_detector: Final = TypeHintDetector()


def format_to_timestamp(value: datetime.datetime, treat_as_local_date: bool = False) -> str:
    """Render ``value`` as ``YYYY-MM-DD HH:MM:SS[.fff]``.

    Aware values are converted to UTC, or to the local zone when
    ``treat_as_local_date`` is set. Naive values are rendered as they are, so
    in the default UTC mode a naive value is taken to be UTC wall-clock time
    and reads back as the same time with ``tzinfo=timezone.utc``.
    Milliseconds are emitted only when nonzero.
    """
    if value.tzinfo is not None:
        value = value.astimezone() if treat_as_local_date else value.astimezone(datetime.timezone.utc)
    millis = value.microsecond // 1000
    fraction = f".{millis:03d}" if millis > 0 else ""
    return (
        f"{value.year:04d}-{value.month:02d}-{value.day:02d} "
        f"{value.hour:02d}:{value.minute:02d}:{value.second:02d}{fraction}"
    )


def format_time(value: datetime.time) -> str:
    millis = value.microsecond // 1000
    fraction = f".{millis:03d}" if millis > 0 else ""
    return f"{value.hour:02d}:{value.minute:02d}:{value.second:02d}{fraction}"


def _parse_offset(offset: str) -> datetime.timezone:
    if offset == "Z":
        return datetime.timezone.utc
    sign = -1 if offset[0] == "-" else 1
    digits = offset[1:].replace(":", "")
    hours = int(digits[:2])
    minutes = int(digits[2:4]) if len(digits) > 2 else 0
    return datetime.timezone(sign * datetime.timedelta(hours=hours, minutes=minutes))


def format_from_timestamp(value: str, treat_as_local_date: bool = False) -> "Union[datetime.datetime, str]":
    """Parse a timestamp string returned by the service.

    A bare ``YYYY-MM-DD[ HH:MM:SS[.F]]`` value (space separated, no offset) is
    read as UTC unless ``treat_as_local_date`` is set, in which case a naive
    local wall-clock datetime is returned. Values carrying an offset keep it.
    Strings that are not timestamps are returned unchanged.
    """
    match = _TIMESTAMP_REGEX.match(value)
    if match is None:
        return value

    fraction = match.group("fraction") or ""
    microsecond = int(fraction[:6].ljust(6, "0")) if fraction else 0
    offset = match.group("offset")
    bare = offset is None and match.group("sep") in {None, " "}

    tzinfo: Optional[datetime.tzinfo] = None
    if offset is not None:
        tzinfo = _parse_offset(offset)
    elif bare and not treat_as_local_date:
        tzinfo = datetime.timezone.utc

    try:
        return datetime.datetime(
            int(match.group("year")),
            int(match.group("month")),
            int(match.group("day")),
            int(match.group("hour") or 0),
            int(match.group("minute") or 0),
            int(match.group("second") or 0),
            microsecond,
            tzinfo=tzinfo,
        )
    except ValueError:
        return value


def _encode_string(value: str, engine: Engine, _: FormatOptions) -> _Encoded:
    return "stringValue", value, _detector.string_hint(value, engine)


def _encode_bool(value: bool, *_: Any) -> _Encoded:
    return "booleanValue", value, None


def _encode_int(value: int, *_: Any) -> _Encoded:
    return "longValue", value, None


def _encode_float(value: float, *_: Any) -> _Encoded:
    if math.isnan(value):
        return _unsupported(value)
    if math.isfinite(value) and value.is_integer():
        return "longValue", int(value), None
    return "doubleValue", value, None


def _encode_none(*_: Any) -> _Encoded:
    return "isNull", True, None


def _encode_datetime(value: datetime.datetime, _: Engine, format_options: FormatOptions) -> _Encoded:
    return "stringValue", format_to_timestamp(value, format_options.treat_as_local_date), "TIMESTAMP"


def _encode_date(value: datetime.date, *_: Any) -> _Encoded:
    return "stringValue", value.isoformat(), "DATE"


def _encode_time(value: datetime.time, *_: Any) -> _Encoded:
    return "stringValue", format_time(value), "TIME"


def _encode_decimal(value: Decimal, *_: Any) -> _Encoded:
    return "stringValue", str(value), "DECIMAL"


def _encode_uuid(value: UUID, engine: Engine, _: FormatOptions) -> _Encoded:
    return "stringValue", str(value), "UUID" if engine is Engine.PG else None


def _encode_binary(value: "Union[bytes, bytearray, memoryview]", *_: Any) -> _Encoded:
    return "blobValue", bytes(value), None


def _encode_mapping(value: "Mapping[str, Any]", *_: Any) -> _Encoded:
    if len(value) == 1 and next(iter(value)) in SUPPORTED_TYPES:
        return PASSTHROUGH, dict(value), None
    return _unsupported(value)


def _unsupported(_: Any) -> _Encoded:
    msg = "unsupported"
    raise _UnsupportedValue(msg)


class _UnsupportedValue(Exception):
    pass


_ENCODERS: Final["TypeDispatcher[_EncoderFn]"] = TypeDispatcher()
_ENCODERS.register(str, _encode_string)
_ENCODERS.register(bool, _encode_bool)
_ENCODERS.register(int, _encode_int)
_ENCODERS.register(float, _encode_float)
_ENCODERS.register(type(None), _encode_none)
_ENCODERS.register(datetime.datetime, _encode_datetime)
_ENCODERS.register(datetime.date, _encode_date)
_ENCODERS.register(datetime.time, _encode_time)
_ENCODERS.register(Decimal, _encode_decimal)
_ENCODERS.register(UUID, _encode_uuid)
_ENCODERS.register(bytes, _encode_binary)
_ENCODERS.register(bytearray, _encode_binary)
_ENCODERS.register(memoryview, _encode_binary)
_ENCODERS.register(dict, _encode_mapping)


class ParameterEncoder:
    """Encodes named values into the service's typed parameter form."""

    __slots__ = ("engine", "format_options")

    def __init__(self, engine: Engine = Engine.MYSQL, format_options: Optional[FormatOptions] = None) -> None:
        self.engine = engine
        self.format_options = format_options or FormatOptions()

    def resolve(self, name: str, value: Any) -> _Encoded:
        """Return ``(type_tag, wire_value, type_hint)`` for ``value``.

        Raises:
            ParameterTypeError: If the value has no supported type tag.
        """
        encoder = _ENCODERS.get(value)
        if encoder is None and isinstance(value, Mapping):
            encoder = _encode_mapping
        if encoder is None:
            raise ParameterTypeError(name)
        try:
            return encoder(value, self.engine, self.format_options)
        except _UnsupportedValue:
            raise ParameterTypeError(name) from None

    def encode(self, name: str, value: Any) -> EncodedParameter:
        """Encode one named value.

        Args:
            name: Parameter name.
            value: Python value.

        Returns:
            ``{"name": ..., "value": {<tag>: <value>}[, "typeHint": ...]}``, or
            ``{"name": ..., "value": <value>}`` for a pre-encoded mapping.
        """
        type_tag, wire_value, type_hint = self.resolve(name, value)
        wire = wire_value if type_tag is PASSTHROUGH else {type_tag: wire_value}
        encoded: EncodedParameter = {"name": name, "value": wire}
        if type_hint is not None:
            encoded["typeHint"] = type_hint
        return encoded


def get_type(value: Any, engine: Engine = Engine.MYSQL) -> Optional[str]:
    """Return the type tag for ``value`` (``None`` for a pre-encoded mapping).

    Raises:
        ParameterTypeError: If the value has no supported type tag.
    """
    return ParameterEncoder(engine).resolve("value", value)[0]


def get_type_hint(value: Any, engine: Engine = Engine.MYSQL) -> Optional[str]:
    """Return the type hint the encoder attaches to ``value``, if any."""
    return ParameterEncoder(engine).resolve("value", value)[2]


def format_param(
    name: str, value: Any, format_options: Optional[FormatOptions] = None, engine: Engine = Engine.MYSQL
) -> EncodedParameter:
    """Encode one named value with a throwaway :class:`ParameterEncoder`."""
    return ParameterEncoder(engine, format_options).encode(name, value)
