from typing import Any

import orjson

__all__ = ("decode_json", "encode_json")


def _type_to_string(value: Any) -> str:  # pragma: no cover
    try:
        return str(value)
    except Exception as exc:
        raise TypeError from exc


def encode_json(data: Any, *, as_bytes: bool = False) -> "str | bytes":
    encoded = orjson.dumps(data, default=_type_to_string, option=orjson.OPT_NAIVE_UTC)
    return encoded if as_bytes else encoded.decode("utf-8")


def decode_json(data: "str | bytes", *, decode_bytes: bool = True) -> Any:
    if isinstance(data, bytes) and not decode_bytes:
        return data
    return orjson.loads(data)
