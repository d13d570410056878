"""Parameter normalization.

Turns the caller's parameter argument into a uniform list of
:class:`NamedParameter` values. A nested list is one batch row.
"""

from collections.abc import Mapping, Sequence
from typing import Any, Final, Optional, Union

from dataapi.exceptions import ParameterError
from dataapi.parameters.types import NamedParameter, SqlTemplate

__all__ = (
    "NormalizedParameters",
    "ParameterConverter",
    "is_named_parameter",
    "normalize_params",
    "parse_params",
    "split_params",
)

NormalizedParameters = list[Union[NamedParameter, "NormalizedParameters"]]

_NAMED_KEYS: Final = frozenset({"name", "value"})
_NAMED_CAST_KEYS: Final = frozenset({"name", "value", "cast"})
_ROW_TYPES: Final = (list, tuple)


def _is_parameter_container(value: Any) -> bool:
    return isinstance(value, (Mapping, NamedParameter))


def parse_params(args: "Sequence[Any]") -> "list[Any]":
    """Extract the raw parameter argument from the positional call arguments.

    Accepts ``(sql, params)`` and ``({"sql": ..., "parameters": params},)``.
    A mapping is wrapped into a one-element list; a list is used as-is.

    Raises:
        ParameterError: If parameters are given but are neither a mapping nor a list.

    Returns:
        The raw parameter list (empty when none were supplied).
    """
    first = args[0] if args else None
    from_options = first.get("parameters") if isinstance(first, Mapping) else None

    if isinstance(from_options, _ROW_TYPES):
        return list(from_options)
    if _is_parameter_container(from_options):
        return [from_options]

    second = args[1] if len(args) > 1 else None
    if isinstance(second, _ROW_TYPES):
        return list(second)
    if _is_parameter_container(second):
        return [second]

    if from_options is not None:
        msg = "'parameters' must be an object or array"
        raise ParameterError(msg)
    if second is not None:
        msg = "Parameters must be an object or array"
        raise ParameterError(msg)
    return []


def is_named_parameter(value: Any) -> bool:
    """Return True for a ``{name, value}`` or ``{name, value, cast}`` record."""
    if isinstance(value, NamedParameter):
        return True
    if not isinstance(value, Mapping):
        return False
    keys = frozenset(value)
    return keys in {_NAMED_KEYS, _NAMED_CAST_KEYS}


def split_params(values: "Mapping[str, Any]") -> "list[NamedParameter]":
    """Explode a mapping into one named parameter per key, in key order."""
    return [NamedParameter(str(name), value) for name, value in values.items()]


class ParameterConverter:
    """Normalizes caller parameters against a scanned template.

    Positional scalar values in a row are bound, in order, to the template's
    distinct placeholder names.
    """

    __slots__ = ()

    def normalize(self, params: "Sequence[Any]", template: Optional[SqlTemplate] = None) -> NormalizedParameters:
        """Normalize a raw parameter list.

        Args:
            params: Raw parameters as returned by :func:`parse_params`.
            template: Scanned SQL, required to bind positional values.

        Raises:
            ParameterError: If positional values cannot be bound.

        Returns:
            Named parameters, with one nested list per batch row.
        """
        sql = template.sql if template is not None else None
        placeholders = template.placeholders if template is not None else []
        normalized: NormalizedParameters = []
        position = 0

        for param in params:
            if isinstance(param, _ROW_TYPES):
                normalized.append(self.normalize(param, template))
            elif isinstance(param, NamedParameter):
                normalized.append(param)
            elif is_named_parameter(param):
                normalized.append(NamedParameter.from_mapping(dict(param)))
            elif isinstance(param, Mapping):
                normalized.extend(split_params(param))
            else:
                if position >= len(placeholders):
                    msg = f"Too many positional parameters: {len(placeholders)} placeholder(s) available"
                    raise ParameterError(msg, sql)
                normalized.append(NamedParameter(placeholders[position], param))
                position += 1

        return normalized


_converter: Final = ParameterConverter()


def normalize_params(params: "Sequence[Any]", template: Optional[SqlTemplate] = None) -> NormalizedParameters:
    """Normalize ``params`` with the module-level converter."""
    return _converter.normalize(params, template)
