"""Dialect-correct identifier quoting for ``::name`` substitutions."""

import re
from typing import Any, Final

from sqlglot import exp

from dataapi.config import Engine
from dataapi.exceptions import ParameterError

__all__ = ("escape_identifier", "inject_cast", "substitute_identifier")

_PLACEHOLDER_TAIL: Final = re.compile(r":\w+$")


def escape_identifier(value: Any, engine: Engine) -> str:
    """Quote ``value`` as an identifier for ``engine``.

    MySQL names are split on ``.`` and each part is back-quoted
    (db.tbl becomes `db`.`tbl`). PostgreSQL names are double-quoted
    as a single identifier.

    Args:
        value: The identifier text.
        engine: Target engine.

    Raises:
        ParameterError: If ``value`` is not a non-empty string.

    Returns:
        The quoted identifier.
    """
    if not isinstance(value, str) or not value:
        msg = f"Identifier value must be a non-empty string, got {value!r}"
        raise ParameterError(msg)

    parts = value.split(".") if engine is Engine.MYSQL else [value]
    return ".".join(exp.to_identifier(part, quoted=True).sql(dialect=engine.sqlglot_dialect) for part in parts)


def substitute_identifier(sql: str, name: str, value: Any, engine: Engine) -> str:
    """Replace every ``::name`` identifier token in ``sql`` with the quoted ``value``.

    A ``::name`` that ends a ``:placeholder`` is a cast suffix and is left alone.
    """
    escaped = escape_identifier(value, engine)
    pattern = re.compile(rf"::{re.escape(name)}\b")

    def _replace(match: "re.Match[str]") -> str:
        if _PLACEHOLDER_TAIL.search(sql, 0, match.start()):
            return match.group()
        return escaped

    return pattern.sub(_replace, sql)


def inject_cast(sql: str, name: str, cast: str, engine: Engine) -> str:
    """Annotate every ``:name`` placeholder in ``sql`` with an explicit type cast.

    PostgreSQL gets ``:name::type``; MySQL gets ``CAST(:name AS type)``.
    Placeholders that already carry a ``::`` suffix are not cast again.
    """
    pattern = re.compile(rf"(?<!:):{re.escape(name)}\b(?!::)")
    if engine is Engine.PG:
        replacement = f":{name}::{cast}"
    else:
        replacement = f"CAST(:{name} AS {cast})"
    return pattern.sub(lambda _: replacement, sql)
