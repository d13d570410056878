"""Core parameter types used by the scanner, normalizer and encoder."""

from collections.abc import Iterator
from enum import Enum
from typing import Any, Optional

__all__ = ("NamedParameter", "SqlTemplate", "TokenKind")


class TokenKind(str, Enum):
    """Classification of a colon-prefixed token found in SQL text."""

    NAMED_PLACEHOLDER = "n_ph"
    NAMED_IDENTIFIER = "n_id"

    def __str__(self) -> str:
        return self.value


class SqlTemplate:
    """Raw SQL text plus the distinct tokens discovered in it.

    Token order is first-appearance order. A name seen more than once keeps its
    first classification.
    """

    __slots__ = ("sql", "tokens")

    def __init__(self, sql: str, tokens: "Optional[dict[str, TokenKind]]" = None) -> None:
        self.sql = sql
        self.tokens: dict[str, TokenKind] = tokens if tokens is not None else {}

    def __contains__(self, name: object) -> bool:
        return name in self.tokens

    def __len__(self) -> int:
        return len(self.tokens)

    def __iter__(self) -> "Iterator[str]":
        return iter(self.tokens)

    def kind(self, name: str) -> Optional[TokenKind]:
        return self.tokens.get(name)

    @property
    def placeholders(self) -> "list[str]":
        """Placeholder names in first-appearance order."""
        return [name for name, kind in self.tokens.items() if kind is TokenKind.NAMED_PLACEHOLDER]

    @property
    def identifiers(self) -> "list[str]":
        """Identifier names in first-appearance order."""
        return [name for name, kind in self.tokens.items() if kind is TokenKind.NAMED_IDENTIFIER]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, type(self)):
            return False
        return self.sql == other.sql and self.tokens == other.tokens

    def __hash__(self) -> int:
        return hash((self.sql, tuple(self.tokens.items())))

    def __repr__(self) -> str:
        return f"{type(self).__name__}(sql={self.sql!r}, tokens={self.tokens!r})"


class NamedParameter:
    """A single ``name``/``value`` binding with an optional type cast."""

    __slots__ = ("cast", "name", "value")

    def __init__(self, name: str, value: Any, cast: Optional[str] = None) -> None:
        self.name = name
        self.value = value
        self.cast = cast

    @classmethod
    def from_mapping(cls, data: "dict[str, Any]") -> "NamedParameter":
        return cls(data["name"], data["value"], data.get("cast"))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, type(self)):
            return False
        return self.name == other.name and self.value == other.value and self.cast == other.cast

    def __hash__(self) -> int:
        try:
            value_hash = hash(self.value)
        except TypeError:
            value_hash = hash(repr(self.value))
        return hash((self.name, value_hash, self.cast))

    def __repr__(self) -> str:
        if self.cast is None:
            return f"{type(self).__name__}(name={self.name!r}, value={self.value!r})"
        return f"{type(self).__name__}(name={self.name!r}, value={self.value!r}, cast={self.cast!r})"
