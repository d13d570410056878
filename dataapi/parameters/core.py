"""Parameter processing engine.

Walks normalized parameters against the scanned template, rewrites the SQL
for casts and identifiers, and encodes every placeholder value.
"""

from typing import Optional, Union

from mypy_extensions import mypyc_attr

from dataapi.config import Engine, FormatOptions
from dataapi.core.identifiers import inject_cast, substitute_identifier
from dataapi.core.type_converter import ParameterEncoder
from dataapi.parameters.converter import NormalizedParameters
from dataapi.parameters.types import SqlTemplate, TokenKind
from dataapi.typing import EncodedParameter

__all__ = ("EncodedParameters", "ParameterProcessor", "ProcessedStatement")

EncodedParameters = list[Union[EncodedParameter, "EncodedParameters"]]


class ProcessedStatement:
    """Rewritten SQL plus its encoded parameters (one nested list per batch row)."""

    __slots__ = ("parameters", "sql")

    def __init__(self, sql: str, parameters: EncodedParameters) -> None:
        self.sql = sql
        self.parameters = parameters

    def __repr__(self) -> str:
        return f"{type(self).__name__}(sql={self.sql!r}, parameters={self.parameters!r})"


@mypyc_attr(allow_interpreted_subclasses=False)
class ParameterProcessor:
    """Central parameter processing engine.

    SQL is only rewritten while processing the first row. Identifiers are
    structural, so later batch rows contribute values for placeholders only.
    Parameters whose names do not occur in the template are dropped.
    """

    __slots__ = ("encoder", "engine")

    def __init__(self, engine: Engine = Engine.MYSQL, format_options: Optional[FormatOptions] = None) -> None:
        self.engine = engine
        self.encoder = ParameterEncoder(engine, format_options)

    def process(self, template: SqlTemplate, params: NormalizedParameters) -> ProcessedStatement:
        """Encode ``params`` and rewrite ``template.sql``.

        Args:
            template: Scanned SQL.
            params: Normalized parameters.

        Raises:
            ParameterError: If an identifier value is not a string.
            ParameterTypeError: If a value cannot be encoded.

        Returns:
            The statement ready for request assembly.
        """
        encoded, sql = self._process(template, template.sql, params, 0)
        return ProcessedStatement(sql, encoded)

    def _process(
        self, template: SqlTemplate, sql: str, params: NormalizedParameters, row: int
    ) -> "tuple[EncodedParameters, str]":
        encoded: EncodedParameters = []

        for param in params:
            if isinstance(param, list):
                nested, rewritten = self._process(template, sql, param, row)
                if row == 0:
                    sql = rewritten
                    row += 1
                encoded.append(nested)
                continue

            kind = template.kind(param.name)
            if kind is TokenKind.NAMED_PLACEHOLDER:
                if param.cast and row == 0:
                    sql = inject_cast(sql, param.name, param.cast, self.engine)
                encoded.append(self.encoder.encode(param.name, param.value))
            elif kind is TokenKind.NAMED_IDENTIFIER and row == 0:
                sql = substitute_identifier(sql, param.name, param.value, self.engine)

        return encoded, sql

