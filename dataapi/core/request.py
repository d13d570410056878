"""Request assembly and batch planning.

A statement whose processed parameters start with a nested list is a batch:
it is sent with ``BatchExecuteStatement`` and ``parameterSets``. Anything else
goes through ``ExecuteStatement`` with ``parameters``.
"""

from collections.abc import Mapping, Sequence
from typing import Any, Final, Optional

from dataapi.config import DataAPIConfig
from dataapi.exceptions import ParameterError
from dataapi.parameters.core import ProcessedStatement
from dataapi.utils.text import camelize, snake_case

__all__ = (
    "BATCH_EXECUTE_STATEMENT",
    "EXECUTE_STATEMENT",
    "REQUEST_OPTION_TYPES",
    "StatementRequest",
    "build_request",
    "is_batch",
    "normalize_option_keys",
    "validate_request_options",
)

EXECUTE_STATEMENT: Final = "execute_statement"
BATCH_EXECUTE_STATEMENT: Final = "batch_execute_statement"

REQUEST_OPTION_TYPES: Final[dict[str, tuple[type, str]]] = {
    "resource_arn": (str, "a string"),
    "secret_arn": (str, "a string"),
    "schema": (str, "a string"),
    "transaction_id": (str, "a string"),
    "continue_after_timeout": (bool, "a boolean"),
    "include_result_metadata": (bool, "a boolean"),
    "result_set_options": (Mapping, "an object"),
}
"""Per-call options copied into the outgoing request, with their expected types."""

# BatchExecuteStatement rejects the row-level result options.
_BATCH_EXCLUDED_OPTIONS: Final = frozenset({"continue_after_timeout", "include_result_metadata", "result_set_options"})


def is_batch(parameters: "Sequence[Any]") -> bool:
    """Return True when ``parameters`` is a list of rows."""
    return len(parameters) > 0 and isinstance(parameters[0], list)


def normalize_option_keys(options: "Mapping[str, Any]") -> "dict[str, Any]":
    """Return ``options`` with snake_case keys (``hydrateColumnNames`` -> ``hydrate_column_names``)."""
    return {snake_case(key): value for key, value in options.items()}


def validate_request_options(options: "Mapping[str, Any]") -> "dict[str, Any]":
    """Pick and type-check the request pass-through options.

    Raises:
        ParameterError: If an option has the wrong type.

    Returns:
        The pass-through options that were set.
    """
    selected: dict[str, Any] = {}
    for name, (expected, description) in REQUEST_OPTION_TYPES.items():
        value = options.get(name)
        if value is None:
            continue
        if not isinstance(value, expected) or (expected is not bool and isinstance(value, bool)):
            msg = f"'{camelize(name)}' must be {description}."
            raise ParameterError(msg)
        selected[name] = dict(value) if isinstance(value, Mapping) else value
    return selected


class StatementRequest:
    """Remote operation name plus its camelCase request payload."""

    __slots__ = ("is_batch", "operation", "payload")

    def __init__(self, operation: str, payload: "dict[str, Any]", is_batch: bool = False) -> None:
        self.operation = operation
        self.payload = payload
        self.is_batch = is_batch

    @property
    def parameter_count(self) -> int:
        parameters = self.payload.get("parameterSets") or self.payload.get("parameters") or []
        return len(parameters)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(operation={self.operation!r}, payload={self.payload!r})"


def build_request(
    config: DataAPIConfig,
    statement: ProcessedStatement,
    *,
    database: Optional[str],
    hydrate: bool,
    options: "Optional[Mapping[str, Any]]" = None,
) -> StatementRequest:
    """Assemble the execute or batch-execute request for ``statement``.

    Args:
        config: Client configuration; a transaction id set here overrides any per-call one.
        statement: Processed SQL and encoded parameters.
        database: Database to run against, if any.
        hydrate: Whether rows will be keyed by column label. Forces result
            metadata on single statements.
        options: Validated pass-through options (snake_case keys).

    Returns:
        The request to send.
    """
    batch = is_batch(statement.parameters)
    fields: dict[str, Any] = {"resource_arn": config.resource_arn, "secret_arn": config.secret_arn}
    for name, value in (options or {}).items():
        if batch and name in _BATCH_EXCLUDED_OPTIONS:
            continue
        fields[name] = value

    if database is not None:
        fields["database"] = database
    fields["sql"] = statement.sql
    if statement.parameters:
        fields["parameter_sets" if batch else "parameters"] = statement.parameters
    if hydrate and not batch:
        fields["include_result_metadata"] = True
    if config.transaction_id:
        fields["transaction_id"] = config.transaction_id

    payload = {camelize(name): value for name, value in fields.items()}
    return StatementRequest(BATCH_EXECUTE_STATEMENT if batch else EXECUTE_STATEMENT, payload, batch)
