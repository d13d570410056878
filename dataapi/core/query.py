"""Statement execution pipeline.

scan SQL -> normalize parameters -> encode and rewrite -> plan request ->
send with retry -> decode result.
"""

import logging
from collections.abc import Mapping, Sequence
from typing import Any, Final, Optional

from dataapi.config import DataAPIConfig, FormatOptions
from dataapi.core.request import build_request, normalize_option_keys, validate_request_options
from dataapi.core.result import QueryResult, format_results
from dataapi.core.retry import with_retry
from dataapi.exceptions import ParameterError
from dataapi.parameters.converter import normalize_params, parse_params
from dataapi.parameters.core import ParameterProcessor
from dataapi.parameters.validator import scan_template
from dataapi.typing import RemoteCall
from dataapi.utils.logging import get_logger, log_with_context
from dataapi.utils.text import camelize

__all__ = (
    "QUERY_OPTIONS",
    "execute_query",
    "flatten_args",
    "merge_options",
    "parse_database",
    "parse_format_options",
    "parse_hydrate",
    "parse_sql",
    "query_options",
)

logger = get_logger("core.query")

QUERY_OPTIONS: Final = frozenset({
    "sql",
    "parameters",
    "database",
    "hydrate_column_names",
    "format_options",
    "continue_after_timeout",
    "include_result_metadata",
    "resource_arn",
    "result_set_options",
    "schema",
    "secret_arn",
    "transaction_id",
})

def flatten_args(args: "Sequence[Any]") -> "list[Any]":
    """Flatten ``([sql, params],)`` style calls into ``[sql, params]``."""
    if not args or not isinstance(args[0], (list, tuple)):
        return list(args)
    flattened: list[Any] = []
    for arg in args:
        if isinstance(arg, (list, tuple)):
            flattened.extend(arg)
        else:
            flattened.append(arg)
    return flattened


def merge_options(args: "Sequence[Any]", options: "Mapping[str, Any]") -> "list[Any]":
    """Fold keyword options into the leading options mapping of ``args``."""
    if not options:
        return list(args)
    first = args[0] if args else None
    rest = list(args[1:])
    if isinstance(first, Mapping):
        return [{**first, **options}, *rest]
    if isinstance(first, str):
        return [{"sql": first, **options}, *rest]
    return [dict(options), *list(args)]


def query_options(args: "Sequence[Any]") -> "dict[str, Any]":
    """Return the snake_case options mapping of a call (empty for ``(sql, params)`` calls).

    Raises:
        ParameterError: If an option name is not recognized.
    """
    first = args[0] if args else None
    if not isinstance(first, Mapping):
        return {}
    options = normalize_option_keys(first)
    unknown = sorted(set(options) - QUERY_OPTIONS)
    if unknown:
        msg = f"Unknown query option(s): {', '.join(unknown)}"
        raise ParameterError(msg)
    return options


def parse_sql(args: "Sequence[Any]") -> str:
    """Return the SQL text of a call.

    Raises:
        ParameterError: If no SQL string was supplied.
    """
    first = args[0] if args else None
    if isinstance(first, str):
        return first
    if isinstance(first, Mapping) and isinstance(first.get("sql"), str):
        return first["sql"]
    msg = "No 'sql' statement provided."
    raise ParameterError(msg)


def parse_database(config: DataAPIConfig, options: "Mapping[str, Any]") -> Optional[str]:
    """Resolve the database of a call. Inside a transaction the transaction's database wins."""
    if config.transaction_id:
        return config.database
    database = options.get("database")
    if isinstance(database, str):
        return database
    if database:
        msg = "'database' must be a string."
        raise ParameterError(msg)
    return config.database


def parse_hydrate(config: DataAPIConfig, options: "Mapping[str, Any]") -> bool:
    hydrate = options.get("hydrate_column_names")
    if isinstance(hydrate, bool):
        return hydrate
    if hydrate is not None:
        msg = "'hydrateColumnNames' must be a boolean."
        raise ParameterError(msg)
    return config.hydrate_column_names


def parse_format_options(config: DataAPIConfig, options: "Mapping[str, Any]") -> FormatOptions:
    """Merge per-call format options over the configured ones.

    Raises:
        ParameterError: If the options are not a mapping or a flag is not a boolean.
    """
    value = options.get("format_options")
    if value is None:
        return config.format_options
    if isinstance(value, FormatOptions):
        return value
    if not isinstance(value, Mapping):
        msg = "'formatOptions' must be an object."
        raise ParameterError(msg)

    overrides = normalize_option_keys(value)
    flags: dict[str, bool] = {}
    for name in ("deserialize_date", "treat_as_local_date"):
        flag = overrides.get(name)
        if isinstance(flag, bool):
            flags[name] = flag
        elif flag is not None:
            msg = f"'formatOptions.{camelize(name)}' must be a boolean."
            raise ParameterError(msg)
        else:
            flags[name] = getattr(config.format_options, name)
    return FormatOptions(**flags)


async def execute_query(
    config: DataAPIConfig,
    send: RemoteCall,
    *args: Any,
    **options: Any,
) -> QueryResult:
    """Run one statement.

    Accepts ``(sql)``, ``(sql, params)``, ``({"sql": ..., "parameters": ..., **options})``,
    ``([sql, params])`` and keyword options.

    Args:
        config: Client (or transaction) configuration.
        send: Coroutine that sends one request to the service.
        *args: Call arguments.
        **options: Query options (``database``, ``hydrate_column_names`` ...).

    Raises:
        ParameterError: If the arguments are invalid. Raised before any request is sent.

    Returns:
        The decoded result.
    """
    call_args = merge_options(flatten_args(args), options)
    sql = parse_sql(call_args)
    query_opts = query_options(call_args)
    template = scan_template(sql)
    hydrate = parse_hydrate(config, query_opts)
    format_options = parse_format_options(config, query_opts)
    database = parse_database(config, query_opts)
    request_options = validate_request_options(query_opts)

    parameters = normalize_params(parse_params(call_args), template)
    statement = ParameterProcessor(config.engine, format_options).process(template, parameters)
    request = build_request(config, statement, database=database, hydrate=hydrate, options=request_options)

    log_with_context(
        logger,
        logging.DEBUG,
        "Executing statement",
        sql=statement.sql,
        operation=request.operation,
        is_batch=request.is_batch,
        parameter_count=request.parameter_count,
    )

    response = await with_retry(
        lambda: send(request.operation, request.payload), config.retry, operation=request.operation
    )

    include_meta = query_opts.get("include_result_metadata") is True
    return format_results(response, hydrate, include_meta, format_options)
