"""Client entry points.

:func:`init` builds a :class:`DataAPIClient` from keyword settings. The
client owns an ``rds-data`` service client (boto3 by default) and exposes
:meth:`~DataAPIClient.query`, :meth:`~DataAPIClient.transaction` and thin
wrappers over the service's control operations.
"""

import logging
from collections.abc import Mapping
from typing import Any, Final, Optional

import boto3

from dataapi.config import DataAPIConfig, Engine, coerce_format_options, coerce_retry_config
from dataapi.core.query import execute_query
from dataapi.core.result import QueryResult
from dataapi.core.retry import with_retry
from dataapi.exceptions import ImproperConfigurationError
from dataapi.transaction import Transaction
from dataapi.utils.logging import get_logger, log_with_context
from dataapi.utils.sync_tools import ensure_async_
from dataapi.utils.text import camelize, snake_case

__all__ = ("SERVICE_NAME", "DataAPIClient", "init")

logger = get_logger("client")

SERVICE_NAME: Final = "rds-data"

_INIT_PARAMETERS: Final = frozenset({
    "resource_arn",
    "secret_arn",
    "database",
    "engine",
    "hydrate_column_names",
    "format_options",
    "retry",
    "retry_config",
    "options",
    "client",
    "region",
})
_DEPRECATED_PARAMETERS: Final = frozenset({"keep_alive", "ssl_enabled"})


class DataAPIClient:
    """Runs statements against an Aurora cluster through the RDS Data API."""

    __slots__ = ("_client", "config")

    def __init__(self, config: DataAPIConfig, client: Any = None) -> None:
        """Initialize the client.

        Args:
            config: Validated client configuration.
            client: An ``rds-data`` client. Methods may be blocking (boto3) or
                coroutine functions. Built from ``config.client_options`` on first use when omitted.
        """
        self.config = config
        self._client = client

    @property
    def client(self) -> Any:
        """The underlying ``rds-data`` client."""
        if self._client is None:
            self._client = boto3.client(SERVICE_NAME, **dict(self.config.client_options))
        return self._client

    async def send(self, operation: str, payload: "dict[str, Any]") -> "Mapping[str, Any]":
        """Call ``operation`` (a snake_case client method name) with ``payload``."""
        method = getattr(self.client, operation)
        return await ensure_async_(method)(**payload)

    async def query(self, *args: Any, **options: Any) -> QueryResult:
        """Run one statement.

        Examples::

            await client.query("SELECT * FROM users WHERE id = :id", {"id": 3})
            await client.query("SELECT ::col FROM users", {"col": "email"})
            await client.query("INSERT INTO t (v) VALUES (:v)", [[{"v": 1}], [{"v": 2}]])
            await client.query(sql="SELECT 1", database="analytics", hydrate_column_names=False)

        Raises:
            ParameterError: If the arguments are invalid.

        Returns:
            The decoded result.
        """
        return await execute_query(self.config, self.send, *args, **options)

    def transaction(self, options: "Optional[Mapping[str, Any]]" = None, **kwargs: Any) -> Transaction:
        """Start building a transaction; nothing is sent until :meth:`Transaction.commit`."""
        return Transaction(self.config, self.send, {**(options or {}), **kwargs})

    def _request(self, kwargs: "Mapping[str, Any]", *, with_database: bool) -> "dict[str, Any]":
        request = {camelize(snake_case(key)): value for key, value in kwargs.items()}
        request["resourceArn"] = request.get("resourceArn") or self.config.resource_arn
        request["secretArn"] = request.get("secretArn") or self.config.secret_arn
        if with_database:
            database = request.get("database") or self.config.database
            if database is not None:
                request["database"] = database
        return request

    async def _retried(self, operation: str, request: "dict[str, Any]") -> "Mapping[str, Any]":
        return await with_retry(lambda: self.send(operation, request), self.config.retry, operation=operation)

    async def execute_statement(self, **kwargs: Any) -> "Mapping[str, Any]":
        """Raw ``ExecuteStatement`` with ARNs and database filled in. Returns the undecoded response."""
        return await self._retried("execute_statement", self._request(kwargs, with_database=True))

    async def batch_execute_statement(self, **kwargs: Any) -> "Mapping[str, Any]":
        return await self._retried("batch_execute_statement", self._request(kwargs, with_database=True))

    async def begin_transaction(self, **kwargs: Any) -> "Mapping[str, Any]":
        return await self._retried("begin_transaction", self._request(kwargs, with_database=True))

    async def commit_transaction(self, **kwargs: Any) -> "Mapping[str, Any]":
        return await self.send("commit_transaction", self._request(kwargs, with_database=False))

    async def rollback_transaction(self, **kwargs: Any) -> "Mapping[str, Any]":
        return await self.send("rollback_transaction", self._request(kwargs, with_database=False))

    def __repr__(self) -> str:
        return f"{type(self).__name__}(engine={self.config.engine!s}, database={self.config.database!r})"


def init(**params: Any) -> DataAPIClient:
    """Create a :class:`DataAPIClient`.

    Keys may be given in snake_case or camelCase.

    Args:
        **params: ``resource_arn`` and ``secret_arn`` (required), ``database``,
            ``engine`` (``"mysql"`` or ``"pg"``, default ``"mysql"``),
            ``hydrate_column_names`` (default True), ``format_options``,
            ``retry`` (mapping, :class:`~dataapi.config.RetryConfig` or bool),
            ``options`` (keyword arguments for ``boto3.client``), ``region``
            and ``client`` (a pre-built ``rds-data`` client).

    Raises:
        ImproperConfigurationError: If a setting is missing or invalid.

    Returns:
        The client.
    """
    settings = {snake_case(key): value for key, value in params.items()}
    for name in sorted(_DEPRECATED_PARAMETERS & set(settings)):
        log_with_context(logger, logging.WARNING, f"'{name}' is deprecated and ignored", parameter=name)
        settings.pop(name)
    unknown = sorted(set(settings) - _INIT_PARAMETERS)
    if unknown:
        msg = f"Unknown client setting(s): {', '.join(unknown)}"
        raise ImproperConfigurationError(msg)

    client_options = settings.get("options")
    if client_options is None:
        client_options = {}
    elif not isinstance(client_options, Mapping):
        msg = "'options' must be a mapping"
        raise ImproperConfigurationError(msg)
    client_options = dict(client_options)
    region = settings.get("region")
    if isinstance(region, str):
        client_options["region_name"] = region

    engine = settings.get("engine")
    config = DataAPIConfig(
        resource_arn=settings.get("resource_arn"),  # type: ignore[arg-type]
        secret_arn=settings.get("secret_arn"),  # type: ignore[arg-type]
        database=settings.get("database"),
        engine=engine if engine is not None else Engine.MYSQL,
        hydrate_column_names=settings.get("hydrate_column_names", True),
        format_options=coerce_format_options(settings.get("format_options")),
        retry=coerce_retry_config(settings.get("retry", settings.get("retry_config"))),
        client_options=client_options,
    )
    return DataAPIClient(config, settings.get("client"))
