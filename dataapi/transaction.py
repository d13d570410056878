"""Queued transactions.

Statements are queued with :meth:`Transaction.query` and run one at a time
by :meth:`Transaction.commit`, between a begin and a commit call. A failing
statement rolls the transaction back and stops the queue.
"""

import inspect
import logging
from collections.abc import Mapping
from typing import Any, Callable, Optional

from dataapi.config import DataAPIConfig
from dataapi.core.query import (
    execute_query,
    parse_database,
    parse_format_options,
    parse_hydrate,
    query_options,
)
from dataapi.core.retry import with_retry
from dataapi.exceptions import TransactionError
from dataapi.typing import RemoteCall
from dataapi.utils.logging import get_logger, log_with_context
from dataapi.utils.sync_tools import ensure_async_

__all__ = ("QueryFactory", "RollbackCallback", "Transaction")

logger = get_logger("transaction")

QueryFactory = Callable[[Any, "list[Any]"], Any]
"""Builds a queued statement from the previous result and all results so far."""

RollbackCallback = Callable[[BaseException, Any], Any]
"""Receives the statement error and the rollback response (or the error the rollback call raised)."""


def _noop_rollback(error: BaseException, status: Any) -> None:
    return None


class _QueuedQuery:
    __slots__ = ("args", "factory", "options")

    def __init__(
        self,
        args: "tuple[Any, ...]" = (),
        options: "Optional[dict[str, Any]]" = None,
        factory: Optional[QueryFactory] = None,
    ) -> None:
        self.args = args
        self.options = options or {}
        self.factory = factory

    async def resolve(self, results: "list[Any]") -> "tuple[tuple[Any, ...], dict[str, Any]]":
        if self.factory is None:
            return self.args, self.options
        produced = self.factory(results[-1] if results else None, results)
        if inspect.isawaitable(produced):
            produced = await produced
        return (produced,), {}


class Transaction:
    """A sequence of statements executed atomically on :meth:`commit`.

    Example::

        results = await (
            client.transaction()
            .query("INSERT INTO users (name) VALUES (:name)", {"name": "ada"})
            .query(lambda last, _: ("UPDATE users SET ref = :id", {"id": last.insert_id}))
            .rollback(on_rollback)
            .commit()
        )
    """

    __slots__ = ("_committed", "_queries", "_rollback", "_send", "config")

    def __init__(
        self, config: DataAPIConfig, send: RemoteCall, options: "Optional[Mapping[str, Any]]" = None
    ) -> None:
        """Derive the transaction configuration from the client's.

        Args:
            config: Client configuration.
            send: Coroutine that sends one request to the service.
            options: ``database``, ``hydrate_column_names`` and ``format_options`` overrides.

        Raises:
            ParameterError: If an option is invalid.
        """
        opts = query_options([dict(options or {})])
        self.config = config.replace(
            resource_arn=opts.get("resource_arn") or config.resource_arn,
            secret_arn=opts.get("secret_arn") or config.secret_arn,
            database=parse_database(config, opts),
            hydrate_column_names=parse_hydrate(config, opts),
            format_options=parse_format_options(config, opts),
        )
        self._send = send
        self._queries: list[_QueuedQuery] = []
        self._rollback: RollbackCallback = _noop_rollback
        self._committed = False

    @property
    def committed(self) -> bool:
        return self._committed

    def query(self, *args: Any, **options: Any) -> "Transaction":
        """Queue a statement.

        Takes the same arguments as :meth:`DataAPIClient.query`, or a single
        callable ``(last_result, all_results)`` returning them (as a SQL
        string, an options mapping or a ``(sql, params)`` sequence).

        Raises:
            TransactionError: If the transaction was already committed.

        Returns:
            The transaction, for chaining.
        """
        if self._committed:
            msg = "Cannot queue a query on a committed transaction"
            raise TransactionError(msg)
        if args and callable(args[0]):
            self._queries.append(_QueuedQuery(factory=args[0]))
        else:
            self._queries.append(_QueuedQuery(args, options))
        return self

    def rollback(self, fn: RollbackCallback) -> "Transaction":
        """Register a callback run with ``(error, rollback_response)`` after an automatic rollback."""
        if callable(fn):
            self._rollback = fn
        return self

    async def commit(self) -> "list[Any]":
        """Begin, run every queued statement in order, then commit.

        Raises:
            TransactionError: If the transaction was already committed.

        Returns:
            One result per statement followed by ``{"transactionStatus": ...}``.
        """
        if self._committed:
            msg = "Transaction has already been committed"
            raise TransactionError(msg)
        self._committed = True

        begin_request: dict[str, Any] = {"resourceArn": self.config.resource_arn, "secretArn": self.config.secret_arn}
        if self.config.database is not None:
            begin_request["database"] = self.config.database
        begin = await with_retry(
            lambda: self._send("begin_transaction", begin_request), self.config.retry, operation="begin_transaction"
        )
        transaction_id = begin["transactionId"]
        log_with_context(logger, logging.DEBUG, "Transaction started", transaction_id=transaction_id)

        config = self.config.replace(transaction_id=transaction_id)
        results: list[Any] = []
        try:
            for queued in self._queries:
                args, options = await queued.resolve(results)
                results.append(await execute_query(config, self._send, *args, **options))
        except Exception as error:
            await self._roll_back(transaction_id, error)
            raise

        commit = await self._send(
            "commit_transaction",
            {"resourceArn": config.resource_arn, "secretArn": config.secret_arn, "transactionId": transaction_id},
        )
        log_with_context(
            logger,
            logging.DEBUG,
            "Transaction committed",
            transaction_id=transaction_id,
            status=commit.get("transactionStatus"),
        )
        results.append({"transactionStatus": commit.get("transactionStatus")})
        return results

    async def _roll_back(self, transaction_id: str, error: Exception) -> None:
        """Roll back after ``error`` and hand the outcome to the rollback callback.

        A failing rollback call is logged and passed to the callback; ``error``
        is what the caller of :meth:`commit` sees either way.
        """
        request = {
            "resourceArn": self.config.resource_arn,
            "secretArn": self.config.secret_arn,
            "transactionId": transaction_id,
        }
        log_with_context(
            logger, logging.DEBUG, "Rolling back transaction", transaction_id=transaction_id, error=repr(error)
        )
        status: Any
        try:
            status = await self._send("rollback_transaction", request)
        except Exception as rollback_error:
            log_with_context(
                logger,
                logging.WARNING,
                "Transaction rollback failed",
                transaction_id=transaction_id,
                error=repr(rollback_error),
            )
            status = rollback_error
        await ensure_async_(self._rollback)(error, status)
