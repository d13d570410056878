"""Tests for queued transactions."""

from typing import Any, Callable

import pytest
from botocore.exceptions import ClientError

from dataapi import DataAPIClient, ParameterTypeError, QueryResult, TransactionError
from tests.conftest import RESOURCE_ARN, SECRET_ARN, FakeRdsDataClient

pytestmark = pytest.mark.anyio

TRANSACTION_KEYS = {"resourceArn": RESOURCE_ARN, "secretArn": SECRET_ARN, "transactionId": "tx-1"}


async def test_commit_runs_queries_in_order(client: DataAPIClient, rds: FakeRdsDataClient) -> None:
    rds.script(
        "execute_statement",
        {"numberOfRecordsUpdated": 1, "generatedFields": [{"longValue": 11}]},
        {"numberOfRecordsUpdated": 1},
    )

    results = await (
        client.transaction()
        .query("INSERT INTO users (email) VALUES (:email)", {"email": "ada@example.com"})
        .query("UPDATE counters SET n = n + 1")
        .commit()
    )

    assert results == [
        QueryResult(number_of_records_updated=1, insert_id=11),
        QueryResult(number_of_records_updated=1),
        {"transactionStatus": "Transaction Committed"},
    ]
    assert rds.operations() == ["begin_transaction", "execute_statement", "execute_statement", "commit_transaction"]
    assert rds.calls[0][1] == {"resourceArn": RESOURCE_ARN, "secretArn": SECRET_ARN, "database": "app"}
    assert rds.calls[1][1]["transactionId"] == "tx-1"
    assert rds.calls[1][1]["database"] == "app"
    assert rds.calls[2][1]["transactionId"] == "tx-1"
    assert rds.calls[3][1] == TRANSACTION_KEYS


async def test_nothing_is_sent_before_commit(client: DataAPIClient, rds: FakeRdsDataClient) -> None:
    transaction = client.transaction().query("SELECT 1")

    assert rds.calls == []
    assert transaction.committed is False


async def test_empty_transaction(client: DataAPIClient, rds: FakeRdsDataClient) -> None:
    results = await client.transaction().commit()

    assert results == [{"transactionStatus": "Transaction Committed"}]
    assert rds.operations() == ["begin_transaction", "commit_transaction"]


async def test_query_factory_receives_previous_results(client: DataAPIClient, rds: FakeRdsDataClient) -> None:
    rds.script(
        "execute_statement",
        {"numberOfRecordsUpdated": 1, "generatedFields": [{"longValue": 5}]},
        {"numberOfRecordsUpdated": 1},
    )
    seen: list[Any] = []

    def next_query(last: QueryResult, results: "list[Any]") -> Any:
        seen.append(len(results))
        return ("UPDATE users SET ref = :id", {"id": last.insert_id})

    await client.transaction().query("INSERT INTO users (email) VALUES ('x')").query(next_query).commit()

    assert seen == [1]
    assert rds.calls[2][1]["sql"] == "UPDATE users SET ref = :id"
    assert rds.calls[2][1]["parameters"] == [{"name": "id", "value": {"longValue": 5}}]


async def test_async_query_factory(client: DataAPIClient, rds: FakeRdsDataClient) -> None:
    async def first_query(last: Any, results: "list[Any]") -> Any:
        assert last is None
        assert results == []
        return {"sql": "SELECT :a", "parameters": {"a": 1}}

    await client.transaction().query(first_query).commit()

    assert rds.calls[1][1]["sql"] == "SELECT :a"


async def test_failure_rolls_back_and_stops_the_queue(
    client: DataAPIClient, rds: FakeRdsDataClient, make_client_error: Callable[..., ClientError]
) -> None:
    failure = make_client_error("ValidationException", "Duplicate entry")
    rds.script("execute_statement", {"numberOfRecordsUpdated": 1}, failure)
    rollbacks: list[tuple[BaseException, Any]] = []

    transaction = (
        client.transaction()
        .query("INSERT INTO t (a) VALUES (1)")
        .query("INSERT INTO t (a) VALUES (1)")
        .query("INSERT INTO t (a) VALUES (2)")
        .rollback(lambda error, status: rollbacks.append((error, status)))
    )
    with pytest.raises(ClientError) as exc_info:
        await transaction.commit()

    assert exc_info.value is failure
    assert rds.operations() == [
        "begin_transaction",
        "execute_statement",
        "execute_statement",
        "rollback_transaction",
    ]
    assert rds.calls[3][1] == TRANSACTION_KEYS
    assert rollbacks == [(failure, {"transactionStatus": "Rollback Complete"})]


async def test_async_rollback_callback(
    client: DataAPIClient, rds: FakeRdsDataClient, make_client_error: Callable[..., ClientError]
) -> None:
    rds.script("execute_statement", make_client_error("ValidationException", "bad"))
    statuses: list[Any] = []

    async def on_rollback(error: BaseException, status: Any) -> None:
        statuses.append(status)

    with pytest.raises(ClientError):
        await client.transaction().query("SELECT nope").rollback(on_rollback).commit()

    assert statuses == [{"transactionStatus": "Rollback Complete"}]


async def test_rollback_without_callback(
    client: DataAPIClient, rds: FakeRdsDataClient, make_client_error: Callable[..., ClientError]
) -> None:
    rds.script("execute_statement", make_client_error("ValidationException", "bad"))

    with pytest.raises(ClientError):
        await client.transaction().query("SELECT nope").commit()

    assert rds.operations()[-1] == "rollback_transaction"


async def test_encoding_error_in_queued_query_rolls_back(client: DataAPIClient, rds: FakeRdsDataClient) -> None:
    rollbacks: list[tuple[BaseException, Any]] = []

    transaction = (
        client.transaction()
        .query("INSERT INTO t (a) VALUES (:a)", {"a": 1})
        .query("INSERT INTO t (a) VALUES (:a)", {"a": [1, 2]})
        .query("INSERT INTO t (a) VALUES (3)")
        .rollback(lambda error, status: rollbacks.append((error, status)))
    )
    with pytest.raises(ParameterTypeError) as exc_info:
        await transaction.commit()

    assert rds.operations() == ["begin_transaction", "execute_statement", "rollback_transaction"]
    assert rds.calls[2][1] == TRANSACTION_KEYS
    assert rollbacks == [(exc_info.value, {"transactionStatus": "Rollback Complete"})]


async def test_failing_query_factory_rolls_back(client: DataAPIClient, rds: FakeRdsDataClient) -> None:
    failure = LookupError("no such row")
    rollbacks: list[tuple[BaseException, Any]] = []

    def next_query(last: Any, results: "list[Any]") -> Any:
        raise failure

    with pytest.raises(LookupError) as exc_info:
        await (
            client.transaction()
            .query("INSERT INTO t (a) VALUES (1)")
            .query(next_query)
            .rollback(lambda error, status: rollbacks.append((error, status)))
            .commit()
        )

    assert exc_info.value is failure
    assert rds.operations() == ["begin_transaction", "execute_statement", "rollback_transaction"]
    assert rollbacks == [(failure, {"transactionStatus": "Rollback Complete"})]


async def test_failed_rollback_keeps_statement_error(
    client: DataAPIClient,
    rds: FakeRdsDataClient,
    make_client_error: Callable[..., ClientError],
    caplog: pytest.LogCaptureFixture,
) -> None:
    caplog.set_level("WARNING", logger="dataapi")
    failure = make_client_error("ValidationException", "Duplicate entry")
    rollback_failure = make_client_error("NotFoundException", "Transaction tx-1 is not found", "RollbackTransaction")
    rds.script("execute_statement", failure)
    rds.script("rollback_transaction", rollback_failure)
    rollbacks: list[tuple[BaseException, Any]] = []

    with pytest.raises(ClientError) as exc_info:
        await (
            client.transaction()
            .query("INSERT INTO t (a) VALUES (1)")
            .rollback(lambda error, status: rollbacks.append((error, status)))
            .commit()
        )

    assert exc_info.value is failure
    assert rollbacks == [(failure, rollback_failure)]
    assert rds.operations() == ["begin_transaction", "execute_statement", "rollback_transaction"]
    assert any(record.getMessage() == "Transaction rollback failed" for record in caplog.records)


async def test_transaction_options(client: DataAPIClient, rds: FakeRdsDataClient) -> None:
    await (
        client.transaction(database="reporting", hydrateColumnNames=False)
        .query("SELECT 1", database="ignored")
        .commit()
    )

    assert rds.calls[0][1]["database"] == "reporting"
    assert rds.calls[1][1]["database"] == "reporting"
    assert "includeResultMetadata" not in rds.calls[1][1]


async def test_begin_is_retried(
    client: DataAPIClient,
    rds: FakeRdsDataClient,
    make_client_error: Callable[..., ClientError],
    sleeps: "list[float]",
) -> None:
    rds.script("begin_transaction", make_client_error("DatabaseResumingException", "resuming", "BeginTransaction"))

    await client.transaction().query("SELECT 1").commit()

    assert rds.operations() == ["begin_transaction", "begin_transaction", "execute_statement", "commit_transaction"]
    assert sleeps == [2]


async def test_statements_inside_transaction_are_retried(
    client: DataAPIClient,
    rds: FakeRdsDataClient,
    make_client_error: Callable[..., ClientError],
    sleeps: "list[float]",
) -> None:
    rds.script("execute_statement", make_client_error("BadRequestException", "Communications link failure"))

    results = await client.transaction().query("SELECT 1").commit()

    assert len(results) == 2
    assert "rollback_transaction" not in rds.operations()
    assert sleeps == [2]


async def test_committed_transaction_cannot_be_reused(client: DataAPIClient) -> None:
    transaction = client.transaction().query("SELECT 1")
    await transaction.commit()

    assert transaction.committed is True
    with pytest.raises(TransactionError):
        transaction.query("SELECT 2")
    with pytest.raises(TransactionError):
        await transaction.commit()
