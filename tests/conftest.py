from __future__ import annotations

from collections import defaultdict
from pathlib import Path
from typing import Any, Callable

import pytest
from botocore.exceptions import ClientError

from dataapi import DataAPIClient, init

pytestmark = pytest.mark.anyio
here = Path(__file__).parent
root_path = here.parent

RESOURCE_ARN = "arn:aws:rds:us-east-1:123456789012:cluster:test-cluster"
SECRET_ARN = "arn:aws:secretsmanager:us-east-1:123456789012:secret:test-secret"

_DEFAULT_RESPONSES: dict[str, dict[str, Any]] = {
    "execute_statement": {"numberOfRecordsUpdated": 0},
    "batch_execute_statement": {"updateResults": []},
    "begin_transaction": {"transactionId": "tx-1"},
    "commit_transaction": {"transactionStatus": "Transaction Committed"},
    "rollback_transaction": {"transactionStatus": "Rollback Complete"},
}


def _client_error(code: str, message: str = "", operation: str = "ExecuteStatement") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": message}}, operation)


class FakeRdsDataClient:
    """In-memory stand-in for a boto3 ``rds-data`` client.

    Every call is recorded. Scripted responses are replayed per operation in
    order; an exception instance is raised instead of returned.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self._scripts: dict[str, list[Any]] = defaultdict(list)

    def script(self, operation: str, *outcomes: Any) -> FakeRdsDataClient:
        self._scripts[operation].extend(outcomes)
        return self

    def operations(self) -> list[str]:
        return [operation for operation, _ in self.calls]

    def _handle(self, operation: str, request: dict[str, Any]) -> dict[str, Any]:
        self.calls.append((operation, request))
        script = self._scripts[operation]
        outcome = script.pop(0) if script else _DEFAULT_RESPONSES[operation]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    def execute_statement(self, **request: Any) -> dict[str, Any]:
        return self._handle("execute_statement", request)

    def batch_execute_statement(self, **request: Any) -> dict[str, Any]:
        return self._handle("batch_execute_statement", request)

    def begin_transaction(self, **request: Any) -> dict[str, Any]:
        return self._handle("begin_transaction", request)

    def commit_transaction(self, **request: Any) -> dict[str, Any]:
        return self._handle("commit_transaction", request)

    def rollback_transaction(self, **request: Any) -> dict[str, Any]:
        return self._handle("rollback_transaction", request)


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def rds() -> FakeRdsDataClient:
    return FakeRdsDataClient()


@pytest.fixture
def client(rds: FakeRdsDataClient) -> DataAPIClient:
    return init(resource_arn=RESOURCE_ARN, secret_arn=SECRET_ARN, database="app", client=rds)


@pytest.fixture
def pg_client(rds: FakeRdsDataClient) -> DataAPIClient:
    return init(resource_arn=RESOURCE_ARN, secret_arn=SECRET_ARN, database="app", engine="pg", client=rds)


@pytest.fixture
def make_client_error() -> Callable[..., ClientError]:
    """Build botocore errors the way the service reports them."""
    return _client_error


@pytest.fixture
def sleeps(monkeypatch: pytest.MonkeyPatch) -> list[float]:
    """Record retry delays instead of waiting."""
    recorded: list[float] = []

    async def _sleep(delay: float) -> None:
        recorded.append(delay)

    monkeypatch.setattr("dataapi.core.retry.anyio.sleep", _sleep)
    return recorded
