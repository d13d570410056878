"""Retry controller for transient remote failures.

Aurora Serverless clusters that scaled to zero answer with a "resuming"
error until they are back, which can take up to about thirty seconds. Those
errors are retried on a long escalating schedule. Dropped connections get a
short schedule. The schedule chosen on the first retryable failure is kept
for every later retry of the same call.
"""

import logging
from enum import Enum
from typing import Awaitable, Callable, Final, Optional, TypeVar

import anyio
from botocore.exceptions import ClientError

from dataapi.config import RetryConfig
from dataapi.utils.logging import get_logger, log_with_context

__all__ = (
    "CONNECTION_ERROR_PATTERNS",
    "CONNECTION_RETRY_DELAYS",
    "RESUMING_RETRY_DELAYS",
    "RetryClass",
    "RetryState",
    "classify_error",
    "get_error_code",
    "get_error_message",
    "is_connection_error",
    "is_database_resuming",
    "is_retryable_error",
    "with_retry",
)

logger = get_logger("core.retry")

T = TypeVar("T")

RESUMING_RETRY_DELAYS: Final[tuple[float, ...]] = (0, 2, 5, 10, 15, 20, 25, 30, 35, 40)
"""Seconds to wait before each attempt while a cluster resumes."""

CONNECTION_RETRY_DELAYS: Final[tuple[float, ...]] = (0, 2, 4)
"""Seconds to wait before each attempt after a transient connection failure."""

CONNECTION_ERROR_PATTERNS: Final[tuple[str, ...]] = (
    "Communications link failure",
    "Connection is not available",
    "currently unavailable",
    "Database cluster is not available",
    "Can't connect to",
    "Connection timed out",
)

RESUMING_ERROR_CODE: Final = "DatabaseResumingException"
RESUMING_ERROR_MESSAGE: Final = "is resuming after being auto-paused"
CONNECTION_ERROR_CODES: Final = frozenset({"BadRequestException", "StatementTimeoutException"})


class RetryClass(str, Enum):
    """Retry classification of a failed remote call."""

    RESUMING = "resuming"
    CONNECTION = "connection"
    CUSTOM = "custom"

    def __str__(self) -> str:
        return self.value


def get_error_code(error: BaseException) -> str:
    """Return the service error code of ``error``.

    botocore errors carry it in ``response["Error"]["Code"]``. Other clients
    are read through ``code``/``Code``/``name`` attributes, falling back to
    the exception class name.
    """
    if isinstance(error, ClientError):
        code = error.response.get("Error", {}).get("Code")
        if code:
            return str(code)
    for attribute in ("code", "Code", "name"):
        value = getattr(error, attribute, None)
        if isinstance(value, str) and value:
            return value
    return type(error).__name__


def get_error_message(error: BaseException) -> str:
    if isinstance(error, ClientError):
        message = error.response.get("Error", {}).get("Message")
        if message:
            return str(message)
    for attribute in ("message", "Message"):
        value = getattr(error, attribute, None)
        if isinstance(value, str) and value:
            return value
    return str(error)


def is_database_resuming(error: BaseException) -> bool:
    """Check whether ``error`` reports a cluster that is resuming from auto-pause."""
    return get_error_code(error) == RESUMING_ERROR_CODE or RESUMING_ERROR_MESSAGE in get_error_message(error)


def is_connection_error(error: BaseException) -> bool:
    """Check whether ``error`` is a transient connection failure."""
    if get_error_code(error) in CONNECTION_ERROR_CODES:
        return True
    message = get_error_message(error)
    return any(pattern in message for pattern in CONNECTION_ERROR_PATTERNS)


def is_retryable_error(error: BaseException) -> bool:
    """Check whether ``error`` is retried without any custom error codes."""
    return is_database_resuming(error) or is_connection_error(error)


def classify_error(error: BaseException, config: Optional[RetryConfig] = None) -> Optional[RetryClass]:
    """Classify ``error`` for retry purposes; ``None`` means fatal."""
    if is_database_resuming(error):
        return RetryClass.RESUMING
    if is_connection_error(error):
        return RetryClass.CONNECTION
    if config is not None and config.retryable_errors:
        if get_error_code(error) in config.retryable_errors or type(error).__name__ in config.retryable_errors:
            return RetryClass.CUSTOM
    return None


class RetryState:
    """Attempt counter and delay schedule of one call.

    The schedule is selected by the first retryable failure and is never
    changed afterwards, even when a later failure has a different class.
    """

    __slots__ = ("attempt", "delays", "last_error", "max_attempts", "retry_class")

    def __init__(self) -> None:
        self.attempt = 0
        self.retry_class: Optional[RetryClass] = None
        self.delays: tuple[float, ...] = ()
        self.max_attempts = 0
        self.last_error: Optional[BaseException] = None

    def select(self, retry_class: RetryClass, config: RetryConfig) -> None:
        if self.retry_class is not None:
            return
        self.retry_class = retry_class
        if retry_class is RetryClass.CONNECTION:
            self.delays = CONNECTION_RETRY_DELAYS
            self.max_attempts = len(CONNECTION_RETRY_DELAYS) - 1
        else:
            self.delays = RESUMING_RETRY_DELAYS
            self.max_attempts = min(config.max_retries, len(RESUMING_RETRY_DELAYS) - 1)

    def record_failure(self, error: BaseException, config: RetryConfig) -> bool:
        """Register a failed attempt.

        Returns:
            True when another attempt should be made.
        """
        self.last_error = error
        retry_class = classify_error(error, config)
        if retry_class is None:
            return False
        self.select(retry_class, config)
        if self.attempt >= self.max_attempts:
            return False
        self.attempt += 1
        return True

    @property
    def delay(self) -> float:
        """Seconds to wait before the current attempt."""
        if not self.delays:
            return 0
        if self.attempt < len(self.delays):
            return self.delays[self.attempt]
        return self.delays[-1]


async def with_retry(
    fn: Callable[[], Awaitable[T]], config: Optional[RetryConfig] = None, *, operation: str = "execute_statement"
) -> T:
    """Await ``fn()`` and retry it on transient failures.

    Args:
        fn: Zero-argument coroutine function performing the remote call.
        config: Retry policy; defaults to :class:`RetryConfig`.
        operation: Name of the remote operation, for logging.

    Raises:
        Exception: The last error, unchanged, once it is fatal or the schedule is exhausted.

    Returns:
        The result of ``fn``.
    """
    config = config or RetryConfig()
    if not config.enabled:
        return await fn()

    state = RetryState()
    while True:
        try:
            return await fn()
        except Exception as error:  # noqa: BLE001
            if not state.record_failure(error, config):
                raise

        delay = state.delay
        log_with_context(
            logger,
            logging.WARNING,
            f"Retrying {operation} after {state.retry_class} error",
            operation=operation,
            retry_class=str(state.retry_class),
            attempt=state.attempt,
            max_attempts=state.max_attempts,
            delay=delay,
            error_code=get_error_code(state.last_error) if state.last_error is not None else None,
        )
        await anyio.sleep(delay)
