"""Helpers for calling blocking client methods from async code."""

import functools
import inspect
from collections.abc import Awaitable
from typing import Any, Callable, Optional, TypeVar, cast

import anyio.to_thread
from anyio import CapacityLimiter
from typing_extensions import ParamSpec

ParamSpecT = ParamSpec("ParamSpecT")
ReturnT = TypeVar("ReturnT")

__all__ = ("async_", "ensure_async_")


def async_(
    function: "Callable[ParamSpecT, ReturnT]", *, limiter: "Optional[CapacityLimiter]" = None
) -> "Callable[ParamSpecT, Awaitable[ReturnT]]":
    """Convert a blocking function to an async one that runs in a worker thread.

    Args:
        function: The blocking function to wrap.
        limiter: Optional capacity limiter shared by the wrapped calls.

    Returns:
        An async function with the same signature.
    """

    @functools.wraps(function)
    async def wrapper(*args: "ParamSpecT.args", **kwargs: "ParamSpecT.kwargs") -> "ReturnT":
        partial_f = functools.partial(function, *args, **kwargs)
        return await anyio.to_thread.run_sync(partial_f, limiter=limiter)

    return wrapper


def ensure_async_(
    function: "Callable[ParamSpecT, Any]",
) -> "Callable[ParamSpecT, Awaitable[Any]]":
    """Return ``function`` unchanged when it is already a coroutine function.

    Blocking callables (such as boto3 client methods) are wrapped with :func:`async_`.

    Args:
        function: The function to ensure is async.

    Returns:
        An async callable.
    """
    if inspect.iscoroutinefunction(function):
        return cast("Callable[ParamSpecT, Awaitable[Any]]", function)
    return async_(function)
