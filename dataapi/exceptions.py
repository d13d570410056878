from typing import Any, Optional

__all__ = (
    "DataAPIError",
    "ImproperConfigurationError",
    "ParameterError",
    "ParameterTypeError",
    "SerializationError",
    "TransactionError",
)


class DataAPIError(Exception):
    """Base exception class from which all dataapi exceptions inherit."""

    detail: str

    def __init__(self, *args: Any, detail: str = "") -> None:
        """Initialize ``DataAPIError``.

        Args:
            *args: args are converted to :class:`str` before passing to :class:`Exception`
            detail: detail of the exception.
        """
        str_args = [str(arg) for arg in args if arg]
        if not detail:
            if str_args:
                detail, *str_args = str_args
            elif hasattr(self, "detail"):
                detail = self.detail
        self.detail = detail
        super().__init__(*str_args)

    def __repr__(self) -> str:
        if self.detail:
            return f"{self.__class__.__name__} - {self.detail}"
        return self.__class__.__name__

    def __str__(self) -> str:
        return " ".join((*self.args, self.detail)).strip()


class ImproperConfigurationError(DataAPIError):
    """Improper Configuration error.

    Raised when a client is constructed with missing or wrong-typed settings.
    """


class ParameterError(DataAPIError):
    """Base class for parameter-related errors.

    Raised synchronously, before any remote call, when the caller's arguments
    cannot be normalized. Never retried.
    """

    sql: Optional[str]

    def __init__(self, message: str, sql: Optional[str] = None) -> None:
        """Initialize with optional SQL context."""
        detail_message = message
        if sql:
            detail_message = f"{message}\nSQL: {sql}"
        super().__init__(detail=detail_message)
        self.sql = sql


class ParameterTypeError(ParameterError):
    """Raised when a parameter value has no protocol type tag."""

    name: str

    def __init__(self, name: str, sql: Optional[str] = None) -> None:
        super().__init__(f"'{name}' is an invalid type", sql)
        self.name = name


class SerializationError(DataAPIError):
    """Encoding or decoding of an object failed."""


class TransactionError(DataAPIError):
    """A transaction was used after it completed."""
