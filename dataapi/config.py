"""Client configuration.

All configuration values are immutable. A per-call or per-transaction
variation is produced with :meth:`DataAPIConfig.replace`, never by mutation.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Final, Optional, Union

from dataapi.exceptions import ImproperConfigurationError

__all__ = (
    "DEFAULT_MAX_RETRIES",
    "DataAPIConfig",
    "Engine",
    "FormatOptions",
    "RetryConfig",
    "coerce_format_options",
    "coerce_retry_config",
)


DEFAULT_MAX_RETRIES: Final[int] = 9


class Engine(str, Enum):
    """Database engine behind the statement-execution service."""

    MYSQL = "mysql"
    PG = "pg"

    def __str__(self) -> str:
        return self.value

    @property
    def sqlglot_dialect(self) -> str:
        """Dialect name used to render quoted identifiers."""
        return "postgres" if self is Engine.PG else "mysql"


@dataclass(frozen=True)
class FormatOptions:
    """Date handling for encoded parameters and decoded records."""

    deserialize_date: bool = True
    treat_as_local_date: bool = False

    def validate(self, prefix: str = "format_options") -> None:
        for name in ("deserialize_date", "treat_as_local_date"):
            if not isinstance(getattr(self, name), bool):
                msg = f"'{prefix}.{name}' must be a boolean."
                raise ImproperConfigurationError(msg)


@dataclass(frozen=True)
class RetryConfig:
    """Retry policy for remote calls.

    ``retryable_errors`` lists extra error codes (or exception class names)
    that are retried on the long cold-start schedule.
    """

    enabled: bool = True
    max_retries: int = DEFAULT_MAX_RETRIES
    retryable_errors: "tuple[str, ...]" = ()

    def validate(self) -> None:
        if not isinstance(self.enabled, bool):
            msg = "'retry.enabled' must be a boolean."
            raise ImproperConfigurationError(msg)
        if isinstance(self.max_retries, bool) or not isinstance(self.max_retries, int) or self.max_retries < 0:
            msg = "'retry.max_retries' must be a non-negative integer."
            raise ImproperConfigurationError(msg)
        if not all(isinstance(code, str) for code in self.retryable_errors):
            msg = "'retry.retryable_errors' must contain only strings."
            raise ImproperConfigurationError(msg)


@dataclass(frozen=True)
class DataAPIConfig:
    """Settings shared by every call made through one client."""

    resource_arn: str
    secret_arn: str
    database: Optional[str] = None
    engine: Engine = Engine.MYSQL
    hydrate_column_names: bool = True
    format_options: FormatOptions = field(default_factory=FormatOptions)
    retry: RetryConfig = field(default_factory=RetryConfig)
    client_options: "Mapping[str, Any]" = field(default_factory=dict)
    transaction_id: Optional[str] = None

    def __post_init__(self) -> None:
        if isinstance(self.engine, str) and not isinstance(self.engine, Engine):
            try:
                object.__setattr__(self, "engine", Engine(self.engine))
            except ValueError as exc:
                msg = f"'engine' must be one of {', '.join(e.value for e in Engine)}, got {self.engine!r}"
                raise ImproperConfigurationError(msg) from exc
        self.validate()

    def validate(self) -> None:
        """Check field types.

        Raises:
            ImproperConfigurationError: If a field is missing or has the wrong type.
        """
        if not isinstance(self.secret_arn, str) or not self.secret_arn:
            msg = "'secret_arn' string value required"
            raise ImproperConfigurationError(msg)
        if not isinstance(self.resource_arn, str) or not self.resource_arn:
            msg = "'resource_arn' string value required"
            raise ImproperConfigurationError(msg)
        if self.database is not None and not isinstance(self.database, str):
            msg = "'database' must be a string"
            raise ImproperConfigurationError(msg)
        if not isinstance(self.engine, Engine):
            msg = f"'engine' must be one of {', '.join(e.value for e in Engine)}"
            raise ImproperConfigurationError(msg)
        if not isinstance(self.hydrate_column_names, bool):
            msg = "'hydrate_column_names' must be a boolean"
            raise ImproperConfigurationError(msg)
        if not isinstance(self.client_options, Mapping):
            msg = "'options' must be a mapping"
            raise ImproperConfigurationError(msg)
        self.format_options.validate()
        self.retry.validate()

    def replace(self, **changes: Any) -> "DataAPIConfig":
        """Return a copy with ``changes`` applied."""
        return replace(self, **changes)


def coerce_format_options(value: "Union[FormatOptions, Mapping[str, Any], None]") -> FormatOptions:
    """Build :class:`FormatOptions` from a mapping (snake_case or camelCase keys)."""
    if value is None:
        return FormatOptions()
    if isinstance(value, FormatOptions):
        return value
    if not isinstance(value, Mapping):
        msg = "'format_options' must be a mapping."
        raise ImproperConfigurationError(msg)
    options = FormatOptions(
        deserialize_date=value.get("deserialize_date", value.get("deserializeDate", True)),
        treat_as_local_date=value.get("treat_as_local_date", value.get("treatAsLocalDate", False)),
    )
    options.validate()
    return options


def coerce_retry_config(value: "Union[RetryConfig, Mapping[str, Any], bool, None]") -> RetryConfig:
    """Build :class:`RetryConfig` from a mapping, a boolean switch, or None."""
    if value is None:
        return RetryConfig()
    if isinstance(value, RetryConfig):
        return value
    if isinstance(value, bool):
        return RetryConfig(enabled=value)
    if not isinstance(value, Mapping):
        msg = "'retry' must be a mapping or a boolean."
        raise ImproperConfigurationError(msg)
    config = RetryConfig(
        enabled=value.get("enabled", True),
        max_retries=value.get("max_retries", value.get("maxRetries", DEFAULT_MAX_RETRIES)),
        retryable_errors=tuple(value.get("retryable_errors", value.get("retryableErrors", ()))),
    )
    config.validate()
    return config
