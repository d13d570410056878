"""dataapi: an async client for the Amazon Aurora Data API."""

from dataapi import exceptions, typing, utils
from dataapi.__metadata__ import __version__
from dataapi.client import DataAPIClient, init
from dataapi.config import DataAPIConfig, Engine, FormatOptions, RetryConfig
from dataapi.core.result import QueryResult
from dataapi.exceptions import (
    DataAPIError,
    ImproperConfigurationError,
    ParameterError,
    ParameterTypeError,
    SerializationError,
    TransactionError,
)
from dataapi.parameters.types import NamedParameter
from dataapi.transaction import Transaction

__all__ = (
    "DataAPIClient",
    "DataAPIConfig",
    "DataAPIError",
    "Engine",
    "FormatOptions",
    "ImproperConfigurationError",
    "NamedParameter",
    "ParameterError",
    "ParameterTypeError",
    "QueryResult",
    "RetryConfig",
    "SerializationError",
    "Transaction",
    "TransactionError",
    "__version__",
    "exceptions",
    "init",
    "typing",
    "utils",
)
