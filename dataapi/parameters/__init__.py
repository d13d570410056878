"""Parameter handling: template scanning, normalization and processing."""

from dataapi.parameters.converter import ParameterConverter, normalize_params, parse_params, split_params
from dataapi.parameters.core import ParameterProcessor, ProcessedStatement
from dataapi.parameters.types import NamedParameter, SqlTemplate, TokenKind
from dataapi.parameters.validator import TemplateScanner, scan_template

__all__ = (
    "NamedParameter",
    "ParameterConverter",
    "ParameterProcessor",
    "ProcessedStatement",
    "SqlTemplate",
    "TemplateScanner",
    "TokenKind",
    "normalize_params",
    "parse_params",
    "scan_template",
    "split_params",
)
