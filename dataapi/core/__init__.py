"""Statement execution core.

- identifiers.py: dialect-correct identifier quoting and cast injection
- type_converter.py: parameter type tags, type hints and timestamp formatting
- request.py: batch planning and request assembly
- retry.py: retry controller for resuming clusters and dropped connections
- result.py: result decoding
- query.py: the end-to-end statement pipeline
"""

from dataapi.core.result import QueryResult
from dataapi.core.retry import with_retry
from dataapi.core.type_converter import ParameterEncoder

__all__ = ("ParameterEncoder", "QueryResult", "with_retry")
