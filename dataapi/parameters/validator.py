"""Placeholder and identifier extraction.

Scans raw SQL for ``:name`` placeholders and ``::name`` identifiers. The scan
is regex-based: colon tokens inside string literals or comments are
extracted like any other token.
"""

import re
from typing import Final

from dataapi.parameters.types import SqlTemplate, TokenKind

__all__ = ("TemplateScanner", "scan_template")

_TOKEN_REGEX: Final = re.compile(r":{1,2}\w+")
_IDENTIFIER_PREFIX: Final = "::"


class TemplateScanner:
    """Builds a :class:`SqlTemplate` token table from SQL text."""

    __slots__ = ()

    def scan(self, sql: str) -> SqlTemplate:
        """Extract the distinct tokens of ``sql`` in order of first appearance.

        A ``::type`` run that starts exactly where a ``:name`` token ends is the
        dialect's cast suffix (``:id::uuid``) and is not registered.

        Args:
            sql: SQL string to analyze.

        Returns:
            The template with its token table.
        """
        tokens: dict[str, TokenKind] = {}
        previous_end = -1

        for match in _TOKEN_REGEX.finditer(sql):
            text = match.group()
            start = match.start()
            adjacent = start == previous_end
            previous_end = match.end()

            if text.startswith(_IDENTIFIER_PREFIX):
                if adjacent:
                    continue
                tokens.setdefault(text[2:], TokenKind.NAMED_IDENTIFIER)
            else:
                tokens.setdefault(text[1:], TokenKind.NAMED_PLACEHOLDER)

        return SqlTemplate(sql, tokens)


_scanner: Final = TemplateScanner()


def scan_template(sql: str) -> SqlTemplate:
    """Scan ``sql`` with the module-level scanner."""
    return _scanner.scan(sql)
