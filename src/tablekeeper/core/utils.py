"""Utility functions for TableKeeper operations.

This module provides common utility functions used throughout the TableKeeper
system, mostly around MySQL identifiers and server versions.

Example:
    >>> StringUtils.quote_identifier("order`s")
    '`order``s`'
"""

import re
from typing import Any, Optional


class ValidationUtils:
    """Utility class for validation operations."""

    # Names MySQL would reject or that are almost certainly typos
    OUTSIDE_BMP_PATTERN = re.compile(r"[^\u0001-\uffff]")
    TRAILING_SPACE_PATTERN = re.compile(r"\s+$")
    NUMERIC_PATTERN = re.compile(r"^\d+$")
    EXPONENT_PATTERN = re.compile(r"^\d+e\d+", re.IGNORECASE)
    VERSION_PATTERN = re.compile(r"(\d+)(?:\.(\d+))?(?:\.(\d+))?")

    @classmethod
    def validate_object_name(cls, name: Optional[str]) -> bool:
        """Validate a table or column name supplied by the user.

        Args:
            name: Table or column name to validate

        Returns:
            True if the name can be used as a MySQL object name

        Example:
            >>> ValidationUtils.validate_object_name("orders")
            True
            >>> ValidationUtils.validate_object_name("12345")
            False
        """
        if not name or not isinstance(name, str):
            return False
        if cls.OUTSIDE_BMP_PATTERN.search(name):
            return False
        if cls.TRAILING_SPACE_PATTERN.search(name):
            return False
        if cls.NUMERIC_PATTERN.match(name) or cls.EXPONENT_PATTERN.match(name):
            return False
        return True

    @classmethod
    def parse_version(cls, version: str) -> tuple[int, int, int]:
        """Extract the leading numeric version triple from a server version string.

        Args:
            version: Version string as returned by ``SELECT VERSION()``

        Returns:
            Tuple of (major, minor, patch); missing parts are 0

        Example:
            >>> ValidationUtils.parse_version("10.6.12-MariaDB-1:10.6.12+maria~ubu2004")
            (10, 6, 12)
        """
        match = cls.VERSION_PATTERN.search(version or "")
        if not match:
            return (0, 0, 0)
        major, minor, patch = (int(part) if part else 0 for part in match.groups())
        return (major, minor, patch)


class StringUtils:
    """Utility class for string operations."""

    @staticmethod
    def quote_identifier(identifier: str) -> str:
        """Quote a MySQL identifier with backticks.

        Args:
            identifier: Schema, table or column name

        Returns:
            Backtick-quoted identifier with embedded backticks doubled
        """
        return "`" + str(identifier).replace("`", "``") + "`"

    @staticmethod
    def quote_literal(value: Any) -> str:
        """Quote a value as a single-quoted SQL string literal."""
        escaped = str(value).replace("\\", "\\\\").replace("'", "''")
        return f"'{escaped}'"

    @classmethod
    def qualified_name(cls, schema: str, table: str) -> str:
        """Return ``schema.table`` with both parts quoted."""
        return f"{cls.quote_identifier(schema)}.{cls.quote_identifier(table)}"

