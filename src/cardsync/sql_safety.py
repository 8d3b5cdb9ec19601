"""
SQL safety utilities for preventing SQL injection.

Values are always bound as query parameters. Table and schema names cannot
be bound, so they pass through an allow-list check before being quoted and
interpolated.
"""

import re


# Strict ASCII-only pattern for SQL identifiers
VALID_IDENTIFIER = re.compile(r"^[a-zA-Z_][a-zA-Z0-9_]*$")

# PostgreSQL truncates identifiers longer than NAMEDATALEN - 1
MAX_IDENTIFIER_LENGTH = 63


def validate_identifier(identifier: str) -> None:
    """
    Validate a SQL identifier (table name, schema name, etc.).

    Args:
        identifier: The identifier to validate

    Raises:
        ValueError: If the identifier is empty, too long or contains invalid characters
    """
    if not identifier or not isinstance(identifier, str):
        raise ValueError("SQL identifier cannot be empty")

    if not VALID_IDENTIFIER.match(identifier):
        raise ValueError(
            f"Invalid SQL identifier: {identifier!r}. "
            "Only ASCII letters, digits, and underscores are allowed, "
            "and must start with a letter or underscore."
        )

    if len(identifier) > MAX_IDENTIFIER_LENGTH:
        raise ValueError(
            f"Invalid SQL identifier: {identifier!r}. "
            f"Must be at most {MAX_IDENTIFIER_LENGTH} characters."
        )


def quote_identifier(identifier: str) -> str:
    """
    Safely quote a PostgreSQL identifier after validation.

    Args:
        identifier: The identifier to quote

    Returns:
        Double-quoted identifier safe for use in SQL

    Raises:
        ValueError: If the identifier is invalid
    """
    validate_identifier(identifier)
    return f'"{identifier}"'


def quote_schema_table(schema: str, table: str) -> str:
    """
    Safely quote a schema-qualified table name.

    Args:
        schema: Schema name (e.g., "public")
        table: Table name (e.g., "staff_cards")

    Returns:
        Quoted ``"schema"."table"`` reference

    Raises:
        ValueError: If either identifier is invalid
    """
    return f"{quote_identifier(schema)}.{quote_identifier(table)}"


def escape_like_pattern(term: str, escape_char: str = "\\") -> str:
    """
    Escape LIKE/ILIKE wildcards so a search term matches literally.

    Args:
        term: User supplied search term
        escape_char: Escape character declared in the ESCAPE clause

    Returns:
        Term with ``%``, ``_`` and the escape character escaped
    """
    return (
        term.replace(escape_char, escape_char * 2)
        .replace("%", f"{escape_char}%")
        .replace("_", f"{escape_char}_")
    )
