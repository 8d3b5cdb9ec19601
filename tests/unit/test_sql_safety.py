"""
Unit tests for SQL identifier validation and quoting.

These guard the only places where names are interpolated into SQL.
"""

import pytest

from cardsync.sql_safety import (
    MAX_IDENTIFIER_LENGTH,
    escape_like_pattern,
    quote_identifier,
    quote_schema_table,
    validate_identifier,
)


class TestValidateIdentifier:
    """Test validate_identifier"""

    @pytest.mark.parametrize("name", ["staff_cards", "_private", "T1", "a" * MAX_IDENTIFIER_LENGTH])
    def test_valid(self, name):
        validate_identifier(name)

    @pytest.mark.parametrize(
        "name",
        [
            "staff cards",
            "staff_cards; DROP TABLE users--",
            'staff"cards',
            "1table",
            "schema.table",
            "карты",
        ],
    )
    def test_rejects_injection_and_invalid_names(self, name):
        with pytest.raises(ValueError, match="Invalid SQL identifier"):
            validate_identifier(name)

    def test_rejects_empty(self):
        with pytest.raises(ValueError, match="cannot be empty"):
            validate_identifier("")

    def test_rejects_too_long(self):
        with pytest.raises(ValueError, match="at most"):
            validate_identifier("a" * (MAX_IDENTIFIER_LENGTH + 1))


def test_quote_identifier():
    assert quote_identifier("staff_cards") == '"staff_cards"'


def test_quote_schema_table():
    assert quote_schema_table("public", "staff_cards") == '"public"."staff_cards"'


def test_quote_schema_table_validates_both_parts():
    with pytest.raises(ValueError):
        quote_schema_table("public; --", "staff_cards")
    with pytest.raises(ValueError):
        quote_schema_table("public", "x y")


class TestEscapeLikePattern:
    """Test escape_like_pattern"""

    def test_plain_term_unchanged(self):
        assert escape_like_pattern("Ivanov") == "Ivanov"

    def test_wildcards_escaped(self):
        assert escape_like_pattern("50%_off") == "50\\%\\_off"

    def test_escape_char_escaped_first(self):
        assert escape_like_pattern("a\\b") == "a\\\\b"

    def test_custom_escape_char(self):
        assert escape_like_pattern("a%b!", escape_char="!") == "a!%b!!"
