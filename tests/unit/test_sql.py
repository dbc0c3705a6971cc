"""Unit tests for `$N` placeholder processing and identifier quoting.

Tests the public API:
- shift_placeholders(sql, offset) - Renumber placeholders past an offset
- placeholder_indexes(sql) / max_placeholder(sql) - Inspect placeholders
- has_placeholders(sql) - Check for placeholders outside literals
- quote_identifier(name) / is_identifier(name)
"""
import pytest
from pgadapter.sql import TokenType, has_placeholders, is_identifier
from pgadapter.sql import max_placeholder, placeholder_indexes, quote_identifier
from pgadapter.sql import shift_placeholders, tokenize_sql


class TestShiftPlaceholders:
    """Test placeholder renumbering."""

    @pytest.mark.parametrize(('sql', 'offset', 'expected'), [
        ('uid = $1', 2, 'uid = $3'),
        ('a = $1 AND b = $2', 3, 'a = $4 AND b = $5'),
        ('a = $10', 1, 'a = $11'),
        ('a = $1', 0, 'a = $1'),
        ('a = 1', 5, 'a = 1'),
    ], ids=['single', 'multiple', 'two_digits', 'zero_offset', 'no_placeholders'])
    def test_shift(self, sql, offset, expected):
        """Test basic shifting scenarios."""
        assert shift_placeholders(sql, offset) == expected

    def test_string_literal_untouched(self):
        """Test that placeholders inside string literals are not renumbered."""
        sql = "note <> '$1' AND uid = $1"
        assert shift_placeholders(sql, 2) == "note <> '$1' AND uid = $3"

    def test_escaped_quote_in_literal(self):
        """Test doubled quotes do not end the literal early."""
        sql = "note = 'it''s $1' AND uid = $1"
        assert shift_placeholders(sql, 1) == "note = 'it''s $1' AND uid = $2"

    def test_quoted_identifier_untouched(self):
        """Test that quoted identifiers keep a literal `$1`."""
        sql = 'SELECT "col$1" FROM t WHERE a = $1'
        assert shift_placeholders(sql, 4) == 'SELECT "col$1" FROM t WHERE a = $5'

    def test_repeated_placeholder(self):
        """Test a placeholder used twice is shifted both times."""
        assert shift_placeholders('a = $1 OR b = $1', 1) == 'a = $2 OR b = $2'


class TestPlaceholderInspection:
    """Test placeholder discovery."""

    def test_indexes_in_order(self):
        assert placeholder_indexes('a = $2 AND b = $1') == [2, 1]

    def test_max_placeholder(self):
        assert max_placeholder('INSERT INTO t (a, b) VALUES ($1, $2)') == 2

    def test_max_placeholder_none(self):
        assert max_placeholder('SELECT 1') == 0

    def test_has_placeholders_ignores_literals(self):
        assert has_placeholders('a = $1') is True
        assert has_placeholders("a = '$1'") is False
        assert has_placeholders('') is False
        assert has_placeholders(None) is False

    def test_tokenize_preserves_text(self):
        """Test that joining token texts rebuilds the original statement."""
        sql = "SELECT \"x\" FROM t WHERE a = $1 AND b = 'y'"
        tokens = tokenize_sql(sql)
        assert ''.join(t.text for t in tokens) == sql
        assert [t.index for t in tokens if t.type == TokenType.PLACEHOLDER] == [1]


class TestIdentifiers:
    """Test identifier validation and quoting."""

    @pytest.mark.parametrize('name', ['uid', 'created_at', 'u.name', '_private'])
    def test_valid(self, name):
        assert is_identifier(name)

    @pytest.mark.parametrize('name', ['', '1abc', 'a.b.c', 'name; DROP TABLE x', 'a-b'])
    def test_invalid(self, name):
        assert not is_identifier(name)

    def test_quote_plain(self):
        assert quote_identifier('users') == '"users"'

    def test_quote_dotted(self):
        assert quote_identifier('public.users') == '"public"."users"'

    def test_quote_escapes_quotes(self):
        assert quote_identifier('we"ird') == '"we""ird"'
