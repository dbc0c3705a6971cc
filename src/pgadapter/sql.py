"""
Positional placeholder processing for PostgreSQL native parameters.

Statements use `$1 … $N` placeholders, which psycopg sends to the server
unchanged through a raw cursor. Fragments written against their own argument
list (WHERE conditions, relation clauses) are renumbered before they are
combined with parameters already bound for the statement:

    fragment + offset → Tokenize → Shift placeholders → Rebuild
                          (once)     (skip literals)     (single pass)

Main entry points:
- `shift_placeholders(sql, offset)` - Renumber `$k` to `$(k+offset)`
- `placeholder_indexes(sql)` - Placeholder numbers in order of appearance
- `max_placeholder(sql)` - Highest placeholder number in a statement
- `quote_identifier(name)` - Quote table/column names, dotted names per part
- `is_identifier(name)` - Validate plain or dotted identifiers
"""
import re
from dataclasses import dataclass
from enum import Enum, auto

__all__ = [
    'TokenType',
    'Token',
    'tokenize_sql',
    'placeholder_indexes',
    'max_placeholder',
    'has_placeholders',
    'shift_placeholders',
    'quote_identifier',
    'is_identifier',
]


class TokenType(Enum):
    """Token types identified during SQL parsing."""
    SQL_TEXT = auto()
    STRING_LITERAL = auto()
    QUOTED_IDENTIFIER = auto()
    PLACEHOLDER = auto()        # $1, $2, ...


@dataclass(slots=True)
class Token:
    """Token from SQL parsing."""
    type: TokenType
    text: str
    start: int
    end: int
    index: int = 0              # placeholder number, 0 for other tokens


# String literals (including E'' escapes) and quoted identifiers are matched
# first so a `$1` inside them is never treated as a placeholder.
_TOKENIZE = re.compile(r"""
    (?P<string>[Ee]?'(?:[^']|'')*')
    |(?P<ident>"(?:[^"]|"")*")
    |(?P<placeholder>\$(?P<number>\d+))
""", re.VERBOSE)

_HAS_PLACEHOLDER = re.compile(r'\$\d+')

_IDENTIFIER = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)?$')


def tokenize_sql(sql: str) -> list[Token]:
    """Parse SQL into tokens in a single pass.

    Parameters
        sql: SQL query string

    Returns
        List of tokens preserving all SQL text
    """
    tokens = []
    last_end = 0

    for match in _TOKENIZE.finditer(sql):
        start, end = match.span()

        if start > last_end:
            tokens.append(Token(TokenType.SQL_TEXT, sql[last_end:start], last_end, start))

        if match.group('string'):
            tokens.append(Token(TokenType.STRING_LITERAL, match.group(0), start, end))
        elif match.group('ident'):
            tokens.append(Token(TokenType.QUOTED_IDENTIFIER, match.group(0), start, end))
        else:
            tokens.append(Token(TokenType.PLACEHOLDER, match.group(0), start, end,
                                int(match.group('number'))))
        last_end = end

    if last_end < len(sql):
        tokens.append(Token(TokenType.SQL_TEXT, sql[last_end:], last_end, len(sql)))

    return tokens


def has_placeholders(sql: str | None) -> bool:
    """Check if SQL has any `$k` placeholder outside literals.
    """
    if not sql or '$' not in sql:
        return False
    if not _HAS_PLACEHOLDER.search(sql):
        return False
    return any(t.type == TokenType.PLACEHOLDER for t in tokenize_sql(sql))


def placeholder_indexes(sql: str) -> list[int]:
    """Return placeholder numbers in order of appearance.
    """
    if not has_placeholders(sql):
        return []
    return [t.index for t in tokenize_sql(sql) if t.type == TokenType.PLACEHOLDER]


def max_placeholder(sql: str) -> int:
    """Return the highest placeholder number, 0 when there is none.

    For a well-formed statement this equals the argument count.
    """
    return max(placeholder_indexes(sql), default=0)


def shift_placeholders(sql: str, offset: int) -> str:
    """Renumber every placeholder by `offset`.

    >>> shift_placeholders("name = $1 AND note <> '$1'", 2)
    "name = $3 AND note <> '$1'"
    """
    if not offset or not has_placeholders(sql):
        return sql

    result = []
    for token in tokenize_sql(sql):
        if token.type == TokenType.PLACEHOLDER:
            result.append(f'${token.index + offset}')
        else:
            result.append(token.text)
    return ''.join(result)


def is_identifier(name: str) -> bool:
    """Check for a plain (`name`) or qualified (`alias.name`) identifier.
    """
    return bool(name) and bool(_IDENTIFIER.match(name))


def quote_identifier(identifier: str) -> str:
    """Safely quote a database identifier.

    Dotted names are quoted part by part: `public.users` becomes
    `"public"."users"`.

    Parameters
        identifier: Table or column name

    Returns
        Quoted identifier
    """
    return '.'.join('"' + part.replace('"', '""') + '"' for part in identifier.split('.'))
