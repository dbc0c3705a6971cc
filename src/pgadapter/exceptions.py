"""
Adapter-level exception classes and driver error translation.
"""
import re
import socket
from typing import Any

import psycopg

TRANSIENT_PATTERNS = [
    r'temporary failure in name resolution',
    r'eai_again',
    r'could not translate host name .* try again',
]

_TRANSIENT_REGEX = re.compile('|'.join(TRANSIENT_PATTERNS), re.IGNORECASE)

# (column) in "Key (email)=(a@b.c) already exists."
_DETAIL_COLUMN = re.compile(r'Key \(([^)]+)\)=')

UNIQUE_VIOLATION = '23505'
NOT_NULL_VIOLATION = '23502'

ERROR_CODES = {
    UNIQUE_VIOLATION: '201',
    NOT_NULL_VIOLATION: '203',
    }


def is_transient_network_error(exc: BaseException) -> bool:
    """Check if an exception is a temporary name-resolution failure.

    Only the resolver's "try again" class qualifies (EAI_AGAIN). Refused
    connections, timeouts and unknown hosts are not retried.

    :param exc: The exception to check.
    :returns: True if the error should be retried once.
    """
    if isinstance(exc, TransientNetworkError):
        return True
    # SQLAlchemy wraps driver errors raised while connecting
    orig = getattr(exc, 'orig', None)
    if isinstance(orig, BaseException) and orig is not exc:
        return is_transient_network_error(orig)
    if isinstance(exc, socket.gaierror):
        return exc.errno == socket.EAI_AGAIN
    if isinstance(exc, (psycopg.OperationalError, OSError)):
        return bool(_TRANSIENT_REGEX.search(str(exc)))
    return False


class DatabaseError(Exception):
    """Base class for all pgadapter errors.
    """


class ValidationError(DatabaseError):
    """Required input is missing or malformed; raised before any SQL is issued.
    """

    def __init__(self, message: str, source: str | None = None) -> None:
        super().__init__(message)
        self.source = source


class ConfigurationError(DatabaseError, ValueError):
    """Adapter, model or options are wired incorrectly.
    """


class NotFoundError(DatabaseError):
    """A record that was required does not exist.
    """

    code = '404'

    def __init__(self, message: str = 'Record not found', source: str | None = None) -> None:
        super().__init__(message)
        self.source = source


class QueryError(DatabaseError):
    """The database rejected a statement.

    The SQL text and bound arguments are kept for diagnostics.
    """

    def __init__(self, message: str, sql: str | None = None,
                 args: tuple | None = None, sqlstate: str | None = None) -> None:
        super().__init__(message)
        self.sql = sql
        self.params = tuple(args or ())
        self.sqlstate = sqlstate


class UniquenessViolation(QueryError):
    """A unique constraint failed; `column` names the offending column.
    """

    code = ERROR_CODES[UNIQUE_VIOLATION]

    def __init__(self, message: str, column: str | None = None,
                 constraint: str | None = None, **kw: Any) -> None:
        super().__init__(message, sqlstate=UNIQUE_VIOLATION, **kw)
        self.column = column
        self.constraint = constraint


class TransientNetworkError(DatabaseError):
    """Name resolution failed temporarily (EAI_AGAIN).
    """


def _diag(exc: BaseException, name: str) -> str | None:
    diag = getattr(exc, 'diag', None)
    return getattr(diag, name, None) if diag is not None else None


def unique_violation_column(exc: BaseException) -> str | None:
    """Find the column a unique violation refers to.

    psycopg only fills `column_name` for some constraint kinds, so the
    detail message is parsed as a fallback.
    """
    column = _diag(exc, 'column_name')
    if column:
        return column
    detail = _diag(exc, 'message_detail') or ''
    match = _DETAIL_COLUMN.search(detail)
    if match:
        return match.group(1).split(',')[0].strip()
    return None


def translate_error(exc: BaseException) -> dict[str, Any]:
    """Translate a driver error into domain code, message and source column.

    SQLSTATE 23505 maps to code 201, 23502 to 203; any other state is passed
    through unchanged.
    """
    sqlstate = getattr(exc, 'sqlstate', None)
    code = ERROR_CODES.get(sqlstate, sqlstate)
    if isinstance(exc, UniquenessViolation):
        code = exc.code
    if isinstance(exc, NotFoundError):
        code = exc.code
    message = _diag(exc, 'message_detail') or str(exc) or ''
    source = (getattr(exc, 'column', None)
              or _diag(exc, 'column_name')
              or getattr(exc, 'source', None)
              or '')
    return {'code': code, 'message': message, 'source': source}
