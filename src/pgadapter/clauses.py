"""
WHERE, ORDER BY and LIMIT/OFFSET fragments.

Fragments are returned without surrounding whitespace; statement builders
join them with single spaces. An empty string means "no clause".
"""
import logging
from collections.abc import Mapping
from typing import Any

from pgadapter.exceptions import ConfigurationError, ValidationError
from pgadapter.schema import Schema
from pgadapter.sql import is_identifier
from pgadapter.types import Condition, PageRequest, PageWindow
from pgadapter.utils import underscore

logger = logging.getLogger(__name__)

__all__ = ['render_where', 'render_order', 'order_terms', 'paginate']


def render_where(where: Condition | list[str] | tuple[str, ...] | str | None) -> str:
    """Join fragments with AND into a WHERE clause.
    """
    if isinstance(where, Condition):
        fragments = where.where
    elif isinstance(where, str):
        fragments = (where,) if where.strip() else ()
    else:
        fragments = tuple(f for f in where or () if f and f.strip())
    if not fragments:
        return ''
    return 'WHERE ' + ' AND '.join(f.strip() for f in fragments)


def _column_name(name: str) -> str:
    return '.'.join(underscore(part) for part in name.split('.'))


def _term(name: str, ascending: bool, prefix: str) -> str:
    column = _column_name(name.strip())
    if not is_identifier(column):
        raise ValidationError(f'Invalid order field: {name!r}', source='order')
    if prefix and '.' not in column:
        column = prefix + column
    return f'{column} {"ASC" if ascending else "DESC"}'


def order_terms(schema: Schema, order: Any = None, has_relation: bool = False) -> list[str]:
    """Resolve order input into `column ASC|DESC` terms.

    Accepts a comma-separated string, a list of tokens (`-field` for
    descending), or a mapping field -> bool (True is ascending). Falls back
    to the schema's default order.
    """
    if not order:
        order = schema.default_order
        if not order:
            return []

    prefix = f'{schema.alias}.' if has_relation else ''

    if isinstance(order, str):
        tokens = order.split(',')
    elif isinstance(order, (list, tuple)):
        tokens = list(order)
    elif isinstance(order, Mapping):
        return [_term(str(key), bool(asc), prefix) for key, asc in order.items()]
    else:
        raise ConfigurationError(f'Invalid SQL order type: {type(order).__name__}')

    terms = []
    for token in tokens:
        if not isinstance(token, str):
            raise ConfigurationError(f'Invalid SQL order token: {token!r}')
        token = token.strip()
        if not token:
            continue
        if token.startswith('-'):
            terms.append(_term(token[1:], False, prefix))
        else:
            terms.append(_term(token.lstrip('+'), True, prefix))
    return terms


def render_order(schema: Schema, order: Any = None, has_relation: bool = False) -> str:
    """ORDER BY clause, empty when neither `order` nor a default exists.

    >>> render_order(Schema('t', ('uid', 'created_at')), '-createdAt')
    'ORDER BY created_at DESC'
    """
    terms = order_terms(schema, order, has_relation)
    if not terms:
        return ''
    return 'ORDER BY ' + ', '.join(terms)


def paginate(request: PageRequest | Mapping | None) -> PageWindow:
    """Compute the LIMIT/OFFSET window for a page request.

    Page 1 yields `LIMIT n`, page p > 1 yields `OFFSET (p-1)*n LIMIT n`.
    A missing or non-positive page size disables paging and reports page 1.
    """
    request = PageRequest.coerce(request)
    if not request.enabled:
        return PageWindow(sql=None, page_number=1, row_offset=0)

    page_number = max(1, request.page_number)

    size = int(request.page_size)
    if page_number == 1:
        return PageWindow(sql=f'LIMIT {size}', page_number=1, row_offset=0)
    offset = (page_number - 1) * size
    return PageWindow(sql=f'OFFSET {offset} LIMIT {size}', page_number=page_number,
                      row_offset=offset)
