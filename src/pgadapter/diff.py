"""
Minimal change sets for diff-based UPDATE statements.

`diff(row, model)` compares a persisted row with an incoming model and
returns only the columns worth writing. JSON merge columns (metadata,
settings) are deep-merged over the stored value instead of replaced.
"""
import json
import logging
import numbers
from collections.abc import Iterable, Mapping
from typing import Any

from pgadapter.exceptions import ValidationError
from pgadapter.schema import Schema
from pgadapter.utils import camelize, deep_merge, is_empty

logger = logging.getLogger(__name__)

__all__ = ['diff', 'values_equal', 'DEFAULT_MERGE_FIELDS', 'PROTECTED_COLUMNS']

DEFAULT_MERGE_FIELDS = frozenset({'metadata', 'settings'})

# never part of an update, regardless of input
PROTECTED_COLUMNS = frozenset({'created', 'created_at', 'createdAt'})

_UNCHANGED = object()


def values_equal(left: Any, right: Any) -> bool:
    """Python equality, except that bools never equal numbers.
    """
    if isinstance(left, bool) is not isinstance(right, bool):
        return False
    try:
        return bool(left == right)
    except (TypeError, ValueError):
        return False


def _accepts(value: Any, accept_null: bool, accept_zero: bool) -> bool:
    if value is None:
        return accept_null
    if isinstance(value, bool):
        return True
    if isinstance(value, str):
        return accept_null or value.strip() != ''
    if isinstance(value, numbers.Number) and value == 0:
        return accept_zero
    return True


def _load_json(value: Any, column: str) -> Any:
    if isinstance(value, (str, bytes, bytearray)):
        try:
            return json.loads(value)
        except ValueError as err:
            raise ValidationError(f'Invalid JSON in {column}: {err}', source=column) from err
    return value


def _merge(stored: Any, value: Any, column: str) -> Any:
    """Deep-merge `value` over `stored`; JSON text when anything changed."""
    if is_empty(value):
        return _UNCHANGED
    incoming = _load_json(value, column)
    current = _load_json(stored, column) if stored is not None else {}

    if isinstance(incoming, Mapping):
        base = current if isinstance(current, Mapping) else {}
        merged = deep_merge(base, incoming)
    else:
        merged = incoming

    if values_equal(merged, current):
        return _UNCHANGED
    return json.dumps(merged, default=str)


def diff(row: Mapping[str, Any], model: Any, accept_null: bool = False,
         accept_zero: bool = True, excepts: Iterable[str] = (),
         skip_values: Iterable[Any] = (), merge_fields: Iterable[str] | None = None) -> dict[str, Any]:
    """Return column -> new value for every column that should be written.

    For each column of the persisted `row`, the model value is looked up by
    column name, then by camelCase name. A column is included when the
    model carries it, the value differs and it passes the emptiness policy:
    None and blank strings only with `accept_null`, zero only with
    `accept_zero`, False always. Columns named in `excepts` and values in
    `skip_values` are never written. The primary key and creation columns
    are always stripped.

    >>> diff({'a': 1, 'b': 'x'}, {'a': 1, 'b': 'y'})
    {'b': 'y'}
    """
    schema = getattr(model, 'schema', None)
    if hasattr(model, 'get_attributes'):
        values = model.get_attributes()
    else:
        values = dict(model)

    if merge_fields is None:
        merge_fields = schema.merge_fields if isinstance(schema, Schema) else DEFAULT_MERGE_FIELDS
    merge_fields = frozenset(merge_fields)
    primary_key = schema.primary_key if isinstance(schema, Schema) else 'uid'
    skipped = frozenset(excepts or ()) | PROTECTED_COLUMNS | {primary_key}
    skip_values = tuple(skip_values or ())

    results = {}
    for column, stored in row.items():
        if column in skipped:
            continue
        key = column if column in values else camelize(column)
        if key not in values:
            continue
        value = values[key]

        if column in merge_fields:
            merged = _merge(stored, value, column)
            if merged is not _UNCHANGED:
                results[column] = merged
            continue

        if not _accepts(value, accept_null, accept_zero):
            continue
        if any(values_equal(value, skip) for skip in skip_values):
            continue
        if values_equal(stored, value):
            continue
        results[column] = value

    logger.debug(f'Diff columns: {list(results)}')
    return results
