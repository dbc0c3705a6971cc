"""
SQL statement generation for model schemas.

Every builder returns a `Statement(sql, args)` whose `$1 … $N`
placeholders were allocated by one `ParamBinder`, so the highest
placeholder always equals the argument count.

Builders:
- `build_insert` / `build_insert_many` - INSERT with optional RETURNING
- `build_update` - UPDATE from a pre-diffed mapping
- `build_select` / `build_select_relation` - SELECT with or without JOINs
- `build_count` - COUNT(*) for pagination totals
- `build_delete` / `build_exists`
"""
import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from pgadapter.clauses import render_order, render_where
from pgadapter.columns import aliased_column_string, column_string, schema_of
from pgadapter.exceptions import ValidationError
from pgadapter.params import ParamBinder
from pgadapter.schema import Schema
from pgadapter.sql import quote_identifier
from pgadapter.types import Condition, ExtraColumn, PageWindow, QueryOptions
from pgadapter.types import RelationSpec
from pgadapter.utils import has_value

logger = logging.getLogger(__name__)

__all__ = [
    'Statement',
    'build_insert',
    'build_insert_many',
    'build_update',
    'build_select',
    'build_select_relation',
    'build_count',
    'build_delete',
    'build_exists',
]

DEFAULT_NAMESPACE = 'public'


@dataclass(frozen=True)
class Statement:
    """SQL text and its positional arguments."""
    sql: str
    args: tuple[Any, ...] = ()

    def __iter__(self):
        yield self.sql
        yield self.args


def _table(schema: Schema, namespace: str | None) -> str:
    return quote_identifier(schema.qualified_name(namespace or DEFAULT_NAMESPACE))


def _join(*parts: str | None) -> str:
    return ' '.join(p for p in parts if p)


def _returning(schema: Schema, returning: bool | str | None,
               extra_keys: Iterable[str] = ()) -> str:
    """RETURNING clause: every declared field plus extra keys for True,
    a literal clause for a string, nothing otherwise.
    """
    if returning is True:
        names = list(schema.fields)
        names.extend(k for k in extra_keys if k not in names)
        return 'RETURNING ' + ', '.join(quote_identifier(n) for n in names)
    if isinstance(returning, str) and returning.strip():
        return 'RETURNING ' + returning.strip()
    return ''


def _extra_value(extra: ExtraColumn, binder: ParamBinder) -> str:
    if extra.value is not None:
        return extra.value
    return binder.bind(extra.arg)


def _require_where(where: Condition | None, operation: str, table: str) -> Condition:
    if where is None or where.is_empty:
        raise ValidationError(f'{operation} {table} error: Input condition is empty',
                              source='condition')
    return where


def _insert_columns(model: Any, excluded: frozenset[str]) -> list[str]:
    return [name for name, value in model.get_attributes().items()
            if name not in excluded and has_value(value)]


def build_insert(model: Any, options: QueryOptions | None = None,
                 namespace: str | None = None) -> Statement:
    """INSERT one model.

    Columns with a value (0 and False included, None and '' dropped) are
    written, minus excepts and the ignore-on-insert/save sets; extra
    columns are appended as literal SQL or bound values.
    """
    options = options or QueryOptions()
    schema = schema_of(model)
    excluded = frozenset(options.excepts) | schema.ignore_on_insert | schema.ignore_on_save

    binder = ParamBinder()
    attributes = model.get_attributes()
    columns, values = [], []
    for name in _insert_columns(model, excluded):
        columns.append(quote_identifier(name))
        values.append(binder.bind(attributes[name]))
    for extra in options.extra_columns:
        columns.append(quote_identifier(extra.key))
        values.append(_extra_value(extra, binder))

    table = _table(schema, namespace)
    if columns:
        body = f'INSERT INTO {table} ({", ".join(columns)}) VALUES ({", ".join(values)})'
    else:
        body = f'INSERT INTO {table} DEFAULT VALUES'

    extra_keys = [e.key for e in options.extra_columns]
    sql = _join(body, _returning(schema, options.returning, extra_keys))
    return Statement(sql, binder.args)


def build_insert_many(models: Sequence[Any], options: QueryOptions | None = None,
                      namespace: str | None = None,
                      row_extras: Sequence[Sequence[ExtraColumn]] | None = None) -> Statement:
    """INSERT several models of one type in a single statement.

    The column set comes from the first model; every other model must
    carry values for exactly the same columns. `row_extras` gives each
    model its own extra columns, which must share the same keys; without
    it `options.extra_columns` applies to every row.
    """
    if not models:
        raise ValidationError('Empty input models. Cannot insert into database', source='models')

    options = options or QueryOptions()
    first = models[0]
    schema = schema_of(first)
    excluded = frozenset(options.excepts) | schema.ignore_on_insert | schema.ignore_on_save
    names = _insert_columns(first, excluded)

    for index, model in enumerate(models[1:], start=1):
        if type(model) is not type(first):
            raise ValidationError(f'Batch row {index} is a {type(model).__name__}, '
                                  f'expected {type(first).__name__}', source='models')
        present = _insert_columns(model, excluded)
        if present != names:
            missing = sorted(set(names) ^ set(present))
            raise ValidationError(f'Batch row {index} has a different column set: {missing}',
                                  source='models')

    if row_extras is None:
        row_extras = [options.extra_columns] * len(models)
    elif len(row_extras) != len(models):
        raise ValidationError(f'Got extra columns for {len(row_extras)} rows, '
                              f'expected {len(models)}', source='models')
    extra_keys = [e.key for e in row_extras[0]]
    if len(set(extra_keys)) != len(extra_keys):
        raise ValidationError(f'Duplicate extra columns: {extra_keys}', source='extra_columns')
    for index, extras in enumerate(row_extras[1:], start=1):
        keys = [e.key for e in extras]
        if keys != extra_keys:
            raise ValidationError(f'Batch row {index} has extra columns {keys}, '
                                  f'expected {extra_keys}', source='extra_columns')

    columns = [quote_identifier(n) for n in names]
    columns.extend(quote_identifier(k) for k in extra_keys)
    if not columns:
        raise ValidationError('Batch insert has no columns', source='models')

    binder = ParamBinder()
    groups = []
    for model, extras in zip(models, row_extras):
        attributes = model.get_attributes()
        values = [binder.bind(attributes[n]) for n in names]
        values.extend(_extra_value(e, binder) for e in extras)
        groups.append(f'({", ".join(values)})')

    body = f'INSERT INTO {_table(schema, namespace)} ({", ".join(columns)}) VALUES {", ".join(groups)}'
    sql = _join(body, _returning(schema, options.returning, extra_keys))
    return Statement(sql, binder.args)


def build_update(model: Any, changes: Mapping[str, Any], where: Condition | None,
                 options: QueryOptions | None = None,
                 namespace: str | None = None) -> Statement:
    """UPDATE from a pre-diffed column mapping.

    The WHERE fragments are renumbered after the SET parameters.
    """
    options = options or QueryOptions()
    schema = schema_of(model)
    table = _table(schema, namespace)
    where = _require_where(where, 'UPDATE', table)
    excluded = schema.ignore_on_update | schema.ignore_on_save

    binder = ParamBinder()
    assignments = [f'{quote_identifier(column)} = {binder.bind(value)}'
                   for column, value in changes.items() if column not in excluded]
    for extra in options.extra_columns:
        assignments.append(f'{quote_identifier(extra.key)} = {_extra_value(extra, binder)}')
    if not assignments:
        raise ValidationError(f'Nothing to update in {table}', source='model')

    fragments = binder.absorb(where.where, where.args)
    sql = _join(f'UPDATE {table} SET {", ".join(assignments)}',
                render_where(fragments),
                _returning(schema, options.returning))
    return Statement(sql, binder.args)


def build_select(model: Any, where: Condition | None = None, *, order: Any = None,
                 limit: int | None = None, window: PageWindow | None = None,
                 excepts: Iterable[str] = (), namespace: str | None = None) -> Statement:
    """SELECT declared columns with optional WHERE, ORDER BY and LIMIT.

    `order` falls back to the condition's own order, then the schema default.
    """
    schema = schema_of(model)
    binder = ParamBinder()
    fragments = binder.absorb(where.where, where.args) if where is not None else []
    if order is None and where is not None:
        order = where.order
    sql = _join(f'SELECT {column_string(schema, excepts)} '
                f'FROM {_table(schema, namespace)} {schema.alias}',
                render_where(fragments),
                render_order(schema, order),
                f'LIMIT {int(limit)}' if limit is not None else '',
                window.sql if window is not None else '')
    return Statement(sql, binder.args)


def build_select_relation(model: Any, relation: RelationSpec, *, order: Any = None,
                          limit: int | None = None, window: PageWindow | None = None,
                          excepts: Iterable[str] = (),
                          namespace: str | None = None) -> Statement:
    """SELECT aliased columns of every included relation through its JOINs.

    Bare order fields are qualified with the primary alias.
    """
    schema = schema_of(model)
    if not relation.includes:
        raise ValidationError('Relation has no includes', source='includes')
    binder = ParamBinder()
    fragments = binder.absorb(relation.where, relation.args)
    sql = _join(f'SELECT {aliased_column_string(relation.includes, excepts)} '
                f'FROM {_table(schema, namespace)} {schema.alias}',
                ' '.join(relation.joins),
                render_where(fragments),
                render_order(schema, order, has_relation=True),
                f'LIMIT {int(limit)}' if limit is not None else '',
                window.sql if window is not None else '')
    return Statement(sql, binder.args)


def build_count(model: Any, where: Sequence[str] = (), args: Sequence[Any] = (),
                joins: Sequence[str] = (), namespace: str | None = None) -> Statement:
    """SELECT COUNT(*) AS total over the same FROM/JOIN/WHERE as a fetch."""
    schema = schema_of(model)
    binder = ParamBinder()
    fragments = binder.absorb(list(where), args)
    sql = _join(f'SELECT COUNT(*) AS total FROM {_table(schema, namespace)} {schema.alias}',
                ' '.join(joins),
                render_where(fragments))
    return Statement(sql, binder.args)


def build_delete(model: Any, where: Condition | None, returning: bool | str | None = None,
                 namespace: str | None = None) -> Statement:
    """DELETE with a mandatory condition (ALL_ROWS to delete everything)."""
    schema = schema_of(model)
    table = _table(schema, namespace)
    where = _require_where(where, 'DELETE', table)
    binder = ParamBinder()
    fragments = binder.absorb(where.where, where.args)
    sql = _join(f'DELETE FROM {table}', render_where(fragments),
                _returning(schema, returning))
    return Statement(sql, binder.args)


def build_exists(model: Any, where: Condition | None, namespace: str | None = None) -> Statement:
    schema = schema_of(model)
    table = _table(schema, namespace)
    where = _require_where(where, 'EXISTS', table)
    binder = ParamBinder()
    fragments = binder.absorb(where.where, where.args)
    inner = _join(f'SELECT 1 FROM {table}', render_where(fragments))
    return Statement(f'SELECT EXISTS ({inner}) AS "exists"', binder.args)
