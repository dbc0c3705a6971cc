"""
SELECT column lists derived from model schemas.

- `project_plain(model, excepts)` - Declared columns minus exclusions
- `project_aliased(includes, excepts)` - `"alias"."col" AS alias_col` per relation
- `column_string(model, excepts)` - Quoted, comma-joined plain list
"""
from collections.abc import Iterable
from typing import Any

from pgadapter.cache import memoize
from pgadapter.exceptions import ConfigurationError
from pgadapter.schema import Schema
from pgadapter.sql import quote_identifier
from pgadapter.types import Include

__all__ = [
    'schema_of',
    'project_plain',
    'project_aliased',
    'column_string',
    'aliased_column_string',
]


def schema_of(model: Any) -> Schema:
    """Return the schema of a model class, model instance or schema."""
    if isinstance(model, Schema):
        return model
    schema = getattr(model, 'schema', None)
    if not isinstance(schema, Schema):
        raise ConfigurationError(f'Invalid input model type: {model!r}')
    return schema


@memoize('plain_columns')
def _plain(schema: Schema, excepts: frozenset[str]) -> tuple[str, ...]:
    return tuple(name for name in schema.fields if name not in excepts)


def project_plain(model: Any, excepts: Iterable[str] = ()) -> tuple[str, ...]:
    """Ordered column names of `model`, minus `excepts`.
    """
    return _plain(schema_of(model), frozenset(excepts or ()))


def project_aliased(includes: Iterable[Include | tuple], excepts: Iterable[str] = ()) -> list[str]:
    """Aliased projections for each `(alias, model)` pair in caller order.

    Exclusions are matched against `alias.column`.
    """
    excluded = frozenset(excepts or ())
    columns = []
    for include in includes:
        alias, model = include
        for name in schema_of(model).fields:
            if f'{alias}.{name}' in excluded:
                continue
            columns.append(f'{quote_identifier(f"{alias}.{name}")} AS {alias}_{name}')
    return columns


def column_string(model: Any, excepts: Iterable[str] = ()) -> str:
    return ', '.join(quote_identifier(name) for name in project_plain(model, excepts))


def aliased_column_string(includes: Iterable[Include | tuple], excepts: Iterable[str] = ()) -> str:
    return ', '.join(project_aliased(includes, excepts))
