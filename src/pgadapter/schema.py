"""
Model schemas and the model base class.

A `Schema` describes one table: name, ordered fields, alias and the column
sets excluded from writes. It is introspection only; row data lives on
`Model` instances, whose attribute keys are fixed by their schema.
"""
import datetime
import json
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, ClassVar

from pgadapter.exceptions import ConfigurationError
from pgadapter.sql import is_identifier
from pgadapter.utils import camelize, underscore

logger = logging.getLogger(__name__)

__all__ = ['Schema', 'Model', 'Status', 'utcnow']

CREATED_COLUMNS = ('created_at', 'created')
UPDATED_COLUMNS = ('updated_at', 'updated')


class Status(IntEnum):
    """Record status values stored in `status` columns."""
    INACTIVE = 0
    ACTIVE = 1
    DISABLED = 2
    DELETED = 3


def utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def _frozen(values: Iterable[str] | None) -> frozenset[str]:
    if isinstance(values, str):
        return frozenset((values,))
    return frozenset(values or ())


@dataclass(frozen=True)
class Schema:
    """Table descriptor for a model type.

    Field order is the declared order and drives every column list.
    """
    table: str
    fields: tuple[str, ...]
    alias: str | None = None
    namespace: str | None = None
    primary_key: str = 'uid'
    default_order: str | tuple[str, ...] | None = None
    ignore_on_insert: frozenset[str] = field(default_factory=frozenset)
    ignore_on_update: frozenset[str] = field(default_factory=frozenset)
    ignore_on_save: frozenset[str] = field(default_factory=frozenset)
    merge_fields: frozenset[str] = frozenset({'metadata', 'settings'})

    def __post_init__(self):
        fields_ = tuple(self.fields)
        if not fields_:
            raise ConfigurationError(f'Schema for {self.table} declares no fields')
        if len(set(fields_)) != len(fields_):
            raise ConfigurationError(f'Schema for {self.table} declares duplicate fields')
        for name in (self.table, *fields_):
            if not is_identifier(name) or '.' in name:
                raise ConfigurationError(f'Invalid identifier in schema: {name!r}')
        object.__setattr__(self, 'fields', fields_)
        object.__setattr__(self, 'alias', self.alias or self.table)
        if not is_identifier(self.alias) or '.' in self.alias:
            raise ConfigurationError(f'Invalid table alias: {self.alias!r}')
        if self.primary_key not in fields_:
            raise ConfigurationError(f'Primary key {self.primary_key} is not a field of {self.table}')
        for name in ('ignore_on_insert', 'ignore_on_update', 'ignore_on_save', 'merge_fields'):
            object.__setattr__(self, name, _frozen(getattr(self, name)))

    def qualified_name(self, default_namespace: str = 'public') -> str:
        """Return `namespace.table`, falling back to the configured schema."""
        return f'{self.namespace or default_namespace}.{self.table}'

    def has_field(self, name: str) -> bool:
        return name in self.fields

    def resolve(self, name: str) -> str | None:
        """Map a column or camelCase name onto a declared field."""
        if name in self.fields:
            return name
        column = underscore(name)
        return column if column in self.fields else None

    @property
    def created_column(self) -> str | None:
        return next((c for c in CREATED_COLUMNS if c in self.fields), None)

    @property
    def updated_column(self) -> str | None:
        return next((c for c in UPDATED_COLUMNS if c in self.fields), None)


class Model:
    """Base class for table models.

    Subclasses set `schema`. Values are accepted under column names or
    their camelCase form; unknown keys are dropped.

    Usage:
        class Province(Model):
            schema = Schema('provinces', ('uid', 'code', 'name'))

        Province({'code': 'HN', 'name': 'Ha Noi'}).get_attributes()
    """

    schema: ClassVar[Schema]

    def __init__(self, data: Mapping[str, Any] | None = None, **kwargs: Any) -> None:
        schema = getattr(type(self), 'schema', None)
        if not isinstance(schema, Schema):
            raise ConfigurationError(f'{type(self).__name__} has no schema')
        values = dict.fromkeys(schema.fields)
        for source in (data or {}, kwargs):
            for key, value in source.items():
                column = schema.resolve(key)
                if column is not None:
                    values[column] = value
        object.__setattr__(self, '_values', values)

    def __getattr__(self, name: str) -> Any:
        values = self.__dict__.get('_values')
        if values is not None:
            column = type(self).schema.resolve(name)
            if column is not None:
                return values[column]
        raise AttributeError(f'{type(self).__name__} has no attribute {name}')

    def __setattr__(self, name: str, value: Any) -> None:
        column = type(self).schema.resolve(name)
        if column is None:
            object.__setattr__(self, name, value)
            return
        self._values[column] = value

    def __contains__(self, name: str) -> bool:
        return type(self).schema.resolve(name) is not None

    def __eq__(self, other: object) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return self._values == other._values

    def __repr__(self) -> str:
        pk = type(self).schema.primary_key
        return f'{type(self).__name__}({pk}={self._values.get(pk)!r})'

    @property
    def pk(self) -> Any:
        return self._values[type(self).schema.primary_key]

    def get(self, name: str, default: Any = None) -> Any:
        column = type(self).schema.resolve(name)
        if column is None:
            return default
        return self._values[column]

    def get_attributes(self) -> dict[str, Any]:
        """Ordered column -> value mapping, one entry per declared field."""
        return dict(self._values)

    def to_dict(self, camel: bool = False) -> dict[str, Any]:
        if camel:
            return {camelize(k): v for k, v in self._values.items()}
        return dict(self._values)

    def before_save(self, is_new: bool) -> None:
        """Prepare values for a write.

        Merge fields given as mappings are serialized to JSON text, the
        creation column is stamped on new records and the update column
        on every save.
        """
        schema = type(self).schema
        for name in schema.merge_fields:
            value = self._values.get(name)
            if name in schema.fields and isinstance(value, (Mapping, list)):
                self._values[name] = json.dumps(value, default=str)

        now = utcnow()
        if is_new and schema.created_column:
            self._values[schema.created_column] = now
        if schema.updated_column:
            self._values[schema.updated_column] = now
