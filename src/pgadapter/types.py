"""
Value types passed between adapters, statement builders and the executor.

This module provides:
- Condition / ALL_ROWS: WHERE input, with an explicit marker for "every row"
- Include / RelationSpec: JOIN projections produced by relation callables
- ExtraColumn / QueryOptions: per-call request context
- PageRequest / PageWindow / PageMeta / Page: pagination input and output
- QueryResult: rows returned by one statement execution
- TypeConverter: Python values to driver-compatible parameters
"""
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from typing import Any, NamedTuple

from psycopg.types.json import Jsonb

from pgadapter.exceptions import ConfigurationError
from pgadapter.utils import is_empty, underscore

logger = logging.getLogger(__name__)

__all__ = [
    'ALL_ROWS',
    'Condition',
    'Include',
    'RelationSpec',
    'ExtraColumn',
    'QueryOptions',
    'PageRequest',
    'PageWindow',
    'PageMeta',
    'Page',
    'QueryResult',
    'TypeConverter',
]


class _AllRows:
    """Marker selecting every row where a condition is otherwise mandatory.
    """

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return 'ALL_ROWS'

    def __bool__(self) -> bool:
        return True


ALL_ROWS = _AllRows()


@dataclass(frozen=True)
class Condition:
    """WHERE fragments (ANDed) with their own `$1`-based argument list.
    """
    where: tuple[str, ...] = ()
    args: tuple[Any, ...] = ()
    order: Any = None
    all_rows: bool = False

    def __post_init__(self):
        where = self.where
        if isinstance(where, str):
            where = (where,) if where.strip() else ()
        object.__setattr__(self, 'where', tuple(w for w in where if w and w.strip()))
        object.__setattr__(self, 'args', tuple(self.args or ()))

    @property
    def clause(self) -> str:
        return ' AND '.join(self.where)

    @property
    def is_empty(self) -> bool:
        return not self.where and not self.all_rows

    @classmethod
    def coerce(cls, value: Any) -> 'Condition | None':
        """Normalize a raw string, mapping or marker into a Condition.

        Returns None for absent or empty input so callers can reject it.
        """
        if value is ALL_ROWS:
            return cls(all_rows=True)
        if isinstance(value, Condition):
            return None if value.is_empty else value
        if isinstance(value, str):
            return cls(where=value) if value.strip() else None
        if isinstance(value, Mapping):
            where = value.get('where') or ()
            if isinstance(where, str):
                where = where.split(' AND ')
            condition = cls(where=tuple(where), args=tuple(value.get('args') or ()),
                            order=value.get('order'))
            return None if condition.is_empty else condition
        if value is None:
            return None
        raise ConfigurationError(f'Unsupported condition type: {type(value).__name__}')


class Include(NamedTuple):
    """One projected relation: SQL alias and the model class behind it."""
    alias: str
    model: type


@dataclass
class RelationSpec:
    """Output of a relation callable: projections, joins and the final WHERE.
    """
    includes: list[Include] = field(default_factory=list)
    joins: list[str] = field(default_factory=list)
    where: list[str] = field(default_factory=list)
    args: list[Any] = field(default_factory=list)

    def __post_init__(self):
        self.includes = [inc if isinstance(inc, Include) else Include(*inc)
                         for inc in self.includes]


@dataclass(frozen=True)
class ExtraColumn:
    """Additional write column: a literal SQL expression or a bound value.

    `value` is inserted into the statement verbatim and must never carry
    caller input; `arg` is always bound as a parameter.
    """
    key: str
    value: str | None = None
    arg: Any = None

    def __post_init__(self):
        if self.value is None and self.arg is None:
            raise ConfigurationError(f'Extra column {self.key} needs a value or an arg')

    @classmethod
    def coerce(cls, value: Any) -> 'ExtraColumn':
        if isinstance(value, ExtraColumn):
            return value
        if isinstance(value, Mapping):
            return cls(key=value['key'], value=value.get('value'), arg=value.get('arg'))
        raise ConfigurationError(f'Invalid extra column: {value!r}')


_OPTION_FIELDS = ('returning', 'excepts', 'extra_columns', 'old_row', 'order',
                  'includes', 'accept_null', 'accept_zero')


@dataclass(frozen=True)
class QueryOptions:
    """Request context for one adapter call.

    Frozen: hooks and helpers derive new contexts with `evolve()`.
    """
    returning: bool | str = True
    excepts: tuple[str, ...] = ()
    extra_columns: tuple[ExtraColumn, ...] = ()
    old_row: Mapping[str, Any] | None = None
    order: Any = None
    includes: tuple[Any, ...] = ()
    accept_null: bool = False
    accept_zero: bool = True

    def __post_init__(self):
        object.__setattr__(self, 'excepts', tuple(self.excepts or ()))
        object.__setattr__(self, 'includes', tuple(self.includes or ()))
        object.__setattr__(self, 'extra_columns',
                           tuple(ExtraColumn.coerce(c) for c in self.extra_columns or ()))

    def evolve(self, **changes: Any) -> 'QueryOptions':
        return replace(self, **changes)

    def with_extra_column(self, column: ExtraColumn | Mapping) -> 'QueryOptions':
        return replace(self, extra_columns=(*self.extra_columns, ExtraColumn.coerce(column)))

    @classmethod
    def coerce(cls, value: Any = None) -> 'QueryOptions':
        """Accept None, a QueryOptions, an includes list, or a mapping.

        Mapping keys may be camelCase (`extraColumns`, `oldModel`).
        """
        if value is None:
            return cls()
        if isinstance(value, QueryOptions):
            return value
        if isinstance(value, (list, tuple)):
            return cls(includes=tuple(value))
        if isinstance(value, Mapping):
            kwargs = {}
            for key, item in value.items():
                name = underscore(key)
                if name == 'old_model':
                    name = 'old_row'
                if name in _OPTION_FIELDS:
                    kwargs[name] = item
                else:
                    logger.debug(f'Ignoring unknown query option {key}')
            return cls(**kwargs)
        raise ConfigurationError(f'Invalid query options: {value!r}')


def _int_or(value: Any, default: int) -> int:
    if is_empty(value):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True)
class PageRequest:
    """Paging input. page_size absent or <= 0 disables pagination.
    """
    page_number: int = 1
    page_size: int = 0
    order: Any = None
    includes: tuple[Any, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, 'page_number', max(1, self.page_number or 1))
        object.__setattr__(self, 'includes', tuple(self.includes or ()))

    @property
    def enabled(self) -> bool:
        return self.page_size > 0

    @classmethod
    def coerce(cls, value: Any = None) -> 'PageRequest':
        """Accept None, a PageRequest, or a mapping with snake or camel keys.

        A nested `paging` mapping supplies the page keys.
        """
        if value is None:
            return cls()
        if isinstance(value, PageRequest):
            return value
        if not isinstance(value, Mapping):
            raise ConfigurationError(f'Invalid paging parameters: {value!r}')
        paging = value.get('paging')
        source = paging if isinstance(paging, Mapping) else value
        number = source.get('page_number', source.get('pageNumber'))
        size = source.get('page_size', source.get('pageSize'))
        order = value.get('order', source.get('order'))
        includes = value.get('includes', source.get('includes')) or ()
        return cls(page_number=_int_or(number, 1), page_size=_int_or(size, 0),
                   order=order, includes=tuple(includes))


@dataclass(frozen=True)
class PageWindow:
    """Computed LIMIT/OFFSET fragment; sql is None when paging is disabled."""
    sql: str | None
    page_number: int
    row_offset: int


@dataclass(frozen=True)
class PageMeta:
    page_size: int
    page_number: int
    total_pages: int
    total: int
    count: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            'page_size': self.page_size,
            'page_number': self.page_number,
            'total_pages': self.total_pages,
            'total': self.total,
            'count': self.count,
            }


@dataclass(frozen=True)
class Page:
    data: list[Any]
    meta: PageMeta

    def __iter__(self):
        return iter(self.data)

    def __len__(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class QueryResult:
    """Rows of one execution, never shared between calls.
    """
    rows: tuple[dict[str, Any], ...] = ()
    row_count: int = 0

    def __post_init__(self):
        object.__setattr__(self, 'rows', tuple(self.rows or ()))

    def __len__(self) -> int:
        return len(self.rows)

    def __iter__(self):
        return iter(self.rows)

    @property
    def first(self) -> dict[str, Any] | None:
        return self.rows[0] if self.rows else None


class TypeConverter:
    """Convert Python values to database-compatible parameters.

    Mappings are wrapped for JSON/JSONB columns; lists are passed through
    so psycopg adapts them to arrays (`= ANY($1)`).
    """

    @staticmethod
    def convert_value(value: Any) -> Any:
        if isinstance(value, Mapping):
            return Jsonb(dict(value))
        return value

    @classmethod
    def convert_params(cls, args: Iterable[Any] | None) -> list[Any]:
        if not args:
            return []
        return [cls.convert_value(arg) for arg in args]

