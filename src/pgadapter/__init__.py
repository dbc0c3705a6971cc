"""
Async PostgreSQL access layer for model-based CRUD adapters.

Statements are built with `$1 … $N` placeholders and executed through a
pooled SQLAlchemy async engine on the psycopg 3 driver:

    registry = PoolRegistry(load_profiles(config['db']))
    provinces = ProvinceAdapter(registry.executor())
    rows = await provinces.get_many_by_country('VN')
"""
__version__ = '0.1.0'

from pgadapter.adapter import RelationalAdapter
from pgadapter.connection import PoolRegistry, QueryExecutor, retry_transient
from pgadapter.exceptions import ConfigurationError, DatabaseError, NotFoundError
from pgadapter.exceptions import QueryError, TransientNetworkError
from pgadapter.exceptions import UniquenessViolation, ValidationError
from pgadapter.exceptions import translate_error
from pgadapter.hooks import HookRegistry
from pgadapter.options import DatabaseOptions, load_profiles
from pgadapter.schema import Model, Schema, Status
from pgadapter.service import Service
from pgadapter.statements import Statement
from pgadapter.types import ALL_ROWS, Condition, ExtraColumn, Include, Page
from pgadapter.types import PageMeta, PageRequest, QueryOptions, QueryResult
from pgadapter.types import RelationSpec

__all__ = [
    'ALL_ROWS',
    'ConfigurationError',
    'Condition',
    'DatabaseError',
    'DatabaseOptions',
    'ExtraColumn',
    'HookRegistry',
    'Include',
    'Model',
    'NotFoundError',
    'Page',
    'PageMeta',
    'PageRequest',
    'PoolRegistry',
    'QueryError',
    'QueryExecutor',
    'QueryOptions',
    'QueryResult',
    'RelationSpec',
    'RelationalAdapter',
    'Schema',
    'Service',
    'Statement',
    'Status',
    'TransientNetworkError',
    'UniquenessViolation',
    'ValidationError',
    'load_profiles',
    'retry_transient',
    'translate_error',
]
