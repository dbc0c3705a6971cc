"""
Pooled statement execution with SQLAlchemy and psycopg.

This module provides:
1. `create_url_from_options()` for building the SQLAlchemy URL of a profile
2. `PoolRegistry`, owning one async engine per named profile
3. `retry_transient`, the single-retry decorator for name-resolution failures
4. `QueryExecutor`, which runs `(sql, args)` and returns a `QueryResult`

Statements keep their native `$1 … $N` placeholders: they are executed on
the engine's psycopg connection through an `AsyncRawCursor`, so no
placeholder rewriting happens between the builders and the server.
"""
import logging
import threading
import time
from collections.abc import Callable, Mapping, Sequence
from functools import wraps
from typing import Any

import psycopg
import sqlalchemy as sa
from psycopg import AsyncRawCursor
from psycopg.rows import dict_row
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from pgadapter.exceptions import ConfigurationError, DatabaseError, QueryError
from pgadapter.exceptions import TransientNetworkError, UniquenessViolation
from pgadapter.exceptions import is_transient_network_error, unique_violation_column
from pgadapter.options import DatabaseOptions
from pgadapter.types import QueryResult, TypeConverter

__all__ = [
    'create_url_from_options',
    'engine_kwargs_for_options',
    'PoolRegistry',
    'retry_transient',
    'translate_driver_error',
    'QueryExecutor',
]

logger = logging.getLogger(__name__)

DEFAULT_PROFILE = 'default'


def create_url_from_options(options: DatabaseOptions,
                            url_creator: Callable[..., sa.URL] = sa.URL.create) -> sa.URL:
    """Convert DatabaseOptions to SQLAlchemy URL.
    """
    if options.drivername != 'postgresql':
        raise ConfigurationError(f'Unsupported database type: {options.drivername}')

    query = {}
    if options.timeout:
        query['connect_timeout'] = str(options.timeout)

    return url_creator(
        drivername='postgresql+psycopg',
        username=options.username,
        password=options.password,
        host=options.hostname,
        port=options.port,
        database=options.database,
        query=query
    )


def engine_kwargs_for_options(options: DatabaseOptions) -> dict[str, Any]:
    """Pool and connection settings for `create_async_engine`.

    The query timeout is sent to the server as `statement_timeout`.
    """
    connect_args: dict[str, Any] = {'application_name': options.appname}
    if options.query_timeout:
        connect_args['options'] = f'-c statement_timeout={int(options.query_timeout * 1000)}'

    return {
        'echo': bool(options.debug),
        'pool_size': options.pool_max_connections,
        'max_overflow': options.pool_max_overflow,
        'pool_timeout': options.pool_wait_timeout,
        'pool_recycle': options.pool_max_idle_time,
        'pool_pre_ping': True,
        'connect_args': connect_args,
        }


class PoolRegistry:
    """Async engines keyed by profile name, created on first use.

    Owned by the application's composition root and injected into
    executors; engines live until `dispose_all()`.
    """

    def __init__(self, profiles: Mapping[str, DatabaseOptions],
                 engine_factory: Callable[..., AsyncEngine] = create_async_engine) -> None:
        if not profiles:
            raise ConfigurationError('PoolRegistry needs at least one profile')
        self._profiles = dict(profiles)
        self._engine_factory = engine_factory
        self._engines: dict[str, AsyncEngine] = {}
        self._lock = threading.RLock()

    def __contains__(self, name: str) -> bool:
        return name in self._profiles

    @property
    def profiles(self) -> tuple[str, ...]:
        return tuple(self._profiles)

    def options_for(self, name: str = DEFAULT_PROFILE) -> DatabaseOptions:
        try:
            return self._profiles[name]
        except KeyError:
            raise ConfigurationError(f'Unknown database profile: {name}') from None

    def get_engine(self, name: str = DEFAULT_PROFILE) -> AsyncEngine:
        """Get or create the engine for a profile.
        """
        with self._lock:
            if name in self._engines:
                return self._engines[name]

            options = self.options_for(name)
            engine = self._engine_factory(create_url_from_options(options),
                                          **engine_kwargs_for_options(options))
            self._engines[name] = engine
            logger.debug(f'Created new engine for profile {name}')
            return engine

    def executor(self, name: str = DEFAULT_PROFILE) -> 'QueryExecutor':
        return QueryExecutor(self, name)

    async def dispose_all(self) -> None:
        """Dispose all engines in the registry.
        """
        with self._lock:
            engines = list(self._engines.items())
            self._engines.clear()
        for name, engine in engines:
            await engine.dispose()
        logger.debug('All database engines disposed')


def retry_transient(func: Callable | None = None, *, max_retries: int = 1) -> Callable:
    """Retry an async call on a transient name-resolution failure.

    Retries immediately, without backoff. Once the retries are spent the
    failure propagates as TransientNetworkError; every other error
    propagates unchanged on the first attempt.

    Supports both @retry_transient and @retry_transient() syntax.
    """
    def decorator(f: Callable) -> Callable:
        @wraps(f)
        async def inner(*args: Any, **kwargs: Any) -> Any:
            tries = 0
            while True:
                try:
                    return await f(*args, **kwargs)
                except Exception as err:
                    if not is_transient_network_error(err):
                        raise
                    if tries >= max_retries:
                        logger.error(f'Transient network error persisted after {tries} retry: {err}')
                        if isinstance(err, TransientNetworkError):
                            raise
                        raise TransientNetworkError(str(err)) from err
                    tries += 1
                    logger.warning(f'Transient network error, retrying ({tries}/{max_retries}): {err}')

        return inner

    if func is None:
        return decorator
    return decorator(func)


def translate_driver_error(err: Exception, sql: str, args: Sequence[Any]) -> DatabaseError:
    """Map a driver failure onto the adapter error taxonomy."""
    if isinstance(err, DatabaseError):
        return err
    driver_err = getattr(err, 'orig', None) or err
    sqlstate = getattr(driver_err, 'sqlstate', None)
    if isinstance(driver_err, psycopg.errors.UniqueViolation):
        diag = getattr(driver_err, 'diag', None)
        return UniquenessViolation(str(driver_err), column=unique_violation_column(driver_err),
                                   constraint=getattr(diag, 'constraint_name', None),
                                   sql=sql, args=tuple(args))
    return QueryError(str(driver_err), sql=sql, args=tuple(args), sqlstate=sqlstate)


class QueryExecutor:
    """Execute statements on a pooled connection of one profile.

    Each call borrows a connection, commits on success, rolls back on
    failure and returns the connection to the pool.
    """

    def __init__(self, registry: PoolRegistry, profile: str = DEFAULT_PROFILE) -> None:
        self.registry = registry
        self.profile = profile
        self.options = registry.options_for(profile)

    def __repr__(self) -> str:
        return f'QueryExecutor(profile={self.profile!r})'

    @property
    def namespace(self) -> str:
        """Default PostgreSQL schema for model tables."""
        return self.options.schema

    async def execute(self, sql: str, args: Sequence[Any] | None = None) -> QueryResult:
        """Run one statement.

        Raises
            TransientNetworkError: name resolution failed twice in a row
            UniquenessViolation: a unique constraint rejected the write
            QueryError: any other database failure, with sql and args attached
        """
        args = tuple(args or ())
        logger.debug(f'SQL: {sql} Args: {args}')
        start = time.perf_counter()
        try:
            result = await self._execute_with_retry(sql, args)
        except TransientNetworkError:
            raise
        except (psycopg.Error, sa.exc.SQLAlchemyError) as err:
            error = translate_driver_error(err, sql, args)
            logger.error(f'Query Error: {error} SQL: {sql} Args: {args}')
            raise error from err
        elapsed = time.perf_counter() - start
        logger.debug(f'Query successfully. Count: {result.row_count} ({elapsed:.3f}s)')
        return result

    @retry_transient
    async def _execute_with_retry(self, sql: str, args: tuple[Any, ...]) -> QueryResult:
        return await self._execute_once(sql, args)

    async def _execute_once(self, sql: str, args: tuple[Any, ...]) -> QueryResult:
        engine = self.registry.get_engine(self.profile)
        params = TypeConverter.convert_params(args)
        async with engine.connect() as conn:
            raw = await conn.get_raw_connection()
            driver = raw.driver_connection
            try:
                async with AsyncRawCursor(driver, row_factory=dict_row) as cursor:
                    await cursor.execute(sql, params or None)
                    rows = await cursor.fetchall() if cursor.description else []
                    row_count = cursor.rowcount
                await driver.commit()
            except Exception:
                await driver.rollback()
                raise
        return QueryResult(rows=tuple(rows), row_count=row_count)
