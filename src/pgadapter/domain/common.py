"""
Database-side helpers that are not tied to a table.
"""
import logging
from typing import Any

from pgadapter.exceptions import ConfigurationError, QueryError
from pgadapter.sql import is_identifier, quote_identifier

logger = logging.getLogger(__name__)

__all__ = ['CommonAdapter']


class CommonAdapter:
    """Call server functions of the configured schema.
    """

    def __init__(self, executor: Any, namespace: str | None = None) -> None:
        self.executor = executor
        self._namespace = namespace

    @property
    def namespace(self) -> str:
        return self._namespace or getattr(self.executor, 'namespace', None) or 'public'

    async def generate_uid(self) -> Any:
        """Generate a new uid with `<schema>.id_generator()`.
        """
        namespace = self.namespace
        if not is_identifier(namespace) or '.' in namespace:
            raise ConfigurationError(f'Invalid schema name: {namespace!r}')
        sql = f'SELECT {quote_identifier(namespace)}.id_generator() AS uid'
        result = await self.executor.execute(sql, ())
        if result.first is None:
            raise QueryError('id_generator() returned no row', sql=sql)
        uid = result.first['uid']
        logger.debug(f'Generated UID: {uid}')
        return uid
