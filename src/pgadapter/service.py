"""
Caller-facing service layer over a RelationalAdapter.

Adapter operations return plain row mappings; a `Service` maps them to
model objects (or whatever the injected mapper builds), raises
`NotFoundError` for required single rows and wraps pages with mapped data.
"""
import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from typing import Any

from pgadapter.exceptions import NotFoundError
from pgadapter.types import Page

logger = logging.getLogger(__name__)

__all__ = ['Service']

Mapper = Callable[[Mapping[str, Any]], Any]


class Service:
    """Map adapter results for callers.

    Args:
        adapter: RelationalAdapter the operations are delegated to
        mapper: row -> object callable, defaults to the adapter's model class
    """

    def __init__(self, adapter: Any, mapper: Mapper | None = None) -> None:
        self.adapter = adapter
        self.mapper = mapper or adapter.model_class

    def __repr__(self) -> str:
        return f'{type(self).__name__}({self.adapter!r})'

    # ===== Mapping =====

    def map_one(self, row: Mapping[str, Any] | None) -> Any:
        if row is None:
            return None
        return self.mapper(row)

    def map_many(self, rows: Iterable[Mapping[str, Any]] | None) -> list[Any]:
        return [self.mapper(row) for row in rows or ()]

    def map_page(self, page: Page) -> Page:
        return Page(data=self.map_many(page.data), meta=page.meta)

    def _required(self, row: Mapping[str, Any] | None, source: str | None = None) -> Any:
        if row is None:
            logger.info(f'No record found in {self.adapter.table_name}')
            raise NotFoundError(source=source)
        return self.mapper(row)

    # ===== Writes =====

    async def insert_one(self, form: Any, options: Any = None) -> Any:
        return self.map_one(await self.adapter.insert_one(form, options))

    async def insert_many(self, forms: Sequence[Any], options: Any = None) -> list[Any]:
        return self.map_many(await self.adapter.insert_many(forms, options))

    async def update_one(self, form: Any, options: Any = None) -> Any:
        """Update and return the mapped row; a missing record raises NotFoundError."""
        row = await self.adapter.update_one(form, options)
        return self._required(row, source=self.adapter.schema.primary_key)

    async def upsert_one(self, form: Any, options: Any = None) -> Any:
        return self.map_one(await self.adapter.upsert_one(form, options))

    async def delete_by_pk(self, pk: Any) -> int:
        return await self.adapter.delete_by_pk(pk)

    async def get_or_create(self, form: Any, options: Any = None) -> Any:
        return self.map_one(await self.adapter.get_or_create(form, options))

    # ===== Reads =====

    async def get_one(self, condition: Any, options: Any = None) -> Any:
        return self._required(await self.adapter.get_one(condition, options))

    async def get_one_by_pk(self, pk: Any, options: Any = None) -> Any:
        row = await self.adapter.get_one_by_pk(pk, options)
        return self._required(row, source=self.adapter.schema.primary_key)

    async def get_one_relation(self, condition: Any, options: Any = None) -> Any:
        return self._required(await self.adapter.get_one_relation(condition, options))

    async def get_one_relation_by_pk(self, pk: Any, options: Any = None) -> Any:
        row = await self.adapter.get_one_relation_by_pk(pk, options)
        return self._required(row, source=self.adapter.schema.primary_key)

    async def exists(self, condition: Any) -> bool:
        return await self.adapter.exists(condition)

    async def get_many(self, pks: Sequence[Any], options: Any = None) -> list[Any]:
        return self.map_many(await self.adapter.get_many(pks, options))

    async def get_many_relation(self, pks: Sequence[Any], options: Any = None) -> list[Any]:
        return self.map_many(await self.adapter.get_many_relation(pks, options))

    async def get_all_condition(self, condition: Any, options: Any = None) -> list[Any]:
        return self.map_many(await self.adapter.get_all_condition(condition, options))

    async def get_all(self, options: Any = None) -> list[Any]:
        return self.map_many(await self.adapter.get_all(options))

    async def get_all_status(self, status: int, options: Any = None) -> list[Any]:
        return self.map_many(await self.adapter.get_all_status(status, options))

    async def get_all_order(self, order: Any, options: Any = None) -> list[Any]:
        return self.map_many(await self.adapter.get_all_order(order, options))

    # ===== Pages =====

    async def get_pagination(self, paging: Any = None, options: Any = None) -> Page:
        return self.map_page(await self.adapter.get_pagination(paging, options))

    async def filter(self, params: Any, paging: Any = None, options: Any = None) -> list[Any]:
        return self.map_many(await self.adapter.filter(params, paging, options))

    async def filter_pagination(self, params: Any, paging: Any = None,
                                options: Any = None) -> Page:
        return self.map_page(await self.adapter.filter_pagination(params, paging, options))
