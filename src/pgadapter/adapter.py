"""
Relational CRUD façade over one model schema.

`RelationalAdapter` composes the statement builders, the diff engine and an
injected `QueryExecutor` into the adapter operations:

- writes: `insert_one`, `insert_many`, `update_one`, `upsert_one`,
  `delete_many`, `delete_by_pk`, `get_or_create`
- reads: `get_one`, `get_one_by_pk`, `get_many`, `get_all_condition`,
  `get_all`, `get_all_status` (+ active/inactive/disabled/deleted),
  `get_all_order`, `exists`, raw `query`
- relations: `get_one_relation`, `get_one_relation_by_pk`,
  `get_all_condition_relation`, `get_many_relation`
- pages: `get_pagination`, `filter`, `filter_pagination`

Relation and filter behavior is supplied as callables rather than by
subclassing; domain logic attaches through `HookRegistry`.
"""
import inspect
import logging
import math
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import replace
from typing import Any, ClassVar

from pgadapter.clauses import paginate
from pgadapter.diff import diff
from pgadapter.exceptions import ConfigurationError, ValidationError
from pgadapter.hooks import HookRegistry
from pgadapter.schema import Model, Status
from pgadapter.sql import quote_identifier
from pgadapter.statements import Statement, build_count, build_delete, build_exists
from pgadapter.statements import build_insert, build_insert_many, build_select
from pgadapter.statements import build_select_relation, build_update
from pgadapter.types import ALL_ROWS, Condition, Page, PageMeta, PageRequest
from pgadapter.types import PageWindow, QueryOptions, QueryResult, RelationSpec
from pgadapter.utils import has_value, is_empty

logger = logging.getLogger(__name__)

__all__ = ['RelationalAdapter', 'RelationFunc', 'FilterFunc']

RelationFunc = Callable[[type, QueryOptions, list[str], list[Any]], RelationSpec]
FilterFunc = Callable[[Any, PageRequest], Condition | Mapping]


class RelationalAdapter:
    """CRUD, relation and pagination operations for one model class.

    Args:
        executor: QueryExecutor (or any object with `execute(sql, args)`)
        model_class: Model subclass, defaults to the class attribute
        relation: `relation(model, options, where, args) -> RelationSpec`
        filter_params: `filter_params(params, paging) -> Condition`
        hooks: HookRegistry shared with domain behavior
    """

    model_class: ClassVar[type[Model] | None] = None

    def __init__(self, executor: Any, model_class: type[Model] | None = None,
                 relation: RelationFunc | None = None,
                 filter_params: FilterFunc | None = None,
                 hooks: HookRegistry | None = None) -> None:
        model_class = model_class or type(self).model_class
        if model_class is None or not issubclass(model_class, Model):
            raise ConfigurationError(f'{type(self).__name__}: model class has not been set')
        self.executor = executor
        self.model_class = model_class
        self.schema = model_class.schema
        self.relation = relation
        self.filter_params = filter_params
        self.hooks = hooks if hooks is not None else HookRegistry()

    def __repr__(self) -> str:
        return f'{type(self).__name__}({self.schema.table})'

    @property
    def namespace(self) -> str:
        return getattr(self.executor, 'namespace', None) or 'public'

    @property
    def table_name(self) -> str:
        return self.schema.qualified_name(self.namespace)

    # ===== Internals =====

    def _coerce_model(self, model: Any) -> Model:
        if isinstance(model, self.model_class):
            return model
        if model is None or (isinstance(model, Mapping) and not model):
            raise ValidationError(f'Empty input model. Cannot write into table {self.table_name}',
                                  source='model')
        if isinstance(model, Mapping):
            return self.model_class(model)
        if isinstance(model, Model):
            return self.model_class(model.get_attributes())
        raise ValidationError(f'Invalid input model for {self.table_name}: {type(model).__name__}',
                              source='model')

    def _pk_condition(self, pk: Any, qualified: bool = False, many: bool = False) -> Condition:
        column = self.schema.primary_key
        if qualified:
            column = f'{self.schema.alias}.{column}'
        if many:
            return Condition(where=(f'{quote_identifier(column)} = ANY($1)',), args=(list(pk),))
        return Condition(where=(f'{quote_identifier(column)} = $1',), args=(pk,))

    def _require_pk(self, pk: Any, operation: str) -> None:
        if is_empty(pk):
            raise ValidationError(f'{operation} {self.table_name} error: Input primary key is empty',
                                  source=self.schema.primary_key)

    def _require_condition(self, condition: Any, operation: str) -> Condition:
        coerced = Condition.coerce(condition)
        if coerced is None:
            raise ValidationError(f'{operation} {self.table_name} error: Input condition is empty',
                                  source='condition')
        return coerced

    def _pk_or_condition(self, condition: Any, operation: str, qualified: bool = False) -> Condition:
        """Mappings, Condition and ALL_ROWS are conditions; anything else is a key."""
        if isinstance(condition, (Mapping, Condition)) or condition is ALL_ROWS:
            return self._require_condition(condition, operation)
        self._require_pk(condition, operation)
        return self._pk_condition(condition, qualified=qualified)

    def _stamp_owner(self, model: Model) -> None:
        if model.get('created_by') and 'updated_by' in model and not model.get('updated_by'):
            model.updated_by = model.created_by

    async def _run(self, statement: Statement) -> QueryResult:
        return await self.executor.execute(statement.sql, statement.args)

    async def _relation(self, options: QueryOptions, where: Iterable[str] = (),
                        args: Iterable[Any] = ()) -> RelationSpec:
        if self.relation is None:
            raise ConfigurationError(f'{type(self).__name__}: relation callable has not been configured')
        spec = self.relation(self.model_class, options, list(where), list(args))
        if inspect.isawaitable(spec):
            spec = await spec
        if isinstance(spec, Mapping):
            spec = RelationSpec(**spec)
        if not isinstance(spec, RelationSpec):
            raise ConfigurationError(f'relation callable returned {type(spec).__name__}')
        return spec

    async def _filter_condition(self, params: Any, request: PageRequest) -> Condition:
        if self.filter_params is None:
            raise ConfigurationError(f'{type(self).__name__}: filter callable has not been configured')
        condition = self.filter_params(params, request)
        if inspect.isawaitable(condition):
            condition = await condition
        return Condition.coerce(condition) or Condition(all_rows=True)

    # ===== Raw queries =====

    async def query(self, sql: str, args: Sequence[Any] | None = None) -> QueryResult:
        """Execute a hand-written statement with `$N` placeholders."""
        return await self.executor.execute(sql, tuple(args or ()))

    # ===== Writes =====

    async def insert_one(self, model: Any, options: Any = None) -> dict[str, Any] | None:
        """Insert one record and return the RETURNING row.
        """
        model = self._coerce_model(model)
        options = QueryOptions.coerce(options)
        logger.debug(f'Begins inserting model. Table name: {self.table_name}')

        options = await self.hooks.run_before('before_insert', self, model, options)
        model.before_save(True)
        self._stamp_owner(model)

        result = await self._run(build_insert(model, options, self.namespace))
        logger.info(f'Insert successfully {result.row_count} row into {self.table_name}')
        await self.hooks.run_after('after_insert', self, result)
        return result.first

    async def insert_many(self, models: Sequence[Any], options: Any = None) -> list[dict[str, Any]]:
        """Insert a batch of records in one statement.

        Every record must carry values for the same columns as the first.
        Before-hooks run per model from the caller's options, so extra
        columns they add belong to that model's row only.
        """
        if not models:
            raise ValidationError(f'Empty input models. Cannot insert into table {self.table_name}',
                                  source='models')
        options = QueryOptions.coerce(options)
        instances = [self._coerce_model(model) for model in models]
        row_extras = []
        for index, model in enumerate(instances):
            model_options = await self.hooks.run_before('before_insert', self, model, options)
            if index == 0:
                statement_options = model_options
            row_extras.append(model_options.extra_columns)
            model.before_save(True)
            self._stamp_owner(model)

        statement = build_insert_many(instances, statement_options, self.namespace,
                                      row_extras=row_extras)
        result = await self._run(statement)
        logger.info(f'insertMany successfully. Count: {result.row_count}')
        await self.hooks.run_after('after_insert', self, result)
        return list(result.rows)

    async def update_one(self, model: Any, options: Any = None) -> dict[str, Any] | None:
        """Write only the columns that changed.

        The current row is loaded unless `options.old_row` is given. An
        empty diff is a no-op returning the stored row; None is returned
        when no row has the model's primary key.
        """
        model = self._coerce_model(model)
        options = QueryOptions.coerce(options)
        pk = model.pk
        if is_empty(pk):
            raise ValidationError(f'Empty primary key. Cannot update record in table {self.table_name}',
                                  source=self.schema.primary_key)
        logger.info(f'Begins updating model. Table name: {self.table_name}. Uid: {pk}')

        options = await self.hooks.run_before('before_update', self, model, options)
        model.before_save(False)

        row = options.old_row
        if row is None:
            row = await self.get_one_by_pk(pk)
        if row is None:
            logger.warning(f'No record in {self.table_name} with {self.schema.primary_key} {pk}')
            return None

        updated_column = self.schema.updated_column
        excepts = set(options.excepts) | self.schema.ignore_on_update | self.schema.ignore_on_save
        if updated_column:
            excepts.add(updated_column)
        changes = diff(row, model, accept_null=options.accept_null,
                       accept_zero=options.accept_zero, excepts=excepts)
        if not changes:
            logger.info('Nothing new to update')
            return dict(row)

        if updated_column:
            changes[updated_column] = model.get(updated_column)
        logger.debug(f'Updates params: {changes}')

        statement = build_update(model, changes, self._pk_condition(pk), options, self.namespace)
        result = await self._run(statement)
        logger.info(f'updateOne successfully. Count: {result.row_count}')
        await self.hooks.run_after('after_update', self, result)
        return result.first

    async def upsert_one(self, model: Any, options: Any = None) -> dict[str, Any] | None:
        """Update when the primary key is set, insert otherwise."""
        model = self._coerce_model(model)
        if has_value(model.pk):
            return await self.update_one(model, options)
        return await self.insert_one(model, options)

    async def delete_many(self, condition: Any,
                          returning: bool | str = False) -> int | list[dict[str, Any]]:
        """Delete matching rows; ALL_ROWS deletes everything.

        Returns the deleted row count, or the deleted rows with `returning`.
        """
        condition = self._require_condition(condition, 'DELETE')
        result = await self._run(build_delete(self.schema, condition, returning, self.namespace))
        logger.info(f'DELETE {self.table_name} successfully. Count: {result.row_count}')
        await self.hooks.run_after('after_delete', self, result)
        return list(result.rows) if returning else result.row_count

    async def delete_by_pk(self, pk: Any,
                           returning: bool | str = False) -> int | list[dict[str, Any]]:
        self._require_pk(pk, 'DELETE')
        return await self.delete_many(self._pk_condition(pk), returning=returning)

    async def get_or_create(self, model: Any, options: Any = None) -> dict[str, Any] | None:
        """Return the row with the model's primary key, inserting on a miss."""
        model = self._coerce_model(model)
        logger.debug('Begining get or create model')
        if has_value(model.pk):
            row = await self.get_one_by_pk(model.pk, options)
            if row is not None:
                return row
            logger.debug(f'Record {model.pk} not found in {self.table_name}. Creating...')
        return await self.insert_one(model, options)

    # ===== Reads =====

    async def get_one(self, condition: Any, options: Any = None) -> dict[str, Any] | None:
        """First row matching a condition or primary key value."""
        options = QueryOptions.coerce(options)
        condition = self._pk_or_condition(condition, 'Get')
        statement = build_select(self.schema, condition, order=condition.order or options.order,
                                 limit=1, excepts=options.excepts, namespace=self.namespace)
        result = await self._run(statement)
        logger.info(f'{len(result)} rows were received')
        return result.first

    async def get_one_by_pk(self, pk: Any, options: Any = None) -> dict[str, Any] | None:
        self._require_pk(pk, 'Get')
        return await self.get_one(self._pk_condition(pk), options)

    async def exists(self, condition: Any) -> bool:
        condition = self._pk_or_condition(condition, 'Exists')
        result = await self._run(build_exists(self.schema, condition, self.namespace))
        exists = bool(result.first and result.first.get('exists'))
        logger.debug(f'Exists: {exists}')
        return exists

    async def get_many(self, pks: Sequence[Any], options: Any = None) -> list[dict[str, Any]]:
        """Rows whose primary key is in `pks` (`= ANY($1)`)."""
        if is_empty(pks):
            raise ValidationError(f'GetMany {self.table_name} error: Input condition is empty',
                                  source='pks')
        options = QueryOptions.coerce(options)
        statement = build_select(self.schema, self._pk_condition(pks, many=True),
                                 order=options.order, excepts=options.excepts,
                                 namespace=self.namespace)
        result = await self._run(statement)
        logger.info(f'{len(result)} rows were received')
        return list(result.rows)

    async def get_all_condition(self, condition: Any, options: Any = None) -> list[dict[str, Any]]:
        options = QueryOptions.coerce(options)
        condition = self._require_condition(condition, 'getAllCondition')
        statement = build_select(self.schema, condition, order=condition.order or options.order,
                                 excepts=options.excepts, namespace=self.namespace)
        result = await self._run(statement)
        logger.info(f'{len(result)} rows were received')
        return list(result.rows)

    async def get_all(self, options: Any = None) -> list[dict[str, Any]]:
        options = QueryOptions.coerce(options)
        statement = build_select(self.schema, order=options.order, excepts=options.excepts,
                                 namespace=self.namespace)
        result = await self._run(statement)
        logger.info(f'{len(result)} rows were received')
        return list(result.rows)

    async def get_all_status(self, status: Status | int, options: Any = None) -> list[dict[str, Any]]:
        if status is None:
            raise ValidationError(f'Get {self.table_name} error: status is empty', source='status')
        if not self.schema.has_field('status'):
            raise ConfigurationError(f'Get {self.table_name} error: Model has not status property')
        condition = Condition(where=(f'{quote_identifier("status")} = $1',), args=(int(status),))
        return await self.get_all_condition(condition, options)

    async def get_all_active(self, options: Any = None) -> list[dict[str, Any]]:
        return await self.get_all_status(Status.ACTIVE, options)

    async def get_all_inactive(self, options: Any = None) -> list[dict[str, Any]]:
        return await self.get_all_status(Status.INACTIVE, options)

    async def get_all_disabled(self, options: Any = None) -> list[dict[str, Any]]:
        return await self.get_all_status(Status.DISABLED, options)

    async def get_all_deleted(self, options: Any = None) -> list[dict[str, Any]]:
        return await self.get_all_status(Status.DELETED, options)

    async def get_all_order(self, order: Any, options: Any = None) -> list[dict[str, Any]]:
        if is_empty(order):
            raise ValidationError(f'Get {self.table_name} error: Order is empty', source='order')
        options = QueryOptions.coerce(options)
        statement = build_select(self.schema, order=order, excepts=options.excepts,
                                 namespace=self.namespace)
        result = await self._run(statement)
        logger.info(f'{len(result)} rows were received')
        return list(result.rows)

    # ===== Relations =====

    async def get_one_relation(self, condition: Any, options: Any = None) -> dict[str, Any] | None:
        options = QueryOptions.coerce(options)
        condition = self._pk_or_condition(condition, 'Get', qualified=True)
        spec = await self._relation(options, condition.where, condition.args)
        statement = build_select_relation(self.schema, spec, order=condition.order or options.order,
                                          limit=1, excepts=options.excepts,
                                          namespace=self.namespace)
        result = await self._run(statement)
        logger.info(f'{len(result)} rows were received')
        return result.first

    async def get_one_relation_by_pk(self, pk: Any, options: Any = None) -> dict[str, Any] | None:
        self._require_pk(pk, 'Get')
        return await self.get_one_relation(self._pk_condition(pk, qualified=True), options)

    async def get_all_condition_relation(self, condition: Any,
                                         options: Any = None) -> list[dict[str, Any]]:
        options = QueryOptions.coerce(options)
        condition = self._require_condition(condition, 'Get')
        spec = await self._relation(options, condition.where, condition.args)
        statement = build_select_relation(self.schema, spec, order=condition.order or options.order,
                                          excepts=options.excepts, namespace=self.namespace)
        result = await self._run(statement)
        logger.info(f'{len(result)} rows were received')
        return list(result.rows)

    async def get_many_relation(self, pks: Sequence[Any], options: Any = None) -> list[dict[str, Any]]:
        if is_empty(pks):
            raise ValidationError(f'GetManyRelation {self.table_name} error: Input condition is empty',
                                  source='pks')
        options = QueryOptions.coerce(options)
        condition = self._pk_condition(pks, qualified=True, many=True)
        spec = await self._relation(options, condition.where, condition.args)
        statement = build_select_relation(self.schema, spec, order=options.order,
                                          excepts=options.excepts, namespace=self.namespace)
        result = await self._run(statement)
        logger.info(f'{len(result)} rows were received')
        return list(result.rows)

    # ===== Pagination =====

    async def _page(self, count: Statement, fetch: Statement, request: PageRequest,
                    window: PageWindow) -> Page:
        """Count, then fetch the window unless it starts past the last row."""
        counted = await self._run(count)
        total = int((counted.first or {}).get('total') or 0)
        page_size = request.page_size if request.enabled else total
        total_pages = math.ceil(total / page_size) if page_size > 0 else 0
        meta = PageMeta(page_size=page_size, page_number=window.page_number,
                        total_pages=total_pages, total=total)
        logger.info(f'Total rows: {total}')

        if window.row_offset >= total:
            return Page(data=[], meta=meta)

        result = await self._run(fetch)
        logger.info(f'{len(result)} rows were received')
        return Page(data=list(result.rows), meta=replace(meta, count=len(result)))

    def _statements_for(self, spec: RelationSpec | None, condition: Condition | None,
                        order: Any, window: PageWindow,
                        excepts: Iterable[str]) -> tuple[Statement, Statement]:
        if spec is not None:
            count = build_count(self.schema, spec.where, spec.args, spec.joins, self.namespace)
            fetch = build_select_relation(self.schema, spec, order=order, window=window,
                                          excepts=excepts, namespace=self.namespace)
            return count, fetch
        where = condition.where if condition is not None else ()
        args = condition.args if condition is not None else ()
        count = build_count(self.schema, where, args, namespace=self.namespace)
        fetch = build_select(self.schema, condition, order=order, window=window,
                             excepts=excepts, namespace=self.namespace)
        return count, fetch

    async def get_pagination(self, paging: Any = None, options: Any = None) -> Page:
        """One page of all rows, joined through the relation when includes are given."""
        request = PageRequest.coerce(paging)
        options = QueryOptions.coerce(options)
        includes = request.includes or options.includes
        order = request.order or options.order
        window = paginate(request)

        spec = None
        if includes:
            spec = await self._relation(replace(options, includes=includes, order=order))
        count, fetch = self._statements_for(spec, None, order, window, options.excepts)
        return await self._page(count, fetch, request, window)

    async def filter(self, params: Any, paging: Any = None, options: Any = None) -> list[dict[str, Any]]:
        """Rows matching the conditions produced by the filter callable."""
        request = PageRequest.coerce(paging)
        options = QueryOptions.coerce(options)
        condition = await self._filter_condition(params, request)
        includes = request.includes or options.includes
        order = request.order or options.order or condition.order

        if includes:
            spec = await self._relation(replace(options, includes=includes, order=order),
                                        condition.where, condition.args)
            statement = build_select_relation(self.schema, spec, order=order,
                                              excepts=options.excepts, namespace=self.namespace)
        else:
            statement = build_select(self.schema, condition, order=order,
                                     excepts=options.excepts, namespace=self.namespace)
        result = await self._run(statement)
        logger.info(f'{len(result)} rows were received')
        return list(result.rows)

    async def filter_pagination(self, params: Any, paging: Any = None, options: Any = None) -> Page:
        """Filtered page: count then fetch with the same WHERE and args."""
        request = PageRequest.coerce(paging)
        options = QueryOptions.coerce(options)
        condition = await self._filter_condition(params, request)
        includes = request.includes or options.includes
        order = request.order or options.order or condition.order
        window = paginate(request)

        spec = None
        if includes:
            spec = await self._relation(replace(options, includes=includes, order=order),
                                        condition.where, condition.args)
        count, fetch = self._statements_for(spec, condition, order, window, options.excepts)
        return await self._page(count, fetch, request, window)
