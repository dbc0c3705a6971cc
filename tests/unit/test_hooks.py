"""Unit tests for the hook registry and its use by adapter writes."""
import pytest
from pgadapter.exceptions import ConfigurationError
from pgadapter.hooks import HookRegistry
from pgadapter.types import ExtraColumn, QueryOptions


def test_unknown_event():
    hooks = HookRegistry()
    with pytest.raises(ConfigurationError):
        hooks.register('before_delete', lambda *a: None)


def test_not_callable():
    with pytest.raises(ConfigurationError):
        HookRegistry().register('after_insert', 'nope')


def test_decorator_registers_in_order():
    hooks = HookRegistry()

    @hooks.on('after_update')
    def first(adapter, result):
        pass

    @hooks.on('after_update')
    async def second(adapter, result):
        pass

    assert hooks.hooks('after_update') == (first, second)
    assert len(hooks) == 2


@pytest.mark.asyncio
async def test_before_hooks_run_sequentially_and_thread_options():
    """Test that a returned QueryOptions replaces the context for later hooks."""
    hooks = HookRegistry()
    seen = []

    def add_column(adapter, model, options):
        seen.append('sync')
        return options.with_extra_column(ExtraColumn('geom', value='NULL'))

    async def check(adapter, model, options):
        seen.append(len(options.extra_columns))

    hooks.register('before_insert', add_column)
    hooks.register('before_insert', check)
    options = await hooks.run_before('before_insert', None, object(), QueryOptions())

    assert seen == ['sync', 1]
    assert options.extra_columns[0].key == 'geom'


@pytest.mark.asyncio
async def test_before_hook_invalid_return():
    hooks = HookRegistry()
    hooks.register('before_update', lambda adapter, model, options: 'oops')
    with pytest.raises(ConfigurationError):
        await hooks.run_before('before_update', None, object(), QueryOptions())


@pytest.mark.asyncio
async def test_run_after_rejects_before_events():
    with pytest.raises(ConfigurationError):
        await HookRegistry().run_after('before_insert', None, None)


@pytest.mark.asyncio
async def test_adapter_runs_hooks(executor, users):
    """Test that insert and delete trigger their hooks with the adapter."""
    events = []

    @users.hooks.on('before_insert')
    def stamp(adapter, model, options):
        model.status = 1
        events.append(('before_insert', adapter))

    @users.hooks.on('after_insert')
    async def inserted(adapter, result):
        events.append(('after_insert', result.first))

    @users.hooks.on('after_delete')
    def deleted(adapter, result):
        events.append(('after_delete', result.row_count))

    executor.queue([{'uid': 1}])
    await users.insert_one({'name': 'a'})
    await users.delete_by_pk(1)

    assert events == [('before_insert', users), ('after_insert', {'uid': 1}),
                      ('after_delete', 0)]
    assert 1 in executor.calls[0].args
