"""Unit tests for RelationalAdapter against a recording executor."""
import pytest
from pgadapter.adapter import RelationalAdapter
from pgadapter.exceptions import ConfigurationError, ValidationError
from pgadapter.sql import max_placeholder
from pgadapter.types import ALL_ROWS, Condition, QueryResult

from tests.fixtures.mocks import Post, User, user_relation

USERS_FROM = 'FROM "public"."users" u'
ROW = {'uid': 1, 'name': 'Ann', 'email': 'a@b.c', 'status': 1}


def test_requires_model_class(executor):
    with pytest.raises(ConfigurationError):
        RelationalAdapter(executor)


def test_model_class_attribute(executor):
    class UserAdapter(RelationalAdapter):
        model_class = User

    adapter = UserAdapter(executor)
    assert adapter.table_name == 'public.users'


class TestInsert:

    @pytest.mark.asyncio
    async def test_insert_one(self, executor, users):
        executor.queue([{'uid': 1, 'name': 'Ann'}])
        row = await users.insert_one({'name': 'Ann', 'createdBy': 'u1'})

        assert row == {'uid': 1, 'name': 'Ann'}
        call = executor.calls[0]
        assert call.sql.startswith('INSERT INTO "public"."users" ("name", "created_by", '
                                   '"updated_by", "created_at", "updated_at") VALUES ')
        assert call.args[:3] == ('Ann', 'u1', 'u1')
        assert max_placeholder(call.sql) == len(call.args)

    @pytest.mark.asyncio
    async def test_insert_one_empty_model(self, executor, users):
        with pytest.raises(ValidationError):
            await users.insert_one({})
        assert executor.calls == []

    @pytest.mark.asyncio
    async def test_insert_many(self, executor, users):
        executor.queue([{'uid': 1}, {'uid': 2}])
        rows = await users.insert_many([{'name': 'a'}, User({'name': 'b'})])
        assert rows == [{'uid': 1}, {'uid': 2}]
        assert len(executor.calls) == 1
        assert max_placeholder(executor.calls[0].sql) == len(executor.calls[0].args)

    @pytest.mark.asyncio
    async def test_insert_many_empty(self, executor, users):
        with pytest.raises(ValidationError):
            await users.insert_many([])


class TestUpdate:

    @pytest.mark.asyncio
    async def test_identical_model_is_noop(self, executor, users):
        """Test that an unchanged model issues no UPDATE and returns the stored row."""
        executor.respond(USERS_FROM, [ROW])
        row = await users.update_one({'uid': 1, 'name': 'Ann', 'email': 'a@b.c'})

        assert row == ROW
        assert len(executor.calls) == 1
        assert executor.calls[0].sql.startswith('SELECT')

    @pytest.mark.asyncio
    async def test_changed_column_with_old_row(self, executor, users):
        """Test that only changed columns plus the update stamp are written."""
        executor.queue([{'uid': 1, 'name': 'Bob'}])
        row = await users.update_one({'uid': 1, 'name': 'Bob', 'email': 'a@b.c'},
                                     {'oldModel': ROW, 'returning': False})

        assert row == {'uid': 1, 'name': 'Bob'}
        assert len(executor.calls) == 1
        call = executor.calls[0]
        assert call.sql == ('UPDATE "public"."users" SET "name" = $1, "updated_at" = $2 '
                            'WHERE "uid" = $3')
        assert call.args[0] == 'Bob'
        assert call.args[2] == 1

    @pytest.mark.asyncio
    async def test_missing_row_returns_none(self, executor, users):
        assert await users.update_one({'uid': 5, 'name': 'x'}) is None
        assert len(executor.calls) == 1

    @pytest.mark.asyncio
    async def test_requires_primary_key(self, executor, users):
        with pytest.raises(ValidationError):
            await users.update_one({'name': 'x'})
        assert executor.calls == []

    @pytest.mark.asyncio
    async def test_upsert_inserts_without_key(self, executor, users):
        await users.upsert_one({'name': 'x'})
        assert executor.statements[0].startswith('INSERT')

    @pytest.mark.asyncio
    async def test_upsert_updates_with_key(self, executor, users):
        executor.respond(USERS_FROM, [ROW])
        await users.upsert_one({'uid': 1, 'name': 'Ann'})
        assert executor.statements[0].startswith('SELECT')
        assert not any(sql.startswith('INSERT') for sql in executor.statements)


class TestMissingConditions:
    """Operations requiring a condition fail before any SQL is issued."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize('condition', [None, {}, '', Condition()])
    async def test_delete_many(self, executor, users, condition):
        with pytest.raises(ValidationError):
            await users.delete_many(condition)
        assert executor.calls == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize('condition', [None, '', {}])
    async def test_get_one(self, executor, users, condition):
        with pytest.raises(ValidationError):
            await users.get_one(condition)
        assert executor.calls == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize('condition', [None, {}, {'where': [], 'args': []}])
    async def test_get_all_condition(self, executor, users, condition):
        with pytest.raises(ValidationError):
            await users.get_all_condition(condition)
        assert executor.calls == []


class TestDelete:

    @pytest.mark.asyncio
    async def test_delete_all_rows(self, executor, users):
        executor.queue(QueryResult(row_count=4))
        assert await users.delete_many(ALL_ROWS) == 4
        assert executor.calls[0].sql == 'DELETE FROM "public"."users"'

    @pytest.mark.asyncio
    async def test_delete_by_pk_returning(self, executor, users):
        executor.queue([{'uid': 3}])
        rows = await users.delete_by_pk(3, returning=True)
        assert rows == [{'uid': 3}]
        assert executor.calls[0].args == (3,)
        assert 'WHERE "uid" = $1 RETURNING ' in executor.calls[0].sql

    @pytest.mark.asyncio
    async def test_delete_string_condition(self, executor, users):
        await users.delete_many('status = 3')
        assert executor.calls[0].sql == 'DELETE FROM "public"."users" WHERE status = 3'


class TestGetOrCreate:

    @pytest.mark.asyncio
    async def test_existing_key_issues_no_insert(self, executor, users):
        executor.respond('SELECT', [ROW])
        assert await users.get_or_create({'uid': 1, 'name': 'Ann'}) == ROW
        assert not any(sql.startswith('INSERT') for sql in executor.statements)

    @pytest.mark.asyncio
    async def test_missing_key_inserts_once(self, executor, users):
        executor.queue([], [{'uid': 9, 'name': 'x'}])
        assert await users.get_or_create({'uid': 9, 'name': 'x'}) == {'uid': 9, 'name': 'x'}
        assert [sql.split()[0] for sql in executor.statements] == ['SELECT', 'INSERT']


class TestReads:

    @pytest.mark.asyncio
    async def test_get_one_by_pk(self, executor, users):
        executor.respond(USERS_FROM, [ROW])
        assert await users.get_one_by_pk(1) == ROW
        call = executor.calls[0]
        assert call.sql.endswith(f'{USERS_FROM} WHERE "uid" = $1 ORDER BY name ASC LIMIT 1')
        assert call.args == (1,)

    @pytest.mark.asyncio
    async def test_get_one_by_pk_empty(self, executor, users):
        with pytest.raises(ValidationError):
            await users.get_one_by_pk('')

    @pytest.mark.asyncio
    async def test_get_one_mapping_condition(self, executor, users):
        await users.get_one({'where': ['email = $1'], 'args': ['a@b.c'], 'order': '-name'})
        call = executor.calls[0]
        assert call.sql.endswith('WHERE email = $1 ORDER BY name DESC LIMIT 1')
        assert call.args == ('a@b.c',)

    @pytest.mark.asyncio
    async def test_get_one_excepts(self, executor, users):
        await users.get_one(1, {'excepts': ['secret']})
        assert '"secret"' not in executor.calls[0].sql

    @pytest.mark.asyncio
    async def test_get_many(self, executor, users):
        executor.queue([ROW])
        assert await users.get_many([1, 2]) == [ROW]
        assert 'WHERE "uid" = ANY($1)' in executor.calls[0].sql
        assert executor.calls[0].args == ([1, 2],)

    @pytest.mark.asyncio
    async def test_get_many_empty(self, executor, users):
        with pytest.raises(ValidationError):
            await users.get_many([])

    @pytest.mark.asyncio
    async def test_exists(self, executor, users):
        executor.respond('EXISTS', [{'exists': True}])
        assert await users.exists({'where': ['email = $1'], 'args': ['a@b.c']}) is True
        assert await users.exists(2) is True
        assert executor.calls[1].args == (2,)

    @pytest.mark.asyncio
    async def test_exists_false(self, executor, users):
        executor.respond('EXISTS', [{'exists': False}])
        assert await users.exists(2) is False

    @pytest.mark.asyncio
    async def test_get_all(self, executor, users):
        executor.queue([ROW, ROW])
        assert len(await users.get_all()) == 2
        assert executor.calls[0].sql.endswith(f'{USERS_FROM} ORDER BY name ASC')

    @pytest.mark.asyncio
    async def test_get_all_active(self, executor, users):
        await users.get_all_active()
        assert 'WHERE "status" = $1' in executor.calls[0].sql
        assert executor.calls[0].args == (1,)

    @pytest.mark.asyncio
    async def test_get_all_deleted(self, executor, users):
        await users.get_all_deleted()
        assert executor.calls[0].args == (3,)

    @pytest.mark.asyncio
    async def test_get_all_status_without_status_field(self, executor, posts):
        with pytest.raises(ConfigurationError):
            await posts.get_all_active()

    @pytest.mark.asyncio
    async def test_get_all_status_none(self, executor, users):
        with pytest.raises(ValidationError):
            await users.get_all_status(None)

    @pytest.mark.asyncio
    async def test_get_all_order(self, executor, users):
        await users.get_all_order(['-createdAt', 'name'])
        assert executor.calls[0].sql.endswith('ORDER BY created_at DESC, name ASC')

    @pytest.mark.asyncio
    async def test_get_all_order_empty(self, executor, users):
        with pytest.raises(ValidationError):
            await users.get_all_order([])

    @pytest.mark.asyncio
    async def test_query(self, executor, users):
        executor.queue([{'n': 1}])
        result = await users.query('SELECT $1::int AS n', [1])
        assert result.first == {'n': 1}
        assert executor.calls[0].args == (1,)


class TestRelations:

    @pytest.mark.asyncio
    async def test_get_one_relation_by_pk(self, executor, posts):
        executor.queue([{'p_uid': 4, 'u_name': 'Ann'}])
        row = await posts.get_one_relation_by_pk(4)

        assert row == {'p_uid': 4, 'u_name': 'Ann'}
        call = executor.calls[0]
        assert 'LEFT JOIN "public"."users" u ON u.uid = p.user_id' in call.sql
        assert 'WHERE "p"."uid" = $1' in call.sql
        assert call.sql.endswith('ORDER BY p.created_at DESC LIMIT 1')
        assert call.args == (4,)

    @pytest.mark.asyncio
    async def test_get_many_relation(self, executor, posts):
        await posts.get_many_relation([1, 2])
        assert 'WHERE "p"."uid" = ANY($1)' in executor.calls[0].sql

    @pytest.mark.asyncio
    async def test_get_all_condition_relation(self, executor, posts):
        await posts.get_all_condition_relation({'where': ['u.status = $1'], 'args': [1]})
        assert executor.calls[0].args == (1,)
        assert 'u.status = $1' in executor.calls[0].sql

    @pytest.mark.asyncio
    async def test_relation_not_configured(self, executor, users):
        with pytest.raises(ConfigurationError):
            await users.get_one_relation(1)
        assert executor.calls == []


class TestPagination:
    """Count-then-fetch pagination."""

    @pytest.mark.asyncio
    async def test_page_past_end_skips_fetch(self, executor, posts):
        executor.respond('COUNT(*)', [{'total': 25}])
        page = await posts.get_pagination({'pageSize': 10, 'pageNumber': 4})

        assert page.data == []
        assert page.meta.count == 0
        assert page.meta.total == 25
        assert page.meta.total_pages == 3
        assert page.meta.page_number == 4
        assert len(executor.calls) == 1

    @pytest.mark.asyncio
    async def test_last_page(self, executor, posts):
        executor.respond('COUNT(*)', [{'total': 25}])
        executor.respond('SELECT', [{'uid': n} for n in range(5)])
        page = await posts.get_pagination({'paging': {'pageSize': 10, 'pageNumber': 3}})

        assert len(page) == 5
        assert page.meta.to_dict() == {'page_size': 10, 'page_number': 3, 'total_pages': 3,
                                       'total': 25, 'count': 5}
        assert executor.calls[1].sql.endswith('OFFSET 20 LIMIT 10')

    @pytest.mark.asyncio
    async def test_first_page(self, executor, posts):
        executor.respond('COUNT(*)', [{'total': 25}])
        await posts.get_pagination({'pageSize': 10})
        assert executor.calls[1].sql.endswith('ORDER BY created_at DESC LIMIT 10')

    @pytest.mark.asyncio
    async def test_paging_disabled(self, executor, posts):
        executor.respond('COUNT(*)', [{'total': 2}])
        executor.respond('SELECT', [{'uid': 1}, {'uid': 2}])
        page = await posts.get_pagination()
        assert page.meta.page_size == 2
        assert page.meta.total_pages == 1
        assert 'LIMIT' not in executor.calls[1].sql

    @pytest.mark.asyncio
    async def test_pagination_with_includes_joins(self, executor, posts):
        executor.respond('COUNT(*)', [{'total': 1}])
        await posts.get_pagination({'pageSize': 10, 'includes': ['u']})
        count, fetch = executor.statements
        assert 'LEFT JOIN' in count
        assert 'LEFT JOIN' in fetch
        assert fetch.startswith('SELECT "p"."uid" AS p_uid')

    @pytest.mark.asyncio
    async def test_filter_pagination_shares_condition(self, executor, users):
        """Test that count and fetch use the same WHERE and arguments."""
        executor.respond('COUNT(*)', [{'total': 3}])
        await users.filter_pagination({'status': 1, 'name': 'A'}, {'pageSize': 2})

        count, fetch = executor.calls
        assert count.sql == (f'SELECT COUNT(*) AS total {USERS_FROM} '
                             'WHERE status = $1 AND name LIKE $2')
        assert fetch.sql.endswith('WHERE status = $1 AND name LIKE $2 ORDER BY name ASC LIMIT 2')
        assert count.args == fetch.args == (1, 'A%')

    @pytest.mark.asyncio
    async def test_filter_without_params_selects_all(self, executor, users):
        await users.filter({})
        assert 'WHERE' not in executor.calls[0].sql

    @pytest.mark.asyncio
    async def test_filter_with_includes(self, executor, posts):
        await posts.filter({'name': 'A'}, {'includes': ['u']})
        sql = executor.calls[0].sql
        assert 'LEFT JOIN' in sql
        assert 'WHERE name LIKE $1' in sql

    @pytest.mark.asyncio
    async def test_filter_with_includes_uses_condition_order(self, executor):
        """Test that the order produced by the filter callable survives the join path."""
        def by_views(params, paging):
            return {'where': ['p.views > $1'], 'args': [1], 'order': '-views'}

        adapter = RelationalAdapter(executor, Post, relation=user_relation, filter_params=by_views)
        await adapter.filter({}, {'includes': ['u']})
        sql = executor.calls[0].sql
        assert 'WHERE p.views > $1' in sql
        assert sql.endswith('ORDER BY p.views DESC')

        executor.respond('COUNT(*)', [{'total': 2}])
        await adapter.filter_pagination({}, {'includes': ['u'], 'pageSize': 10})
        assert 'ORDER BY p.views DESC' in executor.calls[-1].sql

    @pytest.mark.asyncio
    async def test_filter_request_order_overrides_condition_order(self, executor):
        def by_views(params, paging):
            return {'where': ['p.views > $1'], 'args': [1], 'order': '-views'}

        adapter = RelationalAdapter(executor, Post, relation=user_relation, filter_params=by_views)
        await adapter.filter({}, {'includes': ['u'], 'order': 'title'})
        assert executor.calls[0].sql.endswith('ORDER BY p.title ASC')

    @pytest.mark.asyncio
    async def test_filter_not_configured(self, executor):
        adapter = RelationalAdapter(executor, Post)
        with pytest.raises(ConfigurationError):
            await adapter.filter({})
