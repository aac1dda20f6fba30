"""Tests for routine calls, upsert SQL and the asyncpg-backed store."""

from contextlib import asynccontextmanager

import pytest

from intake.database.manager import DatabaseManager
from intake.database.routines import (
    build_routine_call,
    call_routine_list,
    call_routine_one,
    quote_identifier,
)
from intake.database.store import PostgresStore, build_upsert


class FakeConnection:
    def __init__(self, rows=None):
        self.rows = rows or []
        self.fetch_calls = []
        self.copy_calls = []
        self.executemany_calls = []

    async def fetch(self, sql, *args):
        self.fetch_calls.append((sql, args))
        return self.rows

    async def copy_records_to_table(self, table, records, columns):
        self.copy_calls.append((table, records, columns))

    async def executemany(self, sql, args):
        self.executemany_calls.append((sql, args))


class FakeDatabase:
    """Stands in for DatabaseManager.transaction()."""

    def __init__(self, conn):
        self.conn = conn
        self.transactions = 0

    @asynccontextmanager
    async def transaction(self):
        self.transactions += 1
        yield self.conn


class FakeTransaction:
    def __init__(self, log):
        self._log = log

    async def __aenter__(self):
        self._log.append("begin")

    async def __aexit__(self, exc_type, exc, tb):
        self._log.append("rollback" if exc_type else "commit")
        return False


class FakePool:
    def __init__(self):
        self.log = []
        self.closed = False

    @asynccontextmanager
    async def acquire(self):
        conn = FakePooledConnection(self.log)
        yield conn

    async def close(self):
        self.closed = True


class FakePooledConnection:
    def __init__(self, log):
        self._log = log

    def transaction(self):
        return FakeTransaction(self._log)

    async def fetchval(self, sql):
        return 1


class TestBuildRoutineCall:
    def test_no_parameters(self):
        assert build_routine_call("DebbugProductos") == ('SELECT * FROM "DebbugProductos"()', [])

    def test_named_parameters(self):
        sql, args = build_routine_call("find_products", {"p_category": "tools", "p_limit": 10})

        assert sql == 'SELECT * FROM "find_products"("p_category" => $1, "p_limit" => $2)'
        assert args == ["tools", 10]

    def test_positional_parameters(self):
        sql, args = build_routine_call("find_products", ("tools", 10))

        assert sql == 'SELECT * FROM "find_products"($1, $2)'
        assert args == ["tools", 10]

    def test_values_are_never_inlined(self):
        sql, args = build_routine_call("find_products", {"p_name": "x'); DROP TABLE product; --"})

        assert "DROP" not in sql
        assert args == ["x'); DROP TABLE product; --"]

    @pytest.mark.parametrize("name", ["", "1abc", "bad name", 'quo"te', "a" * 64, None])
    def test_invalid_identifiers_rejected(self, name):
        with pytest.raises(ValueError):
            quote_identifier(name)

    def test_invalid_parameter_name_rejected(self):
        with pytest.raises(ValueError):
            build_routine_call("find_products", {"p name": 1})

    def test_string_params_rejected(self):
        with pytest.raises(TypeError):
            build_routine_call("find_products", "tools")


class TestRoutineHelpers:
    @pytest.mark.asyncio
    async def test_call_one_returns_first_row_or_none(self):
        store = PostgresStore(FakeDatabase(FakeConnection(rows=[{"n": 1}, {"n": 2}])))
        assert await call_routine_one(store, "counts") == {"n": 1}

        empty = PostgresStore(FakeDatabase(FakeConnection(rows=[])))
        assert await call_routine_one(empty, "counts") is None

    @pytest.mark.asyncio
    async def test_call_list_returns_all_rows(self):
        store = PostgresStore(FakeDatabase(FakeConnection(rows=[{"n": 1}, {"n": 2}])))
        assert await call_routine_list(store, "counts") == [{"n": 1}, {"n": 2}]


class TestBuildUpsert:
    def test_do_update(self):
        sql = build_upsert("product", ("code", "name", "price"), "code", ["name", "price"])

        assert sql == (
            'INSERT INTO "product" ("code", "name", "price") VALUES ($1, $2, $3) '
            'ON CONFLICT ("code") DO UPDATE SET "name" = EXCLUDED."name", '
            '"price" = EXCLUDED."price"'
        )

    def test_do_nothing_without_update_columns(self):
        sql = build_upsert("product", ("code", "name"), "code", [])
        assert sql.endswith('ON CONFLICT ("code") DO NOTHING')

    def test_unknown_column_rejected(self):
        with pytest.raises(ValueError):
            build_upsert("product", ("code", "name"), "code", ["colour"])


class TestPostgresStore:
    @pytest.mark.asyncio
    async def test_call_routine_binds_arguments(self):
        conn = FakeConnection(rows=[{"rows_affected": 2}])
        store = PostgresStore(FakeDatabase(conn))

        rows = await store.call_routine("find_products", {"p_category": "tools"})

        assert rows == [{"rows_affected": 2}]
        assert conn.fetch_calls == [
            ('SELECT * FROM "find_products"("p_category" => $1)', ("tools",))
        ]

    @pytest.mark.asyncio
    async def test_insert_many_uses_copy(self):
        conn = FakeConnection()
        db = FakeDatabase(conn)
        store = PostgresStore(db)

        count = await store.insert_many("product_temp", ("code", "name"), [("P-1", "Drill")])

        assert count == 1
        assert conn.copy_calls == [("product_temp", [("P-1", "Drill")], ["code", "name"])]
        assert db.transactions == 1

    @pytest.mark.asyncio
    async def test_insert_many_rejects_bad_table(self):
        store = PostgresStore(FakeDatabase(FakeConnection()))

        with pytest.raises(ValueError):
            await store.insert_many("product_temp; --", ("code",), [("P-1",)])

    @pytest.mark.asyncio
    async def test_upsert_many(self):
        conn = FakeConnection()
        store = PostgresStore(FakeDatabase(conn))

        count = await store.upsert_many(
            "product", ("code", "name"), "code", ["name"], [("P-1", "Drill"), ("P-2", "Saw")]
        )

        assert count == 2
        sql, args = conn.executemany_calls[0]
        assert "ON CONFLICT" in sql
        assert args == [("P-1", "Drill"), ("P-2", "Saw")]


class TestDatabaseManager:
    def make_manager(self):
        return DatabaseManager(host="db", database="catalog", user="u", password="secret")

    def test_dsn_label_has_no_credentials(self):
        label = self.make_manager().dsn_label
        assert label == "db:5432/catalog"
        assert "secret" not in label

    @pytest.mark.asyncio
    async def test_pool_required(self):
        with pytest.raises(RuntimeError):
            await self.make_manager().get_pool()

    @pytest.mark.asyncio
    async def test_health_check_without_pool_is_unhealthy(self):
        health = await self.make_manager().health_check()
        assert health["healthy"] is False

    @pytest.mark.asyncio
    async def test_transaction_commits_and_rolls_back(self, monkeypatch):
        pool = FakePool()

        async def fake_create_pool(**kwargs):
            return pool

        monkeypatch.setattr("intake.database.manager.asyncpg.create_pool", fake_create_pool)

        async with self.make_manager() as manager:
            async with manager.transaction():
                pass
            with pytest.raises(RuntimeError):
                async with manager.transaction():
                    raise RuntimeError("boom")
            health = await manager.health_check()

        assert pool.log[:4] == ["begin", "commit", "begin", "rollback"]
        assert health["healthy"] is True
        assert pool.closed is True
