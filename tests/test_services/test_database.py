"""Tests for the database connection facade."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from modelsync.database import (
    MEMORY_URL,
    Database,
    DDLAck,
    RowSet,
    open_database,
    resolve_url,
)
from modelsync.exceptions import DatabaseConnectionError

if TYPE_CHECKING:
    from pathlib import Path


class TestResolveUrl:
    @pytest.mark.parametrize("target", [":memory:", "memory", "  :memory: "])
    def test_memory_targets(self, target: str) -> None:
        assert resolve_url(target) == MEMORY_URL

    def test_url_passthrough(self) -> None:
        url = "postgresql+asyncpg://u:p@localhost/app"
        assert resolve_url(url) == url

    def test_path_becomes_sqlite_url(self) -> None:
        assert resolve_url("data/app.db") == "sqlite+aiosqlite:///data/app.db"

    def test_empty_target(self) -> None:
        with pytest.raises(ValueError, match="Empty connection target"):
            resolve_url("  ")


class TestDatabase:
    @pytest.mark.asyncio
    async def test_execute_query_returns_rows(self, database: Database) -> None:
        result = await database.execute("SELECT 42 AS answer")
        assert isinstance(result, RowSet)
        assert result.columns == ("answer",)
        assert result.rows == [{"answer": 42}]
        assert result.scalar() == 42

    @pytest.mark.asyncio
    async def test_execute_ddl_returns_ack(self, database: Database) -> None:
        result = await database.execute("CREATE TABLE t (x INTEGER)")
        assert isinstance(result, DDLAck)

    @pytest.mark.asyncio
    async def test_execute_with_params(self, database: Database) -> None:
        await database.execute("CREATE TABLE t (x INTEGER)")
        ack = await database.execute("INSERT INTO t (x) VALUES (:x)", {"x": 7})
        assert isinstance(ack, DDLAck)
        assert ack.rowcount == 1
        rows = await database.execute(text("SELECT x FROM t"))
        assert rows.scalar() == 7  # type: ignore[union-attr]

    @pytest.mark.asyncio
    async def test_memory_database_persists_across_statements(self, database: Database) -> None:
        await database.execute("CREATE TABLE t (x INTEGER)")
        await database.execute("INSERT INTO t (x) VALUES (1)")
        result = await database.execute("SELECT COUNT(*) FROM t")
        assert result.scalar() == 1  # type: ignore[union-attr]

    @pytest.mark.asyncio
    async def test_memory_databases_are_separate(self) -> None:
        async with open_database(":memory:") as first, Database.open("memory") as second:
            await first.execute("CREATE TABLE t (x INTEGER)")
            result = await second.execute(
                "SELECT name FROM sqlite_master WHERE type = 'table'"
            )
            assert result.rows == []  # type: ignore[union-attr]

    @pytest.mark.asyncio
    async def test_transaction_rolls_back_on_error(self, database: Database) -> None:
        await database.execute("CREATE TABLE t (x INTEGER)")
        with pytest.raises(RuntimeError):
            async with database.transaction() as conn:
                await conn.execute(text("INSERT INTO t (x) VALUES (1)"))
                raise RuntimeError("boom")
        result = await database.execute("SELECT COUNT(*) FROM t")
        assert result.scalar() == 0  # type: ignore[union-attr]

    @pytest.mark.asyncio
    async def test_statement_errors_propagate(self, database: Database) -> None:
        with pytest.raises(OperationalError):
            await database.execute("SELECT * FROM missing_table")

    @pytest.mark.asyncio
    async def test_statements_run_in_submission_order(self, database: Database) -> None:
        await database.execute("CREATE TABLE log (n INTEGER)")
        await asyncio.gather(
            *(database.execute("INSERT INTO log (n) VALUES (:n)", {"n": n}) for n in range(10))
        )
        result = await database.execute("SELECT n FROM log ORDER BY rowid")
        assert [row["n"] for row in result.rows] == list(range(10))  # type: ignore[union-attr]

    @pytest.mark.asyncio
    async def test_durable_database_survives_reopen(self, tmp_path: Path) -> None:
        path = str(tmp_path / "durable.db")
        async with open_database(path) as db:
            await db.execute("CREATE TABLE t (x INTEGER)")
            await db.execute("INSERT INTO t (x) VALUES (5)")
        async with open_database(path) as db:
            result = await db.execute("SELECT x FROM t")
            assert result.scalar() == 5  # type: ignore[union-attr]

    @pytest.mark.asyncio
    async def test_dialect_name(self, file_database: Database) -> None:
        assert file_database.dialect_name == "sqlite"


class TestConnectionErrors:
    @pytest.mark.asyncio
    async def test_closed_database(self) -> None:
        db = open_database(":memory:")
        await db.close()
        assert not db.is_open
        with pytest.raises(DatabaseConnectionError, match="closed"):
            await db.execute("SELECT 1")

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self) -> None:
        db = open_database(":memory:")
        await db.close()
        await db.close()

    @pytest.mark.asyncio
    async def test_unreachable_target(self, tmp_path: Path) -> None:
        db = open_database(str(tmp_path / "no" / "such" / "dir" / "app.db"))
        try:
            with pytest.raises(DatabaseConnectionError) as exc_info:
                await db.execute("SELECT 1")
            assert isinstance(exc_info.value.cause, OperationalError)
        finally:
            await db.close()


class TestNestedTransactions:
    @pytest.mark.asyncio
    async def test_execute_inside_transaction_joins_it(self, database: Database) -> None:
        await database.execute("CREATE TABLE t (x INTEGER)")
        async with database.transaction() as conn:
            await conn.execute(text("INSERT INTO t (x) VALUES (1)"))
            async with asyncio.timeout(2):
                result = await database.execute("SELECT COUNT(*) FROM t")
            assert result.scalar() == 1  # type: ignore[union-attr]

    @pytest.mark.asyncio
    async def test_inner_work_rolls_back_with_outer(self, database: Database) -> None:
        await database.execute("CREATE TABLE t (x INTEGER)")
        with pytest.raises(RuntimeError):
            async with database.transaction():
                async with asyncio.timeout(2):
                    await database.execute("INSERT INTO t (x) VALUES (1)")
                raise RuntimeError("boom")
        result = await database.execute("SELECT COUNT(*) FROM t")
        assert result.scalar() == 0  # type: ignore[union-attr]

    @pytest.mark.asyncio
    async def test_other_tasks_still_wait_for_the_lock(self, database: Database) -> None:
        await database.execute("CREATE TABLE log (n INTEGER)")
        async with database.transaction() as conn:
            other = asyncio.create_task(database.execute("INSERT INTO log (n) VALUES (2)"))
            await asyncio.sleep(0.05)
            assert not other.done()
            await conn.execute(text("INSERT INTO log (n) VALUES (1)"))
        await asyncio.wait_for(other, 2)
        result = await database.execute("SELECT n FROM log ORDER BY rowid")
        assert [row["n"] for row in result.rows] == [1, 2]  # type: ignore[union-attr]
