"""Database engine and connection facade."""

from __future__ import annotations

import asyncio
import contextvars
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Self

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine
from sqlalchemy.pool import StaticPool

from modelsync.exceptions import DatabaseConnectionError

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Callable, Mapping
    from types import TracebackType

    from sqlalchemy import Connection
    from sqlalchemy.sql import Executable

logger = logging.getLogger(__name__)

MEMORY_TARGETS = frozenset({":memory:", "memory"})
MEMORY_URL = "sqlite+aiosqlite://"

_ActiveTransaction = tuple[asyncio.Task[Any], AsyncConnection]


def resolve_url(target: str) -> str:
    """Turn a connection target into a SQLAlchemy URL.

    ``:memory:`` / ``memory`` select a volatile in-memory database, anything
    containing ``://`` is taken as a URL, and any other string is a path to
    a SQLite file.
    """
    target = target.strip()
    if not target:
        msg = "Empty connection target"
        raise ValueError(msg)
    if target in MEMORY_TARGETS:
        return MEMORY_URL
    if "://" in target:
        return target
    return f"sqlite+aiosqlite:///{target}"


def create_engine(target: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine for a connection target.

    In-memory databases live only as long as their connection, so they are
    pinned to one shared connection.
    """
    url = resolve_url(target)
    if url == MEMORY_URL:
        return create_async_engine(url, echo=echo, poolclass=StaticPool)
    return create_async_engine(url, echo=echo)


@dataclass(frozen=True)
class RowSet:
    """Rows returned by a query, as column-name mappings."""

    columns: tuple[str, ...]
    rows: list[dict[str, Any]] = field(default_factory=list)

    def scalar(self) -> Any:
        """Return the first column of the first row, or None."""
        if not self.rows or not self.columns:
            return None
        return self.rows[0][self.columns[0]]

    def __len__(self) -> int:
        return len(self.rows)


@dataclass(frozen=True)
class DDLAck:
    """Acknowledgement for a statement that returns no rows."""

    rowcount: int


class Database:
    """A single logical connection to one database.

    Every operation acquires the same lock, so statements issued through one
    ``Database`` run one at a time in submission order. Nothing is retried.

    Operations started by the task that holds an open ``transaction()``
    join that transaction instead of waiting for the lock.
    """

    def __init__(self, engine: AsyncEngine, target: str) -> None:
        self._engine: AsyncEngine | None = engine
        self._lock = asyncio.Lock()
        # (owning task, connection) of the transaction open in this context
        self._active: contextvars.ContextVar[_ActiveTransaction | None] = contextvars.ContextVar(
            f"modelsync_active_{id(self)}", default=None
        )
        self.target = target

    @classmethod
    def open(cls, target: str, echo: bool = False) -> Database:
        return open_database(target, echo=echo)

    @property
    def is_open(self) -> bool:
        return self._engine is not None

    @property
    def dialect_name(self) -> str:
        return self._require_engine().dialect.name

    def _require_engine(self) -> AsyncEngine:
        if self._engine is None:
            raise DatabaseConnectionError("database is closed")
        return self._engine

    @asynccontextmanager
    async def transaction(self) -> AsyncGenerator[AsyncConnection]:
        """Yield a connection inside one transaction.

        Commits when the block exits normally and rolls back on error.
        Nested calls from the same task reuse the outer connection; the
        outermost block decides commit or rollback.
        Raises DatabaseConnectionError if no connection can be obtained.
        """
        engine = self._require_engine()
        task = asyncio.current_task()
        active = self._active.get()
        if active is not None and task is not None and active[0] is task:
            yield active[1]
            return

        async with self._lock:
            try:
                conn = await engine.connect()
            except (OSError, SQLAlchemyError) as exc:
                raise DatabaseConnectionError(exc) from exc
            token = self._active.set((task, conn)) if task is not None else None
            try:
                async with conn.begin():
                    yield conn
            finally:
                if token is not None:
                    self._active.reset(token)
                await conn.close()

    async def execute(
        self,
        statement: str | Executable,
        params: Mapping[str, Any] | None = None,
    ) -> RowSet | DDLAck:
        """Execute one statement in its own transaction."""
        stmt = text(statement) if isinstance(statement, str) else statement
        async with self.transaction() as conn:
            result = await conn.execute(stmt, dict(params) if params else None)
            if result.returns_rows:
                columns = tuple(result.keys())
                rows = [dict(row) for row in result.mappings().all()]
                return RowSet(columns=columns, rows=rows)
            return DDLAck(rowcount=result.rowcount)

    async def run_sync(self, fn: Callable[[Connection], Any]) -> Any:
        """Run a synchronous callable (e.g. an inspector) on the connection."""
        async with self.transaction() as conn:
            return await conn.run_sync(fn)

    async def close(self) -> None:
        if self._engine is None:
            return
        engine, self._engine = self._engine, None
        await engine.dispose()
        logger.info("Closed database %s", self.target)

    async def __aenter__(self) -> Self:
        self._require_engine()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()


def open_database(target: str, echo: bool = False) -> Database:
    """Open a connection facade for a volatile or durable target.

    The engine connects lazily; an unreachable target surfaces as
    DatabaseConnectionError on first use.
    """
    engine = create_engine(target, echo=echo)
    logger.info("Opened database %s", target)
    return Database(engine, target)
