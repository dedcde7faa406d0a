"""Schema synchronization: make the database match the registered models."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError

from modelsync.exceptions import SchemaSyncError
from modelsync.schemas.sync import SchemaSnapshot, SyncMode, SyncResult
from modelsync.services.dag import creation_order

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from sqlalchemy import Connection

    from modelsync.database import Database
    from modelsync.models.descriptor import ModelDescriptor, ModelRegistry

logger = logging.getLogger(__name__)


def _read_schema(conn: Connection) -> dict[str, dict[str, str]]:
    inspector = inspect(conn)
    return {
        table: {str(col["name"]): str(col["type"]) for col in inspector.get_columns(table)}
        for table in inspector.get_table_names()
    }


async def take_snapshot(database: Database) -> SchemaSnapshot:
    """Read the current table and column structure of the database."""
    tables = await database.run_sync(_read_schema)
    return SchemaSnapshot(tables=tables)


def ordered_descriptors(
    registry: ModelRegistry,
    descriptors: Iterable[ModelDescriptor] | None = None,
) -> list[ModelDescriptor]:
    """Return the selection plus every model it references, transitively.

    Every referenced model comes before its referencer. Cycle detection runs
    over the whole closure, so a cycle through an unselected model is still
    reported.

    Raises UnknownModelError for a descriptor or reference missing from the
    registry and SchemaCycleError when references form a cycle.
    """
    selected = (
        registry.descriptors()
        if descriptors is None
        else [registry.require(d) for d in descriptors]
    )
    closure: dict[str, ModelDescriptor] = {}
    pending = list(selected)
    while pending:
        descriptor = pending.pop(0)
        if descriptor.name in closure:
            continue
        closure[descriptor.name] = descriptor
        for ref in sorted(descriptor.dependencies):
            if ref not in closure:
                pending.append(registry.get(ref))

    order = creation_order({name: d.dependencies for name, d in closure.items()})
    return [closure[name] for name in order]


async def _run_ddl(
    database: Database,
    table_name: str,
    action: Callable[[Connection], None],
) -> None:
    """Run DDL for one table in its own transaction."""
    try:
        async with database.transaction() as conn:
            await conn.run_sync(action)
    except SQLAlchemyError as exc:
        logger.error("DDL failed for table %s: %s", table_name, exc)
        raise SchemaSyncError(table_name, exc) from exc


def _drift_warnings(descriptor: ModelDescriptor, snapshot: SchemaSnapshot) -> list[str]:
    live = snapshot.columns(descriptor.table_name)
    declared = descriptor.field_names
    warnings: list[str] = []
    missing = [c for c in declared if c not in live]
    extra = [c for c in live if c not in declared]
    if missing:
        warnings.append(
            f"Table {descriptor.table_name} is missing declared columns: {', '.join(missing)}"
        )
    if extra:
        warnings.append(
            f"Table {descriptor.table_name} has undeclared columns: {', '.join(extra)}"
        )
    return warnings


async def sync(
    database: Database,
    registry: ModelRegistry,
    descriptors: Iterable[ModelDescriptor] | None = None,
    mode: SyncMode | str = SyncMode.RECONCILE,
) -> SyncResult:
    """Bring the database schema in line with the given descriptors.

    RECONCILE creates tables that do not exist and leaves existing tables
    alone, reporting column drift as warnings. FORCE drops every selected
    table (referencers first) and recreates all of them, discarding their rows.

    Models referenced by the selection but not part of it are synced as in
    RECONCILE: their tables are created if missing and never dropped.

    The creation order is computed before any DDL runs, so a reference cycle
    fails without touching the database. Each table's DDL is its own
    transaction; on SchemaSyncError, tables handled earlier keep their new
    state.
    """
    mode = SyncMode(mode)
    chosen = None if descriptors is None else list(descriptors)
    ordered = ordered_descriptors(registry, chosen)
    selected = {d.name for d in (ordered if chosen is None else chosen)}
    tables = {d.name: registry.table(d) for d in ordered}
    result = SyncResult(mode=mode)

    snapshot = await take_snapshot(database)

    existing = set(snapshot.tables)
    if mode is SyncMode.FORCE:
        for descriptor in reversed(ordered):
            if descriptor.name not in selected or not snapshot.has_table(descriptor.table_name):
                continue
            await _run_ddl(database, descriptor.table_name, tables[descriptor.name].drop)
            result.dropped.append(descriptor.table_name)
            existing.discard(descriptor.table_name)
            logger.info("Dropped table %s", descriptor.table_name)

    for descriptor in ordered:
        if descriptor.table_name in existing:
            for warning in _drift_warnings(descriptor, snapshot):
                logger.warning(warning)
                result.warnings.append(warning)
            continue
        await _run_ddl(database, descriptor.table_name, tables[descriptor.name].create)
        result.created.append(descriptor.table_name)
        logger.info("Created table %s", descriptor.table_name)

    logger.info(
        "Sync (%s) finished: %d created, %d dropped, %d warnings",
        mode.value,
        len(result.created),
        len(result.dropped),
        len(result.warnings),
    )
    return result
