"""Instance mapping: rows to model instances and back."""

from __future__ import annotations

import logging
from datetime import date
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, func, select, update

from modelsync.exceptions import InstanceStateError, UnknownFieldError, ValidationError
from modelsync.models.fields import IDENTITY_FIELD
from modelsync.models.instance import InstanceState, ModelInstance, check_value
from modelsync.services.datetime_service import format_date

if TYPE_CHECKING:
    from collections.abc import Mapping

    from modelsync.database import Database
    from modelsync.models.descriptor import ModelDescriptor, ModelRegistry
    from modelsync.models.instance import FieldValue

logger = logging.getLogger(__name__)


def validate_values(
    descriptor: ModelDescriptor, values: Mapping[str, object]
) -> dict[str, FieldValue]:
    """Check supplied values against a descriptor.

    Unknown names fail first (UnknownFieldError), then each declared field in
    order: missing non-nullable fields, nulls and wrong kinds fail with
    ValidationError. Omitted nullable fields become None.
    """
    for name in values:
        if name == IDENTITY_FIELD or descriptor.field_type(name) is None:
            raise UnknownFieldError(name)

    checked: dict[str, FieldValue] = {}
    for name, field_type in descriptor.fields:
        if name not in values:
            if not field_type.nullable:
                raise ValidationError(name, "is required")
            checked[name] = None
            continue
        checked[name] = check_value(name, field_type, values[name])
    return checked


def serialize(instance: ModelInstance) -> dict[str, Any]:
    """Snapshot an instance as plain values, identity first.

    Dates are rendered as ISO-8601 strings so the result can be JSON-encoded
    as is.
    """
    out: dict[str, Any] = {}
    for name, value in instance.values().items():
        out[name] = format_date(value) if isinstance(value, date) else value
    return out


def from_row(descriptor: ModelDescriptor, row: Mapping[str, Any]) -> ModelInstance:
    """Build a persisted instance from a row mapping."""
    values = {name: row.get(name) for name in descriptor.declared_names}
    return ModelInstance(
        descriptor,
        values,
        state=InstanceState.PERSISTED,
        identity=row[IDENTITY_FIELD],
    )


class InstanceMapper:
    """Create, read, update and delete instances of registered models."""

    def __init__(self, database: Database, registry: ModelRegistry) -> None:
        self.database = database
        self.registry = registry

    def build(self, descriptor: ModelDescriptor, values: Mapping[str, object]) -> ModelInstance:
        """Validate values and return a transient instance; no I/O."""
        self.registry.require(descriptor)
        return ModelInstance(descriptor, validate_values(descriptor, values))

    async def create(
        self, descriptor: ModelDescriptor, values: Mapping[str, object]
    ) -> ModelInstance:
        """Validate, insert and return a persisted instance with its identity."""
        instance = self.build(descriptor, values)
        await self._insert(instance)
        return instance

    async def save(self, instance: ModelInstance) -> ModelInstance:
        """Insert a transient instance or write the dirty fields of a persisted one."""
        self.registry.require(instance.descriptor)
        if instance.state is InstanceState.TRANSIENT:
            await self._insert(instance)
        elif instance.state is InstanceState.PERSISTED:
            await self._update(instance)
        else:
            raise InstanceStateError(instance.state.value, "save")
        return instance

    async def _insert(self, instance: ModelInstance) -> None:
        descriptor = instance.descriptor
        table = self.registry.table(descriptor)
        values = {k: v for k, v in instance.values().items() if k != IDENTITY_FIELD}
        async with self.database.transaction() as conn:
            result = await conn.execute(table.insert().values(**values))
            identity = result.inserted_primary_key[0]
        instance._mark_persisted(int(identity))
        logger.debug("Inserted %s id=%s", descriptor.name, identity)

    async def _update(self, instance: ModelInstance) -> None:
        dirty = sorted(instance.dirty_fields)
        if not dirty:
            return
        descriptor = instance.descriptor
        table = self.registry.table(descriptor)
        changes = {name: instance[name] for name in dirty}
        stmt = (
            update(table)
            .where(table.c[IDENTITY_FIELD] == instance.identity)
            .values(**changes)
        )
        async with self.database.transaction() as conn:
            await conn.execute(stmt)
        instance._mark_clean()
        logger.debug("Updated %s id=%s fields=%s", descriptor.name, instance.identity, dirty)

    async def get(self, descriptor: ModelDescriptor, identity: int) -> ModelInstance | None:
        """Load one instance by identity, or None if no such row exists."""
        table = self.registry.table(descriptor)
        stmt = select(table).where(table.c[IDENTITY_FIELD] == identity)
        async with self.database.transaction() as conn:
            result = await conn.execute(stmt)
            row = result.mappings().first()
        if row is None:
            return None
        return from_row(descriptor, row)

    async def all(self, descriptor: ModelDescriptor) -> list[ModelInstance]:
        """Load every instance of a model, ordered by identity."""
        table = self.registry.table(descriptor)
        stmt = select(table).order_by(table.c[IDENTITY_FIELD])
        async with self.database.transaction() as conn:
            result = await conn.execute(stmt)
            rows = result.mappings().all()
        return [from_row(descriptor, row) for row in rows]

    async def count(self, descriptor: ModelDescriptor) -> int:
        table = self.registry.table(descriptor)
        async with self.database.transaction() as conn:
            result = await conn.execute(select(func.count()).select_from(table))
            return int(result.scalar() or 0)

    async def delete(self, instance: ModelInstance) -> None:
        """Delete a persisted instance; it becomes terminally deleted."""
        if instance.state is not InstanceState.PERSISTED:
            raise InstanceStateError(instance.state.value, "delete")
        descriptor = self.registry.require(instance.descriptor)
        table = self.registry.table(descriptor)
        async with self.database.transaction() as conn:
            await conn.execute(delete(table).where(table.c[IDENTITY_FIELD] == instance.identity))
        instance._mark_deleted()
        logger.debug("Deleted %s id=%s", descriptor.name, instance.identity)

    def serialize(self, instance: ModelInstance) -> dict[str, Any]:
        return serialize(instance)
