"""modelsync: schema synchronization and model persistence on SQLAlchemy."""

from modelsync.database import Database, open_database
from modelsync.models import (
    FieldKind,
    FieldSet,
    FieldType,
    InstanceState,
    ModelDescriptor,
    ModelInstance,
    ModelRegistry,
    declare,
)
from modelsync.schemas.sync import SyncMode, SyncResult
from modelsync.services.instance_service import InstanceMapper, serialize
from modelsync.services.sync_service import sync

__all__ = [
    "Database",
    "FieldKind",
    "FieldSet",
    "FieldType",
    "InstanceMapper",
    "InstanceState",
    "ModelDescriptor",
    "ModelInstance",
    "ModelRegistry",
    "SyncMode",
    "SyncResult",
    "declare",
    "open_database",
    "serialize",
    "sync",
]
