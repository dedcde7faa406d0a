"""Shared test fixtures for modelsync."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from modelsync.database import open_database
from modelsync.models.descriptor import ModelRegistry
from modelsync.models.fields import FieldKind, declare
from modelsync.services.instance_service import InstanceMapper

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator
    from pathlib import Path

    from modelsync.database import Database
    from modelsync.models.descriptor import ModelDescriptor


@pytest.fixture
def registry() -> ModelRegistry:
    """Create an empty model registry."""
    return ModelRegistry()


@pytest.fixture
def user_model(registry: ModelRegistry) -> ModelDescriptor:
    """Register the ``User{username, birthday}`` model."""
    return registry.define(
        "User",
        {
            "username": declare("username", FieldKind.STRING, nullable=False),
            "birthday": declare("birthday", FieldKind.DATE),
        },
    )


@pytest.fixture
async def database() -> AsyncGenerator[Database]:
    """Open a volatile in-memory database."""
    db = open_database(":memory:")
    yield db
    await db.close()


@pytest.fixture
async def file_database(tmp_path: Path) -> AsyncGenerator[Database]:
    """Open a durable SQLite database in a temporary directory."""
    db = open_database(str(tmp_path / "test.db"))
    yield db
    await db.close()


@pytest.fixture
def mapper(database: Database, registry: ModelRegistry) -> InstanceMapper:
    """Create an instance mapper over the in-memory database."""
    return InstanceMapper(database, registry)
