"""Sync-related schemas."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, Field


class SyncMode(StrEnum):
    """How ``sync`` treats tables that already exist."""

    RECONCILE = "reconcile"  # create missing tables only
    FORCE = "force"  # drop and recreate every known table


class SchemaSnapshot(BaseModel):
    """Live database structure: table -> column name -> column type."""

    tables: dict[str, dict[str, str]] = Field(default_factory=dict)

    def has_table(self, name: str) -> bool:
        return name in self.tables

    def columns(self, name: str) -> list[str]:
        return list(self.tables.get(name, {}))


class SyncResult(BaseModel):
    """Outcome of one sync call."""

    mode: SyncMode
    created: list[str] = Field(default_factory=list)
    dropped: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    @property
    def changes(self) -> list[str]:
        """Structural changes in the order they were applied."""
        return [f"drop {t}" for t in self.dropped] + [f"create {t}" for t in self.created]
