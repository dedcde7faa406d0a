"""Exception types raised by modelsync.

Convention:
- Declaration-time errors (``DuplicateModelError``, ``DuplicateFieldError``)
  are raised before anything is registered.
- Persistence errors (``ValidationError``, ``UnknownFieldError``) are raised
  before any statement is sent, so the database is left unchanged.
- Schema errors abort the whole ``sync`` call. Work already committed for
  earlier tables stays committed.
- ``DatabaseConnectionError`` wraps failures to reach the database at all.
  Errors from statements that did reach it propagate as SQLAlchemy errors.
"""

from __future__ import annotations


class ModelSyncError(Exception):
    """Base class for all modelsync errors."""


class DuplicateModelError(ModelSyncError):
    """A model with the same name is already registered."""

    def __init__(self, model: str) -> None:
        self.model = model
        super().__init__(f"Model already defined: {model}")


class DuplicateFieldError(ModelSyncError):
    """A field name is declared twice in one model, or shadows the identity field."""

    def __init__(self, field: str) -> None:
        self.field = field
        super().__init__(f"Field already declared: {field}")


class UnknownModelError(ModelSyncError):
    """A model name or descriptor is not present in the registry."""

    def __init__(self, model: str) -> None:
        self.model = model
        super().__init__(f"Unknown model: {model}")


class ValidationError(ModelSyncError):
    """A field value is missing, null where not allowed, or of the wrong kind."""

    def __init__(self, field: str, reason: str = "is required") -> None:
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid value for field {field!r}: {reason}")


class UnknownFieldError(ModelSyncError):
    """A value was supplied for a field the model does not declare."""

    def __init__(self, field: str) -> None:
        self.field = field
        super().__init__(f"Unknown field: {field}")


class InstanceStateError(ModelSyncError):
    """An operation is not allowed in the instance's current lifecycle state."""

    def __init__(self, state: str, operation: str) -> None:
        self.state = state
        self.operation = operation
        super().__init__(f"Cannot {operation} an instance in state {state!r}")


class SchemaCycleError(ModelSyncError):
    """Model references form a cycle, so no creation order exists."""

    def __init__(self, cycle: list[str]) -> None:
        self.cycle = cycle
        super().__init__("Reference cycle between models: " + " -> ".join(cycle))


class SchemaSyncError(ModelSyncError):
    """DDL for a table failed during sync."""

    def __init__(self, table: str, cause: BaseException) -> None:
        self.table = table
        self.cause = cause
        super().__init__(f"Schema sync failed for table {table!r}: {cause}")


class DatabaseConnectionError(ModelSyncError):
    """The database could not be reached, or the handle is closed."""

    def __init__(self, cause: BaseException | str) -> None:
        self.cause = cause
        super().__init__(f"Database unavailable: {cause}")
