"""Field types and per-model field declaration."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

from sqlalchemy import Boolean as SABoolean
from sqlalchemy import Date as SADate
from sqlalchemy import Integer as SAInteger
from sqlalchemy import String as SAString
from sqlalchemy import Text as SAText

from modelsync.exceptions import DuplicateFieldError

if TYPE_CHECKING:
    from collections.abc import Iterator

    from sqlalchemy.types import TypeEngine

IDENTITY_FIELD = "id"

# Names taken by the identity and by ModelInstance attributes; a field named
# like one of these would be unreachable as an attribute.
RESERVED_NAMES = frozenset(
    {IDENTITY_FIELD, "descriptor", "dirty_fields", "identity", "set", "state", "values"}
)

# Length used for ``string`` columns; ``text`` columns are unbounded.
STRING_LENGTH = 255


class FieldKind(StrEnum):
    """Tag for the value variant a field holds."""

    STRING = "string"
    TEXT = "text"
    DATE = "date"
    INTEGER = "integer"
    BOOLEAN = "boolean"


@dataclass(frozen=True, slots=True)
class FieldType:
    """Declared type of one model field."""

    kind: FieldKind
    nullable: bool = True
    references: str | None = None


def declare(
    name: str,
    kind: FieldKind | str,
    nullable: bool = True,
    references: str | None = None,
) -> FieldType:
    """Build an immutable field type.

    ``name`` is validated here so that bad names fail at declaration time
    rather than when the table is created. ``references`` names another
    model; such a field holds that model's identity and must be an integer.
    """
    if not name or not name.isidentifier():
        msg = f"Invalid field name: {name!r}"
        raise ValueError(msg)
    return _field_type(kind, nullable, references, label=name)


def _field_type(
    kind: FieldKind | str,
    nullable: bool,
    references: str | None,
    label: str = "field",
) -> FieldType:
    try:
        field_kind = FieldKind(kind)
    except ValueError:
        msg = f"Unknown field kind for {label!r}: {kind!r}"
        raise ValueError(msg) from None
    if references is not None and field_kind is not FieldKind.INTEGER:
        msg = f"Reference field {label!r} must be of kind 'integer', got {field_kind.value!r}"
        raise ValueError(msg)
    return FieldType(kind=field_kind, nullable=nullable, references=references)


class FieldSet:
    """Ordered collection of field declarations for a single model."""

    def __init__(self) -> None:
        self._fields: dict[str, FieldType] = {}

    def declare(
        self,
        name: str,
        kind: FieldKind | str,
        nullable: bool = True,
        references: str | None = None,
    ) -> FieldType:
        """Declare a field, rejecting names already present in this set."""
        if name in RESERVED_NAMES or name in self._fields:
            raise DuplicateFieldError(name)
        field_type = declare(name, kind, nullable=nullable, references=references)
        self._fields[name] = field_type
        return field_type

    def add(self, name: str, field_type: FieldType) -> None:
        """Add an already-built field type under ``name``."""
        if name in RESERVED_NAMES or name in self._fields:
            raise DuplicateFieldError(name)
        # Re-run name validation; the field type itself is already checked.
        declare(name, field_type.kind, field_type.nullable, field_type.references)
        self._fields[name] = field_type

    def items(self) -> list[tuple[str, FieldType]]:
        return list(self._fields.items())

    def __contains__(self, name: object) -> bool:
        return name in self._fields

    def __iter__(self) -> Iterator[str]:
        return iter(self._fields)

    def __len__(self) -> int:
        return len(self._fields)


def String(nullable: bool = True) -> FieldType:  # noqa: N802
    return _field_type(FieldKind.STRING, nullable, None)


def Text(nullable: bool = True) -> FieldType:  # noqa: N802
    return _field_type(FieldKind.TEXT, nullable, None)


def Date(nullable: bool = True) -> FieldType:  # noqa: N802
    return _field_type(FieldKind.DATE, nullable, None)


def Integer(nullable: bool = True, references: str | None = None) -> FieldType:  # noqa: N802
    return _field_type(FieldKind.INTEGER, nullable, references)


def Boolean(nullable: bool = True) -> FieldType:  # noqa: N802
    return _field_type(FieldKind.BOOLEAN, nullable, None)


def column_type(kind: FieldKind) -> TypeEngine[object]:
    """Return the SQLAlchemy column type for a field kind."""
    if kind is FieldKind.STRING:
        return SAString(STRING_LENGTH)
    if kind is FieldKind.TEXT:
        return SAText()
    if kind is FieldKind.DATE:
        return SADate()
    if kind is FieldKind.INTEGER:
        return SAInteger()
    return SABoolean()
