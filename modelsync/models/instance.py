"""In-memory model instances and field value checking."""

from __future__ import annotations

from datetime import date
from enum import StrEnum
from typing import TYPE_CHECKING, Annotated, Any

from pydantic import AfterValidator, Field, StrictBool, StrictInt, StrictStr, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from modelsync.exceptions import UnknownFieldError, ValidationError
from modelsync.models.fields import IDENTITY_FIELD, FieldKind, FieldType
from modelsync.services.datetime_service import parse_date

if TYPE_CHECKING:
    from collections.abc import Iterator

    from modelsync.models.descriptor import ModelDescriptor

FieldValue = str | int | bool | date | None

# SQL INTEGER columns hold signed 64-bit values.
INTEGER_MIN = -(2**63)
INTEGER_MAX = 2**63 - 1


def _require_utf8(value: str) -> str:
    try:
        value.encode("utf-8")
    except UnicodeEncodeError as exc:
        msg = f"not encodable as UTF-8 at position {exc.start}"
        raise ValueError(msg) from None
    return value


StoredStr = Annotated[StrictStr, AfterValidator(_require_utf8)]
StoredInt = Annotated[StrictInt, Field(ge=INTEGER_MIN, le=INTEGER_MAX)]

_STRICT_ADAPTERS: dict[FieldKind, TypeAdapter[Any]] = {
    FieldKind.STRING: TypeAdapter(StoredStr),
    FieldKind.TEXT: TypeAdapter(StoredStr),
    FieldKind.INTEGER: TypeAdapter(StoredInt),
    FieldKind.BOOLEAN: TypeAdapter(StrictBool),
}


class InstanceState(StrEnum):
    TRANSIENT = "transient"
    PERSISTED = "persisted"
    DELETED = "deleted"


def check_value(name: str, field_type: FieldType, value: object) -> FieldValue:
    """Check ``value`` against a field type and return the stored form.

    Raises ValidationError naming the field on a null where nulls are not
    allowed, on a value of the wrong kind, or on a value the database
    cannot store (integers outside 64 bits, strings that are not UTF-8).
    """
    if value is None:
        if not field_type.nullable:
            raise ValidationError(name, "must not be null")
        return None

    if field_type.kind is FieldKind.DATE:
        if not isinstance(value, (str, date)):
            raise ValidationError(name, f"expected a date, got {type(value).__name__}")
        try:
            return parse_date(value)
        except ValueError as exc:
            raise ValidationError(name, str(exc)) from exc

    try:
        return _STRICT_ADAPTERS[field_type.kind].validate_python(value)
    except PydanticValidationError as exc:
        reason = exc.errors()[0]["msg"] if exc.errors() else str(exc)
        raise ValidationError(name, reason) from exc


class ModelInstance:
    """A record bound to a descriptor and a persistence state.

    Holds a value for every declared field plus the identity. Values are
    checked on assignment; assigned fields are tracked as dirty until the
    next save.
    """

    def __init__(
        self,
        descriptor: ModelDescriptor,
        values: dict[str, FieldValue],
        state: InstanceState = InstanceState.TRANSIENT,
        identity: int | None = None,
    ) -> None:
        object.__setattr__(self, "_descriptor", descriptor)
        object.__setattr__(
            self, "_values", {name: values.get(name) for name in descriptor.declared_names}
        )
        object.__setattr__(self, "_state", state)
        object.__setattr__(self, "_identity", identity)
        object.__setattr__(self, "_dirty", set())

    @property
    def descriptor(self) -> ModelDescriptor:
        return self._descriptor

    @property
    def state(self) -> InstanceState:
        return self._state

    @property
    def identity(self) -> int | None:
        return self._identity

    @property
    def dirty_fields(self) -> frozenset[str]:
        return frozenset(self._dirty)

    def values(self) -> dict[str, FieldValue]:
        """Return identity and field values in descriptor order (stored forms)."""
        result: dict[str, FieldValue] = {IDENTITY_FIELD: self._identity}
        result.update(self._values)
        return result

    def set(self, name: str, value: object) -> None:
        if name == IDENTITY_FIELD:
            msg = "The identity field is assigned by the database"
            raise AttributeError(msg)
        field_type = self._descriptor.field_type(name)
        if field_type is None:
            raise UnknownFieldError(name)
        self._values[name] = check_value(name, field_type, value)
        self._dirty.add(name)

    def _mark_persisted(self, identity: int) -> None:
        object.__setattr__(self, "_identity", identity)
        object.__setattr__(self, "_state", InstanceState.PERSISTED)
        self._dirty.clear()

    def _mark_clean(self) -> None:
        self._dirty.clear()

    def _mark_deleted(self) -> None:
        object.__setattr__(self, "_state", InstanceState.DELETED)
        self._dirty.clear()

    def __getitem__(self, name: str) -> FieldValue:
        if name == IDENTITY_FIELD:
            return self._identity
        if name not in self._values:
            raise UnknownFieldError(name)
        return self._values[name]

    def __setitem__(self, name: str, value: object) -> None:
        self.set(name, value)

    def __getattr__(self, name: str) -> FieldValue:
        # Only reached for names that are not real attributes.
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            return self[name]
        except UnknownFieldError:
            raise AttributeError(name) from None

    def __setattr__(self, name: str, value: object) -> None:
        self.set(name, value)

    def __iter__(self) -> Iterator[str]:
        return iter(self._descriptor.field_names)

    def __repr__(self) -> str:
        fields = ", ".join(f"{k}={v!r}" for k, v in self.values().items())
        return f"<{self._descriptor.name} {self._state.value} {fields}>"
