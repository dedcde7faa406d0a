"""Model descriptors and the registry that owns them."""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from sqlalchemy import Column, ForeignKey, Integer, MetaData, Table

from modelsync.exceptions import DuplicateModelError, UnknownModelError
from modelsync.models.fields import IDENTITY_FIELD, FieldSet, FieldType, column_type

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

logger = logging.getLogger(__name__)

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


def table_name_for(model_name: str) -> str:
    """Derive a table name: snake_case and pluralized.

    ``User`` -> ``users``, ``BlogPost`` -> ``blog_posts``,
    ``Category`` -> ``categories``, ``Box`` -> ``boxes``.
    """
    snake = _CAMEL_BOUNDARY.sub("_", model_name).lower()
    if snake.endswith(("s", "x", "z", "ch", "sh")):
        return snake + "es"
    if len(snake) > 1 and snake.endswith("y") and snake[-2] not in "aeiou":
        return snake[:-1] + "ies"
    return snake + "s"


@dataclass(frozen=True)
class ModelDescriptor:
    """Immutable shape of a model: name, table and ordered fields.

    The identity field is implicit and always first in ``field_names``.
    """

    name: str
    table_name: str
    fields: tuple[tuple[str, FieldType], ...]
    _index: dict[str, FieldType] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_index", dict(self.fields))

    @property
    def field_names(self) -> tuple[str, ...]:
        return (IDENTITY_FIELD, *(name for name, _ in self.fields))

    @property
    def declared_names(self) -> tuple[str, ...]:
        return tuple(name for name, _ in self.fields)

    @property
    def required_names(self) -> tuple[str, ...]:
        return tuple(name for name, ft in self.fields if not ft.nullable)

    @property
    def dependencies(self) -> frozenset[str]:
        """Names of the models this one references."""
        return frozenset(ft.references for _, ft in self.fields if ft.references is not None)

    def field_type(self, name: str) -> FieldType | None:
        return self._index.get(name)

    def __hash__(self) -> int:
        return hash(self.name)


def _collect_fields(
    fields: Mapping[str, FieldType] | FieldSet | Iterable[tuple[str, FieldType]],
) -> tuple[tuple[str, FieldType], ...]:
    collected = FieldSet()
    pairs = fields.items() if isinstance(fields, (Mapping, FieldSet)) else fields
    for name, field_type in pairs:
        collected.add(name, field_type)
    return tuple(collected.items())


class ModelRegistry:
    """Registry of model descriptors, keyed by model name.

    Passed explicitly to the synchronizer and the mapper. Each registry owns
    its own SQLAlchemy ``MetaData``, so separate registries never share tables.
    """

    def __init__(self) -> None:
        self._models: dict[str, ModelDescriptor] = {}
        self._metadata = MetaData()

    def define(
        self,
        model_name: str,
        fields: Mapping[str, FieldType] | FieldSet | Iterable[tuple[str, FieldType]],
        table_name: str | None = None,
    ) -> ModelDescriptor:
        """Declare and register a model.

        Raises DuplicateModelError if the name is taken, DuplicateFieldError if
        a field is repeated or named like the identity field. Nothing is
        registered when either is raised.
        """
        if model_name in self._models:
            raise DuplicateModelError(model_name)
        if not model_name or not model_name.isidentifier():
            msg = f"Invalid model name: {model_name!r}"
            raise ValueError(msg)

        resolved_table = table_name or table_name_for(model_name)
        for existing in self._models.values():
            if existing.table_name == resolved_table:
                msg = f"Table {resolved_table!r} is already used by model {existing.name!r}"
                raise ValueError(msg)

        descriptor = ModelDescriptor(
            name=model_name,
            table_name=resolved_table,
            fields=_collect_fields(fields),
        )
        self._models[model_name] = descriptor
        logger.debug("Defined model %s (table %s)", model_name, resolved_table)
        return descriptor

    def get(self, model_name: str) -> ModelDescriptor:
        try:
            return self._models[model_name]
        except KeyError:
            raise UnknownModelError(model_name) from None

    def require(self, descriptor: ModelDescriptor) -> ModelDescriptor:
        """Check that ``descriptor`` is the one registered under its name."""
        if self._models.get(descriptor.name) is not descriptor:
            raise UnknownModelError(descriptor.name)
        return descriptor

    def descriptors(self) -> list[ModelDescriptor]:
        return list(self._models.values())

    def table(self, descriptor: ModelDescriptor) -> Table:
        """Return the SQLAlchemy table for a registered descriptor, building it once."""
        self.require(descriptor)
        existing = self._metadata.tables.get(descriptor.table_name)
        if existing is not None:
            return existing

        targets: list[ModelDescriptor] = []
        columns: list[Column[object]] = [
            Column(IDENTITY_FIELD, Integer, primary_key=True, autoincrement=True)
        ]
        for name, field_type in descriptor.fields:
            if field_type.references is not None:
                target = self.get(field_type.references)
                targets.append(target)
                columns.append(
                    Column(
                        name,
                        Integer,
                        ForeignKey(f"{target.table_name}.{IDENTITY_FIELD}"),
                        nullable=field_type.nullable,
                    )
                )
            else:
                columns.append(
                    Column(name, column_type(field_type.kind), nullable=field_type.nullable)
                )
        table = Table(descriptor.table_name, self._metadata, *columns)
        # Foreign keys resolve by name in the shared MetaData when DDL is compiled.
        for target in targets:
            self.table(target)
        return table

    def __contains__(self, model_name: object) -> bool:
        return model_name in self._models

    def __iter__(self) -> Iterator[ModelDescriptor]:
        return iter(self._models.values())

    def __len__(self) -> int:
        return len(self._models)
