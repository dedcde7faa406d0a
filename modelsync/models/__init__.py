"""Field types, model descriptors and instances."""

from modelsync.models.descriptor import ModelDescriptor, ModelRegistry
from modelsync.models.fields import FieldKind, FieldSet, FieldType, declare
from modelsync.models.instance import InstanceState, ModelInstance

__all__ = [
    "FieldKind",
    "FieldSet",
    "FieldType",
    "InstanceState",
    "ModelDescriptor",
    "ModelInstance",
    "ModelRegistry",
    "declare",
]
