"""
TYPED ENTITIES
==============
Map dataclass instances to and from table entities.

FLOW:
- to_entity() turns a dataclass into an Entity. Fields declared with
  encrypted_field() are selected by type_encryption_resolver() at write time.
- from_entity() builds the dataclass back; fields missing from the entity
  (for example outside a projection) keep their dataclass default, or None.
"""

from __future__ import annotations

import dataclasses

from .entity import PARTITION_KEY, ROW_KEY, TIMESTAMP, Entity, EntityProperty, to_entity_property


_KEY_FIELDS = {"partition_key": PARTITION_KEY, "row_key": ROW_KEY, "timestamp": TIMESTAMP}


def is_typed_entity(obj) -> bool:
    return dataclasses.is_dataclass(obj) and not isinstance(obj, type)


def to_entity(obj) -> Entity:
    entity = Entity(etag=getattr(obj, "etag", None))
    for f in dataclasses.fields(obj):
        if f.name == "etag":
            continue
        value = getattr(obj, f.name)
        if f.name in _KEY_FIELDS:
            if value is not None:
                entity[_KEY_FIELDS[f.name]] = value
            continue
        entity[f.name] = to_entity_property(f.name, value)
    return entity


def from_entity(entity_type: type, entity: Entity):
    kwargs = {}
    for f in dataclasses.fields(entity_type):
        if not f.init:
            continue
        if f.name == "etag":
            kwargs["etag"] = entity.etag
            continue
        source = _KEY_FIELDS.get(f.name, f.name)
        if source in entity:
            value = entity[source]
            kwargs[f.name] = value.value if isinstance(value, EntityProperty) else value
        elif f.default is dataclasses.MISSING and f.default_factory is dataclasses.MISSING:
            kwargs[f.name] = None
    return entity_type(**kwargs)
