"""
ENTITY PROPERTY MODEL
=====================
Typed property bag for table entities.
"""

# FLOW:
# - Callers build Entity objects with raw values or EntityProperty values.
# - split_entity() separates the keys from the typed data properties that
#   the encryption policy and payload serializers work on.

from __future__ import annotations

import datetime
import uuid
from dataclasses import dataclass, field
from typing import Any


_ERROR_CANNOT_FIND_PARTITION_KEY = "Cannot find partition key in request."
_ERROR_CANNOT_FIND_ROW_KEY = "Cannot find row key in request."
_ERROR_KEY_NOT_STRING = "{} must be a string."
_ERROR_UNSUPPORTED_VALUE_TYPE = "Property '{}' has unsupported value type {}."

INT32_MIN = -(2 ** 31)
INT32_MAX = 2 ** 31 - 1

PARTITION_KEY = "PartitionKey"
ROW_KEY = "RowKey"
TIMESTAMP = "Timestamp"
SYSTEM_PROPERTIES = (PARTITION_KEY, ROW_KEY, TIMESTAMP)


class EdmType:
    STRING = "Edm.String"
    BINARY = "Edm.Binary"
    BOOLEAN = "Edm.Boolean"
    INT32 = "Edm.Int32"
    INT64 = "Edm.Int64"
    DOUBLE = "Edm.Double"
    DATETIME = "Edm.DateTime"
    GUID = "Edm.Guid"

    ALL = (STRING, BINARY, BOOLEAN, INT32, INT64, DOUBLE, DATETIME, GUID)


@dataclass
class EntityProperty:
    """A typed property value. encrypt=True marks it for encryption on write."""

    type: str
    value: Any
    encrypt: bool = field(default=False, compare=False)


class Entity(dict):
    """Entity as a dict with attribute access.

    PartitionKey and RowKey are plain strings, Timestamp a datetime set by the
    service, etag is an attribute rather than a property.
    """

    def __init__(self, *args, etag: str | None = None, **kwargs):
        super().__init__(*args, **kwargs)
        object.__setattr__(self, "etag", etag)

    def __getattr__(self, name):
        try:
            return self[name]
        except KeyError:
            raise AttributeError(name) from None

    def __setattr__(self, name, value):
        if name == "etag":
            object.__setattr__(self, name, value)
        else:
            self[name] = value

    def __delattr__(self, name):
        try:
            del self[name]
        except KeyError:
            raise AttributeError(name) from None


def to_entity_property(name: str, value: Any) -> EntityProperty:
    if isinstance(value, EntityProperty):
        return value
    if value is None:
        return EntityProperty(EdmType.STRING, None)
    if isinstance(value, bool):
        return EntityProperty(EdmType.BOOLEAN, value)
    if isinstance(value, int):
        if INT32_MIN <= value <= INT32_MAX:
            return EntityProperty(EdmType.INT32, value)
        return EntityProperty(EdmType.INT64, value)
    if isinstance(value, float):
        return EntityProperty(EdmType.DOUBLE, value)
    if isinstance(value, str):
        return EntityProperty(EdmType.STRING, value)
    if isinstance(value, (bytes, bytearray)):
        return EntityProperty(EdmType.BINARY, bytes(value))
    if isinstance(value, datetime.datetime):
        return EntityProperty(EdmType.DATETIME, value)
    if isinstance(value, uuid.UUID):
        return EntityProperty(EdmType.GUID, value)
    raise TypeError(_ERROR_UNSUPPORTED_VALUE_TYPE.format(name, type(value).__name__))


def split_entity(entity) -> tuple[str, str, dict[str, EntityProperty]]:
    """Return (partition_key, row_key, data properties) for a dict-like entity."""
    if PARTITION_KEY not in entity:
        raise ValueError(_ERROR_CANNOT_FIND_PARTITION_KEY)
    if ROW_KEY not in entity:
        raise ValueError(_ERROR_CANNOT_FIND_ROW_KEY)
    partition_key = _key_value(PARTITION_KEY, entity[PARTITION_KEY])
    row_key = _key_value(ROW_KEY, entity[ROW_KEY])
    properties = {
        name: to_entity_property(name, value)
        for name, value in entity.items()
        if name not in SYSTEM_PROPERTIES
    }
    return partition_key, row_key, properties


def _key_value(name: str, value: Any) -> str:
    if isinstance(value, EntityProperty):
        value = value.value
    if not isinstance(value, str):
        raise TypeError(_ERROR_KEY_NOT_STRING.format(name))
    return value


def build_entity(properties: dict[str, EntityProperty], etag: str | None = None) -> Entity:
    """Build a caller-facing Entity from deserialized properties."""
    entity = Entity(etag=etag)
    for name, prop in properties.items():
        if name in SYSTEM_PROPERTIES:
            entity[name] = prop.value
        else:
            entity[name] = prop
    return entity
