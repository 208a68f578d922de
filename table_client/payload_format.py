"""
PAYLOAD FORMATS
===============
Wire (de)serialization of entity properties for the four table payload formats.

FLOW:
- serialize_entity() turns typed properties into a request/response body.
- deserialize_entity() parses a body back into typed properties.

HOW:
- JSON no-metadata carries no types; Binary, Int64, DateTime and Guid come
  back as strings unless a property resolver names their type.
- JSON minimal-metadata annotates types JSON cannot express.
- JSON full-metadata annotates every property.
- AtomPub puts properties under entry/content/m:properties with m:type.
"""

from __future__ import annotations

import base64
import datetime
import json
import uuid
import xml.etree.ElementTree as ET

from .entity import INT32_MAX, INT32_MIN, TIMESTAMP, PARTITION_KEY, ROW_KEY, EdmType, EntityProperty


_ERROR_UNKNOWN_PAYLOAD_FORMAT = "Unknown payload format '{}'."
_ERROR_UNKNOWN_EDM_TYPE = "Unknown Edm type '{}' for property '{}'."


class TablePayloadFormat:
    JSON_NO_METADATA = "application/json;odata=nometadata"
    JSON_MINIMAL_METADATA = "application/json;odata=minimalmetadata"
    JSON_FULL_METADATA = "application/json;odata=fullmetadata"
    ATOM = "application/atom+xml"

    ALL = (JSON_NO_METADATA, JSON_MINIMAL_METADATA, JSON_FULL_METADATA, ATOM)


_ODATA_TYPE_SUFFIX = "@odata.type"
_MINIMAL_ANNOTATED = frozenset({EdmType.BINARY, EdmType.INT64, EdmType.DATETIME, EdmType.GUID, EdmType.DOUBLE})

_ATOM_NS = "http://www.w3.org/2005/Atom"
_DATA_NS = "http://schemas.microsoft.com/ado/2007/08/dataservices"
_METADATA_NS = "http://schemas.microsoft.com/ado/2007/08/dataservices/metadata"

ET.register_namespace("", _ATOM_NS)
ET.register_namespace("d", _DATA_NS)
ET.register_namespace("m", _METADATA_NS)


def _format_datetime(value: datetime.datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=datetime.timezone.utc)
    return value.astimezone(datetime.timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def _parse_datetime(raw: str) -> datetime.datetime:
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    return datetime.datetime.fromisoformat(raw)


def _to_wire(prop: EntityProperty):
    value = prop.value
    if value is None:
        return None
    if prop.type == EdmType.BINARY:
        return base64.b64encode(value).decode("utf-8")
    if prop.type in (EdmType.INT64, EdmType.GUID):
        return str(value)
    if prop.type == EdmType.DATETIME:
        return _format_datetime(value)
    if prop.type == EdmType.DOUBLE:
        return float(value)
    if prop.type == EdmType.INT32:
        return int(value)
    if prop.type == EdmType.BOOLEAN:
        return bool(value)
    return str(value)


def _from_wire(edm_type: str, raw):
    if raw is None:
        return None
    if edm_type == EdmType.BINARY:
        return base64.b64decode(raw)
    if edm_type in (EdmType.INT32, EdmType.INT64):
        return int(raw)
    if edm_type == EdmType.DOUBLE:
        return float(raw)
    if edm_type == EdmType.BOOLEAN:
        return raw if isinstance(raw, bool) else str(raw).lower() == "true"
    if edm_type == EdmType.DATETIME:
        return _parse_datetime(raw)
    if edm_type == EdmType.GUID:
        return uuid.UUID(raw)
    return raw


def _infer_json_type(raw) -> str:
    if isinstance(raw, bool):
        return EdmType.BOOLEAN
    if isinstance(raw, int):
        return EdmType.INT32 if INT32_MIN <= raw <= INT32_MAX else EdmType.INT64
    if isinstance(raw, float):
        return EdmType.DOUBLE
    return EdmType.STRING


def _check_type(edm_type: str, name: str) -> str:
    if edm_type not in EdmType.ALL:
        raise ValueError(_ERROR_UNKNOWN_EDM_TYPE.format(edm_type, name))
    return edm_type


def serialize_entity(properties: dict[str, EntityProperty], payload_format: str) -> str:
    if payload_format == TablePayloadFormat.ATOM:
        return _serialize_atom(properties)
    if payload_format not in TablePayloadFormat.ALL:
        raise ValueError(_ERROR_UNKNOWN_PAYLOAD_FORMAT.format(payload_format))

    doc = {}
    for name, prop in properties.items():
        doc[name] = _to_wire(prop)
        if payload_format == TablePayloadFormat.JSON_FULL_METADATA or (
            payload_format == TablePayloadFormat.JSON_MINIMAL_METADATA
            and prop.type in _MINIMAL_ANNOTATED
            and prop.value is not None
        ):
            doc[name + _ODATA_TYPE_SUFFIX] = prop.type
    return json.dumps(doc)


def deserialize_entity(body: str, payload_format: str, property_resolver=None) -> dict[str, EntityProperty]:
    """Parse a body into typed properties.

    property_resolver(partition_key, row_key, name, value) -> EdmType or None
    types string values that arrived without an annotation.
    """
    if payload_format == TablePayloadFormat.ATOM:
        return _deserialize_atom(body)
    if payload_format not in TablePayloadFormat.ALL:
        raise ValueError(_ERROR_UNKNOWN_PAYLOAD_FORMAT.format(payload_format))

    doc = json.loads(body)
    annotations = {
        key[: -len(_ODATA_TYPE_SUFFIX)]: value
        for key, value in doc.items()
        if key.endswith(_ODATA_TYPE_SUFFIX)
    }
    partition_key = doc.get(PARTITION_KEY)
    row_key = doc.get(ROW_KEY)

    properties: dict[str, EntityProperty] = {}
    for name, raw in doc.items():
        if name.endswith(_ODATA_TYPE_SUFFIX) or name.startswith("odata."):
            continue
        edm_type = annotations.get(name)
        if edm_type is None:
            edm_type = EdmType.DATETIME if name == TIMESTAMP else _infer_json_type(raw)
            if (
                property_resolver is not None
                and edm_type == EdmType.STRING
                and isinstance(raw, str)
                and name not in (PARTITION_KEY, ROW_KEY)
            ):
                edm_type = property_resolver(partition_key, row_key, name, raw) or edm_type
        properties[name] = EntityProperty(_check_type(edm_type, name), _from_wire(edm_type, raw))
    return properties


def _atom_text(prop: EntityProperty) -> str:
    wire = _to_wire(prop)
    if prop.type == EdmType.BOOLEAN:
        return "true" if wire else "false"
    if prop.type == EdmType.DOUBLE:
        return repr(wire)
    return str(wire)


def _serialize_atom(properties: dict[str, EntityProperty]) -> str:
    entry = ET.Element(f"{{{_ATOM_NS}}}entry")
    content = ET.SubElement(entry, f"{{{_ATOM_NS}}}content", {"type": "application/xml"})
    props = ET.SubElement(content, f"{{{_METADATA_NS}}}properties")
    for name, prop in properties.items():
        element = ET.SubElement(props, f"{{{_DATA_NS}}}{name}")
        if prop.type != EdmType.STRING:
            element.set(f"{{{_METADATA_NS}}}type", prop.type)
        if prop.value is None:
            element.set(f"{{{_METADATA_NS}}}null", "true")
        else:
            element.text = _atom_text(prop)
    # XML parsers fold \r and \r\n into \n unless \r is a character reference.
    return ET.tostring(entry, encoding="unicode").replace("\r", "&#13;")


def _deserialize_atom(body: str) -> dict[str, EntityProperty]:
    root = ET.fromstring(body)
    props = root.find(f"{{{_ATOM_NS}}}content/{{{_METADATA_NS}}}properties")
    properties: dict[str, EntityProperty] = {}
    if props is None:
        return properties
    for element in props:
        name = element.tag.split("}", 1)[1]
        edm_type = element.get(f"{{{_METADATA_NS}}}type") or (
            EdmType.DATETIME if name == TIMESTAMP else EdmType.STRING
        )
        if element.get(f"{{{_METADATA_NS}}}null") == "true":
            raw = None
        else:
            raw = element.text or ""
        properties[name] = EntityProperty(_check_type(edm_type, name), _from_wire(edm_type, raw))
    return properties
