import datetime
import json
import uuid

import pytest

from table_client.entity import EdmType, EntityProperty
from table_client.payload_format import TablePayloadFormat, deserialize_entity, serialize_entity


NOW = datetime.datetime(2026, 10, 18, 12, 30, 15, 123456, tzinfo=datetime.timezone.utc)
GUID = uuid.UUID("12345678-1234-5678-1234-567812345678")


def _typed_properties():
    return {
        "PartitionKey": EntityProperty(EdmType.STRING, "pk"),
        "RowKey": EntityProperty(EdmType.STRING, "rk"),
        "name": EntityProperty(EdmType.STRING, "value"),
        "empty": EntityProperty(EdmType.STRING, ""),
        "blob": EntityProperty(EdmType.BINARY, b"\x00\x01\xff"),
        "flag": EntityProperty(EdmType.BOOLEAN, True),
        "small": EntityProperty(EdmType.INT32, 1234),
        "big": EntityProperty(EdmType.INT64, 12),
        "ratio": EntityProperty(EdmType.DOUBLE, 1.0),
        "when": EntityProperty(EdmType.DATETIME, NOW),
        "id": EntityProperty(EdmType.GUID, GUID),
        "missing": EntityProperty(EdmType.STRING, None),
    }


@pytest.mark.parametrize(
    "payload_format",
    [TablePayloadFormat.JSON_MINIMAL_METADATA, TablePayloadFormat.JSON_FULL_METADATA, TablePayloadFormat.ATOM],
)
def test_typed_formats_preserve_types(payload_format):
    properties = _typed_properties()
    body = serialize_entity(properties, payload_format)
    assert deserialize_entity(body, payload_format) == properties


def test_minimal_metadata_annotates_only_ambiguous_types():
    doc = json.loads(serialize_entity(_typed_properties(), TablePayloadFormat.JSON_MINIMAL_METADATA))
    assert doc["blob@odata.type"] == EdmType.BINARY
    assert doc["big@odata.type"] == EdmType.INT64
    assert doc["big"] == "12"
    assert "small@odata.type" not in doc
    assert "name@odata.type" not in doc


def test_full_metadata_annotates_everything():
    doc = json.loads(serialize_entity(_typed_properties(), TablePayloadFormat.JSON_FULL_METADATA))
    assert doc["name@odata.type"] == EdmType.STRING
    assert doc["small@odata.type"] == EdmType.INT32


def test_no_metadata_loses_types_without_resolver():
    body = serialize_entity(_typed_properties(), TablePayloadFormat.JSON_NO_METADATA)
    assert "@odata.type" not in body

    parsed = deserialize_entity(body, TablePayloadFormat.JSON_NO_METADATA)
    assert parsed["blob"].type == EdmType.STRING
    assert parsed["big"] == EntityProperty(EdmType.STRING, "12")
    assert parsed["small"] == EntityProperty(EdmType.INT32, 1234)
    assert parsed["flag"] == EntityProperty(EdmType.BOOLEAN, True)


def test_no_metadata_property_resolver_restores_types():
    types = {"blob": EdmType.BINARY, "big": EdmType.INT64, "when": EdmType.DATETIME, "id": EdmType.GUID}
    seen = []

    def resolver(pk, rk, name, value):
        seen.append((pk, rk))
        return types.get(name)

    body = serialize_entity(_typed_properties(), TablePayloadFormat.JSON_NO_METADATA)
    parsed = deserialize_entity(body, TablePayloadFormat.JSON_NO_METADATA, resolver)

    assert parsed == _typed_properties()
    assert set(seen) == {("pk", "rk")}


def test_timestamp_is_always_a_datetime():
    body = json.dumps({"PartitionKey": "pk", "RowKey": "rk", "Timestamp": "2026-10-18T12:30:15.123456Z"})
    parsed = deserialize_entity(body, TablePayloadFormat.JSON_NO_METADATA)
    assert parsed["Timestamp"] == EntityProperty(EdmType.DATETIME, NOW)


def test_atom_marks_nulls():
    body = serialize_entity({"missing": EntityProperty(EdmType.INT32, None)}, TablePayloadFormat.ATOM)
    assert 'm:null="true"' in body
    assert deserialize_entity(body, TablePayloadFormat.ATOM)["missing"] == EntityProperty(EdmType.INT32, None)


def test_unknown_format_and_type_are_rejected():
    with pytest.raises(ValueError):
        serialize_entity({}, "text/plain")
    with pytest.raises(ValueError):
        deserialize_entity("{}", "text/plain")
    with pytest.raises(ValueError):
        deserialize_entity('{"x": 1, "x@odata.type": "Edm.Decimal"}', TablePayloadFormat.JSON_FULL_METADATA)


def test_atom_keeps_carriage_returns():
    properties = {"note": EntityProperty(EdmType.STRING, "line1\r\nline2\r")}
    body = serialize_entity(properties, TablePayloadFormat.ATOM)

    assert "\r" not in body
    assert deserialize_entity(body, TablePayloadFormat.ATOM) == properties
