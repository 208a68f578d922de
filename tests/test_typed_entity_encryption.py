import datetime
from dataclasses import dataclass
from typing import Optional

import pytest

from Encryption.encryption_resolver import encrypted_field, property_name_resolver
from Encryption.errors import EncryptionConfigurationError
from Encryption.table_encryption_policy import TableEncryptionPolicy
from table_client.entity import EdmType
from table_client.request_options import TableRequestOptions
from table_client.typed_entity import from_entity, to_entity


@dataclass
class PatientRecord:
    partition_key: str
    row_key: str
    name: str = encrypted_field(default="")
    diagnosis: str = ""
    visits: int = 0
    timestamp: Optional[datetime.datetime] = None
    etag: Optional[str] = None


@pytest.fixture
def typed_write_options(aes_key):
    return TableRequestOptions(encryption_policy=TableEncryptionPolicy(aes_key))


def _record(**fields):
    return PatientRecord(partition_key="ward1", row_key=fields.pop("row_key", "bed1"), **fields)


def test_to_entity_maps_keys_and_properties():
    entity = to_entity(_record(name="Ada", visits=3))

    assert entity["PartitionKey"] == "ward1"
    assert entity["RowKey"] == "bed1"
    assert "Timestamp" not in entity
    assert "etag" not in entity
    assert entity["name"].type == EdmType.STRING
    assert entity["visits"].type == EdmType.INT32


def test_from_entity_fills_missing_fields():
    entity = to_entity(_record(name="Ada"))
    del entity["visits"]
    entity.etag = 'W/"abc"'

    record = from_entity(PatientRecord, entity)

    assert record.visits == 0
    assert record.etag == 'W/"abc"'
    assert record.timestamp is None


def test_declared_fields_are_encrypted(service, table_name, typed_write_options, read_options):
    service.insert_entity(table_name, _record(name="Ada", diagnosis="flu", visits=2), options=typed_write_options)

    raw = service.get_entity(table_name, "ward1", "bed1", options=TableRequestOptions())
    assert raw["name"].type == EdmType.BINARY
    assert raw["diagnosis"].value == "flu"

    record = service.get_entity(table_name, "ward1", "bed1", options=read_options, entity_type=PatientRecord)
    assert isinstance(record, PatientRecord)
    assert record.name == "Ada"
    assert record.diagnosis == "flu"
    assert record.visits == 2
    assert isinstance(record.timestamp, datetime.datetime)
    assert record.etag


def test_explicit_resolver_adds_to_declared_fields(service, table_name, typed_write_options, read_options):
    options = typed_write_options.with_changes(encryption_resolver=property_name_resolver("diagnosis"))
    service.insert_entity(table_name, _record(name="Ada", diagnosis="flu"), options=options)

    raw = service.get_entity(table_name, "ward1", "bed1", options=TableRequestOptions())
    assert raw["name"].type == EdmType.BINARY
    assert raw["diagnosis"].type == EdmType.BINARY

    record = service.get_entity(table_name, "ward1", "bed1", options=read_options, entity_type=PatientRecord)
    assert (record.name, record.diagnosis) == ("Ada", "flu")


def test_projection_keeps_defaults(service, table_name, typed_write_options, read_options):
    service.insert_entity(table_name, _record(name="Ada", diagnosis="flu", visits=5), options=typed_write_options)

    record = service.get_entity(
        table_name, "ward1", "bed1", select="name", options=read_options, entity_type=PatientRecord
    )

    assert record.name == "Ada"
    assert record.diagnosis == ""
    assert record.visits == 0


def test_query_returns_typed_records(service, table_name, typed_write_options, read_options):
    for bed in ("bed1", "bed2"):
        service.insert_entity(table_name, _record(row_key=bed, name=f"patient-{bed}"), options=typed_write_options)

    records = service.query_entities(table_name, partition_key="ward1", options=read_options, entity_type=PatientRecord)

    assert [record.name for record in records] == ["patient-bed1", "patient-bed2"]


def test_declared_fields_without_policy_are_refused(service, table_name):
    with pytest.raises(EncryptionConfigurationError):
        service.insert_entity(table_name, _record(name="Ada"), options=TableRequestOptions())
