import os
import uuid

# Settings are read at import time; pin them before the packages load.
os.environ["ENCRYPTION_ENV_DIR"] = os.path.dirname(os.path.abspath(__file__))
os.environ["ENCRYPTION_LOG_FILE"] = ""
os.environ["TABLE_REQUIRE_ENCRYPTION"] = "false"
os.environ["TABLE_PAYLOAD_FORMAT"] = "application/json;odata=minimalmetadata"
os.environ.pop("TABLE_RETIRED_KEYS", None)

import pytest

from Encryption.encryption_resolver import property_name_resolver
from Encryption.key_resolver import DictionaryKeyResolver
from Encryption.keys import SymmetricKey
from Encryption.table_encryption_policy import TableEncryptionPolicy
from table_client.database import create_store_engine
from table_client.entity import Entity
from table_client.request_options import TableRequestOptions
from table_client.table_service import TableService
from table_client.table_store import TableStore


@pytest.fixture
def store():
    return TableStore(create_store_engine("sqlite:///:memory:"))


@pytest.fixture
def service(store):
    return TableService(store)


@pytest.fixture
def table_name(service):
    name = "encryptiontable" + uuid.uuid4().hex[:8]
    service.create_table(name)
    return name


@pytest.fixture
def aes_key():
    return SymmetricKey("symencryptionkey")


@pytest.fixture
def key_resolver(aes_key):
    return DictionaryKeyResolver([aes_key])


@pytest.fixture
def write_options(aes_key):
    return TableRequestOptions(
        encryption_policy=TableEncryptionPolicy(aes_key, None),
        encryption_resolver=property_name_resolver("foo", "foo2"),
    )


@pytest.fixture
def read_options(key_resolver):
    return TableRequestOptions(encryption_policy=TableEncryptionPolicy(None, key_resolver))


def _new_entity(**properties):
    entity = Entity(PartitionKey="pk" + uuid.uuid4().hex, RowKey="rk" + uuid.uuid4().hex)
    entity.update(properties)
    return entity


@pytest.fixture
def make_entity():
    return _new_entity


@pytest.fixture
def sample_entity():
    return _new_entity(foo="bar", foo2="", fooint=1234)
