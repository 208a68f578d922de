import os

import pytest
from cryptography.hazmat.primitives.keywrap import InvalidUnwrap

from Encryption.errors import KeyResolutionError
from Encryption.key_resolver import DictionaryKeyResolver
from Encryption.keys import RsaKey, SymmetricKey


@pytest.fixture(scope="module")
def rsa_key():
    return RsaKey("local:rsakey")


def test_symmetric_key_wraps_and_unwraps():
    key = SymmetricKey("key1")
    cek = os.urandom(32)
    wrapped = key.wrap_key(cek)
    assert wrapped != cek
    assert key.unwrap_key(wrapped, "A256KW") == cek
    assert key.get_kid() == "key1"


def test_symmetric_key_algorithm_follows_key_size():
    assert SymmetricKey("k", os.urandom(16)).get_key_wrap_algorithm() == "A128KW"
    assert SymmetricKey("k", os.urandom(24)).get_key_wrap_algorithm() == "A192KW"
    assert SymmetricKey("k").get_key_wrap_algorithm() == "A256KW"
    with pytest.raises(ValueError):
        SymmetricKey("k", os.urandom(20))


def test_symmetric_key_rejects_unknown_algorithm():
    key = SymmetricKey("key1")
    with pytest.raises(ValueError):
        key.wrap_key(os.urandom(32), "RSA-OAEP")
    with pytest.raises(ValueError):
        key.unwrap_key(os.urandom(40), "A128KW")


def test_symmetric_key_unwrap_with_other_key_fails():
    wrapped = SymmetricKey("key1").wrap_key(os.urandom(32))
    with pytest.raises(InvalidUnwrap):
        SymmetricKey("key1").unwrap_key(wrapped, "A256KW")


@pytest.mark.parametrize("algorithm", ["RSA-OAEP", "RSA-OAEP-256"])
def test_rsa_key_round_trip(rsa_key, algorithm):
    cek = os.urandom(32)
    wrapped = rsa_key.wrap_key(cek, algorithm)
    assert rsa_key.unwrap_key(wrapped, algorithm) == cek


def test_rsa_key_rejects_unknown_algorithm(rsa_key):
    with pytest.raises(ValueError):
        rsa_key.wrap_key(os.urandom(32), "A256KW")
    with pytest.raises(ValueError):
        RsaKey("k", rsa_key.private_key, algorithm="RSA1_5")


def test_dictionary_key_resolver():
    key1 = SymmetricKey("key1")
    key2 = SymmetricKey("key2")
    resolver = DictionaryKeyResolver([key1])
    resolver.put_key(key2)

    assert resolver.resolve_key("key1") is key1
    assert resolver("key2") is key2
    assert "key2" in resolver
    assert len(resolver) == 2
    with pytest.raises(KeyResolutionError):
        resolver.resolve_key("missing")
