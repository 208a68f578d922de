"""
KEY ENCRYPTION KEYS
===================
Local key-encryption-key implementations used to wrap content keys.
"""

# FLOW:
# - wrap_key()/unwrap_key() protect the per-entity CEK.
# - get_kid()/get_key_wrap_algorithm() are recorded in encryption metadata.
# HOW:
# - SymmetricKey uses AES key wrap (RFC 3394), algorithm named by key size.
# - RsaKey uses RSA-OAEP with SHA-1 or SHA-256.

from __future__ import annotations

import os

from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.asymmetric.padding import MGF1, OAEP
from cryptography.hazmat.primitives.hashes import SHA1, SHA256
from cryptography.hazmat.primitives.keywrap import aes_key_unwrap, aes_key_wrap


_ERROR_UNKNOWN_KEY_WRAP_ALGORITHM = "Unknown key wrap algorithm '{}'."

_AES_WRAP_ALGORITHMS = {16: "A128KW", 24: "A192KW", 32: "A256KW"}


class SymmetricKey:
    def __init__(self, kid: str, key: bytes | None = None):
        if key is None:
            key = os.urandom(32)
        if len(key) not in _AES_WRAP_ALGORITHMS:
            raise ValueError("Symmetric key must be 16, 24 or 32 bytes")
        self.kid = kid
        self._key = key

    def wrap_key(self, key: bytes, algorithm: str | None = None) -> bytes:
        algorithm = algorithm or self.get_key_wrap_algorithm()
        if algorithm != self.get_key_wrap_algorithm():
            raise ValueError(_ERROR_UNKNOWN_KEY_WRAP_ALGORITHM.format(algorithm))
        return aes_key_wrap(self._key, key)

    def unwrap_key(self, key: bytes, algorithm: str) -> bytes:
        if algorithm != self.get_key_wrap_algorithm():
            raise ValueError(_ERROR_UNKNOWN_KEY_WRAP_ALGORITHM.format(algorithm))
        return aes_key_unwrap(self._key, key)

    def get_key_wrap_algorithm(self) -> str:
        return _AES_WRAP_ALGORITHMS[len(self._key)]

    def get_kid(self) -> str:
        return self.kid


class RsaKey:
    _HASHES = {"RSA-OAEP": SHA1, "RSA-OAEP-256": SHA256}

    def __init__(self, kid: str, private_key=None, algorithm: str = "RSA-OAEP"):
        if algorithm not in self._HASHES:
            raise ValueError(_ERROR_UNKNOWN_KEY_WRAP_ALGORITHM.format(algorithm))
        if private_key is None:
            private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
        self.kid = kid
        self.algorithm = algorithm
        self.private_key = private_key
        self.public_key = private_key.public_key()

    def _padding(self, algorithm: str) -> OAEP:
        hash_type = self._HASHES.get(algorithm)
        if hash_type is None:
            raise ValueError(_ERROR_UNKNOWN_KEY_WRAP_ALGORITHM.format(algorithm))
        return OAEP(mgf=MGF1(algorithm=hash_type()), algorithm=hash_type(), label=None)

    def wrap_key(self, key: bytes, algorithm: str | None = None) -> bytes:
        return self.public_key.encrypt(key, self._padding(algorithm or self.algorithm))

    def unwrap_key(self, key: bytes, algorithm: str) -> bytes:
        return self.private_key.decrypt(key, self._padding(algorithm))

    def get_key_wrap_algorithm(self) -> str:
        return self.algorithm

    def get_kid(self) -> str:
        return self.kid
