"""
KEY RESOLVER
============
Maps the key id stored in encryption metadata back to a usable key.
"""

from __future__ import annotations

from Encryption.errors import _ERROR_KEY_NOT_FOUND, KeyResolutionError


class DictionaryKeyResolver:
    def __init__(self, keys=None):
        self.keys = {}
        for key in keys or ():
            self.put_key(key)

    def put_key(self, key) -> None:
        self.keys[key.get_kid()] = key

    def resolve_key(self, kid: str):
        try:
            return self.keys[kid]
        except KeyError:
            raise KeyResolutionError(_ERROR_KEY_NOT_FOUND.format(kid)) from None

    def __call__(self, kid: str):
        return self.resolve_key(kid)

    def __contains__(self, kid: str) -> bool:
        return kid in self.keys

    def __len__(self) -> int:
        return len(self.keys)
