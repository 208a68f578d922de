"""
ENCRYPTION RESOLVERS
====================
Decide which entity properties are encrypted on write.
"""

# FLOW:
# - A resolver is a callable (partition_key, row_key, property_name) -> bool.
# - encrypted_field() marks dataclass fields; encryption_table() reads the
#   marks once per type.
# - combine_resolvers() ORs explicit and declarative resolvers together.

from __future__ import annotations

import dataclasses
import functools
from typing import Callable, Optional


EncryptionResolver = Callable[[str, str, str], bool]

ENCRYPT_METADATA_KEY = "encrypt"


def encrypted_field(*, default=dataclasses.MISSING, default_factory=dataclasses.MISSING, **kwargs):
    """Dataclass field whose value is encrypted when the entity is written."""
    metadata = dict(kwargs.pop("metadata", None) or {})
    metadata[ENCRYPT_METADATA_KEY] = True
    return dataclasses.field(default=default, default_factory=default_factory, metadata=metadata, **kwargs)


@functools.lru_cache(maxsize=None)
def encryption_table(entity_type: type) -> dict[str, bool]:
    if not dataclasses.is_dataclass(entity_type):
        return {}
    return {
        f.name: bool(f.metadata.get(ENCRYPT_METADATA_KEY, False))
        for f in dataclasses.fields(entity_type)
    }


def type_encryption_resolver(entity_type: type) -> Optional[EncryptionResolver]:
    table = encryption_table(entity_type)
    if not any(table.values()):
        return None

    def resolver(partition_key: str, row_key: str, name: str) -> bool:
        return table.get(name, False)

    return resolver


def property_name_resolver(*names: str) -> EncryptionResolver:
    selected = frozenset(names)

    def resolver(partition_key: str, row_key: str, name: str) -> bool:
        return name in selected

    return resolver


def combine_resolvers(*resolvers: Optional[EncryptionResolver]) -> Optional[EncryptionResolver]:
    active = [r for r in resolvers if r is not None]
    if not active:
        return None
    if len(active) == 1:
        return active[0]

    def resolver(partition_key: str, row_key: str, name: str) -> bool:
        return any(r(partition_key, row_key, name) for r in active)

    return resolver
