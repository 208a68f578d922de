"""
Per-request options for table operations.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Callable, Optional

from Encryption.encryption_config import ENCRYPTION_SETTINGS
from Encryption.table_encryption_policy import TableEncryptionPolicy


@dataclass
class TableRequestOptions:
    encryption_policy: Optional[TableEncryptionPolicy] = None
    encryption_resolver: Optional[Callable[[str, str, str], bool]] = None
    require_encryption: bool = field(default_factory=lambda: ENCRYPTION_SETTINGS["REQUIRE_ENCRYPTION"])
    payload_format: str = field(default_factory=lambda: ENCRYPTION_SETTINGS["DEFAULT_PAYLOAD_FORMAT"])
    # (partition_key, row_key, name, value) -> EdmType for untyped JSON values.
    property_resolver: Optional[Callable[[str, str, str, str], Optional[str]]] = None

    def with_changes(self, **changes) -> "TableRequestOptions":
        return replace(self, **changes)
