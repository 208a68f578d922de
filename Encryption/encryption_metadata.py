"""
ENCRYPTION METADATA
===================
Shadow property names and the JSON documents stored in them.

FLOW:
- EncryptionData.to_json() fills _ClientEncryptionMetadata1 on write.
- EncryptionData.from_json() parses it back on read.
- dump_manifest()/load_manifest() handle the plaintext of
  _ClientEncryptionMetadata2 (name and original type of each encrypted property).
- strip_encryption_metadata() removes both shadow properties from a property map.
"""

from __future__ import annotations

import base64
import json
from dataclasses import dataclass, field


KEY_DETAILS_PROPERTY = "_ClientEncryptionMetadata1"
PROPERTY_DETAILS_PROPERTY = "_ClientEncryptionMetadata2"
RESERVED_PROPERTY_NAMES = frozenset({KEY_DETAILS_PROPERTY, PROPERTY_DETAILS_PROPERTY})

ENCRYPTION_PROTOCOL_V2 = "2.0"
AES_GCM_256 = "AES_GCM_256"
AGENT_METADATA_KEY = "EncryptionLibrary"
AGENT_METADATA_VALUE = "Python table-encryption 1.0.0"


@dataclass
class WrappedContentKey:
    key_id: str
    encrypted_key: bytes
    algorithm: str


@dataclass
class EncryptionAgent:
    protocol: str = ENCRYPTION_PROTOCOL_V2
    encryption_algorithm: str = AES_GCM_256


@dataclass
class EncryptionData:
    wrapped_content_key: WrappedContentKey
    encryption_agent: EncryptionAgent = field(default_factory=EncryptionAgent)
    key_wrapping_metadata: dict[str, str] = field(
        default_factory=lambda: {AGENT_METADATA_KEY: AGENT_METADATA_VALUE}
    )

    def to_json(self) -> str:
        return json.dumps(
            {
                "WrappedContentKey": {
                    "KeyId": self.wrapped_content_key.key_id,
                    "EncryptedKey": base64.b64encode(self.wrapped_content_key.encrypted_key).decode("utf-8"),
                    "Algorithm": self.wrapped_content_key.algorithm,
                },
                "EncryptionAgent": {
                    "Protocol": self.encryption_agent.protocol,
                    "EncryptionAlgorithm": self.encryption_agent.encryption_algorithm,
                },
                "KeyWrappingMetadata": self.key_wrapping_metadata,
            },
            separators=(",", ":"),
        )

    @classmethod
    def from_json(cls, raw: str) -> "EncryptionData":
        """Parse metadata JSON. Raises ValueError, KeyError or TypeError on malformed input."""
        doc = json.loads(raw)
        wrapped = doc["WrappedContentKey"]
        agent = doc["EncryptionAgent"]
        return cls(
            wrapped_content_key=WrappedContentKey(
                key_id=wrapped["KeyId"],
                encrypted_key=base64.b64decode(wrapped["EncryptedKey"], validate=True),
                algorithm=wrapped["Algorithm"],
            ),
            encryption_agent=EncryptionAgent(
                protocol=agent["Protocol"],
                encryption_algorithm=agent["EncryptionAlgorithm"],
            ),
            key_wrapping_metadata=dict(doc.get("KeyWrappingMetadata") or {}),
        )


def dump_manifest(entries: list[tuple[str, str]]) -> bytes:
    return json.dumps(
        [{"name": name, "type": edm_type} for name, edm_type in entries],
        separators=(",", ":"),
    ).encode("utf-8")


def load_manifest(raw: bytes) -> dict[str, str]:
    return {entry["name"]: entry["type"] for entry in json.loads(raw.decode("utf-8"))}


def has_encryption_metadata(properties) -> bool:
    return KEY_DETAILS_PROPERTY in properties


def strip_encryption_metadata(properties: dict) -> dict:
    return {name: value for name, value in properties.items() if name not in RESERVED_PROPERTY_NAMES}
