"""
TABLE ENCRYPTION POLICY
=======================
Envelope encryption of table entity properties.

FLOW:
- encrypt_entity(): validate selected properties, encrypt each under a fresh
  CEK, wrap the CEK, append the two shadow metadata properties.
- decrypt_entity(): unwrap the CEK through the key resolver (or the policy's
  own key), decrypt manifest entries present in the result, restore their
  type, strip the shadow properties.

HOW:
- One CEK per entity write, AES-256-GCM per property with a random nonce.
- Each ciphertext is bound to partition key, row key and property name as
  associated data; moving it to another entity or property fails decryption.
- The policy holds configuration only and can be shared between threads.
"""

from __future__ import annotations

import base64
import binascii

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.keywrap import InvalidUnwrap

from Encryption.content_encryption import (
    decrypt_bytes,
    encrypt_bytes,
    generate_content_key,
    property_context,
)
from Encryption.encryption_logging import audit, get_logger
from Encryption.encryption_metadata import (
    AES_GCM_256,
    ENCRYPTION_PROTOCOL_V2,
    KEY_DETAILS_PROPERTY,
    PROPERTY_DETAILS_PROPERTY,
    RESERVED_PROPERTY_NAMES,
    EncryptionAgent,
    EncryptionData,
    WrappedContentKey,
    dump_manifest,
    load_manifest,
    strip_encryption_metadata,
)
from Encryption.errors import (
    _ERROR_ALGORITHM_UNSUPPORTED,
    _ERROR_DECRYPTION_FAILED,
    _ERROR_ENCRYPTING_NULL_PROPERTY,
    _ERROR_INVALID_KEY_ENCRYPTION_KEY,
    _ERROR_INVALID_KEY_RESOLVER,
    _ERROR_KEY_AND_RESOLVER_MISSING,
    _ERROR_KEY_MISMATCH,
    _ERROR_KEY_MISSING,
    _ERROR_KEY_NOT_FOUND,
    _ERROR_METADATA_INVALID,
    _ERROR_METADATA_MISSING,
    _ERROR_PROTOCOL_UNSUPPORTED,
    _ERROR_RESERVED_PROPERTY_NAME,
    _ERROR_UNENCODABLE_PROPERTY,
    _ERROR_UNSUPPORTED_TYPE_FOR_ENCRYPTION,
    _ERROR_UNWRAP_FAILED,
    _ERROR_WRAP_FAILED,
    DecryptionError,
    EncryptionConfigurationError,
    EncryptionEligibilityError,
    KeyResolutionError,
)
from Encryption.metrics import (
    INTEGRITY_FAILURE,
    KEY_RESOLUTION_FAILURE,
    increment_feature_event,
    record_decrypt_failure,
    record_properties,
)
from table_client.entity import EdmType, EntityProperty


_KEY_METHODS = ("wrap_key", "unwrap_key", "get_kid", "get_key_wrap_algorithm")


def _validate_key_encryption_key(key) -> None:
    for method in _KEY_METHODS:
        if not callable(getattr(key, method, None)):
            raise EncryptionConfigurationError(_ERROR_INVALID_KEY_ENCRYPTION_KEY.format(method))


def _binary_value(prop: EntityProperty) -> bytes:
    # JSON without metadata returns Edm.Binary as an untyped base64 string.
    if isinstance(prop.value, (bytes, bytearray)):
        return bytes(prop.value)
    if isinstance(prop.value, str):
        return base64.b64decode(prop.value, validate=True)
    raise TypeError("expected binary ciphertext, got {}".format(type(prop.value).__name__))


class TableEncryptionPolicy:
    """Encrypts selected string properties on write and decrypts them on read.

    key: key encryption key used to wrap the CEK on write. On read it is used
    when no key_resolver is configured and its kid matches the stored kid.
    key_resolver: callable kid -> key, or an object with resolve_key().
    At least one of the two is required.
    """

    def __init__(self, key=None, key_resolver=None):
        if key is None and key_resolver is None:
            raise EncryptionConfigurationError(_ERROR_KEY_AND_RESOLVER_MISSING)
        if key is not None:
            _validate_key_encryption_key(key)
        if key_resolver is not None and not (
            callable(key_resolver) or callable(getattr(key_resolver, "resolve_key", None))
        ):
            raise EncryptionConfigurationError(_ERROR_INVALID_KEY_RESOLVER)
        self.key = key
        self.key_resolver = key_resolver
        self.logger = get_logger()

    def encrypt_entity(
        self,
        properties: dict[str, EntityProperty],
        partition_key: str,
        row_key: str,
        encryption_resolver=None,
    ) -> dict[str, EntityProperty]:
        if self.key is None:
            raise EncryptionConfigurationError(_ERROR_KEY_MISSING)

        plaintexts: dict[str, bytes] = {}
        for name, prop in properties.items():
            if name in RESERVED_PROPERTY_NAMES:
                raise EncryptionEligibilityError(_ERROR_RESERVED_PROPERTY_NAME.format(name))
            wants_encryption = prop.encrypt or (
                encryption_resolver is not None and encryption_resolver(partition_key, row_key, name)
            )
            if not wants_encryption:
                continue
            if prop.value is None:
                raise EncryptionEligibilityError(_ERROR_ENCRYPTING_NULL_PROPERTY.format(name))
            if prop.type != EdmType.STRING or not isinstance(prop.value, str):
                raise EncryptionEligibilityError(_ERROR_UNSUPPORTED_TYPE_FOR_ENCRYPTION.format(name, prop.type))
            try:
                plaintexts[name] = prop.value.encode("utf-8")
            except UnicodeEncodeError as exc:
                raise EncryptionEligibilityError(_ERROR_UNENCODABLE_PROPERTY.format(name)) from exc

        cek = generate_content_key()
        encrypted: dict[str, EntityProperty] = {}
        for name, prop in properties.items():
            if name in plaintexts:
                ciphertext = encrypt_bytes(plaintexts[name], cek, property_context(partition_key, row_key, name))
                encrypted[name] = EntityProperty(EdmType.BINARY, ciphertext)
            else:
                encrypted[name] = prop

        manifest = dump_manifest([(name, properties[name].type) for name in plaintexts])
        encrypted[PROPERTY_DETAILS_PROPERTY] = EntityProperty(
            EdmType.BINARY,
            encrypt_bytes(manifest, cek, property_context(partition_key, row_key, PROPERTY_DETAILS_PROPERTY)),
        )

        kid = self.key.get_kid()
        algorithm = self.key.get_key_wrap_algorithm()
        try:
            wrapped = self.key.wrap_key(cek, algorithm)
        except ValueError as exc:
            raise EncryptionConfigurationError(_ERROR_WRAP_FAILED.format(kid)) from exc

        encryption_data = EncryptionData(
            wrapped_content_key=WrappedContentKey(key_id=kid, encrypted_key=wrapped, algorithm=algorithm),
            encryption_agent=EncryptionAgent(ENCRYPTION_PROTOCOL_V2, AES_GCM_256),
        )
        encrypted[KEY_DETAILS_PROPERTY] = EntityProperty(EdmType.STRING, encryption_data.to_json())

        audit("entity-encrypt", partition_key, row_key, kid, ",".join(plaintexts))
        increment_feature_event("entity-encrypt")
        record_properties("encrypt", len(plaintexts))
        return encrypted

    def decrypt_entity(
        self,
        properties: dict[str, EntityProperty],
        partition_key: str,
        row_key: str,
    ) -> dict[str, EntityProperty]:
        key_details = properties.get(KEY_DETAILS_PROPERTY)
        if key_details is None:
            return dict(properties)
        property_details = properties.get(PROPERTY_DETAILS_PROPERTY)
        if property_details is None:
            raise DecryptionError(_ERROR_METADATA_MISSING)

        try:
            cek, encryption_data = self._unwrap_content_key(key_details)
            try:
                manifest = load_manifest(
                    decrypt_bytes(
                        _binary_value(property_details),
                        cek,
                        property_context(partition_key, row_key, PROPERTY_DETAILS_PROPERTY),
                    )
                )
            except (InvalidTag, TypeError, ValueError, KeyError) as exc:
                raise DecryptionError(_ERROR_METADATA_INVALID) from exc

            decrypted: dict[str, EntityProperty] = {}
            for name, prop in strip_encryption_metadata(properties).items():
                if name not in manifest:
                    decrypted[name] = prop
                    continue
                try:
                    plaintext = decrypt_bytes(
                        _binary_value(prop), cek, property_context(partition_key, row_key, name)
                    ).decode("utf-8")
                except (InvalidTag, TypeError, ValueError, binascii.Error) as exc:
                    raise DecryptionError(_ERROR_DECRYPTION_FAILED.format(name)) from exc
                decrypted[name] = EntityProperty(manifest[name], plaintext)
        except (DecryptionError, KeyResolutionError) as exc:
            reason = KEY_RESOLUTION_FAILURE if isinstance(exc, KeyResolutionError) else INTEGRITY_FAILURE
            self.logger.warning(
                "event=entity-decrypt-failure partition_key=%s row_key=%s reason=%s error=%s",
                partition_key,
                row_key,
                reason,
                exc,
            )
            record_decrypt_failure(reason)
            raise

        restored = [name for name in manifest if name in decrypted]
        audit(
            "entity-decrypt",
            partition_key,
            row_key,
            encryption_data.wrapped_content_key.key_id,
            ",".join(restored),
        )
        increment_feature_event("entity-decrypt")
        record_properties("decrypt", len(restored))
        return decrypted

    def _resolve_key(self, kid: str):
        if self.key_resolver is not None:
            resolve = getattr(self.key_resolver, "resolve_key", self.key_resolver)
            key = resolve(kid)
            if key is None:
                raise KeyResolutionError(_ERROR_KEY_NOT_FOUND.format(kid))
            return key
        if self.key.get_kid() != kid:
            raise KeyResolutionError(_ERROR_KEY_MISMATCH.format(kid, self.key.get_kid()))
        return self.key

    def _unwrap_content_key(self, key_details: EntityProperty) -> tuple[bytes, EncryptionData]:
        try:
            encryption_data = EncryptionData.from_json(key_details.value)
        except (TypeError, ValueError, KeyError) as exc:
            raise DecryptionError(_ERROR_METADATA_INVALID) from exc

        agent = encryption_data.encryption_agent
        if agent.protocol != ENCRYPTION_PROTOCOL_V2:
            raise DecryptionError(_ERROR_PROTOCOL_UNSUPPORTED.format(agent.protocol))
        if agent.encryption_algorithm != AES_GCM_256:
            raise DecryptionError(_ERROR_ALGORITHM_UNSUPPORTED.format(agent.encryption_algorithm))

        wrapped = encryption_data.wrapped_content_key
        key = self._resolve_key(wrapped.key_id)
        try:
            cek = key.unwrap_key(wrapped.encrypted_key, wrapped.algorithm)
        except (InvalidUnwrap, ValueError, TypeError) as exc:
            raise KeyResolutionError(_ERROR_UNWRAP_FAILED.format(wrapped.key_id)) from exc
        return cek, encryption_data
