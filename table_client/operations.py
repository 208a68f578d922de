"""
TABLE OPERATIONS
================
Client-side request preparation and response resolution.

FLOW:
- prepare_write(): normalize the entity, enforce strict mode, encrypt through
  the policy, serialize a request body for the store.
- projection(): add the shadow metadata properties to a select list.
- resolve_read(): parse a response body, enforce strict mode, decrypt, and
  convert to an Entity or a typed dataclass.

HOW:
- Explicit, per-property and declarative (dataclass) encryption selections
  are ORed into one resolver for the policy.
"""

from __future__ import annotations

from Encryption.encryption_metadata import RESERVED_PROPERTY_NAMES, has_encryption_metadata
from Encryption.encryption_resolver import combine_resolvers, type_encryption_resolver
from Encryption.errors import (
    _ERROR_ENCRYPTION_NOT_SUPPORTED_FOR_OPERATION,
    _ERROR_KEY_MISSING,
    _ERROR_METADATA_MISSING,
    _ERROR_POLICY_MISSING_IN_STRICT_MODE,
    DecryptionError,
    EncryptionConfigurationError,
)

from .entity import PARTITION_KEY, ROW_KEY, EdmType, EntityProperty, build_entity, split_entity
from .payload_format import TablePayloadFormat, deserialize_entity, serialize_entity
from .request_options import TableRequestOptions
from .table_store import INSERT_OR_MERGE, MERGE, REPLACE, StoreRequest
from .typed_entity import from_entity, is_typed_entity, to_entity


def prepare_write(entity, options: TableRequestOptions, operation: str) -> StoreRequest:
    entity_type = None
    if is_typed_entity(entity):
        entity_type = type(entity)
        entity = to_entity(entity)
    partition_key, row_key, properties = split_entity(entity)

    policy = options.encryption_policy
    if options.require_encryption and policy is None:
        raise EncryptionConfigurationError(_ERROR_POLICY_MISSING_IN_STRICT_MODE)
    if operation in (MERGE, INSERT_OR_MERGE) and policy is not None:
        raise EncryptionConfigurationError(_ERROR_ENCRYPTION_NOT_SUPPORTED_FOR_OPERATION.format(operation))

    resolver = combine_resolvers(
        options.encryption_resolver,
        type_encryption_resolver(entity_type) if entity_type is not None else None,
    )
    if policy is not None:
        properties = policy.encrypt_entity(properties, partition_key, row_key, resolver)
    elif any(
        prop.encrypt or (resolver is not None and resolver(partition_key, row_key, name))
        for name, prop in properties.items()
    ):
        raise EncryptionConfigurationError(_ERROR_KEY_MISSING)

    wire = {
        PARTITION_KEY: EntityProperty(EdmType.STRING, partition_key),
        ROW_KEY: EntityProperty(EdmType.STRING, row_key),
    }
    wire.update(properties)

    # Request bodies always carry types; no-metadata only affects responses.
    request_format = options.payload_format
    if request_format == TablePayloadFormat.JSON_NO_METADATA:
        request_format = TablePayloadFormat.JSON_MINIMAL_METADATA

    if_match = None
    if operation in (REPLACE, MERGE):
        if_match = getattr(entity, "etag", None) or "*"

    return StoreRequest(
        operation=operation,
        partition_key=partition_key,
        row_key=row_key,
        body=serialize_entity(wire, request_format),
        payload_format=request_format,
        if_match=if_match,
    )


def projection(select, options: TableRequestOptions) -> list[str] | None:
    if select is None:
        return None
    if isinstance(select, str):
        select = [name.strip() for name in select.split(",") if name.strip()]
    names = list(select)
    if options.encryption_policy is not None:
        names.extend(name for name in sorted(RESERVED_PROPERTY_NAMES) if name not in names)
    return names


def resolve_read(body: str, etag: str, options: TableRequestOptions, entity_type=None):
    properties = deserialize_entity(body, options.payload_format, options.property_resolver)
    partition_key = properties[PARTITION_KEY].value
    row_key = properties[ROW_KEY].value

    policy = options.encryption_policy
    if options.require_encryption:
        if policy is None:
            raise EncryptionConfigurationError(_ERROR_POLICY_MISSING_IN_STRICT_MODE)
        if not has_encryption_metadata(properties):
            raise DecryptionError(_ERROR_METADATA_MISSING)
    if policy is not None:
        properties = policy.decrypt_entity(properties, partition_key, row_key)

    entity = build_entity(properties, etag)
    if entity_type is not None:
        return from_entity(entity_type, entity)
    return entity
