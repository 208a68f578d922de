"""
ENCRYPTION ERRORS
=================
Exception taxonomy for client-side table encryption.
"""

# FLOW:
# - Policy and service code raise these; crypto failures are chained with
#   `raise ... from exc` so __cause__ holds the root cause.
# HOW:
# - None of these are retryable; is_retryable is fixed to False.

from __future__ import annotations


_ERROR_KEY_MISSING = "Key encryption key is not set on the encryption policy."
_ERROR_KEY_AND_RESOLVER_MISSING = "An encryption policy needs a key encryption key, a key resolver, or both."
_ERROR_POLICY_MISSING_IN_STRICT_MODE = "Encryption policy is missing while require_encryption is set."
_ERROR_ENCRYPTION_NOT_SUPPORTED_FOR_OPERATION = "Encryption is not supported for the {} operation."
_ERROR_ENCRYPTING_NULL_PROPERTY = "Null value for property '{}' cannot be encrypted."
_ERROR_UNSUPPORTED_TYPE_FOR_ENCRYPTION = "Property '{}' of type {} cannot be encrypted; only Edm.String is supported."
_ERROR_UNENCODABLE_PROPERTY = "Property '{}' is not valid UTF-8 text and cannot be encrypted."
_ERROR_RESERVED_PROPERTY_NAME = "Property name '{}' is reserved for encryption metadata."
_ERROR_INVALID_KEY_ENCRYPTION_KEY = "Key encryption key must define {}."
_ERROR_INVALID_KEY_RESOLVER = "Key resolver must be callable or define resolve_key."
_ERROR_KEY_NOT_FOUND = "Key with id '{}' could not be resolved."
_ERROR_KEY_MISMATCH = "Key id '{}' on the entity does not match the key encryption key '{}'."
_ERROR_UNWRAP_FAILED = "Content encryption key could not be unwrapped with key '{}'."
_ERROR_WRAP_FAILED = "Content encryption key could not be wrapped with key '{}'."
_ERROR_METADATA_MISSING = "Encryption metadata is missing from an entity that requires it."
_ERROR_METADATA_INVALID = "Encryption metadata could not be parsed."
_ERROR_PROTOCOL_UNSUPPORTED = "Encryption protocol version '{}' is not supported."
_ERROR_ALGORITHM_UNSUPPORTED = "Content encryption algorithm '{}' is not supported."
_ERROR_DECRYPTION_FAILED = "Property '{}' could not be decrypted."


class EncryptionError(Exception):
    """Base class for client-side encryption failures."""

    is_retryable = False


class EncryptionConfigurationError(EncryptionError, ValueError):
    """The policy or request options cannot perform the requested operation."""


class EncryptionEligibilityError(EncryptionError, ValueError):
    """A property selected for encryption is not a non-null string."""


class KeyResolutionError(EncryptionError):
    """A key id could not be resolved or the content key could not be unwrapped."""


class DecryptionError(EncryptionError):
    """Ciphertext or metadata failed integrity checks or decoding."""
