"""
SECURE KEY MANAGEMENT
=====================
Load key encryption keys from environment and validate length.
"""

# FLOW:
# - ensure_key_encryption_key() creates a strong key if missing.
# - get_aes256_key() loads and validates the base64 key.
# - load_key_encryption_key()/load_key_resolver() build the key objects the
#   encryption policy consumes, including retired keys kept for reads.
# HOW:
# - Generates and persists a 32-byte key to the active env file when absent.

from __future__ import annotations

import base64
import binascii
import os
import secrets

import dotenv

from Encryption.encryption_config import env_path, get_list
from Encryption.key_resolver import DictionaryKeyResolver
from Encryption.keys import SymmetricKey


KEY_ENV_NAME = "TABLE_KEY_ENCRYPTION_KEY"
KID_ENV_NAME = "TABLE_KEY_ID"
RETIRED_KEYS_ENV_NAME = "TABLE_RETIRED_KEYS"
DEFAULT_KID = "local:key1"
PLACEHOLDER = "CHANGE_ME_BASE64_32_BYTES"


def ensure_key_encryption_key(env_name: str = KEY_ENV_NAME) -> str:
    """Ensure a strong base64 AES-256 key exists in .env and environment."""
    dotenv.load_dotenv(env_path())
    raw = os.getenv(env_name)
    placeholders = {"", PLACEHOLDER, "REPLACE_WITH_BASE64_32_BYTE_KEY", "AUTO_GENERATE"}
    if raw and raw not in placeholders:
        return raw

    key = secrets.token_bytes(32)
    encoded = base64.urlsafe_b64encode(key).decode("utf-8")
    os.environ[env_name] = encoded

    path = env_path()
    if os.path.exists(path):
        with open(path, "r", encoding="utf-8") as f:
            lines = f.read().splitlines()
        if any(line.startswith(f"{env_name}=") for line in lines):
            lines = [f"{env_name}={encoded}" if line.startswith(f"{env_name}=") else line for line in lines]
        else:
            lines.append(f"{env_name}={encoded}")
        content = "\n".join(lines) + "\n"
    else:
        content = f"{env_name}={encoded}\n"

    with open(path, "w", encoding="utf-8") as f:
        f.write(content)

    return encoded


def decode_aes256_key(raw: str) -> bytes:
    try:
        key = base64.urlsafe_b64decode(raw.encode("utf-8"))
    except (binascii.Error, ValueError) as exc:
        raise ValueError("Key encryption key is not valid base64") from exc
    if len(key) != 32:
        raise ValueError("Key encryption key must be 32 bytes after base64 decode")
    return key


def get_aes256_key(env_name: str = KEY_ENV_NAME) -> bytes:
    """Return 32-byte key from base64 env var, auto-generating if missing."""
    return decode_aes256_key(ensure_key_encryption_key(env_name))


def load_key_encryption_key(kid: str | None = None) -> SymmetricKey:
    kid = kid or os.getenv(KID_ENV_NAME, DEFAULT_KID)
    return SymmetricKey(kid, get_aes256_key())


def load_retired_keys() -> list[SymmetricKey]:
    """Parse TABLE_RETIRED_KEYS as comma separated kid=base64key pairs."""
    keys = []
    for item in get_list(RETIRED_KEYS_ENV_NAME, []):
        kid, sep, raw = item.partition("=")
        if not sep or not kid.strip():
            raise ValueError(f"{RETIRED_KEYS_ENV_NAME} entries must look like kid=base64key")
        keys.append(SymmetricKey(kid.strip(), decode_aes256_key(raw.strip())))
    return keys


def load_key_resolver(active_key=None) -> DictionaryKeyResolver:
    resolver = DictionaryKeyResolver(load_retired_keys())
    resolver.put_key(active_key or load_key_encryption_key())
    return resolver
