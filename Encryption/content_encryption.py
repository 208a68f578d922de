"""
CONTENT ENCRYPTION
==================
AES-256-GCM helpers for encrypting entity property values under a CEK.

FLOW:
- generate_content_key() creates a one-time 32-byte content encryption key.
- encrypt_bytes() encrypts raw bytes -> nonce || ciphertext || tag.
- decrypt_bytes() verifies and decrypts that layout.

HOW:
- Uses AES-256-GCM with a random nonce per value, so equal plaintexts
  never produce equal ciphertexts.
- associated_data binds a ciphertext to the entity and property it was
  written for.
"""

from __future__ import annotations

import os

from cryptography.hazmat.primitives.ciphers.aead import AESGCM


NONCE_SIZE = 12
CONTENT_KEY_SIZE = 32


def generate_content_key() -> bytes:
    return AESGCM.generate_key(bit_length=CONTENT_KEY_SIZE * 8)


def encrypt_bytes(plaintext: bytes, key: bytes, associated_data: bytes | None = None) -> bytes:
    """Encrypt bytes with AES-256-GCM. Returns nonce-prefixed ciphertext."""
    if len(key) != CONTENT_KEY_SIZE:
        raise ValueError("AES-256 key must be 32 bytes")
    nonce = os.urandom(NONCE_SIZE)
    aesgcm = AESGCM(key)
    return nonce + aesgcm.encrypt(nonce, plaintext, associated_data)


def decrypt_bytes(token: bytes, key: bytes, associated_data: bytes | None = None) -> bytes:
    """Decrypt nonce-prefixed AES-256-GCM ciphertext. Raises InvalidTag on tampering."""
    if len(key) != CONTENT_KEY_SIZE:
        raise ValueError("AES-256 key must be 32 bytes")
    nonce, ciphertext = token[:NONCE_SIZE], token[NONCE_SIZE:]
    aesgcm = AESGCM(key)
    return aesgcm.decrypt(nonce, ciphertext, associated_data)


def property_context(partition_key: str, row_key: str, name: str) -> bytes:
    # Table keys cannot contain '/', so the join is unambiguous.
    return f"{partition_key}/{row_key}/{name}".encode("utf-8")
