"""
KEY ENCRYPTION KEY GENERATOR
============================
Print env lines for a new table key encryption key.

FLOW:
- Default: TABLE_KEY_ID and TABLE_KEY_ENCRYPTION_KEY for a fresh key.
- --rotate: also moves the currently configured key into TABLE_RETIRED_KEYS
  so entities written under it stay readable.
"""

from __future__ import annotations

import argparse
import base64
import os

from Encryption.encryption_config import get_list
from Encryption.key_management import (
    DEFAULT_KID,
    KEY_ENV_NAME,
    KID_ENV_NAME,
    RETIRED_KEYS_ENV_NAME,
    decode_aes256_key,
)


def new_encoded_key() -> str:
    return base64.urlsafe_b64encode(os.urandom(32)).decode("utf-8")


def retired_keys_line(current_kid: str, current_key: str) -> str:
    entries = [entry for entry in get_list(RETIRED_KEYS_ENV_NAME, []) if entry.partition("=")[0] != current_kid]
    entries.append(f"{current_kid}={current_key}")
    return f"{RETIRED_KEYS_ENV_NAME}={','.join(entries)}"


def build_env_lines(kid: str, encoded: str, rotate: bool = False) -> list[str]:
    lines = [f"{KID_ENV_NAME}={kid}", f"{KEY_ENV_NAME}={encoded}"]
    if rotate:
        current_key = os.getenv(KEY_ENV_NAME, "")
        current_kid = os.getenv(KID_ENV_NAME, DEFAULT_KID)
        if current_kid == kid:
            raise ValueError(f"New key id must differ from the current one ({current_kid})")
        decode_aes256_key(current_key)
        lines.append(retired_keys_line(current_kid, current_key))
    return lines


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Generate a table key encryption key as env lines.")
    parser.add_argument("--kid", default=None, help=f"key id for the new key (default {DEFAULT_KID})")
    parser.add_argument(
        "--rotate",
        action="store_true",
        help=f"retire the key in {KEY_ENV_NAME} into {RETIRED_KEYS_ENV_NAME}",
    )
    args = parser.parse_args(argv)
    if args.rotate and not args.kid:
        parser.error("--rotate needs --kid for the new key")

    try:
        lines = build_env_lines(args.kid or DEFAULT_KID, new_encoded_key(), rotate=args.rotate)
    except ValueError as exc:
        parser.error(str(exc))
    print("\n".join(lines))


if __name__ == "__main__":
    main()
