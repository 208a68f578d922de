"""
ENCRYPTION CONFIG
=================
Centralized client-side encryption settings loaded from environment.
"""

# FLOW:
# - Pick the active env file, load it, read env vars once into ENCRYPTION_SETTINGS.
# - feature_enabled() gates optional features (audit trail, metrics).
# HOW:
# - dotenv populates os.environ, helpers coerce values with defaults.

from __future__ import annotations

import logging
import os

import dotenv


JSON_MINIMAL_METADATA = "application/json;odata=minimalmetadata"


def get_bool(name: str, default: bool = False) -> bool:
    return os.getenv(name, str(default)).lower() == "true"


def get_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


def get_list(name: str, default: list[str]) -> list[str]:
    raw = os.getenv(name)
    if not raw:
        return default
    return [item.strip() for item in raw.split(",") if item.strip()]


def env_root() -> str:
    override = os.getenv("ENCRYPTION_ENV_DIR", "").strip()
    if override:
        return override
    return os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


def _env_name() -> str:
    env = os.getenv("APP_ENV", "").strip().lower()
    if env in {"prod", "production"}:
        return ".env.production"
    if env in {"local", "localhost", "dev", "development"}:
        return ".env.localhost"

    # Auto-select based on ENV_ACTIVE flag if APP_ENV is not set
    prod_path = os.path.join(env_root(), ".env.production")

    def _is_active(path: str) -> bool:
        if not os.path.exists(path):
            return False
        with open(path, "r", encoding="utf-8") as f:
            for line in f:
                if line.strip().startswith("ENV_ACTIVE="):
                    return line.split("=", 1)[1].strip().strip('"').lower() == "true"
        return False

    if _is_active(prod_path):
        return ".env.production"
    return ".env.localhost"


def env_path() -> str:
    return os.path.join(env_root(), _env_name())


dotenv.load_dotenv(env_path())

if os.getenv("APP_ENV_LOG", "false").lower() == "true":
    logging.getLogger("encryption.env").info("Active env file: %s", env_path())

ENCRYPTION_SETTINGS = {
    "REQUIRE_ENCRYPTION": get_bool("TABLE_REQUIRE_ENCRYPTION", False),
    "DEFAULT_PAYLOAD_FORMAT": os.getenv("TABLE_PAYLOAD_FORMAT", JSON_MINIMAL_METADATA),
    "LOG_FILE": os.getenv("ENCRYPTION_LOG_FILE", os.path.join("logs", "encryption.log")),
    "LOG_MAX_BYTES": get_int("ENCRYPTION_LOG_MAX_BYTES", 2_000_000),
    "LOG_BACKUP_COUNT": get_int("ENCRYPTION_LOG_BACKUP_COUNT", 3),
    "DISABLED_FEATURES": get_list("ENCRYPTION_DISABLED_FEATURES", []),
    "DATABASE_URL": os.getenv("TABLE_DATABASE_URL", "sqlite:///:memory:"),
}


def feature_enabled(feature: str, default: bool = True) -> bool:
    if feature in ENCRYPTION_SETTINGS["DISABLED_FEATURES"]:
        return False
    return default
