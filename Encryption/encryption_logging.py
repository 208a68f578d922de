"""
ENCRYPTION AUDIT TRAIL
======================
Structured logging for entity encryption and decryption.

FLOW:
- get_logger() builds a named logger with a rotating file handler once.
- audit() emits one key=value line per encrypt/decrypt event.

HOW:
- Writes to ENCRYPTION_SETTINGS["LOG_FILE"]; an empty path keeps records
  on the standard logging propagation chain only.
- Property names are logged, property values and key material never are.
"""

from __future__ import annotations

import logging
import os
import threading
from logging.handlers import RotatingFileHandler

from Encryption.encryption_config import ENCRYPTION_SETTINGS, feature_enabled
from Encryption.metrics import increment_feature_event


_LOGGER_LOCK = threading.Lock()


def get_logger(name: str = "encryption.audit") -> logging.Logger:
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    with _LOGGER_LOCK:
        if not logger.handlers:
            _attach_file_handler(logger)
    logger.setLevel(logging.INFO)
    return logger


def _attach_file_handler(logger: logging.Logger) -> None:
    log_file = ENCRYPTION_SETTINGS["LOG_FILE"]
    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        handler = RotatingFileHandler(
            log_file,
            maxBytes=ENCRYPTION_SETTINGS["LOG_MAX_BYTES"],
            backupCount=ENCRYPTION_SETTINGS["LOG_BACKUP_COUNT"],
        )
        formatter = logging.Formatter("%(asctime)s %(levelname)s %(message)s")
        handler.setFormatter(formatter)
        logger.addHandler(handler)


def audit(
    event: str,
    partition_key: str | None = None,
    row_key: str | None = None,
    kid: str | None = None,
    details: str | None = None,
) -> None:
    if not feature_enabled("audit-trail", True):
        return
    get_logger().info(
        "event=%s partition_key=%s row_key=%s kid=%s details=%s",
        event,
        partition_key or "",
        row_key or "",
        kid or "",
        details or "",
    )
    increment_feature_event("audit-trail")
