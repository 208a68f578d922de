"""
ENCRYPTION METRICS
==================
Prometheus instruments for table encryption.

FLOW:
- Policy code records entity events, encrypted property counts and decrypt
  failures; TableService publishes which optional features are on.
- get_feature_metrics_snapshot()/get_decrypt_failure_count() read the
  registry back for status checks and tests.

HOW:
- Instruments are registered on first use, once per process, under
  _METRICS_LOCK. Concurrent first calls from policy threads see one set.
- Decrypt failures carry a reason label: key-resolution or integrity.
"""

from __future__ import annotations

import os
import threading
from typing import Dict

from prometheus_client import REGISTRY, Counter, Gauge

from Encryption.encryption_config import feature_enabled


EVENTS_METRIC = "table_encryption_events_total"
PROPERTIES_METRIC = "table_encrypted_properties_total"
DECRYPT_FAILURES_METRIC = "table_decrypt_failures_total"
FEATURE_ENABLED_METRIC = "table_encryption_feature_enabled"

KEY_RESOLUTION_FAILURE = "key-resolution"
INTEGRITY_FAILURE = "integrity"

_REGISTRY = REGISTRY
_METRICS_LOCK = threading.Lock()

_EVENTS = None
_PROPERTIES = None
_DECRYPT_FAILURES = None
_FEATURE_ENABLED = None


def _enabled() -> bool:
    return os.getenv("PROMETHEUS_ENABLED", "true").lower() == "true" and feature_enabled("metrics", True)


def _init_metrics() -> bool:
    global _EVENTS, _PROPERTIES, _DECRYPT_FAILURES, _FEATURE_ENABLED
    if _EVENTS is not None:
        return True
    if not _enabled():
        return False
    with _METRICS_LOCK:
        if _EVENTS is not None:
            return True
        _PROPERTIES = Counter(
            PROPERTIES_METRIC,
            "Entity properties encrypted or decrypted",
            ["operation"],
            registry=_REGISTRY,
        )
        _DECRYPT_FAILURES = Counter(
            DECRYPT_FAILURES_METRIC,
            "Entity decryptions that failed, by reason",
            ["reason"],
            registry=_REGISTRY,
        )
        _FEATURE_ENABLED = Gauge(
            FEATURE_ENABLED_METRIC,
            "Whether a table encryption feature is enabled (1/0)",
            ["feature"],
            registry=_REGISTRY,
        )
        # Published last; the unlocked check above reads this one.
        _EVENTS = Counter(
            EVENTS_METRIC,
            "Entity encryption events (entity-encrypt, entity-decrypt, audit-trail)",
            ["feature"],
            registry=_REGISTRY,
        )
    return True


def increment_feature_event(feature: str, amount: int = 1) -> None:
    if _init_metrics():
        _EVENTS.labels(feature=feature).inc(amount)


def record_properties(operation: str, count: int) -> None:
    """Count properties passed through encrypt ("encrypt") or decrypt ("decrypt")."""
    if count and _init_metrics():
        _PROPERTIES.labels(operation=operation).inc(count)


def record_decrypt_failure(reason: str) -> None:
    if _init_metrics():
        _DECRYPT_FAILURES.labels(reason=reason).inc()


def set_feature_enabled(feature: str, enabled: bool) -> None:
    if _init_metrics():
        _FEATURE_ENABLED.labels(feature=feature).set(1 if enabled else 0)


def _sample(name: str, labels: Dict[str, str]) -> int:
    return int(_REGISTRY.get_sample_value(name, labels) or 0)


def get_feature_metrics_snapshot(features: list[str]) -> Dict[str, Dict[str, int]]:
    return {feature: {"events": _sample(EVENTS_METRIC, {"feature": feature})} for feature in features}


def get_decrypt_failure_count(reason: str) -> int:
    return _sample(DECRYPT_FAILURES_METRIC, {"reason": reason})


def get_property_count(operation: str) -> int:
    return _sample(PROPERTIES_METRIC, {"operation": operation})
