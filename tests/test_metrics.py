import threading

import pytest
from prometheus_client import CollectorRegistry

from Encryption import metrics
from Encryption.errors import DecryptionError, KeyResolutionError
from Encryption.key_resolver import DictionaryKeyResolver
from Encryption.keys import SymmetricKey
from Encryption.table_encryption_policy import TableEncryptionPolicy
from table_client.entity import EdmType, EntityProperty, split_entity


@pytest.fixture
def fresh_metrics(monkeypatch):
    registry = CollectorRegistry()
    monkeypatch.setattr(metrics, "_REGISTRY", registry)
    for name in ("_EVENTS", "_PROPERTIES", "_DECRYPT_FAILURES", "_FEATURE_ENABLED"):
        monkeypatch.setattr(metrics, name, None)
    return registry


def _run_together(count, target):
    barrier = threading.Barrier(count)
    errors = []

    def worker():
        barrier.wait()
        try:
            target()
        except Exception as exc:  # noqa: BLE001
            errors.append(exc)

    threads = [threading.Thread(target=worker) for _ in range(count)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    return errors


def test_first_use_from_many_threads_registers_once(fresh_metrics):
    errors = _run_together(8, lambda: metrics.increment_feature_event("entity-encrypt"))

    assert errors == []
    assert fresh_metrics.get_sample_value(metrics.EVENTS_METRIC, {"feature": "entity-encrypt"}) == 8


def test_concurrent_first_encryptions_share_instruments(fresh_metrics, aes_key, make_entity):
    policy = TableEncryptionPolicy(aes_key)
    pending = [split_entity(make_entity(foo="bar")) for _ in range(8)]
    lock = threading.Lock()

    def encrypt_one():
        with lock:
            partition_key, row_key, properties = pending.pop()
        properties["foo"] = EntityProperty(EdmType.STRING, "bar", encrypt=True)
        policy.encrypt_entity(properties, partition_key, row_key)

    assert _run_together(8, encrypt_one) == []
    assert metrics.get_feature_metrics_snapshot(["entity-encrypt"]) == {"entity-encrypt": {"events": 8}}
    assert metrics.get_property_count("encrypt") == 8


def test_decrypt_failures_are_counted_by_reason(fresh_metrics, aes_key, sample_entity):
    policy = TableEncryptionPolicy(aes_key)
    partition_key, row_key, properties = split_entity(sample_entity)
    properties["foo"] = EntityProperty(EdmType.STRING, "bar", encrypt=True)
    encrypted = policy.encrypt_entity(properties, partition_key, row_key)

    stranger = TableEncryptionPolicy(None, DictionaryKeyResolver([SymmetricKey("otherkey")]))
    with pytest.raises(KeyResolutionError):
        stranger.decrypt_entity(encrypted, partition_key, row_key)

    with pytest.raises(DecryptionError):
        policy.decrypt_entity(encrypted, partition_key, row_key + "-moved")

    assert metrics.get_decrypt_failure_count(metrics.KEY_RESOLUTION_FAILURE) == 1
    assert metrics.get_decrypt_failure_count(metrics.INTEGRITY_FAILURE) == 1


def test_successful_decrypt_counts_restored_properties(fresh_metrics, aes_key, sample_entity):
    policy = TableEncryptionPolicy(aes_key)
    partition_key, row_key, properties = split_entity(sample_entity)
    for name in ("foo", "foo2"):
        properties[name] = EntityProperty(EdmType.STRING, properties[name].value, encrypt=True)
    encrypted = policy.encrypt_entity(properties, partition_key, row_key)
    del encrypted["foo2"]

    policy.decrypt_entity(encrypted, partition_key, row_key)

    assert metrics.get_property_count("encrypt") == 2
    assert metrics.get_property_count("decrypt") == 1


def test_disabled_metrics_record_nothing(fresh_metrics, monkeypatch):
    monkeypatch.setenv("PROMETHEUS_ENABLED", "false")

    metrics.increment_feature_event("entity-encrypt")
    metrics.record_decrypt_failure(metrics.INTEGRITY_FAILURE)

    assert metrics._EVENTS is None
    assert metrics.get_decrypt_failure_count(metrics.INTEGRITY_FAILURE) == 0


def test_feature_gauge(fresh_metrics):
    metrics.set_feature_enabled("audit-trail", True)
    metrics.set_feature_enabled("metrics", False)

    assert fresh_metrics.get_sample_value(metrics.FEATURE_ENABLED_METRIC, {"feature": "audit-trail"}) == 1
    assert fresh_metrics.get_sample_value(metrics.FEATURE_ENABLED_METRIC, {"feature": "metrics"}) == 0
