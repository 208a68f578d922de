import logging
import threading
import uuid
from logging.handlers import RotatingFileHandler

from Encryption.encryption_config import ENCRYPTION_SETTINGS, feature_enabled, get_bool, get_int, get_list
from Encryption.encryption_logging import audit, get_logger


def test_logger_writes_to_rotating_file(tmp_path, monkeypatch):
    log_file = tmp_path / "logs" / "encryption.log"
    monkeypatch.setitem(ENCRYPTION_SETTINGS, "LOG_FILE", str(log_file))

    logger = get_logger("encryption.test-" + uuid.uuid4().hex)
    try:
        handlers = [h for h in logger.handlers if isinstance(h, RotatingFileHandler)]
        assert len(handlers) == 1
        assert get_logger(logger.name) is logger
        assert len(logger.handlers) == 1

        logger.info("event=entity-encrypt kid=local:key1")
        handlers[0].flush()
        assert "INFO event=entity-encrypt kid=local:key1" in log_file.read_text(encoding="utf-8")
    finally:
        for handler in list(logger.handlers):
            handler.close()
            logger.removeHandler(handler)


def test_audit_can_be_disabled(caplog, monkeypatch):
    monkeypatch.setitem(ENCRYPTION_SETTINGS, "DISABLED_FEATURES", ["audit-trail"])
    caplog.set_level(logging.INFO, logger="encryption.audit")

    audit("entity-encrypt", "pk", "rk", "kid", "foo")

    assert not [r for r in caplog.records if r.name == "encryption.audit"]


def test_audit_line_format(caplog):
    caplog.set_level(logging.INFO, logger="encryption.audit")

    audit("entity-decrypt", "pk", "rk", None, "foo")

    assert "event=entity-decrypt partition_key=pk row_key=rk kid= details=foo" in caplog.messages


def test_config_helpers(monkeypatch):
    monkeypatch.setenv("TEST_FLAG", "TRUE")
    monkeypatch.setenv("TEST_NUMBER", "not-a-number")
    monkeypatch.setenv("TEST_LIST", "a, b,,c")

    assert get_bool("TEST_FLAG") is True
    assert get_bool("TEST_MISSING_FLAG", True) is True
    assert get_int("TEST_NUMBER", 7) == 7
    assert get_list("TEST_LIST", []) == ["a", "b", "c"]
    assert get_list("TEST_MISSING_LIST", ["x"]) == ["x"]


def test_feature_flags(monkeypatch):
    monkeypatch.setitem(ENCRYPTION_SETTINGS, "DISABLED_FEATURES", ["metrics"])
    assert not feature_enabled("metrics")
    assert feature_enabled("audit-trail")


def test_concurrent_first_use_attaches_one_handler(tmp_path, monkeypatch):
    monkeypatch.setitem(ENCRYPTION_SETTINGS, "LOG_FILE", str(tmp_path / "encryption.log"))
    name = "encryption.test-" + uuid.uuid4().hex
    barrier = threading.Barrier(8)

    def first_use():
        barrier.wait()
        get_logger(name)

    threads = [threading.Thread(target=first_use) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    logger = logging.getLogger(name)
    try:
        assert len(logger.handlers) == 1
    finally:
        for handler in list(logger.handlers):
            handler.close()
            logger.removeHandler(handler)
