import logging
import os
import time

from joke_factory.utils.logging_config import build_logging_config, setup_logging


def _settings(directory, backup_count=2):
    return {
        "directory": str(directory),
        "level": "INFO",
        "engine_level": "DEBUG",
        "max_bytes": 1024,
        "backup_count": backup_count,
    }


def _close_handlers():
    for name in ("", "audit", "joke_factory", "uvicorn", "uvicorn.error"):
        logger = logging.getLogger(name)
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()


def test_config_routes_audit_to_its_own_file(tmp_path):
    config = build_logging_config(_settings(tmp_path))

    assert config["handlers"]["file_audit"]["filename"] == str(tmp_path / "audit.log")
    assert config["handlers"]["file_error"]["level"] == "ERROR"
    assert config["loggers"]["audit"]["handlers"] == ["console", "file_audit"]
    assert config["loggers"]["joke_factory"]["level"] == "DEBUG"
    assert config["loggers"]["joke_factory"]["propagate"] is False


def test_setup_logging_writes_engine_and_audit_files(tmp_path):
    log_dir = setup_logging(_settings(tmp_path / "logs"))
    try:
        logging.getLogger("joke_factory.market").info("Customer 3 bought joke 100")
        logging.getLogger("audit").info("Audit action: reset")
        for handler in logging.getLogger("audit").handlers + logging.getLogger("joke_factory").handlers:
            handler.flush()

        assert "Customer 3 bought joke 100" in (log_dir / "app.log").read_text(encoding="utf8")
        audit = (log_dir / "audit.log").read_text(encoding="utf8")
        assert "Audit action: reset" in audit
        assert "Customer 3" not in audit
    finally:
        _close_handlers()


def test_stale_backups_are_pruned(tmp_path):
    log_dir = tmp_path / "logs"
    log_dir.mkdir()
    now = time.time()
    for index in range(1, 5):
        backup = log_dir / f"app.log.{index}"
        backup.write_text("old", encoding="utf8")
        os.utime(backup, (now - index * 60, now - index * 60))

    setup_logging(_settings(log_dir, backup_count=2))
    try:
        remaining = sorted(path.name for path in log_dir.glob("app.log.*"))
        assert remaining == ["app.log.1", "app.log.2"]
    finally:
        _close_handlers()
