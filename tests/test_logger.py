from __future__ import annotations

import logging
from datetime import datetime

import pytest

import config
from precise_vocab.logger import log_file_name, resolve_level, setup_batch_logger, setup_logger


@pytest.fixture
def logs_dir(tmp_path, monkeypatch):
    monkeypatch.setattr(config, "LOGS_DIR", tmp_path / "logs")
    yield config.LOGS_DIR
    logger = logging.getLogger("precise_vocab")
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()


def test_log_file_names():
    stamp = datetime(2026, 1, 31, 14, 30, 22)

    assert log_file_name(timestamp=stamp) == "run_20260131_143022.log"
    assert log_file_name("batch", "kitchen", stamp) == "batch_kitchen_20260131_143022.log"


def test_resolve_level(monkeypatch):
    monkeypatch.setattr(config, "LOG_LEVEL", "warning")
    assert resolve_level() == logging.WARNING
    assert resolve_level(verbose=True) == logging.DEBUG

    monkeypatch.setattr(config, "LOG_LEVEL", "chatty")
    assert resolve_level() == logging.INFO


def test_setup_logger_writes_to_run_file(logs_dir):
    logger = setup_logger(log_file="test.log", level=logging.DEBUG)
    logger.debug("  Batch 1: requesting 10 words")
    for handler in logger.handlers:
        handler.flush()

    content = (logs_dir / "test.log").read_text(encoding="utf-8")
    assert "DEBUG" in content
    assert "Batch 1: requesting 10 words" in content
    assert len(logger.handlers) == 2


def test_batch_logger_uses_label_and_level(logs_dir):
    logger = setup_batch_logger("kitchen", level=logging.WARNING)

    assert logger.level == logging.WARNING
    assert [p.name.startswith("batch_kitchen_") for p in logs_dir.iterdir()] == [True]
