"""Tests for logging setup."""

import logging

from recall.core.logging import setup_logging


def test_console_only():
    logger = setup_logging(console_level=logging.INFO)

    assert logger.name == "recall"
    assert len(logger.handlers) == 1
    assert logger.handlers[0].level == logging.INFO


def test_file_handler(tmp_path):
    logger = setup_logging(log_dir=tmp_path / "logs")
    logging.getLogger("recall.client.remote").debug("hello from a module")

    for handler in logger.handlers:
        handler.flush()

    files = list((tmp_path / "logs").glob("recall_*.log"))
    assert len(files) == 1
    assert "hello from a module" in files[0].read_text(encoding="utf-8")

    for handler in logger.handlers:
        handler.close()
    logger.handlers = []


def test_repeated_setup_does_not_duplicate_handlers():
    setup_logging()
    logger = setup_logging()
    assert len(logger.handlers) == 1
