"""Tests for file logging setup."""

from __future__ import annotations

import logging

import pytest

from threads_automator.utils.logging_config import LIBRARY_LOGGERS, LOG_FORMAT, setup_logging


@pytest.fixture
def restore_loggers():
    """Put the library loggers back the way caplog-based tests expect them."""
    names = list(LIBRARY_LOGGERS) + ["httpx", "httpcore"]
    saved = {}
    for name in names:
        logger = logging.getLogger(name)
        saved[name] = (logger.level, logger.propagate, list(logger.handlers))
    try:
        yield
    finally:
        for name, (level, propagate, handlers) in saved.items():
            logger = logging.getLogger(name)
            for handler in list(logger.handlers):
                if handler not in handlers:
                    logger.removeHandler(handler)
                    handler.close()
            logger.setLevel(level)
            logger.propagate = propagate


class TestSetupLogging:
    """setup_logging() wiring."""

    def test_creates_one_file_per_logger(self, tmp_path, restore_loggers):
        log_dir = setup_logging(tmp_path / "logs")

        logging.getLogger("threads_api").info("API CALL #1 | GET me | params: {}")
        logging.getLogger("threads_auth").warning("Token for account 'main' is due for rotation")
        for name in LIBRARY_LOGGERS:
            for handler in logging.getLogger(name).handlers:
                handler.flush()

        api_log = (log_dir / "threads_api.log").read_text(encoding="utf-8")
        auth_log = (log_dir / "threads_auth.log").read_text(encoding="utf-8")
        assert "| INFO | API CALL #1 | GET me" in api_log
        assert "| WARNING | Token for account 'main'" in auth_log
        assert "API CALL" not in auth_log

    def test_library_loggers_do_not_propagate(self, tmp_path, restore_loggers):
        setup_logging(tmp_path, level=logging.DEBUG)

        for name in LIBRARY_LOGGERS:
            logger = logging.getLogger(name)
            assert logger.propagate is False
            assert logger.level == logging.DEBUG
            assert logger.handlers[-1].formatter._fmt == LOG_FORMAT

    def test_http_libraries_quieted(self, tmp_path, restore_loggers):
        setup_logging(tmp_path)

        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("httpcore").level == logging.WARNING

    def test_repeat_calls_do_not_stack_handlers(self, tmp_path, restore_loggers):
        setup_logging(tmp_path / "first")
        setup_logging(tmp_path / "second")

        handlers = [
            h for h in logging.getLogger("threads_api").handlers
            if isinstance(h, logging.FileHandler)
        ]
        assert len(handlers) == 1
        assert handlers[0].baseFilename.endswith("threads_api.log")
        assert "second" in handlers[0].baseFilename
