# File: tests/test_logger.py
from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler

import pytest

from site_mapper.logger import LOGGER_NAME, init_logging


@pytest.fixture(autouse=True)
def restore_logging():
    yield
    init_logging("WARNING")


def test_reinit_replaces_handlers(tmp_path):
    first = init_logging("INFO", log_file=tmp_path / "a.log")
    old_handlers = list(first.handlers)
    lg = init_logging("DEBUG")

    assert lg is logging.getLogger(LOGGER_NAME)
    assert lg.level == logging.DEBUG
    assert len(lg.handlers) == 1
    assert not any(h in lg.handlers for h in old_handlers)
    assert lg.propagate is False


def test_file_handler_uses_format(tmp_path):
    log_file = tmp_path / "site-mapper.log"
    lg = init_logging("INFO", log_file=log_file, log_format="%(levelname)s:%(message)s")
    assert any(isinstance(h, RotatingFileHandler) for h in lg.handlers)

    lg.info("Crawl started: %s", "https://example.com")
    for handler in lg.handlers:
        handler.flush()
    assert "INFO:Crawl started: https://example.com" in log_file.read_text(encoding="utf-8")
