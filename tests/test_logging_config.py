"""Tests for backend/logging_config.py — handler levels and idempotent setup."""

from __future__ import annotations

import logging
import os
import sys
from logging.handlers import RotatingFileHandler

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "backend"))
from logging_config import LOG_FILE_NAME, setup_logging


def _cleanup(logger):
    for h in list(logger.handlers):
        h.close()
        logger.removeHandler(h)


def test_console_and_file_follow_level(tmp_path):
    logger = setup_logging("test.weatherproxy.debug", level="DEBUG", log_dir=str(tmp_path))
    try:
        assert logger.level == logging.DEBUG
        assert [h.level for h in logger.handlers] == [logging.DEBUG, logging.DEBUG]
        assert any(isinstance(h, RotatingFileHandler) for h in logger.handlers)
        logger.debug("hello")
        for h in logger.handlers:
            h.flush()
        assert "hello" in (tmp_path / LOG_FILE_NAME).read_text(encoding="utf-8")
    finally:
        _cleanup(logger)


def test_setup_is_idempotent(tmp_path):
    first = setup_logging("test.weatherproxy.once", log_dir=str(tmp_path))
    try:
        second = setup_logging("test.weatherproxy.once", level="DEBUG", log_dir=str(tmp_path))
        assert second is first
        assert len(second.handlers) == 2
        assert second.level == logging.INFO
    finally:
        _cleanup(first)


def test_unknown_level_falls_back_to_info(tmp_path):
    logger = setup_logging("test.weatherproxy.bogus", level="chatty", log_dir=str(tmp_path))
    try:
        assert logger.level == logging.INFO
    finally:
        _cleanup(logger)
