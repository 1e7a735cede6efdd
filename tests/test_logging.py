"""Tests for forgesync.logs."""

import json
import logging
import sys

import pytest

from forgesync.logs import JSONFormatter, configure_logging


@pytest.fixture(autouse=True)
def _restore_logger():
    logger = logging.getLogger("forgesync")
    handlers, level = list(logger.handlers), logger.level
    yield
    logger.handlers = handlers
    logger.setLevel(level)


def _record(msg="hello", **extra) -> logging.LogRecord:
    record = logging.LogRecord("forgesync.test", logging.INFO, __file__, 10, msg, (), None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestConfigureLogging:
    def test_sets_level(self):
        assert configure_logging("debug").level == logging.DEBUG

    def test_warn_alias(self):
        assert configure_logging("warn").level == logging.WARNING

    def test_unknown_level_falls_back_to_info(self):
        assert configure_logging("loud").level == logging.INFO

    def test_repeated_calls_do_not_stack_handlers(self):
        configure_logging()
        logger = configure_logging()
        tagged = [h for h in logger.handlers if getattr(h, "_forgesync_handler", False)]
        assert len(tagged) == 1

    def test_json_format(self):
        logger = configure_logging(fmt="json")
        tagged = [h for h in logger.handlers if getattr(h, "_forgesync_handler", False)]
        assert isinstance(tagged[0].formatter, JSONFormatter)


class TestJSONFormatter:
    def test_basic_fields(self):
        data = json.loads(JSONFormatter().format(_record()))
        assert data["message"] == "hello"
        assert data["level"] == "INFO"
        assert data["logger"] == "forgesync.test"

    def test_repo_and_owner_extras(self):
        data = json.loads(JSONFormatter().format(_record(repo="demo", owner="alice-id")))
        assert data["repo"] == "demo"
        assert data["owner"] == "alice-id"

    def test_exception_included(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = _record()
            record.exc_info = sys.exc_info()
        data = json.loads(JSONFormatter().format(record))
        assert "RuntimeError: boom" in data["exception"]
