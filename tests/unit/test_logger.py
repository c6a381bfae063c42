"""
Unit tests for the logging helpers.
"""
import asyncio
import logging

import pytest
from structlog.testing import capture_logs

from gator.config import LoggingConfig
from gator.utils.logger import ContextLogger, LoggerMixin, setup_logger


class Worker(LoggerMixin):
    pass


def test_log_error_flattens_exception():
    with capture_logs() as logs:
        Worker().log_error("Error fetching feed", error=ValueError("bad"), feed_url="u")

    assert logs == [
        {
            "event": "Error fetching feed",
            "log_level": "error",
            "error": "bad",
            "error_type": "ValueError",
            "feed_url": "u",
        }
    ]


def test_context_logger_failure_is_logged_and_reraised():
    with capture_logs() as logs:
        with pytest.raises(RuntimeError):
            with ContextLogger("scrape_feed", feed_url="u"):
                raise RuntimeError("boom")

    failure = logs[-1]
    assert failure["event"] == "scrape_feed failed"
    assert failure["log_level"] == "error"
    assert failure["feed_url"] == "u"
    assert "elapsed_ms" in failure


def test_context_logger_cancellation_is_not_an_error():
    with capture_logs() as logs:
        with pytest.raises(asyncio.CancelledError):
            with ContextLogger("scrape_feed"):
                raise asyncio.CancelledError()

    assert [entry["log_level"] for entry in logs] == ["debug", "debug"]


def test_setup_logger_with_file(tmp_path):
    log_file = tmp_path / "logs" / "gator.log"

    setup_logger(LoggingConfig(level="DEBUG", file_path=str(log_file)))
    logging.getLogger("gator.test").warning("written to file")
    for handler in logging.getLogger().handlers:
        handler.flush()

    assert "written to file" in log_file.read_text()
    assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING
