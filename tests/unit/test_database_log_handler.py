"""
Tests for persisted logging
===========================
"""

import json
import logging

import pytest

from feedwarden.database.models import LogLevel
from feedwarden.storage.log_repository import LogRepository
from feedwarden.utils.logging import DatabaseLogHandler, get_logger_for_component


@pytest.fixture
def db_logger(db_connection):
    logger = logging.getLogger("feedwarden.test_persistence")
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    handler = DatabaseLogHandler(db_connection, level=logging.INFO)
    logger.addHandler(handler)
    yield logger
    logger.removeHandler(handler)


def test_records_are_persisted_with_mapped_level(db_logger, db_connection):
    db_logger.warning("Feed degraded", extra={"feed_id": "f1", "consecutive_failures": 2})
    db_logger.debug("below handler level")

    logs = LogRepository(db_connection).get_recent_logs()

    assert len(logs) == 1
    assert logs[0].level == LogLevel.WARN
    assert logs[0].message == "Feed degraded"
    assert logs[0].context == {"feed_id": "f1", "consecutive_failures": 2}


def test_errors_count_towards_error_window(db_logger, db_connection):
    db_logger.error("fetch failed")
    db_logger.critical("database unavailable")

    assert LogRepository(db_connection).count_errors_in_window(60) == 2


def test_exception_text_is_kept(db_logger, db_connection):
    try:
        raise ValueError("bad feed body")
    except ValueError:
        db_logger.exception("parse failed")

    entry = LogRepository(db_connection).get_recent_logs()[0]
    assert entry.level == LogLevel.ERROR
    assert "ValueError: bad feed body" in entry.context["exception"]


def test_component_adapter_context(db_connection):
    adapter = get_logger_for_component("feed_health", feed_id="f9")
    handler = DatabaseLogHandler(db_connection)
    previous_level = adapter.logger.level
    adapter.logger.setLevel(logging.INFO)
    adapter.logger.addHandler(handler)
    try:
        adapter.info("Feed recovered")
    finally:
        adapter.logger.removeHandler(handler)
        adapter.logger.setLevel(previous_level)

    raw = db_connection.execute_query("SELECT context FROM logs")
    context = json.loads(raw[0]["context"])
    assert context == {"component": "feed_health", "feed_id": "f9"}
