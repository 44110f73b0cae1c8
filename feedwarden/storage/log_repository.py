"""
Log Repository
==============

Read access to persisted log records. Writes go through
``DatabaseLogHandler`` in ``feedwarden.utils.logging``.
"""

import json
import sqlite3
from datetime import datetime, timedelta
from typing import List, Optional

from ..database.connection import DatabaseConnection
from ..database.models import LogEntry, LogLevel, format_timestamp, parse_timestamp, utc_now
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import DatabaseError, ErrorCode


class LogRepository:
    """Repository for the ``logs`` table."""

    def __init__(self, db_connection: DatabaseConnection):
        self.db = db_connection
        self.logger = get_logger_for_component("log_repository")

    def add_log(self, entry: LogEntry) -> None:
        """Insert a log record directly, bypassing the logging module."""
        self._execute(
            "INSERT INTO logs (level, message, context, timestamp) VALUES (?, ?, ?, ?)",
            (
                entry.level.value,
                entry.message,
                json.dumps(entry.context, ensure_ascii=False, default=str),
                format_timestamp(entry.timestamp),
            ),
        )

    def count_since(self, since: datetime, level: Optional[LogLevel] = None) -> int:
        """Count records newer than ``since``, optionally for one level."""
        query = "SELECT COUNT(*) AS count FROM logs WHERE timestamp > ?"
        params = [format_timestamp(since)]
        if level is not None:
            query += " AND level = ?"
            params.append(level.value)

        try:
            row = self.db.execute_one(query, tuple(params))
        except sqlite3.Error as e:
            raise DatabaseError(
                f"Log query failed: {e}", query=query, error_code=ErrorCode.DATABASE_ERROR
            ) from e
        return row["count"] if row else 0

    def count_errors_in_window(self, minutes: int, now: Optional[datetime] = None) -> int:
        """Error records in the trailing ``minutes`` window."""
        since = (now or utc_now()) - timedelta(minutes=minutes)
        return self.count_since(since, LogLevel.ERROR)

    def get_recent_logs(self, limit: int = 50, level: Optional[LogLevel] = None) -> List[LogEntry]:
        query = "SELECT * FROM logs"
        params: list = []
        if level is not None:
            query += " WHERE level = ?"
            params.append(level.value)
        query += " ORDER BY timestamp DESC, id DESC LIMIT ?"
        params.append(limit)

        try:
            rows = self.db.execute_query(query, tuple(params))
        except sqlite3.Error as e:
            raise DatabaseError(
                f"Log query failed: {e}", query=query, error_code=ErrorCode.DATABASE_ERROR
            ) from e
        return [self._row_to_log(row) for row in rows]

    def _execute(self, query: str, params: tuple) -> int:
        try:
            return self.db.execute_update(query, params)
        except sqlite3.Error as e:
            raise DatabaseError(
                f"Log write failed: {e}", query=query, error_code=ErrorCode.DATABASE_ERROR
            ) from e

    def _row_to_log(self, row) -> LogEntry:
        context = row["context"]
        try:
            context = json.loads(context) if context else {}
        except json.JSONDecodeError:
            context = {"raw": context}
        return LogEntry(
            id=row["id"],
            level=row["level"],
            message=row["message"],
            context=context if isinstance(context, dict) else {"value": context},
            timestamp=parse_timestamp(row["timestamp"]),
        )
