"""
Feed Repository
===============

Repository pattern implementation for the feed registry, including the
embedded health columns.
"""

import sqlite3
from typing import List, Optional, Dict, Any, Set

from ..database.connection import DatabaseConnection
from ..database.models import (
    Feed,
    FeedHealth,
    FeedStatus,
    format_timestamp,
    parse_timestamp,
    utc_now,
)
from ..config.settings import get_settings
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import DatabaseError, ValidationError, ErrorCode


class FeedRepository:
    """Repository for managing feed data in the database."""

    # Columns callers may change through update_feed
    UPDATABLE_FIELDS = {
        "source_id",
        "url",
        "type",
        "active",
        "fetch_interval_minutes",
        "last_fetched_at",
        "last_content_hash",
    }

    def __init__(self, db_connection: DatabaseConnection):
        """Initialize feed repository.

        Args:
            db_connection: Database connection manager
        """
        self.db = db_connection
        self.logger = get_logger_for_component("feed_repository")
        self.settings = get_settings()

    def create_feed(self, feed: Feed) -> str:
        """Insert a new feed.

        Returns:
            Feed ID

        Raises:
            ValidationError: If a feed with the same URL already exists
            DatabaseError: If database operation fails
        """
        try:
            with self.db.get_connection() as conn:
                conn.execute(
                    """
                    INSERT INTO feeds (
                        id, source_id, url, type, active,
                        health_status, health_reliability_score,
                        health_consecutive_failures, health_error_count_24h,
                        health_last_check, health_last_success, health_last_error,
                        fetch_interval_minutes, last_fetched_at, last_content_hash,
                        created_at, updated_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                    (
                        feed.id,
                        feed.source_id,
                        feed.url,
                        feed.type.value,
                        feed.active,
                        feed.health.status.value,
                        feed.health.reliability_score,
                        feed.health.consecutive_failures,
                        feed.health.error_count_24h,
                        format_timestamp(feed.health.last_check),
                        format_timestamp(feed.health.last_success),
                        feed.health.last_error,
                        feed.fetch_interval_minutes,
                        format_timestamp(feed.last_fetched_at),
                        feed.last_content_hash,
                        format_timestamp(feed.created_at),
                        format_timestamp(feed.updated_at),
                    ),
                )
                conn.commit()

            self.logger.info(f"Created feed {feed.id} ({feed.source_id}): {feed.url}")
            return feed.id

        except sqlite3.IntegrityError as e:
            raise ValidationError(
                f"Feed already registered: {feed.url}",
                error_code=ErrorCode.VALIDATION_DUPLICATE,
                field_name="url",
                context={"detail": str(e)},
            )
        except sqlite3.Error as e:
            self.logger.error(f"Failed to create feed: {e}")
            raise DatabaseError(
                f"Failed to create feed: {e}", error_code=ErrorCode.DATABASE_ERROR
            )

    def get_feed_by_id(self, feed_id: str) -> Optional[Feed]:
        """Get feed by ID, or None when it does not exist."""
        row = self._fetch_one("SELECT * FROM feeds WHERE id = ?", (feed_id,))
        return self._row_to_feed(row) if row else None

    def get_feed_by_url(self, url: str) -> Optional[Feed]:
        """Get feed by URL, or None when it does not exist."""
        row = self._fetch_one("SELECT * FROM feeds WHERE url = ?", (url,))
        return self._row_to_feed(row) if row else None

    def get_feeds_by_source(self, source_id: str) -> List[Feed]:
        """Feeds sharing a source_id, active ones first."""
        rows = self._fetch_all(
            "SELECT * FROM feeds WHERE source_id = ? ORDER BY active DESC, created_at ASC",
            (source_id,),
        )
        return [self._row_to_feed(row) for row in rows]

    def get_all_feeds(self) -> List[Feed]:
        rows = self._fetch_all("SELECT * FROM feeds ORDER BY created_at ASC")
        return [self._row_to_feed(row) for row in rows]

    def get_active_feeds(self) -> List[Feed]:
        """Get all feeds eligible for ingestion.

        Raises:
            DatabaseError: If the feeds cannot be read. Callers rely on a
                failed read never looking like an empty registry.
        """
        rows = self._fetch_all(
            "SELECT * FROM feeds WHERE active = 1 AND health_status != ? ORDER BY created_at ASC",
            (FeedStatus.DISABLED.value,),
        )
        return [self._row_to_feed(row) for row in rows]

    def get_active_source_ids(self) -> Set[str]:
        """Distinct source IDs of active feeds.

        Raises:
            DatabaseError: If the feeds cannot be read
        """
        rows = self._fetch_all(
            "SELECT DISTINCT source_id FROM feeds WHERE active = 1 AND source_id IS NOT NULL AND source_id != ''"
        )
        return {row["source_id"] for row in rows}

    def update_feed(self, feed_id: str, **kwargs) -> bool:
        """Update whitelisted feed columns.

        Returns:
            True if a row was updated
        """
        updates = {k: v for k, v in kwargs.items() if k in self.UPDATABLE_FIELDS}
        if not updates:
            return False

        values = []
        for key, value in updates.items():
            if hasattr(value, "value"):
                value = value.value
            elif key == "last_fetched_at":
                value = format_timestamp(value)
            values.append(value)

        set_clause = ", ".join(f"{key} = ?" for key in updates)
        query = f"UPDATE feeds SET {set_clause}, updated_at = ? WHERE id = ?"
        return self._execute(query, (*values, format_timestamp(utc_now()), feed_id)) > 0

    def save_health(self, feed_id: str, health: FeedHealth, active: bool) -> bool:
        """Persist a feed's health record and active flag in one row update."""
        return self._execute(
            """
            UPDATE feeds SET
                health_status = ?,
                health_reliability_score = ?,
                health_consecutive_failures = ?,
                health_error_count_24h = ?,
                health_last_check = ?,
                health_last_success = ?,
                health_last_error = ?,
                active = ?,
                updated_at = ?
            WHERE id = ?
        """,
            (
                health.status.value,
                health.reliability_score,
                health.consecutive_failures,
                health.error_count_24h,
                format_timestamp(health.last_check),
                format_timestamp(health.last_success),
                health.last_error,
                active,
                format_timestamp(utc_now()),
                feed_id,
            ),
        ) > 0

    def record_fetch(self, feed_id: str, content_hash: Optional[str] = None) -> bool:
        """Stamp a completed sweep fetch and optionally the body hash."""
        now = format_timestamp(utc_now())
        if content_hash is None:
            return self._execute(
                "UPDATE feeds SET last_fetched_at = ?, updated_at = ? WHERE id = ?",
                (now, now, feed_id),
            ) > 0
        return self._execute(
            "UPDATE feeds SET last_fetched_at = ?, last_content_hash = ?, updated_at = ? WHERE id = ?",
            (now, content_hash, now, feed_id),
        ) > 0

    def reset_health(self) -> int:
        """Return disabled/errored feeds to service and clear failure streaks.

        Returns:
            Number of disabled or errored feeds that were reset
        """
        now = format_timestamp(utc_now())
        try:
            with self.db.transaction() as conn:
                cursor = conn.execute(
                    """
                    UPDATE feeds SET
                        health_status = ?,
                        health_consecutive_failures = 0,
                        health_error_count_24h = 0,
                        active = 1,
                        updated_at = ?
                    WHERE health_status IN (?, ?)
                """,
                    (
                        FeedStatus.HEALTHY.value,
                        now,
                        FeedStatus.DISABLED.value,
                        FeedStatus.ERROR.value,
                    ),
                )
                repaired = cursor.rowcount
                conn.execute(
                    "UPDATE feeds SET health_consecutive_failures = 0, updated_at = ? WHERE active = 1",
                    (now,),
                )
            return repaired
        except sqlite3.Error as e:
            self.logger.error(f"Failed to reset feed health: {e}")
            raise DatabaseError(
                f"Failed to reset feed health: {e}", error_code=ErrorCode.DATABASE_ERROR
            )

    def reset_error_window(self) -> int:
        """Zero the rolling 24h error counters of every feed."""
        return self._execute(
            "UPDATE feeds SET health_error_count_24h = 0, updated_at = ? WHERE health_error_count_24h > 0",
            (format_timestamp(utc_now()),),
        )

    def deactivate_feed(self, feed_id: str) -> bool:
        return self.update_feed(feed_id, active=False)

    def delete_feed(self, feed_id: str) -> bool:
        """Delete a feed row. Its articles are left for orphan reconciliation."""
        deleted = self._execute("DELETE FROM feeds WHERE id = ?", (feed_id,)) > 0
        if deleted:
            self.logger.info(f"Deleted feed {feed_id}")
        return deleted

    def get_feed_statistics(self) -> Dict[str, Any]:
        """Registry-wide counts and mean reliability.

        Mean reliability of an empty registry is 100.
        """
        row = self._fetch_one(
            """
            SELECT
                COUNT(*) AS total,
                COUNT(CASE WHEN active = 1 THEN 1 END) AS active,
                COUNT(CASE WHEN active = 0 THEN 1 END) AS inactive,
                COUNT(CASE WHEN health_status = ? THEN 1 END) AS disabled,
                COALESCE(AVG(COALESCE(health_reliability_score, 100)), 100) AS mean_reliability
            FROM feeds
        """,
            (FeedStatus.DISABLED.value,),
        )
        return dict(row) if row else {
            "total": 0, "active": 0, "inactive": 0, "disabled": 0, "mean_reliability": 100.0
        }

    def _fetch_one(self, query: str, params: tuple = ()):
        try:
            return self.db.execute_one(query, params)
        except sqlite3.Error as e:
            self.logger.error(f"Feed query failed: {e}")
            raise DatabaseError(
                f"Feed query failed: {e}", query=query, error_code=ErrorCode.DATABASE_ERROR
            )

    def _fetch_all(self, query: str, params: tuple = ()):
        try:
            return self.db.execute_query(query, params)
        except sqlite3.Error as e:
            self.logger.error(f"Feed query failed: {e}")
            raise DatabaseError(
                f"Feed query failed: {e}", query=query, error_code=ErrorCode.DATABASE_ERROR
            )

    def _execute(self, query: str, params: tuple = ()) -> int:
        try:
            return self.db.execute_update(query, params)
        except sqlite3.Error as e:
            self.logger.error(f"Feed update failed: {e}")
            raise DatabaseError(
                f"Feed update failed: {e}", query=query, error_code=ErrorCode.DATABASE_ERROR
            )

    def _row_to_feed(self, row) -> Feed:
        """Convert database row to Feed object."""
        return Feed(
            id=row["id"],
            source_id=row["source_id"],
            url=row["url"],
            type=row["type"],
            active=bool(row["active"]),
            health=FeedHealth(
                status=row["health_status"],
                reliability_score=row["health_reliability_score"],
                consecutive_failures=row["health_consecutive_failures"],
                error_count_24h=row["health_error_count_24h"],
                last_check=parse_timestamp(row["health_last_check"]),
                last_success=parse_timestamp(row["health_last_success"]),
                last_error=row["health_last_error"],
            ),
            fetch_interval_minutes=row["fetch_interval_minutes"],
            last_fetched_at=parse_timestamp(row["last_fetched_at"]),
            last_content_hash=row["last_content_hash"],
            created_at=parse_timestamp(row["created_at"]),
            updated_at=parse_timestamp(row["updated_at"]),
        )
