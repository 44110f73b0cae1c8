"""
Article Repository
==================

Repository pattern implementation for article storage, lifecycle writes,
and the listing queries used by operators.
"""

import sqlite3
from datetime import datetime
from typing import List, Optional, Dict, Any, Iterable

from ..database.models import Article, Lifecycle, format_timestamp, parse_timestamp, utc_now
from ..database.connection import DatabaseConnection
from ..config.settings import get_settings
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import DatabaseError, ErrorCode

# Publication date when present, otherwise ingestion date
EFFECTIVE_DATE_SQL = "COALESCE(NULLIF(published_at, ''), created_at)"


class ArticleRepository:
    """Repository for article CRUD operations."""

    _COLUMNS = (
        "id", "source_id", "url", "title", "summary", "content", "image",
        "quality_score", "fetch_error", "lifecycle", "created_at",
        "last_fetched_at", "published_at", "updated_at",
    )

    def __init__(self, db_connection: DatabaseConnection):
        """Initialize article repository.

        Args:
            db_connection: Database connection manager
        """
        self.db = db_connection
        self.logger = get_logger_for_component("article_repository")
        self.settings = get_settings()

    def create_article(self, article: Article) -> str:
        """Create a new article.

        Returns:
            Created article ID

        Raises:
            DatabaseError: If creation fails
        """
        try:
            self.db.execute_update(
                f"INSERT INTO articles ({', '.join(self._COLUMNS)}) VALUES ({', '.join('?' * len(self._COLUMNS))})",
                self._article_params(article),
            )
            self.logger.debug(f"Created article: {article.id}")
            return article.id

        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to create article: {e}",
                error_code=ErrorCode.DATABASE_ERROR
            ) from e

    def insert_new_articles(self, articles: List[Article]) -> int:
        """Insert articles whose IDs are not yet stored.

        Existing rows are left untouched.

        Returns:
            Number of articles inserted

        Raises:
            DatabaseError: If the batch insert fails
        """
        if not articles:
            return 0

        try:
            with self.db.transaction() as conn:
                cursor = conn.executemany(
                    f"INSERT OR IGNORE INTO articles ({', '.join(self._COLUMNS)}) "
                    f"VALUES ({', '.join('?' * len(self._COLUMNS))})",
                    [self._article_params(article) for article in articles],
                )
                created_count = cursor.rowcount

            self.logger.info(f"Inserted {created_count} new articles")
            return created_count

        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to insert articles: {e}",
                error_code=ErrorCode.DATABASE_TRANSACTION
            ) from e

    def get_article(self, article_id: str) -> Optional[Article]:
        """Get article by ID, or None if not found."""
        row = self._fetch_one("SELECT * FROM articles WHERE id = ?", (article_id,))
        return self._row_to_article(row) if row else None

    def get_queued_articles(self, limit: int = 20) -> List[Article]:
        """Oldest queued articles first."""
        rows = self._fetch_all(
            "SELECT * FROM articles WHERE lifecycle = ? ORDER BY created_at ASC LIMIT ?",
            (Lifecycle.QUEUED.value, limit),
        )
        return [self._row_to_article(row) for row in rows]

    def record_fetch_failure(
        self, article_id: str, error: str, fetched_at: Optional[datetime] = None
    ) -> bool:
        """Annotate a failed extraction without touching the lifecycle."""
        fetched = format_timestamp(fetched_at or utc_now())
        return self._execute(
            "UPDATE articles SET fetch_error = ?, last_fetched_at = ?, updated_at = ? WHERE id = ?",
            (error, fetched, fetched, article_id),
        ) > 0

    def commit_extraction(
        self,
        article_id: str,
        content: str,
        image: Optional[str],
        quality_score: int,
        lifecycle: Optional[Lifecycle],
        fetched_at: Optional[datetime] = None,
    ) -> bool:
        """Store extracted content, score and lifecycle in one row update.

        A ``lifecycle`` of None keeps the stored state.
        """
        fetched = format_timestamp(fetched_at or utc_now())
        if lifecycle is None:
            return self._execute(
                """
                UPDATE articles SET content = ?, image = ?, quality_score = ?,
                    fetch_error = NULL, last_fetched_at = ?, updated_at = ?
                WHERE id = ?
            """,
                (content, image, quality_score, fetched, fetched, article_id),
            ) > 0

        return self._execute(
            """
            UPDATE articles SET content = ?, image = ?, quality_score = ?,
                fetch_error = NULL, lifecycle = ?, last_fetched_at = ?, updated_at = ?
            WHERE id = ?
        """,
            (content, image, quality_score, lifecycle.value, fetched, fetched, article_id),
        ) > 0

    def backfill_published(self, now: Optional[datetime] = None) -> int:
        """Publish processed articles that never received a publication date.

        Returns:
            Number of articles moved to published
        """
        stamp = format_timestamp(now or utc_now())
        return self._execute(
            """
            UPDATE articles SET
                lifecycle = ?,
                published_at = COALESCE(NULLIF(published_at, ''), created_at, ?),
                updated_at = ?
            WHERE lifecycle = ? AND (published_at IS NULL OR published_at = '')
        """,
            (Lifecycle.PUBLISHED.value, stamp, stamp, Lifecycle.PROCESSED.value),
        )

    def delete_articles_outside_sources(self, source_ids: Iterable[str]) -> int:
        """Delete articles whose non-null source_id is not in ``source_ids``.

        An empty ``source_ids`` deletes every article that has a source_id.
        Articles without a source_id are never touched.
        """
        source_ids = sorted(set(source_ids))
        if not source_ids:
            return self._execute("DELETE FROM articles WHERE source_id IS NOT NULL")

        placeholders = ", ".join("?" * len(source_ids))
        return self._execute(
            f"DELETE FROM articles WHERE source_id IS NOT NULL AND source_id NOT IN ({placeholders})",
            tuple(source_ids),
        )

    def get_published_window(
        self, since: datetime, limit: int, include_blocked: bool = False
    ) -> List[Article]:
        """Articles whose effective date falls on or after ``since``, newest first."""
        query = f"SELECT * FROM articles WHERE {EFFECTIVE_DATE_SQL} >= ?"
        params: List[Any] = [format_timestamp(since)]
        if not include_blocked:
            query += " AND lifecycle != ?"
            params.append(Lifecycle.BLOCKED.value)
        query += f" ORDER BY {EFFECTIVE_DATE_SQL} DESC LIMIT ?"
        params.append(limit)

        rows = self._fetch_all(query, tuple(params))
        return [self._row_to_article(row) for row in rows]

    def get_recent_articles(self, limit: int = 20) -> List[Article]:
        """Newest articles by ingestion time."""
        rows = self._fetch_all(
            "SELECT * FROM articles ORDER BY created_at DESC LIMIT ?", (limit,)
        )
        return [self._row_to_article(row) for row in rows]

    def get_lifecycle_counts(self) -> Dict[str, int]:
        """Article counts per lifecycle state, zero-filled."""
        rows = self._fetch_all(
            "SELECT lifecycle, COUNT(*) AS count FROM articles GROUP BY lifecycle"
        )
        counts = {state.value: 0 for state in Lifecycle}
        for row in rows:
            counts[row["lifecycle"]] = row["count"]
        return counts

    def get_article_count(self) -> int:
        row = self._fetch_one("SELECT COUNT(*) AS count FROM articles")
        return row["count"] if row else 0

    def _article_params(self, article: Article) -> tuple:
        return (
            article.id,
            article.source_id,
            article.url,
            article.title,
            article.summary,
            article.content,
            article.image,
            article.quality_score,
            article.fetch_error,
            article.lifecycle.value,
            format_timestamp(article.created_at),
            format_timestamp(article.last_fetched_at),
            format_timestamp(article.published_at),
            format_timestamp(article.updated_at),
        )

    def _fetch_one(self, query: str, params: tuple = ()):
        try:
            return self.db.execute_one(query, params)
        except sqlite3.Error as e:
            self.logger.error(f"Article query failed: {e}")
            raise DatabaseError(
                f"Article query failed: {e}", query=query, error_code=ErrorCode.DATABASE_ERROR
            ) from e

    def _fetch_all(self, query: str, params: tuple = ()):
        try:
            return self.db.execute_query(query, params)
        except sqlite3.Error as e:
            self.logger.error(f"Article query failed: {e}")
            raise DatabaseError(
                f"Article query failed: {e}", query=query, error_code=ErrorCode.DATABASE_ERROR
            ) from e

    def _execute(self, query: str, params: tuple = ()) -> int:
        try:
            return self.db.execute_update(query, params)
        except sqlite3.Error as e:
            self.logger.error(f"Article update failed: {e}")
            raise DatabaseError(
                f"Article update failed: {e}", query=query, error_code=ErrorCode.DATABASE_ERROR
            ) from e

    def _row_to_article(self, row) -> Article:
        """Convert database row to Article object."""
        return Article(
            id=row["id"],
            source_id=row["source_id"],
            url=row["url"],
            title=row["title"],
            summary=row["summary"],
            content=row["content"],
            image=row["image"],
            quality_score=row["quality_score"],
            fetch_error=row["fetch_error"],
            lifecycle=row["lifecycle"],
            created_at=parse_timestamp(row["created_at"]),
            last_fetched_at=parse_timestamp(row["last_fetched_at"]),
            published_at=parse_timestamp(row["published_at"]),
            updated_at=parse_timestamp(row["updated_at"]),
        )
