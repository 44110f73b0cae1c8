"""
FeedWarden Database Schema
==========================

SQLite schema for the ingestion and health core:
- feeds: feed registry with the embedded health sub-record
- articles: ingested items and their lifecycle
- logs: persisted log records read back by the health scorer
- system_settings: key/value JSON configuration blobs

Articles reference feeds by ``source_id`` only, without a foreign key;
articles whose source has no active feed are removed by orphan
reconciliation instead of cascading deletes.
"""

import sqlite3
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

EXPECTED_TABLES = {"feeds", "articles", "logs", "system_settings"}


class DatabaseSchema:
    """Database schema manager for the FeedWarden SQLite database."""

    # (table, column, definition) added to databases created by older releases
    MIGRATIONS = [
        ("feeds", "health_last_success", "TIMESTAMP"),
        ("feeds", "health_last_error", "TEXT"),
        ("feeds", "fetch_interval_minutes", "INTEGER"),
        ("feeds", "last_content_hash", "TEXT"),
        ("articles", "summary", "TEXT"),
        ("articles", "updated_at", "TIMESTAMP"),
    ]

    def __init__(self, db_path: str = "data/feedwarden.db"):
        """Initialize database schema manager.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    def create_tables(self) -> None:
        """Create all database tables."""
        with self.get_connection() as conn:
            self._create_feeds_table(conn)
            self._create_articles_table(conn)
            self._create_logs_table(conn)
            self._create_system_settings_table(conn)

            self._run_migrations(conn)
            self._create_indexes(conn)

            conn.commit()
            logger.info("Database schema created successfully")

    def _create_feeds_table(self, conn: sqlite3.Connection) -> None:
        """Create feeds table with health columns."""
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS feeds (
                id TEXT PRIMARY KEY,
                source_id TEXT NOT NULL,
                url TEXT UNIQUE NOT NULL,
                type TEXT NOT NULL DEFAULT 'rss' CHECK (type IN ('rss', 'atom', 'sitemap')),
                active BOOLEAN NOT NULL DEFAULT TRUE,
                health_status TEXT NOT NULL DEFAULT 'healthy'
                    CHECK (health_status IN ('healthy', 'degraded', 'error', 'disabled')),
                health_reliability_score REAL NOT NULL DEFAULT 100
                    CHECK (health_reliability_score BETWEEN 0 AND 100),
                health_consecutive_failures INTEGER NOT NULL DEFAULT 0
                    CHECK (health_consecutive_failures >= 0),
                health_error_count_24h INTEGER NOT NULL DEFAULT 0
                    CHECK (health_error_count_24h >= 0),
                health_last_check TIMESTAMP,
                health_last_success TIMESTAMP,
                health_last_error TEXT,
                fetch_interval_minutes INTEGER,
                last_fetched_at TIMESTAMP,
                last_content_hash TEXT,
                created_at TIMESTAMP NOT NULL,
                updated_at TIMESTAMP NOT NULL
            )
        """
        )

    def _create_articles_table(self, conn: sqlite3.Connection) -> None:
        """Create articles table."""
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS articles (
                id TEXT PRIMARY KEY,
                source_id TEXT,
                url TEXT UNIQUE NOT NULL,
                title TEXT NOT NULL,
                summary TEXT,
                content TEXT,
                image TEXT,
                quality_score INTEGER CHECK (quality_score BETWEEN 0 AND 100),
                fetch_error TEXT,
                lifecycle TEXT NOT NULL DEFAULT 'queued'
                    CHECK (lifecycle IN ('queued', 'processed', 'blocked', 'published', 'error')),
                created_at TIMESTAMP NOT NULL,
                last_fetched_at TIMESTAMP,
                published_at TIMESTAMP,
                updated_at TIMESTAMP
            )
        """
        )

    def _create_logs_table(self, conn: sqlite3.Connection) -> None:
        """Create logs table for persisted log records."""
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS logs (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                level TEXT NOT NULL CHECK (level IN ('debug', 'info', 'warn', 'error')),
                message TEXT NOT NULL,
                context TEXT,  -- JSON object
                timestamp TIMESTAMP NOT NULL
            )
        """
        )

    def _create_system_settings_table(self, conn: sqlite3.Connection) -> None:
        """Create key/value settings table."""
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS system_settings (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,  -- JSON
                updated_at TIMESTAMP NOT NULL
            )
        """
        )

    def _create_indexes(self, conn: sqlite3.Connection) -> None:
        """Create database indexes."""
        indexes = [
            # Feed indexes
            "CREATE INDEX IF NOT EXISTS idx_feeds_source ON feeds(source_id)",
            "CREATE INDEX IF NOT EXISTS idx_feeds_active ON feeds(active)",
            "CREATE INDEX IF NOT EXISTS idx_feeds_status ON feeds(health_status)",
            # Article indexes
            "CREATE INDEX IF NOT EXISTS idx_articles_lifecycle ON articles(lifecycle)",
            "CREATE INDEX IF NOT EXISTS idx_articles_source ON articles(source_id)",
            "CREATE INDEX IF NOT EXISTS idx_articles_published ON articles(published_at)",
            "CREATE INDEX IF NOT EXISTS idx_articles_created ON articles(created_at)",
            # Log indexes
            "CREATE INDEX IF NOT EXISTS idx_logs_timestamp ON logs(timestamp)",
            "CREATE INDEX IF NOT EXISTS idx_logs_level ON logs(level, timestamp)",
        ]

        for index_sql in indexes:
            conn.execute(index_sql)

    def _run_migrations(self, conn: sqlite3.Connection) -> None:
        """Add columns missing from databases created by older releases."""
        for table, column, definition in self.MIGRATIONS:
            cursor = conn.execute(f"PRAGMA table_info({table})")
            columns = [row[1] for row in cursor.fetchall()]

            if column not in columns:
                logger.info(f"Adding {column} column to {table} table")
                conn.execute(f"ALTER TABLE {table} ADD COLUMN {column} {definition}")

    def get_connection(self) -> sqlite3.Connection:
        """Get database connection with foreign keys enabled."""
        conn = sqlite3.connect(self.db_path)
        conn.execute("PRAGMA foreign_keys = ON")
        conn.row_factory = sqlite3.Row
        return conn

    def verify_schema(self) -> bool:
        """Verify database schema is correctly created."""
        try:
            with self.get_connection() as conn:
                cursor = conn.execute(
                    """
                    SELECT name FROM sqlite_master
                    WHERE type='table' AND name NOT LIKE 'sqlite_%'
                    ORDER BY name
                """
                )

                tables = {row[0] for row in cursor.fetchall()}

                if not EXPECTED_TABLES.issubset(tables):
                    logger.error(
                        f"Missing tables. Expected: {EXPECTED_TABLES}, Found: {tables}"
                    )
                    return False

                logger.info("Database schema verification passed")
                return True

        except sqlite3.Error as e:
            logger.error(f"Schema verification failed: {e}")
            return False


def create_tables(db_path: str = "data/feedwarden.db") -> None:
    """Convenience function to create database tables."""
    schema = DatabaseSchema(db_path)
    schema.create_tables()
