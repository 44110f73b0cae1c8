"""
Admin Service
=============

Operator operations shared by the CLI and any future API surface.

Features:
- Feed registration and sweeping
- Single-article extraction and queue processing
- Published/recent article listings
- Health resets, error window rolls and orphan cleanup
- System health snapshots and the stored system configuration
"""

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Dict, List, Optional

from ..config.settings import get_settings
from ..database.connection import DatabaseConnection
from ..database.models import Article, Feed, FeedType, SystemConfig, SystemHealthSnapshot, utc_now
from ..ingestion.feed_sweeper import FeedSweeper, SweepResult
from ..maintenance.orphan_reconciler import OrphanReconciler, ReconcileResult
from ..monitoring.feed_health import FeedHealthTracker
from ..monitoring.health_scorer import HealthScorer
from ..processing.lifecycle import backfill_published
from ..processing.pipeline import ArticleOutcome, ProcessingPipeline, QueueRunResult
from ..storage.article_repository import ArticleRepository
from ..storage.feed_repository import FeedRepository
from ..storage.settings_repository import SettingsRepository
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import ErrorCode, ResourceNotFoundError, ValidationError
from ..utils.validators import URLValidator, infer_feed_type, infer_source_id


@dataclass
class OperationResult:
    """Outcome of a counting admin operation."""

    ok: bool
    message: str
    count: int = 0
    details: Dict[str, Any] = field(default_factory=dict)


class AdminService:
    """
    Operator-facing operations over the feed registry and article store.
    """

    def __init__(self, db_connection: DatabaseConnection):
        """Initialize the admin service.

        Args:
            db_connection: Database connection manager
        """
        self.db = db_connection
        self.settings = get_settings()
        self.feed_repo = FeedRepository(db_connection)
        self.article_repo = ArticleRepository(db_connection)
        self.settings_repo = SettingsRepository(db_connection)
        self.health_tracker = FeedHealthTracker(db_connection)
        self.pipeline = ProcessingPipeline(db_connection, health_tracker=self.health_tracker)
        self.sweeper = FeedSweeper(db_connection, health_tracker=self.health_tracker)
        self.reconciler = OrphanReconciler(db_connection)
        self.scorer = HealthScorer(db_connection)
        self.logger = get_logger_for_component("admin_service")

    # Feeds

    def register_feed(
        self,
        url: str,
        source_id: Optional[str] = None,
        feed_type: Optional[str] = None,
        active: bool = True,
        fetch_interval_minutes: Optional[int] = None,
    ) -> Feed:
        """Add a feed to the registry.

        Raises:
            ValidationError: If the URL is invalid or already registered
        """
        url = URLValidator.validate_feed_url(url)
        try:
            kind = FeedType(feed_type or infer_feed_type(url))
        except ValueError as e:
            raise ValidationError(
                f"Unknown feed type: {feed_type}",
                error_code=ErrorCode.VALIDATION_INVALID_FORMAT,
                field_name="feed_type",
            ) from e

        feed = Feed(
            source_id=source_id or infer_source_id(url),
            url=url,
            type=kind,
            active=active,
            fetch_interval_minutes=fetch_interval_minutes,
        )
        self.feed_repo.create_feed(feed)
        return feed

    def list_feeds(self) -> List[Feed]:
        return self.feed_repo.get_all_feeds()

    def delete_feed(self, feed_id: str) -> OperationResult:
        """Remove a feed from the registry.

        Its articles stay until the next orphan cleanup.

        Raises:
            ResourceNotFoundError: If the feed does not exist
        """
        feed = self._require_feed(feed_id)
        self.feed_repo.delete_feed(feed.id)
        return OperationResult(
            ok=True,
            message=f"Deleted feed {feed.source_id} ({feed.url})",
            count=1,
            details={"source_id": feed.source_id},
        )

    def _require_feed(self, feed_id: str) -> Feed:
        feed = self.feed_repo.get_feed_by_id(feed_id)
        if feed is None:
            raise ResourceNotFoundError(
                f"Feed {feed_id} not found", resource="feed", resource_id=feed_id
            )
        return feed

    async def sweep_feed(self, feed_id: str, force: bool = False) -> SweepResult:
        """Sweep one feed.

        Raises:
            ResourceNotFoundError: If the feed does not exist
        """
        return await self.sweeper.sweep(self._require_feed(feed_id), force=force)

    async def sweep_all(self, force: bool = False) -> List[SweepResult]:
        return await self.sweeper.sweep_all(force=force)

    # Articles

    async def extract_article(self, article_id: str, force: bool = False) -> ArticleOutcome:
        """Extract and grade one article.

        Raises:
            ResourceNotFoundError: If the article does not exist
        """
        return await self.pipeline.process_article(article_id, force=force)

    async def process_queue(self, limit: Optional[int] = None) -> QueueRunResult:
        return await self.pipeline.process_queue(limit)

    def list_published(self, limit: Optional[int] = None, include_blocked: bool = False) -> List[Article]:
        """Articles from the rolling publication window, newest first.

        ``limit`` is capped at ``query.max_limit``; blocked articles are
        excluded unless requested.
        """
        query = self.settings.query
        limit = max(1, min(limit or query.default_limit, query.max_limit))
        since = utc_now() - timedelta(days=query.published_window_days)
        return self.article_repo.get_published_window(since, limit, include_blocked=include_blocked)

    def list_recent(self, limit: Optional[int] = None) -> List[Article]:
        """Newest articles by ingestion time, capped at ``query.recent_max_limit``."""
        query = self.settings.query
        limit = max(1, min(limit or query.recent_default_limit, query.recent_max_limit))
        return self.article_repo.get_recent_articles(limit)

    def backfill_published(self) -> OperationResult:
        fixed = backfill_published(self.article_repo)
        return OperationResult(
            ok=True, message=f"Published {fixed} processed articles", count=fixed
        )

    # Maintenance

    def reset_feed_health(self) -> OperationResult:
        repaired = self.health_tracker.reset_all()
        return OperationResult(
            ok=True, message=f"Reset {repaired} disabled/error feeds", count=repaired
        )

    def roll_error_window(self) -> OperationResult:
        cleared = self.health_tracker.roll_error_window()
        return OperationResult(
            ok=True, message=f"Cleared error counters on {cleared} feeds", count=cleared
        )

    def cleanup_orphans(self, allow_empty_active_set: Optional[bool] = None) -> OperationResult:
        """Delete articles whose source has no active feed.

        Raises:
            ReconciliationError: If the active feeds cannot be loaded
        """
        result: ReconcileResult = self.reconciler.reconcile(allow_empty_active_set)
        if result.aborted:
            return OperationResult(ok=False, message=f"Cleanup aborted: {result.reason}")
        return OperationResult(
            ok=True,
            message=f"Deleted {result.deleted_count} orphaned articles",
            count=result.deleted_count,
            details={"active_source_ids": result.active_source_ids},
        )

    async def health_snapshot(self) -> SystemHealthSnapshot:
        return await self.scorer.score()

    # System configuration

    def get_config(self) -> SystemConfig:
        return self.settings_repo.get_config()

    def set_config(self, **updates: Any) -> SystemConfig:
        """Merge ``updates`` into the stored system configuration.

        Raises:
            ValidationError: If the merged configuration is invalid
        """
        return self.settings_repo.update_config(updates)
