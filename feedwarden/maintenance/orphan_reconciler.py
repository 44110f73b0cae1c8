"""
Orphan Reconciliation
=====================

Removes articles whose source no longer has an active feed. Articles
without a ``source_id`` are never touched.

The active source set must be read successfully before anything is
deleted: a failed read aborts the run, and an empty set only deletes when
explicitly allowed, since it would otherwise wipe every sourced article.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from ..config.settings import get_settings
from ..database.connection import DatabaseConnection
from ..storage.article_repository import ArticleRepository
from ..storage.feed_repository import FeedRepository
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import DatabaseError, ReconciliationError


@dataclass
class ReconcileResult:
    """Outcome of one reconciliation run."""

    deleted_count: int = 0
    active_source_ids: List[str] = field(default_factory=list)
    aborted: bool = False
    reason: Optional[str] = None


class OrphanReconciler:
    """Deletes articles from sources without an active feed."""

    def __init__(self, db_connection: DatabaseConnection):
        self.feed_repo = FeedRepository(db_connection)
        self.article_repo = ArticleRepository(db_connection)
        self.settings = get_settings()
        self.logger = get_logger_for_component("orphan_reconciler")

    def reconcile(self, allow_empty_active_set: Optional[bool] = None) -> ReconcileResult:
        """Delete orphaned articles.

        Args:
            allow_empty_active_set: Permit deleting every sourced article when
                no feed is active. Defaults to
                ``maintenance.allow_empty_active_set``.

        Raises:
            ReconciliationError: If the active feeds cannot be loaded
        """
        if allow_empty_active_set is None:
            allow_empty_active_set = self.settings.maintenance.allow_empty_active_set

        try:
            active_ids = self.feed_repo.get_active_source_ids()
        except DatabaseError as e:
            self.logger.error(f"Orphan cleanup aborted, active feeds unavailable: {e}")
            raise ReconciliationError(
                f"Could not load active feeds: {e}", context={"cause": e.to_dict()}
            ) from e

        if not active_ids and not allow_empty_active_set:
            reason = "no active feeds; refusing to delete every sourced article"
            self.logger.warning(f"Orphan cleanup aborted: {reason}")
            return ReconcileResult(aborted=True, reason=reason)

        deleted = self.article_repo.delete_articles_outside_sources(active_ids)
        self.logger.warning(
            f"Orphan cleanup removed {deleted} articles outside {len(active_ids)} active sources",
            extra={"deleted": deleted, "active_sources": sorted(active_ids)},
        )
        return ReconcileResult(deleted_count=deleted, active_source_ids=sorted(active_ids))
