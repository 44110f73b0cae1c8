"""
Processing Pipeline Orchestrator
================================

Runs queued articles through Extract -> Grade -> Commit and reports the
fetch outcome to the owning feed's health record.

Each article is handled independently: a failure is written to that
article's ``fetch_error`` and reported in its outcome, and the rest of
the batch carries on.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

from ..database.connection import DatabaseConnection
from ..database.models import Article, FetchOutcome, Lifecycle
from ..config.settings import get_settings
from ..ingestion.content_extractor import ContentExtractor, ExtractionResult
from ..monitoring.feed_health import FeedHealthTracker
from ..storage.article_repository import ArticleRepository
from ..storage.feed_repository import FeedRepository
from ..utils.logging import get_logger_for_component, PerformanceLogger
from ..utils.exceptions import DatabaseError, ResourceNotFoundError, handle_exception

from .lifecycle import assert_transition, decide
from .quality_gate import QualityGate, QualityGrade


@dataclass
class ArticleOutcome:
    """Per-article result of a pipeline run."""

    article_id: str
    status: str  # processed | blocked | updated | skipped | failed
    lifecycle: Optional[str] = None
    quality_score: Optional[int] = None
    error: Optional[str] = None
    reasons: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status != "failed"


@dataclass
class QueueRunResult:
    """Summary of one queue processing run."""

    requested: int
    outcomes: List[ArticleOutcome] = field(default_factory=list)
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    duration_seconds: float = 0.0

    def count(self, status: str) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status == status)

    @property
    def processed(self) -> int:
        return self.count("processed")

    @property
    def blocked(self) -> int:
        return self.count("blocked")

    @property
    def failed(self) -> int:
        return self.count("failed")

    @property
    def skipped(self) -> int:
        return self.count("skipped")


class ProcessingPipeline:
    """Extract, grade and commit articles."""

    def __init__(
        self,
        db_connection: DatabaseConnection,
        extractor: Optional[ContentExtractor] = None,
        quality_gate: Optional[QualityGate] = None,
        health_tracker: Optional[FeedHealthTracker] = None,
    ):
        """Initialize processing pipeline.

        Args:
            db_connection: Database connection manager
            extractor: Content extractor (default built from config)
            quality_gate: Quality gate (default built from config)
            health_tracker: Feed health tracker (default built from config)
        """
        self.db = db_connection
        self.settings = get_settings()
        self.logger = get_logger_for_component("pipeline")

        self.article_repo = ArticleRepository(db_connection)
        self.feed_repo = FeedRepository(db_connection)
        self.extractor = extractor or ContentExtractor()
        self.quality_gate = quality_gate or QualityGate(self.settings.quality)
        self.health_tracker = health_tracker or FeedHealthTracker(db_connection)

    async def process_article(self, article_id: str, force: bool = False) -> ArticleOutcome:
        """Extract, grade and commit one article.

        Raises:
            ResourceNotFoundError: If the article does not exist
        """
        article = self.article_repo.get_article(article_id)
        if article is None:
            raise ResourceNotFoundError(
                f"Article {article_id} not found", resource="article", resource_id=article_id
            )
        return await self._process(article, force=force)

    async def process_queue(self, limit: Optional[int] = None) -> QueueRunResult:
        """Process up to ``limit`` queued articles concurrently.

        Concurrency is bounded by ``extraction.max_concurrent``.
        """
        limit = limit or self.settings.extraction.max_concurrent * 4
        articles = self.article_repo.get_queued_articles(limit)
        result = QueueRunResult(requested=len(articles))
        if not articles:
            self.logger.info("No queued articles to process")
            return result

        with PerformanceLogger(self.logger, "queue processing", articles=len(articles)) as perf:
            semaphore = asyncio.Semaphore(self.settings.extraction.max_concurrent)

            async with self.extractor.get_session() as session:

                async def run(article: Article) -> ArticleOutcome:
                    async with semaphore:
                        return await self._process(article, force=False, session=session)

                result.outcomes = list(await asyncio.gather(*(run(a) for a in articles)))

        result.duration_seconds = (perf.duration_ms or 0) / 1000
        self.logger.info(
            f"Queue run complete: {result.processed} processed, {result.blocked} blocked, "
            f"{result.failed} failed, {result.skipped} skipped",
            extra={"requested": result.requested},
        )
        return result

    async def _process(self, article: Article, force: bool, session=None) -> ArticleOutcome:
        """Run one article through the pipeline; never raises."""
        try:
            extraction = await self.extractor.extract(article, force=force, session=session)
            self._record_feed_outcome(article, extraction)

            if extraction.skipped:
                return ArticleOutcome(
                    article_id=article.id,
                    status="skipped",
                    lifecycle=article.lifecycle.value,
                    quality_score=article.quality_score,
                )

            if not extraction.success:
                self.article_repo.record_fetch_failure(
                    article.id, extraction.error, extraction.fetched_at
                )
                return ArticleOutcome(
                    article_id=article.id,
                    status="failed",
                    lifecycle=article.lifecycle.value,
                    error=extraction.error,
                )

            grade = self.quality_gate.grade(article.title, extraction.document.content)
            return self._commit(article, extraction, grade)

        except Exception as e:
            error = handle_exception(
                e, self.logger, "article processing", context={"article_id": article.id}
            )
            message = f"Unexpected error: {error.user_message}"
            self._annotate_failure(article.id, message)
            return ArticleOutcome(
                article_id=article.id,
                status="failed",
                lifecycle=article.lifecycle.value,
                error=message,
            )

    def _annotate_failure(self, article_id: str, message: str) -> None:
        """Best-effort ``fetch_error`` write for a failure already being reported."""
        try:
            self.article_repo.record_fetch_failure(article_id, message)
        except DatabaseError as e:
            self.logger.error(
                f"Could not annotate failure on article {article_id}: {e}",
                extra={"article_id": article_id},
            )

    def _commit(
        self, article: Article, extraction: ExtractionResult, grade: QualityGrade
    ) -> ArticleOutcome:
        target = decide(article.lifecycle, grade)
        if target is not None:
            assert_transition(article.lifecycle, target)
        self.article_repo.commit_extraction(
            article.id,
            content=extraction.document.content,
            image=extraction.document.image,
            quality_score=grade.quality_score,
            lifecycle=target,
            fetched_at=extraction.fetched_at,
        )

        stored: Lifecycle = target or article.lifecycle
        if target is None:
            status = "updated"
        else:
            status = target.value

        self.logger.info(
            f"Article {article.id} {status} (score {grade.quality_score})",
            extra={"article_id": article.id, "reasons": grade.reasons},
        )
        return ArticleOutcome(
            article_id=article.id,
            status=status,
            lifecycle=stored.value,
            quality_score=grade.quality_score,
            reasons=grade.reasons,
        )

    def _record_feed_outcome(self, article: Article, extraction: ExtractionResult) -> None:
        """Count the fetch against the feed that owns the article's source."""
        if not extraction.fetch_attempted or not article.source_id:
            return

        feeds = self.feed_repo.get_feeds_by_source(article.source_id)
        if not feeds:
            self.logger.debug(f"No feed owns source {article.source_id}")
            return

        outcome = FetchOutcome.SUCCESS if extraction.fetch_succeeded else FetchOutcome.FAILURE
        self.health_tracker.record_outcome(
            feeds[0].id,
            outcome,
            error=extraction.error if outcome == FetchOutcome.FAILURE else None,
        )
