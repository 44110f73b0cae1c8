"""
Unit tests for ProcessingPipeline orchestrator.

Tests the Extract -> Grade -> Commit run over queued articles:
- Lifecycle moves decided by the quality gate
- Fetch failures annotated on the article without moving it
- Feed health updated from each fetch outcome
- Batch runs where one failure does not stop the rest
"""

import pytest
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock, patch

from feedwarden.database.models import Lifecycle
from feedwarden.ingestion.content_extractor import CONTENT_TOO_SHORT
from feedwarden.processing.pipeline import ProcessingPipeline
from feedwarden.utils.exceptions import DatabaseError, ErrorCode, ExtractionError, ResourceNotFoundError


@asynccontextmanager
async def fake_session():
    yield MagicMock()


def page(words: int) -> str:
    body = " ".join(f"word{i}" for i in range(words))
    return f"<html><body><article><p>{body}</p></article></body></html>"


def http_error(status: int) -> ExtractionError:
    return ExtractionError(
        f"HTTP {status} for page",
        error_code=ErrorCode.EXTRACTION_HTTP_ERROR,
        user_message=f"HTTP {status}",
        context={"status": status},
    )


@pytest.fixture
def pipeline(db_connection, monkeypatch):
    pipeline = ProcessingPipeline(db_connection)
    monkeypatch.setattr(pipeline.extractor, "get_session", fake_session)
    return pipeline


@pytest.fixture
def feed(make_feed):
    return make_feed("example")


class TestProcessArticle:
    """Test single-article processing."""

    @pytest.mark.asyncio
    async def test_good_article_is_processed(
        self, pipeline, feed, feed_repo, make_article, article_repo, long_article_html
    ):
        article = make_article("https://example.com/story")
        fetch = AsyncMock(return_value=(200, long_article_html))

        with patch.object(pipeline.extractor, "_fetch_document", new=fetch):
            outcome = await pipeline.process_article(article.id)

        assert outcome.status == "processed"
        assert outcome.lifecycle == "processed"
        assert outcome.quality_score == 100
        assert outcome.reasons == []

        stored = article_repo.get_article(article.id)
        assert stored.lifecycle == Lifecycle.PROCESSED
        assert "word0" in stored.content
        assert stored.image.endswith("/images/lead.jpg")
        assert stored.quality_score == 100

        health = feed_repo.get_feed_by_id(feed.id).health
        assert health.consecutive_failures == 0
        assert health.last_success is not None

    @pytest.mark.asyncio
    async def test_thin_article_is_blocked(self, pipeline, feed, make_article, article_repo):
        article = make_article("https://example.com/brief")

        with patch.object(pipeline.extractor, "_fetch_document", new=AsyncMock(return_value=(200, page(60)))):
            outcome = await pipeline.process_article(article.id)

        assert outcome.status == "blocked"
        assert outcome.quality_score == 70
        assert outcome.reasons == ["too short"]
        assert article_repo.get_article(article.id).lifecycle == Lifecycle.BLOCKED

    @pytest.mark.asyncio
    async def test_http_failure_keeps_article_queued(
        self, pipeline, feed, feed_repo, make_article, article_repo
    ):
        article = make_article("https://example.com/story")

        with patch.object(pipeline.extractor, "_fetch_document", new=AsyncMock(side_effect=http_error(503))):
            outcome = await pipeline.process_article(article.id)

        assert outcome.status == "failed"
        assert outcome.error == "HTTP 503"
        assert outcome.ok is False

        stored = article_repo.get_article(article.id)
        assert stored.lifecycle == Lifecycle.QUEUED
        assert stored.fetch_error == "HTTP 503"
        assert stored.last_fetched_at is not None

        health = feed_repo.get_feed_by_id(feed.id).health
        assert health.consecutive_failures == 1
        assert health.last_error == "HTTP 503"

    @pytest.mark.asyncio
    async def test_short_content_counts_as_feed_success(
        self, pipeline, feed, feed_repo, make_article, article_repo
    ):
        article = make_article("https://example.com/stub")
        markup = "<html><body><p>Too short.</p></body></html>"

        with patch.object(pipeline.extractor, "_fetch_document", new=AsyncMock(return_value=(200, markup))):
            outcome = await pipeline.process_article(article.id)

        assert outcome.status == "failed"
        assert outcome.error == CONTENT_TOO_SHORT
        assert article_repo.get_article(article.id).fetch_error == CONTENT_TOO_SHORT

        health = feed_repo.get_feed_by_id(feed.id).health
        assert health.consecutive_failures == 0
        assert health.last_success is not None

    @pytest.mark.asyncio
    async def test_existing_content_is_skipped(self, pipeline, feed, make_article):
        article = make_article("https://example.com/full", content="x" * 500)
        fetch = AsyncMock()

        with patch.object(pipeline.extractor, "_fetch_document", new=fetch):
            outcome = await pipeline.process_article(article.id)

        assert outcome.status == "skipped"
        fetch.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_forced_reextract_keeps_published_lifecycle(
        self, pipeline, feed, make_article, article_repo, long_article_html
    ):
        article = make_article(
            "https://example.com/old", lifecycle=Lifecycle.PUBLISHED, content="x" * 500, quality_score=40
        )

        with patch.object(pipeline.extractor, "_fetch_document", new=AsyncMock(return_value=(200, long_article_html))):
            outcome = await pipeline.process_article(article.id, force=True)

        assert outcome.status == "updated"
        assert outcome.lifecycle == "published"

        stored = article_repo.get_article(article.id)
        assert stored.lifecycle == Lifecycle.PUBLISHED
        assert stored.quality_score == 100
        assert "word0" in stored.content

    @pytest.mark.asyncio
    async def test_unexpected_error_is_contained(self, pipeline, feed, make_article, article_repo):
        article = make_article("https://example.com/story")

        with patch.object(pipeline.extractor, "_fetch_document", new=AsyncMock(side_effect=RuntimeError("boom"))):
            outcome = await pipeline.process_article(article.id)

        assert outcome.status == "failed"
        assert outcome.error.startswith("Unexpected error")
        stored = article_repo.get_article(article.id)
        assert stored.lifecycle == Lifecycle.QUEUED
        assert stored.fetch_error == outcome.error

    @pytest.mark.asyncio
    async def test_backward_move_is_refused(
        self, pipeline, feed, make_article, article_repo, long_article_html
    ):
        article = make_article("https://example.com/story", lifecycle=Lifecycle.PROCESSED, quality_score=40)
        fetch = AsyncMock(return_value=(200, long_article_html))

        with patch.object(pipeline.extractor, "_fetch_document", new=fetch), \
                patch("feedwarden.processing.pipeline.decide", return_value=Lifecycle.QUEUED):
            outcome = await pipeline.process_article(article.id, force=True)

        assert outcome.status == "failed"
        assert outcome.error == "Unexpected error: Invalid article state change"
        stored = article_repo.get_article(article.id)
        assert stored.lifecycle == Lifecycle.PROCESSED
        assert stored.quality_score == 40

    @pytest.mark.asyncio
    async def test_missing_article(self, pipeline):
        with pytest.raises(ResourceNotFoundError):
            await pipeline.process_article("missing")


class TestProcessQueue:
    """Test batch processing of the queue."""

    @pytest.mark.asyncio
    async def test_mixed_batch(self, pipeline, feed, feed_repo, make_article, article_repo, long_article_html):
        good = make_article("https://example.com/good")
        thin = make_article("https://example.com/thin")
        broken = make_article("https://example.com/broken")
        make_article("https://example.com/done", lifecycle=Lifecycle.PROCESSED)

        responses = {
            good.url: (200, long_article_html),
            thin.url: (200, page(60)),
        }

        async def fetch(session, url):
            if url not in responses:
                raise http_error(500)
            return responses[url]

        with patch.object(pipeline.extractor, "_fetch_document", new=AsyncMock(side_effect=fetch)):
            result = await pipeline.process_queue()

        assert result.requested == 3
        assert result.processed == 1
        assert result.blocked == 1
        assert result.failed == 1
        assert {o.article_id: o.status for o in result.outcomes} == {
            good.id: "processed",
            thin.id: "blocked",
            broken.id: "failed",
        }
        assert article_repo.get_article(broken.id).lifecycle == Lifecycle.QUEUED
        assert feed_repo.get_feed_by_id(feed.id).health.consecutive_failures <= 1

    @pytest.mark.asyncio
    async def test_limit(self, pipeline, feed, make_article, long_article_html):
        for i in range(3):
            make_article(f"https://example.com/{i}")

        with patch.object(pipeline.extractor, "_fetch_document", new=AsyncMock(return_value=(200, long_article_html))):
            result = await pipeline.process_queue(limit=2)

        assert result.requested == 2
        assert result.processed == 2

    @pytest.mark.asyncio
    async def test_empty_queue(self, pipeline):
        result = await pipeline.process_queue()

        assert result.requested == 0
        assert result.outcomes == []

    @pytest.mark.asyncio
    async def test_store_failure_on_one_article_does_not_abort_batch(
        self, pipeline, feed, make_article, article_repo, long_article_html
    ):
        good = make_article("https://example.com/good")
        bad = make_article("https://example.com/bad")

        real_commit = article_repo.commit_extraction

        def commit(article_id, **kwargs):
            if article_id == bad.id:
                raise DatabaseError("database is locked")
            return real_commit(article_id, **kwargs)

        def annotate(article_id, *args, **kwargs):
            raise DatabaseError("database is locked")

        with patch.object(pipeline.extractor, "_fetch_document", new=AsyncMock(return_value=(200, long_article_html))), \
                patch.object(pipeline.article_repo, "commit_extraction", side_effect=commit), \
                patch.object(pipeline.article_repo, "record_fetch_failure", side_effect=annotate):
            result = await pipeline.process_queue()

        assert {o.article_id: o.status for o in result.outcomes} == {
            good.id: "processed",
            bad.id: "failed",
        }
        failed = next(o for o in result.outcomes if o.article_id == bad.id)
        assert failed.error == "Unexpected error: Database operation failed"
        assert article_repo.get_article(bad.id).lifecycle == Lifecycle.QUEUED
