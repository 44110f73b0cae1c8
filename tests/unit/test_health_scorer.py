"""
Tests for Aggregate Health Scoring
==================================
"""

import asyncio
import pytest
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp

from feedwarden.config.settings import MonitoringSettings, RouteSettings
from feedwarden.database.models import FeedHealth, LogEntry, LogLevel, RouteProbeResult
from feedwarden.monitoring.health_scorer import (
    NETWORK_ERROR_STATUS,
    HealthScorer,
    compute_health_score,
)
from feedwarden.storage.log_repository import LogRepository


def probe(name: str, status: int) -> RouteProbeResult:
    return RouteProbeResult(
        name=name, path=f"/{name.lower()}", status=status, ok=200 <= status < 300
    )


def head_session(status: int = 200, side_effect=None):
    response = MagicMock()
    response.status = status

    context = MagicMock()
    context.__aenter__ = AsyncMock(return_value=response)
    context.__aexit__ = AsyncMock(return_value=False)

    session = MagicMock()
    session.head = MagicMock(return_value=context, side_effect=side_effect)
    return session


@pytest.fixture
def scorer(db_connection):
    return HealthScorer(db_connection, MonitoringSettings(base_url="https://news.example.com/"))


class TestComputeHealthScore:
    def test_perfect(self):
        assert compute_health_score(0, 0, 100.0) == 100

    def test_zero_reliability(self):
        assert compute_health_score(0, 0, 0.0) == 70

    def test_routes_and_errors(self):
        assert compute_health_score(2, 5, 100.0) == 75

    def test_error_penalty_is_capped(self):
        assert compute_health_score(0, 500, 100.0) == 80

    def test_reliability_rounding(self):
        assert compute_health_score(0, 0, 95.0) == 98

    def test_clamped_at_zero(self):
        assert compute_health_score(10, 100, 0.0) == 0


class TestProbeRoute:
    @pytest.mark.asyncio
    async def test_ok_route(self, scorer):
        session = head_session(200)
        result = await scorer.probe_route(session, RouteSettings(name="News", path="/news"))

        session.head.assert_called_once_with("https://news.example.com/news", allow_redirects=True)
        assert result.ok is True
        assert result.status == 200
        assert result.error is None

    @pytest.mark.asyncio
    async def test_non_2xx_fails(self, scorer):
        result = await scorer.probe_route(head_session(404), RouteSettings(name="Viral", path="/viral"))
        assert result.ok is False
        assert result.status == 404

    @pytest.mark.asyncio
    async def test_network_error_reports_599(self, scorer):
        session = head_session(side_effect=aiohttp.ClientConnectionError("refused"))
        result = await scorer.probe_route(session, RouteSettings(name="Home", path="/"))

        assert result.status == NETWORK_ERROR_STATUS
        assert result.ok is False
        assert result.error == "refused"

    @pytest.mark.asyncio
    async def test_timeout_reports_599(self, scorer):
        session = head_session(side_effect=asyncio.TimeoutError())
        result = await scorer.probe_route(session, RouteSettings(name="API", path="/api/health"))

        assert result.status == NETWORK_ERROR_STATUS
        assert result.error == "TimeoutError"

    @pytest.mark.asyncio
    async def test_routes_skipped_without_base_url(self, db_connection):
        scorer = HealthScorer(db_connection, MonitoringSettings())

        with patch("feedwarden.monitoring.health_scorer.aiohttp.ClientSession") as session_cls:
            assert await scorer.probe_routes() == []

        session_cls.assert_not_called()
        snapshot = await scorer.score()
        assert snapshot.route_probe_results == []
        assert snapshot.health_score == 100


class TestScore:
    @pytest.mark.asyncio
    async def test_empty_system_scores_100(self, scorer):
        routes = [probe("Home", 200), probe("News", 200)]
        with patch.object(scorer, "probe_routes", new=AsyncMock(return_value=routes)):
            snapshot = await scorer.score()

        assert snapshot.health_score == 100
        assert snapshot.queue_counts == {
            "queued": 0, "processed": 0, "blocked": 0, "published": 0, "error": 0
        }
        assert snapshot.feed_stats.total == 0
        assert snapshot.feed_stats.mean_reliability == 100.0
        assert snapshot.route_probe_results == routes
        assert snapshot.db_size_bytes > 0

    @pytest.mark.asyncio
    async def test_combines_routes_errors_and_reliability(
        self, scorer, db_connection, make_feed, make_article, now
    ):
        make_feed("alpha", health=FeedHealth(reliability_score=50.0))
        make_feed("beta", active=False)
        make_article("https://alpha.com/1", source_id="alpha")

        logs = LogRepository(db_connection)
        logs.add_log(LogEntry(level=LogLevel.ERROR, message="fetch failed"))
        logs.add_log(LogEntry(level=LogLevel.ERROR, message="fetch failed again"))
        logs.add_log(LogEntry(level=LogLevel.WARN, message="slow"))
        logs.add_log(
            LogEntry(level=LogLevel.ERROR, message="old", timestamp=now - timedelta(hours=2))
        )

        routes = [probe("Home", 200), probe("News", 500)]
        with patch.object(scorer, "probe_routes", new=AsyncMock(return_value=routes)):
            snapshot = await scorer.score()

        # 100 - 10 (one route) - 2 (errors) - 30 * (1 - 75/100)
        assert snapshot.health_score == 80
        assert snapshot.error_rate.errors_last_hour == 2
        assert snapshot.error_rate.logs_last_5_minutes == 3
        assert snapshot.feed_stats.total == 2
        assert snapshot.feed_stats.active == 1
        assert snapshot.feed_stats.inactive == 1
        assert snapshot.feed_stats.mean_reliability == 75.0
        assert snapshot.queue_counts["queued"] == 1
        assert [r.name for r in snapshot.failed_routes] == ["News"]
