"""
Aggregate Health Scoring
========================

Single 0-100 health figure for operators, recomputed on every call from
route probes, recent error logs and mean feed reliability:

    score = 100 - route_penalty * failed_routes
                - min(errors_last_hour, error_cap)
                - reliability_weight * (1 - mean_reliability / 100)

clamped to [0, 100] and rounded.
"""

import asyncio
import ssl
import time
from datetime import timedelta
from typing import List, Optional

import aiohttp
import certifi

from ..config.settings import MonitoringSettings, RouteSettings, get_settings
from ..database.connection import DatabaseConnection
from ..database.models import (
    ErrorRate,
    FeedStats,
    RouteProbeResult,
    SystemHealthSnapshot,
    utc_now,
)
from ..storage.article_repository import ArticleRepository
from ..storage.feed_repository import FeedRepository
from ..storage.log_repository import LogRepository
from ..utils.logging import get_logger_for_component

NETWORK_ERROR_STATUS = 599


def compute_health_score(
    failed_routes: int,
    error_count_1h: int,
    mean_reliability: float,
    route_penalty: int = 10,
    error_cap: int = 20,
    reliability_weight: int = 30,
) -> int:
    """Aggregate health score in [0, 100]."""
    reliability = max(0.0, min(100.0, mean_reliability))
    score = (
        100
        - route_penalty * failed_routes
        - min(max(error_count_1h, 0), error_cap)
        - reliability_weight * (1 - reliability / 100)
    )
    return int(round(max(0.0, min(100.0, score))))


class HealthScorer:
    """Builds ``SystemHealthSnapshot`` objects on demand."""

    def __init__(
        self,
        db_connection: DatabaseConnection,
        config: Optional[MonitoringSettings] = None,
    ):
        self.db = db_connection
        self.config = config or get_settings().monitoring
        self.feed_repo = FeedRepository(db_connection)
        self.article_repo = ArticleRepository(db_connection)
        self.log_repo = LogRepository(db_connection)
        self.logger = get_logger_for_component("health_scorer")
        self.ssl_context = ssl.create_default_context(cafile=certifi.where())

    async def probe_route(
        self, session: aiohttp.ClientSession, route: RouteSettings
    ) -> RouteProbeResult:
        """HEAD one route. Network errors and timeouts report status 599."""
        url = f"{self.config.base_url}{route.path}"
        started = time.monotonic()
        try:
            async with session.head(url, allow_redirects=True) as response:
                status = response.status
            error = None
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            status = NETWORK_ERROR_STATUS
            error = str(e) or type(e).__name__

        latency_ms = int((time.monotonic() - started) * 1000)
        ok = 200 <= status < 300
        if not ok:
            self.logger.warning(
                f"Route probe {route.name} ({route.path}) returned {status}",
                extra={"route": route.name, "status": status},
            )
        return RouteProbeResult(
            name=route.name,
            path=route.path,
            status=status,
            latency_ms=latency_ms,
            ok=ok,
            error=error,
        )

    async def probe_routes(self) -> List[RouteProbeResult]:
        """Probe every configured route concurrently.

        Returns no results while ``base_url`` is unset.
        """
        if not self.config.base_url:
            self.logger.info("No monitoring base URL configured, skipping route probes")
            return []

        timeout = aiohttp.ClientTimeout(total=self.config.probe_timeout)
        connector = aiohttp.TCPConnector(ssl=self.ssl_context)
        headers = {"User-Agent": self.config.probe_user_agent}

        async with aiohttp.ClientSession(
            connector=connector, timeout=timeout, headers=headers
        ) as session:
            return list(
                await asyncio.gather(
                    *(self.probe_route(session, route) for route in self.config.routes)
                )
            )

    def collect_feed_stats(self) -> FeedStats:
        stats = self.feed_repo.get_feed_statistics()
        return FeedStats(
            total=stats["total"] or 0,
            active=stats["active"] or 0,
            inactive=stats["inactive"] or 0,
            disabled=stats["disabled"] or 0,
            mean_reliability=float(stats["mean_reliability"] if stats["mean_reliability"] is not None else 100.0),
        )

    def collect_error_rate(self) -> ErrorRate:
        now = utc_now()
        return ErrorRate(
            errors_last_hour=self.log_repo.count_errors_in_window(
                self.config.error_window_minutes, now=now
            ),
            logs_last_5_minutes=self.log_repo.count_since(
                now - timedelta(minutes=self.config.recent_log_window_minutes)
            ),
        )

    async def score(self) -> SystemHealthSnapshot:
        """Gather every input and compute a fresh snapshot."""
        started = time.monotonic()

        probes = await self.probe_routes()
        queue_counts = self.article_repo.get_lifecycle_counts()
        feed_stats = self.collect_feed_stats()
        error_rate = self.collect_error_rate()
        db_size = self.db.get_database_size()

        failed = sum(1 for probe in probes if not probe.ok)
        health_score = compute_health_score(
            failed,
            error_rate.errors_last_hour,
            feed_stats.mean_reliability,
            route_penalty=self.config.route_penalty,
            error_cap=self.config.error_penalty_cap,
            reliability_weight=self.config.reliability_weight,
        )

        snapshot = SystemHealthSnapshot(
            health_score=health_score,
            queue_counts=queue_counts,
            feed_stats=feed_stats,
            error_rate=error_rate,
            route_probe_results=probes,
            db_size_bytes=db_size,
            duration_ms=int((time.monotonic() - started) * 1000),
        )
        self.logger.info(
            f"Health score {health_score} ({failed} failing routes, "
            f"{error_rate.errors_last_hour} errors/h, reliability {feed_stats.mean_reliability:.1f})"
        )
        return snapshot
