"""
Feed Health Tracking
====================

Per-feed reliability bookkeeping. ``apply_outcome`` is a pure transition
over the ``FeedHealth`` value; ``FeedHealthTracker`` reads a feed, applies
the transition and writes the result back as a single row update.

Status escalates healthy -> degraded -> error -> disabled as the failure
streak grows. A disabled feed stays disabled, and inactive, until an
operator runs ``reset_all``.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..config.settings import HealthSettings, get_settings
from ..database.connection import DatabaseConnection
from ..database.models import Feed, FeedHealth, FeedStatus, FetchOutcome, utc_now
from ..storage.feed_repository import FeedRepository
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import ResourceNotFoundError


@dataclass(frozen=True)
class HealthPolicy:
    """Thresholds and scoring steps for feed health transitions."""

    degraded_after: int = 2
    error_after: int = 3
    disable_after: int = 5
    max_errors_24h: int = 20
    recovery_step: float = 10.0
    penalty_step: float = 5.0
    max_penalty: float = 20.0

    @classmethod
    def from_settings(cls, settings: HealthSettings) -> "HealthPolicy":
        return cls(
            degraded_after=settings.degraded_after,
            error_after=settings.error_after,
            disable_after=settings.disable_after,
            max_errors_24h=settings.max_errors_24h,
            recovery_step=settings.recovery_step,
            penalty_step=settings.penalty_step,
            max_penalty=settings.max_penalty,
        )

    def failure_penalty(self, consecutive_failures: int) -> float:
        """Reliability lost for a failure ending a streak of the given length."""
        return min(self.penalty_step * consecutive_failures, self.max_penalty)

    def status_for(self, current: FeedStatus, consecutive_failures: int, error_count_24h: int) -> FeedStatus:
        """Status implied by failure counters after a failure."""
        if (
            current == FeedStatus.DISABLED
            or consecutive_failures >= self.disable_after
            or error_count_24h >= self.max_errors_24h
        ):
            return FeedStatus.DISABLED
        if consecutive_failures >= self.error_after:
            return FeedStatus.ERROR
        if consecutive_failures >= self.degraded_after:
            return FeedStatus.DEGRADED
        return current


def _clamp(score: float) -> float:
    return max(0.0, min(100.0, score))


def apply_outcome(
    health: FeedHealth,
    outcome: FetchOutcome,
    policy: HealthPolicy,
    now: Optional[datetime] = None,
    error: Optional[str] = None,
) -> FeedHealth:
    """Return the health record that results from one fetch outcome."""
    now = now or utc_now()

    if outcome == FetchOutcome.SUCCESS:
        status = FeedStatus.DISABLED if health.is_disabled() else FeedStatus.HEALTHY
        return health.model_copy(
            update={
                "status": status,
                "consecutive_failures": 0,
                "reliability_score": _clamp(health.reliability_score + policy.recovery_step),
                "last_check": now,
                "last_success": now,
                "last_error": None,
            }
        )

    failures = health.consecutive_failures + 1
    errors = health.error_count_24h + 1
    return health.model_copy(
        update={
            "status": policy.status_for(health.status, failures, errors),
            "consecutive_failures": failures,
            "error_count_24h": errors,
            "reliability_score": _clamp(
                health.reliability_score - policy.failure_penalty(failures)
            ),
            "last_check": now,
            "last_error": error,
        }
    )


class FeedHealthTracker:
    """Records fetch outcomes against feeds in the registry."""

    def __init__(
        self,
        db_connection: DatabaseConnection,
        policy: Optional[HealthPolicy] = None,
    ):
        self.feed_repo = FeedRepository(db_connection)
        self.settings = get_settings()
        self.policy = policy or HealthPolicy.from_settings(self.settings.health)
        self.logger = get_logger_for_component("feed_health")

    def record_outcome(
        self,
        feed_id: str,
        outcome: FetchOutcome,
        error: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Feed:
        """Apply one fetch outcome to a feed and persist it.

        Returns:
            The updated feed

        Raises:
            ResourceNotFoundError: If the feed does not exist
        """
        feed = self.feed_repo.get_feed_by_id(feed_id)
        if feed is None:
            raise ResourceNotFoundError(
                f"Feed {feed_id} not found", resource="feed", resource_id=feed_id
            )

        previous = feed.health.status
        health = apply_outcome(feed.health, outcome, self.policy, now=now, error=error)
        active = feed.active and not health.is_disabled()
        self.feed_repo.save_health(feed_id, health, active)

        if health.status != previous:
            log = self.logger.warning if health.status != FeedStatus.HEALTHY else self.logger.info
            log(
                f"Feed {feed.source_id} status {previous.value} -> {health.status.value}",
                extra={
                    "feed_id": feed_id,
                    "consecutive_failures": health.consecutive_failures,
                    "error_count_24h": health.error_count_24h,
                    "reliability_score": health.reliability_score,
                },
            )
        if health.is_disabled() and feed.active:
            self.logger.error(
                f"Feed {feed.source_id} disabled after {health.consecutive_failures} "
                f"consecutive failures ({health.error_count_24h} in 24h)",
                extra={"feed_id": feed_id, "last_error": error},
            )

        return feed.model_copy(update={"health": health, "active": active})

    def reset_all(self) -> int:
        """Return every disabled or errored feed to healthy service.

        Failure history is discarded, so the reset is logged at warning level.

        Returns:
            Number of disabled or errored feeds reset
        """
        repaired = self.feed_repo.reset_health()
        self.logger.warning(
            f"Feed health reset: {repaired} disabled/error feeds returned to service",
            extra={"repaired": repaired},
        )
        return repaired

    def roll_error_window(self) -> int:
        """Start a new 24h error window for all feeds."""
        cleared = self.feed_repo.reset_error_window()
        self.logger.info(f"Cleared 24h error counters on {cleared} feeds")
        return cleared
