"""
Tests for Feed Health Tracking
==============================

Covers the pure outcome transition and the tracker's persistence,
reset and error window behavior.
"""

import pytest
from datetime import datetime, timezone

from feedwarden.database.models import FeedHealth, FeedStatus, FetchOutcome
from feedwarden.monitoring.feed_health import FeedHealthTracker, HealthPolicy, apply_outcome
from feedwarden.utils.exceptions import ResourceNotFoundError


@pytest.fixture
def policy():
    return HealthPolicy()


@pytest.fixture
def tracker(db_connection):
    return FeedHealthTracker(db_connection, policy=HealthPolicy())


class TestApplyOutcome:
    """Pure health transitions."""

    def test_success_recovers_and_clears_streak(self, policy):
        health = FeedHealth(
            status=FeedStatus.DEGRADED,
            reliability_score=85.0,
            consecutive_failures=2,
            error_count_24h=4,
            last_error="HTTP 500",
        )
        now = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)

        result = apply_outcome(health, FetchOutcome.SUCCESS, policy, now=now)

        assert result.status == FeedStatus.HEALTHY
        assert result.consecutive_failures == 0
        assert result.reliability_score == 95.0
        assert result.error_count_24h == 4
        assert result.last_success == now
        assert result.last_check == now
        assert result.last_error is None

    def test_success_caps_reliability_at_100(self, policy):
        result = apply_outcome(FeedHealth(reliability_score=96.0), FetchOutcome.SUCCESS, policy)
        assert result.reliability_score == 100.0

    def test_failure_sequence_escalates_status(self, policy):
        health = FeedHealth()
        expected = [
            (FeedStatus.HEALTHY, 95.0),
            (FeedStatus.DEGRADED, 85.0),
            (FeedStatus.ERROR, 70.0),
            (FeedStatus.ERROR, 50.0),
            (FeedStatus.DISABLED, 30.0),
        ]

        for failures, (status, reliability) in enumerate(expected, start=1):
            health = apply_outcome(health, FetchOutcome.FAILURE, policy, error="HTTP 503")
            assert health.consecutive_failures == failures
            assert health.error_count_24h == failures
            assert health.status == status
            assert health.reliability_score == reliability
            assert health.last_error == "HTTP 503"

    def test_reliability_never_negative(self, policy):
        health = FeedHealth(reliability_score=10.0, consecutive_failures=8, status=FeedStatus.DISABLED)
        result = apply_outcome(health, FetchOutcome.FAILURE, policy)
        assert result.reliability_score == 0.0

    def test_error_budget_disables_feed(self, policy):
        health = FeedHealth(error_count_24h=19)
        result = apply_outcome(health, FetchOutcome.FAILURE, policy)

        assert result.consecutive_failures == 1
        assert result.error_count_24h == 20
        assert result.status == FeedStatus.DISABLED

    def test_disabled_feed_stays_disabled_on_success(self, policy):
        health = FeedHealth(status=FeedStatus.DISABLED, consecutive_failures=5, reliability_score=30.0)
        result = apply_outcome(health, FetchOutcome.SUCCESS, policy)

        assert result.status == FeedStatus.DISABLED
        assert result.consecutive_failures == 0
        assert result.reliability_score == 40.0

    def test_input_is_not_mutated(self, policy):
        health = FeedHealth()
        apply_outcome(health, FetchOutcome.FAILURE, policy)
        assert health.consecutive_failures == 0
        assert health.status == FeedStatus.HEALTHY

    def test_custom_thresholds(self):
        strict = HealthPolicy(degraded_after=1, error_after=1, disable_after=2)
        health = apply_outcome(FeedHealth(), FetchOutcome.FAILURE, strict)
        assert health.status == FeedStatus.ERROR
        health = apply_outcome(health, FetchOutcome.FAILURE, strict)
        assert health.status == FeedStatus.DISABLED


class TestFeedHealthTracker:
    """Tracker persistence against the feeds table."""

    def test_record_outcome_persists(self, tracker, make_feed, feed_repo):
        feed = make_feed("alpha")

        updated = tracker.record_outcome(feed.id, FetchOutcome.FAILURE, error="HTTP 500")

        stored = feed_repo.get_feed_by_id(feed.id)
        assert updated.health.consecutive_failures == 1
        assert stored.health.consecutive_failures == 1
        assert stored.health.error_count_24h == 1
        assert stored.health.reliability_score == 95.0
        assert stored.health.last_error == "HTTP 500"
        assert stored.active is True

    def test_disable_threshold_deactivates_feed(self, tracker, make_feed, feed_repo):
        feed = make_feed("alpha")

        for _ in range(5):
            tracker.record_outcome(feed.id, FetchOutcome.FAILURE)

        stored = feed_repo.get_feed_by_id(feed.id)
        assert stored.health.status == FeedStatus.DISABLED
        assert stored.active is False
        assert feed.id not in [f.id for f in feed_repo.get_active_feeds()]

    def test_success_does_not_revive_disabled_feed(self, tracker, make_feed, feed_repo):
        feed = make_feed(
            "alpha",
            active=False,
            health=FeedHealth(status=FeedStatus.DISABLED, consecutive_failures=5),
        )

        tracker.record_outcome(feed.id, FetchOutcome.SUCCESS)

        stored = feed_repo.get_feed_by_id(feed.id)
        assert stored.health.status == FeedStatus.DISABLED
        assert stored.active is False

    def test_unknown_feed_raises(self, tracker):
        with pytest.raises(ResourceNotFoundError):
            tracker.record_outcome("missing-feed", FetchOutcome.SUCCESS)

    def test_reset_all(self, tracker, make_feed, feed_repo):
        disabled = make_feed(
            "disabled",
            active=False,
            health=FeedHealth(status=FeedStatus.DISABLED, consecutive_failures=6, error_count_24h=9),
        )
        errored = make_feed(
            "errored",
            health=FeedHealth(status=FeedStatus.ERROR, consecutive_failures=3, error_count_24h=3),
        )
        degraded = make_feed(
            "degraded",
            health=FeedHealth(status=FeedStatus.DEGRADED, consecutive_failures=2, error_count_24h=2),
        )
        healthy = make_feed("healthy")

        repaired = tracker.reset_all()

        assert repaired == 2
        for feed in (disabled, errored):
            stored = feed_repo.get_feed_by_id(feed.id)
            assert stored.health.status == FeedStatus.HEALTHY
            assert stored.health.consecutive_failures == 0
            assert stored.health.error_count_24h == 0
            assert stored.active is True

        stored_degraded = feed_repo.get_feed_by_id(degraded.id)
        assert stored_degraded.health.consecutive_failures == 0
        assert stored_degraded.health.error_count_24h == 2
        assert feed_repo.get_feed_by_id(healthy.id).health.status == FeedStatus.HEALTHY

    def test_roll_error_window(self, tracker, make_feed, feed_repo):
        feed = make_feed("alpha", health=FeedHealth(error_count_24h=7, consecutive_failures=1))
        make_feed("beta")

        assert tracker.roll_error_window() == 1

        stored = feed_repo.get_feed_by_id(feed.id)
        assert stored.health.error_count_24h == 0
        assert stored.health.consecutive_failures == 1
