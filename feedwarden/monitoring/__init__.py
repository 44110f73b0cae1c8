"""
Health Monitoring Module
========================

Per-feed health tracking and the aggregate system health score.
"""

from .feed_health import FeedHealthTracker, HealthPolicy, apply_outcome
from .health_scorer import HealthScorer, compute_health_score

__all__ = ['FeedHealthTracker', 'HealthPolicy', 'apply_outcome', 'HealthScorer', 'compute_health_score']
