"""
FeedWarden Storage Layer
========================

Repository pattern implementations for data access abstraction.

This module provides:
- Feed repository for the feed registry and health columns
- Article repository for article storage and lifecycle writes
- Log and settings repositories
"""

from .article_repository import ArticleRepository
from .feed_repository import FeedRepository
from .log_repository import LogRepository
from .settings_repository import SettingsRepository

__all__ = [
    "ArticleRepository",
    "FeedRepository",
    "LogRepository",
    "SettingsRepository",
]
