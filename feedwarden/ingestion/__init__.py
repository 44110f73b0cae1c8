"""
FeedWarden Ingestion Module
===========================

Feed sweeping and article content extraction.

This module handles:
- Fetching and parsing RSS, Atom and sitemap feeds
- Article page download and HTML cleaning
- Lead image selection
"""

from .content_extractor import ContentExtractor, ExtractionResult
from .feed_sweeper import FeedSweeper, SweepResult

__all__ = [
    "ContentExtractor",
    "ExtractionResult",
    "FeedSweeper",
    "SweepResult",
]
