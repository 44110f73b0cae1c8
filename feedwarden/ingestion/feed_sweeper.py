"""
Feed Sweeper
============

Pulls new items from registered feeds into the article queue.

A sweep fetches the feed body, skips unchanged bodies by hash, parses
RSS/Atom with feedparser (sitemaps with BeautifulSoup) and inserts unseen
items as ``queued`` articles keyed by the sha1 of their normalized URL.
Every fetch outcome is recorded against the feed's health.
"""

import asyncio
import calendar
import hashlib
import re
import ssl
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, List, Optional
from urllib.parse import urlparse

import aiohttp
import certifi
import feedparser
from bs4 import BeautifulSoup

from .content_cleaner import PARSER, strip_tags
from ..config.settings import get_settings
from ..database.connection import DatabaseConnection
from ..database.models import Article, Feed, FeedType, FetchOutcome, Lifecycle, SystemConfig, utc_now
from ..monitoring.feed_health import FeedHealthTracker
from ..storage.article_repository import ArticleRepository
from ..storage.feed_repository import FeedRepository
from ..storage.settings_repository import SettingsRepository
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import (
    DatabaseError,
    ErrorCode,
    FeedFetchError,
    FeedWardenError,
    ValidationError,
    handle_exception,
    is_retryable_error,
)
from ..utils.validators import URLValidator, article_id_for_url, validate_title

SUMMARY_LENGTH = 300
# Publication dates further ahead than this are treated as unknown
FUTURE_DATE_TOLERANCE = timedelta(hours=1)


@dataclass
class ParsedItem:
    """One entry pulled out of a feed document."""

    title: str
    url: str
    published_at: Optional[datetime] = None
    summary: Optional[str] = None
    image: Optional[str] = None


@dataclass
class SweepResult:
    """Result of sweeping one feed."""

    feed_id: str
    success: bool
    skipped: bool = False
    reason: Optional[str] = None
    created: int = 0
    total: int = 0
    error: Optional[str] = None
    retryable: bool = False
    fetch_time: Optional[datetime] = None

    def __post_init__(self):
        if not self.fetch_time:
            self.fetch_time = utc_now()


def _struct_to_datetime(value) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromtimestamp(calendar.timegm(value), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError):
        return None


def _parse_iso_date(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _plausible_date(value: Optional[datetime], now: datetime) -> Optional[datetime]:
    if value is None or value > now + FUTURE_DATE_TOLERANCE:
        return None
    return value


def _title_from_url(url: str) -> str:
    """Readable title from the last path segment of a URL."""
    segments = [s for s in urlparse(url).path.split("/") if s]
    if not segments:
        return url
    slug = re.sub(r"\.\w+$", "", segments[-1])
    words = re.sub(r"[-_]+", " ", slug).strip()
    return words.capitalize() if words else url


def _entry_image(entry: Any) -> Optional[str]:
    for key in ("media_content", "media_thumbnail"):
        media = entry.get(key) or []
        if media and media[0].get("url"):
            return media[0]["url"]
    for enclosure in entry.get("enclosures") or []:
        if str(enclosure.get("type", "")).startswith("image") and enclosure.get("href"):
            return enclosure["href"]
    image = entry.get("image")
    if isinstance(image, dict) and image.get("href"):
        return image["href"]
    return None


def _entry_summary(entry: Any) -> Optional[str]:
    raw = ""
    content = entry.get("content")
    if content:
        raw = content[0].get("value", "")
    raw = raw or entry.get("summary", "") or entry.get("description", "")
    text = strip_tags(raw)[:SUMMARY_LENGTH]
    return text or None


def parse_syndication_feed(body: str, now: Optional[datetime] = None) -> List[ParsedItem]:
    """Items of an RSS or Atom document.

    Raises:
        FeedFetchError: If the document cannot be parsed and has no entries
    """
    now = now or utc_now()
    parsed = feedparser.parse(body)
    if parsed.bozo and not parsed.entries:
        raise FeedFetchError(
            f"Feed parse error: {parsed.get('bozo_exception', 'invalid XML structure')}",
            error_code=ErrorCode.FEED_PARSE_ERROR,
            recoverable=False,
        )

    items = []
    for entry in parsed.entries:
        url = (entry.get("link") or "").strip()
        if not url:
            continue
        published = None
        for key in ("published_parsed", "updated_parsed", "created_parsed"):
            published = _struct_to_datetime(entry.get(key))
            if published:
                break
        items.append(
            ParsedItem(
                title=(entry.get("title") or "").strip(),
                url=url,
                published_at=_plausible_date(published, now),
                summary=_entry_summary(entry),
                image=_entry_image(entry),
            )
        )
    return items


def parse_sitemap(body: str, now: Optional[datetime] = None) -> List[ParsedItem]:
    """Items of a sitemap ``<urlset>``; news sitemaps supply titles."""
    now = now or utc_now()
    soup = BeautifulSoup(body, PARSER)
    items = []
    for node in soup.find_all("url"):
        loc = node.find("loc")
        if loc is None or not loc.get_text(strip=True):
            continue
        url = loc.get_text(strip=True)
        title_node = node.find("news:title")
        date_node = node.find("news:publication_date") or node.find("lastmod")
        items.append(
            ParsedItem(
                title=title_node.get_text(strip=True) if title_node else "",
                url=url,
                published_at=_plausible_date(
                    _parse_iso_date(date_node.get_text(strip=True) if date_node else None), now
                ),
            )
        )
    return items


def parse_feed_items(body: str, feed_type: FeedType, now: Optional[datetime] = None) -> List[ParsedItem]:
    if feed_type == FeedType.SITEMAP or "<urlset" in body[:2000]:
        return parse_sitemap(body, now)
    return parse_syndication_feed(body, now)


class FeedSweeper:
    """Fetches feeds and queues their new items."""

    def __init__(
        self,
        db_connection: DatabaseConnection,
        health_tracker: Optional[FeedHealthTracker] = None,
    ):
        self.settings = get_settings()
        self.config = self.settings.ingestion
        self.feed_repo = FeedRepository(db_connection)
        self.article_repo = ArticleRepository(db_connection)
        self.settings_repo = SettingsRepository(db_connection)
        self.health_tracker = health_tracker or FeedHealthTracker(db_connection)
        self.logger = get_logger_for_component("feed_sweeper")
        self.ssl_context = ssl.create_default_context(cafile=certifi.where())

    @asynccontextmanager
    async def get_session(self):
        """Get configured aiohttp session."""
        connector = aiohttp.TCPConnector(
            ssl=self.ssl_context,
            limit=self.config.parallel_feeds * 2,
            limit_per_host=5,
        )
        timeout = aiohttp.ClientTimeout(total=self.config.request_timeout)
        headers = {
            "User-Agent": self.settings.extraction.user_agent,
            "Accept": "application/rss+xml, application/atom+xml, application/xml, text/xml, */*",
        }

        async with aiohttp.ClientSession(
            connector=connector, timeout=timeout, headers=headers
        ) as session:
            yield session

    def default_interval(self) -> int:
        """Sweep interval in minutes for feeds without their own, from stored config."""
        try:
            return self.settings_repo.get_config().default_fetch_interval
        except (DatabaseError, ValueError) as e:
            self.logger.warning(f"Stored config unreadable, using default sweep interval: {e}")
            return SystemConfig().default_fetch_interval

    def is_due(self, feed: Feed, now: Optional[datetime] = None) -> bool:
        """Whether the feed's sweep interval has elapsed."""
        if feed.last_fetched_at is None:
            return True
        interval = feed.fetch_interval_minutes or self.default_interval()
        return (now or utc_now()) >= feed.last_fetched_at + timedelta(minutes=interval)

    async def sweep(
        self,
        feed: Feed,
        force: bool = False,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> SweepResult:
        """Sweep one feed.

        Args:
            feed: Feed to sweep
            force: Ignore the interval and the unchanged-body check
            session: Shared session; a private one is opened when omitted
        """
        if not feed.active or feed.health.is_disabled():
            return SweepResult(feed_id=feed.id, success=True, skipped=True, reason="feed disabled")

        if not force and not self.is_due(feed):
            return SweepResult(feed_id=feed.id, success=True, skipped=True, reason="not due")

        if session is None:
            async with self.get_session() as own_session:
                return await self._sweep_with_session(feed, force, own_session)
        return await self._sweep_with_session(feed, force, session)

    async def _sweep_with_session(
        self, feed: Feed, force: bool, session: aiohttp.ClientSession
    ) -> SweepResult:
        try:
            return await self._fetch_and_queue(feed, force, session)
        except FeedFetchError as e:
            self.logger.warning(f"Sweep failed for {feed.url}: {e}", extra={"feed_id": feed.id})
            return self._record_failure(feed, e)
        except Exception as e:
            error = handle_exception(e, self.logger, "feed sweep", context={"feed_id": feed.id})
            return self._record_failure(feed, error)

    async def _fetch_and_queue(
        self, feed: Feed, force: bool, session: aiohttp.ClientSession
    ) -> SweepResult:
        body = await self._fetch_feed_body(session, feed.url)
        content_hash = hashlib.sha256(body.encode("utf-8")).hexdigest()

        if not force and feed.last_content_hash == content_hash:
            self.health_tracker.record_outcome(feed.id, FetchOutcome.SUCCESS)
            self.feed_repo.record_fetch(feed.id)
            self.logger.info(f"Sweep skipped for {feed.source_id}: content unchanged")
            return SweepResult(
                feed_id=feed.id, success=True, skipped=True, reason="content unchanged"
            )

        items = parse_feed_items(body, feed.type)
        articles = self._build_articles(feed, items[: self.config.max_items_per_feed])
        created = self.article_repo.insert_new_articles(articles)

        self.health_tracker.record_outcome(feed.id, FetchOutcome.SUCCESS)
        self.feed_repo.record_fetch(feed.id, content_hash)

        self.logger.info(
            f"Swept {feed.source_id}: {created} new of {len(items)} items",
            extra={"feed_id": feed.id},
        )
        return SweepResult(feed_id=feed.id, success=True, created=created, total=len(items))

    def _record_failure(self, feed: Feed, error: FeedWardenError) -> SweepResult:
        """Count a failed sweep against the feed; the store write is best-effort."""
        try:
            self.health_tracker.record_outcome(feed.id, FetchOutcome.FAILURE, error=error.user_message)
            self.feed_repo.record_fetch(feed.id)
        except DatabaseError as e:
            self.logger.error(
                f"Could not record sweep failure for {feed.source_id}: {e}",
                extra={"feed_id": feed.id},
            )
        return SweepResult(
            feed_id=feed.id,
            success=False,
            error=error.user_message,
            retryable=is_retryable_error(error),
        )

    async def _fetch_feed_body(self, session: aiohttp.ClientSession, url: str) -> str:
        """GET the feed document.

        Raises:
            FeedFetchError: On non-2xx responses, network errors and timeouts
        """
        try:
            async with session.get(url, allow_redirects=True) as response:
                if not 200 <= response.status < 300:
                    raise FeedFetchError(
                        f"HTTP {response.status} for {url}",
                        feed_url=url,
                        error_code=ErrorCode.FEED_ACCESS_DENIED
                        if response.status in (401, 403)
                        else ErrorCode.FEED_NOT_FOUND
                        if response.status == 404
                        else ErrorCode.FEED_NETWORK_ERROR,
                        user_message=f"HTTP {response.status}",
                    )
                return await response.text(errors="replace")
        except asyncio.TimeoutError:
            raise FeedFetchError(
                f"Request timeout after {self.config.request_timeout}s for {url}",
                feed_url=url,
                error_code=ErrorCode.FEED_FETCH_TIMEOUT,
                user_message=f"Request timeout after {self.config.request_timeout}s",
            )
        except aiohttp.ClientError as e:
            raise FeedFetchError(
                f"Network error for {url}: {e}",
                feed_url=url,
                error_code=ErrorCode.FEED_NETWORK_ERROR,
                user_message=f"Network error: {str(e) or type(e).__name__}",
            )

    def _build_articles(self, feed: Feed, items: List[ParsedItem]) -> List[Article]:
        now = utc_now()
        articles = []
        for item in items:
            try:
                url = URLValidator.validate_feed_url(item.url)
                title = validate_title(item.title or _title_from_url(url))
            except ValidationError as e:
                self.logger.debug(f"Skipping item {item.url!r} from {feed.source_id}: {e}")
                continue

            normalized = URLValidator.normalize_article_url(url)
            articles.append(
                Article(
                    id=article_id_for_url(normalized),
                    source_id=feed.source_id,
                    url=normalized,
                    title=title,
                    summary=item.summary,
                    image=item.image,
                    lifecycle=Lifecycle.QUEUED,
                    created_at=now,
                    published_at=item.published_at,
                )
            )
        return articles

    async def sweep_all(self, force: bool = False) -> List[SweepResult]:
        """Sweep every active feed concurrently."""
        feeds = self.feed_repo.get_active_feeds()
        if not feeds:
            self.logger.info("No active feeds to sweep")
            return []

        semaphore = asyncio.Semaphore(self.config.parallel_feeds)
        async with self.get_session() as session:

            async def run(feed: Feed) -> SweepResult:
                async with semaphore:
                    return await self.sweep(feed, force=force, session=session)

            results = list(await asyncio.gather(*(run(feed) for feed in feeds)))

        swept = [r for r in results if not r.skipped]
        self.logger.info(
            f"Sweep complete: {sum(1 for r in swept if r.success)}/{len(swept)} feeds fetched, "
            f"{sum(r.created for r in results)} new articles"
        )
        return results
