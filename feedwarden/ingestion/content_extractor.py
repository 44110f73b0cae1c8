"""
Article Content Extractor
=========================

Fetches an article's page and runs the HTML heuristics over it. The
extractor never writes to storage: it returns an ``ExtractionResult``
and the processing pipeline decides what to commit.
"""

import asyncio
import ssl
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Tuple

import aiohttp
import certifi

from .content_cleaner import ExtractedDocument, extract_document
from ..config.settings import get_settings
from ..database.models import Article, utc_now
from ..utils.logging import get_logger_for_component
from ..utils.exceptions import ExtractionError, ErrorCode

CONTENT_TOO_SHORT = "content too short"


@dataclass
class ExtractionResult:
    """Outcome of one extraction attempt.

    Exactly one of three shapes: skipped (content already present),
    success (``document`` set) or failure (``error`` set). ``transient``
    marks failures of the fetch itself, which count against the feed.
    """

    article_id: str
    success: bool
    skipped: bool = False
    document: Optional[ExtractedDocument] = None
    error: Optional[str] = None
    transient: bool = False
    status_code: Optional[int] = None
    fetched_at: datetime = field(default_factory=utc_now)

    @property
    def fetch_attempted(self) -> bool:
        return not self.skipped

    @property
    def fetch_succeeded(self) -> bool:
        """Whether the origin answered, regardless of content quality."""
        return self.fetch_attempted and not self.transient

    @classmethod
    def skip(cls, article_id: str) -> "ExtractionResult":
        return cls(article_id=article_id, success=True, skipped=True)

    @classmethod
    def failure(
        cls,
        article_id: str,
        error: str,
        transient: bool,
        status_code: Optional[int] = None,
    ) -> "ExtractionResult":
        return cls(
            article_id=article_id,
            success=False,
            error=error,
            transient=transient,
            status_code=status_code,
        )


class ContentExtractor:
    """Fetches article pages and extracts readable content."""

    def __init__(self, timeout: int = None, max_concurrent: int = None):
        """Initialize content extractor.

        Args:
            timeout: Request timeout in seconds (default from config)
            max_concurrent: Connection pool bound (default from config)
        """
        self.settings = get_settings()
        self.config = self.settings.extraction
        self.timeout = timeout or self.config.request_timeout
        self.max_concurrent = max_concurrent or self.config.max_concurrent
        self.logger = get_logger_for_component("content_extractor")

        self.ssl_context = ssl.create_default_context(cafile=certifi.where())

    @asynccontextmanager
    async def get_session(self):
        """Get configured aiohttp session."""
        connector = aiohttp.TCPConnector(
            ssl=self.ssl_context,
            limit=self.max_concurrent * 2,
            limit_per_host=5,
        )
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        headers = {
            "User-Agent": self.config.user_agent,
            "Accept": self.config.accept_header,
        }

        async with aiohttp.ClientSession(
            connector=connector, timeout=timeout, headers=headers
        ) as session:
            yield session

    def should_skip(self, article: Article, force: bool = False) -> bool:
        """Articles that already carry substantial content are not re-fetched."""
        return not force and article.content_length() > self.config.skip_content_length

    async def extract(
        self,
        article: Article,
        force: bool = False,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> ExtractionResult:
        """Fetch and extract one article.

        Args:
            article: Article to extract
            force: Re-extract even if content is already present
            session: Shared session; a private one is opened when omitted

        Returns:
            ExtractionResult describing a skip, success or failure
        """
        if self.should_skip(article, force):
            self.logger.debug(f"Skipping extraction for {article.id}: content present")
            return ExtractionResult.skip(article.id)

        if session is None:
            async with self.get_session() as own_session:
                return await self._extract_with_session(article, own_session)
        return await self._extract_with_session(article, session)

    async def _extract_with_session(
        self, article: Article, session: aiohttp.ClientSession
    ) -> ExtractionResult:
        try:
            status, markup = await self._fetch_document(session, article.url)
        except ExtractionError as e:
            self.logger.warning(
                f"Extraction fetch failed for {article.url}: {e.user_message}",
                extra={"article_id": article.id, "error_code": e.error_code.value},
            )
            return ExtractionResult.failure(
                article.id,
                e.user_message,
                transient=e.transient,
                status_code=e.context.get("status"),
            )

        document = extract_document(
            markup, base_url=article.url, max_length=self.config.max_content_length
        )

        if len(document.content) < self.config.min_content_length:
            self.logger.info(
                f"Extracted content too short for {article.url} ({len(document.content)} chars)",
                extra={"article_id": article.id},
            )
            return ExtractionResult.failure(
                article.id, CONTENT_TOO_SHORT, transient=False, status_code=status
            )

        if not document.image:
            document.image = article.image

        self.logger.debug(
            f"Extracted {len(document.content)} chars from {article.url}",
            extra={"article_id": article.id},
        )
        return ExtractionResult(
            article_id=article.id,
            success=True,
            document=document,
            status_code=status,
        )

    async def _fetch_document(
        self, session: aiohttp.ClientSession, url: str
    ) -> Tuple[int, str]:
        """GET ``url`` following redirects.

        Raises:
            ExtractionError: On non-2xx responses, network errors and timeouts
        """
        try:
            async with session.get(url, allow_redirects=True) as response:
                if not 200 <= response.status < 300:
                    raise ExtractionError(
                        f"HTTP {response.status} for {url}",
                        url=url,
                        error_code=ErrorCode.EXTRACTION_HTTP_ERROR,
                        user_message=f"HTTP {response.status}",
                        context={"status": response.status},
                    )
                return response.status, await response.text(errors="replace")

        except asyncio.TimeoutError:
            raise ExtractionError(
                f"Request timeout after {self.timeout}s for {url}",
                url=url,
                error_code=ErrorCode.EXTRACTION_TIMEOUT,
                user_message=f"Request timeout after {self.timeout}s",
            )
        except aiohttp.ClientError as e:
            raise ExtractionError(
                f"Network error for {url}: {e}",
                url=url,
                error_code=ErrorCode.EXTRACTION_NETWORK_ERROR,
                user_message=f"Network error: {str(e) or type(e).__name__}",
            )
