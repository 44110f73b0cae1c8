"""
FeedWarden Input Validators
===========================

URL validation and normalization, feed attribute inference, and text
sanitization helpers.
"""

import re
import hashlib
from urllib.parse import urlparse, urlunparse, parse_qsl, urlencode
from typing import Optional

from .exceptions import ValidationError, ErrorCode


class URLValidator:
    """URL validation and normalization utilities."""

    ALLOWED_SCHEMES = {'http', 'https'}

    # Query parameters that only carry tracking data
    TRACKING_PARAMS = {
        "utm_source", "utm_medium", "utm_campaign", "utm_term", "utm_content",
        "fbclid", "gclid", "ref", "source",
    }

    @classmethod
    def validate_feed_url(cls, url: str) -> str:
        """Validate and normalize a feed URL.

        Args:
            url: URL to validate

        Returns:
            Normalized URL

        Raises:
            ValidationError: If URL is invalid
        """
        if not url or not isinstance(url, str):
            raise ValidationError(
                "URL is required and must be a string",
                error_code=ErrorCode.VALIDATION_REQUIRED_FIELD,
                field_name="url"
            )

        url = url.strip()

        try:
            parsed = urlparse(url)
        except ValueError as e:
            raise ValidationError(
                f"Invalid URL format: {str(e)}",
                error_code=ErrorCode.VALIDATION_INVALID_FORMAT,
                field_name="url"
            )

        if parsed.scheme.lower() not in cls.ALLOWED_SCHEMES:
            raise ValidationError(
                f"URL scheme must be {' or '.join(sorted(cls.ALLOWED_SCHEMES))}",
                error_code=ErrorCode.VALIDATION_INVALID_FORMAT,
                field_name="url"
            )

        if not parsed.netloc:
            raise ValidationError(
                "URL must include a hostname",
                error_code=ErrorCode.VALIDATION_INVALID_FORMAT,
                field_name="url"
            )

        if cls._has_suspicious_patterns(url):
            raise ValidationError(
                "URL contains suspicious patterns",
                error_code=ErrorCode.VALIDATION_INVALID_FORMAT,
                field_name="url"
            )

        return urlunparse(parsed._replace(
            scheme=parsed.scheme.lower(),
            netloc=parsed.netloc.lower(),
            path=parsed.path or '/',
            fragment=''
        ))

    @classmethod
    def _has_suspicious_patterns(cls, url: str) -> bool:
        """Check for local or non-web URL patterns."""
        suspicious_patterns = [
            r'javascript:',
            r'data:',
            r'file:',
            r'ftp:',
            r'localhost',
            r'127\.0\.0\.1',
            r'10\.\d+\.\d+\.\d+',
            r'192\.168\.\d+\.\d+',
        ]

        url_lower = url.lower()
        return any(re.search(pattern, url_lower) for pattern in suspicious_patterns)

    @classmethod
    def normalize_article_url(cls, url: str) -> str:
        """Normalize an article URL for deduplication.

        Drops tracking parameters and the fragment, upgrades http to https
        and removes a trailing slash. Unparsable input is returned stripped.
        """
        if not url:
            return ""

        url = url.strip()
        try:
            parsed = urlparse(url)
        except ValueError:
            return url

        if not parsed.scheme or not parsed.netloc:
            return url

        query = urlencode(
            [(k, v) for k, v in parse_qsl(parsed.query, keep_blank_values=True)
             if k not in cls.TRACKING_PARAMS]
        )
        scheme = "https" if parsed.scheme.lower() == "http" else parsed.scheme.lower()
        normalized = urlunparse(parsed._replace(
            scheme=scheme,
            netloc=parsed.netloc.lower(),
            query=query,
            fragment="",
        ))
        if normalized.endswith("/"):
            normalized = normalized[:-1]
        return normalized


def article_id_for_url(url: str) -> str:
    """Stable article ID: sha1 of the normalized URL."""
    normalized = URLValidator.normalize_article_url(url)
    return hashlib.sha1(normalized.encode("utf-8")).hexdigest()


def infer_source_id(url: str) -> str:
    """Derive a source identifier from a feed URL's hostname.

    ``https://www.example.com/rss`` -> ``example``; single-label hosts are
    returned unchanged and unparsable URLs fall back to ``source``.
    """
    try:
        hostname = urlparse(url.strip()).hostname
    except ValueError:
        return "source"
    if not hostname:
        return "source"

    hostname = re.sub(r"^www\.", "", hostname.lower())
    parts = hostname.split(".")
    return parts[0] if len(parts) > 1 else hostname


def infer_feed_type(url: str) -> str:
    """Guess the feed format from its URL."""
    lower = url.lower()
    if "sitemap" in lower:
        return "sitemap"
    if "atom" in lower:
        return "atom"
    return "rss"


def sanitize_text(text: Optional[str]) -> str:
    """Remove control characters and collapse whitespace."""
    if not text:
        return ""
    text = re.sub(r'[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]', '', text)
    text = re.sub(r'\s+', ' ', text)
    return text.strip()


def validate_title(title: Optional[str], max_length: int = 1000) -> str:
    """Validate and sanitize an article title.

    Raises:
        ValidationError: If the title is missing or empty after sanitizing
    """
    cleaned = sanitize_text(title)
    if not cleaned:
        raise ValidationError(
            "Title is required",
            error_code=ErrorCode.VALIDATION_REQUIRED_FIELD,
            field_name="title"
        )
    return cleaned[:max_length]
