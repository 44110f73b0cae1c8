"""
Content Cleaner
===============

HTML heuristics for article extraction, written as small pure functions
over a parsed BeautifulSoup tree.

This module provides:
- Lead image selection (meta tags first, then article images)
- Main text extraction with boilerplate removal
- Tag stripping for text that may still contain markup
"""

import re
import html
from dataclasses import dataclass
from typing import Callable, Optional, Sequence
from urllib.parse import urljoin

from bs4 import BeautifulSoup

PARSER = "html.parser"

# Elements removed before text extraction
NOISE_ELEMENTS = ("script", "style", "nav", "footer", "header", "aside", "noscript")

# Substrings that mark an <img> as site chrome rather than article imagery
ARTICLE_IMAGE_EXCLUDES = ("avatar", "icon")
ANY_IMAGE_EXCLUDES = ("logo", "avatar", "icon", "sprite", "1x1")
MIN_FALLBACK_IMAGE_SRC_LENGTH = 20

WHITESPACE_PATTERN = re.compile(r"\s+")
CONTENT_CLASS_PATTERN = re.compile("content")


@dataclass
class ExtractedDocument:
    """Text and lead image pulled from an article page."""

    content: str
    image: Optional[str] = None


def parse_document(markup: str) -> BeautifulSoup:
    return BeautifulSoup(markup or "", PARSER)


def _meta_content(soup: BeautifulSoup, key: str) -> Optional[str]:
    tag = soup.find("meta", attrs={"property": key}) or soup.find(
        "meta", attrs={"name": key}
    )
    if tag is None:
        return None
    value = (tag.get("content") or "").strip()
    return value or None


def image_from_open_graph(soup: BeautifulSoup) -> Optional[str]:
    return _meta_content(soup, "og:image")


def image_from_twitter_card(soup: BeautifulSoup) -> Optional[str]:
    return _meta_content(soup, "twitter:image")


def _first_img_src(container, excludes: Sequence[str], min_length: int = 0) -> Optional[str]:
    for img in container.find_all("img"):
        src = (img.get("src") or "").strip()
        if not src or src.startswith("data:"):
            continue
        lowered = src.lower()
        if any(marker in lowered for marker in excludes):
            continue
        if len(src) <= min_length:
            continue
        return src
    return None


def image_from_article_body(soup: BeautifulSoup) -> Optional[str]:
    """First non-chrome image inside <article>, else inside <main>."""
    for tag_name in ("article", "main"):
        container = soup.find(tag_name)
        if container is None:
            continue
        src = _first_img_src(container, ARTICLE_IMAGE_EXCLUDES)
        if src:
            return src
    return None


def image_from_any_img(soup: BeautifulSoup) -> Optional[str]:
    """First plausible image anywhere in the document."""
    return _first_img_src(soup, ANY_IMAGE_EXCLUDES, MIN_FALLBACK_IMAGE_SRC_LENGTH)


# Tried in order; the first hit wins
IMAGE_SELECTORS: Sequence[Callable[[BeautifulSoup], Optional[str]]] = (
    image_from_open_graph,
    image_from_twitter_card,
    image_from_article_body,
    image_from_any_img,
)


def select_image(soup: BeautifulSoup, base_url: Optional[str] = None) -> Optional[str]:
    """Pick the lead image URL, resolved against ``base_url`` when relative."""
    for selector in IMAGE_SELECTORS:
        src = selector(soup)
        if src:
            return urljoin(base_url, src) if base_url else src
    return None


def remove_noise(soup: BeautifulSoup) -> BeautifulSoup:
    """Drop scripts, styles and page chrome in place."""
    for element in soup(NOISE_ELEMENTS):
        element.decompose()
    return soup


def select_main_container(soup: BeautifulSoup):
    """<article>, else <main>, else first element with a *content* class, else the document."""
    return (
        soup.find("article")
        or soup.find("main")
        or soup.find(class_=CONTENT_CLASS_PATTERN)
        or soup
    )


def normalize_text(text: str) -> str:
    """Decode entities and collapse all whitespace runs to single spaces."""
    if not text:
        return ""
    return WHITESPACE_PATTERN.sub(" ", html.unescape(text)).strip()


def extract_text(soup: BeautifulSoup, max_length: int = 10000) -> str:
    """Main readable text of the page, capped at ``max_length`` characters.

    Mutates ``soup`` (noise elements are removed), so select the image first.
    """
    remove_noise(soup)
    container = select_main_container(soup)
    text = normalize_text(container.get_text(separator=" "))
    return text[:max_length]


def extract_document(
    markup: str, base_url: Optional[str] = None, max_length: int = 10000
) -> ExtractedDocument:
    """Parse ``markup`` once and run the image and text heuristics."""
    soup = parse_document(markup)
    image = select_image(soup, base_url)
    return ExtractedDocument(content=extract_text(soup, max_length), image=image)


def strip_tags(markup: Optional[str]) -> str:
    """Plain text of a fragment that may contain markup."""
    if not markup:
        return ""
    if "<" not in markup:
        return normalize_text(markup)
    return normalize_text(parse_document(markup).get_text(separator=" "))
