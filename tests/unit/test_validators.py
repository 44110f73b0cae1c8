"""
Tests for Input Validators
==========================
"""

import hashlib
import pytest

from feedwarden.utils.exceptions import ValidationError
from feedwarden.utils.validators import (
    URLValidator,
    article_id_for_url,
    infer_feed_type,
    infer_source_id,
    validate_title,
)


class TestValidateFeedUrl:
    def test_normalizes_scheme_and_host(self):
        assert URLValidator.validate_feed_url(" HTTPS://News.Example.com/rss#top ") == (
            "https://news.example.com/rss"
        )

    def test_empty_path_becomes_root(self):
        assert URLValidator.validate_feed_url("https://example.com") == "https://example.com/"

    @pytest.mark.parametrize(
        "url",
        [
            "",
            "ftp://example.com/feed",
            "https:///no-host",
            "http://localhost:8080/rss",
            "http://127.0.0.1/rss",
            "http://192.168.1.20/rss",
            "http://10.0.0.5/rss",
        ],
    )
    def test_rejects(self, url):
        with pytest.raises(ValidationError):
            URLValidator.validate_feed_url(url)


class TestNormalizeArticleUrl:
    def test_drops_tracking_params_and_fragment(self):
        url = "http://Example.com/news/story/?utm_source=tw&fbclid=abc&ref=home#comments"
        assert URLValidator.normalize_article_url(url) == "https://example.com/news/story"

    def test_keeps_meaningful_query(self):
        url = "https://example.com/article?id=42&utm_medium=email"
        assert URLValidator.normalize_article_url(url) == "https://example.com/article?id=42"

    def test_root_trailing_slash(self):
        assert URLValidator.normalize_article_url("https://example.com/") == "https://example.com"

    def test_relative_input_returned_stripped(self):
        assert URLValidator.normalize_article_url("  /just/a/path ") == "/just/a/path"


class TestArticleId:
    def test_sha1_of_normalized_url(self):
        expected = hashlib.sha1(b"https://example.com/story").hexdigest()
        assert article_id_for_url("http://example.com/story/?utm_campaign=x") == expected

    def test_variants_share_id(self):
        assert article_id_for_url("https://example.com/story#a") == article_id_for_url(
            "http://EXAMPLE.com/story/"
        )


class TestInference:
    @pytest.mark.parametrize(
        "url,expected",
        [
            ("https://www.example.com/rss", "example"),
            ("https://feeds.bbci.co.uk/news/rss.xml", "feeds"),
            ("http://intranet/rss", "intranet"),
            ("not a url", "source"),
        ],
    )
    def test_infer_source_id(self, url, expected):
        assert infer_source_id(url) == expected

    @pytest.mark.parametrize(
        "url,expected",
        [
            ("https://example.com/sitemap-news.xml", "sitemap"),
            ("https://example.com/atom.xml", "atom"),
            ("https://example.com/feed", "rss"),
        ],
    )
    def test_infer_feed_type(self, url, expected):
        assert infer_feed_type(url) == expected


class TestValidateTitle:
    def test_sanitizes(self):
        assert validate_title("  Breaking:\n\tfloods\x00 hit coast ") == "Breaking: floods hit coast"

    def test_truncates(self):
        assert len(validate_title("a" * 2000)) == 1000

    @pytest.mark.parametrize("title", [None, "", "   "])
    def test_requires_text(self, title):
        with pytest.raises(ValidationError):
            validate_title(title)
