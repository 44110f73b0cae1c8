"""
PyTest Configuration and Fixtures
=================================

Shared fixtures and configuration for FeedWarden tests.

Every test gets its own temporary SQLite file with the full schema, so
repository and service tests never share state.
"""

import pytest
import tempfile
import os
import sys
from datetime import datetime, timezone
from pathlib import Path

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent.parent))

# Set test environment variables before any imports
_TEST_DIR = Path(tempfile.gettempdir()) / "feedwarden_tests"
os.environ["FEEDWARDEN_DATABASE__PATH"] = str(_TEST_DIR / "feedwarden_settings.db")
os.environ["FEEDWARDEN_LOGGING__FILE_PATH"] = str(_TEST_DIR / "feedwarden_test.log")
os.environ["FEEDWARDEN_LOGGING__PERSIST_TO_DATABASE"] = "false"
os.environ["FEEDWARDEN_DEBUG"] = "true"


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
def temp_db():
    """Temporary database file with the schema created."""
    from feedwarden.database.schema import DatabaseSchema

    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = f.name

    DatabaseSchema(db_path).create_tables()

    yield db_path

    for suffix in ("", "-wal", "-shm"):
        try:
            os.unlink(db_path + suffix)
        except FileNotFoundError:
            pass


@pytest.fixture
def db_connection(temp_db):
    """Create a database connection manager for testing."""
    from feedwarden.database.connection import DatabaseConnection

    connection = DatabaseConnection(temp_db, pool_size=2)
    yield connection

    connection.close_all_connections()


@pytest.fixture
def feed_repo(db_connection):
    from feedwarden.storage.feed_repository import FeedRepository

    return FeedRepository(db_connection)


@pytest.fixture
def article_repo(db_connection):
    from feedwarden.storage.article_repository import ArticleRepository

    return ArticleRepository(db_connection)


# ============================================================================
# Data Factories
# ============================================================================


@pytest.fixture
def make_feed(feed_repo):
    """Store a feed and return it.

    Usage:
        feed = make_feed("example", health=FeedHealth(consecutive_failures=2))
    """
    from feedwarden.database.models import Feed

    def _make(source_id="example", url=None, **kwargs):
        feed = Feed(
            source_id=source_id,
            url=url or f"https://{source_id}.com/feed.xml",
            **kwargs,
        )
        feed_repo.create_feed(feed)
        return feed

    return _make


@pytest.fixture
def make_article(article_repo):
    """Store an article and return it."""
    from feedwarden.database.models import Article
    from feedwarden.utils.validators import article_id_for_url

    def _make(url, source_id="example", title="Sample headline", **kwargs):
        article = Article(
            id=kwargs.pop("id", None) or article_id_for_url(url),
            source_id=source_id,
            url=url,
            title=title,
            **kwargs,
        )
        article_repo.create_article(article)
        return article

    return _make


@pytest.fixture
def now():
    return datetime.now(timezone.utc)


@pytest.fixture
def long_article_html():
    """Article page with enough words to pass the quality gate."""
    paragraph = " ".join(f"word{i}" for i in range(150))
    return f"""
    <html>
      <head>
        <title>Sample</title>
        <meta property="og:image" content="/images/lead.jpg">
        <script>var tracking = true;</script>
      </head>
      <body>
        <nav>Home News Sports</nav>
        <article>
          <h1>Council approves new transit budget</h1>
          <p>{paragraph}</p>
        </article>
        <footer>Copyright</footer>
      </body>
    </html>
    """