"""
FeedWarden Data Models
======================

Pydantic data models matching the database schema. They provide
validation, serialization, and type hints for the rest of the application.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Dict, Any
from pydantic import BaseModel, Field, field_validator
import uuid


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    """Serialize a datetime for storage.

    Stored timestamps are fixed-width UTC ISO strings so that SQLite text
    comparisons order them chronologically.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse a stored timestamp back into an aware datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class FeedType(str, Enum):
    """Supported feed formats."""
    RSS = "rss"
    ATOM = "atom"
    SITEMAP = "sitemap"


class FeedStatus(str, Enum):
    """Feed health status, ordered from best to worst."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    ERROR = "error"
    DISABLED = "disabled"


class Lifecycle(str, Enum):
    """Article lifecycle states."""
    QUEUED = "queued"
    PROCESSED = "processed"
    BLOCKED = "blocked"
    PUBLISHED = "published"
    ERROR = "error"


class LogLevel(str, Enum):
    """Persisted log levels."""
    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


class FetchOutcome(str, Enum):
    """Result of one fetch attempt against a feed's origin."""
    SUCCESS = "success"
    FAILURE = "failure"


class FeedHealth(BaseModel):
    """Per-feed reliability record.

    Treated as a value: transitions produce a new instance through
    ``model_copy`` rather than mutating in place.
    """
    status: FeedStatus = Field(default=FeedStatus.HEALTHY)
    reliability_score: float = Field(default=100.0, ge=0.0, le=100.0)
    consecutive_failures: int = Field(default=0, ge=0)
    error_count_24h: int = Field(default=0, ge=0)
    last_check: Optional[datetime] = Field(default=None)
    last_success: Optional[datetime] = Field(default=None)
    last_error: Optional[str] = Field(default=None)

    model_config = {"frozen": True}

    def is_disabled(self) -> bool:
        return self.status == FeedStatus.DISABLED


class Feed(BaseModel):
    """Feed source with its embedded health record."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), description="Feed ID")
    source_id: str = Field(..., min_length=1, max_length=255, description="Origin identifier shared with articles")
    url: str = Field(..., min_length=1, description="Feed URL")
    type: FeedType = Field(default=FeedType.RSS)
    active: bool = Field(default=True, description="Whether the feed is swept")
    health: FeedHealth = Field(default_factory=FeedHealth)
    fetch_interval_minutes: Optional[int] = Field(default=None, ge=1, description="Per-feed sweep interval")
    last_fetched_at: Optional[datetime] = Field(default=None)
    last_content_hash: Optional[str] = Field(default=None)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @field_validator('url')
    @classmethod
    def validate_url(cls, v):
        v = v.strip()
        if not v.lower().startswith(("http://", "https://")):
            raise ValueError("Feed URL must use http or https")
        return v

    @field_validator('source_id')
    @classmethod
    def normalize_source_id(cls, v):
        return v.strip().lower()

    def __str__(self) -> str:
        return f"Feed({self.source_id}:{self.url})"


class Article(BaseModel):
    """Ingested article."""
    id: str = Field(..., min_length=1, description="sha1 of the normalized URL")
    source_id: Optional[str] = Field(default=None, description="Origin identifier, matches Feed.source_id")
    url: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1, max_length=1000)
    summary: Optional[str] = Field(default=None)
    content: Optional[str] = Field(default=None)
    image: Optional[str] = Field(default=None)
    quality_score: Optional[int] = Field(default=None, ge=0, le=100)
    fetch_error: Optional[str] = Field(default=None)
    lifecycle: Lifecycle = Field(default=Lifecycle.QUEUED)
    created_at: datetime = Field(default_factory=utc_now)
    last_fetched_at: Optional[datetime] = Field(default=None)
    published_at: Optional[datetime] = Field(default=None)
    updated_at: Optional[datetime] = Field(default=None)

    @property
    def effective_date(self) -> datetime:
        """Publication date when known, otherwise ingestion date."""
        return self.published_at or self.created_at

    def content_length(self) -> int:
        return len(self.content or "")

    def __str__(self) -> str:
        return f"Article({self.title[:50]}...)"


class LogEntry(BaseModel):
    """Persisted log record."""
    id: Optional[int] = Field(default=None)
    level: LogLevel
    message: str
    context: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=utc_now)


class RouteProbeResult(BaseModel):
    """Outcome of one public route probe."""
    name: str
    path: str
    status: int = Field(..., description="HTTP status, 599 for network errors and timeouts")
    latency_ms: int = Field(default=0, ge=0)
    ok: bool = Field(default=False)
    error: Optional[str] = Field(default=None)


class FeedStats(BaseModel):
    """Registry-wide feed figures."""
    total: int = 0
    active: int = 0
    inactive: int = 0
    disabled: int = 0
    mean_reliability: float = 100.0


class ErrorRate(BaseModel):
    """Recent error volume from persisted logs."""
    errors_last_hour: int = 0
    logs_last_5_minutes: int = 0


class SystemHealthSnapshot(BaseModel):
    """Aggregate health at a point in time. Never persisted."""
    timestamp: datetime = Field(default_factory=utc_now)
    health_score: int = Field(..., ge=0, le=100)
    queue_counts: Dict[str, int] = Field(default_factory=dict)
    feed_stats: FeedStats = Field(default_factory=FeedStats)
    error_rate: ErrorRate = Field(default_factory=ErrorRate)
    route_probe_results: List[RouteProbeResult] = Field(default_factory=list)
    db_size_bytes: int = Field(default=0, ge=0)
    duration_ms: int = Field(default=0, ge=0)

    @property
    def failed_routes(self) -> List[RouteProbeResult]:
        return [r for r in self.route_probe_results if not r.ok]


class SystemConfig(BaseModel):
    """Operator-editable settings stored under the ``config`` key."""
    default_fetch_interval: int = Field(default=60, ge=1, description="Minutes between feed sweeps")
    time_zone: str = Field(default="Asia/Kolkata")
    locale: str = Field(default="en-IN")
    default_news_limit: int = Field(default=100, ge=1, le=2000)

    model_config = {"extra": "allow"}
