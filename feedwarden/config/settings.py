"""
FeedWarden Configuration System
===============================

Configuration management with environment variables and Pydantic models.
Environment variables override Field defaults with clear precedence.
"""

from pathlib import Path
from typing import List, Optional
from enum import Enum

from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings

from ..utils.exceptions import ConfigurationError, ErrorCode


class LogLevel(str, Enum):
    """Available log levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class HealthSettings(BaseModel):
    """Per-feed health thresholds and reliability scoring."""
    degraded_after: int = Field(default=2, ge=1, le=100, description="Consecutive failures before a feed is degraded (T1)")
    error_after: int = Field(default=3, ge=1, le=100, description="Consecutive failures before a feed is in error (T2)")
    disable_after: int = Field(default=5, ge=1, le=100, description="Consecutive failures before a feed is disabled (T3)")
    max_errors_24h: int = Field(default=20, ge=1, le=1000, description="Errors in 24h before a feed is disabled (E_max)")
    recovery_step: float = Field(default=10.0, ge=0.0, le=100.0, description="Reliability regained per success")
    penalty_step: float = Field(default=5.0, ge=0.0, le=100.0, description="Reliability lost per consecutive failure")
    max_penalty: float = Field(default=20.0, ge=0.0, le=100.0, description="Largest reliability loss for a single failure")

    @model_validator(mode="after")
    def validate_threshold_order(self):
        """Thresholds must escalate: degraded <= error <= disabled."""
        if not (self.degraded_after <= self.error_after <= self.disable_after):
            raise ValueError("health thresholds must satisfy degraded_after <= error_after <= disable_after")
        return self


class ExtractionSettings(BaseModel):
    """Article content extraction configuration."""
    request_timeout: int = Field(default=15, ge=1, le=300, description="Article fetch timeout in seconds")
    max_concurrent: int = Field(default=5, ge=1, le=50, description="Concurrent article fetches")
    user_agent: str = Field(default="FeedWarden/1.0 (+https://github.com/feedwarden/feedwarden)", description="User-Agent sent with article fetches")
    accept_header: str = Field(default="text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8")
    skip_content_length: int = Field(default=100, ge=0, description="Existing content longer than this is not re-extracted")
    min_content_length: int = Field(default=50, ge=1, description="Extracted text shorter than this is rejected")
    max_content_length: int = Field(default=10000, ge=500, le=100000, description="Extracted text is truncated to this length")


class QualitySettings(BaseModel):
    """Quality gate heuristics."""
    min_word_count: int = Field(default=100, ge=1, description="Minimum words for an article to pass")
    clickbait_penalty: int = Field(default=20, ge=0, le=100, description="Penalty per clickbait pattern match")
    clickbait_flag_threshold: int = Field(default=40, ge=0, le=100, description="Clickbait penalty at which an article is flagged")
    press_release_penalty: int = Field(default=50, ge=0, le=100)
    word_count_penalty: int = Field(default=30, ge=0, le=100)
    clickbait_patterns: List[str] = Field(
        default_factory=lambda: [
            r"you won['’]t believe",
            r"can['’]t miss",
            r"shocking truth",
            r"top \d+ (?:reasons|things)",
            r"mind-blowing",
        ],
        description="Case-insensitive clickbait regular expressions",
    )
    press_release_markers: List[str] = Field(
        default_factory=lambda: ["press release", "business wire", "prnewswire"],
        description="Case-insensitive press release markers",
    )


class RouteSettings(BaseModel):
    """A public route probed by the aggregate health scorer."""
    name: str
    path: str

    @field_validator("path")
    @classmethod
    def validate_path(cls, v):
        if not v.startswith("/"):
            raise ValueError("route path must start with '/'")
        return v


class MonitoringSettings(BaseModel):
    """Aggregate health scoring configuration."""
    base_url: Optional[str] = Field(
        default=None,
        description="Base URL the public routes are probed against; route probing is skipped while unset",
    )
    routes: List[RouteSettings] = Field(
        default_factory=lambda: [
            RouteSettings(name="Home", path="/"),
            RouteSettings(name="News", path="/news"),
            RouteSettings(name="Viral", path="/viral"),
            RouteSettings(name="API", path="/api/health"),
        ]
    )
    probe_timeout: int = Field(default=5, ge=1, le=60, description="Route probe timeout in seconds")
    probe_user_agent: str = Field(default="FeedWarden-Monitor/1.0")
    route_penalty: int = Field(default=10, ge=0, le=100, description="Score lost per failing route")
    error_window_minutes: int = Field(default=60, ge=1, le=1440, description="Trailing window for error counting")
    error_penalty_cap: int = Field(default=20, ge=0, le=100, description="Largest score loss from errors")
    reliability_weight: int = Field(default=30, ge=0, le=100, description="Score lost at zero mean reliability")
    recent_log_window_minutes: int = Field(default=5, ge=1, le=60)

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v):
        return v.rstrip("/") if v else None


class MaintenanceSettings(BaseModel):
    """Orphan reconciliation and backfill configuration."""
    allow_empty_active_set: bool = Field(
        default=False,
        description="Allow orphan cleanup to delete every sourced article when no feed is active",
    )


class IngestionSettings(BaseModel):
    """Feed sweep configuration."""
    request_timeout: int = Field(default=30, ge=5, le=300, description="Feed fetch timeout in seconds")
    parallel_feeds: int = Field(default=5, ge=1, le=20, description="Concurrent feed fetches")
    max_items_per_feed: int = Field(default=100, ge=1, le=1000)


class QuerySettings(BaseModel):
    """Article listing configuration."""
    published_window_days: int = Field(default=7, ge=1, le=365, description="Rolling window for published listings")
    default_limit: int = Field(default=50, ge=1, le=2000)
    max_limit: int = Field(default=2000, ge=1, le=10000)
    recent_default_limit: int = Field(default=20, ge=1, le=50)
    recent_max_limit: int = Field(default=50, ge=1, le=500)


class DatabaseSettings(BaseModel):
    """Database configuration."""
    path: str = Field(default="data/feedwarden.db", description="SQLite database file path")
    pool_size: int = Field(default=5, ge=1, le=20, description="Connection pool size")
    log_retention_days: int = Field(default=7, ge=1, le=365, description="Days to keep persisted logs")


class LoggingSettings(BaseModel):
    """Logging configuration."""
    level: LogLevel = Field(default=LogLevel.INFO, description="Global log level")
    file_path: Optional[str] = Field(default="logs/feedwarden.log", description="Log file path")
    max_file_size_mb: int = Field(default=10, ge=1, le=100, description="Max log file size in MB")
    backup_count: int = Field(default=5, ge=1, le=20, description="Number of log backup files")
    structured_logging: bool = Field(default=False, description="Use structured JSON logging")
    console_logging: bool = Field(default=True, description="Enable console logging")
    persist_to_database: bool = Field(default=True, description="Write log records to the logs table")
    persist_level: LogLevel = Field(default=LogLevel.INFO, description="Minimum level written to the logs table")


class FeedWardenSettings(BaseSettings):
    """Main application settings."""

    health: HealthSettings = Field(default_factory=HealthSettings)
    extraction: ExtractionSettings = Field(default_factory=ExtractionSettings)
    quality: QualitySettings = Field(default_factory=QualitySettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)
    maintenance: MaintenanceSettings = Field(default_factory=MaintenanceSettings)
    ingestion: IngestionSettings = Field(default_factory=IngestionSettings)
    query: QuerySettings = Field(default_factory=QuerySettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    app_name: str = Field(default="FeedWarden", description="Application name")
    version: str = Field(default="1.0.0", description="Application version")
    debug: bool = Field(default=False, description="Enable debug mode")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "env_nested_delimiter": "__",
        "env_prefix": "FEEDWARDEN_",
        "extra": "ignore",
    }

    def validate_configuration(self) -> None:
        """Validate complete configuration."""
        errors = []

        try:
            db_path = Path(self.database.path)
            db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            errors.append(f"Invalid database path: {e}")

        if self.logging.file_path:
            try:
                log_path = Path(self.logging.file_path)
                log_path.parent.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                errors.append(f"Invalid log file path: {e}")

        if self.query.default_limit > self.query.max_limit:
            errors.append("query.default_limit exceeds query.max_limit")

        if errors:
            raise ConfigurationError(
                f"Configuration validation failed: {'; '.join(errors)}",
                error_code=ErrorCode.CONFIG_INVALID
            )

    def get_effective_log_level(self) -> str:
        """Get effective log level considering debug mode."""
        if self.debug:
            return "DEBUG"
        return self.logging.level.value


def load_settings() -> FeedWardenSettings:
    """Load settings from environment variables and defaults.

    Returns:
        Loaded and validated settings

    Raises:
        ConfigurationError: If configuration is invalid
    """
    from dotenv import load_dotenv
    load_dotenv()

    try:
        # Precedence: environment, then .env file, then Field defaults
        settings = FeedWardenSettings()
        settings.validate_configuration()
        return settings

    except ConfigurationError:
        raise
    except Exception as e:
        raise ConfigurationError(
            f"Failed to initialize settings: {e}",
            error_code=ErrorCode.CONFIG_INVALID
        )


# Global settings instance
_settings: Optional[FeedWardenSettings] = None


def get_settings(reload: bool = False) -> FeedWardenSettings:
    """Get global settings instance (singleton pattern).

    Args:
        reload: Force reload of settings

    Returns:
        Global settings instance
    """
    global _settings

    if _settings is None or reload:
        _settings = load_settings()

    return _settings
