"""
FeedWarden - Feed Ingestion and Health Core
===========================================

Keeps a news feed registry healthy and its article queue moving.

Main Components:
- Database: SQLite with connection pooling and schema management
- Configuration: environment variables with Pydantic validation
- Ingestion: feed sweeping and article content extraction
- Processing: quality grading and lifecycle transitions
- Monitoring: per-feed health tracking and the system health score
- Maintenance: orphaned article cleanup
"""

__version__ = "1.0.0"
__author__ = "FeedWarden Development Team"
__description__ = "Feed ingestion and health core for news aggregation"

# Core imports for easy access
from .config.settings import get_settings
from .database.connection import get_db_manager
from .database.schema import DatabaseSchema
from .utils.logging import configure_application_logging, get_logger_for_component
from .utils.exceptions import FeedWardenError

__all__ = [
    "get_settings",
    "get_db_manager",
    "DatabaseSchema",
    "configure_application_logging",
    "get_logger_for_component",
    "FeedWardenError",
]
