"""
FeedWarden Custom Exceptions
============================

Exception hierarchy for FeedWarden with error codes, context information,
and operator-facing messages.
"""

from typing import Optional, Dict, Any
from enum import Enum


class ErrorCode(str, Enum):
    """Error codes for categorizing exceptions."""

    # Configuration errors (C001-C099)
    CONFIG_INVALID = "C001"
    CONFIG_MISSING = "C002"
    CONFIG_PARSE_ERROR = "C003"

    # Database errors (D001-D099)
    DATABASE_CONNECTION = "D001"
    DATABASE_SCHEMA = "D002"
    DATABASE_CONSTRAINT = "D003"
    DATABASE_TRANSACTION = "D004"
    DATABASE_CORRUPTION = "D005"
    DATABASE_ERROR = "D006"

    # Feed ingestion errors (F001-F099)
    FEED_INVALID_URL = "F001"
    FEED_FETCH_TIMEOUT = "F002"
    FEED_PARSE_ERROR = "F003"
    FEED_NETWORK_ERROR = "F004"
    FEED_ACCESS_DENIED = "F005"
    FEED_NOT_FOUND = "F006"
    FEED_DISABLED = "F007"

    # Content extraction errors (X001-X099)
    EXTRACTION_HTTP_ERROR = "X001"
    EXTRACTION_NETWORK_ERROR = "X002"
    EXTRACTION_TIMEOUT = "X003"
    EXTRACTION_CONTENT_TOO_SHORT = "X004"
    EXTRACTION_PARSE_ERROR = "X005"

    # Lifecycle errors (L001-L099)
    LIFECYCLE_INVALID_TRANSITION = "L001"

    # Maintenance errors (M001-M099)
    RECONCILE_ABORTED = "M001"
    RECONCILE_FEED_LOAD_FAILED = "M002"

    # Validation errors (V001-V099)
    VALIDATION_REQUIRED_FIELD = "V001"
    VALIDATION_INVALID_FORMAT = "V002"
    VALIDATION_OUT_OF_RANGE = "V003"
    VALIDATION_DUPLICATE = "V004"

    # Resource management errors (R001-R099)
    DUPLICATE_RESOURCE = "R001"
    RESOURCE_NOT_FOUND = "R002"

    # System errors (S001-S099)
    SYSTEM_RESOURCE_EXHAUSTED = "S001"
    SYSTEM_PERMISSION_DENIED = "S002"
    SYSTEM_MEMORY_ERROR = "S004"


def _passthrough(kwargs: Dict[str, Any], *consumed: str) -> Dict[str, Any]:
    """Drop keyword arguments already consumed by a subclass."""
    return {k: v for k, v in kwargs.items() if k not in consumed}


class FeedWardenError(Exception):
    """Base exception for all FeedWarden errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[ErrorCode] = None,
        context: Optional[Dict[str, Any]] = None,
        user_message: Optional[str] = None,
        recoverable: bool = False,
    ):
        """Initialize FeedWarden error.

        Args:
            message: Technical error message for logging
            error_code: Categorized error code
            context: Additional context information
            user_message: Operator-friendly error message
            recoverable: Whether the error is recoverable
        """
        super().__init__(message)
        self.error_code = error_code
        self.context = context or {}
        self.user_message = user_message or message
        self.recoverable = recoverable

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code.value if self.error_code else None,
            "error_message": str(self),
            "user_message": self.user_message,
            "context": self.context,
            "recoverable": self.recoverable,
        }

    def __str__(self) -> str:
        """String representation with error code."""
        if self.error_code:
            return f"[{self.error_code.value}] {super().__str__()}"
        return super().__str__()


class ConfigurationError(FeedWardenError):
    """Configuration-related errors."""

    def __init__(self, message: str, config_key: Optional[str] = None, **kwargs):
        context = kwargs.get("context", {})
        if config_key:
            context["config_key"] = config_key

        super().__init__(
            message=message,
            error_code=kwargs.get("error_code", ErrorCode.CONFIG_INVALID),
            context=context,
            user_message=kwargs.get("user_message", f"Configuration error: {message}"),
            **_passthrough(kwargs, "context", "error_code", "user_message"),
        )


class DatabaseError(FeedWardenError):
    """Database-related errors."""

    def __init__(self, message: str, query: Optional[str] = None, **kwargs):
        """Initialize database error.

        Args:
            message: Error message
            query: SQL query that caused the error
            **kwargs: Additional arguments for FeedWardenError
        """
        context = kwargs.get("context", {})
        if query:
            context["query"] = query

        super().__init__(
            message=message,
            error_code=kwargs.get("error_code", ErrorCode.DATABASE_CONNECTION),
            context=context,
            user_message=kwargs.get("user_message", "Database operation failed"),
            recoverable=kwargs.get("recoverable", True),
            **_passthrough(
                kwargs, "context", "error_code", "user_message", "recoverable"
            ),
        )


class FeedError(FeedWardenError):
    """Feed ingestion and parsing errors."""

    def __init__(self, message: str, feed_url: Optional[str] = None, **kwargs):
        context = kwargs.get("context", {})
        if feed_url:
            context["feed_url"] = feed_url

        super().__init__(
            message=message,
            error_code=kwargs.get("error_code", ErrorCode.FEED_FETCH_TIMEOUT),
            context=context,
            user_message=kwargs.get(
                "user_message", f"Feed processing failed: {message}"
            ),
            recoverable=kwargs.get("recoverable", True),
            **_passthrough(
                kwargs, "context", "error_code", "user_message", "recoverable"
            ),
        )


class FeedFetchError(FeedError):
    """Feed download errors."""

    pass


class ExtractionError(FeedWardenError):
    """Article content extraction errors.

    ``transient`` separates network/HTTP failures, which count against the
    owning feed, from content-quality failures, which are terminal for the
    article only.
    """

    def __init__(
        self,
        message: str,
        article_id: Optional[str] = None,
        url: Optional[str] = None,
        transient: bool = True,
        **kwargs,
    ):
        context = kwargs.get("context", {})
        if article_id:
            context["article_id"] = article_id
        if url:
            context["url"] = url
        self.transient = transient

        super().__init__(
            message=message,
            error_code=kwargs.get("error_code", ErrorCode.EXTRACTION_NETWORK_ERROR),
            context=context,
            user_message=kwargs.get("user_message", message),
            recoverable=kwargs.get("recoverable", transient),
            **_passthrough(
                kwargs, "context", "error_code", "user_message", "recoverable"
            ),
        )


class LifecycleTransitionError(FeedWardenError):
    """Attempted backward or unknown article lifecycle move."""

    def __init__(self, current: str, target: str, **kwargs):
        context = kwargs.get("context", {})
        context.update({"current": current, "target": target})

        super().__init__(
            message=f"Lifecycle cannot move from '{current}' to '{target}'",
            error_code=ErrorCode.LIFECYCLE_INVALID_TRANSITION,
            context=context,
            user_message=kwargs.get("user_message", "Invalid article state change"),
            recoverable=False,
        )


class ReconciliationError(FeedWardenError):
    """Orphan reconciliation could not safely determine the active feed set."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message=message,
            error_code=kwargs.get("error_code", ErrorCode.RECONCILE_FEED_LOAD_FAILED),
            context=kwargs.get("context", {}),
            user_message=kwargs.get(
                "user_message", "Cleanup aborted: active feeds could not be loaded"
            ),
            recoverable=True,
        )


class ResourceNotFoundError(FeedWardenError):
    """Requested feed, article or setting does not exist."""

    def __init__(
        self, message: str, resource: str, resource_id: Optional[str] = None, **kwargs
    ):
        context = kwargs.get("context", {})
        context["resource"] = resource
        if resource_id is not None:
            context["resource_id"] = resource_id

        super().__init__(
            message=message,
            error_code=ErrorCode.RESOURCE_NOT_FOUND,
            context=context,
            user_message=kwargs.get("user_message", f"{resource.title()} not found"),
            recoverable=False,
        )


class ValidationError(FeedWardenError):
    """Data validation errors."""

    def __init__(self, message: str, field_name: Optional[str] = None, **kwargs):
        """Initialize validation error.

        Args:
            message: Error message
            field_name: Field name that failed validation
            **kwargs: Additional arguments for FeedWardenError
        """
        context = kwargs.get("context", {})
        if field_name:
            context["field_name"] = field_name

        super().__init__(
            message=message,
            error_code=kwargs.get("error_code", ErrorCode.VALIDATION_INVALID_FORMAT),
            context=context,
            user_message=kwargs.get(
                "user_message", f"Invalid {field_name or 'input'}: {message}"
            ),
            recoverable=kwargs.get("recoverable", False),
            **_passthrough(
                kwargs, "context", "error_code", "user_message", "recoverable"
            ),
        )


# Exception handling utilities


def handle_exception(
    exception: Exception,
    logger,
    operation: str,
    context: Optional[Dict[str, Any]] = None,
) -> FeedWardenError:
    """Convert generic exceptions to FeedWarden exceptions with logging.

    Args:
        exception: Original exception
        logger: Logger instance for error logging
        operation: Operation that was being performed
        context: Additional context information

    Returns:
        FeedWarden exception with proper categorization
    """
    context = context or {}
    context["operation"] = operation
    context["original_exception_type"] = type(exception).__name__

    if isinstance(exception, FeedWardenError):
        logger.error(f"Operation '{operation}' failed", extra=exception.to_dict())
        return exception

    elif isinstance(exception, (ConnectionError, TimeoutError)):
        error = FeedWardenError(
            message=f"Network error during {operation}: {str(exception)}",
            error_code=ErrorCode.FEED_NETWORK_ERROR,
            context=context,
            user_message="Network connection failed",
            recoverable=True,
        )

    elif isinstance(exception, PermissionError):
        error = FeedWardenError(
            message=f"Permission denied during {operation}: {str(exception)}",
            error_code=ErrorCode.SYSTEM_PERMISSION_DENIED,
            context=context,
            user_message="Access denied",
            recoverable=False,
        )

    elif isinstance(exception, MemoryError):
        error = FeedWardenError(
            message=f"Memory exhausted during {operation}: {str(exception)}",
            error_code=ErrorCode.SYSTEM_MEMORY_ERROR,
            context=context,
            user_message="System resources exhausted",
            recoverable=True,
        )

    else:
        error = FeedWardenError(
            message=f"Unexpected error during {operation}: {str(exception)}",
            context=context,
            user_message="An unexpected error occurred",
            recoverable=True,
        )

    logger.error(f"Operation '{operation}' failed", extra=error.to_dict())
    return error


def is_retryable_error(exception: FeedWardenError) -> bool:
    """Check if an error is worth retrying on the next trigger."""
    if not exception.recoverable:
        return False

    retryable_codes = {
        ErrorCode.FEED_NETWORK_ERROR,
        ErrorCode.FEED_FETCH_TIMEOUT,
        ErrorCode.EXTRACTION_NETWORK_ERROR,
        ErrorCode.EXTRACTION_TIMEOUT,
        ErrorCode.EXTRACTION_HTTP_ERROR,
        ErrorCode.DATABASE_CONNECTION,
        ErrorCode.SYSTEM_RESOURCE_EXHAUSTED,
    }

    return exception.error_code in retryable_codes
