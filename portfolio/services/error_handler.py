"""
Error handling utilities for the backend
Maps the exception taxonomy onto detailed error responses and log levels
"""

from typing import Optional, Dict, Any
from enum import Enum
import logging
import traceback
from datetime import datetime, timezone

from portfolio.exceptions import (
    AlreadyLiked,
    AuthorizationError,
    InvalidReference,
    NotFound,
    PartialFailure,
    PortfolioError,
    StoreAuthError,
    TransportFailure,
    ValidationError,
)

logger = logging.getLogger(__name__)


class ErrorCategory(str, Enum):
    """Error categories for classification"""
    INVALID_REFERENCE = "invalid_reference"
    NOT_FOUND = "not_found"
    TRANSPORT = "transport"
    VALIDATION = "validation"
    AUTHORIZATION = "authorization"
    ALREADY_LIKED = "already_liked"
    PARTIAL_FAILURE = "partial_failure"
    DATABASE = "database"
    UNKNOWN = "unknown"


class ErrorSeverity(str, Enum):
    """Error severity levels"""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class DetailedError:
    """Represents a detailed error with context"""

    def __init__(
        self,
        title: str,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        status_code: int = 500,
        technical_details: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        suggestions: Optional[list[str]] = None
    ):
        self.title = title
        self.message = message
        self.category = category
        self.severity = severity
        self.status_code = status_code
        self.technical_details = technical_details
        self.context = context or {}
        self.suggestions = suggestions or []
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self, include_technical: bool = False) -> Dict[str, Any]:
        """Convert to dictionary for API response"""
        payload = {
            "title": self.title,
            "message": self.message,
            "category": self.category.value,
            "severity": self.severity.value,
            "context": self.context,
            "suggestions": self.suggestions,
            "timestamp": self.timestamp.isoformat()
        }
        if include_technical:
            payload["technical_details"] = self.technical_details
        return payload


def create_error_response(
    exception: Exception,
    context: Optional[Dict[str, Any]] = None
) -> DetailedError:
    """
    Create a detailed error response from an exception

    Args:
        exception: The exception that occurred
        context: Additional context information (e.g. the failing operation)

    Returns:
        DetailedError object with categorized information
    """
    error_message = str(exception)
    error_type = type(exception).__name__
    context = dict(context or {})
    if isinstance(exception, PortfolioError):
        context.update(exception.context)
        status_code = exception.status_code
    else:
        status_code = 500
    technical = f"{error_type}: {error_message}"

    if isinstance(exception, InvalidReference):
        return DetailedError(
            title="Invalid Photo Reference",
            message=error_message,
            category=ErrorCategory.INVALID_REFERENCE,
            severity=ErrorSeverity.WARNING,
            status_code=status_code,
            technical_details=technical,
            context=context,
            suggestions=["Request the photo by its filename, e.g. /api/photos/<filename>"]
        )

    if isinstance(exception, NotFound):
        return DetailedError(
            title="Not Found",
            message=error_message,
            category=ErrorCategory.NOT_FOUND,
            severity=ErrorSeverity.INFO,
            status_code=status_code,
            technical_details=technical,
            context=context,
            suggestions=["Check the identifier", "Refresh the photo list"]
        )

    if isinstance(exception, ValidationError):
        return DetailedError(
            title="Invalid Input",
            message=error_message,
            category=ErrorCategory.VALIDATION,
            severity=ErrorSeverity.WARNING,
            status_code=status_code,
            technical_details=technical,
            context=context,
            suggestions=[
                "Ensure all required fields are provided",
                "Title and alt text must not be empty"
            ]
        )

    if isinstance(exception, AuthorizationError):
        return DetailedError(
            title="Unauthorized" if status_code == 401 else "Forbidden",
            message=error_message,
            category=ErrorCategory.AUTHORIZATION,
            severity=ErrorSeverity.WARNING,
            status_code=status_code,
            technical_details=technical,
            context=context,
            suggestions=["Sign in with an admin account"]
        )

    if isinstance(exception, AlreadyLiked):
        return DetailedError(
            title="Already Liked",
            message=error_message,
            category=ErrorCategory.ALREADY_LIKED,
            severity=ErrorSeverity.INFO,
            status_code=status_code,
            technical_details=technical,
            context=context,
        )

    if isinstance(exception, PartialFailure):
        return DetailedError(
            title="Partial Failure",
            message=error_message,
            category=ErrorCategory.PARTIAL_FAILURE,
            severity=ErrorSeverity.CRITICAL,
            status_code=status_code,
            technical_details=technical,
            context=context,
            suggestions=[
                "Reconcile storage and database manually",
                "Run the admin sync to list orphaned files"
            ]
        )

    if isinstance(exception, TransportFailure):
        suggestions = ["Retry the operation", "Check Nextcloud availability"]
        if isinstance(exception, StoreAuthError):
            suggestions = ["Verify NEXTCLOUD_USERNAME and NEXTCLOUD_PASSWORD"]
        return DetailedError(
            title="Storage Error",
            message=error_message,
            category=ErrorCategory.TRANSPORT,
            severity=ErrorSeverity.ERROR,
            status_code=status_code,
            technical_details=technical,
            context=context,
            suggestions=suggestions
        )

    # Database errors
    if "sqlalchemy" in type(exception).__module__:
        return DetailedError(
            title="Database Error",
            message="A database error occurred. Please try again.",
            category=ErrorCategory.DATABASE,
            severity=ErrorSeverity.CRITICAL,
            status_code=500,
            technical_details=technical,
            context=context,
            suggestions=[
                "Retry the operation",
                "Check database connectivity"
            ]
        )

    # Generic error
    return DetailedError(
        title="An Error Occurred",
        message="An unexpected error occurred.",
        category=ErrorCategory.UNKNOWN,
        severity=ErrorSeverity.ERROR,
        status_code=500,
        technical_details=f"{technical}\n\nTraceback:\n{traceback.format_exc()}",
        context=context,
        suggestions=[
            "Try the operation again",
            "Check the application logs",
            "Report this issue if it persists"
        ]
    )


def log_detailed_error(error: DetailedError, logger_instance: logging.Logger = None):
    """
    Log a detailed error with appropriate severity

    Args:
        error: The DetailedError to log
        logger_instance: Optional logger instance to use
    """
    log = logger_instance or logger

    log_message = f"{error.title}: {error.message}"
    if error.context:
        log_message += f" | Context: {error.context}"

    if error.severity == ErrorSeverity.CRITICAL:
        log.critical(log_message)
        if error.technical_details:
            log.critical(f"Technical details: {error.technical_details}")
    elif error.severity == ErrorSeverity.ERROR:
        log.error(log_message)
        if error.technical_details:
            log.error(f"Technical details: {error.technical_details}")
    elif error.severity == ErrorSeverity.WARNING:
        log.warning(log_message)
    else:
        log.info(log_message)
