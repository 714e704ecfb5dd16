"""
DailyFeed Exception Hierarchy
=============================

Errors raised while building the cache, each tagged with an ``ErrorCode``.

Only PersistError is fatal to a run. Feed, cache-load and date errors are
recovered where they occur (the source is skipped, the run starts from an
empty cache, the channel falls back to the run day) and only logged.
"""

import errno
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    """Stable codes for log filtering; the letter names the subsystem."""

    # Configuration
    CONFIG_INVALID = "C001"
    CONFIG_MISSING = "C002"

    # Feed sources
    FEED_INVALID_URL = "F001"
    FEED_FETCH_TIMEOUT = "F002"
    FEED_PARSE_ERROR = "F003"
    FEED_NETWORK_ERROR = "F004"
    FEED_HTTP_STATUS = "F005"

    # Cache artifact
    CACHE_NOT_FOUND = "K001"
    CACHE_UNREACHABLE = "K002"
    CACHE_MALFORMED = "K003"
    CACHE_WRITE_FAILED = "K004"

    # Channel dates
    DATE_MALFORMED = "T001"

    # Host
    SYSTEM_UNEXPECTED = "S001"
    SYSTEM_PERMISSION_DENIED = "S002"
    SYSTEM_DISK_FULL = "S003"


class DailyFeedError(Exception):
    """Base class for DailyFeed errors.

    Subclasses set ``default_code`` and ``default_recoverable``; both can be
    overridden per instance.
    """

    default_code: Optional[ErrorCode] = None
    default_recoverable = False
    user_prefix = ""

    def __init__(
        self,
        message: str,
        error_code: Optional[ErrorCode] = None,
        context: Optional[Dict[str, Any]] = None,
        user_message: Optional[str] = None,
        recoverable: Optional[bool] = None,
    ):
        """
        Args:
            message: Technical message, logged as is
            error_code: Overrides the class default code
            context: Fields attached to structured log records
            user_message: Short text for CLI output (default: prefix + message)
            recoverable: Whether the run can continue past this error
        """
        super().__init__(message)
        self.error_code = error_code or self.default_code
        self.context = dict(context or {})
        self.user_message = user_message or f"{self.user_prefix}{message}"
        self.recoverable = self.default_recoverable if recoverable is None else recoverable

    def _add_context(self, **fields: Any) -> None:
        self.context.update({k: v for k, v in fields.items() if v is not None})

    def to_dict(self) -> Dict[str, Any]:
        """Fields for a log record's ``extra``."""
        return {
            "error_type": type(self).__name__,
            "error_code": self.error_code.value if self.error_code else None,
            "error_message": str(self),
            "user_message": self.user_message,
            "context": self.context,
            "recoverable": self.recoverable,
        }

    def __str__(self) -> str:
        message = super().__str__()
        return f"[{self.error_code.value}] {message}" if self.error_code else message


class ConfigurationError(DailyFeedError):
    """Invalid or missing configuration."""

    default_code = ErrorCode.CONFIG_INVALID
    user_prefix = "Configuration error: "

    def __init__(self, message: str, config_key: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self._add_context(config_key=config_key)


class FeedError(DailyFeedError):
    """A single source could not be used. The run skips it."""

    default_code = ErrorCode.FEED_NETWORK_ERROR
    default_recoverable = True
    user_prefix = "Feed skipped: "

    def __init__(self, message: str, feed_url: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.feed_url = feed_url
        self._add_context(feed_url=feed_url)


class SourceFetchError(FeedError):
    """Transport failure, timeout or non-2xx response."""

    def __init__(self, message: str, feed_url: Optional[str] = None,
                 status: Optional[int] = None, **kwargs):
        if status is not None:
            kwargs.setdefault("error_code", ErrorCode.FEED_HTTP_STATUS)
        super().__init__(message, feed_url=feed_url, **kwargs)
        self.status = status
        self._add_context(status=status)


class FeedParseError(FeedError):
    """Payload is not a usable syndication feed."""

    default_code = ErrorCode.FEED_PARSE_ERROR


class CacheError(DailyFeedError):
    """Problem with the persisted aggregate."""

    default_code = ErrorCode.CACHE_MALFORMED
    default_recoverable = True
    user_prefix = "Cache error: "

    def __init__(self, message: str, location: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.location = location
        self._add_context(location=location)


class CacheLoadError(CacheError):
    """Prior cache missing, unreachable or malformed. The run starts empty."""


class PersistError(CacheError):
    """The artifact could not be written. Always fatal."""

    default_code = ErrorCode.CACHE_WRITE_FAILED

    def __init__(self, message: str, location: Optional[str] = None, **kwargs):
        kwargs["recoverable"] = False
        super().__init__(message, location=location, **kwargs)


class DateExtractionError(DailyFeedError):
    """A channel declared a publication date that cannot be parsed."""

    default_code = ErrorCode.DATE_MALFORMED
    default_recoverable = True

    def __init__(self, message: str, raw_date: Optional[str] = None,
                 feed_url: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self._add_context(raw_date=raw_date, feed_url=feed_url)


def handle_exception(
    exception: Exception,
    logger,
    operation: str,
    context: Optional[Dict[str, Any]] = None,
) -> DailyFeedError:
    """Log ``exception`` and return it as a DailyFeedError.

    DailyFeed errors are logged and returned unchanged. Host errors are
    classified (disk full, permission denied) so the CLI can report them.
    """
    if isinstance(exception, DailyFeedError):
        logger.error(f"Operation '{operation}' failed", extra=exception.to_dict())
        return exception

    context = {
        **(context or {}),
        "operation": operation,
        "original_exception_type": type(exception).__name__,
    }

    if isinstance(exception, OSError) and exception.errno == errno.ENOSPC:
        code, user_message = ErrorCode.SYSTEM_DISK_FULL, "No space left on device"
    elif isinstance(exception, PermissionError):
        code, user_message = ErrorCode.SYSTEM_PERMISSION_DENIED, "Access denied"
    else:
        code, user_message = ErrorCode.SYSTEM_UNEXPECTED, "An unexpected error occurred"

    error = DailyFeedError(
        f"{type(exception).__name__} during {operation}: {exception}",
        error_code=code,
        context=context,
        user_message=user_message,
    )
    logger.error(f"Operation '{operation}' failed", extra=error.to_dict())
    return error
