"""
Error taxonomy for Linkshelf services.

Every failure that reaches a user-facing layer is an ``AppError`` tagged with
an ``ErrorKind``. Callers choose messages by ``kind`` instead of inspecting
exception text.
"""

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

import httpx
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

# SQLSTATE codes surfaced by PostgreSQL
UNIQUE_VIOLATION = "23505"
FOREIGN_KEY_VIOLATION = "23503"
UNDEFINED_TABLE = "42P01"
INSUFFICIENT_PRIVILEGE = "42501"


class ErrorKind(Enum):
    """Closed set of failure categories."""

    NETWORK = "network"
    VALIDATION = "validation"
    STORE_CONFLICT = "store_conflict"
    STORE_REFERENCE = "store_reference"
    STORE_CONFIGURATION = "store_configuration"
    STORE_GENERIC = "store_generic"
    TRANSPORT_REJECTION = "transport_rejection"
    UNEXPECTED = "unexpected"


class AppError(Exception):
    """Base class for categorized failures."""

    kind: ErrorKind = ErrorKind.UNEXPECTED

    def __init__(
        self,
        message: str,
        *,
        code: Any = None,
        context: Optional[str] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.context = context
        self.cause = cause

    def with_context(self, context: str) -> "AppError":
        """Tag the error with the operation it happened in, keeping an existing tag."""
        if self.context is None:
            self.context = context
        return self

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind.value!r}, code={self.code!r}, message={self.message!r})"


class NetworkError(AppError):
    """Fetch failures: timeouts, DNS, refused connections, bad status, non-text bodies."""

    kind = ErrorKind.NETWORK

    def __init__(self, message: str, *, reason: str = "fetch", **kwargs):
        super().__init__(message, **kwargs)
        self.reason = reason


class ValidationError(AppError):
    """Malformed input rejected before any I/O."""

    kind = ErrorKind.VALIDATION

    def __init__(self, message: str, *, field: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.field = field


class StoreError(AppError):
    """Generic persistence failure."""

    kind = ErrorKind.STORE_GENERIC


class StoreConflictError(StoreError):
    kind = ErrorKind.STORE_CONFLICT


class StoreReferenceError(StoreError):
    kind = ErrorKind.STORE_REFERENCE


class StoreConfigurationError(StoreError):
    """Missing table or missing permission."""

    kind = ErrorKind.STORE_CONFIGURATION


class TransportError(AppError):
    """The chat transport refused to deliver a message."""

    kind = ErrorKind.TRANSPORT_REJECTION


class UnexpectedError(AppError):
    kind = ErrorKind.UNEXPECTED


def _sqlstate(error: SQLAlchemyError) -> Optional[str]:
    orig = getattr(error, "orig", None)
    return getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)


def translate_store_error(error: SQLAlchemyError, context: Optional[str] = None) -> StoreError:
    """Map a SQLAlchemy error onto the store error classes."""
    code = _sqlstate(error)
    text = str(getattr(error, "orig", None) or error).lower()

    if code == UNIQUE_VIOLATION or "unique constraint" in text:
        cls = StoreConflictError
        code = code or UNIQUE_VIOLATION
    elif code == FOREIGN_KEY_VIOLATION or "foreign key constraint" in text:
        cls = StoreReferenceError
        code = code or FOREIGN_KEY_VIOLATION
    elif code in (UNDEFINED_TABLE, INSUFFICIENT_PRIVILEGE) or "no such table" in text:
        cls = StoreConfigurationError
        code = code or UNDEFINED_TABLE
    elif isinstance(error, IntegrityError):
        cls = StoreConflictError
    else:
        cls = StoreError

    return cls(str(getattr(error, "orig", None) or error), code=code, context=context, cause=error)


def network_error_from_httpx(error: Exception, url: str, context: Optional[str] = None) -> NetworkError:
    """Classify an httpx failure by its reason."""
    if isinstance(error, httpx.TimeoutException):
        reason = "timeout"
        message = f"Timed out fetching {url}"
    elif isinstance(error, httpx.HTTPStatusError):
        reason = "http_status"
        message = f"HTTP {error.response.status_code} fetching {url}"
        return NetworkError(
            message,
            reason=reason,
            code=error.response.status_code,
            context=context,
            cause=error,
        )
    elif isinstance(error, httpx.ConnectError):
        text = str(error).lower()
        if "name or service not known" in text or "nodename nor servname" in text or "getaddrinfo" in text:
            reason = "dns"
            message = f"Could not resolve host for {url}"
        elif "refused" in text:
            reason = "connection_refused"
            message = f"Connection refused for {url}"
        else:
            reason = "fetch"
            message = f"Could not connect to {url}"
    else:
        reason = "fetch"
        message = f"Failed to fetch {url}: {error}"
    return NetworkError(message, reason=reason, context=context, cause=error)


def classify_exception(error: BaseException, context: Optional[str] = None) -> AppError:
    """Turn any exception into an ``AppError``."""
    if isinstance(error, AppError):
        return error.with_context(context) if context else error
    if isinstance(error, SQLAlchemyError):
        return translate_store_error(error, context=context)
    if isinstance(error, httpx.HTTPError):
        try:
            url = str(error.request.url)
        except RuntimeError:
            url = "resource"
        return network_error_from_httpx(error, url, context=context)
    return UnexpectedError(str(error) or type(error).__name__, context=context, cause=error)


def log_app_error(logger: logging.Logger, error: AppError, **context: Any) -> None:
    """Log an ``AppError`` with timestamp, context tag, kind and code.

    A failure while logging is never allowed to escape.
    """
    details: Dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "context": error.context,
        "error_kind": error.kind.value,
        "error_code": error.code,
    }
    details.update(context)
    try:
        logger.error(
            "🚨 %s [%s] %s",
            error.kind.value,
            error.context or "general",
            error.message,
            extra=details,
            exc_info=error.cause if error.cause is not None else None,
        )
    except Exception:  # noqa: BLE001
        pass
