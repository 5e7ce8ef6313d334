"""
Custom exceptions for the mirror engine with structured error context.

This module provides the exception hierarchy used throughout the sync
pipeline. Each exception carries context information for debugging and
for the sync log.

Exception Hierarchy:
    MirrorException (base)
    ├── GatewayError
    │   ├── NetworkError (retryable)
    │   ├── RateLimitError (retryable)
    │   ├── AuthenticationError (non-retryable)
    │   ├── PaginationError
    │   └── SchemaDiscoveryError
    ├── SyncError
    │   └── ParentRelationMissingError (non-retryable)
    ├── LoadError
    │   └── DatabaseError
    ├── InvalidIdentifierError (non-retryable)
    └── RetryableError / NonRetryableError (mixins)
"""

from typing import Optional, Dict, Any
from datetime import datetime, timezone


class MirrorException(Exception):
    """
    Base exception for all mirror-related errors.

    Attributes:
        message: Human-readable error message
        context: Additional context information (resource, url, etc.)
        original_exception: The original exception that was caught (if any)
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        self.message = message
        self.context = context or {}
        self.original_exception = original_exception
        self.timestamp = datetime.now(timezone.utc)

        self.context["error_timestamp"] = self.timestamp.isoformat()

        super().__init__(message)
        if original_exception:
            self.__cause__ = original_exception

    def __str__(self) -> str:
        """Format error message with context."""
        base_msg = f"{self.__class__.__name__}: {self.message}"

        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base_msg += f" | Context: {context_str}"

        if self.original_exception:
            base_msg += f" | Caused by: {type(self.original_exception).__name__}: {str(self.original_exception)}"

        return base_msg

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/storage."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "original_error": str(self.original_exception) if self.original_exception else None
        }


# ============================================================================
# Retry Strategy Mixins
# ============================================================================

class RetryableError(MirrorException):
    """
    Mixin for errors that the fetcher retries locally.

    Use this for transient errors like:
    - Network timeouts and connection resets
    - Rate limiting (HTTP 429)
    - Upstream 5xx responses
    """
    pass


class NonRetryableError(MirrorException):
    """
    Mixin for errors that must NOT trigger retry logic.

    Use this for permanent errors like:
    - Authorization failures (HTTP 401, 403)
    - Missing parent relations for fan-out endpoints
    - Invalid relation identifiers
    """
    pass


# ============================================================================
# Gateway Errors
# ============================================================================

class GatewayError(MirrorException):
    """
    Exception raised when a gateway call fails.

    Context should include:
        - url: The gateway URL that failed
        - status_code: HTTP status code (if applicable)
        - response_body: Response body (truncated)
        - retry_count: Number of attempts made
    """
    pass


class NetworkError(RetryableError, GatewayError):
    """Transport-level failures that were retried until the bound."""
    pass


class RateLimitError(RetryableError, GatewayError):
    """Rate limiting errors (HTTP 429) still present on the final attempt."""

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None,
        retry_after: Optional[float] = None
    ):
        super().__init__(message, context, original_exception)
        self.retry_after = retry_after  # Seconds the server asked us to wait
        if retry_after:
            self.context["retry_after"] = retry_after


class AuthenticationError(NonRetryableError, GatewayError):
    """
    Authorization failures (HTTP 401, 403), never retried.

    The upstream body is kept verbatim so callers can tell a bad proxy
    secret from an upstream token problem.
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None,
        status_code: Optional[int] = None,
        upstream: Any = None
    ):
        super().__init__(message, context, original_exception)
        self.status_code = status_code
        self.upstream = upstream
        self.context["status_code"] = status_code


class PaginationError(GatewayError):
    """
    Raised when any page fetch fails; pagination never returns partial data.

    Context should include:
        - path: Endpoint path being paginated
        - pages_fetched: Number of pages successfully fetched before failure
    """
    pass


class SchemaDiscoveryError(GatewayError):
    """Raised when the gateway schema catalog cannot be loaded."""
    pass


# ============================================================================
# Sync Errors
# ============================================================================

class SyncError(MirrorException):
    """Base exception for per-resource synchronization failures."""
    pass


class ParentRelationMissingError(NonRetryableError, SyncError):
    """
    Raised when a parameterized endpoint's parent relation does not exist.

    Context should include:
        - path: The parameterized endpoint path
        - parent: The derived parent relation name
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None,
        parent: Optional[str] = None
    ):
        super().__init__(message, context, original_exception)
        self.parent = parent
        self.context["parent"] = parent


# ============================================================================
# Load Errors
# ============================================================================

class LoadError(MirrorException):
    """Base exception for persistence failures."""
    pass


class DatabaseError(LoadError):
    """
    Exception raised when a storage statement fails.

    Context should include:
        - operation: Type of operation (CREATE, INSERT, ALTER, SELECT)
        - table_name: Name of the relation
    """
    pass


# ============================================================================
# Identifier Errors
# ============================================================================

class InvalidIdentifierError(NonRetryableError):
    """
    Raised when a relation name sanitizes to nothing or collides with
    another source or a reserved engine relation.
    """
    pass
