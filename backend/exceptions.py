"""
Custom exceptions for the Horizon News backend.
Provides structured error handling with appropriate HTTP status codes.
"""

from typing import Any, Optional


class NewsroomError(Exception):
    """Base exception for all Horizon News errors."""
    status_code: int = 500
    message: str = "An internal error occurred"
    error_code: str = "INTERNAL_ERROR"

    def __init__(self, message: Optional[str] = None, details: Optional[dict[str, Any]] = None):
        self.message = message or self.__class__.message
        self.details = details or {}
        super().__init__(self.message)


# =============================================================================
# Validation Errors
# =============================================================================

class ValidationError(NewsroomError):
    """Raised when request validation fails."""
    status_code = 400
    message = "Validation error"
    error_code = "VALIDATION_ERROR"

    def __init__(self, message: Optional[str] = None, field_errors: Optional[dict[str, str]] = None):
        super().__init__(message, details={"field_errors": field_errors or {}})


# =============================================================================
# Authentication/Authorization Errors
# =============================================================================

class AuthenticationError(NewsroomError):
    """Raised when no valid credentials were presented."""
    status_code = 401
    message = "Authentication required"
    error_code = "AUTHENTICATION_REQUIRED"


class AuthorizationError(NewsroomError):
    """Raised when the signed-in account is not on the admin allow-list."""
    status_code = 403
    message = "Access denied"
    error_code = "ACCESS_DENIED"


# =============================================================================
# Resource Errors
# =============================================================================

class ResourceNotFoundError(NewsroomError):
    """Raised when a requested resource does not exist."""
    status_code = 404
    message = "Resource not found"
    error_code = "RESOURCE_NOT_FOUND"


class NewsNotFoundError(ResourceNotFoundError):
    """Raised when a news article id does not exist."""
    message = "News not found"
    error_code = "NEWS_NOT_FOUND"


class TagNotFoundError(ResourceNotFoundError):
    """Raised when a tag id does not exist."""
    message = "Tag not found"
    error_code = "TAG_NOT_FOUND"


class ImageNotFoundError(ResourceNotFoundError):
    """Raised when an image id does not exist."""
    message = "Image not found"
    error_code = "IMAGE_NOT_FOUND"


class ResourceConflictError(NewsroomError):
    """Raised when a resource conflict occurs (e.g., duplicate)."""
    status_code = 409
    message = "Resource conflict"
    error_code = "RESOURCE_CONFLICT"


# =============================================================================
# Outbound Request Errors
# =============================================================================

class FetchError(NewsroomError):
    """
    Raised when an outbound HTTP request fails.

    Attributes:
        url: Requested URL
        attempt: 0-based index of the attempt that produced this error
        status_code_received: HTTP status of the response, if one arrived
        attempts: Full attempt history, populated only in verbose mode
    """
    status_code = 502
    message = "Upstream request failed"
    error_code = "FETCH_ERROR"

    def __init__(
        self,
        message: Optional[str] = None,
        url: Optional[str] = None,
        attempt: int = 0,
        status_code_received: Optional[int] = None,
    ):
        super().__init__(message, details={"url": url, "attempt": attempt})
        self.url = url
        self.attempt = attempt
        self.status_code_received = status_code_received
        self.attempts: list = []
        if status_code_received is not None:
            self.details["status"] = status_code_received


class FetchTimeoutError(FetchError):
    """Raised when a single attempt exceeds its deadline."""
    status_code = 504
    message = "Upstream request timed out"
    error_code = "FETCH_TIMEOUT"


class PayloadDecodeError(FetchError):
    """Raised when a successful response carries an undecodable body."""
    message = "Upstream returned a malformed payload"
    error_code = "PAYLOAD_DECODE_ERROR"


# =============================================================================
# Storage / Database Errors
# =============================================================================

class StorageError(NewsroomError):
    """Raised when the object storage bucket rejects an operation."""
    status_code = 502
    message = "Object storage operation failed"
    error_code = "STORAGE_ERROR"


class DatabaseError(NewsroomError):
    """Raised when database operations fail."""
    status_code = 500
    message = "Database operation failed"
    error_code = "DATABASE_ERROR"
