"""
Shared error handling for the PostgreSQL distributed cache.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response format."""

    code: str
    message: str
    details: Dict[str, Any] = {}


class CacheLayerException(Exception):
    """Base exception for the cache layer."""

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            code=self.code,
            message=self.message,
            details=self.details
        )


class InvalidExpirationError(CacheLayerException):
    """Expiration options are missing or not in the future."""

    def __init__(self, message: str = "Invalid expiration", details: Optional[Dict[str, Any]] = None):
        super().__init__("INVALID_EXPIRATION", message, details)


class ValidationError(CacheLayerException):
    """Validation-related errors."""

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class StoreError(CacheLayerException):
    """Failure communicating with or reported by the backing store."""

    def __init__(self, operation: str, message: str = "Store error", details: Optional[Dict[str, Any]] = None):
        self.operation = operation
        merged = {"operation": operation}
        merged.update(details or {})
        super().__init__("STORE_ERROR", f"{operation}: {message}", merged)


class StoreNotStartedError(StoreError):
    """Store used before its connection pool was opened."""

    def __init__(self, operation: str):
        super().__init__(operation, "store has not been started")
        self.code = "STORE_NOT_STARTED"
