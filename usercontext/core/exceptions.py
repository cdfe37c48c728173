"""
Custom Exceptions - Application-specific error classes.

This module defines a hierarchy of exceptions for clean error handling:
- Each exception has a status code and error code
- Raised by the memory store, mapped to JSON responses by the API layer
- No stack traces leaked in production
"""
from typing import Optional


class UserContextException(Exception):
    """
    Base exception for all user context errors.

    Subclass this for specific error types.
    """
    status_code: int = 500
    error_code: str = "internal_error"

    def __init__(self, message: str, details: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        """Convert to error response dict."""
        return {
            "error": self.error_code,
            "message": self.message,
            "details": self.details
        }


class InvalidIdentity(UserContextException):
    """Raised when a user identity is empty or malformed. Checked before any I/O."""
    status_code = 400
    error_code = "invalid_identity"

    def __init__(self, message: str = "Invalid user identity", user_id: Optional[str] = None):
        super().__init__(message, details=f"user_id={user_id!r}" if user_id is not None else None)
        self.user_id = user_id


class MalformedPatch(UserContextException):
    """
    Raised when a patch does not match the memory record schema.

    The whole patch is rejected; nothing is persisted.
    """
    status_code = 422
    error_code = "malformed_patch"

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message, details=f"field={field}" if field else None)
        self.field = field


class StorageUnavailable(UserContextException):
    """
    Raised when the persistence medium cannot be reached or a write fails.

    The failed operation has no effect; callers may retry.
    """
    status_code = 503
    error_code = "storage_unavailable"

    def __init__(self, message: str = "Memory storage unavailable", details: Optional[str] = None):
        super().__init__(message, details)


class ValidationError(UserContextException):
    """Raised when request input validation fails."""
    status_code = 400
    error_code = "validation_error"

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message, details=f"field={field}" if field else None)
        self.field = field
