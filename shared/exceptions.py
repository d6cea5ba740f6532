"""Custom exception classes for the LR inventory backend."""
from typing import Optional, Dict, Any

from fastapi import status


class InventoryException(Exception):
    """Base exception for all application-specific exceptions."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_error_code = "BAD_REQUEST"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(InventoryException):
    """Missing or out-of-range input."""
    default_error_code = "VALIDATION_ERROR"


class NotFoundError(InventoryException):
    """Raised when a referenced resource does not exist."""
    status_code = status.HTTP_404_NOT_FOUND
    default_error_code = "NOT_FOUND"


class ConflictError(InventoryException):
    """Raised when a request clashes with current state (duplicates, blocked deletes)."""
    default_error_code = "CONFLICT"


class InsufficientStockError(ConflictError):
    default_error_code = "INSUFFICIENT_STOCK"


class AlreadyCompletedError(ConflictError):
    default_error_code = "ALREADY_COMPLETED"


class AuthenticationError(InventoryException):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_error_code = "AUTHENTICATION_ERROR"


class AuthorizationError(InventoryException):
    status_code = status.HTTP_403_FORBIDDEN
    default_error_code = "AUTHORIZATION_ERROR"
