"""
Custom exceptions for watch access resolution.

Provides specific exception types for better error handling and debugging.
Every failure that reaches the presentation boundary is a ClassifiedFailure
carrying a ClassifiedError, so callers never see raw transport exceptions.
"""

from typing import Any, Optional


class WatchAccessError(Exception):
    """Base exception for watch access errors."""
    pass


class ConfigurationError(WatchAccessError):
    """Exception for configuration errors."""
    pass


class ValidationError(WatchAccessError):
    """Exception for data model validation errors."""
    pass


class InvalidTransitionError(WatchAccessError):
    """Raised when an unlock attempt is asked to make an illegal state change."""

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Illegal unlock transition: {current} -> {target}")


class ApiRequestError(WatchAccessError):
    """Raised by the API client for any non-2xx response.

    Keeps the status code and decoded body so callers can classify the
    failure and look for structured fields (e.g. a credit shortfall).
    """

    def __init__(self, message: str, status_code: int, payload: Optional[dict] = None):
        self.status_code = status_code
        self.payload = payload or {}
        super().__init__(message)


class ClassifiedFailure(WatchAccessError):
    """Base exception for failures already normalized by the error classifier."""

    def __init__(self, error: Any):
        self.error = error
        super().__init__(error.message)


class AccessResolutionError(ClassifiedFailure):
    """Exception for watch descriptor resolution failures."""
    pass

