"""
Custom exceptions for service layer.

Provides specific exception types for business logic errors
that can be translated to appropriate HTTP responses.

Read-path lookups (team membership) absorb UpstreamUnavailableError and
degrade to an empty team set. Mutations always propagate.
"""

from typing import Any, Optional


class ServiceError(Exception):
    """Base exception for service layer errors."""
    pass


class NotFoundError(ServiceError):
    """Raised when a requested resource is not found."""

    def __init__(self, resource: str, identifier: Any):
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} {identifier} not found")


class ConflictError(ServiceError):
    """Raised when an operation conflicts with existing state."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(ServiceError):
    """Raised when input validation fails."""

    def __init__(self, message: str, field: Optional[str] = None):
        self.message = message
        self.field = field
        super().__init__(message)


class ProtectedResourceError(ServiceError):
    """Raised when attempting a disallowed change to a protected resource.

    The default team cannot be deleted and users cannot be removed from it
    through the normal removal operation.
    """

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class UpstreamError(ServiceError):
    """Raised when the identity backend or document store fails."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class UpstreamUnavailableError(UpstreamError):
    """Raised when a read lookup against the identity backend fails.

    Callers on the read path catch this and degrade to an empty team set.
    """
    pass
