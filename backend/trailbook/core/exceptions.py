# backend/trailbook/core/exceptions.py
"""
Domain-specific exceptions for the Trailbook platform.

These exceptions carry business-focused error messages that are translated
into the JSON error envelope at the API layer and into ``error`` events on
the realtime gateway.
"""

from typing import Any, Dict, Optional

from fastapi import status

HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)


class ValidationException(DomainException):
    """Raised when request input is malformed (InvalidArgument)."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""

    status_code = status.HTTP_409_CONFLICT


class BusinessRuleException(DomainException):
    """Raised when a precondition on current state is not met."""

    status_code = HTTP_422_UNPROCESSABLE


class UnauthorizedException(DomainException):
    """Raised when the caller is not authenticated."""

    status_code = status.HTTP_401_UNAUTHORIZED


class ForbiddenException(DomainException):
    """Raised when the caller lacks permission for an action."""

    status_code = status.HTTP_403_FORBIDDEN


class ServiceException(DomainException):
    """Raised when a service operation fails."""


# Specific business exceptions


class NotEligibleException(BusinessRuleException):
    """Raised when two users do not satisfy the connection eligibility rule."""

    def __init__(self, reason: str):
        super().__init__(
            message=f"Connection not eligible: {reason}",
            code="NOT_ELIGIBLE",
            details={"reason": reason},
        )


class DispatchException(Exception):
    """
    Raised when a task cannot be handed to the broker.

    Callers on the request path log and swallow it; consumers let it
    propagate so the delivery is retried.
    """


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """


class RepositoryConflictException(RepositoryException):
    """Raised when a write violates a uniqueness constraint."""
