# backend/dispatchly/core/exceptions.py
"""
Domain-specific exceptions for the Dispatchly scheduling engine.

These exceptions carry a stable machine-readable code so the API layer can
translate them into HTTP responses without inspecting messages.

Eligibility and concurrency results (no eligible provider, already assigned)
are NOT exceptions; they are returned as typed outcomes by the services.
"""

from typing import Any, Dict, NoReturn, Optional

from fastapi import HTTPException, status

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

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ValidationException(DomainException):
    """Raised when request data fails business validation."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundException(DomainException):
    """Raised when a requested resource is not found in the business scope."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""

    status_code = status.HTTP_409_CONFLICT


class BusinessRuleException(DomainException):
    """Raised when a business rule is violated."""

    status_code = HTTP_422_UNPROCESSABLE


class ServiceException(DomainException):
    """Raised when a service operation fails."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "message": self.message or "An error occurred processing your request",
                "code": self.code,
                "details": self.details if self.details else {},
            },
        )


# Specific scheduling exceptions


class BookingConflictException(ConflictException):
    """Raised when a booking conflicts with the provider's calendar."""

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        code: str = "BOOKING_CONFLICT",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message or "This time slot conflicts with an existing booking",
            code=code,
            details=details or {},
        )


class CapacityExceededException(BusinessRuleException):
    """Raised when a business spot limit rejects a new booking."""

    def __init__(self, reason: str, message: str, *, details: Optional[Dict[str, Any]] = None):
        self.reason = reason
        super().__init__(message=message, code=reason, details=details or {})


class AlreadyAssignedException(ConflictException):
    """Raised at the HTTP edge when a conditional assignment lost the race."""

    def __init__(self, booking_id: str):
        super().__init__(
            message="Booking has already been assigned to a provider",
            code="ALREADY_ASSIGNED",
            details={"booking_id": booking_id},
        )


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    raise exc.to_http_exception()
