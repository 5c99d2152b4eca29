# backend/app/core/exceptions.py
"""
Domain-specific exceptions for the studio booking platform.

These exceptions provide clear, business-focused error messages
that can be caught and handled appropriately at the API layer.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

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
        """Default conversion to HTTPException (override in subclasses)."""
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ValidationException(DomainException):
    """Raised when business validation fails."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ForbiddenException(DomainException):
    """Raised when a caller fails authentication or an integrity check."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


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


# Payment reconciliation exceptions


class InvoiceNotFoundException(NotFoundException):
    """Raised when a provider callback references an invoice we never issued."""

    def __init__(self, inv_id: int):
        super().__init__(
            message=f"Payment for invoice {inv_id} not found",
            code="INVOICE_NOT_FOUND",
            details={"inv_id": inv_id},
        )
        self.inv_id = inv_id


class SignatureInvalidException(ForbiddenException):
    """Raised when a provider callback carries a signature we did not compute."""

    def __init__(self, inv_id: int, channel: str):
        super().__init__(
            message="invalid signature",
            code="SIGNATURE_INVALID",
            details={"inv_id": inv_id, "channel": channel},
        )
        self.inv_id = inv_id
        self.channel = channel


class AmountMismatchException(ForbiddenException):
    """Raised when the callback amount differs from the amount on record."""

    def __init__(self, inv_id: int, received: str, expected: str):
        super().__init__(
            message="amount mismatch",
            code="AMOUNT_MISMATCH",
            details={"inv_id": inv_id, "received": received, "expected": expected},
        )
        self.inv_id = inv_id
        self.received = received
        self.expected = expected


class PaymentConfigurationError(ServiceException):
    """Raised when Robokassa credentials are missing."""

    def __init__(self, message: str = "robokassa credentials are not configured"):
        super().__init__(message=message, code="PAYMENT_NOT_CONFIGURED")


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """


def is_db_pool_exhaustion(exc: Exception) -> bool:
    """
    Check if an exception indicates DB connection pool exhaustion.

    This is a common failure mode under high load when all database
    connections are in use and new requests time out waiting.
    """
    error_str = str(exc).lower()
    return "queuepool" in error_str or (
        "timeout" in error_str and ("connection" in error_str or "pool" in error_str)
    )


def raise_503_if_pool_exhaustion(exc: Exception) -> None:
    """
    Convert DB pool exhaustion errors to HTTP 503 (Service Unavailable).

    Raises:
        HTTPException: 503 if pool exhaustion detected
        Does not raise if not pool exhaustion (caller should re-raise original)
    """
    if is_db_pool_exhaustion(exc):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service temporarily overloaded. Please retry.",
            headers={"Retry-After": "2"},
        )
