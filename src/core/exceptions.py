"""Custom exceptions and error codes."""

from enum import StrEnum
from typing import Any


class ErrorCode(StrEnum):
    """Standardized error codes for the service."""

    # Validation errors (400)
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_SOCIAL_LINKS = "INVALID_SOCIAL_LINKS"

    # Server errors (500)
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"
    DATABASE_ERROR = "DATABASE_ERROR"


class AppException(Exception):
    """Base application exception."""

    def __init__(
        self,
        error_code: ErrorCode,
        message: str,
        status_code: int = 400,
        details: Any | None = None,
    ) -> None:
        self.error_code = error_code
        self.message = message
        self.status_code = status_code
        self.details = details
        super().__init__(self.message)


class ConfigurationError(AppException):
    """Required configuration is missing or empty."""

    def __init__(self, message: str = "The connection string cannot be null or empty") -> None:
        super().__init__(
            error_code=ErrorCode.CONFIGURATION_ERROR,
            message=message,
            status_code=500,
        )


class InvalidPaginationError(AppException):
    """Page or page size outside the accepted range."""

    def __init__(self, page: int, page_size: int) -> None:
        super().__init__(
            error_code=ErrorCode.VALIDATION_ERROR,
            message="page and page_size must both be at least 1",
            status_code=400,
            details={"page": page, "page_size": page_size},
        )


class MissingIdentityError(AppException):
    """An operation that targets an existing row was given an entity without an id."""

    def __init__(self, entity: str = "user") -> None:
        super().__init__(
            error_code=ErrorCode.VALIDATION_ERROR,
            message=f"Cannot update a {entity} without an id",
            status_code=400,
            details={"entity": entity},
        )


class SocialLinksDecodeError(AppException):
    """Social links text is not a JSON object of string to string."""

    def __init__(self, reason: str) -> None:
        super().__init__(
            error_code=ErrorCode.INVALID_SOCIAL_LINKS,
            message=f"Invalid social links: {reason}",
            status_code=400,
            details={"reason": reason},
        )


class PersistenceError(AppException):
    """The underlying store rejected or failed a statement."""

    def __init__(self, operation: str, cause: Exception) -> None:
        super().__init__(
            error_code=ErrorCode.DATABASE_ERROR,
            message=f"Database error during {operation}: {cause}",
            status_code=500,
            details={"operation": operation, "error_type": type(cause).__name__},
        )
        self.operation = operation
        self.cause = cause
