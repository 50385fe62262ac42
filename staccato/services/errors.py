"""Business-layer exceptions."""

from __future__ import annotations


class ServiceError(Exception):
    """Base exception for service-level failures."""

    def __init__(self, message: str, code: str = "SERVICE_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class ValidationError(ServiceError):
    """Raised when request input violates a business rule."""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        code: str = "VALIDATION_FAILED",
    ):
        self.field = field
        super().__init__(message, code)

    @classmethod
    def missing_field(cls, field: str) -> "ValidationError":
        return cls(
            f"The {field} field is required but was not provided.",
            field=field,
            code="VALIDATION_MISSING_FIELD",
        )

    @classmethod
    def invalid_format(cls, field: str, expected_format: str) -> "ValidationError":
        return cls(
            f"The {field} field must be in {expected_format} format.",
            field=field,
            code="VALIDATION_INVALID_FORMAT",
        )


class PermissionDeniedError(ServiceError):
    """Raised when the caller may not perform the operation."""

    def __init__(self, message: str):
        super().__init__(message, "PERMISSION_DENIED")
