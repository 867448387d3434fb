"""Custom exceptions for the orderflow application."""


class OrderflowException(Exception):
    """Base exception for orderflow."""

    pass


class ValidationError(OrderflowException):
    """Raised when input validation fails (filters, stage specs)."""

    pass


class NotFoundError(OrderflowException):
    """Raised when a work item, stage or order is not found."""

    pass


class ExternalSyncFailure(OrderflowException):
    """Raised when a call to the external order system fails or times out."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ConfigurationError(OrderflowException):
    """Raised when configuration is invalid or a tenant has no stages defined."""

    pass
