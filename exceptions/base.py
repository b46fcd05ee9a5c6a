"""
Base exception classes for the shop backend.

Every exception carries a ``kind`` (stable machine-readable error category)
and an HTTP ``status_code``. The API layer renders any ShopException as
``{"kind": ..., "message": ...}`` with that status code.
"""


class ShopException(Exception):
    """
    Base exception for all shop errors.

    All custom exceptions should inherit from one of the category classes
    below, never directly from this class.

    Attributes:
        message: Human-readable error message
        details: Optional dict with additional context (entity IDs, states, etc.)
    """

    kind: str = "internal"
    status_code: int = 500

    def __init__(self, message: str, details: dict | None = None):
        """
        Initialize base exception.

        Args:
            message: Human-readable error message
            details: Optional dict with additional context
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return the error message."""
        return self.message

    def __repr__(self) -> str:
        """Return detailed representation with context."""
        if self.details:
            details_str = ', '.join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.__class__.__name__}('{self.message}', {details_str})"
        return f"{self.__class__.__name__}('{self.message}')"


class ValidationException(ShopException):
    """Malformed or out-of-range input."""
    kind = "validation"
    status_code = 400


class AuthenticationException(ShopException):
    """No usable session."""
    kind = "authentication"
    status_code = 401


class NotFoundException(ShopException):
    """Referenced entity does not exist."""
    kind = "not_found"
    status_code = 404


class ConflictException(ShopException):
    """Request conflicts with current state (duplicate purchase, sold out, ...)."""
    kind = "conflict"
    status_code = 409


class RateLimitException(ShopException):
    kind = "rate_limited"
    status_code = 429


class DatabaseException(ShopException):
    """Persistence failure. Raised after the in-flight transaction was rolled back."""
    kind = "database"
    status_code = 500


class PaymentGatewayException(ShopException):
    """
    Upstream payment provider failure.

    Not a ValidationException: provider messages such as "Stripe error: Invalid ..."
    are reported as payment-system failures.
    """
    kind = "payment_unavailable"
    status_code = 503
    unavailable: bool = True
