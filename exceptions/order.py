"""
Order-related exceptions.
"""

from .base import NotFoundException, ConflictException, ValidationException


class OrderNotFoundException(NotFoundException):
    """Raised when order is not found in database."""

    def __init__(self, order_id: int):
        super().__init__(
            f"Order {order_id} not found",
            details={'order_id': order_id}
        )
        self.order_id = order_id


class InvalidOrderStateException(ConflictException):
    """Raised when order is in invalid state for requested operation."""

    def __init__(self, order_id: int, current_state: str, required_state: str):
        super().__init__(
            f"Order {order_id} is in state '{current_state}', required '{required_state}'",
            details={'order_id': order_id, 'current_state': current_state, 'required_state': required_state}
        )
        self.order_id = order_id
        self.current_state = current_state
        self.required_state = required_state


class InvalidContactEmailException(ValidationException):
    """Raised when checkout is missing a usable contact email."""

    def __init__(self, email: str | None):
        super().__init__(
            "A valid contact email is required" if email else "Contact email is required",
            details={'email_provided': bool(email)}
        )
