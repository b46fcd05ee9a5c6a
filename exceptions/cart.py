"""
Cart-related exceptions.
"""

from .base import ValidationException, NotFoundException, ConflictException, AuthenticationException


class NoActiveSessionException(AuthenticationException):
    """Raised when a cart operation needs a session and the request has none."""

    def __init__(self):
        super().__init__("No active session. Add an item to your cart first.")


class InvalidCartItemException(ValidationException):
    """Raised when a cart item reference is malformed."""

    def __init__(self, reason: str, item_type=None, item_id=None):
        super().__init__(
            f"Invalid cart item: {reason}",
            details={'item_type': item_type, 'item_id': item_id, 'reason': reason}
        )
        self.reason = reason


class CartQuantityException(ValidationException):
    """Raised when a requested quantity is outside the allowed range."""

    def __init__(self, quantity: int, max_quantity: int, minimum: int = 1):
        super().__init__(
            f"Quantity must be between {minimum} and {max_quantity} (got {quantity})",
            details={'quantity': quantity, 'min': minimum, 'max': max_quantity}
        )
        self.quantity = quantity
        self.max_quantity = max_quantity


class CartQuantityLimitException(ValidationException):
    """Raised when adding would push a line above the per-item maximum."""

    def __init__(self, item_id: int, current: int, requested: int, max_quantity: int):
        super().__init__(
            f"Cannot add {requested} more of item {item_id}: cart already holds {current}, maximum is {max_quantity}",
            details={'item_id': item_id, 'current': current, 'requested': requested, 'max': max_quantity}
        )
        self.item_id = item_id


class EmptyCartException(ValidationException):
    """Raised when trying to checkout with empty cart."""

    def __init__(self, session_key: str):
        super().__init__(
            "Cart is empty",
            details={'session_key': session_key}
        )
        self.session_key = session_key


class CartValidationFailedException(ValidationException):
    """Raised when checkout revalidation removed lines from the cart."""

    def __init__(self, errors: list[str]):
        super().__init__(
            "Your cart changed: " + "; ".join(errors),
            details={'errors': errors}
        )
        self.errors = errors


class CartItemNotFoundException(NotFoundException):
    """Raised when cart item not found."""

    def __init__(self, item_id: int):
        super().__init__(
            f"Cart item {item_id} not found",
            details={'item_id': item_id}
        )
        self.item_id = item_id


class AlreadyPurchasedException(ConflictException):
    """Raised when a user tries to buy something they already own."""

    def __init__(self, user_id: int, item_type: str, item_id: int):
        super().__init__(
            f"You already own this {item_type.replace('_', ' ')}",
            details={'user_id': user_id, 'item_type': item_type, 'item_id': item_id}
        )
        self.user_id = user_id
        self.item_id = item_id
