"""
Payment-related exceptions.
"""

from .base import PaymentGatewayException, ValidationException


class PaymentGatewayBadRequestException(PaymentGatewayException):
    """The provider rejected our request (bad parameters, invalid amount...)."""
    unavailable = False

    def __init__(self, reason: str, order_id: int | None = None):
        super().__init__(
            f"Stripe error: {reason}",
            details={'order_id': order_id, 'reason': reason, 'retryable': False}
        )
        self.order_id = order_id


class PaymentGatewayUnavailableException(PaymentGatewayException):
    """The provider could not be reached or failed on its side."""

    def __init__(self, reason: str, order_id: int | None = None):
        super().__init__(
            f"Payment system unavailable: {reason}",
            details={'order_id': order_id, 'reason': reason, 'retryable': True}
        )
        self.order_id = order_id


class WebhookSignatureException(ValidationException):
    """Raised when a webhook payload fails signature verification."""

    def __init__(self, reason: str):
        super().__init__(
            f"Invalid webhook signature: {reason}",
            details={'reason': reason}
        )
