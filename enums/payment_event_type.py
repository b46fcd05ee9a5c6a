from enum import Enum


class PaymentEventType(str, Enum):
    CHECKOUT_COMPLETED = "checkout_completed"
    CHECKOUT_EXPIRED = "checkout_expired"
    PAYMENT_FAILED = "payment_failed"
    REFUNDED = "refunded"
    IGNORED = "ignored"
