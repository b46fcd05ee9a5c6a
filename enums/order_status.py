from enum import Enum


class OrderStatus(str, Enum):
    PENDING = "pending"                   # Order rows committed, no payment session linked yet
    PAYMENT_PENDING = "payment_pending"   # Payment session created, customer redirected
    PAID = "paid"                         # Payment captured, fulfilment not started
    PROCESSING = "processing"             # Fulfilment in progress
    COMPLETED = "completed"               # Paid and access/bookings granted
    CANCELLED = "cancelled"               # Terminal: abandoned, failed or cancelled
    REFUNDED = "refunded"                 # Terminal: money returned

    @classmethod
    def completable(cls) -> list["OrderStatus"]:
        return [cls.PENDING, cls.PAYMENT_PENDING, cls.PAID, cls.PROCESSING]

    @classmethod
    def terminal(cls) -> list["OrderStatus"]:
        return [cls.CANCELLED, cls.REFUNDED]
