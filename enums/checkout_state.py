from enum import Enum


class CheckoutState(str, Enum):
    """
    Stages a checkout request moves through.

    A failure leaves the request in the last state it reached, which is
    logged together with the error so a half-finished checkout can be
    located (ORDER_CREATED means a pending order without intent id exists).
    """
    NO_SESSION = "no_session"
    CART_PRESENT = "cart_present"
    CART_VALIDATED = "cart_validated"
    ORDER_CREATED = "order_created"
    PAYMENT_SESSION_CREATED = "payment_session_created"
