from enum import Enum


class RateLimitOperation(str, Enum):
    """
    Rate limit operation types.

    Each operation has its own independent rate limit counter.
    """

    CHECKOUT_CREATE = "checkout_create"
    """
    Rate limit for payment session creation.
    Config: MAX_CHECKOUTS_PER_SESSION_PER_HOUR
    Default: 10 checkouts per hour
    """

    CART_UPDATE = "cart_update"
    """
    Rate limit for cart mutations (add, update, remove, merge).
    Config: MAX_CART_UPDATES_PER_MINUTE
    Default: 60 per minute
    """
