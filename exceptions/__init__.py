"""
Custom exceptions for the shop backend.

This module provides a hierarchy of custom exceptions for consistent error handling
throughout the application.

Exception Hierarchy:
--------------------
ShopException (base)
├── ValidationException (400)
│   ├── InvalidCartItemException
│   ├── CartQuantityException
│   ├── CartQuantityLimitException
│   ├── EmptyCartException
│   ├── CartValidationFailedException
│   ├── InvalidContactEmailException
│   └── WebhookSignatureException
├── AuthenticationException (401)
│   └── NoActiveSessionException
├── NotFoundException (404)
│   ├── CartItemNotFoundException
│   ├── CatalogItemNotFoundException
│   └── OrderNotFoundException
├── ConflictException (409)
│   ├── AlreadyPurchasedException
│   ├── InsufficientCapacityException
│   └── InvalidOrderStateException
├── RateLimitException (429)
├── DatabaseException (500)
└── PaymentGatewayException (503)
    ├── PaymentGatewayBadRequestException
    └── PaymentGatewayUnavailableException

Usage:
------
Services raise specific exceptions:
    raise OrderNotFoundException(order_id=123)

The API layer renders them as {"kind": exc.kind, "message": exc.message}
with exc.status_code (see web/errors.py).
"""

from .base import (
    ShopException,
    ValidationException,
    AuthenticationException,
    NotFoundException,
    ConflictException,
    RateLimitException,
    DatabaseException,
    PaymentGatewayException,
)
from .cart import (
    NoActiveSessionException,
    InvalidCartItemException,
    CartQuantityException,
    CartQuantityLimitException,
    EmptyCartException,
    CartValidationFailedException,
    CartItemNotFoundException,
    AlreadyPurchasedException,
)
from .catalog import CatalogItemNotFoundException, InsufficientCapacityException
from .order import OrderNotFoundException, InvalidOrderStateException, InvalidContactEmailException
from .payment import (
    PaymentGatewayBadRequestException,
    PaymentGatewayUnavailableException,
    WebhookSignatureException,
)

__all__ = [
    # Base
    'ShopException',
    'ValidationException',
    'AuthenticationException',
    'NotFoundException',
    'ConflictException',
    'RateLimitException',
    'DatabaseException',
    'PaymentGatewayException',

    # Cart
    'NoActiveSessionException',
    'InvalidCartItemException',
    'CartQuantityException',
    'CartQuantityLimitException',
    'EmptyCartException',
    'CartValidationFailedException',
    'CartItemNotFoundException',
    'AlreadyPurchasedException',

    # Catalog
    'CatalogItemNotFoundException',
    'InsufficientCapacityException',

    # Order
    'OrderNotFoundException',
    'InvalidOrderStateException',
    'InvalidContactEmailException',

    # Payment
    'PaymentGatewayBadRequestException',
    'PaymentGatewayUnavailableException',
    'WebhookSignatureException',
]
