"""
FastAPI dependencies.

Long-lived clients (Redis, payment gateway, notification dispatcher) are
created in the app lifespan and kept on app.state; services are built per
request around them.
"""

from uuid import uuid4

from fastapi import Depends, Request, Response
from redis.asyncio import Redis

import config
from services.cart import CartService
from services.checkout import CheckoutService
from services.notification_dispatcher import NotificationDispatcher
from services.order_finalizer import OrderFinalizer
from services.payment import PaymentGateway
from middleware.rate_limit import RateLimiter
from utils.kv_store import KeyValueStore


def get_redis(request: Request) -> Redis:
    return request.app.state.redis


def get_kv_store(redis: Redis = Depends(get_redis)) -> KeyValueStore:
    return KeyValueStore(redis)


def get_cart_service(store: KeyValueStore = Depends(get_kv_store)) -> CartService:
    return CartService(store)


def get_gateway(request: Request) -> PaymentGateway:
    return request.app.state.payment_gateway


def get_dispatcher(request: Request) -> NotificationDispatcher:
    return request.app.state.notification_dispatcher


def get_rate_limiter(redis: Redis = Depends(get_redis)) -> RateLimiter:
    return RateLimiter(redis)


def get_checkout_service(cart_service: CartService = Depends(get_cart_service),
                         gateway: PaymentGateway = Depends(get_gateway)) -> CheckoutService:
    return CheckoutService(cart_service, gateway)


def get_order_finalizer(request: Request,
                        cart_service: CartService = Depends(get_cart_service),
                        dispatcher: NotificationDispatcher = Depends(get_dispatcher)) -> OrderFinalizer:
    return OrderFinalizer(cart_service, dispatcher, getattr(request.app.state, "session_factory", None))


def get_session_key(request: Request) -> str | None:
    return request.cookies.get(config.SESSION_COOKIE_NAME) or None


def get_current_user_id(request: Request) -> int | None:
    """Set by the authentication layer in front of this service; None for guests."""
    return getattr(request.state, "user_id", None)


# Session keys are random bearer tokens: holding one is what owns the cart
SESSION_KEY_PATTERN = r"^[0-9a-f]{32}$"


def new_session_key() -> str:
    return uuid4().hex


def set_session_cookie(response: Response, session_key: str) -> None:
    """(Re)issue the cart cookie; every cart response slides the expiry forward."""
    response.set_cookie(
        key=config.SESSION_COOKIE_NAME,
        value=session_key,
        max_age=config.CART_TTL_SECONDS,
        httponly=True,
        secure=config.SESSION_COOKIE_SECURE,
        samesite="lax",
    )
