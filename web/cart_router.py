"""
Cart API.

The cart is addressed by the opaque session id in the session cookie. The
cookie is issued on the first add and re-issued by every cart response so
its expiry slides along with the cart document TTL.
"""

import logging

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from db import get_session
from enums.rate_limit_operation import RateLimitOperation
from exceptions.base import AuthenticationException
from exceptions.cart import NoActiveSessionException
from middleware.rate_limit import RateLimiter
from models.cart import CartDTO, CartValidationResultDTO
from services.cart import CartService
from web.dependencies import (
    get_cart_service,
    get_current_user_id,
    get_rate_limiter,
    get_session_key,
    SESSION_KEY_PATTERN,
    new_session_key,
    set_session_cookie,
)

logger = logging.getLogger(__name__)

cart_router = APIRouter(prefix="/api/cart", tags=["cart"])


class AddItemRequest(BaseModel):
    item_type: str
    item_id: int
    quantity: int = 1


class UpdateQuantityRequest(BaseModel):
    quantity: int
    # ids are only unique per item type
    item_type: str


class MergeCartRequest(BaseModel):
    # the guest cookie value the client held before signing in
    guest_session_key: str = Field(pattern=SESSION_KEY_PATTERN)


class CartCountResponse(BaseModel):
    count: int


def _require_session(session_key: str | None) -> str:
    if not session_key:
        raise NoActiveSessionException()
    return session_key


@cart_router.get("/", response_model=CartDTO)
async def get_cart(response: Response,
                   session_key: str | None = Depends(get_session_key),
                   cart_service: CartService = Depends(get_cart_service)):
    if not session_key:
        return CartDTO(session_key="", items=[])
    cart = await cart_service.get_cart(session_key)
    set_session_cookie(response, session_key)
    return cart


@cart_router.post("/add", response_model=CartDTO)
async def add_item(payload: AddItemRequest,
                   response: Response,
                   session_key: str | None = Depends(get_session_key),
                   user_id: int | None = Depends(get_current_user_id),
                   cart_service: CartService = Depends(get_cart_service),
                   limiter: RateLimiter = Depends(get_rate_limiter),
                   session: AsyncSession = Depends(get_session)):
    session_key = session_key or new_session_key()
    await limiter.enforce(RateLimitOperation.CART_UPDATE, session_key)
    cart = await cart_service.add_item(session_key, payload.item_type, payload.item_id, payload.quantity,
                                       session, user_id=user_id)
    set_session_cookie(response, session_key)
    return cart


@cart_router.patch("/items/{item_id}", response_model=CartDTO)
async def update_item(item_id: int,
                      payload: UpdateQuantityRequest,
                      response: Response,
                      session_key: str | None = Depends(get_session_key),
                      cart_service: CartService = Depends(get_cart_service),
                      limiter: RateLimiter = Depends(get_rate_limiter)):
    session_key = _require_session(session_key)
    await limiter.enforce(RateLimitOperation.CART_UPDATE, session_key)
    cart = await cart_service.update_item_quantity(session_key, item_id, payload.quantity, payload.item_type)
    set_session_cookie(response, session_key)
    return cart


@cart_router.delete("/items/{item_id}", response_model=CartDTO)
async def remove_item(item_id: int,
                      response: Response,
                      item_type: str,
                      session_key: str | None = Depends(get_session_key),
                      cart_service: CartService = Depends(get_cart_service),
                      limiter: RateLimiter = Depends(get_rate_limiter)):
    session_key = _require_session(session_key)
    await limiter.enforce(RateLimitOperation.CART_UPDATE, session_key)
    cart = await cart_service.remove_item(session_key, item_id, item_type)
    set_session_cookie(response, session_key)
    return cart


@cart_router.delete("/", status_code=status.HTTP_204_NO_CONTENT)
async def clear_cart(session_key: str | None = Depends(get_session_key),
                     cart_service: CartService = Depends(get_cart_service)):
    if session_key:
        await cart_service.clear_cart(session_key)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@cart_router.get("/count", response_model=CartCountResponse)
async def get_item_count(session_key: str | None = Depends(get_session_key),
                         cart_service: CartService = Depends(get_cart_service)):
    if not session_key:
        return CartCountResponse(count=0)
    return CartCountResponse(count=await cart_service.get_item_count(session_key))


@cart_router.post("/validate", response_model=CartValidationResultDTO)
async def validate_cart(response: Response,
                        session_key: str | None = Depends(get_session_key),
                        cart_service: CartService = Depends(get_cart_service),
                        session: AsyncSession = Depends(get_session)):
    session_key = _require_session(session_key)
    result = await cart_service.validate_cart(session_key, session)
    set_session_cookie(response, session_key)
    return result


@cart_router.post("/merge", response_model=CartDTO)
async def merge_guest_cart(payload: MergeCartRequest,
                           response: Response,
                           session_key: str | None = Depends(get_session_key),
                           user_id: int | None = Depends(get_current_user_id),
                           cart_service: CartService = Depends(get_cart_service),
                           session: AsyncSession = Depends(get_session)):
    """Fold a guest cart into the signed-in user's current cart (called after login)."""
    if user_id is None:
        raise AuthenticationException("Sign in to merge carts")
    session_key = _require_session(session_key)
    cart = await cart_service.merge_guest_cart(payload.guest_session_key, session_key,
                                               session=session, user_id=user_id)
    set_session_cookie(response, session_key)
    return cart
