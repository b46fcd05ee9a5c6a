import logging

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from db import get_session
from enums.rate_limit_operation import RateLimitOperation
from exceptions.cart import NoActiveSessionException
from middleware.rate_limit import RateLimiter
from models.checkout import CheckoutRequestDTO
from services.checkout import CheckoutService
from web.dependencies import (
    get_checkout_service,
    get_current_user_id,
    get_rate_limiter,
    get_session_key,
    set_session_cookie,
)

logger = logging.getLogger(__name__)

checkout_router = APIRouter(prefix="/api/checkout", tags=["checkout"])


@checkout_router.post("/create-session")
async def create_checkout_session(payload: CheckoutRequestDTO,
                                  response: Response,
                                  session_key: str | None = Depends(get_session_key),
                                  user_id: int | None = Depends(get_current_user_id),
                                  checkout_service: CheckoutService = Depends(get_checkout_service),
                                  limiter: RateLimiter = Depends(get_rate_limiter),
                                  session: AsyncSession = Depends(get_session)):
    """
    Turn the session's cart into a pending order and a hosted payment session.

    Request Body:
        {"contactEmail": "...", "successUrl": "...", "cancelUrl": "..."}

    Returns:
        {"paymentSessionId": "...", "paymentSessionUrl": "...", "orderId": 123}
        or {"kind": "...", "message": "..."} with the matching status code
    """
    if not session_key:
        raise NoActiveSessionException()
    await limiter.enforce(RateLimitOperation.CHECKOUT_CREATE, session_key)

    result = await checkout_service.checkout(session_key, payload, session, user_id=user_id)
    set_session_cookie(response, session_key)
    return result.model_dump(by_alias=True)
