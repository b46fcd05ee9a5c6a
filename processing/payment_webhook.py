import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from db import get_session
from exceptions.payment import WebhookSignatureException
from services.order_finalizer import OrderFinalizer
from services.payment import PaymentGateway
from web.dependencies import get_gateway, get_order_finalizer

logger = logging.getLogger(__name__)

payment_webhook_router = APIRouter(prefix="/api/checkout", tags=["payment-webhook"])


@payment_webhook_router.post("/webhook")
async def stripe_webhook(request: Request,
                         gateway: PaymentGateway = Depends(get_gateway),
                         finalizer: OrderFinalizer = Depends(get_order_finalizer),
                         session: AsyncSession = Depends(get_session)):
    """
    Webhook endpoint for Stripe payment notifications.

    The raw body is verified against the Stripe-Signature header before
    anything is parsed. Unknown orders and repeated deliveries answer 200 so
    Stripe stops retrying; only a bad signature (400) or a server error
    (5xx, Stripe retries) is not acknowledged.
    """
    payload = await request.body()
    signature = request.headers.get("Stripe-Signature")

    try:
        event = gateway.construct_event(payload, signature)
    except WebhookSignatureException as e:
        logger.error(f"❌ WEBHOOK SECURITY CHECK FAILED - {e.message} "
                     f"(client={request.client.host if request.client else 'unknown'})")
        raise

    logger.info(f"🔔 Stripe webhook {event.event_id} received: {event.raw_type}")
    applied = await finalizer.handle_event(event, session)
    return {"received": True, "applied": applied}
