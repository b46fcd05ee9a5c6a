"""
Payment gateway port and its Stripe Checkout adapter.

The checkout orchestrator and the webhook only talk to PaymentGateway, so
the Stripe adapter can be swapped for FakePaymentGateway in development
and tests (services/fake_payment_gateway.py).
"""

import asyncio
import json
import logging
import time
from abc import ABC, abstractmethod

import stripe

import config
from enums.payment_event_type import PaymentEventType
from exceptions.payment import (
    PaymentGatewayBadRequestException,
    PaymentGatewayUnavailableException,
    WebhookSignatureException,
)
from models.cart import CartTotalsDTO
from models.payment import GatewayLineItemDTO, PaymentSessionDTO, PaymentEventDTO

logger = logging.getLogger(__name__)

# Stripe event type -> what the finalizer does with it
STRIPE_EVENT_TYPES: dict[str, PaymentEventType] = {
    "checkout.session.completed": PaymentEventType.CHECKOUT_COMPLETED,
    "checkout.session.async_payment_succeeded": PaymentEventType.CHECKOUT_COMPLETED,
    "payment_intent.succeeded": PaymentEventType.CHECKOUT_COMPLETED,
    "checkout.session.expired": PaymentEventType.CHECKOUT_EXPIRED,
    "checkout.session.async_payment_failed": PaymentEventType.PAYMENT_FAILED,
    "payment_intent.payment_failed": PaymentEventType.PAYMENT_FAILED,
    "charge.refunded": PaymentEventType.REFUNDED,
}


def parse_stripe_event(event: dict) -> PaymentEventDTO:
    """
    Reduce a (verified) Stripe event to the identifiers the finalizer may use.

    intent_ids holds every id in the event that can equal an order's stored
    intent id: the object's own id for checkout sessions and payment intents,
    and the referenced payment_intent for sessions and charges.
    """
    raw_type = event.get("type", "")
    data_object = (event.get("data") or {}).get("object") or {}
    object_kind = data_object.get("object")
    event_type = STRIPE_EVENT_TYPES.get(raw_type, PaymentEventType.IGNORED)

    if raw_type == "checkout.session.completed" and data_object.get("payment_status") not in ("paid", "no_payment_required"):
        # Delayed payment methods: completion arrives later as async_payment_succeeded
        event_type = PaymentEventType.IGNORED
    if raw_type == "charge.refunded" and not data_object.get("refunded", False):
        # Partial refund, order stays completed
        event_type = PaymentEventType.IGNORED

    intent_ids: list[str] = []
    payment_reference = None
    match object_kind:
        case "checkout.session":
            payment_reference = data_object.get("payment_intent")
            intent_ids = [data_object.get("id"), payment_reference]
        case "payment_intent":
            payment_reference = data_object.get("id")
            intent_ids = [payment_reference]
        case "charge":
            payment_reference = data_object.get("payment_intent")
            intent_ids = [payment_reference]

    return PaymentEventDTO(
        event_id=event.get("id", ""),
        event_type=event_type,
        raw_type=raw_type,
        intent_ids=[intent_id for intent_id in intent_ids if intent_id],
        payment_reference=payment_reference,
    )


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    @abstractmethod
    async def create_payment_session(
        self,
        order_id: int,
        line_items: list[GatewayLineItemDTO],
        totals: CartTotalsDTO,
        contact_email: str,
        success_url: str,
        cancel_url: str,
    ) -> PaymentSessionDTO:
        """
        Create a hosted payment session for the order.

        Raises:
            PaymentGatewayBadRequestException: provider rejected the request
            PaymentGatewayUnavailableException: provider unreachable or failing
        """
        ...

    @abstractmethod
    async def expire_payment_session(self, session_id: str) -> bool:
        """
        Close an open payment session so it can no longer be paid.

        Returns False when the session cannot be expired any more (already
        completed or already expired).

        Raises:
            PaymentGatewayUnavailableException: provider unreachable or failing
        """
        ...

    @abstractmethod
    def construct_event(self, payload: bytes, signature: str | None) -> PaymentEventDTO:
        """
        Verify a webhook payload and parse it.

        Raises:
            WebhookSignatureException: signature missing or invalid
        """
        ...


class StripePaymentGateway(PaymentGateway):
    """Stripe Checkout adapter (stripe-python SDK)."""

    def __init__(self, api_key: str | None = None, webhook_secret: str | None = None, currency: str | None = None):
        self.api_key = api_key or config.STRIPE_SECRET_KEY
        self.webhook_secret = webhook_secret or config.STRIPE_WEBHOOK_SECRET
        self.currency = (currency or config.CURRENCY.value).lower()

    def _build_line_items(self, line_items: list[GatewayLineItemDTO], totals: CartTotalsDTO) -> list[dict]:
        stripe_items = [
            {
                "price_data": {
                    "currency": self.currency,
                    "product_data": {"name": item.name},
                    "unit_amount": item.unit_amount,
                },
                "quantity": item.quantity,
            }
            for item in line_items
        ]
        if totals.tax > 0:
            # Tax is charged as its own line so the Stripe total equals the order total
            stripe_items.append({
                "price_data": {
                    "currency": self.currency,
                    "product_data": {"name": "Tax"},
                    "unit_amount": totals.tax,
                },
                "quantity": 1,
            })
        return stripe_items

    async def create_payment_session(
        self,
        order_id: int,
        line_items: list[GatewayLineItemDTO],
        totals: CartTotalsDTO,
        contact_email: str,
        success_url: str,
        cancel_url: str,
    ) -> PaymentSessionDTO:
        metadata = {
            "order_id": str(order_id),
            "subtotal": str(totals.subtotal),
            "tax": str(totals.tax),
            "total": str(totals.total),
        }
        try:
            # stripe-python is synchronous, keep the event loop free while it runs
            checkout_session = await asyncio.to_thread(
                stripe.checkout.Session.create,
                api_key=self.api_key,
                mode="payment",
                line_items=self._build_line_items(line_items, totals),
                success_url=success_url,
                cancel_url=cancel_url,
                customer_email=contact_email,
                client_reference_id=str(order_id),
                metadata=metadata,
                payment_intent_data={"metadata": {"order_id": str(order_id)}},
                # one minute of slack so clock skew never undercuts Stripe's 30 minute minimum
                expires_at=int(time.time()) + config.CHECKOUT_SESSION_EXPIRY_MINUTES * 60 + 60,
                idempotency_key=f"checkout-order-{order_id}",
            )
        except stripe.InvalidRequestError as e:
            logger.error(f"❌ Stripe rejected checkout session for order {order_id}: {e.user_message or e}")
            raise PaymentGatewayBadRequestException(str(e.user_message or e), order_id=order_id) from e
        except stripe.StripeError as e:
            logger.error(f"❌ Stripe unavailable for order {order_id}: {type(e).__name__}: {e}")
            raise PaymentGatewayUnavailableException(str(e.user_message or e), order_id=order_id) from e

        logger.info(f"💳 Stripe checkout session {checkout_session.id} created for order {order_id}")
        return PaymentSessionDTO(
            session_id=checkout_session.id,
            session_url=checkout_session.url,
            # PaymentIntents are created lazily by Checkout; fall back to the session id
            intent_id=checkout_session.payment_intent or checkout_session.id,
        )

    def construct_event(self, payload: bytes, signature: str | None) -> PaymentEventDTO:
        if not signature:
            raise WebhookSignatureException("missing Stripe-Signature header")
        try:
            stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except stripe.SignatureVerificationError as e:
            raise WebhookSignatureException(str(e)) from e
        except ValueError as e:
            raise WebhookSignatureException(f"unparseable payload: {e}") from e
        return parse_stripe_event(json.loads(payload))

    async def expire_payment_session(self, session_id: str) -> bool:
        try:
            await asyncio.to_thread(stripe.checkout.Session.expire, session_id, api_key=self.api_key)
        except stripe.InvalidRequestError as e:
            # only open sessions can be expired
            logger.warning(f"Stripe checkout session {session_id} not expired: {e.user_message or e}")
            return False
        except stripe.StripeError as e:
            logger.error(f"❌ Stripe unavailable while expiring session {session_id}: {type(e).__name__}: {e}")
            raise PaymentGatewayUnavailableException(str(e.user_message or e)) from e
        logger.info(f"⌛ Stripe checkout session {session_id} expired")
        return True
