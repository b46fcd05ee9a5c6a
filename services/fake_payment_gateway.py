"""Configurable fake payment gateway for development and testing.

Simulates Stripe Checkout without any external calls. It can be switched
to fail at runtime (bad request or unavailable), which is how checkout
failure paths are exercised. Webhooks are accepted when the signature
header equals FakePaymentGateway.TEST_SIGNATURE.
"""

import json
from uuid import uuid4

from exceptions.payment import (
    PaymentGatewayBadRequestException,
    PaymentGatewayUnavailableException,
    WebhookSignatureException,
)
from models.cart import CartTotalsDTO
from models.payment import GatewayLineItemDTO, PaymentSessionDTO, PaymentEventDTO
from services.payment import PaymentGateway, parse_stripe_event


class FakePaymentGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    TEST_SIGNATURE = "test-signature"

    def __init__(self) -> None:
        self.should_succeed: bool = True
        self.failure_mode: str = "unavailable"
        self.failure_reason: str = "Connection error"
        self.calls: list[dict] = []
        # Sessions that were paid and can no longer be expired
        self.completed_sessions: set[str] = set()
        self.expired_sessions: list[str] = []

    def configure(self, should_succeed: bool, failure_mode: str = "unavailable",
                  failure_reason: str = "Connection error") -> None:
        """Configure gateway behavior at runtime. failure_mode is 'unavailable' or 'bad_request'."""
        self.should_succeed = should_succeed
        self.failure_mode = failure_mode
        self.failure_reason = failure_reason

    async def create_payment_session(
        self,
        order_id: int,
        line_items: list[GatewayLineItemDTO],
        totals: CartTotalsDTO,
        contact_email: str,
        success_url: str,
        cancel_url: str,
    ) -> PaymentSessionDTO:
        self.calls.append({
            "method": "create_payment_session",
            "order_id": order_id,
            "line_items": line_items,
            "totals": totals,
            "contact_email": contact_email,
            "success_url": success_url,
            "cancel_url": cancel_url,
        })

        if not self.should_succeed:
            if self.failure_mode == "bad_request":
                raise PaymentGatewayBadRequestException(self.failure_reason, order_id=order_id)
            raise PaymentGatewayUnavailableException(self.failure_reason, order_id=order_id)

        session_id = f"cs_test_{uuid4().hex[:24]}"
        return PaymentSessionDTO(
            session_id=session_id,
            session_url=f"https://checkout.stripe.test/pay/{session_id}",
            intent_id=f"pi_test_{uuid4().hex[:24]}",
        )

    async def expire_payment_session(self, session_id: str) -> bool:
        if not self.should_succeed and self.failure_mode == "unavailable":
            raise PaymentGatewayUnavailableException(self.failure_reason)
        if session_id in self.completed_sessions or session_id in self.expired_sessions:
            return False
        self.expired_sessions.append(session_id)
        return True

    def construct_event(self, payload: bytes, signature: str | None) -> PaymentEventDTO:
        if signature != self.TEST_SIGNATURE:
            raise WebhookSignatureException("signature mismatch")
        try:
            event = json.loads(payload)
        except ValueError as e:
            raise WebhookSignatureException(f"unparseable payload: {e}") from e
        return parse_stripe_event(event)
