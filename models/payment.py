from pydantic import BaseModel, Field

from enums.payment_event_type import PaymentEventType


class GatewayLineItemDTO(BaseModel):
    name: str
    unit_amount: int  # minor currency units
    quantity: int


class PaymentSessionDTO(BaseModel):
    session_id: str
    session_url: str | None = None
    # Opaque identifier persisted on the order; the webhook finds the order by it
    intent_id: str


class PaymentEventDTO(BaseModel):
    """Provider event reduced to what the finalizer needs, after signature verification."""
    event_id: str
    event_type: PaymentEventType
    raw_type: str
    # Every identifier in the event that may equal an order's stored intent id
    intent_ids: list[str] = Field(default_factory=list)
    payment_reference: str | None = None
