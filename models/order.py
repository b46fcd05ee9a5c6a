from datetime import datetime

from pydantic import BaseModel
from sqlalchemy import Column, Integer, DateTime, ForeignKey, String, CheckConstraint, Index, Enum as SQLEnum
from sqlalchemy.orm import relationship

from enums.currency import Currency
from enums.order_status import OrderStatus
from models.base import Base
from models.booking import BookingDTO
from models.orderItem import OrderItemDTO
from utils.clock import utcnow


def _enum_values(enum_cls) -> list[str]:
    return [member.value for member in enum_cls]


class Order(Base):
    __tablename__ = 'orders'

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey('users.id'), nullable=True)  # NULL for guest checkout
    status = Column(
        SQLEnum(OrderStatus, values_callable=_enum_values, name="order_status"),
        nullable=False,
        default=OrderStatus.PENDING
    )
    total_amount = Column(Integer, nullable=False)  # minor currency units, tax included
    currency = Column(SQLEnum(Currency, values_callable=_enum_values, name="currency"), nullable=False)
    contact_email = Column(String(255), nullable=False)

    # Payment linkage
    # The only key the webhook finalizer uses to locate an order.
    # Set after the payment session was created, while the order is still unpaid.
    stripe_payment_intent_id = Column(String(255), nullable=True, unique=True)
    # PaymentIntent id learned from the completion event, when it differs from
    # the id stored at checkout (refund and failure events carry this one)
    stripe_payment_reference = Column(String(255), nullable=True, unique=True)
    # Hosted checkout session, kept so a superseded session can be expired
    stripe_checkout_session_id = Column(String(255), nullable=True, unique=True)

    # Cart document that funded this order, cleared once payment completes
    cart_session_key = Column(String(255), nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    completed_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    refunded_at = Column(DateTime, nullable=True)

    # Relations
    user = relationship('User', backref='orders')
    items = relationship('OrderItem', back_populates='order', cascade='all, delete-orphan')
    bookings = relationship('Booking', back_populates='order')

    __table_args__ = (
        CheckConstraint('total_amount >= 0', name='check_order_total_amount_non_negative'),
        Index('ix_orders_status_created', 'status', 'created_at'),
        Index('ix_orders_user_id', 'user_id'),
    )


class OrderDTO(BaseModel):
    id: int | None = None
    user_id: int | None = None
    status: OrderStatus | None = None
    total_amount: int | None = None
    currency: Currency | None = None
    contact_email: str | None = None
    stripe_payment_intent_id: str | None = None
    stripe_payment_reference: str | None = None
    stripe_checkout_session_id: str | None = None
    cart_session_key: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None
    refunded_at: datetime | None = None


class OrderDetailsDTO(BaseModel):
    order: OrderDTO
    items: list[OrderItemDTO] = []
    bookings: list[BookingDTO] = []
