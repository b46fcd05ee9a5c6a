from datetime import datetime

from pydantic import BaseModel
from sqlalchemy import Column, Integer, DateTime, ForeignKey, Boolean, CheckConstraint, Index, Enum as SQLEnum
from sqlalchemy.orm import relationship

from enums.booking_status import BookingStatus
from models.base import Base
from utils.clock import utcnow


class Booking(Base):
    """Event seat reservation. Holds the capacity taken from events.available_spots."""
    __tablename__ = 'bookings'

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey('users.id'), nullable=True)
    event_id = Column(Integer, ForeignKey('events.id'), nullable=False)
    order_id = Column(Integer, ForeignKey('orders.id', ondelete='CASCADE'), nullable=False)
    status = Column(
        SQLEnum(BookingStatus, values_callable=lambda e: [m.value for m in e], name="booking_status"),
        nullable=False,
        default=BookingStatus.PENDING
    )
    attendees = Column(Integer, nullable=False, default=1)
    total_price = Column(Integer, nullable=False)
    email_notified = Column(Boolean, nullable=False, default=False)
    whatsapp_notified = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    order = relationship('Order', back_populates='bookings')

    __table_args__ = (
        CheckConstraint('attendees > 0', name='check_booking_attendees_positive'),
        CheckConstraint('total_price >= 0', name='check_booking_total_price_non_negative'),
        Index('ix_bookings_order_id', 'order_id'),
        Index('ix_bookings_user_event', 'user_id', 'event_id'),
    )


class BookingDTO(BaseModel):
    id: int | None = None
    user_id: int | None = None
    event_id: int | None = None
    order_id: int | None = None
    status: BookingStatus | None = None
    attendees: int | None = None
    total_price: int | None = None
    email_notified: bool | None = None
    whatsapp_notified: bool | None = None
    created_at: datetime | None = None
