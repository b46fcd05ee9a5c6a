from datetime import datetime

from pydantic import BaseModel
from sqlalchemy import Column, Integer, DateTime, String, Boolean, CheckConstraint

from models.base import Base
from utils.clock import utcnow


class Event(Base):
    __tablename__ = 'events'

    id = Column(Integer, primary_key=True)
    title = Column(String(255), nullable=False)
    slug = Column(String(255), nullable=False, unique=True)
    price = Column(Integer, nullable=False)  # minor currency units, per attendee
    event_date = Column(DateTime, nullable=False)
    capacity = Column(Integer, nullable=False)
    # Decremented atomically at checkout, see EventRepository.reserve_spots
    available_spots = Column(Integer, nullable=False)
    image_url = Column(String, nullable=True)
    is_published = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=utcnow)
    deleted_at = Column(DateTime, nullable=True)

    __table_args__ = (
        CheckConstraint('price >= 0', name='check_event_price_non_negative'),
        CheckConstraint('capacity > 0', name='check_event_capacity_positive'),
        CheckConstraint(
            'available_spots >= 0 AND available_spots <= capacity',
            name='check_event_available_spots_range'
        ),
    )


class EventDTO(BaseModel):
    id: int | None = None
    title: str | None = None
    slug: str | None = None
    price: int | None = None
    event_date: datetime | None = None
    capacity: int | None = None
    available_spots: int | None = None
    image_url: str | None = None
    is_published: bool | None = None
    deleted_at: datetime | None = None
