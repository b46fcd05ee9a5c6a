from datetime import datetime

from pydantic import BaseModel
from sqlalchemy import Column, Integer, DateTime, String, Boolean, CheckConstraint

from models.base import Base
from utils.clock import utcnow


class Course(Base):
    __tablename__ = 'courses'

    id = Column(Integer, primary_key=True)
    title = Column(String(255), nullable=False)
    slug = Column(String(255), nullable=False, unique=True)
    price = Column(Integer, nullable=False)  # minor currency units
    image_url = Column(String, nullable=True)
    is_published = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=utcnow)
    deleted_at = Column(DateTime, nullable=True)  # soft delete

    __table_args__ = (
        CheckConstraint('price >= 0', name='check_course_price_non_negative'),
    )


class CourseDTO(BaseModel):
    id: int | None = None
    title: str | None = None
    slug: str | None = None
    price: int | None = None
    image_url: str | None = None
    is_published: bool | None = None
    deleted_at: datetime | None = None
