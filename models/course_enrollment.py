from datetime import datetime

from pydantic import BaseModel
from sqlalchemy import Column, Integer, DateTime, ForeignKey, UniqueConstraint

from models.base import Base
from utils.clock import utcnow


class CourseEnrollment(Base):
    __tablename__ = 'course_enrollments'

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey('users.id'), nullable=False)
    course_id = Column(Integer, ForeignKey('courses.id'), nullable=False)
    order_id = Column(Integer, ForeignKey('orders.id'), nullable=True)
    enrolled_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint('user_id', 'course_id', name='uq_course_enrollment_user_course'),
    )


class CourseEnrollmentDTO(BaseModel):
    id: int | None = None
    user_id: int | None = None
    course_id: int | None = None
    order_id: int | None = None
    enrolled_at: datetime | None = None
