"""
Models Package

This file ensures all SQLAlchemy models are imported and registered,
which is required for relationships to work correctly.
"""

from models.base import Base
from models.user import User
from models.course import Course
from models.event import Event
from models.digital_product import DigitalProduct
from models.order import Order
from models.orderItem import OrderItem
from models.booking import Booking
from models.course_enrollment import CourseEnrollment
