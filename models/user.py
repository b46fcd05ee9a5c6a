from datetime import datetime

from pydantic import BaseModel
from sqlalchemy import Column, Integer, DateTime, String

from models.base import Base
from utils.clock import utcnow


class User(Base):
    __tablename__ = 'users'

    id = Column(Integer, primary_key=True)
    email = Column(String(255), nullable=False, unique=True)
    name = Column(String(255), nullable=True)
    phone = Column(String(32), nullable=True)  # E.164, used for WhatsApp confirmations
    created_at = Column(DateTime, default=utcnow)


class UserDTO(BaseModel):
    id: int | None = None
    email: str | None = None
    name: str | None = None
    phone: str | None = None
    created_at: datetime | None = None
