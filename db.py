from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

from sqlalchemy import event, Engine
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession

import config
from models.base import Base
"""
Imports of these models are needed to correctly create tables in the database.
For more information see https://stackoverflow.com/questions/7478403/sqlalchemy-classes-across-files
"""
from models.user import User
from models.course import Course
from models.event import Event
from models.digital_product import DigitalProduct
from models.order import Order
from models.orderItem import OrderItem
from models.booking import Booking
from models.course_enrollment import CourseEnrollment

# SQLAlchemy logging configuration
# HARD DISABLE SQL echo, statements are far too noisy for the service log
sql_echo = False

url = config.DB_URL
if url.startswith("sqlite") and ":memory:" not in url:
    # sqlite+aiosqlite:///data/shop.db -> make sure ./data exists
    Path(url.split(":///", 1)[-1]).parent.mkdir(parents=True, exist_ok=True)

engine = create_async_engine(url, echo=sql_echo)
session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@asynccontextmanager
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    async with session_maker() as session:
        yield session


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: one session per request, closed on teardown."""
    async with get_db_session() as session:
        yield session


@event.listens_for(Engine, "connect")
def set_sqlite_pragma(dbapi_connection, connection_record):
    if "sqlite" not in type(dbapi_connection).__module__:
        return
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


async def create_db_and_tables():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_engine():
    await engine.dispose()
