"""
Pytest configuration and fixtures for tests.

This file is automatically loaded by pytest and provides shared fixtures
and configuration for all tests.
"""

import sys
import os
from datetime import timedelta
from unittest.mock import MagicMock

import pytest
import pytest_asyncio
from fakeredis import FakeAsyncRedis
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

# Add parent directory to Python path so tests can import modules
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from enums.currency import Currency
from enums.runtime_environment import RuntimeEnvironment

# Mock config module completely before any imports
config_mock = MagicMock()
config_mock.RUNTIME_ENVIRONMENT = RuntimeEnvironment.TEST
config_mock.DB_URL = "sqlite+aiosqlite:///:memory:"  # In-memory test database
config_mock.REDIS_URL = "redis://localhost:6379/15"
config_mock.BASE_URL = "https://shop.test"
config_mock.WEBAPP_HOST = "localhost"
config_mock.WEBAPP_PORT = 8000
config_mock.CURRENCY = Currency.USD
config_mock.TAX_RATE = 0.08
config_mock.CART_TTL_SECONDS = 7 * 24 * 60 * 60
config_mock.CART_MAX_QUANTITY = 10
config_mock.SESSION_COOKIE_NAME = "session_id"
config_mock.SESSION_COOKIE_SECURE = False
config_mock.PAYMENT_GATEWAY = "fake"
config_mock.CHECKOUT_SESSION_EXPIRY_MINUTES = 30
config_mock.STRIPE_SECRET_KEY = "sk_test_4eC39HqLyjWDarjtT1zdp7dc"
config_mock.STRIPE_WEBHOOK_SECRET = "whsec_test_secret_1234567890"
config_mock.RESEND_API_KEY = ""  # Notifications disabled unless a test patches them
config_mock.EMAIL_FROM = "orders@shop.test"
config_mock.TWILIO_ACCOUNT_SID = ""
config_mock.TWILIO_AUTH_TOKEN = ""
config_mock.TWILIO_WHATSAPP_FROM = ""
config_mock.ADMIN_WHATSAPP_NUMBERS = []
config_mock.NOTIFICATION_TIMEOUT_SECONDS = 5
config_mock.STALE_ORDER_MINUTES = 60
config_mock.BACKGROUND_TASK_INTERVAL_SECONDS = 300
config_mock.MAX_CHECKOUTS_PER_SESSION_PER_HOUR = 10
config_mock.MAX_CART_UPDATES_PER_MINUTE = 60
config_mock.LOG_LEVEL = "INFO"
config_mock.LOG_MASK_SECRETS = True
config_mock.LOG_RETENTION_DAYS = 5

sys.modules['config'] = config_mock


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest_asyncio.fixture
async def test_engine():
    """Create test database engine (in-memory SQLite)."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False
    )

    # Import and create all tables
    from db import Base
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Cleanup
    await engine.dispose()


@pytest_asyncio.fixture
async def test_session_maker(test_engine):
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False
    )


@pytest_asyncio.fixture
async def test_session(test_session_maker):
    """Create test database session."""
    async with test_session_maker() as session:
        yield session
        await session.rollback()


# ============================================================================
# Redis Fixtures
# ============================================================================

@pytest_asyncio.fixture
async def redis_client():
    """Create fake Redis client for testing (no real Redis server needed)."""
    client = FakeAsyncRedis(decode_responses=True)
    yield client
    await client.aclose()


@pytest.fixture
def kv_store(redis_client):
    from utils.kv_store import KeyValueStore
    return KeyValueStore(redis_client)


@pytest.fixture
def cart_service(kv_store):
    from services.cart import CartService
    return CartService(kv_store, tax_rate=0.08)


@pytest.fixture
def fake_gateway():
    from services.fake_payment_gateway import FakePaymentGateway
    return FakePaymentGateway()


# ============================================================================
# Catalog Fixtures
# ============================================================================

async def seed_catalog(session: AsyncSession) -> dict:
    """
    Insert one user and a small published catalog.

    Returns a dict of the created rows keyed by name.
    """
    from models.user import User
    from models.course import Course
    from models.event import Event
    from models.digital_product import DigitalProduct
    from utils.clock import utcnow

    user = User(email="learner@example.com", name="Test Learner", phone="+15551234567")
    course = Course(title="Python Fundamentals", slug="python-fundamentals", price=4999, is_published=True)
    advanced = Course(title="Advanced Python", slug="advanced-python", price=9999, is_published=True)
    draft = Course(title="Draft Course", slug="draft-course", price=1999, is_published=False)
    event = Event(
        title="Async Workshop",
        slug="async-workshop",
        price=2500,
        event_date=utcnow() + timedelta(days=30),
        capacity=20,
        available_spots=20,
        is_published=True,
    )
    last_seat_event = Event(
        title="Last Seat Meetup",
        slug="last-seat-meetup",
        price=1000,
        event_date=utcnow() + timedelta(days=7),
        capacity=1,
        available_spots=1,
        is_published=True,
    )
    ebook = DigitalProduct(
        title="Testing Handbook",
        slug="testing-handbook",
        price=1500,
        product_type="ebook",
        is_published=True,
    )

    session.add_all([user, course, advanced, draft, event, last_seat_event, ebook])
    await session.commit()

    return {
        "user": user,
        "course": course,
        "advanced": advanced,
        "draft": draft,
        "event": event,
        "last_seat_event": last_seat_event,
        "ebook": ebook,
    }


@pytest_asyncio.fixture
async def catalog(test_session):
    return await seed_catalog(test_session)


@pytest_asyncio.fixture
async def file_db(tmp_path):
    """
    Temporary-file SQLite database for tests that need several real connections
    (each session gets its own connection, unlike the in-memory engine).

    Yields (session_maker, catalog).
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'shop.db'}", echo=False)

    from db import Base
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_maker() as session:
        seeded = await seed_catalog(session)

    yield session_maker, seeded

    await engine.dispose()
