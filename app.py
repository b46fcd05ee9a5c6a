import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from redis.asyncio import Redis

import config
from db import create_db_and_tables, dispose_engine, session_maker
from processing.payment_webhook import payment_webhook_router
from services.background_tasks import BackgroundTaskService
from services.fake_payment_gateway import FakePaymentGateway
from services.notification_dispatcher import NotificationDispatcher
from services.payment import PaymentGateway, StripePaymentGateway
from web.cart_router import cart_router
from web.checkout_router import checkout_router
from web.errors import register_exception_handlers

logger = logging.getLogger(__name__)


def build_payment_gateway() -> PaymentGateway:
    if config.PAYMENT_GATEWAY == "fake":
        logger.warning("[Startup] ⚠️ Using FakePaymentGateway, no real payments will be taken")
        return FakePaymentGateway()
    return StripePaymentGateway()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan event handler for startup and shutdown."""
    # Startup
    await create_db_and_tables()
    app.state.redis = Redis.from_url(config.REDIS_URL, decode_responses=True)
    app.state.payment_gateway = build_payment_gateway()
    app.state.notification_dispatcher = NotificationDispatcher()
    app.state.session_factory = session_maker

    background_task = asyncio.create_task(BackgroundTaskService.schedule_cleanup_tasks(session_maker))
    logger.info("[Startup] Stale order cleanup task started")

    yield

    # Shutdown
    logger.warning('Shutting down..')

    background_task.cancel()
    try:
        await background_task
    except asyncio.CancelledError:
        logger.info("[Shutdown] Stale order cleanup task stopped")

    await app.state.notification_dispatcher.drain(timeout=config.NOTIFICATION_TIMEOUT_SECONDS)
    await app.state.redis.aclose()
    await dispose_engine()
    logger.warning('Bye!')


def create_app() -> FastAPI:
    app = FastAPI(title="Shop Cart & Checkout", lifespan=lifespan)
    register_exception_handlers(app)
    app.include_router(cart_router)
    app.include_router(checkout_router)
    app.include_router(payment_webhook_router)

    # Health check endpoint (for Docker container monitoring)
    @app.get("/health")
    async def health_check():
        return {"status": "healthy"}

    return app


app = create_app()
