import asyncio
import logging
from datetime import timedelta
from typing import Callable

from sqlalchemy.ext.asyncio import AsyncSession

import config
from db import session_maker
from enums.order_status import OrderStatus
from repositories.order import OrderRepository
from services.order import OrderService
from utils.clock import utcnow
from utils.order_state_machine import OrderStateMachine
from utils.transaction_manager import TransactionManager

logger = logging.getLogger(__name__)


class BackgroundTaskService:

    @staticmethod
    async def release_stale_orders(session: AsyncSession, older_than_minutes: int | None = None) -> int:
        """
        Cancel pending orders that never got a payment session and give their seats back.

        These are left behind when the payment provider failed (or the process
        died) between committing the order and linking the payment session.
        Nothing can have been paid for them. Returns the number cancelled.
        """
        minutes = older_than_minutes if older_than_minutes is not None else config.STALE_ORDER_MINUTES
        cutoff = utcnow() - timedelta(minutes=minutes)
        stale_orders = await OrderRepository.get_stale_pending(cutoff, session)

        if not stale_orders:
            logger.info("No stale pending orders found")
            return 0

        logger.info(f"Processing {len(stale_orders)} stale pending orders")
        released = 0
        for order in stale_orders:
            try:
                async with TransactionManager.atomic_transaction(session):
                    # guarded: an order linked in the meantime stays untouched
                    cancelled = await OrderRepository.update_status(
                        order.id, [OrderStatus.PENDING], OrderStatus.CANCELLED, session
                    )
                    if cancelled:
                        OrderStateMachine.validate_and_log_transition(
                            order.id, OrderStatus.PENDING, OrderStatus.CANCELLED, actor="stale-order-job"
                        )
                        await OrderService.release_event_holds(order.id, session)
                if cancelled:
                    released += 1
                    logger.info(f"Released stale order {order.id} created at {order.created_at}")
            except Exception as e:
                logger.error(f"Failed to release stale order {order.id}: {str(e)}")
        return released

    @staticmethod
    async def run_background_tasks(session_factory: Callable[[], AsyncSession] | None = None) -> None:
        """Run one cycle of background tasks with error isolation."""
        session_factory = session_factory or session_maker
        try:
            async with session_factory() as session:
                await BackgroundTaskService.release_stale_orders(session)
        except Exception as e:
            logger.error(f"Background task execution error: {str(e)}")

    @staticmethod
    async def schedule_cleanup_tasks(session_factory: Callable[[], AsyncSession] | None = None) -> None:
        """
        Run the cleanup cycle forever, every BACKGROUND_TASK_INTERVAL_SECONDS.

        Started from the app lifespan and cancelled on shutdown.
        """
        interval_seconds = config.BACKGROUND_TASK_INTERVAL_SECONDS

        logger.info(f"Starting background task scheduler with {interval_seconds}s interval")

        while True:
            logger.debug("Running background cleanup tasks")
            await BackgroundTaskService.run_background_tasks(session_factory)
            await asyncio.sleep(interval_seconds)
