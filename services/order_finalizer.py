"""
Webhook-driven order finalization.

Payment providers deliver events at least once and may deliver the same
event concurrently. Every state change here is a single status-guarded
UPDATE, so only the delivery whose UPDATE matched performs side effects
(booking confirmation, course enrollment, cart cleanup, notifications).
Every other delivery is acknowledged without touching anything.
"""

import logging
from typing import Callable

from sqlalchemy.ext.asyncio import AsyncSession

from db import session_maker
from enums.item_type import ItemType
from enums.order_status import OrderStatus
from enums.payment_event_type import PaymentEventType
from models.booking import BookingDTO
from models.order import OrderDTO
from models.orderItem import OrderItemDTO
from models.payment import PaymentEventDTO
from models.user import UserDTO
from repositories.booking import BookingRepository
from repositories.course_enrollment import CourseEnrollmentRepository
from repositories.order import OrderRepository
from repositories.orderItem import OrderItemRepository
from repositories.user import UserRepository
from services.cart import CartService
from services.notification import NotificationService
from services.notification_dispatcher import NotificationDispatcher
from services.order import OrderService
from utils.order_state_machine import OrderStateMachine
from utils.transaction_manager import TransactionManager

logger = logging.getLogger(__name__)


class OrderFinalizer:

    def __init__(self, cart_service: CartService, dispatcher: NotificationDispatcher,
                 session_factory: Callable[[], AsyncSession] | None = None):
        self.cart_service = cart_service
        self.dispatcher = dispatcher
        # notification bookkeeping runs after the request session is gone
        self.session_factory = session_factory or session_maker

    async def handle_event(self, event: PaymentEventDTO, session: AsyncSession) -> bool:
        """
        Apply a verified payment event. Returns True if this delivery changed an order.

        Unknown orders and repeated deliveries are acknowledged (False), never raised.
        """
        match event.event_type:
            case PaymentEventType.CHECKOUT_COMPLETED:
                return await self.finalize_payment(event.intent_ids, session, event.payment_reference)
            case PaymentEventType.PAYMENT_FAILED | PaymentEventType.CHECKOUT_EXPIRED:
                return await self.cancel_unpaid(event.intent_ids, session, reason=event.raw_type)
            case PaymentEventType.REFUNDED:
                return await self.refund(event.intent_ids, session)
            case _:
                logger.info(f"Ignoring payment event {event.event_id} ({event.raw_type})")
                return False

    async def finalize_payment(self, intent_ids: list[str], session: AsyncSession,
                               payment_reference: str | None = None) -> bool:
        """
        Complete the order paid through one of intent_ids, exactly once.

        The order is located strictly by payment identifier. The completing
        UPDATE, booking confirmation and enrollments commit together; cart
        cleanup and notifications follow and cannot undo the completion.
        """
        async with TransactionManager.atomic_transaction(session):
            completed = await OrderRepository.complete_by_intent_ids(intent_ids, payment_reference, session)
            order = await OrderRepository.get_by_intent_ids(intent_ids, session)
            if not completed:
                if order is None:
                    logger.warning(f"⚠️ Payment confirmed for unknown intent {intent_ids}, nothing to finalize")
                else:
                    logger.info(f"Order {order.id} already {order.status.value}, "
                                f"duplicate payment confirmation ignored")
                return False

            confirmed = await BookingRepository.confirm_by_order_id(order.id, session)
            items = await OrderItemRepository.get_by_order_id(order.id, session)
            enrolled = 0
            if order.user_id is not None:
                for item in items:
                    if item.item_type == ItemType.COURSE and await CourseEnrollmentRepository.grant(
                            order.user_id, item.course_id, order.id, session):
                        enrolled += 1
            bookings = await BookingRepository.get_by_order_id(order.id, session)
            user = await UserRepository.get_by_id(order.user_id, session) if order.user_id is not None else None

        logger.info(f"✅ Order {order.id} completed: {confirmed} bookings confirmed, {enrolled} enrollments granted")

        if order.cart_session_key:
            try:
                await self.cart_service.clear_cart(order.cart_session_key)
            except Exception as e:
                # the order is paid either way; a leftover cart expires with its TTL
                logger.error(f"❌ Could not clear cart for completed order {order.id}: {type(e).__name__}: {e}")

        self._dispatch_notifications(order, items, bookings, user)
        return True

    async def cancel_unpaid(self, intent_ids: list[str], session: AsyncSession, reason: str = "") -> bool:
        """Cancel an order whose payment failed or expired and return its event seats."""
        async with TransactionManager.atomic_transaction(session):
            order = await OrderRepository.get_by_intent_ids(intent_ids, session)
            if order is None:
                logger.warning(f"⚠️ Payment failure for unknown intent {intent_ids} ignored")
                return False
            cancelled = await OrderRepository.update_status(
                order.id, OrderStateMachine.sources_for(OrderStatus.CANCELLED, include_admin=False),
                OrderStatus.CANCELLED, session
            )
            if not cancelled:
                logger.info(f"Order {order.id} is {order.status.value}, payment failure ({reason}) ignored")
                return False
            OrderStateMachine.validate_and_log_transition(
                order.id, order.status, OrderStatus.CANCELLED, actor="payment-provider"
            )
            await OrderService.release_event_holds(order.id, session)
        logger.info(f"🚫 Order {order.id} cancelled after {reason or 'payment failure'}")
        return True

    async def refund(self, intent_ids: list[str], session: AsyncSession) -> bool:
        """Mark a paid order refunded, release its seats and revoke course access."""
        async with TransactionManager.atomic_transaction(session):
            order = await OrderRepository.get_by_intent_ids(intent_ids, session)
            if order is None:
                logger.warning(f"⚠️ Refund for unknown intent {intent_ids} ignored")
                return False
            refunded = await OrderRepository.update_status(
                order.id,
                OrderStateMachine.sources_for(OrderStatus.REFUNDED, include_admin=False),
                OrderStatus.REFUNDED,
                session
            )
            if not refunded:
                logger.info(f"Order {order.id} is {order.status.value}, refund event ignored")
                return False
            OrderStateMachine.validate_and_log_transition(
                order.id, order.status, OrderStatus.REFUNDED, actor="payment-provider"
            )
            await OrderService.release_event_holds(order.id, session)
            await OrderService.revoke_course_access(order.id, session)
        logger.info(f"💸 Order {order.id} refunded by payment provider")
        self.dispatcher.dispatch(
            NotificationService.admin_alert(f"Order #{order.id} was refunded"),
            f"admin-refund:{order.id}"
        )
        return True

    def _dispatch_notifications(self, order: OrderDTO, items: list[OrderItemDTO],
                                bookings: list[BookingDTO], user: UserDTO | None) -> None:
        self.dispatcher.dispatch(
            self._notify_customer(order, items, bookings, user),
            f"order-confirmation:{order.id}"
        )
        self.dispatcher.dispatch(
            NotificationService.admin_new_order(order, items),
            f"admin-new-order:{order.id}"
        )

    async def _notify_customer(self, order: OrderDTO, items: list[OrderItemDTO],
                               bookings: list[BookingDTO], user: UserDTO | None) -> None:
        email_sent = await NotificationService.order_confirmation(order, items, user)
        event_titles = {item.event_id: item.title for item in items if item.item_type == ItemType.EVENT}

        for booking in bookings:
            whatsapp_sent = await NotificationService.booking_confirmation_whatsapp(
                booking, event_titles.get(booking.event_id, "your event"), user
            )
            if email_sent or whatsapp_sent:
                async with self.session_factory() as session:
                    async with TransactionManager.atomic_transaction(session):
                        await BookingRepository.mark_notified(booking.id, session,
                                                              email=email_sent, whatsapp=whatsapp_sent)
