import logging

from sqlalchemy.ext.asyncio import AsyncSession

from enums.order_status import OrderStatus
from exceptions.order import OrderNotFoundException, InvalidOrderStateException
from models.order import OrderDTO, OrderDetailsDTO
from repositories.booking import BookingRepository
from repositories.course_enrollment import CourseEnrollmentRepository
from repositories.event import EventRepository
from repositories.order import OrderRepository
from repositories.orderItem import OrderItemRepository
from utils.order_state_machine import OrderStateMachine
from utils.transaction_manager import TransactionManager

logger = logging.getLogger(__name__)


class OrderService:

    @staticmethod
    async def get_order(order_id: int, session: AsyncSession, user_id: int | None = None) -> OrderDetailsDTO:
        """
        Load an order with its items and bookings.

        When user_id is given the order must belong to that user; someone
        else's order is reported as not found.
        """
        order = await OrderRepository.get_by_id(order_id, session)
        if order is None or (user_id is not None and order.user_id != user_id):
            raise OrderNotFoundException(order_id)
        items = await OrderItemRepository.get_by_order_id(order_id, session)
        bookings = await BookingRepository.get_by_order_id(order_id, session)
        return OrderDetailsDTO(order=order, items=items, bookings=bookings)

    @staticmethod
    async def list_user_orders(user_id: int, session: AsyncSession, limit: int = 20, offset: int = 0) -> list[OrderDTO]:
        return await OrderRepository.get_by_user_id(user_id, session, limit=limit, offset=offset)

    @staticmethod
    async def release_event_holds(order_id: int, session: AsyncSession) -> int:
        """Cancel the order's active bookings and give their seats back. Returns seats released."""
        released = 0
        for booking in await BookingRepository.cancel_by_order_id(order_id, session):
            await EventRepository.release_spots(booking.event_id, booking.attendees, session)
            released += booking.attendees
        if released:
            logger.info(f"Released {released} event spots held by order {order_id}")
        return released

    @staticmethod
    async def revoke_course_access(order_id: int, session: AsyncSession) -> int:
        revoked = await CourseEnrollmentRepository.revoke_by_order_id(order_id, session)
        if revoked:
            logger.info(f"Revoked {revoked} course enrollments granted by order {order_id}")
        return revoked

    @staticmethod
    async def transition(order_id: int, to_status: OrderStatus, session: AsyncSession,
                         is_admin: bool = False, actor: str = "system") -> OrderDTO:
        """
        Move an order to to_status if the state machine allows it from its current status.

        The UPDATE is guarded on the status that was read, so a concurrent
        transition makes this one fail instead of overwriting it. Does not
        commit; callers run it inside their own transaction.

        Raises:
            OrderNotFoundException: order does not exist
            InvalidOrderStateException: transition not allowed or lost a race
        """
        order = await OrderRepository.get_by_id(order_id, session)
        if order is None:
            raise OrderNotFoundException(order_id)

        if not OrderStateMachine.validate_and_log_transition(order_id, order.status, to_status,
                                                             is_admin=is_admin, actor=actor):
            allowed = ", ".join(s.value for s in OrderStateMachine.sources_for(to_status))
            raise InvalidOrderStateException(order_id, order.status.value, allowed or "none")

        updated = await OrderRepository.update_status(order_id, [order.status], to_status, session)
        if not updated:
            current = await OrderRepository.get_by_id(order_id, session)
            raise InvalidOrderStateException(order_id, current.status.value, order.status.value)

        return order.model_copy(update={"status": to_status})

    @staticmethod
    async def cancel_order(order_id: int, session: AsyncSession, is_admin: bool = False,
                           actor: str = "system") -> OrderDTO:
        """Cancel the order and return its event seats, in one transaction."""
        async with TransactionManager.atomic_transaction(session):
            order = await OrderService.transition(order_id, OrderStatus.CANCELLED, session,
                                                  is_admin=is_admin, actor=actor)
            await OrderService.release_event_holds(order_id, session)
        logger.info(f"🚫 Order {order_id} cancelled by {actor}")
        return order

    @staticmethod
    async def refund_order(order_id: int, session: AsyncSession, actor: str = "system") -> OrderDTO:
        """Mark a paid order refunded, return its seats and revoke course access."""
        async with TransactionManager.atomic_transaction(session):
            order = await OrderService.transition(order_id, OrderStatus.REFUNDED, session, actor=actor)
            await OrderService.release_event_holds(order_id, session)
            await OrderService.revoke_course_access(order_id, session)
        logger.info(f"💸 Order {order_id} refunded ({actor})")
        return order
