"""
Unit Tests: OrderService

Lookup with ownership check, guarded transitions, cancellation and refunds.
"""

import pytest
from sqlalchemy import select, func

from enums.booking_status import BookingStatus
from enums.currency import Currency
from enums.item_type import ItemType
from enums.order_status import OrderStatus
from exceptions.order import OrderNotFoundException, InvalidOrderStateException
from models.booking import BookingDTO
from models.course_enrollment import CourseEnrollment
from models.event import Event
from models.order import OrderDTO
from models.orderItem import OrderItemDTO
from repositories.booking import BookingRepository
from repositories.course_enrollment import CourseEnrollmentRepository
from repositories.event import EventRepository
from repositories.order import OrderRepository
from repositories.orderItem import OrderItemRepository
from services.order import OrderService


async def create_order(session, catalog, status: OrderStatus = OrderStatus.PAYMENT_PENDING,
                       attendees: int = 2, user: bool = True) -> int:
    """Order for one course and `attendees` seats of the seeded event, seats already reserved."""
    user_id = catalog["user"].id if user else None
    event = catalog["event"]
    order_id = await OrderRepository.create(OrderDTO(
        user_id=user_id,
        status=status,
        total_amount=4999 + attendees * event.price,
        currency=Currency.USD,
        contact_email="learner@example.com",
    ), session)
    await OrderItemRepository.create(OrderItemDTO(
        order_id=order_id, item_type=ItemType.COURSE, course_id=catalog["course"].id,
        title=catalog["course"].title, price=4999, quantity=1,
    ), session)
    await OrderItemRepository.create(OrderItemDTO(
        order_id=order_id, item_type=ItemType.EVENT, event_id=event.id,
        title=event.title, price=event.price, quantity=attendees,
    ), session)
    assert await EventRepository.reserve_spots(event.id, attendees, session)
    await BookingRepository.create(BookingDTO(
        user_id=user_id, event_id=event.id, order_id=order_id,
        status=BookingStatus.CONFIRMED if status == OrderStatus.COMPLETED else BookingStatus.PENDING,
        attendees=attendees, total_price=attendees * event.price,
    ), session)
    if status == OrderStatus.COMPLETED and user_id is not None:
        await CourseEnrollmentRepository.grant(user_id, catalog["course"].id, order_id, session)
    await session.commit()
    return order_id


async def spots(session, event_id: int) -> int:
    event = await session.get(Event, event_id, populate_existing=True)
    return event.available_spots


class TestGetOrder:

    @pytest.mark.asyncio
    async def test_returns_items_and_bookings(self, test_session, catalog):
        order_id = await create_order(test_session, catalog)

        details = await OrderService.get_order(order_id, test_session)

        assert details.order.id == order_id
        assert len(details.items) == 2
        assert len(details.bookings) == 1
        assert details.bookings[0].attendees == 2

    @pytest.mark.asyncio
    async def test_owner_can_read(self, test_session, catalog):
        order_id = await create_order(test_session, catalog)
        details = await OrderService.get_order(order_id, test_session, user_id=catalog["user"].id)
        assert details.order.user_id == catalog["user"].id

    @pytest.mark.asyncio
    async def test_other_user_gets_not_found(self, test_session, catalog):
        order_id = await create_order(test_session, catalog)
        with pytest.raises(OrderNotFoundException):
            await OrderService.get_order(order_id, test_session, user_id=catalog["user"].id + 1)

    @pytest.mark.asyncio
    async def test_missing_order(self, test_session, catalog):
        with pytest.raises(OrderNotFoundException):
            await OrderService.get_order(999, test_session)

    @pytest.mark.asyncio
    async def test_list_user_orders(self, test_session, catalog):
        first = await create_order(test_session, catalog, attendees=1)
        second = await create_order(test_session, catalog, attendees=1)
        await create_order(test_session, catalog, attendees=1, user=False)

        orders = await OrderService.list_user_orders(catalog["user"].id, test_session)

        assert {order.id for order in orders} == {first, second}


class TestTransition:

    @pytest.mark.asyncio
    async def test_valid_transition(self, test_session, catalog):
        order_id = await create_order(test_session, catalog)

        order = await OrderService.transition(order_id, OrderStatus.PAID, test_session)
        await test_session.commit()

        assert order.status == OrderStatus.PAID
        assert (await OrderRepository.get_by_id(order_id, test_session)).status == OrderStatus.PAID

    @pytest.mark.asyncio
    async def test_invalid_transition(self, test_session, catalog):
        order_id = await create_order(test_session, catalog, status=OrderStatus.PENDING)

        with pytest.raises(InvalidOrderStateException) as exc_info:
            await OrderService.transition(order_id, OrderStatus.REFUNDED, test_session)

        assert exc_info.value.current_state == "pending"

    @pytest.mark.asyncio
    async def test_admin_only_transition(self, test_session, catalog):
        order_id = await create_order(test_session, catalog, status=OrderStatus.PAID)

        with pytest.raises(InvalidOrderStateException):
            await OrderService.transition(order_id, OrderStatus.CANCELLED, test_session)

        order = await OrderService.transition(order_id, OrderStatus.CANCELLED, test_session, is_admin=True)
        assert order.status == OrderStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_missing_order(self, test_session, catalog):
        with pytest.raises(OrderNotFoundException):
            await OrderService.transition(999, OrderStatus.PAID, test_session)


class TestCancelAndRefund:

    @pytest.mark.asyncio
    async def test_cancel_releases_seats(self, test_session, catalog):
        order_id = await create_order(test_session, catalog, attendees=3)
        assert await spots(test_session, catalog["event"].id) == 17

        await OrderService.cancel_order(order_id, test_session)

        order = await OrderRepository.get_by_id(order_id, test_session)
        assert order.status == OrderStatus.CANCELLED
        assert order.cancelled_at is not None
        assert await spots(test_session, catalog["event"].id) == 20

    @pytest.mark.asyncio
    async def test_cancel_twice_fails_without_releasing_again(self, test_session, catalog):
        event_id = catalog["event"].id
        order_id = await create_order(test_session, catalog, attendees=3)
        await OrderService.cancel_order(order_id, test_session)

        with pytest.raises(InvalidOrderStateException):
            await OrderService.cancel_order(order_id, test_session)

        assert await spots(test_session, event_id) == 20

    @pytest.mark.asyncio
    async def test_refund_revokes_enrollment(self, test_session, catalog):
        order_id = await create_order(test_session, catalog, status=OrderStatus.COMPLETED, attendees=2)

        await OrderService.refund_order(order_id, test_session, actor="admin")

        order = await OrderRepository.get_by_id(order_id, test_session)
        assert order.status == OrderStatus.REFUNDED
        enrollments = await test_session.execute(select(func.count()).select_from(CourseEnrollment))
        assert enrollments.scalar() == 0
        assert await spots(test_session, catalog["event"].id) == 20
        bookings = await BookingRepository.get_by_order_id(order_id, test_session)
        assert bookings[0].status == BookingStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_refund_of_unpaid_order_rejected(self, test_session, catalog):
        event_id = catalog["event"].id
        order_id = await create_order(test_session, catalog, status=OrderStatus.PAYMENT_PENDING)

        with pytest.raises(InvalidOrderStateException):
            await OrderService.refund_order(order_id, test_session)

        assert (await OrderRepository.get_by_id(order_id, test_session)).status == OrderStatus.PAYMENT_PENDING
        assert await spots(test_session, event_id) == 18
