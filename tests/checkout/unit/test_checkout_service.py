"""
Unit Tests: CheckoutService.checkout()

Order rows are committed before the payment gateway is called; a gateway
failure cancels that order again and returns its seats, a capacity failure
leaves nothing at all.
"""

from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import select, func

from enums.booking_status import BookingStatus
from enums.order_status import OrderStatus
from exceptions.base import PaymentGatewayException, ValidationException
from exceptions.cart import NoActiveSessionException, EmptyCartException, CartValidationFailedException
from exceptions.catalog import InsufficientCapacityException
from exceptions.order import InvalidContactEmailException
from exceptions.payment import PaymentGatewayUnavailableException, PaymentGatewayBadRequestException
from models.booking import Booking
from models.checkout import CheckoutRequestDTO
from models.event import Event
from models.order import Order
from models.orderItem import OrderItem
from repositories.booking import BookingRepository
from repositories.order import OrderRepository
from repositories.orderItem import OrderItemRepository
from services.checkout import CheckoutService

SESSION = "checkout-session-0001"


@pytest.fixture
def checkout_service(cart_service, fake_gateway):
    return CheckoutService(cart_service, fake_gateway)


def request(email: str | None = "test@example.com") -> CheckoutRequestDTO:
    return CheckoutRequestDTO(contactEmail=email)


async def count(session, model) -> int:
    result = await session.execute(select(func.count()).select_from(model))
    return result.scalar()


class TestCheckoutSuccess:
    """Happy path"""

    @pytest.mark.asyncio
    async def test_single_course(self, checkout_service, cart_service, fake_gateway, test_session, catalog):
        """One 4999 course -> payment_pending order linked to the gateway intent"""
        await cart_service.add_item(SESSION, "course", catalog["course"].id, 1, test_session)

        result = await checkout_service.checkout(SESSION, request(), test_session)

        assert result.payment_session_id.startswith("cs_test_")
        assert result.payment_session_url.endswith(result.payment_session_id)

        order = await OrderRepository.get_by_id(result.order_id, test_session)
        assert order.status == OrderStatus.PAYMENT_PENDING
        assert order.stripe_payment_intent_id.startswith("pi_test_")
        assert order.total_amount == 5399
        assert order.contact_email == "test@example.com"
        assert order.cart_session_key == SESSION
        assert order.user_id is None

        items = await OrderItemRepository.get_by_order_id(order.id, test_session)
        assert len(items) == 1
        assert items[0].course_id == catalog["course"].id
        assert items[0].price == 4999
        assert items[0].title == "Python Fundamentals"

        call = fake_gateway.calls[0]
        assert call["order_id"] == order.id
        assert call["contact_email"] == "test@example.com"
        assert call["totals"].subtotal == 4999
        assert call["totals"].tax == 400
        assert call["success_url"].startswith("https://shop.test/checkout/success")

    @pytest.mark.asyncio
    async def test_event_reserves_spots_and_creates_booking(self, checkout_service, cart_service,
                                                            test_session, catalog):
        await cart_service.add_item(SESSION, "event", catalog["event"].id, 3, test_session)

        result = await checkout_service.checkout(SESSION, request(), test_session, user_id=catalog["user"].id)

        event = await test_session.get(Event, catalog["event"].id, populate_existing=True)
        assert event.available_spots == 17

        bookings = await BookingRepository.get_by_order_id(result.order_id, test_session)
        assert len(bookings) == 1
        assert bookings[0].status == BookingStatus.PENDING
        assert bookings[0].attendees == 3
        assert bookings[0].total_price == 7500
        assert bookings[0].user_id == catalog["user"].id

    @pytest.mark.asyncio
    async def test_cart_is_kept_until_payment(self, checkout_service, cart_service, test_session, catalog):
        await cart_service.add_item(SESSION, "course", catalog["course"].id, 1, test_session)

        await checkout_service.checkout(SESSION, request(), test_session)

        assert await cart_service.get_item_count(SESSION) == 1

    @pytest.mark.asyncio
    async def test_price_drift_is_charged_at_current_price(self, checkout_service, cart_service,
                                                           test_session, catalog):
        await cart_service.add_item(SESSION, "course", catalog["course"].id, 1, test_session)
        catalog["course"].price = 5999
        await test_session.commit()

        result = await checkout_service.checkout(SESSION, request(), test_session)

        order = await OrderRepository.get_by_id(result.order_id, test_session)
        assert order.total_amount == 5999 + 480

    def test_result_serializes_with_camel_case(self):
        from models.checkout import CheckoutResultDTO
        dumped = CheckoutResultDTO(payment_session_id="cs_1", payment_session_url="https://pay", order_id=7) \
            .model_dump(by_alias=True)
        assert dumped == {"paymentSessionId": "cs_1", "paymentSessionUrl": "https://pay", "orderId": 7}


class TestCheckoutRejections:
    """Failures before any order row is written"""

    @pytest.mark.asyncio
    async def test_no_session(self, checkout_service, test_session):
        with pytest.raises(NoActiveSessionException):
            await checkout_service.checkout(None, request(), test_session)

    @pytest.mark.asyncio
    async def test_empty_cart(self, checkout_service, test_session, catalog):
        with pytest.raises(EmptyCartException):
            await checkout_service.checkout(SESSION, request(), test_session)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("email", [None, "", "not-an-email", "a@b", "two words@example.com"])
    async def test_invalid_contact_email(self, checkout_service, cart_service, test_session, catalog, email):
        await cart_service.add_item(SESSION, "course", catalog["course"].id, 1, test_session)

        with pytest.raises(InvalidContactEmailException):
            await checkout_service.checkout(SESSION, request(email), test_session)

        assert await count(test_session, Order) == 0

    @pytest.mark.asyncio
    async def test_revalidation_removes_lines_and_fails(self, checkout_service, cart_service,
                                                        test_session, catalog):
        await cart_service.add_item(SESSION, "course", catalog["course"].id, 1, test_session)
        await cart_service.add_item(SESSION, "event", catalog["event"].id, 1, test_session)
        catalog["course"].is_published = False
        await test_session.commit()

        with pytest.raises(CartValidationFailedException) as exc_info:
            await checkout_service.checkout(SESSION, request(), test_session)

        assert len(exc_info.value.errors) == 1
        assert await count(test_session, Order) == 0
        # The remaining valid line can be checked out on retry
        assert await cart_service.get_item_count(SESSION) == 1


class TestCheckoutFailures:
    """Failures after validation"""

    @pytest.mark.asyncio
    async def test_gateway_unavailable_cancels_order_and_returns_seats(self, checkout_service, cart_service,
                                                                       fake_gateway, test_session, catalog):
        event_id = catalog["event"].id
        fake_gateway.configure(should_succeed=False, failure_mode="unavailable")
        await cart_service.add_item(SESSION, "event", event_id, 2, test_session)

        with pytest.raises(PaymentGatewayUnavailableException):
            await checkout_service.checkout(SESSION, request(), test_session)

        orders = (await test_session.execute(select(Order).execution_options(populate_existing=True))).scalars().all()
        assert len(orders) == 1
        assert orders[0].status == OrderStatus.CANCELLED
        assert orders[0].stripe_payment_intent_id is None

        event = await test_session.get(Event, event_id, populate_existing=True)
        assert event.available_spots == 20
        bookings = await BookingRepository.get_by_order_id(orders[0].id, test_session)
        assert [b.status for b in bookings] == [BookingStatus.CANCELLED]
        # The cart survives for the retry
        assert await cart_service.get_item_count(SESSION) == 2

    @pytest.mark.asyncio
    async def test_retry_after_gateway_outage_gets_the_last_seat(self, checkout_service, cart_service,
                                                                 fake_gateway, test_session, catalog):
        event_id = catalog["last_seat_event"].id
        await cart_service.add_item(SESSION, "event", event_id, 1, test_session)

        fake_gateway.configure(should_succeed=False, failure_mode="unavailable")
        with pytest.raises(PaymentGatewayUnavailableException):
            await checkout_service.checkout(SESSION, request(), test_session)

        fake_gateway.configure(should_succeed=True)
        result = await checkout_service.checkout(SESSION, request(), test_session)

        order = await OrderRepository.get_by_id(result.order_id, test_session)
        assert order.status == OrderStatus.PAYMENT_PENDING
        event = await test_session.get(Event, event_id, populate_existing=True)
        assert event.available_spots == 0
        assert await cart_service.get_item_count(SESSION) == 1

    @pytest.mark.asyncio
    async def test_gateway_bad_request_is_not_a_validation_error(self, checkout_service, cart_service,
                                                                 fake_gateway, test_session, catalog):
        fake_gateway.configure(should_succeed=False, failure_mode="bad_request",
                               failure_reason="Invalid currency")
        await cart_service.add_item(SESSION, "course", catalog["course"].id, 1, test_session)

        with pytest.raises(PaymentGatewayBadRequestException) as exc_info:
            await checkout_service.checkout(SESSION, request(), test_session)

        assert isinstance(exc_info.value, PaymentGatewayException)
        assert not isinstance(exc_info.value, ValidationException)
        assert exc_info.value.kind == "payment_unavailable"
        assert exc_info.value.unavailable is False
        assert exc_info.value.message.startswith("Stripe error:")

    @pytest.mark.asyncio
    async def test_capacity_failure_rolls_back_everything(self, checkout_service, cart_service,
                                                          fake_gateway, test_session, catalog):
        """Items and bookings written before the failing reservation are rolled back too"""
        await cart_service.add_item(SESSION, "course", catalog["course"].id, 1, test_session)
        await cart_service.add_item(SESSION, "event", catalog["event"].id, 2, test_session)

        with patch("services.checkout.EventRepository.reserve_spots", new=AsyncMock(return_value=False)):
            with pytest.raises(InsufficientCapacityException):
                await checkout_service.checkout(SESSION, request(), test_session)

        assert await count(test_session, Order) == 0
        assert await count(test_session, OrderItem) == 0
        assert await count(test_session, Booking) == 0
        assert fake_gateway.calls == []


class TestRepeatedCheckout:
    """A second checkout of the same cart replaces the first, unpaid one"""

    @pytest.mark.asyncio
    async def test_abandoned_payment_session_gives_its_seat_to_the_next_checkout(
            self, checkout_service, cart_service, fake_gateway, test_session, catalog):
        event_id = catalog["last_seat_event"].id
        await cart_service.add_item(SESSION, "event", event_id, 1, test_session)
        first = await checkout_service.checkout(SESSION, request(), test_session)

        # Customer backed out of the hosted page and checks out again
        second = await checkout_service.checkout(SESSION, request(), test_session)

        assert fake_gateway.expired_sessions == [first.payment_session_id]
        assert (await OrderRepository.get_by_id(first.order_id, test_session)).status == OrderStatus.CANCELLED
        assert (await OrderRepository.get_by_id(second.order_id, test_session)).status == OrderStatus.PAYMENT_PENDING
        event = await test_session.get(Event, event_id, populate_existing=True)
        assert event.available_spots == 0

    @pytest.mark.asyncio
    async def test_paid_session_is_not_superseded(self, checkout_service, cart_service, fake_gateway,
                                                  test_session, catalog):
        event_id = catalog["last_seat_event"].id
        await cart_service.add_item(SESSION, "event", event_id, 1, test_session)
        first = await checkout_service.checkout(SESSION, request(), test_session)
        fake_gateway.completed_sessions.add(first.payment_session_id)

        with pytest.raises(CartValidationFailedException):
            await checkout_service.checkout(SESSION, request(), test_session)

        assert (await OrderRepository.get_by_id(first.order_id, test_session)).status == OrderStatus.PAYMENT_PENDING
        event = await test_session.get(Event, event_id, populate_existing=True)
        assert event.available_spots == 0

    @pytest.mark.asyncio
    async def test_other_carts_are_untouched(self, checkout_service, cart_service, fake_gateway,
                                             test_session, catalog):
        course_id = catalog["course"].id
        await cart_service.add_item(SESSION, "course", course_id, 1, test_session)
        await cart_service.add_item("other-session", "course", course_id, 1, test_session)
        other = await checkout_service.checkout("other-session", request(), test_session)

        await checkout_service.checkout(SESSION, request(), test_session)

        assert fake_gateway.expired_sessions == []
        assert (await OrderRepository.get_by_id(other.order_id, test_session)).status == OrderStatus.PAYMENT_PENDING
