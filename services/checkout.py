import logging
import re

from sqlalchemy.ext.asyncio import AsyncSession

import config
from enums.checkout_state import CheckoutState
from enums.item_type import ItemType
from enums.order_status import OrderStatus
from enums.booking_status import BookingStatus
from exceptions.base import ShopException, PaymentGatewayException
from exceptions.cart import NoActiveSessionException, EmptyCartException, CartValidationFailedException
from exceptions.catalog import InsufficientCapacityException
from exceptions.order import InvalidContactEmailException, InvalidOrderStateException
from models.booking import BookingDTO
from models.cart import CartDTO, CartTotalsDTO
from models.cartItem import CourseCartLine, EventCartLine, DigitalProductCartLine
from models.checkout import CheckoutRequestDTO, CheckoutResultDTO
from models.order import OrderDTO
from models.orderItem import OrderItemDTO
from models.payment import GatewayLineItemDTO, PaymentSessionDTO
from repositories.booking import BookingRepository
from repositories.event import EventRepository
from repositories.order import OrderRepository
from repositories.orderItem import OrderItemRepository
from services.cart import CartService
from services.order import OrderService
from services.payment import PaymentGateway
from utils.transaction_manager import TransactionManager

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class CheckoutService:
    """
    Turns a session's cart into a pending order and a hosted payment session.

    States: NO_SESSION -> CART_PRESENT -> CART_VALIDATED -> ORDER_CREATED
    -> PAYMENT_SESSION_CREATED.

    Order, order items, bookings and event capacity holds are written in one
    transaction and committed BEFORE the gateway is called. The gateway call
    cannot join a database transaction: when the gateway fails the order is
    cancelled again and its seats are returned, so the customer can retry.
    A crash right after the commit leaves the order in 'pending' with no
    intent id; nothing can have been paid for it and BackgroundTaskService
    releases it. Only after the gateway answered is the intent id stored and
    the order moved to 'payment_pending', in a second short transaction.

    A new checkout for the same cart supersedes the earlier unpaid orders of
    that cart: their hosted sessions are expired and their seats returned
    before the cart is revalidated.
    """

    def __init__(self, cart_service: CartService, gateway: PaymentGateway):
        self.cart_service = cart_service
        self.gateway = gateway

    @staticmethod
    def _check_contact_email(email: str | None) -> str:
        email = (email or "").strip()
        if not email or not EMAIL_PATTERN.match(email) or len(email) > 255:
            raise InvalidContactEmailException(email)
        return email

    @staticmethod
    def _default_success_url() -> str:
        # {CHECKOUT_SESSION_ID} is substituted by Stripe
        return f"{config.BASE_URL}/checkout/success?session_id={{CHECKOUT_SESSION_ID}}"

    @staticmethod
    def _default_cancel_url() -> str:
        return f"{config.BASE_URL}/checkout/cancel"

    @staticmethod
    def _order_item_for(line, order_id: int) -> OrderItemDTO:
        order_item = OrderItemDTO(
            order_id=order_id,
            item_type=ItemType(line.item_type),
            title=line.title,
            price=line.unit_price,
            quantity=line.quantity,
        )
        match line:
            case CourseCartLine():
                order_item.course_id = line.item_id
            case EventCartLine():
                order_item.event_id = line.item_id
            case DigitalProductCartLine():
                order_item.digital_product_id = line.item_id
        return order_item

    async def _create_order(self, cart: CartDTO, contact_email: str, session: AsyncSession,
                            user_id: int | None) -> int:
        """
        Insert order, items and bookings, reserving event capacity, all or nothing.

        Raises:
            InsufficientCapacityException: an event line cannot be seated
            DatabaseException: any persistence failure (after rollback)
        """
        async with TransactionManager.atomic_transaction(session):
            order_id = await OrderRepository.create(OrderDTO(
                user_id=user_id,
                status=OrderStatus.PENDING,
                total_amount=cart.total,
                currency=config.CURRENCY,
                contact_email=contact_email,
                cart_session_key=cart.session_key,
            ), session)

            for line in cart.items:
                await OrderItemRepository.create(self._order_item_for(line, order_id), session)
                match line:
                    case EventCartLine():
                        reserved = await EventRepository.reserve_spots(line.item_id, line.quantity, session)
                        if not reserved:
                            raise InsufficientCapacityException(line.item_id, line.quantity)
                        await BookingRepository.create(BookingDTO(
                            user_id=user_id,
                            event_id=line.item_id,
                            order_id=order_id,
                            status=BookingStatus.PENDING,
                            attendees=line.quantity,
                            total_price=line.line_total,
                        ), session)
                    case CourseCartLine() | DigitalProductCartLine():
                        pass
        return order_id

    @TransactionManager.with_retry()
    async def _link_payment_session(self, order_id: int, payment_session: PaymentSessionDTO,
                                    session: AsyncSession) -> None:
        async with TransactionManager.atomic_transaction(session):
            linked = await OrderRepository.attach_payment_intent(
                order_id, payment_session.intent_id, session, checkout_session_id=payment_session.session_id
            )
            if not linked:
                order = await OrderRepository.get_by_id(order_id, session)
                current = order.status.value if order and order.status else "missing"
                raise InvalidOrderStateException(order_id, current, OrderStatus.PENDING.value)

    async def _release_superseded_orders(self, session_key: str, session: AsyncSession) -> int:
        """
        Cancel the unpaid orders an earlier checkout of this cart left behind.

        An order with a hosted session is only cancelled once the gateway
        confirmed the session can no longer be paid. Returns the number cancelled.
        """
        cancelled = 0
        for order in await OrderRepository.get_unpaid_by_cart_session(session_key, session):
            if order.status == OrderStatus.PAYMENT_PENDING:
                if not order.stripe_checkout_session_id:
                    continue
                try:
                    expired = await self.gateway.expire_payment_session(order.stripe_checkout_session_id)
                except PaymentGatewayException as e:
                    logger.warning(f"Could not expire payment session of order {order.id}, keeping it: {e!r}")
                    continue
                if not expired:
                    continue
            try:
                await OrderService.cancel_order(order.id, session, actor="checkout")
                cancelled += 1
            except InvalidOrderStateException as e:
                # paid or cancelled by a webhook in the meantime
                logger.info(f"Superseded order {order.id} left as is: {e.message}")
        if cancelled:
            logger.info(f"Cancelled {cancelled} earlier unpaid orders of cart {session_key[:8]}...")
        return cancelled

    async def _abandon_order(self, order_id: int, session: AsyncSession) -> None:
        """Cancel an order the gateway never opened a payment session for."""
        try:
            await OrderService.cancel_order(order_id, session, actor="checkout")
        except ShopException as e:
            logger.error(f"❌ Could not cancel order {order_id} after gateway failure, "
                         f"left for the stale order job: {e!r}")

    async def checkout(self, session_key: str | None, request: CheckoutRequestDTO, session: AsyncSession,
                       user_id: int | None = None) -> CheckoutResultDTO:
        """
        Run the whole checkout for one session.

        The cart is revalidated first: if any line had to be removed the
        checkout fails with CartValidationFailedException (the cart now holds
        only valid lines and the customer can retry); price corrections are
        applied silently and the order is charged at current catalog prices.

        Raises:
            NoActiveSessionException, EmptyCartException, InvalidContactEmailException,
            CartValidationFailedException, InsufficientCapacityException,
            PaymentGatewayException, DatabaseException
        """
        state = CheckoutState.NO_SESSION
        order_id = None
        try:
            if not session_key:
                raise NoActiveSessionException()

            cart = await self.cart_service.get_cart(session_key)
            if cart.is_empty:
                raise EmptyCartException(session_key)
            state = CheckoutState.CART_PRESENT

            contact_email = self._check_contact_email(request.contact_email)
            await self._release_superseded_orders(session_key, session)

            validation = await self.cart_service.validate_cart(session_key, session)
            if not validation.valid:
                raise CartValidationFailedException(validation.errors)
            cart = validation.cart
            if cart is None or cart.is_empty:
                raise EmptyCartException(session_key)
            state = CheckoutState.CART_VALIDATED

            order_id = await self._create_order(cart, contact_email, session, user_id)
            state = CheckoutState.ORDER_CREATED
            logger.info(f"📦 Order {order_id} created (pending) for cart {session_key[:8]}..., total {cart.total}")

            payment_session = await self.gateway.create_payment_session(
                order_id=order_id,
                line_items=[
                    GatewayLineItemDTO(name=line.title, unit_amount=line.unit_price, quantity=line.quantity)
                    for line in cart.items
                ],
                totals=CartTotalsDTO(subtotal=cart.subtotal, tax=cart.tax, total=cart.total, item_count=cart.item_count),
                contact_email=contact_email,
                success_url=request.success_url or self._default_success_url(),
                cancel_url=request.cancel_url or self._default_cancel_url(),
            )

            await self._link_payment_session(order_id, payment_session, session)
            state = CheckoutState.PAYMENT_SESSION_CREATED
            logger.info(f"✅ Order {order_id} linked to payment session {payment_session.session_id}")

            return CheckoutResultDTO(
                payment_session_id=payment_session.session_id,
                payment_session_url=payment_session.session_url,
                order_id=order_id,
            )
        except ShopException as e:
            if state == CheckoutState.ORDER_CREATED and isinstance(e, PaymentGatewayException):
                logger.error(f"❌ Payment session for order {order_id} could not be created, cancelling it: {e!r}")
                await self._abandon_order(order_id, session)
            elif state == CheckoutState.ORDER_CREATED:
                logger.error(f"❌ Checkout failed after order {order_id} was created, order stays pending "
                             f"without payment session: {e!r}")
            else:
                logger.warning(f"Checkout stopped in state {state.value}: {e!r}")
            raise
