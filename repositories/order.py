from datetime import datetime
import logging

from sqlalchemy import select, update, or_
from sqlalchemy.ext.asyncio import AsyncSession

from enums.order_status import OrderStatus
from models.order import Order, OrderDTO
from utils.clock import utcnow

logger = logging.getLogger(__name__)


class OrderRepository:
    @staticmethod
    async def create(order_dto: OrderDTO, session: AsyncSession) -> int:
        order = Order(**order_dto.model_dump(exclude_none=True))
        session.add(order)
        await session.flush()
        return order.id

    @staticmethod
    async def get_by_id(order_id: int, session: AsyncSession) -> OrderDTO | None:
        stmt = select(Order).where(Order.id == order_id).execution_options(populate_existing=True)
        order = await session.execute(stmt)
        order = order.scalar()
        if order is not None:
            return OrderDTO.model_validate(order, from_attributes=True)
        else:
            return None

    @staticmethod
    def _intent_filter(intent_ids: list[str]):
        return or_(
            Order.stripe_payment_intent_id.in_(intent_ids),
            Order.stripe_payment_reference.in_(intent_ids),
        )

    @staticmethod
    async def get_by_intent_ids(intent_ids: list[str], session: AsyncSession) -> OrderDTO | None:
        """Look an order up by any of the given payment identifiers. Never by order id."""
        if not intent_ids:
            return None
        stmt = select(Order).where(OrderRepository._intent_filter(intent_ids)).execution_options(populate_existing=True)
        order = await session.execute(stmt)
        order = order.scalars().first()
        if order is not None:
            return OrderDTO.model_validate(order, from_attributes=True)
        return None

    @staticmethod
    async def get_by_user_id(user_id: int, session: AsyncSession, limit: int = 20, offset: int = 0) -> list[OrderDTO]:
        stmt = (select(Order)
                .where(Order.user_id == user_id)
                .order_by(Order.created_at.desc(), Order.id.desc())
                .limit(limit)
                .offset(offset))
        orders = await session.execute(stmt)
        return [OrderDTO.model_validate(order, from_attributes=True) for order in orders.scalars().all()]

    @staticmethod
    async def attach_payment_intent(order_id: int, intent_id: str, session: AsyncSession,
                                    checkout_session_id: str | None = None) -> bool:
        """
        Link a created payment session to a pending order (pending -> payment_pending).

        Guarded on status and on the intent id still being empty, so a second
        link attempt for the same order changes nothing and returns False.
        """
        stmt = (update(Order)
                .where(Order.id == order_id,
                       Order.status == OrderStatus.PENDING,
                       Order.stripe_payment_intent_id.is_(None))
                .values(stripe_payment_intent_id=intent_id,
                        stripe_checkout_session_id=checkout_session_id,
                        status=OrderStatus.PAYMENT_PENDING,
                        updated_at=utcnow()))
        result = await session.execute(stmt)
        return result.rowcount == 1

    @staticmethod
    async def complete_by_intent_ids(intent_ids: list[str], payment_reference: str | None,
                                     session: AsyncSession) -> bool:
        """
        Status-guarded completion: UPDATE ... WHERE intent matches AND status is completable.

        Two concurrent deliveries of the same event race on this single
        statement; exactly one of them sees rowcount 1.
        """
        if not intent_ids:
            return False
        now = utcnow()
        values = dict(status=OrderStatus.COMPLETED, completed_at=now, updated_at=now)
        if payment_reference:
            values["stripe_payment_reference"] = payment_reference
        stmt = (update(Order)
                .where(OrderRepository._intent_filter(intent_ids),
                       Order.status.in_(OrderStatus.completable()))
                .values(**values))
        result = await session.execute(stmt)
        return result.rowcount > 0

    @staticmethod
    async def update_status(order_id: int, from_statuses: list[OrderStatus], to_status: OrderStatus,
                            session: AsyncSession) -> bool:
        now = utcnow()
        values = dict(status=to_status, updated_at=now)
        match to_status:
            case OrderStatus.COMPLETED:
                values["completed_at"] = now
            case OrderStatus.CANCELLED:
                values["cancelled_at"] = now
            case OrderStatus.REFUNDED:
                values["refunded_at"] = now
        stmt = (update(Order)
                .where(Order.id == order_id, Order.status.in_(from_statuses))
                .values(**values))
        result = await session.execute(stmt)
        return result.rowcount == 1

    @staticmethod
    async def get_stale_pending(cutoff: datetime, session: AsyncSession) -> list[OrderDTO]:
        """Pending orders created before cutoff that never got a payment session."""
        stmt = select(Order).where(
            Order.status == OrderStatus.PENDING,
            Order.stripe_payment_intent_id.is_(None),
            Order.created_at < cutoff
        )
        orders = await session.execute(stmt)
        return [OrderDTO.model_validate(order, from_attributes=True) for order in orders.scalars().all()]

    @staticmethod
    async def get_unpaid_by_cart_session(cart_session_key: str, session: AsyncSession) -> list[OrderDTO]:
        """Orders funded by this cart that are still waiting for payment (pending or payment_pending)."""
        stmt = (select(Order)
                .where(Order.cart_session_key == cart_session_key,
                       Order.status.in_([OrderStatus.PENDING, OrderStatus.PAYMENT_PENDING]))
                .order_by(Order.id)
                .execution_options(populate_existing=True))
        orders = await session.execute(stmt)
        return [OrderDTO.model_validate(order, from_attributes=True) for order in orders.scalars().all()]
