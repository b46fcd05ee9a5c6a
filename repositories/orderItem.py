from sqlalchemy import select, exists
from sqlalchemy.ext.asyncio import AsyncSession

from enums.item_type import ItemType
from enums.order_status import OrderStatus
from models.order import Order
from models.orderItem import OrderItem, OrderItemDTO


class OrderItemRepository:
    @staticmethod
    async def create(order_item_dto: OrderItemDTO, session: AsyncSession) -> int:
        order_item = OrderItem(**order_item_dto.model_dump(exclude_none=True))
        session.add(order_item)
        await session.flush()
        return order_item.id

    @staticmethod
    async def get_by_order_id(order_id: int, session: AsyncSession) -> list[OrderItemDTO]:
        stmt = select(OrderItem).where(OrderItem.order_id == order_id).order_by(OrderItem.id)
        order_items = await session.execute(stmt)
        return [OrderItemDTO.model_validate(item, from_attributes=True) for item in order_items.scalars().all()]

    @staticmethod
    async def user_has_purchased(user_id: int, item_type: ItemType, item_id: int, session: AsyncSession) -> bool:
        """True if a completed order of this user contains the course or digital product."""
        match item_type:
            case ItemType.COURSE:
                column = OrderItem.course_id
            case ItemType.DIGITAL_PRODUCT:
                column = OrderItem.digital_product_id
            case _:
                return False
        stmt = select(exists().where(
            OrderItem.order_id == Order.id,
            Order.user_id == user_id,
            Order.status == OrderStatus.COMPLETED,
            column == item_id
        ))
        result = await session.execute(stmt)
        return bool(result.scalar())
