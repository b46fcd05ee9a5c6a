from pydantic import BaseModel
from sqlalchemy import Column, Integer, ForeignKey, String, CheckConstraint, Index, Enum as SQLEnum
from sqlalchemy.orm import relationship

from enums.item_type import ItemType
from models.base import Base


class OrderItem(Base):
    """
    Immutable record of one charged line.

    Exactly one of course_id / digital_product_id / event_id is set, and it
    matches item_type. Title, price and quantity are copied from the cart at
    checkout so later catalog edits never change what the order says was charged.
    """
    __tablename__ = 'order_items'

    __table_args__ = (
        CheckConstraint('price >= 0', name='ck_order_item_price_non_negative'),
        CheckConstraint('quantity > 0', name='ck_order_item_quantity_positive'),
        CheckConstraint(
            "(CASE WHEN course_id IS NULL THEN 0 ELSE 1 END)"
            " + (CASE WHEN digital_product_id IS NULL THEN 0 ELSE 1 END)"
            " + (CASE WHEN event_id IS NULL THEN 0 ELSE 1 END) = 1",
            name='ck_order_item_single_reference'
        ),
        Index('ix_order_items_order_id', 'order_id'),
    )

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey('orders.id', ondelete='CASCADE'), nullable=False)
    course_id = Column(Integer, ForeignKey('courses.id'), nullable=True)
    digital_product_id = Column(Integer, ForeignKey('digital_products.id'), nullable=True)
    event_id = Column(Integer, ForeignKey('events.id'), nullable=True)
    item_type = Column(SQLEnum(ItemType, values_callable=lambda e: [m.value for m in e], name="item_type"), nullable=False)
    title = Column(String(255), nullable=False)
    price = Column(Integer, nullable=False)  # unit price in minor units
    quantity = Column(Integer, nullable=False, default=1)

    # Relationships
    order = relationship("Order", back_populates="items")


class OrderItemDTO(BaseModel):
    id: int | None = None
    order_id: int | None = None
    course_id: int | None = None
    digital_product_id: int | None = None
    event_id: int | None = None
    item_type: ItemType | None = None
    title: str | None = None
    price: int | None = None
    quantity: int | None = None

    @property
    def item_id(self) -> int | None:
        match self.item_type:
            case ItemType.COURSE:
                return self.course_id
            case ItemType.EVENT:
                return self.event_id
            case ItemType.DIGITAL_PRODUCT:
                return self.digital_product_id
        return None
