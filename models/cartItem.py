from datetime import datetime
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

from enums.item_type import ItemType
from models.catalog import CatalogItemDTO

MAX_LINE_QUANTITY = 10


class CartLineBase(BaseModel):
    """
    Shared shape of every cart line.

    title/slug/image_url are a display cache and unit_price is the price
    snapshot taken when the line was added. None of them is authoritative:
    CartService.validate_cart re-reads the catalog before checkout.
    """
    item_id: int = Field(gt=0)
    title: str
    slug: str | None = None
    image_url: str | None = None
    unit_price: int = Field(ge=0)  # minor currency units
    quantity: int = Field(ge=1, le=MAX_LINE_QUANTITY)

    @property
    def line_total(self) -> int:
        return self.unit_price * self.quantity

    @property
    def key(self) -> tuple[str, int]:
        return self.item_type, self.item_id


class CourseCartLine(CartLineBase):
    item_type: Literal["course"] = ItemType.COURSE.value


class EventCartLine(CartLineBase):
    item_type: Literal["event"] = ItemType.EVENT.value
    event_date: datetime | None = None


class DigitalProductCartLine(CartLineBase):
    item_type: Literal["digital_product"] = ItemType.DIGITAL_PRODUCT.value
    product_type: str | None = None


CartLine = Annotated[
    Union[CourseCartLine, EventCartLine, DigitalProductCartLine],
    Field(discriminator="item_type")
]


def build_cart_line(catalog_item: CatalogItemDTO, quantity: int) -> CourseCartLine | EventCartLine | DigitalProductCartLine:
    common = dict(
        item_id=catalog_item.item_id,
        title=catalog_item.title,
        slug=catalog_item.slug,
        image_url=catalog_item.image_url,
        unit_price=catalog_item.price,
        quantity=quantity,
    )
    match catalog_item.item_type:
        case ItemType.COURSE:
            return CourseCartLine(**common)
        case ItemType.EVENT:
            return EventCartLine(event_date=catalog_item.event_date, **common)
        case ItemType.DIGITAL_PRODUCT:
            return DigitalProductCartLine(product_type=catalog_item.product_type, **common)
    raise ValueError(f"Unsupported item type: {catalog_item.item_type}")
