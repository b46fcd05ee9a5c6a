from datetime import datetime

from pydantic import BaseModel

from enums.item_type import ItemType


class CatalogItemDTO(BaseModel):
    """Uniform view of a course, event or digital product as the cart needs it."""
    item_type: ItemType
    item_id: int
    title: str
    slug: str | None = None
    image_url: str | None = None
    price: int
    is_published: bool = False
    is_deleted: bool = False
    # Events only
    event_date: datetime | None = None
    available_spots: int | None = None
    # Digital products only
    product_type: str | None = None

    @property
    def is_purchasable(self) -> bool:
        return self.is_published and not self.is_deleted
