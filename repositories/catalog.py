from sqlalchemy.ext.asyncio import AsyncSession

from enums.item_type import ItemType
from models.catalog import CatalogItemDTO
from models.course import Course
from models.digital_product import DigitalProduct
from models.event import Event


class CatalogRepository:
    @staticmethod
    async def get_item(item_type: ItemType, item_id: int, session: AsyncSession) -> CatalogItemDTO | None:
        """
        Current catalog state of a cart-able item, including unpublished or
        soft-deleted rows (callers decide what is purchasable).
        """
        match item_type:
            case ItemType.COURSE:
                course = await session.get(Course, item_id)
                if course is None:
                    return None
                return CatalogItemDTO(
                    item_type=ItemType.COURSE,
                    item_id=course.id,
                    title=course.title,
                    slug=course.slug,
                    image_url=course.image_url,
                    price=course.price,
                    is_published=course.is_published,
                    is_deleted=course.deleted_at is not None,
                )
            case ItemType.EVENT:
                event = await session.get(Event, item_id, populate_existing=True)
                if event is None:
                    return None
                return CatalogItemDTO(
                    item_type=ItemType.EVENT,
                    item_id=event.id,
                    title=event.title,
                    slug=event.slug,
                    image_url=event.image_url,
                    price=event.price,
                    is_published=event.is_published,
                    is_deleted=event.deleted_at is not None,
                    event_date=event.event_date,
                    available_spots=event.available_spots,
                )
            case ItemType.DIGITAL_PRODUCT:
                product = await session.get(DigitalProduct, item_id)
                if product is None:
                    return None
                return CatalogItemDTO(
                    item_type=ItemType.DIGITAL_PRODUCT,
                    item_id=product.id,
                    title=product.title,
                    slug=product.slug,
                    image_url=product.image_url,
                    price=product.price,
                    is_published=product.is_published,
                    is_deleted=product.deleted_at is not None,
                    product_type=product.product_type,
                )
        return None
