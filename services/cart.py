import logging
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy.ext.asyncio import AsyncSession

import config
from enums.item_type import ItemType
from exceptions.cart import (
    InvalidCartItemException,
    CartQuantityException,
    CartQuantityLimitException,
    CartItemNotFoundException,
    AlreadyPurchasedException,
)
from exceptions.catalog import CatalogItemNotFoundException, InsufficientCapacityException
from models.cart import CartDTO, CartTotalsDTO, CartValidationResultDTO
from models.cartItem import CartLine, CourseCartLine, EventCartLine, DigitalProductCartLine, build_cart_line
from repositories.booking import BookingRepository
from repositories.cart import CartRepository
from repositories.catalog import CatalogRepository
from repositories.course_enrollment import CourseEnrollmentRepository
from repositories.orderItem import OrderItemRepository
from utils.clock import utcnow
from utils.kv_store import KeyValueStore

logger = logging.getLogger(__name__)


def calculate_tax(subtotal: int, tax_rate: float) -> int:
    """Tax in minor units, rounded half-up (6479800 at 0.08 -> 518384)."""
    tax = Decimal(subtotal) * Decimal(str(tax_rate))
    return int(tax.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class CartService:
    """
    Session-scoped cart kept as one document in the key-value store.

    Every read and write refreshes the document TTL. get_cart never returns
    None: an absent cart is reported as the empty cart shape. Lines are unique
    by (item_type, item_id); quantity per line is bounded 1..CART_MAX_QUANTITY.
    """

    def __init__(self, store: KeyValueStore, tax_rate: float | None = None, max_quantity: int | None = None):
        self.repository = CartRepository(store)
        self.tax_rate = config.TAX_RATE if tax_rate is None else tax_rate
        self.max_quantity = max_quantity or config.CART_MAX_QUANTITY

    @staticmethod
    def calculate_totals(items: list[CartLine], tax_rate: float | None = None) -> CartTotalsDTO:
        """Pure and deterministic: same lines and rate always give the same totals."""
        tax_rate = config.TAX_RATE if tax_rate is None else tax_rate
        subtotal = sum(line.unit_price * line.quantity for line in items)
        tax = calculate_tax(subtotal, tax_rate)
        return CartTotalsDTO(
            subtotal=subtotal,
            tax=tax,
            total=subtotal + tax,
            item_count=sum(line.quantity for line in items),
        )

    def _empty_cart(self, session_key: str) -> CartDTO:
        return CartDTO(session_key=session_key, items=[])

    async def _save(self, cart: CartDTO) -> CartDTO:
        totals = self.calculate_totals(cart.items, self.tax_rate)
        cart = cart.model_copy(update={**totals.model_dump(), "updated_at": utcnow()})
        await self.repository.save(cart)
        return cart

    @staticmethod
    def _find_line(cart: CartDTO, item_id: int, item_type: ItemType | None = None) -> CartLine | None:
        """
        Line keyed by (item_type, item_id). Without a type the id must be
        unambiguous: courses, events and products are numbered separately.
        """
        matches = [line for line in cart.items
                   if line.item_id == item_id and (item_type is None or line.item_type == item_type)]
        if len(matches) > 1:
            raise InvalidCartItemException(
                "item type is required, several cart lines have this id",
                item_type=", ".join(line.item_type for line in matches), item_id=item_id
            )
        return matches[0] if matches else None

    def _parse_item_type(self, item_type) -> ItemType:
        try:
            return ItemType(item_type)
        except ValueError:
            allowed = ", ".join(t.value for t in ItemType)
            raise InvalidCartItemException(f"item type must be one of {allowed}", item_type=item_type)

    def _check_quantity(self, quantity, minimum: int = 1) -> int:
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            raise CartQuantityException(quantity, self.max_quantity, minimum)
        if quantity < minimum or quantity > self.max_quantity:
            raise CartQuantityException(quantity, self.max_quantity, minimum)
        return quantity

    async def _check_not_owned(self, user_id: int, item_type: ItemType, item_id: int, session: AsyncSession) -> None:
        match item_type:
            case ItemType.COURSE:
                owned = (await CourseEnrollmentRepository.is_enrolled(user_id, item_id, session)
                         or await OrderItemRepository.user_has_purchased(user_id, item_type, item_id, session))
            case ItemType.DIGITAL_PRODUCT:
                owned = await OrderItemRepository.user_has_purchased(user_id, item_type, item_id, session)
            case ItemType.EVENT:
                owned = await BookingRepository.user_has_confirmed_booking(user_id, item_id, session)
        if owned:
            raise AlreadyPurchasedException(user_id, item_type.value, item_id)

    async def add_item(self, session_key: str, item_type, item_id, quantity, session: AsyncSession,
                       user_id: int | None = None) -> CartDTO:
        """
        Add a catalog item to the cart, or increase the quantity of its line.

        The price, title, slug and image come from the catalog at add time.
        Going above the per-line maximum is rejected, never truncated.

        Raises:
            InvalidCartItemException / CartQuantityException: malformed input
            CatalogItemNotFoundException: missing, deleted or unpublished item
            AlreadyPurchasedException: user already owns the course/product or holds a confirmed booking
            CartQuantityLimitException: line would exceed the maximum quantity
            InsufficientCapacityException: event has fewer free spots than the line would hold
        """
        item_type = self._parse_item_type(item_type)
        if isinstance(item_id, bool) or not isinstance(item_id, int) or item_id <= 0:
            raise InvalidCartItemException("item id must be a positive integer", item_type=item_type.value, item_id=item_id)
        quantity = self._check_quantity(quantity)

        catalog_item = await CatalogRepository.get_item(item_type, item_id, session)
        if catalog_item is None or not catalog_item.is_purchasable:
            raise CatalogItemNotFoundException(item_type.value, item_id)

        if user_id is not None:
            await self._check_not_owned(user_id, item_type, item_id, session)

        cart = await self.repository.get(session_key) or self._empty_cart(session_key)
        existing = self._find_line(cart, item_id, item_type)
        current = existing.quantity if existing is not None else 0
        if current + quantity > self.max_quantity:
            raise CartQuantityLimitException(item_id, current, quantity, self.max_quantity)
        if item_type == ItemType.EVENT and (catalog_item.available_spots or 0) < current + quantity:
            raise InsufficientCapacityException(item_id, current + quantity)

        if existing is not None:
            existing.quantity += quantity
            # refresh the display cache, keep the price snapshot for validate_cart to report
            existing.title = catalog_item.title
            existing.slug = catalog_item.slug
            existing.image_url = catalog_item.image_url
        else:
            cart.items.append(build_cart_line(catalog_item, quantity))

        cart = await self._save(cart)
        logger.info(f"🛒 Added {quantity}x {item_type.value}:{item_id} to cart {session_key[:8]}... "
                    f"({cart.item_count} items, total {cart.total})")
        return cart

    async def get_cart(self, session_key: str) -> CartDTO:
        cart = await self.repository.get(session_key)
        if cart is None:
            return self._empty_cart(session_key)
        await self.repository.touch(session_key)
        return cart

    async def update_item_quantity(self, session_key: str, item_id: int, quantity, item_type=None) -> CartDTO:
        """Set the quantity of a line; 0 removes the line."""
        quantity = self._check_quantity(quantity, minimum=0)
        item_type = self._parse_item_type(item_type) if item_type is not None else None

        cart = await self.repository.get(session_key)
        line = self._find_line(cart, item_id, item_type) if cart is not None else None
        if line is None:
            raise CartItemNotFoundException(item_id)

        if quantity == 0:
            cart.items.remove(line)
        else:
            line.quantity = quantity
        return await self._save(cart)

    async def remove_item(self, session_key: str, item_id: int, item_type=None) -> CartDTO:
        item_type = self._parse_item_type(item_type) if item_type is not None else None
        cart = await self.repository.get(session_key)
        line = self._find_line(cart, item_id, item_type) if cart is not None else None
        if line is None:
            raise CartItemNotFoundException(item_id)
        cart.items.remove(line)
        return await self._save(cart)

    async def clear_cart(self, session_key: str) -> None:
        """Delete the cart document. Clearing an absent cart succeeds."""
        deleted = await self.repository.delete(session_key)
        if deleted:
            logger.info(f"🗑️ Cart {session_key[:8]}... cleared")

    async def get_item_count(self, session_key: str) -> int:
        cart = await self.get_cart(session_key)
        return sum(line.quantity for line in cart.items)

    async def validate_cart(self, session_key: str, session: AsyncSession) -> CartValidationResultDTO:
        """
        Re-check every line against the live catalog.

        Lines whose item is gone, unpublished, an event that already started or
        an event without enough free spots are removed, one error each. Price
        drift is corrected in place and reported as a warning; it does not make
        the cart invalid. The corrected cart is persisted when anything changed.
        """
        cart = await self.repository.get(session_key)
        if cart is None:
            return CartValidationResultDTO(valid=True, cart=self._empty_cart(session_key))

        errors: list[str] = []
        warnings: list[str] = []
        kept: list[CartLine] = []
        now = utcnow()

        for line in cart.items:
            item_type = ItemType(line.item_type)
            catalog_item = await CatalogRepository.get_item(item_type, line.item_id, session)
            if catalog_item is None or catalog_item.is_deleted:
                errors.append(f"{line.title} is no longer available and was removed from your cart")
                continue
            if not catalog_item.is_published:
                errors.append(f"{line.title} is not available for purchase and was removed from your cart")
                continue

            match line:
                case EventCartLine():
                    if catalog_item.event_date is not None and catalog_item.event_date <= now:
                        errors.append(f"{line.title} has already started and was removed from your cart")
                        continue
                    if (catalog_item.available_spots or 0) < line.quantity:
                        errors.append(
                            f"{line.title} has only {catalog_item.available_spots or 0} spots left "
                            f"and was removed from your cart"
                        )
                        continue
                    line.event_date = catalog_item.event_date
                case CourseCartLine() | DigitalProductCartLine():
                    pass

            if catalog_item.price != line.unit_price:
                warnings.append(f"The price of {line.title} changed from {line.unit_price} to {catalog_item.price}")
                line.unit_price = catalog_item.price
            kept.append(line)

        if errors or warnings:
            cart.items = kept
            cart = await self._save(cart)
            logger.info(f"Cart {session_key[:8]}... revalidated: {len(errors)} removed, {len(warnings)} repriced")
        else:
            await self.repository.touch(session_key)

        return CartValidationResultDTO(valid=not errors, errors=errors, warnings=warnings, cart=cart)

    async def merge_guest_cart(self, guest_session_key: str, user_session_key: str,
                               session: AsyncSession | None = None, user_id: int | None = None) -> CartDTO:
        """
        Fold the guest cart into the user's cart and delete the guest cart.

        Overlapping lines add up (clamped to the maximum), everything else is
        unioned in order: user lines first, then new guest lines. With a user
        and a database session, guest lines for items the user already owns
        are dropped, the same rule add_item enforces.
        """
        if guest_session_key == user_session_key:
            return await self.get_cart(user_session_key)

        guest_cart = await self.repository.get(guest_session_key)
        user_cart = await self.repository.get(user_session_key) or self._empty_cart(user_session_key)

        if guest_cart is None or guest_cart.is_empty:
            if guest_cart is not None:
                await self.repository.delete(guest_session_key)
            if user_cart.is_empty:
                return user_cart
            await self.repository.touch(user_session_key)
            return user_cart

        for guest_line in guest_cart.items:
            item_type = ItemType(guest_line.item_type)
            if user_id is not None and session is not None:
                try:
                    await self._check_not_owned(user_id, item_type, guest_line.item_id, session)
                except AlreadyPurchasedException:
                    logger.info(f"Dropped {item_type.value}:{guest_line.item_id} from merged cart, "
                                f"user {user_id} already owns it")
                    continue
            existing = self._find_line(user_cart, guest_line.item_id, item_type)
            if existing is not None:
                existing.quantity = min(existing.quantity + guest_line.quantity, self.max_quantity)
            else:
                user_cart.items.append(guest_line)

        merged = await self._save(user_cart)
        await self.repository.delete(guest_session_key)
        logger.info(f"🔀 Merged guest cart {guest_session_key[:8]}... into {user_session_key[:8]}... "
                    f"({merged.item_count} items)")
        return merged
