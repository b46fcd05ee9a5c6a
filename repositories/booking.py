from sqlalchemy import select, update, exists
from sqlalchemy.ext.asyncio import AsyncSession

from enums.booking_status import BookingStatus
from models.booking import Booking, BookingDTO
from utils.clock import utcnow


class BookingRepository:
    @staticmethod
    async def create(booking_dto: BookingDTO, session: AsyncSession) -> int:
        booking = Booking(**booking_dto.model_dump(exclude_none=True))
        session.add(booking)
        await session.flush()
        return booking.id

    @staticmethod
    async def get_by_order_id(order_id: int, session: AsyncSession) -> list[BookingDTO]:
        stmt = (select(Booking)
                .where(Booking.order_id == order_id)
                .order_by(Booking.id)
                .execution_options(populate_existing=True))
        bookings = await session.execute(stmt)
        return [BookingDTO.model_validate(booking, from_attributes=True) for booking in bookings.scalars().all()]

    @staticmethod
    async def confirm_by_order_id(order_id: int, session: AsyncSession) -> int:
        stmt = (update(Booking)
                .where(Booking.order_id == order_id, Booking.status == BookingStatus.PENDING)
                .values(status=BookingStatus.CONFIRMED, updated_at=utcnow()))
        result = await session.execute(stmt)
        return result.rowcount

    @staticmethod
    async def cancel_by_order_id(order_id: int, session: AsyncSession) -> list[BookingDTO]:
        """
        Cancel every still-active booking of the order.

        Returns the bookings that were actually cancelled by this call, so the
        caller releases exactly their seats and a repeated call releases nothing.
        """
        active = await BookingRepository.get_by_order_id(order_id, session)
        cancelled = []
        for booking in active:
            if booking.status == BookingStatus.CANCELLED:
                continue
            stmt = (update(Booking)
                    .where(Booking.id == booking.id, Booking.status != BookingStatus.CANCELLED)
                    .values(status=BookingStatus.CANCELLED, updated_at=utcnow()))
            result = await session.execute(stmt)
            if result.rowcount == 1:
                cancelled.append(booking)
        return cancelled

    @staticmethod
    async def mark_notified(booking_id: int, session: AsyncSession, email: bool = False, whatsapp: bool = False) -> None:
        values = {}
        if email:
            values["email_notified"] = True
        if whatsapp:
            values["whatsapp_notified"] = True
        if not values:
            return
        stmt = update(Booking).where(Booking.id == booking_id).values(**values)
        await session.execute(stmt)

    @staticmethod
    async def user_has_confirmed_booking(user_id: int, event_id: int, session: AsyncSession) -> bool:
        stmt = select(exists().where(
            Booking.user_id == user_id,
            Booking.event_id == event_id,
            Booking.status == BookingStatus.CONFIRMED
        ))
        result = await session.execute(stmt)
        return bool(result.scalar())
