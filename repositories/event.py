import logging

from sqlalchemy import update, case
from sqlalchemy.ext.asyncio import AsyncSession

from models.event import Event

logger = logging.getLogger(__name__)


class EventRepository:
    @staticmethod
    async def reserve_spots(event_id: int, attendees: int, session: AsyncSession) -> bool:
        """
        Atomic check-and-decrement of event capacity.

        A single conditional UPDATE: concurrent checkouts for the last seats
        serialize on the row, and the loser matches zero rows instead of
        driving available_spots negative.
        """
        stmt = (update(Event)
                .where(Event.id == event_id,
                       Event.available_spots >= attendees,
                       Event.deleted_at.is_(None))
                .values(available_spots=Event.available_spots - attendees)
                .execution_options(synchronize_session=False))
        result = await session.execute(stmt)
        reserved = result.rowcount == 1
        if not reserved:
            logger.info(f"Capacity check failed for event {event_id}: {attendees} spots requested")
        return reserved

    @staticmethod
    async def release_spots(event_id: int, attendees: int, session: AsyncSession) -> None:
        """Give seats back, never above capacity."""
        restored = Event.available_spots + attendees
        stmt = (update(Event)
                .where(Event.id == event_id)
                .values(available_spots=case((restored > Event.capacity, Event.capacity), else_=restored))
                .execution_options(synchronize_session=False))
        await session.execute(stmt)
