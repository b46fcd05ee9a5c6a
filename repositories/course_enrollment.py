from sqlalchemy import select, delete, exists
from sqlalchemy.ext.asyncio import AsyncSession

from models.course_enrollment import CourseEnrollment


class CourseEnrollmentRepository:
    @staticmethod
    async def is_enrolled(user_id: int, course_id: int, session: AsyncSession) -> bool:
        stmt = select(exists().where(CourseEnrollment.user_id == user_id, CourseEnrollment.course_id == course_id))
        result = await session.execute(stmt)
        return bool(result.scalar())

    @staticmethod
    async def grant(user_id: int, course_id: int, order_id: int, session: AsyncSession) -> bool:
        """Enroll the user unless already enrolled. Returns True if a new enrollment was created."""
        if await CourseEnrollmentRepository.is_enrolled(user_id, course_id, session):
            return False
        session.add(CourseEnrollment(user_id=user_id, course_id=course_id, order_id=order_id))
        await session.flush()
        return True

    @staticmethod
    async def revoke_by_order_id(order_id: int, session: AsyncSession) -> int:
        stmt = delete(CourseEnrollment).where(CourseEnrollment.order_id == order_id)
        result = await session.execute(stmt)
        return result.rowcount
