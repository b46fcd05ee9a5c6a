from sqlalchemy.ext.asyncio import AsyncSession

from models.user import User, UserDTO


class UserRepository:
    @staticmethod
    async def get_by_id(user_id: int, session: AsyncSession) -> UserDTO | None:
        user = await session.get(User, user_id)
        if user is not None:
            return UserDTO.model_validate(user, from_attributes=True)
        return None
