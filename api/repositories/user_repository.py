"""User repository for database operations."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models import User, UserRole


class UserRepository:
    """Repository for User database operations.

    Users are managed by the administration side; this service only reads them.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_id(self, user_id: str) -> User | None:
        """Get a user by their ID."""
        result = await self.db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def get_active_by_role(self, role: UserRole) -> User | None:
        """Get the longest-standing active user holding a role."""
        result = await self.db.execute(
            select(User)
            .where(User.role == role, User.is_active.is_(True))
            .order_by(User.created_at.asc(), User.id.asc())
            .limit(1)
        )
        return result.scalar_one_or_none()
