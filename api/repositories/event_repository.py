"""Repository for event lookups."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models import Event


class EventRepository:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get_by_id(self, event_id: str) -> Event | None:
        result = await self.db.execute(select(Event).where(Event.id == event_id))
        return result.scalar_one_or_none()
