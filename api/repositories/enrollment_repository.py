"""Repository for participant enrollments (participant_events)."""

from collections.abc import Sequence
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from models import Enrollment, Event
from repositories.utils import log_slow_query


class EnrollmentRepository:
    """Repository for enrollment CRUD operations."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    @log_slow_query("get_enrollment")
    async def get(self, participant_id: str, event_id: str) -> Enrollment | None:
        """Get the enrollment for a participant/event pair."""
        result = await self.db.execute(
            select(Enrollment).where(
                Enrollment.participant_id == participant_id,
                Enrollment.event_id == event_id,
            )
        )
        return result.scalar_one_or_none()

    async def create(self, participant_id: str, event_id: str) -> Enrollment:
        """Create an enrollment with every flag false.

        Calls flush() but does NOT commit. A duplicate pair raises
        IntegrityError from the flush; callers wrap this in a savepoint.
        """
        enrollment = Enrollment(
            participant_id=participant_id,
            event_id=event_id,
            attended=False,
            feedback_given=False,
            certificate_generated=False,
        )
        self.db.add(enrollment)
        await self.db.flush()
        return enrollment

    @log_slow_query("list_participant_enrollments")
    async def list_for_participant(
        self,
        participant_id: str,
        *,
        limit: int = 100,
    ) -> Sequence[Enrollment]:
        """Enrollments with their events loaded, newest registration first."""
        result = await self.db.execute(
            select(Enrollment)
            .options(selectinload(Enrollment.event))
            .where(Enrollment.participant_id == participant_id)
            .order_by(Enrollment.created_at.desc(), Enrollment.id.desc())
            .limit(limit)
        )
        return result.scalars().all()

    async def list_pending_feedback(self, participant_id: str) -> Sequence[Enrollment]:
        """Attended enrollments still waiting for feedback."""
        result = await self.db.execute(
            select(Enrollment)
            .options(selectinload(Enrollment.event))
            .where(
                Enrollment.participant_id == participant_id,
                Enrollment.attended.is_(True),
                Enrollment.feedback_given.is_(False),
            )
            .order_by(Enrollment.id.asc())
        )
        return result.scalars().all()

    async def list_starting_between(
        self,
        participant_id: str,
        start: datetime,
        end: datetime,
    ) -> Sequence[Enrollment]:
        """Enrollments whose event starts after ``start`` and by ``end``."""
        result = await self.db.execute(
            select(Enrollment)
            .join(Enrollment.event)
            .options(selectinload(Enrollment.event))
            .where(
                Enrollment.participant_id == participant_id,
                Event.start_date > start,
                Event.start_date <= end,
            )
            .order_by(Event.start_date.asc())
        )
        return result.scalars().all()
