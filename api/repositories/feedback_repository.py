"""Repository for feedback submissions."""

from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models import Feedback, FeedbackAnswerFormat


class FeedbackRepository:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get(self, participant_id: str, event_id: str) -> Feedback | None:
        result = await self.db.execute(
            select(Feedback).where(
                Feedback.participant_id == participant_id,
                Feedback.event_id == event_id,
            )
        )
        return result.scalar_one_or_none()

    async def create(
        self,
        *,
        participant_id: str,
        event_id: str,
        personal_info: dict[str, str],
        responses: dict[str, Any],
        answer_format: FeedbackAnswerFormat,
        overall_rating: int | None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> Feedback:
        """Create a feedback row.

        Calls flush() but does NOT commit. The unique (participant, event)
        constraint raises IntegrityError on a duplicate.
        """
        feedback = Feedback(
            participant_id=participant_id,
            event_id=event_id,
            name=personal_info["name"],
            email=personal_info["email"],
            designation=personal_info["designation"],
            institute=personal_info["institute"],
            contact=personal_info["contact"],
            responses=responses,
            answer_format=answer_format,
            overall_rating=overall_rating,
            submission_source="web",
            ip_address=ip_address,
            user_agent=user_agent,
        )
        self.db.add(feedback)
        await self.db.flush()
        return feedback
