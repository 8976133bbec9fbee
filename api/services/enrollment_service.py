"""Enrollment lifecycle for participants and events.

An enrollment moves through attended -> feedback_given ->
certificate_generated. Each mark_* call sets one flag and its timestamp.
Marking a flag that is already set is a no-op that keeps the original
timestamp; no operation ever clears a flag.
"""

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import (
    AlreadyRegisteredError,
    EnrollmentNotFoundError,
    EventNotFoundError,
    FeedbackRequiredError,
    NotAttendedError,
    ParticipantNotFoundError,
)
from core.logger import get_logger
from core.wide_event import set_wide_event_fields
from models import Enrollment, utcnow
from repositories.enrollment_repository import EnrollmentRepository
from repositories.event_repository import EventRepository
from repositories.user_repository import UserRepository

logger = get_logger(__name__)


async def register(db: AsyncSession, participant_id: str, event_id: str) -> Enrollment:
    """Create an enrollment with every flag false.

    Raises:
        EventNotFoundError / ParticipantNotFoundError: unknown identifiers
        AlreadyRegisteredError: the pair is already enrolled, including when a
            concurrent request inserts it first
    """
    if await EventRepository(db).get_by_id(event_id) is None:
        raise EventNotFoundError()
    if await UserRepository(db).get_by_id(participant_id) is None:
        raise ParticipantNotFoundError()

    repo = EnrollmentRepository(db)
    if await repo.get(participant_id, event_id) is not None:
        raise AlreadyRegisteredError()

    try:
        async with db.begin_nested():
            enrollment = await repo.create(participant_id, event_id)
    except IntegrityError as e:
        logger.info(
            "enrollment.register.race",
            participant_id=participant_id,
            event_id=event_id,
        )
        raise AlreadyRegisteredError() from e

    logger.info(
        "enrollment.registered", participant_id=participant_id, event_id=event_id
    )
    set_wide_event_fields(enrollment_event_id=event_id)
    return enrollment


async def get_enrollment(
    db: AsyncSession, participant_id: str, event_id: str
) -> Enrollment:
    enrollment = await EnrollmentRepository(db).get(participant_id, event_id)
    if enrollment is None:
        raise EnrollmentNotFoundError()
    return enrollment


async def mark_attended(
    db: AsyncSession, participant_id: str, event_id: str
) -> Enrollment:
    enrollment = await get_enrollment(db, participant_id, event_id)
    if not enrollment.attended:
        enrollment.attended = True
        enrollment.attendance_marked_at = utcnow()
        await db.flush()
        logger.info(
            "enrollment.attended", participant_id=participant_id, event_id=event_id
        )
    return enrollment


async def mark_feedback_given(
    db: AsyncSession, participant_id: str, event_id: str
) -> Enrollment:
    """Raises NotAttendedError if attendance was never marked."""
    enrollment = await get_enrollment(db, participant_id, event_id)
    if not enrollment.attended:
        raise NotAttendedError()
    if not enrollment.feedback_given:
        enrollment.feedback_given = True
        enrollment.feedback_at = utcnow()
        await db.flush()
    return enrollment


async def mark_certificate_issued(
    db: AsyncSession,
    participant_id: str,
    event_id: str,
    certificate_id: str,
) -> Enrollment:
    """Record the issued certificate on the enrollment.

    Raises FeedbackRequiredError if feedback has not been given.
    """
    enrollment = await get_enrollment(db, participant_id, event_id)
    if not enrollment.feedback_given:
        raise FeedbackRequiredError()
    if not enrollment.certificate_generated:
        enrollment.certificate_generated = True
        enrollment.certificate_generated_at = utcnow()
        enrollment.certificate_id = certificate_id
        await db.flush()
    return enrollment
