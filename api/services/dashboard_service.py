"""Participant dashboard: my events, recent activity and notifications."""

from datetime import datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession

from models import as_utc, utcnow
from repositories.certificate_repository import CertificateRepository
from repositories.enrollment_repository import EnrollmentRepository
from schemas import ActivityItem, NotificationItem, ParticipantEventResponse

RECENT_ACTIVITY_LIMIT = 10
REMINDER_WINDOW = timedelta(days=1)


async def list_participant_events(
    db: AsyncSession, participant_id: str
) -> list[ParticipantEventResponse]:
    enrollments = await EnrollmentRepository(db).list_for_participant(participant_id)
    return [ParticipantEventResponse.model_validate(e) for e in enrollments]


async def get_recent_activity(
    db: AsyncSession,
    participant_id: str,
    *,
    limit: int = RECENT_ACTIVITY_LIMIT,
) -> list[ActivityItem]:
    """Registrations, attendance, feedback and certificates, newest first."""
    enrollments = await EnrollmentRepository(db).list_for_participant(
        participant_id, limit=limit
    )
    certificates = await CertificateRepository(db).get_by_participant(
        participant_id, limit=limit
    )

    activities: list[ActivityItem] = []
    for enrollment in enrollments:
        title = enrollment.event.title
        registered_at = as_utc(enrollment.created_at)
        activities.append(
            ActivityItem(
                type="registration",
                description=f"Registered for {title}",
                event_id=enrollment.event_id,
                date=registered_at,
            )
        )
        if enrollment.attended:
            activities.append(
                ActivityItem(
                    type="attendance",
                    description=f"Attended {title}",
                    event_id=enrollment.event_id,
                    date=as_utc(enrollment.attendance_marked_at) or registered_at,
                )
            )
        if enrollment.feedback_given:
            activities.append(
                ActivityItem(
                    type="feedback",
                    description=f"Submitted feedback for {title}",
                    event_id=enrollment.event_id,
                    date=as_utc(enrollment.feedback_at) or registered_at,
                )
            )

    for cert in certificates:
        activities.append(
            ActivityItem(
                type="certificate",
                description=f"Earned certificate for {cert.event_title}",
                event_id=cert.event_id,
                date=as_utc(cert.issued_at),
            )
        )

    activities.sort(key=lambda a: a.date, reverse=True)
    return activities[:limit]


async def get_notifications(
    db: AsyncSession,
    participant_id: str,
    *,
    now: datetime | None = None,
) -> list[NotificationItem]:
    """Pending feedback prompts and reminders for events starting within a day."""
    now = now or utcnow()
    repo = EnrollmentRepository(db)
    notifications: list[NotificationItem] = []

    for enrollment in await repo.list_pending_feedback(participant_id):
        notifications.append(
            NotificationItem(
                type="feedback_pending",
                title="Feedback Required",
                message=(
                    f'Submit feedback for "{enrollment.event.title}" '
                    "to earn your certificate"
                ),
                event_id=enrollment.event_id,
                date=now,
            )
        )

    upcoming = await repo.list_starting_between(
        participant_id, now, now + REMINDER_WINDOW
    )
    for enrollment in upcoming:
        notifications.append(
            NotificationItem(
                type="event_reminder",
                title="Event Reminder",
                message=f'"{enrollment.event.title}" is starting soon!',
                event_id=enrollment.event_id,
                date=now,
            )
        )

    return notifications
