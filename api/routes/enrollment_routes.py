"""Event registration, attendance and participant dashboard endpoints."""

from typing import Annotated

from fastapi import APIRouter, Path

from core.auth import CurrentUser, ensure_can_access_participant, ensure_elevated
from core.database import DbSession
from core.exceptions import AccessDeniedError
from schemas import (
    ActivityItem,
    AttendanceRequest,
    EnrollmentResponse,
    NotificationItem,
    ParticipantEventResponse,
    RegisterRequest,
)
from services import dashboard_service, enrollment_service

events_router = APIRouter(prefix="/api/events", tags=["events"])
participants_router = APIRouter(prefix="/api/participants", tags=["participants"])

_ID_PATTERN = r"^[A-Za-z0-9_-]+$"

EventIdPath = Annotated[str, Path(min_length=1, max_length=64, pattern=_ID_PATTERN)]
ParticipantIdPath = Annotated[
    str, Path(min_length=1, max_length=64, pattern=_ID_PATTERN)
]


@events_router.post(
    "/{event_id}/register",
    response_model=EnrollmentResponse,
    status_code=201,
    responses={
        400: {"description": "Already registered"},
        401: {"description": "Not authenticated"},
        403: {"description": "Registering another participant"},
        404: {"description": "Event or participant not found"},
    },
)
async def register_for_event(
    body: RegisterRequest,
    user: CurrentUser,
    db: DbSession,
    event_id: EventIdPath,
) -> EnrollmentResponse:
    """Register the session user for an event."""
    participant_id = body.participant_id or user.id
    if participant_id != user.id:
        raise AccessDeniedError("You can only register yourself")

    enrollment = await enrollment_service.register(db, participant_id, event_id)
    return EnrollmentResponse.model_validate(enrollment)


@events_router.post(
    "/{event_id}/attendance",
    response_model=EnrollmentResponse,
    responses={
        401: {"description": "Not authenticated"},
        403: {"description": "Requires admin, coordinator or HOD"},
        404: {"description": "Enrollment not found"},
    },
)
async def mark_attendance(
    body: AttendanceRequest,
    user: CurrentUser,
    db: DbSession,
    event_id: EventIdPath,
) -> EnrollmentResponse:
    """Mark a registered participant as having attended."""
    ensure_elevated(user)
    enrollment = await enrollment_service.mark_attended(
        db, body.participant_id, event_id
    )
    return EnrollmentResponse.model_validate(enrollment)


@participants_router.get(
    "/{participant_id}/events",
    response_model=list[ParticipantEventResponse],
)
async def get_my_events(
    user: CurrentUser,
    db: DbSession,
    participant_id: ParticipantIdPath,
) -> list[ParticipantEventResponse]:
    ensure_can_access_participant(user, participant_id)
    return await dashboard_service.list_participant_events(db, participant_id)


@participants_router.get(
    "/{participant_id}/activity",
    response_model=list[ActivityItem],
)
async def get_recent_activity(
    user: CurrentUser,
    db: DbSession,
    participant_id: ParticipantIdPath,
) -> list[ActivityItem]:
    """The ten most recent registrations, attendances, feedback and certificates."""
    ensure_can_access_participant(user, participant_id)
    return await dashboard_service.get_recent_activity(db, participant_id)


@participants_router.get(
    "/{participant_id}/notifications",
    response_model=list[NotificationItem],
)
async def get_notifications(
    user: CurrentUser,
    db: DbSession,
    participant_id: ParticipantIdPath,
) -> list[NotificationItem]:
    ensure_can_access_participant(user, participant_id)
    return await dashboard_service.get_notifications(db, participant_id)
