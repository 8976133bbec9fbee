"""Tests for the enrollment lifecycle service."""

import pytest
from sqlalchemy import func, select

from core.exceptions import (
    AlreadyRegisteredError,
    EnrollmentNotFoundError,
    EventNotFoundError,
    FeedbackRequiredError,
    NotAttendedError,
    ParticipantNotFoundError,
)
from models import Enrollment
from repositories.enrollment_repository import EnrollmentRepository
from services import enrollment_service
from tests.factories import (
    AttendedEnrollmentFactory,
    EnrollmentFactory,
    EventFactory,
    UserFactory,
    create_async,
)

pytestmark = pytest.mark.integration


@pytest.fixture
async def participant(db_session):
    return await create_async(UserFactory, db_session)


@pytest.fixture
async def event(db_session):
    return await create_async(EventFactory, db_session)


class TestRegister:
    async def test_registers_with_flags_false(self, db_session, participant, event):
        enrollment = await enrollment_service.register(
            db_session, participant.id, event.id
        )

        assert enrollment.participant_id == participant.id
        assert enrollment.event_id == event.id
        assert not enrollment.attended
        assert enrollment.created_at is not None

    async def test_second_registration_rejected(self, db_session, participant, event):
        await enrollment_service.register(db_session, participant.id, event.id)

        with pytest.raises(AlreadyRegisteredError):
            await enrollment_service.register(db_session, participant.id, event.id)

    async def test_unknown_event(self, db_session, participant):
        with pytest.raises(EventNotFoundError):
            await enrollment_service.register(db_session, participant.id, "evt_none")

    async def test_unknown_participant(self, db_session, event):
        with pytest.raises(ParticipantNotFoundError):
            await enrollment_service.register(db_session, "user_none", event.id)

    async def test_concurrent_registration_rejected(
        self, db_session, participant, event, monkeypatch
    ):
        await create_async(
            EnrollmentFactory,
            db_session,
            participant_id=participant.id,
            event_id=event.id,
        )

        async def lookup_misses(self, participant_id, event_id):
            return None

        monkeypatch.setattr(EnrollmentRepository, "get", lookup_misses)

        with pytest.raises(AlreadyRegisteredError):
            await enrollment_service.register(db_session, participant.id, event.id)

        count = await db_session.scalar(select(func.count()).select_from(Enrollment))
        assert count == 1


class TestMarkers:
    async def test_mark_attended_is_idempotent(self, db_session, participant, event):
        await enrollment_service.register(db_session, participant.id, event.id)

        first = await enrollment_service.mark_attended(
            db_session, participant.id, event.id
        )
        marked_at = first.attendance_marked_at
        second = await enrollment_service.mark_attended(
            db_session, participant.id, event.id
        )

        assert second.attended
        assert second.attendance_marked_at == marked_at

    async def test_mark_attended_requires_enrollment(self, db_session, participant):
        with pytest.raises(EnrollmentNotFoundError):
            await enrollment_service.mark_attended(
                db_session, participant.id, "evt_none"
            )

    async def test_feedback_requires_attendance(self, db_session, participant, event):
        await enrollment_service.register(db_session, participant.id, event.id)

        with pytest.raises(NotAttendedError):
            await enrollment_service.mark_feedback_given(
                db_session, participant.id, event.id
            )

    async def test_certificate_requires_feedback(self, db_session, participant, event):
        await create_async(
            AttendedEnrollmentFactory,
            db_session,
            participant_id=participant.id,
            event_id=event.id,
        )

        with pytest.raises(FeedbackRequiredError):
            await enrollment_service.mark_certificate_issued(
                db_session, participant.id, event.id, "CERT-1-ABCDEFGHI"
            )

    async def test_full_lifecycle(self, db_session, participant, event):
        await enrollment_service.register(db_session, participant.id, event.id)
        await enrollment_service.mark_attended(db_session, participant.id, event.id)
        await enrollment_service.mark_feedback_given(
            db_session, participant.id, event.id
        )
        enrollment = await enrollment_service.mark_certificate_issued(
            db_session, participant.id, event.id, "CERT-1-ABCDEFGHI"
        )

        assert enrollment.certificate_generated
        assert enrollment.certificate_id == "CERT-1-ABCDEFGHI"
        assert enrollment.certificate_generated_at is not None

        # A second issue keeps the first certificate id
        again = await enrollment_service.mark_certificate_issued(
            db_session, participant.id, event.id, "CERT-2-ZZZZZZZZZ"
        )
        assert again.certificate_id == "CERT-1-ABCDEFGHI"
