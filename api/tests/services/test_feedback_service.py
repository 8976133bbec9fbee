"""Tests for feedback intake: validation order, ratings and issuance."""

import re
from unittest.mock import patch

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st
from sqlalchemy import func, select

from core.exceptions import (
    AlreadySubmittedError,
    IncompleteAnswersError,
    InvalidInputError,
    NotAttendedError,
    NotRegisteredError,
)
from models import Certificate, Feedback, FeedbackAnswerFormat
from repositories.enrollment_repository import EnrollmentRepository
from services.feedback_service import (
    FALLBACK_MESSAGE,
    SUCCESS_MESSAGE,
    LegacyFeedback,
    StructuredFeedback,
    get_feedback_questions,
    is_rating,
    resolve_payload,
    round_half_up,
    submit_feedback,
)
from tests.factories import (
    AttendedEnrollmentFactory,
    EnrollmentFactory,
    EventFactory,
    HodFactory,
    UserFactory,
    create_async,
)

CERTIFICATE_ID_RE = re.compile(r"CERT-\d+-[A-Z0-9]{9}")

PERSONAL_INFO = {
    "name": "Meera Iyer",
    "email": "meera@example.edu",
    "designation": "Assistant Professor",
    "institute": "Example Institute of Technology",
    "contact": "9876543210",
}

LEGACY_ANSWERS = {
    "q7": 5,
    "q8": 4,
    "q9": 4,
    "q10": 5,
    "q11": 4,
    "q12": "More hands-on sessions",
    "q13": 5,
    "q14": "Yes",
    "q15": "The lab on model evaluation",
}


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------


@pytest.mark.unit
class TestRatings:
    def test_round_half_up(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(3.5) == 4
        assert round_half_up(4.49) == 4

    @pytest.mark.parametrize(
        ("value", "expected"),
        [(1, True), (5, True), (3.5, True), (0, False), (6, False), (True, False),
         ("5", False), (None, False)],
    )
    def test_is_rating(self, value, expected):
        assert is_rating(value) is expected

    def test_structured_average(self):
        payload = StructuredFeedback(responses={"q1": 5, "q2": 3, "q3": 4})
        assert payload.overall_rating() == 4

    def test_structured_ignores_non_ratings(self):
        payload = StructuredFeedback(
            responses={"q1": 5, "q2": "great", "q3": 9, "q4": 4}
        )
        # (5 + 4) / 2 = 4.5 rounds up
        assert payload.overall_rating() == 5

    def test_structured_without_ratings_has_no_overall(self):
        payload = StructuredFeedback(responses={"comments": "Loved it"})
        assert payload.overall_rating() is None

    def test_legacy_average_skips_text_questions(self):
        payload = resolve_payload(LEGACY_ANSWERS)
        assert isinstance(payload, LegacyFeedback)
        # (5 + 4 + 4 + 5 + 4 + 5) / 6 = 4.5
        assert payload.overall_rating() == 5

    @settings(suppress_health_check=[HealthCheck.function_scoped_fixture])
    @given(st.lists(st.integers(min_value=1, max_value=5), min_size=6, max_size=6))
    def test_legacy_rating_is_rounded_mean(self, ratings):
        answers = dict(LEGACY_ANSWERS)
        for key, value in zip(("q7", "q8", "q9", "q10", "q11", "q13"), ratings):
            answers[key] = value

        rating = resolve_payload(answers).overall_rating()

        assert 1 <= rating <= 5
        assert abs(rating - sum(ratings) / 6) <= 0.5


@pytest.mark.unit
class TestResolvePayload:
    def test_structured_wins_over_legacy(self):
        payload = resolve_payload({"responses": {"q1": 4}, **LEGACY_ANSWERS})
        assert isinstance(payload, StructuredFeedback)
        assert payload.answer_format is FeedbackAnswerFormat.STRUCTURED

    def test_empty_responses_falls_back_to_legacy(self):
        payload = resolve_payload({"responses": {}, **LEGACY_ANSWERS})
        assert isinstance(payload, LegacyFeedback)
        assert payload.stored_responses() == LEGACY_ANSWERS

    def test_missing_legacy_answer(self):
        answers = {k: v for k, v in LEGACY_ANSWERS.items() if k != "q15"}
        with pytest.raises(IncompleteAnswersError):
            resolve_payload(answers)

    def test_legacy_rating_out_of_range(self):
        with pytest.raises(InvalidInputError, match="q9"):
            resolve_payload({**LEGACY_ANSWERS, "q9": 7})

    def test_question_catalogue(self):
        questions = get_feedback_questions()
        assert [q.id for q in questions] == [f"q{n}" for n in range(7, 16)]
        assert questions[7].options == ["Yes", "No"]


# ---------------------------------------------------------------------------
# submit_feedback
# ---------------------------------------------------------------------------


@pytest.fixture
async def participant(db_session):
    return await create_async(UserFactory, db_session, name="Meera Iyer")


@pytest.fixture
async def event(db_session):
    return await create_async(EventFactory, db_session)


@pytest.fixture
async def attended(db_session, participant, event):
    await create_async(HodFactory, db_session)
    return await create_async(
        AttendedEnrollmentFactory,
        db_session,
        participant_id=participant.id,
        event_id=event.id,
    )


async def _count(db_session, model) -> int:
    return await db_session.scalar(select(func.count()).select_from(model))


@pytest.mark.integration
class TestSubmitFeedback:
    async def test_issues_certificate(self, db_session, participant, event, attended):
        outcome = await submit_feedback(
            db_session,
            participant.id,
            event.id,
            PERSONAL_INFO,
            {"responses": {"q1": 5, "q2": 3, "q3": 4}},
            ip_address="10.1.1.1",
            user_agent="pytest",
        )

        assert outcome.message == SUCCESS_MESSAGE
        assert outcome.feedback.overall_rating == 4
        assert outcome.feedback.answer_format is FeedbackAnswerFormat.STRUCTURED
        assert outcome.feedback.ip_address == "10.1.1.1"
        assert CERTIFICATE_ID_RE.fullmatch(outcome.certificate.certificate_id)
        assert outcome.certificate.has_image
        assert outcome.certificate.signer_name == "Dr. Ananya Rao"
        assert not outcome.certificate.fallback

        enrollment = await EnrollmentRepository(db_session).get(
            participant.id, event.id
        )
        assert enrollment.feedback_given
        assert enrollment.certificate_generated
        assert enrollment.certificate_id == outcome.certificate.certificate_id

    async def test_legacy_answers(self, db_session, participant, event, attended):
        outcome = await submit_feedback(
            db_session, participant.id, event.id, PERSONAL_INFO, LEGACY_ANSWERS
        )

        assert outcome.feedback.answer_format is FeedbackAnswerFormat.LEGACY
        assert outcome.feedback.overall_rating == 5
        assert outcome.feedback.responses["q12"] == "More hands-on sessions"

    async def test_second_submission_rejected(
        self, db_session, participant, event, attended
    ):
        await submit_feedback(
            db_session, participant.id, event.id, PERSONAL_INFO, LEGACY_ANSWERS
        )

        with pytest.raises(AlreadySubmittedError):
            await submit_feedback(
                db_session, participant.id, event.id, PERSONAL_INFO, LEGACY_ANSWERS
            )
        assert await _count(db_session, Feedback) == 1
        assert await _count(db_session, Certificate) == 1

    async def test_not_attended_creates_nothing(self, db_session, participant, event):
        await create_async(
            EnrollmentFactory,
            db_session,
            participant_id=participant.id,
            event_id=event.id,
        )

        with pytest.raises(NotAttendedError):
            await submit_feedback(
                db_session, participant.id, event.id, PERSONAL_INFO, LEGACY_ANSWERS
            )
        assert await _count(db_session, Feedback) == 0

    async def test_not_registered(self, db_session, participant, event):
        with pytest.raises(NotRegisteredError):
            await submit_feedback(
                db_session, participant.id, event.id, PERSONAL_INFO, LEGACY_ANSWERS
            )

    async def test_invalid_identifier_checked_first(self, db_session):
        with pytest.raises(InvalidInputError, match="participantId"):
            await submit_feedback(
                db_session, "bad id!", "evt_1", PERSONAL_INFO, LEGACY_ANSWERS
            )

    async def test_missing_personal_field(
        self, db_session, participant, event, attended
    ):
        info = {**PERSONAL_INFO, "institute": "  "}
        with pytest.raises(InvalidInputError, match="personal information"):
            await submit_feedback(
                db_session, participant.id, event.id, info, LEGACY_ANSWERS
            )
        assert await _count(db_session, Feedback) == 0

    async def test_attendance_checked_before_answers(
        self, db_session, participant, event
    ):
        await create_async(
            EnrollmentFactory,
            db_session,
            participant_id=participant.id,
            event_id=event.id,
        )
        with pytest.raises(NotAttendedError):
            await submit_feedback(db_session, participant.id, event.id, {}, {})

    async def test_missing_template_still_records_feedback(
        self, db_session, participant, event, attended, missing_template
    ):
        outcome = await submit_feedback(
            db_session, participant.id, event.id, PERSONAL_INFO, LEGACY_ANSWERS
        )

        assert outcome.message == SUCCESS_MESSAGE
        assert not outcome.certificate.has_image
        stored = await db_session.scalar(
            select(Certificate).where(
                Certificate.certificate_id == outcome.certificate.certificate_id
            )
        )
        await db_session.refresh(stored, ["image_data"])
        assert stored.image_data is None
        assert stored.file_size == 0

    async def test_issuer_failure_returns_fallback(
        self, db_session, participant, event, attended
    ):
        with patch(
            "services.certificates_service.issue_certificate",
            side_effect=RuntimeError("storage offline"),
        ):
            outcome = await submit_feedback(
                db_session, participant.id, event.id, PERSONAL_INFO, LEGACY_ANSWERS
            )

        assert outcome.message == FALLBACK_MESSAGE
        assert outcome.certificate.fallback
        assert not outcome.certificate.verified
        assert outcome.certificate.participant_name == "Meera Iyer"
        assert outcome.certificate.event_title == event.title
        assert CERTIFICATE_ID_RE.fullmatch(outcome.certificate.certificate_id)

        assert await _count(db_session, Feedback) == 1
        assert await _count(db_session, Certificate) == 0
        enrollment = await EnrollmentRepository(db_session).get(
            participant.id, event.id
        )
        assert enrollment.feedback_given
        assert not enrollment.certificate_generated
