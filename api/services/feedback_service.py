"""Feedback intake.

Submitting feedback is the step that unlocks a participant's certificate:
the submission is stored, the enrollment is marked, and the certificate is
issued in the same request.

Answers arrive in one of two shapes and are resolved once into a payload:
- StructuredFeedback: a ``responses`` mapping of question id to answer
- LegacyFeedback: the fixed question set q7..q15 sent as flat fields
"""

import math
import re
from collections.abc import Mapping
from dataclasses import dataclass
from numbers import Real
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import (
    AlreadySubmittedError,
    IncompleteAnswersError,
    InvalidInputError,
    NotAttendedError,
    NotRegisteredError,
)
from core.logger import get_logger
from core.wide_event import set_wide_event_fields
from models import Feedback, FeedbackAnswerFormat
from repositories.enrollment_repository import EnrollmentRepository
from repositories.event_repository import EventRepository
from repositories.feedback_repository import FeedbackRepository
from schemas import CertificateSummary, FeedbackQuestion
from services import certificates_service, enrollment_service

logger = get_logger(__name__)

SUCCESS_MESSAGE = (
    "Feedback submitted successfully! Your certificate has been generated."
)
FALLBACK_MESSAGE = (
    "Feedback submitted successfully! Your certificate is being prepared "
    "and will be available shortly."
)

PERSONAL_FIELDS = ("name", "email", "designation", "institute", "contact")

LEGACY_KEYS = tuple(f"q{n}" for n in range(7, 16))
LEGACY_RATING_KEYS = ("q7", "q8", "q9", "q10", "q11", "q13")

_IDENTIFIER_RE = re.compile(r"[A-Za-z0-9_-]{1,64}")

MIN_RATING = 1
MAX_RATING = 5

FEEDBACK_QUESTIONS: tuple[FeedbackQuestion, ...] = (
    FeedbackQuestion(
        id="q7",
        question=(
            "How effectively do you think the organization of this training "
            "programme facilitated a conducive learning environment and promoted "
            "active participation among participants?"
        ),
        type="rating",
    ),
    FeedbackQuestion(
        id="q8",
        question=(
            "How effectively did the resource persons communicate and engage with "
            "the participants to enhance their learning experience?"
        ),
        type="rating",
    ),
    FeedbackQuestion(
        id="q9",
        question=(
            "How well do you think the topics covered align with the current "
            "trends and challenges, and to what extent did they contribute to "
            "your professional development?"
        ),
        type="rating",
    ),
    FeedbackQuestion(
        id="q10",
        question=(
            "How effective was the presentation style in conveying the key "
            "concepts and fostering a dynamic learning environment for the "
            "participants?"
        ),
        type="rating",
    ),
    FeedbackQuestion(
        id="q11",
        question=(
            "Please provide an overall assessment of the program's overall "
            "effectiveness"
        ),
        type="rating",
    ),
    FeedbackQuestion(
        id="q12",
        question=(
            "How do you think the training programme could have been more "
            "effective? (In 2 lines)"
        ),
        type="text",
        rows=2,
    ),
    FeedbackQuestion(
        id="q13",
        question="How satisfied were you overall?",
        type="rating",
    ),
    FeedbackQuestion(
        id="q14",
        question="Would you recommend the workshop to your colleagues or peers?",
        type="radio",
        options=["Yes", "No"],
    ),
    FeedbackQuestion(
        id="q15",
        question=(
            "Which topics or aspects of the sessions did you find most "
            "interesting or useful?"
        ),
        type="text",
        rows=3,
    ),
)


@dataclass(frozen=True)
class StructuredFeedback:
    responses: dict[str, Any]

    answer_format = FeedbackAnswerFormat.STRUCTURED

    def overall_rating(self) -> int | None:
        ratings = [v for v in self.responses.values() if is_rating(v)]
        if not ratings:
            return None
        return round_half_up(sum(ratings) / len(ratings))

    def stored_responses(self) -> dict[str, Any]:
        return dict(self.responses)


@dataclass(frozen=True)
class LegacyFeedback:
    answers: dict[str, Any]

    answer_format = FeedbackAnswerFormat.LEGACY

    def overall_rating(self) -> int:
        ratings = [self.answers[key] for key in LEGACY_RATING_KEYS]
        return round_half_up(sum(ratings) / len(ratings))

    def stored_responses(self) -> dict[str, Any]:
        return {key: self.answers[key] for key in LEGACY_KEYS}


FeedbackPayload = StructuredFeedback | LegacyFeedback


@dataclass(frozen=True)
class FeedbackOutcome:
    feedback: Feedback
    certificate: CertificateSummary
    message: str


def is_rating(value: Any) -> bool:
    """A rating is a real number (not a bool) between 1 and 5 inclusive."""
    if isinstance(value, bool) or not isinstance(value, Real):
        return False
    return MIN_RATING <= value <= MAX_RATING


def round_half_up(value: float) -> int:
    """Round .5 up (2.5 -> 3), unlike round() which rounds to even."""
    return math.floor(value + 0.5)


def get_feedback_questions() -> list[FeedbackQuestion]:
    return list(FEEDBACK_QUESTIONS)


def validate_identifier(value: str | None, field_name: str) -> str:
    if not value or not _IDENTIFIER_RE.fullmatch(value):
        raise InvalidInputError(f"Invalid {field_name}")
    return value


def validate_personal_info(personal_info: Mapping[str, Any]) -> dict[str, str]:
    cleaned: dict[str, str] = {}
    for field_name in PERSONAL_FIELDS:
        value = personal_info.get(field_name)
        if not isinstance(value, str) or not value.strip():
            raise InvalidInputError("All personal information fields are required")
        cleaned[field_name] = value.strip()
    return cleaned


def resolve_payload(answers: Mapping[str, Any]) -> FeedbackPayload:
    """Pick the structured or legacy shape and validate it.

    A non-empty ``responses`` mapping wins. Otherwise every legacy key
    q7..q15 must be present and truthy, and the legacy rating questions
    must hold ratings.

    Raises:
        IncompleteAnswersError: neither shape is complete
        InvalidInputError: a legacy rating is not a number from 1 to 5
    """
    responses = answers.get("responses")
    if isinstance(responses, Mapping) and responses:
        return StructuredFeedback(responses=dict(responses))

    legacy = {key: answers.get(key) for key in LEGACY_KEYS}
    if not all(legacy.values()):
        raise IncompleteAnswersError()

    for key in LEGACY_RATING_KEYS:
        if not is_rating(legacy[key]):
            raise InvalidInputError(
                f"Answer to {key} must be a rating from {MIN_RATING} to {MAX_RATING}"
            )

    return LegacyFeedback(answers=legacy)


async def submit_feedback(
    db: AsyncSession,
    participant_id: str,
    event_id: str,
    personal_info: Mapping[str, Any],
    answers: Mapping[str, Any],
    *,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> FeedbackOutcome:
    """Record feedback and issue the participant's certificate.

    Checks run in order and the first failure is raised: identifiers,
    enrollment, attendance, duplicate submission, personal fields, answers.

    Once the feedback row is written the submission is never reported as
    failed: if issuance raises, a fallback certificate summary is returned
    and the real certificate can be issued later.
    """
    validate_identifier(participant_id, "participantId")
    validate_identifier(event_id, "eventId")

    enrollment = await EnrollmentRepository(db).get(participant_id, event_id)
    if enrollment is None:
        raise NotRegisteredError("Participant not registered for this event")
    if not enrollment.attended:
        raise NotAttendedError()
    if enrollment.feedback_given:
        raise AlreadySubmittedError()

    cleaned_info = validate_personal_info(personal_info)
    payload = resolve_payload(answers)
    overall_rating = payload.overall_rating()

    try:
        async with db.begin_nested():
            feedback = await FeedbackRepository(db).create(
                participant_id=participant_id,
                event_id=event_id,
                personal_info=cleaned_info,
                responses=payload.stored_responses(),
                answer_format=payload.answer_format,
                overall_rating=overall_rating,
                ip_address=ip_address,
                user_agent=user_agent,
            )
            await enrollment_service.mark_feedback_given(db, participant_id, event_id)
    except IntegrityError as e:
        raise AlreadySubmittedError() from e

    logger.info(
        "feedback.submitted",
        participant_id=participant_id,
        event_id=event_id,
        answer_format=payload.answer_format.value,
        overall_rating=overall_rating,
    )
    set_wide_event_fields(feedback_id=feedback.id, overall_rating=overall_rating)

    try:
        async with db.begin_nested():
            result = await certificates_service.issue_certificate(
                db, participant_id, event_id, performed_by=participant_id
            )
    except Exception:
        logger.exception(
            "certificate.issue.fallback",
            participant_id=participant_id,
            event_id=event_id,
        )
        set_wide_event_fields(certificate_fallback=True)
        event = await EventRepository(db).get_by_id(event_id)
        certificate = certificates_service.build_fallback_summary(
            participant_id,
            event_id,
            participant_name=cleaned_info["name"],
            event=event,
        )
        return FeedbackOutcome(
            feedback=feedback, certificate=certificate, message=FALLBACK_MESSAGE
        )

    return FeedbackOutcome(
        feedback=feedback, certificate=result.certificate, message=SUCCESS_MESSAGE
    )
