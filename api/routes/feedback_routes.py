"""Feedback question catalogue and submission endpoints."""

from fastapi import APIRouter, Request

from core.auth import CurrentUser, ensure_can_access_participant
from core.database import DbSession
from core.ratelimit import FEEDBACK_LIMIT, limiter
from schemas import (
    FeedbackQuestion,
    FeedbackRequest,
    FeedbackResponse,
    FeedbackSubmissionResponse,
)
from services.feedback_service import (
    get_feedback_questions,
    submit_feedback,
    validate_identifier,
)

router = APIRouter(prefix="/api/feedback", tags=["feedback"])


@router.get("/questions", response_model=list[FeedbackQuestion])
async def get_feedback_questions_endpoint() -> list[FeedbackQuestion]:
    """The legacy question set (q7..q15)."""
    return get_feedback_questions()


@router.post(
    "",
    response_model=FeedbackSubmissionResponse,
    status_code=201,
    responses={
        400: {"description": "Not attended, already submitted or incomplete"},
        401: {"description": "Not authenticated"},
        403: {"description": "Submitting for another participant"},
        404: {"description": "Not registered for this event"},
    },
)
@limiter.limit(FEEDBACK_LIMIT)
async def submit_feedback_endpoint(
    request: Request,
    body: FeedbackRequest,
    user: CurrentUser,
    db: DbSession,
) -> FeedbackSubmissionResponse:
    """Submit event feedback; the certificate is issued in the same call."""
    participant_id = validate_identifier(
        body.participant_id or user.id, "participantId"
    )
    ensure_can_access_participant(user, participant_id)

    answers = {"responses": body.responses, **body.legacy_answers()}
    outcome = await submit_feedback(
        db,
        participant_id,
        body.event_id,
        body.personal_info(),
        answers,
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )

    return FeedbackSubmissionResponse(
        feedback=FeedbackResponse.model_validate(outcome.feedback),
        certificate=outcome.certificate,
        message=outcome.message,
    )
