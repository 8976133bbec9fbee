"""Pydantic schemas for API request/response validation.

JSON uses camelCase on the wire; snake_case field names are accepted on
input as well (populate_by_name).
"""

from datetime import datetime
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from models import CertificateStatus, FeedbackAnswerFormat

_ID_PATTERN = r"^[A-Za-z0-9_-]{1,64}$"


class CamelModel(BaseModel):
    """Base schema: camelCase aliases, readable from ORM objects."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ============ Enrollment Schemas ============


class RegisterRequest(CamelModel):
    """Register for an event. Defaults to the session user."""

    participant_id: str | None = Field(default=None, pattern=_ID_PATTERN)


class AttendanceRequest(CamelModel):
    participant_id: str = Field(pattern=_ID_PATTERN)


class EnrollmentResponse(CamelModel):
    id: int
    participant_id: str
    event_id: str
    attended: bool
    feedback_given: bool
    certificate_generated: bool
    attendance_marked_at: datetime | None = None
    feedback_at: datetime | None = None
    certificate_generated_at: datetime | None = None
    certificate_id: str | None = None
    registered_at: datetime = Field(
        validation_alias=AliasChoices("registeredAt", "created_at")
    )


class EventSummary(CamelModel):
    id: str
    title: str
    start_date: datetime
    end_date: datetime | None = None
    duration: str | None = None
    venue: str | None = None
    mode: str | None = None


class ParticipantEventResponse(EnrollmentResponse):
    """Enrollment with the event it belongs to ("my events")."""

    event: EventSummary


class ActivityItem(CamelModel):
    type: Literal["registration", "attendance", "feedback", "certificate"]
    description: str
    event_id: str
    date: datetime


class NotificationItem(CamelModel):
    type: Literal["feedback_pending", "event_reminder"]
    title: str
    message: str
    event_id: str
    date: datetime
    read: bool = False


# ============ Feedback Schemas ============


class FeedbackQuestion(CamelModel):
    id: str
    question: str
    type: Literal["rating", "text", "radio"]
    options: list[str] | None = None
    rows: int | None = None


class FeedbackRequest(CamelModel):
    """Feedback payload.

    Answers come either as a ``responses`` mapping (question id to answer)
    or as the legacy flat fields q7..q15. Personal fields are optional here
    so that missing values get the domain error rather than a 422.
    """

    event_id: str
    participant_id: str | None = None

    name: str | None = None
    email: str | None = None
    designation: str | None = None
    institute: str | None = None
    contact: str | None = None

    responses: dict[str, Any] | None = None

    q7: Any = None
    q8: Any = None
    q9: Any = None
    q10: Any = None
    q11: Any = None
    q12: Any = None
    q13: Any = None
    q14: Any = None
    q15: Any = None

    def personal_info(self) -> dict[str, str | None]:
        return {
            "name": self.name,
            "email": self.email,
            "designation": self.designation,
            "institute": self.institute,
            "contact": self.contact,
        }

    def legacy_answers(self) -> dict[str, Any]:
        return {f"q{n}": getattr(self, f"q{n}") for n in range(7, 16)}


class FeedbackResponse(CamelModel):
    id: int
    participant_id: str
    event_id: str
    answer_format: FeedbackAnswerFormat
    overall_rating: int | None = None
    submitted_at: datetime = Field(
        validation_alias=AliasChoices("submittedAt", "created_at")
    )


# ============ Certificate Schemas ============


class BufferInfo(CamelModel):
    has_image_buffer: bool
    image_size: int
    content_type: str


class CertificateSummary(CamelModel):
    """Public view of a certificate, never carrying the PNG bytes."""

    certificate_id: str
    participant_id: str
    event_id: str
    participant_name: str
    event_title: str
    event_duration: str
    event_start_date: datetime
    event_end_date: datetime | None = None
    venue: str | None = None
    mode: str | None = None
    skills: list[str] = Field(default_factory=list)
    signer_name: str
    issued_at: datetime
    status: CertificateStatus
    verified: bool
    verification_url: str
    has_image: bool
    file_name: str | None = None
    file_size: int = 0
    template_name: str | None = None
    download_count: int = 0
    last_downloaded_at: datetime | None = None
    fallback: bool = False
    buffer_info: BufferInfo | None = None
    preview_image: str | None = None


class IssueCertificateRequest(CamelModel):
    participant_id: str = Field(pattern=_ID_PATTERN)
    event_id: str = Field(pattern=_ID_PATTERN)


class IssueCertificateResponse(CamelModel):
    certificate: CertificateSummary
    created: bool
    message: str


class FeedbackSubmissionResponse(CamelModel):
    feedback: FeedbackResponse
    certificate: CertificateSummary
    message: str


class CertificateListResponse(CamelModel):
    certificates: list[CertificateSummary]
    total: int
    format: Literal["summary", "detailed"]
    include_preview: bool


class CertificateImageResponse(CamelModel):
    certificate_id: str
    image_data_url: str
    content_type: str
    size: int


class CertificateVerifyResponse(CamelModel):
    valid: bool
    message: str
    certificate: CertificateSummary | None = None


# ============ Health Schemas ============


class HealthResponse(BaseModel):
    status: str
    service: str


class PoolStatusResponse(BaseModel):
    pool_size: int
    checked_out: int
    overflow: int
    checked_in: int


class DetailedHealthResponse(BaseModel):
    status: str
    database: bool
    pool: PoolStatusResponse | None = None
