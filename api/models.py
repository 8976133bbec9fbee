"""SQLAlchemy models for event participation and certificates."""

from datetime import UTC, datetime
from enum import Enum as PyEnum
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    LargeBinary,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import (
    Mapped,
    declared_attr,
    deferred,
    mapped_column,
    relationship,
    validates,
)

from core.database import Base


def utcnow() -> datetime:
    """Return current UTC time (timezone-aware)."""
    return datetime.now(UTC)


def as_utc(value: datetime | None) -> datetime | None:
    """SQLite hands back naive datetimes; treat them as UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)


def _enum_values(enum_cls: type[PyEnum]) -> list[str]:
    return [e.value for e in enum_cls]


class TimestampMixin:
    """Mixin that adds created_at and updated_at timestamp columns.

    Use this for any model that needs audit timestamps.
    """

    @declared_attr
    def created_at(cls) -> Mapped[datetime]:
        return mapped_column(DateTime(timezone=True), default=utcnow)

    @declared_attr
    def updated_at(cls) -> Mapped[datetime]:
        return mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class UserRole(str, PyEnum):
    ADMIN = "admin"
    COORDINATOR = "coordinator"
    HOD = "hod"
    PARTICIPANT = "participant"


# Roles that may act on other participants' records
ELEVATED_ROLES = frozenset({UserRole.ADMIN, UserRole.COORDINATOR, UserRole.HOD})


class User(TimestampMixin, Base):
    """Account row. Users are created by the administration side, not here."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    role: Mapped[UserRole] = mapped_column(
        Enum(
            UserRole,
            name="user_role",
            native_enum=False,
            values_callable=_enum_values,
        ),
        nullable=False,
        default=UserRole.PARTICIPANT,
    )
    department: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    enrollments: Mapped[list["Enrollment"]] = relationship(
        back_populates="participant",
    )

    @property
    def is_elevated(self) -> bool:
        return self.role in ELEVATED_ROLES


class Event(TimestampMixin, Base):
    """Event row. Read-only for this service apart from enrollments."""

    __tablename__ = "events"
    __table_args__ = (Index("ix_events_start_date", "start_date"),)

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    start_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    end_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    duration: Mapped[str | None] = mapped_column(String(100), nullable=True)
    venue: Mapped[str | None] = mapped_column(String(255), nullable=True)
    mode: Mapped[str | None] = mapped_column(String(50), nullable=True)
    skills: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)

    enrollments: Mapped[list["Enrollment"]] = relationship(back_populates="event")


class Enrollment(TimestampMixin, Base):
    """A participant's registration for one event and its lifecycle flags.

    Flags only move forward: attended, then feedback_given, then
    certificate_generated. The check constraints keep that order at the
    storage level and the validator below refuses to reset a flag.
    """

    __tablename__ = "participant_events"
    __table_args__ = (
        UniqueConstraint("participant_id", "event_id", name="uq_participant_event"),
        CheckConstraint(
            "NOT feedback_given OR attended",
            name="ck_participant_events_feedback_requires_attendance",
        ),
        CheckConstraint(
            "NOT certificate_generated OR feedback_given",
            name="ck_participant_events_certificate_requires_feedback",
        ),
        Index("ix_participant_events_participant", "participant_id"),
        Index("ix_participant_events_event", "event_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    participant_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    event_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("events.id", ondelete="CASCADE"),
        nullable=False,
    )
    attended: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    feedback_given: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    certificate_generated: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    attendance_marked_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    feedback_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    certificate_generated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    certificate_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    participant: Mapped["User"] = relationship(back_populates="enrollments")
    event: Mapped["Event"] = relationship(back_populates="enrollments")

    @validates("attended", "feedback_given", "certificate_generated")
    def _validate_flag(self, key: str, value: bool) -> bool:
        if getattr(self, key) and not value:
            raise ValueError(f"{key} cannot be reset once set")
        return value


class FeedbackAnswerFormat(str, PyEnum):
    STRUCTURED = "structured"
    LEGACY = "legacy"


class Feedback(TimestampMixin, Base):
    """One feedback submission per participant and event."""

    __tablename__ = "feedback"
    __table_args__ = (
        UniqueConstraint(
            "participant_id", "event_id", name="uq_feedback_participant_event"
        ),
        Index("ix_feedback_event", "event_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    participant_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    event_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("events.id", ondelete="CASCADE"),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    designation: Mapped[str] = mapped_column(String(255), nullable=False)
    institute: Mapped[str] = mapped_column(String(255), nullable=False)
    contact: Mapped[str] = mapped_column(String(50), nullable=False)
    responses: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    answer_format: Mapped[FeedbackAnswerFormat] = mapped_column(
        Enum(
            FeedbackAnswerFormat,
            name="feedback_answer_format",
            native_enum=False,
            values_callable=_enum_values,
        ),
        nullable=False,
    )
    overall_rating: Mapped[int | None] = mapped_column(Integer, nullable=True)
    submission_source: Mapped[str] = mapped_column(
        String(20), default="web", nullable=False
    )
    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(512), nullable=True)


class CertificateStatus(str, PyEnum):
    GENERATED = "generated"
    REVOKED = "revoked"


class Certificate(TimestampMixin, Base):
    """Issued completion certificate with a snapshot of what was printed."""

    __tablename__ = "certificates"
    __table_args__ = (
        UniqueConstraint(
            "participant_id", "event_id", name="uq_certificate_participant_event"
        ),
        Index("ix_certificates_participant", "participant_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    certificate_id: Mapped[str] = mapped_column(
        String(64), nullable=False, unique=True
    )
    participant_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    event_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("events.id", ondelete="CASCADE"),
        nullable=False,
    )

    # What the certificate says, frozen at issue time
    participant_name: Mapped[str] = mapped_column(String(255), nullable=False)
    event_title: Mapped[str] = mapped_column(String(255), nullable=False)
    event_duration: Mapped[str] = mapped_column(String(100), nullable=False)
    event_start_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    event_end_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    venue: Mapped[str | None] = mapped_column(String(255), nullable=True)
    mode: Mapped[str | None] = mapped_column(String(50), nullable=True)
    skills: Mapped[list[str]] = mapped_column(JSON, default=list, nullable=False)
    signer_name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Rendered artifact; deferred so listings don't pull every PNG
    image_data: Mapped[bytes | None] = deferred(
        mapped_column(LargeBinary, nullable=True)
    )
    content_type: Mapped[str] = mapped_column(
        String(50), default="image/png", nullable=False
    )
    file_name: Mapped[str] = mapped_column(String(255), nullable=False)
    file_size: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    template_name: Mapped[str] = mapped_column(String(100), nullable=False)
    template_width: Mapped[int] = mapped_column(Integer, nullable=False)
    template_height: Mapped[int] = mapped_column(Integer, nullable=False)

    verification_url: Mapped[str] = mapped_column(String(512), nullable=False)
    digital_signature: Mapped[str] = mapped_column(String(128), nullable=False)
    verified: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    status: Mapped[CertificateStatus] = mapped_column(
        Enum(
            CertificateStatus,
            name="certificate_status",
            native_enum=False,
            values_callable=_enum_values,
        ),
        default=CertificateStatus.GENERATED,
        nullable=False,
    )
    issued_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    download_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_downloaded_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    generation_time_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)

    audit_entries: Mapped[list["CertificateAuditEntry"]] = relationship(
        back_populates="certificate",
        cascade="all, delete-orphan",
        order_by="CertificateAuditEntry.id",
    )

    @property
    def has_image(self) -> bool:
        return self.file_size > 0


class CertificateAuditEntry(Base):
    """Append-only history of what happened to a certificate."""

    __tablename__ = "certificate_audit_entries"
    __table_args__ = (Index("ix_certificate_audit_certificate", "certificate_pk"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    certificate_pk: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("certificates.id", ondelete="CASCADE"),
        nullable=False,
    )
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    performed_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    details: Mapped[str | None] = mapped_column(Text, nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    certificate: Mapped["Certificate"] = relationship(back_populates="audit_entries")
