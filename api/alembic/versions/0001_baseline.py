"""baseline schema for event participation and certificates

Revision ID: 0001_baseline
Revises:
Create Date: 2026-10-17

Users and events are owned by the administration side; this service writes
enrollments, feedback, certificates and the certificate audit trail.
"""

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision = "0001_baseline"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column(
            "role",
            sa.Enum(
                "admin",
                "coordinator",
                "hod",
                "participant",
                name="user_role",
                native_enum=False,
            ),
            nullable=False,
        ),
        sa.Column("department", sa.String(255), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_email", "users", ["email"])

    op.create_table(
        "events",
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("duration", sa.String(100), nullable=True),
        sa.Column("venue", sa.String(255), nullable=True),
        sa.Column("mode", sa.String(50), nullable=True),
        sa.Column("skills", sa.JSON(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_events_start_date", "events", ["start_date"])

    op.create_table(
        "participant_events",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("participant_id", sa.String(64), nullable=False),
        sa.Column("event_id", sa.String(64), nullable=False),
        sa.Column("attended", sa.Boolean(), nullable=False),
        sa.Column("feedback_given", sa.Boolean(), nullable=False),
        sa.Column("certificate_generated", sa.Boolean(), nullable=False),
        sa.Column("attendance_marked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("feedback_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "certificate_generated_at", sa.DateTime(timezone=True), nullable=True
        ),
        sa.Column("certificate_id", sa.String(64), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["participant_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["event_id"], ["events.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("participant_id", "event_id", name="uq_participant_event"),
        sa.CheckConstraint(
            "NOT feedback_given OR attended",
            name="ck_participant_events_feedback_requires_attendance",
        ),
        sa.CheckConstraint(
            "NOT certificate_generated OR feedback_given",
            name="ck_participant_events_certificate_requires_feedback",
        ),
    )
    op.create_index(
        "ix_participant_events_participant", "participant_events", ["participant_id"]
    )
    op.create_index("ix_participant_events_event", "participant_events", ["event_id"])

    op.create_table(
        "feedback",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("participant_id", sa.String(64), nullable=False),
        sa.Column("event_id", sa.String(64), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("designation", sa.String(255), nullable=False),
        sa.Column("institute", sa.String(255), nullable=False),
        sa.Column("contact", sa.String(50), nullable=False),
        sa.Column("responses", sa.JSON(), nullable=False),
        sa.Column(
            "answer_format",
            sa.Enum(
                "structured",
                "legacy",
                name="feedback_answer_format",
                native_enum=False,
            ),
            nullable=False,
        ),
        sa.Column("overall_rating", sa.Integer(), nullable=True),
        sa.Column("submission_source", sa.String(20), nullable=False),
        sa.Column("ip_address", sa.String(64), nullable=True),
        sa.Column("user_agent", sa.String(512), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["participant_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["event_id"], ["events.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "participant_id", "event_id", name="uq_feedback_participant_event"
        ),
    )
    op.create_index("ix_feedback_event", "feedback", ["event_id"])

    op.create_table(
        "certificates",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("certificate_id", sa.String(64), nullable=False),
        sa.Column("participant_id", sa.String(64), nullable=False),
        sa.Column("event_id", sa.String(64), nullable=False),
        sa.Column("participant_name", sa.String(255), nullable=False),
        sa.Column("event_title", sa.String(255), nullable=False),
        sa.Column("event_duration", sa.String(100), nullable=False),
        sa.Column("event_start_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("event_end_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("venue", sa.String(255), nullable=True),
        sa.Column("mode", sa.String(50), nullable=True),
        sa.Column("skills", sa.JSON(), nullable=False),
        sa.Column("signer_name", sa.String(255), nullable=False),
        sa.Column("image_data", sa.LargeBinary(), nullable=True),
        sa.Column("content_type", sa.String(50), nullable=False),
        sa.Column("file_name", sa.String(255), nullable=False),
        sa.Column("file_size", sa.Integer(), nullable=False),
        sa.Column("template_name", sa.String(100), nullable=False),
        sa.Column("template_width", sa.Integer(), nullable=False),
        sa.Column("template_height", sa.Integer(), nullable=False),
        sa.Column("verification_url", sa.String(512), nullable=False),
        sa.Column("digital_signature", sa.String(128), nullable=False),
        sa.Column("verified", sa.Boolean(), nullable=False),
        sa.Column(
            "status",
            sa.Enum(
                "generated",
                "revoked",
                name="certificate_status",
                native_enum=False,
            ),
            nullable=False,
        ),
        sa.Column("issued_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("download_count", sa.Integer(), nullable=False),
        sa.Column("last_downloaded_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("generation_time_ms", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["participant_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["event_id"], ["events.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("certificate_id"),
        sa.UniqueConstraint(
            "participant_id", "event_id", name="uq_certificate_participant_event"
        ),
    )
    op.create_index(
        "ix_certificates_participant", "certificates", ["participant_id"]
    )

    op.create_table(
        "certificate_audit_entries",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("certificate_pk", sa.Integer(), nullable=False),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("performed_by", sa.String(64), nullable=True),
        sa.Column("details", sa.Text(), nullable=True),
        sa.Column("ip_address", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["certificate_pk"], ["certificates.id"], ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_certificate_audit_certificate",
        "certificate_audit_entries",
        ["certificate_pk"],
    )


def downgrade() -> None:
    op.drop_index(
        "ix_certificate_audit_certificate", table_name="certificate_audit_entries"
    )
    op.drop_table("certificate_audit_entries")
    op.drop_index("ix_certificates_participant", table_name="certificates")
    op.drop_table("certificates")
    op.drop_index("ix_feedback_event", table_name="feedback")
    op.drop_table("feedback")
    op.drop_index("ix_participant_events_event", table_name="participant_events")
    op.drop_index("ix_participant_events_participant", table_name="participant_events")
    op.drop_table("participant_events")
    op.drop_index("ix_events_start_date", table_name="events")
    op.drop_table("events")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
