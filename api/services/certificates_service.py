"""Certificate business logic.

This module handles:
- Issuance: idempotent per (participant, event), rendering in a worker thread
- The fallback summary returned when issuance fails after feedback
- Listing, preview, image and download for owners and elevated roles
- Public verification against the stored HMAC signature

Routes should delegate all certificate business logic to this module.
"""

import asyncio
import base64
import hashlib
import hmac
import secrets
import string
import time
from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import get_settings
from core.exceptions import (
    AccessDeniedError,
    CertificateImageUnavailableError,
    CertificateNotFoundError,
    EventNotFoundError,
    FeedbackRequiredError,
    ParticipantNotFoundError,
    PersistenceError,
)
from core.logger import get_logger
from core.wide_event import set_wide_event_fields
from models import (
    Certificate,
    CertificateStatus,
    Event,
    User,
    UserRole,
    as_utc,
    utcnow,
)
from rendering.certificates import (
    DEFAULT_DURATION,
    DEFAULT_LAYOUT,
    CertificateArtifact,
    CertificateLayout,
    build_verification_url,
    format_long_date,
    render_certificate,
)
from repositories.certificate_repository import CertificateRepository
from repositories.enrollment_repository import EnrollmentRepository
from repositories.event_repository import EventRepository
from repositories.user_repository import UserRepository
from schemas import (
    BufferInfo,
    CertificateImageResponse,
    CertificateSummary,
    CertificateVerifyResponse,
)
from services import enrollment_service

logger = get_logger(__name__)

SIGNER_PLACEHOLDER = "Department Head"
CREATED_AUDIT_DETAILS = "Certificate generated after feedback submission"

_ID_ALPHABET = string.ascii_uppercase + string.digits
_ID_RANDOM_LENGTH = 9


@dataclass(frozen=True)
class IssueResult:
    certificate: CertificateSummary
    created: bool


@dataclass(frozen=True)
class CertificateDownload:
    content: bytes
    file_name: str
    content_type: str


def generate_certificate_id() -> str:
    """Generate a public certificate ID.

    Format: CERT-{unix millis}-{9 random [A-Z0-9]}
    """
    millis = int(time.time() * 1000)
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(_ID_RANDOM_LENGTH))
    return f"CERT-{millis}-{suffix}"


def sign_certificate_id(certificate_id: str) -> str:
    """HMAC-SHA256 of the certificate ID, hex encoded."""
    key = get_settings().certificate_signing_key.encode()
    return hmac.new(key, certificate_id.encode(), hashlib.sha256).hexdigest()


def format_signer_name(name: str | None) -> str:
    """Prefix "Dr." unless already present; placeholder when there is no signer."""
    if not name or not name.strip():
        return SIGNER_PLACEHOLDER
    name = name.strip()
    if name.lower().startswith("dr."):
        return name
    return f"Dr. {name}"


def default_layout() -> CertificateLayout:
    return DEFAULT_LAYOUT.with_template(get_settings().template_path)


def _to_certificate_summary(
    certificate: Certificate,
    *,
    buffer_info: BufferInfo | None = None,
    preview_image: str | None = None,
) -> CertificateSummary:
    return CertificateSummary(
        certificate_id=certificate.certificate_id,
        participant_id=certificate.participant_id,
        event_id=certificate.event_id,
        participant_name=certificate.participant_name,
        event_title=certificate.event_title,
        event_duration=certificate.event_duration,
        event_start_date=as_utc(certificate.event_start_date),
        event_end_date=as_utc(certificate.event_end_date),
        venue=certificate.venue,
        mode=certificate.mode,
        skills=list(certificate.skills or []),
        signer_name=certificate.signer_name,
        issued_at=as_utc(certificate.issued_at),
        status=certificate.status,
        verified=certificate.verified,
        verification_url=certificate.verification_url,
        has_image=certificate.has_image,
        file_name=certificate.file_name,
        file_size=certificate.file_size,
        template_name=certificate.template_name,
        download_count=certificate.download_count,
        last_downloaded_at=as_utc(certificate.last_downloaded_at),
        buffer_info=buffer_info,
        preview_image=preview_image,
    )


def _data_url(image_data: bytes, content_type: str = "image/png") -> str:
    return f"data:{content_type};base64,{base64.b64encode(image_data).decode('ascii')}"


async def _resolve_signer(db: AsyncSession) -> str:
    hod = await UserRepository(db).get_active_by_role(UserRole.HOD)
    return format_signer_name(hod.name if hod else None)


def _build_artifact(
    certificate_id: str,
    participant: User,
    event: Event,
    signer_name: str,
    verification_url: str,
) -> CertificateArtifact:
    return CertificateArtifact(
        certificate_id=certificate_id,
        participant_name=participant.name,
        event_title=event.title,
        event_duration=event.duration or DEFAULT_DURATION,
        event_start_date=as_utc(event.start_date),
        event_end_date=as_utc(event.end_date),
        venue=event.venue,
        issued_at=utcnow(),
        signer_name=signer_name,
        verification_url=verification_url,
    )


async def issue_certificate(
    db: AsyncSession,
    participant_id: str,
    event_id: str,
    *,
    performed_by: str | None = None,
    layout: CertificateLayout | None = None,
) -> IssueResult:
    """Issue the certificate for a participant/event pair, at most once.

    Returns the existing certificate unchanged if one was already issued,
    including when a concurrent request wins the insert. A rendering failure
    does not stop issuance; the certificate is stored without an image.

    Raises:
        EventNotFoundError / ParticipantNotFoundError: unknown identifiers
        EnrollmentNotFoundError / FeedbackRequiredError: feedback not recorded
        PersistenceError: the certificate could not be stored
    """
    cert_repo = CertificateRepository(db)
    existing = await cert_repo.get_by_participant_and_event(participant_id, event_id)
    if existing is not None:
        logger.info(
            "certificate.issue.existing",
            certificate_id=existing.certificate_id,
            participant_id=participant_id,
            event_id=event_id,
        )
        return IssueResult(certificate=_to_certificate_summary(existing), created=False)

    started = time.perf_counter()
    certificate_id = generate_certificate_id()

    event = await EventRepository(db).get_by_id(event_id)
    if event is None:
        raise EventNotFoundError()
    participant = await UserRepository(db).get_by_id(participant_id)
    if participant is None:
        raise ParticipantNotFoundError()

    enrollment = await EnrollmentRepository(db).get(participant_id, event_id)
    if enrollment is None or not enrollment.feedback_given:
        raise FeedbackRequiredError()

    signer_name = await _resolve_signer(db)
    verification_url = build_verification_url(
        get_settings().frontend_url, certificate_id
    )
    layout = layout or default_layout()
    artifact = _build_artifact(
        certificate_id, participant, event, signer_name, verification_url
    )

    render = await asyncio.to_thread(render_certificate, artifact, layout)
    image_data = render.image_data

    try:
        async with db.begin_nested():
            certificate = await cert_repo.create(
                audit_details=CREATED_AUDIT_DETAILS,
                performed_by=performed_by or participant_id,
                certificate_id=certificate_id,
                participant_id=participant_id,
                event_id=event_id,
                participant_name=participant.name,
                event_title=event.title,
                event_duration=artifact.event_duration or DEFAULT_DURATION,
                event_start_date=event.start_date,
                event_end_date=event.end_date,
                venue=event.venue,
                mode=event.mode,
                skills=list(event.skills or []),
                signer_name=signer_name,
                image_data=image_data,
                content_type="image/png",
                file_name=f"certificate-{certificate_id}.png",
                file_size=len(image_data) if image_data else 0,
                template_name=layout.template_name,
                template_width=layout.width,
                template_height=layout.height,
                verification_url=verification_url,
                digital_signature=sign_certificate_id(certificate_id),
                verified=True,
                status=CertificateStatus.GENERATED,
                generation_time_ms=int((time.perf_counter() - started) * 1000),
            )
            await enrollment_service.mark_certificate_issued(
                db, participant_id, event_id, certificate_id
            )
    except IntegrityError as e:
        existing = await cert_repo.get_by_participant_and_event(
            participant_id, event_id
        )
        if existing is None:
            logger.exception(
                "certificate.persist.failed",
                certificate_id=certificate_id,
                participant_id=participant_id,
                event_id=event_id,
            )
            raise PersistenceError() from e
        logger.info(
            "certificate.issue.race",
            certificate_id=existing.certificate_id,
            participant_id=participant_id,
            event_id=event_id,
        )
        return IssueResult(certificate=_to_certificate_summary(existing), created=False)
    except SQLAlchemyError as e:
        logger.exception(
            "certificate.persist.failed",
            certificate_id=certificate_id,
            participant_id=participant_id,
            event_id=event_id,
        )
        raise PersistenceError() from e

    logger.info(
        "certificate.issued",
        certificate_id=certificate_id,
        participant_id=participant_id,
        event_id=event_id,
        has_image=render.ok,
        render_error=str(render.error) if render.error else None,
        generation_time_ms=certificate.generation_time_ms,
    )
    set_wide_event_fields(
        certificate_id=certificate_id, certificate_has_image=render.ok
    )

    return IssueResult(certificate=_to_certificate_summary(certificate), created=True)


def build_fallback_summary(
    participant_id: str,
    event_id: str,
    *,
    participant_name: str,
    event: Event | None = None,
) -> CertificateSummary:
    """Stand-in summary when issuance fails after feedback was accepted.

    Not persisted: the enrollment stays un-issued so the real certificate
    can be created later through the issue endpoint.
    """
    certificate_id = generate_certificate_id()
    now = utcnow()
    return CertificateSummary(
        certificate_id=certificate_id,
        participant_id=participant_id,
        event_id=event_id,
        participant_name=participant_name,
        event_title=event.title if event else "Unknown Event",
        event_duration=(event.duration if event else None) or DEFAULT_DURATION,
        event_start_date=as_utc(event.start_date) if event else now,
        event_end_date=as_utc(event.end_date) if event else None,
        venue=event.venue if event else None,
        mode=event.mode if event else None,
        skills=list(event.skills or []) if event else [],
        signer_name=SIGNER_PLACEHOLDER,
        issued_at=now,
        status=CertificateStatus.GENERATED,
        verified=False,
        verification_url=build_verification_url(
            get_settings().frontend_url, certificate_id
        ),
        has_image=False,
        fallback=True,
    )


def ensure_can_view(certificate: Certificate, viewer: User) -> None:
    """Owners and elevated roles may view a certificate."""
    if certificate.participant_id != viewer.id and not viewer.is_elevated:
        raise AccessDeniedError("You do not have permission to view this certificate")


async def _get_certificate(
    db: AsyncSession, certificate_id: str, *, with_image: bool = False
) -> Certificate:
    certificate = await CertificateRepository(db).get_by_certificate_id(
        certificate_id, with_image=with_image
    )
    if certificate is None:
        raise CertificateNotFoundError()
    return certificate


async def list_participant_certificates(
    db: AsyncSession,
    participant_id: str,
    *,
    include_preview: bool = False,
    detailed: bool = False,
) -> list[CertificateSummary]:
    """Certificates for a participant, newest first.

    ``detailed`` adds buffer info; ``include_preview`` inlines the PNG as a
    data URL for certificates that have one.
    """
    certificates = await CertificateRepository(db).get_by_participant(
        participant_id, with_images=include_preview
    )

    summaries = []
    for cert in certificates:
        buffer_info = None
        if detailed:
            buffer_info = BufferInfo(
                has_image_buffer=cert.has_image,
                image_size=cert.file_size,
                content_type=cert.content_type,
            )
        preview = None
        if include_preview and cert.image_data:
            preview = _data_url(cert.image_data, cert.content_type)
        summaries.append(
            _to_certificate_summary(
                cert, buffer_info=buffer_info, preview_image=preview
            )
        )

    return summaries


async def get_certificate_preview(
    db: AsyncSession, certificate_id: str, viewer: User
) -> CertificateSummary:
    """Certificate summary without image data."""
    certificate = await _get_certificate(db, certificate_id)
    ensure_can_view(certificate, viewer)
    return _to_certificate_summary(certificate)


async def get_certificate_image(
    db: AsyncSession, certificate_id: str, viewer: User
) -> CertificateImageResponse:
    certificate = await _get_certificate(db, certificate_id, with_image=True)
    ensure_can_view(certificate, viewer)
    if not certificate.image_data:
        raise CertificateImageUnavailableError()

    return CertificateImageResponse(
        certificate_id=certificate.certificate_id,
        image_data_url=_data_url(certificate.image_data, certificate.content_type),
        content_type=certificate.content_type,
        size=len(certificate.image_data),
    )


async def download_certificate(
    db: AsyncSession,
    certificate_id: str,
    viewer: User,
    *,
    ip_address: str | None = None,
) -> CertificateDownload:
    """PNG bytes for download; counts the download and audits it."""
    certificate = await _get_certificate(db, certificate_id, with_image=True)
    ensure_can_view(certificate, viewer)
    if not certificate.image_data:
        raise CertificateImageUnavailableError()

    await CertificateRepository(db).record_download(
        certificate, performed_by=viewer.id, ip_address=ip_address
    )
    logger.info(
        "certificate.downloaded",
        certificate_id=certificate_id,
        downloaded_by=viewer.id,
    )

    return CertificateDownload(
        content=certificate.image_data,
        file_name=certificate.file_name,
        content_type=certificate.content_type,
    )


async def verify_certificate(
    db: AsyncSession, certificate_id: str
) -> CertificateVerifyResponse:
    """Public verification. Unknown IDs are reported as invalid, never raised."""
    certificate = await CertificateRepository(db).get_by_certificate_id(certificate_id)

    if certificate is None:
        return CertificateVerifyResponse(
            valid=False,
            message="Certificate not found. Please check the certificate ID.",
        )

    if certificate.status == CertificateStatus.REVOKED:
        return CertificateVerifyResponse(
            valid=False,
            message="This certificate has been revoked.",
        )

    expected = sign_certificate_id(certificate.certificate_id)
    if not hmac.compare_digest(expected, certificate.digital_signature):
        logger.warning(
            "certificate.verify.signature_mismatch", certificate_id=certificate_id
        )
        return CertificateVerifyResponse(
            valid=False,
            message="Certificate signature could not be verified.",
        )

    issued = format_long_date(as_utc(certificate.issued_at))
    return CertificateVerifyResponse(
        valid=True,
        certificate=_to_certificate_summary(certificate),
        message=f"Valid certificate for {certificate.event_title} issued on {issued}",
    )
