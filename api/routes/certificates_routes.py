"""Certificate listing, viewing, download, issuance and verification endpoints.

Route ordering note: Literal path segments (/verify/, /preview/, /image/,
/download/, /issue) are defined before the parameterized /{participant_id}
listing to prevent routing conflicts.
"""

from typing import Annotated, Literal

from fastapi import APIRouter, Path, Query, Request, Response

from core.auth import CurrentUser, ensure_can_access_participant
from core.database import DbSession
from core.ratelimit import CERTIFICATE_LIMIT, VERIFY_LIMIT, limiter
from schemas import (
    CertificateImageResponse,
    CertificateListResponse,
    CertificateSummary,
    CertificateVerifyResponse,
    IssueCertificateRequest,
    IssueCertificateResponse,
)
from services.certificates_service import (
    download_certificate,
    get_certificate_image,
    get_certificate_preview,
    issue_certificate,
    list_participant_certificates,
    verify_certificate,
)

router = APIRouter(prefix="/api/certificates", tags=["certificates"])

CertificateIdPath = Annotated[str, Path(min_length=1, max_length=64)]
ParticipantIdPath = Annotated[str, Path(min_length=1, max_length=64)]

_AUTH_RESPONSES = {
    401: {"description": "Not authenticated"},
    403: {"description": "Not the owner and not an elevated role"},
    404: {"description": "Certificate not found"},
}


# --- Literal path routes (before parameterized) ---


@router.get(
    "/verify/{certificate_id}",
    response_model=CertificateVerifyResponse,
)
@limiter.limit(VERIFY_LIMIT)
async def verify_certificate_endpoint(
    request: Request,
    db: DbSession,
    certificate_id: CertificateIdPath,
) -> CertificateVerifyResponse:
    """Verify a certificate by its ID (public endpoint).

    Unknown, revoked or tampered certificates return ``valid: false``.
    """
    return await verify_certificate(db, certificate_id)


@router.get(
    "/preview/{certificate_id}",
    response_model=CertificateSummary,
    responses=_AUTH_RESPONSES,
)
async def get_certificate_preview_endpoint(
    user: CurrentUser,
    db: DbSession,
    certificate_id: CertificateIdPath,
) -> CertificateSummary:
    """Certificate details without image data."""
    return await get_certificate_preview(db, certificate_id, user)


@router.get(
    "/image/{certificate_id}",
    response_model=CertificateImageResponse,
    responses=_AUTH_RESPONSES,
)
async def get_certificate_image_endpoint(
    user: CurrentUser,
    db: DbSession,
    certificate_id: CertificateIdPath,
) -> CertificateImageResponse:
    """Certificate PNG as a data URL for inline display."""
    return await get_certificate_image(db, certificate_id, user)


@router.get(
    "/download/{certificate_id}",
    responses={
        200: {"content": {"image/png": {}}, "description": "PNG certificate"},
        **_AUTH_RESPONSES,
    },
)
@limiter.limit(CERTIFICATE_LIMIT)
async def download_certificate_endpoint(
    request: Request,
    user: CurrentUser,
    db: DbSession,
    certificate_id: CertificateIdPath,
) -> Response:
    """Download the certificate PNG as an attachment."""
    client_ip = request.client.host if request.client else None
    download = await download_certificate(
        db, certificate_id, user, ip_address=client_ip
    )

    return Response(
        content=download.content,
        media_type=download.content_type,
        headers={
            "Content-Disposition": f'attachment; filename="{download.file_name}"',
            "Cache-Control": "private, no-store",
        },
    )


@router.post(
    "/issue",
    response_model=IssueCertificateResponse,
    responses={
        201: {"description": "Certificate issued"},
        400: {"description": "Feedback not yet submitted"},
        **_AUTH_RESPONSES,
    },
)
@limiter.limit(CERTIFICATE_LIMIT)
async def issue_certificate_endpoint(
    request: Request,
    response: Response,
    body: IssueCertificateRequest,
    user: CurrentUser,
    db: DbSession,
) -> IssueCertificateResponse:
    """Issue (or re-fetch) the certificate for a participant and event.

    Used to retry issuance when it failed during feedback submission.
    Returns 201 when a certificate was created, 200 when it already existed.
    """
    ensure_can_access_participant(user, body.participant_id)

    result = await issue_certificate(
        db, body.participant_id, body.event_id, performed_by=user.id
    )
    response.status_code = 201 if result.created else 200

    return IssueCertificateResponse(
        certificate=result.certificate,
        created=result.created,
        message=(
            "Certificate generated successfully"
            if result.created
            else "Certificate already issued"
        ),
    )


# --- Parameterized routes ---


@router.get(
    "/{participant_id}",
    response_model=CertificateListResponse,
    responses={
        401: {"description": "Not authenticated"},
        403: {"description": "Not the participant and not an elevated role"},
    },
)
async def list_certificates_endpoint(
    user: CurrentUser,
    db: DbSession,
    participant_id: ParticipantIdPath,
    include_preview: bool = Query(default=False, alias="includePreview"),
    format: Literal["summary", "detailed"] = Query(default="summary"),
) -> CertificateListResponse:
    """All certificates for a participant, newest first."""
    ensure_can_access_participant(user, participant_id)

    certificates = await list_participant_certificates(
        db,
        participant_id,
        include_preview=include_preview,
        detailed=format == "detailed",
    )

    return CertificateListResponse(
        certificates=certificates,
        total=len(certificates),
        format=format,
        include_preview=include_preview,
    )
