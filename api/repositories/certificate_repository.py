"""Repository for certificate operations."""

from collections.abc import Sequence
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import undefer

from models import Certificate, CertificateAuditEntry
from repositories.utils import log_slow_query


class CertificateRepository:
    """Repository for certificate CRUD operations.

    ``image_data`` is a deferred column: pass ``with_image=True`` when the
    PNG bytes are needed.
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get_by_certificate_id(
        self,
        certificate_id: str,
        *,
        with_image: bool = False,
    ) -> Certificate | None:
        """Get a certificate by its public ID (for verification and viewing)."""
        stmt = select(Certificate).where(Certificate.certificate_id == certificate_id)
        if with_image:
            stmt = stmt.options(undefer(Certificate.image_data))
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_participant_and_event(
        self,
        participant_id: str,
        event_id: str,
    ) -> Certificate | None:
        result = await self.db.execute(
            select(Certificate).where(
                Certificate.participant_id == participant_id,
                Certificate.event_id == event_id,
            )
        )
        return result.scalar_one_or_none()

    @log_slow_query("list_participant_certificates")
    async def get_by_participant(
        self,
        participant_id: str,
        *,
        with_images: bool = False,
        limit: int = 100,
    ) -> Sequence[Certificate]:
        """Get all certificates for a participant, most recent first.

        Args:
            participant_id: The participant's user ID
            with_images: Also load the PNG bytes (for inline previews)
            limit: Maximum number of certificates to return (default 100)
        """
        stmt = (
            select(Certificate)
            .where(Certificate.participant_id == participant_id)
            .order_by(Certificate.issued_at.desc(), Certificate.id.desc())
            .limit(limit)
        )
        if with_images:
            stmt = stmt.options(undefer(Certificate.image_data))
        result = await self.db.execute(stmt)
        return result.scalars().all()

    async def create(
        self,
        *,
        audit_details: str,
        performed_by: str | None = None,
        **fields: Any,
    ) -> Certificate:
        """Create a certificate together with its ``created`` audit entry.

        Sets issued_at to current UTC time. Calls flush() but does NOT commit;
        the caller is responsible for transaction management.
        """
        certificate = Certificate(issued_at=datetime.now(UTC), **fields)
        certificate.audit_entries.append(
            CertificateAuditEntry(
                action="created",
                performed_by=performed_by,
                details=audit_details,
            )
        )
        self.db.add(certificate)
        await self.db.flush()
        return certificate

    async def record_download(
        self,
        certificate: Certificate,
        *,
        performed_by: str | None,
        ip_address: str | None,
    ) -> None:
        """Bump the download counter and append a ``downloaded`` audit entry.

        The counter is incremented in SQL so concurrent downloads are not lost.
        """
        now = datetime.now(UTC)
        await self.db.execute(
            update(Certificate)
            .where(Certificate.id == certificate.id)
            .values(
                download_count=Certificate.download_count + 1,
                last_downloaded_at=now,
            )
        )
        self.db.add(
            CertificateAuditEntry(
                certificate_pk=certificate.id,
                action="downloaded",
                performed_by=performed_by,
                ip_address=ip_address,
                created_at=now,
            )
        )
        await self.db.flush()

    async def get_audit_entries(
        self, certificate: Certificate
    ) -> Sequence[CertificateAuditEntry]:
        result = await self.db.execute(
            select(CertificateAuditEntry)
            .where(CertificateAuditEntry.certificate_pk == certificate.id)
            .order_by(CertificateAuditEntry.id.asc())
        )
        return result.scalars().all()
