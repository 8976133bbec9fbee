"""Factory Boy factories for generating test data.

Factories provide a clean way to create test objects with sensible defaults.
Override specific fields as needed in tests.

Usage:
    # Create a participant
    user = UserFactory.build()  # In-memory only
    user = await create_async(UserFactory, db_session)  # Persisted

    # Override fields
    event = EventFactory.build(title="Data Science Bootcamp")

    # Create related objects
    enrollment = await create_async(
        AttendedEnrollmentFactory, db_session,
        participant_id=user.id, event_id=event.id,
    )
"""

from datetime import UTC, datetime, timedelta

import factory
from faker import Faker
from sqlalchemy.ext.asyncio import AsyncSession

from models import (
    Certificate,
    CertificateStatus,
    Enrollment,
    Event,
    User,
    UserRole,
)

fake = Faker()

SAMPLE_PNG = b"\x89PNG\r\n\x1a\nfake-png-bytes"


# =============================================================================
# Async Factory Helpers
# =============================================================================


async def create_async(
    factory_class: type[factory.Factory], db: AsyncSession, **kwargs
):
    """Create an instance using a factory and persist to database.

    Usage:
        user = await create_async(UserFactory, db_session, name="Test User")
    """
    instance = factory_class.build(**kwargs)
    db.add(instance)
    await db.flush()
    await db.refresh(instance)
    return instance


async def create_batch_async(
    factory_class: type[factory.Factory], db: AsyncSession, size: int, **kwargs
):
    """Create multiple instances and persist to database."""
    instances = factory_class.build_batch(size, **kwargs)
    for instance in instances:
        db.add(instance)
    await db.flush()
    for instance in instances:
        await db.refresh(instance)
    return instances


def _identifier(prefix: str) -> str:
    return f"{prefix}_{fake.uuid4().replace('-', '')[:16]}"


# =============================================================================
# User Factories
# =============================================================================


class UserFactory(factory.Factory):
    """Factory for participant accounts."""

    class Meta:
        model = User

    id = factory.LazyFunction(lambda: _identifier("user"))
    name = factory.LazyAttribute(lambda _: fake.name())
    email = factory.LazyAttribute(lambda _: fake.email())
    role = UserRole.PARTICIPANT
    department = factory.LazyAttribute(lambda _: fake.job()[:60])
    is_active = True
    created_at = factory.LazyFunction(lambda: datetime.now(UTC))
    updated_at = factory.LazyFunction(lambda: datetime.now(UTC))


class CoordinatorFactory(UserFactory):
    role = UserRole.COORDINATOR


class HodFactory(UserFactory):
    """Head of department; signs certificates."""

    role = UserRole.HOD
    name = "Ananya Rao"


# =============================================================================
# Event Factory
# =============================================================================


class EventFactory(factory.Factory):
    class Meta:
        model = Event

    id = factory.LazyFunction(lambda: _identifier("evt"))
    title = factory.LazyAttribute(
        lambda _: f"Workshop on {fake.catch_phrase()}"[:120]
    )
    description = factory.LazyAttribute(lambda _: fake.paragraph())
    start_date = factory.LazyFunction(lambda: datetime.now(UTC) - timedelta(days=3))
    end_date = factory.LazyAttribute(lambda o: o.start_date + timedelta(days=2))
    duration = "3 Days"
    venue = "Seminar Hall A"
    mode = "offline"
    skills = factory.LazyFunction(lambda: ["python", "data analysis"])
    created_at = factory.LazyFunction(lambda: datetime.now(UTC))
    updated_at = factory.LazyFunction(lambda: datetime.now(UTC))


# =============================================================================
# Enrollment Factories
# =============================================================================


class EnrollmentFactory(factory.Factory):
    """Registered, not yet attended."""

    class Meta:
        model = Enrollment

    participant_id = factory.LazyFunction(lambda: _identifier("user"))
    event_id = factory.LazyFunction(lambda: _identifier("evt"))
    attended = False
    feedback_given = False
    certificate_generated = False
    created_at = factory.LazyFunction(lambda: datetime.now(UTC))
    updated_at = factory.LazyFunction(lambda: datetime.now(UTC))


class AttendedEnrollmentFactory(EnrollmentFactory):
    attended = True
    attendance_marked_at = factory.LazyFunction(lambda: datetime.now(UTC))


class FeedbackGivenEnrollmentFactory(AttendedEnrollmentFactory):
    feedback_given = True
    feedback_at = factory.LazyFunction(lambda: datetime.now(UTC))


# =============================================================================
# Certificate Factory
# =============================================================================


class CertificateFactory(factory.Factory):
    """Stored certificate; pass image_data=None for one without an image."""

    class Meta:
        model = Certificate

    certificate_id = factory.Sequence(
        lambda n: f"CERT-1700000000{n:03d}-ABCDEF{n:03d}"
    )
    participant_id = factory.LazyFunction(lambda: _identifier("user"))
    event_id = factory.LazyFunction(lambda: _identifier("evt"))
    participant_name = factory.LazyAttribute(lambda _: fake.name())
    event_title = "Workshop on Applied Machine Learning"
    event_duration = "3 Days"
    event_start_date = factory.LazyFunction(
        lambda: datetime.now(UTC) - timedelta(days=3)
    )
    event_end_date = None
    venue = "Seminar Hall A"
    mode = "offline"
    skills = factory.LazyFunction(list)
    signer_name = "Dr. Ananya Rao"
    image_data = SAMPLE_PNG
    content_type = "image/png"
    file_name = factory.LazyAttribute(lambda o: f"certificate-{o.certificate_id}.png")
    file_size = factory.LazyAttribute(lambda o: len(o.image_data or b""))
    template_name = "cream-bordered-appreciation"
    template_width = 1200
    template_height = 900
    verification_url = factory.LazyAttribute(
        lambda o: f"https://events.example.edu/verify-certificate/{o.certificate_id}"
    )
    digital_signature = factory.LazyAttribute(lambda o: _sign(o.certificate_id))
    verified = True
    status = CertificateStatus.GENERATED
    issued_at = factory.LazyFunction(lambda: datetime.now(UTC))
    download_count = 0
    created_at = factory.LazyFunction(lambda: datetime.now(UTC))
    updated_at = factory.LazyFunction(lambda: datetime.now(UTC))


def _sign(certificate_id: str) -> str:
    from services.certificates_service import sign_certificate_id

    return sign_certificate_id(certificate_id)
