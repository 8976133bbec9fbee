"""Domain exceptions.

Every error a service raises on purpose derives from DomainError. main.py
registers one handler that renders them as ``{"detail": ..., "code": ...}``
with the class's status code, so routes don't translate them one by one.
"""


class DomainError(Exception):
    """Base class for expected, client-visible failures."""

    status_code: int = 400
    code: str = "domain_error"
    default_message: str = "Request could not be processed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidInputError(DomainError):
    status_code = 400
    code = "invalid_input"
    default_message = "Invalid input"


class NotAttendedError(InvalidInputError):
    code = "not_attended"
    default_message = "You must attend the event before giving feedback"


class IncompleteAnswersError(InvalidInputError):
    code = "incomplete_answers"
    default_message = "Please answer all feedback questions"


class FeedbackRequiredError(InvalidInputError):
    code = "feedback_required"
    default_message = "Feedback must be submitted before a certificate is issued"


class NotFoundError(DomainError):
    status_code = 404
    code = "not_found"
    default_message = "Not found"


class NotRegisteredError(NotFoundError):
    code = "not_registered"
    default_message = "You are not registered for this event"


class EnrollmentNotFoundError(NotFoundError):
    code = "enrollment_not_found"
    default_message = "Enrollment not found"


class EventNotFoundError(NotFoundError):
    code = "event_not_found"
    default_message = "Event not found"


class ParticipantNotFoundError(NotFoundError):
    code = "participant_not_found"
    default_message = "Participant not found"


class CertificateNotFoundError(NotFoundError):
    code = "certificate_not_found"
    default_message = "Certificate not found"


class CertificateImageUnavailableError(NotFoundError):
    code = "certificate_image_unavailable"
    default_message = "Certificate image not available"


class ConflictError(DomainError):
    # Clients of the original API expect 400 for duplicates
    status_code = 400
    code = "conflict"
    default_message = "Already exists"


class AlreadyRegisteredError(ConflictError):
    code = "already_registered"
    default_message = "Already registered for this event"


class AlreadySubmittedError(ConflictError):
    code = "already_submitted"
    default_message = "Feedback already submitted for this event"


class AccessDeniedError(DomainError):
    status_code = 403
    code = "access_denied"
    default_message = "Access denied"


class RenderingError(DomainError):
    """Certificate image could not be produced.

    Never reaches a client: the renderer wraps it in a failed RenderResult
    and issuance continues without an image.
    """

    status_code = 500
    code = "rendering_failed"
    default_message = "Certificate rendering failed"


class PersistenceError(DomainError):
    status_code = 500
    code = "persistence_failed"
    default_message = "Failed to save certificate"
