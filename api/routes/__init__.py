"""API route modules."""

from .certificates_routes import router as certificates_router
from .enrollment_routes import events_router, participants_router
from .feedback_routes import router as feedback_router
from .health_routes import router as health_router

__all__ = [
    "certificates_router",
    "events_router",
    "feedback_router",
    "health_router",
    "participants_router",
]
