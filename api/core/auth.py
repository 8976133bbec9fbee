"""Session authentication utilities.

Login lives in the administration frontend; it stores ``user_id`` in the
signed session cookie that SessionMiddleware decodes here.

Provides FastAPI dependencies for authenticated routes:
- UserId: 401 when there is no session user
- OptionalUserId: None when there is no session user
- CurrentUser: the active user row (401 if missing or deactivated)
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Request

from core.database import DbSession
from core.exceptions import AccessDeniedError
from core.logger import get_logger
from core.wide_event import set_wide_event_fields
from models import User
from repositories.user_repository import UserRepository

logger = get_logger(__name__)


def get_user_id_from_request(req: Request) -> str | None:
    """Get authenticated user ID from the session, or None."""
    if "session" not in req.scope:
        return None
    user_id = req.session.get("user_id")
    if not user_id:
        return None
    return str(user_id)


def require_auth(request: Request) -> str:
    """Raises 401 if not authenticated. Sets request.state.user_id."""
    user_id = get_user_id_from_request(request)
    if not user_id:
        raise HTTPException(status_code=401, detail="Unauthorized")

    request.state.user_id = user_id
    set_wide_event_fields(user_id=user_id)
    return user_id


def optional_auth(request: Request) -> str | None:
    """Returns user_id or None. Does not raise."""
    user_id = get_user_id_from_request(request)
    if user_id:
        request.state.user_id = user_id
        set_wide_event_fields(user_id=user_id)
    return user_id


UserId = Annotated[str, Depends(require_auth)]
OptionalUserId = Annotated[str | None, Depends(optional_auth)]


async def get_current_user(user_id: UserId, db: DbSession) -> User:
    user = await UserRepository(db).get_by_id(user_id)
    if user is None or not user.is_active:
        logger.warning("auth.session.stale", user_id=user_id)
        raise HTTPException(status_code=401, detail="Unauthorized")

    set_wide_event_fields(user_role=user.role.value)
    return user


CurrentUser = Annotated[User, Depends(get_current_user)]


def ensure_can_access_participant(viewer: User, participant_id: str) -> None:
    """Participants see their own records; elevated roles see anyone's."""
    if viewer.id != participant_id and not viewer.is_elevated:
        raise AccessDeniedError("You can only access your own records")


def ensure_elevated(viewer: User) -> None:
    if not viewer.is_elevated:
        raise AccessDeniedError("This action requires an admin, coordinator or HOD")
