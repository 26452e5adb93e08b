"""
Caller identity

Identity is provisioned upstream (auth gateway / session layer) and reaches
this service in the X-User-Id header. Requests without it are rejected;
there is no fallback user.
"""
import re

from fastapi import HTTPException, Request, status

from app.core.exceptions import UnauthenticatedError


USER_ID_HEADER = "X-User-Id"

# uuid or slug-like ids only
_USER_ID_PATTERN = re.compile(r'^[a-zA-Z0-9_\-]{1,64}$')


def resolve_user_id(raw: str | None) -> str:
    """
    Validate a raw identity value

    Raises:
        UnauthenticatedError: missing, blank or malformed id
    """
    user_id = (raw or "").strip()
    if not user_id:
        raise UnauthenticatedError("Authentication required")
    if not _USER_ID_PATTERN.match(user_id):
        raise UnauthenticatedError("Invalid user identity")
    return user_id


def get_current_user_id(request: Request) -> str:
    """FastAPI dependency: the authenticated caller's user id"""
    try:
        return resolve_user_id(request.headers.get(USER_ID_HEADER))
    except UnauthenticatedError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e)
        )
