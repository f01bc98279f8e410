"""Resolve the calling user from the bearer token.

Users live in the identity service; a token whose ``sub`` is a UUID is the
whole identity check here, so no database work happens before it passes.
"""

from uuid import UUID

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer

from billwatch.security import decode_access_token
from billwatch.services.errors import UnauthorizedError
from billwatch.utils.exceptions import raise_unauthorized

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


def user_id_from_token(token: str) -> UUID:
    payload = decode_access_token(token)
    if not payload:
        raise UnauthorizedError("Could not validate credentials")

    subject = payload.get("sub")
    if not subject:
        raise UnauthorizedError("Token missing subject")

    try:
        return UUID(str(subject))
    except ValueError as exc:
        raise UnauthorizedError("Invalid user ID format in token") from exc


async def get_current_user_id(token: str = Depends(oauth2_scheme)) -> UUID:
    """Resolve the current user ID from the JWT."""
    try:
        return user_id_from_token(token)
    except UnauthorizedError as exc:
        raise_unauthorized(str(exc), cause=exc)
