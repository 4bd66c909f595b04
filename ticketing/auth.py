import logging
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import jwt
from jose.exceptions import JWTError

from .config import Settings, get_settings
from .errors import ErrorKind, TicketError

logger = logging.getLogger(__name__)

bearer = HTTPBearer(auto_error=False)


def decode_session_token(token: str, settings: Settings) -> str:
    """Return the identity (sub claim) of a platform session JWT."""
    if not settings.session_jwt_secret:
        logger.error("SESSION_JWT_SECRET is not configured")
        raise TicketError(ErrorKind.INTERNAL, "session secret missing")

    try:
        payload = jwt.decode(
            token,
            settings.session_jwt_secret,
            algorithms=["HS256"],
            audience=settings.session_jwt_audience,
        )
    except JWTError as e:
        raise TicketError(ErrorKind.UNAUTHENTICATED, f"bad session token: {e}")

    sub = payload.get("sub")
    if not sub or not isinstance(sub, str):
        raise TicketError(ErrorKind.UNAUTHENTICATED, "session token has no subject")
    return sub


def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    settings: Settings = Depends(get_settings),
) -> str:
    if credentials is None:
        raise TicketError(ErrorKind.UNAUTHENTICATED, "missing authorization header")
    return decode_session_token(credentials.credentials, settings)
