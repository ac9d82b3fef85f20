# app/utils/auth.py
"""
Caller identity for authenticated routes.
Tokens are issued by the auth service; this side only verifies the
signature and reads the user id from `sub`.
"""

from typing import Optional

import jwt
from fastapi import Header

from app.config import settings
from app.exceptions import Unauthenticated
from app.utils.logger import get_logger

logger = get_logger(__name__)


def decode_user_id(token: str) -> str:
    if not settings.JWT_SECRET:
        raise Unauthenticated("Authentication is not configured")
    if not token:
        raise Unauthenticated("Token is missing")
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError as e:
        raise Unauthenticated("Token has expired") from e
    except jwt.InvalidTokenError as e:
        logger.debug(f"[AUTH] Rejected token: {e}")
        raise Unauthenticated("Invalid token") from e

    subject = payload.get("sub")
    if not subject:
        raise Unauthenticated("Token subject is missing")
    return str(subject)


def get_current_user_id(authorization: Optional[str] = Header(default=None)) -> str:
    """FastAPI dependency: `Authorization: Bearer <jwt>` → user id."""
    if not authorization:
        raise Unauthenticated("Missing Authorization header")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise Unauthenticated("Invalid Authorization header")
    return decode_user_id(token.strip())
