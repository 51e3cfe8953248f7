"""Session token handling.

Sign-in happens in the web front end (Google OAuth). After a successful
callback it issues a short HS256 JWT signed with ``SESSION_SECRET`` whose
claims carry the Google subject id, email and display name. This module only
creates and verifies those tokens.
"""

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any

import jwt
from fastapi import Request

from ..config import Settings
from ..schemas.user import TokenData
from .logger import get_logger

logger = get_logger(__name__)

SESSION_COOKIE_NAME = "agentchat_session"


class TokenType(str, Enum):
    ACCESS = "access"


def create_session_token(
    settings: Settings,
    user_id: str,
    email: str,
    name: str | None = None,
    expires_delta: timedelta | None = None,
) -> str:
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.security.token_ttl_minutes)
    )
    payload: dict[str, Any] = {
        "sub": user_id,
        "email": email,
        "name": name,
        "exp": expire,
        "token_type": TokenType.ACCESS.value,
    }
    return jwt.encode(
        payload, settings.security.secret, algorithm=settings.security.algorithm
    )


def verify_token(token: str, settings: Settings) -> TokenData | None:
    """Decode a session token, returning None when it is invalid or expired."""
    try:
        payload = jwt.decode(
            token, settings.security.secret, algorithms=[settings.security.algorithm]
        )
    except jwt.ExpiredSignatureError:
        logger.debug("Session token expired")
        return None
    except jwt.PyJWTError as exc:
        logger.debug(f"Invalid session token: {exc}")
        return None

    if payload.get("token_type") != TokenType.ACCESS.value:
        return None

    user_id = payload.get("sub")
    email = payload.get("email")
    if not user_id or not email:
        return None

    return TokenData(user_id=user_id, email=email, name=payload.get("name"))


def extract_token(request: Request) -> str | None:
    """Bearer header first, then the session cookie (EventSource cannot set headers)."""
    authorization = request.headers.get("Authorization")
    if authorization:
        scheme, _, value = authorization.partition(" ")
        if scheme.lower() == "bearer" and value:
            return value
    return request.cookies.get(SESSION_COOKIE_NAME)
