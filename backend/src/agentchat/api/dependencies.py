from typing import Annotated, Any

import httpx
from fastapi import Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..config import Settings
from ..core.db.database import async_get_db, get_session_factory
from ..core.exceptions.http_exceptions import UnauthorizedException
from ..core.logger import get_logger
from ..core.security import extract_token, verify_token
from ..crud.crud_users import crud_users
from ..services.event_relay import EventRelay
from ..services.media_cache import MediaCache

logger = get_logger(__name__)


async def get_settings(request: Request) -> Settings:
    """Application settings from app state."""
    config = getattr(request.app.state, "config", None)
    if config is None:
        raise HTTPException(status_code=503, detail="Settings not initialized")
    return config


async def get_media_cache(request: Request) -> MediaCache:
    media_cache = getattr(request.app.state, "media_cache", None)
    if media_cache is None:
        raise HTTPException(status_code=503, detail="Media cache not initialized")
    return media_cache


async def get_event_relay(request: Request) -> EventRelay:
    event_relay = getattr(request.app.state, "event_relay", None)
    if event_relay is None:
        raise HTTPException(status_code=503, detail="Event relay not initialized")
    return event_relay


async def get_db_session_factory() -> async_sessionmaker[AsyncSession]:
    """Session factory for work that outlives a single request session."""
    return get_session_factory()


async def get_current_user(
    request: Request,
    settings: Annotated[Settings, Depends(get_settings)],
    db: Annotated[AsyncSession, Depends(async_get_db)],
) -> dict[str, Any]:
    """Verify the session token and make sure the user row exists."""
    token = extract_token(request)
    if not token:
        raise UnauthorizedException("User not authenticated.")

    identity = verify_token(token, settings)
    if identity is None:
        raise UnauthorizedException("User not authenticated.")

    return await crud_users.ensure_user(db, identity)


async def get_http_transport() -> httpx.AsyncBaseTransport | None:
    """Transport for outbound proxy requests. None means the default network transport."""
    return None
