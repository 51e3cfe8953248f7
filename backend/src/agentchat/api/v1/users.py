from datetime import datetime, timedelta, timezone
from typing import Annotated, Any

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ...core.db.database import async_get_db
from ...core.exceptions.http_exceptions import NotFoundException
from ...core.logger import get_logger
from ...crud.crud_users import crud_users
from ...schemas.user import GoogleCredentialsUpdate, UserGoogleTokensUpdate, UserProfile
from ..dependencies import get_current_user

logger = get_logger(__name__)

router = APIRouter(prefix="/users", tags=["users"])


def _profile(user: dict[str, Any]) -> UserProfile:
    return UserProfile(
        id=user["id"],
        email=user["email"],
        name=user.get("name"),
        created_at=user["created_at"],
        google_calendar_connected=bool(
            user.get("google_access_token") or user.get("google_refresh_token")
        ),
        google_scopes=user.get("google_scopes"),
    )


@router.get("/me", response_model=UserProfile)
async def read_users_me(
    current_user: Annotated[dict[str, Any], Depends(get_current_user)],
) -> UserProfile:
    return _profile(current_user)


@router.put("/me/google-credentials", response_model=UserProfile)
async def store_google_credentials(
    payload: GoogleCredentialsUpdate,
    current_user: Annotated[dict[str, Any], Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(async_get_db)],
) -> UserProfile:
    """
    Store the Google grant obtained by the sign-in layer.

    ``expires_at`` wins over ``expires_in``. A missing refresh token keeps the
    one already stored.
    """
    expires_at = payload.expires_at
    if expires_at is None and payload.expires_in is not None:
        expires_at = datetime.now(timezone.utc) + timedelta(seconds=payload.expires_in)

    await crud_users.update_google_tokens(
        db,
        current_user["id"],
        UserGoogleTokensUpdate(
            google_access_token=payload.access_token,
            google_refresh_token=payload.refresh_token
            or current_user.get("google_refresh_token"),
            google_token_expires_at=expires_at,
            google_scopes=payload.scope or current_user.get("google_scopes"),
        ),
    )
    logger.info(f"Stored Google credentials for {current_user['id']}")

    user = await crud_users.get_user(db, current_user["id"])
    if user is None:
        raise NotFoundException("User not found")
    return _profile(user)
