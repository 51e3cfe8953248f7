"""
Google OAuth access tokens for calendar calls.

The sign-in layer stores the user's Google grant on the ``user`` row. Before
each calendar call the stored access token is checked and, when it expires
within ``refresh_buffer_seconds``, exchanged for a fresh one with the refresh
token. The new grant is written back to the row.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from ...config import Settings
from ...core.logger import get_logger
from ...crud.crud_users import crud_users
from ...schemas.user import UserGoogleTokensUpdate

logger = get_logger(__name__)


class GoogleAuthError(Exception):
    """The user has to (re)connect their Google account."""


@dataclass(frozen=True)
class GoogleCredentials:
    access_token: Optional[str]
    refresh_token: Optional[str]
    expires_at: Optional[datetime]
    scopes: Optional[str]


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes, stored values are always UTC
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


async def get_google_credentials(db: AsyncSession, user_id: str) -> GoogleCredentials:
    user = await crud_users.get_user(db, user_id)
    if not user:
        raise GoogleAuthError("User record not found.")

    return GoogleCredentials(
        access_token=user.get("google_access_token"),
        refresh_token=user.get("google_refresh_token"),
        expires_at=_as_utc(user.get("google_token_expires_at")),
        scopes=user.get("google_scopes"),
    )


def token_is_expiring_soon(
    expires_at: Optional[datetime], buffer_seconds: int, now: Optional[datetime] = None
) -> bool:
    """A token without a known expiry is treated as valid."""
    if expires_at is None:
        return False
    now = now or datetime.now(timezone.utc)
    return _as_utc(expires_at) <= now + timedelta(seconds=buffer_seconds)


async def refresh_google_access_token(
    db: AsyncSession,
    user_id: str,
    settings: Settings,
    client: Optional[httpx.AsyncClient] = None,
) -> GoogleCredentials:
    credentials = await get_google_credentials(db, user_id)
    if not credentials.refresh_token:
        raise GoogleAuthError("Google account is missing a refresh token. Please reconnect.")

    google = settings.google
    if not google.client_id:
        raise GoogleAuthError("GOOGLE_CLIENT_ID is not configured.")
    if not google.client_secret:
        raise GoogleAuthError("GOOGLE_CLIENT_SECRET is not configured.")

    form = {
        "client_id": google.client_id,
        "client_secret": google.client_secret,
        "refresh_token": credentials.refresh_token,
        "grant_type": "refresh_token",
    }

    owns_client = client is None
    client = client or httpx.AsyncClient(timeout=google.request_timeout)
    try:
        response = await client.post(google.token_url, data=form)
    except httpx.HTTPError as exc:
        raise GoogleAuthError(f"Failed to refresh Google token: {exc}") from exc
    finally:
        if owns_client:
            await client.aclose()

    if not response.is_success:
        raise GoogleAuthError(f"Failed to refresh Google token: {response.text}")

    body = response.json()
    access_token = body.get("access_token")
    if not access_token:
        raise GoogleAuthError("Failed to refresh Google token: no access_token in response")

    expires_in = body.get("expires_in")
    expires_at = (
        datetime.now(timezone.utc) + timedelta(seconds=int(expires_in))
        if expires_in
        else None
    )
    refreshed = GoogleCredentials(
        access_token=access_token,
        refresh_token=body.get("refresh_token") or credentials.refresh_token,
        expires_at=expires_at,
        scopes=body.get("scope") or credentials.scopes,
    )

    await crud_users.update_google_tokens(
        db,
        user_id,
        UserGoogleTokensUpdate(
            google_access_token=refreshed.access_token,
            google_refresh_token=refreshed.refresh_token,
            google_token_expires_at=refreshed.expires_at,
            google_scopes=refreshed.scopes,
        ),
    )
    logger.info(f"[GoogleOAuth] Refreshed access token for {user_id}")
    return refreshed


async def get_google_access_token(
    db: AsyncSession,
    user_id: str,
    settings: Settings,
    client: Optional[httpx.AsyncClient] = None,
) -> str:
    """Return a usable access token, refreshing it when close to expiry."""
    credentials = await get_google_credentials(db, user_id)
    if not credentials.access_token:
        raise GoogleAuthError("Google Calendar access is not configured for this account.")

    if not token_is_expiring_soon(
        credentials.expires_at, settings.google.refresh_buffer_seconds
    ):
        return credentials.access_token

    refreshed = await refresh_google_access_token(db, user_id, settings, client)
    return refreshed.access_token
