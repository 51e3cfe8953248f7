from datetime import datetime
from typing import Annotated

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class UserBase(BaseModel):
    email: Annotated[EmailStr, Field(examples=["user@example.com"])]
    name: Annotated[str | None, Field(max_length=255, default=None)]


class UserCreate(UserBase):
    model_config = ConfigDict(extra="forbid")

    id: str


class UserRead(UserBase):
    id: str
    created_at: datetime


class UserProfile(UserRead):
    """Profile returned to the UI."""

    google_calendar_connected: bool = False
    google_scopes: str | None = None


class GoogleCredentialsUpdate(BaseModel):
    """Google OAuth grant handed over by the sign-in layer."""

    model_config = ConfigDict(extra="forbid")

    access_token: str = Field(..., min_length=1)
    refresh_token: str | None = None
    expires_at: datetime | None = None
    expires_in: int | None = Field(default=None, ge=0)
    scope: str | None = None


class UserGoogleTokensUpdate(BaseModel):
    google_access_token: str | None = None
    google_refresh_token: str | None = None
    google_token_expires_at: datetime | None = None
    google_scopes: str | None = None


class TokenData(BaseModel):
    user_id: str
    email: str
    name: str | None = None
