from datetime import datetime, timezone

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ..core.db.database import Base


class User(Base):
    """Signed-in user.

    ``id`` is the identity provider's subject id. The Google token columns
    hold the OAuth grant used by the calendar tools.
    """

    __tablename__ = "user"

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    email: Mapped[str] = mapped_column(String(320), unique=True, index=True)
    name: Mapped[str | None] = mapped_column(String(255), default=None)

    google_access_token: Mapped[str | None] = mapped_column(Text, default=None)
    google_refresh_token: Mapped[str | None] = mapped_column(Text, default=None)
    google_token_expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
    google_scopes: Mapped[str | None] = mapped_column(Text, default=None)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default_factory=lambda: datetime.now(timezone.utc)
    )
