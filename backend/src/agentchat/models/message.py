"""
Message model - stores chat transcript entries.

``content`` is always flat text. Structured tool activity of an assistant
turn is kept in ``tool_invocations`` as an ordered JSON list.
"""

from datetime import datetime, timezone
from typing import Any

from uuid6 import uuid7

from sqlalchemy import JSON, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from ..core.db.database import Base


class Message(Base):
    __tablename__ = "message"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default_factory=lambda: str(uuid7()), init=False
    )

    chat_id: Mapped[str] = mapped_column(
        String(255),
        ForeignKey("chat.id", ondelete="CASCADE"),
        index=True,
    )

    # user | assistant | system | data | tool
    role: Mapped[str] = mapped_column(String(20))

    content: Mapped[str] = mapped_column(Text)

    tool_invocations: Mapped[list[dict[str, Any]] | None] = mapped_column(
        JSON, default=None, nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default_factory=lambda: datetime.now(timezone.utc),
        init=False,
        index=True,
    )
