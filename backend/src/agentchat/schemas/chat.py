"""
Chat schemas - conversations and the chat submission payload.
"""

from datetime import datetime
from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ChatBase(BaseModel):
    title: Annotated[str, Field(min_length=1, max_length=255)]
    provider: str
    model: str


class ChatCreate(ChatBase):
    model_config = ConfigDict(extra="forbid")

    id: str
    user_id: str


class ChatRead(ChatBase):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    created_at: datetime
    updated_at: datetime


class ChatUpdate(BaseModel):
    """PATCH /chats/{id} body."""

    model_config = ConfigDict(extra="forbid")

    provider: str | None = None
    model: str | None = None


class ChatUpdateInternal(BaseModel):
    provider: str | None = None
    model: str | None = None
    updated_at: datetime


class IncomingMessage(BaseModel):
    """A message as posted by the chat UI.

    Either a plain ``content`` (string or part list) or the newer ``parts``
    array is present. Unknown keys are kept.
    """

    model_config = ConfigDict(extra="allow")

    id: str | None = None
    role: str = "user"
    content: Any = None
    parts: list[Any] | None = None
    tool_call_id: str | None = Field(default=None, alias="toolCallId")

    @property
    def payload(self) -> Any:
        if self.parts:
            return self.parts
        return self.content


class ChatSubmission(BaseModel):
    """POST /chat body."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    messages: list[IncomingMessage]
    id: str = Field(..., min_length=1, max_length=255)
    provider: str | None = None
    model: str | None = None

    @field_validator("messages")
    @classmethod
    def _non_empty(cls, value: list[IncomingMessage]) -> list[IncomingMessage]:
        if not value:
            raise ValueError("messages must be a non-empty list")
        return value
