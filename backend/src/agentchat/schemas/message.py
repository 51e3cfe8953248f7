"""
Message schemas - transcript entries and the tool invocation log.
"""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

MessageRole = Literal["user", "assistant", "system", "data", "tool"]


class ToolInvocationLog(BaseModel):
    """One tool call made during an agent run.

    Serialized with camelCase keys (``toolCallId``, ``cachedVideoUrl``) since
    the log is handed to the UI as is.
    """

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    tool_call_id: str | None = None
    name: str | None = None
    args: dict[str, Any] | None = None
    result: Any = None
    error: str | None = None
    cached_video_url: str | None = None
    images: list[str] | None = None

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class MessageBase(BaseModel):
    chat_id: str
    role: MessageRole
    content: str


class MessageCreate(MessageBase):
    model_config = ConfigDict(extra="forbid")

    tool_invocations: list[dict[str, Any]] | None = None


class MessageRead(BaseModel):
    model_config = ConfigDict(
        from_attributes=True, alias_generator=to_camel, populate_by_name=True
    )

    id: str
    chat_id: str
    role: str
    content: str
    tool_invocations: list[dict[str, Any]] | None = None
    created_at: datetime


class MessageList(BaseModel):
    messages: list[MessageRead] = Field(default_factory=list)
