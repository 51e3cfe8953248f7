"""Agent progress events relayed over SSE. Never persisted."""

import time
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

AgentEventType = Literal["tool-start", "tool-result", "final"]


def now_ms() -> int:
    return int(time.time() * 1000)


class AgentEvent(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    type: AgentEventType
    name: str | None = None
    args: dict[str, Any] | None = None
    images: list[str] | None = None
    video_url: str | None = None
    text: str | None = None
    error: str | None = None
    duration_ms: int | None = None
    ts: int = Field(default_factory=now_ms)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)

    @classmethod
    def tool_start(cls, name: str, args: dict[str, Any] | None) -> "AgentEvent":
        return cls(type="tool-start", name=name, args=args)

    @classmethod
    def tool_result(
        cls,
        name: str | None,
        *,
        images: list[str] | None = None,
        video_url: str | None = None,
        text: str | None = None,
        error: str | None = None,
        duration_ms: int | None = None,
    ) -> "AgentEvent":
        return cls(
            type="tool-result",
            name=name,
            images=images or None,
            video_url=video_url,
            text=text,
            error=error,
            duration_ms=duration_ms,
        )

    @classmethod
    def final(cls, text: str) -> "AgentEvent":
        return cls(type="final", text=text)
