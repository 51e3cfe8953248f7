"""
Per-tool progress events.

Every tool coroutine is wrapped so a ``tool-start`` event goes out before the
call and a ``tool-result`` event after it, while the agent is still running.
"""

import json
import time
from dataclasses import dataclass, field
from typing import Any, Optional

from langchain_core.tools import StructuredTool
from pydantic_core import to_jsonable_python

from ...core.logger import get_logger
from ...schemas.events import AgentEvent
from ...services.event_relay import EventRelay
from ...services.media_cache import MediaCache
from .media import ToolMedia, decode_result, extract_media

logger = get_logger(__name__)

TEXT_PREVIEW_CHARS = 500


@dataclass
class EventTracker:
    """Publishes events for one run and remembers whether any went out."""

    relay: Optional[EventRelay]
    conversation_id: Optional[str]
    media_cache: MediaCache
    fired: bool = False
    media: dict[str, ToolMedia] = field(default_factory=dict)

    def publish(self, event: AgentEvent) -> None:
        if self.relay is None:
            return
        self.relay.publish(self.conversation_id, event)

    def tool_event(self, event: AgentEvent) -> None:
        self.fired = True
        self.publish(event)

    def media_for(self, result: Any) -> ToolMedia:
        """Media for a tool result, extracted at most once per distinct result."""
        key = result_key(result)
        if key not in self.media:
            self.media[key] = extract_media(result, self.media_cache)
        return self.media[key]


def result_key(result: Any) -> str:
    return json.dumps(
        to_jsonable_python(decode_result(result), fallback=str), sort_keys=True
    )


def preview_text(result: Any) -> Optional[str]:
    if result is None:
        return None
    if isinstance(result, str):
        text = result
    else:
        text = json.dumps(to_jsonable_python(result, fallback=str))
    return text[:TEXT_PREVIEW_CHARS]


def instrument_tool(tool: StructuredTool, tracker: EventTracker) -> StructuredTool:
    """Copy of ``tool`` whose coroutine reports start and result events."""
    inner = tool.coroutine
    if inner is None:
        return tool
    name = tool.name

    async def _instrumented(**kwargs):
        args = to_jsonable_python(kwargs, fallback=str)
        tracker.tool_event(AgentEvent.tool_start(name, args))
        started = time.monotonic()
        try:
            result = await inner(**kwargs)
        except Exception as exc:
            tracker.tool_event(
                AgentEvent.tool_result(
                    name,
                    error=str(exc),
                    duration_ms=int((time.monotonic() - started) * 1000),
                )
            )
            raise
        media = tracker.media_for(result)
        tracker.tool_event(
            AgentEvent.tool_result(
                name,
                images=media.images,
                video_url=media.video_url,
                text=preview_text(result),
                duration_ms=int((time.monotonic() - started) * 1000),
            )
        )
        return result

    return tool.model_copy(update={"coroutine": _instrumented})
