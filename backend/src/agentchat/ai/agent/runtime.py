"""
Tool-calling agent runtime.

One call to ``run_agent`` builds the tools for the user, runs a langgraph
ReAct loop against the selected chat model and turns the resulting message
list into the final text, the tool invocation log and any generated media.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, BaseMessage, ToolMessage
from langgraph.prebuilt import create_react_agent
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ...config import Settings
from ...core.logger import get_logger
from ...core.utils.timezone import describe_now
from ...schemas.events import AgentEvent
from ...schemas.message import ToolInvocationLog
from ...services.event_relay import EventRelay
from ...services.media_cache import MediaCache
from ..providers import create_chat_model
from ..tools import ToolContext, build_agent_tools
from .instrumentation import EventTracker, instrument_tool, preview_text
from .media import ToolMedia, decode_result
from .messages import CanonicalMessage, flatten_content, scrub_inline_images, to_langchain_messages

logger = get_logger(__name__)

SYSTEM_PROMPT_TEMPLATE = """You are an autonomous AI teammate that can read and write the user's Google Calendar and generate images and short videos.
Current local date/time: {local_now}. Current UTC instant: {utc_now}.
Resolve relative dates ("tomorrow", "next Monday") against the local date/time above and pass ISO-8601 timestamps with an explicit offset to the calendar tools.
If the user asks for calendar information, prefer using the calendar tools instead of guessing.
Each image or video tool may be used once per request. Use detailed prompts.
Be explicit about any changes you make."""


class AgentRuntimeError(RuntimeError):
    """The agent run did not produce a usable answer."""


@dataclass
class AgentRunInput:
    user_id: str
    provider: str
    model: str
    messages: list[CanonicalMessage]
    conversation_id: Optional[str] = None


@dataclass
class AgentRunOutput:
    text: str
    summary: str
    final_text: str
    tool_invocations: list[ToolInvocationLog] = field(default_factory=list)
    images: list[str] = field(default_factory=list)
    video_url: Optional[str] = None


@dataclass
class AgentDeps:
    settings: Settings
    session_factory: async_sessionmaker[AsyncSession]
    media_cache: MediaCache
    event_relay: Optional[EventRelay] = None
    # Test seams
    chat_model: Optional[BaseChatModel] = None
    http_transport: Optional[httpx.AsyncBaseTransport] = None


def build_system_prompt(settings: Settings) -> str:
    local_now, utc_now = describe_now(settings.agent.timezone)
    return SYSTEM_PROMPT_TEMPLATE.format(local_now=local_now, utc_now=utc_now)


def message_text(message: BaseMessage) -> str:
    return flatten_content(message.content)


def last_ai_message(messages: list[BaseMessage]) -> Optional[AIMessage]:
    for message in reversed(messages):
        if isinstance(message, AIMessage):
            return message
    return None


def build_invocation_log(messages: list[BaseMessage]) -> list[ToolInvocationLog]:
    """Pair every ToolMessage with the AIMessage tool call that requested it."""
    calls: dict[str, dict[str, Any]] = {}
    for message in messages:
        if isinstance(message, AIMessage):
            for call in message.tool_calls or []:
                if call.get("id"):
                    calls[call["id"]] = call

    log = []
    for message in messages:
        if not isinstance(message, ToolMessage):
            continue
        call = calls.get(message.tool_call_id, {})
        text = message_text(message)
        is_error = getattr(message, "status", None) == "error"
        log.append(
            ToolInvocationLog(
                tool_call_id=message.tool_call_id,
                name=message.name or call.get("name"),
                args=call.get("args"),
                result=decode_result(text),
                error=text if is_error else None,
            )
        )
    return log


def attach_media(
    log: list[ToolInvocationLog], tracker: EventTracker
) -> tuple[list[ToolInvocationLog], list[ToolMedia]]:
    """Externalize images per entry. Failed calls carry no media.

    Results the instrumented tools already reported reuse that media, so the
    progress event and the stored log point at the same cached images.
    """
    entries, per_entry = [], []
    for entry in log:
        media = ToolMedia() if entry.error else tracker.media_for(entry.result)
        if media.images:
            entry = entry.model_copy(update={"images": media.images})
        entries.append(entry)
        per_entry.append(media)
    return entries, per_entry


def summarize(final_text: str, media: ToolMedia) -> str:
    if media.video_url:
        return f"Here is the generated video: {media.video_url}"
    if media.images:
        lines = "\n".join(f"![Generated image {i + 1}]({url})" for i, url in enumerate(media.images))
        return f"Generated {len(media.images)} image(s):\n{lines}"
    return final_text


async def run_agent(run: AgentRunInput, deps: AgentDeps) -> AgentRunOutput:
    settings = deps.settings
    tracker = EventTracker(deps.event_relay, run.conversation_id, deps.media_cache)

    context = ToolContext(
        user_id=run.user_id,
        settings=settings,
        session_factory=deps.session_factory,
        media_cache=deps.media_cache,
        http_transport=deps.http_transport,
    )
    tools = [instrument_tool(tool, tracker) for tool in build_agent_tools(context)]
    if not tools:
        raise AgentRuntimeError("No tools are currently configured for the agent.")

    model = deps.chat_model or create_chat_model(
        settings, run.provider, run.model, temperature=0
    )
    agent = create_react_agent(model, tools, prompt=build_system_prompt(settings))

    history = to_langchain_messages(run.messages)
    logger.info(
        f"[Agent] Run for {run.user_id} on {run.provider}/{run.model} "
        f"with {len(tools)} tools and {len(history)} messages"
    )
    try:
        state = await asyncio.wait_for(
            agent.ainvoke(
                {"messages": history},
                config={"recursion_limit": settings.agent.recursion_limit},
            ),
            timeout=settings.agent.timeout_seconds,
        )
    except asyncio.TimeoutError as exc:
        raise AgentRuntimeError(
            f"Agent did not finish within {settings.agent.timeout_seconds}s"
        ) from exc

    produced = state["messages"][len(history):]
    final = last_ai_message(produced)
    if final is None:
        raise AgentRuntimeError("Agent did not return an assistant message.")

    final_text = scrub_inline_images(message_text(final)).strip()
    log, per_entry = attach_media(build_invocation_log(produced), tracker)
    media = ToolMedia()
    for entry_media in per_entry:
        media.extend(entry_media)
    summary = summarize(final_text, media)

    if not tracker.fired:
        for entry, entry_media in zip(log, per_entry):
            tracker.publish(
                AgentEvent.tool_result(
                    entry.name,
                    images=entry_media.images,
                    video_url=entry_media.video_url,
                    text=preview_text(entry.result) if not entry.error else None,
                    error=entry.error,
                )
            )
    tracker.publish(AgentEvent.final(summary))

    logger.info(
        f"[Agent] Finished with {len(log)} tool calls, "
        f"{len(media.images)} images, video={'yes' if media.video_url else 'no'}"
    )
    return AgentRunOutput(
        text=summary,
        summary=summary,
        final_text=final_text,
        tool_invocations=log,
        images=media.images,
        video_url=media.video_url,
    )
