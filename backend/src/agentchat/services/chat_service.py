"""
Chat request handling.

A submission is stored, normalized and answered either by the tool-calling
agent (eligible providers) or by plain streaming from the chat model. The
agent answer goes out as a plain text stream, the direct answer as a UI
message stream of SSE frames.
"""

import json
import traceback
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any, Optional
from uuid import uuid4

import httpx
from fastapi import HTTPException
from fastapi.responses import JSONResponse, StreamingResponse
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessageChunk
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..ai.agent import AgentDeps, AgentRunInput, CanonicalMessage, normalize_messages, run_agent
from ..ai.agent.messages import flatten_content, first_user_text, to_langchain_messages
from ..ai.providers import create_chat_model, is_agent_eligible, normalize_model_selection
from ..config import Settings
from ..core.exceptions.http_exceptions import NotFoundException
from ..core.logger import get_logger
from ..core.utils.result import capture
from ..crud.crud_chat import crud_chat
from ..crud.crud_message import crud_message
from ..schemas.base import ErrorResponse
from ..schemas.chat import ChatSubmission, IncomingMessage
from ..schemas.message import ToolInvocationLog
from .event_relay import EventRelay
from .media_cache import MediaCache
from .video_store import try_cache_video

logger = get_logger(__name__)

TITLE_MAX_CHARS = 50
DEFAULT_TITLE = "New Chat"
UI_STREAM_HEADER = "x-vercel-ai-ui-message-stream"


@dataclass
class ChatDeps:
    settings: Settings
    session_factory: async_sessionmaker[AsyncSession]
    media_cache: MediaCache
    event_relay: Optional[EventRelay] = None
    # Test seams
    chat_model: Optional[BaseChatModel] = None
    http_transport: Optional[httpx.AsyncBaseTransport] = None

    def agent_deps(self) -> AgentDeps:
        return AgentDeps(
            settings=self.settings,
            session_factory=self.session_factory,
            media_cache=self.media_cache,
            event_relay=self.event_relay,
            chat_model=self.chat_model,
            http_transport=self.http_transport,
        )


def derive_title(messages: list[IncomingMessage]) -> str:
    text = first_user_text(messages)
    if not text:
        return DEFAULT_TITLE
    return text[:TITLE_MAX_CHARS]


def error_response(exc: Exception, debug: bool) -> JSONResponse:
    body = ErrorResponse(
        error="Internal server error",
        details=str(exc),
        stack=traceback.format_exc() if debug else None,
    )
    return JSONResponse(status_code=500, content=body.model_dump(exclude_none=True))


async def handle_chat(
    submission: ChatSubmission,
    user: dict[str, Any],
    db: AsyncSession,
    deps: ChatDeps,
):
    """Answer one chat submission. Unexpected failures become a 500 body."""
    try:
        return await _handle_chat(submission, user, db, deps)
    except HTTPException:
        raise
    except Exception as exc:
        logger.exception(f"Chat request for {submission.id} failed: {exc}")
        return error_response(exc, deps.settings.server.debug)


async def _handle_chat(
    submission: ChatSubmission,
    user: dict[str, Any],
    db: AsyncSession,
    deps: ChatDeps,
):
    settings = deps.settings
    user_id = user["id"]
    chat_id = submission.id

    provider, model = normalize_model_selection(submission.provider, submission.model)

    chat, created = await crud_chat.get_or_create(
        db,
        chat_id=chat_id,
        user_id=user_id,
        title=derive_title(submission.messages),
        provider=provider,
        model=model,
    )
    if chat is None:
        raise NotFoundException("Chat not found")

    explicit = submission.provider is not None or submission.model is not None
    if not created and explicit and (chat["provider"], chat["model"]) != (provider, model):
        await crud_chat.update_selection(db, chat_id, provider, model)

    newest = submission.messages[-1]
    saved = await capture(
        crud_message.create_message(
            db,
            chat_id=chat_id,
            role="user",
            content=flatten_content(newest.payload),
        )
    )
    saved.log_failure(logger, f"Failed to save user message for chat {chat_id}")

    history = normalize_messages(
        submission.messages,
        window=settings.agent.history_window,
        max_chars=settings.agent.max_text_chars,
    )

    if is_agent_eligible(provider, settings):
        try:
            return await _answer_with_agent(db, deps, user_id, chat_id, provider, model, history)
        except Exception as exc:
            logger.exception(f"Agent run failed for chat {chat_id}, falling back to direct streaming: {exc}")

    return _answer_directly(deps, chat_id, provider, model, history)


async def _answer_with_agent(
    db: AsyncSession,
    deps: ChatDeps,
    user_id: str,
    chat_id: str,
    provider: str,
    model: str,
    history: list[CanonicalMessage],
) -> StreamingResponse:
    output = await run_agent(
        AgentRunInput(
            user_id=user_id,
            provider=provider,
            model=model,
            messages=history,
            conversation_id=chat_id,
        ),
        deps.agent_deps(),
    )

    invocations = list(output.tool_invocations)
    if output.video_url:
        async with httpx.AsyncClient(
            timeout=120.0, follow_redirects=True, transport=deps.http_transport
        ) as client:
            cached = await try_cache_video(db, output.video_url, chat_id, user_id, client)
        cached_url = cached.log_failure(logger, f"Failed to cache video for chat {chat_id}").unwrap_or(None)
        if cached_url:
            invocations = attach_cached_video(invocations, cached_url)

    saved = await capture(
        crud_message.create_message(
            db,
            chat_id=chat_id,
            role="assistant",
            content=output.final_text,
            tool_invocations=[entry.to_json() for entry in invocations] or None,
        )
    )
    saved.log_failure(logger, f"Failed to save assistant message for chat {chat_id}")
    if saved.ok:
        touched = await capture(crud_chat.touch(db, chat_id))
        touched.log_failure(logger, f"Failed to touch chat {chat_id}")

    async def body() -> AsyncIterator[bytes]:
        yield output.summary.encode("utf-8")

    return StreamingResponse(
        body(),
        media_type="text/plain; charset=utf-8",
        headers={"Cache-Control": "no-cache, no-transform"},
    )


def attach_cached_video(
    invocations: list[ToolInvocationLog], cached_url: str
) -> list[ToolInvocationLog]:
    """Set ``cachedVideoUrl`` on the first entry whose result carries a video."""
    updated = list(invocations)
    for index, entry in enumerate(updated):
        result = entry.result
        if isinstance(result, dict) and result.get("videoUrl"):
            updated[index] = entry.model_copy(update={"cached_video_url": cached_url})
            return updated
    if updated:
        updated[0] = updated[0].model_copy(update={"cached_video_url": cached_url})
    return updated


# ========== Direct streaming ==========


def ui_frame(payload: Any) -> str:
    if isinstance(payload, str):
        return f"data: {payload}\n\n"
    return f"data: {json.dumps(payload)}\n\n"


def _answer_directly(
    deps: ChatDeps,
    chat_id: str,
    provider: str,
    model: str,
    history: list[CanonicalMessage],
) -> StreamingResponse:
    chat_model = deps.chat_model or create_chat_model(
        deps.settings, provider, model, streaming=True
    )
    logger.info(f"[Chat] Direct streaming for {chat_id} on {provider}/{model}")
    return StreamingResponse(
        stream_ui_messages(chat_model, history, chat_id, deps.session_factory),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache, no-transform",
            "Connection": "keep-alive",
            UI_STREAM_HEADER: "v1",
        },
    )


async def stream_ui_messages(
    chat_model: BaseChatModel,
    history: list[CanonicalMessage],
    chat_id: str,
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncIterator[str]:
    message_id = f"msg-{uuid4().hex}"
    text_id = f"text-{uuid4().hex}"
    yield ui_frame({"type": "start", "messageId": message_id})
    yield ui_frame({"type": "text-start", "id": text_id})

    parts: list[str] = []
    aggregate: Optional[AIMessageChunk] = None
    try:
        async for chunk in chat_model.astream(to_langchain_messages(history)):
            aggregate = chunk if aggregate is None else aggregate + chunk
            delta = flatten_content(chunk.content)
            if delta:
                parts.append(delta)
                yield ui_frame({"type": "text-delta", "id": text_id, "delta": delta})
    except Exception as exc:
        logger.error(f"[Chat] Streaming failed for {chat_id}: {exc}")
        yield ui_frame({"type": "error", "errorText": str(exc)})
        yield ui_frame("[DONE]")
        return

    yield ui_frame({"type": "text-end", "id": text_id})
    yield ui_frame({"type": "finish"})
    yield ui_frame("[DONE]")

    invocations = [
        ToolInvocationLog(
            tool_call_id=call.get("id"), name=call.get("name"), args=call.get("args")
        ).to_json()
        for call in (getattr(aggregate, "tool_calls", None) or [])
    ]
    async with session_factory() as db:
        saved = await capture(
            crud_message.create_message(
                db,
                chat_id=chat_id,
                role="assistant",
                content="".join(parts),
                tool_invocations=invocations or None,
            )
        )
        saved.log_failure(logger, f"Failed to save assistant message for chat {chat_id}")
        if saved.ok:
            touched = await capture(crud_chat.touch(db, chat_id))
            touched.log_failure(logger, f"Failed to touch chat {chat_id}")
