from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from ...ai.providers import normalize_model_selection
from ...core.db.database import async_get_db
from ...core.exceptions.http_exceptions import NotFoundException
from ...core.logger import get_logger
from ...crud.crud_chat import crud_chat
from ...crud.crud_message import crud_message
from ...schemas.base import DeleteResponse
from ...schemas.chat import ChatRead, ChatUpdate
from ...schemas.message import MessageList
from ...services.event_relay import EventRelay
from ..dependencies import get_current_user, get_event_relay

logger = get_logger(__name__)

router = APIRouter(prefix="/chats", tags=["chats"])


async def _owned_chat(db: AsyncSession, chat_id: str, user_id: str) -> dict:
    chat = await crud_chat.get_owned(db, chat_id, user_id)
    if chat is None:
        raise NotFoundException("Chat not found")
    return chat


@router.get("", summary="List the caller's chats")
async def list_chats(
    current_user: Annotated[dict[str, Any], Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(async_get_db)],
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=100, ge=1, le=500),
) -> dict[str, Any]:
    return await crud_chat.list_for_user(
        db, current_user["id"], offset=offset, limit=limit
    )


@router.delete("/{chat_id}", response_model=DeleteResponse)
async def delete_chat(
    chat_id: str,
    current_user: Annotated[dict[str, Any], Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(async_get_db)],
) -> DeleteResponse:
    """Delete a chat with its messages and cached videos."""
    deleted = await crud_chat.delete_owned(db, chat_id, current_user["id"])
    if not deleted:
        raise NotFoundException("Chat not found")
    return DeleteResponse()


@router.patch("/{chat_id}", response_model=ChatRead)
async def update_chat(
    chat_id: str,
    payload: ChatUpdate,
    current_user: Annotated[dict[str, Any], Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(async_get_db)],
) -> dict[str, Any]:
    """Store a new provider/model selection for the chat."""
    await _owned_chat(db, chat_id, current_user["id"])
    provider, model = normalize_model_selection(payload.provider, payload.model)
    await crud_chat.update_selection(db, chat_id, provider, model)
    return await _owned_chat(db, chat_id, current_user["id"])


@router.get("/{chat_id}/messages", response_model=MessageList, response_model_by_alias=True)
async def list_messages(
    chat_id: str,
    current_user: Annotated[dict[str, Any], Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(async_get_db)],
) -> MessageList:
    await _owned_chat(db, chat_id, current_user["id"])
    messages = await crud_message.list_by_chat(db, chat_id)
    return MessageList(messages=messages)


@router.get("/{chat_id}/events", summary="Live agent progress events (SSE)")
async def chat_events(
    chat_id: str,
    request: Request,
    current_user: Annotated[dict[str, Any], Depends(get_current_user)],
    event_relay: Annotated[EventRelay, Depends(get_event_relay)],
) -> StreamingResponse:
    """
    Server-sent events for agent runs on this chat.

    Only events published after the subscription is registered are delivered.
    A ``: keep-alive`` comment goes out during quiet periods.
    """
    subscription = event_relay.subscribe(chat_id)
    logger.debug(f"[Events] {current_user['id']} listening on {chat_id}")

    async def frames():
        try:
            async for frame in subscription.stream():
                if await request.is_disconnected():
                    break
                yield frame
        finally:
            subscription.close()

    return StreamingResponse(
        frames(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
