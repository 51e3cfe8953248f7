from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ...config import Settings
from ...core.db.database import async_get_db
from ...core.exceptions.http_exceptions import BadRequestException
from ...core.logger import get_logger
from ...schemas.chat import ChatSubmission
from ...services.chat_service import ChatDeps, handle_chat
from ...services.event_relay import EventRelay
from ...services.media_cache import MediaCache
from ..dependencies import (
    get_current_user,
    get_db_session_factory,
    get_event_relay,
    get_media_cache,
    get_settings,
)

logger = get_logger(__name__)

router = APIRouter(tags=["chat"])


async def get_chat_deps(
    settings: Annotated[Settings, Depends(get_settings)],
    session_factory: Annotated[async_sessionmaker[AsyncSession], Depends(get_db_session_factory)],
    media_cache: Annotated[MediaCache, Depends(get_media_cache)],
    event_relay: Annotated[EventRelay, Depends(get_event_relay)],
) -> ChatDeps:
    return ChatDeps(
        settings=settings,
        session_factory=session_factory,
        media_cache=media_cache,
        event_relay=event_relay,
    )


async def parse_submission(request: Request) -> ChatSubmission:
    """Read the body by hand so a malformed submission is a 400."""
    try:
        payload = await request.json()
    except ValueError:
        raise BadRequestException("Request body must be JSON") from None
    try:
        return ChatSubmission.model_validate(payload)
    except ValidationError as exc:
        messages = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'body'}: {err['msg']}"
            for err in exc.errors()
        )
        raise BadRequestException(f"Invalid chat submission: {messages}") from None


@router.post("/chat", summary="Send a chat message")
async def post_chat(
    submission: Annotated[ChatSubmission, Depends(parse_submission)],
    current_user: Annotated[dict[str, Any], Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(async_get_db)],
    deps: Annotated[ChatDeps, Depends(get_chat_deps)],
):
    """
    Answer a chat submission.

    Agent-eligible providers get a plain text stream with the run summary.
    Other providers stream the model answer as UI message stream SSE frames.
    """
    return await handle_chat(submission, current_user, db, deps)
