"""
Copy generated videos into the database.

Provider URLs expire after a while, so a finished video is fetched once and
stored as a ``video`` row owned by the chat and the user.
"""

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.logger import get_logger
from ..core.utils.result import Result, capture
from ..crud.crud_video import VideoCreate, crud_video

logger = get_logger(__name__)

VIDEO_PATH_PREFIX = "/api/v1/videos/"
DEFAULT_VIDEO_CONTENT_TYPE = "video/mp4"
FETCH_TIMEOUT = httpx.Timeout(120.0, connect=10.0)


class VideoFetchError(Exception):
    """Upstream video could not be downloaded."""


def video_path(video_id: str) -> str:
    return f"{VIDEO_PATH_PREFIX}{video_id}"


async def cache_video_from_url(
    db: AsyncSession,
    source_url: str,
    chat_id: str,
    user_id: str,
    client: httpx.AsyncClient | None = None,
) -> str:
    """Download ``source_url`` and persist it. Returns the retrieval path."""
    owns_client = client is None
    client = client or httpx.AsyncClient(timeout=FETCH_TIMEOUT, follow_redirects=True)
    try:
        try:
            response = await client.get(source_url, follow_redirects=True)
        except httpx.HTTPError as exc:
            raise VideoFetchError(f"Failed to fetch video: {exc}") from exc
    finally:
        if owns_client:
            await client.aclose()

    if not response.is_success:
        raise VideoFetchError(f"Failed to fetch video: HTTP {response.status_code}")

    body = response.content
    if not body:
        raise VideoFetchError("Failed to fetch video: empty body")

    content_type = (
        response.headers.get("content-type", "").split(";")[0].strip()
        or DEFAULT_VIDEO_CONTENT_TYPE
    )
    size_header = response.headers.get("content-length")
    size_bytes = int(size_header) if size_header and size_header.isdigit() else len(body)

    video_id = await crud_video.create_video(
        db,
        VideoCreate(
            chat_id=chat_id,
            user_id=user_id,
            source_url=source_url,
            content_type=content_type,
            size_bytes=size_bytes,
            data=body,
        ),
    )
    return video_path(video_id)


async def try_cache_video(
    db: AsyncSession,
    source_url: str,
    chat_id: str,
    user_id: str,
    client: httpx.AsyncClient | None = None,
) -> Result[str]:
    return await capture(cache_video_from_url(db, source_url, chat_id, user_id, client))
