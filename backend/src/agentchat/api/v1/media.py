"""
Binary media endpoints: cached images, stored videos and the Replicate proxy.
"""

from typing import Annotated, Any, Optional
from urllib.parse import urlsplit

import httpx
from fastapi import APIRouter, Depends, Query, Response
from fastapi.responses import JSONResponse, StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.background import BackgroundTask

from ...core.db.database import async_get_db
from ...core.exceptions.http_exceptions import NotFoundException
from ...core.logger import get_logger
from ...crud.crud_video import crud_video
from ...services.media_cache import MediaCache
from ...services.video_store import DEFAULT_VIDEO_CONTENT_TYPE
from ..dependencies import get_current_user, get_http_transport, get_media_cache

logger = get_logger(__name__)

router = APIRouter(tags=["media"])

PROXY_ALLOWED_HOSTS = ("replicate.delivery", "replicate.com")
PROXY_ACCEPT = "video/mp4,video/webm,video/*;q=0.9,*/*;q=0.8"
PROXY_TIMEOUT = httpx.Timeout(120.0, connect=10.0)


def is_allowed_proxy_host(hostname: Optional[str]) -> bool:
    if not hostname:
        return False
    hostname = hostname.lower()
    return any(
        hostname == host or hostname.endswith(f".{host}") for host in PROXY_ALLOWED_HOSTS
    )


@router.get("/images/{image_id}", summary="Cached generated image")
async def get_image(
    image_id: str,
    media_cache: Annotated[MediaCache, Depends(get_media_cache)],
) -> Response:
    entry = media_cache.get_cached_binary(image_id)
    if entry is None:
        return JSONResponse(status_code=404, content={"error": "Not found"})
    return Response(
        content=entry.data,
        media_type=entry.content_type,
        headers={"Cache-Control": "public, max-age=86400"},
    )


@router.get("/videos/{video_id}", summary="Stored generated video")
async def get_video(
    video_id: str,
    current_user: Annotated[dict[str, Any], Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(async_get_db)],
) -> Response:
    video = await crud_video.get_owned(db, video_id, current_user["id"])
    if video is None:
        raise NotFoundException("Video not found")

    data: bytes = video["data"]
    return Response(
        content=data,
        media_type=video.get("content_type") or DEFAULT_VIDEO_CONTENT_TYPE,
        headers={
            "Content-Length": str(video.get("size_bytes") or len(data)),
            "Accept-Ranges": "bytes",
            "Cache-Control": "public, max-age=31536000, immutable",
        },
    )


@router.get("/video/proxy", summary="Stream a Replicate-hosted video")
async def proxy_video(
    transport: Annotated[Optional[httpx.AsyncBaseTransport], Depends(get_http_transport)],
    url: Optional[str] = Query(default=None),
) -> Response:
    if not url:
        return JSONResponse(status_code=400, content={"error": "Missing url"})

    try:
        target = urlsplit(url)
        hostname = target.hostname
    except ValueError:
        return JSONResponse(status_code=400, content={"error": "Invalid url"})
    if target.scheme not in ("http", "https") or not hostname:
        return JSONResponse(status_code=400, content={"error": "Invalid url"})
    if not is_allowed_proxy_host(hostname):
        return JSONResponse(status_code=403, content={"error": "Host not allowed"})

    client = httpx.AsyncClient(
        timeout=PROXY_TIMEOUT, follow_redirects=True, transport=transport
    )
    try:
        upstream = await client.send(
            client.build_request("GET", url, headers={"Accept": PROXY_ACCEPT}),
            stream=True,
        )
    except httpx.HTTPError as exc:
        await client.aclose()
        logger.warning(f"[VideoProxy] Upstream request failed for {hostname}: {exc}")
        return JSONResponse(status_code=502, content={"error": "Upstream fetch failed"})

    if not upstream.is_success:
        await upstream.aclose()
        await client.aclose()
        logger.warning(f"[VideoProxy] Upstream answered {upstream.status_code} for {hostname}")
        return JSONResponse(status_code=502, content={"error": "Upstream fetch failed"})

    async def close_upstream() -> None:
        await upstream.aclose()
        await client.aclose()

    headers = {"Cache-Control": "no-cache"}
    content_length = upstream.headers.get("content-length")
    if content_length:
        headers["Content-Length"] = content_length
    return StreamingResponse(
        upstream.aiter_raw(),
        media_type=upstream.headers.get("content-type") or DEFAULT_VIDEO_CONTENT_TYPE,
        headers=headers,
        background=BackgroundTask(close_upstream),
    )
