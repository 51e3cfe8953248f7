"""
Pull generated media out of tool results.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from ...services.media_cache import IMAGE_PATH_PREFIX, MediaCache, image_path


@dataclass
class ToolMedia:
    images: list[str] = field(default_factory=list)
    video_url: Optional[str] = None

    def extend(self, other: "ToolMedia") -> None:
        for url in other.images:
            if url not in self.images:
                self.images.append(url)
        if self.video_url is None:
            self.video_url = other.video_url


def decode_result(result: Any) -> Any:
    """Tool results arrive as JSON text, decode when possible."""
    if isinstance(result, str):
        stripped = result.strip()
        if stripped.startswith(("{", "[")):
            try:
                return json.loads(stripped)
            except ValueError:
                return result
    return result


def externalize(url: str, media_cache: MediaCache) -> Optional[str]:
    """Cached path for an image reference. Data URLs go into the cache."""
    if url.startswith(IMAGE_PATH_PREFIX):
        return url
    if url.startswith("data:image/"):
        image_id = media_cache.cache_binary(url)
        return image_path(image_id) if image_id else None
    if url.startswith(("http://", "https://")):
        return url
    return None


def _image_refs(images: Any) -> Iterable[str]:
    if not isinstance(images, list):
        return
    for item in images:
        if isinstance(item, str):
            yield item
        elif isinstance(item, dict) and isinstance(item.get("url"), str):
            yield item["url"]


def extract_media(result: Any, media_cache: MediaCache) -> ToolMedia:
    media = ToolMedia()
    payload = decode_result(result)
    if not isinstance(payload, dict):
        return media

    for ref in _image_refs(payload.get("images")):
        url = externalize(ref, media_cache)
        if url and url not in media.images:
            media.images.append(url)

    video_url = payload.get("videoUrl")
    if isinstance(video_url, str) and video_url:
        media.video_url = video_url
    return media
