"""
In-memory cache for generated images.

Tool results carry images as base64 data URLs. Those are moved in here and
replaced by a short retrieval path so neither the model context nor the
stored transcript has to carry the payload.

The cache is bounded: least recently used entries are evicted past
``max_entries`` and entries older than ``ttl_seconds`` count as misses.
"""

import base64
import binascii
import re
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from threading import Lock
from typing import Optional, Union
from uuid import uuid4

from ..core.logger import get_logger

logger = get_logger(__name__)

DATA_URL_RE = re.compile(r"^data:([^;,]+)(?:;[^,]*?)?;base64,(.+)$", re.DOTALL)
DEFAULT_CONTENT_TYPE = "application/octet-stream"
IMAGE_PATH_PREFIX = "/api/v1/images/"


def image_path(image_id: str) -> str:
    return f"{IMAGE_PATH_PREFIX}{image_id}"


@dataclass
class CachedBinary:
    data: bytes
    content_type: str
    created_at: float = field(default_factory=lambda: time.monotonic())

    def is_expired(self, ttl: Optional[float], now: float) -> bool:
        if ttl is None:
            return False
        return now - self.created_at > ttl


def decode_payload(
    payload: Union[str, bytes, bytearray], content_type: Optional[str] = None
) -> Optional[CachedBinary]:
    """Decode a data URL, bare base64 string or raw bytes.

    Returns None when nothing usable can be decoded.
    """
    if isinstance(payload, (bytes, bytearray)):
        if not payload:
            return None
        return CachedBinary(bytes(payload), content_type or DEFAULT_CONTENT_TYPE)

    if not isinstance(payload, str):
        return None

    text = payload.strip()
    match = DATA_URL_RE.match(text)
    if match:
        content_type = match.group(1).strip() or content_type
        text = match.group(2)
    elif text.startswith("data:"):
        return None

    try:
        data = base64.b64decode("".join(text.split()), validate=True)
    except (binascii.Error, ValueError):
        return None

    if not data:
        return None
    return CachedBinary(data, content_type or DEFAULT_CONTENT_TYPE)


class MediaCache:
    """Bounded LRU + TTL store of decoded binaries keyed by random ids."""

    def __init__(self, max_entries: int = 256, ttl_seconds: Optional[float] = 86400):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self.ttl_seconds = ttl_seconds
        self._entries: "OrderedDict[str, CachedBinary]" = OrderedDict()
        self._lock = Lock()
        self._stats = {"hits": 0, "misses": 0, "evictions": 0}

    @classmethod
    def from_settings(cls, settings) -> "MediaCache":
        return cls(
            max_entries=settings.media_cache.max_entries,
            ttl_seconds=settings.media_cache.ttl_seconds,
        )

    def cache_binary(
        self, payload: Union[str, bytes, bytearray], content_type: Optional[str] = None
    ) -> Optional[str]:
        """Store ``payload`` and return its id, or None if it cannot be decoded."""
        entry = decode_payload(payload, content_type)
        if entry is None:
            logger.debug("[MediaCache] Rejected undecodable payload")
            return None

        entry_id = uuid4().hex
        with self._lock:
            self._entries[entry_id] = entry
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)
                self._stats["evictions"] += 1
        return entry_id

    def get_cached_binary(self, entry_id: str) -> Optional[CachedBinary]:
        now = time.monotonic()
        with self._lock:
            entry = self._entries.get(entry_id)
            if entry is None:
                self._stats["misses"] += 1
                return None
            if entry.is_expired(self.ttl_seconds, now):
                del self._entries[entry_id]
                self._stats["misses"] += 1
                return None
            self._entries.move_to_end(entry_id)
            self._stats["hits"] += 1
            return entry

    def purge_expired(self) -> int:
        now = time.monotonic()
        with self._lock:
            expired = [
                key
                for key, entry in self._entries.items()
                if entry.is_expired(self.ttl_seconds, now)
            ]
            for key in expired:
                del self._entries[key]
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def get_stats(self) -> dict:
        with self._lock:
            return {**self._stats, "size": len(self._entries)}
