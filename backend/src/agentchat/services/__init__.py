from .event_relay import EventRelay, Subscription
from .media_cache import MediaCache
from .video_store import cache_video_from_url, try_cache_video

__all__ = [
    "EventRelay",
    "Subscription",
    "MediaCache",
    "cache_video_from_url",
    "try_cache_video",
]
