"""
Tests for the in-memory media cache
"""

import base64

import pytest

from agentchat.services import media_cache as media_cache_module
from agentchat.services.media_cache import MediaCache, decode_payload, image_path

from helpers import PNG_BYTES, png_data_url


class TestDecodePayload:
    """decode_payload accepts data URLs, bare base64 and bytes."""

    def test_data_url_keeps_content_type(self):
        entry = decode_payload("data:image/jpeg;base64," + base64.b64encode(b"jpeg-bytes").decode())
        assert entry.data == b"jpeg-bytes"
        assert entry.content_type == "image/jpeg"

    def test_bare_base64_uses_given_content_type(self):
        entry = decode_payload(base64.b64encode(PNG_BYTES).decode(), "image/png")
        assert entry.data == PNG_BYTES
        assert entry.content_type == "image/png"

    def test_raw_bytes(self):
        entry = decode_payload(b"\x00\x01", "application/octet-stream")
        assert entry.data == b"\x00\x01"

    @pytest.mark.parametrize(
        "payload",
        ["", "   ", "not base64 at all!", "data:image/png;base64,@@@", "data:image/png,plain", b"", None, 42],
    )
    def test_malformed_payloads_return_none(self, payload):
        assert decode_payload(payload) is None


class TestMediaCache:
    """Storage, LRU eviction and expiry."""

    def test_round_trip(self):
        cache = MediaCache(max_entries=4)
        entry_id = cache.cache_binary(png_data_url())

        assert entry_id
        cached = cache.get_cached_binary(entry_id)
        assert cached.data == PNG_BYTES
        assert cached.content_type == "image/png"
        assert image_path(entry_id) == f"/api/v1/images/{entry_id}"

    def test_malformed_payload_gets_no_id(self):
        cache = MediaCache(max_entries=4)
        assert cache.cache_binary("data:image/png;base64,%%%") is None
        assert len(cache) == 0

    def test_unknown_id_is_a_miss(self):
        cache = MediaCache(max_entries=4)
        assert cache.get_cached_binary("missing") is None
        assert cache.get_stats()["misses"] == 1

    def test_least_recently_used_entry_is_evicted(self):
        cache = MediaCache(max_entries=2)
        first = cache.cache_binary(b"one", "text/plain")
        second = cache.cache_binary(b"two", "text/plain")

        # touch the first entry so the second becomes the oldest
        assert cache.get_cached_binary(first) is not None
        third = cache.cache_binary(b"three", "text/plain")

        assert cache.get_cached_binary(second) is None
        assert cache.get_cached_binary(first).data == b"one"
        assert cache.get_cached_binary(third).data == b"three"
        assert cache.get_stats()["evictions"] == 1

    def test_expired_entries_are_misses(self, monkeypatch):
        clock = [1000.0]
        monkeypatch.setattr(media_cache_module.time, "monotonic", lambda: clock[0])
        cache = MediaCache(max_entries=4, ttl_seconds=60)
        entry_id = cache.cache_binary(b"data", "text/plain")

        clock[0] += 30
        assert cache.get_cached_binary(entry_id) is not None

        clock[0] += 61
        assert cache.get_cached_binary(entry_id) is None
        assert len(cache) == 0

    def test_purge_expired(self, monkeypatch):
        clock = [0.0]
        monkeypatch.setattr(media_cache_module.time, "monotonic", lambda: clock[0])
        cache = MediaCache(max_entries=4, ttl_seconds=10)
        cache.cache_binary(b"a", "text/plain")
        clock[0] = 5
        keep = cache.cache_binary(b"b", "text/plain")
        clock[0] = 12

        assert cache.purge_expired() == 1
        assert cache.get_cached_binary(keep) is not None

    def test_max_entries_must_be_positive(self):
        with pytest.raises(ValueError):
            MediaCache(max_entries=0)
