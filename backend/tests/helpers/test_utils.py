"""
Test helpers and utilities
"""

import asyncio
import base64
from typing import Any, Callable, Dict

import httpx
from faker import Faker

fake = Faker()

# 1x1 transparent PNG
PNG_BYTES = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAQAAAC1HAwCAAAAC0lEQVR42mNkYAAAAAYAAjCB0C8AAAAASUVORK5CYII="
)


def png_data_url() -> str:
    return "data:image/png;base64," + base64.b64encode(PNG_BYTES).decode()


def create_submission_payload(**kwargs) -> Dict[str, Any]:
    """Chat submission body with a single user message."""
    default_payload = {
        "id": f"chat-{fake.uuid4()}",
        "messages": [{"role": "user", "content": fake.sentence()}],
    }
    default_payload.update(kwargs)
    return default_payload


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it served."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]):
        self.requests: list[httpx.Request] = []

        def _record(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(_record)

    def hosts(self) -> list[str]:
        return [request.url.host for request in self.requests]


def build_transport(
    handler: Callable[[httpx.Request], httpx.Response] | None = None,
) -> RecordingTransport:
    """Recording transport. Without a handler every request gets a 599."""
    return RecordingTransport(
        handler or (lambda request: httpx.Response(599, text="unexpected request"))
    )


def assert_response_error(response, status_code: int = 400):
    """Assert an error response."""
    assert (
        response.status_code == status_code
    ), f"Expected {status_code}, got {response.status_code}: {response.text}"
    data = response.json()
    assert "detail" in data or "error" in data
    return data


async def next_event(events, timeout: float = 1.0):
    """Next real event from a subscription's ``events()`` iterator, skipping keep-alive ticks."""

    async def _read():
        while True:
            event = await events.__anext__()
            if event is not None:
                return event

    return await asyncio.wait_for(_read(), timeout)


async def collect_events(subscription, count: int, timeout: float = 1.0) -> list:
    """Read ``count`` events, then close the subscription."""
    events = subscription.events()
    try:
        return [await next_event(events, timeout) for _ in range(count)]
    finally:
        subscription.close()
