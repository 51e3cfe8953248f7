"""
Tests for the chat endpoint
"""

import base64
import json
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from agentchat.crud.crud_chat import crud_chat
from agentchat.crud.crud_message import crud_message
from agentchat.services import chat_service

from conftest import make_settings
from helpers import (
    PNG_BYTES,
    assert_response_error,
    build_transport,
    create_submission_payload,
    tool_call,
)

VIDEO_BYTES = b"\x00\x00\x00\x18ftypmp42fake-video"
VIDEO_SOURCE = "https://replicate.delivery/pbxt/out.mp4"


def parse_frames(body: str) -> list:
    frames = []
    for block in body.split("\n\n"):
        if not block.startswith("data: "):
            continue
        data = block[len("data: "):]
        frames.append(data if data == "[DONE]" else json.loads(data))
    return frames


def provider_handler(request: httpx.Request) -> httpx.Response:
    host = request.url.host
    if host == "api.openai.com":
        return httpx.Response(
            200, json={"data": [{"b64_json": base64.b64encode(PNG_BYTES).decode()}]}
        )
    if host == "api.replicate.com":
        return httpx.Response(
            201, json={"id": "pred-1", "status": "succeeded", "output": VIDEO_SOURCE}
        )
    if host == "replicate.delivery":
        return httpx.Response(200, content=VIDEO_BYTES, headers={"content-type": "video/mp4"})
    return httpx.Response(599, text="unexpected request")


class TestDirectStreaming:
    """Providers outside the agent path stream UI message frames."""

    @pytest.mark.asyncio
    async def test_stream_frames_and_persistence(self, client, auth_headers, async_session):
        payload = create_submission_payload(
            messages=[{"role": "user", "content": "Tell me a joke about databases please"}]
        )

        response = await client.post("/api/v1/chat", json=payload, headers=auth_headers)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        assert response.headers["x-vercel-ai-ui-message-stream"] == "v1"

        frames = parse_frames(response.text)
        types = [frame if frame == "[DONE]" else frame["type"] for frame in frames]
        assert types[:2] == ["start", "text-start"]
        assert types[-3:] == ["text-end", "finish", "[DONE]"]
        deltas = "".join(frame["delta"] for frame in frames[2:-3])
        assert deltas == "Hello from the model"

        chat = await crud_chat.get(db=async_session, id=payload["id"])
        assert chat["title"] == "Tell me a joke about databases please"
        assert (chat["provider"], chat["model"]) == ("openai", "gpt-4o")

        messages = await crud_message.list_by_chat(async_session, payload["id"])
        assert [(m.role, m.content) for m in messages] == [
            ("user", "Tell me a joke about databases please"),
            ("assistant", "Hello from the model"),
        ]

    @pytest.mark.asyncio
    async def test_long_first_message_title_is_cut(self, client, auth_headers, async_session):
        payload = create_submission_payload(messages=[{"role": "user", "content": "x" * 80}])

        await client.post("/api/v1/chat", json=payload, headers=auth_headers)

        chat = await crud_chat.get(db=async_session, id=payload["id"])
        assert chat["title"] == "x" * 50

    @pytest.mark.asyncio
    async def test_model_failure_becomes_error_frame(self, client, auth_headers, chat_model):
        chat_model.fail_with = "upstream exploded"

        response = await client.post(
            "/api/v1/chat", json=create_submission_payload(), headers=auth_headers
        )

        frames = parse_frames(response.text)
        assert {"type": "error", "errorText": "upstream exploded"} in frames
        assert frames[-1] == "[DONE]"

    @pytest.mark.asyncio
    async def test_explicit_selection_updates_chat(self, client, auth_headers, async_session):
        payload = create_submission_payload()
        await client.post("/api/v1/chat", json=payload, headers=auth_headers)

        payload["provider"] = "xai"
        payload["model"] = "grok-code-fast-1"
        await client.post("/api/v1/chat", json=payload, headers=auth_headers)

        chat = await crud_chat.get(db=async_session, id=payload["id"])
        assert (chat["provider"], chat["model"]) == ("xai", "grok-code-fast-1")


class TestChatRequestErrors:

    @pytest.mark.asyncio
    async def test_requires_auth(self, client):
        response = await client.post("/api/v1/chat", json=create_submission_payload())
        assert_response_error(response, 401)

    @pytest.mark.asyncio
    async def test_empty_messages(self, client, auth_headers):
        response = await client.post(
            "/api/v1/chat", json=create_submission_payload(messages=[]), headers=auth_headers
        )
        data = assert_response_error(response, 400)
        assert "messages" in data["detail"]

    @pytest.mark.asyncio
    async def test_body_is_not_json(self, client, auth_headers):
        response = await client.post(
            "/api/v1/chat",
            content=b"not json",
            headers={**auth_headers, "Content-Type": "application/json"},
        )
        assert_response_error(response, 400)

    @pytest.mark.asyncio
    async def test_foreign_chat_is_not_found(
        self, client, auth_headers, other_headers, async_session
    ):
        payload = create_submission_payload()
        await client.post("/api/v1/chat", json=payload, headers=other_headers)

        response = await client.post("/api/v1/chat", json=payload, headers=auth_headers)

        assert_response_error(response, 404)
        messages = await crud_message.list_by_chat(async_session, payload["id"])
        assert [m.role for m in messages] == ["user", "assistant"]

    @pytest.mark.asyncio
    async def test_unexpected_failure_is_a_500_body(self, client, auth_headers, monkeypatch):
        def boom(*args, **kwargs):
            raise RuntimeError("normalizer broke")

        monkeypatch.setattr(chat_service, "normalize_messages", boom)

        response = await client.post(
            "/api/v1/chat", json=create_submission_payload(), headers=auth_headers
        )

        assert response.status_code == 500
        assert response.json() == {"error": "Internal server error", "details": "normalizer broke"}


class TestAgentChat:
    """Eligible providers are answered by the agent."""

    @pytest.fixture
    def settings(self):
        return make_settings(
            agent={"tools_enabled": True},
            providers={"replicate_api_key": "r8-test"},
        )

    @pytest.fixture
    def http_transport(self):
        return build_transport(provider_handler)

    @pytest.mark.asyncio
    async def test_image_request(self, client, auth_headers, chat_model, async_session):
        chat_model.responses.append(
            tool_call("openai_generate_image", {"prompt": "a lighthouse in a storm"})
        )
        chat_model.fallback_text = "Here you go."
        payload = create_submission_payload(
            messages=[{"role": "user", "content": "Draw a lighthouse"}]
        )

        response = await client.post("/api/v1/chat", json=payload, headers=auth_headers)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        assert response.text.startswith("Generated 1 image(s):\n![Generated image 1](/api/v1/images/")

        messages = await crud_message.list_by_chat(async_session, payload["id"])
        assistant = messages[-1]
        assert assistant.content == "Here you go."
        [entry] = assistant.tool_invocations
        assert entry["name"] == "openai_generate_image"
        assert entry["toolCallId"] == "call_1"
        assert entry["images"][0].startswith("/api/v1/images/")

    @pytest.mark.asyncio
    async def test_video_request_is_cached(
        self, client, auth_headers, other_headers, chat_model, async_session, http_transport
    ):
        chat_model.responses.append(
            tool_call("replicate_generate_video", {"prompt": "a timelapse of clouds over hills"})
        )
        payload = create_submission_payload()

        response = await client.post("/api/v1/chat", json=payload, headers=auth_headers)

        assert response.text == f"Here is the generated video: {VIDEO_SOURCE}"
        assert "replicate.delivery" in http_transport.hosts()

        messages = await crud_message.list_by_chat(async_session, payload["id"])
        [entry] = messages[-1].tool_invocations
        assert entry["result"]["videoUrl"] == VIDEO_SOURCE
        cached_url = entry["cachedVideoUrl"]
        assert cached_url.startswith("/api/v1/videos/")

        video = await client.get(cached_url, headers=auth_headers)
        assert video.status_code == 200
        assert video.content == VIDEO_BYTES
        assert video.headers["content-type"] == "video/mp4"
        assert video.headers["accept-ranges"] == "bytes"

        foreign = await client.get(cached_url, headers=other_headers)
        assert foreign.status_code == 404

    @pytest.mark.asyncio
    async def test_agent_failure_falls_back_to_streaming(self, client, auth_headers):
        failing_agent = AsyncMock(side_effect=RuntimeError("graph crashed"))

        with patch.object(chat_service, "run_agent", failing_agent):
            response = await client.post(
                "/api/v1/chat", json=create_submission_payload(), headers=auth_headers
            )

        failing_agent.assert_awaited_once()
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        assert parse_frames(response.text)[-1] == "[DONE]"

    @pytest.mark.asyncio
    async def test_provider_outside_allow_list_never_runs_agent(self, client, auth_headers):
        agent = AsyncMock()

        with patch.object(chat_service, "run_agent", agent):
            response = await client.post(
                "/api/v1/chat",
                json=create_submission_payload(provider="xai", model="grok-code-fast-1"),
                headers=auth_headers,
            )

        agent.assert_not_awaited()
        assert response.headers["content-type"].startswith("text/event-stream")

    @pytest.mark.asyncio
    async def test_failed_answer_save_keeps_agent_reply(self, client, auth_headers, chat_model):
        chat_model.fallback_text = "Agent answer."
        original = crud_message.create_message

        async def save(db, chat_id, role, content, tool_invocations=None):
            if role == "assistant":
                raise RuntimeError("db down")
            return await original(db, chat_id, role, content, tool_invocations)

        with patch.object(crud_message, "create_message", side_effect=save) as saver:
            response = await client.post(
                "/api/v1/chat", json=create_submission_payload(), headers=auth_headers
            )

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/plain")
        assert response.text == "Agent answer."
        assert [call.kwargs["role"] for call in saver.await_args_list] == ["user", "assistant"]
