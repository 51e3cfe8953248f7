"""
Tests for the image and video generation tools
"""

import base64
import json

import httpx
import pytest

from agentchat.ai.tools import ToolContext, build_agent_tools
from agentchat.ai.tools import video_generation
from agentchat.ai.tools.image_generation import (
    GETIMG_IMAGE_TOOL,
    OPENAI_IMAGE_TOOL,
    XAI_IMAGE_TOOL,
    GetimgImageArgs,
    GetimgResponse,
    normalize_getimg_image,
    resolve_getimg_dimensions,
)
from agentchat.ai.tools.video_generation import VIDEO_TOOL, resolve_video_url

from conftest import make_settings
from helpers import PNG_BYTES, build_transport

PNG_B64 = base64.b64encode(PNG_BYTES).decode()


def tool_by_name(context: ToolContext, name: str):
    return next(tool for tool in build_agent_tools(context) if tool.name == name)


@pytest.fixture
def settings():
    return make_settings(
        providers={
            "openai_api_key": "sk-test",
            "xai_api_key": "xai-test",
            "getimg_api_key": "getimg-test",
            "replicate_api_key": "r8-test",
        }
    )


@pytest.fixture
def make_context(settings, session_factory, media_cache):
    def _make(handler=None):
        transport = build_transport(handler)
        context = ToolContext(
            user_id="user-1",
            settings=settings,
            session_factory=session_factory,
            media_cache=media_cache,
            http_transport=transport,
        )
        return context, transport

    return _make


class TestToolRegistration:
    """Generation tools only exist when their key is configured."""

    def test_all_keys_configured(self, make_context):
        context, _ = make_context()
        names = {tool.name for tool in build_agent_tools(context)}
        assert {OPENAI_IMAGE_TOOL, XAI_IMAGE_TOOL, GETIMG_IMAGE_TOOL, VIDEO_TOOL} <= names
        assert "google_calendar_list_events" in names

    def test_missing_keys_skip_generation_tools(self, session_factory, media_cache):
        context = ToolContext(
            user_id="user-1",
            settings=make_settings(),
            session_factory=session_factory,
            media_cache=media_cache,
        )
        names = {tool.name for tool in build_agent_tools(context)}
        assert OPENAI_IMAGE_TOOL in names
        assert XAI_IMAGE_TOOL not in names
        assert GETIMG_IMAGE_TOOL not in names
        assert VIDEO_TOOL not in names


class TestArgumentValidation:
    """Invalid arguments never reach the provider."""

    @pytest.mark.asyncio
    async def test_short_prompt_is_rejected(self, make_context):
        context, transport = make_context()
        tool = tool_by_name(context, OPENAI_IMAGE_TOOL)

        result = await tool.ainvoke({"prompt": "cat"})

        assert "Invalid arguments for openai_generate_image" in result
        assert "prompt" in result
        assert "at least 8 characters" in result
        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_out_of_range_count_is_rejected(self, make_context):
        context, transport = make_context()
        tool = tool_by_name(context, XAI_IMAGE_TOOL)

        result = await tool.ainvoke({"prompt": "a lighthouse at dawn", "count": 9})

        assert "count" in result
        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_video_size_enum(self, make_context):
        context, transport = make_context()
        tool = tool_by_name(context, VIDEO_TOOL)

        result = await tool.ainvoke({"prompt": "waves rolling on a beach", "size": "640*480"})

        assert "size" in result
        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_rejected_call_comes_back_as_error_tool_message(self, make_context):
        context, _ = make_context()
        tool = tool_by_name(context, OPENAI_IMAGE_TOOL)

        message = await tool.ainvoke(
            {"name": OPENAI_IMAGE_TOOL, "args": {"prompt": "x"}, "id": "call_1", "type": "tool_call"}
        )

        assert message.status == "error"
        assert "prompt" in message.content


class TestImageTools:
    """Provider requests and result normalization."""

    @pytest.mark.asyncio
    async def test_openai_inline_image_goes_through_media_cache(self, make_context, media_cache):
        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            assert request.url.host == "api.openai.com"
            assert request.headers["Authorization"] == "Bearer sk-test"
            assert body["size"] == "1024x1024"
            assert body["quality"] == "standard"
            assert body["style"] == "natural"
            assert body["response_format"] == "b64_json"
            return httpx.Response(
                200, json={"data": [{"b64_json": PNG_B64, "revised_prompt": "A red fox"}]}
            )

        context, transport = make_context(handler)
        result = await tool_by_name(context, OPENAI_IMAGE_TOOL).ainvoke({"prompt": "a red fox in snow"})

        assert result["provider"] == "openai"
        assert result["count"] == 1
        image = result["images"][0]
        assert image["url"].startswith("/api/v1/images/")
        assert image["revisedPrompt"] == "A red fox"
        assert PNG_B64 not in json.dumps(result)

        cached = media_cache.get_cached_binary(image["url"].rsplit("/", 1)[-1])
        assert cached.data == PNG_BYTES
        assert cached.content_type == "image/png"
        assert len(transport.requests) == 1

    @pytest.mark.asyncio
    async def test_xai_hosted_url_passes_through(self, make_context):
        def handler(request: httpx.Request) -> httpx.Response:
            assert json.loads(request.content)["aspect_ratio"] == "16:9"
            return httpx.Response(200, json={"data": [{"url": "https://imgen.x.ai/a.png"}]})

        context, _ = make_context(handler)
        result = await tool_by_name(context, XAI_IMAGE_TOOL).ainvoke(
            {"prompt": "a city skyline at night", "aspectRatio": "16:9"}
        )

        assert result["images"] == [{"index": 0, "url": "https://imgen.x.ai/a.png"}]

    @pytest.mark.asyncio
    async def test_getimg_issues_one_request_per_image(self, make_context):
        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            assert (body["width"], body["height"]) == (768, 1024)
            assert body["guidance"] == 9
            assert body["steps"] == 28
            assert body["negative_prompt"] == "blurry"
            return httpx.Response(200, json={"image": PNG_B64})

        context, transport = make_context(handler)
        result = await tool_by_name(context, GETIMG_IMAGE_TOOL).ainvoke(
            {"prompt": "poster of a mountain", "count": 2, "ratio": "3:4", "negativePrompt": "blurry"}
        )

        assert result["count"] == 2
        assert len(transport.requests) == 2

    @pytest.mark.asyncio
    async def test_upstream_error_becomes_tool_error(self, make_context):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"error": {"message": "Your prompt was rejected"}})

        context, _ = make_context(handler)
        message = await tool_by_name(context, OPENAI_IMAGE_TOOL).ainvoke(
            {"name": OPENAI_IMAGE_TOOL, "args": {"prompt": "something detailed"}, "id": "c1", "type": "tool_call"}
        )

        assert message.status == "error"
        assert "Your prompt was rejected" in message.content

    @pytest.mark.asyncio
    async def test_second_generation_call_is_skipped(self, make_context):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"data": [{"b64_json": PNG_B64}]})

        context, transport = make_context(handler)
        tool = tool_by_name(context, OPENAI_IMAGE_TOOL)

        await tool.ainvoke({"prompt": "first detailed prompt"})
        second = await tool.ainvoke({"prompt": "second detailed prompt"})

        assert second["note"] == "image tool already used in this request"
        assert len(transport.requests) == 1

    def test_getimg_dimensions(self):
        assert resolve_getimg_dimensions(GetimgImageArgs(prompt="detailed prompt")) == (1024, 1024)
        assert resolve_getimg_dimensions(GetimgImageArgs(prompt="detailed prompt", ratio="9:16")) == (768, 1344)
        assert resolve_getimg_dimensions(
            GetimgImageArgs(prompt="detailed prompt", ratio="9:16", width=512, height=640)
        ) == (512, 640)

    def test_getimg_normalizer(self):
        assert normalize_getimg_image(GetimgResponse()) == []
        hosted = normalize_getimg_image(GetimgResponse(url="https://cdn.getimg.ai/x.png"))
        assert hosted[0].source.url == "https://cdn.getimg.ai/x.png"


class TestVideoTool:
    """Replicate prediction lifecycle."""

    @pytest.mark.asyncio
    async def test_polls_until_succeeded(self, make_context, monkeypatch):
        monkeypatch.setattr(video_generation, "POLL_INTERVAL_SECONDS", 0)
        polls = []

        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "POST":
                assert request.url.path == "/v1/models/wan-video/wan-2.5-t2v/predictions"
                assert request.headers["Prefer"] == "wait"
                payload = json.loads(request.content)["input"]
                assert payload == {
                    "prompt": "a drone shot over a forest",
                    "duration": 6,
                    "size": "1280*720",
                    "negative_prompt": "",
                    "enable_prompt_expansion": True,
                }
                return httpx.Response(201, json={"id": "pred-1", "status": "processing"})
            polls.append(request.url.path)
            if len(polls) < 2:
                return httpx.Response(200, json={"id": "pred-1", "status": "processing"})
            return httpx.Response(
                200,
                json={
                    "id": "pred-1",
                    "status": "succeeded",
                    "output": ["https://replicate.delivery/x/poster.jpg", "https://replicate.delivery/x/out.mp4"],
                },
            )

        context, _ = make_context(handler)
        result = await tool_by_name(context, VIDEO_TOOL).ainvoke({"prompt": "a drone shot over a forest"})

        assert result == {
            "provider": "replicate",
            "model": "wan-video/wan-2.5-t2v",
            "videoUrl": "https://replicate.delivery/x/out.mp4",
            "predictionId": "pred-1",
            "status": "succeeded",
        }
        assert polls == ["/v1/predictions/pred-1", "/v1/predictions/pred-1"]

    @pytest.mark.asyncio
    async def test_failed_prediction_is_a_tool_error(self, make_context):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(201, json={"id": "pred-2", "status": "failed", "error": "NSFW content"})

        context, _ = make_context(handler)
        message = await tool_by_name(context, VIDEO_TOOL).ainvoke(
            {"name": VIDEO_TOOL, "args": {"prompt": "a detailed video prompt"}, "id": "c1", "type": "tool_call"}
        )

        assert message.status == "error"
        assert "NSFW content" in message.content

    @pytest.mark.parametrize(
        "output, expected",
        [
            ("https://replicate.delivery/a.mp4", "https://replicate.delivery/a.mp4"),
            (["https://replicate.delivery/a.png", "https://replicate.delivery/b.webm?x=1"], "https://replicate.delivery/b.webm?x=1"),
            ({"url": "https://replicate.delivery/c"}, "https://replicate.delivery/c"),
            ([{"url": "https://replicate.delivery/d.mov"}], "https://replicate.delivery/d.mov"),
            (None, None),
            ("not-a-url", None),
        ],
    )
    def test_resolve_video_url(self, output, expected):
        assert resolve_video_url(output) == expected
