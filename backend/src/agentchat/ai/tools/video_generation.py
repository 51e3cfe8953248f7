"""
Text-to-video through the Replicate predictions API (wan-video/wan-2.5-t2v).
"""

import asyncio
import re
import time
from typing import Any, Literal, Optional

from langchain_core.tools import StructuredTool
from pydantic import BaseModel, ConfigDict, Field, field_validator

from ...core.logger import get_logger
from .base import (
    PROMPT_MIN_LEN,
    PROMPT_TOO_SHORT,
    GenerationError,
    ToolContext,
    make_tool,
    upstream_error_message,
)

logger = get_logger(__name__)

VIDEO_TOOL = "replicate_generate_video"
VIDEO_MODEL = "wan-video/wan-2.5-t2v"
REPLICATE_API_BASE = "https://api.replicate.com/v1"

POLL_INTERVAL_SECONDS = 2.0
TERMINAL_STATUSES = {"succeeded", "failed", "canceled"}
VIDEO_EXTENSION_RE = re.compile(r"\.(mp4|webm|mov|mkv|m4v)(\?|$)", re.IGNORECASE)


class VideoArgs(BaseModel):
    prompt: str = Field(..., description="Text prompt describing the video content.")
    duration: int = Field(
        default=6, ge=1, le=8, description="Video duration in seconds (capped for latency)."
    )
    size: Literal["1280*720", "720*1280", "1024*1024"] = Field(
        default="1280*720", description="Resolution of the output video."
    )
    negativePrompt: str = Field(default="", description="Elements to avoid in the video.")
    enablePromptExpansion: bool = Field(
        default=True, description="Allow model to expand the prompt for quality."
    )

    @field_validator("prompt")
    @classmethod
    def _detailed(cls, value: str) -> str:
        if len(value.strip()) < PROMPT_MIN_LEN:
            raise ValueError(PROMPT_TOO_SHORT)
        return value


class Prediction(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    status: str
    output: Any = None
    error: Optional[str] = None


def _candidates(output: Any) -> list[str]:
    if isinstance(output, str):
        return [output]
    if isinstance(output, dict) and isinstance(output.get("url"), str):
        return [output["url"]]
    if isinstance(output, list):
        urls = []
        for item in output:
            urls.extend(_candidates(item))
        return urls
    return []


def resolve_video_url(output: Any) -> Optional[str]:
    """First http(s) URL in the output, preferring one with a video extension."""
    urls = [url for url in _candidates(output) if url.startswith("http")]
    for url in urls:
        if VIDEO_EXTENSION_RE.search(url):
            return url
    return urls[0] if urls else None


def build_payload(args: VideoArgs) -> dict:
    return {
        "prompt": args.prompt,
        "duration": args.duration,
        "size": args.size,
        "negative_prompt": args.negativePrompt,
        "enable_prompt_expansion": args.enablePromptExpansion,
    }


def build_video_tools(context: ToolContext) -> list[StructuredTool]:
    api_key = context.settings.providers.replicate_api_key
    if not api_key:
        return []

    deadline_seconds = context.settings.agent.timeout_seconds
    headers = {"Authorization": f"Bearer {api_key}"}

    async def generate_video(args: VideoArgs) -> dict:
        started = time.monotonic()
        logger.info(
            f"[Video] Generating with {VIDEO_MODEL}: duration={args.duration} "
            f"size={args.size} prompt={args.prompt[:120]!r}"
        )
        async with context.http_client(deadline_seconds, base_url=REPLICATE_API_BASE) as client:
            response = await client.post(
                f"/models/{VIDEO_MODEL}/predictions",
                json={"input": build_payload(args)},
                headers={**headers, "Prefer": "wait"},
            )
            if not response.is_success:
                raise GenerationError(
                    upstream_error_message(response, "Replicate rejected the video request.")
                )
            prediction = Prediction.model_validate(response.json())

            while prediction.status not in TERMINAL_STATUSES:
                if time.monotonic() - started > deadline_seconds:
                    raise GenerationError(
                        f"Replicate prediction {prediction.id} did not finish in time."
                    )
                await asyncio.sleep(POLL_INTERVAL_SECONDS)
                response = await client.get(
                    f"/predictions/{prediction.id}", headers=headers
                )
                if not response.is_success:
                    raise GenerationError(
                        upstream_error_message(response, "Failed to poll Replicate prediction.")
                    )
                prediction = Prediction.model_validate(response.json())

        if prediction.status != "succeeded":
            raise GenerationError(
                f"Replicate prediction {prediction.status}: "
                f"{prediction.error or 'no error details'}"
            )

        video_url = resolve_video_url(prediction.output)
        if not video_url:
            logger.error(f"[Video] Missing video URL in output: {prediction.output!r}")
            raise GenerationError("Replicate did not return a video URL.")

        logger.info(
            f"[Video] Prediction {prediction.id} done in "
            f"{int((time.monotonic() - started) * 1000)}ms"
        )
        return {
            "provider": "replicate",
            "model": VIDEO_MODEL,
            "videoUrl": video_url,
            "predictionId": prediction.id,
            "status": prediction.status,
        }

    return [
        make_tool(
            name=VIDEO_TOOL,
            description=(
                "Generate a short video from text using Replicate (wan-video/wan-2.5-t2v)."
            ),
            args_schema=VideoArgs,
            handler=generate_video,
            single_use=context.usage,
            used_result={
                "provider": "replicate",
                "model": VIDEO_MODEL,
                "note": "video tool already used in this request",
            },
        )
    ]
