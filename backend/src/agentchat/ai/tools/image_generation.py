"""
Image generation tools (OpenAI gpt-image-1, xAI Grok 2 Image, getimg Seedream v4).

Each provider answers in its own shape, so every provider has a response model
and a normalizer that turns it into ``GeneratedImage`` entries. Inline base64
payloads are moved into the media cache right here, the tool result only
carries ``/api/v1/images/{id}`` paths.
"""

from dataclasses import dataclass
from typing import Literal, Optional, Union

from langchain_core.tools import StructuredTool
from pydantic import BaseModel, ConfigDict, Field, field_validator

from ...core.logger import get_logger
from ...services.media_cache import MediaCache, image_path
from .base import (
    PROMPT_MIN_LEN,
    PROMPT_TOO_SHORT,
    GenerationError,
    ToolContext,
    make_tool,
    upstream_error_message,
)

logger = get_logger(__name__)

OPENAI_IMAGE_TOOL = "openai_generate_image"
XAI_IMAGE_TOOL = "xai_generate_image"
GETIMG_IMAGE_TOOL = "getimg_generate_image"

OPENAI_IMAGE_MODEL = "gpt-image-1"
XAI_IMAGE_MODEL = "grok-2-image-1212"
GETIMG_IMAGE_MODEL = "seedream-v4"

OPENAI_IMAGES_URL = "https://api.openai.com/v1/images/generations"
XAI_IMAGES_URL = "https://api.x.ai/v1/images/generations"
GETIMG_IMAGES_URL = "https://api.getimg.ai/v1/seedream-v4/text-to-image"

IMAGE_TIMEOUT = 120.0

AspectRatio = Literal["1:1", "3:4", "4:3", "16:9", "9:16"]

GETIMG_DIMENSIONS = {
    "3:4": (768, 1024),
    "4:3": (1024, 768),
    "16:9": (1344, 768),
    "9:16": (768, 1344),
}


# ========== Tool arguments ==========


class BaseImageArgs(BaseModel):
    prompt: str = Field(..., description="Detailed description of the image.")
    count: int = Field(default=1, ge=1, le=4, description="How many variants to generate (max 4).")

    @field_validator("prompt")
    @classmethod
    def _detailed(cls, value: str) -> str:
        if len(value.strip()) < PROMPT_MIN_LEN:
            raise ValueError(PROMPT_TOO_SHORT)
        return value


class OpenAIImageArgs(BaseImageArgs):
    size: Literal["256x256", "512x512", "1024x1024", "2048x2048"] = "1024x1024"
    quality: Literal["standard", "hd"] = "standard"
    style: Literal["natural", "vivid"] = "natural"


class XAIImageArgs(BaseImageArgs):
    aspectRatio: AspectRatio = "1:1"


class GetimgImageArgs(BaseImageArgs):
    negativePrompt: Optional[str] = None
    ratio: Optional[AspectRatio] = None
    width: Optional[int] = Field(default=None, ge=256, le=1536)
    height: Optional[int] = Field(default=None, ge=256, le=1536)
    guidance: float = Field(default=9, ge=0, le=25)
    steps: int = Field(default=28, ge=10, le=50)


# ========== Provider responses ==========


class ImageDatum(BaseModel):
    model_config = ConfigDict(extra="ignore")

    b64_json: Optional[str] = None
    url: Optional[str] = None
    revised_prompt: Optional[str] = None


class OpenAIImagesResponse(BaseModel):
    """OpenAI and xAI both answer ``{data: [{b64_json | url, revised_prompt}]}``."""

    model_config = ConfigDict(extra="ignore")

    data: list[ImageDatum] = Field(default_factory=list)


class XAIImagesResponse(OpenAIImagesResponse):
    pass


class GetimgResponse(BaseModel):
    """Seedream answers ``{image: <b64>}`` or ``{url: ...}``."""

    model_config = ConfigDict(extra="ignore")

    image: Optional[str] = None
    url: Optional[str] = None


@dataclass(frozen=True)
class InlineImage:
    payload: str
    content_type: str = "image/png"


@dataclass(frozen=True)
class HostedImage:
    url: str


@dataclass(frozen=True)
class GeneratedImage:
    source: Union[InlineImage, HostedImage]
    revised_prompt: Optional[str] = None


def normalize_openai_images(response: OpenAIImagesResponse) -> list[GeneratedImage]:
    images = []
    for item in response.data:
        if item.b64_json:
            source = InlineImage(item.b64_json)
        elif item.url:
            source = HostedImage(item.url)
        else:
            continue
        images.append(GeneratedImage(source, item.revised_prompt))
    return images


def normalize_xai_images(response: XAIImagesResponse) -> list[GeneratedImage]:
    return normalize_openai_images(response)


def normalize_getimg_image(response: GetimgResponse) -> list[GeneratedImage]:
    if response.image:
        if response.image.startswith(("http://", "https://")):
            return [GeneratedImage(HostedImage(response.image))]
        return [GeneratedImage(InlineImage(response.image))]
    if response.url:
        return [GeneratedImage(HostedImage(response.url))]
    return []


def externalize_images(
    images: list[GeneratedImage], media_cache: MediaCache
) -> list[dict]:
    """Cache inline payloads and build the tool result entries."""
    results = []
    for index, image in enumerate(images):
        source = image.source
        if isinstance(source, InlineImage):
            image_id = media_cache.cache_binary(source.payload, source.content_type)
            if image_id is None:
                logger.warning(f"[Images] Dropping undecodable image #{index}")
                continue
            url = image_path(image_id)
        else:
            url = source.url
        entry = {"index": index, "url": url}
        if image.revised_prompt:
            entry["revisedPrompt"] = image.revised_prompt
        results.append(entry)
    return results


def resolve_getimg_dimensions(args: GetimgImageArgs) -> tuple[int, int]:
    if args.width and args.height:
        return args.width, args.height
    return GETIMG_DIMENSIONS.get(args.ratio or "1:1", (1024, 1024))


def _result(provider: str, model: str, images: list[dict]) -> dict:
    if not images:
        raise GenerationError(f"{provider} returned no images.")
    return {"provider": provider, "model": model, "count": len(images), "images": images}


# ========== Tools ==========


def build_image_tools(context: ToolContext) -> list[StructuredTool]:
    """Tools for every image provider whose API key is configured."""
    keys = context.settings.providers
    tools: list[StructuredTool] = []

    async def post_json(url: str, api_key: str, body: dict, provider: str):
        async with context.http_client(IMAGE_TIMEOUT) as client:
            response = await client.post(
                url,
                json=body,
                headers={"Authorization": f"Bearer {api_key}"},
            )
        if not response.is_success:
            raise GenerationError(
                upstream_error_message(
                    response, f"Failed to generate image with {provider}."
                )
            )
        return response.json()

    async def openai_images(args: OpenAIImageArgs) -> dict:
        payload = await post_json(
            OPENAI_IMAGES_URL,
            keys.openai_api_key,
            {
                "model": OPENAI_IMAGE_MODEL,
                "prompt": args.prompt,
                "n": args.count,
                "size": args.size,
                "quality": args.quality,
                "style": args.style,
                "response_format": "b64_json",
            },
            "OpenAI",
        )
        images = normalize_openai_images(OpenAIImagesResponse.model_validate(payload))
        return _result("openai", OPENAI_IMAGE_MODEL, externalize_images(images, context.media_cache))

    async def xai_images(args: XAIImageArgs) -> dict:
        payload = await post_json(
            XAI_IMAGES_URL,
            keys.xai_api_key,
            {
                "model": XAI_IMAGE_MODEL,
                "prompt": args.prompt,
                "n": args.count,
                "aspect_ratio": args.aspectRatio,
                "response_format": "b64_json",
            },
            "xAI",
        )
        images = normalize_xai_images(XAIImagesResponse.model_validate(payload))
        return _result("xai", XAI_IMAGE_MODEL, externalize_images(images, context.media_cache))

    async def getimg_images(args: GetimgImageArgs) -> dict:
        width, height = resolve_getimg_dimensions(args)
        body = {
            "prompt": args.prompt,
            "width": width,
            "height": height,
            "guidance": args.guidance,
            "steps": args.steps,
            "output_format": "png",
            "response_format": "b64",
        }
        if args.negativePrompt:
            body["negative_prompt"] = args.negativePrompt

        images: list[GeneratedImage] = []
        # Seedream returns a single image per request
        for _ in range(args.count):
            payload = await post_json(GETIMG_IMAGES_URL, keys.getimg_api_key, body, "getimg")
            images.extend(normalize_getimg_image(GetimgResponse.model_validate(payload)))
        return _result("getimg", GETIMG_IMAGE_MODEL, externalize_images(images, context.media_cache))

    if keys.openai_api_key:
        tools.append(
            make_tool(
                name=OPENAI_IMAGE_TOOL,
                description=(
                    "Generate images with OpenAI gpt-image-1. Provide a detailed prompt "
                    "and optional size/quality."
                ),
                args_schema=OpenAIImageArgs,
                handler=openai_images,
                single_use=context.usage,
                used_result={
                    "provider": "openai",
                    "model": OPENAI_IMAGE_MODEL,
                    "note": "image tool already used in this request",
                },
            )
        )
    if keys.xai_api_key:
        tools.append(
            make_tool(
                name=XAI_IMAGE_TOOL,
                description=(
                    "Generate images with xAI Grok-2 Image. Supply a descriptive prompt "
                    "and optional aspect ratio."
                ),
                args_schema=XAIImageArgs,
                handler=xai_images,
                single_use=context.usage,
                used_result={
                    "provider": "xai",
                    "model": XAI_IMAGE_MODEL,
                    "note": "image tool already used in this request",
                },
            )
        )
    if keys.getimg_api_key:
        tools.append(
            make_tool(
                name=GETIMG_IMAGE_TOOL,
                description=(
                    "Generate images with getimg Seedream v4. Useful for stylized "
                    "concepts and marketing visuals."
                ),
                args_schema=GetimgImageArgs,
                handler=getimg_images,
                single_use=context.usage,
                used_result={
                    "provider": "getimg",
                    "model": GETIMG_IMAGE_MODEL,
                    "note": "image tool already used in this request",
                },
            )
        )
    return tools
