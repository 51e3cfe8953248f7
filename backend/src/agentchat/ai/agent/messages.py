"""
Chat history normalization.

The UI posts messages in several shapes (plain strings, part lists, the newer
``parts`` array). Everything is reduced to ``CanonicalMessage`` dicts with a
plain text body before it reaches a model.
"""

import re
from typing import Any, Iterable, Optional, TypedDict

from langchain_core.messages import (
    AIMessage,
    BaseMessage,
    HumanMessage,
    SystemMessage,
    ToolMessage,
)

from ...schemas.chat import IncomingMessage

CANONICAL_ROLES = ("user", "assistant", "system", "tool")
IMAGE_PLACEHOLDER = "[image]"
IMAGE_OMITTED = "[image omitted]"
ELLIPSIS = "…"
CONTINUE_PLACEHOLDER = "Continue."

INLINE_IMAGE_RE = re.compile(r"data:image/[a-zA-Z0-9.+-]+;base64,[A-Za-z0-9+/]+={0,2}")


class CanonicalMessage(TypedDict, total=False):
    role: str
    content: str
    id: Optional[str]


def flatten_content(content: Any) -> str:
    """Reduce a message body to text. Images become a placeholder."""
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    if isinstance(content, dict):
        part_type = content.get("type")
        if part_type in ("image", "image_url"):
            return IMAGE_PLACEHOLDER
        if isinstance(content.get("text"), str):
            return content["text"]
        if "content" in content:
            return flatten_content(content["content"])
        return ""
    if isinstance(content, (list, tuple)):
        pieces = [flatten_content(part) for part in content]
        return "\n".join(piece for piece in pieces if piece)
    return str(content)


def scrub_inline_images(text: str) -> str:
    return INLINE_IMAGE_RE.sub(IMAGE_OMITTED, text)


def truncate(text: str, max_chars: int) -> str:
    if max_chars <= 0 or len(text) <= max_chars:
        return text
    return text[: max(max_chars - len(ELLIPSIS), 0)] + ELLIPSIS


def normalize_messages(
    raw: Iterable[IncomingMessage], window: int, max_chars: int
) -> list[CanonicalMessage]:
    """Window, flatten, scrub and truncate the submitted history."""
    recent = list(raw)[-window:] if window > 0 else list(raw)
    normalized: list[CanonicalMessage] = []
    for message in recent:
        text = scrub_inline_images(flatten_content(message.payload)).strip()
        text = truncate(text, max_chars)
        if not text:
            continue
        role = message.role if message.role in CANONICAL_ROLES else "user"
        entry: CanonicalMessage = {"role": role, "content": text}
        tool_id = message.tool_call_id or message.id
        if role == "tool" and tool_id:
            entry["id"] = tool_id
        normalized.append(entry)

    if not normalized:
        return [{"role": "user", "content": CONTINUE_PLACEHOLDER}]
    return normalized


def to_langchain_messages(messages: list[CanonicalMessage]) -> list[BaseMessage]:
    converted: list[BaseMessage] = []
    for index, message in enumerate(messages):
        text = message.get("content", "")
        role = message.get("role")
        if role == "system":
            converted.append(SystemMessage(content=text))
        elif role == "assistant":
            converted.append(AIMessage(content=text))
        elif role == "tool":
            converted.append(
                ToolMessage(
                    content=text,
                    tool_call_id=message.get("id") or f"tool-{index}",
                    name="historical-tool",
                )
            )
        else:
            converted.append(HumanMessage(content=text))
    return converted


def first_user_text(raw: Iterable[IncomingMessage]) -> str:
    for message in raw:
        if message.role == "user":
            text = scrub_inline_images(flatten_content(message.payload)).strip()
            if text:
                return text
    return ""
