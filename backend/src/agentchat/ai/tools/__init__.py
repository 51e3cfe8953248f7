from langchain_core.tools import StructuredTool

from .base import GenerationError, ToolContext, UsageGuard, make_tool
from .calendar import build_calendar_tools
from .image_generation import build_image_tools
from .video_generation import build_video_tools


def build_agent_tools(context: ToolContext) -> list[StructuredTool]:
    """Calendar tools always, generation tools when their API key is set."""
    return [
        *build_calendar_tools(context),
        *build_image_tools(context),
        *build_video_tools(context),
    ]


__all__ = [
    "GenerationError",
    "ToolContext",
    "UsageGuard",
    "make_tool",
    "build_agent_tools",
]
