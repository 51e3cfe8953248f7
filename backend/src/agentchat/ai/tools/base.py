"""
Shared plumbing for agent tools.

Every tool is a ``StructuredTool`` with a pydantic ``args_schema``. Argument
validation happens inside langchain before the coroutine runs, so an invalid
call never reaches the external API and the model receives a message naming
the failing fields. Errors raised by the coroutine are turned into
``ToolException`` so the model sees the message instead of the run aborting.
"""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, Type

import httpx
from langchain_core.tools import StructuredTool, ToolException
from pydantic import BaseModel, ValidationError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ...config import Settings
from ...core.logger import get_logger
from ...services.media_cache import MediaCache

logger = get_logger(__name__)

PROMPT_MIN_LEN = 8
PROMPT_TOO_SHORT = (
    f"Prompt must include enough detail (at least {PROMPT_MIN_LEN} characters)."
)


class GenerationError(Exception):
    """A generation API rejected the request or returned nothing usable."""


class UsageGuard:
    """Tracks which single-use tools already ran during one agent run."""

    def __init__(self):
        self._used: set[str] = set()

    def claim(self, tool_name: str) -> bool:
        """True the first time ``tool_name`` is claimed, False afterwards."""
        if tool_name in self._used:
            return False
        self._used.add(tool_name)
        return True


@dataclass
class ToolContext:
    """Everything a tool needs for one agent run."""

    user_id: str
    settings: Settings
    session_factory: async_sessionmaker[AsyncSession]
    media_cache: MediaCache
    usage: UsageGuard = field(default_factory=UsageGuard)
    # Tests plug an httpx.MockTransport in here
    http_transport: Optional[httpx.AsyncBaseTransport] = None

    def http_client(self, timeout: float = 60.0, **kwargs) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=timeout, transport=self.http_transport, **kwargs
        )


def describe_validation_error(tool_name: str, error: ValidationError) -> str:
    """'Invalid arguments for x: prompt: ...; count: ...'"""
    problems = []
    for item in error.errors():
        location = ".".join(str(part) for part in item.get("loc", ())) or "input"
        message = str(item.get("msg", "invalid value"))
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        problems.append(f"{location}: {message}")
    return f"Invalid arguments for {tool_name}: " + "; ".join(problems)


def upstream_error_message(response: httpx.Response, fallback: str) -> str:
    """Pull a readable message out of an error response body."""
    try:
        payload = response.json()
    except ValueError:
        return response.text.strip() or fallback

    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict) and isinstance(error.get("message"), str):
            return error["message"]
        if isinstance(error, str):
            return error
        for key in ("detail", "message"):
            if isinstance(payload.get(key), str):
                return payload[key]
    return fallback


def make_tool(
    *,
    name: str,
    description: str,
    args_schema: Type[BaseModel],
    handler: Callable[[Any], Awaitable[Any]],
    single_use: Optional[UsageGuard] = None,
    used_result: Optional[dict[str, Any]] = None,
) -> StructuredTool:
    """Wrap ``handler(args)`` into a StructuredTool.

    ``handler`` receives the validated ``args_schema`` instance with defaults
    applied. With ``single_use`` set, calls after the first one return
    ``used_result`` without running the handler.
    """

    async def _run(**kwargs):
        args = args_schema.model_validate(kwargs)
        if single_use is not None and not single_use.claim(name):
            logger.info(f"[Tools] {name} already used in this request, skipping")
            return dict(used_result or {"note": f"{name} already used in this request"})
        try:
            return await handler(args)
        except ToolException:
            raise
        except Exception as exc:
            logger.warning(f"[Tools] {name} failed: {exc}")
            raise ToolException(str(exc)) from exc

    return StructuredTool.from_function(
        coroutine=_run,
        name=name,
        description=description,
        args_schema=args_schema,
        handle_tool_error=True,
        handle_validation_error=lambda error: describe_validation_error(name, error),
    )
