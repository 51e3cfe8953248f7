"""Explicit success/failure values for best-effort operations.

Hot-path writes (saving the inbound message, caching a generated video) must
not fail the request. They return a ``Result`` and the caller decides, in
code, what to do with a failure instead of an ``except`` hidden somewhere.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Generic, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True

    def unwrap_or(self, default: Any) -> T:
        return self.value

    def log_failure(self, logger, message: str) -> "Ok[T]":
        return self


@dataclass(frozen=True)
class Err:
    error: Exception

    @property
    def ok(self) -> bool:
        return False

    def unwrap_or(self, default: Any) -> Any:
        return default

    def log_failure(self, logger, message: str) -> "Err":
        logger.warning(f"{message}: {self.error}")
        return self


Result = Union[Ok[T], Err]


async def capture(awaitable: Awaitable[T]) -> Result[T]:
    """Await ``awaitable`` and wrap its outcome."""
    try:
        return Ok(await awaitable)
    except Exception as exc:
        return Err(exc)
