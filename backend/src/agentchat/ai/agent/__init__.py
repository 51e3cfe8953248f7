from .messages import CanonicalMessage, normalize_messages
from .runtime import AgentDeps, AgentRunInput, AgentRunOutput, AgentRuntimeError, run_agent

__all__ = [
    "CanonicalMessage",
    "normalize_messages",
    "AgentDeps",
    "AgentRunInput",
    "AgentRunOutput",
    "AgentRuntimeError",
    "run_agent",
]
