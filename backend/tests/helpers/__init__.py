# Test helpers package
from .fake_models import ScriptedChatModel, tool_call
from .test_utils import (
    assert_response_error,
    build_transport,
    collect_events,
    create_submission_payload,
    next_event,
    png_data_url,
    PNG_BYTES,
)

__all__ = [
    "ScriptedChatModel",
    "tool_call",
    "assert_response_error",
    "build_transport",
    "collect_events",
    "create_submission_payload",
    "next_event",
    "png_data_url",
    "PNG_BYTES",
]
