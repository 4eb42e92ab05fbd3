"""In-process test helpers: a fake backend and stream assertions."""

from .assertions import (
    assert_anthropic_message_valid,
    assert_anthropic_stream_valid,
    parse_sse_events,
)
from .fake_upstream import FakeUpstream, UpstreamResponse

__all__ = [
    "FakeUpstream",
    "UpstreamResponse",
    "assert_anthropic_message_valid",
    "assert_anthropic_stream_valid",
    "parse_sse_events",
]
