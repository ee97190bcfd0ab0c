"""Response multiplexing: typed stream events, SSE framing, and request lifecycle."""

from ragchat.streaming.events import StreamEvent, StreamEventKind
from ragchat.streaming.protocol import EventChannel, RequestLifecycle, RequestState
from ragchat.streaming.sse import SSE_HEADERS, SSE_MEDIA_TYPE, FrameEncodingError, format_sse

__all__ = [
    "SSE_HEADERS",
    "SSE_MEDIA_TYPE",
    "EventChannel",
    "FrameEncodingError",
    "RequestLifecycle",
    "RequestState",
    "StreamEvent",
    "StreamEventKind",
    "format_sse",
]
