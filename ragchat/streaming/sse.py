"""Server-Sent Events framing."""

from pydantic_core import PydanticSerializationError

from ragchat.streaming.events import StreamEvent

SSE_MEDIA_TYPE = "text/event-stream"

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


class FrameEncodingError(Exception):
    """An event payload could not be serialised into a frame."""


def format_sse(event: StreamEvent) -> str:
    """Serialise one event as ``event: <kind>\\ndata: <JSON>\\n\\n``.

    The JSON body is always a single line, so one ``data:`` field suffices.

    Raises:
        FrameEncodingError: If the payload is not JSON serialisable.
    """
    try:
        data = event.payload.model_dump_json(by_alias=True, exclude_none=True)
    except (PydanticSerializationError, TypeError, ValueError) as e:
        raise FrameEncodingError(f"Cannot encode {event.kind} frame: {e}") from e
    return f"event: {event.kind}\ndata: {data}\n\n"
