"""Per-request state machine and the frame channel that enforces it.

States run ``RECEIVING -> INGESTING | GENERATING -> STREAMING -> CLOSED``.
Cancellation may jump from any open state straight to ``CLOSED``. Once
closed, nothing more may be emitted.
"""

import logging
from enum import StrEnum

from ragchat.streaming.events import StreamEvent
from ragchat.streaming.sse import format_sse

logger = logging.getLogger(__name__)


class RequestState(StrEnum):
    RECEIVING = "receiving"
    INGESTING = "ingesting"
    GENERATING = "generating"
    STREAMING = "streaming"
    CLOSED = "closed"


_TRANSITIONS: dict[RequestState, frozenset[RequestState]] = {
    RequestState.RECEIVING: frozenset({RequestState.INGESTING, RequestState.GENERATING, RequestState.CLOSED}),
    RequestState.INGESTING: frozenset({RequestState.STREAMING, RequestState.CLOSED}),
    RequestState.GENERATING: frozenset({RequestState.STREAMING, RequestState.CLOSED}),
    RequestState.STREAMING: frozenset({RequestState.CLOSED}),
    RequestState.CLOSED: frozenset(),
}


class RequestLifecycle:
    """Tracks one request's state and rejects invalid transitions."""

    def __init__(self, name: str = "request") -> None:
        self.name = name
        self.state = RequestState.RECEIVING

    @property
    def closed(self) -> bool:
        return self.state is RequestState.CLOSED

    def advance(self, target: RequestState) -> None:
        """Move to ``target``.

        Raises:
            RuntimeError: If the transition is not allowed from the current state.
        """
        if target not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"{self.name}: invalid transition {self.state} -> {target}")
        logger.debug(f"{self.name}: {self.state} -> {target}")
        self.state = target

    def close(self) -> None:
        if not self.closed:
            self.advance(RequestState.CLOSED)


class EventChannel:
    """Turns stream events into SSE frames while enforcing the lifecycle.

    The first frame moves a generating request into ``STREAMING``; a
    terminal frame moves it to ``CLOSED``. Encoding after closure is an
    error.
    """

    def __init__(self, lifecycle: RequestLifecycle | None = None) -> None:
        self.lifecycle = lifecycle or RequestLifecycle("chat")

    @property
    def closed(self) -> bool:
        return self.lifecycle.closed

    def encode(self, event: StreamEvent) -> str:
        """Frame ``event`` for the wire.

        Raises:
            RuntimeError: If the channel is closed or not yet generating.
            FrameEncodingError: If the payload cannot be serialised. The
                channel state is left unchanged.
        """
        if self.closed:
            raise RuntimeError(f"Cannot emit {event.kind} after the stream has closed")
        frame = format_sse(event)
        if self.lifecycle.state is not RequestState.STREAMING:
            self.lifecycle.advance(RequestState.STREAMING)
        if event.is_terminal:
            self.lifecycle.advance(RequestState.CLOSED)
        return frame

    def close(self) -> None:
        self.lifecycle.close()
