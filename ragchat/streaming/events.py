"""Typed events multiplexed over the chat response stream.

Every event has a kind from a closed set and a kind-specific payload.
``final_response`` and ``error`` are terminal: exactly one of them closes
a stream that is not cancelled.
"""

from enum import StrEnum

from pydantic import BaseModel, Field

from ragchat.agent.flow import SourceCitation, ToolInvocation
from ragchat.models.schemas import CamelModel


class StreamEventKind(StrEnum):
    CHUNK = "chunk"
    SOURCES = "sources"
    TOOL_INVOCATION = "tool_invocation"
    TOOL_INVOCATIONS = "tool_invocations"
    ERROR = "error"
    FINAL_RESPONSE = "final_response"


TERMINAL_KINDS = frozenset({StreamEventKind.ERROR, StreamEventKind.FINAL_RESPONSE})


class ChunkPayload(CamelModel):
    text: str


class SourcesPayload(CamelModel):
    sources: list[SourceCitation]


class ToolInvocationsPayload(CamelModel):
    invocations: list[ToolInvocation]


class ErrorPayload(CamelModel):
    error: str
    cancelled: bool | None = None


class FinalResponsePayload(CamelModel):
    """Closing frame of a successful stream.

    Attributes:
        response: The full assembled answer text.
        tool_invocations: Every tool call reported during the stream.
        session_id: Session the exchange was recorded in.
    """

    response: str
    tool_invocations: list[ToolInvocation] = Field(default_factory=list)
    session_id: str


EventPayload = (
    ChunkPayload
    | SourcesPayload
    | ToolInvocation
    | ToolInvocationsPayload
    | ErrorPayload
    | FinalResponsePayload
)


class StreamEvent(BaseModel):
    """One frame's worth of stream content."""

    kind: StreamEventKind
    payload: EventPayload

    @property
    def is_terminal(self) -> bool:
        return self.kind in TERMINAL_KINDS

    @classmethod
    def chunk(cls, text: str) -> "StreamEvent":
        return cls(kind=StreamEventKind.CHUNK, payload=ChunkPayload(text=text))

    @classmethod
    def sources(cls, sources: list[SourceCitation]) -> "StreamEvent":
        return cls(kind=StreamEventKind.SOURCES, payload=SourcesPayload(sources=sources))

    @classmethod
    def tool_invocation(cls, invocation: ToolInvocation) -> "StreamEvent":
        return cls(kind=StreamEventKind.TOOL_INVOCATION, payload=invocation)

    @classmethod
    def tool_invocations(cls, invocations: list[ToolInvocation]) -> "StreamEvent":
        return cls(
            kind=StreamEventKind.TOOL_INVOCATIONS,
            payload=ToolInvocationsPayload(invocations=invocations),
        )

    @classmethod
    def error(cls, message: str, cancelled: bool | None = None) -> "StreamEvent":
        return cls(kind=StreamEventKind.ERROR, payload=ErrorPayload(error=message, cancelled=cancelled))

    @classmethod
    def final_response(
        cls,
        response: str,
        session_id: str,
        tool_invocations: list[ToolInvocation] | None = None,
    ) -> "StreamEvent":
        return cls(
            kind=StreamEventKind.FINAL_RESPONSE,
            payload=FinalResponsePayload(
                response=response,
                tool_invocations=tool_invocations or [],
                session_id=session_id,
            ),
        )
