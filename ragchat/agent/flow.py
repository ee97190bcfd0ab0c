"""Contracts between the orchestrator and the retrieval + generation flow.

The orchestrator never talks to a model provider or vector index
directly. It hands a ``FlowInput`` to a ``GenerationFlow`` and consumes
the ``FlowEvent`` values it yields; uploads go into a ``FragmentIndex``.
``AgentService`` implements both on top of Agno, and tests substitute
in-memory fakes.
"""

from collections.abc import AsyncIterator, Sequence
from enum import StrEnum
from typing import Any, Protocol

from pydantic import BaseModel, Field

from ragchat.models.fragments import Fragment
from ragchat.models.schemas import CamelModel, TemperaturePreset
from ragchat.models.session import ConversationTurn

TEMPERATURE_PRESETS: dict[str, float] = {
    "precise": 0.2,
    "normal": 0.7,
    "creative": 0.9,
}


def resolve_temperature(preset: str | None) -> float:
    """Map a preset name to a temperature. Unknown or missing means ``normal``."""
    return TEMPERATURE_PRESETS.get(preset or "normal", TEMPERATURE_PRESETS["normal"])


class FlowEventType(StrEnum):
    TEXT = "text"
    SOURCES = "sources"
    TOOL_INVOCATION = "tool_invocation"
    TOOL_INVOCATIONS = "tool_invocations"
    ERROR = "error"


class ToolInvocation(CamelModel):
    """Record of one tool call made while generating an answer."""

    name: str
    input: Any = None
    output: Any = None
    error: str | None = None


class SourceCitation(CamelModel):
    """A retrieved fragment offered to the model as context.

    Attributes:
        document_id: ``<sessionId>::<fileName>`` of the source file.
        session_id: Session the fragment was uploaded to.
        file_name: Original file name.
        chunk_id: Fragment id in the index.
        chunk_index: Ordinal of the fragment within its file.
        page_number: Position estimate of the fragment.
        text: Fragment text.
    """

    document_id: str | None = None
    session_id: str | None = None
    file_name: str | None = None
    chunk_id: str | None = None
    chunk_index: int | None = None
    page_number: int | None = None
    text: str = ""


class FlowEvent(BaseModel):
    """One intermediate event yielded by a generation flow."""

    type: FlowEventType
    text: str | None = None
    sources: list[SourceCitation] = Field(default_factory=list)
    invocation: ToolInvocation | None = None
    invocations: list[ToolInvocation] = Field(default_factory=list)
    error: str | None = None

    @classmethod
    def text_delta(cls, text: str) -> "FlowEvent":
        return cls(type=FlowEventType.TEXT, text=text)

    @classmethod
    def with_sources(cls, sources: Sequence[SourceCitation]) -> "FlowEvent":
        return cls(type=FlowEventType.SOURCES, sources=list(sources))

    @classmethod
    def tool_call(cls, invocation: ToolInvocation) -> "FlowEvent":
        return cls(type=FlowEventType.TOOL_INVOCATION, invocation=invocation)

    @classmethod
    def tool_calls(cls, invocations: Sequence[ToolInvocation]) -> "FlowEvent":
        return cls(type=FlowEventType.TOOL_INVOCATIONS, invocations=list(invocations))

    @classmethod
    def failure(cls, message: str) -> "FlowEvent":
        return cls(type=FlowEventType.ERROR, error=message)


class FlowInput(BaseModel):
    """Everything a generation flow needs to answer one query.

    Attributes:
        query: The user's question.
        session_id: Session whose fragments are preferred during retrieval.
        model_id: Provider-qualified model id, e.g. ``openai/gpt-4.1-mini``.
        history: Trimmed prior turns, chronological, excluding the query.
        tools: Enabled tool names.
        temperature_preset: Sampling preset.
        max_tokens: Cap on generated tokens.
    """

    query: str
    session_id: str
    model_id: str
    history: list[ConversationTurn] = Field(default_factory=list)
    tools: list[str] = Field(default_factory=list)
    temperature_preset: TemperaturePreset | None = None
    max_tokens: int | None = None


class GenerationFlow(Protocol):
    """External retrieval + generation flow."""

    def run(self, flow_input: FlowInput) -> AsyncIterator[FlowEvent]:
        """Stream events for one query. Raises on upstream failure."""
        ...


class FragmentIndex(Protocol):
    """Destination of ingested fragments."""

    async def add_fragments(self, fragments: Sequence[Fragment]) -> None:
        ...
