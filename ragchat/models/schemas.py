from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from ragchat.models.messages import UIMessage
from ragchat.models.session import DEFAULT_THREAD_ID

TemperaturePreset = Literal["precise", "normal", "creative"]


class CamelModel(BaseModel):
    """Base for wire models: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ChatRequest(CamelModel):
    """Request payload for the streaming chat endpoint.

    Required fields are optional here so the route can reject each missing
    one with its own message instead of a generic validation error.

    Attributes:
        query: The user's question.
        session_id: Session whose documents and history are used.
        model_id: Model to generate with, e.g. ``openai/gpt-4.1-mini``.
        history: UI message log preceding the query.
        tools: Tool names the client would like enabled.
        thread_id: Conversation thread inside the session.
        temperature_preset: precise, normal, or creative.
        max_tokens: Upper bound on generated tokens.
    """

    query: str | None = None
    session_id: str | None = None
    model_id: str | None = None
    history: list[UIMessage] | None = None
    tools: list[str] | None = None
    thread_id: str = DEFAULT_THREAD_ID
    temperature_preset: TemperaturePreset | None = None
    max_tokens: int | None = Field(default=None, ge=1, le=32768)

    @field_validator("query", "session_id", "model_id", mode="before")
    @classmethod
    def strip_text(cls, v: Any) -> Any:
        """Strip whitespace so blank values count as missing."""
        if isinstance(v, str):
            return v.strip() or None
        return v


class UploadResponse(CamelModel):
    """Response after a document has been ingested.

    Attributes:
        session_id: Session the document was attached to.
        message: Human readable outcome.
        file_name: Stored file name.
        fragment_count: Number of fragments indexed.
        failed_slices: Number of slices skipped because extraction failed.
    """

    session_id: str
    message: str
    file_name: str
    fragment_count: int = Field(ge=0)
    failed_slices: int = Field(default=0, ge=0)


class SessionInfo(CamelModel):
    session_id: str
    exists: bool
    created: datetime | None = None
    last_activity: datetime | None = None
    document_count: int = Field(default=0, ge=0)


class SessionCreateRequest(CamelModel):
    session_id: str | None = None


class SessionUpdateRequest(CamelModel):
    metadata: dict[str, Any] = Field(default_factory=dict)


class SessionUpdateResponse(CamelModel):
    session_id: str
    success: bool
    last_activity: datetime
    document_count: int


class ToolInfo(CamelModel):
    name: str
    description: str
    source: str
    enabled: bool


class RagEndpoint(CamelModel):
    endpoint_id: str
    endpoint_name: str


class ServicesConfig(CamelModel):
    rag_endpoints: list[RagEndpoint]


class ErrorResponse(BaseModel):
    error: str
