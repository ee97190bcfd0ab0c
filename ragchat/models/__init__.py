"""Pydantic models for sessions, fragments, messages, and the HTTP API.

Provides type safety, validation, and automatic OpenAPI documentation.

Models:
    - SessionState / ConversationTurn: durable conversation state
    - Fragment / IngestionResult: output of the streaming file processor
    - UIMessage and content variants: the chat UI's message log
    - ChatRequest / UploadResponse / SessionInfo: request and response bodies
"""

from ragchat.models.fragments import (
    Fragment,
    IngestionProgress,
    IngestionResult,
    MemoryEstimate,
    SliceError,
)
from ragchat.models.messages import PlainText, Segments, Structured, UIMessage, normalize_content
from ragchat.models.schemas import ChatRequest, SessionInfo, UploadResponse
from ragchat.models.session import ConversationTurn, SessionState, TextSegment

__all__ = [
    "ChatRequest",
    "ConversationTurn",
    "Fragment",
    "IngestionProgress",
    "IngestionResult",
    "MemoryEstimate",
    "PlainText",
    "Segments",
    "SessionInfo",
    "SessionState",
    "SliceError",
    "Structured",
    "TextSegment",
    "UIMessage",
    "UploadResponse",
    "normalize_content",
]
