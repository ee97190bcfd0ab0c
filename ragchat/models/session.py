"""Session state and conversation turn models.

A session is addressed by an opaque identifier and holds a per-thread log
of turns plus free-form metadata. Turns are appended, never mutated.
"""

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Role = Literal["user", "model"]

DEFAULT_THREAD_ID = "main"
DOCUMENT_COUNT_KEY = "documentCount"
FILE_ORDINALS_KEY = "fileOrdinals"


def utc_now() -> datetime:
    return datetime.now(UTC)


class TextSegment(BaseModel):
    """One text part of a turn's content."""

    model_config = ConfigDict(frozen=True)

    text: str


class ConversationTurn(BaseModel):
    """A single model-ready turn.

    Attributes:
        role: ``user`` for the person asking, ``model`` for generated answers.
        content: One or more text segments, in order.
    """

    model_config = ConfigDict(frozen=True)

    role: Role
    content: tuple[TextSegment, ...]

    @classmethod
    def from_text(cls, role: Role, text: str) -> "ConversationTurn":
        return cls(role=role, content=(TextSegment(text=text),))

    @property
    def text(self) -> str:
        return "".join(segment.text for segment in self.content)


class SessionState(BaseModel):
    """Durable conversation and ingestion state for one session.

    Attributes:
        session_id: Immutable identifier.
        created: Creation timestamp.
        last_activity: Timestamp of the most recent save, never decreasing.
        threads: Thread id to chronologically ordered turns.
        metadata: Free-form metadata (document count, per-file ordinals, ...).
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    session_id: str = Field(frozen=True)
    created: datetime = Field(default_factory=utc_now)
    last_activity: datetime = Field(default_factory=utc_now)
    threads: dict[str, list[ConversationTurn]] = Field(default_factory=dict)
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def document_count(self) -> int:
        return int(self.metadata.get(DOCUMENT_COUNT_KEY, 0))

    def turns(self, thread_id: str = DEFAULT_THREAD_ID) -> list[ConversationTurn]:
        return list(self.threads.get(thread_id, []))

    def with_turn(self, turn: ConversationTurn, thread_id: str = DEFAULT_THREAD_ID) -> "SessionState":
        """Return a copy with ``turn`` appended to ``thread_id``."""
        threads = {key: list(value) for key, value in self.threads.items()}
        threads.setdefault(thread_id, []).append(turn)
        return self.model_copy(update={"threads": threads})

    def with_metadata(self, **updates: Any) -> "SessionState":
        return self.model_copy(update={"metadata": {**self.metadata, **updates}})
