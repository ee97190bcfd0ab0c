"""Models produced by the streaming file processor."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ragchat.models.session import utc_now


def document_id_for(session_id: str, file_name: str) -> str:
    """Composite identifier used by the file retrieval endpoint."""
    return f"{session_id}::{file_name}"


class Fragment(BaseModel):
    """A retrievable unit of extracted text from one uploaded file.

    Attributes:
        fragment_id: Unique identifier, never reused across retries.
        session_id: Owning session.
        file_name: Source file name.
        ordinal: Position of the fragment within the file.
        file_offset: Byte offset of the slice the text came from.
        page_number: Position estimate, ``offset // slice_size + 1``.
        media_type: Declared media type of the source file.
        text: Extracted text.
        created_at: Creation timestamp.
    """

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    fragment_id: str
    session_id: str
    file_name: str
    ordinal: int = Field(ge=0)
    file_offset: int = Field(ge=0)
    page_number: int = Field(ge=1)
    media_type: str
    text: str
    created_at: datetime = Field(default_factory=utc_now)

    @property
    def document_id(self) -> str:
        return document_id_for(self.session_id, self.file_name)

    def index_metadata(self) -> dict[str, str | int]:
        """Flat metadata stored alongside the fragment in the vector index."""
        return {
            "session_id": self.session_id,
            "document_id": self.document_id,
            "chunk_id": self.fragment_id,
            "original_file_name": self.file_name,
            "page_number": self.page_number,
            "chunk_index": self.ordinal,
            "file_offset": self.file_offset,
            "timestamp": self.created_at.isoformat(),
        }


class SliceError(BaseModel):
    """Recorded failure of one slice."""

    offset: int
    length: int
    message: str


class IngestionProgress(BaseModel):
    processed: int
    total: int

    @property
    def percentage(self) -> int:
        if self.total == 0:
            return 100
        return round(self.processed / self.total * 100)


class IngestionResult(BaseModel):
    """Fragments from one file, plus any per-slice failures."""

    file_name: str
    fragments: list[Fragment] = Field(default_factory=list)
    errors: list[SliceError] = Field(default_factory=list)
    slices_total: int = 0

    @property
    def slices_failed(self) -> int:
        return len(self.errors)

    @property
    def is_partial(self) -> bool:
        return bool(self.errors)


class MemoryEstimate(BaseModel):
    estimated: int
    recommendation: Literal["stream", "normal"]
