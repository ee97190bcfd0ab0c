"""Application settings with environment variable loading.

Pydantic-based configuration for storage locations, ingestion limits,
history bounds, and streaming behaviour. Model provider settings live in
``ragchat.agent.config``.
"""

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()

MIB = 1024 * 1024

_DEFAULT_DATA_DIR = Path(__file__).parent.parent / "data"


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class AppSettings(BaseModel):
    """Runtime settings for the RAG chat service.

    Attributes:
        data_dir: Root directory for sessions, uploads, and the vector index.
        max_upload_bytes: Largest accepted upload.
        slice_size_bytes: Slice size used by the streaming file processor.
        streaming_threshold_bytes: Memory estimate above which streaming mode
            is recommended.
        max_history_messages: Message-count ceiling applied before token trimming.
        history_token_ratio: Share of the model's history limit given to history.
        initial_retrieval_count: Documents fetched from the index per query.
        final_document_count: Documents kept after truncation and cited.
        notify_cancellation: Emit an ``error`` frame marked ``cancelled`` when
            a stream is cancelled instead of closing silently.
    """

    data_dir: Path = Field(
        default_factory=lambda: Path(os.getenv("RAGCHAT_DATA_DIR", str(_DEFAULT_DATA_DIR)))
    )
    max_upload_bytes: int = Field(
        default_factory=lambda: _env_int("MAX_UPLOAD_BYTES", 100 * MIB),
        ge=1,
    )
    slice_size_bytes: int = Field(
        default_factory=lambda: _env_int("SLICE_SIZE_BYTES", MIB),
        ge=1,
    )
    streaming_threshold_bytes: int = Field(
        default_factory=lambda: _env_int("STREAMING_THRESHOLD_BYTES", 50 * MIB),
        ge=1,
    )
    max_history_messages: int = Field(default=50, ge=1)
    history_token_ratio: float = Field(default=0.6, gt=0.0, le=1.0)
    initial_retrieval_count: int = Field(default=20, ge=1)
    final_document_count: int = Field(default=5, ge=1)
    notify_cancellation: bool = Field(
        default_factory=lambda: _env_bool("NOTIFY_CANCELLATION"),
    )

    @property
    def sessions_dir(self) -> Path:
        return self.data_dir / "sessions"

    @property
    def uploads_dir(self) -> Path:
        return self.data_dir / "uploads"

    @property
    def knowledge_dir(self) -> Path:
        return self.data_dir / "knowledge"


_settings: AppSettings | None = None


def get_settings() -> AppSettings:
    """Get or create the process-wide settings.

    Returns:
        The AppSettings instance.
    """
    global _settings
    if _settings is None:
        _settings = AppSettings()
    return _settings
