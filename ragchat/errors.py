"""Error taxonomy shared by the ingestion, history, and streaming layers.

Each error carries the HTTP status it maps to on synchronous endpoints.
The API layer turns them into ``{"error": message}`` bodies; the chat
stream turns them into a single terminal ``error`` frame.
"""


class RagChatError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(RagChatError):
    """Missing or malformed request fields. Never retried."""

    status_code = 400


class NotFoundError(RagChatError):
    """Requested session or stored file does not exist."""

    status_code = 404


class CapacityError(RagChatError):
    """A file or history exceeds a configured bound."""

    status_code = 413


class ExtractionError(RagChatError):
    """Text extraction failed for one slice (or for every slice of a file)."""

    status_code = 422

    def __init__(self, message: str, offset: int | None = None) -> None:
        super().__init__(message)
        self.offset = offset


class UpstreamError(RagChatError):
    """The generation flow, model provider, or retrieval index failed."""

    status_code = 502


class StorageError(RagChatError):
    """Session store I/O failed. The store itself never retries."""

    status_code = 503
