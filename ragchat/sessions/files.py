"""Uploaded file storage and document identifier validation.

Uploads are kept at ``<uploads_dir>/<sessionId>/<fileName>`` so the chat
UI can open a cited source later through its ``sessionId::fileName``
document id. Every identifier is validated before it touches the
filesystem.
"""

import asyncio
import logging
import re
from pathlib import Path
from typing import Protocol

from ragchat.errors import CapacityError, NotFoundError, StorageError, ValidationError

logger = logging.getLogger(__name__)

DOCUMENT_ID_SEPARATOR = "::"
MAX_FILE_NAME_LENGTH = 255
WRITE_CHUNK_SIZE = 1024 * 1024  # 1MB

SESSION_ID_PATTERN = re.compile(r"^[A-Za-z0-9-]{8,128}$")
FILE_NAME_PATTERN = re.compile(r"^[A-Za-z0-9 ._()\-]+$")
_UNSAFE_FILE_NAME_CHARS = re.compile(r"[^A-Za-z0-9 ._()\-]")

RESERVED_NAMES = frozenset(
    {"CON", "PRN", "AUX", "NUL"}
    | {f"COM{i}" for i in range(1, 10)}
    | {f"LPT{i}" for i in range(1, 10)}
)


class AsyncReadable(Protocol):
    async def read(self, size: int = -1) -> bytes: ...


def validate_session_id(session_id: str) -> str:
    """Raises ValidationError unless the id is 8-128 letters, digits, or hyphens."""
    if not SESSION_ID_PATTERN.fullmatch(session_id or ""):
        raise ValidationError("Invalid session ID")
    return session_id


def validate_file_name(file_name: str) -> str:
    """Check a stored file name against the allow-list.

    Raises:
        ValidationError: On traversal patterns, path separators, reserved
            device names, disallowed characters, or excessive length.
    """
    if not file_name:
        raise ValidationError("Invalid file name")
    if ".." in file_name or "/" in file_name or "\\" in file_name:
        raise ValidationError("Invalid file name")
    if len(file_name) > MAX_FILE_NAME_LENGTH:
        raise ValidationError("Invalid file name")
    if not FILE_NAME_PATTERN.fullmatch(file_name):
        raise ValidationError("Invalid file name")
    if file_name.split(".")[0].strip().upper() in RESERVED_NAMES:
        raise ValidationError("Invalid file name")
    return file_name


def parse_document_id(document_id: str) -> tuple[str, str]:
    """Split and validate a ``sessionId::fileName`` document id.

    Returns:
        The session id and file name.

    Raises:
        ValidationError: If the id is malformed or either part is unsafe.
    """
    parts = (document_id or "").split(DOCUMENT_ID_SEPARATOR)
    if len(parts) != 2 or not all(parts):
        raise ValidationError("Invalid document ID format. Expected sessionId::fileName.")
    session_id, file_name = parts
    return validate_session_id(session_id), validate_file_name(file_name)


def sanitize_file_name(raw_name: str | None) -> str:
    """Reduce an uploaded file name to one that passes ``validate_file_name``.

    Raises:
        ValidationError: If nothing usable remains.
    """
    base = Path((raw_name or "").replace("\\", "/")).name
    cleaned = _UNSAFE_FILE_NAME_CHARS.sub("_", base).strip()
    while ".." in cleaned:
        cleaned = cleaned.replace("..", ".")
    cleaned = cleaned[:MAX_FILE_NAME_LENGTH]
    if not cleaned or cleaned.strip(".") == "":
        raise ValidationError("No file name provided")
    if cleaned.split(".")[0].strip().upper() in RESERVED_NAMES:
        cleaned = f"_{cleaned}"[:MAX_FILE_NAME_LENGTH]
    return validate_file_name(cleaned)


class UploadedFileStore:
    """Stores uploaded files per session.

    Args:
        uploads_dir: Root directory for uploads. Created lazily.
    """

    def __init__(self, uploads_dir: Path) -> None:
        self._uploads_dir = Path(uploads_dir)

    def path_for(self, session_id: str, file_name: str) -> Path:
        return self._uploads_dir / validate_session_id(session_id) / validate_file_name(file_name)

    async def save(
        self,
        session_id: str,
        file_name: str,
        source: AsyncReadable,
        max_bytes: int,
    ) -> tuple[Path, int]:
        """Stream ``source`` to disk one chunk at a time.

        Returns:
            The stored path and its size in bytes.

        Raises:
            CapacityError: If the stream grows past ``max_bytes``. The
                partial file is removed.
            StorageError: If the file cannot be written.
        """
        path = self.path_for(session_id, file_name)
        written = 0
        try:
            await asyncio.to_thread(path.parent.mkdir, parents=True, exist_ok=True)
            handle = await asyncio.to_thread(path.open, "wb")
            try:
                while chunk := await source.read(WRITE_CHUNK_SIZE):
                    written += len(chunk)
                    if written > max_bytes:
                        max_mb = max_bytes / (1024 * 1024)
                        raise CapacityError(
                            f"File {file_name} exceeds maximum allowed size ({max_mb:.0f}MB)"
                        )
                    await asyncio.to_thread(handle.write, chunk)
            finally:
                await asyncio.to_thread(handle.close)
        except CapacityError:
            await asyncio.to_thread(path.unlink, missing_ok=True)
            raise
        except OSError as e:
            logger.error(f"Failed to store upload {file_name} for session {session_id}: {e}")
            raise StorageError(f"Failed to store uploaded file: {e}") from e

        logger.info(f"Stored upload {file_name} ({written} bytes) for session {session_id}")
        return path, written

    def resolve(self, document_id: str) -> Path:
        """Locate the stored file for a document id.

        Raises:
            ValidationError: If the id fails validation.
            NotFoundError: If no such file was stored.
        """
        session_id, file_name = parse_document_id(document_id)
        path = self.path_for(session_id, file_name)
        if not path.is_file():
            raise NotFoundError("File not found.")
        return path
