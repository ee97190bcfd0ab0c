"""Text extraction for ingestion slices using pypdf.

Extracts text from one byte range of an uploaded file given its declared
media type, or from a range of pages of a PDF opened with ``open_pdf``.
Unreadable input raises ExtractionError, which the streaming processor
records and skips.
"""

import io
import logging
from pathlib import Path, PurePath
from typing import BinaryIO

from pypdf import PdfReader
from pypdf.errors import PdfReadError

from ragchat.errors import ExtractionError

logger = logging.getLogger(__name__)

# Constants
PDF_MEDIA_TYPE = "application/pdf"
PDF_MAGIC_BYTES = b"%PDF"
DEFAULT_MEDIA_TYPE = "application/octet-stream"

_MEDIA_TYPES_BY_EXTENSION = {
    "pdf": PDF_MEDIA_TYPE,
    "txt": "text/plain",
    "md": "text/markdown",
    "yaml": "application/x-yaml",
    "yml": "application/x-yaml",
    "csv": "text/csv",
    "json": "application/json",
    "html": "text/html",
    "htm": "text/html",
}

_TEXT_LIKE_MEDIA_TYPES = {
    "application/json",
    "application/x-yaml",
    "application/yaml",
    "application/xml",
}


def guess_media_type(file_name: str) -> str:
    """Map a file name's extension to a media type.

    Args:
        file_name: Name of the uploaded file.

    Returns:
        The media type, or ``application/octet-stream`` when unknown.
    """
    extension = PurePath(file_name).suffix.lower().lstrip(".")
    return _MEDIA_TYPES_BY_EXTENSION.get(extension, DEFAULT_MEDIA_TYPE)


def is_text_media_type(media_type: str) -> bool:
    base = media_type.split(";", 1)[0].strip().lower()
    return base.startswith("text/") or base in _TEXT_LIKE_MEDIA_TYPES


def is_pdf_media_type(media_type: str) -> bool:
    return media_type.split(";", 1)[0].strip().lower() == PDF_MEDIA_TYPE


def extract_pdf_pages(reader: PdfReader, start: int, stop: int) -> str:
    """Extract the text of pages ``start`` to ``stop - 1``. Failing pages are logged and skipped."""
    text_parts: list[str] = []
    for i in range(start, stop):
        try:
            page_text = reader.pages[i].extract_text()
            if page_text:
                text_parts.append(page_text)
        except Exception as e:
            logger.warning(f"Failed to extract text from page {i + 1}: {e}")
            continue

    return "\n\n".join(text_parts)


def _extract_pdf(data: bytes) -> str:
    if not data.lstrip()[:10].startswith(PDF_MAGIC_BYTES):
        raise ExtractionError("Invalid PDF: slice does not start with PDF header")

    try:
        reader = PdfReader(io.BytesIO(data))
    except PdfReadError as e:
        raise ExtractionError(f"Corrupt or invalid PDF: {e}") from e
    except Exception as e:
        raise ExtractionError(f"Failed to read PDF: {e}") from e

    return extract_pdf_pages(reader, 0, len(reader.pages))


def open_pdf(source: Path | bytes) -> tuple[BinaryIO, PdfReader]:
    """Open a whole PDF for page-by-page reading.

    Objects are read from ``source`` as pages are requested, so a file on
    disk is never loaded in full. The caller closes the returned handle.

    Args:
        source: Path of the stored file, or its bytes.

    Returns:
        The open handle and a reader over it.

    Raises:
        ExtractionError: If the file is not a readable PDF.
    """
    handle: BinaryIO = source.open("rb") if isinstance(source, Path) else io.BytesIO(bytes(source))
    try:
        if not handle.read(1024).lstrip()[:10].startswith(PDF_MAGIC_BYTES):
            raise ExtractionError("Invalid PDF: file does not start with PDF header")
        handle.seek(0)
        reader = PdfReader(handle)
        len(reader.pages)
    except ExtractionError:
        handle.close()
        raise
    except PdfReadError as e:
        handle.close()
        raise ExtractionError(f"Corrupt or invalid PDF: {e}") from e
    except Exception as e:
        handle.close()
        raise ExtractionError(f"Failed to read PDF: {e}") from e
    return handle, reader


def extract_text(data: bytes, media_type: str) -> str:
    """Extract text from one slice of a file.

    Args:
        data: Raw bytes of the slice.
        media_type: Declared media type of the whole file.

    Returns:
        Extracted text, possibly empty.

    Raises:
        ExtractionError: If the slice is empty, unreadable, or of an
            unsupported media type.
    """
    if not data:
        raise ExtractionError("Empty slice provided")

    if is_pdf_media_type(media_type):
        return _extract_pdf(data)
    if is_text_media_type(media_type):
        return data.decode("utf-8", errors="replace")

    raise ExtractionError(f"Unsupported media type: {media_type}")
