"""Split extracted text into bounded-length fragments."""

from langchain_text_splitters import RecursiveCharacterTextSplitter

CHUNK_MAX_LENGTH = 2000
CHUNK_OVERLAP = 200


def split_text(
    text: str,
    chunk_size: int = CHUNK_MAX_LENGTH,
    chunk_overlap: int = CHUNK_OVERLAP,
) -> list[str]:
    """Split text into overlapping chunks no longer than ``chunk_size``.

    Whitespace-only input yields no chunks.
    """
    if not text.strip():
        return []
    splitter = RecursiveCharacterTextSplitter(
        chunk_size=chunk_size,
        chunk_overlap=chunk_overlap,
        length_function=len,
    )
    return [chunk for chunk in splitter.split_text(text) if chunk.strip()]
