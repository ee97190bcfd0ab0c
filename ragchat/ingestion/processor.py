"""Streaming file processor for bounded-memory ingestion.

Large uploads are cut into fixed-size slices. Each slice is read, run
through text extraction and chunking in a worker thread, and turned into
fragments before the next slice is touched, so the working set stays at
roughly one slice regardless of file size. Text slices end on a character
boundary; a large PDF is read as runs of pages instead of byte ranges.

A slice whose extraction fails is logged, recorded, and skipped; the
remaining slices are still ingested. Progress, fragments, and slice
failures are reported to an optional observer as they happen.
"""

import asyncio
import logging
import math
import uuid
from collections.abc import AsyncIterator, Callable
from contextlib import aclosing
from dataclasses import dataclass, field
from functools import partial
from pathlib import Path

from pypdf import PdfReader

from ragchat.errors import CapacityError, ExtractionError
from ragchat.models.fragments import (
    Fragment,
    IngestionProgress,
    IngestionResult,
    MemoryEstimate,
    SliceError,
)
from ragchat.parsing.chunking import split_text
from ragchat.parsing.extraction import (
    extract_pdf_pages,
    extract_text,
    is_pdf_media_type,
    is_text_media_type,
    open_pdf,
)

logger = logging.getLogger(__name__)

DEFAULT_SLICE_SIZE = 1024 * 1024  # 1MB
DEFAULT_STREAMING_THRESHOLD = 50 * 1024 * 1024  # 50MB

Extractor = Callable[[bytes, str], str]
Chunker = Callable[[str], list[str]]
Payload = bytes | bytearray | memoryview | Path


class IngestionObserver:
    """Receives ingestion events as they happen. Override what you need."""

    def on_progress(self, progress: IngestionProgress) -> None:
        pass

    def on_fragment(self, fragment: Fragment) -> None:
        pass

    def on_slice_error(self, error: SliceError) -> None:
        pass


class ProgressReporter(IngestionObserver):
    """Observer that forwards progress updates to a plain function."""

    def __init__(self, report: Callable[[IngestionProgress], None]) -> None:
        self._report = report

    def on_progress(self, progress: IngestionProgress) -> None:
        self._report(progress)


@dataclass
class SliceOutcome:
    """Result of processing one slice: its fragments, or the failure."""

    offset: int
    length: int
    fragments: list[Fragment] = field(default_factory=list)
    error: SliceError | None = None


@dataclass
class _Section:
    """One unit of work: a byte range, or a run of PDF pages, to extract."""

    offset: int
    length: int
    page_number: int
    job: Callable[[], list[str]] | None = None
    error: ExtractionError | None = None


def estimate_memory_usage(
    file_size: int,
    threshold: int = DEFAULT_STREAMING_THRESHOLD,
) -> MemoryEstimate:
    """Estimate peak memory needed to ingest a file in one pass.

    Raw bytes, extracted text, and chunked copies are each assumed to be
    about the size of the file.

    Args:
        file_size: Size of the file in bytes.
        threshold: Estimate above which streaming mode is recommended.

    Returns:
        The estimate and a ``stream``/``normal`` recommendation.
    """
    estimated = file_size * 3
    return MemoryEstimate(
        estimated=estimated,
        recommendation="stream" if estimated > threshold else "normal",
    )


class StreamingFileProcessor:
    """Turns a file payload into ordered fragments, one slice at a time.

    Args:
        slice_size: Bytes per slice.
        max_file_bytes: Files larger than this are rejected up front.
        extractor: Text extraction collaborator for byte slices,
            ``(slice_bytes, media_type) -> text``. Page runs of a large PDF
            are read with pypdf directly.
        chunker: Chunking collaborator, ``text -> [fragment_text, ...]``.
        observer: Optional receiver of progress, fragment, and failure events.
    """

    def __init__(
        self,
        slice_size: int = DEFAULT_SLICE_SIZE,
        max_file_bytes: int | None = None,
        extractor: Extractor = extract_text,
        chunker: Chunker = split_text,
        observer: IngestionObserver | None = None,
    ) -> None:
        if slice_size < 1:
            raise ValueError("slice_size must be positive")
        self.slice_size = slice_size
        self.max_file_bytes = max_file_bytes
        self._extractor = extractor
        self._chunker = chunker
        self._observer = observer or IngestionObserver()

    @staticmethod
    def _payload_size(payload: Payload) -> int:
        if isinstance(payload, Path):
            return payload.stat().st_size
        return len(payload)

    def check_size(self, total_size: int, file_name: str) -> None:
        """Reject files above ``max_file_bytes`` before any work is done.

        Raises:
            CapacityError: If the file is too large.
        """
        if self.max_file_bytes is not None and total_size > self.max_file_bytes:
            size_mb = total_size / (1024 * 1024)
            max_mb = self.max_file_bytes / (1024 * 1024)
            raise CapacityError(
                f"File {file_name} ({size_mb:.1f}MB) exceeds maximum allowed size ({max_mb:.0f}MB)"
            )

    @staticmethod
    def _read_slice(payload: Payload, offset: int, length: int) -> bytes:
        if isinstance(payload, Path):
            with payload.open("rb") as handle:
                handle.seek(offset)
                return handle.read(length)
        return bytes(memoryview(payload)[offset : offset + length])

    def _extract_and_chunk(self, payload: Payload, offset: int, length: int, media_type: str) -> list[str]:
        data = self._read_slice(payload, offset, length)
        text = self._extractor(data, media_type)
        if not text or not text.strip():
            return []
        return self._chunker(text)

    def _extract_pages_and_chunk(self, reader: PdfReader, start: int, stop: int) -> list[str]:
        text = extract_pdf_pages(reader, start, stop)
        if not text or not text.strip():
            return []
        return self._chunker(text)

    def _aligned_end(self, payload: Payload, offset: int, end: int) -> int:
        """Move ``end`` back so no UTF-8 sequence is split between two slices."""
        window_start = max(offset + 1, end - 3)
        window = self._read_slice(payload, window_start, end - window_start + 1)
        while end > window_start and window[end - window_start] & 0xC0 == 0x80:
            end -= 1
        return end

    async def _byte_sections(self, payload: Payload, total_size: int, media_type: str) -> AsyncIterator[_Section]:
        align = is_text_media_type(media_type)
        offset = 0
        index = 0
        while offset < total_size:
            end = min(offset + self.slice_size, total_size)
            if align and end < total_size:
                end = await asyncio.to_thread(self._aligned_end, payload, offset, end)
            index += 1
            yield _Section(
                offset=offset,
                length=end - offset,
                page_number=index,
                job=partial(self._extract_and_chunk, payload, offset, end - offset, media_type),
            )
            offset = end

    async def _page_sections(self, payload: Payload, total_size: int, file_name: str) -> AsyncIterator[_Section]:
        try:
            handle, reader = await asyncio.to_thread(open_pdf, payload)
        except ExtractionError as e:
            yield _Section(offset=0, length=total_size, page_number=1, error=e)
            return

        try:
            page_count = len(reader.pages)
            pages_per_section = max(1, math.ceil(page_count * self.slice_size / total_size))
            logger.info(f"Reading {file_name} ({page_count} pages) {pages_per_section} pages at a time")
            for start in range(0, page_count, pages_per_section):
                stop = min(start + pages_per_section, page_count)
                # Byte positions are proportional estimates used for progress.
                offset = start * total_size // page_count
                end = stop * total_size // page_count
                yield _Section(
                    offset=offset,
                    length=end - offset,
                    page_number=start + 1,
                    job=partial(self._extract_pages_and_chunk, reader, start, stop),
                )
        finally:
            handle.close()

    async def iter_slices(
        self,
        payload: Payload,
        file_name: str,
        session_id: str,
        media_type: str,
        start_ordinal: int = 0,
    ) -> AsyncIterator[SliceOutcome]:
        """Process the payload slice by slice.

        Files no larger than one slice go through the same loop as a single
        slice at offset 0. Larger text files are cut at character
        boundaries. Larger PDFs are opened once and read in runs of pages
        sized to roughly one slice each, since a byte range of a PDF is not
        a document on its own.

        Args:
            payload: File contents, or a path to read slices from.
            file_name: Source file name recorded on every fragment.
            session_id: Owning session recorded on every fragment.
            media_type: Declared media type passed to the extractor.
            start_ordinal: Ordinal of the first fragment produced.

        Yields:
            One SliceOutcome per slice, in file order.

        Raises:
            CapacityError: If the file exceeds ``max_file_bytes``.
        """
        total_size = self._payload_size(payload)
        self.check_size(total_size, file_name)

        if total_size > self.slice_size:
            logger.info(f"Processing large file {file_name} ({total_size} bytes) in streaming mode")
            if is_pdf_media_type(media_type):
                sections = self._page_sections(payload, total_size, file_name)
            else:
                sections = self._byte_sections(payload, total_size, media_type)
        else:
            sections = self._byte_sections(payload, total_size, media_type)

        ordinal = start_ordinal
        async with aclosing(sections):
            async for section in sections:
                offset, length = section.offset, section.length
                outcome = SliceOutcome(offset=offset, length=length)

                try:
                    if section.error is not None:
                        raise section.error
                    texts = await asyncio.to_thread(section.job)
                except Exception as e:
                    message = e.message if isinstance(e, ExtractionError) else f"{type(e).__name__}: {e}"
                    logger.warning(f"Error processing slice at offset {offset} of {file_name}: {message}")
                    outcome.error = SliceError(offset=offset, length=length, message=message)
                    self._observer.on_slice_error(outcome.error)
                else:
                    for text in texts:
                        fragment = Fragment(
                            fragment_id=str(uuid.uuid4()),
                            session_id=session_id,
                            file_name=file_name,
                            ordinal=ordinal,
                            file_offset=offset,
                            page_number=section.page_number,
                            media_type=media_type,
                            text=text,
                        )
                        ordinal += 1
                        outcome.fragments.append(fragment)
                        self._observer.on_fragment(fragment)

                self._observer.on_progress(IngestionProgress(processed=offset + length, total=total_size))
                yield outcome

                # Let other sessions run before the next slice is read.
                await asyncio.sleep(0)

    async def iter_fragments(
        self,
        payload: Payload,
        file_name: str,
        session_id: str,
        media_type: str,
        start_ordinal: int = 0,
    ) -> AsyncIterator[Fragment]:
        """Yield fragments in ordinal order, skipping failed slices."""
        async for outcome in self.iter_slices(payload, file_name, session_id, media_type, start_ordinal):
            for fragment in outcome.fragments:
                yield fragment

    async def process(
        self,
        payload: Payload,
        file_name: str,
        session_id: str,
        media_type: str,
        start_ordinal: int = 0,
    ) -> IngestionResult:
        """Process the whole payload and collect fragments and slice failures.

        Returns:
            IngestionResult, partial when some slices failed.
        """
        result = IngestionResult(file_name=file_name)
        async for outcome in self.iter_slices(payload, file_name, session_id, media_type, start_ordinal):
            result.slices_total += 1
            result.fragments.extend(outcome.fragments)
            if outcome.error is not None:
                result.errors.append(outcome.error)

        logger.info(
            f"Extracted {len(result.fragments)} fragments from {file_name} "
            f"({result.slices_failed}/{result.slices_total} slices failed)"
        )
        return result


def create_streaming_processor(
    on_progress: Callable[[IngestionProgress], None] | None = None,
    **kwargs,
) -> StreamingFileProcessor:
    """Create a processor that reports progress to ``on_progress``."""
    observer = ProgressReporter(on_progress) if on_progress else None
    return StreamingFileProcessor(observer=observer, **kwargs)
