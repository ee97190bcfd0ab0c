"""Upload path of the orchestrator: store, ingest, index, and record a document."""

import logging
import uuid

from ragchat.agent.flow import FragmentIndex
from ragchat.errors import CapacityError, ExtractionError
from ragchat.ingestion.processor import StreamingFileProcessor, estimate_memory_usage
from ragchat.models.fragments import IngestionResult, MemoryEstimate
from ragchat.models.schemas import UploadResponse
from ragchat.models.session import DOCUMENT_COUNT_KEY, FILE_ORDINALS_KEY, SessionState
from ragchat.parsing.extraction import DEFAULT_MEDIA_TYPE, guess_media_type
from ragchat.sessions.files import AsyncReadable, UploadedFileStore, sanitize_file_name, validate_session_id
from ragchat.sessions.store import SessionStore
from ragchat.settings import AppSettings
from ragchat.streaming.protocol import RequestLifecycle, RequestState

logger = logging.getLogger(__name__)


class UploadService:
    """Ingests one uploaded file into a session.

    Args:
        store: Session store; receives the document count and per-file ordinals.
        index: Destination of the extracted fragments.
        files: Keeps the raw upload for later retrieval.
        settings: Upload limits and slice size.
    """

    def __init__(
        self,
        store: SessionStore,
        index: FragmentIndex,
        files: UploadedFileStore,
        settings: AppSettings,
    ) -> None:
        self._store = store
        self._index = index
        self._files = files
        self._settings = settings

    def _processor(self, size: int, estimate: MemoryEstimate) -> StreamingFileProcessor:
        """Slice only when streaming is recommended; otherwise read the file in one pass."""
        streaming = estimate.recommendation == "stream"
        return StreamingFileProcessor(
            slice_size=self._settings.slice_size_bytes if streaming else size,
            max_file_bytes=self._settings.max_upload_bytes,
        )

    async def ingest(
        self,
        source: AsyncReadable,
        file_name: str | None,
        session_id: str | None = None,
        declared_size: int | None = None,
        content_type: str | None = None,
    ) -> UploadResponse:
        """Store the upload, turn it into fragments, and index them slice by slice.

        Args:
            source: Readable upload body.
            file_name: Client-supplied file name; sanitised before use.
            session_id: Existing session to attach to. A new id is generated
                when omitted.
            declared_size: Size announced by the client, checked before reading.
            content_type: Client-declared media type, used when the file
                extension is not recognised.

        Returns:
            UploadResponse with the session id and fragment counts.

        Raises:
            ValidationError: Missing file name or malformed session id.
            CapacityError: File larger than the configured maximum.
            ExtractionError: File empty, or no slice could be extracted.
            UpstreamError: The fragment index rejected the fragments.
            StorageError: The upload or the session could not be written.
        """
        lifecycle = RequestLifecycle("upload")
        try:
            safe_name = sanitize_file_name(file_name)
            session_id = validate_session_id(session_id) if session_id else str(uuid.uuid4())

            max_bytes = self._settings.max_upload_bytes
            if declared_size is not None and declared_size > max_bytes:
                raise CapacityError(
                    f"File {safe_name} ({declared_size / (1024 * 1024):.1f}MB) exceeds maximum "
                    f"allowed size ({max_bytes / (1024 * 1024):.0f}MB)"
                )

            lifecycle.advance(RequestState.INGESTING)
            path, size = await self._files.save(session_id, safe_name, source, max_bytes)
            if size == 0:
                raise ExtractionError(f"File {safe_name} is empty")

            media_type = guess_media_type(safe_name)
            if media_type == DEFAULT_MEDIA_TYPE and content_type:
                media_type = content_type

            estimate = estimate_memory_usage(size, self._settings.streaming_threshold_bytes)
            logger.info(
                f"Ingesting {safe_name} ({size} bytes, {media_type}) for session {session_id}; "
                f"estimated memory {estimate.estimated} bytes, mode: {estimate.recommendation}"
            )

            existing = await self._store.get(session_id)
            ordinals = dict(existing.metadata.get(FILE_ORDINALS_KEY, {})) if existing else {}
            start_ordinal = int(ordinals.get(safe_name, 0))

            result = IngestionResult(file_name=safe_name)
            async for outcome in self._processor(size, estimate).iter_slices(
                path, safe_name, session_id, media_type, start_ordinal
            ):
                result.slices_total += 1
                if outcome.error is not None:
                    result.errors.append(outcome.error)
                if outcome.fragments:
                    await self._index.add_fragments(outcome.fragments)
                    result.fragments.extend(outcome.fragments)

            if result.slices_total and result.slices_failed == result.slices_total:
                raise ExtractionError(f"Could not extract text from {safe_name}")

            next_ordinal = start_ordinal + len(result.fragments)

            def record_document(state: SessionState | None) -> SessionState:
                base = state or SessionState(session_id=session_id)
                file_ordinals = dict(base.metadata.get(FILE_ORDINALS_KEY, {}))
                file_ordinals[safe_name] = max(next_ordinal, int(file_ordinals.get(safe_name, 0)))
                return base.with_metadata(
                    **{FILE_ORDINALS_KEY: file_ordinals, DOCUMENT_COUNT_KEY: len(file_ordinals)}
                )

            await self._store.update(session_id, record_document)

            lifecycle.advance(RequestState.STREAMING)
            if result.is_partial:
                message = (
                    f"Processed {safe_name} with {result.slices_failed} of "
                    f"{result.slices_total} sections skipped"
                )
            else:
                message = f"Successfully processed {safe_name}"
            logger.info(f"{message} ({len(result.fragments)} fragments, session {session_id})")

            return UploadResponse(
                session_id=session_id,
                message=message,
                file_name=safe_name,
                fragment_count=len(result.fragments),
                failed_slices=result.slices_failed,
            )
        finally:
            lifecycle.close()
