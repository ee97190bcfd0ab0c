"""Unit tests for the upload service."""

import pytest
import pytest_check as check

from ragchat.errors import CapacityError, ExtractionError, UpstreamError, ValidationError
from ragchat.models.session import DOCUMENT_COUNT_KEY, FILE_ORDINALS_KEY
from ragchat.orchestrator.upload import UploadService
from ragchat.sessions.files import UploadedFileStore
from ragchat.sessions.store import JsonSessionStore
from ragchat.settings import AppSettings
from tests.helpers import BytesReader, FakeIndex, make_pdf, make_text_pdf


@pytest.fixture
def service(
    session_store: JsonSessionStore,
    fake_index: FakeIndex,
    file_store: UploadedFileStore,
    settings: AppSettings,
) -> UploadService:
    return UploadService(session_store, fake_index, file_store, settings)


class TestIngest:
    """Tests for successful ingestion."""

    async def test_pdf_upload_is_indexed_and_recorded(
        self,
        service: UploadService,
        fake_index: FakeIndex,
        session_store: JsonSessionStore,
        mock_session_id: str,
    ) -> None:
        data = make_text_pdf("Quarterly revenue grew by ten percent")

        response = await service.ingest(BytesReader(data), "report.pdf", mock_session_id)

        check.equal(response.session_id, mock_session_id)
        check.equal(response.message, "Successfully processed report.pdf")
        check.equal(response.fragment_count, len(fake_index.fragments))
        check.greater(response.fragment_count, 0)
        check.is_in("Quarterly revenue", fake_index.fragments[0].text)
        check.equal(fake_index.fragments[0].media_type, "application/pdf")

        state = await session_store.get(mock_session_id)
        assert state is not None
        check.equal(state.metadata[DOCUMENT_COUNT_KEY], 1)
        check.equal(state.metadata[FILE_ORDINALS_KEY], {"report.pdf": response.fragment_count})

    async def test_upload_is_kept_for_retrieval(
        self, service: UploadService, file_store: UploadedFileStore, mock_session_id: str
    ) -> None:
        await service.ingest(BytesReader(b"plain notes"), "notes.txt", mock_session_id)

        path = file_store.resolve(f"{mock_session_id}::notes.txt")

        assert path.read_bytes() == b"plain notes"

    async def test_generates_session_id_when_missing(self, service: UploadService) -> None:
        response = await service.ingest(BytesReader(b"hello"), "a.txt")

        assert len(response.session_id) == 36

    async def test_file_name_is_sanitised(self, service: UploadService, mock_session_id: str) -> None:
        response = await service.ingest(BytesReader(b"hello"), "../../secret?.txt", mock_session_id)

        assert response.file_name == "secret_.txt"

    async def test_declared_content_type_used_for_unknown_extension(
        self, service: UploadService, fake_index: FakeIndex, mock_session_id: str
    ) -> None:
        await service.ingest(BytesReader(b"a log line"), "server.log", mock_session_id, content_type="text/plain")

        assert fake_index.fragments[0].media_type == "text/plain"

    async def test_reupload_continues_ordinals(
        self,
        service: UploadService,
        fake_index: FakeIndex,
        session_store: JsonSessionStore,
        mock_session_id: str,
    ) -> None:
        """Re-ingesting a file never reuses fragment ordinals."""
        await service.ingest(BytesReader(b"first version"), "doc.txt", mock_session_id)
        await service.ingest(BytesReader(b"second version"), "doc.txt", mock_session_id)

        ordinals = [f.ordinal for f in fake_index.fragments]
        check.equal(ordinals, [0, 1])
        state = await session_store.get(mock_session_id)
        assert state is not None
        check.equal(state.metadata[DOCUMENT_COUNT_KEY], 1)

    async def test_document_count_counts_distinct_files(
        self, service: UploadService, session_store: JsonSessionStore, mock_session_id: str
    ) -> None:
        await service.ingest(BytesReader(b"one"), "a.txt", mock_session_id)
        await service.ingest(BytesReader(b"two"), "b.txt", mock_session_id)

        state = await session_store.get(mock_session_id)
        assert state is not None
        assert state.document_count == 2

    async def test_large_file_is_indexed_per_slice(
        self,
        session_store: JsonSessionStore,
        fake_index: FakeIndex,
        file_store: UploadedFileStore,
        settings: AppSettings,
        mock_session_id: str,
    ) -> None:
        sliced = settings.model_copy(update={"slice_size_bytes": 1024, "streaming_threshold_bytes": 1024})
        service = UploadService(session_store, fake_index, file_store, sliced)

        response = await service.ingest(BytesReader(b"word " * 1000), "long.txt", mock_session_id)

        check.equal(len(fake_index.batches), 5)
        check.equal(response.fragment_count, len(fake_index.fragments))
        check.equal([f.ordinal for f in fake_index.fragments], list(range(response.fragment_count)))

    async def test_file_below_streaming_threshold_is_read_in_one_pass(
        self,
        session_store: JsonSessionStore,
        fake_index: FakeIndex,
        file_store: UploadedFileStore,
        settings: AppSettings,
        mock_session_id: str,
    ) -> None:
        sliced = settings.model_copy(update={"slice_size_bytes": 1024})
        service = UploadService(session_store, fake_index, file_store, sliced)

        await service.ingest(BytesReader(b"word " * 1000), "long.txt", mock_session_id)

        check.equal(len(fake_index.batches), 1)
        check.equal({f.file_offset for f in fake_index.fragments}, {0})

    async def test_pdf_over_one_mib_is_indexed_in_one_pass(
        self, service: UploadService, fake_index: FakeIndex, settings: AppSettings, mock_session_id: str
    ) -> None:
        """A PDF larger than a slice but below the streaming threshold yields text from every page."""
        data = make_pdf(["Cover page", "Revenue summary", "Outlook"], padding=400_000)
        assert len(data) > settings.slice_size_bytes

        response = await service.ingest(BytesReader(data), "annual.pdf", mock_session_id)

        check.equal(response.message, "Successfully processed annual.pdf")
        check.equal(response.failed_slices, 0)
        joined = " ".join(f.text for f in fake_index.fragments)
        for phrase in ("Cover page", "Revenue summary", "Outlook"):
            check.is_in(phrase, joined)

    async def test_streamed_pdf_is_indexed_by_page_runs(
        self,
        session_store: JsonSessionStore,
        fake_index: FakeIndex,
        file_store: UploadedFileStore,
        settings: AppSettings,
        mock_session_id: str,
    ) -> None:
        streaming = settings.model_copy(update={"slice_size_bytes": 400_000, "streaming_threshold_bytes": 1024})
        service = UploadService(session_store, fake_index, file_store, streaming)
        data = make_pdf(["Cover page", "Revenue summary", "Outlook"], padding=400_000)

        response = await service.ingest(BytesReader(data), "annual.pdf", mock_session_id)

        check.equal(response.failed_slices, 0)
        check.equal(len(fake_index.batches), 3)
        check.equal([f.page_number for f in fake_index.fragments], [1, 2, 3])
        check.equal(response.fragment_count, 3)


class TestRejections:
    """Tests for ingestion failures."""

    async def test_empty_file(self, service: UploadService, mock_session_id: str) -> None:
        with pytest.raises(ExtractionError, match="File empty.txt is empty"):
            await service.ingest(BytesReader(b""), "empty.txt", mock_session_id)

    async def test_declared_size_over_limit(
        self, service: UploadService, settings: AppSettings, mock_session_id: str
    ) -> None:
        with pytest.raises(CapacityError):
            await service.ingest(
                BytesReader(b"x"), "big.txt", mock_session_id, declared_size=settings.max_upload_bytes + 1
            )

    async def test_stream_over_limit_removes_partial_file(
        self,
        session_store: JsonSessionStore,
        fake_index: FakeIndex,
        file_store: UploadedFileStore,
        settings: AppSettings,
        mock_session_id: str,
    ) -> None:
        small = settings.model_copy(update={"max_upload_bytes": 10})
        service = UploadService(session_store, fake_index, file_store, small)

        with pytest.raises(CapacityError):
            await service.ingest(BytesReader(b"x" * 11), "big.txt", mock_session_id)

        check.is_false(file_store.path_for(mock_session_id, "big.txt").exists())
        check.equal(fake_index.fragments, [])

    async def test_unreadable_file(self, service: UploadService, mock_session_id: str) -> None:
        with pytest.raises(ExtractionError, match="Could not extract text from broken.pdf"):
            await service.ingest(BytesReader(b"not a pdf at all"), "broken.pdf", mock_session_id)

    async def test_invalid_session_id(self, service: UploadService) -> None:
        with pytest.raises(ValidationError, match="Invalid session ID"):
            await service.ingest(BytesReader(b"hello"), "a.txt", "bad/id")

    async def test_missing_file_name(self, service: UploadService, mock_session_id: str) -> None:
        with pytest.raises(ValidationError):
            await service.ingest(BytesReader(b"hello"), None, mock_session_id)

    async def test_index_failure_propagates_without_recording(
        self,
        session_store: JsonSessionStore,
        file_store: UploadedFileStore,
        settings: AppSettings,
        mock_session_id: str,
    ) -> None:
        service = UploadService(
            session_store, FakeIndex(error=UpstreamError("Index unavailable")), file_store, settings
        )

        with pytest.raises(UpstreamError):
            await service.ingest(BytesReader(b"hello"), "a.txt", mock_session_id)

        assert await session_store.get(mock_session_id) is None
