"""Integration tests for stored document retrieval."""

from urllib.parse import quote

import pytest
import pytest_check as check
from httpx import AsyncClient


class TestFileRetrieval:
    """Tests for GET /files/{documentId}."""

    async def test_uploaded_file_can_be_fetched(self, async_client: AsyncClient, mock_session_id: str) -> None:
        await async_client.post(
            "/upload",
            files={"file": ("notes.txt", b"Meeting notes", "text/plain")},
            data={"sessionId": mock_session_id},
        )

        response = await async_client.get(f"/files/{quote(f'{mock_session_id}::notes.txt', safe='')}")

        check.equal(response.status_code, 200)
        check.equal(response.content, b"Meeting notes")
        check.is_true(response.headers["content-type"].startswith("text/plain"))
        check.equal(response.headers["content-disposition"], 'inline; filename="notes.txt"')
        check.equal(response.headers["cache-control"], "public, max-age=3600")

    async def test_traversal_is_rejected(self, async_client: AsyncClient) -> None:
        """An encoded path traversal never reaches the filesystem."""
        response = await async_client.get(f"/files/{quote('../../etc/passwd', safe='')}")

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid document ID format. Expected sessionId::fileName."}

    @pytest.mark.parametrize(
        "document_id",
        [
            "test-session-12345::..%2Fsecret.txt",
            "not-valid!::file.pdf",
            "test-session-12345::bad%24name.pdf",
        ],
    )
    async def test_unsafe_ids_are_rejected(self, async_client: AsyncClient, document_id: str) -> None:
        response = await async_client.get(f"/files/{document_id}")

        assert response.status_code == 400

    async def test_missing_file_is_404(self, async_client: AsyncClient, mock_session_id: str) -> None:
        response = await async_client.get(f"/files/{mock_session_id}::missing.pdf")

        assert response.status_code == 404
        assert response.json() == {"error": "File not found."}
