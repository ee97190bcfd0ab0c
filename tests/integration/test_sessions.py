"""Integration tests for the session metadata endpoints."""

import pytest_check as check
from httpx import AsyncClient

from ragchat.models.session import SessionState
from ragchat.sessions.store import JsonSessionStore


class TestSessions:
    """Tests for GET/POST/PUT /sessions."""

    async def test_unknown_session_is_404(self, async_client: AsyncClient) -> None:
        response = await async_client.get("/sessions/does-not-exist")

        assert response.status_code == 404
        assert response.json() == {"error": "Session not found"}

    async def test_malformed_id_is_400(self, async_client: AsyncClient) -> None:
        response = await async_client.post("/sessions", json={"sessionId": "a_b"})

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid session ID"}

    async def test_create_is_idempotent(self, async_client: AsyncClient, mock_session_id: str) -> None:
        first = await async_client.post("/sessions", json={"sessionId": mock_session_id})
        second = await async_client.post("/sessions", json={"sessionId": mock_session_id})

        check.equal(first.status_code, 200)
        check.is_false(first.json()["exists"])
        check.is_true(second.json()["exists"])
        check.equal(first.json()["created"], second.json()["created"])

    async def test_create_without_body_generates_id(self, async_client: AsyncClient) -> None:
        response = await async_client.post("/sessions")

        assert response.status_code == 200
        assert len(response.json()["sessionId"]) == 36

    async def test_get_reports_document_count(
        self, async_client: AsyncClient, session_store: JsonSessionStore, mock_session_id: str
    ) -> None:
        state = SessionState(session_id=mock_session_id).with_metadata(documentCount=3)
        await session_store.save(mock_session_id, state)

        response = await async_client.get(f"/sessions/{mock_session_id}")

        body = response.json()
        check.equal(body["sessionId"], mock_session_id)
        check.is_true(body["exists"])
        check.equal(body["documentCount"], 3)
        check.is_in("lastActivity", body)

    async def test_update_merges_metadata(
        self, async_client: AsyncClient, session_store: JsonSessionStore, mock_session_id: str
    ) -> None:
        state = SessionState(session_id=mock_session_id).with_metadata(fileOrdinals={"a.pdf": 4}, documentCount=1)
        await session_store.save(mock_session_id, state)

        response = await async_client.put(
            f"/sessions/{mock_session_id}",
            json={"metadata": {"title": "Contracts", "fileOrdinals": {"a.pdf": 0}}},
        )

        check.equal(response.status_code, 200)
        check.is_true(response.json()["success"])
        check.equal(response.json()["documentCount"], 1)
        stored = await session_store.get(mock_session_id)
        assert stored is not None
        check.equal(stored.metadata["title"], "Contracts")
        check.equal(stored.metadata["fileOrdinals"], {"a.pdf": 4})

    async def test_update_unknown_session_is_404(self, async_client: AsyncClient, mock_session_id: str) -> None:
        response = await async_client.put(f"/sessions/{mock_session_id}", json={"metadata": {}})

        assert response.status_code == 404
        assert response.json() == {"error": "Session not found"}
