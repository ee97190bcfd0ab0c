"""Pytest fixtures and shared test configuration.

Provides reusable fixtures for unit and integration tests.

Fixtures:
    - settings: AppSettings rooted in a temporary data directory
    - session_store: JsonSessionStore over that directory
    - fake_flow / fake_index: in-memory generation flow and fragment index
    - conversation_flow: in-memory flow for chat without retrieval
    - app: FastAPI application with dependencies overridden
    - async_client: HTTPX client for API testing
    - mock_session_id: Consistent session ID for tests
"""

from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from ragchat.agent.flow import FlowEvent, SourceCitation
from ragchat.api import dependencies
from ragchat.api.app import create_app
from ragchat.sessions.files import UploadedFileStore
from ragchat.sessions.store import JsonSessionStore
from ragchat.settings import AppSettings
from tests.helpers import FakeFlow, FakeIndex


@pytest.fixture
def settings(tmp_path: Path) -> AppSettings:
    """Settings with every storage location under a temporary directory."""
    return AppSettings(data_dir=tmp_path / "data", notify_cancellation=False)


@pytest.fixture
def session_store(settings: AppSettings) -> JsonSessionStore:
    return JsonSessionStore(settings.sessions_dir)


@pytest.fixture
def file_store(settings: AppSettings) -> UploadedFileStore:
    return UploadedFileStore(settings.uploads_dir)


@pytest.fixture
def mock_session_id() -> str:
    """Generate consistent session ID for testing.

    Returns:
        Predictable session ID that passes session id validation.
    """
    return "test-session-12345"


@pytest.fixture
def fake_flow() -> FakeFlow:
    """Flow answering "Hello world" with one cited source."""
    return FakeFlow(
        events=[
            FlowEvent.with_sources(
                [
                    SourceCitation(
                        document_id="test-session-12345::guide.pdf",
                        session_id="test-session-12345",
                        file_name="guide.pdf",
                        page_number=1,
                        text="The guide says hello.",
                    )
                ]
            ),
            FlowEvent.text_delta("Hello"),
            FlowEvent.text_delta(" world"),
        ]
    )


@pytest.fixture
def conversation_flow() -> FakeFlow:
    """Flow answering without retrieval, so it never reports sources."""
    return FakeFlow(events=[FlowEvent.text_delta("Hi"), FlowEvent.text_delta(" there")])


@pytest.fixture
def fake_index() -> FakeIndex:
    return FakeIndex()


@pytest.fixture
def app(
    settings: AppSettings,
    session_store: JsonSessionStore,
    file_store: UploadedFileStore,
    fake_flow: FakeFlow,
    conversation_flow: FakeFlow,
    fake_index: FakeIndex,
) -> FastAPI:
    """Application wired to temporary storage and in-memory collaborators."""
    application = create_app()
    application.dependency_overrides[dependencies.get_app_settings] = lambda: settings
    application.dependency_overrides[dependencies.get_session_store] = lambda: session_store
    application.dependency_overrides[dependencies.get_file_store] = lambda: file_store
    application.dependency_overrides[dependencies.get_generation_flow] = lambda: fake_flow
    application.dependency_overrides[dependencies.get_conversation_flow] = lambda: conversation_flow
    application.dependency_overrides[dependencies.get_fragment_index] = lambda: fake_index
    return application


@pytest.fixture
async def async_client(app: FastAPI) -> AsyncGenerator[AsyncClient]:
    """Create async HTTP client for API testing.

    Yields:
        Configured AsyncClient for making test requests.
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
