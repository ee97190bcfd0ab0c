"""FastAPI dependency providers.

Routes receive their collaborators through ``Depends`` so tests can swap
the generation flow, fragment index, and stores via
``app.dependency_overrides``.
"""

from fastapi import Depends

from ragchat.agent.chat_agent import ConversationFlow, get_agent_service
from ragchat.agent.flow import FragmentIndex, GenerationFlow
from ragchat.orchestrator.chat import ChatOrchestrator
from ragchat.orchestrator.upload import UploadService
from ragchat.sessions.files import UploadedFileStore
from ragchat.sessions.store import JsonSessionStore, SessionStore
from ragchat.settings import AppSettings, get_settings

_session_store: SessionStore | None = None


def get_app_settings() -> AppSettings:
    return get_settings()


def get_session_store() -> SessionStore:
    """Process-wide session store; its per-session locks must be shared."""
    global _session_store
    if _session_store is None:
        _session_store = JsonSessionStore(get_settings().sessions_dir)
    return _session_store


def get_file_store(settings: AppSettings = Depends(get_app_settings)) -> UploadedFileStore:
    return UploadedFileStore(settings.uploads_dir)


def get_generation_flow() -> GenerationFlow:
    return get_agent_service()


def get_conversation_flow() -> GenerationFlow:
    return ConversationFlow(get_agent_service())


def get_fragment_index() -> FragmentIndex:
    return get_agent_service()


def get_chat_orchestrator(
    store: SessionStore = Depends(get_session_store),
    flow: GenerationFlow = Depends(get_generation_flow),
    settings: AppSettings = Depends(get_app_settings),
) -> ChatOrchestrator:
    return ChatOrchestrator(store=store, flow=flow, settings=settings)


def get_conversation_orchestrator(
    store: SessionStore = Depends(get_session_store),
    flow: GenerationFlow = Depends(get_conversation_flow),
    settings: AppSettings = Depends(get_app_settings),
) -> ChatOrchestrator:
    return ChatOrchestrator(store=store, flow=flow, settings=settings)


def get_upload_service(
    store: SessionStore = Depends(get_session_store),
    index: FragmentIndex = Depends(get_fragment_index),
    files: UploadedFileStore = Depends(get_file_store),
    settings: AppSettings = Depends(get_app_settings),
) -> UploadService:
    return UploadService(store=store, index=index, files=files, settings=settings)
