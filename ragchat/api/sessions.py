"""Session metadata endpoints."""

import logging
import uuid
from typing import Any

from fastapi import APIRouter, Body, Depends

from ragchat.api.dependencies import get_session_store
from ragchat.errors import NotFoundError
from ragchat.models.schemas import SessionCreateRequest, SessionInfo, SessionUpdateRequest, SessionUpdateResponse
from ragchat.models.session import FILE_ORDINALS_KEY, SessionState
from ragchat.sessions.store import SessionStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sessions", tags=["sessions"])


def _session_info(state: SessionState, exists: bool) -> SessionInfo:
    return SessionInfo(
        session_id=state.session_id,
        exists=exists,
        created=state.created,
        last_activity=state.last_activity,
        document_count=state.document_count,
    )


@router.get("/{session_id}", response_model=SessionInfo)
async def get_session(
    session_id: str,
    store: SessionStore = Depends(get_session_store),
) -> SessionInfo:
    """Return session timestamps and document count.

    Raises:
        404: Unknown session.
    """
    state = await store.get(session_id)
    if state is None:
        raise NotFoundError("Session not found")
    return _session_info(state, exists=True)


@router.post("", response_model=SessionInfo)
async def create_session(
    payload: SessionCreateRequest | None = Body(default=None),
    store: SessionStore = Depends(get_session_store),
) -> SessionInfo:
    """Create a session, or return the existing one with ``exists=true``.

    A new id is generated when the body does not name one.
    """
    session_id = (payload.session_id if payload else None) or str(uuid.uuid4())
    existed = False

    def ensure(state: SessionState | None) -> SessionState:
        nonlocal existed
        existed = state is not None
        return state or SessionState(session_id=session_id)

    state = await store.update(session_id, ensure)
    if not existed:
        logger.info(f"Created new session: {session_id}")
    return _session_info(state, exists=existed)


@router.put("/{session_id}", response_model=SessionUpdateResponse)
async def update_session(
    session_id: str,
    payload: SessionUpdateRequest,
    store: SessionStore = Depends(get_session_store),
) -> SessionUpdateResponse:
    """Merge client metadata into an existing session.

    Per-file ordinals are maintained by ingestion and cannot be overwritten.

    Raises:
        404: Unknown session.
    """
    updates: dict[str, Any] = dict(payload.metadata)
    if updates.pop(FILE_ORDINALS_KEY, None) is not None:
        logger.warning(f"Ignoring client update of {FILE_ORDINALS_KEY} for session {session_id}")

    def merge(state: SessionState | None) -> SessionState:
        if state is None:
            raise NotFoundError("Session not found")
        return state.with_metadata(**updates)

    state = await store.update(session_id, merge)
    logger.info(f"Updated session: {session_id}")
    return SessionUpdateResponse(
        session_id=session_id,
        success=True,
        last_activity=state.last_activity,
        document_count=state.document_count,
    )
