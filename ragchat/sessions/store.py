"""Durable session store with per-session atomic writes.

Every session is one JSON document named after its id. Writes for the
same session id are serialised behind an ``asyncio.Lock`` and land through
a temporary file plus ``os.replace``, so a concurrent ``get`` sees either
the previous record or the new one, never a torn write.
"""

import asyncio
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from pathlib import Path

from pydantic import ValidationError as PydanticValidationError

from ragchat.errors import StorageError, ValidationError
from ragchat.models.session import SessionState, utc_now
from ragchat.sessions.files import validate_session_id

logger = logging.getLogger(__name__)

SessionMutator = Callable[[SessionState | None], SessionState]


class SessionStore(ABC):
    """Key-value store mapping a session id to its state."""

    @abstractmethod
    async def get(self, session_id: str) -> SessionState | None:
        """Return the stored state, or ``None`` if the session does not exist."""

    @abstractmethod
    async def save(self, session_id: str, state: SessionState) -> SessionState:
        """Create or overwrite a session, advancing ``last_activity``."""

    @abstractmethod
    async def update(self, session_id: str, mutator: SessionMutator) -> SessionState:
        """Atomically read, transform with ``mutator``, and save a session."""


@dataclass
class _SessionLock:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


class JsonSessionStore(SessionStore):
    """File-backed session store, one ``<id>.json`` file per session.

    Session ids must match the upload id pattern, so every id maps to its
    own file name unchanged.

    Args:
        sessions_dir: Directory holding the session files. Created lazily.
    """

    def __init__(self, sessions_dir: Path) -> None:
        self._sessions_dir = Path(sessions_dir)
        self._locks: dict[str, _SessionLock] = {}

    @asynccontextmanager
    async def _locked(self, session_id: str) -> AsyncIterator[None]:
        """Hold the session's lock; the entry is dropped once nobody holds or awaits it."""
        entry = self._locks.setdefault(session_id, _SessionLock())
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                del self._locks[session_id]

    def _file_path(self, session_id: str) -> Path:
        return self._sessions_dir / f"{validate_session_id(session_id)}.json"

    def _read(self, path: Path) -> SessionState | None:
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageError(f"Failed to read session file {path.name}: {e}") from e

        try:
            return SessionState.model_validate_json(raw)
        except PydanticValidationError as e:
            raise StorageError(f"Session file {path.name} is not a valid session record") from e

    def _write(self, path: Path, state: SessionState) -> None:
        payload = state.model_dump_json(by_alias=True, indent=2)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.stem}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(payload)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise StorageError(f"Failed to write session file {path.name}: {e}") from e

    async def get(self, session_id: str) -> SessionState | None:
        path = self._file_path(session_id)
        return await asyncio.to_thread(self._read, path)

    async def _save_unlocked(self, session_id: str, state: SessionState, path: Path) -> SessionState:
        if state.session_id != session_id:
            raise ValidationError(
                f"Session state for {state.session_id!r} cannot be saved under {session_id!r}"
            )
        previous = await asyncio.to_thread(self._read, path)

        last_activity = max(utc_now(), state.last_activity)
        created = state.created
        if previous is not None:
            last_activity = max(last_activity, previous.last_activity)
            created = previous.created

        stored = state.model_copy(
            update={"created": created, "last_activity": last_activity}
        )
        await asyncio.to_thread(self._write, path, stored)
        return stored

    async def save(self, session_id: str, state: SessionState) -> SessionState:
        path = self._file_path(session_id)
        async with self._locked(session_id):
            return await self._save_unlocked(session_id, state, path)

    async def update(self, session_id: str, mutator: SessionMutator) -> SessionState:
        path = self._file_path(session_id)
        async with self._locked(session_id):
            current = await asyncio.to_thread(self._read, path)
            updated = mutator(current)
            stored = await self._save_unlocked(session_id, updated, path)
        if current is None:
            logger.info(f"Created session {session_id}")
        return stored
