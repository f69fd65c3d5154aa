"""File-backed session registry.

Each session lives in its own directory under `root`:

    <root>/<session_id>/session.json    session metadata and running cost
    <root>/<session_id>/messages.json   pydantic-ai message history

Callers that read-modify-write a session (cost rollups in particular) must do
so while holding `lock(session_id)`; the store serializes writers per session
but does not merge concurrent updates on its own.
"""

from __future__ import annotations

import asyncio
import json
import os
import uuid
import weakref
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable

from pydantic import BaseModel, ConfigDict, Field
from pydantic_ai.messages import ModelMessage, ModelMessagesTypeAdapter  # type: ignore

from sidekick.agent.errors import SessionExistsError, SessionNotFoundError

# Fixed namespace so child ids are stable across processes and releases.
CHILD_SESSION_NAMESPACE = uuid.UUID("6f1c2a4e-3b7d-5e08-9a41-d2c7f0b8e315")

DEFAULT_SESSION_TITLE = "New Session"
TASK_SESSION_TITLE = "New Agent Session"
PLACEHOLDER_TITLES = frozenset({DEFAULT_SESSION_TITLE, TASK_SESSION_TITLE})


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Session(BaseModel):
    """A persisted conversation with an accumulating cost."""

    model_config = ConfigDict(extra="ignore")

    id: str
    parent_session_id: str | None = None
    title: str = DEFAULT_SESSION_TITLE
    message_count: int = 0
    prompt_tokens: int = 0
    completion_tokens: int = 0
    cost: float = 0.0
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)


@dataclass
class SessionStore:
    root: Path
    _locks: weakref.WeakValueDictionary[str, asyncio.Lock] = field(
        default_factory=weakref.WeakValueDictionary, init=False, repr=False
    )

    def __post_init__(self) -> None:
        self.root.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def derive_child_session_id(message_id: str, call_id: str) -> str:
        """Derive the session id for a delegated call.

        Pure function of both identifiers: the same (message, call) pair always
        maps to the same child session.
        """

        return uuid.uuid5(CHILD_SESSION_NAMESPACE, json.dumps([message_id, call_id])).hex

    def lock(self, session_id: str) -> asyncio.Lock:
        """Return the lock guarding read-modify-write cycles on a session.

        Locks are held weakly and dropped once no caller holds or awaits them.
        """

        lock = self._locks.get(session_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[session_id] = lock
        return lock

    def _session_dir(self, session_id: str) -> Path:
        if not session_id or session_id in {".", ".."} or "/" in session_id or "\\" in session_id:
            raise SessionNotFoundError(f"invalid session id: {session_id!r}")
        return self.root / session_id

    def _read_sync(self, session_id: str) -> Session | None:
        path = self._session_dir(session_id) / "session.json"
        if not path.exists():
            return None
        return Session.model_validate_json(path.read_text(encoding="utf-8"))

    def _write_sync(self, session: Session) -> None:
        directory = self._session_dir(session.id)
        directory.mkdir(parents=True, exist_ok=True)
        _atomic_write(directory / "session.json", session.model_dump_json(indent=2))

    async def _read(self, session_id: str) -> Session | None:
        return await asyncio.to_thread(self._read_sync, session_id)

    async def _write(self, session: Session) -> None:
        await asyncio.to_thread(self._write_sync, session)

    async def create(self, title: str = DEFAULT_SESSION_TITLE) -> Session:
        session = Session(id=uuid.uuid4().hex, title=title)
        await self._write(session)
        return session

    async def create_task_session(self, session_id: str, parent_session_id: str, title: str) -> Session:
        """Create a child session linked to its parent.

        An id that is already taken raises `SessionExistsError`; a child session
        is never reused, so its cost is rolled up into the parent only once.
        """

        if await self._read(parent_session_id) is None:
            raise SessionNotFoundError(f"parent session not found: {parent_session_id}")
        async with self.lock(session_id):
            if await self._read(session_id) is not None:
                raise SessionExistsError(f"session already exists: {session_id}")
            session = Session(id=session_id, parent_session_id=parent_session_id, title=title)
            await self._write(session)
            return session

    async def get(self, session_id: str) -> Session:
        session = await self._read(session_id)
        if session is None:
            raise SessionNotFoundError(f"session not found: {session_id}")
        return session

    async def save(self, session: Session) -> Session:
        saved = session.model_copy(update={"updated_at": _now()})
        await self._write(saved)
        return saved

    async def add_usage(
        self,
        session_id: str,
        *,
        cost: float,
        prompt_tokens: int = 0,
        completion_tokens: int = 0,
        messages: int = 0,
    ) -> Session:
        """Atomically add a run's usage to a session."""

        async with self.lock(session_id):
            session = await self.get(session_id)
            session.cost += max(0.0, cost)
            session.prompt_tokens += prompt_tokens
            session.completion_tokens += completion_tokens
            session.message_count += messages
            return await self.save(session)

    async def set_title(self, session_id: str, title: str) -> Session:
        async with self.lock(session_id):
            session = await self.get(session_id)
            session.title = title
            return await self.save(session)

    def _list_sync(self) -> list[Session]:
        sessions: list[Session] = []
        for path in self.root.iterdir():
            meta = path / "session.json"
            if path.is_dir() and meta.exists():
                sessions.append(Session.model_validate_json(meta.read_text(encoding="utf-8")))
        sessions.sort(key=lambda s: s.updated_at, reverse=True)
        return sessions

    async def list_sessions(self) -> list[Session]:
        return await asyncio.to_thread(self._list_sync)

    async def children(self, parent_session_id: str) -> list[Session]:
        return [s for s in await self.list_sessions() if s.parent_session_id == parent_session_id]

    def _load_messages_sync(self, session_id: str) -> list[ModelMessage]:
        path = self._session_dir(session_id) / "messages.json"
        if not path.exists():
            return []
        return list(ModelMessagesTypeAdapter.validate_json(path.read_bytes()))

    async def load_messages(self, session_id: str) -> list[ModelMessage]:
        return await asyncio.to_thread(self._load_messages_sync, session_id)

    def _append_messages_sync(self, session_id: str, messages: list[ModelMessage]) -> None:
        history = self._load_messages_sync(session_id) + messages
        directory = self._session_dir(session_id)
        directory.mkdir(parents=True, exist_ok=True)
        _atomic_write(directory / "messages.json", ModelMessagesTypeAdapter.dump_json(history).decode("utf-8"))

    async def append_messages(self, session_id: str, messages: Iterable[ModelMessage]) -> None:
        batch = list(messages)
        if not batch:
            return
        async with self.lock(f"{session_id}:messages"):
            await asyncio.to_thread(self._append_messages_sync, session_id, batch)


def _atomic_write(path: Path, text: str) -> None:
    tmp = path.with_name(f".{path.name}.{uuid.uuid4().hex}.tmp")
    tmp.write_text(text, encoding="utf-8")
    os.replace(tmp, path)
