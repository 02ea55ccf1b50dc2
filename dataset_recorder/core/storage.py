from __future__ import annotations
import json
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from ..models.tooling import StoredSession, Task
from .logging import get_logger

logger = get_logger(__name__)


# --- Session store contracts ---
class SessionStore(ABC):
    @abstractmethod
    def put_task(self, task: Task) -> Task: ...
    @abstractmethod
    def list_tasks(self) -> list[Task]: ...
    @abstractmethod
    def put_session(self, session: StoredSession) -> StoredSession: ...
    @abstractmethod
    def list_sessions(
        self,
        task_id: Optional[str] = None,
        since: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> list[StoredSession]: ...


def as_utc(value: datetime) -> datetime:
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


def select_sessions(
    sessions: list[StoredSession],
    task_id: Optional[str] = None,
    since: Optional[datetime] = None,
    limit: Optional[int] = None,
) -> list[StoredSession]:
    """Filter by task and creation time, oldest first, capped at limit."""
    if since is not None:
        since = as_utc(since)
    matches = [
        s for s in sessions
        if (task_id is None or s.task_id == task_id)
        and (since is None or as_utc(s.created_at) >= since)
    ]
    matches.sort(key=lambda s: as_utc(s.created_at))
    return matches[:limit] if limit is not None else matches


class InMemorySessionStore(SessionStore):
    def __init__(self) -> None:
        self._tasks: dict[str, Task] = {}
        self._sessions: list[StoredSession] = []
        self._lock = threading.Lock()
    def put_task(self, task: Task) -> Task:
        with self._lock:
            self._tasks[task.id] = task
        return task
    def list_tasks(self) -> list[Task]:
        with self._lock:
            return sorted(self._tasks.values(), key=lambda t: t.created_at, reverse=True)
    def put_session(self, session: StoredSession) -> StoredSession:
        with self._lock:
            self._sessions.append(session)
        return session
    def list_sessions(self, task_id=None, since=None, limit=None) -> list[StoredSession]:
        with self._lock:
            snapshot = list(self._sessions)
        return select_sessions(snapshot, task_id, since, limit)


class FileSessionStore(SessionStore):
    """
    Append-only JSON lines store: tasks.jsonl and sessions.jsonl under one directory.
    A task id written twice resolves to its latest line.
    """
    def __init__(self, directory: str) -> None:
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        self.tasks_path = self.directory / "tasks.jsonl"
        self.sessions_path = self.directory / "sessions.jsonl"
        self._lock = threading.Lock()

    def _append(self, path: Path, payload: dict) -> None:
        with self._lock, open(path, "a", encoding="utf-8") as f:
            f.write(json.dumps(payload, ensure_ascii=False) + "\n")

    def _read(self, path: Path) -> list[dict]:
        if not path.exists():
            return []
        rows = []
        with self._lock, open(path, "r", encoding="utf-8") as f:
            for lineno, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    rows.append(json.loads(line))
                except json.JSONDecodeError:
                    logger.warning(f"Skipping corrupt line {lineno} in {path}")
        return rows

    def put_task(self, task: Task) -> Task:
        self._append(self.tasks_path, task.model_dump(mode="json", by_alias=True))
        return task

    def list_tasks(self) -> list[Task]:
        tasks: dict[str, Task] = {}
        for row in self._read(self.tasks_path):
            task = Task.model_validate(row)
            tasks[task.id] = task
        return sorted(tasks.values(), key=lambda t: t.created_at, reverse=True)

    def put_session(self, session: StoredSession) -> StoredSession:
        self._append(
            self.sessions_path,
            session.model_dump(mode="json", by_alias=True, exclude_none=True),
        )
        return session

    def list_sessions(self, task_id=None, since=None, limit=None) -> list[StoredSession]:
        sessions = [StoredSession.model_validate(row) for row in self._read(self.sessions_path)]
        return select_sessions(sessions, task_id, since, limit)


def create_store(store_dir: Optional[str] = None) -> SessionStore:
    """File-backed store when a directory is given, in-memory otherwise."""
    if store_dir:
        return FileSessionStore(store_dir)
    return InMemorySessionStore()
