from __future__ import annotations

import logging
import os
import tempfile
from threading import Lock
from typing import Any, Dict, Iterable, List, Optional, Protocol

from . import codec
from .errors import PersistenceError, ValidationError
from .models import Task
from .settings import Settings, get_settings

logger = logging.getLogger(__name__)


# PUBLIC_INTERFACE
class TaskStore(Protocol):
    """Persistence port: load the whole collection at startup, persist it after changes."""

    def load_all(self) -> List[Task]: ...

    def persist_all(self, tasks: Iterable[Task]) -> None: ...


class MemoryTaskStore:
    """
    Store that keeps encoded records in memory.

    Records go through the codec exactly like the file stores, which makes it
    a faithful stand-in for tests and for sessions that should not touch disk.
    """

    def __init__(self, tasks: Optional[Iterable[Task]] = None) -> None:
        self._records: List[Dict[str, Any]] = codec.encode_tasks(tasks or [])

    def load_all(self) -> List[Task]:
        return codec.decode_tasks(self._records)

    def persist_all(self, tasks: Iterable[Task]) -> None:
        self._records = codec.encode_tasks(tasks)

    @property
    def records(self) -> List[Dict[str, Any]]:
        return [dict(r) for r in self._records]


# PUBLIC_INTERFACE
class JsonFileTaskStore:
    """
    JSON document on disk, written atomically (temp file + os.replace).

    A missing file loads as an empty collection; an unreadable or malformed
    file raises PersistenceError rather than silently losing tasks.
    """

    def __init__(self, path: str) -> None:
        self._path = path
        self._lock = Lock()

    @property
    def path(self) -> str:
        return self._path

    def load_all(self) -> List[Task]:
        if not os.path.exists(self._path):
            logger.info("No task file at %s; starting empty", self._path)
            return []
        try:
            with open(self._path, "r", encoding="utf-8") as f:
                text = f.read()
        except OSError as e:
            raise PersistenceError(f"Cannot read {self._path}: {e}") from e
        try:
            tasks = codec.loads(text)
        except ValidationError as e:
            raise PersistenceError(f"Malformed task file {self._path}: {e}") from e
        logger.info("Loaded %s tasks from %s", len(tasks), self._path)
        return tasks

    def persist_all(self, tasks: Iterable[Task]) -> None:
        text = codec.dumps(tasks)
        directory = os.path.dirname(os.path.abspath(self._path))
        with self._lock:
            try:
                os.makedirs(directory, exist_ok=True)
                fd, tmp_path = tempfile.mkstemp(prefix=".tasks-", suffix=".tmp", dir=directory)
                try:
                    with os.fdopen(fd, "w", encoding="utf-8") as f:
                        f.write(text)
                    os.replace(tmp_path, self._path)
                except BaseException:
                    if os.path.exists(tmp_path):
                        os.unlink(tmp_path)
                    raise
            except OSError as e:
                raise PersistenceError(f"Cannot write {self._path}: {e}") from e
        logger.debug("Persisted tasks to %s", self._path)


# PUBLIC_INTERFACE
def get_store(settings: Optional[Settings] = None) -> TaskStore:
    """
    Factory to return the configured store based on settings.
    - json: JsonFileTaskStore (default)
    - sqlite: SQLiteTaskStore
    - memory: MemoryTaskStore (nothing survives the process)
    """
    settings = settings or get_settings()
    if settings.storage_backend == "sqlite":
        from .db import SQLiteTaskStore

        return SQLiteTaskStore(settings.data_path)
    if settings.storage_backend == "memory":
        return MemoryTaskStore()
    return JsonFileTaskStore(settings.data_path)
