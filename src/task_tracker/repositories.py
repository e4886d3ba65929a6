from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from threading import RLock
from typing import Callable, Dict, Iterable, List, Optional
from uuid import UUID

from .enums import TaskPriority, TaskStatus
from .errors import ConcurrentModificationError, DuplicateIdError, NotFoundError
from .models import Task

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


# PUBLIC_INTERFACE
class TaskRepository(ABC):
    """
    Abstract repository contract for task storage.

    Repositories only guard structural integrity (id uniqueness and
    existence); business rules belong to the TaskManager.
    """

    @abstractmethod
    def save(self, task: Task) -> Task:
        """Insert a new task. Raise DuplicateIdError if its id is already stored."""

    @abstractmethod
    def find_by_id(self, task_id: UUID) -> Optional[Task]:
        """Return the task with this id, or None."""

    @abstractmethod
    def find_all(self) -> List[Task]:
        """Return all tasks in insertion order."""

    @abstractmethod
    def update(self, task: Task, expected: Optional[Task] = None) -> Task:
        """
        Replace the stored task with the same id.
        - Raise NotFoundError if the id is not stored
        - When expected is given, raise ConcurrentModificationError if the
          stored value no longer equals it (compare-and-swap)
        """

    @abstractmethod
    def delete(self, task_id: UUID) -> None:
        """Remove a task. Raise NotFoundError if absent."""

    @abstractmethod
    def count(self) -> int:
        """Return the number of stored tasks."""

    @abstractmethod
    def replace_all(self, tasks: Iterable[Task]) -> None:
        """Replace the whole collection (startup load). Reject duplicate ids."""

    @abstractmethod
    def now(self) -> datetime:
        """Current local time as seen by this repository."""

    def find_by_status(self, status: TaskStatus) -> List[Task]:
        status = TaskStatus.parse(status)
        return [t for t in self.find_all() if t.status is status]

    def find_by_priority(self, priority: TaskPriority) -> List[Task]:
        priority = TaskPriority.parse(priority)
        return [t for t in self.find_all() if t.priority is priority]

    def find_overdue_tasks(self) -> List[Task]:
        """Open tasks whose due date is already in the past."""
        now = self.now()
        return [t for t in self.find_all() if t.is_overdue(now)]

    def find_tasks_due_today(self) -> List[Task]:
        """Open tasks due within the current local calendar day."""
        today = self.now().date()
        return [t for t in self.find_all() if t.is_due_on(today)]


class InMemoryTaskRepository(TaskRepository):
    """
    Thread-safe in-memory repository; the authoritative store for a session.

    Every call holds the lock for its own duration only. Tasks are immutable,
    so returned values can be shared without copying.
    """

    def __init__(self, tasks: Optional[Iterable[Task]] = None, clock: Clock = datetime.now) -> None:
        self._lock = RLock()
        self._items: Dict[UUID, Task] = {}
        self._clock = clock
        if tasks is not None:
            self.replace_all(tasks)

    def now(self) -> datetime:
        return self._clock()

    def save(self, task: Task) -> Task:
        with self._lock:
            if task.id in self._items:
                raise DuplicateIdError(task.id)
            self._items[task.id] = task
        logger.debug("Task saved id=%s", task.id)
        return task

    def find_by_id(self, task_id: UUID) -> Optional[Task]:
        with self._lock:
            return self._items.get(task_id)

    def find_all(self) -> List[Task]:
        with self._lock:
            return list(self._items.values())

    def update(self, task: Task, expected: Optional[Task] = None) -> Task:
        with self._lock:
            existing = self._items.get(task.id)
            if existing is None:
                raise NotFoundError(task.id)
            if expected is not None and existing != expected:
                raise ConcurrentModificationError(task.id)
            self._items[task.id] = task
        logger.debug("Task updated id=%s", task.id)
        return task

    def delete(self, task_id: UUID) -> None:
        with self._lock:
            if self._items.pop(task_id, None) is None:
                raise NotFoundError(task_id)
        logger.debug("Task deleted id=%s", task_id)

    def count(self) -> int:
        with self._lock:
            return len(self._items)

    def replace_all(self, tasks: Iterable[Task]) -> None:
        loaded: Dict[UUID, Task] = {}
        for task in tasks:
            if task.id in loaded:
                raise DuplicateIdError(task.id)
            loaded[task.id] = task
        with self._lock:
            self._items = loaded
        logger.debug("Repository loaded total=%s", len(loaded))
