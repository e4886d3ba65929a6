"""
Application session: wires settings, store, repository, manager and search.

    session = open_session()
    task = session.create_task(TaskCreate(title="Write report", priority="HIGH"))
    session.move_to_in_progress(task.id)
    session.search(SearchCriteria(status=TaskStatus.IN_PROGRESS))

The repository is owned by the session; nothing in the package keeps global
task state. With autosave on, the whole collection is persisted after every
successful mutating operation.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, List, Optional, TypeVar, Union
from uuid import UUID

from .enums import TaskPriority
from .logging_setup import setup_logging
from .manager import TaskManager
from .models import Task
from .repositories import InMemoryTaskRepository
from .schemas import DueDateInput, TaskCreate, TaskUpdate
from .search import SearchCriteria, TaskSearchEngine
from .settings import Settings, get_settings
from .storage import TaskStore, get_store

logger = logging.getLogger(__name__)

T = TypeVar("T")


# PUBLIC_INTERFACE
class TaskSession:
    """Single entry point over the manager and search engine, with optional autosave."""

    def __init__(
        self,
        store: TaskStore,
        *,
        autosave: bool = True,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.store = store
        self.autosave = autosave
        self.repository = InMemoryTaskRepository(store.load_all(), clock=clock)
        self.manager = TaskManager(self.repository)
        self.search_engine = TaskSearchEngine(self.repository)
        self._dirty = False
        logger.info("Session ready tasks=%s autosave=%s", self.repository.count(), autosave)

    @property
    def dirty(self) -> bool:
        """True when there are changes not yet persisted."""
        return self._dirty

    def _mutate(self, op: Callable[[], T]) -> T:
        result = op()
        self._dirty = True
        if self.autosave:
            self.save()
        return result

    # PUBLIC_INTERFACE
    def save(self) -> None:
        """Persist the whole collection through the store."""
        self.store.persist_all(self.repository.find_all())
        self._dirty = False

    # ---- mutating operations ----

    def create_task(self, data: TaskCreate) -> Task:
        return self._mutate(lambda: self.manager.create_task(data))

    def update_task(self, task_id: UUID, data: TaskUpdate) -> Task:
        return self._mutate(lambda: self.manager.update_task(task_id, data))

    def delete_task(self, task_id: UUID) -> None:
        self._mutate(lambda: self.manager.delete_task(task_id))

    def change_priority(self, task_id: UUID, priority: Union[TaskPriority, str, int]) -> Task:
        return self._mutate(lambda: self.manager.change_priority(task_id, priority))

    def update_due_date(self, task_id: UUID, due_date: Optional[DueDateInput]) -> Task:
        return self._mutate(lambda: self.manager.update_due_date(task_id, due_date))

    def move_to_in_progress(self, task_id: UUID) -> Task:
        return self._mutate(lambda: self.manager.move_to_in_progress(task_id))

    def put_on_hold(self, task_id: UUID) -> Task:
        return self._mutate(lambda: self.manager.put_on_hold(task_id))

    def resume_task(self, task_id: UUID) -> Task:
        return self._mutate(lambda: self.manager.resume_task(task_id))

    def complete_task(self, task_id: UUID) -> Task:
        return self._mutate(lambda: self.manager.complete_task(task_id))

    def cancel_task(self, task_id: UUID) -> Task:
        return self._mutate(lambda: self.manager.cancel_task(task_id))

    # ---- queries ----

    def get_task(self, task_id: UUID) -> Task:
        return self.manager.get_task(task_id)

    def list_tasks(self) -> List[Task]:
        return self.manager.list_tasks()

    def search(self, criteria: Optional[SearchCriteria] = None) -> List[Task]:
        return self.search_engine.search(criteria)

    def overdue(self) -> List[Task]:
        return self.manager.find_overdue_tasks()

    def due_today(self) -> List[Task]:
        return self.manager.find_tasks_due_today()


# PUBLIC_INTERFACE
def open_session(
    settings: Optional[Settings] = None,
    *,
    store: Optional[TaskStore] = None,
    clock: Callable[[], datetime] = datetime.now,
    configure_logging: bool = False,
) -> TaskSession:
    """
    Build a session from settings (environment by default), loading all stored tasks.

    With configure_logging=True the host hands logging setup to the session:
    console level and log directory come from settings.log_level and
    settings.log_dir. Leave it off when the host configures logging itself.
    """
    settings = settings or get_settings()
    if configure_logging:
        setup_logging(console_level=settings.log_level_value, log_dir=settings.log_dir)
    store = store if store is not None else get_store(settings)
    return TaskSession(store, autosave=settings.autosave, clock=clock)
