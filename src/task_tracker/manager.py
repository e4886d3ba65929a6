from __future__ import annotations

import logging
from datetime import datetime
from threading import RLock
from typing import Any, Dict, FrozenSet, List, Optional, Union
from uuid import UUID

from .enums import TaskPriority, TaskStatus, ensure_exhaustive
from .errors import InvalidTransitionError, NotFoundError, ValidationError
from .models import Task
from .repositories import TaskRepository
from .schemas import DueDateInput, TaskCreate, TaskUpdate, parse_due_date

logger = logging.getLogger(__name__)

OPEN_STATUSES = frozenset({TaskStatus.TODO, TaskStatus.IN_PROGRESS, TaskStatus.ON_HOLD})

# Allowed status changes; COMPLETED and CANCELLED are terminal.
TRANSITIONS: Dict[TaskStatus, FrozenSet[TaskStatus]] = ensure_exhaustive(
    {
        TaskStatus.TODO: frozenset({TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED, TaskStatus.CANCELLED}),
        TaskStatus.IN_PROGRESS: frozenset({TaskStatus.ON_HOLD, TaskStatus.COMPLETED, TaskStatus.CANCELLED}),
        TaskStatus.ON_HOLD: frozenset({TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED, TaskStatus.CANCELLED}),
        TaskStatus.COMPLETED: frozenset(),
        TaskStatus.CANCELLED: frozenset(),
    },
    TaskStatus,
)


# PUBLIC_INTERFACE
def can_transition(current: TaskStatus, target: TaskStatus) -> bool:
    """Return True if a task in `current` may move to `target`."""
    return target in TRANSITIONS[current]


# PUBLIC_INTERFACE
class TaskManager:
    """
    Orchestrates task changes on top of a repository.

    Every operation is all-or-nothing: it loads the task, builds the complete
    candidate value, validates it and only then writes it back with a
    compare-and-swap update. Operations are serialized by the manager's own
    lock so a load and its store never interleave with another operation.
    """

    def __init__(self, repository: TaskRepository) -> None:
        self._repository = repository
        self._lock = RLock()

    @property
    def repository(self) -> TaskRepository:
        return self._repository

    def _now(self) -> datetime:
        return self._repository.now()

    def _load(self, task_id: UUID) -> Task:
        task = self._repository.find_by_id(task_id)
        if task is None:
            raise NotFoundError(task_id)
        return task

    def _store(self, candidate: Task, loaded: Task) -> Task:
        return self._repository.update(candidate, expected=loaded)

    def _check_new_due_date(self, due_date: Optional[datetime]) -> None:
        if due_date is not None and due_date <= self._now():
            raise ValidationError("due_date", "due date must be in the future")

    def _check_parent(self, task_id: Optional[UUID], parent_id: Optional[UUID]) -> None:
        """Parent must exist and must not create a cycle."""
        seen = set()
        current = parent_id
        while current is not None:
            if current == task_id or current in seen:
                raise ValidationError("parent_id", "parent relationship would create a cycle")
            seen.add(current)
            parent = self._repository.find_by_id(current)
            if parent is None:
                raise ValidationError("parent_id", f"parent task {current} does not exist")
            current = parent.parent_id

    # ---- CRUD ----

    # PUBLIC_INTERFACE
    def create_task(self, data: TaskCreate) -> Task:
        """Build a TODO task from a creation request and store it."""
        with self._lock:
            now = self._now()
            self._check_new_due_date(data.due_date)
            self._check_parent(None, data.parent_id)
            task = Task.build(
                now,
                title=data.title,
                description=data.description,
                priority=data.priority,
                created_at=now,
                due_date=data.due_date,
                category_id=data.category_id,
                tag_ids=data.tag_ids,
                parent_id=data.parent_id,
            )
            self._repository.save(task)
        logger.info("Task created id=%s priority=%s", task.id, task.priority.name)
        return task

    # PUBLIC_INTERFACE
    def get_task(self, task_id: UUID) -> Task:
        """Return a task by id; raise NotFoundError if absent."""
        return self._load(task_id)

    def list_tasks(self) -> List[Task]:
        return self._repository.find_all()

    # PUBLIC_INTERFACE
    def update_task(self, task_id: UUID, data: TaskUpdate) -> Task:
        """
        Apply the explicitly provided fields of `data` to a task.

        Omitted fields stay untouched; an explicit None clears an optional
        field. A newly provided due date must lie in the future.
        """
        changes: Dict[str, Any] = data.provided()
        with self._lock:
            loaded = self._load(task_id)
            if not changes:
                return loaded
            if "due_date" in changes:
                self._check_new_due_date(changes["due_date"])
            if "parent_id" in changes:
                self._check_parent(task_id, changes["parent_id"])
            candidate = loaded.with_changes(**changes)
            stored = self._store(candidate, loaded)
        logger.info("Task updated id=%s fields=%s", task_id, ",".join(sorted(changes)))
        return stored

    # PUBLIC_INTERFACE
    def delete_task(self, task_id: UUID) -> None:
        """Delete a task permanently; raise NotFoundError if absent."""
        with self._lock:
            self._repository.delete(task_id)
        logger.info("Task deleted id=%s", task_id)

    # PUBLIC_INTERFACE
    def change_priority(self, task_id: UUID, priority: Union[TaskPriority, str, int]) -> Task:
        """Set the priority; accepts a member, its name or its rank."""
        priority = TaskPriority.parse(priority)
        with self._lock:
            loaded = self._load(task_id)
            stored = self._store(loaded.with_changes(priority=priority), loaded)
        logger.info("Task priority changed id=%s priority=%s", task_id, stored.priority.name)
        return stored

    # PUBLIC_INTERFACE
    def update_due_date(self, task_id: UUID, due_date: Optional[DueDateInput]) -> Task:
        """Set a new future due date, or clear it with None."""
        due_date = parse_due_date(due_date)
        with self._lock:
            loaded = self._load(task_id)
            self._check_new_due_date(due_date)
            stored = self._store(loaded.with_changes(due_date=due_date), loaded)
        logger.info("Task due date changed id=%s due_date=%s", task_id, due_date)
        return stored

    # ---- status transitions ----

    def _transition(self, task_id: UUID, allowed_from: FrozenSet[TaskStatus], target: TaskStatus) -> Task:
        with self._lock:
            loaded = self._load(task_id)
            if loaded.status not in allowed_from or not can_transition(loaded.status, target):
                logger.warning(
                    "Rejected transition id=%s from=%s to=%s", task_id, loaded.status.name, target.name
                )
                raise InvalidTransitionError(loaded.status, target)
            completed_at = self._now() if target is TaskStatus.COMPLETED else None
            candidate = loaded.with_changes(status=target, completed_at=completed_at)
            stored = self._store(candidate, loaded)
        logger.info("Task status changed id=%s from=%s to=%s", task_id, loaded.status.name, target.name)
        return stored

    # PUBLIC_INTERFACE
    def move_to_in_progress(self, task_id: UUID) -> Task:
        """TODO -> IN_PROGRESS."""
        return self._transition(task_id, frozenset({TaskStatus.TODO}), TaskStatus.IN_PROGRESS)

    # PUBLIC_INTERFACE
    def put_on_hold(self, task_id: UUID) -> Task:
        """IN_PROGRESS -> ON_HOLD."""
        return self._transition(task_id, frozenset({TaskStatus.IN_PROGRESS}), TaskStatus.ON_HOLD)

    # PUBLIC_INTERFACE
    def resume_task(self, task_id: UUID) -> Task:
        """ON_HOLD -> IN_PROGRESS."""
        return self._transition(task_id, frozenset({TaskStatus.ON_HOLD}), TaskStatus.IN_PROGRESS)

    # PUBLIC_INTERFACE
    def complete_task(self, task_id: UUID) -> Task:
        """Any open status -> COMPLETED, stamping completed_at."""
        return self._transition(task_id, OPEN_STATUSES, TaskStatus.COMPLETED)

    # PUBLIC_INTERFACE
    def cancel_task(self, task_id: UUID) -> Task:
        """Any open status -> CANCELLED."""
        return self._transition(task_id, OPEN_STATUSES, TaskStatus.CANCELLED)

    # ---- derived queries ----

    def find_by_status(self, status: TaskStatus) -> List[Task]:
        return self._repository.find_by_status(status)

    def find_by_priority(self, priority: TaskPriority) -> List[Task]:
        return self._repository.find_by_priority(priority)

    def find_overdue_tasks(self) -> List[Task]:
        return self._repository.find_overdue_tasks()

    def find_tasks_due_today(self) -> List[Task]:
        return self._repository.find_tasks_due_today()

    def subtasks(self, parent_id: UUID) -> List[Task]:
        """Tasks whose parent_id points at the given task."""
        return [t for t in self._repository.find_all() if t.parent_id == parent_id]
