from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator

from pydantic import ValidationError as PydanticValidationError


class TaskTrackerError(Exception):
    """Base class for every error raised by the task tracker core."""


# PUBLIC_INTERFACE
class ValidationError(TaskTrackerError):
    """
    A field violates one of the task invariants.

    Attributes:
    - field: name of the offending field (e.g. "title", "due_date")
    - rule: short description of the violated rule
    """

    def __init__(self, field: str, rule: str) -> None:
        super().__init__(f"{field}: {rule}")
        self.field = field
        self.rule = rule


# PUBLIC_INTERFACE
class NotFoundError(TaskTrackerError):
    """An operation referenced a task id that is not in the repository."""

    def __init__(self, task_id: Any) -> None:
        super().__init__(f"Task {task_id} not found")
        self.task_id = task_id


# PUBLIC_INTERFACE
class DuplicateIdError(TaskTrackerError):
    """A task was inserted with an id already present in the repository."""

    def __init__(self, task_id: Any) -> None:
        super().__init__(f"Task {task_id} already exists")
        self.task_id = task_id


# PUBLIC_INTERFACE
class InvalidTransitionError(TaskTrackerError):
    """The requested status change is not allowed from the current status."""

    def __init__(self, current: Any, requested: Any) -> None:
        super().__init__(f"Cannot move task from {current.name} to {requested.name}")
        self.current = current
        self.requested = requested


class ConcurrentModificationError(TaskTrackerError):
    """The stored task changed between load and store (compare-and-swap failed)."""

    def __init__(self, task_id: Any) -> None:
        super().__init__(f"Task {task_id} was modified concurrently")
        self.task_id = task_id


class PersistenceError(TaskTrackerError):
    """Loading or persisting the task collection failed."""


@contextmanager
def translate_validation_errors(default_field: str = "task") -> Iterator[None]:
    """
    Re-raise pydantic's structural errors (missing field, wrong type, bad
    enum value) as ValidationError naming the first offending field.
    """
    try:
        yield
    except PydanticValidationError as e:
        first = e.errors()[0]
        loc = first.get("loc") or ()
        field = str(loc[0]) if loc else default_field
        raise ValidationError(field, first.get("msg", "invalid value")) from e
