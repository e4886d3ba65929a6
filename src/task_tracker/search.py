from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, FrozenSet, List, Optional
from uuid import UUID

from .enums import SortKey, TaskPriority, TaskStatus, ensure_exhaustive
from .errors import ValidationError
from .models import Task
from .repositories import TaskRepository

# Ordering used when sorting by status: open work first, terminal states last.
_STATUS_ORDER: Dict[TaskStatus, int] = ensure_exhaustive(
    {
        TaskStatus.IN_PROGRESS: 0,
        TaskStatus.TODO: 1,
        TaskStatus.ON_HOLD: 2,
        TaskStatus.COMPLETED: 3,
        TaskStatus.CANCELLED: 4,
    },
    TaskStatus,
)

# Undated tasks sort after every dated one.
_SORT_KEYS: Dict[SortKey, Callable[[Task], Any]] = ensure_exhaustive(
    {
        SortKey.DUE_DATE: lambda t: (t.due_date is None, t.due_date or datetime.min),
        SortKey.PRIORITY: lambda t: t.priority.rank,
        SortKey.CREATED_AT: lambda t: t.created_at,
        SortKey.TITLE: lambda t: t.title.casefold(),
        SortKey.STATUS: lambda t: _STATUS_ORDER[t.status],
    },
    SortKey,
)


# PUBLIC_INTERFACE
@dataclass(frozen=True)
class SearchCriteria:
    """
    Composite search criteria. Every field is optional; present fields are
    combined with AND, absent ones match everything.

    - title_contains: case-insensitive substring of the title
    - status / priority / category_id: exact match
    - tag_ids: match-any (the task shares at least one tag)
    - due_before / due_after: exclusive bounds; undated tasks never match
    - overdue: True keeps only overdue tasks, False only non-overdue ones
    - sort_by: ordering key; None keeps repository order
    - descending: reverse the sort key (ties still broken by ascending id)
    - limit / offset: pagination applied after sorting
    """

    title_contains: Optional[str] = None
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    category_id: Optional[UUID] = None
    tag_ids: Optional[FrozenSet[UUID]] = None
    due_before: Optional[datetime] = None
    due_after: Optional[datetime] = None
    overdue: Optional[bool] = None
    sort_by: Optional[SortKey] = None
    descending: bool = False
    limit: Optional[int] = None
    offset: int = 0

    def __post_init__(self) -> None:
        # Accept names as well as members; unknown names fail here, not as empty results.
        if self.status is not None:
            object.__setattr__(self, "status", TaskStatus.parse(self.status))
        if self.priority is not None:
            object.__setattr__(self, "priority", TaskPriority.parse(self.priority))
        if self.sort_by is not None:
            try:
                object.__setattr__(self, "sort_by", SortKey(self.sort_by))
            except ValueError as e:
                raise ValidationError("sort_by", f"unknown sort key {self.sort_by!r}") from e
        if self.tag_ids is not None:
            object.__setattr__(self, "tag_ids", frozenset(self.tag_ids))
        if self.limit is not None and self.limit < 0:
            raise ValidationError("limit", "limit cannot be negative")
        if self.offset < 0:
            raise ValidationError("offset", "offset cannot be negative")


# PUBLIC_INTERFACE
class TaskSearchEngine:
    """Filter and sort the repository's contents against SearchCriteria."""

    def __init__(self, repository: TaskRepository) -> None:
        self._repository = repository

    def search(self, criteria: Optional[SearchCriteria] = None) -> List[Task]:
        q = criteria or SearchCriteria()
        now = self._repository.now()
        items = [t for t in self._repository.find_all() if matches(t, q, now)]

        if q.sort_by is not None:
            items = sort_tasks(items, q.sort_by, q.descending)

        start = q.offset
        end = None if q.limit is None else start + q.limit
        return items[start:end]


def matches(task: Task, q: SearchCriteria, now: datetime) -> bool:
    """Return True if the task satisfies every present criterion."""
    if q.title_contains:
        if q.title_contains.casefold() not in task.title.casefold():
            return False
    if q.status is not None and task.status is not q.status:
        return False
    if q.priority is not None and task.priority is not q.priority:
        return False
    if q.category_id is not None and task.category_id != q.category_id:
        return False
    if q.tag_ids is not None and not (task.tag_ids & q.tag_ids):
        return False
    if q.due_before is not None and (task.due_date is None or not task.due_date < q.due_before):
        return False
    if q.due_after is not None and (task.due_date is None or not task.due_date > q.due_after):
        return False
    if q.overdue is not None and task.is_overdue(now) is not q.overdue:
        return False
    return True


def sort_tasks(tasks: List[Task], key: SortKey, descending: bool = False) -> List[Task]:
    """
    Stable sort by the given key with ties broken by id.

    Sorting by id first and then by the key (Python's sort is stable, also
    with reverse=True) keeps ties in ascending id order in both directions.
    """
    by_id = sorted(tasks, key=lambda t: str(t.id))
    return sorted(by_id, key=_SORT_KEYS[key], reverse=descending)
