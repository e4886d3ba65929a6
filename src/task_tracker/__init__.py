"""
In-process task tracking core.

Exposes the Task entity, the repository and manager layer that enforces
validation and the status state machine, the search engine, and the
persistence adapters behind a session.
"""

from .enums import SortKey, TaskPriority, TaskStatus
from .errors import (
    ConcurrentModificationError,
    DuplicateIdError,
    InvalidTransitionError,
    NotFoundError,
    PersistenceError,
    TaskTrackerError,
    ValidationError,
)
from .manager import TaskManager, can_transition
from .models import Task
from .repositories import InMemoryTaskRepository, TaskRepository
from .schemas import TaskCreate, TaskUpdate
from .search import SearchCriteria, TaskSearchEngine
from .session import TaskSession, open_session
from .settings import Settings, get_settings

__all__ = [
    "ConcurrentModificationError",
    "DuplicateIdError",
    "InMemoryTaskRepository",
    "InvalidTransitionError",
    "NotFoundError",
    "PersistenceError",
    "SearchCriteria",
    "Settings",
    "SortKey",
    "Task",
    "TaskCreate",
    "TaskManager",
    "TaskPriority",
    "TaskRepository",
    "TaskSearchEngine",
    "TaskSession",
    "TaskStatus",
    "TaskTrackerError",
    "TaskUpdate",
    "ValidationError",
    "can_transition",
    "get_settings",
    "open_session",
]
