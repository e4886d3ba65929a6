from __future__ import annotations

from enum import Enum
from typing import Any, Dict

from .errors import ValidationError


def _normalize(raw: str) -> str:
    return raw.strip().upper().replace("-", "_").replace(" ", "_")


# PUBLIC_INTERFACE
class TaskStatus(str, Enum):
    """Lifecycle stage of a task. Values are the persisted names."""

    TODO = "TODO"
    IN_PROGRESS = "IN_PROGRESS"
    ON_HOLD = "ON_HOLD"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return _TERMINAL[self]

    @classmethod
    def parse(cls, raw: Any) -> TaskStatus:
        """
        Parse a status from user or disk input.

        Accepts an existing member or its name in any case, with '-' or ' '
        allowed in place of '_' (e.g. "in-progress"). Anything else raises
        ValidationError.
        """
        if isinstance(raw, cls):
            return raw
        if isinstance(raw, str):
            member = cls.__members__.get(_normalize(raw))
            if member is not None:
                return member
        raise ValidationError("status", f"unknown status {raw!r}")


# PUBLIC_INTERFACE
class TaskPriority(str, Enum):
    """Urgency ranking. Members compare by rank: LOW < MEDIUM < HIGH < URGENT."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]

    def __lt__(self, other: Any) -> bool:
        if not isinstance(other, TaskPriority):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: Any) -> bool:
        if not isinstance(other, TaskPriority):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: Any) -> bool:
        if not isinstance(other, TaskPriority):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: Any) -> bool:
        if not isinstance(other, TaskPriority):
            return NotImplemented
        return self.rank >= other.rank

    @classmethod
    def parse(cls, raw: Any) -> TaskPriority:
        """Parse a priority name (case-insensitive) or a numeric rank 1..4."""
        if isinstance(raw, cls):
            return raw
        if isinstance(raw, int) and not isinstance(raw, bool):
            for member, rank in _PRIORITY_RANK.items():
                if rank == raw:
                    return member
        if isinstance(raw, str):
            member = cls.__members__.get(_normalize(raw))
            if member is not None:
                return member
        raise ValidationError("priority", f"unknown priority {raw!r}")


# PUBLIC_INTERFACE
class SortKey(str, Enum):
    """Fields the search engine can order results by."""

    DUE_DATE = "due_date"
    PRIORITY = "priority"
    CREATED_AT = "created_at"
    TITLE = "title"
    STATUS = "status"


_TERMINAL: Dict[TaskStatus, bool] = {
    TaskStatus.TODO: False,
    TaskStatus.IN_PROGRESS: False,
    TaskStatus.ON_HOLD: False,
    TaskStatus.COMPLETED: True,
    TaskStatus.CANCELLED: True,
}

_PRIORITY_RANK: Dict[TaskPriority, int] = {
    TaskPriority.LOW: 1,
    TaskPriority.MEDIUM: 2,
    TaskPriority.HIGH: 3,
    TaskPriority.URGENT: 4,
}


def ensure_exhaustive(table: Dict[Any, Any], enum_cls: type) -> Dict[Any, Any]:
    """Fail at import time if a lookup table misses an enum member."""
    missing = [m.name for m in enum_cls if m not in table]
    if missing:
        raise RuntimeError(f"{enum_cls.__name__} table is missing {', '.join(missing)}")
    return table


ensure_exhaustive(_TERMINAL, TaskStatus)
ensure_exhaustive(_PRIORITY_RANK, TaskPriority)
