from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, FrozenSet, Optional, Union
from uuid import UUID

from pydantic import ConfigDict, Field, field_validator

from .enums import TaskPriority
from .errors import ValidationError
from .models import DomainModel

# Shared type for incoming due_date which can be a date, datetime, or ISO8601 string
DueDateInput = Union[date, datetime, str]


def _require_naive(value: datetime) -> datetime:
    if value.tzinfo is not None:
        raise ValidationError("due_date", "must be a naive local timestamp without a UTC offset")
    return value


def parse_due_date(value: Optional[DueDateInput]) -> Optional[datetime]:
    """
    Normalize due_date input into a naive local datetime.
    - If value is a string, parse it via datetime.fromisoformat; a bare date means 00:00.
    - If value is a date (not datetime), convert to datetime at 00:00.
    - If value is a datetime, return as-is.
    Values carrying a UTC offset are rejected; the tracker works in local time.
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        return _require_naive(value)

    if isinstance(value, date):
        # Promote a date to a datetime at midnight
        return datetime(value.year, value.month, value.day, 0, 0, 0)

    if isinstance(value, str):
        s = value.strip()
        try:
            return _require_naive(datetime.fromisoformat(s))
        except ValueError:
            try:
                d = date.fromisoformat(s)
            except ValueError as e:
                raise ValidationError(
                    "due_date",
                    "use an ISO8601 date or datetime string (e.g. '2025-01-31' or '2025-01-31T13:45:00')",
                ) from e
            return datetime(d.year, d.month, d.day, 0, 0, 0)

    raise ValidationError("due_date", "expected date, datetime, or ISO8601 string")


def _strip_title(v: Any) -> Any:
    if isinstance(v, str):
        return v.strip()
    return v


# PUBLIC_INTERFACE
class TaskCreate(DomainModel):
    """
    Request for creating a new task.

    Only the title is required; priority defaults to MEDIUM and every other
    field to empty. Length and date rules are enforced by the Task entity
    when the manager builds it.
    """

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "title": "Buy groceries",
                "description": "Milk, eggs, bread",
                "priority": "HIGH",
                "due_date": "2025-02-01",
            }
        },
    )

    title: str = Field(..., description="Short title for the task")
    description: Optional[str] = Field(default=None, description="Optional detailed description")
    priority: TaskPriority = Field(default=TaskPriority.MEDIUM, description="Priority name or rank 1..4")
    due_date: Optional[datetime] = Field(
        default=None,
        description="Due date/time. Accepts ISO8601 date or datetime; dates are set to 00:00",
    )
    category_id: Optional[UUID] = None
    tag_ids: FrozenSet[UUID] = Field(default_factory=frozenset)
    parent_id: Optional[UUID] = None

    @field_validator("title", mode="before")
    @classmethod
    def strip_title(cls, v: Any) -> Any:
        """Strip surrounding whitespace from the title."""
        return _strip_title(v)

    @field_validator("priority", mode="before")
    @classmethod
    def parse_priority(cls, v: Any) -> TaskPriority:
        return TaskPriority.parse(v)

    @field_validator("due_date", mode="before")
    @classmethod
    def normalize_due_date(cls, v: Optional[DueDateInput]) -> Optional[datetime]:
        return parse_due_date(v)


# PUBLIC_INTERFACE
class TaskUpdate(DomainModel):
    """
    Request for partially updating an existing task.

    Only fields that were explicitly provided are applied. Passing None for an
    optional field (description, due_date, category_id, parent_id) clears it,
    which is different from leaving the field out:

        TaskUpdate(due_date=None)   # clear the due date
        TaskUpdate()                # leave the due date untouched

    Title and priority cannot be cleared. Status changes go through the
    manager's transition operations, never through an update.
    """

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "title": "Buy groceries and supplies",
                "description": None,
                "due_date": "2025-02-02T09:30:00",
            }
        },
    )

    title: Optional[str] = Field(default=None, description="New title")
    description: Optional[str] = Field(default=None, description="New description, None clears it")
    priority: Optional[TaskPriority] = Field(default=None, description="New priority")
    due_date: Optional[datetime] = Field(default=None, description="New due date, None clears it")
    category_id: Optional[UUID] = None
    tag_ids: Optional[FrozenSet[UUID]] = None
    parent_id: Optional[UUID] = None

    @field_validator("title", mode="before")
    @classmethod
    def validate_title(cls, v: Any) -> Any:
        # Validators only run on provided values, so None here was explicit.
        if v is None:
            raise ValidationError("title", "title cannot be cleared")
        return _strip_title(v)

    @field_validator("priority", mode="before")
    @classmethod
    def parse_priority(cls, v: Any) -> TaskPriority:
        if v is None:
            raise ValidationError("priority", "priority cannot be cleared")
        return TaskPriority.parse(v)

    @field_validator("due_date", mode="before")
    @classmethod
    def normalize_due_date(cls, v: Optional[DueDateInput]) -> Optional[datetime]:
        return parse_due_date(v)

    @field_validator("tag_ids", mode="before")
    @classmethod
    def clear_tags(cls, v: Any) -> Any:
        return frozenset() if v is None else v

    def provided(self) -> Dict[str, Any]:
        """Return only the explicitly provided fields and their values."""
        return {name: getattr(self, name) for name in self.model_fields_set}
