from __future__ import annotations

from datetime import date, datetime
from typing import Any, FrozenSet, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, model_validator

from .enums import TaskPriority, TaskStatus
from .errors import ValidationError, translate_validation_errors

MIN_TITLE_LENGTH = 1
MAX_TITLE_LENGTH = 100
MAX_DESCRIPTION_LENGTH = 500  # exclusive

# Fields fixed at construction; with_changes refuses to touch them.
IMMUTABLE_FIELDS = frozenset({"id", "created_at"})


class DomainModel(BaseModel):
    """BaseModel whose constructor only ever raises the package's ValidationError."""

    def __init__(self, **data: Any) -> None:
        with translate_validation_errors(type(self).__name__):
            super().__init__(**data)


# PUBLIC_INTERFACE
class Task(DomainModel):
    """
    A unit of trackable work.

    Fields:
    - id: Unique identifier, generated at creation and never changed
    - title: 1..100 characters, not blank
    - description: Optional, fewer than 500 characters
    - status: Lifecycle stage, TODO initially
    - priority: Urgency, MEDIUM by default
    - created_at: Local creation timestamp, never in the future
    - due_date: Optional local timestamp, strictly after created_at
    - completed_at: Present exactly when status is COMPLETED
    - category_id / tag_ids / parent_id: Weak references by id only

    Instances are immutable; use with_changes() to derive an updated value.
    Equality compares every field; use same_identity() to compare by id.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: UUID = Field(default_factory=uuid4)
    title: str
    description: Optional[str] = None
    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.MEDIUM
    created_at: datetime = Field(default_factory=datetime.now)
    due_date: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    category_id: Optional[UUID] = None
    tag_ids: FrozenSet[UUID] = Field(default_factory=frozenset)
    parent_id: Optional[UUID] = None

    @classmethod
    def build(cls, now: Optional[datetime] = None, **values: Any) -> Task:
        """
        Construct a Task, checking created_at against `now` instead of the
        wall clock. Used by callers that run on an injected clock.
        """
        with translate_validation_errors(cls.__name__):
            return cls.model_validate(values, context=None if now is None else {"now": now})

    @model_validator(mode="after")
    def _check_invariants(self, info: ValidationInfo) -> Task:
        for name in ("created_at", "due_date", "completed_at"):
            value = getattr(self, name)
            if value is not None and value.tzinfo is not None:
                raise ValidationError(name, "must be a naive local timestamp")

        if not self.title.strip():
            raise ValidationError("title", "title cannot be blank or empty")
        if not (MIN_TITLE_LENGTH <= len(self.title) <= MAX_TITLE_LENGTH):
            raise ValidationError(
                "title", f"title must be between {MIN_TITLE_LENGTH}-{MAX_TITLE_LENGTH} characters"
            )

        if self.description is not None and len(self.description) >= MAX_DESCRIPTION_LENGTH:
            raise ValidationError(
                "description", f"description must be under {MAX_DESCRIPTION_LENGTH} characters"
            )

        now = (info.context or {}).get("now") or datetime.now()
        if self.created_at > now:
            raise ValidationError("created_at", "creation time cannot be in the future")

        if self.due_date is not None and self.due_date <= self.created_at:
            raise ValidationError("due_date", "due date must be after the creation time")

        if self.status is TaskStatus.COMPLETED and self.completed_at is None:
            raise ValidationError("completed_at", "completed tasks must have a completion time")
        if self.status is not TaskStatus.COMPLETED and self.completed_at is not None:
            raise ValidationError("completed_at", "only completed tasks have a completion time")
        if self.completed_at is not None and self.completed_at < self.created_at:
            raise ValidationError("completed_at", "completion time cannot precede creation")

        if self.parent_id is not None and self.parent_id == self.id:
            raise ValidationError("parent_id", "a task cannot be its own parent")
        return self

    def with_changes(self, **changes: Any) -> Task:
        """
        Return a copy with the given fields replaced, re-validated as a whole.

        Raises ValidationError for unknown or immutable fields and for any
        invariant the resulting value would break.
        """
        for name in changes:
            if name not in type(self).model_fields:
                raise ValidationError(name, "unknown field")
            if name in IMMUTABLE_FIELDS:
                raise ValidationError(name, "field is immutable")
        values = {name: getattr(self, name) for name in type(self).model_fields}
        values.update(changes)
        # created_at cannot change, so it was already checked by whoever built self.
        return type(self).build(self.created_at, **values)

    def same_identity(self, other: Task) -> bool:
        return self.id == other.id

    def is_overdue(self, now: datetime) -> bool:
        return self.due_date is not None and self.due_date < now and not self.status.is_terminal

    def is_due_on(self, day: date) -> bool:
        return self.due_date is not None and self.due_date.date() == day and not self.status.is_terminal
