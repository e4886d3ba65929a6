"""
Conversion between Task entities and the persisted record shape.

The record is a flat mapping with camelCase keys:

    {
        "id": "3f1c...",               # UUID string
        "title": "Pay bills",
        "description": null,
        "status": "IN_PROGRESS",       # TaskStatus name
        "priority": "HIGH",            # TaskPriority name
        "createdAt": "2025-01-25T10:15:30.123456",
        "dueDate": "2025-02-01T00:00:00",
        "completedAt": null,
        "categoryId": null,
        "tagIds": ["..."],
        "parentId": null
    }

decode_task(encode_task(task)) == task for every valid task.
"""
from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from .enums import TaskPriority, TaskStatus
from .errors import ValidationError, translate_validation_errors
from .models import Task

FORMAT_VERSION = 1


# PUBLIC_INTERFACE
class TaskRecord(BaseModel):
    """Persisted representation of a task; every value is a JSON primitive."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str
    title: str
    description: Optional[str] = None
    status: str
    priority: str
    created_at: str = Field(alias="createdAt")
    due_date: Optional[str] = Field(default=None, alias="dueDate")
    completed_at: Optional[str] = Field(default=None, alias="completedAt")
    category_id: Optional[str] = Field(default=None, alias="categoryId")
    tag_ids: List[str] = Field(default_factory=list, alias="tagIds")
    parent_id: Optional[str] = Field(default=None, alias="parentId")


def _iso(value: Optional[datetime]) -> Optional[str]:
    return None if value is None else value.isoformat()


def _str_or_none(value: Optional[UUID]) -> Optional[str]:
    return None if value is None else str(value)


def _parse_dt(field: str, value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError as e:
        raise ValidationError(field, f"invalid ISO-8601 timestamp {value!r}") from e


def _parse_uuid(field: str, value: Optional[str]) -> Optional[UUID]:
    if value is None:
        return None
    try:
        return UUID(value)
    except ValueError as e:
        raise ValidationError(field, f"invalid identifier {value!r}") from e


# PUBLIC_INTERFACE
def encode_task(task: Task) -> Dict[str, Any]:
    """Return the persisted record for a task."""
    record = TaskRecord(
        id=str(task.id),
        title=task.title,
        description=task.description,
        status=task.status.name,
        priority=task.priority.name,
        created_at=task.created_at.isoformat(),
        due_date=_iso(task.due_date),
        completed_at=_iso(task.completed_at),
        category_id=_str_or_none(task.category_id),
        tag_ids=sorted(str(t) for t in task.tag_ids),
        parent_id=_str_or_none(task.parent_id),
    )
    return record.model_dump(by_alias=True)


# PUBLIC_INTERFACE
def decode_task(raw: Mapping[str, Any]) -> Task:
    """
    Build a Task from a persisted record.

    Raises ValidationError when the record is malformed (missing keys, unknown
    status/priority names, bad timestamps) or breaks a task invariant.
    """
    with translate_validation_errors("record"):
        record = TaskRecord.model_validate(raw)

    tag_ids = frozenset(_parse_uuid("tagIds", t) for t in record.tag_ids)
    return Task(
        id=_parse_uuid("id", record.id),
        title=record.title,
        description=record.description,
        status=TaskStatus.parse(record.status),
        priority=TaskPriority.parse(record.priority),
        created_at=_parse_dt("createdAt", record.created_at),
        due_date=_parse_dt("dueDate", record.due_date),
        completed_at=_parse_dt("completedAt", record.completed_at),
        category_id=_parse_uuid("categoryId", record.category_id),
        tag_ids=tag_ids,
        parent_id=_parse_uuid("parentId", record.parent_id),
    )


def encode_tasks(tasks: Iterable[Task]) -> List[Dict[str, Any]]:
    return [encode_task(t) for t in tasks]


def decode_tasks(records: Iterable[Mapping[str, Any]]) -> List[Task]:
    return [decode_task(r) for r in records]


# PUBLIC_INTERFACE
def dumps(tasks: Iterable[Task]) -> str:
    """Serialize a task collection to the versioned JSON document."""
    document = {"version": FORMAT_VERSION, "tasks": encode_tasks(tasks)}
    return json.dumps(document, indent=2, ensure_ascii=False)


# PUBLIC_INTERFACE
def loads(text: str) -> List[Task]:
    """Parse a JSON document produced by dumps(). A bare list of records is also accepted."""
    try:
        document = json.loads(text)
    except json.JSONDecodeError as e:
        raise ValidationError("document", f"invalid JSON: {e.msg}") from e

    if isinstance(document, list):
        records = document
    elif isinstance(document, dict):
        version = document.get("version", FORMAT_VERSION)
        if version != FORMAT_VERSION:
            raise ValidationError("version", f"unsupported format version {version!r}")
        records = document.get("tasks", [])
    else:
        raise ValidationError("document", "expected an object or a list of task records")

    if not isinstance(records, list) or not all(isinstance(r, dict) for r in records):
        raise ValidationError("tasks", "expected a list of task records")
    return decode_tasks(records)
