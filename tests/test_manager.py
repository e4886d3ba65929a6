from __future__ import annotations

from datetime import datetime, timedelta
from uuid import UUID

import pytest

from task_tracker.enums import TaskPriority, TaskStatus
from task_tracker.errors import InvalidTransitionError, NotFoundError, ValidationError
from task_tracker.manager import OPEN_STATUSES, TaskManager, can_transition
from task_tracker.models import MAX_DESCRIPTION_LENGTH, MAX_TITLE_LENGTH
from task_tracker.repositories import InMemoryTaskRepository
from task_tracker.schemas import TaskCreate, TaskUpdate

from .factories import NOW, make_task

# Operation name -> statuses it may be invoked from
ALLOWED = {
    "move_to_in_progress": {TaskStatus.TODO},
    "put_on_hold": {TaskStatus.IN_PROGRESS},
    "resume_task": {TaskStatus.ON_HOLD},
    "complete_task": set(OPEN_STATUSES),
    "cancel_task": set(OPEN_STATUSES),
}

EXPECTED_TARGET = {
    "move_to_in_progress": TaskStatus.IN_PROGRESS,
    "put_on_hold": TaskStatus.ON_HOLD,
    "resume_task": TaskStatus.IN_PROGRESS,
    "complete_task": TaskStatus.COMPLETED,
    "cancel_task": TaskStatus.CANCELLED,
}

ALLOWED_PAIRS = [(s, op) for op, sources in ALLOWED.items() for s in TaskStatus if s in sources]
FORBIDDEN_PAIRS = [(s, op) for op, sources in ALLOWED.items() for s in TaskStatus if s not in sources]


def create_payload(title="Test Task", description="Do something", **kwargs):
    return TaskCreate(title=title, description=description, **kwargs)


def assert_invariants(task):
    assert 1 <= len(task.title) <= MAX_TITLE_LENGTH and task.title.strip()
    assert task.description is None or len(task.description) < MAX_DESCRIPTION_LENGTH
    assert task.due_date is None or task.due_date > task.created_at
    assert (task.completed_at is not None) == (task.status is TaskStatus.COMPLETED)


def task_in_status(manager: TaskManager, status: TaskStatus):
    """Create a task and drive it into `status` through the allowed operations."""
    task = manager.create_task(create_payload(title=f"In {status.name}"))
    if status is TaskStatus.IN_PROGRESS:
        task = manager.move_to_in_progress(task.id)
    elif status is TaskStatus.ON_HOLD:
        manager.move_to_in_progress(task.id)
        task = manager.put_on_hold(task.id)
    elif status is TaskStatus.COMPLETED:
        task = manager.complete_task(task.id)
    elif status is TaskStatus.CANCELLED:
        task = manager.cancel_task(task.id)
    assert task.status is status
    return task


class TestCreate:
    def test_create_minimal(self, manager, repo):
        task = manager.create_task(TaskCreate(title="Buy milk"))
        assert task.status is TaskStatus.TODO
        assert task.priority is TaskPriority.MEDIUM
        assert task.description is None
        assert task.created_at == NOW
        assert repo.find_by_id(task.id) == task

    @pytest.mark.parametrize(
        "payload",
        [
            {"title": "A"},
            {"title": "Pay bills", "description": "Electricity", "priority": "URGENT"},
            {"title": "x" * 100, "description": "d" * 499, "due_date": NOW + timedelta(days=2)},
            {"title": "Trip", "priority": TaskPriority.LOW, "due_date": "2099-12-25"},
        ],
    )
    def test_created_tasks_satisfy_invariants(self, manager, payload):
        created = manager.create_task(TaskCreate(**payload))
        found = manager.repository.find_by_id(created.id)
        assert found == created
        assert_invariants(found)

    def test_title_length_boundary(self, manager, repo):
        assert manager.create_task(create_payload(title="t" * 100))
        with pytest.raises(ValidationError) as exc:
            manager.create_task(create_payload(title="t" * 101))
        assert exc.value.field == "title"
        assert repo.count() == 1

    def test_blank_title_rejected(self, manager, repo):
        with pytest.raises(ValidationError):
            manager.create_task(create_payload(title="   "))
        assert repo.count() == 0

    @pytest.mark.parametrize("delta", [timedelta(0), timedelta(seconds=-1), timedelta(days=-3)])
    def test_due_date_not_after_creation_rejected(self, manager, repo, delta):
        with pytest.raises(ValidationError) as exc:
            manager.create_task(create_payload(due_date=NOW + delta))
        assert exc.value.field == "due_date"
        assert repo.count() == 0

    def test_ids_are_unique(self, manager):
        ids = {manager.create_task(create_payload(title=f"T{i}")).id for i in range(20)}
        assert len(ids) == 20

    @pytest.mark.parametrize("due", ["2099-01-01T00:00:00+00:00", "2099-06-01T08:00:00+02:00"])
    def test_due_date_with_utc_offset_rejected(self, manager, repo, due):
        with pytest.raises(ValidationError) as exc:
            manager.create_task(TaskCreate(title="x", due_date=due))
        assert exc.value.field == "due_date"
        assert repo.count() == 0

    def test_trailing_whitespace_does_not_count_towards_title_length(self, manager):
        task = manager.create_task(create_payload(title="a" * 100 + " "))
        assert task.title == "a" * 100

    def test_clock_ahead_of_wall_time(self):
        ahead = datetime.now() + timedelta(days=365)
        manager = TaskManager(InMemoryTaskRepository(clock=lambda: ahead))
        task = manager.create_task(create_payload(due_date=ahead + timedelta(days=1)))
        assert task.created_at == ahead
        assert manager.complete_task(task.id).completed_at == ahead


class TestStatusTransitions:
    @pytest.mark.parametrize("status,operation", ALLOWED_PAIRS)
    def test_allowed_transitions(self, manager, status, operation):
        task = task_in_status(manager, status)
        updated = getattr(manager, operation)(task.id)
        assert updated.status is EXPECTED_TARGET[operation]
        assert manager.get_task(task.id) == updated
        assert_invariants(updated)

    @pytest.mark.parametrize("status,operation", FORBIDDEN_PAIRS)
    def test_forbidden_transitions_leave_task_unchanged(self, manager, status, operation):
        task = task_in_status(manager, status)
        with pytest.raises(InvalidTransitionError) as exc:
            getattr(manager, operation)(task.id)
        assert exc.value.current is status
        assert exc.value.requested is EXPECTED_TARGET[operation]
        assert manager.get_task(task.id) == task

    def test_complete_sets_completed_at(self, manager):
        task = task_in_status(manager, TaskStatus.ON_HOLD)
        done = manager.complete_task(task.id)
        assert done.completed_at == NOW
        # Terminal: nothing moves it away again, so completed_at never disappears
        for op in ALLOWED:
            with pytest.raises(InvalidTransitionError):
                getattr(manager, op)(task.id)
        assert manager.get_task(task.id).completed_at == NOW

    def test_hold_and_resume_cycle(self, manager):
        task = task_in_status(manager, TaskStatus.IN_PROGRESS)
        for _ in range(2):
            assert manager.put_on_hold(task.id).status is TaskStatus.ON_HOLD
            assert manager.resume_task(task.id).status is TaskStatus.IN_PROGRESS

    def test_transition_on_missing_task(self, manager):
        with pytest.raises(NotFoundError):
            manager.complete_task(UUID(int=999))

    def test_can_transition_table(self):
        assert can_transition(TaskStatus.TODO, TaskStatus.IN_PROGRESS)
        assert can_transition(TaskStatus.ON_HOLD, TaskStatus.IN_PROGRESS)
        assert not can_transition(TaskStatus.TODO, TaskStatus.ON_HOLD)
        for target in TaskStatus:
            assert not can_transition(TaskStatus.COMPLETED, target)
            assert not can_transition(TaskStatus.CANCELLED, target)


class TestUpdate:
    def test_partial_update_leaves_other_fields(self, manager):
        task = manager.create_task(
            create_payload(title="Partial", description="X", due_date=NOW + timedelta(days=1))
        )
        updated = manager.update_task(task.id, TaskUpdate(title="Partial Updated"))
        assert updated.title == "Partial Updated"
        assert updated.description == "X"
        assert updated.due_date == task.due_date
        assert updated.priority is task.priority

    def test_explicit_none_clears_but_omission_keeps(self, manager):
        due = NOW + timedelta(days=1)
        task = manager.create_task(create_payload(description="keep me", due_date=due))

        kept = manager.update_task(task.id, TaskUpdate(priority="HIGH"))
        assert kept.due_date == due
        assert kept.description == "keep me"

        cleared = manager.update_task(task.id, TaskUpdate(due_date=None, description=None))
        assert cleared.due_date is None
        assert cleared.description is None
        assert cleared.priority is TaskPriority.HIGH

    def test_empty_update_is_a_no_op(self, manager):
        task = manager.create_task(create_payload())
        assert manager.update_task(task.id, TaskUpdate()) == task

    def test_failed_validation_does_not_touch_repository(self, manager):
        task = manager.create_task(create_payload(title="Original"))
        with pytest.raises(ValidationError):
            manager.update_task(task.id, TaskUpdate(title="Renamed", description="d" * 600))
        assert manager.get_task(task.id) == task

    def test_update_rejects_past_due_date(self, manager):
        task = manager.create_task(create_payload())
        with pytest.raises(ValidationError) as exc:
            manager.update_task(task.id, TaskUpdate(due_date=NOW - timedelta(minutes=5)))
        assert exc.value.field == "due_date"
        assert manager.get_task(task.id) == task

    def test_update_missing_task(self, manager):
        with pytest.raises(NotFoundError):
            manager.update_task(UUID(int=424242), TaskUpdate(title="Nope"))

    def test_tags_and_category(self, manager):
        tag_a, tag_b, category = UUID(int=101), UUID(int=102), UUID(int=201)
        task = manager.create_task(create_payload(tag_ids={tag_a}))
        updated = manager.update_task(task.id, TaskUpdate(tag_ids=[tag_a, tag_b], category_id=category))
        assert updated.tag_ids == frozenset({tag_a, tag_b})
        assert updated.category_id == category
        cleared = manager.update_task(task.id, TaskUpdate(tag_ids=None, category_id=None))
        assert cleared.tag_ids == frozenset()
        assert cleared.category_id is None


class TestPriorityAndDueDate:
    def test_change_priority(self, manager):
        task = manager.create_task(create_payload())
        assert manager.change_priority(task.id, TaskPriority.URGENT).priority is TaskPriority.URGENT
        assert manager.get_task(task.id).priority is TaskPriority.URGENT

    @pytest.mark.parametrize("raw", ["HIGH", "high", 3, TaskPriority.HIGH])
    def test_change_priority_accepts_names_and_ranks(self, manager, raw):
        task = manager.create_task(create_payload())
        assert manager.change_priority(task.id, raw).priority is TaskPriority.HIGH
        assert manager.get_task(task.id).priority is TaskPriority.HIGH

    @pytest.mark.parametrize("raw", ["CRITICAL", 9, None])
    def test_change_priority_rejects_unknown_without_storing(self, manager, raw):
        task = manager.create_task(create_payload())
        with pytest.raises(ValidationError) as exc:
            manager.change_priority(task.id, raw)
        assert exc.value.field == "priority"
        assert manager.get_task(task.id) == task

    def test_update_due_date_accepts_iso_strings(self, manager):
        task = manager.create_task(create_payload())
        assert manager.update_due_date(task.id, "2099-01-01").due_date == datetime(2099, 1, 1)
        assert manager.update_due_date(task.id, "2099-01-02T09:30:00").due_date == datetime(2099, 1, 2, 9, 30)

    @pytest.mark.parametrize("raw", ["next tuesday", "2099-01-01T00:00:00+00:00"])
    def test_update_due_date_rejects_bad_strings_without_storing(self, manager, raw):
        task = manager.create_task(create_payload(due_date=NOW + timedelta(days=1)))
        with pytest.raises(ValidationError) as exc:
            manager.update_due_date(task.id, raw)
        assert exc.value.field == "due_date"
        assert manager.get_task(task.id) == task

    def test_update_due_date(self, manager):
        task = manager.create_task(create_payload())
        due = NOW + timedelta(hours=3)
        assert manager.update_due_date(task.id, due).due_date == due
        assert manager.update_due_date(task.id, None).due_date is None

    def test_update_due_date_rejects_past(self, manager):
        task = manager.create_task(create_payload(due_date=NOW + timedelta(days=1)))
        with pytest.raises(ValidationError):
            manager.update_due_date(task.id, NOW)
        assert manager.get_task(task.id).due_date == NOW + timedelta(days=1)

    def test_missing_task(self, manager):
        with pytest.raises(NotFoundError):
            manager.change_priority(UUID(int=7), TaskPriority.LOW)
        with pytest.raises(NotFoundError):
            manager.update_due_date(UUID(int=7), datetime(2099, 1, 1))


class TestDelete:
    def test_delete_task(self, manager, repo):
        task = manager.create_task(create_payload(title="ToDelete"))
        manager.delete_task(task.id)
        assert repo.find_by_id(task.id) is None
        with pytest.raises(NotFoundError):
            manager.get_task(task.id)

    def test_delete_missing_keeps_count(self, manager, repo):
        manager.create_task(create_payload(title="Stay"))
        before = repo.count()
        with pytest.raises(NotFoundError):
            manager.delete_task(UUID(int=123456))
        assert repo.count() == before


class TestSubtasks:
    def test_parent_must_exist(self, manager):
        with pytest.raises(ValidationError) as exc:
            manager.create_task(create_payload(parent_id=UUID(int=55)))
        assert exc.value.field == "parent_id"

    def test_subtasks_and_cycle_rejection(self, manager):
        parent = manager.create_task(create_payload(title="Parent"))
        child = manager.create_task(create_payload(title="Child", parent_id=parent.id))
        manager.create_task(create_payload(title="Unrelated"))
        assert manager.subtasks(parent.id) == [child]

        with pytest.raises(ValidationError) as exc:
            manager.update_task(parent.id, TaskUpdate(parent_id=child.id))
        assert exc.value.field == "parent_id"

        detached = manager.update_task(child.id, TaskUpdate(parent_id=None))
        assert detached.parent_id is None
        assert manager.subtasks(parent.id) == []


class TestDerivedQueries:
    def test_overdue_and_due_today_via_manager(self, manager, repo):
        overdue = repo.save(make_task(1, due_date=NOW - timedelta(days=1)))
        today = repo.save(make_task(2, due_date=NOW + timedelta(hours=2)))
        repo.save(make_task(3, due_date=NOW + timedelta(days=5)))
        assert manager.find_overdue_tasks() == [overdue]
        assert manager.find_tasks_due_today() == [today]

    def test_status_and_priority_names_are_parsed(self, manager, repo):
        repo.save(make_task(1, status=TaskStatus.IN_PROGRESS, priority=TaskPriority.HIGH))
        repo.save(make_task(2))
        assert [t.id.int for t in manager.find_by_status("in_progress")] == [1]
        assert [t.id.int for t in manager.find_by_status("TODO")] == [2]
        assert [t.id.int for t in manager.find_by_priority("HIGH")] == [1]
        with pytest.raises(ValidationError):
            manager.find_by_status("DONE")
