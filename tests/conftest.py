from __future__ import annotations

import pytest

from task_tracker.manager import TaskManager
from task_tracker.repositories import InMemoryTaskRepository
from task_tracker.search import TaskSearchEngine

from .factories import fixed_clock


@pytest.fixture()
def repo() -> InMemoryTaskRepository:
    """Empty repository whose clock is frozen at factories.NOW."""
    return InMemoryTaskRepository(clock=fixed_clock)


@pytest.fixture()
def manager(repo: InMemoryTaskRepository) -> TaskManager:
    return TaskManager(repo)


@pytest.fixture()
def engine(repo: InMemoryTaskRepository) -> TaskSearchEngine:
    return TaskSearchEngine(repo)
