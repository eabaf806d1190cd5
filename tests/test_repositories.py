from datetime import datetime, timedelta, timezone

import pytest

from tasktracker.db import SQLiteRepository
from tasktracker.repositories import InMemoryRepository, ListQuery, get_repository
from tasktracker.schemas import TaskCreate, TaskUpdate

from .helpers import make_settings

BASE = datetime(2030, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(params=["memory", "sqlite"])
def repo(request, tmp_path):
    if request.param == "sqlite":
        return SQLiteRepository(str(tmp_path / "db" / "tasks.db"))
    return InMemoryRepository()


def new_task(title: str, at: datetime, **fields) -> TaskCreate:
    return TaskCreate(title=title, scheduled_date=at, **fields)


def test_create_applies_defaults(repo):
    created = repo.create(new_task("Dentist", BASE))
    assert created["id"] > 0
    assert created["priority"] == "medium"
    assert created["category"] == "personal"
    assert created["completed"] is False
    assert created["scheduled_date"] == BASE
    assert created["created_at"].tzinfo is not None
    assert repo.get(created["id"]) == created


def test_ids_are_unique(repo):
    ids = {repo.create(new_task(f"T{i}", BASE))["id"] for i in range(5)}
    assert len(ids) == 5


def test_list_is_ordered_by_instant_across_offsets(repo):
    plus_two = timezone(timedelta(hours=2))
    # 11:30 at +02:00 is 09:30 UTC, earlier than 10:00 UTC
    repo.create(new_task("ten-utc", BASE.replace(hour=10)))
    repo.create(new_task("half-nine-utc", datetime(2030, 6, 1, 11, 30, tzinfo=plus_two)))
    repo.create(new_task("noon-utc", BASE))
    assert [t["title"] for t in repo.list()] == ["half-nine-utc", "ten-utc", "noon-utc"]


def test_list_filters_by_completion(repo):
    a = repo.create(new_task("a", BASE))
    repo.create(new_task("b", BASE + timedelta(hours=1)))
    repo.update(a["id"], TaskUpdate(completed=True))
    assert [t["title"] for t in repo.list(ListQuery(completed=True))] == ["a"]
    assert [t["title"] for t in repo.list(ListQuery(completed=False))] == ["b"]


def test_update_changes_only_supplied_fields(repo):
    created = repo.create(new_task("Gym", BASE, category="health", priority="low"))
    updated = repo.update(created["id"], TaskUpdate(priority="high", scheduled_date=BASE + timedelta(days=1)))
    assert updated["priority"] == "high"
    assert updated["scheduled_date"] == BASE + timedelta(days=1)
    assert updated["category"] == "health"
    assert updated["title"] == "Gym"
    assert updated["created_at"] == created["created_at"]


def test_update_ignores_explicit_nulls(repo):
    created = repo.create(new_task("Gym", BASE))
    updated = repo.update(created["id"], TaskUpdate(title=None, completed=None))
    assert updated == created


def test_update_missing_returns_none(repo):
    assert repo.update(404, TaskUpdate(completed=True)) is None


def test_delete(repo):
    created = repo.create(new_task("Gone", BASE))
    kept = repo.create(new_task("Kept", BASE))
    assert repo.delete(created["id"]) is True
    assert repo.get(created["id"]) is None
    assert repo.delete(created["id"]) is False
    assert [t["id"] for t in repo.list()] == [kept["id"]]


def test_sqlite_persists_across_instances(tmp_path):
    path = str(tmp_path / "tasks.db")
    created = SQLiteRepository(path).create(new_task("Durable", BASE))
    assert SQLiteRepository(path).get(created["id"]) == created


def test_factory_selects_backend(tmp_path):
    assert isinstance(get_repository(make_settings()), InMemoryRepository)
    sqlite_settings = make_settings(persistence_backend="sqlite", sqlite_db_path=str(tmp_path / "t.db"))
    assert isinstance(get_repository(sqlite_settings), SQLiteRepository)


def test_factory_falls_back_to_memory(tmp_path):
    # A directory cannot be opened as a database file
    broken = make_settings(persistence_backend="sqlite", sqlite_db_path=str(tmp_path))
    assert isinstance(get_repository(broken), InMemoryRepository)
