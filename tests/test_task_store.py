"""
Tests for the versioned task store and the per-project lock registry.

Covers:
  - missing keys return the default and version 0
  - every write bumps the version token
  - expected_version mismatch → StaleWriteError, value untouched
  - values are returned as copies
  - namespaces isolate keys
  - project_lock identity per project
"""

import pytest

from interchange.core.exceptions import ConflictError, PersistenceError, StaleWriteError
from interchange.models import db
from interchange.services.task_store import (
    NS_CONFIG,
    NS_TASKS,
    activity_key,
    baselines_key,
    calendars_key,
    project_key,
    project_lock,
    tasks_key,
)


def test_key_builders():
    assert tasks_key("demo") == "tasks_demo"
    assert project_key("demo") == "project_demo"
    assert activity_key("demo") == "activityLog_demo"
    assert baselines_key("demo") == "baselines_demo"
    assert calendars_key("demo") == "calendars_demo"


def test_missing_key_returns_default(store):
    assert store.get("tasks_p1", NS_TASKS) is None
    assert store.get("tasks_p1", NS_TASKS, default=[]) == []
    assert store.get_with_version("tasks_p1", NS_TASKS, default=[]) == ([], 0)


def test_set_increments_version(store):
    assert store.set("tasks_p1", [{"id": "a"}], NS_TASKS) == 1
    assert store.set("tasks_p1", [{"id": "a"}, {"id": "b"}], NS_TASKS) == 2
    db.session.commit()

    value, version = store.get_with_version("tasks_p1", NS_TASKS)
    assert version == 2
    assert [t["id"] for t in value] == ["a", "b"]


def test_expected_version_match_writes(store):
    store.set("project_p1", {"name": "Depot"}, NS_CONFIG)
    value, version = store.get_with_version("project_p1", NS_CONFIG)
    value["startDate"] = "2025-01-01"

    assert store.set("project_p1", value, NS_CONFIG, expected_version=version) == version + 1
    assert store.get("project_p1", NS_CONFIG) == {"name": "Depot", "startDate": "2025-01-01"}


def test_stale_write_is_rejected(store):
    store.set("tasks_p1", [{"id": "a"}], NS_TASKS)
    db.session.commit()
    _value, version = store.get_with_version("tasks_p1", NS_TASKS)

    # Another writer gets in first
    store.set("tasks_p1", [{"id": "a"}, {"id": "x"}], NS_TASKS)

    with pytest.raises(StaleWriteError) as exc:
        store.set("tasks_p1", [{"id": "a"}, {"id": "mine"}], NS_TASKS, expected_version=version)

    assert exc.value.expected == version
    assert exc.value.actual == version + 1
    assert "Concurrent update detected on tasks_p1" in str(exc.value)
    assert [t["id"] for t in store.get("tasks_p1", NS_TASKS)] == ["a", "x"]


def test_stale_write_error_is_persistence_and_conflict():
    err = StaleWriteError("tasks_p1", expected=1, actual=2)
    assert isinstance(err, PersistenceError)
    assert isinstance(err, ConflictError)


def test_create_only_write_rejects_existing_key(store):
    store.set("tasks_p1", [], NS_TASKS)
    with pytest.raises(StaleWriteError):
        store.set("tasks_p1", [{"id": "a"}], NS_TASKS, expected_version=0)


def test_expected_version_on_missing_key_is_stale(store):
    with pytest.raises(StaleWriteError):
        store.set("tasks_p1", [], NS_TASKS, expected_version=3)


def test_returned_values_are_copies(store):
    store.set("tasks_p1", [{"id": "a"}], NS_TASKS)
    value = store.get("tasks_p1", NS_TASKS)
    value.append({"id": "rogue"})
    value[0]["id"] = "changed"

    assert store.get("tasks_p1", NS_TASKS) == [{"id": "a"}]


def test_namespaces_are_isolated(store):
    store.set("shared", [1], NS_TASKS)
    store.set("shared", {"x": 1}, NS_CONFIG)
    assert store.get("shared", NS_TASKS) == [1]
    assert store.get("shared", NS_CONFIG) == {"x": 1}


def test_project_lock_is_per_project():
    assert project_lock("p1") is project_lock("p1")
    assert project_lock("p1") is not project_lock("p2")
    # Ids are normalised to strings
    assert project_lock(7) is project_lock("7")


def test_project_lock_is_reentrant():
    lock = project_lock("reentrant")
    with lock:
        with project_lock("reentrant"):
            pass
