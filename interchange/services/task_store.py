"""
Task Store — versioned key/value persistence for programme data.

Every value lives in one ``project_settings`` row addressed by
``(namespace, key)``.  Rows carry a ``version`` token that increments on each
write; callers that read-modify-write pass the token they read back as
``expected_version`` and get ``StaleWriteError`` if somebody else wrote in
between.

Within one process the read-append-write sections of the import/export
pipelines are additionally serialised by a per-project lock
(``project_lock``).

Writes only ``flush``; the caller owns the transaction.

Usage:
    from interchange.services.task_store import TaskStore, project_lock, tasks_key

    store = TaskStore()
    with project_lock("demo"):
        tasks, version = store.get_with_version(tasks_key("demo"), "tasks", default=[])
        store.set(tasks_key("demo"), tasks + new_tasks, "tasks", expected_version=version)
"""

import copy
import logging
import threading

import sqlalchemy as sa
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from interchange.core.exceptions import PersistenceError, StaleWriteError
from interchange.models import db
from interchange.models.settings import ProjectSetting

logger = logging.getLogger(__name__)

# ── Namespaces & key builders ────────────────────────────────────────────

NS_TASKS = "tasks"
NS_CONFIG = "config"
NS_ACTIVITY = "activity"
NS_BASELINES = "baselines"
NS_CALENDARS = "calendars"


def tasks_key(project_id):
    return f"tasks_{project_id}"


def project_key(project_id):
    return f"project_{project_id}"


def activity_key(project_id):
    return f"activityLog_{project_id}"


def baselines_key(project_id):
    return f"baselines_{project_id}"


def calendars_key(project_id):
    return f"calendars_{project_id}"


# ── Per-project lock registry ────────────────────────────────────────────

_project_locks: dict[str, threading.RLock] = {}
_registry_lock = threading.Lock()


def project_lock(project_id) -> threading.RLock:
    """Return the process-wide lock for ``project_id`` (created on first use).

    Re-entrant so an export's activity append can run inside the same
    section that read the log for the quota check.
    """
    key = str(project_id)
    with _registry_lock:
        lock = _project_locks.get(key)
        if lock is None:
            lock = threading.RLock()
            _project_locks[key] = lock
        return lock


# ── Store ────────────────────────────────────────────────────────────────


class TaskStore:
    """SQL-backed settings store with compare-and-swap writes.

    Values are returned as deep copies so callers can mutate them freely
    without touching the ORM identity map.
    """

    def _row(self, key, namespace):
        return (
            ProjectSetting.query
            .filter_by(namespace=namespace, key=key)
            .populate_existing()
            .first()
        )

    def get(self, key, namespace, default=None):
        """Return the stored value, or ``default`` if the key is absent."""
        value, _version = self.get_with_version(key, namespace, default=default)
        return value

    def get_with_version(self, key, namespace, default=None):
        """Return ``(value, version)``; an absent key reports version 0."""
        try:
            row = self._row(key, namespace)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to read {namespace}/{key}") from exc
        if row is None or row.value is None:
            return copy.deepcopy(default), (row.version if row is not None else 0)
        return copy.deepcopy(row.value), row.version

    def set(self, key, value, namespace, expected_version=None) -> int:
        """Write ``value`` and return the new version token.

        ``expected_version=None`` writes unconditionally; ``0`` means the key
        must not exist yet; any other value must match the stored version.
        """
        payload = copy.deepcopy(value)
        try:
            row = self._row(key, namespace)
            if row is None:
                return self._insert(key, namespace, payload, expected_version)

            current = row.version
            if expected_version is not None and current != expected_version:
                raise StaleWriteError(key, expected_version, current)

            stmt = (
                sa.update(ProjectSetting)
                .where(ProjectSetting.id == row.id, ProjectSetting.version == current)
                .values(value=payload, version=current + 1)
                .execution_options(synchronize_session=False)
            )
            result = db.session.execute(stmt)
            db.session.expire(row)
            if result.rowcount != 1:
                # Row changed between our read and the UPDATE
                raise StaleWriteError(key, current, None)
            return current + 1
        except (StaleWriteError, PersistenceError):
            raise
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to write {namespace}/{key}") from exc

    def _insert(self, key, namespace, payload, expected_version):
        if expected_version not in (None, 0):
            raise StaleWriteError(key, expected_version, 0)
        row = ProjectSetting(namespace=namespace, key=key, value=payload, version=1)
        db.session.add(row)
        try:
            db.session.flush()
        except IntegrityError as exc:
            # Lost an insert race against another writer; caller rolls back
            raise StaleWriteError(key, 0, None) from exc
        return 1


default_store = TaskStore()
