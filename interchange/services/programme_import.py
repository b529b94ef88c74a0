"""
Programme Import — merge a ParsedProgramme into a project's task list.

Flow:
    1. read demo-mode flag
    2. demo task quota gate (no store access on rejection)
    3. under the project lock: read tasks (+ version token) and project config
    4. remap ids, stamp provenance
    5. append and write back with compare-and-swap
    6. record ``lastImport`` on the project config
    7. activity log entry + audit row
    8. commit

Steps 3–8 run in one database transaction; any failure rolls all of them
back.  The pipeline never raises: callers get an ``ImportResult``.
"""

import logging
from datetime import datetime, timezone

from interchange.core.exceptions import InterchangeError, PersistenceError
from interchange.models import db
from interchange.services import (
    activity_log_service,
    audit_service,
    demo_mode_service,
    quota_service,
)
from interchange.services.programme_types import SOURCE_SYSTEM, ImportResult, ParsedProgramme
from interchange.services.task_store import (
    NS_CONFIG,
    NS_TASKS,
    default_store,
    project_key,
    project_lock,
    tasks_key,
)
from interchange.utils.helpers import epoch_ms, utcnow_iso

logger = logging.getLogger(__name__)

# Keys copied verbatim from a parsed task onto the stored record
_CARRIED_KEYS = (
    "name", "startDate", "finishDate", "duration", "percentComplete",
    "isMilestone", "dependencies", "calendarId", "structureLevel",
)
_PROVENANCE_KEYS = ("originalId", "originalStructure", "sourceFileName", "importedAt")
_OPTIONAL_KEYS = ("constraints", "notes")


def _utcnow():
    return datetime.now(timezone.utc)


def import_programme(
    parsed: ParsedProgramme,
    project_id: str = "demo",
    actor_id=None,
    *,
    store=None,
    demo_provider=None,
    audit_sink=None,
) -> ImportResult:
    """Import ``parsed`` into ``project_id``.

    Collaborators default to the database-backed store, the demo-mode
    feature flag and the audit log; tests pass their own.
    """
    store = store or default_store
    demo_provider = demo_provider or demo_mode_service
    audit_sink = audit_sink or audit_service

    try:
        demo = bool(demo_provider.is_demo_mode_active())
        parsed.demo = demo
        parsed.task_count = len(parsed.tasks)
        quota_service.check_import_quota(parsed.task_count, demo)
    except InterchangeError as exc:
        return ImportResult(success=False, errors=[str(exc)], error=exc)
    except Exception as exc:
        return _failure(exc, project_id)

    with project_lock(project_id):
        try:
            now = _utcnow()
            existing, version = store.get_with_version(tasks_key(project_id), NS_TASKS, default=[])
            if not isinstance(existing, list):
                raise PersistenceError(f"Stored task list for project {project_id} is not a list")
            config = store.get(project_key(project_id), NS_CONFIG, default={}) or {}

            imported = remap_tasks(parsed.tasks, existing, now, demo)
            updated = existing + imported
            store.set(tasks_key(project_id), updated, NS_TASKS, expected_version=version)

            config["lastImport"] = {
                "source": "asta",
                "date": utcnow_iso(now),
                "taskCount": len(imported),
                "projectName": parsed.project_name,
                "demo": demo,
            }
            store.set(project_key(project_id), config, NS_CONFIG)

            activity_log_service.append_entry(project_id, {
                "id": f"{activity_log_service.IMPORT_ENTRY}_{epoch_ms(now)}",
                "type": activity_log_service.IMPORT_ENTRY,
                "source": SOURCE_SYSTEM,
                "projectName": parsed.project_name,
                "taskCount": len(imported),
                "timestamp": utcnow_iso(now),
                "demo": demo,
            }, store=store)

            audit_sink.log_action(
                project_id,
                actor_id,
                activity_log_service.IMPORT_ENTRY,
                f"Imported {len(imported)} tasks from Asta file: {parsed.project_name}",
                None,
                {"importedTasks": len(imported), "sourceFile": parsed.project_name},
            )
            db.session.commit()
        except Exception as exc:
            db.session.rollback()
            return _failure(exc, project_id)

    logger.info("Imported %d tasks into project %s (total %d, demo=%s)",
                len(imported), project_id, len(updated), demo,
                extra={"project_id": project_id, "event_type": "asta_import",
                       "task_count": len(imported)})
    return ImportResult(
        success=True,
        data={"tasksImported": len(imported), "totalTasks": len(updated), "demo": demo},
        errors=[],
    )


def remap_tasks(tasks: list[dict], existing: list[dict], now: datetime, demo: bool) -> list[dict]:
    """Give every parsed task a fresh ``imported_<ms>_<index>`` id.

    The millisecond stamp is bumped until no id in the batch matches an id
    already in ``existing``.
    """
    taken = {t.get("id") for t in existing if isinstance(t, dict)}
    stamp = epoch_ms(now)
    while any(f"imported_{stamp}_{i}" in taken for i in range(len(tasks))):
        stamp += 1

    created_at = utcnow_iso(now)
    remapped = []
    for index, task in enumerate(tasks):
        record = {"id": f"imported_{stamp}_{index}"}
        for key in _CARRIED_KEYS:
            record[key] = task.get(key)
        record["importedFrom"] = SOURCE_SYSTEM
        for key in _PROVENANCE_KEYS:
            record[key] = task.get(key)
        for key in _OPTIONAL_KEYS:
            if key in task:
                record[key] = task[key]
        record["demo"] = demo
        record["createdAt"] = created_at
        remapped.append(record)
    return remapped


def _failure(exc: Exception, project_id) -> ImportResult:
    """Structured failure keeping the original exception as the cause."""
    if isinstance(exc, PersistenceError):
        wrapped = exc
    else:
        wrapped = PersistenceError(f"Import failed: {exc}")
        wrapped.__cause__ = exc
    logger.exception("Failed to import programme into project %s", project_id,
                     extra={"project_id": project_id, "event_type": "asta_import"})
    return ImportResult(success=False, errors=[str(exc) or "Unknown error"], error=wrapped)
