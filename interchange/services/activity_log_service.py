"""
Activity Log Service — per-project append-only event list.

Entries live in the ``activityLog_<project_id>`` value of the task store.
Each entry is a plain dict discriminated by ``type``:

    asta_import  {id, type, source, projectName, taskCount, timestamp, demo}
    asta_export  {id, type, format, fileName, taskCount, timestamp, demo}

The log is the only source for demo quota counts.  Older stores may also
hold a ``demo_export_count`` marker entry; it is skipped on read and never
written.
"""

import copy
import logging
from datetime import datetime, timezone

from interchange.core.exceptions import PersistenceError
from interchange.services.task_store import (
    NS_ACTIVITY,
    activity_key,
    default_store,
    project_lock,
)
from interchange.utils.helpers import epoch_ms, utcnow_iso

logger = logging.getLogger(__name__)

IMPORT_ENTRY = "asta_import"
EXPORT_ENTRY = "asta_export"
LEGACY_COUNTER_ENTRY = "demo_export_count"


def _utcnow():
    return datetime.now(timezone.utc)


def append_entry(project_id, entry: dict, store=None, expected_version=None) -> dict:
    """Append ``entry`` to the project's log and return a copy of what was stored.

    ``id`` (``<type>_<epoch ms>``) and ``timestamp`` are stamped when the
    caller leaves them out.  The write carries ``expected_version`` when given,
    otherwise the version read just before it; either way a concurrent
    append raises ``StaleWriteError``.
    """
    store = store or default_store
    now = _utcnow()
    record = dict(entry)
    record.setdefault("id", f"{record.get('type', 'activity')}_{epoch_ms(now)}")
    record.setdefault("timestamp", utcnow_iso(now))

    key = activity_key(project_id)
    with project_lock(project_id):
        entries, version = store.get_with_version(key, NS_ACTIVITY, default=[])
        if not isinstance(entries, list):
            entries = []
        entries.append(record)
        if expected_version is None:
            expected_version = version
        store.set(key, entries, NS_ACTIVITY, expected_version=expected_version)

    logger.debug("Activity %s appended for project %s", record.get("type"), project_id,
                 extra={"project_id": project_id, "event_type": record.get("type")})
    return copy.deepcopy(record)


def read_entries(project_id, store=None) -> tuple[list[dict], int]:
    """Return ``(entries, version)`` with entries filtered as in ``list_entries``."""
    store = store or default_store
    entries, version = store.get_with_version(activity_key(project_id), NS_ACTIVITY, default=[])
    if not isinstance(entries, list):
        return [], version
    return [
        e for e in entries
        if isinstance(e, dict) and e.get("type") != LEGACY_COUNTER_ENTRY
    ], version


def list_entries(project_id, store=None) -> list[dict]:
    """All import/export entries for the project, oldest first."""
    return read_entries(project_id, store=store)[0]


def get_import_export_history(project_id, store=None) -> dict:
    """Split the log into ``{"imports": [...], "exports": [...]}``.

    A store read failure degrades to empty lists.
    """
    try:
        entries = list_entries(project_id, store=store)
    except PersistenceError:
        logger.exception("Failed to read import/export history for project %s", project_id,
                         extra={"project_id": project_id})
        return {"imports": [], "exports": []}
    return {
        "imports": [e for e in entries if e.get("type") == IMPORT_ENTRY],
        "exports": [e for e in entries if e.get("type") == EXPORT_ENTRY],
    }
