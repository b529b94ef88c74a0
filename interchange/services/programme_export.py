"""
Programme Export — render a project's tasks to an interchange file.

Flow:
    1. demo-mode flag; demo export quota gate (log-derived, per UTC day)
    2. date-range validation (order + span for the current mode)
    3. read tasks, project config, baselines, calendars
    4. keep tasks whose start date falls inside the inclusive range
    5. build the payload (include flags applied)
    6. generate bytes + file name
    7. hand the bytes to the optional ``download`` hook (failures only logged)
    8. activity log entry + audit row, commit

The pipeline never raises: callers get an ``ExportResult`` carrying the
bytes, file name and mime type.
"""

import logging
from datetime import date, datetime, timezone

from flask import current_app

from interchange.core.exceptions import InterchangeError, PersistenceError
from interchange.models import db
from interchange.services import (
    activity_log_service,
    audit_service,
    demo_mode_service,
    quota_service,
)
from interchange.services.programme_generator import file_extension_for, generate
from interchange.services.programme_types import ExportResult, ExportSettings
from interchange.services.task_store import (
    NS_BASELINES,
    NS_CALENDARS,
    NS_CONFIG,
    NS_TASKS,
    baselines_key,
    calendars_key,
    default_store,
    project_key,
    project_lock,
    tasks_key,
)
from interchange.utils.helpers import epoch_ms, parse_date, utcnow_iso

logger = logging.getLogger(__name__)

DATE_FORMAT_ECHO = "dd/mm/yyyy"
DEFAULT_PROJECT_NAME = "Project"


def _utcnow():
    return datetime.now(timezone.utc)


def export_programme(
    settings: ExportSettings,
    project_id: str = "demo",
    actor_id=None,
    download=None,
    *,
    store=None,
    demo_provider=None,
    audit_sink=None,
) -> ExportResult:
    """Export ``project_id`` according to ``settings``.

    ``download(content, file_name)`` is called once with the generated bytes
    before the export is logged.
    """
    store = store or default_store
    demo_provider = demo_provider or demo_mode_service
    audit_sink = audit_sink or audit_service

    with project_lock(project_id):
        try:
            now = _utcnow()
            demo = bool(demo_provider.is_demo_mode_active())
            log_version = quota_service.check_export_quota(
                project_id, demo, today=now.date(), store=store,
            )
            quota_service.check_date_range(settings.start, settings.end, demo)
            extension = file_extension_for(settings.file_type)

            tasks = store.get(tasks_key(project_id), NS_TASKS, default=[]) or []
            config = store.get(project_key(project_id), NS_CONFIG, default={}) or {}
            baselines = store.get(baselines_key(project_id), NS_BASELINES, default=[]) or []
            calendars = store.get(calendars_key(project_id), NS_CALENDARS, default=[]) or []

            filtered = filter_tasks_by_start(tasks, settings.start, settings.end)
            payload = build_payload(filtered, config, baselines, calendars, settings, demo, now)
            content, mime_type = generate(payload, settings.file_type)
            file_name = build_file_name(payload["project"]["name"], extension, now.date())

            _trigger_download(download, content, file_name, project_id)

            activity_log_service.append_entry(project_id, {
                "id": f"{activity_log_service.EXPORT_ENTRY}_{epoch_ms(now)}",
                "type": activity_log_service.EXPORT_ENTRY,
                "format": settings.file_type,
                "fileName": file_name,
                "taskCount": len(filtered),
                "timestamp": utcnow_iso(now),
                "demo": demo,
            }, store=store, expected_version=log_version)

            audit_sink.log_action(
                project_id,
                actor_id,
                activity_log_service.EXPORT_ENTRY,
                f"Exported {len(filtered)} tasks to Asta format: {file_name}",
                None,
                {"exportedTasks": len(filtered), "fileName": file_name, "format": settings.file_type},
            )
            db.session.commit()
        except InterchangeError as exc:
            db.session.rollback()
            if isinstance(exc, PersistenceError):
                return _failure(exc, project_id)
            logger.info("Export rejected for project %s: %s", project_id, exc,
                        extra={"project_id": project_id, "event_type": "asta_export"})
            return ExportResult(success=False, errors=[str(exc)], error=exc)
        except Exception as exc:
            db.session.rollback()
            return _failure(exc, project_id)

    logger.info("Exported %d tasks from project %s as %s (%d bytes)",
                len(filtered), project_id, file_name, len(content),
                extra={"project_id": project_id, "event_type": "asta_export",
                       "file_type": settings.file_type, "task_count": len(filtered)})
    return ExportResult(
        success=True,
        file_name=file_name,
        file_size=len(content),
        errors=[],
        content=content,
        mime_type=mime_type,
    )


# ── Payload assembly ─────────────────────────────────────────────────────


def filter_tasks_by_start(tasks: list, start: date, end: date) -> list[dict]:
    """Tasks whose ``startDate`` calendar date is within ``[start, end]``.

    Tasks with a missing or unparseable start date are left out.
    """
    kept = []
    for task in tasks:
        if not isinstance(task, dict):
            continue
        task_start = parse_date(task.get("startDate"))
        if task_start is not None and start <= task_start <= end:
            kept.append(task)
    return kept


def build_payload(tasks, config, baselines, calendars, settings: ExportSettings,
                  demo: bool, now: datetime) -> dict:
    stripped = {"constraints"} if not settings.include_constraints else set()
    if not settings.include_notes:
        stripped.add("notes")

    return {
        "project": {
            "name": config.get("name") or DEFAULT_PROJECT_NAME,
            "startDate": config.get("startDate"),
            "endDate": config.get("endDate"),
            "generatedBy": current_app.config.get("EXPORT_GENERATOR_TAG", "ProgrammeInterchange"),
            "generatedAt": utcnow_iso(now),
            "demo": demo,
        },
        "tasks": [{k: v for k, v in t.items() if k not in stripped} for t in tasks],
        "baselines": baselines if settings.include_baselines else [],
        "calendars": calendars if settings.include_calendars else [],
        "resources": (config.get("resources") or []) if settings.include_resources else [],
        "settings": {
            "dateFormat": DATE_FORMAT_ECHO,
            "includeNotes": settings.include_notes,
            "includeResources": settings.include_resources,
        },
    }


def build_file_name(project_name: str, extension: str, day: date) -> str:
    """``"<project>_<YYYY-MM-DD><ext>"``."""
    return f"{project_name or DEFAULT_PROJECT_NAME}_{day.isoformat()}{extension}"


def _trigger_download(download, content: bytes, file_name: str, project_id) -> None:
    if download is None:
        return
    try:
        download(content, file_name)
    except Exception:
        # Hand-off failures never change the export result
        logger.exception("Download hook failed for %s", file_name,
                         extra={"project_id": project_id, "event_type": "asta_export"})


def _failure(exc: Exception, project_id) -> ExportResult:
    if isinstance(exc, PersistenceError):
        wrapped = exc
    else:
        wrapped = PersistenceError(f"Export failed: {exc}")
        wrapped.__cause__ = exc
    logger.exception("Failed to export programme for project %s", project_id,
                     extra={"project_id": project_id, "event_type": "asta_export"})
    return ExportResult(success=False, errors=[str(exc) or "Unknown error"], error=wrapped)
