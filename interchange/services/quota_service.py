"""
Quota Service — demo-mode limits for imports and exports.

All policy decisions for the interchange pipelines live here:

    check_import_quota(task_count, demo)       tasks per import
    check_export_quota(project_id, demo)       exports per UTC calendar day
    check_date_range(start, end, demo)         export date-range span

Limits come from app config (DEMO_MAX_IMPORT_TASKS, DEMO_MAX_EXPORTS_PER_DAY,
DEMO_MAX_EXPORT_RANGE_DAYS, MAX_EXPORT_RANGE_DAYS).  Export usage is counted
from the activity log only.
"""

import logging
from datetime import date, datetime, timezone

from flask import current_app

from interchange.core.exceptions import (
    DateRangeTooLarge,
    DemoExportQuotaExceeded,
    DemoTaskQuotaExceeded,
    InvalidDateRange,
)
from interchange.services import activity_log_service, demo_mode_service
from interchange.utils.helpers import parse_datetime

logger = logging.getLogger(__name__)


def _utcnow():
    return datetime.now(timezone.utc)


def _limit(name: str) -> int:
    return int(current_app.config[name])


def _demo_exports_on(entries, today: date) -> int:
    count = 0
    for entry in entries:
        if entry.get("type") != activity_log_service.EXPORT_ENTRY or not entry.get("demo"):
            continue
        ts = parse_datetime(entry.get("timestamp"))
        if ts is not None and ts.astimezone(timezone.utc).date() == today:
            count += 1
    return count


def count_demo_exports_today(project_id, today: date | None = None, store=None) -> int:
    """Demo-mode ``asta_export`` entries whose timestamp falls on ``today`` (UTC)."""
    today = today or _utcnow().date()
    return _demo_exports_on(activity_log_service.list_entries(project_id, store=store), today)


def check_import_quota(task_count: int, demo: bool) -> None:
    """Raise DemoTaskQuotaExceeded when a demo import carries too many tasks."""
    limit = _limit("DEMO_MAX_IMPORT_TASKS")
    if demo and task_count > limit:
        logger.info("Import rejected: %d tasks exceeds demo limit %d", task_count, limit,
                    extra={"event_type": "quota_rejected", "task_count": task_count})
        raise DemoTaskQuotaExceeded(limit, task_count)


def check_export_quota(project_id, demo: bool, today: date | None = None, store=None) -> int | None:
    """Raise DemoExportQuotaExceeded once today's demo exports reach the limit.

    Returns the activity-log version the count was taken from (``None`` in
    full mode) so the caller can append its export entry against it.
    """
    if not demo:
        return None
    limit = _limit("DEMO_MAX_EXPORTS_PER_DAY")
    entries, version = activity_log_service.read_entries(project_id, store=store)
    used = _demo_exports_on(entries, today or _utcnow().date())
    if used >= limit:
        logger.info("Export rejected for project %s: %d/%d demo exports today",
                    project_id, used, limit,
                    extra={"project_id": project_id, "event_type": "quota_rejected"})
        raise DemoExportQuotaExceeded(limit)
    return version


def max_range_days(demo: bool) -> int:
    return _limit("DEMO_MAX_EXPORT_RANGE_DAYS" if demo else "MAX_EXPORT_RANGE_DAYS")


def check_date_range(start: date, end: date, demo: bool) -> None:
    """Validate ``start <= end`` and the span allowed for the current mode."""
    if start > end:
        raise InvalidDateRange()
    max_days = max_range_days(demo)
    if (end - start).days > max_days:
        raise DateRangeTooLarge(max_days, demo)


def get_quota_status(project_id, demo: bool | None = None, store=None) -> dict:
    """Authoritative quota snapshot for display.

    ``demo`` defaults to the live demo-mode flag.
    """
    if demo is None:
        demo = demo_mode_service.is_demo_mode_active()
    max_exports = _limit("DEMO_MAX_EXPORTS_PER_DAY")
    used = count_demo_exports_today(project_id, store=store)
    return {
        "demo": demo,
        "maxImportTasks": _limit("DEMO_MAX_IMPORT_TASKS") if demo else None,
        "maxExportsPerDay": max_exports if demo else None,
        "exportsToday": used,
        "exportsRemaining": max(max_exports - used, 0) if demo else None,
        "maxDateRangeDays": max_range_days(demo),
    }
