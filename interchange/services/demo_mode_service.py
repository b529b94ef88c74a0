"""
Demo Mode Service — session quota policy switch.

Resolution order for ``is_demo_mode_active()``:
1. ``feature_flags`` row with key "demo_mode" → its ``is_enabled``
2. Otherwise → ``DEMO_MODE`` app config (env-driven, default off)
"""

import logging

from flask import current_app

from interchange.models import db
from interchange.models.audit import write_audit
from interchange.models.feature_flag import DEMO_MODE_FLAG, FeatureFlag

logger = logging.getLogger(__name__)


def _flag():
    return FeatureFlag.query.filter_by(key=DEMO_MODE_FLAG).first()


def is_demo_mode_active() -> bool:
    """True when demo-mode quotas apply."""
    flag = _flag()
    if flag is not None:
        return bool(flag.is_enabled)
    return bool(current_app.config.get("DEMO_MODE", False))


def get_demo_mode() -> dict:
    """Current state plus the limits that apply while demo mode is on."""
    flag = _flag()
    cfg = current_app.config
    return {
        "enabled": is_demo_mode_active(),
        "source": "flag" if flag is not None else "config",
        "limits": {
            "maxImportTasks": cfg["DEMO_MAX_IMPORT_TASKS"],
            "maxExportsPerDay": cfg["DEMO_MAX_EXPORTS_PER_DAY"],
            "maxDateRangeDays": cfg["DEMO_MAX_EXPORT_RANGE_DAYS"],
        },
        "updated_at": flag.updated_at.isoformat() if flag is not None and flag.updated_at else None,
    }


def set_demo_mode(enabled: bool, actor: str | None = None) -> dict:
    """Create or update the demo-mode flag and commit. Returns ``get_demo_mode()``."""
    enabled = bool(enabled)
    flag = _flag()
    previous = is_demo_mode_active()
    if flag is None:
        flag = FeatureFlag(
            key=DEMO_MODE_FLAG,
            display_name="Demo mode",
            description="Caps import task counts, daily exports and export date ranges.",
            is_enabled=enabled,
        )
        db.session.add(flag)
    else:
        flag.is_enabled = enabled

    write_audit(
        entity_type="demo_mode",
        entity_id=DEMO_MODE_FLAG,
        action="demo_mode.enable" if enabled else "demo_mode.disable",
        actor=actor,
        message=f"Demo mode {'enabled' if enabled else 'disabled'}",
        diff={"before": {"enabled": previous}, "after": {"enabled": enabled}},
    )
    db.session.commit()
    logger.info("Demo mode set to %s by %s", enabled, actor or "system",
                extra={"event_type": "demo_mode"})
    return get_demo_mode()
