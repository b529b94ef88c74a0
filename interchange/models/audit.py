"""
Programme Interchange Engine
Audit domain model.

Models:
    - AuditLog: immutable, append-only audit trail for import/export events.
"""

import json
from datetime import datetime, timezone

from interchange.models import db

# ── Constants ────────────────────────────────────────────────────────────────

AUDIT_ENTITY_TYPES = {"programme", "demo_mode"}

AUDIT_ACTIONS = {
    "asta_import",
    "asta_export",
    "demo_mode.enable",
    "demo_mode.disable",
}


class AuditLog(db.Model):
    """
    Immutable audit trail for every interchange event.

    One row per action.  ``diff_json`` carries the ``{before, after}``
    snapshot supplied by the caller.
    """

    __tablename__ = "audit_logs"
    __table_args__ = (
        db.Index("idx_audit_entity", "entity_type", "entity_id"),
        db.Index("idx_audit_project", "project_key"),
        db.Index("idx_audit_actor", "actor"),
        db.Index("idx_audit_action", "action"),
        db.Index("idx_audit_ts", "timestamp"),
    )

    id = db.Column(db.Integer, primary_key=True)
    project_key = db.Column(
        db.String(100), nullable=True,
        comment="Project identifier the event belongs to (free-form string)",
    )

    # Polymorphic entity reference
    entity_type = db.Column(
        db.String(30), nullable=False,
        comment="programme | demo_mode",
    )
    entity_id = db.Column(db.String(100), nullable=False)

    # What happened
    action = db.Column(
        db.String(60), nullable=False,
        comment="asta_import | asta_export | demo_mode.enable | …",
    )
    actor = db.Column(db.String(150), nullable=False, default="system")
    message = db.Column(db.Text, nullable=True)

    # Change payload
    diff_json = db.Column(
        db.Text, default="{}",
        comment="JSON: {before, after}",
    )

    # Timestamp (immutable)
    timestamp = db.Column(
        db.DateTime(timezone=True), nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    # ── Helpers ──────────────────────────────────────────────────────────

    @property
    def diff(self) -> dict:
        """Deserialise *diff_json* to a Python dict."""
        try:
            return json.loads(self.diff_json or "{}")
        except (json.JSONDecodeError, TypeError):
            return {}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "project_id": self.project_key,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "action": self.action,
            "actor": self.actor,
            "message": self.message,
            "diff": self.diff,
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }

    def __repr__(self):
        return f"<AuditLog {self.id}: {self.action} on {self.entity_type}/{self.entity_id}>"


# ── Convenience writer ───────────────────────────────────────────────────────

def write_audit(
    *,
    entity_type: str,
    entity_id: str,
    action: str,
    actor: str | None = None,
    project_key: str | None = None,
    message: str | None = None,
    diff: dict | None = None,
) -> AuditLog:
    """
    Append a single audit row.  Uses ``flush`` so callers keep
    transaction control.

    Returns the (flushed) AuditLog instance.
    """
    log = AuditLog(
        project_key=str(project_key) if project_key is not None else None,
        entity_type=entity_type,
        entity_id=str(entity_id),
        action=action,
        actor=actor or "system",
        message=message,
        diff_json=json.dumps(diff or {}, default=str),
    )
    db.session.add(log)
    db.session.flush()
    return log
