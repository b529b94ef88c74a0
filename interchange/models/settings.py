"""
Programme Interchange Engine
Project settings store model.

Models:
    - ProjectSetting: one JSON value per (namespace, key) with a version token
      that increments on every write.

Keys used by the interchange engine:
    tasks_<project_id>        namespace "tasks"
    project_<project_id>      namespace "config"
    activityLog_<project_id>  namespace "activity"
    baselines_<project_id>    namespace "baselines"
    calendars_<project_id>    namespace "calendars"
"""

from datetime import datetime, timezone

from interchange.models import db


class ProjectSetting(db.Model):
    """Versioned JSON value addressed by ``(namespace, key)``."""

    __tablename__ = "project_settings"
    __table_args__ = (
        db.UniqueConstraint("namespace", "key", name="uq_project_setting_ns_key"),
        db.Index("idx_project_setting_ns", "namespace"),
    )

    id = db.Column(db.Integer, primary_key=True)
    namespace = db.Column(db.String(50), nullable=False)
    key = db.Column(db.String(150), nullable=False)
    value = db.Column(db.JSON, nullable=True)
    version = db.Column(
        db.Integer, nullable=False, default=1,
        comment="Compare-and-swap token; incremented on every write",
    )
    created_at = db.Column(
        db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc),
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "namespace": self.namespace,
            "key": self.key,
            "value": self.value,
            "version": self.version,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<ProjectSetting {self.namespace}/{self.key} v{self.version}>"
