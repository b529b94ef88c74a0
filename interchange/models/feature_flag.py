"""
Feature Flag Model

Global feature toggles. A flag row overrides the config default for its key;
the interchange engine reads the "demo_mode" flag.
"""

from datetime import datetime, timezone

from interchange.models import db

DEMO_MODE_FLAG = "demo_mode"


class FeatureFlag(db.Model):
    """Global feature flag definition."""
    __tablename__ = "feature_flags"

    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(100), unique=True, nullable=False)  # e.g. "demo_mode"
    display_name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text)
    is_enabled = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "key": self.key,
            "display_name": self.display_name,
            "description": self.description,
            "is_enabled": self.is_enabled,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
