"""interchange_initial_tables

Create `project_settings`, `feature_flags` and `audit_logs` for the
programme interchange engine.

Revision ID: 7c1e0a2f9b31
Revises:
Create Date: 2025-03-10 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = "7c1e0a2f9b31"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing_tables = set(inspector.get_table_names())

    if "project_settings" not in existing_tables:
        op.create_table(
            "project_settings",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("namespace", sa.String(length=50), nullable=False),
            sa.Column("key", sa.String(length=150), nullable=False),
            sa.Column("value", sa.JSON(), nullable=True),
            sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("namespace", "key", name="uq_project_setting_ns_key"),
        )
        op.create_index("idx_project_setting_ns", "project_settings", ["namespace"])

    if "feature_flags" not in existing_tables:
        op.create_table(
            "feature_flags",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("key", sa.String(length=100), nullable=False),
            sa.Column("display_name", sa.String(length=200), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("is_enabled", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("created_at", sa.DateTime(), nullable=True),
            sa.Column("updated_at", sa.DateTime(), nullable=True),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("key"),
        )

    if "audit_logs" not in existing_tables:
        op.create_table(
            "audit_logs",
            sa.Column("id", sa.Integer(), nullable=False),
            sa.Column("project_key", sa.String(length=100), nullable=True),
            sa.Column("entity_type", sa.String(length=30), nullable=False),
            sa.Column("entity_id", sa.String(length=100), nullable=False),
            sa.Column("action", sa.String(length=60), nullable=False),
            sa.Column("actor", sa.String(length=150), nullable=False, server_default="system"),
            sa.Column("message", sa.Text(), nullable=True),
            sa.Column("diff_json", sa.Text(), nullable=True),
            sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("idx_audit_entity", "audit_logs", ["entity_type", "entity_id"])
        op.create_index("idx_audit_project", "audit_logs", ["project_key"])
        op.create_index("idx_audit_actor", "audit_logs", ["actor"])
        op.create_index("idx_audit_action", "audit_logs", ["action"])
        op.create_index("idx_audit_ts", "audit_logs", ["timestamp"])


def downgrade():
    bind = op.get_bind()
    inspector = sa_inspect(bind)
    existing_tables = set(inspector.get_table_names())

    if "audit_logs" in existing_tables:
        op.drop_index("idx_audit_ts", table_name="audit_logs")
        op.drop_index("idx_audit_action", table_name="audit_logs")
        op.drop_index("idx_audit_actor", table_name="audit_logs")
        op.drop_index("idx_audit_project", table_name="audit_logs")
        op.drop_index("idx_audit_entity", table_name="audit_logs")
        op.drop_table("audit_logs")

    if "feature_flags" in existing_tables:
        op.drop_table("feature_flags")

    if "project_settings" in existing_tables:
        op.drop_index("idx_project_setting_ns", table_name="project_settings")
        op.drop_table("project_settings")
