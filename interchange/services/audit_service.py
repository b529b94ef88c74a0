"""
Audit Service — audit sink for programme interchange events.

Thin adapter over ``write_audit``: the pipelines speak in
``(project_id, actor_id, action_type, message, before_state, after_metadata)``
and this module maps that onto an AuditLog row.  Flush only; the pipeline
commits.
"""

import logging

from interchange.models.audit import AuditLog, write_audit

logger = logging.getLogger(__name__)


def log_action(
    project_id,
    actor_id,
    action_type: str,
    message: str,
    before_state: dict | None = None,
    after_metadata: dict | None = None,
) -> AuditLog:
    """Append one audit row for a programme event."""
    log = write_audit(
        entity_type="programme",
        entity_id=str(project_id),
        action=action_type,
        actor=str(actor_id) if actor_id is not None else None,
        project_key=project_id,
        message=message,
        diff={"before": before_state, "after": after_metadata},
    )
    logger.debug("Audit %s for project %s: %s", action_type, project_id, message,
                 extra={"project_id": project_id, "event_type": action_type})
    return log
