"""
Programme Interchange Engine
Audit blueprint.

Endpoints:
    GET  /api/v1/audit               — list / filter audit logs
    GET  /api/v1/audit/<int:log_id>  — single audit entry
"""

from flask import Blueprint, jsonify, request

from interchange.blueprints import paginate_query
from interchange.models import db
from interchange.models.audit import AuditLog
from interchange.utils.errors import E, api_error

audit_bp = Blueprint("audit", __name__, url_prefix="/api/v1")


# ── List / filter ────────────────────────────────────────────────────────────

@audit_bp.route("/audit", methods=["GET"])
def list_audit_logs():
    """
    Return paginated audit logs with optional filters.

    Query params:
        project_id   — filter by project
        entity_type  — filter by entity type
        action       — filter by action string (prefix match)
        actor        — filter by actor
        limit        — items per page (default 50, max 200)
        offset       — starting position (default 0)
    """
    q = AuditLog.query

    # ── Filters ──────────────────────────────────────────────────────────
    project_id = request.args.get("project_id")
    if project_id:
        q = q.filter(AuditLog.project_key == project_id)

    entity_type = request.args.get("entity_type")
    if entity_type:
        q = q.filter(AuditLog.entity_type == entity_type)

    action = request.args.get("action")
    if action:
        q = q.filter(AuditLog.action.startswith(action))

    actor = request.args.get("actor")
    if actor:
        q = q.filter(AuditLog.actor == actor)

    # ── Ordering ─────────────────────────────────────────────────────────
    q = q.order_by(AuditLog.timestamp.desc(), AuditLog.id.desc())

    items, total = paginate_query(q)
    return jsonify({
        "audit_logs": [log.to_dict() for log in items],
        "total": total,
    })


# ── Single entry ─────────────────────────────────────────────────────────────

@audit_bp.route("/audit/<int:log_id>", methods=["GET"])
def get_audit_log(log_id):
    log = db.session.get(AuditLog, log_id)
    if not log:
        return api_error(E.NOT_FOUND, "Audit log not found")
    return jsonify(log.to_dict())
