"""
Demo Mode Blueprint

Read and toggle the global demo-mode switch that caps import task counts,
daily exports and export date ranges.

Endpoints:
    GET /api/v1/demo-mode   — current state + limits
    PUT /api/v1/demo-mode   — {"enabled": true|false}
"""

from flask import Blueprint, jsonify, request

from interchange.services import demo_mode_service as svc
from interchange.utils.errors import E, api_error

demo_mode_bp = Blueprint("demo_mode", __name__, url_prefix="/api/v1/demo-mode")


@demo_mode_bp.route("", methods=["GET"])
def get_demo_mode():
    """Current demo-mode state."""
    return jsonify(svc.get_demo_mode()), 200


@demo_mode_bp.route("", methods=["PUT"])
def set_demo_mode():
    """Enable or disable demo mode."""
    data = request.get_json(silent=True) or {}
    if "enabled" not in data:
        return api_error(E.VALIDATION_REQUIRED, "enabled is required")
    if not isinstance(data["enabled"], bool):
        return api_error(E.VALIDATION_INVALID, "enabled must be a boolean")
    actor = request.headers.get("X-Actor-Id") or None
    return jsonify(svc.set_demo_mode(data["enabled"], actor=actor)), 200
