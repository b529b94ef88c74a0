"""
Programme Interchange blueprint.

Endpoints:
    POST /api/v1/projects/<project_id>/programme/parse    — parse upload, preview only
    POST /api/v1/projects/<project_id>/programme/import   — parse upload + import
    POST /api/v1/projects/<project_id>/programme/export   — export as file attachment
    GET  /api/v1/projects/<project_id>/programme/history  — import/export activity
    GET  /api/v1/projects/<project_id>/programme/quota    — demo quota status

Uploads are multipart (field ``file``) or JSON ``{"fileName", "content"}``.
Pipelines return structured results; this module only maps them to HTTP.
"""

import logging
from urllib.parse import quote

from flask import Blueprint, Response, current_app, jsonify, request

from interchange.core.exceptions import (
    ConflictError,
    FileReadError,
    ProgrammeParseError,
    QuotaExceededError,
    StaleWriteError,
    UnsupportedFormatError,
    ValidationError,
)
from interchange.services import activity_log_service, demo_mode_service, quota_service
from interchange.services.programme_export import export_programme
from interchange.services.programme_import import import_programme
from interchange.services.programme_parser import parse_programme_file
from interchange.services.programme_types import ExportSettings
from interchange.utils.errors import E, api_error, status_for

logger = logging.getLogger(__name__)

programme_bp = Blueprint("programme", __name__, url_prefix="/api/v1")


# ── Error handlers ────────────────────────────────────────────────────────────


@programme_bp.errorhandler(UnsupportedFormatError)
def _handle_unsupported(error: UnsupportedFormatError):
    return api_error(E.UNSUPPORTED_FORMAT, str(error))


@programme_bp.errorhandler(FileReadError)
@programme_bp.errorhandler(ProgrammeParseError)
def _handle_unreadable(error):
    return api_error(E.FILE_UNREADABLE, str(error))


@programme_bp.errorhandler(ValidationError)
def _handle_validation(error: ValidationError):
    return api_error(E.VALIDATION_INVALID, str(error), status=422, details=error.details)


@programme_bp.errorhandler(ConflictError)
def _handle_conflict(error: ConflictError):
    return api_error(E.CONFLICT_STALE, str(error))


# ── Helpers ──────────────────────────────────────────────────────────────────


def _actor_id():
    return request.headers.get("X-Actor-Id") or None


def _extract_upload() -> tuple[str, bytes]:
    """Return ``(file_name, raw_bytes)`` from multipart or JSON body."""
    if request.files:
        file = request.files.get("file")
        if file and file.filename:
            return file.filename, file.read()

    data = request.get_json(silent=True)
    if isinstance(data, dict) and data.get("fileName") and "content" in data:
        content = data["content"]
        if isinstance(content, str):
            content = content.encode("utf-8")
        return str(data["fileName"]), content

    raise ValidationError(
        "A programme file is required (multipart field 'file' or JSON fileName/content)",
        {"field": "file"},
    )


def _error_code(exc) -> str:
    """Map a pipeline result's error to an ``E`` code (and so an HTTP status)."""
    if isinstance(exc, StaleWriteError):
        return E.CONFLICT_STALE
    if isinstance(exc, QuotaExceededError):
        return E.QUOTA_EXCEEDED
    if isinstance(exc, ValidationError):
        return E.DATE_RANGE
    if isinstance(exc, UnsupportedFormatError):
        return E.UNSUPPORTED_FORMAT
    if isinstance(exc, (FileReadError, ProgrammeParseError)):
        return E.FILE_UNREADABLE
    return E.INTERNAL


def _failed(result):
    code = _error_code(result.error)
    body = result.to_dict()
    body["code"] = code
    # UI shows the joined list as one message
    body["error"] = ", ".join(result.errors)
    return jsonify(body), status_for(code)


def _content_disposition(file_name: str) -> str:
    ascii_name = file_name.encode("ascii", "replace").decode("ascii").replace('"', "")
    if ascii_name == file_name:
        return f'attachment; filename="{file_name}"'
    return f"attachment; filename=\"{ascii_name}\"; filename*=UTF-8''{quote(file_name)}"


# ═════════════════════════════════════════════════════════════════════════
# Import
# ═════════════════════════════════════════════════════════════════════════


@programme_bp.route("/projects/<project_id>/programme/parse", methods=["POST"])
def parse_programme(project_id):
    """Parse an uploaded file and return a preview without storing anything."""
    file_name, content = _extract_upload()
    parsed = parse_programme_file(file_name, content)

    body = parsed.to_dict()
    limit = current_app.config["DEMO_MAX_IMPORT_TASKS"]
    body["withinDemoLimit"] = parsed.task_count <= limit or not demo_mode_service.is_demo_mode_active()
    return jsonify(body), 200


@programme_bp.route("/projects/<project_id>/programme/import", methods=["POST"])
def import_programme_file(project_id):
    """Parse an uploaded file and merge its tasks into the project."""
    file_name, content = _extract_upload()
    parsed = parse_programme_file(file_name, content)

    result = import_programme(parsed, project_id, actor_id=_actor_id())
    if not result.success:
        return _failed(result)

    body = result.to_dict()
    body["warnings"] = parsed.warnings
    return jsonify(body), 200


# ═════════════════════════════════════════════════════════════════════════
# Export
# ═════════════════════════════════════════════════════════════════════════


@programme_bp.route("/projects/<project_id>/programme/export", methods=["POST"])
def export_programme_file(project_id):
    """Export the project's tasks and stream the file back as an attachment.

    Body: ExportSettings JSON (``fileType``, ``dateRange{start,end}``, include flags).
    """
    settings = ExportSettings.from_dict(request.get_json(silent=True) or {})

    result = export_programme(settings, project_id, actor_id=_actor_id())
    if not result.success:
        return _failed(result)

    return Response(
        result.content,
        mimetype=result.mime_type,
        headers={
            "Content-Disposition": _content_disposition(result.file_name),
            "X-Export-File-Size": str(result.file_size),
        },
    )


# ═════════════════════════════════════════════════════════════════════════
# History & quota
# ═════════════════════════════════════════════════════════════════════════


@programme_bp.route("/projects/<project_id>/programme/history", methods=["GET"])
def programme_history(project_id):
    return jsonify(activity_log_service.get_import_export_history(project_id)), 200


@programme_bp.route("/projects/<project_id>/programme/quota", methods=["GET"])
def programme_quota(project_id):
    return jsonify(quota_service.get_quota_status(project_id)), 200
