"""
Programme Interchange — shared data classes.

ParsedProgramme   parser output handed to the import pipeline
ExportSettings    export request options (built from camelCase JSON)
ImportResult      structured import outcome
ExportResult      structured export outcome (bytes kept for the download surface)

Wire format is camelCase (``to_dict``); attributes are snake_case.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any

from interchange.core.exceptions import ValidationError
from interchange.utils.helpers import parse_date

SOURCE_SYSTEM = "Asta"

EXPORT_FILE_TYPES = ("csv", "json", "mpx", "xer", "xlsx")


def _flag(data: dict, key: str) -> bool:
    """Absent or null means False; anything other than a JSON boolean is rejected."""
    value = data.get(key)
    if value is None:
        return False
    if not isinstance(value, bool):
        raise ValidationError(f"{key} must be a boolean", {"field": key})
    return value


@dataclass
class ParsedProgramme:
    """A decoded interchange file, not yet merged into any project."""
    project_name: str
    tasks: list[dict] = field(default_factory=list)
    constraints: list = field(default_factory=list)
    calendars: list = field(default_factory=list)
    resources: list = field(default_factory=list)
    task_count: int | None = None
    imported_from: str = SOURCE_SYSTEM
    demo: bool = False
    warnings: list[str] = field(default_factory=list)

    def __post_init__(self):
        if self.task_count is None:
            self.task_count = len(self.tasks)

    def to_dict(self) -> dict:
        return {
            "projectName": self.project_name,
            "taskCount": self.task_count,
            "tasks": self.tasks,
            "constraints": self.constraints,
            "calendars": self.calendars,
            "resources": self.resources,
            "importedFrom": self.imported_from,
            "demo": self.demo,
            "warnings": self.warnings,
        }


@dataclass
class ExportSettings:
    file_type: str
    start: date
    end: date
    include_constraints: bool = False
    include_baselines: bool = False
    include_notes: bool = False
    include_resources: bool = False
    include_calendars: bool = False
    demo: bool = False

    @classmethod
    def from_dict(cls, data: dict) -> "ExportSettings":
        """Build settings from request JSON.

        Expected shape::

            {"fileType": "csv",
             "dateRange": {"start": "2025-01-01", "end": "2025-01-07"},
             "includeConstraints": false, ..., "demo": false}

        Raises ``ValidationError`` for a missing file type, unparseable
        dates or a non-boolean flag.  Ordering of ``start``/``end`` is checked by the export
        pipeline, not here.
        """
        data = data or {}
        file_type = str(data.get("fileType") or "").strip().lower()
        if not file_type:
            raise ValidationError("fileType is required", {"field": "fileType"})

        date_range = data.get("dateRange") or {}
        start = parse_date(date_range.get("start"))
        end = parse_date(date_range.get("end"))
        missing = [k for k, v in (("start", start), ("end", end)) if v is None]
        if missing:
            raise ValidationError(
                "dateRange.start and dateRange.end must be valid dates",
                {"field": "dateRange", "invalid": missing},
            )

        flags = {key: _flag(data, key) for key in (
            "includeConstraints", "includeBaselines", "includeNotes",
            "includeResources", "includeCalendars", "demo",
        )}
        return cls(
            file_type=file_type,
            start=start,
            end=end,
            include_constraints=flags["includeConstraints"],
            include_baselines=flags["includeBaselines"],
            include_notes=flags["includeNotes"],
            include_resources=flags["includeResources"],
            include_calendars=flags["includeCalendars"],
            demo=flags["demo"],
        )

    def to_dict(self) -> dict:
        return {
            "fileType": self.file_type,
            "dateRange": {"start": self.start.isoformat(), "end": self.end.isoformat()},
            "includeConstraints": self.include_constraints,
            "includeBaselines": self.include_baselines,
            "includeNotes": self.include_notes,
            "includeResources": self.include_resources,
            "includeCalendars": self.include_calendars,
            "demo": self.demo,
        }


@dataclass
class ImportResult:
    success: bool
    data: dict | None = None
    errors: list[str] = field(default_factory=list)
    # Wrapped cause of an unexpected failure; never serialised
    error: Exception | None = None

    def to_dict(self) -> dict:
        body: dict[str, Any] = {"success": self.success, "errors": self.errors}
        if self.data is not None:
            body["data"] = self.data
        return body


@dataclass
class ExportResult:
    success: bool
    file_name: str = ""
    file_size: int = 0
    errors: list[str] = field(default_factory=list)
    content: bytes | None = None
    mime_type: str | None = None
    error: Exception | None = None

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "fileName": self.file_name,
            "fileSize": self.file_size,
            "errors": self.errors,
        }
