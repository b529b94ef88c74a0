"""
Programme Parser — decode interchange files into a ParsedProgramme.

Supported inputs (dispatch on lower-cased file extension):
    .csv   header row + positional rows
           [id, name, startDate, finishDate, duration, percentComplete, isMilestone]
    .json  single object {projectName?, project?, tasks[], constraints[], calendars[], resources[]}
    .mpx   simplified MPX: header lines, a "Tasks" marker line, then
           CSV rows [id, name, startDate, finishDate, duration, percentComplete]

Parsing is lenient: malformed numbers become 0 and empty dates become the
import timestamp.  Both kinds of default are recorded in
``ParsedProgramme.warnings`` and logged at WARNING.  Nothing here checks
schedule semantics (dates in order, dependency cycles, ...).
"""

import csv
import io
import json
import logging
import os
import re
from datetime import datetime, timezone

from interchange.core.exceptions import (
    FileReadError,
    ProgrammeParseError,
    UnsupportedFormatError,
)
from interchange.services.programme_types import ParsedProgramme
from interchange.utils.helpers import utcnow_iso

logger = logging.getLogger(__name__)

SUPPORTED_IMPORT_EXTENSIONS = (".csv", ".json", ".mpx")

CSV_COLUMNS = (
    "id", "name", "startDate", "finishDate",
    "duration", "percentComplete", "isMilestone",
)
MPX_COLUMNS = CSV_COLUMNS[:6]
MPX_TASKS_MARKER = "Tasks"

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def _utcnow():
    return datetime.now(timezone.utc)


# ═════════════════════════════════════════════════════════════════════════════
# Public API
# ═════════════════════════════════════════════════════════════════════════════


def parse_programme_file(file_name: str, content) -> ParsedProgramme:
    """Parse an uploaded interchange file.

    Args:
        file_name: Original file name; its extension selects the parser.
        content: Raw ``bytes`` (decoded as UTF-8, BOM tolerated) or ``str``.

    Raises:
        UnsupportedFormatError: extension not in SUPPORTED_IMPORT_EXTENSIONS.
        FileReadError: bytes are not valid UTF-8.
        ProgrammeParseError: JSON that is not a single object.
    """
    extension = file_extension(file_name)
    parser = _PARSERS.get(extension)
    if parser is None:
        raise UnsupportedFormatError(extension or file_name)

    text = _decode(content)
    imported_at = utcnow_iso(_utcnow())
    parsed = parser(text, file_name, imported_at)

    for warning in parsed.warnings:
        logger.warning("Parse leniency in %s: %s", file_name, warning,
                       extra={"event_type": "parse_leniency", "file_type": extension})
    logger.info("Parsed %s: %d tasks (%d warnings)",
                file_name, parsed.task_count, len(parsed.warnings),
                extra={"file_type": extension, "task_count": parsed.task_count})
    return parsed


def file_extension(file_name: str) -> str:
    """Lower-cased extension including the dot (``".csv"``), or ``""``."""
    return os.path.splitext((file_name or "").lower())[1]


def project_name_from_file(file_name: str) -> str:
    """File name with its last extension stripped."""
    base = os.path.basename(file_name or "")
    stem, _ext = os.path.splitext(base)
    return stem or base


# ═════════════════════════════════════════════════════════════════════════════
# Field coercion
# ═════════════════════════════════════════════════════════════════════════════


def lenient_int(value, field_name: str, where: str, warnings: list[str]) -> int:
    """Leading-integer parse: ``"12"``, ``"12.5"``, ``"12d"`` → 12; else 0.

    Empty values default to 0 silently; anything else that has no leading
    integer adds a warning.
    """
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if value is None or str(value).strip() == "":
        return 0
    match = _LEADING_INT.match(str(value))
    if match:
        return int(match.group(1))
    warnings.append(f"{where}: {field_name} {str(value)!r} is not a number; defaulted to 0")
    return 0


def _date_or_now(value, field_name: str, where: str, imported_at: str, warnings: list[str]) -> str:
    text = "" if value is None else str(value).strip()
    if text:
        return text
    warnings.append(f"{where}: {field_name} is empty; defaulted to import time")
    return imported_at


def json_number(value, field_name: str, where: str, warnings: list[str]):
    """JSON numbers pass through unchanged; strings get the leading-integer parse."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value
    return lenient_int(value, field_name, where, warnings)


def _json_date(value, field_name: str, where: str, imported_at: str, warnings: list[str]) -> str:
    # Only an absent date is defaulted; an empty string is kept as written.
    if value is None:
        warnings.append(f"{where}: {field_name} is missing; defaulted to import time")
        return imported_at
    return value if isinstance(value, str) else str(value)


def _milestone(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value or "").strip().lower() in ("yes", "true", "1")


def _decode(content) -> str:
    if isinstance(content, str):
        return content
    try:
        return bytes(content).decode("utf-8-sig")
    except (UnicodeDecodeError, TypeError) as exc:
        raise FileReadError() from exc


def _base_task(values, file_name, imported_at, where, warnings):
    """Canonical task from positional values (CSV / MPX rows)."""

    def at(i):
        return values[i].strip() if i < len(values) else ""

    task_id = at(0)
    return {
        "id": task_id,
        "name": at(1),
        "startDate": _date_or_now(at(2), "startDate", where, imported_at, warnings),
        "finishDate": _date_or_now(at(3), "finishDate", where, imported_at, warnings),
        "duration": lenient_int(at(4), "duration", where, warnings),
        "percentComplete": lenient_int(at(5), "percentComplete", where, warnings),
        "isMilestone": False,
        "dependencies": [],
        "calendarId": None,
        "structureLevel": 0,
        "originalId": task_id,
        "originalStructure": "",
        "sourceFileName": file_name,
        "importedAt": imported_at,
    }


# ═════════════════════════════════════════════════════════════════════════════
# Format parsers
# ═════════════════════════════════════════════════════════════════════════════


def _parse_csv(text, file_name, imported_at):
    warnings: list[str] = []
    tasks = []
    reader = csv.reader(io.StringIO(text))
    header_seen = False
    for row in reader:
        if not any(cell.strip() for cell in row):
            continue
        if not header_seen:
            header_seen = True
            continue
        where = f"row {reader.line_num}"
        task = _base_task(row, file_name, imported_at, where, warnings)
        task["isMilestone"] = len(row) > 6 and row[6].strip() == "Yes"
        tasks.append(task)

    return ParsedProgramme(
        project_name=project_name_from_file(file_name),
        tasks=tasks,
        warnings=warnings,
    )


def _parse_mpx(text, file_name, imported_at):
    warnings: list[str] = []
    project_name = None
    lines = text.splitlines()

    marker = None
    for i, line in enumerate(lines):
        if line.strip() == MPX_TASKS_MARKER:
            marker = i
            break
        if line.startswith("ProjectName,"):
            fields = next(csv.reader([line]), [])
            if len(fields) > 1 and fields[1].strip():
                project_name = fields[1].strip()

    tasks = []
    if marker is not None:
        reader = csv.reader(io.StringIO("\n".join(lines[marker + 1:])))
        for row in reader:
            if not any(cell.strip() for cell in row):
                continue
            where = f"task line {reader.line_num}"
            # MPX rows carry no milestone column; isMilestone stays False
            tasks.append(_base_task(row, file_name, imported_at, where, warnings))
    else:
        warnings.append(f"no '{MPX_TASKS_MARKER}' marker line found; file has no tasks")

    return ParsedProgramme(
        project_name=project_name or project_name_from_file(file_name),
        tasks=tasks,
        warnings=warnings,
    )


def _parse_json(text, file_name, imported_at):
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ProgrammeParseError(f"Invalid JSON: {exc.msg} (line {exc.lineno})") from exc
    if not isinstance(data, dict):
        raise ProgrammeParseError("JSON programme must be a single object")

    warnings: list[str] = []
    raw_tasks = data.get("tasks") or []
    if not isinstance(raw_tasks, list):
        raise ProgrammeParseError("JSON programme 'tasks' must be a list")

    tasks = []
    for index, raw in enumerate(raw_tasks):
        where = f"task {index}"
        if not isinstance(raw, dict):
            warnings.append(f"{where}: not an object; skipped")
            continue
        tasks.append(_normalise_json_task(raw, file_name, imported_at, where, warnings))

    project_block = data.get("project") if isinstance(data.get("project"), dict) else {}
    project_name = (
        data.get("projectName")
        or project_block.get("name")
        or project_name_from_file(file_name)
    )

    return ParsedProgramme(
        project_name=str(project_name),
        tasks=tasks,
        constraints=_as_list(data.get("constraints")),
        calendars=_as_list(data.get("calendars")),
        resources=_as_list(data.get("resources")),
        warnings=warnings,
    )


def _normalise_json_task(raw, file_name, imported_at, where, warnings):
    task_id = "" if raw.get("id") is None else str(raw.get("id"))
    dependencies = raw.get("dependencies")
    task = {
        "id": task_id,
        "name": "" if raw.get("name") is None else str(raw.get("name")),
        "startDate": _json_date(raw.get("startDate"), "startDate", where, imported_at, warnings),
        "finishDate": _json_date(raw.get("finishDate"), "finishDate", where, imported_at, warnings),
        "duration": json_number(raw.get("duration"), "duration", where, warnings),
        "percentComplete": json_number(raw.get("percentComplete"), "percentComplete", where, warnings),
        "isMilestone": _milestone(raw.get("isMilestone")),
        "dependencies": [str(d) for d in dependencies] if isinstance(dependencies, list) else [],
        "calendarId": raw.get("calendarId"),
        "structureLevel": lenient_int(raw.get("structureLevel"), "structureLevel", where, warnings),
        "originalId": str(raw["originalId"]) if raw.get("originalId") not in (None, "") else task_id,
        "originalStructure": str(raw.get("originalStructure") or ""),
        "sourceFileName": file_name,
        "importedAt": imported_at,
    }
    for carried in ("constraints", "notes"):
        if carried in raw:
            task[carried] = raw[carried]
    return task


def _as_list(value):
    return value if isinstance(value, list) else []


_PARSERS = {
    ".csv": _parse_csv,
    ".json": _parse_json,
    ".mpx": _parse_mpx,
}
