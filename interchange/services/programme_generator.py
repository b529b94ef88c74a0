"""
Programme Generator — render an export payload to interchange bytes.

    generate(payload, "csv")  -> (bytes, "text/csv")
    generate(payload, "json") -> (bytes, "application/json")
    generate(payload, "mpx")  -> (bytes, "application/octet-stream")
    generate(payload, "xer")  -> (bytes, "application/xml")
    generate(payload, "xlsx") -> (bytes, XLSX_MIME)

The payload is the dict assembled by the export pipeline; include flags have
already been applied, so excluded categories are simply empty lists.

CSV and MPX rows follow RFC 4180: fields containing a comma, quote or newline
are double-quoted with embedded quotes doubled.  The XER output is a small
XML dialect (``<AstaProject>``), not Primavera's tab-delimited XER grammar.
"""

import csv
import io
import json
import logging
import xml.etree.ElementTree as ET

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from interchange.core.exceptions import UnsupportedFormatError

logger = logging.getLogger(__name__)

XLSX_MIME = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

MIME_TYPES = {
    "csv": "text/csv",
    "json": "application/json",
    "mpx": "application/octet-stream",
    "xer": "application/xml",
    "xlsx": XLSX_MIME,
}

CSV_HEADERS = [
    "Task ID", "Name", "Start Date", "Finish Date",
    "Duration", "Progress", "Is Milestone",
]

HEADER_FILL = PatternFill(start_color="354A5F", end_color="354A5F", fill_type="solid")
HEADER_FONT = Font(color="FFFFFF", bold=True, size=11)
THIN_BORDER = Border(
    left=Side(style="thin"),
    right=Side(style="thin"),
    top=Side(style="thin"),
    bottom=Side(style="thin"),
)
MILESTONE_FILL = PatternFill(start_color="F39C12", end_color="F39C12", fill_type="solid")


def file_extension_for(file_type: str) -> str:
    """``"mpx"`` → ``".mpx"``; raises UnsupportedFormatError for unknown types."""
    if file_type not in MIME_TYPES:
        raise UnsupportedFormatError(file_type)
    return f".{file_type}"


def generate(payload: dict, file_type: str) -> tuple[bytes, str]:
    """Render ``payload`` in ``file_type``; returns ``(content, mime_type)``."""
    renderer = _RENDERERS.get(file_type)
    if renderer is None:
        raise UnsupportedFormatError(file_type)
    content = renderer(payload)
    logger.debug("Generated %s export: %d bytes, %d tasks",
                 file_type, len(content), len(payload.get("tasks", [])))
    return content, MIME_TYPES[file_type]


# ── Field helpers ────────────────────────────────────────────────────────


def _text(value) -> str:
    return "" if value is None else str(value)


def _num(value):
    return value or 0


def _task_row(task: dict) -> list:
    return [
        _text(task.get("id")),
        _text(task.get("name")),
        _text(task.get("startDate")),
        _text(task.get("finishDate")),
        _num(task.get("duration")),
        _num(task.get("percentComplete")),
        "Yes" if task.get("isMilestone") else "No",
    ]


# ── Renderers ────────────────────────────────────────────────────────────


def generate_csv(payload: dict) -> bytes:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for task in payload.get("tasks", []):
        writer.writerow(_task_row(task))
    return buf.getvalue().encode("utf-8")


def generate_json(payload: dict) -> bytes:
    return json.dumps(payload, indent=2, ensure_ascii=False, default=str).encode("utf-8")


def generate_mpx(payload: dict) -> bytes:
    project = payload.get("project", {})
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(["Microsoft Project"])
    writer.writerow(["Version", 14])
    writer.writerow(["ProjectName", _text(project.get("name"))])
    writer.writerow(["StartDate", _text(project.get("startDate"))])
    writer.writerow(["EndDate", _text(project.get("endDate"))])
    writer.writerow(["Tasks"])
    for task in payload.get("tasks", []):
        # No milestone column in MPX rows
        writer.writerow(_task_row(task)[:6])
    return buf.getvalue().encode("utf-8")


def generate_xer(payload: dict) -> bytes:
    project = payload.get("project", {})
    root = ET.Element("AstaProject")

    info = ET.SubElement(root, "ProjectInfo")
    ET.SubElement(info, "Name").text = _text(project.get("name"))
    ET.SubElement(info, "ExportDate").text = _text(project.get("generatedAt"))
    ET.SubElement(info, "Version").text = "1.0"

    tasks_el = ET.SubElement(root, "Tasks")
    for task in payload.get("tasks", []):
        el = ET.SubElement(tasks_el, "Task")
        ET.SubElement(el, "ID").text = _text(task.get("id"))
        ET.SubElement(el, "Name").text = _text(task.get("name"))
        ET.SubElement(el, "StartDate").text = _text(task.get("startDate"))
        ET.SubElement(el, "EndDate").text = _text(task.get("finishDate"))
        ET.SubElement(el, "Duration").text = str(_num(task.get("duration")))
        ET.SubElement(el, "Progress").text = str(_num(task.get("percentComplete")))
        ET.SubElement(el, "IsMilestone").text = "true" if task.get("isMilestone") else "false"

    ET.indent(root, space="  ")
    body = ET.tostring(root, encoding="unicode")
    return ('<?xml version="1.0" encoding="UTF-8"?>\n' + body + "\n").encode("utf-8")


def generate_xlsx(payload: dict) -> bytes:
    """Styled workbook: ``Programme`` sheet of tasks plus a ``Project`` sheet."""
    wb = Workbook()

    # ── Sheet 1: Programme ───────────────────────────────────────────
    ws = wb.active
    ws.title = "Programme"
    for col, header in enumerate(CSV_HEADERS, 1):
        cell = ws.cell(row=1, column=col, value=header)
        cell.fill = HEADER_FILL
        cell.font = HEADER_FONT
        cell.border = THIN_BORDER
        cell.alignment = Alignment(horizontal="center", vertical="center")

    for row_idx, task in enumerate(payload.get("tasks", []), 2):
        for col, value in enumerate(_task_row(task), 1):
            cell = ws.cell(row=row_idx, column=col, value=value)
            cell.border = THIN_BORDER
            if task.get("isMilestone"):
                cell.fill = MILESTONE_FILL
    ws.freeze_panes = "A2"
    _auto_width(ws)

    # ── Sheet 2: Project ─────────────────────────────────────────────
    project = payload.get("project", {})
    ws2 = wb.create_sheet("Project")
    rows = [
        ("Name", project.get("name")),
        ("Start Date", project.get("startDate")),
        ("End Date", project.get("endDate")),
        ("Generated By", project.get("generatedBy")),
        ("Generated At", project.get("generatedAt")),
        ("Demo", "Yes" if project.get("demo") else "No"),
    ]
    for row_idx, (label, value) in enumerate(rows, 1):
        label_cell = ws2.cell(row=row_idx, column=1, value=label)
        label_cell.font = Font(bold=True)
        label_cell.border = THIN_BORDER
        ws2.cell(row=row_idx, column=2, value=_text(value)).border = THIN_BORDER
    _auto_width(ws2)

    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


def _auto_width(ws) -> None:
    """Auto-size column widths based on content (capped at 60 chars)."""
    for col in ws.columns:
        max_len = 0
        col_letter = get_column_letter(col[0].column)
        for cell in col:
            if cell.value is not None:
                max_len = max(max_len, min(len(str(cell.value)), 60))
        ws.column_dimensions[col_letter].width = max(max_len + 4, 12)


_RENDERERS = {
    "csv": generate_csv,
    "json": generate_json,
    "mpx": generate_mpx,
    "xer": generate_xer,
    "xlsx": generate_xlsx,
}
