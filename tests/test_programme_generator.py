"""
Tests for the programme generator (CSV / JSON / MPX / XER / XLSX).

Covers:
  - mime types per format
  - CSV header, Yes/No milestone, RFC 4180 quoting
  - JSON pretty-printing
  - MPX header block + task rows without milestone column
  - XER element structure and XML escaping
  - XLSX sheets and styled header
  - CSV and MPX output parse back through the importer

pytest markers: unit
"""

import io
import json
import xml.etree.ElementTree as ET

import pytest
from openpyxl import load_workbook

from interchange.core.exceptions import UnsupportedFormatError
from interchange.services.programme_generator import (
    CSV_HEADERS,
    MIME_TYPES,
    XLSX_MIME,
    file_extension_for,
    generate,
)
from interchange.services.programme_parser import parse_programme_file

pytestmark = pytest.mark.unit


def _payload(tasks=None):
    return {
        "project": {
            "name": "Tower <A> & B",
            "startDate": "2025-01-01",
            "endDate": "2025-12-31",
            "generatedBy": "ProgrammeInterchange",
            "generatedAt": "2025-03-14T09:30:00.000Z",
            "demo": False,
        },
        "tasks": tasks if tasks is not None else [
            {"id": "imported_1_0", "name": "Groundworks", "startDate": "2025-03-01",
             "finishDate": "2025-03-05", "duration": 4, "percentComplete": 50, "isMilestone": False},
            {"id": "imported_1_1", "name": "Topping out, roof", "startDate": "2025-03-06",
             "finishDate": "2025-03-06", "duration": None, "percentComplete": None, "isMilestone": True},
        ],
        "baselines": [],
        "calendars": [],
        "resources": [],
        "settings": {"dateFormat": "dd/mm/yyyy", "includeNotes": False, "includeResources": False},
    }


def test_mime_types():
    assert MIME_TYPES == {
        "csv": "text/csv",
        "json": "application/json",
        "mpx": "application/octet-stream",
        "xer": "application/xml",
        "xlsx": XLSX_MIME,
    }
    for file_type, mime in MIME_TYPES.items():
        _content, got = generate(_payload(), file_type)
        assert got == mime


def test_unknown_type_raises():
    with pytest.raises(UnsupportedFormatError, match="Unsupported file format: pdf"):
        generate(_payload(), "pdf")
    with pytest.raises(UnsupportedFormatError):
        file_extension_for("pdf")


def test_file_extension_for():
    assert file_extension_for("xer") == ".xer"
    assert file_extension_for("xlsx") == ".xlsx"


def test_csv_layout_and_quoting():
    content, _ = generate(_payload(), "csv")
    lines = content.decode("utf-8").split("\n")

    assert lines[0] == ",".join(CSV_HEADERS)
    assert lines[1] == "imported_1_0,Groundworks,2025-03-01,2025-03-05,4,50,No"
    assert lines[2] == 'imported_1_1,"Topping out, roof",2025-03-06,2025-03-06,0,0,Yes'
    assert "\r" not in content.decode("utf-8")


def test_csv_with_no_tasks_is_header_only():
    content, _ = generate(_payload(tasks=[]), "csv")
    assert content.decode("utf-8").strip() == ",".join(CSV_HEADERS)


def test_json_is_pretty_printed_payload():
    payload = _payload()
    content, _ = generate(payload, "json")
    text = content.decode("utf-8")
    assert text.startswith('{\n  "project": {')
    assert json.loads(text) == payload


def test_mpx_layout():
    content, _ = generate(_payload(), "mpx")
    lines = content.decode("utf-8").splitlines()

    assert lines[:6] == [
        "Microsoft Project",
        "Version,14",
        "ProjectName,Tower <A> & B",
        "StartDate,2025-01-01",
        "EndDate,2025-12-31",
        "Tasks",
    ]
    assert lines[6] == "imported_1_0,Groundworks,2025-03-01,2025-03-05,4,50"
    assert lines[7] == 'imported_1_1,"Topping out, roof",2025-03-06,2025-03-06,0,0'


def test_mpx_missing_project_dates_are_blank():
    payload = _payload()
    payload["project"]["startDate"] = None
    content, _ = generate(payload, "mpx")
    assert "StartDate,\n" in content.decode("utf-8")


def test_xer_structure_and_escaping():
    content, _ = generate(_payload(), "xer")
    text = content.decode("utf-8")
    assert text.startswith('<?xml version="1.0" encoding="UTF-8"?>')
    assert "Tower &lt;A&gt; &amp; B" in text

    root = ET.fromstring(content)
    assert root.tag == "AstaProject"
    assert root.findtext("ProjectInfo/Name") == "Tower <A> & B"
    assert root.findtext("ProjectInfo/ExportDate") == "2025-03-14T09:30:00.000Z"
    assert root.findtext("ProjectInfo/Version") == "1.0"

    tasks = root.findall("Tasks/Task")
    assert len(tasks) == 2
    assert [child.tag for child in tasks[0]] == [
        "ID", "Name", "StartDate", "EndDate", "Duration", "Progress", "IsMilestone",
    ]
    assert tasks[0].findtext("IsMilestone") == "false"
    assert tasks[1].findtext("IsMilestone") == "true"
    assert tasks[1].findtext("Duration") == "0"


def test_xlsx_workbook_sheets():
    content, _ = generate(_payload(), "xlsx")
    wb = load_workbook(io.BytesIO(content))

    assert wb.sheetnames == ["Programme", "Project"]
    ws = wb["Programme"]
    assert [c.value for c in ws[1]] == CSV_HEADERS
    assert ws["B3"].value == "Topping out, roof"
    assert ws["G3"].value == "Yes"
    assert ws["A1"].font.bold is True
    assert wb["Project"]["B1"].value == "Tower <A> & B"


def test_csv_output_reimports():
    content, _ = generate(_payload(), "csv")
    parsed = parse_programme_file("Tower.csv", content)

    assert [t["name"] for t in parsed.tasks] == ["Groundworks", "Topping out, roof"]
    assert [t["isMilestone"] for t in parsed.tasks] == [False, True]
    assert parsed.tasks[0]["originalId"] == "imported_1_0"


def test_mpx_output_reimports_without_milestones():
    content, _ = generate(_payload(), "mpx")
    parsed = parse_programme_file("Tower.mpx", content)

    assert parsed.project_name == "Tower <A> & B"
    assert [t["name"] for t in parsed.tasks] == ["Groundworks", "Topping out, roof"]
    # MPX carries no milestone column
    assert parsed.tasks[1]["isMilestone"] is False


def test_json_output_reimports_task_fields():
    payload = _payload()
    content, _ = generate(payload, "json")
    parsed = parse_programme_file("Tower.json", content)

    fields = ("name", "startDate", "finishDate", "isMilestone")
    assert [{k: t[k] for k in fields} for t in parsed.tasks] == [
        {k: t[k] for k in fields} for t in payload["tasks"]
    ]
    assert [t["duration"] for t in parsed.tasks] == [4, 0]
    assert [t["percentComplete"] for t in parsed.tasks] == [50, 0]


def test_json_output_reimports_fractional_progress_and_empty_dates():
    payload = _payload([
        {"id": "t1", "name": "Fit out", "startDate": "", "finishDate": "2025-04-02",
         "duration": 3, "percentComplete": 45.5, "isMilestone": False},
    ])
    content, _ = generate(payload, "json")
    task = parse_programme_file("Tower.json", content).tasks[0]

    assert task["percentComplete"] == 45.5
    assert task["startDate"] == ""
    assert task["finishDate"] == "2025-04-02"
    assert task["duration"] == 3
