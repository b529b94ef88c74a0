"""
Tests for the programme parser (CSV / JSON / MPX).

Covers:
  - extension dispatch (case-insensitive) and unsupported formats
  - CSV positional mapping, milestone flag, quoted names, blank lines
  - lenient numeric parsing with warnings; empty dates default to import time
  - JSON object requirement, list defaults, projectName fallbacks, task normalisation
  - MPX header ProjectName, Tasks marker, milestone always false
  - undecodable bytes → FileReadError with the decode error as cause

pytest markers: unit
"""

import json

import pytest

from interchange.core.exceptions import (
    FileReadError,
    ProgrammeParseError,
    UnsupportedFormatError,
)
from interchange.services.programme_parser import (
    SUPPORTED_IMPORT_EXTENSIONS,
    lenient_int,
    parse_programme_file,
    project_name_from_file,
)

pytestmark = pytest.mark.unit

IMPORT_TS = "2025-03-14T09:30:00.000Z"


# ── Dispatch ────────────────────────────────────────────────────────────────


def test_supported_extensions():
    assert SUPPORTED_IMPORT_EXTENSIONS == (".csv", ".json", ".mpx")


@pytest.mark.parametrize("name", ["plan.pp", "plan.xml", "plan.xer", "plan"])
def test_unsupported_extension_raises(name):
    with pytest.raises(UnsupportedFormatError) as exc:
        parse_programme_file(name, b"anything")
    assert str(exc.value).startswith("Unsupported file format:")


def test_unsupported_message_names_extension():
    with pytest.raises(UnsupportedFormatError, match=r"^Unsupported file format: \.pp$"):
        parse_programme_file("Tower.PP", b"")


def test_extension_match_is_case_insensitive(make_csv):
    parsed = parse_programme_file("PLAN.CSV", make_csv(2))
    assert parsed.task_count == 2


def test_undecodable_bytes_raise_file_read_error():
    with pytest.raises(FileReadError, match="Failed to read file") as exc:
        parse_programme_file("plan.csv", b"id,name\n\xff\xfe\xfa,bad\n")
    assert isinstance(exc.value.__cause__, UnicodeDecodeError)


def test_project_name_from_file_strips_last_extension():
    assert project_name_from_file("Tower.Block.csv") == "Tower.Block"
    assert project_name_from_file("plan") == "plan"


# ── CSV ─────────────────────────────────────────────────────────────────────


def test_csv_maps_columns_positionally(fixed_now, make_csv):
    parsed = parse_programme_file("Tower Block.csv", make_csv(3))

    assert parsed.project_name == "Tower Block"
    assert parsed.task_count == 3 == len(parsed.tasks)
    assert parsed.imported_from == "Asta"
    assert parsed.demo is False

    first = parsed.tasks[0]
    assert first["id"] == "T1"
    assert first["originalId"] == "T1"
    assert first["name"] == "Task 1"
    assert first["startDate"] == "2025-03-01"
    assert first["finishDate"] == "2025-03-02"
    assert first["duration"] == 1
    assert first["isMilestone"] is True
    assert first["dependencies"] == []
    assert first["structureLevel"] == 0
    assert first["originalStructure"] == ""
    assert first["sourceFileName"] == "Tower Block.csv"
    assert first["importedAt"] == IMPORT_TS
    assert parsed.tasks[1]["isMilestone"] is False
    assert parsed.tasks[1]["percentComplete"] == 10


def test_csv_milestone_requires_exact_yes():
    content = b"id,name,s,f,d,p,m\n1,A,2025-01-01,2025-01-02,1,0,yes\n2,B,2025-01-01,2025-01-02,1,0,Yes\n"
    parsed = parse_programme_file("p.csv", content)
    assert [t["isMilestone"] for t in parsed.tasks] == [False, True]


def test_csv_quoted_name_with_comma_is_preserved():
    content = b'id,name,s,f,d,p,m\n1,"Pour slab, level 2",2025-01-01,2025-01-02,3,50,No\n'
    parsed = parse_programme_file("p.csv", content)
    task = parsed.tasks[0]
    assert task["name"] == "Pour slab, level 2"
    assert task["duration"] == 3
    assert task["percentComplete"] == 50


def test_csv_skips_blank_lines_and_trims_fields():
    content = b"\n  \nid,name\n\n 1 ,  Site setup  , 2025-01-01 ,2025-01-03, 2 , 0 ,No\n\n"
    parsed = parse_programme_file("p.csv", content)
    assert parsed.task_count == 1
    assert parsed.tasks[0]["id"] == "1"
    assert parsed.tasks[0]["name"] == "Site setup"
    assert parsed.tasks[0]["startDate"] == "2025-01-01"


def test_csv_header_only_gives_no_tasks():
    parsed = parse_programme_file("p.csv", b"Task ID,Name\n")
    assert parsed.tasks == []
    assert parsed.task_count == 0


def test_csv_lenient_numbers_and_warnings():
    content = b"id,name,s,f,d,p\n1,A,2025-01-01,2025-01-02,12.5,12d\n2,B,2025-01-01,2025-01-02,abc,\n"
    parsed = parse_programme_file("p.csv", content)

    assert parsed.tasks[0]["duration"] == 12
    assert parsed.tasks[0]["percentComplete"] == 12
    assert parsed.tasks[1]["duration"] == 0
    assert parsed.tasks[1]["percentComplete"] == 0
    assert len(parsed.warnings) == 1
    assert "duration 'abc'" in parsed.warnings[0]
    assert "row 3" in parsed.warnings[0]


def test_csv_empty_dates_default_to_import_time(fixed_now):
    parsed = parse_programme_file("p.csv", b"id,name,s,f\n1,A,,\n")
    task = parsed.tasks[0]
    assert task["startDate"] == IMPORT_TS
    assert task["finishDate"] == IMPORT_TS
    assert len(parsed.warnings) == 2


def test_csv_short_rows_default_missing_fields():
    parsed = parse_programme_file("p.csv", b"id,name\n7\n")
    task = parsed.tasks[0]
    assert task["id"] == "7"
    assert task["name"] == ""
    assert task["isMilestone"] is False


def test_parse_warnings_are_logged(caplog):
    with caplog.at_level("WARNING", logger="interchange.services.programme_parser"):
        parse_programme_file("p.csv", b"id,name,s,f,d\n1,A,2025-01-01,2025-01-02,xx\n")
    assert any("Parse leniency" in r.getMessage() for r in caplog.records)


# ── Lenient int ─────────────────────────────────────────────────────────────


@pytest.mark.parametrize("raw,expected", [
    ("12", 12), ("12.5", 12), ("12d", 12), (" -3 ", -3), (7, 7), (7.9, 7), ("", 0), (None, 0),
])
def test_lenient_int(raw, expected):
    assert lenient_int(raw, "duration", "row 1", []) == expected


def test_lenient_int_records_warning_only_for_garbage():
    warnings = []
    assert lenient_int("n/a", "duration", "row 2", warnings) == 0
    assert lenient_int("", "duration", "row 3", warnings) == 0
    assert warnings == ["row 2: duration 'n/a' is not a number; defaulted to 0"]


# ── JSON ────────────────────────────────────────────────────────────────────


def test_json_must_be_an_object():
    with pytest.raises(ProgrammeParseError):
        parse_programme_file("p.json", b"[1, 2, 3]")


def test_json_invalid_syntax_raises_parse_error():
    with pytest.raises(ProgrammeParseError) as exc:
        parse_programme_file("p.json", b"{not json")
    assert isinstance(exc.value.__cause__, json.JSONDecodeError)


def test_json_defaults_lists_and_project_name():
    parsed = parse_programme_file("Bridge.json", b"{}")
    assert parsed.project_name == "Bridge"
    assert parsed.tasks == []
    assert parsed.constraints == []
    assert parsed.calendars == []
    assert parsed.resources == []
    assert parsed.task_count == 0


def test_json_project_name_prefers_top_level_then_project_block():
    explicit = json.dumps({"projectName": "Explicit", "project": {"name": "Block"}}).encode()
    block = json.dumps({"project": {"name": "Block"}}).encode()
    assert parse_programme_file("f.json", explicit).project_name == "Explicit"
    assert parse_programme_file("f.json", block).project_name == "Block"


def test_json_tasks_are_normalised(fixed_now):
    body = {
        "projectName": "Depot",
        "tasks": [
            {
                "id": 42, "name": "Excavate", "startDate": "2025-02-01",
                "finishDate": "2025-02-05", "duration": "4", "percentComplete": 25.0,
                "isMilestone": False, "dependencies": [41], "calendarId": "std",
                "structureLevel": 2, "constraints": [{"type": "SNET"}], "notes": "wet ground",
            },
            {"id": "M1", "name": "Handover", "isMilestone": True, "originalId": "ASTA-9"},
            "not-a-task",
        ],
        "calendars": [{"id": "std"}],
        "resources": [{"id": "crane"}],
    }
    parsed = parse_programme_file("depot.json", json.dumps(body).encode())

    assert parsed.task_count == 2
    first, second = parsed.tasks
    assert first["id"] == "42"
    assert first["originalId"] == "42"
    assert first["duration"] == 4
    assert first["percentComplete"] == 25
    assert first["dependencies"] == ["41"]
    assert first["calendarId"] == "std"
    assert first["structureLevel"] == 2
    assert first["constraints"] == [{"type": "SNET"}]
    assert first["notes"] == "wet ground"
    assert first["sourceFileName"] == "depot.json"

    assert second["isMilestone"] is True
    assert second["originalId"] == "ASTA-9"
    assert second["startDate"] == IMPORT_TS
    assert "constraints" not in second

    assert parsed.calendars == [{"id": "std"}]
    assert parsed.resources == [{"id": "crane"}]
    assert any("not an object" in w for w in parsed.warnings)


def test_json_numbers_and_present_dates_are_kept_verbatim(fixed_now):
    body = {"tasks": [
        {"id": "a", "startDate": "", "finishDate": "2025-02-05",
         "duration": 2.5, "percentComplete": 45.5},
    ]}
    parsed = parse_programme_file("p.json", json.dumps(body).encode())

    task = parsed.tasks[0]
    assert task["startDate"] == ""
    assert task["finishDate"] == "2025-02-05"
    assert task["duration"] == 2.5
    assert task["percentComplete"] == 45.5
    assert not any("startDate" in w for w in parsed.warnings)


def test_json_tasks_must_be_a_list():
    with pytest.raises(ProgrammeParseError):
        parse_programme_file("p.json", b'{"tasks": {"id": 1}}')


# ── MPX ─────────────────────────────────────────────────────────────────────


MPX_SAMPLE = (
    "Microsoft Project\n"
    "Version,14\n"
    "ProjectName,Harbour Wall\n"
    "StartDate,2025-01-01\n"
    "EndDate,2025-06-30\n"
    "Tasks\n"
    "1,Mobilise,2025-01-01,2025-01-03,2,100\n"
    '2,"Piling, phase 1",2025-01-06,2025-02-10,25,40\n'
    "\n"
    "3,Milestone review,2025-02-11,2025-02-11,0,0\n"
)


def test_mpx_reads_header_and_tasks():
    parsed = parse_programme_file("wall.mpx", MPX_SAMPLE.encode())

    assert parsed.project_name == "Harbour Wall"
    assert parsed.task_count == 3
    assert parsed.tasks[1]["name"] == "Piling, phase 1"
    assert parsed.tasks[1]["duration"] == 25
    assert parsed.tasks[1]["percentComplete"] == 40
    assert all(t["isMilestone"] is False for t in parsed.tasks)


def test_mpx_without_project_name_uses_file_stem():
    parsed = parse_programme_file("wall.mpx", b"Tasks\n1,A,2025-01-01,2025-01-02,1,0\n")
    assert parsed.project_name == "wall"
    assert parsed.task_count == 1


def test_mpx_without_marker_has_no_tasks():
    parsed = parse_programme_file("wall.mpx", b"Microsoft Project\n1,A,2025-01-01\n")
    assert parsed.tasks == []
    assert parsed.warnings
