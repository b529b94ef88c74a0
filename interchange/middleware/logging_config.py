"""
Log output for the interchange service.

Every record goes to one stderr handler.  Which formatter renders it is
decided by ``LOG_FORMAT`` (``json`` or ``readable``); when unset, production
gets JSON lines and everything else gets the one-line readable form.

Pipelines pass context through ``extra=``.  Both formatters understand the
same keys, so a call such as::

    logger.info("Exported %d tasks", n,
                extra={"project_id": pid, "event_type": "asta_export",
                       "file_type": "csv", "task_count": n})

reads as ``... Exported 3 tasks (project=p1) asta_export csv x3`` locally and
as flat JSON keys in production.
"""

import json
import logging
import sys
from datetime import datetime, timezone

REQUEST_FIELDS = ("request_id", "method", "path", "status", "duration_ms", "remote_addr")
INTERCHANGE_FIELDS = ("project_id", "event_type", "file_type", "task_count")

LOG_FORMATS = ("json", "readable")


def _extras(record: logging.LogRecord, names) -> dict:
    return {
        name: getattr(record, name)
        for name in names
        if getattr(record, name, None) is not None
    }


class JSONFormatter(logging.Formatter):
    """One JSON object per line, keyed for log search."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "where": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        entry.update(_extras(record, REQUEST_FIELDS))
        entry.update(_extras(record, INTERCHANGE_FIELDS))
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class ReadableFormatter(logging.Formatter):
    """``HH:MM:SS LEVEL logger: message (project=..) event type xN [Nms]``."""

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, color: bool = False):
        super().__init__()
        self.color = color

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        level = f"{record.levelname:<8}"
        if self.color:
            level = f"{self.LEVEL_COLORS.get(record.levelname, '')}{level}{self.RESET}"

        parts = [f"{ts} {level} {record.name}: {record.getMessage()}"]
        fields = _extras(record, INTERCHANGE_FIELDS + ("duration_ms",))
        if "project_id" in fields:
            parts.append(f"(project={fields['project_id']})")
        for name in ("event_type", "file_type"):
            if name in fields:
                parts.append(str(fields[name]))
        if "task_count" in fields:
            parts.append(f"x{fields['task_count']}")
        if "duration_ms" in fields:
            parts.append(f"[{fields['duration_ms']:.0f}ms]")

        line = " ".join(parts)
        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def _choose_format(app, is_prod: bool) -> str:
    requested = (app.config.get("LOG_FORMAT") or "").lower()
    if requested in LOG_FORMATS:
        return requested
    return "json" if is_prod else "readable"


def configure_logging(app):
    """Install the stderr handler on the root logger for ``app``.

    Level comes from ``LOG_LEVEL`` (DEBUG outside production, INFO in it).
    Rebuilding the app replaces the handler rather than stacking another.
    """
    is_testing = app.config.get("TESTING", False)
    is_prod = not app.config.get("DEBUG", False) and not is_testing

    level_name = (app.config.get("LOG_LEVEL") or ("INFO" if is_prod else "DEBUG")).upper()
    level = getattr(logging, level_name, logging.INFO)
    log_format = _choose_format(app, is_prod)

    handler = logging.StreamHandler(sys.stderr)
    if log_format == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(ReadableFormatter(color=sys.stderr.isatty()))
    handler.setLevel(level)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for chatty in ("werkzeug", "sqlalchemy.engine", "alembic"):
        logging.getLogger(chatty).setLevel(logging.WARNING)
    app.logger.setLevel(level)

    if not is_testing:
        app.logger.info("Logging configured: level=%s format=%s", level_name, log_format)
