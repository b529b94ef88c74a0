"""
Platform-wide exception hierarchy.

Services raise these types; blueprints register handlers against them once
and get consistent HTTP status codes everywhere. Nothing here imports Flask,
so the parsers and pipelines stay usable outside a request.

Usage:
    from interchange.core.exceptions import UnsupportedFormatError, StaleWriteError

    raise UnsupportedFormatError(".pp")
    raise StaleWriteError("tasks_demo", expected=3, actual=4)
"""


class ValidationError(Exception):
    """Raised when input fails business-rule validation in the service layer.

    Maps to HTTP 422 in blueprint error handlers.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown for structured API responses.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised when a write would clobber state it did not read.

    Maps to HTTP 409.
    """


# ── Programme interchange ────────────────────────────────────────────────────


class InterchangeError(Exception):
    """Base class for import/export failures with a user-facing message."""


class UnsupportedFormatError(InterchangeError):
    """File extension (import) or file type (export) is not supported."""

    def __init__(self, extension: str) -> None:
        self.extension = extension
        super().__init__(f"Unsupported file format: {extension}")


class FileReadError(InterchangeError):
    """Uploaded bytes could not be decoded as text."""

    def __init__(self, message: str = "Failed to read file") -> None:
        super().__init__(message)


class ProgrammeParseError(InterchangeError):
    """File decoded but its structure is not a programme (e.g. JSON array)."""


class QuotaExceededError(InterchangeError, ValidationError):
    """A demo-mode quota gate rejected the request."""


class DemoTaskQuotaExceeded(QuotaExceededError):
    def __init__(self, limit: int, task_count: int) -> None:
        self.limit = limit
        self.task_count = task_count
        super().__init__(
            f"Demo mode limited to {limit} tasks. File contains {task_count} tasks."
        )


class DemoExportQuotaExceeded(QuotaExceededError):
    def __init__(self, limit: int) -> None:
        self.limit = limit
        super().__init__(f"Demo mode limited to {limit} exports per session.")


class InvalidDateRange(InterchangeError, ValidationError):
    def __init__(self) -> None:
        super().__init__("Invalid date range: start must be on or before end.")


class DateRangeTooLarge(InterchangeError, ValidationError):
    """Export date range exceeds the span allowed for the current mode."""

    def __init__(self, max_days: int, demo: bool) -> None:
        self.max_days = max_days
        self.demo = demo
        allowed = f"{max_days} days" if max_days != 365 else "1 year"
        mode = "demo" if demo else "full"
        super().__init__(f"Date range too large. Maximum allowed: {allowed} in {mode} mode.")


class PersistenceError(InterchangeError):
    """Store read/write failed. The original error is kept as ``__cause__``."""


class StaleWriteError(PersistenceError, ConflictError):
    """Version token on a stored setting changed between read and write."""

    def __init__(self, key: str, expected: int | None, actual: int | None) -> None:
        self.key = key
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Concurrent update detected on {key} "
            f"(expected version {expected}, found {actual}). Please retry."
        )
