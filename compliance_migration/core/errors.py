"""Error codes shared by the migration jobs."""

from __future__ import annotations

from enum import Enum


class ErrorCode(Enum):
    """Stable identifiers for the failures a migration run can report.

    Each member carries the code persisted in logs, the domain it belongs
    to and a short human readable message. ``label`` is the member name.
    """

    CONFIG_MISSING = ("E-CFG-001", "config", "Required configuration value is missing")

    BUBBLE_FETCH_FAILED = ("E-BUB-001", "bubble", "Bubble API request failed")
    BUBBLE_RETRIES_EXHAUSTED = ("E-BUB-002", "bubble", "Bubble API request failed after all retries")
    BUBBLE_INVALID_RESPONSE = ("E-BUB-003", "bubble", "Bubble API returned an unexpected payload")
    BUBBLE_CACHE_UNREADABLE = ("E-BUB-004", "bubble", "Cached export file could not be read")

    IMPORT_WRITE_FAILED = ("E-IMP-001", "import", "Writing a record to the target store failed")
    IMPORT_VERIFICATION_FAILED = ("E-IMP-002", "import", "Post-import verification reported failures")

    SPREADSHEET_WORKBOOK_UNREADABLE = ("E-XLS-001", "spreadsheet", "Workbook could not be read")
    SPREADSHEET_TAG_NOT_FOUND = ("E-XLS-002", "spreadsheet", "Question tag was not found")
    SPREADSHEET_TARGET_UNAVAILABLE = ("E-XLS-003", "spreadsheet", "Target company or sheet could not be resolved")

    def __new__(cls, code: str, domain: str, message: str) -> "ErrorCode":
        obj = object.__new__(cls)
        obj._value_ = code
        obj.domain = domain
        obj.message = message
        return obj

    @property
    def label(self) -> str:
        return self.name


__all__ = ["ErrorCode"]
