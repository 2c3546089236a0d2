"""
Error taxonomy for maintgrid.

Admission and decode errors are raised inside the import pipeline and turned
into ImportIssue records at the orchestrator boundary; tree errors are turned
into structured ApplyResult failures. Nothing here escapes the public entry
points as an uncaught exception.
"""

from __future__ import annotations

from enum import Enum


class MaintgridError(Exception):
    pass


class SettingsError(MaintgridError):
    pass


class FileAdmissionError(MaintgridError):
    """File-level rejection reported as a single error issue."""

    def __init__(self, message: str, column: str = "file") -> None:
        super().__init__(message)
        self.column = column


class NoWorksheetError(FileAdmissionError):
    def __init__(self, message: str = "No worksheet found.") -> None:
        super().__init__(message, column="sheet")


class DecodeFailure(MaintgridError):
    pass


class EquipmentNotFound(MaintgridError):
    def __init__(self, equipment_id: str) -> None:
        super().__init__(f'Equipment ID "{equipment_id}" was not found.')
        self.equipment_id = equipment_id


class ErrorKind(str, Enum):
    FILE_PROCESSING = "file_processing"
    VALIDATION = "validation"
    INTEGRATION = "integration"
    SUGGESTION_APPLICATION = "suggestion_application"
    UNKNOWN = "unknown"


ERROR_HINTS = {
    ErrorKind.FILE_PROCESSING: (
        "Check the file type (.xlsx, .xls, .csv)",
        "Check the file is 10 MB or smaller",
        "Check the file is not corrupted",
    ),
    ErrorKind.VALIDATION: (
        "Check the input values",
        "Check that required fields are filled in",
    ),
    ErrorKind.INTEGRATION: (
        "Check the equipment ID exists in the tree",
        "Check the time header",
    ),
    ErrorKind.SUGGESTION_APPLICATION: (
        "Check the suggested action and cost",
        "Check the target equipment",
    ),
    ErrorKind.UNKNOWN: ("Re-run with --verbose for details",),
}


def classify_exception(exc: BaseException) -> ErrorKind:
    if isinstance(exc, (FileAdmissionError, DecodeFailure, UnicodeDecodeError, ImportError)):
        return ErrorKind.FILE_PROCESSING
    if isinstance(exc, EquipmentNotFound):
        return ErrorKind.INTEGRATION
    if isinstance(exc, (SettingsError, ValueError, KeyError, TypeError)):
        return ErrorKind.VALIDATION

    message = str(exc).lower()
    if "file" in message or "excel" in message:
        return ErrorKind.FILE_PROCESSING
    if "tree" in message or "equipment" in message:
        return ErrorKind.INTEGRATION
    if "suggestion" in message or "apply" in message:
        return ErrorKind.SUGGESTION_APPLICATION
    return ErrorKind.UNKNOWN
