"""
Import orchestrator: admission checks, decode, header/body split, field
mapping, row validation, result assembly.

Decoding is the only step that suspends; everything after it is synchronous.
File-level problems never raise past process_file(); they come back as a
single error-severity ImportIssue with success=False.
"""

from __future__ import annotations

import asyncio
import logging
import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Sequence

from maintgrid.errors import DecodeFailure, FileAdmissionError
from maintgrid.field_mapper import attach_sample_values, suggest_mappings
from maintgrid.loader import DecodedTable, decode_table, detect_format
from maintgrid.models import FieldMapping, ImportIssue, ImportResult, failed_import
from maintgrid.row_validator import validate_rows
from maintgrid.settings import DEFAULT_SETTINGS, ImportSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UploadedFile:
    name: str
    content: bytes
    media_type: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.content)

    @classmethod
    def from_path(cls, path: "str | Path", media_type: Optional[str] = None) -> "UploadedFile":
        path = Path(path)
        if media_type is None:
            media_type, _ = mimetypes.guess_type(path.name)
        return cls(name=path.name, content=path.read_bytes(), media_type=media_type)


def admit(upload: UploadedFile, settings: ImportSettings) -> None:
    if detect_format(upload.name, upload.media_type) is None:
        raise FileAdmissionError(
            "Unsupported file type. Upload an Excel (.xlsx, .xls) or CSV (.csv) file."
        )
    if upload.size > settings.max_file_bytes:
        limit_mb = settings.max_file_bytes / (1024 * 1024)
        raise FileAdmissionError(
            f"File is too large ({upload.size} bytes). Upload a file of {limit_mb:g} MB or less."
        )


async def _decode(upload: UploadedFile) -> DecodedTable:
    return await asyncio.to_thread(
        decode_table,
        upload.content,
        filename=upload.name,
        media_type=upload.media_type,
    )


def split_table(rows: Sequence[Sequence[str]]) -> tuple[list[str], list[list[str]]]:
    if len(rows) < 2:
        raise FileAdmissionError("No data rows found.", column="data")
    return list(rows[0]), [list(row) for row in rows[1:]]


def build_result(
    table: DecodedTable,
    settings: ImportSettings = DEFAULT_SETTINGS,
) -> ImportResult:
    header, body = split_table(table.rows)

    mappings = suggest_mappings(header, threshold=settings.mapping_threshold)
    mappings = attach_sample_values(mappings, header, body, settings.sample_values)
    # Validation classifies by header text, independent of the mapping above.
    issues = validate_rows(body, header)

    return ImportResult(
        success=not any(issue.severity == "error" for issue in issues),
        processed_rows=len(body),
        errors=issues,
        suggestions=mappings,
        detected_format=table.detected_format,
        sheet_name=table.sheet_name,
        warnings=list(table.warnings),
    )


async def process_file(
    upload: UploadedFile,
    settings: Optional[ImportSettings] = None,
) -> ImportResult:
    settings = settings or DEFAULT_SETTINGS
    try:
        admit(upload, settings)
        table = await _decode(upload)
        result = build_result(table, settings)
    except FileAdmissionError as exc:
        logger.info("Rejected %s: %s", upload.name, exc)
        return failed_import(ImportIssue(0, exc.column, str(exc), "error"))
    except Exception as exc:
        failure = DecodeFailure(str(exc) or type(exc).__name__)
        failure.__cause__ = exc
        logger.exception("Failed to process %s", upload.name)
        return failed_import(
            ImportIssue(0, "system", f"An error occurred while processing the file: {failure}", "error")
        )

    logger.info(
        "Imported %s: %d rows, %d errors, %d warnings, %d mapping suggestions",
        upload.name,
        result.processed_rows,
        result.error_count,
        result.warning_count,
        len(result.suggestions),
    )
    return result


def preview_rows(
    rows: Sequence[Sequence[str]],
    mappings: Sequence[FieldMapping],
    limit: int = DEFAULT_SETTINGS.preview_rows,
) -> list[dict[str, Any]]:
    if not rows:
        return []
    header = [cell.strip() for cell in rows[0]]
    targets: dict[str, str] = {}
    for mapping in mappings:
        targets.setdefault(mapping.source_column, mapping.target_field)

    preview: list[dict[str, Any]] = []
    for row in rows[1:limit + 1]:
        mapped: dict[str, Any] = {}
        for index, column in enumerate(header):
            key = targets.get(column, column)
            mapped[key] = row[index] if index < len(row) else None
        preview.append(mapped)
    return preview


async def generate_preview_data(
    upload: UploadedFile,
    mappings: Sequence[FieldMapping],
    settings: Optional[ImportSettings] = None,
) -> list[dict[str, Any]]:
    settings = settings or DEFAULT_SETTINGS
    try:
        table = await _decode(upload)
    except Exception:
        logger.exception("Preview generation failed for %s", upload.name)
        return []
    return preview_rows(table.rows, mappings, settings.preview_rows)
