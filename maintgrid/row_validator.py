from __future__ import annotations

import re
import warnings
from typing import Sequence

import pandas as pd

from maintgrid.field_dictionary import is_date_header, is_numeric_header, is_required_header
from maintgrid.models import ImportIssue

HEADER_ROW_OFFSET = 2

DATE_PATTERNS = [
    (re.compile(r"^\d{4}[-/]\d{1,2}[-/]\d{1,2}$"), "YYYY-MM-DD / YYYY/MM/DD"),
    (re.compile(r"^\d{1,2}[-/]\d{1,2}[-/]\d{4}$"), "MM-DD-YYYY / MM/DD/YYYY"),
    (re.compile(r"^\d{4}年\d{1,2}月\d{1,2}日$"), "YYYY年MM月DD日"),
    (re.compile(r"^\d{4}年\d{1,2}月$"), "YYYY年MM月"),
]

NUMBER_RE = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?$")
NUMBER_NOISE_RE = re.compile(r"[,，¥￥$€£]")


def cell_text(value) -> str:
    if value is None:
        return ""
    return str(value).strip()


def is_empty_row(row: Sequence) -> bool:
    return all(not cell_text(cell) for cell in row)


def looks_like_date(value: str) -> bool:
    if any(pattern.match(value) for pattern, _ in DATE_PATTERNS):
        return True
    # generic parser fallback
    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        try:
            parsed = pd.to_datetime(value, errors="coerce")
        except (ValueError, TypeError, OverflowError):
            return False
    return not pd.isna(parsed)


def looks_like_number(value: str) -> bool:
    cleaned = NUMBER_NOISE_RE.sub("", value)
    return bool(NUMBER_RE.match(cleaned))


def validate_row(row: Sequence, headers: Sequence[str | None], row_number: int) -> list[ImportIssue]:
    if is_empty_row(row):
        return [ImportIssue(row_number, "all", "empty row", "warning")]

    issues: list[ImportIssue] = []
    width = max(len(row), len(headers))
    for index in range(width):
        header = cell_text(headers[index]) if index < len(headers) else ""
        value = cell_text(row[index]) if index < len(row) else ""

        if is_required_header(header) and not value:
            issues.append(ImportIssue(row_number, header, f"Required field is empty: {header}", "error"))
        if value and is_date_header(header) and not looks_like_date(value):
            issues.append(ImportIssue(row_number, header, f"Invalid date format: {value}", "warning"))
        if value and is_numeric_header(header) and not looks_like_number(value):
            issues.append(ImportIssue(row_number, header, f"Invalid number format: {value}", "warning"))
    return issues


def validate_rows(rows: Sequence[Sequence], headers: Sequence[str | None]) -> list[ImportIssue]:
    """
    Check every data row against header-keyword heuristics.

    Rows are numbered as a spreadsheet user sees them: the header occupies
    row 1, so the first data row is row 2. Issues never stop validation of
    later rows.
    """
    issues: list[ImportIssue] = []
    for index, row in enumerate(rows):
        issues.extend(validate_row(row, headers, index + HEADER_ROW_OFFSET))
    return issues
