"""
loader.py: decode uploaded spreadsheet bytes into raw rows

Supports: .csv .xlsx .xls (by extension, or by declared media type when the
name carries no usable extension).

Public API:
    table = decode_table(content, filename="plan.xlsx")
    header, body = table.rows[0], table.rows[1:]

Every cell comes back as a string ("" for blanks). Trailing empty cells are
trimmed from each row and trailing empty rows are dropped, so a row list mirrors
the used range of the sheet. Only the first worksheet of a workbook is read.
"""

from __future__ import annotations

import csv
import io
import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime, time
from pathlib import PurePath
from typing import Optional

import chardet
import pandas as pd
from openpyxl import load_workbook

from maintgrid.errors import FileAdmissionError, NoWorksheetError

logger = logging.getLogger(__name__)

# ── Format groups ──────────────────────────────────────────────────────────────
SUFFIX_FORMATS = {
    ".csv":  "csv",
    ".xlsx": "xlsx",
    ".xls":  "xls",
}
MEDIA_TYPE_FORMATS = {
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": "xlsx",
    "application/vnd.ms-excel": "xls",
    "text/csv": "csv",
}
SUPPORTED_SUFFIXES = tuple(SUFFIX_FORMATS)
SUPPORTED_MEDIA_TYPES = tuple(MEDIA_TYPE_FORMATS)


@dataclass
class DecodedTable:
    rows: list[list[str]]
    detected_format: str
    detected_encoding: Optional[str] = None
    delimiter: Optional[str] = None
    sheet_name: Optional[str] = None
    sheet_names: Optional[list[str]] = None
    warnings: list[str] = field(default_factory=list)


def _base_media_type(media_type: Optional[str]) -> str:
    return (media_type or "").split(";", 1)[0].strip().lower()


def detect_format(filename: str, media_type: Optional[str] = None) -> Optional[str]:
    """Return "csv", "xlsx", "xls", or None when the file is not admissible."""
    suffix = PurePath(filename or "").suffix.lower()
    if suffix in SUFFIX_FORMATS:
        return SUFFIX_FORMATS[suffix]
    return MEDIA_TYPE_FORMATS.get(_base_media_type(media_type))


# ══════════════════════════════════════════════════════════════════════════════
# CELL / ROW NORMALISATION
# ══════════════════════════════════════════════════════════════════════════════

def cell_to_text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        if value.time() == time(0, 0):
            return value.strftime("%Y-%m-%d")
        return value.strftime("%Y-%m-%d %H:%M:%S")
    if isinstance(value, date):
        return value.strftime("%Y-%m-%d")
    if isinstance(value, time):
        return value.strftime("%H:%M:%S")
    if isinstance(value, float):
        if pd.isna(value):
            return ""
        if value.is_integer():
            return str(int(value))
    return str(value).replace("\x00", "")


def _trim_trailing_empty_cells(row: list[str]) -> list[str]:
    trimmed = list(row)
    while trimmed and not trimmed[-1].strip():
        trimmed.pop()
    return trimmed


def _normalise_rows(raw_rows) -> list[list[str]]:
    rows = [_trim_trailing_empty_cells([cell_to_text(value) for value in row]) for row in raw_rows]
    while rows and not rows[-1]:
        rows.pop()
    return rows


# ══════════════════════════════════════════════════════════════════════════════
# TEXT (CSV)
# ══════════════════════════════════════════════════════════════════════════════

ASCII_PROBE = "a,;\t|\"0"


def _reads_ascii_as_ascii(encoding: str) -> bool:
    try:
        return ASCII_PROBE.encode("ascii").decode(encoding) == ASCII_PROBE
    except (LookupError, UnicodeDecodeError):
        return False


def _detect_encoding(raw: bytes) -> str:
    """
    chardet's guess, unless that codec would not keep delimiters intact.

    Short Latin-1 samples can come back as EBCDIC code pages (cp424, cp500);
    those fall back to cp1252 so commas stay commas.
    """
    encoding = chardet.detect(raw).get("encoding") or "utf-8"
    if not _reads_ascii_as_ascii(encoding):
        logger.debug("Ignoring detected encoding %s; it does not map ASCII to itself", encoding)
        return "cp1252"
    return encoding


def _read_text_safely(raw: bytes, preferred_encoding: str) -> str:
    """
    Decode raw bytes line-by-line.

    Strategy per line:
      1. Try UTF-8
      2. Try preferred_encoding (chardet result)
      3. Try latin-1
      4. CP1252 with replace (never crashes)

    Also strips embedded null bytes and a leading BOM.
    """
    decoded_lines: list[str] = []
    for raw_line in raw.split(b"\n"):
        decoded: str | None = None
        for enc in ("utf-8", preferred_encoding, "latin-1"):
            if not enc:
                continue
            try:
                decoded = raw_line.decode(enc)
                break
            except (LookupError, UnicodeDecodeError):
                continue
        if decoded is None:
            decoded = raw_line.decode("cp1252", errors="replace")
        decoded_lines.append(decoded.replace("\x00", ""))
    return "\n".join(decoded_lines).lstrip("\ufeff")


def _detect_delimiter(text: str) -> str:
    """
    Infer CSV delimiter from sample lines.

    Uses csv.Sniffer first; falls back to scoring each candidate delimiter by
    column-count consistency and column width.
    """
    sample_lines = [line for line in text.splitlines() if line.strip()][:50]
    sample = "\n".join(sample_lines[:25])

    if sample:
        try:
            return csv.Sniffer().sniff(sample, delimiters=",;\t|").delimiter
        except csv.Error:
            pass

    best_delim = ","
    best_score = float("-inf")
    for delim in (",", ";", "\t", "|"):
        rows = [
            row
            for row in csv.reader(io.StringIO("\n".join(sample_lines)), delimiter=delim)
            if any(cell.strip() for cell in row)
        ]
        if not rows:
            continue
        mode_width, mode_count = Counter(len(row) for row in rows).most_common(1)[0]
        consistency = mode_count / len(rows)
        score = (mode_width * 2.0) + (consistency * mode_width)
        if mode_width == 1:
            score -= 10.0
        if score > best_score:
            best_score = score
            best_delim = delim
    return best_delim


def _decode_csv(content: bytes) -> DecodedTable:
    encoding = _detect_encoding(content)
    text = _read_text_safely(content, encoding)
    delimiter = _detect_delimiter(text)
    rows = _normalise_rows(csv.reader(io.StringIO(text), delimiter=delimiter))
    return DecodedTable(
        rows=rows,
        detected_format="csv",
        detected_encoding=encoding,
        delimiter=delimiter,
    )


# ══════════════════════════════════════════════════════════════════════════════
# WORKBOOKS
# ══════════════════════════════════════════════════════════════════════════════

def _ignored_sheets_warning(sheet_names: list[str], used: str) -> list[str]:
    if len(sheet_names) <= 1:
        return []
    others = [name for name in sheet_names if name != used]
    return [
        f"Multiple sheets found ({len(sheet_names)} total); "
        f"used '{used}'. Ignored: {others}"
    ]


def _decode_xlsx(content: bytes) -> DecodedTable:
    workbook = load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    try:
        sheet_names = list(workbook.sheetnames)
        if not sheet_names:
            raise NoWorksheetError()
        first = sheet_names[0]
        rows = _normalise_rows(workbook[first].iter_rows(values_only=True))
    finally:
        workbook.close()
    return DecodedTable(
        rows=rows,
        detected_format="xlsx",
        sheet_name=first,
        sheet_names=sheet_names,
        warnings=_ignored_sheets_warning(sheet_names, first),
    )


def _decode_xls(content: bytes) -> DecodedTable:
    # .xls requires xlrd; give a clear error if missing.
    try:
        import xlrd  # noqa: F401
    except ImportError:
        raise ImportError(".xls files require xlrd. Install with: pip install xlrd")

    with pd.ExcelFile(io.BytesIO(content), engine="xlrd") as workbook:
        sheet_names = [str(name) for name in workbook.sheet_names]
        if not sheet_names:
            raise NoWorksheetError()
        first = sheet_names[0]
        df = workbook.parse(workbook.sheet_names[0], header=None, dtype=str)
    rows = _normalise_rows(df.fillna("").itertuples(index=False, name=None))
    return DecodedTable(
        rows=rows,
        detected_format="xls",
        sheet_name=first,
        sheet_names=sheet_names,
        warnings=_ignored_sheets_warning(sheet_names, first),
    )


# ══════════════════════════════════════════════════════════════════════════════
# PUBLIC API
# ══════════════════════════════════════════════════════════════════════════════

def decode_table(
    content: bytes,
    *,
    filename: str,
    media_type: Optional[str] = None,
) -> DecodedTable:
    """
    Decode file content into raw string rows.

    Raises:
        FileAdmissionError  if the format is unsupported.
        NoWorksheetError    if a workbook has no sheets.
        ImportError         if a required optional dependency is missing.
        Any parser error from openpyxl / pandas / xlrd for corrupt content;
        the import orchestrator converts those into a system-level issue.
    """
    detected = detect_format(filename, media_type)
    if detected is None:
        supported = ", ".join(SUPPORTED_SUFFIXES)
        raise FileAdmissionError(f"Unsupported file type '{filename}'. Supported: {supported}")

    logger.debug("Decoding %s as %s (%d bytes)", filename, detected, len(content))
    if detected == "csv":
        return _decode_csv(content)
    if detected == "xlsx":
        return _decode_xlsx(content)
    return _decode_xls(content)
