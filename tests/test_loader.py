from __future__ import annotations

import importlib.util
import io
import unittest
from datetime import datetime
from unittest import mock

from openpyxl import Workbook

from maintgrid.errors import FileAdmissionError
from maintgrid.loader import cell_to_text, decode_table, detect_format

_XLRD_AVAILABLE = importlib.util.find_spec("xlrd") is not None


def workbook_bytes(*sheets: tuple[str, list[list]]) -> bytes:
    wb = Workbook()
    first = True
    for title, rows in sheets:
        ws = wb.active if first else wb.create_sheet()
        ws.title = title
        first = False
        for row in rows:
            ws.append(row)
    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


class DetectFormatTests(unittest.TestCase):
    def test_suffix_wins(self):
        self.assertEqual(detect_format("plan.XLSX"), "xlsx")
        self.assertEqual(detect_format("plan.csv", "application/vnd.ms-excel"), "csv")

    def test_media_type_used_without_suffix(self):
        self.assertEqual(detect_format("upload", "text/csv; charset=utf-8"), "csv")
        self.assertEqual(detect_format("upload", "application/vnd.ms-excel"), "xls")

    def test_unsupported(self):
        self.assertIsNone(detect_format("notes.txt", "text/plain"))
        self.assertIsNone(detect_format("", None))


class CellToTextTests(unittest.TestCase):
    def test_conversions(self):
        self.assertEqual(cell_to_text(None), "")
        self.assertEqual(cell_to_text(3.0), "3")
        self.assertEqual(cell_to_text(2.5), "2.5")
        self.assertEqual(cell_to_text(float("nan")), "")
        self.assertEqual(cell_to_text(datetime(2024, 4, 1)), "2024-04-01")
        self.assertEqual(cell_to_text(datetime(2024, 4, 1, 9, 30)), "2024-04-01 09:30:00")


class DecodeCsvTests(unittest.TestCase):
    def test_utf8_bom_and_trailing_blank_rows(self):
        content = "\ufeff設備ID,設備名\nEQ1,ポンプ\n\n".encode("utf-8")
        table = decode_table(content, filename="plan.csv")
        self.assertEqual(table.detected_format, "csv")
        self.assertEqual(table.rows, [["設備ID", "設備名"], ["EQ1", "ポンプ"]])

    def test_semicolon_delimiter(self):
        content = b"id;name;cost\nEQ1;Pump;100\nEQ2;Fan;200\n"
        table = decode_table(content, filename="plan.csv")
        self.assertEqual(table.delimiter, ";")
        self.assertEqual(table.rows[2], ["EQ2", "Fan", "200"])

    def test_undecodable_bytes_never_raise(self):
        table = decode_table(b"id,name\nEQ1,caf\xe9\n", filename="plan.csv")
        self.assertEqual(table.rows[0], ["id", "name"])
        self.assertEqual(len(table.rows[1]), 2)
        self.assertEqual(table.rows[1][0], "EQ1")

    def test_non_ascii_compatible_guess_is_not_trusted(self):
        with mock.patch("maintgrid.loader.chardet.detect", return_value={"encoding": "cp424"}):
            table = decode_table(b"id,name,cost\nEQ1,caf\xe9,100\n", filename="plan.csv")
        self.assertEqual(table.detected_encoding, "cp1252")
        self.assertEqual(table.rows[1], ["EQ1", "café", "100"])

    def test_ascii_compatible_guess_is_kept(self):
        with mock.patch("maintgrid.loader.chardet.detect", return_value={"encoding": "ISO-8859-1"}):
            table = decode_table(b"id,name\nEQ1,caf\xe9\n", filename="plan.csv")
        self.assertEqual(table.detected_encoding, "ISO-8859-1")
        self.assertEqual(table.rows[1], ["EQ1", "café"])

    def test_interior_blank_rows_kept_trailing_blank_rows_dropped(self):
        table = decode_table(b"id,name\nEQ1,Pump\n,\nEQ2,Fan\n,\n\n", filename="plan.csv")
        self.assertEqual(table.rows, [["id", "name"], ["EQ1", "Pump"], [], ["EQ2", "Fan"]])

    def test_trailing_empty_cells_are_trimmed(self):
        table = decode_table(b"a,b,,\n1,2,,\n", filename="x.csv")
        self.assertEqual(table.rows, [["a", "b"], ["1", "2"]])

    def test_unsupported_format_raises_admission_error(self):
        with self.assertRaises(FileAdmissionError) as ctx:
            decode_table(b"hello", filename="notes.txt")
        self.assertEqual(ctx.exception.column, "file")


class DecodeWorkbookTests(unittest.TestCase):
    def test_first_sheet_is_read_as_strings(self):
        content = workbook_bytes(("Plan", [["設備ID", "費用", "前回保全"], ["EQ1", 80000, datetime(2024, 4, 1)]]))
        table = decode_table(content, filename="plan.xlsx")
        self.assertEqual(table.detected_format, "xlsx")
        self.assertEqual(table.sheet_name, "Plan")
        self.assertEqual(table.rows[1], ["EQ1", "80000", "2024-04-01"])
        self.assertEqual(table.warnings, [])

    def test_extra_sheets_produce_warning(self):
        content = workbook_bytes(("Plan", [["id"], ["EQ1"]]), ("Notes", [["x"]]))
        table = decode_table(content, filename="plan.xlsx")
        self.assertEqual(table.sheet_names, ["Plan", "Notes"])
        self.assertEqual(len(table.warnings), 1)
        self.assertIn("Notes", table.warnings[0])

    def test_missing_xlrd_raises_clear_importerror(self):
        with mock.patch.dict("sys.modules", {"xlrd": None}):
            with self.assertRaisesRegex(ImportError, "xlrd"):
                decode_table(b"\xd0\xcf\x11\xe0", filename="legacy.xls")

    @unittest.skipUnless(_XLRD_AVAILABLE, "xlrd not installed")
    def test_corrupt_xls_raises(self):
        with self.assertRaises(Exception):
            decode_table(b"not an xls file", filename="legacy.xls")


if __name__ == "__main__":
    unittest.main()
