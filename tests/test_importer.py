from __future__ import annotations

import asyncio
import io
import tempfile
import unittest
from datetime import datetime
from pathlib import Path
from unittest import mock

from openpyxl import Workbook

from maintgrid.errors import NoWorksheetError
from maintgrid.importer import (
    UploadedFile,
    generate_preview_data,
    preview_rows,
    process_file,
)
from maintgrid.models import FieldMapping
from maintgrid.settings import ImportSettings

PLAN_CSV = "設備ID,設備名,費用\nEQ001,ポンプA-1,80000\n,ポンプB,abc\n".encode("utf-8")


def xlsx_upload(rows, name="plan.xlsx") -> UploadedFile:
    wb = Workbook()
    ws = wb.active
    for row in rows:
        ws.append(row)
    buffer = io.BytesIO()
    wb.save(buffer)
    return UploadedFile(name, buffer.getvalue())


def run(coro):
    return asyncio.run(coro)


class ProcessFileTests(unittest.TestCase):
    def test_csv_import_reports_issues_and_mappings(self):
        result = run(process_file(UploadedFile("plan.csv", PLAN_CSV, "text/csv")))

        self.assertFalse(result.success)
        self.assertEqual(result.processed_rows, 2)
        self.assertEqual(result.detected_format, "csv")
        self.assertEqual(
            [(issue.row, issue.column, issue.severity) for issue in result.errors],
            [(3, "設備ID", "error"), (3, "費用", "warning")],
        )
        self.assertEqual(result.error_count, 1)
        self.assertEqual(result.warning_count, 1)

        by_target = {mapping.target_field: mapping for mapping in result.suggestions}
        self.assertEqual(by_target["equipment_id"].confidence, 1.0)
        self.assertEqual(by_target["equipment_id"].sample_values, ("EQ001",))
        self.assertEqual(by_target["maintenance_cost"].source_column, "費用")

    def test_required_cell_missing_fails_import(self):
        upload = UploadedFile("plan.csv", "設備ID,設備名\n,ポンプA-1\n".encode("utf-8"))
        result = run(process_file(upload))
        self.assertFalse(result.success)
        self.assertEqual(len(result.errors), 1)
        self.assertEqual(result.errors[0].column, "設備ID")
        self.assertEqual(result.errors[0].severity, "error")

    def test_xlsx_import_succeeds_with_only_clean_rows(self):
        upload = xlsx_upload([
            ["設備ID", "設備名", "前回保全"],
            ["EQ001", "Pump", datetime(2024, 4, 1)],
            ["EQ002", "Fan", "2024/05/01"],
        ])
        result = run(process_file(upload))
        self.assertTrue(result.success, result.errors)
        self.assertEqual(result.processed_rows, 2)
        self.assertEqual(result.errors, [])
        self.assertEqual(result.detected_format, "xlsx")
        self.assertEqual(result.sheet_name, "Sheet")

    def test_warnings_alone_keep_success(self):
        upload = UploadedFile("plan.csv", "設備ID,費用\nEQ1,abc\n".encode("utf-8"))
        result = run(process_file(upload))
        self.assertTrue(result.success)
        self.assertEqual(result.warning_count, 1)

    def test_blank_row_inside_the_data_is_warned_about(self):
        upload = UploadedFile("plan.csv", "設備ID,設備名\nEQ1,Pump\n,\nEQ2,Fan\n,\n".encode("utf-8"))
        result = run(process_file(upload))
        self.assertTrue(result.success)
        self.assertEqual(result.processed_rows, 3)
        self.assertEqual([(issue.row, issue.column, issue.message) for issue in result.errors],
                         [(3, "all", "empty row")])

    def test_media_type_admits_nameless_upload(self):
        upload = UploadedFile("upload", "設備ID\nEQ1\n".encode("utf-8"), "text/csv")
        result = run(process_file(upload))
        self.assertTrue(result.success)
        self.assertEqual(result.detected_format, "csv")


class AdmissionTests(unittest.TestCase):
    def assert_single_file_issue(self, result, column, fragment):
        self.assertFalse(result.success)
        self.assertEqual(result.processed_rows, 0)
        self.assertEqual(result.suggestions, [])
        self.assertEqual(len(result.errors), 1)
        issue = result.errors[0]
        self.assertEqual((issue.row, issue.column, issue.severity), (0, column, "error"))
        self.assertIn(fragment, issue.message)

    def test_unsupported_type(self):
        result = run(process_file(UploadedFile("notes.txt", b"hello", "text/plain")))
        self.assert_single_file_issue(result, "file", "Unsupported file type")

    def test_oversize_file(self):
        settings = ImportSettings(max_file_bytes=16)
        result = run(process_file(UploadedFile("plan.csv", PLAN_CSV), settings))
        self.assert_single_file_issue(result, "file", "too large")

    def test_unsupported_type_is_checked_before_size(self):
        settings = ImportSettings(max_file_bytes=1)
        result = run(process_file(UploadedFile("notes.txt", b"hello"), settings))
        self.assert_single_file_issue(result, "file", "Unsupported file type")

    def test_header_only_file_has_no_data_rows(self):
        result = run(process_file(UploadedFile("plan.csv", "設備ID,設備名\n".encode("utf-8"))))
        self.assert_single_file_issue(result, "data", "No data rows found.")

    def test_header_with_only_trailing_blank_rows_has_no_data_rows(self):
        result = run(process_file(UploadedFile("plan.csv", "設備ID,設備名\n,\n,\n".encode("utf-8"))))
        self.assert_single_file_issue(result, "data", "No data rows found.")

    def test_empty_file_has_no_data_rows(self):
        result = run(process_file(UploadedFile("plan.csv", b"")))
        self.assert_single_file_issue(result, "data", "No data rows found.")

    def test_workbook_without_sheet(self):
        with mock.patch("maintgrid.importer.decode_table", side_effect=NoWorksheetError()):
            result = run(process_file(UploadedFile("plan.xlsx", b"PK")))
        self.assert_single_file_issue(result, "sheet", "No worksheet")

    def test_corrupt_workbook_becomes_system_issue(self):
        with self.assertLogs("maintgrid.importer", level="ERROR"):
            result = run(process_file(UploadedFile("plan.xlsx", b"this is not a zip archive")))
        self.assert_single_file_issue(result, "system", "An error occurred while processing the file")

    def test_from_path_guesses_media_type(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "plan.csv"
            path.write_bytes(PLAN_CSV)
            upload = UploadedFile.from_path(path)
        self.assertEqual(upload.name, "plan.csv")
        self.assertEqual(upload.size, len(PLAN_CSV))
        self.assertEqual(upload.media_type, "text/csv")


class PreviewTests(unittest.TestCase):
    def test_preview_keys_rows_by_mapped_field(self):
        upload = UploadedFile("plan.csv", PLAN_CSV)
        result = run(process_file(upload))
        preview = run(generate_preview_data(upload, result.suggestions))
        self.assertEqual(preview, [
            {"equipment_id": "EQ001", "equipment_name": "ポンプA-1", "maintenance_cost": "80000"},
            {"equipment_id": "", "equipment_name": "ポンプB", "maintenance_cost": "abc"},
        ])

    def test_preview_is_limited_to_five_rows(self):
        lines = ["設備ID"] + [f"EQ{index}" for index in range(8)]
        upload = UploadedFile("plan.csv", "\n".join(lines).encode("utf-8"))
        preview = run(generate_preview_data(upload, []))
        self.assertEqual(len(preview), 5)
        self.assertEqual(preview[0], {"設備ID": "EQ0"})

    def test_unmapped_columns_keep_header_and_short_rows_get_none(self):
        rows = [["設備ID", "memo"], ["EQ1"]]
        mappings = [FieldMapping("設備ID", "equipment_id", 1.0)]
        self.assertEqual(preview_rows(rows, mappings), [{"equipment_id": "EQ1", "memo": None}])

    def test_preview_failure_returns_empty_list(self):
        with self.assertLogs("maintgrid.importer", level="ERROR"):
            preview = run(generate_preview_data(UploadedFile("plan.xlsx", b"garbage"), []))
        self.assertEqual(preview, [])


if __name__ == "__main__":
    unittest.main()
