from __future__ import annotations

import json
import tempfile
import unittest
from pathlib import Path

from maintgrid.errors import (
    DecodeFailure,
    EquipmentNotFound,
    ErrorKind,
    FileAdmissionError,
    NoWorksheetError,
    SettingsError,
    classify_exception,
)
from maintgrid.settings import (
    DEFAULT_SETTINGS,
    MAX_FILE_BYTES,
    ImportSettings,
    load_settings,
    settings_from_dict,
    settings_to_dict,
)


class SettingsTests(unittest.TestCase):
    def test_defaults(self):
        self.assertEqual(DEFAULT_SETTINGS.max_file_bytes, MAX_FILE_BYTES)
        self.assertEqual(MAX_FILE_BYTES, 10 * 1024 * 1024)
        self.assertEqual(DEFAULT_SETTINGS.mapping_threshold, 0.6)
        self.assertEqual(DEFAULT_SETTINGS.preview_rows, 5)

    def test_load_none_returns_defaults(self):
        self.assertIs(load_settings(None), DEFAULT_SETTINGS)

    def test_load_from_file(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "settings.json"
            path.write_text(json.dumps({"preview_rows": 2, "mapping_threshold": 0.7}), encoding="utf-8")
            settings = load_settings(path)
        self.assertEqual(settings, ImportSettings(preview_rows=2, mapping_threshold=0.7))

    def test_round_trip_through_dict(self):
        self.assertEqual(settings_from_dict(settings_to_dict(DEFAULT_SETTINGS)), DEFAULT_SETTINGS)

    def test_rejections(self):
        cases = [
            {"unknown": 1},
            {"mapping_threshold": 1.5},
            {"max_file_bytes": 0},
            {"preview_rows": -1},
        ]
        for payload in cases:
            with self.subTest(payload=payload):
                with self.assertRaises(SettingsError):
                    settings_from_dict(payload)

    def test_bad_files(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            missing = Path(tmpdir) / "missing.json"
            with self.assertRaises(SettingsError):
                load_settings(missing)
            broken = Path(tmpdir) / "broken.json"
            broken.write_text("{not json", encoding="utf-8")
            with self.assertRaises(SettingsError):
                load_settings(broken)
            listing = Path(tmpdir) / "list.json"
            listing.write_text("[]", encoding="utf-8")
            with self.assertRaisesRegex(SettingsError, "JSON object"):
                load_settings(listing)


class ErrorTaxonomyTests(unittest.TestCase):
    def test_admission_errors_carry_column(self):
        self.assertEqual(FileAdmissionError("x").column, "file")
        self.assertEqual(FileAdmissionError("x", column="data").column, "data")
        self.assertEqual(NoWorksheetError().column, "sheet")

    def test_equipment_not_found_message(self):
        self.assertEqual(str(EquipmentNotFound("EQ-9")), 'Equipment ID "EQ-9" was not found.')

    def test_classify_exception(self):
        self.assertEqual(classify_exception(FileAdmissionError("x")), ErrorKind.FILE_PROCESSING)
        self.assertEqual(classify_exception(DecodeFailure("x")), ErrorKind.FILE_PROCESSING)
        self.assertEqual(classify_exception(EquipmentNotFound("x")), ErrorKind.INTEGRATION)
        self.assertEqual(classify_exception(SettingsError("x")), ErrorKind.VALIDATION)
        self.assertEqual(classify_exception(RuntimeError("could not apply suggestion")),
                         ErrorKind.SUGGESTION_APPLICATION)
        self.assertEqual(classify_exception(RuntimeError("boom")), ErrorKind.UNKNOWN)


if __name__ == "__main__":
    unittest.main()
