"""Engine settings and fixed tuning constants."""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any

from maintgrid.errors import SettingsError

MAX_FILE_BYTES = 10 * 1024 * 1024

SIMILAR_FACT_DECAY = 0.8
LOW_CONFIDENCE_THRESHOLD = 0.5

PROVENANCE_KEY = "AI提案履歴"
PROVENANCE_ORDER = 999


@dataclass(frozen=True)
class ImportSettings:
    max_file_bytes: int = MAX_FILE_BYTES
    mapping_threshold: float = 0.6
    preview_rows: int = 5
    sample_values: int = 3


DEFAULT_SETTINGS = ImportSettings()


def settings_from_dict(payload: dict[str, Any]) -> ImportSettings:
    known = {item.name for item in fields(ImportSettings)}
    unknown = sorted(set(payload) - known)
    if unknown:
        raise SettingsError(f"Unknown settings keys: {unknown}. Supported: {sorted(known)}")
    try:
        settings = ImportSettings(**payload)
    except TypeError as exc:
        raise SettingsError(f"Invalid settings: {exc}") from exc
    if settings.max_file_bytes <= 0:
        raise SettingsError("max_file_bytes must be positive")
    if not 0.0 <= settings.mapping_threshold < 1.0:
        raise SettingsError("mapping_threshold must be in [0, 1)")
    if settings.preview_rows < 0 or settings.sample_values < 0:
        raise SettingsError("preview_rows and sample_values must not be negative")
    return settings


def load_settings(path: Path | None) -> ImportSettings:
    if path is None:
        return DEFAULT_SETTINGS
    if not path.exists():
        raise SettingsError(f"Settings file not found: {path}")
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise SettingsError(f"Could not read settings: {exc}") from exc
    if not isinstance(payload, dict):
        raise SettingsError("Settings root must be a JSON object.")
    return settings_from_dict(payload)


def settings_to_dict(settings: ImportSettings) -> dict[str, Any]:
    return asdict(settings)
