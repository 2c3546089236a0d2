"""
Canonical equipment/maintenance fields and their known header synonyms.

This table is the only configuration surface of the field mapper. Bump
FIELD_DICTIONARY_VERSION whenever a field or synonym changes so saved mapping
reports can be traced back to the table that produced them.
"""

from __future__ import annotations

from types import MappingProxyType

FIELD_DICTIONARY_VERSION = "1.0.0"

CANONICAL_FIELDS = MappingProxyType({
    # identity / classification
    "equipment_id": ("設備ID", "機器ID", "Equipment ID", "ID", "equipment_code", "設備コード"),
    "equipment_name": ("設備名", "機器名", "Equipment Name", "Name", "名称", "機器名称"),
    "equipment_type": ("設備種別", "機器種別", "Type", "Equipment Type", "種別", "タイプ"),
    "location": ("設置場所", "場所", "Location", "Plant", "プラント", "工場"),
    "manufacturer": ("メーカー", "Manufacturer", "Maker", "製造元"),
    "model": ("型式", "Model", "機種", "モデル"),
    "serial_number": ("シリアル番号", "Serial Number", "S/N", "Serial"),
    # maintenance
    "maintenance_cycle": ("保全周期", "Cycle", "周期", "Maintenance Cycle", "メンテナンス周期"),
    "last_maintenance": ("前回保全", "Last Maintenance", "最終メンテナンス", "前回メンテナンス"),
    "next_maintenance": ("次回保全", "Next Maintenance", "次回メンテナンス"),
    "maintenance_cost": ("保全費用", "Cost", "Maintenance Cost", "コスト", "費用"),
    "maintenance_type": ("保全種別", "Maintenance Type", "保全タイプ", "メンテナンス種別"),
    # dates
    "date": ("日付", "Date", "年月", "実施日"),
    "year": ("年", "Year", "年度"),
    "month": ("月", "Month"),
    # plan / actual
    "planned": ("計画", "Plan", "Planned", "予定"),
    "actual": ("実績", "Actual", "実施", "完了"),
    "status": ("状態", "Status", "ステータス"),
    "result": ("結果", "Result", "判定"),
})

# Header keyword heuristics used by the row validator. A header belongs to a
# class when it contains any keyword (case-insensitive).
REQUIRED_HEADER_KEYWORDS = ("設備ID", "機器ID", "Equipment ID", "ID", "設備名", "機器名")
DATE_HEADER_KEYWORDS = ("日付", "date", "年月", "実施日", "maintenance", "保全")
NUMERIC_HEADER_KEYWORDS = ("費用", "cost", "コスト", "金額", "周期", "cycle")


def _header_contains(header: str | None, keywords) -> bool:
    lowered = (header or "").strip().lower()
    if not lowered:
        return False
    return any(keyword.lower() in lowered for keyword in keywords)


def is_required_header(header: str | None) -> bool:
    return _header_contains(header, REQUIRED_HEADER_KEYWORDS)


def is_date_header(header: str | None) -> bool:
    return _header_contains(header, DATE_HEADER_KEYWORDS)


def is_numeric_header(header: str | None) -> bool:
    return _header_contains(header, NUMERIC_HEADER_KEYWORDS)


def field_ids() -> list[str]:
    return list(CANONICAL_FIELDS)
