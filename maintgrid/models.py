from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional, Sequence

ACTIONS = ("plan", "actual", "both")
SEVERITIES = ("error", "warning")

TimeKey = str


# ══════════════════════════════════════════════════════════════════════════════
# IMPORT
# ══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ImportIssue:
    row: int
    column: str
    message: str
    severity: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "row": self.row,
            "column": self.column,
            "message": self.message,
            "severity": self.severity,
        }


@dataclass(frozen=True)
class FieldMapping:
    source_column: str
    target_field: str
    confidence: float
    sample_values: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "sourceColumn": self.source_column,
            "targetField": self.target_field,
            "confidence": round(self.confidence, 4),
            "sampleValues": list(self.sample_values),
        }


@dataclass
class ImportResult:
    success: bool
    processed_rows: int
    errors: list[ImportIssue] = field(default_factory=list)
    suggestions: list[FieldMapping] = field(default_factory=list)
    detected_format: Optional[str] = None
    sheet_name: Optional[str] = None
    warnings: list[str] = field(default_factory=list)

    @property
    def error_count(self) -> int:
        return sum(1 for issue in self.errors if issue.severity == "error")

    @property
    def warning_count(self) -> int:
        return sum(1 for issue in self.errors if issue.severity == "warning")

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "processedRows": self.processed_rows,
            "errors": [issue.to_dict() for issue in self.errors],
            "suggestions": [mapping.to_dict() for mapping in self.suggestions],
            "detectedFormat": self.detected_format,
            "sheetName": self.sheet_name,
            "warnings": list(self.warnings),
        }


def failed_import(issue: ImportIssue) -> ImportResult:
    return ImportResult(success=False, processed_rows=0, errors=[issue], suggestions=[])


# ══════════════════════════════════════════════════════════════════════════════
# EQUIPMENT TREE
# ══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class PeriodResult:
    planned: bool = False
    actual: bool = False
    plan_cost: float = 0
    actual_cost: float = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "planned": self.planned,
            "actual": self.actual,
            "planCost": self.plan_cost,
            "actualCost": self.actual_cost,
        }


EMPTY_PERIOD = PeriodResult()


@dataclass(frozen=True)
class Specification:
    key: str
    value: str
    order: int = 0


@dataclass(frozen=True)
class EquipmentNode:
    """
    One unit of the equipment hierarchy.

    `results` holds the node's own facts (meaningful on leaves);
    `rolled_up_results` is the aggregate over the subtree and stays None on
    leaves. Instances are never changed after construction: updates build new
    nodes and reuse untouched ones.
    """

    id: str
    display_name: str
    alternate_code: Optional[str] = None
    specifications: tuple[Specification, ...] = ()
    children: tuple["EquipmentNode", ...] = ()
    results: Mapping[TimeKey, PeriodResult] = field(default_factory=dict)
    rolled_up_results: Optional[Mapping[TimeKey, PeriodResult]] = None

    def __post_init__(self) -> None:
        # read-only copies, so callers cannot edit a node through its mappings
        object.__setattr__(self, "children", tuple(self.children))
        object.__setattr__(self, "results", MappingProxyType(dict(self.results)))
        if self.rolled_up_results is not None:
            object.__setattr__(self, "rolled_up_results", MappingProxyType(dict(self.rolled_up_results)))

    @property
    def is_leaf(self) -> bool:
        return not self.children

    def result_for(self, time_key: TimeKey) -> PeriodResult:
        return self.results.get(time_key, EMPTY_PERIOD)


Tree = tuple[EquipmentNode, ...]


@dataclass(frozen=True)
class MaintenanceFact:
    equipment_id: str
    time_header: TimeKey
    action: str
    confidence: float
    reason: str
    cost: Optional[float] = None


@dataclass(frozen=True)
class ApplyResult:
    success: bool
    message: str
    tree: Sequence[EquipmentNode]
    updated_node: Optional[EquipmentNode] = None


@dataclass(frozen=True)
class BatchApplyResult:
    success: bool
    message: str
    applied_count: int
    errors: tuple[str, ...]
    tree: Sequence[EquipmentNode]


@dataclass(frozen=True)
class FactValidation:
    is_valid: bool
    warnings: tuple[str, ...] = ()


# ══════════════════════════════════════════════════════════════════════════════
# DICT CONVERSION (camelCase JSON shape used by the grid front end)
# ══════════════════════════════════════════════════════════════════════════════

def _number(value: Any, label: str) -> float:
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{label} must be a number, got {value!r}")
    return value


def _mapping(value: Any, label: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise ValueError(f"{label} must be a JSON object, got {value!r}")
    return value


def _items(value: Any, label: str) -> list:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"{label} must be a JSON array, got {value!r}")
    return value


def period_from_dict(payload: Mapping[str, Any]) -> PeriodResult:
    payload = _mapping(payload, "Period result")
    return PeriodResult(
        planned=bool(payload.get("planned", False)),
        actual=bool(payload.get("actual", False)),
        plan_cost=_number(payload.get("planCost"), "planCost"),
        actual_cost=_number(payload.get("actualCost"), "actualCost"),
    )


def _periods_from_dict(payload: Optional[Mapping[str, Any]], label: str) -> dict[TimeKey, PeriodResult]:
    if payload is None:
        return {}
    return {str(key): period_from_dict(value) for key, value in _mapping(payload, label).items()}


def _specification_from_dict(payload: Any) -> Specification:
    payload = _mapping(payload, "Specification")
    return Specification(
        key=str(payload["key"]),
        value=str(payload.get("value", "")),
        order=int(payload.get("order", 0)),
    )


def node_from_dict(payload: Mapping[str, Any]) -> EquipmentNode:
    payload = _mapping(payload, "Equipment node")
    if "id" not in payload:
        raise ValueError(f"Equipment node is missing 'id': {dict(payload)!r}")
    children = tuple(node_from_dict(child) for child in _items(payload.get("children"), "children"))
    rolled = payload.get("rolledUpResults")
    return EquipmentNode(
        id=str(payload["id"]),
        display_name=str(payload.get("displayName", payload.get("task", ""))),
        alternate_code=payload.get("alternateCode", payload.get("bomCode")) or None,
        specifications=tuple(
            _specification_from_dict(item)
            for item in _items(payload.get("specifications"), "specifications")
        ),
        children=children,
        results=_periods_from_dict(payload.get("results"), "results"),
        rolled_up_results=_periods_from_dict(rolled, "rolledUpResults") if children and rolled is not None else None,
    )


def node_to_dict(node: EquipmentNode) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "id": node.id,
        "displayName": node.display_name,
        "alternateCode": node.alternate_code,
        "specifications": [
            {"key": spec.key, "value": spec.value, "order": spec.order}
            for spec in node.specifications
        ],
        "children": [node_to_dict(child) for child in node.children],
        "results": {key: value.to_dict() for key, value in node.results.items()},
    }
    if node.rolled_up_results is not None:
        payload["rolledUpResults"] = {
            key: value.to_dict() for key, value in node.rolled_up_results.items()
        }
    return payload


def tree_from_dicts(payload: Sequence[Mapping[str, Any]]) -> Tree:
    return tuple(node_from_dict(item) for item in payload)


def tree_to_dicts(tree: Sequence[EquipmentNode]) -> list[dict[str, Any]]:
    return [node_to_dict(node) for node in tree]


def fact_from_dict(payload: Mapping[str, Any]) -> MaintenanceFact:
    payload = _mapping(payload, "Fact")
    action =payload.get("action", payload.get("suggestedAction"))
    if action not in ACTIONS:
        raise ValueError(f"Unknown action {action!r}; expected one of {list(ACTIONS)}")
    for key in ("equipmentId", "timeHeader"):
        if not payload.get(key):
            raise ValueError(f"Fact is missing '{key}'")
    cost = payload.get("cost")
    return MaintenanceFact(
        equipment_id=str(payload["equipmentId"]),
        time_header=str(payload["timeHeader"]),
        action=action,
        confidence=float(payload.get("confidence", 1.0)),
        reason=str(payload.get("reason", "")),
        cost=None if cost is None else _number(cost, "cost"),
    )


def fact_to_dict(fact: MaintenanceFact) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "equipmentId": fact.equipment_id,
        "timeHeader": fact.time_header,
        "action": fact.action,
        "confidence": round(fact.confidence, 4),
        "reason": fact.reason,
    }
    if fact.cost is not None:
        payload["cost"] = fact.cost
    return payload
