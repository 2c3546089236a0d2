from __future__ import annotations

import logging
import re
from datetime import date
from typing import Callable, Iterable, Optional, Sequence

from maintgrid.errors import EquipmentNotFound
from maintgrid.hierarchy import apply_fact_to_node, find_equipment, locate, node_at, replace_at, roll_up
from maintgrid.models import (
    ACTIONS,
    ApplyResult,
    BatchApplyResult,
    EquipmentNode,
    FactValidation,
    MaintenanceFact,
)
from maintgrid.settings import LOW_CONFIDENCE_THRESHOLD, SIMILAR_FACT_DECAY

logger = logging.getLogger(__name__)

TIME_HEADER_RE = re.compile(r"^\d{4}-\d{2}$")


def _rejection(fact: MaintenanceFact) -> Optional[str]:
    if fact.action not in ACTIONS:
        return f"Unknown action {fact.action!r}."
    if fact.cost is not None and fact.cost < 0:
        return "Cost must not be negative."
    return None


def apply_fact(
    tree: Sequence[EquipmentNode],
    fact: MaintenanceFact,
    applied_on: Optional[date] = None,
) -> ApplyResult:
    """
    Fold one maintenance fact into the tree and recompute the rollups.

    On failure the returned tree is the caller's own object, unchanged.
    """
    rejection = _rejection(fact)
    if rejection:
        return ApplyResult(success=False, message=rejection, tree=tree)

    path = locate(tree, fact.equipment_id)
    if path is None:
        return ApplyResult(success=False, message=str(EquipmentNotFound(fact.equipment_id)), tree=tree)

    updated = apply_fact_to_node(node_at(tree, path), fact, applied_on)
    new_tree = roll_up(replace_at(tree, path, updated))
    logger.debug("Applied %s to %s at %s", fact.action, updated.id, fact.time_header)
    return ApplyResult(
        success=True,
        message=f"Applied suggestion to {fact.equipment_id} for {fact.time_header}.",
        tree=new_tree,
        updated_node=node_at(new_tree, path),
    )


def apply_facts(
    tree: Sequence[EquipmentNode],
    facts: Iterable[MaintenanceFact],
    applied_on: Optional[date] = None,
    on_progress: Optional[Callable[[int, int], None]] = None,
) -> BatchApplyResult:
    """Apply facts one after another, each against the previous output tree."""
    facts = list(facts)
    current = tree
    applied = 0
    errors: list[str] = []
    for index, fact in enumerate(facts, start=1):
        result = apply_fact(current, fact, applied_on)
        if result.success:
            applied += 1
            current = result.tree
        else:
            errors.append(f"{fact.equipment_id}: {result.message}")
        if on_progress is not None:
            on_progress(index, len(facts))

    logger.info("Applied %d/%d facts", applied, len(facts))
    return BatchApplyResult(
        success=applied > 0,
        message=f"Applied {applied}/{len(facts)} suggestions.",
        applied_count=applied,
        errors=tuple(errors),
        tree=current,
    )


def validate_fact(fact: MaintenanceFact, tree: Sequence[EquipmentNode]) -> FactValidation:
    warnings: list[str] = []
    is_valid = True

    if find_equipment(tree, fact.equipment_id) is None:
        warnings.append(f'Equipment ID "{fact.equipment_id}" was not found')
        is_valid = False
    if fact.action not in ACTIONS:
        warnings.append(f"Unknown action {fact.action!r}")
        is_valid = False
    if fact.confidence < LOW_CONFIDENCE_THRESHOLD:
        warnings.append(f"Low confidence suggestion ({round(fact.confidence * 100)}%)")
    if fact.cost is not None and fact.cost < 0:
        warnings.append("Cost is negative")
        is_valid = False
    if not TIME_HEADER_RE.match(fact.time_header):
        warnings.append(f"Time header is not in YYYY-MM form: {fact.time_header}")

    return FactValidation(is_valid=is_valid, warnings=tuple(warnings))


def find_similar_facts(fact: MaintenanceFact, tree: Sequence[EquipmentNode]) -> list[MaintenanceFact]:
    """
    Propose the same action for the equipment's other open periods.

    Only periods already present in the node's own results qualify, and only
    when neither planned nor actual is set there.
    """
    equipment = find_equipment(tree, fact.equipment_id)
    if equipment is None or fact.confidence <= 0:
        return []

    similar: list[MaintenanceFact] = []
    for time_key, result in equipment.results.items():
        if time_key == fact.time_header or result.planned or result.actual:
            continue
        similar.append(
            MaintenanceFact(
                equipment_id=fact.equipment_id,
                time_header=time_key,
                action=fact.action,
                confidence=fact.confidence * SIMILAR_FACT_DECAY,
                reason=f"Similar pattern: {fact.reason}",
                cost=fact.cost,
            )
        )
    return similar
