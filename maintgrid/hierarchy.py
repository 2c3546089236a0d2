"""
Pure operations over the equipment tree.

A tree is a tuple of root EquipmentNodes. Nothing here mutates a node: every
update returns new nodes along the changed path and reuses every untouched
subtree object as-is.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date
from typing import Iterator, Optional, Sequence

from maintgrid.models import (
    EMPTY_PERIOD,
    EquipmentNode,
    MaintenanceFact,
    PeriodResult,
    Specification,
    TimeKey,
    Tree,
)
from maintgrid.settings import PROVENANCE_KEY, PROVENANCE_ORDER

Path = tuple[int, ...]


# ══════════════════════════════════════════════════════════════════════════════
# LOCATOR
# ══════════════════════════════════════════════════════════════════════════════

def walk(tree: Sequence[EquipmentNode], prefix: Path = ()) -> Iterator[tuple[Path, EquipmentNode]]:
    """Depth-first, pre-order traversal yielding (index path, node)."""
    for index, node in enumerate(tree):
        path = prefix + (index,)
        yield path, node
        yield from walk(node.children, path)


def locate(tree: Sequence[EquipmentNode], token: str) -> Optional[Path]:
    """
    Find the path of the node a lookup token refers to.

    An exact id / alternate code match anywhere in the tree beats a partial
    display-name match; within each pass the first node in pre-order wins.
    """
    if not token:
        return None
    for path, node in walk(tree):
        if node.id == token or (node.alternate_code is not None and node.alternate_code == token):
            return path
    for path, node in walk(tree):
        if token in node.display_name:
            return path
    return None


def node_at(tree: Sequence[EquipmentNode], path: Path) -> EquipmentNode:
    nodes = tree
    node = None
    for index in path:
        node = nodes[index]
        nodes = node.children
    if node is None:
        raise IndexError("empty path")
    return node


def find_equipment(tree: Sequence[EquipmentNode], token: str) -> Optional[EquipmentNode]:
    path = locate(tree, token)
    return None if path is None else node_at(tree, path)


# ══════════════════════════════════════════════════════════════════════════════
# NODE MUTATOR
# ══════════════════════════════════════════════════════════════════════════════

def apply_to_period(current: PeriodResult, action: str, cost: Optional[float]) -> PeriodResult:
    if action == "plan":
        updated = replace(current, planned=True)
        if cost is not None:
            updated = replace(updated, plan_cost=cost)
    elif action == "actual":
        updated = replace(current, actual=True)
        if cost is not None:
            updated = replace(updated, actual_cost=cost)
    elif action == "both":
        # the cost is not split between plan and actual
        updated = replace(current, planned=True, actual=True)
        if cost is not None:
            updated = replace(updated, plan_cost=cost, actual_cost=cost)
    else:
        raise ValueError(f"Unknown action: {action!r}")
    return updated


def with_provenance(
    specifications: tuple[Specification, ...],
    reason: str,
    applied_on: Optional[date] = None,
) -> tuple[Specification, ...]:
    if any(spec.key == PROVENANCE_KEY for spec in specifications):
        return specifications
    value = f"{applied_on.isoformat()}: {reason}" if applied_on else reason
    return specifications + (Specification(PROVENANCE_KEY, value, PROVENANCE_ORDER),)


def apply_fact_to_node(
    node: EquipmentNode,
    fact: MaintenanceFact,
    applied_on: Optional[date] = None,
) -> EquipmentNode:
    current = node.results.get(fact.time_header, EMPTY_PERIOD)
    results = dict(node.results)
    results[fact.time_header] = apply_to_period(current, fact.action, fact.cost)
    return replace(
        node,
        results=results,
        specifications=with_provenance(node.specifications, fact.reason, applied_on),
    )


def replace_at(tree: Sequence[EquipmentNode], path: Path, new_node: EquipmentNode) -> Tree:
    if not path:
        raise ValueError("path must not be empty")
    index, rest = path[0], path[1:]
    nodes = tuple(tree)
    if rest:
        target = nodes[index]
        new_node = replace(target, children=replace_at(target.children, rest, new_node))
    return nodes[:index] + (new_node,) + nodes[index + 1:]


# ══════════════════════════════════════════════════════════════════════════════
# ROLLUP
# ══════════════════════════════════════════════════════════════════════════════

def _child_contribution(child: EquipmentNode, time_key: TimeKey) -> PeriodResult:
    if not child.is_leaf and child.rolled_up_results and time_key in child.rolled_up_results:
        return child.rolled_up_results[time_key]
    return child.results.get(time_key, EMPTY_PERIOD)


def aggregate_children(children: Sequence[EquipmentNode]) -> dict[TimeKey, PeriodResult]:
    time_keys: dict[TimeKey, None] = {}
    for child in children:
        time_keys.update(dict.fromkeys(child.results))
        time_keys.update(dict.fromkeys(child.rolled_up_results or {}))

    rolled: dict[TimeKey, PeriodResult] = {}
    for time_key in time_keys:
        planned = actual = False
        plan_cost = actual_cost = 0
        for child in children:
            own = child.results.get(time_key, EMPTY_PERIOD)
            contribution = _child_contribution(child, time_key)
            planned = planned or own.planned or contribution.planned
            actual = actual or own.actual or contribution.actual
            plan_cost += contribution.plan_cost
            actual_cost += contribution.actual_cost
        rolled[time_key] = PeriodResult(planned, actual, plan_cost, actual_cost)
    return rolled


def roll_up_node(node: EquipmentNode) -> EquipmentNode:
    if node.is_leaf:
        return node
    children = tuple(roll_up_node(child) for child in node.children)
    rolled = aggregate_children(children)
    unchanged_children = all(new is old for new, old in zip(children, node.children))
    if unchanged_children and node.rolled_up_results is not None and dict(node.rolled_up_results) == rolled:
        return node
    return replace(node, children=children, rolled_up_results=rolled)


def roll_up(tree: Sequence[EquipmentNode]) -> Tree:
    """Recompute every branch's rolled_up_results bottom-up. Idempotent."""
    return tuple(roll_up_node(node) for node in tree)
