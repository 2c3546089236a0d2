"""
Keyword recommender stub.

Stands in for an external recommendation service: a fixed keyword table maps
free text to canned MaintenanceFacts. Deterministic; no sampling.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from maintgrid.models import MaintenanceFact


@dataclass(frozen=True)
class ResponsePattern:
    keywords: tuple[str, ...]
    facts: tuple[MaintenanceFact, ...]


DEFAULT_PATTERNS = (
    ResponsePattern(
        keywords=("保全", "メンテナンス", "maintenance"),
        facts=(
            MaintenanceFact("EQ001", "2024-04", "plan", 0.85,
                            "Six months since last maintenance; periodic inspection recommended", 50000),
            MaintenanceFact("EQ003", "2024-05", "plan", 0.78,
                            "Operating hours reached the recommended maintenance interval", 75000),
        ),
    ),
    ResponsePattern(
        keywords=("故障", "トラブル", "failure", "異常"),
        facts=(
            MaintenanceFact("EQ002", "2024-05", "both", 0.92,
                            "Abnormal vibration readings; early response recommended", 120000),
            MaintenanceFact("EQ004", "2024-04", "actual", 0.88,
                            "Temperature sensor exceeded its normal range", 80000),
        ),
    ),
    ResponsePattern(
        keywords=("コスト", "費用", "cost", "予算"),
        facts=(
            MaintenanceFact("EQ005", "2024-06", "plan", 0.75,
                            "Part replacement timing optimised for cost", 45000),
        ),
    ),
)


class KeywordRecommender:
    def __init__(self, patterns: Sequence[ResponsePattern] = DEFAULT_PATTERNS) -> None:
        self.patterns = tuple(patterns)

    def recommend(self, text: str) -> list[MaintenanceFact]:
        lowered = text.lower()
        facts: list[MaintenanceFact] = []
        for pattern in self.patterns:
            if any(keyword.lower() in lowered for keyword in pattern.keywords):
                facts.extend(pattern.facts)
        return facts
