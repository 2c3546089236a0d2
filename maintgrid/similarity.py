"""Header-to-synonym similarity scoring."""

from __future__ import annotations

from rapidfuzz.distance import Levenshtein

CONTAINMENT_WEIGHT = 0.8
EDIT_DISTANCE_WEIGHT = 0.7
EDIT_DISTANCE_FLOOR = 0.7


def edit_similarity(a: str, b: str) -> float:
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1.0 - Levenshtein.distance(a, b) / longest


def score(a: str, b: str) -> float:
    """
    Confidence in [0, 1] that two normalised strings name the same concept.

    Best of: exact match (1.0), containment scaled by length ratio, and
    edit-distance similarity when it clears EDIT_DISTANCE_FLOOR.
    Callers trim and lower-case both sides first.
    """
    if a == b:
        return 1.0
    if not a or not b:
        return 0.0

    shorter, longer = sorted((len(a), len(b)))
    best = 0.0
    if a in b or b in a:
        best = shorter / longer * CONTAINMENT_WEIGHT

    similarity = edit_similarity(a, b)
    if similarity > EDIT_DISTANCE_FLOOR:
        best = max(best, similarity * EDIT_DISTANCE_WEIGHT)
    return best


def best_score(header: str, synonyms) -> float:
    normalized = header.strip().lower()
    best = 0.0
    for synonym in synonyms:
        best = max(best, score(normalized, synonym.strip().lower()))
        if best == 1.0:
            break
    return best
