from __future__ import annotations

import logging
from typing import Iterable, Mapping, Sequence

from maintgrid.field_dictionary import CANONICAL_FIELDS
from maintgrid.models import FieldMapping
from maintgrid.settings import DEFAULT_SETTINGS
from maintgrid.similarity import best_score

logger = logging.getLogger(__name__)


def suggest_mappings(
    headers: Sequence[str | None],
    *,
    threshold: float = DEFAULT_SETTINGS.mapping_threshold,
    fields: Mapping[str, Sequence[str]] = CANONICAL_FIELDS,
) -> list[FieldMapping]:
    """
    Rank every (header, canonical field) pair whose confidence beats threshold.

    A header can map to more than one field and a field can be claimed by more
    than one header; the list is sorted by confidence (stable, so ties keep
    header order) and consumers pick winners.
    """
    mappings: list[FieldMapping] = []
    for header in headers:
        text = "" if header is None else str(header).strip()
        if not text:
            continue
        for field_id, synonyms in fields.items():
            confidence = best_score(text, synonyms)
            if confidence > threshold:
                mappings.append(FieldMapping(text, field_id, confidence))

    mappings.sort(key=lambda mapping: mapping.confidence, reverse=True)
    logger.debug("Field mapper produced %d candidate mappings for %d headers", len(mappings), len(headers))
    return mappings


def best_mapping_per_field(mappings: Iterable[FieldMapping]) -> dict[str, FieldMapping]:
    best: dict[str, FieldMapping] = {}
    for mapping in mappings:
        current = best.get(mapping.target_field)
        if current is None or mapping.confidence > current.confidence:
            best[mapping.target_field] = mapping
    return best


def column_samples(
    headers: Sequence[str | None],
    rows: Sequence[Sequence[str]],
    limit: int,
) -> dict[str, tuple[str, ...]]:
    samples: dict[str, tuple[str, ...]] = {}
    for index, header in enumerate(headers):
        text = "" if header is None else str(header).strip()
        if not text or text in samples:
            continue
        values: list[str] = []
        for row in rows:
            if len(values) >= limit:
                break
            cell = row[index].strip() if index < len(row) else ""
            if cell:
                values.append(cell)
        samples[text] = tuple(values)
    return samples


def attach_sample_values(
    mappings: Sequence[FieldMapping],
    headers: Sequence[str | None],
    rows: Sequence[Sequence[str]],
    limit: int = DEFAULT_SETTINGS.sample_values,
) -> list[FieldMapping]:
    samples = column_samples(headers, rows, limit)
    return [
        FieldMapping(
            mapping.source_column,
            mapping.target_field,
            mapping.confidence,
            samples.get(mapping.source_column, ()),
        )
        for mapping in mappings
    ]
