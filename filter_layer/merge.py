"""
Filter Merge Engine

Reconciles freshly validated filters with the filters a caller already has
applied. Identity is the composite `id:operator` key; a new filter that
shares only the catalog id with an applied one is an operator change and
replaces it. Updates are field-level: fields present only on the applied
filter are carried forward.

Resulting order: processed new filters (input order), then untouched
applied filters (original order). Inputs are never mutated.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set
import copy
import logging

from .filter_types import FilterInstance, SourceType, coerce_filter_id, filter_key

logger = logging.getLogger(__name__)

SUMMARY_LABEL_LIMIT = 3


@dataclass
class MergeResult:
    """Canonical filter set plus bookkeeping for the response."""
    filters: List[FilterInstance] = field(default_factory=list)
    new_filter_count: int = 0
    updated_filter_count: int = 0
    name: str = ""
    # Leading entries of `filters` that came from the new filters
    processed_count: int = 0

    @property
    def filter_count(self) -> int:
        return len(self.filters)


def _filter_id(instance: FilterInstance) -> Any:
    """Catalog id with client-side string ids normalized to int."""
    raw = instance.get("id")
    coerced = coerce_filter_id(raw)
    return raw if coerced is None else coerced


def _dedupe(filters: List[FilterInstance]) -> List[FilterInstance]:
    """Collapse repeated `id:operator` keys; a later restatement replaces the earlier one in place."""
    positions: Dict[str, int] = {}
    unique: List[FilterInstance] = []
    for instance in filters:
        key = filter_key(instance)
        if key in positions:
            logger.debug("Duplicate new filter %s replaced by later occurrence", key)
            unique[positions[key]] = instance
        else:
            positions[key] = len(unique)
            unique.append(instance)
    return unique


def _match_applied(new_filters: List[FilterInstance], applied: List[FilterInstance]) -> List[Optional[int]]:
    """
    Index of the applied filter each new filter updates, or None.

    Exact `id:operator` matches are assigned first so that an id-only match
    from another new filter can never consume the same applied filter.
    """
    by_key: Dict[str, int] = {}
    by_id: Dict[Any, List[int]] = {}
    for index, instance in enumerate(applied):
        by_key.setdefault(filter_key(instance), index)
        by_id.setdefault(_filter_id(instance), []).append(index)

    matches: List[Optional[int]] = [None] * len(new_filters)
    consumed: Set[int] = set()

    for position, instance in enumerate(new_filters):
        index = by_key.get(filter_key(instance))
        if index is not None and index not in consumed:
            matches[position] = index
            consumed.add(index)

    for position, instance in enumerate(new_filters):
        if matches[position] is not None:
            continue
        for index in by_id.get(_filter_id(instance), []):
            if index not in consumed:
                matches[position] = index
                consumed.add(index)
                break

    return matches


def merge_filters(
    new_filters: List[FilterInstance],
    applied_filters: Optional[List[FilterInstance]] = None,
    source_type=SourceType.PROPERTIES,
) -> MergeResult:
    """Merge `new_filters` into `applied_filters` and name the merged set."""
    applied = list(applied_filters or [])
    incoming = _dedupe(list(new_filters))

    applied_ids = {_filter_id(instance) for instance in applied}
    new_count = sum(1 for instance in incoming if _filter_id(instance) not in applied_ids)
    updated_count = len(incoming) - new_count

    matches = _match_applied(incoming, applied)
    consumed = {index for index in matches if index is not None}

    merged: List[FilterInstance] = []
    for instance, index in zip(incoming, matches):
        if index is None:
            merged.append(copy.deepcopy(instance))
            continue
        previous = applied[index]
        logger.debug("Filter %s updates applied %s", filter_key(instance), filter_key(previous))
        combined = copy.deepcopy(previous)
        # Null fields on the new filter count as absent
        combined.update({k: copy.deepcopy(v) for k, v in instance.items() if v is not None})
        merged.append(combined)

    merged.extend(
        copy.deepcopy(instance)
        for index, instance in enumerate(applied)
        if index not in consumed
    )

    return MergeResult(
        filters=merged,
        new_filter_count=new_count,
        updated_filter_count=updated_count,
        name=summarize_filters(merged, source_type),
        processed_count=len(incoming),
    )


def summarize_filters(filters: List[FilterInstance], source_type=SourceType.PROPERTIES) -> str:
    """Human-readable name for a filter set, built from its labels."""
    labels: List[str] = []
    for instance in filters:
        label = instance.get("label")
        if isinstance(label, str) and label and label not in labels:
            labels.append(label)

    if not labels:
        return "Untitled Search"

    source = SourceType.parse(source_type) or SourceType.PROPERTIES
    name = f"{source.display_name} Search: {', '.join(labels[:SUMMARY_LABEL_LIMIT])}"
    if len(labels) > SUMMARY_LABEL_LIMIT:
        name += f" (+{len(labels) - SUMMARY_LABEL_LIMIT} more)"
    return name
