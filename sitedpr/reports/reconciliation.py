"""Merge freshly parsed items into a report."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Any

from sitedpr.classification.locations import sort_by_location
from sitedpr.models import DPRItem
from sitedpr.reports.derive import chainage_or_area


def hydrate_item(raw: DPRItem | dict[str, Any], user: str) -> DPRItem:
    """Fill required-but-missing fields (unit, id, creator, derived area)."""
    data = raw.model_dump() if isinstance(raw, DPRItem) else dict(raw)
    item = DPRItem.model_validate(data)

    updates: dict[str, Any] = {}
    if not item.created_by:
        updates["created_by"] = user
    if not item.chainage_or_area and (item.chainage or item.structural_element):
        updates["chainage_or_area"] = chainage_or_area(item.chainage, item.structural_element)
    if updates:
        item = item.model_copy(update=updates)
    # model_dump drops the transient date hint
    if isinstance(raw, DPRItem):
        item.extracted_date = raw.extracted_date
    return item


def hydrate_items(raw_items: Iterable[DPRItem | dict[str, Any]], user: str) -> list[DPRItem]:
    return [hydrate_item(raw, user) for raw in raw_items]


def stamp_source(items: Sequence[DPRItem], backup_id: str | None) -> list[DPRItem]:
    return [item.model_copy(update={"source_backup_id": backup_id}) for item in items]


def merge_entries(existing: Sequence[DPRItem], incoming: Sequence[DPRItem]) -> list[DPRItem]:
    """Existing entries first, then the batch, stably sorted by location rank."""
    return sort_by_location([*existing, *incoming])
