"""Per-item edit trail."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Any

from sitedpr.models import DPRItem, EditHistoryEntry, utcnow

SPLIT_FIELD = "split"


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def changed_fields(item: DPRItem, updates: Mapping[str, Any]) -> dict[str, Any]:
    """Subset of ``updates`` whose value differs from the item's current value."""
    return {
        key: value
        for key, value in updates.items()
        if key in DPRItem.model_fields and getattr(item, key) != value
    }


def record_changes(
    before: DPRItem,
    after: DPRItem,
    fields: list[str],
    user: str,
    timestamp: datetime | None = None,
) -> list[EditHistoryEntry]:
    """One entry per changed field; never a single merged entry."""
    timestamp = timestamp or utcnow()
    return [
        EditHistoryEntry(
            timestamp=timestamp,
            user=user,
            field=field,
            old_value=_as_text(getattr(before, field)),
            new_value=_as_text(getattr(after, field)),
        )
        for field in fields
        if getattr(before, field) != getattr(after, field)
    ]


def split_entry(source: DPRItem, user: str) -> EditHistoryEntry:
    return EditHistoryEntry(
        user=user,
        field=SPLIT_FIELD,
        old_value=source.id[:8],
        new_value="Split from original",
    )
