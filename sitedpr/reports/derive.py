"""Derived item fields.

Every mutation path routes its field changes through ``derive_fields`` so a
derived value can never go stale.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from sitedpr.models import DEFAULT_UNIT, DPRItem

CHAINAGE_INPUTS = frozenset({"chainage", "structural_element"})


def chainage_or_area(chainage: str | None, structural_element: str | None) -> str:
    return f"{chainage or ''} {structural_element or ''}".strip()


def derive_fields(
    item: DPRItem | Mapping[str, Any], changed_keys: Iterable[str]
) -> dict[str, Any]:
    """Return the derived-field updates implied by ``changed_keys``.

    ``item`` must already reflect the changes.
    """
    get = item.get if isinstance(item, Mapping) else lambda k, d=None: getattr(item, k, d)
    changed = set(changed_keys)
    derived: dict[str, Any] = {}

    if changed & CHAINAGE_INPUTS:
        derived["chainage_or_area"] = chainage_or_area(
            get("chainage"), get("structural_element")
        )
    if "unit" in changed and not (get("unit") or "").strip():
        derived["unit"] = DEFAULT_UNIT
    return derived
