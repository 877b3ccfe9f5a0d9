"""Location hierarchy and report ordering.

Report entries are printed in a fixed site order (Headworks first, Powerhouse
last). Anything that does not match a known location sorts after all of them.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import TypeVar

UNRANKED = 999

LOCATION_HIERARCHY: dict[str, list[str]] = {
    "Headworks": [
        "Barrage",
        "Weir",
        "Upstream Apon",
        "Stilling Basin",
        "Syphon",
        "Intake",
        "Gravel Trap",
        "Settling Basin / Headpond",
        "Downstream Works",
        "Flood Walls",
        "Other Headworks",
    ],
    "Headrace Tunnel (HRT)": [
        "HRT from Inlet",
        "HRT from Adit",
        "Rock Trap",
        "Portals",
        "Adit Tunnel",
        "Other HRT Works",
    ],
    "Pressure Tunnels": [
        "Surge Tank",
        "Ventilation Tunnel",
        "Vertical Shaft",
        "Anchor Block (Top)",
        "Anchor Block (Bottom) or 90",
        "Lower Pressure Tunnel (LPT)",
        "Bifurcation or Y",
        "Other Works",
    ],
    "Powerhouse": [
        "Main Building",
        "Tailrace Tunnel (TRT)",
        "Tailrace Pool (TRT Pool)",
        "Turbine Outlet Gate",
        "Tailrace Gate",
        "Tailrace Downstream Apron and Flood Wall",
        "Transformer Cavern",
        "Control Building",
        "Service Bay",
        "Other Works",
    ],
}

LOCATION_SORT_ORDER: tuple[str, ...] = (
    "Headworks",
    "Headrace Tunnel (HRT)",
    "Pressure Tunnels",
    "Powerhouse",
)

T = TypeVar("T")


def location_priority(location: str | None) -> int:
    """Rank a free-text location by the report's site order.

    Matches case-insensitively when either string contains the other, first
    key wins. Empty or unknown locations rank ``UNRANKED``.
    """
    if not location:
        return UNRANKED
    needle = location.lower()
    for index, key in enumerate(LOCATION_SORT_ORDER):
        candidate = key.lower()
        if candidate in needle or needle in candidate:
            return index
    return UNRANKED


def sort_by_location(entries: Iterable[T]) -> list[T]:
    """Stable sort by location priority; ties keep their incoming order."""
    return sorted(entries, key=lambda entry: location_priority(_location_of(entry)))


def components_for(location: str, hierarchy: dict[str, Sequence[str]] | None = None) -> list[str]:
    hierarchy = hierarchy or LOCATION_HIERARCHY
    return list(hierarchy.get(location, []))


def hierarchy_prompt(hierarchy: dict[str, Sequence[str]] | None = None) -> str:
    """Flatten the hierarchy into prompt text for the parser."""
    hierarchy = hierarchy or LOCATION_HIERARCHY
    return "\n".join(
        f"- {location} contains components: [{', '.join(components)}]"
        for location, components in hierarchy.items()
    )


def _location_of(entry) -> str | None:
    if isinstance(entry, dict):
        return entry.get("location")
    return getattr(entry, "location", None)
