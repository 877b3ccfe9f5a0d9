"""Structural element and chainage/elevation extraction.

Used when normalizing a report: free text such as "Ch 0 to 38m invert" is
split into an area label ("Invert") and a formatted chainage ("0+000 to 0+038 m").
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass

STRUCTURAL_ELEMENTS: tuple[tuple[re.Pattern[str], str], ...] = tuple(
    (re.compile(expr, re.IGNORECASE), label)
    for expr, label in (
        (r"\b(raft|foundation|footing)\b", "Raft"),
        (r"\b(wall|walls|side wall)\b", "Wall"),
        (r"\b(kicker)\b", "Kicker"),
        (r"\b(invert|floor|bed)\b", "Invert"),
        (r"\b(arch|crown|roof)\b", "Arch"),
        (r"\b(key)\b", "Key"),
        (r"\b(slab|deck)\b", "Slab"),
        (r"\b(face)\b", "Face"),
        (r"\b(portal)\b", "Portal"),
        (r"\b(plug)\b", "Plug"),
        (r"\b(pier)\b", "Pier"),
        (r"\b(abutment)\b", "Abutment"),
        (r"\b(glacis)\b", "Glacis"),
        (r"\b(apron)\b", "Apron"),
        (r"\b(soling)\b", "Soling"),
        (r"\b(casing)\b", "Casing"),
        (r"\b(gantry)\b", "Gantry"),
        (r"\b(bulkhead)\b", "Bulkhead"),
        (r"\b(overbreak)\b", "Overbreak Zone"),
        (r"\b(machine hall)\b", "Machine Hall"),
        (r"\b(control building)\b", "Control Building"),
        (r"\b(service bay)\b", "Service Bay"),
        (r"\b(turbine floor)\b", "Turbine Floor"),
        (r"\b(generator floor)\b", "Generator Floor"),
        (r"\b(miv|main inlet valve)\b", "MIV"),
        (r"\b(first|1st)\s+lift\b", "1st Lift"),
        (r"\b(second|2nd)\s+lift\b", "2nd Lift"),
        (r"\b(third|3rd)\s+lift\b", "3rd Lift"),
        (r"\b(u/s|upstream)\b", "U/S"),
        (r"\b(d/s|downstream)\b", "D/S"),
        (r"\b(left\s+bank)\b", "LB"),
        (r"\b(right\s+bank)\b", "RB"),
    )
)

CHAINAGE_PATTERN = re.compile(
    r"(?:ch\.?|chainage|chain|@)\s*(\d+\+\d+(?:\.\d+)?|[\d\+\-\.]+)"
    r"(?:\s*(?:to|-)\s*(\d+\+\d+(?:\.\d+)?|[\d\+\-\.]+))?",
    re.IGNORECASE,
)
ELEVATION_PATTERN = re.compile(
    r"(?:el\.?|elevation|level|lvl)\s*([\d\+\-\.]+)(?:\s*(?:to|-)\s*([\d\+\-\.]+))?",
    re.IGNORECASE,
)

_LEADING_NUMBER = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)")


@dataclass(frozen=True)
class QuantityDetails:
    structure: str
    detail_element: str  # area, e.g. "Raft, Wall"
    detail_location: str  # chainage / EL


def format_chainage_number(raw: str) -> str:
    """Format a metre value as ``km+mmm`` (38 -> ``0+038``)."""
    clean = raw.replace("+", "")
    clean = re.sub(r"m$", "", clean, flags=re.IGNORECASE).strip()
    match = _LEADING_NUMBER.match(clean)
    if not match:
        return raw
    value = float(match.group(0))
    km = math.floor(value / 1000)
    metres = math.floor(math.fmod(value, 1000) + 0.5)
    return f"{km}+{str(metres).zfill(3)}"


def extract_chainage(text: str) -> str | None:
    match = CHAINAGE_PATTERN.search(text)
    if not match:
        return None
    start = format_chainage_number(match.group(1))
    if match.group(2):
        return f"{start} to {format_chainage_number(match.group(2))} m"
    return f"{start} m"


def structural_elements(text: str) -> list[str]:
    """Labels of every structural element mentioned, in table order."""
    return [label for pattern, label in STRUCTURAL_ELEMENTS if pattern.search(text)]


def parse_quantity_details(
    location: str,
    component: str | None,
    chainage_or_area: str,
    description: str,
) -> QuantityDetails:
    combined = f"{chainage_or_area} {description}"
    elements = structural_elements(combined)

    parts: list[str] = []
    chainage_from_input = extract_chainage(chainage_or_area)
    elevation_in_input = ELEVATION_PATTERN.search(chainage_or_area)
    if chainage_from_input:
        parts.append(chainage_from_input)
    if elevation_in_input:
        parts.append(elevation_in_input.group(0).strip())

    if not parts:
        chainage_in_description = extract_chainage(description)
        if chainage_in_description:
            parts.append(chainage_in_description)
        elevation_in_description = ELEVATION_PATTERN.search(description)
        if elevation_in_description:
            parts.append(elevation_in_description.group(0).strip())

    structure = component or ""
    if not structure:
        if chainage_from_input or elevation_in_input:
            structure = location
        elif not elements:
            structure = chainage_or_area

    return QuantityDetails(
        structure=structure,
        detail_element=", ".join(elements),
        detail_location=", ".join(parts),
    )
