"""Free-text site update parsing.

The model turns pasted text into candidate items; ``post_process`` then
normalises units and quantities, strips placeholder text and fills the
location fallbacks so the reconciliation step can trust the output.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Optional

from sitedpr.classification.item_types import (
    ItemPattern,
    identify_item_type,
    load_item_types,
)
from sitedpr.classification.locations import LOCATION_HIERARCHY, hierarchy_prompt
from sitedpr.intelligence.client import LLMClient
from sitedpr.models import DEFAULT_UNIT, DPRItem

logger = logging.getLogger(__name__)

UNIT_MAP = {
    "sqm": "m2",
    "m2": "m2",
    "cum": "m3",
    "m3": "m3",
    "mt": "Ton",
    "ton": "Ton",
    "nos": "nos",
    "rm": "rm",
}
BAG_TO_TON = 0.05  # 1 bag = 50 kg
FORBIDDEN_PLACEHOLDERS = ("not specified", "unknown", "n/a")
DEFAULT_NEXT_ACTIVITY = "Continue works"
UNCLASSIFIED_LOCATION = "Unclassified"
HRT_LOCATION = "Headrace Tunnel (HRT)"
HRT_COMPONENTS = ("HRT from Inlet", "HRT from Adit")

_TITLE_WORD = re.compile(r"\w\S*")
_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class ParseError(Exception):
    """AI parsing failed. ``raw_text`` is kept so the user can resubmit."""

    def __init__(self, message: str, raw_text: str):
        super().__init__(message)
        self.raw_text = raw_text


@dataclass
class ParseResult:
    items: list[DPRItem] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def clean_str(value: Any) -> str:
    if value is None:
        return ""
    text = str(value).strip()
    return "" if text.lower() == "null" else text


def title_case(text: str) -> str:
    return _TITLE_WORD.sub(lambda m: m.group(0)[0].upper() + m.group(0)[1:].lower(), text)


def _canonical(name: str, known: Sequence[str]) -> str:
    for candidate in known:
        if candidate.lower() == name.lower():
            return candidate
    return name


def _has_placeholder(text: str) -> bool:
    lowered = text.lower()
    return any(p in lowered for p in FORBIDDEN_PLACEHOLDERS)


def normalize_quantity(
    quantity: Any, unit: Any, item_type: str
) -> tuple[float, str]:
    """Map unit synonyms, convert bags to tonnes and round tonnages."""
    raw_unit = clean_str(unit)
    final_unit = UNIT_MAP.get(raw_unit.lower()) or raw_unit or DEFAULT_UNIT
    try:
        qty = float(quantity or 0)
    except (TypeError, ValueError):
        qty = 0.0

    if "bag" in final_unit.lower():
        qty *= BAG_TO_TON
        final_unit = "Ton"

    if item_type == "Rebar" or final_unit == "Ton":
        qty = round(qty, 2)
    return qty, final_unit


class ConstructionParser:
    SYSTEM_PROMPT = """You are a high-precision construction site data extraction engine.
Convert raw site update text into JSON: {{"items": [...], "warnings": [...]}}.

Each item has: extractedDate (YYYY-MM-DD or null), location, component,
structuralElement, chainage, activityDescription, plannedNextActivity,
quantity (number), unit, itemType.

Rules:
1. Split aggressively: every distinct activity or material is its own item.
2. Map components to their parent location using this hierarchy:
{hierarchy}
   "HRT from Inlet" and "HRT from Adit" belong to "Headrace Tunnel (HRT)".
3. Convert kg to Ton (/1000). 1 bag = 0.05 Ton. Concrete uses volume (m3).
   Formwork defaults to m2 unless running metres are stated.
4. Prefer these item types: {item_types}
5. Headworks use elevations (EL), tunnels use chainage (Ch). If neither is
   stated leave chainage and structuralElement empty. Never output
   "Not specified", "Unknown" or "N/A".
6. Use an explicit next-day plan when present, otherwise infer one
   (Rebar -> Formwork & Prep, Formwork -> Concrete works,
   Concrete -> Deshuttering & Curing). Remove planning text from the
   activityDescription.
7. Append the quantity to the description, e.g. "Wall concreting works (113 m3)"."""

    def __init__(
        self,
        llm: Optional[LLMClient] = None,
        patterns: Optional[Sequence[ItemPattern]] = None,
        hierarchy: Optional[Mapping[str, Sequence[str]]] = None,
    ):
        self._llm = llm
        self.patterns = tuple(patterns) if patterns is not None else load_item_types()
        self.hierarchy = dict(hierarchy or LOCATION_HIERARCHY)

    @property
    def llm(self) -> LLMClient:
        if self._llm is None:
            self._llm = LLMClient()
        return self._llm

    def _system_prompt(self) -> str:
        item_types = ", ".join(
            f"{p.name} (keywords: {p.pattern.pattern})" for p in self.patterns
        )
        return self.SYSTEM_PROMPT.format(
            hierarchy=hierarchy_prompt(self.hierarchy), item_types=item_types
        )

    async def parse(
        self,
        raw_text: str,
        instructions: Optional[str] = None,
        context_locations: Optional[Sequence[str]] = None,
        context_components: Optional[Sequence[str]] = None,
    ) -> ParseResult:
        """Parse pasted site text into hydrated-ready items.

        Raises:
            ParseError: The model call failed or returned something unusable
        """
        if not raw_text or not raw_text.strip():
            raise ParseError("Nothing to parse", raw_text or "")

        user_prompt = f'RAW INPUT:\n"""\n{raw_text}\n"""'
        if instructions:
            user_prompt = f"ADDITIONAL INSTRUCTIONS: {instructions}\n\n{user_prompt}"

        try:
            data = await self.llm.complete_json(self._system_prompt(), user_prompt)
        except Exception as e:
            logger.error(f"AI parsing failed: {e}")
            raise ParseError(f"AI parsing failed: {e}", raw_text) from e

        raw_items = data.get("items")
        if not isinstance(raw_items, list):
            raise ParseError("Model response has no items list", raw_text)

        warnings = [str(w) for w in data.get("warnings") or []]
        items: list[DPRItem] = []
        for index, raw in enumerate(raw_items):
            if not isinstance(raw, dict):
                warnings.append(f"Skipped malformed item #{index + 1}")
                continue
            items.append(self.post_process(raw, context_locations, context_components))

        logger.info(f"Parsed {len(items)} items ({len(warnings)} warnings)")
        return ParseResult(items=items, warnings=warnings)

    def post_process(
        self,
        raw: Mapping[str, Any],
        context_locations: Optional[Sequence[str]] = None,
        context_components: Optional[Sequence[str]] = None,
    ) -> DPRItem:
        description = clean_str(raw.get("activityDescription"))
        item_type = clean_str(raw.get("itemType")) or identify_item_type(
            description, self.patterns
        )
        quantity, unit = normalize_quantity(raw.get("quantity"), raw.get("unit"), item_type)

        location = title_case(
            clean_str(raw.get("location"))
            or (context_locations[0] if context_locations else "")
            or UNCLASSIFIED_LOCATION
        )
        component = title_case(
            clean_str(raw.get("component"))
            or (context_components[0] if context_components else "")
        )

        if location.lower() in (c.lower() for c in HRT_COMPONENTS):
            component = _canonical(location, HRT_COMPONENTS)
            location = HRT_LOCATION
        location = _canonical(location, list(self.hierarchy))
        component = _canonical(component, self.hierarchy.get(location, []))

        structural_element = title_case(clean_str(raw.get("structuralElement")))
        chainage = clean_str(raw.get("chainage"))
        if _has_placeholder(chainage):
            chainage = ""
        if _has_placeholder(structural_element):
            structural_element = ""
        if structural_element.lower() == component.lower():
            structural_element = ""

        extracted_date = clean_str(raw.get("extractedDate"))
        if extracted_date and not _ISO_DATE.match(extracted_date):
            extracted_date = ""

        return DPRItem(
            extracted_date=extracted_date or None,
            location=location,
            component=component,
            structural_element=structural_element,
            chainage=chainage,
            chainage_or_area=f"{chainage} {structural_element}".strip(),
            activity_description=description,
            planned_next_activity=clean_str(raw.get("plannedNextActivity"))
            or DEFAULT_NEXT_ACTIVITY,
            quantity=quantity,
            unit=unit,
            item_type=item_type,
        )
