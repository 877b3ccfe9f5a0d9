"""Single-item quantity/unit/type extraction."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping, Sequence
from typing import Any, Optional

from sitedpr.classification.item_types import ItemPattern, identify_item_type, load_item_types
from sitedpr.classification.locations import LOCATION_HIERARCHY
from sitedpr.intelligence.client import LLMClient
from sitedpr.intelligence.parser import (
    FORBIDDEN_PLACEHOLDERS,
    clean_str,
    normalize_quantity,
    title_case,
)
from sitedpr.models import DEFAULT_UNIT

logger = logging.getLogger(__name__)


class AutofillService:
    """Fill quantity, unit and item type for one activity description."""

    SYSTEM_PROMPT = """Act as a construction data specialist.
Extract quantity, unit, item classification and the planned next activity from
one activity description. Return a JSON object with keys: location, component,
structuralElement, quantity (number), unit, itemType, plannedNextActivity.

- Known hierarchy: {hierarchy}
- Tunnelling work belongs to location "Headrace Tunnel (HRT)"; Inlet or Adit
  work uses component "HRT from Inlet" or "HRT from Adit".
- Concrete with both length and volume: the volume is the quantity.
- Rebar is always in Ton (kg / 1000, 2 decimals). Bags are 0.05 Ton each.
- Formwork defaults to m2. Map sqm -> m2, cum -> m3, mt -> Ton.
- Choose itemType from: {item_types}"""

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

    def _system_prompt(self, patterns: Sequence[ItemPattern]) -> str:
        hierarchy = "; ".join(
            f"{loc} (Components: {', '.join(comps)})" for loc, comps in self.hierarchy.items()
        )
        item_types = ", ".join(json.dumps(p.name) for p in patterns)
        return self.SYSTEM_PROMPT.format(hierarchy=hierarchy, item_types=item_types)

    async def autofill(
        self,
        description: str,
        item_types: Optional[Sequence[ItemPattern]] = None,
        learned_context: Optional[str] = None,
        fallback: bool = True,
    ) -> dict[str, Any]:
        """Return a partial item (snake_case keys) for ``description``.

        On model failure the result degrades to the default unit and the
        locally classified item type; pass ``fallback=False`` to have the
        error raised instead.
        """
        patterns = tuple(item_types) if item_types else self.patterns

        user_prompt = f'Activity description: "{description}"'
        if learned_context:
            user_prompt = (
                "GOLD STANDARD EXAMPLES (follow these user-verified mappings exactly):\n"
                f"{learned_context}\n\n{user_prompt}"
            )

        try:
            result = await self.llm.complete_json(self._system_prompt(patterns), user_prompt)
        except Exception as e:
            if not fallback:
                raise
            logger.error(f"Autofill error: {e}")
            return {
                "unit": DEFAULT_UNIT,
                "item_type": identify_item_type(description, patterns),
            }

        item_type = clean_str(result.get("itemType")) or identify_item_type(
            description, patterns
        )
        quantity, unit = normalize_quantity(result.get("quantity"), result.get("unit"), item_type)

        structural_element = title_case(clean_str(result.get("structuralElement")))
        if any(p in structural_element.lower() for p in FORBIDDEN_PLACEHOLDERS):
            structural_element = ""

        return {
            "location": title_case(clean_str(result.get("location"))),
            "component": title_case(clean_str(result.get("component"))),
            "structural_element": structural_element,
            "quantity": quantity,
            "unit": unit,
            "item_type": item_type,
            "planned_next_activity": clean_str(result.get("plannedNextActivity")),
        }
