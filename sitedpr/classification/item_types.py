"""Item type classification for report entries.

Maps free activity text to the item taxonomy used by quantity, billing and
financial aggregation. Patterns are scanned in order and the first match wins,
so more specific grades must precede the generic ones (plum concrete before
plain concrete, graded concrete before the "concrete -> C25" default).
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

import yaml

from sitedpr.config import get_config
from sitedpr.models import DEFAULT_UNIT, ItemTypeDefinition

logger = logging.getLogger(__name__)

OTHER = "Other"


class ConfigurationError(Exception):
    """Item type configuration file is invalid."""

    pass


@dataclass(frozen=True)
class ItemPattern:
    name: str
    pattern: re.Pattern[str]
    default_unit: str = DEFAULT_UNIT

    def matches(self, text: str) -> bool:
        return bool(self.pattern.search(text))

    @classmethod
    def from_definition(cls, definition: ItemTypeDefinition) -> ItemPattern:
        try:
            compiled = re.compile(definition.pattern, re.IGNORECASE)
        except re.error as e:
            raise ConfigurationError(
                f"Invalid pattern for item type '{definition.name}': {e}"
            ) from e
        return cls(definition.name, compiled, definition.default_unit or DEFAULT_UNIT)


def _p(expr: str) -> re.Pattern[str]:
    return re.compile(expr, re.IGNORECASE)


ITEM_PATTERNS: tuple[ItemPattern, ...] = (
    # Plum concrete, specific grades first; ungraded plum is C10
    ItemPattern("C25 Plum Concrete", _p(r"\b(c25|grade 25|m25).*(plum)|(plum).*(c25|grade 25|m25)\b")),
    ItemPattern("C15 Plum Concrete", _p(r"\b(c15|grade 15|m15).*(plum)|(plum).*(c15|grade 15|m15)\b")),
    ItemPattern("C10 Plum Concrete", _p(r"\b(plum)\b")),
    ItemPattern("Shotcrete", _p(r"\b(shotcrete|s/c)\b")),
    # Concrete grades; "2nd stage" is C30
    ItemPattern("C35 Concrete", _p(r"\b(c35|grade 35|m35)\b")),
    ItemPattern("C30 Concrete", _p(r"\b(c30|grade 30|m30|(2nd|second)\s+stage)\b")),
    ItemPattern("C20 Concrete", _p(r"\b(c20|grade 20|m20)\b")),
    ItemPattern("C15 Concrete", _p(r"\b(c15|grade 15|m15)\b")),
    ItemPattern("C10 Concrete", _p(r"\b(c10|pcc|infill|grade 10|m10)\b")),
    # Generic concrete without a grade defaults to C25
    ItemPattern("C25 Concrete", _p(r"\b(c25|grade 25|m25|concrete|conc\.?|rcc)\b")),
    ItemPattern("Rebar", _p(r"\b(rebar|reinforcement|steel|tmt|bar|tor)\b"), "Ton"),
    ItemPattern("Formwork", _p(r"\b(formwork|shuttering)\b"), "m2"),
    ItemPattern("Stone Masonry", _p(r"\b(masonry|rrm|ms wall|stone soling|soling)\b")),
    ItemPattern("Concrete Block", _p(r"\b(block work|concrete block|hollow block|block)\b")),
    ItemPattern("Plaster", _p(r"\b(plaster)\b"), "m2"),
    ItemPattern("Excavation", _p(r"\b(excavation|mucking|digging)\b")),
    ItemPattern("Backfill", _p(r"\b(backfill|backfilling)\b")),
    ItemPattern("Rock Bolt", _p(r"\b(rock bolt|bolt|anchor)\b"), "nos"),
    ItemPattern("Gabion", _p(r"\b(gabion)\b")),
)


def identify_item_type(
    text: str | None, patterns: Optional[Iterable[ItemPattern]] = None
) -> str:
    """Return the first matching item type name, or ``"Other"``."""
    if not text:
        return OTHER
    for item in patterns if patterns is not None else ITEM_PATTERNS:
        if item.matches(text):
            return item.name
    return OTHER


def default_unit_for(
    item_type: str, patterns: Optional[Iterable[ItemPattern]] = None
) -> str:
    for item in patterns if patterns is not None else ITEM_PATTERNS:
        if item.name == item_type:
            return item.default_unit
    return DEFAULT_UNIT


def item_type_names(patterns: Optional[Iterable[ItemPattern]] = None) -> list[str]:
    return [item.name for item in (patterns if patterns is not None else ITEM_PATTERNS)]


def compile_definitions(definitions: Iterable[ItemTypeDefinition]) -> tuple[ItemPattern, ...]:
    return tuple(ItemPattern.from_definition(d) for d in definitions)


def load_item_types(config_path: Optional[Path] = None) -> tuple[ItemPattern, ...]:
    """Load custom item types from YAML, falling back to the built-in table.

    Expected layout::

        item_types:
          - name: Grouting
            pattern: "\\b(grout|grouting)\\b"
            default_unit: Ton

    Raises:
        ConfigurationError: If the file exists but is not valid
    """
    if config_path is None:
        config_path = get_config().item_types_config_path

    if not config_path.exists():
        return ITEM_PATTERNS

    try:
        with config_path.open(encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {config_path}: {e}")

    raw_types = data.get("item_types")
    if not raw_types:
        raise ConfigurationError(f"No item_types defined in {config_path}")

    try:
        definitions = [ItemTypeDefinition.model_validate(t) for t in raw_types]
    except ValueError as e:
        raise ConfigurationError(f"Invalid item type in {config_path}: {e}") from e

    patterns = compile_definitions(definitions)
    logger.info("Loaded %d custom item types from %s", len(patterns), config_path)
    return patterns


def resolve_patterns(custom: Iterable[ItemTypeDefinition] | None = None) -> tuple[ItemPattern, ...]:
    """Project-level custom types win over the YAML override and built-ins."""
    custom = list(custom or [])
    if custom:
        return compile_definitions(custom)
    return load_item_types()
