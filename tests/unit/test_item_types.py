"""Tests for sitedpr.classification.item_types - activity classification."""

from __future__ import annotations

import pytest

from sitedpr.classification.item_types import (
    OTHER,
    ConfigurationError,
    default_unit_for,
    identify_item_type,
    item_type_names,
    load_item_types,
    resolve_patterns,
)
from sitedpr.models import ItemTypeDefinition


class TestIdentifyItemType:
    """First matching pattern wins."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("C25 plum concrete in weir", "C25 Plum Concrete"),
            ("plum concrete at apron", "C10 Plum Concrete"),
            ("Shotcrete 50mm at crown", "Shotcrete"),
            ("PCC below raft", "C10 Concrete"),
            ("2nd stage concrete at gate slot", "C30 Concrete"),
            ("concrete pouring at wall", "C25 Concrete"),
            ("Rebar fixing at slab", "Rebar"),
            ("formwork erection", "Formwork"),
            ("mucking after blast", "Excavation"),
            ("gabion wall filling", "Gabion"),
        ],
    )
    def test_builtin_patterns(self, text, expected):
        assert identify_item_type(text) == expected

    @pytest.mark.parametrize("text", [None, "", "site cleaning"])
    def test_unmatched_is_other(self, text):
        assert identify_item_type(text) == OTHER


class TestDefaultUnit:
    def test_type_specific_units(self):
        assert default_unit_for("Rebar") == "Ton"
        assert default_unit_for("Formwork") == "m2"
        assert default_unit_for("Rock Bolt") == "nos"

    def test_unknown_type_uses_m3(self):
        assert default_unit_for("Unknown Work") == "m3"


class TestCustomItemTypes:
    def test_project_types_replace_builtins(self):
        patterns = resolve_patterns(
            [ItemTypeDefinition(name="Grouting", pattern=r"\bgrout", default_unit="Ton")]
        )

        assert item_type_names(patterns) == ["Grouting"]
        assert identify_item_type("contact grouting", patterns) == "Grouting"
        assert default_unit_for("Grouting", patterns) == "Ton"

    def test_invalid_regex_is_configuration_error(self):
        with pytest.raises(ConfigurationError):
            resolve_patterns([ItemTypeDefinition(name="Broken", pattern="(")])

    def test_no_custom_types_uses_builtins(self):
        assert "Rebar" in item_type_names(resolve_patterns(None))


class TestLoadItemTypes:
    def test_missing_file_uses_builtins(self, tmp_path):
        patterns = load_item_types(tmp_path / "absent.yaml")

        assert "C25 Concrete" in item_type_names(patterns)

    def test_loads_yaml_override(self, tmp_path):
        path = tmp_path / "item_types.yaml"
        path.write_text(
            "item_types:\n"
            "  - name: Grouting\n"
            "    pattern: '\\bgrout'\n"
            "    default_unit: Ton\n",
            encoding="utf-8",
        )

        patterns = load_item_types(path)

        assert item_type_names(patterns) == ["Grouting"]

    def test_invalid_yaml_raises(self, tmp_path):
        path = tmp_path / "item_types.yaml"
        path.write_text("item_types: [unclosed", encoding="utf-8")

        with pytest.raises(ConfigurationError):
            load_item_types(path)

    def test_empty_definition_raises(self, tmp_path):
        path = tmp_path / "item_types.yaml"
        path.write_text("item_types: []\n", encoding="utf-8")

        with pytest.raises(ConfigurationError):
            load_item_types(path)
