"""Unit tests for SiteDPR Pydantic models.

Tests defaults, date validation and the camelCase document shape.
"""

from __future__ import annotations

from datetime import datetime

import pytest
from pydantic import ValidationError

from sitedpr.models import (
    ANONYMOUS,
    DEFAULT_UNIT,
    DailyReport,
    DPRItem,
    EditHistoryEntry,
    TrashItem,
    TrashType,
    UserIdentity,
    validate_report_date,
)


class TestDPRItem:
    """Test DPRItem defaults and validators."""

    def test_defaults(self):
        """Test a bare item gets an id, the default unit and zero quantity."""
        item = DPRItem()

        assert item.id
        assert item.unit == DEFAULT_UNIT
        assert item.quantity == 0.0
        assert item.item_type == "Other"
        assert item.edit_history == []

    @pytest.mark.parametrize("unit", [None, "", "   "])
    def test_blank_unit_becomes_default(self, unit):
        """Test unit is never empty."""
        assert DPRItem(unit=unit).unit == DEFAULT_UNIT

    @pytest.mark.parametrize("quantity", [None, ""])
    def test_missing_quantity_is_zero(self, quantity):
        assert DPRItem(quantity=quantity).quantity == 0.0

    def test_blank_id_is_replaced(self):
        assert DPRItem(id="").id

    def test_non_numeric_quantity_rejected(self):
        with pytest.raises(ValidationError):
            DPRItem(quantity="lots")

    def test_invalid_extracted_date_is_dropped(self):
        """Test a malformed parser date hint is ignored rather than rejected."""
        assert DPRItem(extracted_date="March 1st").extracted_date is None
        assert DPRItem(extracted_date="2024-03-01").extracted_date == "2024-03-01"

    def test_document_uses_camel_case(self):
        """Test documents use camelCase keys and omit the date hint."""
        item = DPRItem(
            activity_description="Excavation",
            chainage_or_area="0+010 Invert",
            extracted_date="2024-03-01",
        )

        doc = item.to_document()

        assert doc["activityDescription"] == "Excavation"
        assert doc["chainageOrArea"] == "0+010 Invert"
        assert "extractedDate" not in doc
        assert "activity_description" not in doc

    def test_from_document_round_trips_fields(self):
        item = DPRItem(location="Headworks", quantity=12.5, unit="m2")

        restored = DPRItem.from_document(item.to_document())

        assert restored.model_dump() == item.model_dump()


class TestDailyReport:
    """Test DailyReport validation and lookups."""

    def test_date_must_be_iso(self):
        with pytest.raises(ValidationError):
            DailyReport(date="01/03/2024")

    def test_index_and_find(self):
        first, second = DPRItem(), DPRItem()
        report = DailyReport(date="2024-03-01", entries=[first, second])

        assert report.index_of(second.id) == 1
        assert report.index_of("missing") == -1
        assert report.find(first.id).id == first.id
        assert report.find("missing") is None

    def test_last_updated_is_set(self):
        assert isinstance(DailyReport(date="2024-03-01").last_updated, datetime)


class TestValidateReportDate:
    def test_accepts_iso_date(self):
        assert validate_report_date("2024-12-31") == "2024-12-31"

    @pytest.mark.parametrize("value", ["2024-3-1", "", "yesterday", None])
    def test_rejects_other_formats(self, value):
        with pytest.raises(ValueError):
            validate_report_date(value)


class TestEditHistoryEntry:
    def test_entries_are_immutable(self):
        entry = EditHistoryEntry(user="SE", field="unit", old_value="m3", new_value="m2")

        with pytest.raises(ValidationError):
            entry.new_value = "Ton"


class TestTrashItem:
    def test_type_serializes_as_value(self):
        trash = TrashItem(original_id="abc", type=TrashType.ITEM, content={})

        assert trash.to_document()["type"] == "item"
        assert trash.deleted_by == ANONYMOUS


class TestUserIdentity:
    def test_attribution_prefers_display_name(self):
        assert UserIdentity(display_name="Ram", email="ram@example.com").attribution == "Ram"

    def test_attribution_falls_back_to_email_then_anonymous(self):
        assert UserIdentity(email="ram@example.com").attribution == "ram@example.com"
        assert UserIdentity().attribution == ANONYMOUS
