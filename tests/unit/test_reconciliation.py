"""Tests for sitedpr.reports.reconciliation - merging parsed batches."""

from __future__ import annotations

from sitedpr.models import DPRItem
from sitedpr.reports.reconciliation import (
    hydrate_item,
    hydrate_items,
    merge_entries,
    stamp_source,
)


class TestHydrateItem:
    def test_fills_missing_fields(self):
        item = hydrate_item(
            {"location": "Headworks", "unit": "", "chainage": "EL 1020", "structuralElement": "Raft"},
            "Site Engineer",
        )

        assert item.id
        assert item.unit == "m3"
        assert item.created_by == "Site Engineer"
        assert item.chainage_or_area == "EL 1020 Raft"

    def test_keeps_existing_creator_and_area(self):
        item = hydrate_item(
            DPRItem(created_by="Foreman", chainage="0+010", chainage_or_area="custom"),
            "Site Engineer",
        )

        assert item.created_by == "Foreman"
        assert item.chainage_or_area == "custom"

    def test_preserves_extracted_date(self):
        item = hydrate_item(DPRItem(extracted_date="2024-03-02"), "SE")

        assert item.extracted_date == "2024-03-02"

    def test_hydrate_items_keeps_order(self):
        items = hydrate_items([{"location": "Powerhouse"}, {"location": "Headworks"}], "SE")

        assert [i.location for i in items] == ["Powerhouse", "Headworks"]


class TestStampSource:
    def test_sets_backup_id(self):
        items = stamp_source([DPRItem(), DPRItem()], "backup-1")

        assert {i.source_backup_id for i in items} == {"backup-1"}

    def test_none_for_direct_entry(self):
        assert stamp_source([DPRItem(source_backup_id="old")], None)[0].source_backup_id is None


class TestMergeEntries:
    def test_existing_then_batch_sorted_by_location(self):
        a = DPRItem(location="Powerhouse", activity_description="A")
        b = DPRItem(location="Headworks", activity_description="B")
        c = DPRItem(location="Headworks", activity_description="C")

        merged = merge_entries([a, b], [c])

        assert [i.activity_description for i in merged] == ["B", "C", "A"]

    def test_empty_report(self):
        item = DPRItem(location="Headworks")

        assert merge_entries([], [item]) == [item]
