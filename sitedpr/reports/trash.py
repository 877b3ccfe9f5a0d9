"""Soft-delete bin for reports, report items and quantity ledger rows."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from sitedpr.classification.locations import sort_by_location
from sitedpr.models import (
    DailyReport,
    DPRItem,
    QuantityEntry,
    TrashItem,
    TrashType,
    utcnow,
)
from sitedpr.store.documents import QUANTITIES, REPORTS, TRASH, DocumentStore

logger = logging.getLogger(__name__)

RESTORED_REPORT_TITLE = "Restored Report"


class TrashRestoreError(Exception):
    """Raised when a trash entry cannot be put back."""


class TrashBin:
    def __init__(
        self,
        store: DocumentStore,
        save_report: Callable[[DailyReport], Awaitable[None]] | None = None,
    ):
        self.store = store
        self._save_report = save_report

    async def save_report(self, report: DailyReport) -> None:
        if self._save_report is not None:
            await self._save_report(report)
        else:
            await self.store.save(REPORTS, report.id, report.to_document())

    async def _put(self, trash_item: TrashItem) -> TrashItem:
        await self.store.save(TRASH, trash_item.trash_id, trash_item.to_document())
        logger.info(
            f"Moved {trash_item.type.value} {trash_item.original_id} to trash "
            f"(by {trash_item.deleted_by})"
        )
        return trash_item

    async def move_item(self, item: DPRItem, report: DailyReport, user: str) -> TrashItem:
        return await self._put(
            TrashItem(
                original_id=item.id,
                type=TrashType.ITEM,
                content=item.to_document(),
                deleted_by=user,
                report_date=report.date,
                report_id=report.id,
            )
        )

    async def move_report(self, report: DailyReport, user: str) -> TrashItem:
        trash_item = await self._put(
            TrashItem(
                original_id=report.id,
                type=TrashType.REPORT,
                content=report.to_document(),
                deleted_by=user,
                report_date=report.date,
            )
        )
        await self.store.delete(REPORTS, report.id)
        return trash_item

    async def move_quantity(self, entry: QuantityEntry, user: str) -> TrashItem:
        trash_item = await self._put(
            TrashItem(
                original_id=entry.id,
                type=TrashType.QUANTITY,
                content=entry.to_document(),
                deleted_by=user,
                report_date=entry.date,
                report_id=entry.report_id,
            )
        )
        await self.store.delete(QUANTITIES, entry.id)
        return trash_item

    async def list(self) -> list[TrashItem]:
        """Newest deletions first."""
        items = [TrashItem.from_document(d) for d in await self.store.list(TRASH)]
        items.sort(key=lambda t: t.deleted_at, reverse=True)
        return items

    async def get(self, trash_id: str) -> TrashItem | None:
        data = await self.store.get(TRASH, trash_id)
        return TrashItem.from_document(data) if data else None

    async def restore(self, trash_id: str) -> TrashItem:
        """Put a trashed object back where it came from and drop the trash entry.

        Raises:
            TrashRestoreError: Unknown trash id, or an item without its report id
        """
        trash_item = await self.get(trash_id)
        if trash_item is None:
            raise TrashRestoreError(f"Trash entry {trash_id} not found")

        if trash_item.type == TrashType.REPORT:
            await self._restore_report(trash_item)

        elif trash_item.type == TrashType.ITEM:
            await self._restore_item(trash_item)

        elif trash_item.type == TrashType.QUANTITY:
            entry = QuantityEntry.from_document(trash_item.content)
            await self.store.save(QUANTITIES, entry.id, entry.to_document())

        await self.store.delete(TRASH, trash_item.trash_id)
        logger.info(f"Restored {trash_item.type.value} {trash_item.original_id}")
        return trash_item

    async def _report_on(self, date: str, exclude_id: str | None = None) -> DailyReport | None:
        for data in await self.store.list(REPORTS):
            if data.get("date") == date and data.get("id") != exclude_id:
                return DailyReport.from_document(data)
        return None

    async def _restore_report(self, trash_item: TrashItem) -> None:
        restored = DailyReport.from_document(trash_item.content)
        existing = await self._report_on(restored.date, exclude_id=restored.id)
        if existing is None:
            await self.save_report(restored)
            return

        # one report per date: fold the restored entries into the live one
        logger.info(f"Merging restored report {restored.id} into {existing.id} for {restored.date}")
        await self.save_report(_merged(existing, restored.entries))

    async def _restore_item(self, trash_item: TrashItem) -> None:
        if not trash_item.report_id:
            raise TrashRestoreError("Missing report ID for item restoration")

        item = DPRItem.from_document(trash_item.content)
        data = await self.store.get(REPORTS, trash_item.report_id)
        report = (
            DailyReport.from_document(data)
            if data is not None
            else await self._report_on(trash_item.report_date)
        )

        if report is None:
            report = DailyReport(
                id=trash_item.report_id,
                date=trash_item.report_date,
                project_title=RESTORED_REPORT_TITLE,
                entries=[item],
            )
        elif report.find(item.id) is not None:
            logger.info(f"Item {item.id} already present in report {report.id}")
            return
        else:
            report = _merged(report, [item])

        await self.save_report(report)


def _merged(report: DailyReport, items: list[DPRItem]) -> DailyReport:
    """``report`` with ``items`` added, skipping ids it already holds."""
    new_items = [item for item in items if report.find(item.id) is None]
    return report.model_copy(
        update={
            "entries": sort_by_location([*report.entries, *new_items]),
            "last_updated": utcnow(),
        }
    )
