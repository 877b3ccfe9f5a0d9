"""Report mutation operations.

Every operation resolves its target, builds the new entry list and hands it to
``ReportStore.commit``; no code path here writes a report directly.
"""

from __future__ import annotations

import copy
import json
import logging
from collections import OrderedDict
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from sitedpr.classification.details import parse_quantity_details
from sitedpr.classification.item_types import ItemPattern, resolve_patterns
from sitedpr.core.activity_log import log_activity
from sitedpr.core.users import increment_user_stats
from sitedpr.models import (
    DEFAULT_UNIT,
    DailyReport,
    DPRItem,
    ProjectSettings,
    TrashItem,
    UserIdentity,
    new_id,
    utcnow,
)
from sitedpr.reports.archive import RawInputArchive
from sitedpr.reports.audit import changed_fields, record_changes, split_entry
from sitedpr.reports.derive import CHAINAGE_INPUTS, derive_fields
from sitedpr.reports.reconciliation import hydrate_items, merge_entries, stamp_source
from sitedpr.reports.store import ReportStore
from sitedpr.reports.trash import TrashBin
from sitedpr.store.blobs import BlobStore, PhotoUpload, ProgressCallback, upload_photos
from sitedpr.store.documents import SETTINGS, DocumentStore

logger = logging.getLogger(__name__)

SPLIT_SUFFIX = " (Split)"
SETTINGS_DOC_ID = "project"

# Fields a caller may not overwrite through update_item
PROTECTED_FIELDS = frozenset(
    {"id", "edit_history", "created_by", "source_backup_id", "last_modified_at"}
)

Confirm = Callable[[DPRItem], bool]


class ItemNotFoundError(LookupError):
    """No report owns the requested item."""


class ReportNotFoundError(LookupError):
    """No report with the requested id or date."""


class BackupNotFoundError(LookupError):
    """No raw-input archive record with the requested id."""


@dataclass
class AddItemsResult:
    report: DailyReport | None
    added: list[DPRItem] = field(default_factory=list)
    backup_id: str | None = None
    warnings: list[str] = field(default_factory=list)


def _field_name(key: str) -> str | None:
    """Accept either snake_case names or their camelCase aliases."""
    if key in DPRItem.model_fields:
        return key
    for name, info in DPRItem.model_fields.items():
        if info.alias == key:
            return name
    return None


class ReportService:
    """Mutations on the active report for one acting user."""

    def __init__(
        self,
        documents: DocumentStore,
        reports: ReportStore,
        identity: UserIdentity | None = None,
        blobs: BlobStore | None = None,
    ):
        self.documents = documents
        self.reports = reports
        self.identity = identity or UserIdentity()
        self.blobs = blobs
        self.archive = RawInputArchive(documents)
        self.trash = TrashBin(documents, save_report=self._commit_restored)
        self.settings: ProjectSettings | None = None

    @property
    def user(self) -> str:
        return self.identity.attribution

    def with_identity(self, identity: UserIdentity) -> ReportService:
        """Same session (store, history, inspector) acting for another user."""
        clone = copy.copy(self)
        clone.identity = identity
        return clone

    async def _commit_restored(self, report: DailyReport) -> None:
        await self.reports.commit(report, report.entries)

    # -- settings --------------------------------------------------------

    async def load_settings(self) -> ProjectSettings | None:
        data = await self.documents.get(SETTINGS, SETTINGS_DOC_ID)
        if data is None:
            return None
        self._apply_settings(ProjectSettings.from_document(data))
        return self.settings

    async def save_settings(self, settings: ProjectSettings) -> None:
        await self.documents.save(SETTINGS, SETTINGS_DOC_ID, settings.to_document())
        self._apply_settings(settings)

    def _apply_settings(self, settings: ProjectSettings) -> None:
        self.settings = settings
        if settings.project_name:
            self.reports.project_title = settings.project_name
        if settings.company_name:
            self.reports.company_name = settings.company_name

    def item_patterns(self) -> tuple[ItemPattern, ...]:
        return resolve_patterns(self.settings.item_types if self.settings else None)

    # -- inspector -------------------------------------------------------

    def inspect(self, item_id: str) -> DPRItem:
        item = self._find(item_id)
        self.reports.inspected_id = item_id
        return item

    def close_inspector(self) -> None:
        self.reports.inspected_id = None

    @property
    def inspected(self) -> DPRItem | None:
        """Live state of the inspected item, or None when nothing is open."""
        if self.reports.inspected_id is None:
            return None
        located = self.reports.locate(self.reports.inspected_id)
        if located is None:
            self.reports.inspected_id = None
            return None
        report, index = located
        return report.entries[index]

    # -- session ---------------------------------------------------------

    def select_date(self, date: str) -> bool:
        changed = self.reports.select_date(date)
        if changed:
            self.close_inspector()
        return changed

    def _locate(self, item_id: str) -> tuple[DailyReport, int]:
        located = self.reports.locate(item_id)
        if located is None:
            raise ItemNotFoundError(f"Item {item_id} is not in any report")
        return located

    def _find(self, item_id: str) -> DPRItem:
        report, index = self._locate(item_id)
        return report.entries[index]

    def _report_for_date(self, date: str) -> DailyReport:
        return self.reports.report_for(date) or self.reports.new_report(date)

    # -- add -------------------------------------------------------------

    async def add_items(
        self,
        items: Sequence[DPRItem | dict[str, Any]],
        raw_text: str,
        photos: Sequence[PhotoUpload] | None = None,
        progress_callback: ProgressCallback | None = None,
        date: str | None = None,
    ) -> AddItemsResult:
        """Merge a parsed batch into the report for ``date`` (default: active date).

        The raw input is archived before the items reach the report. When the
        archive write fails the items are still merged, without a source id,
        and the failure is returned as a warning.
        """
        date = date or self.reports.active_date
        user = self.user
        hydrated = hydrate_items(items, user)
        if not hydrated:
            return AddItemsResult(report=self.reports.report_for(date))

        warnings: list[str] = []

        if photos:
            if self.blobs is None:
                warnings.append("Photo storage is not configured; photos were skipped")
            else:
                attachments, errors = await upload_photos(
                    self.blobs, photos, f"reports/{date}/{new_id()}", progress_callback
                )
                warnings.extend(f"Photo upload failed: {e}" for e in errors)
                if attachments:
                    hydrated = [
                        item.model_copy(update={"photos": [*item.photos, *attachments]})
                        for item in hydrated
                    ]

        existing = self.reports.report_for(date)
        backup_id: str | None = None
        try:
            backup = await self.archive.save(
                date,
                raw_text,
                hydrated,
                user,
                report_id_context=existing.id if existing else "",
            )
            backup_id = backup.id
        except Exception as e:
            logger.error(f"Raw input backup failed for {date}: {e}")
            warnings.append(f"Raw input backup failed; items saved as direct entries ({e})")

        stamped = stamp_source(hydrated, backup_id)

        # re-read after the awaits above; a remote snapshot may have landed
        report = self._report_for_date(date)
        saved = await self.reports.commit(report, merge_entries(report.entries, stamped))

        await log_activity(
            self.documents,
            user,
            "Report Updated",
            f"Added {len(stamped)} items",
            date,
            related_backup_id=backup_id,
        )
        try:
            await increment_user_stats(self.documents, self.identity, len(stamped))
        except Exception as e:
            logger.warning(f"Could not update user stats for {user}: {e}")

        return AddItemsResult(report=saved, added=stamped, backup_id=backup_id, warnings=warnings)

    async def ingest_parsed(
        self, items: Sequence[DPRItem], raw_text: str
    ) -> list[AddItemsResult]:
        """Bulk mode: route each item to the report of its extracted date."""
        groups: OrderedDict[str, list[DPRItem]] = OrderedDict()
        for item in items:
            groups.setdefault(item.extracted_date or self.reports.active_date, []).append(item)

        results = []
        for date, group in sorted(groups.items()):
            logger.info(f"Bulk ingest: {len(group)} items for {date}")
            results.append(await self.add_items(group, raw_text, date=date))
        return results

    # -- update / split / delete -----------------------------------------

    async def update_item(self, item_id: str, updates: Mapping[str, Any]) -> DPRItem:
        """Apply field updates, recording one edit-history entry per changed field.

        Raises:
            ItemNotFoundError: No report owns ``item_id``
        """
        report, index = self._locate(item_id)
        item = report.entries[index]

        normalized: dict[str, Any] = {}
        for key, value in updates.items():
            name = _field_name(key)
            if name is None or name in PROTECTED_FIELDS:
                logger.warning(f"Ignoring update to unknown or protected field '{key}'")
                continue
            normalized[name] = value

        candidate = DPRItem.model_validate({**item.model_dump(), **normalized})
        changes = changed_fields(item, {k: getattr(candidate, k) for k in normalized})
        if not changes:
            return item

        derived = derive_fields(candidate, changes)
        if derived:
            candidate = candidate.model_copy(update=derived)

        user = self.user
        history = record_changes(item, candidate, list(changes), user)
        updated = candidate.model_copy(
            update={
                "edit_history": [*item.edit_history, *history],
                "last_modified_by": user,
                "last_modified_at": utcnow(),
            }
        )

        entries = list(report.entries)
        entries[index] = updated
        await self.reports.commit(report, entries)
        await log_activity(
            self.documents,
            user,
            "Updated Item",
            f"Changed {', '.join(changes)}",
            report.date,
        )
        return updated

    async def split_item(self, item_id: str) -> DPRItem:
        """Insert a zero-quantity copy of the item directly after it."""
        report, index = self._locate(item_id)
        source = report.entries[index]
        user = self.user

        clone = source.model_copy(
            deep=True,
            update={
                "id": new_id(),
                "activity_description": f"{source.activity_description}{SPLIT_SUFFIX}",
                "quantity": 0.0,
                "unit": source.unit or DEFAULT_UNIT,
                "edit_history": [split_entry(source, user)],
                "last_modified_by": user,
                "last_modified_at": utcnow(),
            },
        )

        entries = list(report.entries)
        entries.insert(index + 1, clone)
        await self.reports.commit(report, entries)
        await log_activity(
            self.documents,
            user,
            "Split Item",
            f"Split entry {source.id[:8]} at {source.location}",
            report.date,
        )
        return clone

    async def delete_item(self, item_id: str, confirm: Confirm | None = None) -> TrashItem | None:
        """Move an item to the trash. Returns None if the caller declined."""
        report, index = self._locate(item_id)
        item = report.entries[index]
        if confirm is not None and not confirm(item):
            logger.info(f"Delete of {item_id} cancelled")
            return None

        user = self.user
        trash_item = await self.trash.move_item(item, report, user)
        entries = [e for e in report.entries if e.id != item_id]
        await self.reports.commit(report, entries)

        if self.reports.inspected_id == item_id:
            self.close_inspector()
        await log_activity(
            self.documents,
            user,
            "Deleted Item",
            f"Deleted entry for {item.location}",
            report.date,
        )
        return trash_item

    # -- undo / redo -----------------------------------------------------

    async def undo(self) -> DailyReport | None:
        report = self.reports.current_report
        if report is None or not self.reports.can_undo:
            return None
        previous = self.reports.history.peek_undo()
        saved = await self.reports.commit(report, previous, record_history=False)
        # stacks move only once the save has gone through
        self.reports.history.undo(list(report.entries))
        await log_activity(self.documents, self.user, "Undo", "Reverted report state", report.date)
        return saved

    async def redo(self) -> DailyReport | None:
        report = self.reports.current_report
        if report is None or not self.reports.can_redo:
            return None
        following = self.reports.history.peek_redo()
        saved = await self.reports.commit(report, following, record_history=False)
        self.reports.history.redo(list(report.entries))
        await log_activity(self.documents, self.user, "Redo", "Restored report state", report.date)
        return saved

    # -- whole-report operations -----------------------------------------

    async def normalize_report(self) -> DailyReport | None:
        """Re-derive component, structural element and chainage for every entry."""
        report = self.reports.current_report
        if report is None or not report.entries:
            return None

        entries = []
        for item in report.entries:
            details = parse_quantity_details(
                item.location, item.component, item.chainage_or_area, item.activity_description
            )
            updates = {
                "component": details.structure or item.component,
                "structural_element": details.detail_element or item.structural_element,
                "chainage": details.detail_location or item.chainage,
            }
            updates.update(derive_fields(updates, CHAINAGE_INPUTS))
            entries.append(item.model_copy(update=updates))

        saved = await self.reports.commit(report, entries)
        await log_activity(
            self.documents, self.user, "Normalize", "Re-parsed all items in active report", report.date
        )
        return saved

    async def delete_report(self, report_id: str) -> TrashItem:
        report = self.reports.get(report_id)
        if report is None:
            raise ReportNotFoundError(f"Report {report_id} not found")

        trash_item = await self.trash.move_report(report, self.user)
        self.reports.forget(report_id)
        if report.date == self.reports.active_date:
            self.reports.history.clear()
            self.close_inspector()
        await log_activity(
            self.documents, self.user, "Deleted Report", f"Moved report {report.date} to trash", report.date
        )
        return trash_item

    async def restore(self, trash_id: str) -> TrashItem:
        """Restore a trash entry. The remote echo refreshes the local cache."""
        trash_item = await self.trash.restore(trash_id)
        await log_activity(
            self.documents,
            self.user,
            "Restore",
            json.dumps({"type": trash_item.type.value, "id": trash_item.original_id}),
            trash_item.report_date,
        )
        return trash_item

    async def recover_backup(self, backup_id: str) -> DailyReport:
        """Rebuild the report for a backup's date from its archived items.

        Any report already on that date goes to the trash first, so the
        one-report-per-date rule holds and nothing is lost.
        """
        backup = await self.archive.get(backup_id)
        if backup is None:
            raise BackupNotFoundError(f"Backup {backup_id} not found")

        existing = self.reports.report_for(backup.date)
        if existing is not None:
            await self.trash.move_report(existing, self.user)
            self.reports.forget(existing.id)

        self.select_date(backup.date)
        # the stacks belonged to the replaced report
        self.reports.history.clear()
        self.close_inspector()
        entries = [
            item.model_copy(update={"id": new_id(), "source_backup_id": backup.id})
            for item in backup.parsed_items
        ]
        report = self.reports.new_report(backup.date, is_recovered=True)
        saved = await self.reports.commit(report, entries, record_history=False)

        await log_activity(
            self.documents,
            self.user,
            "RECOVERY",
            f"Restored report from backup ID {backup.id}",
            backup.date,
            related_backup_id=backup.id,
        )
        return saved
