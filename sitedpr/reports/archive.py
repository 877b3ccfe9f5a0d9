"""Raw-input archive: immutable records of what was pasted and what it parsed into."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from sitedpr.models import BackupEntry, DPRItem
from sitedpr.store.documents import BACKUPS, DocumentStore

logger = logging.getLogger(__name__)

DIRECT_ENTRY = "Direct Entry"


class RawInputArchive:
    def __init__(self, store: DocumentStore):
        self.store = store

    async def save(
        self,
        date: str,
        raw_input: str,
        parsed_items: Sequence[DPRItem],
        user: str,
        report_id_context: str = "",
    ) -> BackupEntry:
        """Persist a new archive record. Errors propagate to the caller."""
        entry = BackupEntry(
            date=date,
            user=user,
            raw_input=raw_input,
            parsed_items=list(parsed_items),
            report_id_context=report_id_context,
        )
        await self.store.save(BACKUPS, entry.id, entry.to_document())
        logger.info(f"Archived raw input {entry.id} ({len(parsed_items)} items) for {date}")
        return entry

    async def get(self, backup_id: str) -> BackupEntry | None:
        data = await self.store.get(BACKUPS, backup_id)
        return BackupEntry.from_document(data) if data else None

    async def list(
        self,
        limit: int = 50,
        start: str | None = None,
        end: str | None = None,
    ) -> list[BackupEntry]:
        """Newest first, optionally bounded to an inclusive date range."""
        entries = [BackupEntry.from_document(d) for d in await self.store.list(BACKUPS)]
        if start:
            entries = [e for e in entries if e.date >= start]
        if end:
            entries = [e for e in entries if e.date <= end]
        entries.sort(key=lambda e: e.timestamp, reverse=True)
        return entries[:limit]

    async def source_label(self, item: DPRItem) -> str:
        """Human-readable provenance for an item."""
        if not item.source_backup_id:
            return DIRECT_ENTRY
        entry = await self.get(item.source_backup_id)
        if entry is None:
            return DIRECT_ENTRY
        return f"{entry.user} @ {entry.timestamp:%Y-%m-%d %H:%M}"
