"""Activity log of user actions on daily reports."""

import logging

from sitedpr.models import ANONYMOUS, LogEntry
from sitedpr.store.documents import LOGS, DocumentStore

logger = logging.getLogger(__name__)


async def log_activity(
    store: DocumentStore,
    user: str | None,
    action: str,
    details: str,
    report_date: str,
    related_backup_id: str | None = None,
) -> LogEntry | None:
    """Append an entry to the activity log.

    Args:
        store: Document store holding the log collection
        user: Attribution string of the actor
        action: Action name (e.g. "Report Updated", "Undo")
        details: Free text or JSON describing the change
        report_date: Date of the report the action touched
        related_backup_id: Raw-input archive entry behind the action, if any

    Logging must never break the action being logged, so failures are
    reported and swallowed here.
    """
    entry = LogEntry(
        user=user or ANONYMOUS,
        action=action,
        details=details,
        report_date=report_date,
        related_backup_id=related_backup_id,
    )
    try:
        await store.save(LOGS, entry.id, entry.to_document())
    except Exception as e:
        logger.error(f"Error logging activity '{action}': {e}")
        return None
    return entry


async def recent_activity(store: DocumentStore, limit: int = 100) -> list[LogEntry]:
    """Newest-first activity log."""
    entries = [LogEntry.from_document(d) for d in await store.list(LOGS)]
    entries.sort(key=lambda e: e.timestamp, reverse=True)
    return entries[:limit]
