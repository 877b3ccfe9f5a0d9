"""Daily report reconciliation, mutation and history."""

from sitedpr.reports.archive import RawInputArchive
from sitedpr.reports.history import UndoRedoHistory
from sitedpr.reports.service import (
    AddItemsResult,
    BackupNotFoundError,
    ItemNotFoundError,
    ReportNotFoundError,
    ReportService,
)
from sitedpr.reports.store import ReportStore
from sitedpr.reports.trash import TrashBin, TrashRestoreError

__all__ = [
    "AddItemsResult",
    "BackupNotFoundError",
    "ItemNotFoundError",
    "RawInputArchive",
    "ReportNotFoundError",
    "ReportService",
    "ReportStore",
    "TrashBin",
    "TrashRestoreError",
    "UndoRedoHistory",
]
