"""Client-side report state mirrored from the document store.

``ReportStore`` is the only object that writes reports. It keeps a cache of
every report fed by the remote subscription, tracks the active date, and
funnels each save through ``commit`` so the undo snapshot and the background
history snapshot can never be skipped.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from datetime import date as date_cls
from typing import Any

from sitedpr.models import DailyReport, DPRItem, ReportSnapshot, utcnow, validate_report_date
from sitedpr.reports.history import UndoRedoHistory
from sitedpr.store.documents import REPORT_HISTORY, REPORTS, DocumentStore, Unsubscribe

logger = logging.getLogger(__name__)

StoreListener = Callable[["ReportStore"], None]


class ReportStore:
    def __init__(
        self,
        documents: DocumentStore,
        *,
        history: UndoRedoHistory | None = None,
        active_date: str | None = None,
        project_title: str = "",
        company_name: str = "",
    ):
        self.documents = documents
        self.history = history or UndoRedoHistory()
        self.active_date = active_date or date_cls.today().isoformat()
        self.project_title = project_title
        self.company_name = company_name
        self.inspected_id: str | None = None

        self._reports: dict[str, DailyReport] = {}
        self._listeners: list[StoreListener] = []
        self._remote_unsubscribe: Unsubscribe | None = None
        self._background: set[asyncio.Task[Any]] = set()

    # -- lifecycle -------------------------------------------------------

    async def start(self) -> None:
        """Subscribe to the remote report collection."""
        if self._remote_unsubscribe is None:
            self._remote_unsubscribe = await self.documents.subscribe(
                REPORTS, self._on_remote_snapshot
            )

    async def stop(self) -> None:
        if self._remote_unsubscribe is not None:
            self._remote_unsubscribe()
            self._remote_unsubscribe = None
        await self.drain()

    async def drain(self) -> None:
        """Wait for background writes (history snapshots) to settle."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    def _on_remote_snapshot(self, documents: list[dict[str, Any]]) -> None:
        reports: dict[str, DailyReport] = {}
        for data in documents:
            try:
                report = DailyReport.from_document(data)
            except ValueError as e:
                logger.warning(f"Skipping malformed report document {data.get('id')}: {e}")
                continue
            reports[report.id] = report
        self._reports = reports
        self._notify()

    # -- observers -------------------------------------------------------

    def subscribe(self, listener: StoreListener) -> Unsubscribe:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception:
                logger.exception("Report store listener failed")

    # -- reads -----------------------------------------------------------

    @property
    def reports(self) -> list[DailyReport]:
        """All known reports, newest date first."""
        return sorted(self._reports.values(), key=lambda r: r.date, reverse=True)

    def get(self, report_id: str) -> DailyReport | None:
        return self._reports.get(report_id)

    def report_for(self, date: str) -> DailyReport | None:
        for report in self._reports.values():
            if report.date == date:
                return report
        return None

    @property
    def current_report(self) -> DailyReport | None:
        return self.report_for(self.active_date)

    @property
    def current_entries(self) -> list[DPRItem]:
        report = self.current_report
        return list(report.entries) if report else []

    @property
    def can_undo(self) -> bool:
        return self.history.can_undo

    @property
    def can_redo(self) -> bool:
        return self.history.can_redo

    def locate(self, item_id: str) -> tuple[DailyReport, int] | None:
        """Owning report and index of an item; the active report is searched first."""
        current = self.current_report
        candidates = [current] if current else []
        candidates += [r for r in self._reports.values() if r is not current]
        for report in candidates:
            index = report.index_of(item_id)
            if index >= 0:
                return report, index
        return None

    # -- writes ----------------------------------------------------------

    def select_date(self, date: str) -> bool:
        """Switch the active report. Returns True when the date changed."""
        if date == self.active_date:
            return False
        validate_report_date(date)
        self.active_date = date
        self.history.clear()
        self.inspected_id = None
        self._notify()
        return True

    def new_report(self, date: str, **fields: Any) -> DailyReport:
        return DailyReport(
            date=date,
            project_title=self.project_title,
            company_name=self.company_name,
            **fields,
        )

    async def commit(
        self,
        report: DailyReport,
        entries: Sequence[DPRItem],
        *,
        record_history: bool = True,
        **fields: Any,
    ) -> DailyReport:
        """Persist ``entries`` as the new contents of ``report``.

        When the report is the active one and ``record_history`` is set, the
        entries it held before this call are pushed onto the undo stack. Undo
        and redo pass ``record_history=False`` since they manage the stacks
        themselves.
        """
        previous = self._reports.get(report.id)
        before = list(previous.entries) if previous else []

        updated = report.model_copy(
            update={
                "entries": list(entries),
                "last_updated": utcnow(),
                "project_title": self.project_title or report.project_title,
                "company_name": self.company_name or report.company_name,
                **fields,
            }
        )

        await self.documents.save(REPORTS, updated.id, updated.to_document())
        if record_history and report.date == self.active_date:
            self.history.record(before)
        # read-your-write until the remote echo arrives
        self._reports[updated.id] = updated
        self._notify()

        self._spawn(self._save_snapshot(updated))
        return updated

    def forget(self, report_id: str) -> None:
        """Forget a report locally once it has been moved to trash."""
        if self._reports.pop(report_id, None) is not None:
            self._notify()

    def reorder_for_print(self, order: Sequence[str]) -> list[DPRItem]:
        """Permute the active entries for export without persisting anything.

        Ids missing from ``order`` keep their relative position after the
        ordered ones. The new order lives only in the returned list.
        """
        entries = self.current_entries
        rank = {item_id: i for i, item_id in enumerate(order)}
        return sorted(entries, key=lambda item: rank.get(item.id, len(rank)))

    def _spawn(self, coro) -> None:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _save_snapshot(self, report: DailyReport) -> None:
        snapshot = ReportSnapshot(
            report_id=report.id,
            report_date=report.date,
            snapshot=report,
        )
        try:
            await self.documents.save(
                REPORT_HISTORY, snapshot.history_id, snapshot.to_document()
            )
        except Exception as e:
            logger.error(f"Error saving report history for {report.date}: {e}")
