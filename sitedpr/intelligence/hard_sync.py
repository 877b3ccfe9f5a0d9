"""Batch repair of thin report items with AI autofill.

Whether an item needs repair is decided from its current fields alone, so a
run that stops halfway can simply be started again.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from typing import Optional

from sitedpr.classification.item_types import OTHER, ItemPattern
from sitedpr.core.activity_log import log_activity
from sitedpr.intelligence.autofill import AutofillService
from sitedpr.models import DailyReport, DPRItem, utcnow
from sitedpr.reports.audit import record_changes
from sitedpr.reports.store import ReportStore

logger = logging.getLogger(__name__)

HARD_SYNC_USER = "AI Hard Sync"
COMPLEX_LOCATION_MARKERS = ("HRT", "Tunnel")

ProgressCallback = Callable[[int, int], None]


class HardSyncError(Exception):
    """The batch could not run to completion."""


@dataclass
class HardSyncResult:
    scanned: int = 0
    repaired: int = 0
    failed: int = 0
    reports_updated: int = 0
    errors: list[str] = field(default_factory=list)


def needs_repair(item: DPRItem) -> bool:
    """Quantity zero or missing, no unit, or unclassified."""
    return not item.quantity or not (item.unit or "").strip() or item.item_type == OTHER


def _is_learning_example(item: DPRItem) -> bool:
    if item.edit_history:
        return True
    return any(marker in (item.location or "") for marker in COMPLEX_LOCATION_MARKERS)


def build_learning_context(reports: Iterable[DailyReport], limit: int = 25) -> str:
    """Recent human-corrected items formatted as few-shot examples."""
    lines: list[str] = []
    for report in sorted(reports, key=lambda r: r.date, reverse=True):
        for item in report.entries:
            if len(lines) >= limit:
                return "\n".join(lines)
            if not item.activity_description or not _is_learning_example(item):
                continue
            output = json.dumps(
                {
                    "location": item.location,
                    "component": item.component,
                    "itemType": item.item_type,
                    "unit": item.unit,
                }
            )
            lines.append(f'Input: "{item.activity_description}" -> Output: {output}')
    return "\n".join(lines)


async def _repair_item(
    item: DPRItem,
    autofill: AutofillService,
    learned_context: str,
    patterns: Optional[Sequence[ItemPattern]],
) -> DPRItem | None:
    result = await autofill.autofill(
        item.activity_description,
        item_types=patterns,
        learned_context=learned_context or None,
        fallback=False,
    )

    updates: dict = {}
    if result.get("quantity"):
        updates["quantity"] = result["quantity"]
    if result.get("unit"):
        updates["unit"] = result["unit"]
    if not updates:
        return None
    if result.get("item_type") and result["item_type"] != OTHER:
        updates["item_type"] = result["item_type"]

    candidate = item.model_copy(update=updates)
    history = record_changes(item, candidate, list(updates), HARD_SYNC_USER)
    if not history:
        return None
    return candidate.model_copy(
        update={
            "edit_history": [*item.edit_history, *history],
            "last_modified_by": HARD_SYNC_USER,
            "last_modified_at": utcnow(),
        }
    )


async def run_hard_sync(
    store: ReportStore,
    autofill: AutofillService,
    patterns: Optional[Sequence[ItemPattern]] = None,
    context_limit: int = 25,
    progress_callback: Optional[ProgressCallback] = None,
) -> HardSyncResult:
    """Repair every thin item across all reports, one item at a time.

    Per-item failures are logged and counted. Only reports with at least one
    repaired item are saved.

    Raises:
        HardSyncError: On an unexpected failure outside a single item
    """
    result = HardSyncResult()
    try:
        reports = store.reports
        learned_context = build_learning_context(reports, limit=context_limit)
        candidates = [
            (report, item)
            for report in reports
            for item in report.entries
            if needs_repair(item) and item.activity_description.strip()
        ]
        result.scanned = sum(len(r.entries) for r in reports)
        logger.info(
            f"Hard sync: {len(candidates)} of {result.scanned} items need repair"
        )

        repaired_by_report: dict[str, dict[str, DPRItem]] = {}
        for done, (report, item) in enumerate(candidates, start=1):
            try:
                repaired = await _repair_item(item, autofill, learned_context, patterns)
                if repaired is not None:
                    repaired_by_report.setdefault(report.id, {})[item.id] = repaired
                    result.repaired += 1
            except Exception as e:
                logger.error(f"Hard sync failed for item {item.id}: {e}")
                result.failed += 1
                result.errors.append(f"{item.id}: {e}")
            finally:
                if progress_callback:
                    progress_callback(done, len(candidates))

        for report_id, repaired in repaired_by_report.items():
            # re-read: the report may have changed while the batch ran
            report = store.get(report_id)
            if report is None:
                logger.warning(f"Report {report_id} disappeared during hard sync")
                continue
            entries = [repaired.get(e.id, e) for e in report.entries]
            await store.commit(report, entries)
            result.reports_updated += 1

    except Exception as e:
        logger.exception("Hard sync aborted")
        raise HardSyncError(f"Hard sync aborted: {e}") from e

    if result.reports_updated:
        await log_activity(
            store.documents,
            HARD_SYNC_USER,
            "Hard Sync",
            f"Repaired {result.repaired} items across {result.reports_updated} reports",
            store.active_date,
        )
    return result
