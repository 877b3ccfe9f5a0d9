"""Quantity roll-ups and AI backfill routes.

Routes:
- GET  /quantities - Quantity ledger across all reports
- GET  /estimate   - Financial estimate by item type
- POST /hard-sync  - Backfill thin items with AI autofill
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query

from sitedpr.config import get_config
from sitedpr.intelligence.autofill import AutofillService
from sitedpr.intelligence.hard_sync import HardSyncError, run_hard_sync
from sitedpr.reporting.quantities import financial_estimate, quantity_ledger
from sitedpr.reports.service import ReportService
from sitedpr.web.dependencies import get_autofill, get_service
from sitedpr.web.models import HardSyncResponse

router = APIRouter(tags=["quantities"])
logger = structlog.get_logger()


@router.get("/quantities")
async def list_quantities(service: ReportService = Depends(get_service)):
    return [
        {"date": row.date, "reportId": row.report_id, **row.item.to_document()}
        for row in quantity_ledger(service.reports.reports)
    ]


@router.get("/estimate")
async def get_estimate(
    location: str | None = Query(default=None),
    component: str | None = Query(default=None),
    item_type: str | None = Query(default=None, alias="itemType"),
    start: str | None = Query(default=None),
    end: str | None = Query(default=None),
    service: ReportService = Depends(get_service),
):
    rates = service.settings.item_rates if service.settings else {}
    estimate = financial_estimate(
        service.reports.reports,
        rates,
        location=location,
        component=component,
        item_type=item_type,
        start=start,
        end=end,
    )
    return {
        "recordCount": estimate.record_count,
        "grandTotal": estimate.grand_total,
        "groups": [
            {
                "itemType": group.item_type,
                "unit": group.unit,
                "rate": group.rate,
                "totalQuantity": group.total_quantity,
                "totalAmount": group.total_amount,
                "count": len(group.rows),
            }
            for group in estimate.groups.values()
        ],
    }


@router.post("/hard-sync", response_model=HardSyncResponse)
async def hard_sync(
    service: ReportService = Depends(get_service),
    autofill: AutofillService = Depends(get_autofill),
):
    try:
        result = await run_hard_sync(
            service.reports,
            autofill,
            patterns=service.item_patterns(),
            context_limit=get_config().history.learning_context_limit,
        )
    except HardSyncError as e:
        raise HTTPException(status_code=500, detail=str(e))

    logger.info(
        "hard_sync_complete",
        repaired=result.repaired,
        failed=result.failed,
        reports_updated=result.reports_updated,
    )
    return HardSyncResponse(
        scanned=result.scanned,
        repaired=result.repaired,
        failed=result.failed,
        reports_updated=result.reports_updated,
        errors=result.errors,
    )
