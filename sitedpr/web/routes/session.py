"""Active-report session routes.

Routes:
- GET    /reports              - All reports, newest date first
- DELETE /reports/{report_id}  - Move a whole report to the trash
- GET    /session/date         - Active date and undo/redo flags
- PUT    /session/date         - Switch the active date (clears undo/redo)
- GET    /session              - Active report entries
- POST   /session/items        - Merge already-parsed items
- POST   /session/ingest       - Parse raw text and merge the result
- POST   /session/undo         - Undo the last change to the active report
- POST   /session/redo         - Redo
- POST   /session/normalize    - Re-parse every active entry
- PATCH  /items/{item_id}      - Update item fields
- POST   /items/{item_id}/split - Insert a split copy after the item
- DELETE /items/{item_id}      - Move the item to the trash
- GET    /inspect              - Live state of the inspected item
- POST   /inspect/{item_id}    - Open the inspector on an item
- DELETE /inspect              - Close the inspector
"""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import APIRouter, Body, Depends, HTTPException

from sitedpr.intelligence.parser import ConstructionParser, ParseError
from sitedpr.reports.service import ItemNotFoundError, ReportNotFoundError, ReportService
from sitedpr.web.dependencies import get_parser, get_service
from sitedpr.web.models import (
    AddItemsRequest,
    AddItemsResponse,
    DateSelection,
    IngestRequest,
    ReportSummary,
    SessionState,
)

router = APIRouter(tags=["session"])
logger = structlog.get_logger()


def _state(service: ReportService) -> SessionState:
    report = service.reports.current_report
    return SessionState(
        date=service.reports.active_date,
        report_id=report.id if report else None,
        entries=[item.to_document() for item in service.reports.current_entries],
        can_undo=service.reports.can_undo,
        can_redo=service.reports.can_redo,
        inspected_id=service.reports.inspected_id,
    )


def _not_found(e: LookupError) -> HTTPException:
    logger.warning("lookup_miss", error=str(e))
    return HTTPException(status_code=404, detail=str(e))


@router.get("/reports", response_model=list[ReportSummary])
async def list_reports(service: ReportService = Depends(get_service)):
    return [
        ReportSummary(
            id=report.id,
            date=report.date,
            entry_count=len(report.entries),
            last_updated=report.last_updated.isoformat(),
            project_title=report.project_title,
            is_recovered=report.is_recovered,
        )
        for report in service.reports.reports
    ]


@router.delete("/reports/{report_id}")
async def delete_report(report_id: str, service: ReportService = Depends(get_service)):
    try:
        trash_item = await service.delete_report(report_id)
    except ReportNotFoundError as e:
        raise _not_found(e)
    return trash_item.to_document()


@router.post("/session/normalize", response_model=SessionState)
async def normalize_report(service: ReportService = Depends(get_service)):
    """Re-derive structure, element and chainage for every active entry."""
    await service.normalize_report()
    return _state(service)


@router.get("/session/date")
async def get_active_date(service: ReportService = Depends(get_service)):
    return {
        "date": service.reports.active_date,
        "canUndo": service.reports.can_undo,
        "canRedo": service.reports.can_redo,
    }


@router.put("/session/date", response_model=SessionState)
async def set_active_date(
    selection: DateSelection, service: ReportService = Depends(get_service)
):
    service.select_date(selection.date)
    return _state(service)


@router.get("/session", response_model=SessionState)
async def get_session_state(service: ReportService = Depends(get_service)):
    return _state(service)


@router.post("/session/items", response_model=AddItemsResponse, status_code=201)
async def add_items(
    request: AddItemsRequest, service: ReportService = Depends(get_service)
):
    result = await service.add_items(request.items, request.raw_text)
    logger.info("items_added", count=len(result.added), backup_id=result.backup_id)
    return AddItemsResponse(
        report_id=result.report.id if result.report else None,
        date=result.report.date if result.report else service.reports.active_date,
        added=len(result.added),
        backup_id=result.backup_id,
        warnings=result.warnings,
    )


@router.post("/session/ingest", response_model=list[AddItemsResponse], status_code=201)
async def ingest_text(
    request: IngestRequest,
    service: ReportService = Depends(get_service),
    parser: ConstructionParser = Depends(get_parser),
):
    try:
        parsed = await parser.parse(
            request.raw_text,
            instructions=request.instructions,
            context_locations=request.context_locations,
            context_components=request.context_components,
        )
    except ParseError as e:
        raise HTTPException(
            status_code=422, detail={"message": str(e), "rawText": e.raw_text}
        )

    if request.bulk:
        results = await service.ingest_parsed(parsed.items, request.raw_text)
    else:
        results = [await service.add_items(parsed.items, request.raw_text)]

    return [
        AddItemsResponse(
            report_id=r.report.id if r.report else None,
            date=r.report.date if r.report else service.reports.active_date,
            added=len(r.added),
            backup_id=r.backup_id,
            warnings=[*parsed.warnings, *r.warnings],
        )
        for r in results
    ]


@router.post("/session/undo", response_model=SessionState)
async def undo(service: ReportService = Depends(get_service)):
    await service.undo()
    return _state(service)


@router.post("/session/redo", response_model=SessionState)
async def redo(service: ReportService = Depends(get_service)):
    await service.redo()
    return _state(service)


@router.patch("/items/{item_id}")
async def update_item(
    item_id: str,
    updates: dict[str, Any] = Body(...),
    service: ReportService = Depends(get_service),
):
    try:
        item = await service.update_item(item_id, updates)
    except ItemNotFoundError as e:
        raise _not_found(e)
    return item.to_document()


@router.post("/items/{item_id}/split", status_code=201)
async def split_item(item_id: str, service: ReportService = Depends(get_service)):
    try:
        item = await service.split_item(item_id)
    except ItemNotFoundError as e:
        raise _not_found(e)
    return item.to_document()


@router.delete("/items/{item_id}")
async def delete_item(item_id: str, service: ReportService = Depends(get_service)):
    # confirmation happens client-side before this call
    try:
        trash_item = await service.delete_item(item_id)
    except ItemNotFoundError as e:
        raise _not_found(e)
    return trash_item.to_document()


@router.get("/inspect")
async def get_inspected(service: ReportService = Depends(get_service)):
    item = service.inspected
    return {"item": item.to_document() if item else None}


@router.post("/inspect/{item_id}")
async def open_inspector(item_id: str, service: ReportService = Depends(get_service)):
    try:
        item = service.inspect(item_id)
    except ItemNotFoundError as e:
        raise _not_found(e)
    return {"item": item.to_document()}


@router.delete("/inspect")
async def close_inspector(service: ReportService = Depends(get_service)):
    service.close_inspector()
    return {"item": None}
