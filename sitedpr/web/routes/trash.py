"""Recycle bin and raw-input archive routes.

Routes:
- GET  /trash                     - Soft-deleted objects, newest first
- POST /trash/{trash_id}/restore  - Restore a trash entry
- GET  /backups                   - Archived raw inputs
- POST /backups/{backup_id}/recover - Rebuild a report from an archived input
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query

from sitedpr.reports.service import BackupNotFoundError, ReportService
from sitedpr.reports.trash import TrashRestoreError
from sitedpr.web.dependencies import get_service

router = APIRouter(tags=["trash"])
logger = structlog.get_logger()


@router.get("/trash")
async def list_trash(service: ReportService = Depends(get_service)):
    return [item.to_document() for item in await service.trash.list()]


@router.post("/trash/{trash_id}/restore")
async def restore_trash_item(trash_id: str, service: ReportService = Depends(get_service)):
    try:
        restored = await service.restore(trash_id)
    except TrashRestoreError as e:
        logger.warning("restore_failed", trash_id=trash_id, error=str(e))
        raise HTTPException(status_code=404, detail=str(e))
    return restored.to_document()


@router.get("/backups")
async def list_backups(
    limit: int = Query(default=50, ge=1, le=500),
    start: str | None = Query(default=None),
    end: str | None = Query(default=None),
    service: ReportService = Depends(get_service),
):
    entries = await service.archive.list(limit=limit, start=start, end=end)
    return [entry.to_document() for entry in entries]


@router.post("/backups/{backup_id}/recover", status_code=201)
async def recover_backup(backup_id: str, service: ReportService = Depends(get_service)):
    try:
        report = await service.recover_backup(backup_id)
    except BackupNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return report.to_document()
