"""Shared dependencies for SiteDPR web routes.

The app holds one ``ReportService`` per process (``app.state.service``);
each request acts through it as the user named in its headers.

Usage:
    from fastapi import Depends
    from sitedpr.web.dependencies import get_service

    @router.get("/session")
    async def session(service: ReportService = Depends(get_service)):
        ...
"""

from __future__ import annotations

from fastapi import Depends, HTTPException, Request

from sitedpr.intelligence.autofill import AutofillService
from sitedpr.intelligence.parser import ConstructionParser
from sitedpr.models import UserIdentity
from sitedpr.reports.service import ReportService


def get_identity(request: Request) -> UserIdentity:
    """Attribution from the auth proxy headers; anonymous when absent."""
    return UserIdentity(
        uid=request.headers.get("X-User-Id"),
        display_name=request.headers.get("X-User-Name"),
        email=request.headers.get("X-User-Email"),
    )


def get_service(
    request: Request, identity: UserIdentity = Depends(get_identity)
) -> ReportService:
    service: ReportService | None = getattr(request.app.state, "service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Report service is not ready")
    return service.with_identity(identity)


def get_parser(service: ReportService = Depends(get_service)) -> ConstructionParser:
    return ConstructionParser(patterns=service.item_patterns())


def get_autofill(service: ReportService = Depends(get_service)) -> AutofillService:
    return AutofillService(patterns=service.item_patterns())
