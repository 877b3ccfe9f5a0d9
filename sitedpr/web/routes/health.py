"""Health check API routes."""

from fastapi import APIRouter, Request, status

router = APIRouter(prefix="/health", tags=["Health"])


@router.get("", status_code=status.HTTP_200_OK)
async def health_check(request: Request):
    """Report whether the document store is shared or local-only."""
    opened = getattr(request.app.state, "opened", None)
    if opened is None:
        return {"status": "starting", "storage": "unknown"}
    return {
        "status": "ok",
        "storage": "local-only" if opened.local_only else "connected",
        "detail": opened.reason,
    }
