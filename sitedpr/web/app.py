"""FastAPI web API for SiteDPR."""

from __future__ import annotations

from contextlib import asynccontextmanager
from uuid import uuid4

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from sitedpr.core.logging import configure_logging
from sitedpr.db.connection import close_db
from sitedpr.startup import open_session
from sitedpr.web.routes import health, quantities, session, trash

# Initialize structured logging
configure_logging()
logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    service, opened = await open_session()
    app.state.service = service
    app.state.opened = opened
    logger.info(
        "report_service_ready",
        active_date=service.reports.active_date,
        local_only=opened.local_only,
    )
    try:
        yield
    finally:
        await service.reports.stop()
        if not opened.local_only:
            await close_db()
        logger.info("report_service_stopped")


app = FastAPI(
    title="SiteDPR",
    description="Daily progress report reconciliation API",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)


# Request Logging Middleware
class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        structlog.contextvars.clear_contextvars()

        request_id = request.headers.get("X-Request-ID", str(uuid4()))
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            user=request.headers.get("X-User-Name") or request.headers.get("X-User-Email"),
        )

        logger.info(
            "request_started",
            method=request.method,
            path=request.url.path,
            client_ip=request.client.host if request.client else None,
        )

        try:
            response = await call_next(request)

            logger.info(
                "request_completed",
                status_code=response.status_code,
            )
            response.headers["X-Request-ID"] = request_id
            return response

        except Exception as exc:
            logger.error("request_failed", error=str(exc))
            raise


app.add_middleware(RequestLoggingMiddleware)


# Exception Handlers
@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
    )


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    """Validation failures raised inside the service layer (bad dates, fields)."""
    logger.warning("invalid_request", error=str(exc))
    return JSONResponse(status_code=422, content={"detail": str(exc)})


# Include Routers
app.include_router(health.router)
app.include_router(session.router)
app.include_router(trash.router)
app.include_router(quantities.router)
