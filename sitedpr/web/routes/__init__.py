"""SiteDPR Web Route Modules.

Each module exports a ``router`` (APIRouter instance) that
``sitedpr.web.app`` includes. Shared dependencies live in
``sitedpr.web.dependencies`` and request/response bodies in
``sitedpr.web.models``.

Usage:
    from sitedpr.web.routes import session
    app.include_router(session.router)
"""

from sitedpr.web.routes import health, quantities, session, trash

__all__ = ["health", "quantities", "session", "trash"]
