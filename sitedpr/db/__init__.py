"""Database layer for SiteDPR with async SQLAlchemy."""

from sitedpr.db.connection import close_db, get_engine, get_session_factory, init_db
from sitedpr.db.models import Base, DocumentModel

__all__ = [
    "Base",
    "DocumentModel",
    "close_db",
    "get_engine",
    "get_session_factory",
    "init_db",
]
