"""Startup validation and document store selection.

A missing or unreachable database never stops the application: the store
falls back to local-only, in-memory mode and says so once.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sitedpr.classification.item_types import ConfigurationError, load_item_types
from sitedpr.config import AppConfig, get_config
from sitedpr.models import UserIdentity
from sitedpr.reports.history import UndoRedoHistory
from sitedpr.reports.service import ReportService
from sitedpr.reports.store import ReportStore
from sitedpr.store.blobs import LocalBlobStore
from sitedpr.store.documents import DocumentStore, InMemoryDocumentStore, SQLDocumentStore

logger = logging.getLogger(__name__)


class StartupValidationError(Exception):
    """Raised when startup validation fails."""

    pass


@dataclass
class OpenedStore:
    store: DocumentStore
    local_only: bool
    reason: str | None = None


async def validate_item_types_config() -> None:
    """Raises:
    StartupValidationError: If a custom item type file exists but is invalid
    """
    try:
        patterns = load_item_types()
        logger.info(f"✓ Item types loaded ({len(patterns)} types)")
    except ConfigurationError as e:
        raise StartupValidationError(f"Failed to load item types: {e}") from e


async def open_document_store(config: AppConfig | None = None) -> OpenedStore:
    """Connect the SQL document store, or fall back to local-only mode."""
    config = config or get_config()

    if not config.db.is_configured:
        reason = "DATABASE_URL is not set"
    else:
        try:
            from sitedpr.db.connection import get_engine, init_db

            get_engine(config.db.url)
            await init_db()
            store = SQLDocumentStore.from_config()
            count = await store.ping()
            logger.info(f"✓ Document store connected ({count} reports)")
            return OpenedStore(store=store, local_only=False)
        except Exception as e:
            reason = f"Document store unavailable: {e}"

    logger.warning(f"⚠ {reason}; running in local-only mode, changes will not persist")
    return OpenedStore(store=InMemoryDocumentStore(), local_only=True, reason=reason)


async def run_all_validations(config: AppConfig | None = None) -> OpenedStore:
    """Run startup validations and open the document store.

    Raises:
        StartupValidationError: If the item type configuration is invalid
    """
    logger.info("Running startup validations...")
    await validate_item_types_config()
    opened = await open_document_store(config)
    logger.info("✓ All startup validations passed")
    return opened


async def open_session(
    identity: UserIdentity | None = None,
    config: AppConfig | None = None,
    opened: OpenedStore | None = None,
) -> tuple[ReportService, OpenedStore]:
    """Validate, open the store and return a started ``ReportService``."""
    config = config or get_config()
    if opened is None:
        opened = await run_all_validations(config)

    reports = ReportStore(
        opened.store,
        history=UndoRedoHistory(config.history.max_depth),
        project_title=config.project.project_title,
        company_name=config.project.company_name,
    )
    await reports.start()

    service = ReportService(
        opened.store,
        reports,
        identity=identity,
        blobs=LocalBlobStore(config.storage.blob_root, config.storage.public_base_url),
    )
    await service.load_settings()
    return service, opened
