"""Document store used as the single source of truth for reports.

Documents are whole-object upserts: every save transmits the full entity and
there are no partial server-side updates. Subscribers receive the complete
contents of a collection on every change. Writes are last-write-wins; there is
no version check.
"""

from __future__ import annotations

import copy
import logging
from collections import defaultdict
from collections.abc import Callable
from typing import Any, Protocol

from sqlalchemy import select

from sitedpr.db.models import DocumentModel

logger = logging.getLogger(__name__)

REPORTS = "daily_reports"
LOGS = "activity_logs"
TRASH = "trash_bin"
BACKUPS = "permanent_backups"
REPORT_HISTORY = "report_history"
QUANTITIES = "quantities"
SETTINGS = "settings"
USERS = "users"
SUBCONTRACTORS = "subcontractors"

Listener = Callable[[list[dict[str, Any]]], None]
Unsubscribe = Callable[[], None]


class DocumentStore(Protocol):
    async def subscribe(self, collection: str, listener: Listener) -> Unsubscribe: ...

    async def save(self, collection: str, doc_id: str, data: dict[str, Any]) -> None: ...

    async def delete(self, collection: str, doc_id: str) -> None: ...

    async def get(self, collection: str, doc_id: str) -> dict[str, Any] | None: ...

    async def list(self, collection: str) -> list[dict[str, Any]]: ...


class _ListenerRegistry:
    """Collection -> listeners, shared by the store implementations."""

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = defaultdict(list)

    def add(self, collection: str, listener: Listener) -> Unsubscribe:
        self._listeners[collection].append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners[collection]:
                self._listeners[collection].remove(listener)

        return unsubscribe

    def has_listeners(self, collection: str) -> bool:
        return bool(self._listeners.get(collection))

    def notify(self, collection: str, documents: list[dict[str, Any]]) -> None:
        for listener in list(self._listeners.get(collection, [])):
            try:
                listener(copy.deepcopy(documents))
            except Exception:
                logger.exception("Listener for %s failed", collection)


class InMemoryDocumentStore:
    """Non-persistent store used in local-only mode and in tests."""

    def __init__(self) -> None:
        self._collections: dict[str, dict[str, dict[str, Any]]] = defaultdict(dict)
        self._registry = _ListenerRegistry()

    async def subscribe(self, collection: str, listener: Listener) -> Unsubscribe:
        unsubscribe = self._registry.add(collection, listener)
        listener(await self.list(collection))
        return unsubscribe

    async def save(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        self._collections[collection][doc_id] = copy.deepcopy(data)
        await self._publish(collection)

    async def delete(self, collection: str, doc_id: str) -> None:
        self._collections[collection].pop(doc_id, None)
        await self._publish(collection)

    async def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        data = self._collections[collection].get(doc_id)
        return copy.deepcopy(data) if data is not None else None

    async def list(self, collection: str) -> list[dict[str, Any]]:
        return [copy.deepcopy(d) for d in self._collections[collection].values()]

    async def _publish(self, collection: str) -> None:
        if self._registry.has_listeners(collection):
            self._registry.notify(collection, await self.list(collection))


class SQLDocumentStore:
    """Document store backed by the async SQLAlchemy ``documents`` table."""

    def __init__(self, session_factory: Callable[[], Any]):
        self._session_factory = session_factory
        self._registry = _ListenerRegistry()

    @classmethod
    def from_config(cls) -> SQLDocumentStore:
        from sitedpr.db.connection import get_session_factory

        return cls(get_session_factory())

    async def ping(self) -> int:
        """Round-trip to the database; returns the number of stored reports."""
        return len(await self.list(REPORTS))

    async def subscribe(self, collection: str, listener: Listener) -> Unsubscribe:
        unsubscribe = self._registry.add(collection, listener)
        listener(await self.list(collection))
        return unsubscribe

    async def save(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        async with self._session_factory() as session:
            existing = await session.get(DocumentModel, (collection, doc_id))
            if existing is None:
                session.add(DocumentModel(collection=collection, doc_id=doc_id, data=data))
            else:
                existing.data = data
            await session.commit()
        await self._publish(collection)

    async def delete(self, collection: str, doc_id: str) -> None:
        async with self._session_factory() as session:
            existing = await session.get(DocumentModel, (collection, doc_id))
            if existing is not None:
                await session.delete(existing)
                await session.commit()
        await self._publish(collection)

    async def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        async with self._session_factory() as session:
            existing = await session.get(DocumentModel, (collection, doc_id))
            return copy.deepcopy(existing.data) if existing is not None else None

    async def list(self, collection: str) -> list[dict[str, Any]]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(DocumentModel.data)
                .where(DocumentModel.collection == collection)
                .order_by(DocumentModel.doc_id)
            )
            return [copy.deepcopy(row) for row in result.scalars().all()]

    async def _publish(self, collection: str) -> None:
        if self._registry.has_listeners(collection):
            self._registry.notify(collection, await self.list(collection))
