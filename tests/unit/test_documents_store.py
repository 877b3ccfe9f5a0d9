"""Tests for sitedpr.store.documents - whole-document stores."""

from __future__ import annotations

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from sitedpr.db.models import Base
from sitedpr.store.documents import REPORTS, TRASH, InMemoryDocumentStore, SQLDocumentStore


async def _open_sql_store(path) -> tuple[AsyncEngine, SQLDocumentStore]:
    engine = create_async_engine(f"sqlite+aiosqlite:///{path / 'documents.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    return engine, SQLDocumentStore(factory)


@pytest.fixture
async def sql_store(tmp_path):
    """SQL document store on a throwaway SQLite file."""
    engine, store = await _open_sql_store(tmp_path)
    yield store
    await engine.dispose()


@pytest.fixture(params=["memory", "sql"])
async def store(request, tmp_path):
    if request.param == "memory":
        yield InMemoryDocumentStore()
    else:
        engine, sql = await _open_sql_store(tmp_path)
        yield sql
        await engine.dispose()


class TestDocumentStore:
    """Behaviour shared by both store implementations."""

    async def test_save_and_get(self, store):
        await store.save(REPORTS, "r1", {"id": "r1", "date": "2024-03-01"})

        assert await store.get(REPORTS, "r1") == {"id": "r1", "date": "2024-03-01"}

    async def test_save_replaces_whole_document(self, store):
        await store.save(REPORTS, "r1", {"id": "r1", "entries": [1, 2]})
        await store.save(REPORTS, "r1", {"id": "r1"})

        assert await store.get(REPORTS, "r1") == {"id": "r1"}

    async def test_collections_are_separate(self, store):
        await store.save(REPORTS, "x", {"kind": "report"})
        await store.save(TRASH, "x", {"kind": "trash"})

        assert (await store.get(REPORTS, "x"))["kind"] == "report"
        assert len(await store.list(TRASH)) == 1

    async def test_delete(self, store):
        await store.save(REPORTS, "r1", {"id": "r1"})

        await store.delete(REPORTS, "r1")
        await store.delete(REPORTS, "never-existed")

        assert await store.get(REPORTS, "r1") is None
        assert await store.list(REPORTS) == []

    async def test_get_returns_copy(self, store):
        await store.save(REPORTS, "r1", {"id": "r1", "entries": []})

        doc = await store.get(REPORTS, "r1")
        doc["entries"].append("mutated")

        assert (await store.get(REPORTS, "r1"))["entries"] == []

    async def test_subscribe_sends_full_collection(self, store):
        snapshots: list[list[dict]] = []
        await store.save(REPORTS, "r1", {"id": "r1"})

        unsubscribe = await store.subscribe(REPORTS, snapshots.append)
        await store.save(REPORTS, "r2", {"id": "r2"})
        await store.save(TRASH, "t1", {"id": "t1"})
        unsubscribe()
        await store.save(REPORTS, "r3", {"id": "r3"})

        assert [sorted(d["id"] for d in snap) for snap in snapshots] == [["r1"], ["r1", "r2"]]

    async def test_failing_listener_does_not_break_save(self, store):
        received: list[int] = []
        calls = []

        def flaky(documents):
            calls.append(len(documents))
            if len(calls) > 1:
                raise RuntimeError("view crashed")

        await store.subscribe(REPORTS, flaky)
        await store.subscribe(REPORTS, lambda documents: received.append(len(documents)))

        await store.save(REPORTS, "r1", {"id": "r1"})

        assert received == [0, 1]
        assert await store.get(REPORTS, "r1") is not None


class TestSQLDocumentStore:
    async def test_ping_counts_reports(self, sql_store):
        await sql_store.save(REPORTS, "r1", {"id": "r1"})
        await sql_store.save(TRASH, "t1", {"id": "t1"})

        assert await sql_store.ping() == 1

    async def test_documents_survive_new_store(self, tmp_path):
        engine, first = await _open_sql_store(tmp_path)
        await first.save(REPORTS, "r1", {"id": "r1", "entries": [{"unit": "m3"}]})
        await engine.dispose()

        engine, second = await _open_sql_store(tmp_path)
        try:
            assert await second.get(REPORTS, "r1") == {"id": "r1", "entries": [{"unit": "m3"}]}
        finally:
            await engine.dispose()
