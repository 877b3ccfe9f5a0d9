"""Pytest configuration and fixtures for SiteDPR tests.

Provides an in-memory document store, a started report store and a service
acting as a named site engineer.
"""

from __future__ import annotations

import pytest

from sitedpr.config import reset_config
from sitedpr.models import DPRItem, UserIdentity
from sitedpr.reports.history import UndoRedoHistory
from sitedpr.reports.service import ReportService
from sitedpr.reports.store import ReportStore
from sitedpr.store.documents import InMemoryDocumentStore

TEST_DATE = "2024-03-01"


@pytest.fixture(autouse=True)
def _fresh_config(monkeypatch):
    """Every test sees a config built from a clean environment."""
    monkeypatch.delenv("DATABASE_URL", raising=False)
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    reset_config()
    yield
    reset_config()


@pytest.fixture
def documents() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
async def report_store(documents: InMemoryDocumentStore):
    """Report store subscribed to the in-memory documents, active on TEST_DATE."""
    store = ReportStore(
        documents,
        history=UndoRedoHistory(max_depth=20),
        active_date=TEST_DATE,
        project_title="Test Hydro Project",
    )
    await store.start()
    yield store
    await store.stop()


@pytest.fixture
def identity() -> UserIdentity:
    return UserIdentity(uid="user-1", display_name="Site Engineer", email="se@example.com")


@pytest.fixture
def service(documents, report_store, identity) -> ReportService:
    return ReportService(documents, report_store, identity=identity)


@pytest.fixture
def headworks_item() -> DPRItem:
    return DPRItem(
        location="Headworks",
        component="Weir",
        activity_description="C25 concrete in weir wall",
        quantity=45,
        unit="m3",
        item_type="C25 Concrete",
    )


@pytest.fixture
def powerhouse_item() -> DPRItem:
    return DPRItem(
        location="Powerhouse",
        component="Main Building",
        activity_description="Rebar fixing for slab",
        quantity=2.5,
        unit="Ton",
        item_type="Rebar",
    )
