"""Fixtures shared by the web route tests."""

from contextlib import asynccontextmanager

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from sitedpr.reports.history import UndoRedoHistory
from sitedpr.reports.service import ReportService
from sitedpr.reports.store import ReportStore
from sitedpr.store.documents import InMemoryDocumentStore
from sitedpr.web.routes import health, quantities, session, trash

WEB_TEST_DATE = "2024-03-01"
ENGINEER = {"X-User-Id": "u-1", "X-User-Name": "Site Engineer"}


@pytest.fixture
def app():
    """Test app with all routers and a fresh in-memory report service."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        documents = InMemoryDocumentStore()
        reports = ReportStore(
            documents,
            history=UndoRedoHistory(20),
            active_date=WEB_TEST_DATE,
            project_title="Test Hydro Project",
        )
        await reports.start()
        app.state.service = ReportService(documents, reports)
        yield
        await reports.stop()

    test_app = FastAPI(lifespan=lifespan)
    test_app.include_router(health.router)
    test_app.include_router(session.router)
    test_app.include_router(trash.router)
    test_app.include_router(quantities.router)
    return test_app


@pytest.fixture
def client(app):
    """Test client; entering it runs the lifespan."""
    with TestClient(app, headers=ENGINEER) as test_client:
        yield test_client


@pytest.fixture
def seeded(client):
    """Two items on the active report."""
    response = client.post(
        "/session/items",
        json={
            "items": [
                {
                    "location": "Powerhouse",
                    "component": "Main Building",
                    "activityDescription": "Rebar fixing",
                    "quantity": 2.5,
                    "unit": "Ton",
                    "itemType": "Rebar",
                },
                {
                    "location": "Headworks",
                    "component": "Weir",
                    "activityDescription": "C25 concrete in weir",
                    "quantity": 45,
                    "unit": "m3",
                    "itemType": "C25 Concrete",
                },
            ],
            "rawText": "weir 45 cum, PH rebar 2.5 MT",
        },
    )
    assert response.status_code == 201
    return client.get("/session").json()["entries"]
