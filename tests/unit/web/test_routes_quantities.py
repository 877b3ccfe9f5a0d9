"""Tests for sitedpr.web.routes.quantities and the health route."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from sitedpr.models import ProjectSettings
from sitedpr.startup import OpenedStore
from sitedpr.store.documents import InMemoryDocumentStore
from sitedpr.web.dependencies import get_autofill


class TestQuantityLedger:
    """Tests for GET /quantities."""

    def test_rows_carry_report_date(self, client, seeded):
        rows = client.get("/quantities").json()

        assert len(rows) == 2
        assert {r["date"] for r in rows} == {"2024-03-01"}
        assert all(r["reportId"] for r in rows)
        assert {r["itemType"] for r in rows} == {"C25 Concrete", "Rebar"}

    def test_empty(self, client):
        assert client.get("/quantities").json() == []


class TestEstimate:
    """Tests for GET /estimate."""

    def test_uses_project_rates(self, app, client, seeded):
        app.state.service.settings = ProjectSettings(item_rates={"C25 Concrete": 100, "Rebar": 1000})

        body = client.get("/estimate").json()

        groups = {g["itemType"]: g for g in body["groups"]}
        assert groups["C25 Concrete"]["totalAmount"] == 4500
        assert groups["Rebar"]["totalAmount"] == 2500
        assert body["grandTotal"] == 7000
        assert body["recordCount"] == 2

    def test_filters(self, client, seeded):
        body = client.get("/estimate", params={"location": "Headworks", "itemType": "C25 Concrete"}).json()

        assert [g["itemType"] for g in body["groups"]] == ["C25 Concrete"]
        assert body["groups"][0]["rate"] == 0
        assert body["grandTotal"] == 0


@pytest.fixture
def mock_autofill(app):
    autofill = MagicMock()
    autofill.autofill = AsyncMock(return_value={"quantity": 8.0, "unit": "m2", "item_type": "Formwork"})
    app.dependency_overrides[get_autofill] = lambda: autofill
    yield autofill
    app.dependency_overrides.clear()


class TestHardSync:
    """Tests for POST /hard-sync."""

    def test_repairs_thin_items(self, client, mock_autofill):
        client.post(
            "/session/items",
            json={"items": [{"location": "Headworks", "activityDescription": "shuttering at weir"}], "rawText": ""},
        )

        response = client.post("/hard-sync")

        body = response.json()
        assert response.status_code == 200
        assert body["repaired"] == 1
        assert body["reportsUpdated"] == 1
        entry = client.get("/session").json()["entries"][0]
        assert entry["quantity"] == 8
        assert entry["itemType"] == "Formwork"
        assert entry["lastModifiedBy"] == "AI Hard Sync"

    def test_nothing_to_repair(self, client, seeded, mock_autofill):
        body = client.post("/hard-sync").json()

        assert body["repaired"] == 0
        assert body["scanned"] == 2
        mock_autofill.autofill.assert_not_awaited()


class TestHealth:
    """Tests for GET /health."""

    def test_starting_before_store_opened(self, client):
        assert client.get("/health").json() == {"status": "starting", "storage": "unknown"}

    def test_local_only(self, app, client):
        app.state.opened = OpenedStore(InMemoryDocumentStore(), True, "DATABASE_URL is not set")

        body = client.get("/health").json()

        assert body == {"status": "ok", "storage": "local-only", "detail": "DATABASE_URL is not set"}
