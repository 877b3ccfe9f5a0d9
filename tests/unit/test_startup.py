"""Tests for startup validation and document store selection."""

from __future__ import annotations

import pytest

from sitedpr.config import AppConfig, DBConfig, StorageConfig
from sitedpr.models import UserIdentity
from sitedpr.startup import (
    OpenedStore,
    StartupValidationError,
    open_document_store,
    open_session,
    validate_item_types_config,
)
from sitedpr.store.documents import SETTINGS, InMemoryDocumentStore


@pytest.fixture
def local_config(tmp_path) -> AppConfig:
    return AppConfig(db=DBConfig(url=None), storage=StorageConfig(blob_root=tmp_path / "uploads"))


class TestOpenDocumentStore:
    async def test_local_only_without_database_url(self, local_config):
        opened = await open_document_store(local_config)

        assert opened.local_only is True
        assert isinstance(opened.store, InMemoryDocumentStore)
        assert "DATABASE_URL" in opened.reason

    async def test_unreachable_database_falls_back(self, tmp_path, monkeypatch):
        def broken_engine(url=None):
            raise OSError("connection refused")

        monkeypatch.setattr("sitedpr.db.connection.get_engine", broken_engine)
        config = AppConfig(db=DBConfig(url="sqlite+aiosqlite:///" + str(tmp_path / "x.db")))

        opened = await open_document_store(config)

        assert opened.local_only is True
        assert "connection refused" in opened.reason


class TestValidateItemTypes:
    async def test_invalid_file_fails_startup(self, monkeypatch):
        from sitedpr.classification.item_types import ConfigurationError

        def broken(config_path=None):
            raise ConfigurationError("bad yaml")

        monkeypatch.setattr("sitedpr.startup.load_item_types", broken)

        with pytest.raises(StartupValidationError):
            await validate_item_types_config()


class TestOpenSession:
    async def test_started_service(self, local_config):
        identity = UserIdentity(uid="u1", display_name="Site Engineer")

        service, opened = await open_session(
            identity=identity,
            config=local_config,
            opened=OpenedStore(InMemoryDocumentStore(), True),
        )
        try:
            assert opened.local_only
            assert service.identity == identity
            assert service.reports.project_title == "Bhotekoshi Hydroelectric Project"
            assert service.reports.history.max_depth == 20
        finally:
            await service.reports.stop()

    async def test_stored_settings_applied(self, local_config):
        documents = InMemoryDocumentStore()
        await documents.save(SETTINGS, "project", {"projectName": "Upper Tamakoshi", "companyName": "Acme"})

        service, _ = await open_session(config=local_config, opened=OpenedStore(documents, True))
        try:
            assert service.reports.project_title == "Upper Tamakoshi"
            assert service.reports.company_name == "Acme"
        finally:
            await service.reports.stop()
