"""Unit tests for SiteDPR configuration management.

Tests AppConfig loading from environment variables and defaults.
"""

from __future__ import annotations

from pathlib import Path

from sitedpr.config import AppConfig, get_config, reset_config


class TestAppConfig:
    """Test AppConfig creation from the environment."""

    def test_database_url_is_optional(self, monkeypatch):
        """Test a missing DATABASE_URL means local-only mode, not an error."""
        monkeypatch.delenv("DATABASE_URL", raising=False)

        config = AppConfig.from_env()

        assert config.db.url is None
        assert config.db.is_configured is False

    def test_database_url_from_env(self, monkeypatch):
        monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///./test.db")

        config = AppConfig.from_env()

        assert config.db.url == "sqlite+aiosqlite:///./test.db"
        assert config.db.is_configured is True

    def test_defaults(self, monkeypatch):
        for var in ("UNDO_MAX_DEPTH", "LEARNING_CONTEXT_LIMIT", "LLM_MODEL", "LOG_LEVEL"):
            monkeypatch.delenv(var, raising=False)

        config = AppConfig.from_env()

        assert config.history.max_depth == 20
        assert config.history.learning_context_limit == 25
        assert config.llm.model == "gpt-4o-mini"
        assert config.llm.retry_attempts == 3
        assert config.project.default_unit == "m3"
        assert config.log_level == "INFO"

    def test_history_bounds_from_env(self, monkeypatch):
        monkeypatch.setenv("UNDO_MAX_DEPTH", "5")
        monkeypatch.setenv("LEARNING_CONTEXT_LIMIT", "10")

        config = AppConfig.from_env()

        assert config.history.max_depth == 5
        assert config.history.learning_context_limit == 10

    def test_llm_settings_from_env(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        monkeypatch.setenv("LLM_TEMPERATURE", "0.3")
        monkeypatch.setenv("LLM_RETRY_ATTEMPTS", "5")

        config = AppConfig.from_env()

        assert config.llm.api_key == "sk-test"
        assert config.llm.temperature == 0.3
        assert config.llm.retry_attempts == 5

    def test_blob_root_is_path(self, monkeypatch):
        monkeypatch.setenv("BLOB_ROOT", "/tmp/dpr-photos")

        config = AppConfig.from_env()

        assert config.storage.blob_root == Path("/tmp/dpr-photos")

    def test_item_types_path_under_config_root(self):
        config = AppConfig.from_env()

        assert config.item_types_config_path.name == "item_types.yaml"
        assert config.item_types_config_path.parent == config.config_root


class TestGetConfig:
    def test_singleton_until_reset(self, monkeypatch):
        first = get_config()
        assert get_config() is first

        monkeypatch.setenv("PROJECT_TITLE", "Upper Trishuli")
        reset_config()

        assert get_config() is not first
        assert get_config().project.project_title == "Upper Trishuli"
