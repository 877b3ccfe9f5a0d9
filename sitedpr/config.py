"""SiteDPR configuration management.

Loads configuration from environment variables with sensible defaults.
A missing DATABASE_URL is not an error: the app then runs in local-only mode.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

# Load .env file if present
load_dotenv()


@dataclass
class DBConfig:
    """Document store connection configuration."""

    url: str | None = None  # None = local-only (in-memory) mode
    echo: bool = False  # SQL logging

    @property
    def is_configured(self) -> bool:
        return bool(self.url)


@dataclass
class LLMConfig:
    """LLM configuration for text parsing and autofill."""

    provider: str = "openai"
    api_key: str | None = None
    model: str = "gpt-4o-mini"
    temperature: float = 0.1
    max_tokens: int = 4000
    timeout_seconds: float = 35.0
    retry_attempts: int = 3


@dataclass
class HistoryConfig:
    """Undo/redo and learning-context bounds."""

    max_depth: int = 20
    learning_context_limit: int = 25


@dataclass
class ProjectConfig:
    """Defaults copied onto reports when no project settings are stored."""

    project_title: str = "Bhotekoshi Hydroelectric Project"
    company_name: str = ""
    default_unit: str = "m3"


@dataclass
class StorageConfig:
    """Blob storage for photo attachments."""

    blob_root: Path = field(default_factory=lambda: Path("uploads"))
    public_base_url: str | None = None


@dataclass
class AppConfig:
    """Root application configuration."""

    db: DBConfig = field(default_factory=DBConfig)
    log_level: str = "INFO"
    log_format: str = "text"  # json or text

    llm: LLMConfig = field(default_factory=LLMConfig)
    history: HistoryConfig = field(default_factory=HistoryConfig)
    project: ProjectConfig = field(default_factory=ProjectConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)

    @classmethod
    def from_env(cls) -> AppConfig:
        """Load configuration from environment variables.

        Optional (with defaults):
        - DATABASE_URL: async SQLAlchemy URL for the document store
          (e.g. sqlite+aiosqlite:///./sitedpr.db). Unset = local-only mode.
        - OPENAI_API_KEY / LLM_MODEL: parser and autofill model
        - UNDO_MAX_DEPTH: undo/redo stack bound (default 20)
        - PROJECT_TITLE / COMPANY_NAME: report header defaults
        - BLOB_ROOT: directory for uploaded photos
        """
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "text"),
            db=DBConfig(
                url=os.getenv("DATABASE_URL") or None,
                echo=os.getenv("DB_ECHO", "false").lower() == "true",
            ),
            llm=LLMConfig(
                provider=os.getenv("LLM_PROVIDER", "openai"),
                api_key=os.getenv("OPENAI_API_KEY"),
                model=os.getenv("LLM_MODEL", "gpt-4o-mini"),
                temperature=float(os.getenv("LLM_TEMPERATURE", "0.1")),
                max_tokens=int(os.getenv("LLM_MAX_TOKENS", "4000")),
                timeout_seconds=float(os.getenv("LLM_TIMEOUT_SECONDS", "35")),
                retry_attempts=int(os.getenv("LLM_RETRY_ATTEMPTS", "3")),
            ),
            history=HistoryConfig(
                max_depth=int(os.getenv("UNDO_MAX_DEPTH", "20")),
                learning_context_limit=int(os.getenv("LEARNING_CONTEXT_LIMIT", "25")),
            ),
            project=ProjectConfig(
                project_title=os.getenv(
                    "PROJECT_TITLE", "Bhotekoshi Hydroelectric Project"
                ),
                company_name=os.getenv("COMPANY_NAME", ""),
                default_unit=os.getenv("DEFAULT_UNIT", "m3"),
            ),
            storage=StorageConfig(
                blob_root=Path(os.getenv("BLOB_ROOT", "uploads")),
                public_base_url=os.getenv("BLOB_PUBLIC_BASE_URL"),
            ),
        )

    @property
    def config_root(self) -> Path:
        """Root directory for configuration files (item type overrides)."""
        return Path(__file__).parent.parent / "config"

    @property
    def item_types_config_path(self) -> Path:
        """Path to item_types.yaml."""
        return self.config_root / "item_types.yaml"


# Singleton instance (lazy-loaded)
_config: AppConfig | None = None


def get_config() -> AppConfig:
    """Get or create singleton AppConfig instance from environment."""
    global _config
    if _config is None:
        _config = AppConfig.from_env()
    return _config


def reset_config() -> None:
    """Drop the cached config (tests and CLI overrides)."""
    global _config
    _config = None
