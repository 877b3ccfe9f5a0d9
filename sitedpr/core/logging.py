"""Structured logging setup shared by the CLI and the web API.

Library modules log through the standard ``logging`` module; structlog
renders those records together with the web and CLI event logs.
"""

import logging
import sys
from pathlib import Path
from typing import Any

import structlog

from sitedpr.config import AppConfig, get_config

LOG_FILE = Path("logs/sitedpr.log")

# Client libraries that log every request at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "openai", "aiosqlite")


def build_processors(json_logs: bool) -> list[Any]:
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]
    if json_logs:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())
    return processors


def configure_logging(config: AppConfig | None = None) -> None:
    """Configure structlog and the root logger from ``LOG_FORMAT``/``LOG_LEVEL``."""
    config = config or get_config()

    structlog.configure(
        processors=build_processors(config.log_format.lower() == "json"),
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # stdout stays free for CLI tables
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if LOG_FILE.parent.exists():
        handlers.append(logging.FileHandler(LOG_FILE))

    logging.basicConfig(
        format="%(message)s",
        handlers=handlers,
        level=config.log_level.upper(),
    )

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    if not config.db.echo:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
