"""Logging setup for the catalog server.

Settings come from the environment after a ``.env`` file has been loaded:

- CATALOG_LOG_LEVEL (falls back to MCP_LOG_LEVEL, then INFO)
- CATALOG_LOG_FILE (falls back to MCP_LOG_FILE): optional rotating log file
"""

from __future__ import annotations

import os
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

LOG_FORMAT = "%(asctime)s %(name)s %(levelname)s: %(message)s"
FILE_HANDLER_NAME = "woo_catalog_file"

# httpx logs one INFO line per upstream request; a catalog page makes several.
UPSTREAM_LOGGERS = ("httpx", "httpcore")

logger = logging.getLogger("woo_catalog_server")


def _load_env() -> None:
    if load_dotenv():
        return
    env_path = Path(__file__).resolve().parent.parent.parent / ".env"
    if env_path.exists():
        load_dotenv(env_path, override=False)


def _env(name: str) -> Optional[str]:
    value = os.getenv(f"CATALOG_{name}") or os.getenv(f"MCP_{name}")
    return value.strip() if value and value.strip() else None


def log_level() -> int:
    """Numeric level from CATALOG_LOG_LEVEL / MCP_LOG_LEVEL; unknown names mean INFO."""
    name = (_env("LOG_LEVEL") or "INFO").upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


def _attach_file_handler(path: str) -> None:
    root = logging.getLogger()
    if any(h.get_name() == FILE_HANDLER_NAME for h in root.handlers):
        return
    try:
        handler = RotatingFileHandler(path, maxBytes=5_000_000, backupCount=3)
    except OSError as exc:
        logger.warning("Could not open log file %s: %s", path, exc)
        return
    handler.set_name(FILE_HANDLER_NAME)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)


def setup_logging() -> None:
    """Configure the root logger. Safe to call more than once."""
    _load_env()

    level = log_level()
    logging.basicConfig(level=level, format=LOG_FORMAT)
    upstream_level = logging.DEBUG if level <= logging.DEBUG else logging.WARNING
    for name in UPSTREAM_LOGGERS:
        logging.getLogger(name).setLevel(upstream_level)

    log_file = _env("LOG_FILE")
    if log_file:
        _attach_file_handler(log_file)


def truncate(text: str, max_len: int = 2000) -> str:
    """Truncate text to max_len with a suffix marker."""
    if text is None:
        return ""
    if len(text) <= max_len:
        return text
    return text[:max_len] + "... [truncated]"
