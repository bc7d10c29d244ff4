# gamerhive/config.py
"""
Client configuration.

All settings come from environment variables and are read on every call,
so a test can patch os.environ and see the change immediately.

Environment Variables:
- GAMERHIVE_API_URL: Backend base URL (default: http://localhost:3000)
- GAMERHIVE_TIMEOUT_SECONDS: Request timeout in seconds (default: 30)
- GAMERHIVE_STATE_DIR: Directory holding durable client storage (default: ~/.gamerhive)
- GAMERHIVE_EXPORT_DIR: Directory for data exports (default: current directory)
- GAMERHIVE_LOG_LEVEL: Log level used by the CLI (default: INFO)

Feature Flags (all OFF by default):
- GAMERHIVE_LOG_REQUESTS: Log method, path and status of every API request
"""

from __future__ import annotations

import os
import logging
from pathlib import Path

log = logging.getLogger("gamerhive.config")

DEFAULT_API_URL = "http://localhost:3000"
DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_STATE_DIR = "~/.gamerhive"
SESSION_FILE_NAME = "session.json"


# ============================================================
# Feature Flags
# ============================================================

def _flag_on(name: str) -> bool:
    """Check if a feature flag is enabled. Default: off."""
    val = os.getenv(name, "off").lower()
    return val in ("on", "true", "1", "yes")


def is_request_logging_enabled() -> bool:
    """Check if per-request logging is enabled."""
    return _flag_on("GAMERHIVE_LOG_REQUESTS")


# ============================================================
# Settings
# ============================================================

def get_api_base_url() -> str:
    """Get backend base URL without a trailing slash."""
    url = os.getenv("GAMERHIVE_API_URL", "").strip()
    if not url:
        return DEFAULT_API_URL
    return url.rstrip("/")


def get_request_timeout() -> float:
    """Get request timeout in seconds."""
    raw = os.getenv("GAMERHIVE_TIMEOUT_SECONDS", "")
    if not raw.strip():
        return DEFAULT_TIMEOUT_SECONDS
    try:
        value = float(raw)
    except ValueError:
        log.warning("Invalid GAMERHIVE_TIMEOUT_SECONDS %r, using %.0fs", raw, DEFAULT_TIMEOUT_SECONDS)
        return DEFAULT_TIMEOUT_SECONDS
    if value <= 0:
        log.warning("GAMERHIVE_TIMEOUT_SECONDS must be positive, using %.0fs", DEFAULT_TIMEOUT_SECONDS)
        return DEFAULT_TIMEOUT_SECONDS
    return value


def get_state_dir() -> Path:
    """Get the directory that holds durable client storage."""
    raw = os.getenv("GAMERHIVE_STATE_DIR", "").strip() or DEFAULT_STATE_DIR
    return Path(raw).expanduser()


def get_session_file() -> Path:
    """Path of the JSON file backing the durable session storage."""
    return get_state_dir() / SESSION_FILE_NAME


def get_export_dir() -> Path:
    """Get the directory data exports are written to."""
    raw = os.getenv("GAMERHIVE_EXPORT_DIR", "").strip()
    return Path(raw).expanduser() if raw else Path.cwd()


def get_log_level() -> int:
    """Get CLI log level, falling back to INFO for unknown names."""
    name = os.getenv("GAMERHIVE_LOG_LEVEL", "INFO").strip().upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO
