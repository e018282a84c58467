"""
Memory Agent Configuration

Settings are read from environment variables. The application entry
point loads backend/.env with python-dotenv before this is consulted.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = Path.home() / ".browser-memory" / "memory.db"


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Invalid integer for {name}: {raw!r}, using {default}")
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class MemoryConfig:
    """Configuration for the memory agent"""
    db_path: str = str(DEFAULT_DB_PATH)
    history_limit: int = 50
    browser_type: str = "chromium"
    headless: bool = True
    action_timeout_ms: int = 10000
    navigation_timeout_ms: int = 30000
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "MemoryConfig":
        """Build configuration from the current environment"""
        return cls(
            db_path=os.path.expanduser(os.getenv("MEMORY_DB_PATH") or str(DEFAULT_DB_PATH)),
            history_limit=_env_int("MEMORY_HISTORY_LIMIT", 50),
            browser_type=os.getenv("BROWSER_TYPE", "chromium").lower(),
            headless=_env_bool("BROWSER_HEADLESS", True),
            action_timeout_ms=_env_int("ACTION_TIMEOUT_MS", 10000),
            navigation_timeout_ms=_env_int("NAVIGATION_TIMEOUT_MS", 30000),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )
