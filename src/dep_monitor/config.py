"""Runtime configuration read from environment variables."""

import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_PROJECT_NAME = "My Project"


def _env_bool(key: str, default: bool) -> bool:
    value = os.environ.get(key)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_float(key: str, default: float) -> float:
    return float(os.environ.get(key, default))


def _env_int(key: str, default: int) -> int:
    return int(os.environ.get(key, default))


@dataclass(frozen=True)
class Settings:
    """
    Settings for the scan service.

    Every field can be overridden with a DEP_MONITOR_* environment variable,
    see from_env().
    """

    history_dir: Path = Path("scan-history")
    workspace_dir: Path = Path(".tmp")
    npm_bin: str = "npm"
    npm_timeout: float = 180.0
    monitor_interval: float = 300.0
    scheduler_enabled: bool = True
    history_limit: int = 0
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the current environment."""
        return cls(
            history_dir=Path(os.environ.get("DEP_MONITOR_HISTORY_DIR", "scan-history")),
            workspace_dir=Path(os.environ.get("DEP_MONITOR_WORKSPACE_DIR", ".tmp")),
            npm_bin=os.environ.get("DEP_MONITOR_NPM", "npm"),
            npm_timeout=_env_float("DEP_MONITOR_NPM_TIMEOUT", 180.0),
            monitor_interval=_env_float("DEP_MONITOR_MONITOR_INTERVAL", 300.0),
            scheduler_enabled=_env_bool("DEP_MONITOR_SCHEDULER_ENABLED", True),
            history_limit=_env_int("DEP_MONITOR_HISTORY_LIMIT", 0),
            log_level=os.environ.get("DEP_MONITOR_LOG_LEVEL", "INFO").upper(),
        )
