from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional

ENV_PREFIX = "TASK_TRACKER"

_BACKENDS = {"json", "sqlite", "memory"}
_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
_DEFAULT_PATHS = {
    "json": "./data/tasks.json",
    "sqlite": "./data/tasks.db",
    "memory": "",
}


@dataclass(frozen=True)
class Settings:
    """
    Application settings loaded from environment variables.

    Env vars:
    - TASK_TRACKER_STORAGE_BACKEND: 'json' (default), 'sqlite' or 'memory'
    - TASK_TRACKER_DATA_PATH: path of the data file. Default './data/tasks.json'
      for json and './data/tasks.db' for sqlite
    - TASK_TRACKER_AUTOSAVE: 'true' (default) to persist after every change
    - TASK_TRACKER_LOG_LEVEL: console log level name. Default 'INFO'
    - TASK_TRACKER_LOG_DIR: directory for the log file; unset disables file logging
    """

    storage_backend: str = "json"
    data_path: str = _DEFAULT_PATHS["json"]
    autosave: bool = True
    log_level: str = "INFO"
    log_dir: Optional[str] = None

    @property
    def log_level_value(self) -> int:
        return getattr(logging, self.log_level, logging.INFO)


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name, default)
    if value is None or value == "":
        return default
    return value


def _parse_bool(value: str, default: bool = False) -> bool:
    v = value.strip().lower()
    if v in {"1", "true", "yes", "on"}:
        return True
    if v in {"0", "false", "no", "off"}:
        return False
    return default


# PUBLIC_INTERFACE
def get_settings() -> Settings:
    """Return application settings loaded from environment variables."""
    backend = _get_env(_k("STORAGE_BACKEND"), "json").strip().lower()
    if backend not in _BACKENDS:
        # Fallback to json if unsupported
        backend = "json"

    data_path = _get_env(_k("DATA_PATH"), _DEFAULT_PATHS[backend]).strip()
    autosave = _parse_bool(_get_env(_k("AUTOSAVE"), "true"), True)

    log_level = _get_env(_k("LOG_LEVEL"), "INFO").strip().upper()
    if log_level not in _LEVELS:
        log_level = "INFO"
    log_dir = os.getenv(_k("LOG_DIR")) or None

    return Settings(
        storage_backend=backend,
        data_path=data_path,
        autosave=autosave,
        log_level=log_level,
        log_dir=log_dir,
    )
