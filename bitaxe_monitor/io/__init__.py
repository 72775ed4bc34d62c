"""I/O utilities (configuration, persistence, logging)."""

from .logging_setup import configure_logging
from .settings import (
    DEFAULT_SETTINGS,
    DEFAULT_SETTINGS_PATH,
    SettingsError,
    SettingsStore,
    find_project_root,
    load_settings,
    update_settings_value,
)

__all__ = [
    "DEFAULT_SETTINGS",
    "DEFAULT_SETTINGS_PATH",
    "SettingsError",
    "SettingsStore",
    "configure_logging",
    "find_project_root",
    "load_settings",
    "update_settings_value",
]
