import copy
import itertools
import logging
import os
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Union

import yaml

logger = logging.getLogger(__name__)

PROJECT_MARKERS: Iterable[str] = (".git", "pyproject.toml", "config")
DEFAULT_SETTINGS_PATH = Path("config/settings.yml")

PathLike = Union[str, os.PathLike]

DEFAULT_SETTINGS: Dict[str, Any] = {
    "devices": [],
    "bitaxe_ip": "",
    "selected_device_id": "",
    "refresh_interval": 10,
    "paused": False,
    "default_view": "auto",
    "panel_display_mode": "auto",
    "sparkline_window_minutes": 5,
    "show_sparklines": True,
    "sparkline_theme": "colorful",
    "show_hashrate": True,
    "show_temperature": True,
    "show_power": True,
    "show_vrm_temp": False,
    "show_efficiency": False,
    "show_fan_rpm": False,
    "show_frequency": False,
    "show_shares": False,
    "show_uptime": False,
    "panel_separator": "|",
    "custom_separator": "",
    "hashrate_unit": "auto",
    "log_level": "INFO",
}


class SettingsError(RuntimeError):
    """Raised when the settings file has an invalid structure."""


def find_project_root(markers: Iterable[str] = PROJECT_MARKERS) -> Path:
    """Attempt to locate the repository root by walking up until a marker file/dir appears."""
    start = Path(__file__).resolve().parent
    for candidate in [start] + list(start.parents):
        for marker in markers:
            if (candidate / marker).exists():
                return candidate
    return start


def _resolve(path: PathLike, project_root: Path) -> Path:
    target = Path(path)
    if not target.is_absolute():
        target = project_root / target
    return target


def _load_yaml(target: Path) -> Dict[str, Any]:
    if not target.exists():
        raise FileNotFoundError(f"settings file not found: {target}")
    with open(target, "r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, dict):
        raise SettingsError(f"settings file must contain a mapping: {target}")
    return data


def _dump_yaml(target: Path, data: Dict[str, Any]) -> None:
    target.parent.mkdir(parents=True, exist_ok=True)
    with open(target, "w", encoding="utf-8") as handle:
        yaml.safe_dump(data, handle, sort_keys=False)


def settings_path(path: Optional[PathLike] = None) -> Path:
    return _resolve(path or DEFAULT_SETTINGS_PATH, find_project_root())


def load_settings(path: Optional[PathLike] = None) -> Dict[str, Any]:
    """Load the YAML settings file, defaulting to ``config/settings.yml`` under the project root."""
    return _load_yaml(settings_path(path))


def update_settings_value(identifier: str, value: Any, path: Optional[PathLike] = None) -> None:
    """Update a value inside ``settings.yml`` given a dotted/indexed identifier.

    Identifiers use dot-separated keys and zero-based list indices in brackets, e.g.
    ``devices[0].address``.
    """

    target = settings_path(path)
    data = _load_yaml(target)

    def _parse_segment(segment: str) -> Tuple[str, Optional[int]]:
        if "[" in segment and segment.endswith("]"):
            key, index_str = segment[:-1].split("[", 1)
            return key, int(index_str)
        return segment, None

    parts = identifier.split(".") if identifier else []
    if not parts:
        raise ValueError("Identifier must not be empty")

    cursor = data
    for segment in parts[:-1]:
        key, index = _parse_segment(segment)
        if key not in cursor:
            raise KeyError(f"Missing key '{key}' in settings for segment '{segment}'")
        cursor = cursor[key]
        if index is not None:
            if not isinstance(cursor, list):
                raise TypeError(f"Expected list at '{key}' but found {type(cursor).__name__}")
            if index >= len(cursor):
                raise IndexError(f"Index {index} out of range for '{key}'")
            cursor = cursor[index]

    last_key, last_index = _parse_segment(parts[-1])
    if last_index is not None:
        if last_key not in cursor:
            raise KeyError(f"Missing key '{last_key}' in settings for final segment")
        target_list = cursor[last_key]
        if not isinstance(target_list, list):
            raise TypeError(f"Expected list at '{last_key}' but found {type(target_list).__name__}")
        if last_index >= len(target_list):
            raise IndexError(f"Index {last_index} out of range for '{last_key}'")
        target_list[last_index] = value
    else:
        cursor[last_key] = value

    _dump_yaml(target, data)


SettingsCallback = Callable[[str, Any], None]


class SettingsStore:
    """Observable key-value view over the settings file.

    Writes persist immediately. Listeners connected to a key are called with
    ``(key, value)`` after a write that changed that key.
    """

    def __init__(self, path: Optional[PathLike] = None, defaults: Optional[Dict[str, Any]] = None) -> None:
        self.path = settings_path(path)
        self.defaults = copy.deepcopy(defaults if defaults is not None else DEFAULT_SETTINGS)
        self._data: Dict[str, Any] = {}
        self._listeners: Dict[int, Tuple[str, SettingsCallback]] = {}
        self._ids = itertools.count(1)
        self.reload()

    def reload(self) -> None:
        if self.path.exists():
            self._data = _load_yaml(self.path)
        else:
            logger.debug("No settings file at %s, using defaults", self.path)
            self._data = {}

    def get(self, key: str, default: Any = None) -> Any:
        if key in self._data:
            return copy.deepcopy(self._data[key])
        if key in self.defaults:
            return copy.deepcopy(self.defaults[key])
        return default

    def get_int(self, key: str, minimum: Optional[int] = None) -> int:
        raw = self.get(key)
        try:
            value = int(raw)
        except (TypeError, ValueError):
            value = int(self.defaults.get(key, 0))
        if minimum is not None:
            value = max(minimum, value)
        return value

    def get_bool(self, key: str) -> bool:
        return bool(self.get(key, False))

    def get_str(self, key: str) -> str:
        value = self.get(key, "")
        return "" if value is None else str(value)

    def set(self, key: str, value: Any) -> None:
        if self.get(key) == value:
            return
        self._data[key] = copy.deepcopy(value)
        _dump_yaml(self.path, self._data)
        self._emit(key, value)

    def connect(self, key: str, callback: SettingsCallback) -> int:
        handler_id = next(self._ids)
        self._listeners[handler_id] = (key, callback)
        return handler_id

    def disconnect(self, handler_id: int) -> None:
        self._listeners.pop(handler_id, None)

    def _emit(self, key: str, value: Any) -> None:
        callbacks: List[SettingsCallback] = [cb for k, cb in list(self._listeners.values()) if k == key]
        for callback in callbacks:
            callback(key, copy.deepcopy(value))

    def as_dict(self) -> Dict[str, Any]:
        merged = copy.deepcopy(self.defaults)
        merged.update(copy.deepcopy(self._data))
        return merged
