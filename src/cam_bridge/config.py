"""Flat key/value settings storage for CamBridge devices."""
from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Protocol, Union

logger = logging.getLogger(__name__)

TRUE_STRING = "true"
FALSE_STRING = "false"


class ConfigStore(Protocol):
    """String keyed storage contract shared by every component."""

    def get(self, key: str) -> str | None:  # pragma: no cover - interface only
        ...

    def set(self, key: str, value: str) -> None:  # pragma: no cover - interface only
        ...

    def remove(self, key: str) -> None:  # pragma: no cover - interface only
        ...


# ---------------------------------------------------------------------------
# Tagged setting values
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class StrValue:
    value: str


@dataclass(frozen=True, slots=True)
class BoolValue:
    value: bool


@dataclass(frozen=True, slots=True)
class StringListValue:
    value: tuple[str, ...]


@dataclass(frozen=True, slots=True)
class NumberValue:
    value: float | int

    def __post_init__(self) -> None:
        if not math.isfinite(float(self.value)):
            raise ValueError("Numeric settings must be finite")


ConfigValue = Union[StrValue, BoolValue, StringListValue, NumberValue]


def to_config_value(raw: Any) -> ConfigValue | None:
    """Wrap a raw operator supplied value in its tagged variant.

    ``None`` is returned for ``None`` so callers can treat it as a removal.
    Booleans are checked before numbers since ``bool`` subclasses ``int``.
    """

    if raw is None:
        return None
    if isinstance(raw, (StrValue, BoolValue, StringListValue, NumberValue)):
        return raw
    if isinstance(raw, bool):
        return BoolValue(raw)
    if isinstance(raw, (int, float)):
        return NumberValue(raw)
    if isinstance(raw, str):
        return StrValue(raw)
    if isinstance(raw, (list, tuple, set, frozenset)):
        return StringListValue(tuple(str(item) for item in raw))
    raise ValueError(f"Unsupported setting value type: {type(raw).__name__}")


def _format_number(value: float | int) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def serialize_value(value: ConfigValue) -> str:
    """Return the string persisted for *value*."""

    if isinstance(value, BoolValue):
        return TRUE_STRING if value.value else FALSE_STRING
    if isinstance(value, StringListValue):
        return json.dumps(list(value.value))
    if isinstance(value, NumberValue):
        return _format_number(value.value)
    return value.value


def parse_bool(stored: str | None) -> bool:
    return stored == TRUE_STRING


def parse_string_list(stored: str | None) -> tuple[str, ...]:
    """Decode a JSON array of strings, returning an empty tuple when malformed."""

    if not stored:
        return ()
    try:
        payload = json.loads(stored)
    except ValueError:
        logger.debug("Ignoring malformed list value %r", stored)
        return ()
    if not isinstance(payload, list):
        return ()
    return tuple(str(item) for item in payload if item is not None)


def parse_number(stored: str | None, *, default: float | int) -> float | int:
    if not stored:
        return default
    try:
        number = float(stored)
    except ValueError:
        return default
    if not math.isfinite(number):
        return default
    return int(number) if number.is_integer() else number


# ---------------------------------------------------------------------------
# Store implementations
# ---------------------------------------------------------------------------


class MemoryConfigStore:
    """Volatile store, mostly useful for tests and previews."""

    def __init__(self, initial: Dict[str, str] | None = None) -> None:
        self._items: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._items.get(key)

    def set(self, key: str, value: str) -> None:
        self._items[key] = str(value)

    def remove(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> tuple[str, ...]:
        return tuple(self._items)


class JsonConfigStore:
    """Stores a device's settings on disk with thread-safety.

    Every mutation rewrites the backing file. Individual calls are atomic with
    respect to each other but a sequence of calls is not.
    """

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)
        self._lock = Lock()
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._items = self._load()

    @classmethod
    def for_device(cls, base_dir: Path | str, device_id: str) -> "JsonConfigStore":
        cleaned = device_id.strip() if isinstance(device_id, str) else ""
        if not cleaned or any(sep in cleaned for sep in ("/", "\\")) or cleaned in {".", ".."}:
            raise ValueError(f"Invalid device identifier: {device_id!r}")
        return cls(Path(base_dir) / f"{cleaned}.json")

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> Dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
            if not isinstance(payload, dict):
                raise ValueError("Settings file must contain a JSON object")
        except (OSError, ValueError) as exc:
            raise RuntimeError(f"Failed to load settings store: {exc}") from exc
        items: Dict[str, str] = {}
        for key, value in payload.items():
            if value is None:
                continue
            items[str(key)] = value if isinstance(value, str) else json.dumps(value)
        return items

    def _save(self) -> None:
        self._path.write_text(json.dumps(self._items, indent=2, sort_keys=True), encoding="utf-8")

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._items.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._items[key] = str(value)
            self._save()

    def remove(self, key: str) -> None:
        with self._lock:
            if key not in self._items:
                return
            del self._items[key]
            self._save()

    def keys(self) -> tuple[str, ...]:
        with self._lock:
            return tuple(self._items)


__all__ = [
    "BoolValue",
    "ConfigStore",
    "ConfigValue",
    "JsonConfigStore",
    "MemoryConfigStore",
    "NumberValue",
    "StrValue",
    "StringListValue",
    "parse_bool",
    "parse_number",
    "parse_string_list",
    "serialize_value",
    "to_config_value",
]
