"""Change notifications emitted after settings writes."""

from __future__ import annotations

import json
import logging
import threading
import time
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Deque, Protocol

logger = logging.getLogger(__name__)

# Writes to these keys change how the device session is assembled.
RELOAD_KEYS: frozenset[str] = frozenset(
    {"detectAudio", "linkedMotionSensor", "objectDetectionContactSensors"}
)

EVENT_RELOAD = "reload"
EVENT_SETTINGS_CHANGED = "settings_changed"


class ChangeNotifier(Protocol):
    def notify_reload(self, device_id: str) -> None:  # pragma: no cover - interface only
        ...

    def notify_settings_changed(self, device_id: str) -> None:  # pragma: no cover - interface only
        ...


def requires_reload(key: str) -> bool:
    return key in RELOAD_KEYS


class CallbackNotifier:
    """Forward notifications to plain callables."""

    def __init__(
        self,
        on_reload: Callable[[str], None] | None = None,
        on_settings_changed: Callable[[str], None] | None = None,
    ) -> None:
        self._on_reload = on_reload
        self._on_settings_changed = on_settings_changed

    def notify_reload(self, device_id: str) -> None:
        if self._on_reload is not None:
            self._on_reload(device_id)

    def notify_settings_changed(self, device_id: str) -> None:
        if self._on_settings_changed is not None:
            self._on_settings_changed(device_id)


@dataclass(frozen=True, slots=True)
class SettingsEvent:
    """A notification captured for troubleshooting."""

    timestamp: float
    device_id: str
    event: str

    def to_dict(self) -> dict[str, object]:
        return {"timestamp": self.timestamp, "device_id": self.device_id, "event": self.event}

    @classmethod
    def from_dict(cls, payload: object) -> "SettingsEvent | None":
        if not isinstance(payload, dict):
            return None
        device_id = payload.get("device_id")
        event = payload.get("event")
        timestamp = payload.get("timestamp")
        if not isinstance(device_id, str) or not isinstance(event, str):
            return None
        if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
            return None
        return cls(timestamp=float(timestamp), device_id=device_id, event=event)


class SettingsEventLog:
    """Ring buffer of recent notifications.

    With a *path* the buffer is snapshotted to a JSON array after every
    record, so the file never holds more than *max_entries* events.
    """

    def __init__(self, path: Path | str | None = None, *, max_entries: int = 200) -> None:
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self._path = Path(path) if path is not None else None
        self._lock = threading.Lock()
        self._entries: Deque[SettingsEvent] = deque(self._restore(), maxlen=max_entries)

    @property
    def path(self) -> Path | None:
        return self._path

    @property
    def max_entries(self) -> int:
        return self._entries.maxlen or 0

    def record(self, device_id: str, event: str) -> SettingsEvent:
        entry = SettingsEvent(timestamp=time.time(), device_id=device_id, event=event)
        with self._lock:
            self._entries.append(entry)
            self._snapshot([item.to_dict() for item in self._entries])
        return entry

    def tail(self, limit: int | None = None, *, device_id: str | None = None) -> list[SettingsEvent]:
        """Return the most recent events, oldest first, optionally for one device."""

        with self._lock:
            entries = [item for item in self._entries if not device_id or item.device_id == device_id]
        if limit is None:
            return entries
        if limit <= 0:
            return []
        return entries[-limit:]

    def _restore(self) -> list[SettingsEvent]:
        if self._path is None or not self._path.exists():
            return []
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Discarding unreadable settings event log %s: %s", self._path, exc)
            return []
        if not isinstance(payload, list):
            logger.warning("Discarding settings event log %s: expected a JSON array", self._path)
            return []
        restored = [SettingsEvent.from_dict(item) for item in payload]
        return [entry for entry in restored if entry is not None]

    def _snapshot(self, snapshot: list[dict[str, object]]) -> None:
        if self._path is None:
            return
        staging = self._path.with_name(self._path.name + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            staging.write_text(json.dumps(snapshot), encoding="utf-8")
            staging.replace(self._path)
        except OSError as exc:
            logger.warning("Unable to persist settings events to %s: %s", self._path, exc)


class EventLogNotifier:
    """Notifier that records events and optionally forwards them."""

    def __init__(self, event_log: SettingsEventLog, forward: ChangeNotifier | None = None) -> None:
        self._event_log = event_log
        self._forward = forward

    @property
    def event_log(self) -> SettingsEventLog:
        return self._event_log

    def notify_reload(self, device_id: str) -> None:
        logger.info("Settings for %s require a session reload", device_id)
        self._event_log.record(device_id, EVENT_RELOAD)
        if self._forward is not None:
            self._forward.notify_reload(device_id)

    def notify_settings_changed(self, device_id: str) -> None:
        self._event_log.record(device_id, EVENT_SETTINGS_CHANGED)
        if self._forward is not None:
            self._forward.notify_settings_changed(device_id)


__all__ = [
    "CallbackNotifier",
    "ChangeNotifier",
    "EVENT_RELOAD",
    "EVENT_SETTINGS_CHANGED",
    "EventLogNotifier",
    "RELOAD_KEYS",
    "SettingsEvent",
    "SettingsEventLog",
    "requires_reload",
]
