"""Mutually exclusive remote streaming transcode modes."""
from __future__ import annotations

import logging
from enum import Enum

from .config import ConfigStore, TRUE_STRING, parse_bool

logger = logging.getLogger(__name__)

HUB_STREAMING_MODE_KEY = "hubStreamingMode"
DYNAMIC_BITRATE_KEY = "dynamicBitrate"
TRANSCODE_STREAMING_HUB_KEY = "transcodeStreamingHub"


class TranscodeMode(str, Enum):
    """Transcoding behaviour for remote and limited capability streaming."""

    DISABLED = "Disabled"
    TRANSCODE = "Transcode"
    DYNAMIC_BITRATE = "Dynamic Bitrate"

    @classmethod
    def choices(cls) -> list[str]:
        return [mode.value for mode in cls]


# The remote transcode flag name also selects Transcode.
_MODE_ALIASES: dict[str, TranscodeMode] = {
    TRANSCODE_STREAMING_HUB_KEY: TranscodeMode.TRANSCODE,
}


def parse_mode(value: object) -> TranscodeMode | None:
    """Return the mode named by *value*, or ``None`` if it is not recognised."""

    if isinstance(value, TranscodeMode):
        return value
    if not isinstance(value, str):
        return None
    text = value.strip()
    try:
        return TranscodeMode(text)
    except ValueError:
        return _MODE_ALIASES.get(text)


class ModeResolver:
    """Keep ``dynamicBitrate`` and ``transcodeStreamingHub`` exclusive.

    The resolver holds no state of its own; the two flags live in the
    device's store. Writes are individual store calls, so a reader may still
    observe both flags set and must cope with it.
    """

    def __init__(self, store: ConfigStore) -> None:
        self._store = store

    def apply(self, value: object) -> TranscodeMode:
        """Normalise the flags for a ``hubStreamingMode`` write and return the mode."""

        mode = parse_mode(value)
        if mode is None:
            logger.warning("Unknown %s value %r; treating as disabled", HUB_STREAMING_MODE_KEY, value)
            mode = TranscodeMode.DISABLED
        if mode is TranscodeMode.DYNAMIC_BITRATE:
            self._store.set(DYNAMIC_BITRATE_KEY, TRUE_STRING)
            self._store.remove(TRANSCODE_STREAMING_HUB_KEY)
        elif mode is TranscodeMode.TRANSCODE:
            self._store.set(TRANSCODE_STREAMING_HUB_KEY, TRUE_STRING)
            self._store.remove(DYNAMIC_BITRATE_KEY)
        else:
            self._store.remove(DYNAMIC_BITRATE_KEY)
            self._store.remove(TRANSCODE_STREAMING_HUB_KEY)
        return mode

    def current(self) -> TranscodeMode:
        """Reconstruct the displayed mode from the stored keys."""

        stored = self._store.get(HUB_STREAMING_MODE_KEY)
        if stored in TranscodeMode.choices():
            return TranscodeMode(stored)
        return self.inferred()

    def inferred(self) -> TranscodeMode:
        if parse_bool(self._store.get(DYNAMIC_BITRATE_KEY)):
            return TranscodeMode.DYNAMIC_BITRATE
        if parse_bool(self._store.get(TRANSCODE_STREAMING_HUB_KEY)):
            return TranscodeMode.TRANSCODE
        return TranscodeMode.DISABLED

    def remote_transcode_enabled(self) -> bool:
        """Return ``True`` when remote streams are transcoded by FFmpeg."""

        return parse_bool(self._store.get(TRANSCODE_STREAMING_HUB_KEY))


__all__ = [
    "DYNAMIC_BITRATE_KEY",
    "HUB_STREAMING_MODE_KEY",
    "ModeResolver",
    "TRANSCODE_STREAMING_HUB_KEY",
    "TranscodeMode",
    "parse_mode",
]
