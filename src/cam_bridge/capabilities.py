"""Device capability probing used when deriving settings."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Protocol, Sequence

logger = logging.getLogger(__name__)

MOTION_CLASS = "motion"


@dataclass(frozen=True, slots=True)
class StreamChannel:
    """A media stream offered by the camera (main stream, sub stream...)."""

    name: str


@dataclass(frozen=True, slots=True)
class ObjectClasses:
    classes: tuple[str, ...] = ()


class CapabilityProbe(Protocol):
    """Live queries answered by the device collaborator."""

    async def list_stream_channels(self) -> Sequence[StreamChannel]:  # pragma: no cover - interface only
        ...

    async def list_object_classes(self) -> ObjectClasses | None:  # pragma: no cover - interface only
        ...


@dataclass(frozen=True, slots=True)
class CapabilityFlags:
    """Boolean capabilities already known to the caller."""

    motion: bool = False
    audio: bool = False
    object_detection: bool = False
    native_stream_config: bool = False
    on_off: bool = False


@dataclass(frozen=True, slots=True)
class CapabilitySet:
    """Snapshot of a device's capabilities for a single derivation pass."""

    has_motion_sensor: bool = False
    has_audio_sensor: bool = False
    has_object_detector: bool = False
    supports_native_stream_config: bool = False
    has_on_off_control: bool = False
    stream_channels: tuple[StreamChannel, ...] = field(default_factory=tuple)
    object_classes: tuple[str, ...] = field(default_factory=tuple)

    @property
    def multi_stream(self) -> bool:
        return len(self.stream_channels) > 1

    @property
    def channel_names(self) -> list[str]:
        return [channel.name for channel in self.stream_channels]


def _clean_channels(raw: Iterable[object] | None) -> tuple[StreamChannel, ...]:
    channels: list[StreamChannel] = []
    for item in raw or ():
        if isinstance(item, StreamChannel):
            name = item.name
        elif isinstance(item, dict):
            name = item.get("name")
        else:
            name = getattr(item, "name", None)
        if isinstance(name, str) and name:
            channels.append(StreamChannel(name))
    return tuple(channels)


def _clean_classes(raw: object) -> tuple[str, ...]:
    if raw is None:
        return ()
    if isinstance(raw, ObjectClasses):
        candidates: Iterable[object] = raw.classes
    elif isinstance(raw, dict):
        candidates = raw.get("classes") or ()
    else:
        candidates = getattr(raw, "classes", None) or ()
    seen: set[str] = set()
    classes: list[str] = []
    for name in candidates:
        if not isinstance(name, str) or not name or name == MOTION_CLASS:
            continue
        if name in seen:
            continue
        seen.add(name)
        classes.append(name)
    return tuple(classes)


async def list_stream_channels(device: CapabilityProbe) -> tuple[StreamChannel, ...]:
    """Return the device's stream channels, or an empty tuple on failure."""

    try:
        raw = await device.list_stream_channels()
    except Exception as exc:  # transport failures degrade to no channels
        logger.debug("Stream channel query failed: %s", exc)
        return ()
    return _clean_channels(raw)


async def list_object_classes(device: CapabilityProbe) -> tuple[str, ...]:
    """Return detectable object classes excluding ``motion``; empty on failure."""

    try:
        raw = await device.list_object_classes()
    except Exception as exc:  # transport failures degrade to no classes
        logger.debug("Object class query failed: %s", exc)
        return ()
    return _clean_classes(raw)


async def probe_capabilities(device: CapabilityProbe, flags: CapabilityFlags) -> CapabilitySet:
    """Query *device* and combine the answers with *flags*.

    The two queries run one after the other. Object classes are only
    requested from devices that advertise object detection.
    """

    channels = await list_stream_channels(device)
    classes: tuple[str, ...] = ()
    if flags.object_detection:
        classes = await list_object_classes(device)
    return CapabilitySet(
        has_motion_sensor=flags.motion,
        has_audio_sensor=flags.audio,
        has_object_detector=flags.object_detection,
        supports_native_stream_config=flags.native_stream_config,
        has_on_off_control=flags.on_off,
        stream_channels=channels,
        object_classes=classes,
    )


__all__ = [
    "CapabilityFlags",
    "CapabilityProbe",
    "CapabilitySet",
    "MOTION_CLASS",
    "ObjectClasses",
    "StreamChannel",
    "list_object_classes",
    "list_stream_channels",
    "probe_capabilities",
]
