"""Derive the ordered list of camera setting descriptors."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable

from .capabilities import CapabilitySet
from .config import ConfigStore, parse_bool, parse_number, parse_string_list
from .presets import ArgumentPresetCatalog, CodecKind
from .transcode_mode import (
    HUB_STREAMING_MODE_KEY,
    TRANSCODE_STREAMING_HUB_KEY,
    ModeResolver,
    TranscodeMode,
)

logger = logging.getLogger(__name__)

TRANSCODING_GROUP = "Transcoding"
DEFAULT_OBJECT_DETECTION_TIMEOUT_S = 60
MOTION_SENSOR_FILTER = 'interfaces.includes("MotionSensor")'

STREAMING_CHANNEL_KEY = "streamingChannel"
STREAMING_CHANNEL_HUB_KEY = "streamingChannelHub"
RECORDING_CHANNEL_KEY = "recordingChannel"
LINKED_MOTION_SENSOR_KEY = "linkedMotionSensor"
TRANSCODING_NOTICES_KEY = "transcodingNotices"
NEEDS_EXTRA_DATA_KEY = "needsExtraData"
TRANSCODE_RECORDING_KEY = "transcodeRecording"
TRANSCODE_STREAMING_KEY = "transcodeStreaming"
VIDEO_DECODER_ARGUMENTS_KEY = "videoDecoderArguments"
H264_ENCODER_ARGUMENTS_KEY = "h264EncoderArguments"
DETECT_AUDIO_KEY = "detectAudio"
OBJECT_DETECTION_SENSORS_KEY = "objectDetectionContactSensors"
OBJECT_DETECTION_TIMEOUT_KEY = "objectDetectionContactSensorTimeout"
STATUS_INDICATOR_KEY = "statusIndicator"


@dataclass(slots=True)
class SettingDescriptor:
    """A single option presented to the operator."""

    key: str
    title: str
    value: Any = None
    type: str | None = None
    group: str | None = None
    description: str | None = None
    choices: list[str] | None = None
    multiple: bool = False
    readonly: bool = False
    placeholder: str | None = None
    combobox: bool = False
    device_filter: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"key": self.key, "title": self.title, "value": self.value}
        for name in ("type", "group", "description", "placeholder"):
            attr = getattr(self, name)
            if attr is not None:
                payload[name] = attr
        if self.choices is not None:
            payload["choices"] = list(self.choices)
        if self.device_filter is not None:
            payload["deviceFilter"] = self.device_filter
        for flag in ("multiple", "readonly", "combobox"):
            if getattr(self, flag):
                payload[flag] = True
        return payload


def _boolean(key: str, title: str, value: bool, description: str, *, group: str | None = None) -> SettingDescriptor:
    return SettingDescriptor(
        key=key,
        title=title,
        type="boolean",
        value=value,
        group=group,
        description=description,
    )


@dataclass(slots=True)
class SchemaBuilder:
    """Compose stored values and capabilities into setting descriptors.

    Descriptors are rebuilt on every call; nothing is cached between passes.
    """

    store: ConfigStore
    device_id: str
    catalog: ArgumentPresetCatalog
    resolver: ModeResolver = field(init=False)

    def __post_init__(self) -> None:
        self.resolver = ModeResolver(self.store)

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    def _flag(self, key: str) -> bool:
        return parse_bool(self.store.get(key))

    def has_motion_trigger(self, capabilities: CapabilitySet) -> bool:
        return bool(self.store.get(LINKED_MOTION_SENSOR_KEY)) or capabilities.has_motion_sensor

    def transcode_arguments_visible(self, capabilities: CapabilitySet) -> bool:
        if self._flag(TRANSCODE_STREAMING_KEY) or self.resolver.remote_transcode_enabled():
            return True
        return self.has_motion_trigger(capabilities) and self._flag(TRANSCODE_RECORDING_KEY)

    # ------------------------------------------------------------------
    # sections, in presentation order
    # ------------------------------------------------------------------
    def _channel_settings(self, capabilities: CapabilitySet) -> list[SettingDescriptor]:
        if not capabilities.multi_stream:
            return []
        names = capabilities.channel_names
        default = names[0]
        settings = [
            SettingDescriptor(
                key=STREAMING_CHANNEL_KEY,
                title="Live Stream",
                value=self.store.get(STREAMING_CHANNEL_KEY) or default,
                description="The media stream to use when streaming locally.",
                choices=list(names),
            ),
            SettingDescriptor(
                key=STREAMING_CHANNEL_HUB_KEY,
                title="Live Stream (remote streaming and watches)",
                value=self.store.get(STREAMING_CHANNEL_HUB_KEY) or default,
                description=(
                    "The media stream to use when streaming from outside the local network "
                    "or to limited capability devices such as watches."
                ),
                choices=list(names),
            ),
        ]
        if self.has_motion_trigger(capabilities):
            settings.append(
                SettingDescriptor(
                    key=RECORDING_CHANNEL_KEY,
                    title="Recording Stream",
                    value=self.store.get(RECORDING_CHANNEL_KEY) or default,
                    description="The prebuffered media stream used for motion recordings.",
                    choices=list(names),
                )
            )
        return settings

    def _motion_sensor_setting(self, capabilities: CapabilitySet) -> SettingDescriptor:
        stored = self.store.get(LINKED_MOTION_SENSOR_KEY)
        if not stored and capabilities.has_motion_sensor:
            stored = self.device_id
        return SettingDescriptor(
            key=LINKED_MOTION_SENSOR_KEY,
            title="Linked Motion Sensor",
            type="device",
            device_filter=MOTION_SENSOR_FILTER,
            value=stored or None,
            placeholder=None if capabilities.has_motion_sensor else "None",
            description=(
                "Set the motion sensor used to trigger recordings. Defaults to the "
                "camera's own motion sensor when available."
            ),
        )

    def _transcoding_settings(self, capabilities: CapabilitySet) -> list[SettingDescriptor]:
        settings = [
            SettingDescriptor(
                key=TRANSCODING_NOTICES_KEY,
                title="Transcoding",
                group=TRANSCODING_GROUP,
                value="WARNING",
                readonly=True,
                description=(
                    "Transcoding audio and video is not recommended. Configure the camera "
                    "using its web portal or app to output compatible codecs "
                    "(h264/aac/2000kbps)."
                ),
            ),
            _boolean(
                NEEDS_EXTRA_DATA_KEY,
                "Add H264 Extra Data",
                self._flag(NEEDS_EXTRA_DATA_KEY),
                "Some cameras do not include H264 extra data in the stream, which makes live "
                "streaming fail. This is an inexpensive filter and does not transcode. Enable "
                "only as necessary.",
                group=TRANSCODING_GROUP,
            ),
        ]
        if self.has_motion_trigger(capabilities):
            settings.append(
                _boolean(
                    TRANSCODE_RECORDING_KEY,
                    "Transcode Recording",
                    self._flag(TRANSCODE_RECORDING_KEY),
                    "Use FFmpeg to transcode recordings to a supported format.",
                    group=TRANSCODING_GROUP,
                )
            )
        settings.append(
            _boolean(
                TRANSCODE_STREAMING_KEY,
                "Transcode Streaming",
                self._flag(TRANSCODE_STREAMING_KEY),
                "Use FFmpeg to transcode streaming to a supported format.",
                group=TRANSCODING_GROUP,
            )
        )
        settings.append(self._remote_transcode_setting(capabilities))
        return settings

    def _remote_transcode_setting(self, capabilities: CapabilitySet) -> SettingDescriptor:
        title = "Transcode Remote Streaming and Watches"
        if capabilities.supports_native_stream_config:
            return SettingDescriptor(
                key=HUB_STREAMING_MODE_KEY,
                title=title,
                group=TRANSCODING_GROUP,
                value=self.resolver.current().value,
                choices=TranscodeMode.choices(),
                description=(
                    'The transcode option for remote streaming and limited capability devices. '
                    '"Transcode" uses FFmpeg. "Dynamic Bitrate" adjusts the bitrate of the native '
                    "camera stream on demand and should only be used on sub streams, since it "
                    "reduces recording quality."
                ),
            )
        return _boolean(
            TRANSCODE_STREAMING_HUB_KEY,
            title,
            self._flag(TRANSCODE_STREAMING_HUB_KEY),
            "Transcode when remote streaming and streaming to limited capability devices.",
            group=TRANSCODING_GROUP,
        )

    def _argument_settings(self, capabilities: CapabilitySet) -> list[SettingDescriptor]:
        if not self.transcode_arguments_visible(capabilities):
            return []
        return [
            SettingDescriptor(
                key=VIDEO_DECODER_ARGUMENTS_KEY,
                title="Video Decoder Arguments",
                group=TRANSCODING_GROUP,
                value=self.store.get(VIDEO_DECODER_ARGUMENTS_KEY),
                description="FFmpeg arguments used to decode input video.",
                placeholder="-hwaccel auto",
                choices=self.catalog.names(CodecKind.DECODER),
                combobox=True,
            ),
            SettingDescriptor(
                key=H264_ENCODER_ARGUMENTS_KEY,
                title="H264 Encoder Arguments",
                group=TRANSCODING_GROUP,
                value=self.store.get(H264_ENCODER_ARGUMENTS_KEY),
                description="FFmpeg arguments used to encode h264 video.",
                placeholder="-vcodec h264_omx",
                choices=self.catalog.names(CodecKind.ENCODER),
                combobox=True,
            ),
        ]

    def _capability_settings(self, capabilities: CapabilitySet) -> list[SettingDescriptor]:
        settings: list[SettingDescriptor] = []
        if capabilities.has_audio_sensor:
            settings.append(
                _boolean(
                    DETECT_AUDIO_KEY,
                    "Audio Activity Detection",
                    self._flag(DETECT_AUDIO_KEY),
                    "Trigger recording on audio activity.",
                )
            )
        if capabilities.has_object_detector and capabilities.object_classes:
            settings.append(
                SettingDescriptor(
                    key=OBJECT_DETECTION_SENSORS_KEY,
                    title="Object Detection Sensors",
                    type="string",
                    choices=list(capabilities.object_classes),
                    multiple=True,
                    value=list(parse_string_list(self.store.get(OBJECT_DETECTION_SENSORS_KEY))),
                    description="Create occupancy sensors that detect specific people or objects.",
                )
            )
            settings.append(
                SettingDescriptor(
                    key=OBJECT_DETECTION_TIMEOUT_KEY,
                    title="Object Detection Timeout",
                    type="number",
                    value=parse_number(
                        self.store.get(OBJECT_DETECTION_TIMEOUT_KEY),
                        default=DEFAULT_OBJECT_DETECTION_TIMEOUT_S,
                    ),
                    description="Duration in seconds the sensor reports as occupied before resetting.",
                )
            )
        if capabilities.has_on_off_control:
            settings.append(
                _boolean(
                    STATUS_INDICATOR_KEY,
                    "Camera Status Indicator",
                    self._flag(STATUS_INDICATOR_KEY),
                    "Allow remote control of the camera status indicator light.",
                )
            )
        return settings

    # ------------------------------------------------------------------
    # public API
    # ------------------------------------------------------------------
    def build(
        self,
        capabilities: CapabilitySet,
        tail: Iterable[SettingDescriptor] = (),
    ) -> list[SettingDescriptor]:
        """Return all applicable descriptors followed by *tail*."""

        settings: list[SettingDescriptor] = []
        settings.extend(self._channel_settings(capabilities))
        settings.append(self._motion_sensor_setting(capabilities))
        settings.extend(self._transcoding_settings(capabilities))
        settings.extend(self._argument_settings(capabilities))
        settings.extend(self._capability_settings(capabilities))
        return _append_unique(settings, tail)


def _append_unique(
    settings: list[SettingDescriptor], tail: Iterable[SettingDescriptor]
) -> list[SettingDescriptor]:
    seen = {setting.key for setting in settings}
    for extra in tail:
        if extra.key in seen:
            logger.warning("Dropping duplicate setting %r supplied by the owning device", extra.key)
            continue
        seen.add(extra.key)
        settings.append(extra)
    return settings


__all__ = [
    "DEFAULT_OBJECT_DETECTION_TIMEOUT_S",
    "H264_ENCODER_ARGUMENTS_KEY",
    "LINKED_MOTION_SENSOR_KEY",
    "OBJECT_DETECTION_SENSORS_KEY",
    "OBJECT_DETECTION_TIMEOUT_KEY",
    "SchemaBuilder",
    "SettingDescriptor",
    "TRANSCODING_GROUP",
    "VIDEO_DECODER_ARGUMENTS_KEY",
]
