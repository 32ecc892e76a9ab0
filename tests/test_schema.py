from __future__ import annotations

import itertools

import pytest

from cam_bridge.capabilities import CapabilitySet, StreamChannel
from cam_bridge.config import MemoryConfigStore
from cam_bridge.presets import default_catalog
from cam_bridge.schema import SchemaBuilder, SettingDescriptor


def _capabilities(channels=("main", "sub"), classes=("person",), **flags) -> CapabilitySet:
    return CapabilitySet(
        stream_channels=tuple(StreamChannel(name) for name in channels),
        object_classes=tuple(classes),
        **flags,
    )


def _build(store=None, capabilities=None, tail=()):
    builder = SchemaBuilder(store=store or MemoryConfigStore(), device_id="cam-1", catalog=default_catalog())
    return builder.build(capabilities or _capabilities(), tail)


def _by_key(settings):
    return {setting.key: setting for setting in settings}


def descriptor_keys(settings):
    return [setting.key for setting in settings]


def test_minimal_camera_order():
    settings = _build(capabilities=_capabilities(channels=("main",)))
    assert descriptor_keys(settings) == [
        "linkedMotionSensor",
        "transcodingNotices",
        "needsExtraData",
        "transcodeStreaming",
        "transcodeStreamingHub",
    ]


def test_full_capability_order():
    store = MemoryConfigStore({"transcodeStreaming": "true"})
    capabilities = _capabilities(
        has_motion_sensor=True,
        has_audio_sensor=True,
        has_object_detector=True,
        supports_native_stream_config=True,
        has_on_off_control=True,
    )
    assert descriptor_keys(_build(store, capabilities)) == [
        "streamingChannel",
        "streamingChannelHub",
        "recordingChannel",
        "linkedMotionSensor",
        "transcodingNotices",
        "needsExtraData",
        "transcodeRecording",
        "transcodeStreaming",
        "hubStreamingMode",
        "videoDecoderArguments",
        "h264EncoderArguments",
        "detectAudio",
        "objectDetectionContactSensors",
        "objectDetectionContactSensorTimeout",
        "statusIndicator",
    ]


@pytest.mark.parametrize("channel_count", [0, 1, 2, 3])
def test_channel_selectors_only_with_multiple_channels(channel_count):
    channels = [f"stream{index}" for index in range(channel_count)]
    keys = descriptor_keys(_build(capabilities=_capabilities(channels=channels, has_motion_sensor=True)))
    selector_keys = {"streamingChannel", "streamingChannelHub", "recordingChannel"}
    if channel_count > 1:
        assert selector_keys <= set(keys)
    else:
        assert not selector_keys & set(keys)


def test_channel_default_is_first_channel():
    settings = _by_key(_build(capabilities=_capabilities(channels=("main", "sub"))))
    assert settings["streamingChannel"].value == "main"
    assert settings["streamingChannelHub"].choices == ["main", "sub"]


def test_recording_channel_follows_linked_sensor():
    store = MemoryConfigStore({"linkedMotionSensor": "sensor-9"})
    settings = _by_key(_build(store))
    assert "recordingChannel" in settings
    assert "transcodeRecording" in settings
    assert settings["linkedMotionSensor"].value == "sensor-9"


def test_no_motion_trigger_hides_recording_options():
    settings = _by_key(_build())
    assert "recordingChannel" not in settings
    assert "transcodeRecording" not in settings
    assert settings["linkedMotionSensor"].placeholder == "None"
    assert settings["linkedMotionSensor"].value is None


def test_native_motion_defaults_linked_sensor_to_self():
    settings = _by_key(_build(capabilities=_capabilities(has_motion_sensor=True)))
    linked = settings["linkedMotionSensor"]
    assert linked.value == "cam-1"
    assert linked.placeholder is None
    assert linked.device_filter == 'interfaces.includes("MotionSensor")'


def test_notice_is_read_only():
    notice = _by_key(_build())["transcodingNotices"]
    assert notice.readonly is True
    assert notice.value == "WARNING"


def test_argument_descriptors_for_remote_transcode():
    store = MemoryConfigStore({"transcodeStreamingHub": "true"})
    settings = _by_key(_build(store))
    assert settings["videoDecoderArguments"].choices == default_catalog().names("decoder")
    assert settings["h264EncoderArguments"].combobox is True


def test_recording_transcode_needs_motion_trigger_to_show_arguments():
    store = MemoryConfigStore({"transcodeRecording": "true"})
    assert "videoDecoderArguments" not in _by_key(_build(store))
    settings = _by_key(_build(store, _capabilities(has_motion_sensor=True)))
    assert "videoDecoderArguments" in settings


def test_hub_mode_inferred_from_flags():
    store = MemoryConfigStore({"dynamicBitrate": "true"})
    settings = _by_key(_build(store, _capabilities(supports_native_stream_config=True)))
    assert settings["hubStreamingMode"].value == "Dynamic Bitrate"
    assert settings["hubStreamingMode"].choices == ["Disabled", "Transcode", "Dynamic Bitrate"]


def test_malformed_object_sensor_value_reads_as_empty():
    store = MemoryConfigStore({"objectDetectionContactSensors": "person,car"})
    settings = _by_key(_build(store, _capabilities(has_object_detector=True)))
    assert settings["objectDetectionContactSensors"].value == []
    assert settings["objectDetectionContactSensorTimeout"].value == 60


def test_object_detection_requires_classes():
    settings = _by_key(_build(capabilities=_capabilities(classes=(), has_object_detector=True)))
    assert "objectDetectionContactSensors" not in settings
    assert "objectDetectionContactSensorTimeout" not in settings


def test_tail_is_appended_without_duplicates():
    tail = [
        SettingDescriptor(key="pairingCode", title="Pairing Code", value="123-45-678", readonly=True),
        SettingDescriptor(key="transcodeStreaming", title="Clash", value=True),
    ]
    settings = _build(tail=tail)
    keys = descriptor_keys(settings)
    assert keys[-1] == "pairingCode"
    assert keys.count("transcodeStreaming") == 1


def test_to_dict_omits_unset_fields():
    payload = _by_key(_build())["transcodingNotices"].to_dict()
    assert payload["readonly"] is True
    assert "choices" not in payload
    assert "multiple" not in payload


FLAG_NAMES = (
    "has_motion_sensor",
    "has_audio_sensor",
    "has_object_detector",
    "supports_native_stream_config",
    "has_on_off_control",
)


@pytest.mark.parametrize("values", list(itertools.product([False, True], repeat=len(FLAG_NAMES))))
def test_keys_are_unique_for_every_capability_combination(values):
    store = MemoryConfigStore(
        {
            "transcodeStreaming": "true",
            "transcodeRecording": "true",
            "dynamicBitrate": "true",
            "transcodeStreamingHub": "true",
        }
    )
    capabilities = _capabilities(channels=("main", "sub", "ext"), **dict(zip(FLAG_NAMES, values)))
    keys = descriptor_keys(_build(store, capabilities))
    assert len(keys) == len(set(keys))
