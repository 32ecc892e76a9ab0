from pathlib import Path
import json

import pytest

from cam_bridge.config import (
    BoolValue,
    JsonConfigStore,
    MemoryConfigStore,
    NumberValue,
    StrValue,
    StringListValue,
    parse_bool,
    parse_number,
    parse_string_list,
    serialize_value,
    to_config_value,
)


def test_to_config_value_tags_raw_values():
    assert to_config_value(True) == BoolValue(True)
    assert to_config_value(30) == NumberValue(30)
    assert to_config_value("-hwaccel auto") == StrValue("-hwaccel auto")
    assert to_config_value(["person", "car"]) == StringListValue(("person", "car"))
    assert to_config_value(None) is None


def test_to_config_value_rejects_unknown_types():
    with pytest.raises(ValueError):
        to_config_value({"nested": "mapping"})


def test_serialize_value_uses_store_conventions():
    assert serialize_value(BoolValue(False)) == "false"
    assert serialize_value(BoolValue(True)) == "true"
    assert serialize_value(NumberValue(60.0)) == "60"
    assert serialize_value(NumberValue(2.5)) == "2.5"
    assert json.loads(serialize_value(StringListValue(("person",)))) == ["person"]


def test_number_value_must_be_finite():
    with pytest.raises(ValueError):
        NumberValue(float("nan"))


def test_parse_helpers_degrade_to_defaults():
    assert parse_bool("true") is True
    assert parse_bool("TRUE") is False
    assert parse_bool(None) is False
    assert parse_string_list("not json") == ()
    assert parse_string_list('{"a": 1}') == ()
    assert parse_string_list('["person", "car"]') == ("person", "car")
    assert parse_number("abc", default=60) == 60
    assert parse_number(None, default=60) == 60
    assert parse_number("45", default=60) == 45


def test_memory_store_remove_missing_key_is_noop():
    store = MemoryConfigStore({"a": "1"})
    store.remove("missing")
    store.remove("a")
    assert store.get("a") is None
    assert store.keys() == ()


def test_json_store_persists_between_instances(tmp_path: Path):
    path = tmp_path / "cam.json"
    store = JsonConfigStore(path)
    store.set("transcodeStreaming", "true")
    store.set("streamingChannel", "sub")
    store.remove("streamingChannel")

    reloaded = JsonConfigStore(path)
    assert reloaded.get("transcodeStreaming") == "true"
    assert reloaded.get("streamingChannel") is None
    assert reloaded.keys() == ("transcodeStreaming",)


def test_json_store_rejects_corrupt_file(tmp_path: Path):
    path = tmp_path / "cam.json"
    path.write_text("[1, 2, 3]")
    with pytest.raises(RuntimeError):
        JsonConfigStore(path)


def test_json_store_coerces_non_string_values(tmp_path: Path):
    path = tmp_path / "cam.json"
    path.write_text(json.dumps({"objectDetectionContactSensors": ["person"], "gone": None}))
    store = JsonConfigStore(path)
    assert store.get("objectDetectionContactSensors") == '["person"]'
    assert store.get("gone") is None


def test_for_device_validates_identifier(tmp_path: Path):
    store = JsonConfigStore.for_device(tmp_path, "camera-1")
    assert store.path == tmp_path / "camera-1.json"
    with pytest.raises(ValueError):
        JsonConfigStore.for_device(tmp_path, "../escape")
    with pytest.raises(ValueError):
        JsonConfigStore.for_device(tmp_path, "  ")
