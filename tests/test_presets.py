from __future__ import annotations

import pytest

from cam_bridge.presets import (
    ArgumentExpander,
    ArgumentPreset,
    ArgumentPresetCatalog,
    CodecKind,
    FieldRef,
    default_catalog,
    probe_preset,
)

DEFERRED_SUFFIX = (
    "-b:v ${request.video.max_bit_rate * 2}k "
    "-vf scale=${request.video.width}:${request.video.height} "
    "-r ${request.video.fps}"
)


def test_default_catalog_is_built_once():
    assert default_catalog() is default_catalog()


def test_catalog_lists_names_per_kind():
    catalog = default_catalog()
    assert "Nvidia CUDA" in catalog.names(CodecKind.DECODER)
    assert "Nvidia CUDA" not in catalog.names(CodecKind.ENCODER)
    assert "Software" in catalog.names(CodecKind.ENCODER)
    assert catalog.resolve(CodecKind.DECODER, "Intel QuickSync") == ("-hwaccel", "qsv")
    assert catalog.resolve(CodecKind.DECODER, "Unknown") is None


def test_catalog_rejects_duplicates():
    preset = ArgumentPreset("Dup", CodecKind.DECODER, ("-hwaccel", "auto"))
    with pytest.raises(ValueError):
        ArgumentPresetCatalog([preset, preset])


def test_preset_requires_tokens():
    with pytest.raises(ValueError):
        ArgumentPreset("Empty", CodecKind.ENCODER, ())


def test_decoder_preset_expands_to_plain_arguments():
    expander = ArgumentExpander()
    assert expander.expand(CodecKind.DECODER, "Nvidia CUDA", "Nvidia CUDA") == "-hwaccel cuda"


def test_encoder_preset_appends_deferred_tokens():
    expander = ArgumentExpander()
    result = expander.expand(CodecKind.ENCODER, "Video4Linux", "Video4Linux")
    assert result == f"`-vcodec h264_v4l2m2m {DEFERRED_SUFFIX}`"
    assert result.count("`") == 2


def test_encoder_expansion_does_not_mutate_catalog():
    expander = ArgumentExpander()
    before = default_catalog().resolve(CodecKind.ENCODER, "Software")
    expander.expand(CodecKind.ENCODER, "Software", "Software")
    expander.expand(CodecKind.ENCODER, "Software", "Software")
    assert default_catalog().resolve(CodecKind.ENCODER, "Software") == before


def test_unknown_encoder_passes_raw_value_through():
    expander = ArgumentExpander()
    assert expander.expand(CodecKind.ENCODER, "-vcodec copy", "-vcodec copy") == "-vcodec copy"


def test_template_expression_lists_runtime_fields():
    template = ArgumentExpander().expand_template(CodecKind.ENCODER, "Nvidia NVENC")
    assert template is not None
    assert template.deferred is True
    assert template.field_names() == (
        "request.video.max_bit_rate * 2",
        "request.video.width",
        "request.video.height",
        "request.video.fps",
    )
    assert sum(isinstance(part, FieldRef) for part in template.parts) == 4


def test_decoder_template_has_no_deferred_fields():
    template = ArgumentExpander().expand_template(CodecKind.DECODER, "Raspberry Pi")
    assert template is not None
    assert template.deferred is False
    assert template.body() == "-c:v h264_mmal"


def test_probe_preset_without_codec_is_unavailable():
    preset = ArgumentPreset("Custom", CodecKind.ENCODER, ("-vcodec", "copy"))
    assert probe_preset(preset) is False


def test_probe_preset_unknown_codec_is_unavailable():
    preset = ArgumentPreset("Bogus", CodecKind.ENCODER, ("-vcodec", "bogus"), "no_such_codec_xyz")
    assert probe_preset(preset) is False
