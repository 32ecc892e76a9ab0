"""FFmpeg decoder/encoder argument presets and their expansion."""
from __future__ import annotations

import functools
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Mapping, Union

import av

logger = logging.getLogger(__name__)


class CodecKind(str, Enum):
    DECODER = "decoder"
    ENCODER = "encoder"


@dataclass(frozen=True, slots=True)
class ArgumentPreset:
    """Named list of FFmpeg arguments for one hardware backend."""

    name: str
    kind: CodecKind
    tokens: tuple[str, ...]
    codec: str | None = None

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Preset name must not be empty")
        if not self.tokens:
            raise ValueError(f"Preset {self.name!r} has no arguments")


# ---------------------------------------------------------------------------
# Deferred templates
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Literal:
    text: str


@dataclass(frozen=True, slots=True)
class FieldRef:
    """Reference to a runtime request field, evaluated by the downstream invoker."""

    expression: str


TemplatePart = Union[Literal, FieldRef]


@dataclass(frozen=True, slots=True)
class TemplateExpression:
    """Argument string whose placeholders are substituted at session start.

    ``render()`` produces the wire form understood by the transcoding
    invoker: ``${...}`` placeholders inside a backtick quoted string.
    """

    parts: tuple[TemplatePart, ...]

    @property
    def deferred(self) -> bool:
        return any(isinstance(part, FieldRef) for part in self.parts)

    def field_names(self) -> tuple[str, ...]:
        return tuple(part.expression for part in self.parts if isinstance(part, FieldRef))

    def body(self) -> str:
        chunks: list[str] = []
        for part in self.parts:
            if isinstance(part, FieldRef):
                chunks.append("${" + part.expression + "}")
            else:
                chunks.append(part.text)
        return "".join(chunks)

    def render(self) -> str:
        return f"`{self.body()}`"


# Bitrate, rescale and frame-rate arguments bound to the incoming request.
# Each inner tuple is one argument token.
DEFERRED_ENCODER_TOKENS: tuple[tuple[tuple[TemplatePart, ...], ...], ...] = (
    ((Literal("-b:v"),), (FieldRef("request.video.max_bit_rate * 2"), Literal("k"))),
    (
        (Literal("-vf"),),
        (
            Literal("scale="),
            FieldRef("request.video.width"),
            Literal(":"),
            FieldRef("request.video.height"),
        ),
    ),
    ((Literal("-r"),), (FieldRef("request.video.fps"),)),
)


def _join_tokens(tokens: Iterable[tuple[TemplatePart, ...]]) -> tuple[TemplatePart, ...]:
    parts: list[TemplatePart] = []
    for index, token in enumerate(tokens):
        if index:
            parts.append(Literal(" "))
        parts.extend(token)
    # merge adjacent literals so the structure stays compact
    merged: list[TemplatePart] = []
    for part in parts:
        if merged and isinstance(part, Literal) and isinstance(merged[-1], Literal):
            merged[-1] = Literal(merged[-1].text + part.text)
        else:
            merged.append(part)
    return tuple(merged)


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


class ArgumentPresetCatalog:
    """Immutable registry of decoder and encoder presets keyed by name."""

    def __init__(self, presets: Iterable[ArgumentPreset]) -> None:
        by_kind: dict[CodecKind, dict[str, ArgumentPreset]] = {
            CodecKind.DECODER: {},
            CodecKind.ENCODER: {},
        }
        for preset in presets:
            kind = CodecKind(preset.kind)
            bucket = by_kind[kind]
            if preset.name in bucket:
                raise ValueError(f"Duplicate {kind.value} preset {preset.name!r}")
            bucket[preset.name] = preset
        self._presets: Mapping[CodecKind, Mapping[str, ArgumentPreset]] = {
            kind: dict(items) for kind, items in by_kind.items()
        }

    def names(self, kind: CodecKind) -> list[str]:
        return list(self._presets[CodecKind(kind)])

    def presets(self, kind: CodecKind) -> tuple[ArgumentPreset, ...]:
        return tuple(self._presets[CodecKind(kind)].values())

    def get(self, kind: CodecKind, name: str) -> ArgumentPreset | None:
        return self._presets[CodecKind(kind)].get(name)

    def resolve(self, kind: CodecKind, name: str) -> tuple[str, ...] | None:
        preset = self.get(kind, name)
        return preset.tokens if preset is not None else None


_DEFAULT_PRESETS: tuple[ArgumentPreset, ...] = (
    ArgumentPreset("Apple VideoToolbox", CodecKind.DECODER, ("-hwaccel", "videotoolbox"), "h264_videotoolbox"),
    ArgumentPreset("Nvidia CUDA", CodecKind.DECODER, ("-hwaccel", "cuda"), "h264_cuvid"),
    ArgumentPreset("Intel QuickSync", CodecKind.DECODER, ("-hwaccel", "qsv"), "h264_qsv"),
    ArgumentPreset("Raspberry Pi", CodecKind.DECODER, ("-c:v", "h264_mmal"), "h264_mmal"),
    ArgumentPreset("Video4Linux", CodecKind.DECODER, ("-c:v", "h264_v4l2m2m"), "h264_v4l2m2m"),
    ArgumentPreset("Apple VideoToolbox", CodecKind.ENCODER, ("-vcodec", "h264_videotoolbox"), "h264_videotoolbox"),
    ArgumentPreset("Nvidia NVENC", CodecKind.ENCODER, ("-vcodec", "h264_nvenc"), "h264_nvenc"),
    ArgumentPreset("Intel QuickSync", CodecKind.ENCODER, ("-vcodec", "h264_qsv"), "h264_qsv"),
    ArgumentPreset("Raspberry Pi", CodecKind.ENCODER, ("-vcodec", "h264_omx", "-zerocopy", "1"), "h264_omx"),
    ArgumentPreset("Video4Linux", CodecKind.ENCODER, ("-vcodec", "h264_v4l2m2m"), "h264_v4l2m2m"),
    ArgumentPreset(
        "Software",
        CodecKind.ENCODER,
        ("-vcodec", "libx264", "-preset", "ultrafast", "-tune", "zerolatency"),
        "libx264",
    ),
)


@functools.lru_cache(maxsize=1)
def default_catalog() -> ArgumentPresetCatalog:
    """Return the process wide preset catalog."""

    return ArgumentPresetCatalog(_DEFAULT_PRESETS)


def probe_preset(preset: ArgumentPreset) -> bool:
    """Return ``True`` when the local FFmpeg build can open the preset's codec."""

    if not preset.codec:
        return False
    mode = "w" if preset.kind is CodecKind.ENCODER else "r"
    try:
        context = av.CodecContext.create(preset.codec, mode)
    except (av.FFmpegError, ValueError) as exc:
        logger.debug("Codec %s unavailable: %s", preset.codec, exc)
        return False
    except Exception as exc:  # pragma: no cover - defensive guard
        logger.debug("Failed to initialise codec %s: %s", preset.codec, exc)
        return False
    if preset.kind is CodecKind.ENCODER and not getattr(context, "is_encoder", True):
        return False
    return True


# ---------------------------------------------------------------------------
# Expansion
# ---------------------------------------------------------------------------


class ArgumentExpander:
    """Turn a chosen preset name into the argument string stored for it."""

    def __init__(self, catalog: ArgumentPresetCatalog | None = None) -> None:
        self._catalog = catalog or default_catalog()

    @property
    def catalog(self) -> ArgumentPresetCatalog:
        return self._catalog

    def expand_template(self, kind: CodecKind, name: str) -> TemplateExpression | None:
        """Return the structured expansion of *name*, or ``None`` when unknown."""

        kind = CodecKind(kind)
        tokens = self._catalog.resolve(kind, name)
        if tokens is None:
            return None
        pieces: list[tuple[TemplatePart, ...]] = [(Literal(token),) for token in tokens]
        if kind is CodecKind.ENCODER:
            for flag, value in DEFERRED_ENCODER_TOKENS:
                pieces.append(flag)
                pieces.append(value)
        return TemplateExpression(_join_tokens(pieces))

    def expand(self, kind: CodecKind, name: str, raw_value: str | None = None) -> str:
        """Return the stored argument string for a preset choice.

        Decoder presets become their plain argument list. Encoder presets gain
        the deferred bitrate, scale and frame-rate arguments and are wrapped as
        a single deferred template. Unknown names pass *raw_value* through.
        """

        template = self.expand_template(kind, name)
        if template is None:
            if raw_value is None:
                return name
            return raw_value
        if template.deferred:
            return template.render()
        return template.body()


__all__ = [
    "ArgumentExpander",
    "ArgumentPreset",
    "ArgumentPresetCatalog",
    "CodecKind",
    "DEFERRED_ENCODER_TOKENS",
    "FieldRef",
    "Literal",
    "TemplateExpression",
    "default_catalog",
    "probe_preset",
]
