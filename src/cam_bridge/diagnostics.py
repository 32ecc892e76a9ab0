"""Command-line helpers for inspecting CamBridge transcode presets."""
from __future__ import annotations

import argparse
import json
import sys
from typing import Sequence

from .presets import ArgumentExpander, CodecKind, default_catalog, probe_preset
from .version import APP_VERSION


def build_parser() -> argparse.ArgumentParser:
    """Return the argument parser for the diagnostics CLI."""

    parser = argparse.ArgumentParser(
        prog="python -m cam_bridge.diagnostics",
        description="CamBridge transcode preset diagnostics",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Emit results as JSON for scripting.",
    )
    parser.add_argument(
        "--probe",
        action="store_true",
        help="Check which preset codecs the local FFmpeg build can open.",
    )
    parser.add_argument(
        "--expand",
        nargs=2,
        metavar=("KIND", "NAME"),
        help="Print the argument string stored for a preset (KIND is decoder or encoder).",
    )
    return parser


def collect_presets(*, probe: bool = False) -> dict[str, list[dict[str, object]]]:
    """Describe every cataloged preset, optionally with its local availability."""

    catalog = default_catalog()
    payload: dict[str, list[dict[str, object]]] = {}
    for kind in CodecKind:
        entries: list[dict[str, object]] = []
        for preset in catalog.presets(kind):
            entry: dict[str, object] = {
                "name": preset.name,
                "arguments": " ".join(preset.tokens),
                "codec": preset.codec,
            }
            if probe:
                entry["available"] = probe_preset(preset)
            entries.append(entry)
        payload[f"{kind.value}s"] = entries
    return payload


def run(argv: Sequence[str] | None = None) -> int:
    """Execute the diagnostics CLI with *argv* arguments."""

    parser = build_parser()
    args = parser.parse_args(argv)

    if args.expand:
        kind_name, preset_name = args.expand
        try:
            kind = CodecKind(kind_name.strip().lower())
        except ValueError:
            parser.error(f"unknown preset kind {kind_name!r}; expected decoder or encoder")
        expander = ArgumentExpander()
        template = expander.expand_template(kind, preset_name)
        if template is None:
            print(f"Unknown {kind.value} preset {preset_name!r}", file=sys.stderr)
            return 1
        arguments = expander.expand(kind, preset_name)
        if args.json:
            json.dump(
                {"arguments": arguments, "fields": list(template.field_names())},
                sys.stdout,
            )
            sys.stdout.write("\n")
        else:
            print(arguments)
        return 0

    payload = collect_presets(probe=args.probe)
    if args.json:
        json.dump(payload, sys.stdout)
        sys.stdout.write("\n")
        return 0

    print(f"CamBridge presets (version {APP_VERSION})")
    for section, entries in payload.items():
        print(f"{section.capitalize()}:")
        for entry in entries:
            line = f" - {entry['name']}: {entry['arguments']}"
            if "available" in entry:
                line += " [available]" if entry["available"] else " [unavailable]"
            print(line)
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point used by `python -m cam_bridge.diagnostics`."""

    return run(argv)


__all__ = ["build_parser", "collect_presets", "run", "main"]


if __name__ == "__main__":  # pragma: no cover - module behaviour
    sys.exit(main())
