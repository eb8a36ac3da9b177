#!/usr/bin/env python3
"""Render a guide to the terminal for a given tracker state."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Dict, Sequence, Tuple

REPO_ROOT = Path(__file__).resolve().parents[1]
DEFAULT_GUIDE = REPO_ROOT / "data" / "guide_main.json"
DEFAULT_FLAG_MAP = REPO_ROOT / "data" / "flag_map.json"

if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from guide.flag_map import load_flag_map
from guide.loader import GuideLoadError, load_guide
from guide.settings import SETTINGS_PATH, load_settings, save_settings
from guide.text_renderer import render_guide
from guide.tracker import GuideTracker

TRUE_VALUES = {"true", "1", "yes", "on"}
FALSE_VALUES = {"false", "0", "no", "off"}


def parse_assignment(raw: str) -> Tuple[str, str]:
    key, sep, value = raw.partition("=")
    if not sep or not key.strip():
        raise argparse.ArgumentTypeError(f"expected KEY=VALUE, got '{raw}'.")
    return key.strip(), value.strip()


def parse_flag(raw: str) -> Tuple[str, bool]:
    key, value = parse_assignment(raw)
    lowered = value.lower()
    if lowered in TRUE_VALUES:
        return key, True
    if lowered in FALSE_VALUES:
        return key, False
    raise argparse.ArgumentTypeError(f"flag value for '{key}' must be true or false.")


def parse_resource(raw: str) -> Tuple[str, float]:
    key, value = parse_assignment(raw)
    try:
        number = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"resource value for '{key}' must be a number.") from None
    return key, int(number) if number.is_integer() else number


def parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Render the speedrun guide as plain text.")
    parser.add_argument(
        "guide_path",
        nargs="?",
        default=str(DEFAULT_GUIDE),
        help="Path to the main guide JSON file.",
    )
    parser.add_argument("--flag-map", default=str(DEFAULT_FLAG_MAP), help="Generated flag id lookup table.")
    parser.add_argument("--settings", default=str(SETTINGS_PATH), help="Settings JSON file.")
    parser.add_argument(
        "--flag",
        action="append",
        default=[],
        type=parse_flag,
        metavar="KEY=true|false",
        help="Set a flag before rendering. Repeatable.",
    )
    parser.add_argument(
        "--resource",
        action="append",
        default=[],
        type=parse_resource,
        metavar="NAME=VALUE",
        help="Set a resource quantity before rendering. Repeatable.",
    )
    parser.add_argument("--csr", action="store_true", help="Render in cutscene-remover mode.")
    parser.add_argument("--borders", action="store_true", help="Show pending conditional notes.")
    parser.add_argument("--width", type=int, help="Override the line width.")
    parser.add_argument("--color", action="store_true", help="Use ANSI styling.")
    parser.add_argument(
        "--save-settings",
        action="store_true",
        help="Persist the --csr, --borders and --width overrides to the settings file.",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str]) -> None:
    args = parse_args(argv[1:])
    try:
        guide = load_guide(Path(args.guide_path).resolve())
    except GuideLoadError as exc:
        print(f"[Guide] {exc}", file=sys.stderr)
        sys.exit(1)

    settings = load_settings(args.settings)
    if args.csr:
        settings.csr_mode_active = True
    if args.borders:
        settings.show_conditional_borders = True
    if args.width is not None:
        settings.line_width = args.width
    settings.clamp()
    if args.save_settings:
        settings = save_settings(settings, args.settings)

    resources: Dict[str, float] = dict(args.resource)
    flags: Dict[str, bool] = dict(args.flag)
    tracker = GuideTracker(resources=resources, flags=flags)
    flag_map = load_flag_map(args.flag_map)

    lines, diagnostics = render_guide(guide, tracker, flag_map, settings, ansi=args.color)
    for line in lines:
        print(line)
    if diagnostics:
        print(f"[Guide] {len(diagnostics)} problem(s) found while rendering.", file=sys.stderr)
    print("")
    print(tracker.summary())


if __name__ == "__main__":
    main(sys.argv)
