#!/usr/bin/env python3
"""Scan guide documents for item flags and write the flag id lookup table."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Sequence

REPO_ROOT = Path(__file__).resolve().parents[1]
DEFAULT_GUIDE = REPO_ROOT / "data" / "guide_main.json"
DEFAULT_OUTPUT = REPO_ROOT / "data" / "flag_map.json"

if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from guide.flag_map import collect_corpus, collect_flag_map, render_flag_map, write_flag_map
from guide.loader import GuideLoadError


def parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Generate the flag id -> item name lookup table.")
    parser.add_argument(
        "guide_path",
        nargs="?",
        default=str(DEFAULT_GUIDE),
        help="Path to the main guide JSON file.",
    )
    parser.add_argument(
        "--output",
        "-o",
        default=str(DEFAULT_OUTPUT),
        help="Where to write the generated table.",
    )
    parser.add_argument(
        "--check",
        action="store_true",
        help="Exit with status 1 if the table on disk is out of date instead of writing it.",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str]) -> None:
    args = parse_args(argv[1:])
    guide_path = Path(args.guide_path).resolve()
    output_path = Path(args.output)
    try:
        documents, warnings = collect_corpus(guide_path)
    except GuideLoadError as exc:
        print(f"[FlagMap] {exc}", file=sys.stderr)
        sys.exit(1)

    for warning in warnings:
        print(f"[FlagMap] Warning: {warning}", file=sys.stderr)

    table, collisions = collect_flag_map(
        (data for _, data in documents), sources=[name for name, _ in documents]
    )
    for collision in collisions:
        print(f"[FlagMap] Warning: {collision.message()}", file=sys.stderr)

    if args.check:
        current = output_path.read_text(encoding="utf-8") if output_path.exists() else ""
        if current != render_flag_map(table):
            print(f"{output_path} is out of date; regenerate it.")
            sys.exit(1)
        print(f"{output_path} is up to date ({len(table)} flags).")
        return

    write_flag_map(table, output_path)
    print(f"Wrote {len(table)} flags to {output_path}.")


if __name__ == "__main__":
    main(sys.argv)
