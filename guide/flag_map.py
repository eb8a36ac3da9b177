"""Flag id -> canonical key lookup table.

The table is built offline by scanning every guide document for acquired item
flag records and is loaded once at startup. Many flag records may share an
``itemName``; the first ``id -> itemName`` association encountered wins.
"""

from __future__ import annotations

import json
import os
import sys
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

from guide.guide_schema import is_acquired_item_flag, is_non_empty_str
from guide.loader import GuideLoadError, load_json, referenced_files, resolve_reference

DEFAULT_FLAG_MAP_PATH = Path("data/flag_map.json")


@dataclass(frozen=True)
class FlagCollision:
    flag_id: str
    kept: str
    rejected: str
    source: str = ""

    def message(self) -> str:
        where = f" in {self.source}" if self.source else ""
        return (
            f"flag id '{self.flag_id}' maps to '{self.kept}' and '{self.rejected}'{where}; "
            f"keeping '{self.kept}'."
        )


def iter_flag_records(document: Any) -> Iterator[Mapping[str, Any]]:
    """Yield every acquired item flag record anywhere inside ``document``.

    Every field of every record and every element of every array is visited;
    node kinds are not consulted so flags in unusual places are still found.
    """
    stack: List[Any] = [document]
    while stack:
        current = stack.pop()
        if isinstance(current, Mapping):
            if is_acquired_item_flag(current):
                yield current
            stack.extend(reversed(list(current.values())))
        elif isinstance(current, list):
            stack.extend(reversed(current))


def collect_flag_map(
    documents: Iterable[Any], *, sources: Optional[Iterable[str]] = None
) -> Tuple[Dict[str, str], List[FlagCollision]]:
    """Scan ``documents`` in order and return ``(table, collisions)``.

    The table is sorted by flag id.
    """
    table: Dict[str, str] = {}
    collisions: List[FlagCollision] = []
    source_names = list(sources) if sources is not None else []
    for idx, document in enumerate(documents):
        source = source_names[idx] if idx < len(source_names) else ""
        for record in iter_flag_records(document):
            flag_id = record["id"]
            item_name = record["itemName"]
            existing = table.get(flag_id)
            if existing is None:
                table[flag_id] = item_name
            elif existing != item_name:
                collisions.append(FlagCollision(flag_id, existing, item_name, source))
    return dict(sorted(table.items())), collisions


def collect_corpus(main_path: Path | str) -> Tuple[List[Tuple[str, Any]], List[str]]:
    """Load the main guide document and every document it references.

    Returns ``(documents, warnings)`` where each document is a
    ``(source name, data)`` pair. Unreadable sub-documents become warnings so
    the rest of the corpus can still be scanned.
    """
    main_path = Path(main_path)
    main = load_json(main_path)
    documents: List[Tuple[str, Any]] = [(str(main_path), main)]
    warnings: List[str] = []
    if not isinstance(main, Mapping):
        return documents, warnings

    root = main_path.resolve().parent
    try:
        refs = referenced_files(main)
    except GuideLoadError as exc:
        warnings.append(str(exc))
        return documents, warnings
    for _, ref in refs:
        try:
            documents.append((ref, load_json(resolve_reference(root, ref))))
        except GuideLoadError as exc:
            warnings.append(str(exc))
    return documents, warnings


def resolve_flag_key(flag_id: str, table: Mapping[str, str]) -> str:
    """Map a flag id to its canonical key; unmapped ids are their own key."""
    key = table.get(flag_id)
    return key if is_non_empty_str(key) else flag_id


class FlagMap:
    """Read-only view over a loaded flag table."""

    def __init__(self, table: Optional[Mapping[str, str]] = None) -> None:
        self.table: Dict[str, str] = {}
        for flag_id, key in (table or {}).items():
            if is_non_empty_str(flag_id) and is_non_empty_str(key):
                self.table[flag_id] = key

    def resolve(self, flag_id: str) -> str:
        return resolve_flag_key(flag_id, self.table)

    def __contains__(self, flag_id: object) -> bool:
        return flag_id in self.table

    def __len__(self) -> int:
        return len(self.table)

    def to_dict(self) -> Dict[str, str]:
        return dict(sorted(self.table.items()))


def load_flag_map(path: Path | str = DEFAULT_FLAG_MAP_PATH) -> FlagMap:
    """Load the generated table; a missing or unreadable file yields an empty map."""
    path = Path(path)
    if not path.exists():
        return FlagMap()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        print(f"[FlagMap] Failed to read {path}: {exc}", file=sys.stderr)
        return FlagMap()
    if not isinstance(data, dict):
        print(f"[FlagMap] Ignoring {path}: expected a JSON object.", file=sys.stderr)
        return FlagMap()
    return FlagMap(data)


def render_flag_map(table: Mapping[str, str]) -> str:
    return json.dumps(dict(sorted(table.items())), indent=2, ensure_ascii=False) + "\n"


def write_flag_map(table: Mapping[str, str], path: Path | str = DEFAULT_FLAG_MAP_PATH) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path: Path | None = None
    try:
        with tempfile.NamedTemporaryFile(
            "w", delete=False, dir=path.parent, prefix=path.name, suffix=".tmp", encoding="utf-8"
        ) as tmp_file:
            tmp_file.write(render_flag_map(table))
            tmp_path = Path(tmp_file.name)
        os.replace(str(tmp_path), str(path))
    except OSError:
        if tmp_path is not None and tmp_path.exists():
            tmp_path.unlink()
        raise
    return path
