"""Editing session for a single chapter file."""

from __future__ import annotations

import json
import os
import sys
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from guide.dispatcher import BRANCH, NODE, PLACEHOLDER, traverse
from guide.element_factory import create_block_template
from guide.loader import GuideLoadError, load_chapter
from guide.mutator import (
    InvalidPathError,
    apply,
    format_path,
    get_at,
    insert_at,
    move_within,
    parse_path,
    remove_at,
)


class EditorStore:
    """Holds the chapter being edited and funnels every edit through the mutator.

    Failed operations leave the content untouched and record a message in
    ``error`` instead of raising, so an editor surface can keep running.
    """

    def __init__(self) -> None:
        self.chapter_id: str = ""
        self.title: str = ""
        self.content: List[Any] = []
        self.file_path: Optional[Path] = None
        self.error: Optional[str] = None
        self.save_status: Optional[str] = None
        self.dirty = False

    @property
    def loaded(self) -> bool:
        return self.file_path is not None and bool(self.chapter_id)

    def _fail(self, message: str) -> bool:
        self.error = message
        print(f"[Editor] {message}", file=sys.stderr)
        return False

    # ---------- Files ----------
    def load_chapter(self, path: Path | str) -> bool:
        self.error = None
        self.save_status = None
        try:
            chapter = load_chapter(path)
        except GuideLoadError as exc:
            return self._fail(f"Failed to load chapter: {exc}")
        self.chapter_id = chapter["id"]
        self.title = chapter["title"]
        self.content = chapter["content"]
        self.file_path = Path(path)
        self.dirty = False
        return True

    def chapter_data(self) -> Dict[str, Any]:
        return {"id": self.chapter_id, "title": self.title, "content": self.content}

    def save_chapter(self) -> bool:
        if not self.loaded:
            return self._fail("No chapter loaded to save")
        self.error = None
        path = self.file_path
        tmp_path: Path | None = None
        try:
            with tempfile.NamedTemporaryFile(
                "w", delete=False, dir=path.parent, prefix=path.name, suffix=".tmp", encoding="utf-8"
            ) as tmp_file:
                json.dump(self.chapter_data(), tmp_file, indent=4, ensure_ascii=False)
                tmp_path = Path(tmp_file.name)
            os.replace(str(tmp_path), str(path))
        except OSError as exc:
            if tmp_path is not None and tmp_path.exists():
                tmp_path.unlink()
            self.save_status = None
            return self._fail(f"Failed to save chapter: {exc}")
        self.dirty = False
        self.save_status = "Chapter saved."
        return True

    # ---------- Edits ----------
    def _commit(self, content: Any) -> bool:
        self.content = content
        self.error = None
        self.dirty = True
        return True

    def update_node(self, path: Sequence[Any], value: Any) -> bool:
        """Replace the node at ``path`` inside the chapter content.

        An empty path replaces the whole content list.
        """
        try:
            return self._commit(apply(self.content, parse_path(path), value))
        except InvalidPathError as exc:
            return self._fail(f"Invalid edit path: {exc}")

    def add_block(self, kind: str, index: Optional[int] = None, list_path: Sequence[Any] = ()) -> bool:
        try:
            steps = parse_path(list_path)
            if index is None:
                target = get_at(self.content, steps)
                index = len(target) if isinstance(target, list) else 0
            return self._commit(insert_at(self.content, steps, index, create_block_template(kind)))
        except InvalidPathError as exc:
            return self._fail(f"Cannot add block: {exc}")

    def remove_block(self, path: Sequence[Any]) -> bool:
        try:
            return self._commit(remove_at(self.content, parse_path(path)))
        except InvalidPathError as exc:
            return self._fail(f"Cannot remove block: {exc}")

    def move_block(self, path: Sequence[Any], offset: int) -> bool:
        try:
            return self._commit(move_within(self.content, parse_path(path), offset))
        except InvalidPathError as exc:
            return self._fail(f"Cannot move block: {exc}")

    # ---------- Views ----------
    def outline(self) -> List[Tuple[str, str, int]]:
        """List ``(path, kind or label, depth)`` for every node, all branches included."""
        rows: List[Tuple[str, str, int]] = []
        for entry in traverse(self.content):
            if entry.role == NODE:
                rows.append((format_path(entry.path), entry.kind or "?", entry.depth))
            elif entry.role == BRANCH:
                rows.append((format_path(entry.path), f"branch: {entry.label}", entry.depth))
            elif entry.role == PLACEHOLDER:
                rows.append((format_path(entry.path), "unsupported", entry.depth))
        return rows
