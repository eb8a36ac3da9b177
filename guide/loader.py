"""Load a guide document and splice in the sub-documents it references."""

from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

from guide.guide_schema import is_non_empty_str
from guide.schema import ValidationContext, is_sequence, validate_chapter, validate_guide

DEFAULT_GUIDE_PATH = Path("data/guide_main.json")

# (reference field, spliced field) pairs for single-file references.
SINGLE_REFERENCES: Tuple[Tuple[str, str], ...] = (
    ("introductionFile", "introduction"),
    ("acknowledgementsFile", "acknowledgements"),
)


class GuideLoadError(ValueError):
    """Raised when a guide or one of its sub-documents cannot be loaded."""


def _raise_guide_load(errors: List[str]) -> None:
    raise GuideLoadError("Invalid guide:\n- " + "\n- ".join(errors))


def load_json(path: Path | str) -> Any:
    path = Path(path)
    try:
        with path.open("r", encoding="utf-8") as handle:
            return json.load(handle)
    except FileNotFoundError:
        raise GuideLoadError(f"{path}: file not found.") from None
    except json.JSONDecodeError as exc:
        raise GuideLoadError(f"{path}: invalid JSON ({exc}).") from exc
    except OSError as exc:
        raise GuideLoadError(f"{path}: could not be read ({exc}).") from exc


def resolve_reference(root: Path, reference: str) -> Path:
    """Resolve a document reference relative to the guide data root.

    References written as web paths (``/chapters/a.json``) are treated as
    relative to the root as well.
    """
    relative = Path(reference.lstrip("/"))
    if relative.is_absolute() or ".." in relative.parts:
        raise GuideLoadError(f"reference '{reference}' escapes the guide directory.")
    return root / relative


def referenced_files(guide: Mapping[str, Any]) -> List[Tuple[str, str]]:
    """List ``(field, reference)`` pairs for every sub-document still to splice."""
    refs: List[Tuple[str, str]] = []
    errors: List[str] = []
    for ref_field, content_field in SINGLE_REFERENCES:
        ref = guide.get(ref_field)
        if ref is None or guide.get(content_field) is not None:
            continue
        if not is_non_empty_str(ref):
            errors.append(f"{ref_field}: must be a non-empty string path.")
            continue
        refs.append((content_field, ref))

    chapter_files = guide.get("chapterFiles")
    if chapter_files is not None and not guide.get("chapters"):
        if not is_sequence(chapter_files):
            errors.append("chapterFiles: must be a list of chapter file paths.")
        else:
            for idx, ref in enumerate(chapter_files):
                if not is_non_empty_str(ref):
                    errors.append(f"chapterFiles[{idx}]: must be a non-empty string path.")
                    continue
                refs.append(("chapters", ref))
    if errors:
        _raise_guide_load(errors)
    return refs


def _splice(guide: Dict[str, Any], refs: List[Tuple[str, str]], loaded: List[Any]) -> Dict[str, Any]:
    chapters: List[Any] = []
    for (content_field, ref), data in zip(refs, loaded):
        if content_field == "chapters":
            ctx = ValidationContext()
            validate_chapter(data, (ref,), ctx)
            if not ctx.ok():
                _raise_guide_load(ctx.errors)
            chapters.append(data)
        else:
            if not is_sequence(data):
                _raise_guide_load([f"{ref}: {content_field} file must contain a list."])
            guide[content_field] = data
    if chapters:
        guide["chapters"] = chapters
    return guide


def _finish(guide: Dict[str, Any]) -> Dict[str, Any]:
    errors = validate_guide(guide)
    if errors:
        _raise_guide_load(errors)
    guide.setdefault("introduction", [])
    guide.setdefault("acknowledgements", [])
    guide.setdefault("chapters", [])
    return guide


def _load_main(path: Path | str) -> Dict[str, Any]:
    main = load_json(path)
    if not isinstance(main, dict):
        _raise_guide_load(["Guide data must be a JSON object."])
    return dict(main)


def load_guide(path: Path | str = DEFAULT_GUIDE_PATH, *, root: Optional[Path | str] = None) -> Dict[str, Any]:
    """Load the main guide and every referenced sub-document.

    Either the whole guide is returned or ``GuideLoadError`` is raised; a
    partially loaded guide is never handed out.
    """
    guide = _load_main(path)
    data_root = Path(root) if root is not None else Path(path).resolve().parent
    refs = referenced_files(guide)
    loaded = [load_json(resolve_reference(data_root, ref)) for _, ref in refs]
    return _finish(_splice(guide, refs, loaded))


async def load_guide_async(
    path: Path | str = DEFAULT_GUIDE_PATH, *, root: Optional[Path | str] = None
) -> Dict[str, Any]:
    guide = await asyncio.to_thread(_load_main, path)
    data_root = Path(root) if root is not None else Path(path).resolve().parent
    refs = referenced_files(guide)
    paths = [resolve_reference(data_root, ref) for _, ref in refs]
    loaded = await asyncio.gather(*(asyncio.to_thread(load_json, ref_path) for ref_path in paths))
    return _finish(_splice(guide, refs, list(loaded)))


def load_chapter(path: Path | str) -> Dict[str, Any]:
    chapter = load_json(path)
    ctx = ValidationContext()
    validate_chapter(chapter, (str(path),), ctx)
    if not ctx.ok():
        _raise_guide_load(ctx.errors)
    return chapter


@dataclass(frozen=True)
class GuideSection:
    """One rendered section of a guide in reading order.

    ``base_path`` locates ``content`` inside the guide document. Chapter
    scopes are prefixed so a chapter id can never collide with the
    introduction or acknowledgements scopes.
    """

    kind: str
    scope: str
    title: str
    base_path: Tuple[Any, ...]
    content: List[Any]


INTRODUCTION = "introduction"
CHAPTER = "chapter"
ACKNOWLEDGEMENTS = "acknowledgements"


def guide_sections(guide: Mapping[str, Any]) -> List[GuideSection]:
    """Return the introduction, every chapter, then the acknowledgements.

    Acknowledgements are stored as bare formatted text; each entry is wrapped
    in a paragraph so it renders on a line of its own. Paragraph paths address
    the stored entry; paths below them do not exist in the document.
    """
    sections: List[GuideSection] = []
    if guide.get("introduction"):
        sections.append(
            GuideSection(INTRODUCTION, INTRODUCTION, "Introduction", ("introduction",), guide["introduction"])
        )
    for idx, chapter in enumerate(guide.get("chapters", [])):
        sections.append(
            GuideSection(
                CHAPTER,
                f"chapter:{chapter['id']}",
                chapter["title"],
                ("chapters", idx, "content"),
                chapter["content"],
            )
        )
    if guide.get("acknowledgements"):
        paragraphs = [{"type": "textParagraph", "content": [entry]} for entry in guide["acknowledgements"]]
        sections.append(
            GuideSection(ACKNOWLEDGEMENTS, ACKNOWLEDGEMENTS, "Acknowledgements", ("acknowledgements",), paragraphs)
        )
    return sections
