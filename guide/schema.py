"""Structural checks a guide must pass before it can be traversed."""

from __future__ import annotations

from collections import Counter
from typing import Any, Iterable, List, Mapping, Sequence

from guide.guide_schema import format_validation_message, is_non_empty_str, path


class ValidationContext:
    """Utility container for accumulating validation errors."""

    def __init__(self) -> None:
        self.errors: List[str] = []

    def add(self, context: str, path_str: str, message: str) -> None:
        self.errors.append(format_validation_message(path_str, context, message))

    def extend(self, messages: Iterable[str]) -> None:
        self.errors.extend(messages)

    def ok(self) -> bool:
        return not self.errors


def require(condition: bool, context: str, path_str: str, message: str, ctx: ValidationContext) -> None:
    if not condition:
        ctx.add(context, path_str, message)


def is_sequence(value: Any) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes))


def validate_content_sequence(
    content: Any, context: str, path_parts: Sequence[object], ctx: ValidationContext
) -> None:
    if not is_sequence(content):
        ctx.add(context, path(*path_parts), "content must be a list of nodes.")
        return
    for idx, entry in enumerate(content):
        if not isinstance(entry, Mapping):
            ctx.add(context, path(*path_parts, idx), f"entry {idx + 1} must be an object.")


def validate_chapter(
    chapter: Any, path_parts: Sequence[object], ctx: ValidationContext
) -> None:
    if not isinstance(chapter, Mapping):
        ctx.add("Chapter", path(*path_parts), "must be an object.")
        return
    chapter_id = chapter.get("id")
    context = f"Chapter '{chapter_id}'" if is_non_empty_str(chapter_id) else "Chapter"
    require(is_non_empty_str(chapter_id), context, path(*path_parts, "id"), "requires a non-empty 'id'.", ctx)
    require(
        is_non_empty_str(chapter.get("title")),
        context,
        path(*path_parts, "title"),
        "requires a non-empty 'title'.",
        ctx,
    )
    validate_content_sequence(chapter.get("content"), context, (*path_parts, "content"), ctx)


def validate_guide(guide: Mapping[str, Any]) -> List[str]:
    """Check an assembled guide (sub-documents already spliced in)."""
    ctx = ValidationContext()

    require(
        is_non_empty_str(guide.get("title")),
        "Guide data",
        path("title"),
        "must include a non-empty 'title'.",
        ctx,
    )

    introduction = guide.get("introduction")
    if introduction is not None:
        validate_content_sequence(introduction, "Introduction", ("introduction",), ctx)

    acknowledgements = guide.get("acknowledgements")
    if acknowledgements is not None:
        validate_content_sequence(acknowledgements, "Acknowledgements", ("acknowledgements",), ctx)

    chapters = guide.get("chapters", [])
    if not is_sequence(chapters):
        ctx.add("Guide data", path("chapters"), "'chapters' must be a list of chapter objects.")
        return ctx.errors

    for idx, chapter in enumerate(chapters):
        validate_chapter(chapter, ("chapters", idx), ctx)

    chapter_ids = [c.get("id") for c in chapters if isinstance(c, Mapping) and is_non_empty_str(c.get("id"))]
    duplicates = [chapter_id for chapter_id, count in Counter(chapter_ids).items() if count > 1]
    if duplicates:
        ctx.add(
            "Chapters",
            path("chapters"),
            f"duplicate chapter IDs detected: {', '.join(sorted(duplicates))}.",
        )

    return ctx.errors
