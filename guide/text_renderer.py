"""Plain-text rendering of traversal entries for the terminal."""

from __future__ import annotations

import sys
import textwrap
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple

from guide.dispatcher import (
    BRANCH,
    FLAG,
    NODE,
    PENDING_NOTE,
    PLACEHOLDER,
    RESOURCE,
    Traversal,
    TraversalEntry,
    traverse,
)
from guide.guide_schema import (
    CONSUMPTION_UPDATE_TYPES,
    INLINE_KINDS,
    LIST_ITEM,
    NODE_SPECS,
    USER_CONFIRM_UPDATE_TYPES,
    USER_PROMPT_FLAG_SET_TYPES,
    is_number,
    node_kind,
)
from guide.loader import guide_sections
from guide.mutator import FieldStep, IndexStep, Path
from guide.resolver import FlagTable
from guide.settings import GuideSettings
from guide.tracker import GuideTracker

ANSI_RESET = "\033[0m"
ANSI_BOLD = "\033[1m"
ANSI_ITALIC = "\033[3m"

CHARACTER_COLORS: Dict[str, str] = {
    "TIDUS": "\033[34m",
    "YUNA": "\033[95m",
    "AURON": "\033[31m",
    "WAKKA": "\033[33m",
    "LULU": "\033[35m",
    "RIKKU": "\033[32m",
    "KIMAHRI": "\033[94m",
}

MATH_SYMBOLS: Dict[str, str] = {
    "\\leftarrow": "←",
    "\\rightarrow": "→",
    "\\uparrow": "↑",
    "\\downarrow": "↓",
    "\\nearrow": "↗",
    "\\searrow": "↘",
    "\\swarrow": "↙",
    "\\nwarrow": "↖",
}
_SYMBOLS_LONGEST_FIRST = sorted(MATH_SYMBOLS, key=len, reverse=True)

INDENT = "  "
INLINE_RUN_PREFIXES: Dict[str, str] = {"notes": "Note: ", "csrNote": "CSR: "}


def _style(text: str, code: str, ansi: bool) -> str:
    return f"{code}{text}{ANSI_RESET}" if ansi and text else text


def render_math_symbol(symbol: str) -> str:
    """Replace known LaTeX arrow commands; anything else is kept verbatim."""
    output: List[str] = []
    remaining = symbol
    while remaining:
        for latex in _SYMBOLS_LONGEST_FIRST:
            if remaining.startswith(latex):
                output.append(MATH_SYMBOLS[latex])
                remaining = remaining[len(latex):]
                break
        else:
            output.append(remaining[0])
            remaining = remaining[1:]
    return "".join(output)


def _character(name: str, ansi: bool, bold: bool = False) -> str:
    color = CHARACTER_COLORS.get(name.upper())
    text = _style(name, color, ansi) if color else name
    return _style(text, ANSI_BOLD, ansi) if bold else text


def _plain_text(node: Mapping[str, Any], ansi: bool) -> str:
    return str(node.get("text", ""))


def _formatted_text(node: Mapping[str, Any], ansi: bool) -> str:
    text = str(node.get("text", ""))
    if node.get("isBold"):
        text = _style(text, ANSI_BOLD, ansi)
    if node.get("isItalic"):
        text = _style(text, ANSI_ITALIC, ansi)
    return text


def _character_reference(node: Mapping[str, Any], ansi: bool) -> str:
    return _character(str(node.get("characterName", "")), ansi, bool(node.get("isBold")))


def _character_command(node: Mapping[str, Any], ansi: bool) -> str:
    name = _character(str(node.get("characterName", "")), ansi, bool(node.get("isBold")))
    return f"{name}: {node.get('actionText', '')}"


def _game_macro(node: Mapping[str, Any], ansi: bool) -> str:
    text = str(node.get("macroName", "")).upper()
    value = node.get("value")
    if value:
        text = f"{text} ({value})"
    return _style(text, ANSI_BOLD, ansi)


def _formation(node: Mapping[str, Any], ansi: bool) -> str:
    characters = node.get("characters") or []
    names = ", ".join(render_inline(char, ansi=ansi) for char in characters)
    return f"(Formation: {names})"


def _link(node: Mapping[str, Any], ansi: bool) -> str:
    text = render_inline_sequence(node.get("text") or [], ansi=ansi)
    return f"{text} <{node.get('url', '')}>"


def _nth(node: Mapping[str, Any], ansi: bool) -> str:
    return str(node.get("value", ""))


def _num(node: Mapping[str, Any], ansi: bool) -> str:
    value = node.get("value")
    if is_number(value):
        return f"{value:,}"
    return str(value)


def _math_symbol(node: Mapping[str, Any], ansi: bool) -> str:
    return render_math_symbol(str(node.get("symbol", "")))


INLINE_RENDERERS: Dict[str, Callable[[Mapping[str, Any], bool], str]] = {
    "plainText": _plain_text,
    "formattedText": _formatted_text,
    "characterReference": _character_reference,
    "characterCommand": _character_command,
    "gameMacro": _game_macro,
    "formation": _formation,
    "link": _link,
    "nth": _nth,
    "num": _num,
    "mathSymbol": _math_symbol,
}


def render_inline(node: Any, *, ansi: bool = False) -> str:
    renderer = INLINE_RENDERERS.get(node_kind(node) or "")
    if renderer is None:
        return f"[unsupported inline: {node_kind(node) or '?'}]"
    return renderer(node, ansi)


def render_inline_sequence(nodes: Iterable[Any], *, ansi: bool = False) -> str:
    """Render the inline members of ``nodes``; nested blocks are rendered on their own lines."""
    return "".join(render_inline(node, ansi=ansi) for node in nodes if node_kind(node) in INLINE_KINDS)


def format_resource_update(update: Mapping[str, Any]) -> str:
    name = update.get("name", "?")
    quantity = update.get("quantity", 0)
    amount = f"{quantity:g}" if is_number(quantity) else str(quantity)
    update_type = update.get("updateType")
    if update_type in USER_CONFIRM_UPDATE_TYPES:
        verb = "used" if update_type in CONSUMPTION_UPDATE_TYPES else "gained"
        return f"[? {name}: confirm amount {verb}, up to {amount}]"
    sign = "-" if update_type in CONSUMPTION_UPDATE_TYPES else "+"
    return f"[{sign}{amount} {name}]"


def format_flag_prompt(flag: Mapping[str, Any]) -> str:
    item = flag.get("itemName", "?")
    source = flag.get("sourceDescription", "")
    if flag.get("setType") not in USER_PROMPT_FLAG_SET_TYPES:
        return f"[flag: {item} set by your choice] ({source})"
    prompt = flag.get("promptText") or f"Did you get {item}?"
    return f"[? {prompt}] ({source})"


def _heading(node: Mapping[str, Any], kind: str, ansi: bool) -> Optional[str]:
    if kind == "battle":
        hp = node.get("hp")
        suffix = f" (HP {hp:,})" if is_number(hp) else ""
        return _style(f"BATTLE: {node.get('enemyName', '')}{suffix}", ANSI_BOLD, ansi)
    if kind == "shop":
        return _style(f"SHOP ({node.get('gilInfo', '')})", ANSI_BOLD, ansi)
    if kind == "sphereGrid":
        info = node.get("contextInfo")
        return _style("SPHERE GRID" + (f": {info}" if info else ""), ANSI_BOLD, ansi)
    if kind == "sphereGridCharacterActions":
        slvl = node.get("slvlInfo")
        return _character(str(node.get("character", "")), ansi, True) + (f" ({slvl})" if slvl else "")
    if kind == "encounters":
        return _style("ENCOUNTERS", ANSI_BOLD, ansi)
    if kind == "trial":
        return _style("TRIAL", ANSI_BOLD, ansi)
    if kind == "blitzballGame":
        return _style("BLITZBALL", ANSI_BOLD, ansi)
    if kind == "equip":
        return _style("EQUIP", ANSI_BOLD, ansi)
    if kind == "image":
        return f"[image: {node.get('path', '')}]"
    if kind == "textParagraph":
        return render_inline_sequence(node.get("content") or [], ansi=ansi)
    if kind == "conditional":
        note = node.get("additionalNote")
        return f"Note: {note}" if isinstance(note, str) and note else None
    return None


class LineRenderer:
    """Turns traversal entries into wrapped, indented lines.

    Inline nodes are rendered by the line that owns them (a paragraph, a
    list item, a link). Inline nodes in any other container, such as battle
    notes or a branch holding bare text, are joined into a line of their own.
    """

    def __init__(self, settings: Optional[GuideSettings] = None, *, ansi: bool = False) -> None:
        self.settings = settings or GuideSettings()
        self.ansi = ansi
        self.lines: List[str] = []
        self.list_counters: Dict[Path, int] = {}
        self.last_ordered_count = 0
        self.shops: Dict[Path, Mapping[str, Any]] = {}
        self.owned: Set[Path] = set()
        self.inline_run: Optional[Tuple[Path, int, List[str]]] = None

    def emit(self, text: str, depth: int, bullet: str = "") -> None:
        indent = INDENT * depth
        width = max(self.settings.line_width, len(indent) + len(bullet) + 10)
        wrapped = textwrap.wrap(
            text,
            width=width,
            initial_indent=indent + bullet,
            subsequent_indent=indent + " " * len(bullet),
        )
        self.lines.extend(wrapped or [indent + bullet.rstrip()])

    def flush(self) -> None:
        if self.inline_run is None:
            return
        container, depth, parts = self.inline_run
        self.inline_run = None
        last = container[-1] if container else None
        prefix = INLINE_RUN_PREFIXES.get(last.name, "") if isinstance(last, FieldStep) else ""
        self.emit(prefix + "".join(parts), depth)

    def _own(self, entry: TraversalEntry, *fields: str) -> None:
        for field_name in fields:
            self.owned.add(entry.path + (FieldStep(field_name),))

    def _bullet(self, entry: TraversalEntry) -> str:
        list_path = entry.path[:-1]
        owner = self.list_counters.get(list_path)
        if owner is None:
            return "- "
        count = owner + 1
        self.list_counters[list_path] = count
        self.last_ordered_count = count
        return f"{count}. "

    def _section_title(self, entry: TraversalEntry) -> None:
        # First item of a shop section: <shop>.sections[i].items[0]
        path = entry.path
        if len(path) < 4 or path[-1] != IndexStep(0) or path[-2] != FieldStep("items"):
            return
        if not isinstance(path[-3], IndexStep) or path[-4] != FieldStep("sections"):
            return
        shop = self.shops.get(path[:-4])
        if shop is None:
            return
        section = shop["sections"][path[-3].index]
        title = section.get("title") if isinstance(section, Mapping) else None
        if title:
            self.emit(_style(str(title), ANSI_ITALIC, self.ansi), max(entry.depth - 1, 0))

    def add(self, entry: TraversalEntry) -> None:
        if entry.role == NODE and entry.kind in INLINE_KINDS:
            self._inline(entry)
            return
        self.flush()
        if entry.role == NODE:
            self._node(entry)
        elif entry.role == BRANCH:
            self.emit(f"{entry.label}:", entry.depth)
        elif entry.role == RESOURCE:
            self.emit(format_resource_update(entry.node), entry.depth)
        elif entry.role == FLAG:
            self.emit(format_flag_prompt(entry.node), entry.depth)
        elif entry.role == PENDING_NOTE:
            self.emit(f"({entry.label})", entry.depth)
        elif entry.role == PLACEHOLDER:
            self.emit(f"[{entry.label}]", entry.depth)

    def _inline(self, entry: TraversalEntry) -> None:
        container = entry.path[:-1]
        self._own(entry, *(c.name for c in NODE_SPECS[entry.kind].containers))
        if container in self.owned:
            return
        text = render_inline(entry.node, ansi=self.ansi)
        if self.inline_run is not None and self.inline_run[0] == container:
            self.inline_run[2].append(text)
            return
        self.flush()
        self.inline_run = (container, entry.depth, [text])

    def _node(self, entry: TraversalEntry) -> None:
        node = entry.node
        kind = entry.kind or ""
        if kind == "instructionList":
            start = self.last_ordered_count if node.get("resume") else 0
            if node.get("ordered"):
                self.list_counters[entry.path + (FieldStep("items"),)] = start
            return
        if kind == "shop":
            self.shops[entry.path] = node
        if kind == LIST_ITEM:
            self._own(entry, "content")
            self._section_title(entry)
            text = render_inline_sequence(node.get("content") or [], ansi=self.ansi)
            self.emit(text, entry.depth, self._bullet(entry))
            return
        if kind == "textParagraph":
            self._own(entry, "content")
        heading = _heading(node, kind, self.ansi)
        if heading is not None:
            self.emit(heading, entry.depth)

    def finish(self) -> List[str]:
        self.flush()
        return self.lines


def render_lines(
    entries: Iterable[TraversalEntry], settings: Optional[GuideSettings] = None, *, ansi: bool = False
) -> List[str]:
    renderer = LineRenderer(settings, ansi=ansi)
    for entry in entries:
        renderer.add(entry)
    return renderer.finish()


def settle_auto_updates(
    content: Sequence[Any],
    tracker: GuideTracker,
    flag_map: FlagTable = None,
    *,
    settings: Optional[GuideSettings] = None,
    base_path: Sequence[Any] = (),
    scope: str = "root",
) -> Traversal:
    """Traverse ``content`` and apply its automatic resource updates.

    Applying an update can change which branches are visible, so the section
    is traversed again until no new update applies. Each update id applies
    once, which bounds the loop. Conditional errors are logged from the final
    traversal only.
    """
    while True:
        traversal = traverse(
            content, tracker, flag_map, settings=settings, base_path=base_path, scope=scope, log_errors=False
        )
        applied = [tracker.apply_auto_update(entry.node) for entry in traversal.by_role(RESOURCE)]
        if not any(applied):
            break
    for message in traversal.config_errors:
        print(f"[Guide] {message}", file=sys.stderr)
    return traversal


def render_guide(
    guide: Mapping[str, Any],
    tracker: GuideTracker,
    flag_map: FlagTable = None,
    settings: Optional[GuideSettings] = None,
    *,
    ansi: bool = False,
) -> Tuple[List[str], List[str]]:
    """Render every section of ``guide`` in reading order.

    Returns ``(lines, diagnostics)``.
    """
    settings = settings or GuideSettings()
    lines: List[str] = [_style(str(guide.get("title", "")), ANSI_BOLD, ansi)]
    diagnostics: List[str] = []
    for section in guide_sections(guide):
        traversal = settle_auto_updates(
            section.content,
            tracker,
            flag_map,
            settings=settings,
            base_path=section.base_path,
            scope=section.scope,
        )
        lines.append("")
        lines.append(_style(section.title.upper(), ANSI_BOLD, ansi))
        lines.extend(render_lines(traversal, settings, ansi=ansi))
        diagnostics.extend(traversal.diagnostics)
    return lines, diagnostics
