"""Depth-first traversal of guide content.

``walk`` visits nodes in array order and descends container fields in the
fixed order declared by ``NODE_SPECS``. Conditionals are resolved against the
tracker before descending, so only the branches that apply are visited.
Without a tracker the walk runs in introspection mode and exposes every branch
a conditional declares; the editor uses this to reach hidden content.
"""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

from guide.flag_map import FlagMap
from guide.guide_schema import (
    CONDITIONAL,
    CSR_BEHAVIORS,
    CSR_ONLY,
    CSR_STANDARD_ONLY,
    EXPOSE_ALL_MODE,
    LIST_ITEM,
    NODE_SPECS,
    TRACKABLE_FIELDS,
    ContainerField,
    UnknownNodeKind,
    flag_record_errors,
    node_kind,
    node_spec,
    resource_update_errors,
)
from guide.mutator import FieldStep, IndexStep, Path, format_path, parse_path
from guide.resolver import (
    ConditionalConfigError,
    FlagTable,
    Resolution,
    declared_branches,
    resolve_conditional,
)
from guide.settings import GuideSettings
from guide.tracker import GuideTracker

NODE = "node"
PLACEHOLDER = "placeholder"
BRANCH = "branch"
RESOURCE = "resource"
FLAG = "flag"
PENDING_NOTE = "pending_note"

TRACKABLE_ROLES: Dict[str, Tuple[str, Callable[[Any], List[str]]]] = {
    "trackedResourceUpdates": (RESOURCE, resource_update_errors),
    "itemAcquisitionFlags": (FLAG, flag_record_errors),
}

PENDING_NOTE_TEXT = "Blitzball result not set yet; showing the default branch."


@dataclass(frozen=True)
class TraversalEntry:
    role: str
    node: Any
    path: Path
    scope_key: str
    depth: int
    label: Optional[str] = None

    @property
    def kind(self) -> Optional[str]:
        return node_kind(self.node)


@dataclass
class Traversal:
    entries: List[TraversalEntry] = field(default_factory=list)
    diagnostics: List[str] = field(default_factory=list)
    config_errors: List[str] = field(default_factory=list)

    def __iter__(self) -> Iterator[TraversalEntry]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def by_role(self, role: str) -> List[TraversalEntry]:
        return [entry for entry in self.entries if entry.role == role]


def is_csr_hidden(node: Mapping[str, Any], csr_mode_active: bool) -> bool:
    behavior = node.get("csrBehavior")
    if behavior == CSR_ONLY:
        return not csr_mode_active
    if behavior == CSR_STANDARD_ONLY:
        return csr_mode_active
    return False


class Walker:
    """Stateful visitor behind ``walk``; holds the per-run options."""

    def __init__(
        self,
        tracker: Optional[GuideTracker] = None,
        flag_map: FlagTable = None,
        settings: Optional[GuideSettings] = None,
        diagnostics: Optional[List[str]] = None,
        config_errors: Optional[List[str]] = None,
        log_errors: bool = True,
    ) -> None:
        self.tracker = tracker
        self.flag_map = flag_map if flag_map is not None else FlagMap()
        self.settings = settings or GuideSettings()
        self.diagnostics: List[str] = diagnostics if diagnostics is not None else []
        self.config_errors: List[str] = config_errors if config_errors is not None else []
        self.log_errors = log_errors
        self.handlers: Dict[str, Callable[..., Iterator[TraversalEntry]]] = {
            "textParagraph": self._containers,
            "instructionList": self._containers,
            "battle": self._containers,
            "shop": self._containers,
            "sphereGrid": self._containers,
            "sphereGridCharacterActions": self._containers,
            "encounters": self._containers,
            "trial": self._containers,
            "blitzballGame": self._containers,
            "equip": self._containers,
            "image": self._leaf,
            CONDITIONAL: self._conditional,
            LIST_ITEM: self._list_item,
            "plainText": self._leaf,
            "formattedText": self._leaf,
            "characterReference": self._leaf,
            "characterCommand": self._containers,
            "gameMacro": self._leaf,
            "formation": self._containers,
            "link": self._containers,
            "nth": self._leaf,
            "num": self._leaf,
            "mathSymbol": self._leaf,
        }

    @property
    def presenting(self) -> bool:
        return self.tracker is not None

    def _report(self, path: Path, message: str) -> str:
        text = f"{format_path(path) or '<root>'}: {message}"
        self.diagnostics.append(text)
        return text

    # ---------- Sequences ----------
    def sequence(self, content: Any, path: Path, scope: str, depth: int) -> Iterator[TraversalEntry]:
        if content is None:
            return
        if not isinstance(content, list):
            self._report(path, "expected a list of nodes.")
            return
        for idx, node in enumerate(content):
            yield from self.node(node, path + (IndexStep(idx),), f"{scope}-{idx}", depth)

    def node(self, node: Any, path: Path, scope: str, depth: int) -> Iterator[TraversalEntry]:
        kind = node_kind(node)
        handler = self.handlers.get(kind) if kind is not None else None
        if handler is None:
            error = UnknownNodeKind(kind if kind is not None else "<untyped>")
            message = self._report(path, str(error))
            yield TraversalEntry(PLACEHOLDER, node, path, scope, depth, label=message)
            return
        yield from handler(node, path, scope, depth)

    # ---------- Kind handlers ----------
    def _leaf(self, node: Mapping[str, Any], path: Path, scope: str, depth: int) -> Iterator[TraversalEntry]:
        yield TraversalEntry(NODE, node, path, scope, depth)
        yield from self._trackables(node, path, scope, depth)

    def _containers(
        self, node: Mapping[str, Any], path: Path, scope: str, depth: int
    ) -> Iterator[TraversalEntry]:
        yield TraversalEntry(NODE, node, path, scope, depth)
        yield from self._children(node, node_spec(node).containers, path, scope, depth)
        yield from self._trackables(node, path, scope, depth)

    def _list_item(self, node: Mapping[str, Any], path: Path, scope: str, depth: int) -> Iterator[TraversalEntry]:
        behavior = node.get("csrBehavior")
        if behavior is not None and behavior not in CSR_BEHAVIORS:
            self._report(path, f"unknown csrBehavior '{behavior}'; shown in both modes.")
        if self.presenting and is_csr_hidden(node, self.settings.csr_mode_active):
            return
        yield from self._containers(node, path, scope, depth)

    def _conditional(
        self, node: Mapping[str, Any], path: Path, scope: str, depth: int
    ) -> Iterator[TraversalEntry]:
        try:
            if self.presenting:
                resolution = resolve_conditional(node, self.tracker, self.flag_map)
            else:
                resolution = declared_branches(node, self.flag_map)
        except UnknownNodeKind as exc:
            message = self._report(path, str(exc))
            yield TraversalEntry(PLACEHOLDER, node, path, scope, depth, label=message)
            return
        except ConditionalConfigError as exc:
            message = self._report(path, str(exc))
            self.config_errors.append(message)
            if self.log_errors:
                print(f"[Guide] {message}", file=sys.stderr)
            return

        show_pending = resolution.pending and self.settings.show_conditional_borders
        if self.presenting and not resolution.branches and not show_pending:
            return

        yield TraversalEntry(NODE, node, path, scope, depth)
        yield from self._branches(resolution, path, scope, depth)
        if show_pending:
            yield TraversalEntry(
                PENDING_NOTE, node, path, f"{scope}.pending", depth + 1, label=PENDING_NOTE_TEXT
            )
        yield from self._children(node, NODE_SPECS[CONDITIONAL].containers, path, scope, depth)
        yield from self._trackables(node, path, scope, depth)

    # ---------- Helpers ----------
    def _branches(self, resolution: Resolution, path: Path, scope: str, depth: int) -> Iterator[TraversalEntry]:
        labelled = resolution.mode == EXPOSE_ALL_MODE
        for branch in resolution.branches:
            branch_path = path + parse_path(branch.steps)
            branch_scope = f"{scope}.{branch.scope_suffix}"
            child_depth = depth + 1
            if labelled:
                yield TraversalEntry(
                    BRANCH, branch.content, branch_path, branch_scope, depth + 1, label=branch.label or branch.field
                )
                child_depth += 1
            yield from self.sequence(branch.content, branch_path, branch_scope, child_depth)

    def _children(
        self,
        node: Mapping[str, Any],
        containers: Sequence[ContainerField],
        path: Path,
        scope: str,
        depth: int,
    ) -> Iterator[TraversalEntry]:
        for container in containers:
            value = node.get(container.name)
            field_path = path + (FieldStep(container.name),)
            field_scope = f"{scope}.{container.name}"
            if not container.nested:
                yield from self.sequence(value, field_path, field_scope, depth + 1)
                continue
            if value is None:
                continue
            if not isinstance(value, list):
                self._report(field_path, "expected a list of records.")
                continue
            for idx, record in enumerate(value):
                if not isinstance(record, Mapping):
                    self._report(field_path + (IndexStep(idx),), "expected an object.")
                    continue
                for nested in container.nested:
                    yield from self.sequence(
                        record.get(nested),
                        field_path + (IndexStep(idx), FieldStep(nested)),
                        f"{field_scope}{idx}.{nested}",
                        depth + 1,
                    )

    def _trackables(self, node: Mapping[str, Any], path: Path, scope: str, depth: int) -> Iterator[TraversalEntry]:
        for field_name in TRACKABLE_FIELDS:
            records = node.get(field_name)
            if not isinstance(records, list):
                continue
            role, record_errors = TRACKABLE_ROLES[field_name]
            for idx, record in enumerate(records):
                record_path = path + (FieldStep(field_name), IndexStep(idx))
                errors = record_errors(record)
                if errors:
                    self._report(record_path, " ".join(errors))
                    continue
                yield TraversalEntry(
                    role,
                    record,
                    record_path,
                    f"{scope}.{field_name}-{idx}",
                    depth + 1,
                )


def walk(
    content: Any,
    tracker: Optional[GuideTracker] = None,
    flag_map: FlagTable = None,
    *,
    settings: Optional[GuideSettings] = None,
    base_path: Sequence[Any] = (),
    scope: str = "root",
    diagnostics: Optional[List[str]] = None,
    config_errors: Optional[List[str]] = None,
    log_errors: bool = True,
) -> Iterator[TraversalEntry]:
    """Yield traversal entries for a sequence of nodes.

    ``base_path`` locates ``content`` inside a larger document so every entry
    path can be handed straight to the mutator.
    """
    walker = Walker(tracker, flag_map, settings, diagnostics, config_errors, log_errors)
    yield from walker.sequence(content, parse_path(base_path), scope, 0)


def traverse(
    content: Any,
    tracker: Optional[GuideTracker] = None,
    flag_map: FlagTable = None,
    *,
    settings: Optional[GuideSettings] = None,
    base_path: Sequence[Any] = (),
    scope: str = "root",
    log_errors: bool = True,
) -> Traversal:
    result = Traversal()
    result.entries = list(
        walk(
            content,
            tracker,
            flag_map,
            settings=settings,
            base_path=base_path,
            scope=scope,
            diagnostics=result.diagnostics,
            config_errors=result.config_errors,
            log_errors=log_errors,
        )
    )
    return result
