"""Path-addressed replacement inside a guide document tree.

Every operation returns a new root. Containers on the path are shallow-copied
and every sibling off the path is shared with the old root, so callers can
compare old and new trees by identity to see what changed.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, Tuple, Union

from guide.guide_schema import path as format_path_parts


@dataclass(frozen=True)
class FieldStep:
    name: str


@dataclass(frozen=True)
class IndexStep:
    index: int


Step = Union[FieldStep, IndexStep]
Path = Tuple[Step, ...]


class InvalidPathError(ValueError):
    def __init__(self, path: Path, depth: int, message: str) -> None:
        self.path = path
        self.depth = depth
        location = format_path(path[: depth + 1]) or "<root>"
        super().__init__(f"{location}: {message}")


def parse_path(raw: Iterable[Any]) -> Path:
    """Convert an editor path of field names and indexes into tagged steps."""
    steps: List[Step] = []
    for part in raw:
        if isinstance(part, (FieldStep, IndexStep)):
            steps.append(part)
        elif isinstance(part, str):
            steps.append(FieldStep(part))
        elif isinstance(part, int) and not isinstance(part, bool):
            steps.append(IndexStep(part))
        else:
            raise InvalidPathError(tuple(steps), len(steps), f"unsupported path step {part!r}.")
    return tuple(steps)


def format_path(path: Path) -> str:
    return format_path_parts(*(step.name if isinstance(step, FieldStep) else step.index for step in path))


def _step_into(container: Any, step: Step, path: Path, depth: int) -> Any:
    if isinstance(step, FieldStep):
        if not isinstance(container, Mapping):
            raise InvalidPathError(path, depth, f"field '{step.name}' requires an object.")
        if step.name not in container:
            raise InvalidPathError(path, depth, f"missing field '{step.name}'.")
        return container[step.name]
    if not isinstance(container, list):
        raise InvalidPathError(path, depth, f"index {step.index} requires a list.")
    if not 0 <= step.index < len(container):
        raise InvalidPathError(
            path, depth, f"index {step.index} out of range for list of length {len(container)}."
        )
    return container[step.index]


def get_at(root: Any, path: Path) -> Any:
    current = root
    for depth, step in enumerate(path):
        current = _step_into(current, step, path, depth)
    return current


def _replace(container: Any, path: Path, depth: int, new_node: Any) -> Any:
    if depth == len(path):
        return new_node
    step = path[depth]
    child = _step_into(container, step, path, depth)
    replaced = _replace(child, path, depth + 1, new_node)
    if isinstance(step, FieldStep):
        copy = dict(container)
        copy[step.name] = replaced
        return copy
    copy_list = list(container)
    copy_list[step.index] = replaced
    return copy_list


def apply(root: Any, path: Path, new_node: Any) -> Any:
    """Return a new root with the node at ``path`` replaced by ``new_node``.

    An empty path replaces the whole root. ``root`` itself is never modified.
    """
    return _replace(root, tuple(path), 0, new_node)


def _list_at(root: Any, path: Path) -> List[Any]:
    target = get_at(root, path)
    if not isinstance(target, list):
        raise InvalidPathError(path, max(len(path) - 1, 0), "target is not a list.")
    return target


def _split_index(path: Path) -> Tuple[Path, int]:
    if not path or not isinstance(path[-1], IndexStep):
        raise InvalidPathError(path, max(len(path) - 1, 0), "path must end with a list index.")
    return path[:-1], path[-1].index


def insert_at(root: Any, list_path: Path, index: int, node: Any) -> Any:
    list_path = tuple(list_path)
    target = _list_at(root, list_path)
    if not 0 <= index <= len(target):
        raise InvalidPathError(
            list_path + (IndexStep(index),),
            len(list_path),
            f"insert index {index} out of range for list of length {len(target)}.",
        )
    updated = list(target)
    updated.insert(index, node)
    return apply(root, list_path, updated)


def remove_at(root: Any, path: Path) -> Any:
    path = tuple(path)
    get_at(root, path)
    list_path, index = _split_index(path)
    updated = list(get_at(root, list_path))
    del updated[index]
    return apply(root, list_path, updated)


def move_within(root: Any, path: Path, offset: int) -> Any:
    """Move the list entry at ``path`` by ``offset`` positions within its list."""
    path = tuple(path)
    get_at(root, path)
    list_path, index = _split_index(path)
    target = get_at(root, list_path)
    new_index = index + offset
    if not 0 <= new_index < len(target):
        raise InvalidPathError(path, len(path) - 1, f"cannot move entry {index} to {new_index}.")
    updated = list(target)
    updated.insert(new_index, updated.pop(index))
    return apply(root, list_path, updated)
