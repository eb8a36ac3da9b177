"""Conditional resolution: pick the branch(es) of a conditional node to show."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from guide.flag_map import FlagMap, resolve_flag_key
from guide.guide_schema import (
    BLITZ_PENDING_PRIORITY,
    BLITZ_RESULT_FLAG,
    COMPARISONS,
    EXPOSE_ALL_MODE,
    STATE_MODE,
    UnknownNodeKind,
    condition_source_spec,
    is_non_empty_str,
    is_number,
)
from guide.tracker import GuideTracker

FlagTable = Union[FlagMap, Mapping[str, str], None]

BLITZ_SUFFIXES: Dict[str, str] = {
    "winContent": "blitz_win",
    "lossContent": "blitz_loss",
    "bothContent": "blitz_both",
}
BLITZ_PENDING_SUFFIX = "blitz_pending_default"


class ConditionalConfigError(ValueError):
    """A conditional is missing or has malformed parameters for its source."""

    def __init__(self, source: str, message: str) -> None:
        self.source = source
        super().__init__(f"conditional '{source}': {message}")


class UnknownConditionSource(UnknownNodeKind):
    def __init__(self, source: object) -> None:
        super().__init__(source, context="conditionSource")


@dataclass(frozen=True)
class Branch:
    """One branch selected (or exposed) by a conditional.

    ``steps`` locates ``content`` relative to the conditional node, e.g.
    ``("contentToShowIfTrue",)`` or ``("options", 2, "content")``.
    """

    field: str
    scope_suffix: str
    content: Sequence[Any]
    steps: Tuple[Union[str, int], ...]
    label: Optional[str] = None


@dataclass(frozen=True)
class Resolution:
    source: str
    mode: str
    branches: Tuple[Branch, ...] = ()
    pending: bool = False


def inline_text(nodes: Any) -> str:
    """Flatten a short run of inline nodes into plain text for labels."""
    if isinstance(nodes, str):
        return nodes
    if not isinstance(nodes, list):
        return ""
    parts: List[str] = []
    for node in nodes:
        if not isinstance(node, Mapping):
            continue
        for field_name in ("text", "characterName", "value"):
            value = node.get(field_name)
            if isinstance(value, str):
                parts.append(value)
                break
            if is_number(value):
                parts.append(f"{value:g}")
                break
    return "".join(parts).strip()


def _content(node: Mapping[str, Any], field_name: str, source: str) -> Optional[List[Any]]:
    value = node.get(field_name)
    if value is None:
        return None
    if not isinstance(value, list):
        raise ConditionalConfigError(source, f"'{field_name}' must be a list of nodes.")
    return value


def _branch(
    node: Mapping[str, Any], field_name: str, suffix: str, source: str, label: Optional[str] = None
) -> Optional[Branch]:
    content = _content(node, field_name, source)
    if content is None:
        return None
    return Branch(field_name, suffix, content, (field_name,), label)


def _flag_key(flag_id: str, flag_map: FlagTable) -> str:
    if flag_map is None:
        return flag_id
    if isinstance(flag_map, FlagMap):
        return flag_map.resolve(flag_id)
    return resolve_flag_key(flag_id, flag_map)


def _truth_branches(
    node: Mapping[str, Any], outcome: bool, prefix: str, source: str
) -> Tuple[Branch, ...]:
    field_name = "contentToShowIfTrue" if outcome else "contentToShowIfFalse"
    suffix = f"{prefix}_{'true' if outcome else 'false'}"
    branch = _branch(node, field_name, suffix, source)
    return (branch,) if branch else ()


def _resolve_flag_check(node: Mapping[str, Any], tracker: GuideTracker, flag_map: FlagTable) -> Resolution:
    source = node["conditionSource"]
    flag_id = node.get("flagName")
    if not is_non_empty_str(flag_id):
        raise ConditionalConfigError(source, "requires a non-empty 'flagName'.")
    key = _flag_key(flag_id, flag_map)
    outcome = tracker.get_flag(key)
    return Resolution(source, STATE_MODE, _truth_branches(node, outcome, f"flag_{key}", source))


def resource_check_params(node: Mapping[str, Any]) -> Tuple[str, str, float]:
    source = node.get("conditionSource", "tracked_resource_check")
    name = node.get("resourceName")
    comparison = node.get("comparison")
    value = node.get("value")
    if not is_non_empty_str(name):
        raise ConditionalConfigError(source, "requires a non-empty 'resourceName'.")
    if comparison not in COMPARISONS:
        raise ConditionalConfigError(source, f"unsupported comparison '{comparison}'.")
    if not is_number(value):
        raise ConditionalConfigError(source, "requires a numeric 'value'.")
    return name, comparison, value


def _resolve_resource_check(
    node: Mapping[str, Any], tracker: GuideTracker, flag_map: FlagTable
) -> Resolution:
    source = node["conditionSource"]
    name, comparison, threshold = resource_check_params(node)
    outcome = COMPARISONS[comparison](tracker.get_resource(name), threshold)
    return Resolution(source, STATE_MODE, _truth_branches(node, outcome, f"res_{name}", source))


def _resolve_blitz(node: Mapping[str, Any], tracker: GuideTracker, flag_map: FlagTable) -> Resolution:
    source = node["conditionSource"]
    won = tracker.read_flag(BLITZ_RESULT_FLAG)
    if won is None:
        for field_name in BLITZ_PENDING_PRIORITY:
            branch = _branch(node, field_name, BLITZ_PENDING_SUFFIX, source)
            if branch:
                return Resolution(source, STATE_MODE, (branch,), pending=True)
        return Resolution(source, STATE_MODE, (), pending=True)

    preferred = "winContent" if won else "lossContent"
    for field_name in (preferred, "bothContent"):
        branch = _branch(node, field_name, BLITZ_SUFFIXES[field_name], source)
        if branch:
            return Resolution(source, STATE_MODE, (branch,))
    return Resolution(source, STATE_MODE, ())


def _option_branches(node: Mapping[str, Any], source: str) -> Tuple[Branch, ...]:
    options = node.get("options")
    if options is None:
        return ()
    if not isinstance(options, list):
        raise ConditionalConfigError(source, "'options' must be a list.")
    branches: List[Branch] = []
    for idx, option in enumerate(options):
        if not isinstance(option, Mapping):
            raise ConditionalConfigError(source, f"option {idx} must be an object.")
        content = option.get("content", [])
        if not isinstance(content, list):
            raise ConditionalConfigError(source, f"option {idx} 'content' must be a list of nodes.")
        branches.append(
            Branch(
                "options",
                f"option{idx}",
                content,
                ("options", idx, "content"),
                inline_text(option.get("conditionText")),
            )
        )
    return tuple(branches)


def _resolve_options(node: Mapping[str, Any], tracker: Optional[GuideTracker], flag_map: FlagTable) -> Resolution:
    source = node["conditionSource"]
    return Resolution(source, EXPOSE_ALL_MODE, _option_branches(node, source))


def _resolve_inline_if_then(
    node: Mapping[str, Any], tracker: Optional[GuideTracker], flag_map: FlagTable
) -> Resolution:
    source = node["conditionSource"]
    branches: List[Branch] = []
    condition = _content(node, "textCondition", source)
    if condition is not None:
        then_branch = _branch(node, "thenContent", "then", source, f"If {inline_text(condition)}")
        if then_branch:
            branches.append(then_branch)
    else_branch = _branch(node, "elseContent", "else", source, "Otherwise")
    if else_branch:
        branches.append(else_branch)
    return Resolution(source, EXPOSE_ALL_MODE, tuple(branches))


Resolver = Callable[[Mapping[str, Any], Any, FlagTable], Resolution]

RESOLVERS: Dict[str, Resolver] = {
    "blitzballdetermination": _resolve_blitz,
    "ifthenelse_blitzresult": _resolve_blitz,
    "textual_direct_choice": _resolve_options,
    "textual_block_options": _resolve_options,
    "textual_inline_if_then": _resolve_inline_if_then,
    "tracked_resource_check": _resolve_resource_check,
    "acquired_item_flag_check": _resolve_flag_check,
}


def resolve_conditional(
    node: Mapping[str, Any], tracker: GuideTracker, flag_map: FlagTable = None
) -> Resolution:
    """Select the branch(es) of ``node`` for the current tracker state.

    Pure with respect to ``tracker``: nothing is written.
    """
    source = node.get("conditionSource")
    resolver = RESOLVERS.get(source) if isinstance(source, str) else None
    if resolver is None:
        raise UnknownConditionSource(source)
    return resolver(node, tracker, flag_map)


def declared_branches(node: Mapping[str, Any], flag_map: FlagTable = None) -> Resolution:
    """Expose every branch a conditional declares, without consulting state."""
    source = node.get("conditionSource")
    try:
        spec = condition_source_spec(node)
    except UnknownNodeKind:
        raise UnknownConditionSource(source) from None

    if any(container.nested for container in spec.branches):
        return Resolution(source, EXPOSE_ALL_MODE, _option_branches(node, source))

    prefix = ""
    if source == "acquired_item_flag_check" and is_non_empty_str(node.get("flagName")):
        prefix = f"flag_{_flag_key(node['flagName'], flag_map)}"
    elif source == "tracked_resource_check" and is_non_empty_str(node.get("resourceName")):
        prefix = f"res_{node['resourceName']}"

    suffixes = {
        "contentToShowIfTrue": f"{prefix}_true" if prefix else "true",
        "contentToShowIfFalse": f"{prefix}_false" if prefix else "false",
        "textCondition": "condition",
        "thenContent": "then",
        "elseContent": "else",
        **BLITZ_SUFFIXES,
    }
    branches: List[Branch] = []
    for container in spec.branches:
        branch = _branch(node, container.name, suffixes[container.name], source)
        if branch:
            branches.append(branch)
    return Resolution(source, EXPOSE_ALL_MODE, tuple(branches))
