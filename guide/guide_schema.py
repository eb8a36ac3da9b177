"""Machine-readable schema specs for speedrun guide documents."""

from __future__ import annotations

import json
import operator
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

Comparison = Callable[[float, float], bool]


class UnknownNodeKind(ValueError):
    """Raised when a node carries a discriminant outside the closed kind set."""

    def __init__(self, kind: object, context: str = "node") -> None:
        self.kind = kind
        self.context = context
        super().__init__(f"unsupported {context} kind '{kind}'.")


def path(*parts: object) -> str:
    path_str = ""
    for part in parts:
        if isinstance(part, int):
            path_str = f"{path_str}[{part}]"
            continue
        if not isinstance(part, str):
            part = str(part)
        if part.isidentifier():
            path_str = f"{path_str}.{part}" if path_str else part
        else:
            path_str = f'{path_str}[{json.dumps(part)}]'
    return path_str


def format_validation_message(path_str: str, context: str, message: str) -> str:
    if context:
        return f"{path_str}: {context}: {message}"
    return f"{path_str}: {message}"


def is_non_empty_str(value: Any) -> bool:
    return isinstance(value, str) and value.strip() != ""


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


@dataclass(frozen=True)
class ContainerField:
    """A field holding a sequence of nodes.

    ``nested`` names the sequence fields inside each record of the array when
    the array holds plain records (shop sections, conditional options) rather
    than nodes.
    """

    name: str
    nested: Tuple[str, ...] = ()


@dataclass(frozen=True)
class NodeSpec:
    category: str
    required_fields: Tuple[str, ...]
    optional_fields: Tuple[str, ...]
    containers: Tuple[ContainerField, ...]


@dataclass(frozen=True)
class ConditionSourceSpec:
    mode: str
    required_fields: Tuple[str, ...]
    branches: Tuple[ContainerField, ...]


BLOCK = "block"
INLINE = "inline"
ITEM = "item"

LIST_ITEM = "listItem"
CONDITIONAL = "conditional"

TRACKABLE_FIELDS: Tuple[str, ...] = ("trackedResourceUpdates", "itemAcquisitionFlags")

_C = ContainerField

NODE_SPECS: Dict[str, NodeSpec] = {
    "textParagraph": NodeSpec(
        category=BLOCK,
        required_fields=("content",),
        optional_fields=("displayHint",),
        containers=(_C("content"),),
    ),
    "instructionList": NodeSpec(
        category=BLOCK,
        required_fields=("ordered", "items"),
        optional_fields=("resume",),
        containers=(_C("items"),),
    ),
    "battle": NodeSpec(
        category=BLOCK,
        required_fields=("enemyName", "strategy"),
        optional_fields=("hp", "notes", *TRACKABLE_FIELDS),
        containers=(_C("strategy"), _C("notes")),
    ),
    "shop": NodeSpec(
        category=BLOCK,
        required_fields=("gilInfo", "sections"),
        optional_fields=(),
        # sections: list of {title, items} records.
        containers=(_C("sections", nested=("items",)),),
    ),
    "sphereGrid": NodeSpec(
        category=BLOCK,
        required_fields=("content",),
        optional_fields=("contextInfo",),
        containers=(_C("content"),),
    ),
    "sphereGridCharacterActions": NodeSpec(
        category=BLOCK,
        required_fields=("character", "actions"),
        optional_fields=("slvlInfo", "inlineCondition", "associatedImages", "trackedResourceUpdates"),
        containers=(_C("inlineCondition"), _C("actions"), _C("associatedImages")),
    ),
    "encounters": NodeSpec(
        category=BLOCK,
        required_fields=("content",),
        optional_fields=("notes", *TRACKABLE_FIELDS),
        containers=(_C("content"), _C("notes")),
    ),
    "trial": NodeSpec(
        category=BLOCK,
        required_fields=("steps",),
        optional_fields=TRACKABLE_FIELDS,
        containers=(_C("steps"),),
    ),
    "blitzballGame": NodeSpec(
        category=BLOCK,
        required_fields=("strategy",),
        optional_fields=(),
        containers=(_C("strategy"),),
    ),
    "equip": NodeSpec(
        category=BLOCK,
        required_fields=("content",),
        optional_fields=(),
        containers=(_C("content"),),
    ),
    "image": NodeSpec(
        category=BLOCK,
        required_fields=("path",),
        optional_fields=("width", "multiColumnWidth", "singleColumnWidth"),
        containers=(),
    ),
    CONDITIONAL: NodeSpec(
        category=BLOCK,
        required_fields=("conditionSource",),
        optional_fields=(
            "winContent",
            "lossContent",
            "bothContent",
            "displayAsItemizedCondition",
            "options",
            "textCondition",
            "thenContent",
            "elseContent",
            "resourceName",
            "comparison",
            "value",
            "contentToShowIfTrue",
            "contentToShowIfFalse",
            "flagName",
            "additionalNote",
            "notes",
            "itemAcquisitionFlags",
        ),
        # Branch containers depend on conditionSource; see CONDITION_SOURCE_SPECS.
        containers=(_C("notes"),),
    ),
    LIST_ITEM: NodeSpec(
        category=ITEM,
        required_fields=("content",),
        optional_fields=("subContent", "csrBehavior", "csrNote", *TRACKABLE_FIELDS),
        containers=(_C("content"), _C("subContent"), _C("csrNote")),
    ),
    "plainText": NodeSpec(
        category=INLINE,
        required_fields=("text",),
        optional_fields=(),
        containers=(),
    ),
    "formattedText": NodeSpec(
        category=INLINE,
        required_fields=("text",),
        optional_fields=("isBold", "isItalic", "color", "isLarge", "displayHint", "textDecoration"),
        containers=(),
    ),
    "characterReference": NodeSpec(
        category=INLINE,
        required_fields=("characterName",),
        optional_fields=("color", "isBold"),
        containers=(),
    ),
    "characterCommand": NodeSpec(
        category=INLINE,
        required_fields=("characterName", "actionText"),
        optional_fields=("color", "isBold", "subItems", *TRACKABLE_FIELDS),
        containers=(_C("subItems"),),
    ),
    "gameMacro": NodeSpec(
        category=INLINE,
        required_fields=("macroName",),
        optional_fields=("value",),
        containers=(),
    ),
    "formation": NodeSpec(
        category=INLINE,
        required_fields=("characters",),
        optional_fields=(),
        containers=(_C("characters"),),
    ),
    "link": NodeSpec(
        category=INLINE,
        required_fields=("url", "text"),
        optional_fields=(),
        containers=(_C("text"),),
    ),
    "nth": NodeSpec(
        category=INLINE,
        required_fields=("value",),
        optional_fields=(),
        containers=(),
    ),
    "num": NodeSpec(
        category=INLINE,
        required_fields=("value",),
        optional_fields=(),
        containers=(),
    ),
    "mathSymbol": NodeSpec(
        category=INLINE,
        required_fields=("symbol",),
        optional_fields=(),
        containers=(),
    ),
}

BLOCK_KINDS: Tuple[str, ...] = tuple(k for k, s in NODE_SPECS.items() if s.category == BLOCK)
INLINE_KINDS: Tuple[str, ...] = tuple(k for k, s in NODE_SPECS.items() if s.category == INLINE)

STATE_MODE = "state"
EXPOSE_ALL_MODE = "expose_all"

CONDITION_SOURCE_SPECS: Dict[str, ConditionSourceSpec] = {
    "blitzballdetermination": ConditionSourceSpec(
        mode=STATE_MODE,
        required_fields=(),
        branches=(_C("winContent"), _C("lossContent"), _C("bothContent")),
    ),
    "ifthenelse_blitzresult": ConditionSourceSpec(
        mode=STATE_MODE,
        required_fields=(),
        branches=(_C("winContent"), _C("lossContent"), _C("bothContent")),
    ),
    "textual_direct_choice": ConditionSourceSpec(
        mode=EXPOSE_ALL_MODE,
        required_fields=(),
        branches=(_C("options", nested=("content",)),),
    ),
    "textual_block_options": ConditionSourceSpec(
        mode=EXPOSE_ALL_MODE,
        required_fields=(),
        branches=(_C("options", nested=("content",)),),
    ),
    "textual_inline_if_then": ConditionSourceSpec(
        mode=EXPOSE_ALL_MODE,
        required_fields=(),
        branches=(_C("textCondition"), _C("thenContent"), _C("elseContent")),
    ),
    "tracked_resource_check": ConditionSourceSpec(
        mode=STATE_MODE,
        required_fields=("resourceName", "comparison", "value"),
        branches=(_C("contentToShowIfTrue"), _C("contentToShowIfFalse")),
    ),
    "acquired_item_flag_check": ConditionSourceSpec(
        mode=STATE_MODE,
        required_fields=("flagName",),
        branches=(_C("contentToShowIfTrue"), _C("contentToShowIfFalse")),
    ),
}

COMPARISONS: Dict[str, Comparison] = {
    "less_than": operator.lt,
    "greater_than_or_equal_to": operator.ge,
    "equals": operator.eq,
    "not_equals": operator.ne,
}

# Resolution order for an undetermined blitzball outcome.
BLITZ_PENDING_PRIORITY: Tuple[str, ...] = ("winContent", "lossContent", "bothContent")
BLITZ_RESULT_FLAG = "BlitzballGameWon_Luca"

RESOURCE_UPDATE_TYPES: Tuple[str, ...] = (
    "auto_guaranteed",
    "user_confirm_rng_gain",
    "user_confirm_rng_consumption",
    "consumption_implicit_grid",
    "consumption_explicit_fixed",
)
AUTO_UPDATE_TYPES = frozenset(
    {"auto_guaranteed", "consumption_implicit_grid", "consumption_explicit_fixed"}
)
USER_CONFIRM_UPDATE_TYPES = frozenset({"user_confirm_rng_gain", "user_confirm_rng_consumption"})
CONSUMPTION_UPDATE_TYPES = frozenset(
    {"user_confirm_rng_consumption", "consumption_implicit_grid", "consumption_explicit_fixed"}
)

USER_PROMPT_FLAG_SET_TYPES = frozenset({"user_prompt_after_event", "user_checkbox_on_pickup_or_drop"})
FLAG_REQUIRED_FIELDS: Tuple[str, ...] = ("id", "itemName", "setType", "sourceDescription")

CSR_STANDARD_ONLY = "standard_only"
CSR_ONLY = "csr_only"
CSR_ALWAYS = "always_relevant"
CSR_BEHAVIORS: Tuple[str, ...] = (CSR_STANDARD_ONLY, CSR_ONLY, CSR_ALWAYS)


def node_kind(node: Any) -> Optional[str]:
    if not isinstance(node, Mapping):
        return None
    kind = node.get("type")
    return kind if isinstance(kind, str) else None


def node_spec(node: Any) -> NodeSpec:
    kind = node_kind(node)
    spec = NODE_SPECS.get(kind) if kind is not None else None
    if spec is None:
        raise UnknownNodeKind(kind if kind is not None else "<untyped>")
    return spec


def condition_source_spec(node: Mapping[str, Any]) -> ConditionSourceSpec:
    source = node.get("conditionSource")
    spec = CONDITION_SOURCE_SPECS.get(source) if isinstance(source, str) else None
    if spec is None:
        raise UnknownNodeKind(source, context="conditionSource")
    return spec


def flag_record_errors(record: Any) -> List[str]:
    """Return why ``record`` is not an AcquiredItemFlag (empty when it is)."""
    if not isinstance(record, Mapping):
        return ["flag must be an object."]
    errors: List[str] = []
    if "type" in record:
        errors.append("flag records must not carry a node 'type'.")
    for field_name in FLAG_REQUIRED_FIELDS:
        if not is_non_empty_str(record.get(field_name)):
            errors.append(f"flag requires a non-empty string '{field_name}'.")
    prompt = record.get("promptText")
    if prompt is not None and not isinstance(prompt, str):
        errors.append("flag optional 'promptText' must be a string.")
    return errors


def is_acquired_item_flag(record: Any) -> bool:
    return not flag_record_errors(record)


def resource_update_errors(update: Any) -> List[str]:
    if not isinstance(update, Mapping):
        return ["tracked resource must be an object."]
    errors: List[str] = []
    if not is_non_empty_str(update.get("name")):
        errors.append("tracked resource requires a non-empty string 'name'.")
    if not is_number(update.get("quantity")):
        errors.append("tracked resource requires a numeric 'quantity'.")
    if update.get("updateType") not in RESOURCE_UPDATE_TYPES:
        errors.append(f"unsupported updateType '{update.get('updateType')}'.")
    if not is_non_empty_str(update.get("id")):
        errors.append("tracked resource requires a non-empty string 'id'.")
    return errors
