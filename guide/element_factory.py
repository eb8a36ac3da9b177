"""Default templates for nodes created from the editor."""

from __future__ import annotations

import copy
from typing import Any, Dict, Optional

from guide.guide_schema import LIST_ITEM

DEFAULT_CHARACTER = "tidus"

INLINE_TEMPLATES: Dict[str, Dict[str, Any]] = {
    "plainText": {"type": "plainText", "text": "New text"},
    "formattedText": {"type": "formattedText", "text": "New formatted text"},
    "characterReference": {"type": "characterReference", "characterName": DEFAULT_CHARACTER},
    "characterCommand": {
        "type": "characterCommand",
        "characterName": DEFAULT_CHARACTER,
        "actionText": "Attack",
    },
    "gameMacro": {"type": "gameMacro", "macroName": "sd"},
    "formation": {
        "type": "formation",
        "characters": [{"type": "characterReference", "characterName": DEFAULT_CHARACTER}],
    },
    "link": {
        "type": "link",
        "url": "https://example.com",
        "text": [{"type": "formattedText", "text": "Link text"}],
    },
    "nth": {"type": "nth", "value": "1st"},
    "num": {"type": "num", "value": 0},
    "mathSymbol": {"type": "mathSymbol", "symbol": "\\rightarrow"},
}

BLOCK_TEMPLATES: Dict[str, Dict[str, Any]] = {
    "textParagraph": {"type": "textParagraph", "content": [{"type": "plainText", "text": "New paragraph"}]},
    "instructionList": {"type": "instructionList", "ordered": False, "items": []},
    "battle": {"type": "battle", "enemyName": "New Enemy", "strategy": []},
    "shop": {"type": "shop", "gilInfo": "Gil information", "sections": []},
    "sphereGrid": {"type": "sphereGrid", "content": []},
    "sphereGridCharacterActions": {
        "type": "sphereGridCharacterActions",
        "character": DEFAULT_CHARACTER,
        "actions": [],
    },
    "encounters": {"type": "encounters", "content": []},
    "trial": {"type": "trial", "steps": []},
    "blitzballGame": {"type": "blitzballGame", "strategy": []},
    "equip": {"type": "equip", "content": []},
    "image": {"type": "image", "path": ""},
    "conditional": {
        "type": "conditional",
        "conditionSource": "textual_direct_choice",
        "options": [
            {"conditionText": "Option A", "content": [{"type": "plainText", "text": "Content for option A"}]},
            {"conditionText": "Option B", "content": [{"type": "plainText", "text": "Content for option B"}]},
        ],
    },
}


def create_inline_element(kind: str, text: Optional[str] = None) -> Dict[str, Any]:
    """Return a fresh inline node; unknown kinds fall back to plain text."""
    template = INLINE_TEMPLATES.get(kind, INLINE_TEMPLATES["plainText"])
    element = copy.deepcopy(template)
    if text and "text" in element and isinstance(element["text"], str):
        element["text"] = text
    return element


def create_block_template(kind: str) -> Dict[str, Any]:
    template = BLOCK_TEMPLATES.get(kind)
    if template is None:
        return {"type": "textParagraph", "content": [create_inline_element("plainText", "New content")]}
    return copy.deepcopy(template)


def create_list_item_with_content(kind: str, text: Optional[str] = None) -> Dict[str, Any]:
    return {"type": LIST_ITEM, "content": [create_inline_element(kind, text)]}

