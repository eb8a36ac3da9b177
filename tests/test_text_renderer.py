from pathlib import Path

import pytest

from guide.dispatcher import traverse
from guide.flag_map import load_flag_map
from guide.guide_schema import BLITZ_RESULT_FLAG, INLINE_KINDS
from guide.loader import load_guide
from guide.settings import GuideSettings
from guide.text_renderer import (
    ANSI_RESET,
    INLINE_RENDERERS,
    format_flag_prompt,
    render_guide,
    render_inline,
    render_lines,
    render_math_symbol,
    settle_auto_updates,
)
from guide.tracker import GuideTracker

REPO_ROOT = Path(__file__).resolve().parents[1]


def test_inline_renderers_cover_every_inline_kind() -> None:
    assert set(INLINE_RENDERERS) == set(INLINE_KINDS)


@pytest.mark.parametrize(
    ("node", "expected"),
    [
        ({"type": "gameMacro", "macroName": "sd"}, "SD"),
        ({"type": "gameMacro", "macroName": "skippableFmv", "value": "Sin"}, "SKIPPABLEFMV (Sin)"),
        (
            {
                "type": "formation",
                "characters": [
                    {"type": "characterReference", "characterName": "Tidus"},
                    {"type": "characterReference", "characterName": "Auron"},
                ],
            },
            "(Formation: Tidus, Auron)",
        ),
        ({"type": "characterCommand", "characterName": "Yuna", "actionText": "Summon"}, "Yuna: Summon"),
        ({"type": "num", "value": 12000}, "12,000"),
        ({"type": "nth", "value": "3rd"}, "3rd"),
        (
            {"type": "link", "url": "https://x.test", "text": [{"type": "formattedText", "text": "docs"}]},
            "docs <https://x.test>",
        ),
        ({"type": "mathSymbol", "symbol": "\\uparrow\\nearrow x"}, "↑↗ x"),
        ({"type": "sparkle"}, "[unsupported inline: sparkle]"),
    ],
)
def test_render_inline(node: dict, expected: str) -> None:
    assert render_inline(node) == expected


def test_math_symbol_keeps_unknown_text() -> None:
    assert render_math_symbol("\\leftarrow\\foo") == "←\\foo"


def test_ansi_styling_is_opt_in() -> None:
    node = {"type": "formattedText", "text": "bold", "isBold": True}
    assert render_inline(node) == "bold"
    assert render_inline(node, ansi=True).endswith(ANSI_RESET)


def test_render_lines_numbers_ordered_lists_and_indents() -> None:
    content = [
        {
            "type": "instructionList",
            "ordered": True,
            "items": [
                {"type": "listItem", "content": [{"type": "plainText", "text": "first"}]},
                {"type": "listItem", "content": [{"type": "plainText", "text": "second"}]},
            ],
        },
        {
            "type": "instructionList",
            "ordered": True,
            "resume": True,
            "items": [{"type": "listItem", "content": [{"type": "plainText", "text": "third"}]}],
        },
        {
            "type": "battle",
            "enemyName": "Kimahri",
            "hp": 750,
            "strategy": [{"type": "listItem", "content": [{"type": "plainText", "text": "attack"}]}],
            "notes": [
                {"type": "plainText", "text": "Steal "},
                {"type": "formattedText", "text": "first"},
            ],
        },
    ]
    lines = render_lines(traverse(content, GuideTracker()))
    assert lines == [
        "  1. first",
        "  2. second",
        "  3. third",
        "BATTLE: Kimahri (HP 750)",
        "  - attack",
        "  Note: Steal first",
    ]


def test_render_lines_shows_branch_labels_and_trackables() -> None:
    content = [
        {
            "type": "conditional",
            "conditionSource": "textual_direct_choice",
            "options": [{"conditionText": "If fast", "content": [{"type": "plainText", "text": "go"}]}],
        },
        {
            "type": "listItem",
            "content": [{"type": "plainText", "text": "buy"}],
            "trackedResourceUpdates": [
                {"id": "g", "name": "Grenade", "quantity": 2, "updateType": "user_confirm_rng_gain"}
            ],
        },
    ]
    lines = render_lines(traverse(content, GuideTracker()))
    assert lines == [
        "  If fast:",
        "    go",
        "- buy",
        "  [? Grenade: confirm amount gained, up to 2]",
    ]


def test_settle_applies_updates_until_stable() -> None:
    update = {"id": "g1", "name": "Grenade", "quantity": 2, "updateType": "auto_guaranteed"}
    gated = {"id": "g2", "name": "Grenade", "quantity": 1, "updateType": "consumption_explicit_fixed"}
    content = [
        {"type": "listItem", "content": [], "trackedResourceUpdates": [update]},
        {
            "type": "conditional",
            "conditionSource": "tracked_resource_check",
            "resourceName": "Grenade",
            "comparison": "greater_than_or_equal_to",
            "value": 2,
            "contentToShowIfTrue": [{"type": "listItem", "content": [], "trackedResourceUpdates": [gated]}],
        },
    ]
    tracker = GuideTracker()
    settle_auto_updates(content, tracker)
    assert tracker.get_resource("Grenade") == 1
    settle_auto_updates(content, tracker)
    assert tracker.get_resource("Grenade") == 1


def test_render_bundled_guide() -> None:
    guide = load_guide(REPO_ROOT / "data" / "guide_main.json")
    flag_map = load_flag_map(REPO_ROOT / "data" / "flag_map.json")
    tracker = GuideTracker()
    lines, diagnostics = render_guide(guide, tracker, flag_map, GuideSettings(show_conditional_borders=True))
    text = "\n".join(lines)

    assert diagnostics == []
    assert "Won: collect the Attack Reels." in text
    assert "Buy a Lucid Stone instead." in text
    assert "Crane appears" not in text
    assert "SKIPPABLEFMV (Sin attack)" in text
    # Ammes drops 2 grenades, Oblitzerator uses 1.
    assert tracker.get_resource("Grenade") == 1

    tracker = GuideTracker(flags={BLITZ_RESULT_FLAG: False, "AttackReels": True})
    lines, _ = render_guide(guide, tracker, flag_map, GuideSettings(csr_mode_active=True))
    text = "\n".join(lines)
    assert "Lost: skip the prize menu." in text
    assert "Equip the Attack Reels on Wakka." in text
    assert "Crane appears" in text
    assert "SKIPPABLEFMV" not in text


def test_format_flag_prompt_by_set_type() -> None:
    flag = {"id": "f", "itemName": "Potion", "setType": "user_prompt_after_event", "sourceDescription": "chest"}
    assert format_flag_prompt(flag) == "[? Did you get Potion?] (chest)"
    assert format_flag_prompt({**flag, "promptText": "Stole it?"}) == "[? Stole it?] (chest)"
    derived = {**flag, "setType": "derived_from_user_choice"}
    assert format_flag_prompt(derived) == "[flag: Potion set by your choice] (chest)"


def test_render_guide_ends_with_acknowledgements() -> None:
    guide = {
        "title": "G",
        "chapters": [{"id": "a", "title": "A", "content": []}],
        "acknowledgements": [
            {"type": "formattedText", "text": "Thanks to the runners."},
            {"type": "formattedText", "text": "And the testers."},
        ],
    }
    lines, diagnostics = render_guide(guide, GuideTracker())
    assert lines[-3:] == ["ACKNOWLEDGEMENTS", "Thanks to the runners.", "And the testers."]
    assert diagnostics == []


def test_chapter_named_introduction_keeps_its_title_and_paths() -> None:
    guide = {
        "title": "G",
        "introduction": [{"type": "textParagraph", "content": [{"type": "plainText", "text": "intro"}]}],
        "chapters": [
            {"id": "introduction", "title": "Real Chapter", "content": []},
            {
                "id": "b",
                "title": "B",
                "content": [
                    {
                        "type": "conditional",
                        "conditionSource": "acquired_item_flag_check",
                        "contentToShowIfTrue": [],
                    }
                ],
            },
        ],
    }
    lines, diagnostics = render_guide(guide, GuideTracker())
    assert lines == ["G", "", "INTRODUCTION", "intro", "", "REAL CHAPTER", "", "B"]
    assert diagnostics[0].startswith("chapters[1].content[0]: ")


def test_config_error_is_logged_once_per_settled_section(capsys) -> None:
    update = {"id": "g1", "name": "Grenade", "quantity": 1, "updateType": "auto_guaranteed"}
    content = [
        {"type": "conditional", "conditionSource": "acquired_item_flag_check", "contentToShowIfTrue": []},
        {"type": "listItem", "content": [], "trackedResourceUpdates": [update]},
    ]
    tracker = GuideTracker()
    traversal = settle_auto_updates(content, tracker)
    assert tracker.get_resource("Grenade") == 1
    assert len(traversal.config_errors) == 1
    err = capsys.readouterr().err
    assert err.count("requires a non-empty 'flagName'") == 1
    assert err.startswith("[Guide] [0]: conditional 'acquired_item_flag_check'")
