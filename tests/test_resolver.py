import operator
import random

import pytest

from guide.flag_map import FlagMap
from guide.guide_schema import BLITZ_RESULT_FLAG, CONDITION_SOURCE_SPECS, EXPOSE_ALL_MODE, STATE_MODE
from guide.resolver import (
    RESOLVERS,
    ConditionalConfigError,
    UnknownConditionSource,
    declared_branches,
    resolve_conditional,
)
from guide.tracker import GuideTracker

TRUE_BRANCH = [{"type": "plainText", "text": "yes"}]
FALSE_BRANCH = [{"type": "plainText", "text": "no"}]


def resource_check(comparison: str, value: float, name: str = "Grenade") -> dict:
    return {
        "type": "conditional",
        "conditionSource": "tracked_resource_check",
        "resourceName": name,
        "comparison": comparison,
        "value": value,
        "contentToShowIfTrue": TRUE_BRANCH,
        "contentToShowIfFalse": FALSE_BRANCH,
    }


def flag_check(flag_name: str) -> dict:
    return {
        "type": "conditional",
        "conditionSource": "acquired_item_flag_check",
        "flagName": flag_name,
        "contentToShowIfTrue": TRUE_BRANCH,
        "contentToShowIfFalse": FALSE_BRANCH,
    }


def blitz(source: str = "blitzballdetermination", **branches: list) -> dict:
    node = {"type": "conditional", "conditionSource": source}
    node.update(branches)
    return node


def test_resolvers_cover_every_condition_source() -> None:
    assert set(RESOLVERS) == set(CONDITION_SOURCE_SPECS)


def test_resource_threshold_selects_true_branch() -> None:
    tracker = GuideTracker(resources={"Grenade": 3})
    resolution = resolve_conditional(resource_check("greater_than_or_equal_to", 2), tracker)
    assert resolution.mode == STATE_MODE
    assert [b.field for b in resolution.branches] == ["contentToShowIfTrue"]
    assert resolution.branches[0].scope_suffix == "res_Grenade_true"
    assert resolution.branches[0].content is TRUE_BRANCH


OPERATORS = {
    "less_than": operator.lt,
    "greater_than_or_equal_to": operator.ge,
    "equals": operator.eq,
    "not_equals": operator.ne,
}


@pytest.mark.parametrize("seed", range(25))
def test_resource_check_matches_direct_comparison(seed: int) -> None:
    rng = random.Random(seed)
    for comparison, op in OPERATORS.items():
        quantity = rng.randint(-5, 10)
        threshold = rng.randint(-5, 10)
        tracker = GuideTracker()
        if rng.random() < 0.8:
            tracker.apply_resource_delta("Grenade", quantity)
        else:
            quantity = 0
        resolution = resolve_conditional(resource_check(comparison, threshold), tracker)
        expected = op(quantity, threshold)
        assert resolution.branches[0].content is (TRUE_BRANCH if expected else FALSE_BRANCH)


@pytest.mark.parametrize(
    "node",
    [
        {"type": "conditional", "conditionSource": "tracked_resource_check", "comparison": "equals", "value": 1},
        resource_check("more_than", 1),
        resource_check("equals", "one"),
        {"type": "conditional", "conditionSource": "acquired_item_flag_check"},
        {**flag_check("F1"), "contentToShowIfTrue": "not a list"},
    ],
)
def test_missing_or_malformed_parameters_raise_config_error(node: dict) -> None:
    tracker = GuideTracker(flags={"F1": True})
    with pytest.raises(ConditionalConfigError):
        resolve_conditional(node, tracker)


def test_unknown_condition_source_raises() -> None:
    with pytest.raises(UnknownConditionSource) as excinfo:
        resolve_conditional({"type": "conditional", "conditionSource": "moon_phase"}, GuideTracker())
    assert excinfo.value.kind == "moon_phase"
    assert isinstance(excinfo.value, ValueError)


def test_flag_check_resolves_through_flag_map() -> None:
    flag_map = FlagMap({"luca_blitz_prize": "AttackReels"})
    tracker = GuideTracker()
    resolution = resolve_conditional(flag_check("luca_blitz_prize"), tracker, flag_map)
    assert resolution.branches[0].scope_suffix == "flag_AttackReels_false"

    tracker.set_flag("AttackReels", True)
    resolution = resolve_conditional(flag_check("luca_blitz_prize"), tracker, flag_map)
    assert resolution.branches[0].content is TRUE_BRANCH
    assert resolution.branches[0].scope_suffix == "flag_AttackReels_true"


def test_flag_check_with_unmapped_id_reads_id_itself() -> None:
    tracker = GuideTracker(flags={"RawFlag": True})
    resolution = resolve_conditional(flag_check("RawFlag"), tracker, {"Other": "Thing"})
    assert resolution.branches[0].content is TRUE_BRANCH


@pytest.mark.parametrize("seed", range(20))
def test_flag_check_equals_reading_canonical_key(seed: int) -> None:
    rng = random.Random(seed)
    ids = [f"F{i}" for i in range(5)]
    keys = ["KeyA", "KeyB", "KeyC"]
    table = {flag_id: rng.choice(keys) for flag_id in ids if rng.random() < 0.6}
    tracker = GuideTracker()
    for key in keys + ids:
        if rng.random() < 0.5:
            tracker.set_flag(key, rng.random() < 0.5)

    for flag_id in ids:
        canonical = table.get(flag_id, flag_id)
        resolution = resolve_conditional(flag_check(flag_id), tracker, FlagMap(table))
        expected = TRUE_BRANCH if tracker.get_flag(canonical) else FALSE_BRANCH
        assert resolution.branches[0].content is expected


def test_absent_branch_selects_nothing() -> None:
    node = flag_check("F1")
    del node["contentToShowIfFalse"]
    assert resolve_conditional(node, GuideTracker()).branches == ()


WIN = [{"type": "plainText", "text": "win"}]
LOSS = [{"type": "plainText", "text": "loss"}]
BOTH = [{"type": "plainText", "text": "both"}]


@pytest.mark.parametrize("source", ["blitzballdetermination", "ifthenelse_blitzresult"])
def test_blitz_pending_until_result_is_set(source: str) -> None:
    node = blitz(source, winContent=WIN, lossContent=LOSS, bothContent=BOTH)
    tracker = GuideTracker()

    pending = resolve_conditional(node, tracker)
    assert pending.pending is True
    assert pending.branches[0].content is WIN
    assert pending.branches[0].scope_suffix == "blitz_pending_default"

    tracker.set_flag(BLITZ_RESULT_FLAG, True)
    won = resolve_conditional(node, tracker)
    assert (won.pending, won.branches[0].content, won.branches[0].scope_suffix) == (False, WIN, "blitz_win")

    tracker.set_flag(BLITZ_RESULT_FLAG, False)
    lost = resolve_conditional(node, tracker)
    assert (lost.pending, lost.branches[0].content, lost.branches[0].scope_suffix) == (False, LOSS, "blitz_loss")


@pytest.mark.parametrize(
    ("branches", "expected"),
    [
        ({"lossContent": LOSS, "bothContent": BOTH}, LOSS),
        ({"bothContent": BOTH}, BOTH),
    ],
)
def test_blitz_pending_default_follows_priority(branches: dict, expected: list) -> None:
    resolution = resolve_conditional(blitz(**branches), GuideTracker())
    assert resolution.pending is True
    assert resolution.branches[0].content is expected


def test_blitz_pending_with_no_branches_selects_nothing() -> None:
    resolution = resolve_conditional(blitz(), GuideTracker())
    assert resolution.pending is True
    assert resolution.branches == ()


@pytest.mark.parametrize(("won", "expected_suffix"), [(True, "blitz_both"), (False, "blitz_both")])
def test_blitz_falls_back_to_both(won: bool, expected_suffix: str) -> None:
    tracker = GuideTracker(flags={BLITZ_RESULT_FLAG: won})
    node = blitz(**({"lossContent": LOSS} if won else {"winContent": WIN}), bothContent=BOTH)
    resolution = resolve_conditional(node, tracker)
    assert resolution.branches[0].content is BOTH
    assert resolution.branches[0].scope_suffix == expected_suffix


def test_blitz_without_matching_or_both_branch_selects_nothing() -> None:
    tracker = GuideTracker(flags={BLITZ_RESULT_FLAG: True})
    assert resolve_conditional(blitz(lossContent=LOSS), tracker).branches == ()


@pytest.mark.parametrize("seed", range(10))
def test_blitz_never_pending_once_set(seed: int) -> None:
    rng = random.Random(seed)
    node = blitz(winContent=WIN, lossContent=LOSS)
    tracker = GuideTracker()
    tracker.set_flag(BLITZ_RESULT_FLAG, rng.random() < 0.5)
    for _ in range(10):
        if rng.random() < 0.5:
            tracker.toggle_flag(BLITZ_RESULT_FLAG)
        assert resolve_conditional(node, tracker).pending is False


@pytest.mark.parametrize("source", ["textual_direct_choice", "textual_block_options"])
def test_textual_options_expose_every_option(source: str) -> None:
    node = {
        "type": "conditional",
        "conditionSource": source,
        "options": [
            {"conditionText": "If fast", "content": WIN},
            {"conditionText": "If slow", "content": LOSS},
        ],
    }
    resolution = resolve_conditional(node, GuideTracker())
    assert resolution.mode == EXPOSE_ALL_MODE
    assert [b.label for b in resolution.branches] == ["If fast", "If slow"]
    assert [b.scope_suffix for b in resolution.branches] == ["option0", "option1"]
    assert resolution.branches[1].steps == ("options", 1, "content")


def test_inline_if_then_exposes_then_and_else() -> None:
    node = {
        "type": "conditional",
        "conditionSource": "textual_inline_if_then",
        "textCondition": [{"type": "formattedText", "text": "you have Haste"}],
        "thenContent": WIN,
        "elseContent": LOSS,
    }
    resolution = resolve_conditional(node, GuideTracker())
    assert [b.scope_suffix for b in resolution.branches] == ["then", "else"]
    assert resolution.branches[0].label == "If you have Haste"


def test_inline_if_then_without_condition_hides_then() -> None:
    node = {
        "type": "conditional",
        "conditionSource": "textual_inline_if_then",
        "thenContent": WIN,
        "elseContent": LOSS,
    }
    assert [b.field for b in resolve_conditional(node, GuideTracker()).branches] == ["elseContent"]


def test_resolution_does_not_mutate_tracker() -> None:
    tracker = GuideTracker(resources={"Grenade": 1}, flags={"F1": True})
    before = tracker.snapshot()
    for node in (resource_check("equals", 1), flag_check("F1"), blitz(winContent=WIN)):
        resolve_conditional(node, tracker)
    assert tracker.snapshot() == before


def test_declared_branches_exposes_all_without_state() -> None:
    node = blitz(winContent=WIN, lossContent=LOSS, bothContent=BOTH)
    resolution = declared_branches(node)
    assert [b.scope_suffix for b in resolution.branches] == ["blitz_win", "blitz_loss", "blitz_both"]

    check = declared_branches(flag_check("F1"), FlagMap({"F1": "ItemA"}))
    assert [b.scope_suffix for b in check.branches] == ["flag_ItemA_true", "flag_ItemA_false"]
