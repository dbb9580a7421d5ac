from __future__ import annotations

import pytest

from drop_atlas.core.errors import CyclicRuleGraph, MalformedRuleNode
from drop_atlas.core.models import ConditionalChance, FixedChance, ModeBranch, OneOfMany
from drop_atlas.core.resolver import chance_for, iter_item_ids, resolve, resolve_detailed

NAMES = {
    10: "Ninja Hood",
    11: "Ninja Shirt",
    12: "Ninja Pants",
    20: "Slime Trophy",
    30: "Lens",
}


def _name_of(item_id):
    return NAMES.get(item_id)


def _pairs(drops) -> list[tuple[object, float]]:
    return [(drop.item_id, drop.drop_chance) for drop in drops]


def test_one_of_many_chained_to_fixed_resolves_in_pre_order() -> None:
    rule = OneOfMany(item_ids=(10, 11), chance_denominator=4, chained_rules=(FixedChance(item_id=12),))
    assert _pairs(resolve(rule, _name_of)) == [(10, 0.125), (11, 0.125), (12, 1.0)]


def test_fixed_chance_is_reciprocal_of_denominator() -> None:
    (drop,) = resolve(FixedChance(item_id=30, chance_denominator=3, min_stack=2, max_stack=4), _name_of)
    assert drop.drop_chance == pytest.approx(1 / 3)
    assert (drop.min_stack, drop.max_stack) == (2, 4)
    assert drop.display_name == "Lens"
    assert drop.condition_tags == frozenset()


@pytest.mark.parametrize("denominator", [0, -5])
def test_non_positive_denominator_means_guaranteed(denominator: int) -> None:
    (drop,) = resolve(FixedChance(item_id=30, chance_denominator=denominator), _name_of)
    assert drop.drop_chance == 1.0
    assert chance_for(denominator) == 1.0


def test_conditional_chance_carries_its_tag() -> None:
    tagged = ConditionalChance(item_id=30, chance_denominator=20, condition_tag="Blood Moon")
    untagged = ConditionalChance(item_id=30, chance_denominator=20)
    (drop,) = resolve(tagged, _name_of)
    assert drop.drop_chance == pytest.approx(0.05)
    assert drop.condition_tags == frozenset({"Blood Moon"})
    assert resolve(untagged, _name_of)[0].condition_tags == frozenset()


def test_one_of_many_splits_chance_evenly() -> None:
    drops = resolve(OneOfMany(item_ids=(10, 11, 12), chance_denominator=2), _name_of)
    assert [drop.item_id for drop in drops] == [10, 11, 12]
    assert all(drop.drop_chance == pytest.approx(1 / 6) for drop in drops)
    assert sum(drop.drop_chance for drop in drops) == pytest.approx(0.5)


def test_one_of_many_stack_modes() -> None:
    unit = resolve(OneOfMany(item_ids=(10,), min_stack=3, max_stack=5), _name_of)
    ranged = resolve(OneOfMany(item_ids=(10,), stacks_are_unit=False, min_stack=3, max_stack=5), _name_of)
    assert (unit[0].min_stack, unit[0].max_stack) == (1, 1)
    assert (ranged[0].min_stack, ranged[0].max_stack) == (3, 5)


def test_empty_one_of_many_still_emits_chained_rules() -> None:
    rule = OneOfMany(item_ids=(), chained_rules=(FixedChance(item_id=20),))
    resolution = resolve_detailed(rule, _name_of)
    assert _pairs(resolution.drops) == [(20, 1.0)]
    assert resolution.failures == []


@pytest.mark.parametrize("mode", ["expert", "master"])
def test_mode_branch_emits_union_of_both_branches(mode: str) -> None:
    primary = FixedChance(item_id=10, chance_denominator=2)
    alternate = OneOfMany(item_ids=(11, 12))
    branch = ModeBranch(mode=mode, primary_branch=primary, alternate_branch=alternate)

    expected = list(resolve(primary, _name_of)) + list(resolve(alternate, _name_of))
    assert list(resolve(branch, _name_of)) == expected


def test_mode_branch_with_one_branch_missing() -> None:
    branch = ModeBranch(alternate_branch=FixedChance(item_id=12))
    assert _pairs(resolve(branch, _name_of)) == [(12, 1.0)]


def test_mode_branch_keeps_items_shared_by_both_branches() -> None:
    primary = FixedChance(item_id=10, chance_denominator=2)
    alternate = OneOfMany(item_ids=(10, 11))
    branch = ModeBranch(primary_branch=primary, alternate_branch=alternate)

    drops = resolve(branch, _name_of)
    assert [drop.item_id for drop in drops].count(10) == 2
    assert len(drops) == len(resolve(primary, _name_of)) + len(resolve(alternate, _name_of))
    assert _pairs(drops) == [(10, 0.5), (10, 0.5), (11, 0.5)]


def test_alternate_branch_outcomes_carry_the_mode_condition() -> None:
    branch = ModeBranch(
        primary_branch=FixedChance(item_id=10),
        alternate_branch=FixedChance(
            item_id=11,
            chained_rules=(ConditionalChance(item_id=12, condition_tag="Rain"),),
        ),
        chained_rules=(FixedChance(item_id=20),),
    )
    drops = resolve(branch, _name_of)
    assert [(drop.item_id, drop.mode) for drop in drops] == [(10, None), (11, "expert"), (12, "expert"), (20, None)]
    assert [drop.condition_names() for drop in drops] == [[], ["Expert Mode"], ["Rain", "Expert Mode"], []]
    assert drops[1].to_dict()["conditions"] == ["Expert Mode"]


def test_master_mode_alternate_is_labelled() -> None:
    branch = ModeBranch(mode="master", alternate_branch=FixedChance(item_id=12))
    (drop,) = resolve(branch, _name_of)
    assert drop.condition_names() == ["Master Mode"]


def test_chained_chance_is_not_multiplied_by_parent() -> None:
    rule = FixedChance(item_id=10, chance_denominator=4, chained_rules=(FixedChance(item_id=11, chance_denominator=2),))
    assert _pairs(resolve(rule, _name_of)) == [(10, 0.25), (11, 0.5)]


def test_pre_order_covers_branches_then_chained_then_next_root() -> None:
    roots = [
        ModeBranch(
            primary_branch=FixedChance(item_id=10, chained_rules=(FixedChance(item_id=11),)),
            alternate_branch=FixedChance(item_id=12),
            chained_rules=(FixedChance(item_id=20),),
        ),
        FixedChance(item_id=30),
    ]
    assert [drop.item_id for drop in resolve(roots, _name_of)] == [10, 11, 12, 20, 30]


def test_structurally_equal_rules_are_distinct_drops() -> None:
    drops = resolve([FixedChance(item_id=10), FixedChance(item_id=10)], _name_of)
    assert len(drops) == 2


def test_malformed_nodes_are_recorded_and_siblings_survive() -> None:
    roots = [
        FixedChance(item_id=0),
        FixedChance(item_id=10, min_stack=5, max_stack=2),
        FixedChance(item_id=11),
    ]
    resolution = resolve_detailed(roots, _name_of)

    assert _pairs(resolution.drops) == [(11, 1.0)]
    assert [failure.path for failure in resolution.failures] == ["root[0]", "root[1]"]
    assert all(isinstance(failure.error, MalformedRuleNode) for failure in resolution.failures)
    assert resolution.recovered is True
    assert resolution.truncated is False


def test_malformed_node_still_expands_its_chained_rules() -> None:
    rule = FixedChance(item_id=-1, chained_rules=(FixedChance(item_id=12),))
    resolution = resolve_detailed(rule, _name_of)
    assert _pairs(resolution.drops) == [(12, 1.0)]
    assert [failure.path for failure in resolution.failures] == ["root"]


def test_one_of_many_with_bad_denominator_is_malformed() -> None:
    resolution = resolve_detailed(OneOfMany(item_ids=(10,), chance_denominator=0), _name_of)
    assert resolution.empty
    assert isinstance(resolution.failures[0].error, MalformedRuleNode)


def test_one_of_many_skips_only_the_bad_option() -> None:
    resolution = resolve_detailed(OneOfMany(item_ids=(10, "", 11)), _name_of)
    assert [drop.item_id for drop in resolution.drops] == [10, 11]
    assert all(drop.drop_chance == pytest.approx(1 / 3) for drop in resolution.drops)
    assert [failure.path for failure in resolution.failures] == ["root.itemIds[1]"]


def test_unnamed_outcomes_are_dropped_without_failure() -> None:
    resolution = resolve_detailed([FixedChance(item_id=999), FixedChance(item_id=10)], _name_of)
    assert [drop.item_id for drop in resolution.drops] == [10]
    assert resolution.unnamed == [999]
    assert resolution.failures == []


def test_name_lookup_errors_become_node_failures() -> None:
    def strict_name_of(item_id):
        return {10: "Ninja Hood"}[item_id]

    resolution = resolve_detailed([FixedChance(item_id=404), FixedChance(item_id=10)], strict_name_of)
    assert [drop.item_id for drop in resolution.drops] == [10]
    assert isinstance(resolution.failures[0].error, MalformedRuleNode)
    assert "404" in resolution.failures[0].reason


def test_unknown_node_type_is_malformed() -> None:
    resolution = resolve_detailed(["not a rule", FixedChance(item_id=10)], _name_of)
    assert [drop.item_id for drop in resolution.drops] == [10]
    assert resolution.failures[0].path == "root[0]"


def test_incomplete_nodes_are_malformed_and_siblings_survive() -> None:
    roots = [
        FixedChance.model_construct(item_id=10, min_stack=None, max_stack=1, chained_rules=()),
        OneOfMany.model_construct(item_ids=None, chained_rules=()),
        FixedChance(item_id=11),
    ]
    resolution = resolve_detailed(roots, _name_of)
    assert [drop.item_id for drop in resolution.drops] == [11]
    assert [failure.path for failure in resolution.failures] == ["root[0]", "root[1]"]
    assert all(isinstance(failure.error, MalformedRuleNode) for failure in resolution.failures)
    assert "Incomplete FixedChance node" in resolution.failures[0].reason


def test_unreadable_chained_rules_keep_the_parent_drop() -> None:
    rule = FixedChance.model_construct(item_id=10, chained_rules=5)
    resolution = resolve_detailed([rule, FixedChance(item_id=11)], _name_of)
    assert [drop.item_id for drop in resolution.drops] == [10, 11]
    assert resolution.failures[0].path == "root[0]"
    assert "could not be read" in resolution.failures[0].reason


def test_missing_rules_resolve_to_nothing() -> None:
    assert resolve(None, _name_of) == ()
    assert resolve([], _name_of) == ()


def test_cyclic_rule_graph_stops_at_node_ceiling() -> None:
    node = FixedChance.model_construct(item_id=10, chained_rules=[])
    node.chained_rules.append(node)

    resolution = resolve_detailed(node, _name_of, max_nodes=50)

    assert resolution.truncated is True
    assert resolution.visited == 50
    assert len(resolution.drops) == 50
    assert isinstance(resolution.failures[-1].error, CyclicRuleGraph)
    assert resolution.failures[-1].error.max_nodes == 50
    assert len(resolve(node, _name_of, max_nodes=10)) == 10


def test_deep_chain_does_not_hit_recursion_limit() -> None:
    node = FixedChance(item_id=10)
    for _ in range(1999):
        node = FixedChance(item_id=10, chained_rules=(node,))

    resolution = resolve_detailed(node, _name_of)
    assert len(resolution.drops) == 2000
    assert resolution.truncated is False


def test_iter_item_ids_lists_every_reference() -> None:
    roots = [
        FixedChance(item_id=999),
        OneOfMany(item_ids=(10, 11)),
        ModeBranch(primary_branch=ConditionalChance(item_id=12, condition_tag="Night")),
    ]
    assert list(iter_item_ids(roots)) == [999, 10, 11, 12]


def test_resolved_drop_export_shape() -> None:
    (drop,) = resolve(ConditionalChance(item_id=30, chance_denominator=2, condition_tag="Rain"), _name_of)
    assert drop.to_dict() == {
        "id": 30,
        "name": "Lens",
        "dropChance": 0.5,
        "minStack": 1,
        "maxStack": 1,
        "conditions": ["Rain"],
    }
