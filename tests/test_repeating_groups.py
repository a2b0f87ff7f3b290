"""
Test Repeating Groups - ParallelAnswer tree, flat projection, counts
"""

import logging

import pytest

from survey_engine.contracts import ParallelAnswer, ParallelBranchSettings
from survey_engine.core.repeating_groups import (
    adjust_group_count,
    answers_to_json,
    clamp_group_count,
    get_group_count,
    get_group_tree,
    iter_group_answers,
    normalize_parallel_settings,
    on_answer_change,
    project_flat_answers,
    read_group_answer,
    read_nested_answer,
    set_deep_group_count,
    set_group_count,
    set_nested_group_count,
    write_group_answer,
    write_nested_answer,
)


def _flat_view_matches_tree(group_id, answers):
    """Every flat key equals what the tree projects"""
    projected = project_flat_answers(group_id, answers)
    return all(answers.get(key) == value for key, value in projected.items())


# ========== Flat Projection ==========

def test_on_answer_change_sets_one_key():
    answers = {"a": 1}
    updated = on_answer_change(answers, "name_0", "Ann")

    assert updated == {"a": 1, "name_0": "Ann"}
    assert answers == {"a": 1}


def test_write_group_answer_builds_tree_and_flat_keys():
    answers = set_group_count("people", 2, {})
    answers = write_group_answer("people", "name", 1, "Bo", answers)

    tree = answers["people"]
    assert isinstance(tree, ParallelAnswer)
    assert tree.count == 2
    assert tree.answers["name"] == (None, "Bo")
    assert answers["name_1"] == "Bo"
    assert answers["name_0"] is None
    assert answers["people_count"] == 2
    assert _flat_view_matches_tree("people", answers)


def test_write_replaces_tree_instead_of_mutating():
    first = write_group_answer("people", "name", 0, "Ann", set_group_count("people", 1, {}))
    second = write_group_answer("people", "name", 0, "Eve", first)

    assert first["people"].answers["name"] == ("Ann",)
    assert second["people"].answers["name"] == ("Eve",)
    assert first["people"] is not second["people"]


def test_negative_index_leaves_answers_unchanged(caplog):
    answers = set_group_count("people", 1, {})

    with caplog.at_level(logging.WARNING):
        assert write_group_answer("people", "name", -1, "x", answers) == answers
        assert write_nested_answer(answers, [("people", 0), ("children", -2)], "age", 3) == answers
    assert "negative iteration index" in caplog.text


def test_read_prefers_flat_key_for_leaves():
    answers = write_group_answer("people", "name", 0, "Ann", set_group_count("people", 1, {}))
    answers = on_answer_change(answers, "name_0", "Annie")

    assert read_group_answer("people", "name", 0, answers) == "Annie"


def test_read_falls_back_to_tree():
    answers = {"people": {"count": 1, "answers": {"name": ["Ann"]}}}
    assert read_group_answer("people", "name", 0, answers) == "Ann"
    assert read_group_answer("people", "name", 5, answers) is None


# ========== Counts ==========

class TestCounts:

    def test_count_from_tree(self):
        assert get_group_count("g", {"g": {"count": 3, "answers": {}}}) == 3

    def test_count_from_flat_key(self):
        assert get_group_count("g", {"g_count": "2"}) == 2

    def test_invalid_count_is_zero(self):
        assert get_group_count("g", {"g_count": "lots"}) == 0
        assert get_group_count("g", {}) == 0
        assert get_group_count("g", {"g_count": -4}) == 0

    @pytest.mark.parametrize("raw", ["inf", "-inf", "nan", "1e999", float("inf")])
    def test_non_finite_count_is_zero(self, raw):
        assert get_group_count("g", {"g_count": raw}) == 0

    def test_set_non_finite_count(self):
        assert set_group_count("g", "1e999", {})["g_count"] == 0

        answers = set_group_count("g", "inf", {}, ParallelBranchSettings(max_items=5))
        assert answers["g_count"] == 1

    def test_count_from_source_question(self):
        settings = ParallelBranchSettings(source_question_id="how_many")
        assert get_group_count("g", {"how_many": "4"}, settings) == 4

    def test_set_count_clamps_with_settings(self):
        answers = set_group_count("g", 7, {}, ParallelBranchSettings(max_items=5))
        assert get_group_count("g", answers) == 5
        assert answers["g_count"] == 5

    def test_shrinking_keeps_stale_iterations(self):
        answers = set_group_count("g", 3, {})
        answers = write_group_answer("g", "name", 2, "Cy", answers)
        answers = set_group_count("g", 1, answers)

        assert answers["g"].answers["name"][2] == "Cy"
        assert iter_group_answers("g", "name", answers) == [None]

        answers = set_group_count("g", 3, answers)
        assert iter_group_answers("g", "name", answers) == [None, None, "Cy"]

    def test_iter_never_reads_beyond_count(self):
        answers = {"g": {"count": 2, "answers": {"x": ["a", "b", "c", "d"]}}}
        assert iter_group_answers("g", "x", answers) == ["a", "b"]


# ========== Authoring Boundary ==========

def test_clamp_group_count():
    assert clamp_group_count(7, ParallelBranchSettings(max_items=5)) == 5
    assert clamp_group_count(0, ParallelBranchSettings(min_items=2)) == 2
    assert clamp_group_count("3", {"minItems": 1, "maxItems": 4}) == 3


def test_adjust_group_count_messages():
    adjusted = adjust_group_count(50, ParallelBranchSettings(max_items=30))
    assert adjusted.count == 30
    assert adjusted.was_clamped
    assert adjusted.message == 'Maximum 30 repetitions'

    assert adjust_group_count(2, None).message is None


def test_normalize_parallel_settings():
    settings = normalize_parallel_settings({"minItems": 0, "maxItems": 99, "displayMode": "grid"})

    assert settings.min_items == 1
    assert settings.max_items == 30
    assert settings.display_mode == "tabs"
    assert settings.item_label == "Item"


def test_normalize_max_below_min():
    settings = normalize_parallel_settings(ParallelBranchSettings(min_items=4, max_items=2))
    assert (settings.min_items, settings.max_items) == (4, 4)


def test_non_numeric_bounds_use_defaults():
    assert adjust_group_count("nan", ParallelBranchSettings(min_items=2)).count == 2

    settings = normalize_parallel_settings({"minItems": "inf", "maxItems": "nan"})
    assert (settings.min_items, settings.max_items) == (1, 5)


# ========== Nested Groups ==========

class TestNestedGroups:
    """people[i].children[k].age"""

    def test_nested_count_propagates_to_every_outer_iteration(self):
        answers = set_group_count("people", 3, {})
        answers = set_nested_group_count("people", "children", 2, answers)

        nested = answers["people"].answers["children"]
        assert len(nested) == 3
        assert all(isinstance(item, ParallelAnswer) and item.count == 2 for item in nested)
        assert [answers[f"children_count_{i}"] for i in range(3)] == [2, 2, 2]

    def test_nested_count_change_keeps_answers(self):
        answers = set_group_count("people", 2, {})
        answers = set_nested_group_count("people", "children", 2, answers)
        answers = write_nested_answer(answers, [("people", 1), ("children", 1)], "age", 7)
        answers = set_nested_group_count("people", "children", 1, answers)

        assert answers["people"].answers["children"][1].count == 1
        assert read_nested_answer(answers, [("people", 1), ("children", 1)], "age") == 7

    def test_write_and_read_nested(self):
        answers = set_group_count("people", 2, {})
        answers = set_nested_group_count("people", "children", 2, answers)
        answers = write_nested_answer(answers, [("people", 1), ("children", 0)], "age", 4)

        assert read_nested_answer(answers, [("people", 1), ("children", 0)], "age") == 4
        assert read_nested_answer(answers, [("people", 0), ("children", 0)], "age") is None
        assert answers["age_1_0"] == 4
        assert _flat_view_matches_tree("people", answers)

    def test_read_group_answer_returns_nested_tree(self):
        answers = set_group_count("people", 1, {})
        answers = set_nested_group_count("people", "children", 2, answers)

        nested = read_group_answer("people", "children", 0, answers)
        assert isinstance(nested, ParallelAnswer)
        assert nested.count == 2

    def test_three_levels(self):
        path = [("a", 0), ("b", 1), ("c", 2)]
        answers = write_nested_answer({}, path, "leaf", "deep")

        assert read_nested_answer(answers, path, "leaf") == "deep"
        assert answers["leaf_0_1_2"] == "deep"

    def test_deep_count_reaches_every_iteration(self):
        answers = set_group_count("people", 2, {})
        answers = set_nested_group_count("people", "children", 3, answers)
        answers = set_deep_group_count(["people", "children"], "toys", 2, answers)

        assert "toys" not in answers
        for i in range(2):
            children = answers["people"].answers["children"][i]
            assert [toys.count for toys in children.answers["toys"]] == [2, 2, 2]
        assert answers["toys_count_1_2"] == 2
        assert _flat_view_matches_tree("people", answers)

    def test_deep_count_without_ancestors_is_top_level(self):
        assert set_deep_group_count([], "people", 2, {})["people_count"] == 2

    def test_missing_path_reads_none(self):
        assert read_nested_answer({}, [("a", 0), ("b", 0)], "x") is None


# ========== Serialization ==========

def test_answers_to_json_round_trips_through_tree():
    answers = write_nested_answer(set_group_count("people", 1, {}), [("people", 0), ("children", 0)], "age", 3)
    data = answers_to_json(answers)

    assert data["people"] == {
        "count": 1,
        "answers": {"children": [{"count": 0, "answers": {"age": [3]}}]},
    }
    assert get_group_tree("people", data) == answers["people"]
