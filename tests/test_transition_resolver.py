"""
Test Transition Resolver - explicit rules, linear fallback, default edges
"""

import logging

import pytest

from conftest import make_question
from survey_engine.contracts import TransitionRule
from survey_engine.core.transition_resolver import (
    build_flow_edges,
    find_start_question,
    next_sibling,
    resolve_transition,
    rule_matches,
    with_default_transitions,
)


# ========== resolve_transition Tests ==========

def test_matching_rule_jumps(linear_questions):
    q2 = linear_questions[1]
    assert resolve_transition(q2, {"q2": "yes"}, linear_questions) == "q5"


def test_no_match_falls_back_to_next_sibling(linear_questions):
    q2 = linear_questions[1]
    assert resolve_transition(q2, {"q2": "no"}, linear_questions) == "q3"


def test_last_question_has_no_next(linear_questions):
    assert resolve_transition(linear_questions[-1], {}, linear_questions) is None


def test_without_question_list_only_rules_apply(linear_questions):
    q2 = linear_questions[1]
    assert resolve_transition(q2, {"q2": "no"}) is None


def test_first_matching_rule_wins():
    q1 = make_question(id="q1", transitionRules=[
        {"id": "a", "answer": "x", "nextQuestionId": "q2"},
        {"id": "b", "answer": "x", "nextQuestionId": "q3"},
    ])
    assert resolve_transition(q1, {"q1": "x"}) == "q2"


def test_fallback_stays_on_page():
    q1 = make_question(id="q1", pageId="p1")
    q2 = make_question(id="q2", pageId="p2")
    q3 = make_question(id="q3", pageId="p1")

    assert resolve_transition(q1, {}, [q1, q2, q3]) == "q3"


def test_rule_to_deleted_question_falls_through(caplog):
    q1 = make_question(id="q1", pageId="p1", transitionRules=[
        {"id": "t", "answer": "", "nextQuestionId": "gone"},
    ])
    q2 = make_question(id="q2", pageId="p1")

    with caplog.at_level(logging.WARNING):
        assert resolve_transition(q1, {}, [q1, q2]) == "q2"
    assert "question 'gone' does not exist" in caplog.text


def test_fallback_follows_page_order():
    q1 = make_question(id="q1", pageId="p1")
    q2 = make_question(id="q2", pageId="p1")
    q3 = make_question(id="q3", pageId="p1")
    questions = [q1, q2, q3]
    orders = {"p1": ["q1", "q3", "q2"]}

    assert resolve_transition(q1, {}, questions, orders) == "q3"
    assert resolve_transition(q3, {}, questions, orders) == "q2"
    assert resolve_transition(q2, {}, questions, orders) is None


def test_page_order_missing_question_goes_last():
    q1 = make_question(id="q1", pageId="p1")
    q2 = make_question(id="q2", pageId="p1")
    q3 = make_question(id="q3", pageId="p1")

    assert next_sibling(q3, [q1, q2, q3], {"p1": ["q3", "q1"]}).id == "q1"
    assert next_sibling(q1, [q1, q2, q3], {"p1": ["q3", "q1"]}).id == "q2"


def test_fallback_skips_template_questions(group_survey):
    questions = group_survey.questions
    people = next(q for q in questions if q.id == "people")

    assert resolve_transition(people, {}, questions) == "outro"


def test_template_question_has_no_sibling(group_survey):
    questions = group_survey.questions
    name = next(q for q in questions if q.id == "name")

    assert next_sibling(name, questions) is None


# ========== rule_matches Tests ==========

class TestRuleMatches:

    def rule(self, **fields):
        fields.setdefault("id", "r")
        fields.setdefault("next_question_id", "next")
        return TransitionRule(**fields)

    def test_unconditional(self):
        assert rule_matches(self.rule(), None) is True

    def test_plain_answer_equality(self):
        assert rule_matches(self.rule(answer="yes"), "yes") is True
        assert rule_matches(self.rule(answer="yes"), "no") is False
        assert rule_matches(self.rule(answer="yes"), None) is False

    def test_list_answer_membership(self):
        assert rule_matches(self.rule(answer="b"), ["a", "b"]) is True

    def test_numeric_string_equality(self):
        assert rule_matches(self.rule(answer="3"), 3) is True

    @pytest.mark.parametrize("condition, value, answer, expected", [
        ("equals", "a", "a", True),
        ("not_equals", "a", "b", True),
        ("not_equals", "a", None, False),
        ("greater_than", 10, "12", True),
        ("greater_than", 10, "abc", False),
        ("less_than", 10, 3, True),
        ("contains", "OO", "foobar", True),
        ("contains", "c", ["a", "c"], True),
    ])
    def test_conditions(self, condition, value, answer, expected):
        assert rule_matches(self.rule(condition=condition, value=value), answer) is expected

    def test_condition_falls_back_to_answer_field(self):
        assert rule_matches(self.rule(condition="equals", answer="x"), "x") is True

    def test_unknown_condition(self, caplog):
        with caplog.at_level(logging.WARNING):
            assert rule_matches(self.rule(condition="matches", value="x"), "x") is False
        assert "Unknown transition condition" in caplog.text


# ========== Default Transitions ==========

def test_default_transitions_added(linear_questions):
    result = with_default_transitions(linear_questions)
    by_id = {q.id: q for q in result}

    assert [q.id for q in result] == ["q1", "q2", "q3", "q4", "q5"]
    assert by_id["q1"].transition_rules[0].id == "default-q1-q2"
    assert by_id["q1"].transition_rules[0].next_question_id == "q2"
    # explicit rules are left alone
    assert [r.id for r in by_id["q2"].transition_rules] == ["t1"]
    assert by_id["q5"].transition_rules == ()


def test_default_transitions_idempotent(linear_questions):
    once = with_default_transitions(linear_questions)
    assert with_default_transitions(once) == once


def test_default_transitions_do_not_modify_input(linear_questions):
    with_default_transitions(linear_questions)
    assert linear_questions[0].transition_rules == ()


def test_default_transitions_follow_page_order():
    q1 = make_question(id="q1", pageId="p1")
    q2 = make_question(id="q2", pageId="p1")
    q3 = make_question(id="q3", pageId="p1")

    result = with_default_transitions([q1, q2, q3], {"p1": ["q1", "q3", "q2"]})
    pairs = [(q.id, r.next_question_id) for q in result for r in q.transition_rules]

    assert pairs == [("q1", "q3"), ("q3", "q2")]


def test_default_transitions_never_target_templates(group_survey):
    result = with_default_transitions(group_survey.questions)
    targets = {r.next_question_id for q in result for r in q.transition_rules}

    assert targets == {"people", "outro"}


# ========== Flow Edges and Start Question ==========

def test_flow_edges(linear_questions):
    edges = build_flow_edges(linear_questions)
    pairs = [(e.source, e.target) for e in edges]

    assert pairs == [("q1", "q2"), ("q2", "q5"), ("q3", "q4"), ("q4", "q5")]
    assert edges[1].label == "yes"


def test_flow_edges_skip_missing_targets(caplog):
    q1 = make_question(id="q1", transitionRules=[{"id": "t", "answer": "", "nextQuestionId": "gone"}])
    with caplog.at_level(logging.WARNING):
        assert build_flow_edges([q1]) == []
    assert "missing question 'gone'" in caplog.text


def test_find_start_question():
    q1 = make_question(id="q1", transitionRules=[{"id": "t", "answer": "", "nextQuestionId": "q0"}])
    q0 = make_question(id="q0")
    assert find_start_question([q0, q1]).id == "q1"
    assert find_start_question([]) is None
