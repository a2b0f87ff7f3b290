"""
Visibility Evaluator - Conditional show/hide logic for questions and pages

Responsibilities:
- Evaluate visibility rules (groups of conditions) against an answer snapshot
- Decide whether a question or page is currently visible
- Filter question/page lists down to the visible ones (order preserved)

Design principles:
- Stateless: All state comes from the answers parameter
- Deterministic: Same input always produces same output
- Pure functions: No side effects, no caches
- Fail closed per condition: a bad condition is False, never an exception

Rule semantics:
- No rules: visible
- Rules evaluated in list order; first rule that fires decides
  (hide -> not visible, show -> visible)
- No rule fired: hidden if any show rule exists, visible otherwise
"""

import logging
from numbers import Number
from typing import Any, Dict, Iterable, List, Sequence, Set

from survey_engine.contracts import (
    Logic,
    Page,
    Question,
    RuleAction,
    VisibilityCondition,
    VisibilityGroup,
    VisibilityRule,
)

logger = logging.getLogger(__name__)


# Condition types understood by evaluate_visibility_condition()
VISIBILITY_CONDITION_TYPES = frozenset({
    "answered",
    "not_answered",
    "answer_equals",
    "answer_not_equals",
    "answer_contains",
    "answer_greater_than",
    "answer_less_than",
    "answer_includes",
})


# =========================================================================
# Public API
# =========================================================================

def is_question_visible(question: Question, answers: Dict[str, Any],
                        all_questions: Sequence[Question]) -> bool:
    """
    Check whether a question should currently be displayed.

    Args:
        question: Question to check
        answers: Flat answer map (question key -> value)
        all_questions: Every question of the survey version (used to detect
            dangling condition references)

    Returns:
        True if the question is visible
    """
    return _is_visible(question.visibility_rules, answers, all_questions)


def is_page_visible(page: Page, answers: Dict[str, Any],
                    all_questions: Sequence[Question]) -> bool:
    """
    Check whether a page should currently be displayed.

    Pages follow exactly the same rule semantics as questions.

    Args:
        page: Page to check
        answers: Flat answer map
        all_questions: Every question of the survey version

    Returns:
        True if the page is visible
    """
    return _is_visible(page.visibility_rules, answers, all_questions)


def get_visible_questions(page_questions: Iterable[Question], answers: Dict[str, Any],
                          all_questions: Sequence[Question]) -> List[Question]:
    """Visible subset of page_questions, input order preserved."""
    return [q for q in page_questions if is_question_visible(q, answers, all_questions)]


def get_visible_pages(pages: Iterable[Page], answers: Dict[str, Any],
                      all_questions: Sequence[Question]) -> List[Page]:
    """Visible subset of pages, input order preserved."""
    return [p for p in pages if is_page_visible(p, answers, all_questions)]


# =========================================================================
# Rule Evaluation
# =========================================================================

def _is_visible(rules: Sequence[VisibilityRule], answers: Dict[str, Any],
                all_questions: Sequence[Question]) -> bool:
    if not rules:
        return True

    known_ids = {q.id for q in all_questions}

    for rule in rules:
        if not _evaluate_rule(rule, answers, known_ids):
            continue

        if rule.action == RuleAction.HIDE:
            logger.debug(f"Hide rule '{rule.id}' fired")
            return False
        if rule.action == RuleAction.SHOW:
            logger.debug(f"Show rule '{rule.id}' fired")
            return True

        logger.warning(f"Unknown visibility action '{rule.action}' in rule '{rule.id}'")

    # Any show rule means "hidden unless a show rule fires"
    has_show_rules = any(rule.action == RuleAction.SHOW for rule in rules)
    return not has_show_rules


def evaluate_visibility_rule(rule: VisibilityRule, answers: Dict[str, Any],
                             all_questions: Sequence[Question]) -> bool:
    """
    Evaluate one rule's condition groups (ignores the rule's action).

    Args:
        rule: Visibility rule
        answers: Flat answer map
        all_questions: Every question of the survey version

    Returns:
        True if the rule fires. A rule without groups never fires.
    """
    return _evaluate_rule(rule, answers, {q.id for q in all_questions})


def evaluate_visibility_group(group: VisibilityGroup, answers: Dict[str, Any],
                              all_questions: Sequence[Question]) -> bool:
    """True if the group's conditions hold under its logic. Empty group is False."""
    return _evaluate_group(group, answers, {q.id for q in all_questions})


def evaluate_visibility_condition(condition: VisibilityCondition, answers: Dict[str, Any],
                                  all_questions: Sequence[Question]) -> bool:
    """True if a single condition holds. Unknown question or type is False."""
    return _evaluate_condition(condition, answers, {q.id for q in all_questions})


def _evaluate_rule(rule: VisibilityRule, answers: Dict[str, Any], known_ids: Set[str]) -> bool:
    if not rule.groups:
        return False

    results = [_evaluate_group(group, answers, known_ids) for group in rule.groups]
    return _combine(results, rule.groups_logic)


def _evaluate_group(group: VisibilityGroup, answers: Dict[str, Any], known_ids: Set[str]) -> bool:
    if not group.conditions:
        return False

    results = [_evaluate_condition(c, answers, known_ids) for c in group.conditions]
    return _combine(results, group.logic)


def _combine(results: List[bool], logic: str) -> bool:
    """AND -> all, anything else -> any."""
    if logic == Logic.AND:
        return all(results)
    return any(results)


# =========================================================================
# Condition Evaluation
# =========================================================================

def _evaluate_condition(condition: VisibilityCondition, answers: Dict[str, Any],
                        known_ids: Set[str]) -> bool:
    """
    Evaluate a single condition against the answer snapshot.

    Supports: answered, not_answered, answer_equals, answer_not_equals,
    answer_contains, answer_greater_than, answer_less_than, answer_includes

    Note:
        A condition referencing a question that no longer exists is False,
        whatever its type (deleted questions leave dangling references).
    """
    if condition.question_id not in known_ids:
        logger.warning(f"Question with ID {condition.question_id} not found for visibility condition")
        return False

    answer = answers.get(condition.question_id)
    expected = condition.value
    condition_type = condition.type

    if condition_type == "answered":
        return is_answered(answer)

    if condition_type == "not_answered":
        return not is_answered(answer)

    if condition_type == "answer_equals":
        return strict_equals(answer, expected)

    if condition_type == "answer_not_equals":
        return not strict_equals(answer, expected)

    if condition_type == "answer_contains":
        if isinstance(answer, str) and isinstance(expected, str):
            return expected.lower() in answer.lower()
        return False

    if condition_type == "answer_greater_than":
        if is_number(answer) and is_number(expected):
            return answer > expected
        return False

    if condition_type == "answer_less_than":
        if is_number(answer) and is_number(expected):
            return answer < expected
        return False

    if condition_type == "answer_includes":
        # Multiple choice (checkbox, multi-select)
        if isinstance(answer, (list, tuple)) and isinstance(expected, str):
            return expected in answer
        return False

    logger.warning(f"Unknown visibility condition type: {condition_type}")
    return False


def is_answered(answer: Any) -> bool:
    """Answered means not None and not the empty string."""
    return answer is not None and answer != ""


def is_number(value: Any) -> bool:
    """Real numbers only; bool is not a number here."""
    return isinstance(value, Number) and not isinstance(value, bool)


def strict_equals(left: Any, right: Any) -> bool:
    """
    Equality without cross-type coercion.

    '5' != 5 and True != 1, but 1 == 1.0 (both numbers).
    """
    if is_number(left) and is_number(right):
        return left == right
    if type(left) is not type(right):
        return False
    return left == right


# =========================================================================
# Dependency Analysis
# =========================================================================

def find_cyclic_visibility_dependencies(questions: Sequence[Question]) -> Set[str]:
    """
    Find questions whose visibility depends (transitively) on themselves.

    Reporting only: evaluation is unaffected. An editor can use this to
    warn about rules that can never settle (A shown when B answered, B
    shown when A answered).

    Args:
        questions: Every question of the survey version

    Returns:
        set[str]: Ids of questions that sit on a dependency cycle
    """
    depends_on = {
        q.id: {
            condition.question_id
            for rule in q.visibility_rules
            for group in rule.groups
            for condition in group.conditions
        }
        for q in questions
    }

    cyclic = set()
    for start in depends_on:
        stack = list(depends_on[start])
        seen = set()
        while stack:
            current = stack.pop()
            if current == start:
                cyclic.add(start)
                break
            if current in seen:
                continue
            seen.add(current)
            stack.extend(depends_on.get(current, ()))

    return cyclic
