"""
Transition Resolver - Next-question selection between questions

Responsibilities:
- Match a question's transition rules against its current answer
- Fall back to the following question on the same page (linear default),
  in the page's own question order when one is given
- Synthesize default transition rules for canvas consumers
- Derive flow edges and the start question of a page

Design principles:
- Stateless: All state comes from the answers parameter
- First matching rule wins; rule order is significant
- Questions that only exist inside a repeating group template are never
  linear-default targets
- Cycles are not detected (a rule may point back at an earlier question)
"""

import logging
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional, Sequence

from survey_engine.contracts import Question, TransitionRule
from survey_engine.core.graph_guard import template_question_ids
from survey_engine.core.resolution_evaluator import to_number
from survey_engine.utils.helpers import default_rule_id

logger = logging.getLogger(__name__)


# Conditions understood by rule_matches()
TRANSITION_CONDITIONS = frozenset({"equals", "not_equals", "greater_than", "less_than", "contains"})

# Page key for questions without a page
DEFAULT_PAGE_KEY = "default"

# Page id -> question ids in page order
PageOrders = Dict[str, Sequence[str]]


@dataclass(frozen=True)
class FlowEdge:
    """
    Directed edge between two questions, as drawn on the editor canvas.

    Attributes:
        source: Question the transition leaves from
        target: Question the transition leads to
        rule_id: Id of the transition rule behind the edge
        label: Human readable label ('' for unconditional edges)
    """
    source: str
    target: str
    rule_id: str
    label: str = ""


# =========================================================================
# Public API
# =========================================================================

def resolve_transition(question: Question, answers: Dict[str, Any],
                       all_questions: Optional[Sequence[Question]] = None,
                       page_orders: Optional[PageOrders] = None) -> Optional[str]:
    """
    Determine the id of the question that follows `question`.

    Args:
        question: Question just answered
        answers: Flat answer map
        all_questions: Every question of the survey version. Needed for the
            linear fallback; without it only explicit rules are considered.
            When given, rules pointing at questions that no longer exist
            are skipped.
        page_orders: Question ids per page id, in page order. Pages not
            listed fall back to the order of all_questions.

    Returns:
        Next question id, or None when nothing follows
    """
    answer = answers.get(question.id)
    known_ids = {q.id for q in all_questions} if all_questions is not None else None

    for rule in question.transition_rules:
        if not rule_matches(rule, answer):
            continue
        if known_ids is not None and rule.next_question_id not in known_ids:
            logger.warning(
                f"Skipping transition rule '{rule.id}' on '{question.id}': "
                f"question '{rule.next_question_id}' does not exist"
            )
            continue
        logger.debug(f"Transition rule '{rule.id}' matched on '{question.id}' -> '{rule.next_question_id}'")
        return rule.next_question_id

    if all_questions is None:
        return None

    following = next_sibling(question, all_questions, page_orders)
    return following.id if following is not None else None


def rule_matches(rule: TransitionRule, answer: Any) -> bool:
    """
    Check whether a transition rule applies to an answer.

    - no condition, empty rule answer: unconditional
    - no condition: equality with rule.answer (membership for list answers)
    - condition: comparison against rule.value (rule.answer when value is None)

    Returns:
        bool: True if the rule applies. Numeric conditions on non-numeric
        operands and unknown conditions are False.
    """
    if not rule.condition:
        if rule.answer == "" or rule.answer is None:
            return True
        return _equals(answer, rule.answer)

    expected = rule.value if rule.value is not None else rule.answer

    if rule.condition == "equals":
        return _equals(answer, expected)

    if rule.condition == "not_equals":
        return answer is not None and not _equals(answer, expected)

    if rule.condition in ("greater_than", "less_than"):
        left, right = to_number(answer), to_number(expected)
        if left is None or right is None:
            return False
        return left > right if rule.condition == "greater_than" else left < right

    if rule.condition == "contains":
        if isinstance(answer, (list, tuple)):
            return str(expected) in [str(a) for a in answer]
        if isinstance(answer, str) and expected is not None:
            return str(expected).lower() in answer.lower()
        return False

    logger.warning(f"Unknown transition condition '{rule.condition}' in rule '{rule.id}'")
    return False


def with_default_transitions(questions: Sequence[Question],
                             page_orders: Optional[PageOrders] = None) -> List[Question]:
    """
    Add a linear transition to every question that has no rules.

    Questions are grouped by page; a question without transition rules
    that has a following question on its page gets one unconditional rule
    pointing at that question. Repeating group template questions neither
    get a default rule nor become a default target. Input order is
    preserved and rule ids are deterministic, so applying this twice
    changes nothing.

    Args:
        questions: Questions of a survey version
        page_orders: Question ids per page id, in page order (optional)

    Returns:
        New list of questions (inputs are not modified)
    """
    templates = template_question_ids(questions)
    chain = [q for q in questions if q.id not in templates]

    following = {}
    for page_questions in _group_by_page(chain, page_orders).values():
        for current, after in zip(page_questions, page_questions[1:]):
            following[current.id] = after.id

    result = []
    for question in questions:
        target = following.get(question.id)
        if question.transition_rules or target is None:
            result.append(question)
            continue

        rule = TransitionRule(id=default_rule_id(question.id, target), next_question_id=target)
        result.append(replace(question, transition_rules=(rule,)))

    return result


def next_sibling(question: Question, all_questions: Sequence[Question],
                 page_orders: Optional[PageOrders] = None) -> Optional[Question]:
    """
    Question immediately following `question` on its page.

    The page's order comes from page_orders when it lists the page, from
    all_questions otherwise. Repeating group template questions are only
    reachable through their group: they are never returned, and have no
    sibling themselves.
    """
    templates = template_question_ids(all_questions)
    if question.id in templates:
        return None

    chain = [q for q in all_questions if q.id not in templates]
    page_questions = _group_by_page(chain, page_orders).get(_page_key(question), [])

    for index, candidate in enumerate(page_questions):
        if candidate.id == question.id:
            if index + 1 < len(page_questions):
                return page_questions[index + 1]
            return None

    return None


def build_flow_edges(questions: Sequence[Question],
                     page_orders: Optional[PageOrders] = None) -> List[FlowEdge]:
    """
    Edges for the editor canvas.

    One edge per transition rule whose target exists, plus a default edge
    for questions that have no rules and a following question on the
    same page.

    Returns:
        list[FlowEdge]: Edges in question order
    """
    known_ids = {q.id for q in questions}
    edges = []

    for question in with_default_transitions(questions, page_orders):
        for rule in question.transition_rules:
            if rule.next_question_id not in known_ids:
                logger.warning(
                    f"Transition rule '{rule.id}' on '{question.id}' points at missing "
                    f"question '{rule.next_question_id}'"
                )
                continue
            edges.append(FlowEdge(
                source=question.id,
                target=rule.next_question_id,
                rule_id=rule.id,
                label=_edge_label(rule),
            ))

    return edges


def find_start_question(page_questions: Sequence[Question]) -> Optional[Question]:
    """
    First question of a page that no other page question transitions into.

    Falls back to the first question when every question has an incoming
    transition; None for an empty page.
    """
    if not page_questions:
        return None

    incoming = {
        rule.next_question_id
        for q in page_questions
        for rule in q.transition_rules
    }
    for question in page_questions:
        if question.id not in incoming:
            return question
    return page_questions[0]


# =========================================================================
# Helpers
# =========================================================================

def _equals(answer: Any, expected: Any) -> bool:
    if isinstance(answer, (list, tuple)):
        return str(expected) in [str(a) for a in answer]
    if answer is None:
        return False
    if answer == expected:
        return True
    left, right = to_number(answer), to_number(expected)
    if left is not None and right is not None:
        return left == right
    return str(answer) == str(expected)


def _edge_label(rule: TransitionRule) -> str:
    if rule.condition:
        value = rule.value if rule.value is not None else rule.answer
        return f"{rule.condition} {value}"
    return str(rule.answer or "")


def _page_key(question: Question) -> str:
    return question.page_id or DEFAULT_PAGE_KEY


def _group_by_page(questions: Sequence[Question],
                   page_orders: Optional[PageOrders] = None) -> Dict[str, List[Question]]:
    grouped: Dict[str, List[Question]] = {}
    for question in questions:
        grouped.setdefault(_page_key(question), []).append(question)

    # Questions missing from a page's order keep their relative order at the end
    for page_key, members in grouped.items():
        order = (page_orders or {}).get(page_key)
        if order:
            position = {question_id: index for index, question_id in enumerate(order)}
            members.sort(key=lambda q: position.get(q.id, len(position)))
    return grouped
