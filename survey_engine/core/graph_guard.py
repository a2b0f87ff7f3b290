"""
Graph Guard - Structural rules for the question graph

Responsibilities:
- Refuse illegal transitions at creation time (template targets, self
  loops, unknown endpoints) and keep edge insertion idempotent
- Cascade deletes through repeating groups and strip dangling transitions
- Validate a whole survey version document before it is served, and
  report stored transitions that point nowhere valid

Design principles:
- Returns new question lists; inputs are never modified
- Refusals are values (IllegalConnection), not exceptions
- Validation collects every problem instead of stopping at the first
- Transition cycles are allowed (no cycle detection)
"""

import logging
from dataclasses import replace
from typing import Any, List, Optional, Sequence, Set, Union

from survey_engine.contracts import (
    ParallelBranchSettings,
    Question,
    QuestionType,
    SurveyVersion,
    TransitionRule,
)
from survey_engine.results import IllegalConnection, TransitionAdded
from survey_engine.utils.helpers import connection_rule_id
from survey_engine.utils.survey_limits import (
    ERROR_MESSAGES,
    MAX_RESOLUTION_QUESTIONS,
    PARALLEL_BRANCH_LIMITS,
)

logger = logging.getLogger(__name__)


# =========================================================================
# Template Questions
# =========================================================================

def template_question_ids(questions: Sequence[Question]) -> Set[str]:
    """
    Ids of questions that only exist inside a repeating group template.

    A question is a template question when any parallel group lists it
    in parallel_questions.
    """
    return {
        child_id
        for q in questions
        if q.type == QuestionType.PARALLEL_GROUP
        for child_id in q.parallel_questions
    }


def find_parent_group(question_id: str, questions: Sequence[Question]) -> Optional[Question]:
    """First parallel group listing question_id as a child, or None."""
    for q in questions:
        if q.type == QuestionType.PARALLEL_GROUP and question_id in q.parallel_questions:
            return q
    return None


# =========================================================================
# Connections
# =========================================================================

def check_connection(questions: Sequence[Question], source_id: str,
                     target_id: str) -> Optional[IllegalConnection]:
    """
    Check whether a transition source -> target may be created.

    Returns:
        IllegalConnection with a user-facing reason, or None when allowed
    """
    known_ids = {q.id for q in questions}

    for question_id in (source_id, target_id):
        if question_id not in known_ids:
            return IllegalConnection(
                reason=ERROR_MESSAGES['UNKNOWN_QUESTION'].format(question_id=question_id),
                source_id=source_id,
                target_id=target_id,
            )

    if source_id == target_id:
        return IllegalConnection(ERROR_MESSAGES['SELF_LOOP'], source_id, target_id)

    if target_id in template_question_ids(questions):
        return IllegalConnection(ERROR_MESSAGES['TRANSITION_INTO_GROUP'], source_id, target_id)

    return None


def connect(questions: Sequence[Question], source_id: str, target_id: str,
            answer: str = "", condition: Optional[str] = None,
            value: Any = None) -> Union[TransitionAdded, IllegalConnection]:
    """
    Add a transition rule from source to target.

    Adding a pair that already exists is a no-op: the existing rule is
    returned with created=False and the question list is unchanged.

    Args:
        questions: Current question list
        source_id: Question the transition leaves from
        target_id: Question the transition leads to
        answer: Answer the rule matches ('' for unconditional)
        condition: Optional comparison name
        value: Comparand for condition

    Returns:
        TransitionAdded on success, IllegalConnection when refused
    """
    problem = check_connection(questions, source_id, target_id)
    if problem is not None:
        logger.warning(f"Connection {source_id} -> {target_id} refused: {problem.reason}")
        return problem

    source = next(q for q in questions if q.id == source_id)

    for rule in source.transition_rules:
        if rule.next_question_id == target_id:
            logger.debug(f"Connection {source_id} -> {target_id} already exists as '{rule.id}'")
            return TransitionAdded(questions=tuple(questions), rule=rule, created=False)

    rule = TransitionRule(
        id=connection_rule_id(source_id, target_id),
        next_question_id=target_id,
        answer=answer,
        condition=condition,
        value=value,
    )
    updated = tuple(
        replace(q, transition_rules=q.transition_rules + (rule,)) if q.id == source_id else q
        for q in questions
    )
    logger.info(f"Connected {source_id} -> {target_id}")
    return TransitionAdded(questions=updated, rule=rule, created=True)


# =========================================================================
# Cascading Delete
# =========================================================================

def delete_question(questions: Sequence[Question], question_id: str) -> List[Question]:
    """
    Delete a question and everything that only exists through it.

    - a parallel group takes its parallel_questions with it (recursively)
    - transition rules pointing at any removed question are stripped
    - removed ids are dropped from remaining parallel_questions lists

    Visibility conditions referencing removed questions are kept; they
    evaluate to False.

    Returns:
        New question list (unchanged copy if question_id is unknown)
    """
    by_id = {q.id: q for q in questions}
    if question_id not in by_id:
        logger.warning(f"Cannot delete unknown question '{question_id}'")
        return list(questions)

    removed = set()
    stack = [question_id]
    while stack:
        current = stack.pop()
        if current in removed:
            continue
        removed.add(current)
        question = by_id.get(current)
        if question is not None and question.type == QuestionType.PARALLEL_GROUP:
            stack.extend(question.parallel_questions)

    result = []
    for q in questions:
        if q.id in removed:
            continue
        rules = tuple(r for r in q.transition_rules if r.next_question_id not in removed)
        children = tuple(c for c in q.parallel_questions if c not in removed)
        if rules != q.transition_rules or children != q.parallel_questions:
            q = replace(q, transition_rules=rules, parallel_questions=children)
        result.append(q)

    logger.info(f"Deleted {len(removed)} question(s) starting from '{question_id}'")
    return result


# =========================================================================
# Survey Validation
# =========================================================================

def parallel_settings_errors(question_id: str, settings: ParallelBranchSettings) -> List[str]:
    """Problems with a parallel group's min/max bounds (empty when valid)."""
    errors = []
    lowest = PARALLEL_BRANCH_LIMITS['MIN_ITEMS']
    highest = PARALLEL_BRANCH_LIMITS['MAX_ITEMS']

    for name, bound in (("minItems", settings.min_items), ("maxItems", settings.max_items)):
        if not isinstance(bound, int) or isinstance(bound, bool):
            errors.append(f"Parallel group '{question_id}': {name} must be a whole number, got {bound!r}")
    if errors:
        return errors

    if settings.min_items < lowest:
        errors.append(f"Parallel group '{question_id}': minItems {settings.min_items} below {lowest}")
    if settings.max_items > highest:
        errors.append(f"Parallel group '{question_id}': maxItems {settings.max_items} above {highest}")
    if settings.min_items > settings.max_items:
        errors.append(
            f"Parallel group '{question_id}': minItems {settings.min_items} "
            f"greater than maxItems {settings.max_items}"
        )
    return errors


def validate_survey(survey: SurveyVersion) -> List[str]:
    """
    Collect structural problems of a survey version.

    Checks:
    - No duplicate question ids
    - Every question's pageId names an existing page
    - Every id listed on a page exists
    - Parallel groups do not list themselves and list only existing children
    - Parallel group settings satisfy 1 <= minItems <= maxItems <= 30
    - At most one resolution question

    Transition targets are not checked here; see find_dangling_transitions.

    Returns:
        list[str]: Human readable errors, empty when the survey is valid
    """
    errors = []
    questions = survey.questions
    page_ids = {p.id for p in survey.pages}

    seen = set()
    for q in questions:
        if q.id in seen:
            errors.append(f"Duplicate question ID: {q.id}")
        seen.add(q.id)

    for q in questions:
        if q.page_id and page_ids and q.page_id not in page_ids:
            errors.append(f"Question '{q.id}' references unknown page '{q.page_id}'")

    for page in survey.pages:
        for question_id in page.question_ids:
            if question_id not in seen:
                errors.append(f"Page '{page.id}' lists unknown question '{question_id}'")

    for q in questions:
        if q.type != QuestionType.PARALLEL_GROUP:
            continue
        if q.id in q.parallel_questions:
            errors.append(f"Parallel group '{q.id}' references itself")
        for child_id in q.parallel_questions:
            if child_id not in seen:
                errors.append(f"Parallel group '{q.id}' references unknown question '{child_id}'")
        if isinstance(q.settings, ParallelBranchSettings):
            errors.extend(parallel_settings_errors(q.id, q.settings))

    resolution_ids = [q.id for q in questions if q.type == QuestionType.RESOLUTION]
    if len(resolution_ids) > MAX_RESOLUTION_QUESTIONS:
        errors.append(f"{ERROR_MESSAGES['SINGLE_RESOLUTION']}: {', '.join(resolution_ids)}")

    return errors


def find_dangling_transitions(questions: Sequence[Question]) -> List[str]:
    """
    Stored transition rules that connect() would refuse today.

    A rule whose target no longer exists is skipped when transitions are
    resolved; a rule into a repeating group template is kept as stored.
    Neither stops a survey from loading.

    Returns:
        list[str]: One warning per rule, empty when every target is valid
    """
    warnings = []
    known_ids = {q.id for q in questions}
    templates = template_question_ids(questions)

    for q in questions:
        for rule in q.transition_rules:
            if rule.next_question_id not in known_ids:
                warnings.append(
                    f"Transition rule '{rule.id}' on '{q.id}' targets unknown question "
                    f"'{rule.next_question_id}'"
                )
            elif rule.next_question_id in templates:
                warnings.append(
                    f"Transition rule '{rule.id}' on '{q.id}' targets repeating group question "
                    f"'{rule.next_question_id}'"
                )

    return warnings
