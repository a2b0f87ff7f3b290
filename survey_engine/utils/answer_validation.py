"""
Answer validation - Required-answer checks used before leaving a page

Checks are per question type. Hidden questions and repeating group
template questions are never required on their own; a repeating group
checks its children for every iteration instead.
"""

import re
from typing import Any, Dict, List, Sequence

from survey_engine.contracts import ParallelBranchSettings, Question, QuestionType
from survey_engine.core.graph_guard import template_question_ids
from survey_engine.core.repeating_groups import get_group_count, read_group_answer
from survey_engine.core.visibility_evaluator import is_question_visible

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

MIN_PHONE_DIGITS = 10


def is_answer_valid(question: Question, answer: Any, answers: Dict[str, Any],
                    all_questions: Sequence[Question]) -> bool:
    """
    Check a single answer against its question.

    Args:
        question: Question being answered
        answer: Its current answer (ignored for parallel groups)
        answers: Full answer map (parallel groups read their children here)
        all_questions: Every question of the survey version

    Returns:
        True if the answer is acceptable. Optional questions are always valid.
    """
    if not question.required:
        return True

    if question.type == QuestionType.PARALLEL_GROUP:
        return _is_group_complete(question, answers, all_questions)

    if question.type == QuestionType.RESOLUTION:
        return True

    if question.type == QuestionType.CHECKBOX:
        return isinstance(answer, (list, tuple)) and len(answer) > 0

    if answer is None or (isinstance(answer, str) and not answer.strip()):
        return False

    if question.type == QuestionType.EMAIL:
        return bool(EMAIL_PATTERN.match(str(answer).strip()))

    if question.type == QuestionType.PHONE:
        digits = re.sub(r"\D", "", str(answer))
        return len(digits) >= MIN_PHONE_DIGITS

    return True


def validate_page(page_questions: Sequence[Question], answers: Dict[str, Any],
                  all_questions: Sequence[Question]) -> List[str]:
    """
    Ids of visible required questions on a page whose answer is missing or invalid.

    Template questions are skipped; their group reports them.
    """
    templates = template_question_ids(all_questions)
    failing = []

    for question in page_questions:
        if question.id in templates:
            continue
        if not is_question_visible(question, answers, all_questions):
            continue
        if not is_answer_valid(question, answers.get(question.id), answers, all_questions):
            failing.append(question.id)

    return failing


def _is_group_complete(group: Question, answers: Dict[str, Any],
                       all_questions: Sequence[Question]) -> bool:
    settings = group.settings if isinstance(group.settings, ParallelBranchSettings) else None
    count = get_group_count(group.id, answers, settings)
    if count <= 0:
        return False

    by_id = {q.id: q for q in all_questions}
    for child_id in group.parallel_questions:
        child = by_id.get(child_id)
        if child is None or not child.required:
            continue
        for index in range(count):
            value = read_group_answer(group.id, child_id, index, answers)
            if child.type == QuestionType.PARALLEL_GROUP:
                if value is None or value.count <= 0:
                    return False
                continue
            if not is_answer_valid(child, value, answers, all_questions):
                return False

    return True
