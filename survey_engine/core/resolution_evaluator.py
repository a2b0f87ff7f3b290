"""
Resolution Evaluator - Final outcome text from accumulated answers

Responsibilities:
- Evaluate ordered resolution rules (first satisfied rule wins)
- Fall back to the default resolution text
- Render {{questionId}} placeholders in resolution/description text

Design principles:
- Stateless and deterministic
- Rule order is significant: evaluation stops at the first match
- Type mismatches fail the single condition, never the whole evaluation
"""

import logging
import math
import re
from typing import Any, Dict, Optional, Sequence

from survey_engine.contracts import (
    Logic,
    Question,
    QuestionType,
    ResolutionCondition,
    ResolutionRule,
)
from survey_engine.core.visibility_evaluator import is_number

logger = logging.getLogger(__name__)


# Editor spellings accepted in place of the canonical operators
OPERATOR_ALIASES = {
    "==": "==",
    "equals": "==",
    "!=": "!=",
    "not_equals": "!=",
    ">": ">",
    "greater_than": ">",
    "<": "<",
    "less_than": "<",
    "includes": "includes",
    "contains": "includes",
}

PLACEHOLDER_PATTERN = re.compile(r"\{\{\s*([^{}\s.]+)(?:\.([^{}\s]+))?\s*\}\}")


# =========================================================================
# Public API
# =========================================================================

def evaluate_resolution(rules: Sequence[ResolutionRule], default_text: str,
                        answers: Dict[str, Any]) -> str:
    """
    Pick the resolution text for an answer snapshot.

    Args:
        rules: Resolution rules in priority order
        default_text: Returned when no rule matches
        answers: Flat answer map

    Returns:
        str: result_text of the first matching rule, else default_text
    """
    for rule in rules:
        if evaluate_resolution_rule(rule, answers):
            logger.debug(f"Resolution rule '{rule.id}' matched")
            return rule.result_text

    return default_text


def evaluate_resolution_rule(rule: ResolutionRule, answers: Dict[str, Any]) -> bool:
    """
    Evaluate one rule's conditions under its AND/OR logic.

    A rule without conditions never matches.
    """
    if not rule.conditions:
        return False

    results = [evaluate_resolution_condition(c, answers) for c in rule.conditions]
    if rule.logic == Logic.AND:
        return all(results)
    return any(results)


def evaluate_resolution_condition(condition: ResolutionCondition, answers: Dict[str, Any]) -> bool:
    """
    Evaluate a single resolution condition.

    Supports: ==, !=, >, < (numeric, both sides coerced), includes
    (array membership or substring)

    Returns:
        bool: Evaluation result. Non-numeric operands for > and < and
        unknown operators evaluate to False.
    """
    operator = OPERATOR_ALIASES.get(str(condition.operator).strip())
    answer = answers.get(condition.question_id)
    expected = condition.value

    if operator == "==":
        return loose_equals(answer, expected)

    if operator == "!=":
        return not loose_equals(answer, expected)

    if operator in (">", "<"):
        left = to_number(answer)
        right = to_number(expected)
        if left is None or right is None:
            return False
        return left > right if operator == ">" else left < right

    if operator == "includes":
        if isinstance(answer, (list, tuple)):
            return expected in answer or str(expected) in [str(a) for a in answer]
        if isinstance(answer, str):
            return str(expected) in answer
        return False

    logger.warning(f"Unknown resolution operator: {condition.operator}")
    return False


def resolve_resolution_question(question: Question, answers: Dict[str, Any],
                                all_questions: Sequence[Question] = ()) -> str:
    """
    Final text for a resolution-type question, placeholders rendered.

    Args:
        question: Question of type RESOLUTION
        answers: Flat answer map
        all_questions: Used to turn option ids into option text

    Returns:
        str: Rendered resolution text ('' for non-resolution questions)
    """
    if question.type != QuestionType.RESOLUTION:
        logger.warning(f"Question '{question.id}' is not a resolution question")
        return ""

    text = evaluate_resolution(question.resolution_rules, question.default_resolution, answers)
    return render_placeholders(text, answers, all_questions)


# =========================================================================
# Placeholders
# =========================================================================

def render_placeholders(text: Optional[str], answers: Dict[str, Any],
                        all_questions: Sequence[Question] = ()) -> str:
    """
    Replace {{questionId}} tokens with the display value of the answer.

    - radio/select: option text (raw value if the option is unknown)
    - checkbox: comma-joined option texts
    - lists: comma-joined values
    - {{questionId.field}}: field of a dict-shaped answer
    - missing answers render as the empty string

    Examples:
        >>> render_placeholders("Hello {{name}}", {"name": "Ann"})
        'Hello Ann'
    """
    if not isinstance(text, str) or not text:
        return ""

    by_id = {q.id: q for q in all_questions}

    def replace(match):
        question_id, field_name = match.group(1), match.group(2)
        return _display_value(answers.get(question_id), by_id.get(question_id), field_name)

    return PLACEHOLDER_PATTERN.sub(replace, text)


def _display_value(value: Any, question: Optional[Question], field_name: Optional[str]) -> str:
    if value is None:
        return ""

    if question is not None and question.options:
        option_text = {o.id: o.text for o in question.options}
        if question.type in (QuestionType.RADIO, QuestionType.SELECT):
            return option_text.get(value, str(value))
        if question.type == QuestionType.CHECKBOX and isinstance(value, (list, tuple)):
            texts = [option_text[v] for v in value if v in option_text]
            if texts:
                return ", ".join(texts)

    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value)

    if isinstance(value, dict) and field_name:
        field_value = value.get(field_name)
        return "" if field_value is None else str(field_value)

    return str(value)


# =========================================================================
# Comparison Helpers
# =========================================================================

def to_number(value: Any) -> Optional[float]:
    """Coerce to a finite float; None when the value is not numeric."""
    if not is_number(value) and not (isinstance(value, str) and value.strip()):
        return None
    try:
        number = float(value)
    except (ValueError, OverflowError):
        return None
    return number if math.isfinite(number) else None


def loose_equals(left: Any, right: Any) -> bool:
    """
    Equality where a number and its string form compare equal.

    Resolution values come from a text field in the editor, so 10 and '10'
    must match.
    """
    if left == right and not (isinstance(left, bool) ^ isinstance(right, bool)):
        return True
    if is_number(left) or is_number(right):
        left_number, right_number = to_number(left), to_number(right)
        if left_number is not None and right_number is not None:
            return left_number == right_number
    return False
