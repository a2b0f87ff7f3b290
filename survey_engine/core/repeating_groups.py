"""
Repeating Groups - Answer storage for parallel (repeating) groups

Responsibilities:
- Store the answers of a repeating group as one ParallelAnswer tree at
  answers[group_id], nested groups as nested ParallelAnswer elements
- Derive the flat per-iteration keys ('<child>_<i>', '<group>_count')
  from that tree after every write
- Read answers for a given iteration (flat key first, tree otherwise)
- Clamp user-entered counts to the group's settings

Design principles:
- The tree is authoritative; flat keys are a projection of it
- Every write returns a new answer map; answers[group_id] is replaced as a
  whole, never mutated in place
- Shrinking a count never deletes answers of the now-excluded iterations
- A nested group's count is shared by every iteration of every
  enclosing group

Key formats (outermost index first):
    people_count        count of group 'people'
    name_2              child 'name' in iteration 2
    children_count_1    count of nested group 'children' in iteration 1
    age_1_0             child 'age' of 'children', outer 1, inner 0
"""

import logging
from dataclasses import replace
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from survey_engine.contracts import ParallelAnswer, ParallelBranchSettings
from survey_engine.core.resolution_evaluator import to_number
from survey_engine.results import CountAdjusted
from survey_engine.utils.helpers import count_key, flat_key
from survey_engine.utils.survey_limits import (
    DEFAULT_DISPLAY_MODE,
    DEFAULT_ITEM_LABEL,
    ERROR_MESSAGES,
    PARALLEL_BRANCH_LIMITS,
)

logger = logging.getLogger(__name__)

Answers = Dict[str, Any]
GroupPath = Sequence[Tuple[str, int]]


# =========================================================================
# Flat Projection
# =========================================================================

def on_answer_change(answers: Answers, key: str, value: Any) -> Answers:
    """
    Set one flat key, nothing else.

    Used by simple renderers that only know flat keys. No structural
    validation happens here; the next hierarchical write of the same
    group re-derives its flat keys from the tree.
    """
    return {**answers, key: value}


def project_flat_answers(group_id: str, answers: Answers) -> Answers:
    """
    Re-derive every flat key of a group from its tree.

    Returns:
        New answer map; unchanged copy when the group has no tree yet
    """
    tree = get_group_tree(group_id, answers)
    if tree is None:
        return dict(answers)

    projected = {count_key(group_id): tree.count}
    _project(tree, (), projected)
    return {**answers, **projected}


def _project(node: ParallelAnswer, prefix: Tuple[int, ...], out: Answers):
    for child_id, items in node.answers.items():
        for index, item in enumerate(items):
            indexes = prefix + (index,)
            if isinstance(item, ParallelAnswer):
                out[count_key(child_id, *indexes)] = item.count
                _project(item, indexes, out)
            else:
                out[flat_key(child_id, *indexes)] = item


# =========================================================================
# Counts
# =========================================================================

def get_group_tree(group_id: str, answers: Answers) -> Optional[ParallelAnswer]:
    """ParallelAnswer stored for a group (persisted dicts accepted), or None."""
    value = answers.get(group_id)
    if isinstance(value, ParallelAnswer):
        return value
    if ParallelAnswer.is_serialized(value):
        return ParallelAnswer.from_json(value)
    return None


def get_group_count(group_id: str, answers: Answers,
                    settings: Optional[ParallelBranchSettings] = None) -> int:
    """
    Current repetition count of a group.

    Order: tree count, flat '<group>_count' key, then the answer of the
    settings' source question. Anything non-numeric or negative is 0.
    """
    tree = get_group_tree(group_id, answers)
    if tree is not None:
        return max(tree.count, 0)

    raw = answers.get(count_key(group_id))
    if raw is None and settings is not None and settings.source_question_id:
        raw = answers.get(settings.source_question_id)

    number = to_number(raw)
    if number is None:
        return 0
    return max(int(number), 0)


def set_group_count(group_id: str, count: Any, answers: Answers,
                    settings: Optional[ParallelBranchSettings] = None) -> Answers:
    """
    Store a new repetition count for a group.

    When settings are given the count is clamped to them first. Answers of
    iterations beyond the new count stay in the tree.
    """
    count = _coerce_count(count, settings)
    tree = _tree_or_empty(group_id, answers)
    return _store(group_id, replace(tree, count=count), answers)


def set_nested_group_count(group_id: str, child_group_id: str, count: Any,
                           answers: Answers,
                           settings: Optional[ParallelBranchSettings] = None) -> Answers:
    """
    Set the count of a nested group for every iteration of its parent.

    The nested count is not per parent iteration: iterations
    0..count(group)-1 all receive the same count.
    """
    return set_deep_group_count([group_id], child_group_id, count, answers, settings)


def set_deep_group_count(ancestor_ids: Sequence[str], group_id: str, count: Any,
                         answers: Answers,
                         settings: Optional[ParallelBranchSettings] = None) -> Answers:
    """
    Set the count of a group nested at any depth.

    Every iteration of every ancestor level (0..count-1 at each level)
    receives the same count for group_id.

    Args:
        ancestor_ids: Enclosing groups, top-level group first
        group_id: Nested group whose count changes
        count: Requested count (clamped when settings are given)
        answers: Answer map

    Examples:
        set_deep_group_count(['people', 'children'], 'toys', 3, answers)
    """
    count = _coerce_count(count, settings)
    if not ancestor_ids:
        return set_group_count(group_id, count, answers)

    top_id = ancestor_ids[0]
    tree = _tree_or_empty(top_id, answers)
    updated = _set_count_below(tree, list(ancestor_ids[1:]), group_id, count)

    logger.debug(f"Nested group '{group_id}' count set to {count} under {' > '.join(ancestor_ids)}")
    return _store(top_id, updated, answers)


def adjust_group_count(requested: Any, settings: Union[ParallelBranchSettings, dict, None]) -> CountAdjusted:
    """
    Clamp a user-entered count to a group's min/max.

    Returns:
        CountAdjusted carrying a user-facing message when the count changed
    """
    settings = normalize_parallel_settings(settings)
    number = to_number(requested)
    wanted = int(number) if number is not None else settings.min_items

    if wanted > settings.max_items:
        message = ERROR_MESSAGES["MAX_PARALLEL_ITEMS"].format(max_items=settings.max_items)
        return CountAdjusted(wanted, settings.max_items, message)
    if wanted < settings.min_items:
        message = ERROR_MESSAGES["MIN_PARALLEL_ITEMS"].format(min_items=settings.min_items)
        return CountAdjusted(wanted, settings.min_items, message)
    return CountAdjusted(wanted, wanted)


def clamp_group_count(count: Any, settings: Union[ParallelBranchSettings, dict, None]) -> int:
    """
    Examples:
        >>> clamp_group_count(7, ParallelBranchSettings(max_items=5))
        5
    """
    return adjust_group_count(count, settings).count


def normalize_parallel_settings(settings: Union[ParallelBranchSettings, dict, None]) -> ParallelBranchSettings:
    """
    Bring parallel group settings inside 1 <= min <= max <= 30.

    Accepts a settings object or the persisted camelCase dict. Missing or
    non-numeric bounds fall back to the defaults; an empty item label
    becomes 'Item'.
    """
    if settings is None:
        settings = ParallelBranchSettings()
    elif isinstance(settings, dict):
        settings = ParallelBranchSettings(
            item_label=settings.get("itemLabel") or "",
            min_items=settings.get("minItems", PARALLEL_BRANCH_LIMITS['DEFAULT_MIN']),
            max_items=settings.get("maxItems", PARALLEL_BRANCH_LIMITS['DEFAULT_MAX']),
            display_mode=settings.get("displayMode") or DEFAULT_DISPLAY_MODE,
            source_question_id=settings.get("sourceQuestionId"),
            count_label=settings.get("countLabel"),
            count_description=settings.get("countDescription"),
            count_required=bool(settings.get("countRequired", False)),
        )

    lowest = PARALLEL_BRANCH_LIMITS['MIN_ITEMS']
    highest = PARALLEL_BRANCH_LIMITS['MAX_ITEMS']

    min_number = to_number(settings.min_items)
    max_number = to_number(settings.max_items)
    min_items = int(min_number) if min_number is not None else PARALLEL_BRANCH_LIMITS['DEFAULT_MIN']
    max_items = int(max_number) if max_number is not None else PARALLEL_BRANCH_LIMITS['DEFAULT_MAX']

    min_items = min(max(min_items, lowest), highest)
    max_items = min(max(max_items, min_items), highest)

    display_mode = settings.display_mode if settings.display_mode in ("sequential", "tabs") else DEFAULT_DISPLAY_MODE

    return replace(
        settings,
        item_label=settings.item_label or DEFAULT_ITEM_LABEL,
        min_items=min_items,
        max_items=max_items,
        display_mode=display_mode,
    )


# =========================================================================
# Reading and Writing
# =========================================================================

def read_group_answer(group_id: str, child_id: str, outer_index: int, answers: Answers) -> Any:
    """
    Answer of a child question in one iteration of a group.

    Leaf children are read from the flat key first, falling back to the
    tree. Nested group children return their ParallelAnswer.
    """
    tree = get_group_tree(group_id, answers)
    item = _at(tree.answers.get(child_id), outer_index) if tree is not None else None

    if isinstance(item, ParallelAnswer):
        return item

    key = flat_key(child_id, outer_index)
    if key in answers:
        return answers[key]
    return item


def write_group_answer(group_id: str, child_id: str, outer_index: int, value: Any,
                       answers: Answers) -> Answers:
    """
    Set a child's answer in one iteration of a group.

    The child's array is copied and padded with None up to outer_index;
    answers[group_id] is replaced with the new tree and the group's flat
    keys are re-derived. A negative index leaves the answers unchanged.
    """
    if outer_index < 0:
        logger.warning(f"Ignoring write of '{child_id}' in '{group_id}': negative iteration index {outer_index}")
        return dict(answers)

    tree = _tree_or_empty(group_id, answers)
    items = _padded(tree.answers.get(child_id, ()), outer_index + 1)
    items[outer_index] = value
    return _store(group_id, _with_items(tree, child_id, items), answers)


def read_nested_answer(answers: Answers, path: GroupPath, child_id: str) -> Any:
    """
    Answer of a child at any nesting depth.

    Args:
        answers: Answer map
        path: [(group_id, index), ...] from the top-level group inwards
        child_id: Question read inside the innermost group

    Examples:
        read_nested_answer(answers, [('people', 1), ('children', 0)], 'age')
    """
    if not path:
        return answers.get(child_id)

    top_id, index = path[0]
    node = get_group_tree(top_id, answers)
    if node is None:
        return None

    for group_id, inner_index in path[1:]:
        item = _at(node.answers.get(group_id), index)
        if not isinstance(item, ParallelAnswer):
            return None
        node, index = item, inner_index

    return _at(node.answers.get(child_id), index)


def write_nested_answer(answers: Answers, path: GroupPath, child_id: str, value: Any) -> Answers:
    """
    Set a child's answer at any nesting depth (see read_nested_answer).

    Missing intermediate ParallelAnswers are created with count 0. A path
    with a negative index leaves the answers unchanged.
    """
    if not path:
        return on_answer_change(answers, child_id, value)

    if any(index < 0 for _, index in path):
        logger.warning(f"Ignoring write of '{child_id}': negative iteration index in {list(path)}")
        return dict(answers)

    top_id, index = path[0]
    tree = _tree_or_empty(top_id, answers)
    return _store(top_id, _write_path(tree, list(path[1:]), index, child_id, value), answers)


def iter_group_answers(group_id: str, child_id: str, answers: Answers) -> List[Any]:
    """Child answers for iterations 0..count-1; stale iterations are skipped."""
    return [
        read_group_answer(group_id, child_id, index, answers)
        for index in range(get_group_count(group_id, answers))
    ]


def answers_to_json(answers: Answers) -> dict:
    """Answer map with every ParallelAnswer serialized to its dict form."""
    return {
        key: value.to_json() if isinstance(value, ParallelAnswer) else value
        for key, value in answers.items()
    }


# =========================================================================
# Helpers
# =========================================================================

def _coerce_count(count: Any, settings: Optional[ParallelBranchSettings]) -> int:
    if settings is not None:
        return clamp_group_count(count, settings)
    number = to_number(count)
    return max(int(number), 0) if number is not None else 0


def _tree_or_empty(group_id: str, answers: Answers) -> ParallelAnswer:
    tree = get_group_tree(group_id, answers)
    if tree is not None:
        return tree
    return ParallelAnswer(count=get_group_count(group_id, answers), answers={})


def _store(group_id: str, tree: ParallelAnswer, answers: Answers) -> Answers:
    return project_flat_answers(group_id, {**answers, group_id: tree})


def _write_path(node: ParallelAnswer, steps: List[Tuple[str, int]], index: int,
                child_id: str, value: Any) -> ParallelAnswer:
    if not steps:
        items = _padded(node.answers.get(child_id, ()), index + 1)
        items[index] = value
        return _with_items(node, child_id, items)

    group_id, inner_index = steps[0]
    items = _padded(node.answers.get(group_id, ()), index + 1)
    nested = items[index] if isinstance(items[index], ParallelAnswer) else ParallelAnswer()
    items[index] = _write_path(nested, steps[1:], inner_index, child_id, value)
    return _with_items(node, group_id, items)


def _set_count_below(node: ParallelAnswer, between: List[str], group_id: str,
                     count: int) -> ParallelAnswer:
    child_id = between[0] if between else group_id
    items = _padded(node.answers.get(child_id, ()), node.count)

    for index in range(node.count):
        nested = items[index] if isinstance(items[index], ParallelAnswer) else ParallelAnswer()
        if between:
            items[index] = _set_count_below(nested, between[1:], group_id, count)
        else:
            items[index] = replace(nested, count=count)

    return _with_items(node, child_id, items)


def _with_items(node: ParallelAnswer, child_id: str, items: List[Any]) -> ParallelAnswer:
    return replace(node, answers={**node.answers, child_id: tuple(items)})


def _padded(items: Sequence[Any], length: int) -> List[Any]:
    result = list(items or ())
    if len(result) < length:
        result.extend([None] * (length - len(result)))
    return result


def _at(items: Optional[Sequence[Any]], index: int) -> Any:
    if items is None or index < 0 or index >= len(items):
        return None
    return items[index]
