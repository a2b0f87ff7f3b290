"""
Utility helpers for the survey engine

Simple utility functions for rule ids and answer-map keys.
"""

from survey_engine.utils.survey_limits import COUNT_SUFFIX


def default_rule_id(source_id, target_id):
    """
    Deterministic id for a synthesized linear transition.

    Examples:
        >>> default_rule_id('q1', 'q2')
        'default-q1-q2'
    """
    return f"default-{source_id}-{target_id}"


def connection_rule_id(source_id, target_id):
    """
    Id of a transition drawn on the canvas between two questions.

    Examples:
        >>> connection_rule_id('q1', 'q4')
        'q1-q4'
    """
    return f"{source_id}-{target_id}"


def flat_key(question_id, *indexes):
    """
    Flat answer-map key for a question inside repeating groups.

    Indexes are given outermost group first.

    Examples:
        >>> flat_key('name', 2)
        'name_2'
        >>> flat_key('age', 0, 1)
        'age_0_1'
        >>> flat_key('q1')
        'q1'
    """
    return "_".join([question_id, *(str(i) for i in indexes)])


def count_key(group_id, *indexes):
    """
    Flat answer-map key holding a repeating group's count.

    A nested group's count is suffixed with the outer iteration indexes.

    Examples:
        >>> count_key('people')
        'people_count'
        >>> count_key('children', 1)
        'children_count_1'
    """
    return flat_key(f"{group_id}_{COUNT_SUFFIX}", *indexes)
