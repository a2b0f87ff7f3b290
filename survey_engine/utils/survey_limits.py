"""
Survey limits - Authoring constants and user-facing messages

Responsibilities:
- Bounds for repeating (parallel) groups
- Defaults applied when a parallel group has partial settings
- User-facing rejection messages shown by the editor

Design principles:
- Single source of truth for limits (engine and adapter both read these)
- Plain constants, no behavior
"""

# Repeating group bounds: 1 <= min_items <= max_items <= MAX_ITEMS
PARALLEL_BRANCH_LIMITS = {
    'MIN_ITEMS': 1,
    'MAX_ITEMS': 30,
    'DEFAULT_MIN': 1,
    'DEFAULT_MAX': 5,
}

# Suffix of the flat key holding a group's repetition count
COUNT_SUFFIX = 'count'

# Defaults for ParallelBranchSettings fields missing from a document
DEFAULT_ITEM_LABEL = 'Item'
DEFAULT_DISPLAY_MODE = 'tabs'

# Only one resolution question per survey version
MAX_RESOLUTION_QUESTIONS = 1

ERROR_MESSAGES = {
    'MAX_PARALLEL_ITEMS': "Maximum {max_items} repetitions",
    'MIN_PARALLEL_ITEMS': "Minimum {min_items} repetitions",
    'TRANSITION_INTO_GROUP': (
        "Cannot connect to a question inside a repeating group; "
        "connect to the group itself instead"
    ),
    'SELF_LOOP': "A question cannot transition to itself",
    'UNKNOWN_QUESTION': "Question '{question_id}' does not exist",
    'SINGLE_RESOLUTION': "A survey can only have one resolution",
    'REQUIRED_MISSING': "Please answer all required questions",
}
