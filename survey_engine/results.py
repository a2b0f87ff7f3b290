"""
Result types returned by authoring operations (connect, count changes)

These are the ONLY return types of operations that may be refused. A
refusal is a value, not an exception, so the editor can show its reason.
"""

from dataclasses import dataclass
from typing import Tuple

from survey_engine.contracts import Question, TransitionRule


@dataclass(frozen=True)
class TransitionAdded:
    """
    Transition accepted by GraphGuard.

    Returned by: connect

    Attributes:
        questions: Full question list after the change
        rule: The rule now connecting source and target
        created: False when the (source, target) pair already existed and
            the question list is unchanged
    """
    questions: Tuple[Question, ...]
    rule: TransitionRule
    created: bool


@dataclass(frozen=True)
class IllegalConnection:
    """
    Transition rejected by GraphGuard (authoring mistake).

    Examples:
    - target only exists inside a repeating group template
    - source and target are the same question
    - source or target does not exist

    Attributes:
        reason: User-facing explanation
        source_id: Requested source question
        target_id: Requested target question
    """
    reason: str
    source_id: str
    target_id: str


@dataclass(frozen=True)
class CountAdjusted:
    """
    Repetition count after passing the authoring boundary.

    Attributes:
        requested: Count the user entered
        count: Count actually stored (clamped to the group's settings)
        message: User-facing note when the count was changed, else None
    """
    requested: int
    count: int
    message: str = None

    @property
    def was_clamped(self) -> bool:
        return self.requested != self.count
