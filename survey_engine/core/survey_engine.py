"""
Survey Engine - Facade over one survey version document

Responsibilities:
- Load and validate a survey version (fail fast on structural problems)
- Bind the question list so callers only pass answers
- Route visibility, transition, resolution, repeating group and
  validation calls to the stateless core modules

Design principles:
- Immutable: authoring operations return a new SurveyEngine
- Stateless with respect to answers: every call receives the answer map
- Evaluation never raises for survey content; loading does
"""

import json
import logging
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from survey_engine.contracts import (
    Page,
    ParallelBranchSettings,
    Question,
    QuestionType,
    SurveyVersion,
)
from survey_engine.core import graph_guard, repeating_groups
from survey_engine.core.resolution_evaluator import resolve_resolution_question
from survey_engine.core.transition_resolver import (
    FlowEdge,
    build_flow_edges,
    find_start_question,
    resolve_transition,
)
from survey_engine.core.visibility_evaluator import get_visible_pages, get_visible_questions
from survey_engine.results import IllegalConnection, TransitionAdded
from survey_engine.utils.answer_validation import validate_page

logger = logging.getLogger(__name__)


class SurveyEngine:
    """
    Branching engine for a single survey version.

    Holds no answer state; the survey version itself is never modified.
    """

    def __init__(self, survey: SurveyVersion):
        """
        Args:
            survey: Survey version document

        Raises:
            ValueError: If the survey has structural problems (all listed)

        Stored transitions into missing or template questions only log a
        warning; missing targets are skipped when transitions resolve.
        """
        self.survey = survey
        self._by_id = {q.id: q for q in survey.questions}

        errors = graph_guard.validate_survey(survey)
        if errors:
            error_msg = "Survey validation failed:\n  - " + "\n  - ".join(errors)
            raise ValueError(error_msg)

        for warning in graph_guard.find_dangling_transitions(survey.questions):
            logger.warning(f"Survey '{survey.id}': {warning}")

        logger.info(
            f"Survey engine initialized for '{survey.id}' with "
            f"{len(survey.pages)} pages and {len(survey.questions)} questions"
        )

    @classmethod
    def from_json(cls, data: dict) -> "SurveyEngine":
        """
        Raises:
            ValueError: If a question type is unknown or validation fails
        """
        return cls(SurveyVersion.from_json(data))

    @classmethod
    def from_file(cls, survey_path: Union[str, Path]) -> "SurveyEngine":
        """
        Load a survey version from a JSON file.

        Raises:
            FileNotFoundError: If the file doesn't exist
            ValueError: If the document is invalid
        """
        survey_path = Path(survey_path)
        if not survey_path.exists():
            raise FileNotFoundError(f"Survey not found: {survey_path}")

        with open(survey_path, 'r', encoding='utf-8') as f:
            data = json.load(f)

        return cls.from_json(data)

    # =========================================================================
    # Lookup
    # =========================================================================

    @property
    def questions(self) -> List[Question]:
        return list(self.survey.questions)

    @property
    def pages(self) -> List[Page]:
        return list(self.survey.pages)

    def get_question(self, question_id: str) -> Optional[Question]:
        return self._by_id.get(question_id)

    def get_page(self, page_id: str) -> Optional[Page]:
        for page in self.survey.pages:
            if page.id == page_id:
                return page
        return None

    def page_questions(self, page_id: str) -> List[Question]:
        """Questions of a page in page order (empty for an unknown page)."""
        page = self.get_page(page_id)
        if page is None:
            logger.warning(f"Unknown page '{page_id}'")
            return []
        return [self._by_id[qid] for qid in page.question_ids if qid in self._by_id]

    def page_orders(self) -> Dict[str, List[str]]:
        """Question ids per page id, in each page's own order."""
        return {page.id: list(page.question_ids) for page in self.survey.pages}

    def resolution_question(self) -> Optional[Question]:
        for q in self.survey.questions:
            if q.type == QuestionType.RESOLUTION:
                return q
        return None

    # =========================================================================
    # Evaluation
    # =========================================================================

    def visible_pages(self, answers: Dict[str, Any]) -> List[Page]:
        return get_visible_pages(self.survey.pages, answers, self.survey.questions)

    def visible_questions(self, page_id: str, answers: Dict[str, Any]) -> List[Question]:
        return get_visible_questions(self.page_questions(page_id), answers, self.survey.questions)

    def start_question_id(self, page_id: str) -> Optional[str]:
        """First question of a page, repeating group template questions excluded."""
        templates = graph_guard.template_question_ids(self.survey.questions)
        start = find_start_question([q for q in self.page_questions(page_id) if q.id not in templates])
        return start.id if start is not None else None

    def next_question_id(self, question_id: str, answers: Dict[str, Any]) -> Optional[str]:
        """
        Next question after question_id, or None at the end of its page.

        Without a matching rule this is the following question in the
        page's question order. Unknown question ids return None (logged).
        """
        question = self._by_id.get(question_id)
        if question is None:
            logger.warning(f"Unknown question '{question_id}' in next_question_id")
            return None
        return resolve_transition(question, answers, self.survey.questions, self.page_orders())

    def resolution_text(self, answers: Dict[str, Any]) -> str:
        """Rendered resolution text ('' when the survey has no resolution question)."""
        question = self.resolution_question()
        if question is None:
            return ""
        return resolve_resolution_question(question, answers, self.survey.questions)

    def flow_edges(self) -> List[FlowEdge]:
        return build_flow_edges(self.survey.questions, self.page_orders())

    def validate_page(self, page_id: str, answers: Dict[str, Any]) -> List[str]:
        """Ids of required questions on the page that block moving on."""
        return validate_page(self.page_questions(page_id), answers, self.survey.questions)

    # =========================================================================
    # Repeating Groups
    # =========================================================================

    def group_settings(self, group_id: str) -> ParallelBranchSettings:
        question = self._by_id.get(group_id)
        if question is not None and isinstance(question.settings, ParallelBranchSettings):
            return question.settings
        return ParallelBranchSettings()

    def read_group_answer(self, group_id: str, child_id: str, index: int,
                          answers: Dict[str, Any]) -> Any:
        return repeating_groups.read_group_answer(group_id, child_id, index, answers)

    def write_group_answer(self, group_id: str, child_id: str, index: int, value: Any,
                           answers: Dict[str, Any]) -> Dict[str, Any]:
        return repeating_groups.write_group_answer(group_id, child_id, index, value, answers)

    def set_group_count(self, group_id: str, count: Any, answers: Dict[str, Any]) -> Dict[str, Any]:
        """
        Set a group's count, clamped to its settings.

        A group nested inside other groups (at any depth) gets the same
        count in every iteration of every enclosing group.
        """
        settings = self.group_settings(group_id)
        ancestors = self.enclosing_groups(group_id)
        if ancestors:
            return repeating_groups.set_deep_group_count(ancestors, group_id, count, answers, settings)
        return repeating_groups.set_group_count(group_id, count, answers, settings)

    def enclosing_groups(self, question_id: str) -> List[str]:
        """Ids of the groups around a question, top-level group first."""
        chain = []
        parent = graph_guard.find_parent_group(question_id, self.survey.questions)
        while parent is not None and parent.id not in chain:
            chain.append(parent.id)
            parent = graph_guard.find_parent_group(parent.id, self.survey.questions)
        return list(reversed(chain))

    # =========================================================================
    # Authoring
    # =========================================================================

    def connect(self, source_id: str, target_id: str, answer: str = "",
                condition: Optional[str] = None,
                value: Any = None) -> Union[TransitionAdded, IllegalConnection]:
        """Add a transition; apply the result with with_questions()."""
        return graph_guard.connect(self.survey.questions, source_id, target_id, answer, condition, value)

    def delete_question(self, question_id: str) -> "SurveyEngine":
        """New engine without the question (cascading through groups and pages)."""
        remaining = graph_guard.delete_question(self.survey.questions, question_id)
        return self.with_questions(remaining)

    def with_questions(self, questions) -> "SurveyEngine":
        """
        New engine over a changed question list.

        Page question id lists are pruned to questions that still exist.
        """
        remaining_ids = {q.id for q in questions}
        pages = tuple(
            replace(p, question_ids=tuple(qid for qid in p.question_ids if qid in remaining_ids))
            for p in self.survey.pages
        )
        return SurveyEngine(replace(self.survey, pages=pages, questions=tuple(questions)))
