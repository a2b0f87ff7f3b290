"""
Semantic contracts for the survey branching engine.

This module defines immutable data structures that serve as contracts
between the engine and its collaborators (editor UI, survey-taking UI,
storage layer). These are NOT validators - they define shape and
semantics without enforcing rules.

Design principles:
- Frozen dataclasses (immutable after creation)
- No validation logic (contracts, not validators)
- No dependencies on other modules
- JSON in/out via from_json()/to_json() using the persisted camelCase keys

Contents:
- QuestionType, Logic, RuleAction, DisplayMode: closed vocabularies
- Option, TransitionRule: per-question branching data
- VisibilityCondition, VisibilityGroup, VisibilityRule: show/hide rules
- ResolutionCondition, ResolutionRule: first-match outcome rules
- *Settings: one settings variant per question type
- Question, Page, SurveyVersion: the survey version document
- ParallelAnswer: recursive answer structure for repeating groups

Usage:
    from survey_engine.contracts import Question, QuestionType, SurveyVersion
"""

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple, Union


class QuestionType(str, Enum):
    """Closed set of question types."""
    TEXT = "text"
    NUMBER = "number"
    RADIO = "radio"
    CHECKBOX = "checkbox"
    SELECT = "select"
    DATE = "date"
    EMAIL = "email"
    PHONE = "phone"
    PARALLEL_GROUP = "parallel_group"
    RESOLUTION = "resolution"

    @classmethod
    def parse(cls, value: str) -> "QuestionType":
        """
        Parse a persisted type string.

        Accepts both 'parallel_group' and 'parallel-group' spellings.

        Raises:
            ValueError: If value is not a known question type
        """
        if isinstance(value, cls):
            return value
        return cls(str(value).strip().lower().replace("-", "_"))


class Logic(str, Enum):
    """Boolean combinator for conditions and groups."""
    AND = "AND"
    OR = "OR"


class RuleAction(str, Enum):
    """What a visibility rule does when it fires."""
    SHOW = "show"
    HIDE = "hide"


class DisplayMode(str, Enum):
    """How repetitions of a parallel group are laid out."""
    SEQUENTIAL = "sequential"
    TABS = "tabs"


# Question types whose answers are option ids
CHOICE_TYPES = frozenset({QuestionType.RADIO, QuestionType.CHECKBOX, QuestionType.SELECT})


def _tuple(items) -> tuple:
    return tuple(items or ())


def _raw(value):
    """Plain string for either an Enum member or an already-raw value."""
    return value.value if isinstance(value, Enum) else value


# =============================================================================
# Branching and rule contracts
# =============================================================================

@dataclass(frozen=True)
class Option:
    """Answer option of a choice question."""
    id: str
    text: str = ""

    @staticmethod
    def from_json(data: dict) -> "Option":
        return Option(id=str(data.get("id", "")), text=data.get("text", ""))

    def to_json(self) -> dict:
        return {"id": self.id, "text": self.text}


@dataclass(frozen=True)
class TransitionRule:
    """
    Per-question directive selecting the next question.

    Attributes:
        id: Rule identifier
        next_question_id: Target question id
        answer: Answer this rule matches. Empty string with no condition
            means the rule is unconditional (synthesized default rules).
        condition: Optional comparison ('equals', 'not_equals',
            'greater_than', 'less_than', 'contains')
        value: Comparand for condition. None means compare against answer.
    """
    id: str
    next_question_id: str
    answer: str = ""
    condition: Optional[str] = None
    value: Any = None

    @staticmethod
    def from_json(data: dict) -> "TransitionRule":
        # The canvas historically wrote targetQuestionId
        target = data.get("nextQuestionId") or data.get("targetQuestionId") or ""
        answer = data.get("answer")
        return TransitionRule(
            id=str(data.get("id", "")),
            next_question_id=target,
            answer="" if answer is None else answer,
            condition=data.get("condition"),
            value=data.get("value"),
        )

    def to_json(self) -> dict:
        data = {"id": self.id, "answer": self.answer, "nextQuestionId": self.next_question_id}
        if self.condition is not None:
            data["condition"] = self.condition
        if self.value is not None:
            data["value"] = self.value
        return data


@dataclass(frozen=True)
class VisibilityCondition:
    """
    Single visibility condition.

    type is kept as the raw persisted string so that unknown condition
    types survive loading and are reported at evaluation time.
    """
    type: str
    question_id: str
    value: Any = None

    @staticmethod
    def from_json(data: dict) -> "VisibilityCondition":
        return VisibilityCondition(
            type=data.get("type", ""),
            question_id=data.get("questionId", ""),
            value=data.get("value"),
        )

    def to_json(self) -> dict:
        data = {"type": self.type, "questionId": self.question_id}
        if self.value is not None:
            data["value"] = self.value
        return data


@dataclass(frozen=True)
class VisibilityGroup:
    """Conditions combined with AND/OR."""
    id: str
    logic: str = Logic.AND.value
    conditions: Tuple[VisibilityCondition, ...] = ()

    @staticmethod
    def from_json(data: dict) -> "VisibilityGroup":
        return VisibilityGroup(
            id=str(data.get("id", "")),
            logic=data.get("logic", Logic.AND.value),
            conditions=tuple(VisibilityCondition.from_json(c) for c in data.get("conditions") or ()),
        )

    def to_json(self) -> dict:
        return {
            "id": self.id,
            "logic": _raw(self.logic),
            "conditions": [c.to_json() for c in self.conditions],
        }


@dataclass(frozen=True)
class VisibilityRule:
    """Show/hide directive gated by condition groups."""
    id: str
    action: str
    groups: Tuple[VisibilityGroup, ...] = ()
    groups_logic: str = Logic.AND.value

    @staticmethod
    def from_json(data: dict) -> "VisibilityRule":
        return VisibilityRule(
            id=str(data.get("id", "")),
            action=data.get("action", RuleAction.SHOW.value),
            groups=tuple(VisibilityGroup.from_json(g) for g in data.get("groups") or ()),
            groups_logic=data.get("groupsLogic", Logic.AND.value),
        )

    def to_json(self) -> dict:
        return {
            "id": self.id,
            "action": _raw(self.action),
            "groups": [g.to_json() for g in self.groups],
            "groupsLogic": _raw(self.groups_logic),
        }


@dataclass(frozen=True)
class ResolutionCondition:
    """One comparison inside a resolution rule."""
    question_id: str
    operator: str
    value: Any = None

    @staticmethod
    def from_json(data: dict) -> "ResolutionCondition":
        return ResolutionCondition(
            question_id=data.get("questionId", ""),
            operator=data.get("operator", "=="),
            value=data.get("value"),
        )

    def to_json(self) -> dict:
        return {"questionId": self.question_id, "operator": self.operator, "value": self.value}


@dataclass(frozen=True)
class ResolutionRule:
    """Ordered first-match rule producing the final outcome text."""
    id: str
    conditions: Tuple[ResolutionCondition, ...] = ()
    logic: str = Logic.AND.value
    result_text: str = ""

    @staticmethod
    def from_json(data: dict) -> "ResolutionRule":
        return ResolutionRule(
            id=str(data.get("id", "")),
            conditions=tuple(ResolutionCondition.from_json(c) for c in data.get("conditions") or ()),
            logic=data.get("logic", Logic.AND.value),
            result_text=data.get("resultText", ""),
        )

    def to_json(self) -> dict:
        return {
            "id": self.id,
            "conditions": [c.to_json() for c in self.conditions],
            "logic": _raw(self.logic),
            "resultText": self.result_text,
        }


# =============================================================================
# Settings variants (one per question type)
# =============================================================================

@dataclass(frozen=True)
class EmptySettings:
    """Settings for types that carry none (radio, checkbox, email, resolution)."""
    pass


@dataclass(frozen=True)
class TextSettings:
    input_mask: Optional[str] = None
    placeholder: Optional[str] = None
    max_length: Optional[int] = None
    show_title_inside: bool = False


@dataclass(frozen=True)
class NumberSettings:
    min: Optional[float] = None
    max: Optional[float] = None
    step: Optional[float] = None


@dataclass(frozen=True)
class DateSettings:
    format: str = "DD.MM.YYYY"


@dataclass(frozen=True)
class PhoneSettings:
    country_code: str = "+7"
    mask: str = "(###) ###-##-##"


@dataclass(frozen=True)
class SelectSettings:
    default_option_id: Optional[str] = None
    placeholder: Optional[str] = None


@dataclass(frozen=True)
class ParallelBranchSettings:
    """
    Settings of a repeating (parallel) group.

    Invariant (enforced at the authoring boundary, not here):
    1 <= min_items <= max_items <= 30
    """
    item_label: str = ""
    min_items: int = 1
    max_items: int = 5
    display_mode: str = DisplayMode.TABS.value
    source_question_id: Optional[str] = None
    count_label: Optional[str] = None
    count_description: Optional[str] = None
    count_required: bool = False


QuestionSettings = Union[
    EmptySettings, TextSettings, NumberSettings, DateSettings,
    PhoneSettings, SelectSettings, ParallelBranchSettings,
]

# type -> (settings class, camelCase json key -> attribute)
_SETTINGS_SCHEMA = {
    QuestionType.TEXT: (TextSettings, {
        "inputMask": "input_mask", "placeholder": "placeholder",
        "maxLength": "max_length", "showTitleInside": "show_title_inside",
    }),
    QuestionType.NUMBER: (NumberSettings, {"min": "min", "max": "max", "step": "step"}),
    QuestionType.DATE: (DateSettings, {"format": "format"}),
    QuestionType.PHONE: (PhoneSettings, {"countryCode": "country_code", "mask": "mask"}),
    QuestionType.SELECT: (SelectSettings, {
        "defaultOptionId": "default_option_id", "placeholder": "placeholder",
    }),
    QuestionType.PARALLEL_GROUP: (ParallelBranchSettings, {
        "itemLabel": "item_label", "minItems": "min_items", "maxItems": "max_items",
        "displayMode": "display_mode", "sourceQuestionId": "source_question_id",
        "countLabel": "count_label", "countDescription": "count_description",
        "countRequired": "count_required",
    }),
}


def settings_from_json(question_type: QuestionType, data: Optional[dict]) -> QuestionSettings:
    """
    Build the settings variant for a question type.

    Unknown keys are ignored; None values fall back to the variant defaults.

    Args:
        question_type: Type of the owning question
        data: Persisted settings dict (may be None)

    Returns:
        Settings instance of the variant matching question_type
    """
    schema = _SETTINGS_SCHEMA.get(QuestionType.parse(question_type))
    if schema is None:
        return EmptySettings()

    settings_class, key_map = schema
    kwargs = {}
    for json_key, attr in key_map.items():
        if data and data.get(json_key) is not None:
            kwargs[attr] = data[json_key]
    return settings_class(**kwargs)


def settings_to_json(settings: QuestionSettings) -> dict:
    """Serialize a settings variant back to its camelCase dict (None values dropped)."""
    for settings_class, key_map in _SETTINGS_SCHEMA.values():
        if isinstance(settings, settings_class):
            values = asdict(settings)
            return {
                json_key: values[attr]
                for json_key, attr in key_map.items()
                if values[attr] is not None
            }
    return {}


# =============================================================================
# Survey document
# =============================================================================

@dataclass(frozen=True)
class Question:
    """
    Immutable question of a survey version.

    parallel_questions is only meaningful for PARALLEL_GROUP questions;
    resolution_rules/default_resolution only for RESOLUTION questions.
    """
    id: str
    type: QuestionType
    page_id: str = ""
    title: str = ""
    description: Optional[str] = None
    required: bool = False
    options: Tuple[Option, ...] = ()
    settings: QuestionSettings = field(default_factory=EmptySettings)
    transition_rules: Tuple[TransitionRule, ...] = ()
    parallel_questions: Tuple[str, ...] = ()
    visibility_rules: Tuple[VisibilityRule, ...] = ()
    resolution_rules: Tuple[ResolutionRule, ...] = ()
    default_resolution: str = ""

    @staticmethod
    def from_json(data: dict) -> "Question":
        """
        Deserialize from the persisted question dict.

        Raises:
            ValueError: If type is not a known question type
        """
        question_type = QuestionType.parse(data.get("type", ""))
        return Question(
            id=str(data.get("id", "")),
            type=question_type,
            page_id=data.get("pageId") or "",
            title=data.get("title", ""),
            description=data.get("description"),
            required=bool(data.get("required", False)),
            options=tuple(Option.from_json(o) for o in data.get("options") or ()),
            settings=settings_from_json(question_type, data.get("settings")),
            transition_rules=tuple(TransitionRule.from_json(r) for r in data.get("transitionRules") or ()),
            parallel_questions=_tuple(data.get("parallelQuestions")),
            visibility_rules=tuple(VisibilityRule.from_json(r) for r in data.get("visibilityRules") or ()),
            resolution_rules=tuple(ResolutionRule.from_json(r) for r in data.get("resolutionRules") or ()),
            default_resolution=data.get("defaultResolution") or "",
        )

    def to_json(self) -> dict:
        data = {
            "id": self.id,
            "pageId": self.page_id,
            "title": self.title,
            "type": self.type.value,
            "required": self.required,
        }
        if self.description is not None:
            data["description"] = self.description
        if self.options:
            data["options"] = [o.to_json() for o in self.options]
        settings = settings_to_json(self.settings)
        if settings:
            data["settings"] = settings
        if self.transition_rules:
            data["transitionRules"] = [r.to_json() for r in self.transition_rules]
        if self.parallel_questions:
            data["parallelQuestions"] = list(self.parallel_questions)
        if self.visibility_rules:
            data["visibilityRules"] = [r.to_json() for r in self.visibility_rules]
        if self.type == QuestionType.RESOLUTION:
            data["resolutionRules"] = [r.to_json() for r in self.resolution_rules]
            data["defaultResolution"] = self.default_resolution
        return data


@dataclass(frozen=True)
class Page:
    """Survey page: ordered question ids plus optional visibility rules."""
    id: str
    title: str = ""
    question_ids: Tuple[str, ...] = ()
    visibility_rules: Tuple[VisibilityRule, ...] = ()

    @staticmethod
    def from_json(data: dict) -> "Page":
        # Older documents embed whole question objects under 'questions'
        question_ids = data.get("questionIds")
        if question_ids is None:
            question_ids = [
                q.get("id") if isinstance(q, dict) else q
                for q in data.get("questions") or ()
            ]
        return Page(
            id=str(data.get("id", "")),
            title=data.get("title", ""),
            question_ids=_tuple(question_ids),
            visibility_rules=tuple(VisibilityRule.from_json(r) for r in data.get("visibilityRules") or ()),
        )

    def to_json(self) -> dict:
        data = {"id": self.id, "title": self.title, "questionIds": list(self.question_ids)}
        if self.visibility_rules:
            data["visibilityRules"] = [r.to_json() for r in self.visibility_rules]
        return data


@dataclass(frozen=True)
class SurveyVersion:
    """
    One version of a survey: pages plus the flat question list.

    Questions are assigned to pages through Question.page_id. When a page
    does not list its question ids explicitly, the order of the questions
    list is used.
    """
    id: str
    title: str = ""
    pages: Tuple[Page, ...] = ()
    questions: Tuple[Question, ...] = ()

    @staticmethod
    def from_json(data: dict) -> "SurveyVersion":
        questions = tuple(Question.from_json(q) for q in data.get("questions") or ())
        pages = []
        for page_data in data.get("pages") or ():
            page = Page.from_json(page_data)
            if not page.question_ids:
                page = Page(
                    id=page.id,
                    title=page.title,
                    question_ids=tuple(q.id for q in questions if q.page_id == page.id),
                    visibility_rules=page.visibility_rules,
                )
            pages.append(page)
        return SurveyVersion(
            id=str(data.get("id", "")),
            title=data.get("title", ""),
            pages=tuple(pages),
            questions=questions,
        )

    def to_json(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "pages": [p.to_json() for p in self.pages],
            "questions": [q.to_json() for q in self.questions],
        }


# =============================================================================
# Repeating group answers
# =============================================================================

@dataclass(frozen=True)
class ParallelAnswer:
    """
    Hierarchical answer of a repeating group.

    answers maps sub-question id to a tuple indexed by repetition. Each
    element is either a leaf answer (str, number, list, None) or, when the
    sub-question is itself a parallel group, a nested ParallelAnswer.

    Persisted inside the flat answer map as {"count": n, "answers": {...}}.
    """
    count: int = 0
    answers: Mapping[str, Tuple[Any, ...]] = field(default_factory=dict)

    @staticmethod
    def is_serialized(value: Any) -> bool:
        """True if value looks like a persisted ParallelAnswer dict."""
        return isinstance(value, dict) and "count" in value and isinstance(value.get("answers"), dict)

    @staticmethod
    def from_json(data: Optional[dict]) -> "ParallelAnswer":
        if isinstance(data, ParallelAnswer):
            return data
        if not data:
            return ParallelAnswer()

        answers: Dict[str, Tuple[Any, ...]] = {}
        for child_id, items in (data.get("answers") or {}).items():
            answers[child_id] = tuple(
                ParallelAnswer.from_json(item) if ParallelAnswer.is_serialized(item) else item
                for item in items or ()
            )

        try:
            count = int(data.get("count") or 0)
        except (TypeError, ValueError, OverflowError):
            count = 0
        return ParallelAnswer(count=count, answers=answers)

    def to_json(self) -> dict:
        return {
            "count": self.count,
            "answers": {
                child_id: [
                    item.to_json() if isinstance(item, ParallelAnswer) else item
                    for item in items
                ]
                for child_id, items in self.answers.items()
            },
        }
