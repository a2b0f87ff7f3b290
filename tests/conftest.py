"""
Shared fixtures: small survey documents built from plain dicts
"""

import json
from pathlib import Path

import pytest

from survey_engine.contracts import Question, SurveyVersion

DATA_DIR = Path(__file__).resolve().parent.parent / "data"


def make_question(**fields):
    """Question from camelCase fields; type defaults to text"""
    fields.setdefault("type", "text")
    return Question.from_json(fields)


def show_rule(question_id, condition_type, value=None, action="show", rule_id="r1"):
    """Single-condition visibility rule dict"""
    condition = {"type": condition_type, "questionId": question_id}
    if value is not None:
        condition["value"] = value
    return {
        "id": rule_id,
        "action": action,
        "groupsLogic": "AND",
        "groups": [{"id": f"{rule_id}-g", "logic": "AND", "conditions": [condition]}],
    }


@pytest.fixture
def example_survey_path():
    return DATA_DIR / "example_survey.json"


@pytest.fixture
def example_survey_data(example_survey_path):
    with open(example_survey_path, "r", encoding="utf-8") as f:
        return json.load(f)


@pytest.fixture
def linear_questions():
    """q1..q5 on one page; q2 jumps to q5 when answered 'yes'"""
    return [
        make_question(id="q1", pageId="p1"),
        make_question(
            id="q2",
            pageId="p1",
            type="radio",
            options=[{"id": "yes", "text": "Yes"}, {"id": "no", "text": "No"}],
            transitionRules=[{"id": "t1", "answer": "yes", "nextQuestionId": "q5"}],
        ),
        make_question(id="q3", pageId="p1"),
        make_question(id="q4", pageId="p1"),
        make_question(id="q5", pageId="p1"),
    ]


@pytest.fixture
def group_survey_data():
    """Household group 'people' with a nested group 'children'"""
    return {
        "id": "groups",
        "title": "Groups",
        "pages": [{"id": "p1", "title": "Household"}],
        "questions": [
            {"id": "intro", "pageId": "p1", "type": "text", "title": "Intro"},
            {
                "id": "people",
                "pageId": "p1",
                "type": "parallel_group",
                "required": True,
                "parallelQuestions": ["name", "children"],
                "settings": {"itemLabel": "Person", "minItems": 1, "maxItems": 5},
            },
            {"id": "name", "pageId": "p1", "type": "text", "required": True},
            {
                "id": "children",
                "pageId": "p1",
                "type": "parallel-group",
                "parallelQuestions": ["age"],
                "settings": {"itemLabel": "Child", "minItems": 1, "maxItems": 3},
            },
            {"id": "age", "pageId": "p1", "type": "number"},
            {"id": "outro", "pageId": "p1", "type": "text"},
        ],
    }


@pytest.fixture
def group_survey(group_survey_data):
    return SurveyVersion.from_json(group_survey_data)
