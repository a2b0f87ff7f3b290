"""
Test contracts - parsing persisted survey documents
"""

import pytest

from survey_engine.contracts import (
    EmptySettings,
    ParallelAnswer,
    ParallelBranchSettings,
    PhoneSettings,
    Question,
    QuestionType,
    SurveyVersion,
    TransitionRule,
    VisibilityRule,
    settings_to_json,
)


def test_question_type_spellings():
    assert QuestionType.parse("parallel-group") is QuestionType.PARALLEL_GROUP
    assert QuestionType.parse("Radio") is QuestionType.RADIO

    with pytest.raises(ValueError):
        QuestionType.parse("slider")


def test_settings_variant_by_type():
    group = Question.from_json({
        "id": "g",
        "type": "parallel_group",
        "settings": {"itemLabel": "Pet", "maxItems": 3, "unknownKey": 1},
    })
    assert group.settings == ParallelBranchSettings(item_label="Pet", max_items=3)

    phone = Question.from_json({"id": "p", "type": "phone", "settings": {"countryCode": "+1"}})
    assert isinstance(phone.settings, PhoneSettings)
    assert phone.settings.country_code == "+1"

    radio = Question.from_json({"id": "r", "type": "radio", "settings": {"anything": True}})
    assert radio.settings == EmptySettings()


def test_settings_to_json_drops_none():
    assert settings_to_json(ParallelBranchSettings(item_label="Pet")) == {
        "itemLabel": "Pet",
        "minItems": 1,
        "maxItems": 5,
        "displayMode": "tabs",
        "countRequired": False,
    }


def test_transition_rule_accepts_target_question_id():
    rule = TransitionRule.from_json({"id": "t", "answer": None, "targetQuestionId": "q9"})
    assert rule.next_question_id == "q9"
    assert rule.answer == ""


def test_visibility_rule_to_json_uses_raw_values():
    rule = VisibilityRule.from_json({"id": "r", "action": "hide", "groups": []})
    assert rule.to_json() == {"id": "r", "action": "hide", "groups": [], "groupsLogic": "AND"}


def test_question_to_json_round_trip():
    data = {
        "id": "q",
        "pageId": "p1",
        "title": "Pick",
        "type": "radio",
        "required": True,
        "options": [{"id": "a", "text": "A"}],
        "transitionRules": [{"id": "t", "answer": "a", "nextQuestionId": "z"}],
    }
    assert Question.from_json(data).to_json() == data


def test_page_question_ids_from_question_order():
    survey = SurveyVersion.from_json({
        "id": "s",
        "pages": [{"id": "p1"}, {"id": "p2", "questionIds": ["c", "b"]}],
        "questions": [
            {"id": "a", "pageId": "p1", "type": "text"},
            {"id": "b", "pageId": "p2", "type": "text"},
            {"id": "c", "pageId": "p2", "type": "text"},
            {"id": "d", "pageId": "p1", "type": "text"},
        ],
    })
    assert survey.pages[0].question_ids == ("a", "d")
    assert survey.pages[1].question_ids == ("c", "b")


def test_page_with_embedded_questions():
    survey = SurveyVersion.from_json({
        "id": "s",
        "pages": [{"id": "p1", "questions": [{"id": "a"}, {"id": "b"}]}],
        "questions": [{"id": "a", "type": "text"}, {"id": "b", "type": "text"}],
    })
    assert survey.pages[0].question_ids == ("a", "b")


def test_parallel_answer_from_json_is_recursive():
    answer = ParallelAnswer.from_json({
        "count": "2",
        "answers": {"name": ["a", "b"], "kids": [{"count": 1, "answers": {"age": [3]}}]},
    })
    assert answer.count == 2
    assert answer.answers["name"] == ("a", "b")
    assert answer.answers["kids"][0] == ParallelAnswer(count=1, answers={"age": (3,)})
    assert ParallelAnswer.from_json({"count": "x", "answers": {}}).count == 0


def test_parallel_answer_infinite_count_is_zero():
    assert ParallelAnswer.from_json({"count": float("inf"), "answers": {}}).count == 0
