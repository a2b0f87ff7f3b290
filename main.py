"""
Console Test Harness for the survey branching engine

Walks a survey version in the terminal: pages in order, questions along
their transitions, repeating groups once per iteration, resolution at
the end.

Usage:
    python main.py [survey.json] [answers.json]

With an answers file nothing is asked; the harness reports what the
engine decides for those answers.
"""

import json
import logging
import sys

from survey_engine.contracts import QuestionType
from survey_engine.core.repeating_groups import answers_to_json, get_group_count, iter_group_answers
from survey_engine.core.survey_engine import SurveyEngine

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

DEFAULT_SURVEY_PATH = "data/example_survey.json"


def print_separator(char="=", length=60):
    """Print a separator line"""
    print(char * length)


def parse_input(question, raw):
    """Turn console input into an answer value for the question type"""
    if question.type == QuestionType.CHECKBOX:
        return [part.strip() for part in raw.split(",") if part.strip()]
    if question.type == QuestionType.NUMBER:
        try:
            return float(raw) if "." in raw else int(raw)
        except ValueError:
            return raw
    return raw


def ask(question, label=None):
    """Prompt for one answer"""
    print(f"\n{label or question.title or question.id}")
    if question.description:
        print(f"  {question.description}")
    for option in question.options:
        print(f"  [{option.id}] {option.text}")
    return parse_input(question, input("> ").strip())


def walk_page(engine, page, answers):
    """Ask visible questions of a page along their transitions"""
    question_id = engine.start_question_id(page.id)
    asked = set()

    while question_id is not None and question_id not in asked:
        asked.add(question_id)
        visible_ids = {q.id for q in engine.visible_questions(page.id, answers)}
        question = engine.get_question(question_id)

        if question.id in visible_ids:
            if question.type == QuestionType.PARALLEL_GROUP:
                answers = walk_group(engine, question, answers)
            elif question.type != QuestionType.RESOLUTION:
                answers = {**answers, question.id: ask(question)}

        question_id = engine.next_question_id(question_id, answers)

    return answers


def walk_group(engine, group, answers):
    """Ask the group count, then every child once per iteration"""
    settings = engine.group_settings(group.id)
    label = settings.count_label or f"How many {settings.item_label or 'items'}?"
    raw = input(f"\n{label} ({settings.min_items}-{settings.max_items})\n> ").strip()
    answers = engine.set_group_count(group.id, raw, answers)
    count = get_group_count(group.id, answers)

    for index in range(count):
        print_separator("-")
        print(f"{settings.item_label or group.title} {index + 1}")
        for child_id in group.parallel_questions:
            child = engine.get_question(child_id)
            if child is None:
                continue
            if child.type != QuestionType.PARALLEL_GROUP:
                answers = engine.write_group_answer(group.id, child_id, index, ask(child), answers)
            else:
                print(f"(nested group '{child_id}' skipped in console mode)")

    return answers


def report(engine, answers):
    """Print what the engine decides for a set of answers"""
    print_separator()
    print("RESULT")
    print_separator()

    for page in engine.visible_pages(answers):
        print(f"\nPage {page.id}: {page.title}")
        for question in engine.visible_questions(page.id, answers):
            print(f"  {question.id} -> next: {engine.next_question_id(question.id, answers)}")
            if question.type == QuestionType.PARALLEL_GROUP:
                for child_id in question.parallel_questions:
                    values = iter_group_answers(question.id, child_id, answers)
                    print(f"    {child_id}: {values}")
        missing = engine.validate_page(page.id, answers)
        if missing:
            print(f"  Missing required: {', '.join(missing)}")

    print(f"\nResolution: {engine.resolution_text(answers)}")
    print("\nAnswers:")
    print(json.dumps(answers_to_json(answers), indent=2, ensure_ascii=False))


def main():
    """Run console walk"""
    survey_path = sys.argv[1] if len(sys.argv) > 1 else DEFAULT_SURVEY_PATH
    answers_path = sys.argv[2] if len(sys.argv) > 2 else None

    print_separator()
    print("SURVEY ENGINE - CONSOLE TEST")
    print_separator()

    try:
        engine = SurveyEngine.from_file(survey_path)
    except (FileNotFoundError, ValueError) as e:
        print(f"\nFailed to load survey: {e}")
        return 1

    if answers_path:
        with open(answers_path, 'r', encoding='utf-8') as f:
            answers = json.load(f)
        report(engine, answers)
        return 0

    print("Press Ctrl+C to stop\n")
    answers = {}

    try:
        for page in engine.pages:
            if page.id not in {p.id for p in engine.visible_pages(answers)}:
                continue
            print_separator()
            print(page.title or page.id)
            print_separator()
            answers = walk_page(engine, page, answers)
    except KeyboardInterrupt:
        print("\n\nSurvey interrupted by user (Ctrl+C)")

    report(engine, answers)
    return 0


if __name__ == '__main__':
    sys.exit(main())
