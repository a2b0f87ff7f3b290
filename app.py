"""
Flask JSON adapter for the survey branching engine

Thin HTTP surface for the editor and survey-taking UIs. Every request
carries its own answers; the survey version is loaded once from
SURVEY_PATH. A request may also carry an inline 'survey' document, which
is used instead of the loaded one (the editor works on unsaved drafts).
"""

from flask import Flask, request, jsonify
import logging
import os

from survey_engine.contracts import SurveyVersion
from survey_engine.core.graph_guard import find_dangling_transitions, validate_survey
from survey_engine.core.repeating_groups import adjust_group_count, answers_to_json
from survey_engine.core.survey_engine import SurveyEngine
from survey_engine.results import IllegalConnection
from survey_engine.utils.survey_limits import ERROR_MESSAGES

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Initialize Flask app
app = Flask(__name__)
app.config['SURVEY_PATH'] = os.environ.get('SURVEY_PATH', 'data/example_survey.json')

# Survey loaded from SURVEY_PATH (loaded on first use)
loaded_survey = {
    'engine': None,
    'path': None,
}


def get_engine(data):
    """
    Engine for a request.

    Uses the inline 'survey' document when present, otherwise the survey
    at app.config['SURVEY_PATH'] (reloaded when the path changes).

    Raises:
        FileNotFoundError: If the configured survey doesn't exist
        ValueError: If the survey document is invalid
    """
    if data.get('survey'):
        return SurveyEngine.from_json(data['survey'])

    survey_path = app.config['SURVEY_PATH']
    if loaded_survey['engine'] is None or loaded_survey['path'] != survey_path:
        logger.info(f"Loading survey from {survey_path}")
        loaded_survey['engine'] = SurveyEngine.from_file(survey_path)
        loaded_survey['path'] = survey_path

    return loaded_survey['engine']


def read_body():
    """JSON body as a dict; answers default to {}."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValueError("Request body must be a JSON object")
    if not isinstance(data.setdefault('answers', {}), dict):
        raise ValueError("'answers' must be an object")
    return data


def require(data, *keys):
    missing = [key for key in keys if data.get(key) is None]
    if missing:
        raise ValueError(f"Missing field(s): {', '.join(missing)}")


def bad_request(message):
    return jsonify({
        'success': False,
        'error': message
    }), 400


def server_error(action, e):
    logger.error(f"Error {action}: {e}")
    return jsonify({
        'success': False,
        'error': str(e)
    }), 500


@app.route('/api/visibility', methods=['POST'])
def visibility():
    """Visible pages, plus visible questions of one page when page_id is given"""
    try:
        data = read_body()
        engine = get_engine(data)
        answers = data['answers']

        response = {
            'success': True,
            'visible_pages': [p.id for p in engine.visible_pages(answers)],
        }
        if data.get('page_id'):
            response['visible_questions'] = [
                q.id for q in engine.visible_questions(data['page_id'], answers)
            ]
        return jsonify(response)

    except ValueError as e:
        return bad_request(str(e))
    except Exception as e:
        return server_error("evaluating visibility", e)


@app.route('/api/transition', methods=['POST'])
def transition():
    """Next question after question_id"""
    try:
        data = read_body()
        require(data, 'question_id')
        engine = get_engine(data)

        return jsonify({
            'success': True,
            'next_question_id': engine.next_question_id(data['question_id'], data['answers']),
        })

    except ValueError as e:
        return bad_request(str(e))
    except Exception as e:
        return server_error("resolving transition", e)


@app.route('/api/resolution', methods=['POST'])
def resolution():
    """Rendered resolution text"""
    try:
        data = read_body()
        engine = get_engine(data)

        return jsonify({
            'success': True,
            'resolution': engine.resolution_text(data['answers']),
        })

    except ValueError as e:
        return bad_request(str(e))
    except Exception as e:
        return server_error("evaluating resolution", e)


@app.route('/api/groups/answer', methods=['POST'])
def group_answer():
    """Write one repeating group answer and return the updated answers"""
    try:
        data = read_body()
        require(data, 'group_id', 'child_id', 'index')
        engine = get_engine(data)

        answers = engine.write_group_answer(
            data['group_id'],
            data['child_id'],
            int(data['index']),
            data.get('value'),
            data['answers'],
        )
        return jsonify({
            'success': True,
            'answers': answers_to_json(answers),
        })

    except ValueError as e:
        return bad_request(str(e))
    except Exception as e:
        return server_error("writing group answer", e)


@app.route('/api/groups/count', methods=['POST'])
def group_count():
    """Set a repeating group's count (clamped to its settings)"""
    try:
        data = read_body()
        require(data, 'group_id', 'count')
        engine = get_engine(data)

        adjusted = adjust_group_count(data['count'], engine.group_settings(data['group_id']))
        answers = engine.set_group_count(data['group_id'], adjusted.count, data['answers'])

        return jsonify({
            'success': True,
            'count': adjusted.count,
            'message': adjusted.message,
            'answers': answers_to_json(answers),
        })

    except ValueError as e:
        return bad_request(str(e))
    except Exception as e:
        return server_error("setting group count", e)


@app.route('/api/connect', methods=['POST'])
def connect():
    """Add a transition between two questions"""
    try:
        data = read_body()
        require(data, 'source_id', 'target_id')
        engine = get_engine(data)

        result = engine.connect(
            data['source_id'],
            data['target_id'],
            answer=data.get('answer') or '',
            condition=data.get('condition'),
            value=data.get('value'),
        )

        if isinstance(result, IllegalConnection):
            return bad_request(result.reason)

        return jsonify({
            'success': True,
            'created': result.created,
            'rule': result.rule.to_json(),
            'questions': [q.to_json() for q in result.questions],
        })

    except ValueError as e:
        return bad_request(str(e))
    except Exception as e:
        return server_error("connecting questions", e)


@app.route('/api/validate', methods=['POST'])
def validate():
    """
    Validate a survey document, or the answers of one page when page_id is given
    """
    try:
        data = read_body()

        if data.get('page_id'):
            engine = get_engine(data)
            missing = engine.validate_page(data['page_id'], data['answers'])
            response = {
                'success': not missing,
                'missing': missing,
            }
            if missing:
                response['error'] = ERROR_MESSAGES['REQUIRED_MISSING']
            return jsonify(response)

        require(data, 'survey')
        survey = SurveyVersion.from_json(data['survey'])
        errors = validate_survey(survey)
        return jsonify({
            'success': not errors,
            'errors': errors,
            'warnings': find_dangling_transitions(survey.questions),
        })

    except ValueError as e:
        return bad_request(str(e))
    except Exception as e:
        return server_error("validating", e)


if __name__ == '__main__':
    print("\n" + "="*60)
    print("SURVEY BRANCHING ENGINE - JSON API")
    print("="*60)
    print(f"\nSurvey: {app.config['SURVEY_PATH']}")
    print("Listening on: http://localhost:5000")
    print("\nPress Ctrl+C to stop the server")
    print("="*60 + "\n")

    app.run(debug=True, host='0.0.0.0', port=5000)
