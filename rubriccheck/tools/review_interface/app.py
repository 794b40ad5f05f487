"""Flask JSON API for the rubric check interface."""

import asyncio
import logging

from flask import Flask, jsonify, request
from flask_cors import CORS

from rubriccheck.grading.models import ChatMessage, Status
from rubriccheck.grading.rubric_validator import check_rubric_quality
from rubriccheck.libs.errors import QuotaExceeded, RubricCheckError
from rubriccheck.libs.llm import LLMMessage
from .session import (
    ClearOverrides,
    EditDraft,
    FocusCriterion,
    LoadExample,
    OverrideStatus,
    ResetSession,
    SessionController,
    SetViewMode,
)

LOG = logging.getLogger(__name__)

app = Flask(__name__)
CORS(app)

# Global session controller instance
controller = None


def create_app(session_controller: SessionController):
    """
    Create and configure the Flask app.

    Args:
        session_controller: SessionController instance
    """
    global controller
    controller = session_controller

    LOG.info("Flask app created and configured")
    return app


def _state_response():
    return jsonify({
        'success': True,
        'state': controller.snapshot()
    })


@app.errorhandler(ValueError)
def handle_bad_request(e):
    return jsonify({'success': False, 'error': str(e)}), 400


@app.errorhandler(IndexError)
def handle_missing_criterion(e):
    return jsonify({'success': False, 'error': str(e)}), 404


@app.errorhandler(405)
def handle_method_not_allowed(e):
    return jsonify({'success': False, 'error': 'Method not allowed'}), 405


@app.route('/api/state', methods=['GET'])
def get_state():
    """Current session state."""
    return _state_response()


@app.route('/api/draft', methods=['PUT'])
def update_draft():
    """Edit one or more draft fields."""
    changes = request.get_json(silent=True) or {}
    controller.dispatch(EditDraft(changes))
    return _state_response()


@app.route('/api/draft/restore', methods=['POST'])
def restore_draft():
    """Bring back the last saved draft."""
    if controller.restore_draft() is None:
        return jsonify({
            'success': False,
            'error': 'No saved draft'
        }), 404
    return _state_response()


@app.route('/api/example', methods=['POST'])
def load_example():
    controller.dispatch(LoadExample())
    return _state_response()


@app.route('/api/reset', methods=['POST'])
def reset_session():
    controller.dispatch(ResetSession())
    return _state_response()


@app.route('/api/view-mode', methods=['PUT'])
def set_view_mode():
    mode = (request.get_json(silent=True) or {}).get('mode')
    controller.dispatch(SetViewMode(mode))
    return _state_response()


@app.route('/api/analyze', methods=['POST'])
def analyze():
    """Grade the current draft. Errors are reported through the session state."""
    asyncio.run(controller.run_analysis())
    return _state_response()


@app.route('/api/criteria/<int:index>/override', methods=['PUT'])
def override_status(index: int):
    """Set (or clear, with null) a manual status for one criterion."""
    payload = request.get_json(silent=True) or {}
    status = payload.get('status')
    controller.dispatch(OverrideStatus(index, Status(status) if status is not None else None))
    return _state_response()


@app.route('/api/criteria/overrides', methods=['DELETE'])
def clear_criteria_overrides():
    """Drop every manual status so the model's verdicts apply again."""
    controller.dispatch(ClearOverrides())
    return _state_response()


@app.route('/api/criteria/<int:index>/focus', methods=['POST'])
def focus_criterion(index: int):
    controller.dispatch(FocusCriterion(index))
    return _state_response()


@app.route('/api/criteria/<int:index>/highlights', methods=['GET'])
def get_highlights(index: int):
    """Highlight segments and markers for every searchable source."""
    annotated = controller.highlights(index)
    return jsonify({
        'success': True,
        'sources': [a.to_dict() for a in annotated]
    })


@app.route('/api/criteria/<int:index>/rewrites', methods=['POST'])
def get_rewrites(index: int):
    suggestions = asyncio.run(controller.suggest_rewrites(index))
    return jsonify({
        'success': True,
        'suggestions': suggestions
    })


@app.route('/api/chat', methods=['POST'])
def chat():
    """Answer a question about the current result."""
    payload = request.get_json(silent=True) or {}
    history = [ChatMessage.model_validate(m) for m in payload.get('messages', [])]
    if not history or history[-1].role != 'user':
        raise ValueError("The last chat message must come from the user")
    reply = asyncio.run(controller.chat(history))
    return jsonify({
        'success': True,
        'reply': reply
    })


@app.route('/api/score/animation', methods=['GET'])
def score_animation():
    """Count-up frames for the live score: ?frames=N&start=S."""
    frames = request.args.get('frames', 50, type=int)
    start = request.args.get('start', 0, type=int)
    return jsonify({
        'success': True,
        'frames': controller.score_animation(frames=frames, start=start)
    })


@app.route('/api/rubric/quality', methods=['GET'])
def rubric_quality():
    quality = check_rubric_quality(controller.state.draft.rubric_text)
    return jsonify({
        'success': True,
        'is_vague': quality.is_vague,
        'reasons': quality.reasons
    })


@app.route('/api/llm/chat', methods=['POST'])
def llm_chat():
    """Proxy to the chat-completion model: {messages, temperature} -> {content}."""
    payload = request.get_json(silent=True) or {}
    messages = [LLMMessage.model_validate(m) for m in payload.get('messages', [])]
    temperature = float(payload.get('temperature', 0.0))
    try:
        content = asyncio.run(controller.grader.client.complete(messages, temperature=temperature))
    except QuotaExceeded as e:
        return jsonify({'error': str(e)}), 429
    except RubricCheckError as e:
        LOG.error("LLM proxy call failed: %s", e)
        return jsonify({'error': str(e)}), 502
    return jsonify({'content': content})


def run_server(host='127.0.0.1', port=5000, debug=False):
    """
    Run the Flask development server.

    Args:
        host: Host to bind to
        port: Port to bind to
        debug: Whether to run in debug mode
    """
    app.run(host=host, port=port, debug=debug)
