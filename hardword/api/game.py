from flask import Blueprint, jsonify, request, current_app
from hardword.services import answers as answer_service
from hardword.services import participants as participant_service
from hardword.services import snapshots


game = Blueprint('game', __name__)

NO_STORE = {'Cache-Control': 'no-store, no-cache, must-revalidate'}


@game.route('/join', methods=['POST'])
def join_event():
    data = request.get_json(silent=True) or {}
    result = participant_service.join_event(data.get('event_code'), data.get('name'))
    return jsonify(result.to_dict()), 200 if result.rejoined else 201


@game.route('/game/<int:event_id>/current', methods=['GET'])
def get_current_question(event_id):
    return jsonify(snapshots.current_question(event_id)), 200, NO_STORE


@game.route('/game/<int:event_id>/leaderboard', methods=['GET'])
def get_leaderboard(event_id):
    return jsonify({'leaderboard': snapshots.leaderboard(event_id)}), 200, NO_STORE


@game.route('/answer', methods=['POST'])
def submit_answer():
    data = request.get_json(silent=True) or {}
    outcome = answer_service.submit_answer(
        data.get('question_id'),
        data.get('participant_id'),
        data.get('answer'),
    )
    if outcome.inactive:
        current_app.logger.info(f"[answer-late] question={data.get('question_id')} participant={data.get('participant_id')}")
        body = outcome.to_dict()
        body['error'] = outcome.message
        return jsonify(body), 400
    return jsonify(outcome.to_dict())
