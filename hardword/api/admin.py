from flask import Blueprint, jsonify, request
from flask_login import login_required
from hardword.models import Participant
from hardword.services import events as event_service
from hardword.services import lifecycle
from hardword.services import snapshots


admin = Blueprint('admin', __name__)


@admin.before_request
@login_required
def require_host():
    """Every host route needs the session cookie set by /api/admin/login."""
    return None


@admin.route('/events', methods=['GET'])
def list_events():
    return jsonify({'events': [e.to_dict() for e in event_service.list_events()]})


@admin.route('/events', methods=['POST'])
def create_event():
    data = request.get_json(silent=True) or {}
    event = event_service.create_event(data.get('name'))
    return jsonify({'event': event.to_dict()}), 201


@admin.route('/events/<int:event_id>', methods=['GET'])
def get_event(event_id):
    event = event_service.get_event(event_id)
    participants = (
        Participant.query.filter_by(event_id=event.id)
        .order_by(Participant.score.desc(), Participant.joined_at.asc())
        .all()
    )
    payload = {
        'event': event.to_dict(),
        'questions': [q.to_dict() for q in event.questions],
        'participants': [p.to_dict() for p in participants],
        'current_answers': [],
    }
    answers_for = request.args.get('answers_for', type=int)
    if answers_for:
        payload['current_answers'] = snapshots.correct_answers(answers_for)
    return jsonify(payload)


@admin.route('/events/<int:event_id>', methods=['PUT'])
def rename_event(event_id):
    data = request.get_json(silent=True) or {}
    event = event_service.rename_event(event_id, data.get('name'))
    return jsonify({'event': event.to_dict()})


@admin.route('/events/<int:event_id>', methods=['DELETE'])
def delete_event(event_id):
    event_service.delete_event(event_id)
    return jsonify({'success': True})


@admin.route('/events/<int:event_id>/questions', methods=['POST'])
def add_question(event_id):
    data = request.get_json(silent=True) or {}
    question = event_service.add_question(event_id, data.get('question_text'), data.get('answer'))
    return jsonify({'question': question.to_dict()}), 201


@admin.route('/events/<int:event_id>/questions', methods=['DELETE'])
def remove_question(event_id):
    data = request.get_json(silent=True) or {}
    event_service.remove_question(event_id, data.get('question_id'))
    return jsonify({'success': True})


@admin.route('/events/<int:event_id>/control', methods=['POST'])
def control_event(event_id):
    data = request.get_json(silent=True) or {}
    result = lifecycle.apply_action(event_id, data.get('action'))
    return jsonify(result.to_dict())
