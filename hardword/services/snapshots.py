"""Read-side snapshots polled by players and the presentation view.

These are the authoritative state clients re-fetch whenever a notification
arrives or their poll timer fires. Nothing here ever exposes a canonical
answer to players.
"""
from sqlalchemy import func

from hardword import db
from hardword.models import Answer, Participant, Question, STATUS_ACTIVE
from hardword.services.events import get_event
from hardword.services.scoring import answer_pattern
from hardword.utils import isoformat


def current_question(event_id) -> dict:
    event = get_event(event_id)
    total = Question.query.filter_by(event_id=event.id).count()
    snapshot = {
        'event_status': event.status,
        'event_name': event.name,
        'total_questions': total,
        'current_question': None,
    }
    if event.status != STATUS_ACTIVE or not event.current_question_id:
        return snapshot

    question = db.session.get(Question, event.current_question_id)
    if not question:
        return snapshot
    snapshot['current_question'] = {
        'id': question.id,
        'text': question.question_text,
        'answer_pattern': answer_pattern(question.answer),
        'order': question.question_order,
        'index': event.current_question_index,
        'total': total,
        'started_at': isoformat(question.started_at),
    }
    return snapshot


def leaderboard(event_id) -> list:
    event = get_event(event_id)
    totals = dict(
        db.session.query(Answer.participant_id, func.sum(Answer.time_taken_ms))
        .join(Question, Question.id == Answer.question_id)
        .filter(
            Question.event_id == event.id,
            Answer.is_correct.is_(True),
            Answer.time_taken_ms.isnot(None),
        )
        .group_by(Answer.participant_id)
        .all()
    )
    participants = Participant.query.filter_by(event_id=event.id).all()

    rows = [
        {
            'participant_id': p.id,
            'name': p.name,
            'score': p.score,
            'total_time_ms': int(totals[p.id]) if totals.get(p.id) is not None else None,
            '_joined': (p.joined_at, p.id),
        }
        for p in participants
    ]
    # Score desc, then faster cumulative time, unknown times last
    rows.sort(key=lambda r: (
        -r['score'],
        r['total_time_ms'] is None,
        r['total_time_ms'] or 0,
        r['_joined'],
    ))
    for row in rows:
        del row['_joined']
    return rows


def correct_answers(question_id) -> list:
    """Correct answers for one question in arrival order (host view)."""
    rows = (
        db.session.query(Answer, Participant.name)
        .join(Participant, Participant.id == Answer.participant_id)
        .filter(Answer.question_id == question_id, Answer.is_correct.is_(True))
        .order_by(Answer.rank.asc(), Answer.answered_at.asc())
        .all()
    )
    return [
        {
            'participant_name': name,
            'points': answer.points_awarded,
            'rank': answer.rank,
            'time': isoformat(answer.answered_at),
            'time_taken_ms': answer.time_taken_ms,
        }
        for answer, name in rows
    ]
