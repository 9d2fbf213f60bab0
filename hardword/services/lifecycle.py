"""Event state machine: draft -> active -> completed, and back to draft.

Only this module writes ``Event.status``, the question cursor and
``Question.is_active``/``started_at``. Every transition reads the event,
then applies a conditional update filtered on the status and cursor it read.
If another host request got there first the update matches no row, the
transaction is rolled back and ``InvalidTransition`` is raised, so a
transition is either fully applied or not at all.
"""
from dataclasses import dataclass
from typing import Optional

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from hardword import db
from hardword.errors import InvalidTransition, StorageError, ValidationError
from hardword.models import (
    Event,
    Question,
    STATUS_ACTIVE,
    STATUS_COMPLETED,
    STATUS_DRAFT,
)
from hardword.services import realtime
from hardword.services.events import get_event
from hardword.utils import utcnow

START = 'start'
NEXT_QUESTION = 'next_question'
END = 'end'
REACTIVATE = 'reactivate'

ACTIONS = (START, NEXT_QUESTION, END, REACTIVATE)


@dataclass
class TransitionResult:
    status: str
    current_question_index: int
    total_questions: int
    current_question_id: Optional[int] = None

    def to_dict(self):
        return {
            'success': True,
            'status': self.status,
            'current_question_id': self.current_question_id,
            'current_question_index': self.current_question_index,
            'total_questions': self.total_questions,
        }


def _ordered_questions(event_id):
    return Question.query.filter_by(event_id=event_id).order_by(Question.question_order.asc()).all()


def _swap_event(event: Event, values: dict) -> None:
    """Apply ``values`` only if the event still has the status and cursor we read."""
    matched = Event.query.filter_by(
        id=event.id,
        status=event.status,
        current_question_index=event.current_question_index,
    ).update(values, synchronize_session=False)
    if matched != 1:
        raise InvalidTransition('Event changed while processing the command, please retry')


def _deactivate_all(event_id) -> None:
    Question.query.filter_by(event_id=event_id).update({'is_active': False}, synchronize_session=False)


def _commit() -> None:
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise StorageError() from exc
    # Conditional updates bypass the identity map
    db.session.expire_all()


def _start(event: Event, questions) -> TransitionResult:
    if event.status != STATUS_DRAFT:
        raise InvalidTransition('Event already started')
    if not questions:
        raise InvalidTransition('No questions in this event')
    _swap_event(event, {
        'status': STATUS_ACTIVE,
        'current_question_id': None,
        'current_question_index': -1,
    })
    return TransitionResult(STATUS_ACTIVE, -1, len(questions))


def _next_question(event: Event, questions) -> TransitionResult:
    if event.status != STATUS_ACTIVE:
        raise InvalidTransition('Event is not active')

    next_index = event.current_question_index + 1
    if next_index >= len(questions):
        # Auto-end on exhaustion
        _deactivate_all(event.id)
        _swap_event(event, {
            'status': STATUS_COMPLETED,
            'current_question_id': None,
            'current_question_index': len(questions),
        })
        return TransitionResult(STATUS_COMPLETED, len(questions), len(questions))

    next_q = questions[next_index]
    Question.query.filter(
        Question.event_id == event.id,
        Question.is_active.is_(True),
        Question.id != next_q.id,
    ).update({'is_active': False}, synchronize_session=False)
    Question.query.filter_by(id=next_q.id).update(
        {'is_active': True, 'started_at': utcnow()}, synchronize_session=False
    )
    _swap_event(event, {
        'current_question_id': next_q.id,
        'current_question_index': next_index,
    })
    return TransitionResult(STATUS_ACTIVE, next_index, len(questions), next_q.id)


def _end(event: Event, questions) -> TransitionResult:
    if event.status != STATUS_ACTIVE:
        raise InvalidTransition('Event is not active')
    _deactivate_all(event.id)
    _swap_event(event, {
        'status': STATUS_COMPLETED,
        'current_question_id': None,
    })
    return TransitionResult(STATUS_COMPLETED, event.current_question_index, len(questions))


def _reactivate(event: Event, questions) -> TransitionResult:
    if event.status != STATUS_COMPLETED:
        raise InvalidTransition('Only completed events can be reactivated')
    _swap_event(event, {
        'status': STATUS_DRAFT,
        'current_question_id': None,
        'current_question_index': -1,
    })
    _deactivate_all(event.id)
    return TransitionResult(STATUS_DRAFT, -1, len(questions))


_TRANSITIONS = {
    START: _start,
    NEXT_QUESTION: _next_question,
    END: _end,
    REACTIVATE: _reactivate,
}


def apply_action(event_id, action: str) -> TransitionResult:
    transition = _TRANSITIONS.get(action) if isinstance(action, str) else None
    if transition is None:
        raise ValidationError('Invalid action')

    event = get_event(event_id)
    questions = _ordered_questions(event.id)
    prev_status, prev_index = event.status, event.current_question_index

    try:
        result = transition(event, questions)
    except InvalidTransition:
        db.session.rollback()
        current_app.logger.info(
            f"[transition-rejected] event={event_id} action={action} status={prev_status} index={prev_index}"
        )
        raise
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise StorageError() from exc
    _commit()

    current_app.logger.info(
        f"[{action}] event={event_id} status {prev_status} -> {result.status} "
        f"index {prev_index} -> {result.current_question_index}/{result.total_questions}"
    )
    payload = {'status': result.status, 'action': action}
    if action == NEXT_QUESTION and result.status == STATUS_ACTIVE:
        payload['question_index'] = result.current_question_index
    realtime.publish(event_id, realtime.EVENT_UPDATE, **payload)
    return result
