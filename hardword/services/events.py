from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from hardword import db
from hardword.errors import InvalidTransition, NotFound, StorageError, ValidationError
from hardword.models import Event, Question, STATUS_DRAFT, generate_event_code
from hardword.services import realtime
from hardword.services.scoring import normalize_answer
from hardword.utils import clean_text, require_id

MAX_CODE_ATTEMPTS = 10


def get_event(event_id) -> Event:
    event = db.session.get(Event, event_id)
    if not event:
        raise NotFound('Event not found')
    return event


def list_events():
    return Event.query.order_by(Event.created_at.desc(), Event.id.desc()).all()


def _unique_code() -> str:
    code = generate_event_code()
    for _ in range(MAX_CODE_ATTEMPTS):
        if not Event.query.filter_by(code=code).first():
            break
        code = generate_event_code()
    return code


def create_event(name: str) -> Event:
    name = clean_text(name, 'name')
    if not name:
        raise ValidationError('Event name is required')

    event = Event(name=name, code=_unique_code())
    db.session.add(event)
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise StorageError() from exc
    current_app.logger.info(f"[event-create] event={event.id} code={event.code}")
    return event


def rename_event(event_id, name: str) -> Event:
    name = clean_text(name, 'name')
    if not name:
        raise ValidationError('Event name is required')
    event = get_event(event_id)
    event.name = name
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise StorageError() from exc
    realtime.publish(event.id, realtime.EVENT_UPDATE, status=event.status)
    return event


def delete_event(event_id) -> None:
    event = get_event(event_id)
    try:
        # Break FK from event to question before the questions go
        if event.current_question_id:
            event.current_question_id = None
            db.session.flush()
        db.session.delete(event)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise StorageError() from exc
    current_app.logger.info(f"[event-delete] event={event_id}")


def _require_draft(event: Event, verb: str) -> None:
    if event.status != STATUS_DRAFT:
        raise InvalidTransition(f'Can only {verb} questions in draft events')


def add_question(event_id, question_text: str, answer: str) -> Question:
    question_text = clean_text(question_text, 'question_text')
    answer = normalize_answer(clean_text(answer, 'answer'))
    if not question_text or not answer:
        raise ValidationError('Question and answer are required')

    event = get_event(event_id)
    _require_draft(event, 'add')

    last_order = db.session.query(func.max(Question.question_order)).filter(
        Question.event_id == event.id
    ).scalar()
    question = Question(
        event_id=event.id,
        question_text=question_text,
        answer=answer,
        question_order=0 if last_order is None else last_order + 1,
    )
    db.session.add(question)
    try:
        db.session.commit()
    except IntegrityError as exc:
        # Another host request took the same order slot
        db.session.rollback()
        raise StorageError('Question order changed concurrently, please retry') from exc
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise StorageError() from exc

    realtime.publish(event.id, realtime.QUESTIONS_UPDATE, action='added')
    return question


def remove_question(event_id, question_id) -> None:
    if not question_id:
        raise ValidationError('question_id is required')
    question_id = require_id(question_id, 'question_id')
    event = get_event(event_id)
    _require_draft(event, 'delete')

    question = Question.query.filter_by(id=question_id, event_id=event.id).first()
    if not question:
        raise NotFound('Question not found')
    try:
        db.session.delete(question)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise StorageError() from exc

    realtime.publish(event.id, realtime.QUESTIONS_UPDATE, action='deleted')
