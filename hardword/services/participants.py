from dataclasses import dataclass

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from hardword import db
from hardword.errors import NotFound, StorageError, ValidationError
from hardword.models import Event, Participant, STATUS_COMPLETED
from hardword.services import realtime
from hardword.utils import clean_text

MAX_NAME_LENGTH = 64


@dataclass
class JoinResult:
    participant: Participant
    event: Event
    rejoined: bool

    def to_dict(self):
        return {
            'participant_id': self.participant.id,
            'event_id': self.event.id,
            'event_name': self.event.name,
            'rejoined': self.rejoined,
        }


def join_event(event_code: str, name: str) -> JoinResult:
    """Join an event by its code, or rejoin under a name already taken.

    Two racing joins with the same name converge on one participant: the
    loser hits the (event_id, name) constraint and re-reads the winner's row.
    """
    event_code = clean_text(event_code, 'event_code').upper()
    name = clean_text(name, 'name')
    if not event_code or not name:
        raise ValidationError('Event code and name are required')
    if len(name) > MAX_NAME_LENGTH:
        raise ValidationError(f'Name must be at most {MAX_NAME_LENGTH} characters')

    event = Event.query.filter_by(code=event_code).first()
    if not event:
        raise NotFound('Event not found. Check your code!')
    if event.status == STATUS_COMPLETED:
        raise ValidationError('This event has already ended')

    existing = Participant.query.filter_by(event_id=event.id, name=name).first()
    if existing:
        return JoinResult(existing, event, rejoined=True)

    participant = Participant(event_id=event.id, name=name)
    db.session.add(participant)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        existing = Participant.query.filter_by(event_id=event.id, name=name).first()
        if existing is None:
            raise StorageError()
        current_app.logger.info(f"[join-conflict] event={event.id} name={name!r} resolved to participant={existing.id}")
        return JoinResult(existing, event, rejoined=True)
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise StorageError() from exc

    current_app.logger.info(f"[join] event={event.id} participant={participant.id}")
    realtime.publish(event.id, realtime.PARTICIPANT_JOINED, name=participant.name)
    return JoinResult(participant, event, rejoined=False)
