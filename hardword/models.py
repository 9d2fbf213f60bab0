from hardword import db
from hardword.utils import utcnow, isoformat
import random

EVENT_CODE_ALPHABET = 'ABCDEFGHJKLMNPQRSTUVWXYZ23456789'
EVENT_CODE_LENGTH = 6

STATUS_DRAFT = 'draft'
STATUS_ACTIVE = 'active'
STATUS_COMPLETED = 'completed'


def generate_event_code(length=EVENT_CODE_LENGTH):
    """Generate a join code from an alphabet without look-alike characters."""
    return ''.join(random.choices(EVENT_CODE_ALPHABET, k=length))


class Event(db.Model):
    __tablename__ = 'event'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    code = db.Column(db.String(EVENT_CODE_LENGTH), unique=True, nullable=False, index=True)
    status = db.Column(db.String(16), nullable=False, default=STATUS_DRAFT)  # draft, active, completed
    current_question_id = db.Column(
        db.Integer,
        db.ForeignKey('question.id', name='fk_event_current_question_id', use_alter=True, ondelete='SET NULL'),
        nullable=True,
    )
    current_question_index = db.Column(db.Integer, nullable=False, default=-1)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    questions = db.relationship(
        'Question',
        foreign_keys='Question.event_id',
        back_populates='event',
        cascade='all, delete-orphan',
        order_by='Question.question_order',
    )
    participants = db.relationship('Participant', back_populates='event', cascade='all, delete-orphan')

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'code': self.code,
            'status': self.status,
            'current_question_id': self.current_question_id,
            'current_question_index': self.current_question_index,
            'created_at': isoformat(self.created_at),
        }


class Question(db.Model):
    __tablename__ = 'question'
    __table_args__ = (
        db.UniqueConstraint('event_id', 'question_order', name='uq_question_event_order'),
    )
    id = db.Column(db.Integer, primary_key=True)
    event_id = db.Column(db.Integer, db.ForeignKey('event.id', ondelete='CASCADE'), nullable=False, index=True)
    question_text = db.Column(db.Text, nullable=False)
    # Stored upper-cased with whitespace collapsed
    answer = db.Column(db.String(256), nullable=False)
    question_order = db.Column(db.Integer, nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=False)
    started_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    event = db.relationship('Event', foreign_keys=[event_id], back_populates='questions')
    answers = db.relationship('Answer', back_populates='question', cascade='all, delete-orphan')

    def to_dict(self):
        """Host-only view; includes the canonical answer."""
        return {
            'id': self.id,
            'event_id': self.event_id,
            'question_text': self.question_text,
            'answer': self.answer,
            'question_order': self.question_order,
            'is_active': self.is_active,
            'started_at': isoformat(self.started_at),
        }


class Participant(db.Model):
    __tablename__ = 'participant'
    __table_args__ = (
        db.UniqueConstraint('event_id', 'name', name='uq_participant_event_name'),
    )
    id = db.Column(db.Integer, primary_key=True)
    event_id = db.Column(db.Integer, db.ForeignKey('event.id', ondelete='CASCADE'), nullable=False, index=True)
    name = db.Column(db.String(64), nullable=False)
    score = db.Column(db.Integer, nullable=False, default=0)
    joined_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    event = db.relationship('Event', back_populates='participants')
    answers = db.relationship('Answer', back_populates='participant', cascade='all, delete-orphan')

    def to_dict(self):
        return {
            'id': self.id,
            'event_id': self.event_id,
            'name': self.name,
            'score': self.score,
            'joined_at': isoformat(self.joined_at),
        }


class Answer(db.Model):
    """Ledger entry: one row per (question, participant) pair."""
    __tablename__ = 'answer'
    __table_args__ = (
        db.UniqueConstraint('question_id', 'participant_id', name='uq_answer_question_participant'),
        # NULL ranks (incorrect rows) never collide
        db.UniqueConstraint('question_id', 'rank', name='uq_answer_question_rank'),
    )
    id = db.Column(db.Integer, primary_key=True)
    question_id = db.Column(db.Integer, db.ForeignKey('question.id', ondelete='CASCADE'), nullable=False, index=True)
    participant_id = db.Column(db.Integer, db.ForeignKey('participant.id', ondelete='CASCADE'), nullable=False, index=True)
    is_correct = db.Column(db.Boolean, nullable=False, default=False)
    points_awarded = db.Column(db.Integer, nullable=False, default=0)
    rank = db.Column(db.Integer, nullable=True)
    attempts = db.Column(db.Integer, nullable=False, default=1)
    answered_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    time_taken_ms = db.Column(db.Integer, nullable=True)

    question = db.relationship('Question', back_populates='answers')
    participant = db.relationship('Participant', back_populates='answers')

    def to_dict(self):
        return {
            'id': self.id,
            'question_id': self.question_id,
            'participant_id': self.participant_id,
            'is_correct': self.is_correct,
            'points_awarded': self.points_awarded,
            'rank': self.rank,
            'attempts': self.attempts,
            'answered_at': isoformat(self.answered_at),
            'time_taken_ms': self.time_taken_ms,
        }
