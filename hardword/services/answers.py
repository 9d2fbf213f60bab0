"""Answer ingestion: validate a guess, score it and record it in the ledger.

A submission runs in one transaction that locks the question row, reads the
pair's ledger entry, counts earlier correct answers and writes the ledger
row together with the score increment. The unique constraints on
``(question_id, participant_id)`` and ``(question_id, rank)`` are the final
word when two requests still race: the loser is rolled back and re-reads,
which either finds its own earlier success or computes the next free rank.
"""
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from flask import current_app
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from hardword import db
from hardword.errors import Conflict, NotFound, StorageError, ValidationError
from hardword.models import Answer, Participant, Question
from hardword.services import realtime, scoring
from hardword.utils import clean_text, require_id, utcnow

RANK_MESSAGES = {
    1: 'First to answer! +10 points!',
    2: 'Second place! +9 points!',
    3: 'Third place! +8 points!',
}


@dataclass
class AnswerOutcome:
    correct: bool
    points: int = 0
    rank: Optional[int] = None
    letter_hints: Optional[List[str]] = None
    message: str = ''
    already_answered: bool = False
    inactive: bool = False
    out_of_attempts: bool = False
    attempts_left: Optional[int] = None
    # (kind, payload) pairs published once the write has committed
    notifications: List[Tuple[str, dict]] = field(default_factory=list, repr=False)

    def to_dict(self):
        body = {
            'correct': self.correct,
            'points': self.points,
            'message': self.message,
        }
        if self.rank is not None:
            body['rank'] = self.rank
        if self.letter_hints is not None:
            body['letter_hints'] = self.letter_hints
        if self.already_answered:
            body['already_answered'] = True
        if self.inactive:
            body['inactive'] = True
        if self.out_of_attempts:
            body['out_of_attempts'] = True
        if self.attempts_left is not None:
            body['attempts_left'] = self.attempts_left
        return body


def count_prior_correct(question_id) -> int:
    return Answer.query.filter_by(question_id=question_id, is_correct=True).count()


def _lock_question(question_id) -> Optional[Question]:
    # FOR UPDATE is a no-op on SQLite, which serializes writers anyway
    return Question.query.filter_by(id=question_id).with_for_update().populate_existing().first()


def _inactive() -> AnswerOutcome:
    return AnswerOutcome(correct=False, inactive=True, message='This question is no longer active')


def _already_answered(ledger: Answer) -> AnswerOutcome:
    return AnswerOutcome(
        correct=True,
        points=ledger.points_awarded,
        rank=ledger.rank,
        already_answered=True,
        message='You already answered this correctly!',
    )


def _time_taken_ms(question: Question, now) -> Optional[int]:
    if not question.started_at:
        return None
    return max(0, int((now - question.started_at).total_seconds() * 1000))


def _score_once(question_id, participant: Participant, raw_answer: str, max_attempts: int) -> AnswerOutcome:
    question = _lock_question(question_id)
    if question is None:
        raise NotFound('Question not found')
    if not question.is_active:
        return _inactive()

    ledger = Answer.query.filter_by(question_id=question.id, participant_id=participant.id).first()
    if ledger and ledger.is_correct:
        return _already_answered(ledger)
    if max_attempts and ledger and ledger.attempts >= max_attempts:
        return AnswerOutcome(
            correct=False,
            out_of_attempts=True,
            attempts_left=0,
            message='No more attempts. Waiting for next question...',
        )

    result = scoring.score(question.answer, count_prior_correct(question.id), raw_answer)
    now = utcnow()

    if result.correct:
        if ledger:
            ledger.attempts = Answer.attempts + 1
        else:
            ledger = Answer(question_id=question.id, participant_id=participant.id, attempts=1)
            db.session.add(ledger)
        ledger.is_correct = True
        ledger.points_awarded = result.points
        ledger.rank = result.rank
        ledger.answered_at = now
        ledger.time_taken_ms = _time_taken_ms(question, now)
        Participant.query.filter_by(id=participant.id).update(
            {Participant.score: Participant.score + result.points}, synchronize_session=False
        )
        db.session.commit()

        return AnswerOutcome(
            correct=True,
            points=result.points,
            rank=result.rank,
            message=RANK_MESSAGES.get(result.rank, f'+{result.points} points!'),
            notifications=[
                (realtime.ANSWER_SUBMITTED, {'participant_name': participant.name, 'rank': result.rank}),
                (realtime.LEADERBOARD_UPDATE, {}),
            ],
        )

    used = (ledger.attempts if ledger else 0) + 1
    if ledger:
        ledger.attempts = Answer.attempts + 1
    else:
        db.session.add(Answer(
            question_id=question.id,
            participant_id=participant.id,
            is_correct=False,
            points_awarded=0,
            attempts=1,
            answered_at=now,
        ))
    db.session.commit()

    outcome = AnswerOutcome(
        correct=False,
        letter_hints=result.hints,
        message='Not quite! Check the hints and try again.',
        notifications=[
            (realtime.WRONG_ANSWER, {'participant_name': participant.name, 'wrong_answer': scoring.normalize_answer(raw_answer)}),
        ],
    )
    if max_attempts:
        outcome.attempts_left = max(0, max_attempts - used)
        if outcome.attempts_left == 0:
            outcome.message = 'No more attempts. Waiting for next question...'
    return outcome


def submit_answer(question_id, participant_id, raw_answer: str, max_attempts: Optional[int] = None) -> AnswerOutcome:
    if not question_id or not participant_id or not clean_text(raw_answer, 'answer'):
        raise ValidationError('question_id, participant_id, and answer are required')
    question_id = require_id(question_id, 'question_id')
    participant_id = require_id(participant_id, 'participant_id')

    config = current_app.config
    if max_attempts is None:
        max_attempts = int(config.get('MAX_ATTEMPTS', 0))
    retries = int(config.get('RANK_CONFLICT_RETRIES', 3))

    question = db.session.get(Question, question_id)
    if not question:
        raise NotFound('Question not found')
    participant = db.session.get(Participant, participant_id)
    if not participant or participant.event_id != question.event_id:
        raise NotFound('Participant not found in this event')
    if not question.is_active:
        return _inactive()

    event_id = question.event_id
    for attempt in range(retries + 1):
        try:
            outcome = _score_once(question_id, participant, raw_answer, max_attempts)
        except IntegrityError:
            db.session.rollback()
            current_app.logger.info(
                f"[answer-conflict] question={question_id} participant={participant_id} attempt={attempt + 1}"
            )
            continue
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise StorageError() from exc
        break
    else:
        raise Conflict('Too many simultaneous answers, please retry')

    # Release the row lock taken by reads that did not write
    if db.session().in_transaction():
        db.session.rollback()

    if outcome.correct and not outcome.already_answered:
        current_app.logger.info(
            f"[answer-correct] question={question_id} participant={participant_id} rank={outcome.rank} points={outcome.points}"
        )
    for kind, payload in outcome.notifications:
        realtime.publish(event_id, kind, **payload)
    return outcome
