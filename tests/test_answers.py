import pytest

from hardword import db
from hardword.errors import Conflict, NotFound, ValidationError
from hardword.models import Answer, Participant, Question
from hardword.services import answers, lifecycle
from hardword.services.scoring import GREEN, YELLOW


@pytest.fixture()
def running_event(make_event):
    """An active event sitting on its first question; returns (event_id, [question ids])."""
    def _make(questions=(('Capital of France', 'Paris'), ('Largest planet', 'Jupiter'))):
        event_id = make_event(questions=questions)
        lifecycle.apply_action(event_id, lifecycle.START)
        lifecycle.apply_action(event_id, lifecycle.NEXT_QUESTION)
        ids = [q.id for q in Question.query.filter_by(event_id=event_id).order_by(Question.question_order)]
        return event_id, ids

    return _make


def _score(participant_id):
    db.session.expire_all()
    return db.session.get(Participant, participant_id).score


def _ledger(question_id, participant_id):
    db.session.expire_all()
    return Answer.query.filter_by(question_id=question_id, participant_id=participant_id).all()


def test_first_correct_answer_gets_ten(running_event, make_participants):
    event_id, (q1, _) = running_event()
    (ana,) = make_participants(event_id, 'Ana')

    outcome = answers.submit_answer(q1, ana, '  paris ')
    assert outcome.correct
    assert outcome.rank == 1
    assert outcome.points == 10
    assert outcome.message == 'First to answer! +10 points!'
    assert _score(ana) == 10

    rows = _ledger(q1, ana)
    assert len(rows) == 1
    assert rows[0].is_correct and rows[0].rank == 1
    assert rows[0].time_taken_ms is not None and rows[0].time_taken_ms >= 0


def test_sequential_correct_answers_rank_in_order(running_event, make_participants):
    event_id, (q1, _) = running_event()
    players = make_participants(event_id, *[f'P{i}' for i in range(12)])

    outcomes = [answers.submit_answer(q1, pid, 'PARIS') for pid in players]
    assert [o.rank for o in outcomes] == list(range(1, 13))
    assert [o.points for o in outcomes] == [10, 9, 8, 7, 6, 5, 4, 3, 2, 1, 1, 1]
    db.session.expire_all()
    ranks = [a.rank for a in Answer.query.filter_by(question_id=q1, is_correct=True).order_by(Answer.rank)]
    assert ranks == list(range(1, 13))


def test_correct_answer_is_idempotent(running_event, make_participants):
    event_id, (q1, _) = running_event()
    (ana,) = make_participants(event_id, 'Ana')

    answers.submit_answer(q1, ana, 'paris')
    again = answers.submit_answer(q1, ana, 'PARIS')
    assert again.correct
    assert again.already_answered
    assert again.points == 10
    assert again.rank == 1
    assert again.notifications == []
    assert _score(ana) == 10
    assert len(_ledger(q1, ana)) == 1


def test_wrong_answers_share_one_ledger_row(running_event, make_participants):
    event_id, (q1, _) = running_event()
    (ana,) = make_participants(event_id, 'Ana')

    first = answers.submit_answer(q1, ana, 'rapis')
    second = answers.submit_answer(q1, ana, 'londn')
    assert not first.correct and not second.correct
    assert first.letter_hints == [YELLOW, GREEN, YELLOW, GREEN, GREEN]
    assert first.attempts_left is None

    rows = _ledger(q1, ana)
    assert len(rows) == 1
    assert rows[0].attempts == 2
    assert not rows[0].is_correct
    assert rows[0].rank is None
    assert _score(ana) == 0


def test_correct_after_wrong_keeps_rank_order(running_event, make_participants):
    event_id, (q1, _) = running_event()
    ana, ben = make_participants(event_id, 'Ana', 'Ben')

    answers.submit_answer(q1, ana, 'lyon')
    answers.submit_answer(q1, ben, 'paris')
    outcome = answers.submit_answer(q1, ana, 'paris')
    assert outcome.rank == 2
    assert outcome.points == 9

    (row,) = _ledger(q1, ana)
    assert row.is_correct
    assert row.attempts == 2


def test_attempt_limit(running_event, make_participants):
    event_id, (q1, _) = running_event()
    (ana,) = make_participants(event_id, 'Ana')

    first = answers.submit_answer(q1, ana, 'lyon', max_attempts=2)
    assert first.attempts_left == 1
    second = answers.submit_answer(q1, ana, 'nice', max_attempts=2)
    assert second.attempts_left == 0

    blocked = answers.submit_answer(q1, ana, 'paris', max_attempts=2)
    assert blocked.out_of_attempts
    assert not blocked.correct
    assert _score(ana) == 0
    assert _ledger(q1, ana)[0].attempts == 2


def test_attempt_limit_from_config(flask_app, running_event, make_participants):
    flask_app.config['MAX_ATTEMPTS'] = 1
    event_id, (q1, _) = running_event()
    (ana,) = make_participants(event_id, 'Ana')

    answers.submit_answer(q1, ana, 'lyon')
    assert answers.submit_answer(q1, ana, 'paris').out_of_attempts


def test_inactive_question_is_rejected_without_write(running_event, make_participants):
    event_id, (q1, q2) = running_event()
    (ana,) = make_participants(event_id, 'Ana')

    # Not yet shown
    early = answers.submit_answer(q2, ana, 'jupiter')
    assert early.inactive and not early.correct

    lifecycle.apply_action(event_id, lifecycle.NEXT_QUESTION)
    late = answers.submit_answer(q1, ana, 'paris')
    assert late.inactive
    assert _ledger(q1, ana) == []
    assert _score(ana) == 0


def test_answers_rejected_once_event_completes(running_event, make_participants):
    event_id, (q1, _) = running_event()
    (ana,) = make_participants(event_id, 'Ana')
    lifecycle.apply_action(event_id, lifecycle.END)

    assert answers.submit_answer(q1, ana, 'paris').inactive
    assert _score(ana) == 0


def test_validation_and_lookup_errors(running_event, make_event, make_participants):
    event_id, (q1, _) = running_event()
    (ana,) = make_participants(event_id, 'Ana')
    other_event = make_event(name='Other Night')
    (outsider,) = make_participants(other_event, 'Zed')

    with pytest.raises(ValidationError):
        answers.submit_answer(q1, ana, '   ')
    with pytest.raises(ValidationError):
        answers.submit_answer(None, ana, 'paris')
    with pytest.raises(NotFound):
        answers.submit_answer(9999, ana, 'paris')
    with pytest.raises(NotFound):
        answers.submit_answer(q1, 9999, 'paris')
    with pytest.raises(NotFound):
        answers.submit_answer(q1, outsider, 'paris')


def test_rank_collision_is_retried(running_event, make_participants, monkeypatch):
    """A stale correct-count collides on the rank constraint and is recomputed."""
    event_id, (q1, _) = running_event()
    ana, ben = make_participants(event_id, 'Ana', 'Ben')
    answers.submit_answer(q1, ana, 'paris')

    real_count = answers.count_prior_correct
    calls = []

    def stale_once(question_id):
        calls.append(question_id)
        if len(calls) == 1:
            return 0
        return real_count(question_id)

    monkeypatch.setattr(answers, 'count_prior_correct', stale_once)
    outcome = answers.submit_answer(q1, ben, 'paris')

    assert len(calls) == 2
    assert outcome.rank == 2
    assert outcome.points == 9
    assert _score(ben) == 9
    assert _score(ana) == 10


def test_rank_collision_gives_up_after_retries(flask_app, running_event, make_participants, monkeypatch):
    event_id, (q1, _) = running_event()
    ana, ben = make_participants(event_id, 'Ana', 'Ben')
    answers.submit_answer(q1, ana, 'paris')

    monkeypatch.setattr(answers, 'count_prior_correct', lambda question_id: 0)
    with pytest.raises(Conflict):
        answers.submit_answer(q1, ben, 'paris')
    assert _score(ben) == 0
    assert _ledger(q1, ben) == []


def test_notifications_follow_outcome(running_event, make_participants):
    event_id, (q1, _) = running_event()
    (ana,) = make_participants(event_id, 'Ana')

    wrong = answers.submit_answer(q1, ana, 'lyon')
    assert wrong.notifications == [('wrong-answer', {'participant_name': 'Ana', 'wrong_answer': 'LYON'})]

    right = answers.submit_answer(q1, ana, 'paris')
    kinds = [kind for kind, _ in right.notifications]
    assert kinds == ['answer-submitted', 'leaderboard-update']
