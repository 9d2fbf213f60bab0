import pytest
from sqlalchemy.orm.attributes import set_committed_value

from hardword import db
from hardword.errors import InvalidTransition, NotFound, ValidationError
from hardword.models import Event, Question
from hardword.services import events as event_service
from hardword.services import lifecycle


def _event(event_id):
    db.session.expire_all()
    return db.session.get(Event, event_id)


def _active_questions(event_id):
    db.session.expire_all()
    return Question.query.filter_by(event_id=event_id, is_active=True).all()


def test_start_requires_questions(make_event):
    event_id = make_event(questions=())
    with pytest.raises(InvalidTransition):
        lifecycle.apply_action(event_id, lifecycle.START)
    assert _event(event_id).status == 'draft'


def test_start_sets_active_without_showing_question(make_event):
    event_id = make_event()
    result = lifecycle.apply_action(event_id, lifecycle.START)
    assert result.status == 'active'
    event = _event(event_id)
    assert event.status == 'active'
    assert event.current_question_id is None
    assert event.current_question_index == -1
    assert _active_questions(event_id) == []


def test_start_twice_is_rejected(make_event):
    event_id = make_event()
    lifecycle.apply_action(event_id, lifecycle.START)
    with pytest.raises(InvalidTransition):
        lifecycle.apply_action(event_id, lifecycle.START)


def test_next_question_requires_active(make_event):
    event_id = make_event()
    with pytest.raises(InvalidTransition):
        lifecycle.apply_action(event_id, lifecycle.NEXT_QUESTION)
    assert _event(event_id).current_question_index == -1


def test_next_question_walks_in_order_then_completes(make_event):
    event_id = make_event(questions=[('Q1', 'one'), ('Q2', 'two')])
    lifecycle.apply_action(event_id, lifecycle.START)

    first = lifecycle.apply_action(event_id, lifecycle.NEXT_QUESTION)
    event = _event(event_id)
    q1 = Question.query.filter_by(event_id=event_id, question_order=0).one()
    assert first.current_question_index == 0
    assert event.current_question_id == q1.id
    assert [q.id for q in _active_questions(event_id)] == [q1.id]
    assert q1.started_at is not None

    second = lifecycle.apply_action(event_id, lifecycle.NEXT_QUESTION)
    q2 = Question.query.filter_by(event_id=event_id, question_order=1).one()
    assert second.current_question_index == 1
    assert _event(event_id).current_question_id == q2.id
    assert [q.id for q in _active_questions(event_id)] == [q2.id]

    done = lifecycle.apply_action(event_id, lifecycle.NEXT_QUESTION)
    event = _event(event_id)
    assert done.status == 'completed'
    assert event.status == 'completed'
    assert event.current_question_id is None
    assert event.current_question_index == 2
    assert _active_questions(event_id) == []


def test_end_aborts_from_any_cursor(make_event):
    event_id = make_event(questions=[('Q1', 'one'), ('Q2', 'two')])
    lifecycle.apply_action(event_id, lifecycle.START)
    lifecycle.apply_action(event_id, lifecycle.NEXT_QUESTION)

    result = lifecycle.apply_action(event_id, lifecycle.END)
    event = _event(event_id)
    assert result.status == 'completed'
    assert event.current_question_id is None
    assert event.current_question_index == 0
    assert _active_questions(event_id) == []


def test_end_requires_active(make_event):
    event_id = make_event()
    with pytest.raises(InvalidTransition):
        lifecycle.apply_action(event_id, lifecycle.END)


def test_reactivate_only_from_completed(make_event):
    event_id = make_event()
    with pytest.raises(InvalidTransition):
        lifecycle.apply_action(event_id, lifecycle.REACTIVATE)
    lifecycle.apply_action(event_id, lifecycle.START)
    with pytest.raises(InvalidTransition):
        lifecycle.apply_action(event_id, lifecycle.REACTIVATE)


def test_reactivate_resets_cursor_and_questions(make_event):
    event_id = make_event(questions=[('Q1', 'one'), ('Q2', 'two')])
    lifecycle.apply_action(event_id, lifecycle.START)
    lifecycle.apply_action(event_id, lifecycle.NEXT_QUESTION)
    lifecycle.apply_action(event_id, lifecycle.END)

    result = lifecycle.apply_action(event_id, lifecycle.REACTIVATE)
    event = _event(event_id)
    assert result.status == 'draft'
    assert event.status == 'draft'
    assert event.current_question_index == -1
    assert event.current_question_id is None
    assert _active_questions(event_id) == []

    # A reactivated event runs again from the first question
    lifecycle.apply_action(event_id, lifecycle.START)
    again = lifecycle.apply_action(event_id, lifecycle.NEXT_QUESTION)
    assert again.current_question_index == 0


def test_unknown_action_writes_nothing(make_event):
    event_id = make_event()
    with pytest.raises(ValidationError):
        lifecycle.apply_action(event_id, 'rewind')
    with pytest.raises(ValidationError):
        lifecycle.apply_action(event_id, None)
    assert _event(event_id).status == 'draft'


def test_unknown_event(flask_app):
    with pytest.raises(NotFound):
        lifecycle.apply_action(9999, lifecycle.START)


def test_stale_read_loses_compare_and_swap(make_event, monkeypatch):
    """A host command computed from a stale read must not overwrite a newer cursor."""
    event_id = make_event(questions=[('Q1', 'one'), ('Q2', 'two')])
    lifecycle.apply_action(event_id, lifecycle.START)

    real_get_event = lifecycle.get_event

    def stale_get_event(eid):
        # Another request advances the cursor after we read the row
        Event.query.filter_by(id=eid).update({'current_question_index': 0}, synchronize_session=False)
        db.session.commit()
        event = real_get_event(eid)
        set_committed_value(event, 'current_question_index', -1)
        return event

    monkeypatch.setattr(lifecycle, 'get_event', stale_get_event)
    with pytest.raises(InvalidTransition):
        lifecycle.apply_action(event_id, lifecycle.NEXT_QUESTION)
    monkeypatch.undo()

    assert _event(event_id).current_question_index == 0
    assert _active_questions(event_id) == []


def test_questions_only_change_while_draft(make_event):
    event_id = make_event()
    lifecycle.apply_action(event_id, lifecycle.START)
    with pytest.raises(InvalidTransition):
        event_service.add_question(event_id, 'Late question', 'nope')
    question = Question.query.filter_by(event_id=event_id).first()
    with pytest.raises(InvalidTransition):
        event_service.remove_question(event_id, question.id)


def test_added_answers_are_normalized_and_ordered(make_event):
    event_id = make_event(questions=[('Q1', '  new   york '), ('Q2', 'mars')])
    questions = Question.query.filter_by(event_id=event_id).order_by(Question.question_order).all()
    assert [q.answer for q in questions] == ['NEW YORK', 'MARS']
    assert [q.question_order for q in questions] == [0, 1]


def test_event_code_uses_unambiguous_alphabet(make_event):
    event = _event(make_event())
    assert len(event.code) == 6
    assert not set(event.code) & set('01IO')


def test_delete_event_removes_everything(make_event, make_participants):
    event_id = make_event()
    make_participants(event_id, 'Ana')
    lifecycle.apply_action(event_id, lifecycle.START)
    lifecycle.apply_action(event_id, lifecycle.NEXT_QUESTION)

    event_service.delete_event(event_id)
    assert _event(event_id) is None
    assert Question.query.filter_by(event_id=event_id).count() == 0
