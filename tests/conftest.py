import os
import sys
import pytest

# Ensure the project root (containing the `hardword` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from hardword import create_app, db, socketio


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    ADMIN_USERNAME = 'host'
    ADMIN_PASSWORD = 'host-password'
    BCRYPT_LOG_ROUNDS = 4
    CORS_ORIGINS = ['http://localhost:5173']
    MAX_ATTEMPTS = 0
    RANK_CONFLICT_RETRIES = 3
    LOG_LEVEL = 'DEBUG'


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import hardword.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def host_client(flask_app):
    test_client = flask_app.test_client()
    res = test_client.post('/api/admin/login', json={
        'username': TestConfig.ADMIN_USERNAME,
        'password': TestConfig.ADMIN_PASSWORD,
    })
    assert res.status_code == 200
    return test_client


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    try:
        test_client.disconnect(namespace='/ws')
    except Exception:
        pass


@pytest.fixture()
def make_event(flask_app):
    """Create a draft event with the given (text, answer) questions via the services."""
    from hardword.services import events as event_service

    def _make(questions=(('Capital of France', 'Paris'),), name='Quiz Night'):
        event = event_service.create_event(name)
        for text, answer in questions:
            event_service.add_question(event.id, text, answer)
        return event.id

    return _make


@pytest.fixture()
def make_participants(flask_app):
    from hardword.models import Event
    from hardword.services import participants as participant_service

    def _make(event_id, *names):
        code = db.session.get(Event, event_id).code
        return [participant_service.join_event(code, n).participant.id for n in names]

    return _make
