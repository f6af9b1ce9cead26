import os
import sys
import pytest

# Ensure the backend root (containing the `trivia` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from trivia import create_app, db, socketio
from trivia.models import User
from trivia.services.games import TimerHandle


HOST_EMAIL = 'host@example.com'
HOST_PASSWORD = 'secret'


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    ALLOWED_ORIGINS = 'http://localhost'
    LOG_LEVEL = 'DEBUG'
    BCRYPT_LOG_ROUNDS = 4
    PASSCODE_RANDOM_ATTEMPTS = 64
    PASSCODE_LOCK_KEY = 424242


class ManualTicker:
    """Ticker driven by the test: ``advance(n)`` fires n ticks on every live timer."""

    def __init__(self):
        self._running = []

    def start(self, callback):
        handle = TimerHandle()
        self._running.append((handle, callback))
        return handle

    def advance(self, ticks=1):
        for _ in range(ticks):
            # timers started during this step tick from the next one
            for handle, callback in list(self._running):
                if not handle.cancelled:
                    callback(handle)
            self._running = [(h, c) for h, c in self._running if not h.cancelled]

    @property
    def active(self):
        return [h for h, _ in self._running if not h.cancelled]


@pytest.fixture()
def ticker():
    return ManualTicker()


@pytest.fixture()
def flask_app(ticker):
    application = create_app(TestConfig, ticker=ticker)
    with application.app_context():
        db.create_all()
        yield application
        application.extensions['game_engine'].shutdown()
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def repository(flask_app):
    return flask_app.extensions['game_repository']


@pytest.fixture()
def engine(flask_app):
    return flask_app.extensions['game_engine']


def make_user(email, password=HOST_PASSWORD):
    user = User(email=email)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture()
def host(flask_app):
    return make_user(HOST_EMAIL)


@pytest.fixture()
def make_game(repository, host):
    """Factory for a DRAFT game with one round of two questions and two teams."""
    def _make(**settings):
        return repository.create_game(
            host_id=host.id,
            name='Pub Quiz',
            settings={'time_to_think_sec': 60, 'time_to_answer_sec': 10, **settings},
            rounds=[{
                'round_number': 1,
                'name': 'Round 1',
                'questions': [
                    {'question_number': 1, 'text': 'Capital of France?', 'answer': 'Paris'},
                    {'question_number': 2, 'text': 'Largest planet?', 'answer': 'Jupiter'},
                ],
            }],
            teams=[{'name': 'Owls'}, {'name': 'Foxes'}],
        )
    return _make


@pytest.fixture()
def host_client(flask_app, host):
    test_client = flask_app.test_client()
    res = test_client.post('/login', json={'email': HOST_EMAIL, 'password': HOST_PASSWORD})
    assert res.status_code == 200
    return test_client


@pytest.fixture()
def host_sio(flask_app, host_client):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=host_client,
        namespace='/game'
    )
    yield test_client
    if test_client.is_connected('/game'):
        test_client.disconnect(namespace='/game')


@pytest.fixture()
def player_sio(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/game'
    )
    yield test_client
    if test_client.is_connected('/game'):
        test_client.disconnect(namespace='/game')
