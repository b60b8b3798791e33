import os
import sys
import pytest

# Ensure the project root (containing the `quizblast` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from config import Config
from quizblast import create_app, db, socketio


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    GAME_STORE = 'sql'
    MIN_PLAYERS = 1
    CONTROLLER_DEBOUNCE_MS = 0


class FakeClock:
    """Settable stand-in for time.time."""

    def __init__(self, now=1_000.0):
        self.now = now
        self._interleaved = None

    def interleave(self, action):
        """Run ``action`` the next time the clock is read, to stage a concurrent request."""
        self._interleaved = action

    def __call__(self):
        action, self._interleaved = self._interleaved, None
        if action is not None:
            action()
        return self.now

    def advance(self, seconds):
        self.now += seconds


ADMIN = {'X-Admin-Id': 'admin-1'}
OTHER_ADMIN = {'X-Admin-Id': 'admin-2'}


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    # Each request pushes its own app context, so no context stays open across requests
    with application.app_context():
        # Ensure models are imported so tables are created
        import quizblast.models  # noqa: F401
        db.create_all()
    yield application
    with application.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def clock(flask_app):
    fake = FakeClock()
    flask_app.extensions['quizblast'].clock = fake
    return fake


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
def quiz_payload():
    return {
        'title': 'Animals',
        'questions': [
            {
                'id': 'q1',
                'kind': 'multiple-choice',
                'text': 'Which animal is a mammal?',
                'time_limit': 20,
                'points': 1000,
                'answers': [
                    {'id': 'a1', 'text': 'Whale', 'is_correct': True},
                    {'id': 'a2', 'text': 'Shark'},
                    {'id': 'a3', 'text': 'Trout'},
                ],
            },
            {
                'id': 'q2',
                'kind': 'ordering',
                'text': 'Order from smallest to largest',
                'time_limit': 20,
                'points': 1000,
                'answers': [
                    {'id': 'A', 'text': 'Ant', 'target_position': 0},
                    {'id': 'B', 'text': 'Cat', 'target_position': 1},
                    {'id': 'C', 'text': 'Horse', 'target_position': 2},
                    {'id': 'D', 'text': 'Whale', 'target_position': 3},
                ],
            },
        ],
    }
