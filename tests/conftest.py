import os
import sys
import pytest
from flask import g

# Ensure the repository root (containing the `courtqueue` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
REPO_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if REPO_ROOT not in sys.path:
    sys.path.insert(0, REPO_ROOT)

from courtqueue import create_app, db, socketio
from courtqueue.services.queue.session import reset_sessions


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    WTF_CSRF_ENABLED = False
    DEFAULT_SPORT = 'badminton'
    DEFAULT_ACTIVE_UNITS = 4
    DEFAULT_PICK_RANGE = 20
    STALE_AFTER_SEC = 120
    TOP_OF_QUEUE_TICK_SEC = 1.0
    COUNTDOWN_MIN_ACTIVE = 4
    AUDIT_LOG_SIZE = 100


@pytest.fixture()
def flask_app():
    reset_sessions()
    application = create_app(TestConfig)

    # The fixture keeps one app context open for the whole test, so every
    # request shares its `g`. Drop Flask-Login's per-request user cache so
    # one client's login does not leak into another client's request.
    @application.teardown_request
    def _clear_login_cache(exc=None):
        g.pop('_login_user', None)

    with application.app_context():
        # Ensure models are imported so tables are created
        import courtqueue.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()
    reset_sessions()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


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


def register(client, username='host', password='password'):
    res = client.post('/register', json={'username': username, 'password': password})
    assert res.status_code == 201
    return res.get_json()['user']


@pytest.fixture()
def host_client(client):
    """A test client logged in as a host with one club created."""
    register(client)
    res = client.post('/api/clubs/create', json={'club_name': 'Tuesday Smash'})
    assert res.status_code == 201
    client.club_id = res.get_json()['id']
    return client
