import os
import sys
import pytest
from flask import g

# Ensure the backend root (containing the `peerrank` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from peerrank import create_app, db, socketio


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    MIN_PLAYERS = 2
    DEFAULT_TIME_LIMIT_MIN = 30
    MIN_TIME_LIMIT_MIN = 1
    MAX_TIME_LIMIT_MIN = 0
    SWEEP_INTERVAL_SEC = 0
    CRON_SECRET = None
    CORS_ORIGINS = ['http://localhost:3000']


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import peerrank.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    # The pushed app context is reused for every test-client request, so
    # Flask-Login's cached user in `g` must be cleared per request.
    @flask_app.before_request
    def _reset_login_user():
        g.pop('_login_user', None)

    return flask_app.test_client()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    if test_client.is_connected('/ws'):
        test_client.disconnect(namespace='/ws')


def as_user(user_id, name=None):
    """Identity headers the upstream auth layer would forward."""
    headers = {'X-User-Id': user_id}
    if name:
        headers['X-User-Name'] = name
    return headers


@pytest.fixture()
def make_game(client):
    """Create a game hosted by 'host' with the given extra members joined.

    Returns (game_payload, {user_id: participant_id}).
    """
    def _make(members=(), title='Friday night', time_limit=None, start=False):
        body = {'title': title}
        if time_limit is not None:
            body['time_limit'] = time_limit
        res = client.post('/api/games', json=body, headers=as_user('host', 'Host'))
        assert res.status_code == 201, res.get_json()
        game = res.get_json()
        ids = {'host': game['participants'][0]['id']}
        for user_id in members:
            res = client.post('/api/games/join', json={'code': game['code']}, headers=as_user(user_id))
            assert res.status_code == 201, res.get_json()
            ids[user_id] = res.get_json()['id']
        if start:
            res = client.post(f"/api/games/{game['id']}/start", json={}, headers=as_user('host'))
            assert res.status_code == 200, res.get_json()
            game = res.get_json()
        return game, ids
    return _make
