import os
import sys
import pytest

# Ensure the project root (containing the `starhub` package and config.py) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from config import Config
from starhub import create_app, db, socketio


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    BCRYPT_LOG_ROUNDS = 4
    STARTING_CREDITS = 10
    GAME_COST = 1
    FRONTEND_URL = 'http://frontend.test'
    STRIPE_SECRET_KEY = 'sk_test_dummy'
    STRIPE_WEBHOOK_SECRET = 'whsec_test'
    STRIPE_TEST_MODE = False
    DISCORD_CLIENT_ID = 'discord-client'
    DISCORD_CLIENT_SECRET = 'discord-secret'
    DISCORD_CALLBACK_URL = 'http://localhost/api/auth/discord/callback'


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    # No app context stays pushed during a test: requests must not share `g`
    with application.app_context():
        import starhub.models  # noqa: F401
        db.create_all()
    yield application
    with application.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def app_ctx(flask_app):
    """For tests that call services directly instead of going through HTTP."""
    with flask_app.app_context():
        yield flask_app
        db.session.rollback()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


def register(client, username='alice', email=None, password='secret1'):
    res = client.post('/api/register', json={
        'username': username,
        'email': email or f'{username}@example.com',
        'password': password,
    })
    assert res.status_code == 201, res.get_json()
    return res.get_json()['user']


@pytest.fixture()
def user_client(flask_app):
    """A test client logged in as a freshly registered user."""
    c = flask_app.test_client()
    c.user = register(c)
    return c


@pytest.fixture()
def make_user(app_ctx):
    from starhub.models import User
    from starhub.services.credits import open_account, set_credits

    def _make(username, credits=None):
        user = User(username=username, email=f'{username}@example.com')
        user.set_password('password')
        open_account(user)
        if credits is not None:
            set_credits(user, credits)
        db.session.commit()
        return user
    return _make


@pytest.fixture()
def sio_client(flask_app, user_client):
    test_client = socketio.test_client(
        flask_app,
        namespace='/ws',
        flask_test_client=user_client,
    )
    yield test_client
    if test_client.is_connected('/ws'):
        test_client.disconnect(namespace='/ws')
