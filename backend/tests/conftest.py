import os
import sys
import pytest

# Ensure the backend root (containing the `gang` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from gang import create_app, db, get_services, socketio
from gang.game.cards import build_deck

NAMESPACE = '/ws'


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    CORS_ORIGINS = []
    CLEANUP_INTERVAL_SEC = 0
    RESTORE_ROOMS_ON_START = False


# p1 high card, p2 pair of kings, p3 pair of aces on a dry board
FIXED_CARDS = ['2c', '7d', 'Kh', 'Kd', 'As', 'Ah', '3s', '8h', '9c', 'Jd', '4h']


def fixed_deck():
    return FIXED_CARDS + [card for card in build_deck(seed=1) if card not in FIXED_CARDS]


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import gang.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def services(flask_app):
    return get_services(flask_app)


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace=NAMESPACE
    )
    yield test_client
    if test_client.is_connected(NAMESPACE):
        test_client.disconnect(namespace=NAMESPACE)


@pytest.fixture()
def make_client(flask_app):
    """Factory for extra Socket.IO clients, one per simulated browser."""
    created = []

    def _make():
        test_client = socketio.test_client(flask_app, namespace=NAMESPACE)
        test_client.get_received(NAMESPACE)
        created.append(test_client)
        return test_client

    yield _make
    for test_client in created:
        if test_client.is_connected(NAMESPACE):
            test_client.disconnect(namespace=NAMESPACE)


def ack(test_client, event, data=None):
    """Emit ``event`` and return the server's acknowledgement."""
    if data is None:
        return test_client.emit(event, namespace=NAMESPACE, callback=True)
    return test_client.emit(event, data, namespace=NAMESPACE, callback=True)


def received(test_client, name):
    """Payloads of every ``name`` push the client has received since last call."""
    return [pkt['args'][0] for pkt in test_client.get_received(NAMESPACE) if pkt['name'] == name]
