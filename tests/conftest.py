import pytest

from codecollab import create_app
from codecollab.config import TestConfig
from codecollab.socketio_app import socketio


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def controller(app):
    return app.extensions['collab']


@pytest.fixture
def socket_client(app):
    """Factory for connected Socket.IO test clients, disconnected on teardown."""
    clients = []

    def connect():
        sio = socketio.test_client(app, flask_test_client=app.test_client())
        assert sio.is_connected()
        clients.append(sio)
        return sio

    yield connect

    for sio in clients:
        if sio.is_connected():
            sio.disconnect()


def received(sio, name=None):
    """Events delivered to a test client since the last call, optionally filtered by name."""
    events = [(event['name'], event['args'][0] if event['args'] else None) for event in sio.get_received()]
    if name is None:
        return events
    return [payload for event_name, payload in events if event_name == name]
