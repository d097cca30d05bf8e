import os
import random
import sys
import pytest

# Ensure the project root (containing the `guessr` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from guessr import create_app, socketio
from guessr.config import Config
from guessr.services.games.room import Room


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = 'test-secret'
    CORS_ORIGINS = '*'
    ROUNDS_PER_GAME = 2
    MIN_PLAYERS = 2
    MAX_POINTS_PER_ROUND = 5000
    ROOM_IDLE_TIMEOUT_SEC = 60
    REVEAL_TARGET_AT_ROUND_START = True


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


# Single-point city so every generated target is exactly (0, 0)
ORIGIN_AREAS = {'Null Island': {'min_lat': 0.0, 'max_lat': 0.0, 'min_lng': 0.0, 'max_lng': 0.0}}


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def make_room(clock):
    def _make(code='ABC234', city_areas=None, rounds=2, min_players=2, max_points=5000):
        return Room(
            code,
            city_areas=city_areas or ORIGIN_AREAS,
            rounds_per_game=rounds,
            max_points=max_points,
            min_players=min_players,
            rng=random.Random(7),
            clock=clock,
        )
    return _make


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        yield application
    application.extensions['guessr'].close()


@pytest.fixture()
def server(flask_app):
    return flask_app.extensions['guessr']


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def make_sio_client(flask_app):
    clients = []

    def _make():
        test_client = socketio.test_client(flask_app, namespace='/ws')
        clients.append(test_client)
        return test_client

    yield _make
    for test_client in clients:
        try:
            if test_client.is_connected('/ws'):
                test_client.disconnect(namespace='/ws')
        except Exception:
            pass


@pytest.fixture()
def sio_client(make_sio_client):
    return make_sio_client()
