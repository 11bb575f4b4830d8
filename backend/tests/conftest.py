import os
import random
import sys
from dataclasses import replace

import pytest

# Ensure the backend root (containing the `puzzz` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from puzzz import create_app, db, socketio
from puzzz.content import StaticQuestionProvider
from puzzz.records import Player, RoomRecord
from puzzz.services.games.registry import build_machines
from puzzz.store import MemoryRoomStore


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    MIN_PLAYERS = 2
    CHALLENGE_COUNT = 3


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import puzzz.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


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


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start=1_000_000):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now += int(ms)
        return self.now

    def sleep(self, seconds):
        self.advance(seconds * 1000)


@pytest.fixture()
def rng():
    return random.Random(1234)


@pytest.fixture()
def machines(rng):
    return build_machines({'CHALLENGE_COUNT': 3}, rng=rng, provider=StaticQuestionProvider(rng))


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def store():
    return MemoryRoomStore()


def make_room(game, machine, names=('p1', 'p2', 'p3'), state=None, code='ROOM01'):
    """A room whose first player is host; player ids equal their names."""
    players = tuple(
        Player(player_id=n, player_name=n.upper(), is_host=(i == 0), joined_at=i)
        for i, n in enumerate(names)
    )
    return RoomRecord(
        room_code=code,
        name='Test room',
        host_player_id=names[0] if names else None,
        current_game=game,
        game_state=state or machine.initial_state(),
        players=players,
    )


def with_state(record, **fields):
    return record.with_state(replace(record.game_state, **fields))

