import itertools
import os
import sys
import pytest

# Ensure the backend root (containing the `arena` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from arena import create_app, socketio
from arena.services.events import EventEmitter
from arena.services.live.connection import LiveState
from arena.services.scheduler import TimerHandle


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    TIKTOK_USERNAME = 'teststreamer'
    TIKTOK_SESSION_ID = None
    TICK_INTERVAL_MS = 100
    STATISTIC_INTERVAL_SEC = 5
    LIKE_COINS = 0.2
    BOSS_HIT_PHRASE = 'defeat the boss'
    RECONNECT_MAX_ATTEMPTS = 3
    RECONNECT_INITIAL_MS = 1000
    RECONNECT_CEILING_MS = 30000
    RECONNECT_RESET_CEILING_MS = 10000
    RECONNECT_JITTER_MS = 0
    RECONNECT_STABLE_MS = 30000
    RECONNECT_UNKNOWN_DELAY_MS = 5000
    FORCE_RECONNECT_DELAY_MS = 2000


class ManualScheduler:
    """Deterministic scheduler: spawned work runs inline, timers fire on `advance`."""

    def __init__(self, start=1_000_000.0):
        self._now = start
        self._seq = itertools.count()
        self._timers = []

    def now(self):
        return self._now

    def spawn(self, fn, *args):
        fn(*args)

    def call_later(self, delay, fn, *args):
        handle = TimerHandle()
        self._timers.append((self._now + delay, next(self._seq), handle, fn, args, None))
        return handle

    def every(self, interval, fn, name=None):
        handle = TimerHandle()
        self._timers.append((self._now + interval, next(self._seq), handle, fn, (), interval))
        return handle

    @property
    def pending(self):
        return [t for t in self._timers if not t[2].cancelled and not t[2].fired]

    def delays(self):
        return [round(t[0] - self._now, 6) for t in sorted(self.pending)]

    def advance(self, seconds):
        self.advance_to(self._now + seconds)

    def advance_to(self, target):
        while True:
            due = sorted(t for t in self.pending if t[0] <= target)
            if not due:
                break
            timer = due[0]
            self._timers.remove(timer)
            when, _, handle, fn, args, interval = timer
            self._now = when
            if interval is None:
                handle.fired = True
            else:
                self._timers.append((when + interval, next(self._seq), handle, fn, args, interval))
            fn(*args)
        self._now = max(self._now, target)

    def run_next(self):
        """Jump straight to the earliest pending timer and fire it."""
        upcoming = sorted(self.pending)
        assert upcoming, 'no pending timers'
        self.advance_to(upcoming[0][0])


class FakeLiveConnection(EventEmitter):
    """Scriptable upstream: queue outcomes for successive `connect()` calls."""

    def __init__(self, unique_id='teststreamer', room_id='7000000000000000001'):
        super().__init__()
        self.unique_id = unique_id
        self.room_id = room_id
        self.connected = False
        self.outcomes = []
        self.connect_calls = 0
        self.disconnect_calls = 0
        self.closed = False
        self.on_connect = None

    def connect(self):
        self.connect_calls += 1
        if self.on_connect is not None:
            self.on_connect()
        outcome = self.outcomes.pop(0) if self.outcomes else None
        if isinstance(outcome, BaseException):
            raise outcome
        self.connected = True
        return LiveState(room_id=self.room_id, is_connected=True)

    def disconnect(self):
        self.disconnect_calls += 1
        was_connected = self.connected
        self.connected = False
        if was_connected:
            self.emit('disconnected')

    def get_state(self):
        return LiveState(room_id=self.room_id, is_connected=self.connected)

    def close(self):
        self.closed = True

    def drop(self, error=None):
        """Simulate the link going away on the provider side."""
        self.connected = False
        if error is not None:
            self.emit('error', error)
        else:
            self.emit('disconnected')


@pytest.fixture()
def scheduler():
    return ManualScheduler()


@pytest.fixture()
def upstream():
    return FakeLiveConnection()


@pytest.fixture()
def upstreams():
    return []


@pytest.fixture()
def flask_app(scheduler, upstreams):
    def factory(unique_id):
        conn = FakeLiveConnection(unique_id=unique_id, room_id=f"room-{unique_id}")
        upstreams.append(conn)
        return conn

    application = create_app(TestConfig, scheduler=scheduler, connection_factory=factory)
    with application.app_context():
        yield application
        application.extensions['arena'].stop()


@pytest.fixture()
def runtime(flask_app):
    return flask_app.extensions['arena']


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(flask_app, flask_test_client=flask_app.test_client())
    yield test_client
    try:
        test_client.disconnect()
    except Exception:
        pass
