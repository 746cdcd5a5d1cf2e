import threading
import time

import pytest
from flask import Flask
from flask_socketio import SocketIO

from arena.services.scheduler import SocketIOScheduler


@pytest.fixture()
def scheduler():
    socketio = SocketIO(Flask(__name__), async_mode='threading')
    return SocketIOScheduler(socketio)


def wait_until(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def test_call_later_fires_without_blocking_caller(scheduler):
    fired = threading.Event()
    before = time.monotonic()
    handle = scheduler.call_later(0.05, fired.set)
    assert time.monotonic() - before < 0.05

    assert fired.wait(1)
    assert handle.fired
    assert not handle.active


def test_cancelled_call_later_never_fires(scheduler):
    fired = threading.Event()
    handle = scheduler.call_later(0.05, fired.set)
    handle.cancel()

    assert not fired.wait(0.2)
    assert not handle.fired
    assert not handle.active


def test_every_keeps_running_after_callback_raises(scheduler):
    calls = []

    def flaky():
        calls.append(time.monotonic())
        if len(calls) == 1:
            raise RuntimeError('boom')

    handle = scheduler.every(0.02, flaky, name='flaky')
    try:
        assert wait_until(lambda: len(calls) >= 3)
    finally:
        handle.cancel()


def test_every_stops_after_cancel(scheduler):
    calls = []
    handle = scheduler.every(0.02, lambda: calls.append(1))
    assert wait_until(lambda: len(calls) >= 2)
    handle.cancel()
    time.sleep(0.05)
    settled = len(calls)
    time.sleep(0.1)
    assert len(calls) == settled


def test_every_is_fixed_rate(scheduler):
    calls = []

    def slow():
        calls.append(time.monotonic())
        time.sleep(0.06)

    handle = scheduler.every(0.1, slow)
    try:
        assert wait_until(lambda: len(calls) >= 5, timeout=3.0)
    finally:
        handle.cancel()

    # Fixed delay would space calls 0.16s apart; fixed rate keeps 0.1s
    span = calls[4] - calls[0]
    assert span < 0.55
