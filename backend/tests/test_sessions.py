import pytest

from arena.services.live import ReconnectPolicy, SessionRegistry

from conftest import FakeLiveConnection


@pytest.fixture()
def made():
    return []


@pytest.fixture()
def registry(scheduler, made):
    def factory(unique_id):
        conn = FakeLiveConnection(unique_id=unique_id)
        made.append(conn)
        return conn

    return SessionRegistry(factory, scheduler, policy=ReconnectPolicy(max_attempts=2, jitter_ms=0))


def test_counts_connected_sessions(registry, made):
    registry.open('sid-1', 'alice').connect()
    registry.open('sid-2', 'bob').connect()
    assert registry.active_connections == 2
    assert len(registry) == 2

    assert registry.close('sid-1')
    assert registry.active_connections == 1
    assert made[0].disconnect_calls == 1
    assert made[0].closed


def test_failed_initial_connect_is_not_counted(registry, made):
    wrapper = registry.open('sid-1', 'alice')
    made[0].outcomes = [OSError('offline')]
    wrapper.connect()
    assert registry.active_connections == 0
    assert registry.close('sid-1')
    assert registry.active_connections == 0


def test_exhausted_session_released_once(registry, made, scheduler):
    registry.open('sid-1', 'alice').connect()
    made[0].outcomes = [OSError('down')] * 5
    made[0].drop()
    scheduler.run_next()
    scheduler.run_next()
    assert registry.get('sid-1').terminated
    assert registry.active_connections == 0

    registry.close('sid-1')
    assert registry.active_connections == 0


def test_reconnects_do_not_double_count(registry, made, scheduler):
    registry.open('sid-1', 'alice').connect()
    made[0].drop()
    scheduler.run_next()
    assert made[0].connected
    assert registry.active_connections == 1


def test_open_replaces_previous_session(registry, made):
    registry.open('sid-1', 'alice').connect()
    registry.open('sid-1', 'bob').connect()
    assert made[0].disconnect_calls == 1
    assert registry.get('sid-1').unique_id == 'bob'
    assert registry.active_connections == 1


def test_close_unknown_sid(registry):
    assert registry.close('nope') is False
