import asyncio
import threading

import pytest
from TikTokLive.events import CommentEvent, GiftEvent, LikeEvent
from TikTokLive.proto import Gift, User

from arena.services.games.gifts import gift_to_coins
from arena.services.live.tiktok import TikTokLiveConnection, _user


@pytest.fixture()
def conn():
    connection = TikTokLiveConnection('teststreamer', connect_timeout=5)
    yield connection
    connection.close()


@pytest.fixture()
def seen(conn):
    events = {'like': [], 'gift': [], 'comment': [], 'error': []}
    for name, bucket in events.items():
        conn.on(name, bucket.append)
    return events


def test_user_fallbacks():
    assert _user(LikeEvent(count=1)) == {'user': '?', 'nickname': '?'}
    assert _user(CommentEvent(user=User(display_id='alice', nickname='Alice'))) == {
        'user': 'alice', 'nickname': 'Alice',
    }
    assert _user(CommentEvent(user=User(nickname='Bob'))) == {'user': 'Bob', 'nickname': 'Bob'}


def test_like_payload(conn, seen):
    asyncio.run(conn._on_like(LikeEvent(count=5)))
    assert seen['like'] == [{'user': '?', 'nickname': '?', 'count': 5}]


def test_comment_payload(conn, seen):
    event = CommentEvent(user=User(display_id='alice', nickname='Alice'), content='Defeat the BOSS!')
    asyncio.run(conn._on_comment(event))
    assert seen['comment'] == [{'user': 'alice', 'nickname': 'Alice', 'comment': 'Defeat the BOSS!'}]


def test_gift_streak_counts_only_final_step(conn, seen):
    rose = Gift(type=1, name='Rose', diamond_count=1)
    for repeat_count, repeat_end in ((1, 0), (2, 0), (3, 1)):
        asyncio.run(conn._on_gift(GiftEvent(gift=rose, repeat_count=repeat_count, repeat_end=repeat_end)))

    assert len(seen['gift']) == 1
    gift = seen['gift'][0]
    assert gift['gift_name'] == 'Rose'
    assert gift['repeat_count'] == 3
    total = sum(gift_to_coins(g['gift_name'], g['repeat_count'], g['diamond_count']) for g in seen['gift'])
    assert total == 3


def test_non_streakable_gift_emitted_immediately(conn, seen):
    galaxy = Gift(type=2, name='Galaxy', diamond_count=1000)
    asyncio.run(conn._on_gift(GiftEvent(gift=galaxy, repeat_count=1, repeat_end=0)))
    assert [g['gift_name'] for g in seen['gift']] == ['Galaxy']
    assert seen['gift'][0]['diamond_count'] == 1000


def test_failed_websocket_task_surfaces_error(conn, monkeypatch):
    errors = []
    got_error = threading.Event()

    def on_error(exc):
        errors.append(exc)
        got_error.set()

    conn.on('error', on_error)

    async def start_then_fail():
        async def ws_loop():
            raise ConnectionResetError('reset by peer')
        task = asyncio.get_running_loop().create_task(ws_loop())
        await asyncio.wait([task])
        return task

    monkeypatch.setattr(conn._client, 'start', start_then_fail)
    state = conn.connect()

    assert state.is_connected is False
    assert got_error.wait(2)
    assert isinstance(errors[0], ConnectionResetError)


def test_close_aborts_in_flight_connect(conn, monkeypatch):
    started = threading.Event()
    outcome = []

    async def hanging_start():
        started.set()
        await asyncio.sleep(30)

    monkeypatch.setattr(conn._client, 'start', hanging_start)

    def attempt():
        try:
            conn.connect()
        except Exception as exc:
            outcome.append(exc)

    worker = threading.Thread(target=attempt)
    worker.start()
    assert started.wait(2)

    conn.close()
    worker.join(2)

    assert not worker.is_alive()
    assert isinstance(outcome[0], ConnectionAbortedError)
    assert conn._loop.is_closed()
    conn.close()


def test_session_id_sets_login_cookies():
    connection = TikTokLiveConnection('teststreamer', session_id='abc123', tt_target_idc='eu-ttp2', connect_timeout=5)
    try:
        cookies = connection._client.web.cookies
        assert cookies.get('sessionid', domain='.tiktok.com') == 'abc123'
        assert cookies.get('tt-target-idc', domain='.tiktok.com') == 'eu-ttp2'
        assert connection._client.web.params['user_is_login'] == 'true'
    finally:
        connection.close()
