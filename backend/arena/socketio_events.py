from flask import current_app, request
from flask_socketio import emit
from arena import socketio
from arena.services.games.gifts import gift_to_coins, like_to_coins
from typing import Any, Dict


NAMESPACE = '/'


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _runtime():
    return current_app.extensions['arena']


def handle_connect(auth=None):
    unique_id = request.args.get('uniqueId') or current_app.config.get('TIKTOK_USERNAME')
    current_app.logger.info(
        f"[relay] new connection sid={_get_sid()} origin={request.headers.get('Origin') or request.headers.get('Referer')}"
    )
    _start_session(_get_sid(), unique_id)


def handle_disconnect(*_):
    if _runtime().sessions.close(_get_sid()):
        current_app.logger.info(f"[relay] socket gone, session closed sid={_get_sid()}")


def handle_set_unique_id(data):
    unique_id = data.get('uniqueId') if isinstance(data, dict) else data
    if not unique_id or not isinstance(unique_id, str):
        emit('error', {'message': 'uniqueId is required'})
        return
    _start_session(_get_sid(), unique_id.strip().lstrip('@'))


def handle_demo_feed(data):
    if not isinstance(data, dict):
        emit('error', {'message': 'demoFeed expects an object'})
        return
    kind = data.get('type')
    user = data.get('user') or 'demo'
    try:
        amount = float(data.get('amount') or 0)
    except (TypeError, ValueError):
        emit('error', {'message': 'amount must be a number'})
        return
    if amount < 0:
        emit('error', {'message': 'amount must not be negative'})
        return
    runtime = _runtime()
    if kind == 'like':
        runtime.engine.add_coins(user, like_to_coins(int(amount), current_app.config.get('LIKE_COINS', 0.2)))
    elif kind == 'gift':
        if runtime.engine.add_coins(user, amount):
            runtime.engine.publish('fx:gift', {'user': user, 'coins': amount})
    else:
        emit('error', {'message': f"unknown demo feed type: {kind}"})


def handle_reset_game(*_):
    _runtime().engine.reset()
    current_app.logger.info(f"[relay] game reset by sid={_get_sid()}")


def handle_force_reconnect(*_):
    wrapper = _runtime().sessions.get(_get_sid())
    if wrapper is None:
        emit('error', {'message': 'no live session for this socket'})
        return
    wrapper.force_reconnect()


def handle_connection_info(*_):
    wrapper = _runtime().sessions.get(_get_sid())
    emit('connectionInfo', wrapper.connection_info() if wrapper else None)


def _start_session(sid: str, unique_id: str) -> None:
    """Open a supervised upstream session for `sid` and wire it to the engine.

    Everything registered here may fire from a background task, so it only
    touches the runtime objects captured below and emits through `socketio`.
    """
    runtime = _runtime()
    logger = current_app.logger
    like_rate = float(current_app.config.get('LIKE_COINS', 0.2))
    phrase = (current_app.config.get('BOSS_HIT_PHRASE') or '').lower()
    engine = runtime.engine

    def to_sid(event: str, payload: Any = None) -> None:
        socketio.emit(event, payload, to=sid, namespace=NAMESPACE)

    wrapper = runtime.sessions.open(sid, unique_id)

    def on_connected(state):
        logger.info(f"[relay] connected to live stream of @{unique_id} room={state.room_id}")
        if runtime.claim_room(state.room_id):
            engine.reset()
        to_sid('tiktokConnected', {'message': 'Connected to TikTok live stream', 'roomId': state.room_id})

    def on_disconnected(reason):
        logger.warning(f"[relay] disconnected from TikTok @{unique_id}: {reason}")
        to_sid('tiktokDisconnected', reason)

    def on_like(msg: Dict[str, Any]):
        engine.add_coins(msg['user'], like_to_coins(msg.get('count', 1), like_rate))
        to_sid('like', msg)

    def on_gift(msg: Dict[str, Any]):
        coins = gift_to_coins(msg.get('gift_name'), msg.get('repeat_count', 1), msg.get('diamond_count'))
        if coins and engine.add_coins(msg['user'], coins):
            engine.publish('fx:gift', {'user': msg['user'], 'coins': coins})
        to_sid('gift', {**msg, 'coins': coins})

    def on_comment(msg: Dict[str, Any]):
        if phrase and phrase in (msg.get('comment') or '').lower():
            engine.boss_hit(msg['user'])
        to_sid('chat', msg)

    wrapper.once('connected', on_connected)
    wrapper.once('disconnected', on_disconnected)
    upstream = wrapper.connection
    upstream.on('like', on_like)
    upstream.on('gift', on_gift)
    upstream.on('comment', on_comment)
    upstream.on('follow', lambda msg: to_sid('follow', msg))
    upstream.on('share', lambda msg: to_sid('share', msg))
    upstream.on('streamEnd', lambda *_: to_sid('streamEnd', {'message': 'Stream ended'}))

    wrapper.connect()


def register_socketio_handlers() -> None:
    """Register Socket.IO event handlers on the default namespace."""
    socketio.on_event('connect', handle_connect, namespace=NAMESPACE)
    socketio.on_event('disconnect', handle_disconnect, namespace=NAMESPACE)
    socketio.on_event('setUniqueId', handle_set_unique_id, namespace=NAMESPACE)
    socketio.on_event('demoFeed', handle_demo_feed, namespace=NAMESPACE)
    socketio.on_event('resetGame', handle_reset_game, namespace=NAMESPACE)
    socketio.on_event('forceReconnect', handle_force_reconnect, namespace=NAMESPACE)
    socketio.on_event('connectionInfo', handle_connection_info, namespace=NAMESPACE)
