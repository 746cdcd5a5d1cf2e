from flask import Blueprint, jsonify, current_app

main = Blueprint('main', __name__)


def _runtime():
    return current_app.extensions['arena']


@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the boss arena relay!'})


@main.route('/api/state')
def game_state():
    return jsonify(_runtime().engine.get_state().to_dict())


@main.route('/api/levels')
def levels():
    return jsonify([cfg.to_dict() for cfg in _runtime().engine.levels])


@main.route('/api/stats')
def stats():
    runtime = _runtime()
    return jsonify({**runtime.stats(), 'sessions': len(runtime.sessions), 'roomId': runtime.room_id})
